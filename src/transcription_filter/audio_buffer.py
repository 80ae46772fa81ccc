"""
Bounded rolling buffer of canonical samples.
The audio thread appends, the transcription worker snapshots and drains.
"""

import threading
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class TranscriptionWindow:
    """Immutable copy of a buffer span, tagged with its place in the append history."""

    samples: np.ndarray
    start_position: int
    sample_rate: int

    @property
    def end_position(self) -> int:
        return self.start_position + len(self.samples)

    @property
    def duration(self) -> float:
        return len(self.samples) / self.sample_rate


class RollingBuffer:
    """
    Fixed-capacity FIFO ring of float32 samples.

    Appends that would overflow evict the oldest samples first, so the
    content is always the most recent contiguous run of appended audio.
    """

    def __init__(self, sample_rate: int = 48000, max_duration: float = 4.0):
        self.sample_rate = sample_rate
        self.capacity = int(sample_rate * max_duration)
        if self.capacity <= 0:
            raise ValueError("Buffer capacity must be positive")

        self._ring = np.zeros(self.capacity, dtype=np.float32)
        self._head = 0   # ring index of the oldest sample
        self._size = 0
        self._start_position = 0   # history index of the oldest sample
        self._total_appended = 0
        self.lock = threading.Lock()

    # Helpers below assume the lock is held

    def _evict(self, count: int):
        count = min(count, self._size)
        self._head = (self._head + count) % self.capacity
        self._size -= count
        self._start_position += count

    def _copy_front(self, count: int) -> np.ndarray:
        out = np.empty(count, dtype=np.float32)
        first = min(count, self.capacity - self._head)
        out[:first] = self._ring[self._head:self._head + first]
        if count > first:
            out[first:] = self._ring[:count - first]
        return out

    def append(self, samples: np.ndarray):
        """Append samples, evicting from the front until they fit."""
        samples = np.asarray(samples, dtype=np.float32).ravel()
        if samples.size == 0:
            return

        with self.lock:
            self._total_appended += samples.size

            if samples.size >= self.capacity:
                # Only the newest `capacity` samples can survive
                dropped = samples.size - self.capacity
                self._start_position += self._size + dropped
                self._ring[:] = samples[dropped:]
                self._head = 0
                self._size = self.capacity
                return

            overflow = self._size + samples.size - self.capacity
            if overflow > 0:
                self._evict(overflow)

            tail = (self._head + self._size) % self.capacity
            first = min(samples.size, self.capacity - tail)
            self._ring[tail:tail + first] = samples[:first]
            if samples.size > first:
                self._ring[:samples.size - first] = samples[first:]
            self._size += samples.size

    def snapshot_front(self, n: int) -> np.ndarray:
        """Copy of the oldest n samples (fewer if not that many are held)."""
        with self.lock:
            return self._copy_front(max(0, min(n, self._size)))

    def snapshot_window(self, n: int) -> TranscriptionWindow:
        """Like snapshot_front, but remembers where the copy came from."""
        with self.lock:
            count = max(0, min(n, self._size))
            return TranscriptionWindow(
                samples=self._copy_front(count),
                start_position=self._start_position,
                sample_rate=self.sample_rate,
            )

    def drain_front(self, n: int) -> int:
        """Remove the oldest n samples. Returns how many were removed."""
        with self.lock:
            before = self._size
            self._evict(max(0, n))
            return before - self._size

    def discard_through(self, position: int) -> int:
        """
        Remove every held sample older than the given history position.

        Samples already evicted by overflow are not counted twice, so a
        window drained after a concurrent eviction never takes newer audio
        with it.
        """
        with self.lock:
            before = self._size
            self._evict(max(0, position - self._start_position))
            return before - self._size

    def clear(self):
        with self.lock:
            self._start_position += self._size
            self._head = 0
            self._size = 0

    def size(self) -> int:
        with self.lock:
            return self._size

    def duration(self) -> float:
        """Buffered audio in seconds."""
        return self.size() / self.sample_rate

    @property
    def total_appended(self) -> int:
        with self.lock:
            return self._total_appended
