"""
Live audio source for running the filter outside a media host.
Delivers planar multi-channel batches from a sounddevice input stream.
"""

import logging
from typing import Callable, Dict, List, Optional

import numpy as np
import sounddevice as sd

from .audio_ingest import AudioFrameBatch, SampleEncoding

logger = logging.getLogger(__name__)


class AudioCapture:
    """Input stream that hands every block to a callback as an AudioFrameBatch."""

    def __init__(
        self,
        sample_rate: int = 48000,
        channels: int = 2,
        encoding: str = "float32",
        chunk_duration: float = 0.02,
        device: Optional[int] = None,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.encoding = SampleEncoding(encoding)
        self.chunk_duration = chunk_duration
        self.chunk_size = int(sample_rate * chunk_duration)
        self.device = device

        self.stream = None
        self.is_running = False

        self.callback: Optional[Callable[[AudioFrameBatch], object]] = None

        # Error tracking
        self.errors = 0
        self.max_errors = 5

    @staticmethod
    def list_audio_devices() -> Dict[str, List[Dict]]:
        """List available input devices."""
        try:
            devices = sd.query_devices()
            input_devices = []

            for i, device in enumerate(devices):
                if device['max_input_channels'] > 0:
                    input_devices.append({
                        'id': i,
                        'name': device['name'],
                        'channels': device['max_input_channels'],
                        'sample_rate': device['default_samplerate']
                    })

            return {'input': input_devices}
        except Exception as e:
            logger.error(f"Failed to list audio devices: {e}")
            return {'input': []}

    def make_batch(self, indata: np.ndarray, frames: int) -> AudioFrameBatch:
        """Split an interleaved (frames, channels) block into per-channel planes."""
        block = np.asarray(indata)
        if block.ndim == 1:
            block = block.reshape(-1, 1)
        planes = [np.ascontiguousarray(block[:, c]) for c in range(block.shape[1])]
        return AudioFrameBatch(
            sample_rate=self.sample_rate,
            channel_count=len(planes),
            sample_encoding=self.encoding.value,
            frame_count=frames,
            planes=planes,
        )

    def _audio_callback(self, indata, frames, time_info, status):
        try:
            if status:
                logger.warning(f"Audio status: {status}")

            if self.callback and self.is_running:
                self.callback(self.make_batch(indata.copy(), frames))

        except Exception as e:
            self.errors += 1
            logger.error(f"Audio callback error ({self.errors}/{self.max_errors}): {e}")
            if self.errors >= self.max_errors:
                logger.error("Too many audio errors, stopping stream")
                self.is_running = False
                if self.stream:
                    self.stream.stop()

    def set_callback(self, callback: Callable[[AudioFrameBatch], object]):
        self.callback = callback

    def start(self):
        if self.is_running:
            logger.warning("Audio capture already running")
            return

        self.is_running = True
        self.errors = 0

        try:
            self.stream = sd.InputStream(
                device=self.device,
                channels=self.channels,
                samplerate=self.sample_rate,
                blocksize=self.chunk_size,
                callback=self._audio_callback,
                dtype=self.encoding.value
            )
            self.stream.start()
            logger.info(
                f"Audio capture started (device: {self.device}, {self.channels} ch, "
                f"{self.sample_rate} Hz, {self.encoding.value})"
            )
        except Exception as e:
            logger.error(f"Failed to start audio capture: {e}")
            self.stop()
            raise

    def stop(self):
        if not self.is_running and self.stream is None:
            return

        logger.info("Stopping audio capture...")
        self.is_running = False

        if self.stream:
            try:
                self.stream.stop()
                self.stream.close()
            except Exception as e:
                logger.error(f"Error stopping audio stream: {e}")
            finally:
                self.stream = None

        logger.info("Audio capture stopped")

    def is_healthy(self) -> Dict[str, bool]:
        return {
            'stream': self.stream is not None and self.errors < self.max_errors,
            'running': self.is_running
        }

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
