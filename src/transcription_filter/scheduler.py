"""
Background transcription loop.
Periodically takes a window from the rolling buffer, transcribes it, optionally
corrects the text and hands the result to the output sinks.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional

from .audio_buffer import RollingBuffer, TranscriptionWindow
from .config import FilterConfig
from .correction_engine import CONFIDENCE_SKIP_THRESHOLD, CorrectionEngine
from .errors import EngineUnavailable, TranscriptionFailure
from .output import OutputFanout, TranscriptionResult
from .transcription_engine import TranscriptionEngine

logger = logging.getLogger(__name__)

_KEEP = object()


class TranscriptionScheduler:
    """
    Runs transcription cycles on a dedicated worker thread.

    The buffer lock is only held while copying or draining samples. Engine
    calls run under engine_lock instead, which is also what handle swaps
    take, so an engine is never replaced while a cycle is using it.
    """

    def __init__(
        self,
        buffer: RollingBuffer,
        fanout: OutputFanout,
        config_source: Callable[[], FilterConfig],
        min_window_seconds: float = 1.0,
        clock: Callable[[], int] = time.time_ns,
    ):
        self.buffer = buffer
        self.fanout = fanout
        self.config_source = config_source
        self.min_window_samples = int(buffer.sample_rate * min_window_seconds)
        self.clock = clock

        # Engine handles
        self.transcriber: Optional[TranscriptionEngine] = None
        self.corrector: Optional[CorrectionEngine] = None
        self.engine_lock = threading.Lock()

        # Worker
        self.worker: Optional[threading.Thread] = None
        self.stop_event = threading.Event()

        # Stats
        self.cycles = 0
        self.transcriptions = 0
        self.skipped_cycles = 0
        self.correction_failures = 0
        self.last_confidence = 0.0
        self.last_transcription_time = 0

    def swap_engines(self, transcriber=_KEEP, corrector=_KEEP):
        """
        Install new engine handles between cycles.

        Returns the (transcriber, corrector) pair that was replaced; the
        caller owns those and is free to destroy them once this returns.
        """
        with self.engine_lock:
            old_transcriber, old_corrector = self.transcriber, self.corrector
            if transcriber is not _KEEP:
                self.transcriber = transcriber
            if corrector is not _KEEP:
                self.corrector = corrector

        return (
            old_transcriber if transcriber is not _KEEP else None,
            old_corrector if corrector is not _KEEP else None,
        )

    def _correct(self, corrector: CorrectionEngine, text: str, confidence: float, config: FilterConfig) -> str:
        try:
            corrected = corrector.improve(text, config.context_prompt, confidence)
        except Exception as e:
            self.correction_failures += 1
            logger.warning(f"Correction failed, keeping original text: {e}")
            return text

        if not corrected or not corrected.strip():
            return text
        return corrected.strip()

    def _transcribe(self, window: TranscriptionWindow, config: FilterConfig):
        """Engine and correction step. Returns (text, confidence) or None to skip."""
        with self.engine_lock:
            transcriber = self.transcriber
            corrector = self.corrector

            if transcriber is None:
                raise EngineUnavailable("No transcription engine loaded")

            try:
                text, confidence = transcriber.transcribe(
                    window.samples, config.language_hint, window.sample_rate
                )
            except (EngineUnavailable, TranscriptionFailure):
                raise
            except Exception as e:
                raise TranscriptionFailure(f"Engine error: {e}") from e

            text = (text or "").strip()
            if not text:
                raise TranscriptionFailure("Engine returned no text")

            if config.use_correction and corrector is not None and confidence <= CONFIDENCE_SKIP_THRESHOLD:
                text = self._correct(corrector, text, confidence, config)

        return text, confidence

    def run_cycle(self, config: FilterConfig) -> Optional[TranscriptionResult]:
        """Run one transcription cycle without sleeping. Returns the dispatched result, if any."""
        self.cycles += 1

        if not config.enabled:
            return None

        buffered = self.buffer.size()
        if buffered < self.min_window_samples:
            logger.debug(f"Waiting for audio ({buffered}/{self.min_window_samples} samples)")
            return None

        window = self.buffer.snapshot_window(self.buffer.capacity)

        try:
            text, confidence = self._transcribe(window, config)
        except EngineUnavailable as e:
            self.skipped_cycles += 1
            logger.debug(f"Skipping cycle: {e}")
            return None
        except TranscriptionFailure as e:
            self.skipped_cycles += 1
            logger.debug(f"No transcription this cycle: {e}")
            return None

        result = TranscriptionResult(
            text=text,
            confidence=confidence,
            timestamp=self.clock(),
            window=window,
        )
        self.fanout.dispatch(result, config)

        self.transcriptions += 1
        self.last_confidence = confidence
        self.last_transcription_time = result.timestamp
        logger.info(f"Transcription ({confidence * 100.0:.1f}%): {text}")

        if config.real_time_mode:
            self.buffer.discard_through(window.end_position)

        return result

    def _run(self):
        logger.info("Transcription worker started")

        while not self.stop_event.is_set():
            config = self.config_source()
            try:
                self.run_cycle(config)
            except Exception as e:
                logger.error(f"Transcription cycle error: {e}")

            if self.stop_event.wait(config.interval_seconds):
                break

        logger.info("Transcription worker stopped")

    def start(self):
        if self.is_running:
            logger.warning("Transcription worker already running")
            return

        self.stop_event.clear()
        self.worker = threading.Thread(target=self._run, name="transcription-worker", daemon=True)
        self.worker.start()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal the worker and wait for it. Returns True once it has exited."""
        self.stop_event.set()
        if self.worker is None:
            return True

        self.worker.join(timeout=timeout)
        if self.worker.is_alive():
            logger.error("Transcription worker did not stop in time")
            return False

        self.worker = None
        return True

    @property
    def is_running(self) -> bool:
        return self.worker is not None and self.worker.is_alive()

    def get_stats(self) -> Dict:
        return {
            'cycles': self.cycles,
            'transcriptions': self.transcriptions,
            'skipped_cycles': self.skipped_cycles,
            'correction_failures': self.correction_failures,
            'last_confidence': self.last_confidence,
            'last_transcription_time': self.last_transcription_time,
        }
