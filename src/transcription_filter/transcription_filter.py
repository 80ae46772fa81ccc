"""
The filter instance the host talks to.
Taps host audio into the rolling buffer and owns the worker and engine handles.
"""

import logging
import time
from typing import Callable, Dict, Optional

from .audio_buffer import RollingBuffer
from .audio_ingest import AudioFrameBatch, convert_to_mono_float
from .config import FilterConfig
from .correction_engine import CorrectionEngine, HttpCorrectionEngine
from .errors import ConversionError, EngineUnavailable, ShutdownError
from .output import OutputFanout, TextTargetRegistry
from .scheduler import TranscriptionScheduler
from .transcription_engine import TranscriptionEngine, WhisperTranscriptionEngine

logger = logging.getLogger(__name__)


class TranscriptionFilter:
    """Audio filter that transcribes what passes through it without altering it."""

    def __init__(
        self,
        config: Optional[FilterConfig] = None,
        transcriber_factory: Callable[[str], TranscriptionEngine] = WhisperTranscriptionEngine.create,
        corrector_factory: Callable[[str, str], CorrectionEngine] = HttpCorrectionEngine.create,
        targets: Optional[TextTargetRegistry] = None,
        sample_rate: int = 48000,
        buffer_seconds: float = 4.0,
        min_window_seconds: float = 1.0,
        join_timeout: float = 10.0,
    ):
        self.transcriber_factory = transcriber_factory
        self.corrector_factory = corrector_factory
        self.join_timeout = join_timeout

        self.buffer = RollingBuffer(sample_rate=sample_rate, max_duration=buffer_seconds)
        self.fanout = OutputFanout(targets)
        self.scheduler = TranscriptionScheduler(
            self.buffer,
            self.fanout,
            config_source=lambda: self.config,
            min_window_seconds=min_window_seconds,
        )

        # Keys the current engine handles were built from
        self._model_reference = ""
        self._correction_key = None

        # Stats
        self.ingested_frames = 0
        self.dropped_batches = 0
        self.start_time = None

        self.config = FilterConfig()
        self.update(config or FilterConfig())

    @property
    def targets(self) -> TextTargetRegistry:
        return self.fanout.targets

    def update(self, config: FilterConfig):
        """
        Publish a new configuration and rebuild engines whose settings changed.

        The worker picks the config up at its next cycle boundary. New
        engines are created before taking the engine lock, and replaced
        handles are destroyed only after the swap.
        """
        self.config = config

        if config.model_reference and config.model_reference != self._model_reference:
            try:
                transcriber = self.transcriber_factory(config.model_reference)
            except EngineUnavailable as e:
                logger.error(f"Transcription engine unavailable: {e}")
                transcriber = None
            # A failed create leaves the key unset so the same config retries
            self._model_reference = config.model_reference if transcriber is not None else ""
            old, _ = self.scheduler.swap_engines(transcriber=transcriber)
            self._destroy_quietly(old, "transcription engine")

        correction_key = (
            (config.correction_endpoint, config.credential) if config.correction_configured else None
        )
        if correction_key != self._correction_key:
            corrector = None
            if correction_key is not None:
                try:
                    corrector = self.corrector_factory(*correction_key)
                except EngineUnavailable as e:
                    logger.error(f"Correction engine unavailable: {e}")
            self._correction_key = correction_key if corrector is not None else None
            _, old = self.scheduler.swap_engines(corrector=corrector)
            self._destroy_quietly(old, "correction engine")

    def _destroy_quietly(self, engine, name: str):
        if engine is None:
            return
        try:
            engine.destroy()
        except Exception as e:
            logger.error(f"Failed to destroy {name}: {e}")

    def filter_audio(self, batch: AudioFrameBatch) -> AudioFrameBatch:
        """Tap a host batch into the buffer. Always returns the batch itself, untouched."""
        if not self.config.enabled or batch is None:
            return batch

        try:
            mono = convert_to_mono_float(batch)
        except ConversionError as e:
            self.dropped_batches += 1
            logger.debug(f"Dropped audio batch: {e}")
            return batch

        if mono is not None:
            self.buffer.append(mono)
            self.ingested_frames += len(mono)

        return batch

    def start(self):
        if self.scheduler.is_running:
            logger.warning("Transcription filter already running")
            return

        self.start_time = time.time()
        self.scheduler.start()
        logger.info("Transcription filter started")

    def stop(self):
        """
        Stop the worker, then release the buffer and engines.

        Raises ShutdownError if the worker would not stop (handles are left
        alone in that case) or if any handle failed to tear down.
        """
        logger.info("Stopping transcription filter...")

        if not self.scheduler.stop(timeout=self.join_timeout):
            raise ShutdownError("Transcription worker still running; engines not released")

        self.buffer.clear()

        errors = []
        transcriber, corrector = self.scheduler.swap_engines(transcriber=None, corrector=None)
        self._model_reference = ""
        self._correction_key = None
        for engine, name in ((transcriber, "transcription engine"), (corrector, "correction engine")):
            if engine is None:
                continue
            try:
                engine.destroy()
            except Exception as e:
                logger.error(f"Failed to destroy {name}: {e}")
                errors.append(e)

        if errors:
            raise ShutdownError("Engine teardown failed", errors)

        logger.info("Transcription filter stopped")

    def get_stats(self) -> Dict:
        runtime = time.time() - self.start_time if self.start_time else 0
        stats = {
            'runtime_seconds': runtime,
            'ingested_frames': self.ingested_frames,
            'dropped_batches': self.dropped_batches,
            'buffer_seconds': self.buffer.duration(),
            'sink_failures': self.fanout.failures,
        }
        stats.update(self.scheduler.get_stats())
        return stats

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
