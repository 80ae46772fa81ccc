"""
Speech recognition capability and its faster-whisper implementation.
"""

import logging
import math
import threading
from typing import Optional, Protocol, Tuple

import numpy as np

from .errors import EngineUnavailable, TranscriptionFailure

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000


class TranscriptionEngine(Protocol):
    """Anything that can turn a mono float window into (text, confidence)."""

    def transcribe(
        self, samples: np.ndarray, language_hint: str = "auto", sample_rate: int = WHISPER_SAMPLE_RATE
    ) -> Tuple[str, float]:
        ...

    def destroy(self) -> None:
        ...


def resample(samples: np.ndarray, source_rate: int, target_rate: int = WHISPER_SAMPLE_RATE) -> np.ndarray:
    """Linear-interpolation resample to target_rate."""
    samples = np.asarray(samples, dtype=np.float32)
    if source_rate == target_rate or len(samples) == 0:
        return samples

    target_length = int(round(len(samples) * target_rate / source_rate))
    if target_length <= 0:
        return np.zeros(0, dtype=np.float32)

    source_times = np.arange(len(samples)) / source_rate
    target_times = np.arange(target_length) / target_rate
    return np.interp(target_times, source_times, samples).astype(np.float32)


class WhisperTranscriptionEngine:
    """Transcription engine backed by a local faster-whisper model."""

    def __init__(self, model, model_reference: str):
        self.model = model
        self.model_reference = model_reference
        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        model_reference: str,
        device: str = "auto",
        compute_type: str = "default",
    ) -> "WhisperTranscriptionEngine":
        """Load a model by name ("small", "base", ...) or local path."""
        if not model_reference:
            raise EngineUnavailable("No model reference given")

        try:
            from faster_whisper import WhisperModel

            logger.info(f"Loading faster-whisper model: {model_reference}")
            model = WhisperModel(model_reference, device=device, compute_type=compute_type)
        except Exception as e:
            logger.error(f"Failed to load model {model_reference}: {e}")
            raise EngineUnavailable(f"Could not load model {model_reference}: {e}") from e

        logger.info("Model loaded successfully")
        return cls(model, model_reference)

    def transcribe(
        self, samples: np.ndarray, language_hint: str = "auto", sample_rate: int = WHISPER_SAMPLE_RATE
    ) -> Tuple[str, float]:
        """Transcribe one window. Raises TranscriptionFailure if nothing was recognised."""
        with self._lock:
            model = self.model
            if model is None:
                raise EngineUnavailable("Transcription engine has been destroyed")

            audio = resample(samples, sample_rate)
            if len(audio) == 0:
                raise TranscriptionFailure("Empty window")

            language: Optional[str] = None if language_hint in (None, "", "auto") else language_hint
            logger.debug(f"Transcribing {len(audio)} samples (language: {language or 'auto'})")

            try:
                segments, info = model.transcribe(
                    audio,
                    language=language,
                    beam_size=1,  # Faster inference
                    best_of=1,
                    vad_filter=True,
                    vad_parameters=dict(
                        min_silence_duration_ms=500,
                        speech_pad_ms=200
                    )
                )
                segments = list(segments)
            except Exception as e:
                raise TranscriptionFailure(f"Model inference failed: {e}") from e

        texts = []
        scores = []
        for segment in segments:
            text = segment.text.strip()
            if not text:
                continue
            texts.append(text)
            scores.append(math.exp(getattr(segment, 'avg_logprob', 0.0)))

        if not texts:
            raise TranscriptionFailure("No speech recognised")

        confidence = float(min(1.0, max(0.0, sum(scores) / len(scores))))
        return " ".join(texts), confidence

    def destroy(self):
        """Release the model. Later transcribe calls raise EngineUnavailable."""
        with self._lock:
            if self.model is None:
                return
            self.model = None
        logger.info(f"Transcription engine destroyed ({self.model_reference})")
