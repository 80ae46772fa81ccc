"""
Live Transcription Filter

Taps a live audio stream, keeps a bounded rolling window of it, and on a fixed
cadence turns that window into text, optionally refined by a correction
service, without altering the audio that flows through.
"""

__version__ = "1.0.0"
__description__ = "Real-time transcription filter for live audio pipelines"

from .audio_buffer import RollingBuffer, TranscriptionWindow
from .audio_ingest import AudioFrameBatch, SampleEncoding, convert_to_mono_float
from .config import FilterConfig
from .correction_engine import HttpCorrectionEngine
from .output import OutputFanout, TextTargetRegistry, TranscriptionResult
from .scheduler import TranscriptionScheduler
from .transcription_engine import WhisperTranscriptionEngine
from .transcription_filter import TranscriptionFilter

__all__ = [
    "AudioFrameBatch",
    "FilterConfig",
    "HttpCorrectionEngine",
    "OutputFanout",
    "RollingBuffer",
    "SampleEncoding",
    "TextTargetRegistry",
    "TranscriptionFilter",
    "TranscriptionResult",
    "TranscriptionScheduler",
    "TranscriptionWindow",
    "WhisperTranscriptionEngine",
    "convert_to_mono_float",
]
