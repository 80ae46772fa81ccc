"""
Pytest configuration and fixtures for Live Transcription Filter tests.
"""

import pytest
import tempfile
import os
import sys
import threading
import numpy as np

# Add src to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from transcription_filter.config import FilterConfig
from transcription_filter.errors import CorrectionFailure, TranscriptionFailure


class FakeTranscriber:
    """Transcription engine double that records what it was given."""

    def __init__(self, text="hello world", confidence=0.8, error=None):
        self.text = text
        self.confidence = confidence
        self.error = error
        self.calls = []
        self.destroyed = False
        self.lock = threading.Lock()

    def transcribe(self, samples, language_hint="auto", sample_rate=16000):
        with self.lock:
            self.calls.append((np.array(samples, copy=True), language_hint, sample_rate))
        if self.error is not None:
            raise self.error
        return self.text, self.confidence

    def destroy(self):
        self.destroyed = True


class FakeCorrector:
    """Correction engine double."""

    def __init__(self, corrected="Hello, world.", error=None):
        self.corrected = corrected
        self.error = error
        self.calls = []
        self.destroyed = False

    def improve(self, text, context_prompt="", confidence=0.0):
        self.calls.append((text, context_prompt, confidence))
        if self.error is not None:
            raise self.error
        return self.corrected

    def destroy(self):
        self.destroyed = True


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def sample_audio_data():
    """Generate one second of a 440 Hz tone at 16 kHz."""
    sample_rate = 16000
    duration = 1.0
    frequency = 440

    t = np.linspace(0, duration, int(sample_rate * duration), False)
    audio_data = (0.5 * np.sin(2 * np.pi * frequency * t)).astype(np.float32)

    return audio_data, sample_rate


@pytest.fixture
def enabled_config():
    """Enabled config with a fast cadence."""
    return FilterConfig(enabled=True, interval_ms=500)


@pytest.fixture
def fake_transcriber():
    return FakeTranscriber()


@pytest.fixture
def fake_corrector():
    return FakeCorrector()


@pytest.fixture
def failing_transcriber():
    return FakeTranscriber(error=TranscriptionFailure("nothing heard"))


@pytest.fixture
def failing_corrector():
    return FakeCorrector(error=CorrectionFailure("service down"))
