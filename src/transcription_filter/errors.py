"""
Error taxonomy for the transcription filter.
Only ShutdownError is meant to reach the host; everything else is handled
inside the filter and degrades to "no transcription this cycle".
"""


class TranscriptionFilterError(Exception):
    """Base class for all filter errors."""


class ConversionError(TranscriptionFilterError):
    """Host audio could not be converted to canonical mono float."""


class EngineUnavailable(TranscriptionFilterError):
    """An engine handle is missing, failed to load, or was destroyed."""


class TranscriptionFailure(TranscriptionFilterError):
    """The transcription engine produced no usable text."""


class CorrectionFailure(TranscriptionFilterError):
    """The correction service failed; callers keep the original text."""


class SinkFailure(TranscriptionFilterError):
    """An output sink could not deliver a result."""


class ShutdownError(TranscriptionFilterError):
    """Resource teardown failed while stopping the filter."""

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])
