"""
Output sinks for finished transcriptions.
Handles the live text display and the append-only transcript log.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from .audio_buffer import TranscriptionWindow
from .config import FilterConfig
from .errors import SinkFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptionResult:
    """One finished transcription, ready for the sinks."""

    text: str
    confidence: float
    timestamp: int  # unix epoch nanoseconds
    window: Optional[TranscriptionWindow] = None


class TextTarget(Protocol):
    def set_text(self, text: str) -> None:
        ...


class TextTargetRegistry:
    """Named text targets the display sink can write into."""

    def __init__(self):
        self._targets: Dict[str, TextTarget] = {}
        self.lock = threading.Lock()

    def register(self, name: str, target: TextTarget):
        with self.lock:
            self._targets[name] = target

    def unregister(self, name: str):
        with self.lock:
            self._targets.pop(name, None)

    def get(self, name: str) -> Optional[TextTarget]:
        with self.lock:
            return self._targets.get(name)


class ConsoleTextTarget:
    """Text target that prints each update and keeps the last few lines."""

    def __init__(self, max_lines: int = 20, prefix: str = ""):
        self.max_lines = max_lines
        self.prefix = prefix
        self.lines: List[str] = []
        self.lock = threading.Lock()

    def set_text(self, text: str):
        with self.lock:
            self.lines.append(text)

            # Keep only the last max_lines
            if len(self.lines) > self.max_lines:
                self.lines.pop(0)

        print(f"{self.prefix}{text}")

    def clear(self):
        with self.lock:
            self.lines.clear()


def format_display_text(result: TranscriptionResult, show_confidence: bool) -> str:
    if show_confidence:
        return f"{result.text} ({result.confidence * 100.0:.1f}%)"
    return result.text


def format_log_line(result: TranscriptionResult) -> str:
    return f"[{result.timestamp}] {result.text}\n"


class OutputFanout:
    """Deliver a result to every enabled sink, each one isolated from the others."""

    def __init__(self, targets: Optional[TextTargetRegistry] = None):
        self.targets = targets if targets is not None else TextTargetRegistry()
        self.failures = 0
        self.lock = threading.Lock()

    def _update_display(self, result: TranscriptionResult, config: FilterConfig) -> bool:
        target = self.targets.get(config.output_target_name)
        if target is None:
            # A missing target is normal (e.g. the scene does not have it)
            logger.debug(f"Text target '{config.output_target_name}' not found")
            return False

        try:
            target.set_text(format_display_text(result, config.show_confidence))
        except Exception as e:
            raise SinkFailure(f"Display update failed: {e}") from e
        return True

    def _append_to_log(self, result: TranscriptionResult, config: FilterConfig) -> bool:
        if not config.persist_path:
            raise SinkFailure("Persistence enabled without a path")

        try:
            with open(config.persist_path, 'a', encoding='utf-8') as f:
                f.write(format_log_line(result))
        except (OSError, ValueError) as e:
            raise SinkFailure(f"Could not append to {config.persist_path}: {e}") from e
        return True

    def _record_failure(self, error: SinkFailure):
        with self.lock:
            self.failures += 1
        logger.warning(str(error))

    def dispatch(self, result: TranscriptionResult, config: FilterConfig) -> Dict[str, bool]:
        """Send result to the display and the log. Returns which sinks delivered."""
        delivered = {"display": False, "persist": False}

        if config.display_enabled and config.output_target_name:
            try:
                delivered["display"] = self._update_display(result, config)
            except SinkFailure as e:
                self._record_failure(e)

        if config.persist_enabled:
            try:
                delivered["persist"] = self._append_to_log(result, config)
            except SinkFailure as e:
                self._record_failure(e)

        return delivered
