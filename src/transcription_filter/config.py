"""
Filter configuration.
A FilterConfig is immutable; changes are published by replacing the whole object.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping

LANGUAGE_HINTS = ("auto", "en", "es", "fr", "de", "zh")

MIN_INTERVAL_MS = 500
MAX_INTERVAL_MS = 5000
MIN_SILENCE_DB = -60.0
MAX_SILENCE_DB = 0.0

DEFAULT_CONTEXT_PROMPT = (
    "Please correct any transcription errors in the following text, "
    "considering the context and improving accuracy:"
)


@dataclass(frozen=True)
class FilterConfig:
    """All tunables of one filter instance."""

    enabled: bool = False
    real_time_mode: bool = True
    silence_threshold_db: float = -40.0
    interval_ms: int = 1000

    # Engines
    use_correction: bool = False
    model_reference: str = ""
    correction_endpoint: str = ""
    credential: str = field(default="", repr=False)
    language_hint: str = "auto"
    context_prompt: str = DEFAULT_CONTEXT_PROMPT

    # Output
    display_enabled: bool = False
    output_target_name: str = "Transcription"
    show_confidence: bool = True
    persist_enabled: bool = False
    persist_path: str = ""

    def __post_init__(self):
        if not MIN_INTERVAL_MS <= self.interval_ms <= MAX_INTERVAL_MS:
            raise ValueError(
                f"interval_ms must be in [{MIN_INTERVAL_MS}, {MAX_INTERVAL_MS}], got {self.interval_ms}"
            )
        if self.language_hint not in LANGUAGE_HINTS:
            raise ValueError(f"Unsupported language hint: {self.language_hint!r}")
        if not MIN_SILENCE_DB <= self.silence_threshold_db <= MAX_SILENCE_DB:
            raise ValueError(
                f"silence_threshold_db must be in [{MIN_SILENCE_DB}, {MAX_SILENCE_DB}], "
                f"got {self.silence_threshold_db}"
            )

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def correction_configured(self) -> bool:
        """True when correction is switched on and has somewhere to go."""
        return bool(self.use_correction and self.correction_endpoint and self.credential)

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "FilterConfig":
        """
        Build a config from a host settings mapping.

        Unknown keys are ignored and missing keys take their defaults, so a
        partially filled settings panel still yields a complete config.
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in settings.items():
            if key not in known or value is None:
                continue
            values[key] = value

        if "interval_ms" in values:
            values["interval_ms"] = int(values["interval_ms"])
        if "silence_threshold_db" in values:
            values["silence_threshold_db"] = float(values["silence_threshold_db"])

        return cls(**values)

    def with_changes(self, **changes) -> "FilterConfig":
        """Return a new validated config with the given fields replaced."""
        return replace(self, **changes)
