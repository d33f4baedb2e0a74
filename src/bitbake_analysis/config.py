"""Configuration for the BitBake analysis core."""

import os

from pydantic import BaseModel, Field

DEFAULT_DEBOUNCE_MS = 500


class Settings(BaseModel):
    """Runtime settings, overridable through ``BITBAKE_ANALYSIS_*`` variables."""

    debounce_ms: int = Field(default=DEFAULT_DEBOUNCE_MS, ge=0)
    diagnostic_source: str = Field(default="bitbake")
    embedded_scheme: str = Field(default="bitbake-embedded")
    log_level: str = Field(default="WARNING")

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @classmethod
    def from_env(cls) -> "Settings":
        def _parse_int(value: str | None, fallback: int) -> int:
            try:
                return int(value) if value is not None else fallback
            except ValueError:
                return fallback

        return cls(
            debounce_ms=max(_parse_int(os.getenv("BITBAKE_ANALYSIS_DEBOUNCE_MS"), DEFAULT_DEBOUNCE_MS), 0),
            diagnostic_source=os.getenv("BITBAKE_ANALYSIS_DIAGNOSTIC_SOURCE", "bitbake"),
            embedded_scheme=os.getenv("BITBAKE_ANALYSIS_EMBEDDED_SCHEME", "bitbake-embedded"),
            log_level=os.getenv("BITBAKE_ANALYSIS_LOG_LEVEL", "WARNING").upper(),
        )
