"""Analysis settings stored alongside the project snapshot."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace

from sitecoord.exceptions import ConfigError

DEFAULT_LOOKBACK_DAYS = 5
DEFAULT_DATE_FORMAT = "%Y-%m-%d"
DEFAULT_CHECK_INTERVAL_HOURS = 12.0
UNASSIGNED_TRADE = "Unassigned"

ENV_LOOKBACK_DAYS = "SITECOORD_LOOKBACK_DAYS"
ENV_DATE_FORMAT = "SITECOORD_DATE_FORMAT"
ENV_CHECK_INTERVAL_HOURS = "SITECOORD_CHECK_INTERVAL_HOURS"


@dataclass(frozen=True)
class AnalysisConfig:
    """Tunables for the detectors, the report and the periodic runner."""

    lookback_days: int = DEFAULT_LOOKBACK_DAYS
    date_format: str = DEFAULT_DATE_FORMAT
    check_interval_hours: float = DEFAULT_CHECK_INTERVAL_HOURS
    unassigned_label: str = UNASSIGNED_TRADE

    def __post_init__(self) -> None:
        if isinstance(self.lookback_days, bool) or not isinstance(self.lookback_days, int):
            raise ConfigError(f"lookback_days must be an integer, got {self.lookback_days!r}")
        if self.lookback_days < 0:
            raise ConfigError(f"lookback_days must be >= 0, got {self.lookback_days}")
        if isinstance(self.check_interval_hours, bool) or not isinstance(
            self.check_interval_hours, (int, float)
        ):
            raise ConfigError(
                f"check_interval_hours must be a number, got {self.check_interval_hours!r}"
            )
        if self.check_interval_hours <= 0:
            raise ConfigError(
                f"check_interval_hours must be positive, got {self.check_interval_hours}"
            )
        if not isinstance(self.date_format, str) or not self.date_format:
            raise ConfigError(f"date_format must be a non-empty string, got {self.date_format!r}")
        if not isinstance(self.unassigned_label, str) or not self.unassigned_label:
            raise ConfigError("unassigned_label must be a non-empty string")

    def to_dict(self) -> dict:
        return {
            "lookback_days": self.lookback_days,
            "date_format": self.date_format,
            "check_interval_hours": self.check_interval_hours,
            "unassigned_label": self.unassigned_label,
        }

    @classmethod
    def from_dict(cls, d: Mapping) -> AnalysisConfig:
        if not isinstance(d, Mapping):
            raise ConfigError(f"config must be an object, got {type(d).__name__}")
        try:
            interval = float(d.get("check_interval_hours", DEFAULT_CHECK_INTERVAL_HOURS))
        except (TypeError, ValueError):
            raise ConfigError(
                f"check_interval_hours must be a number, got {d.get('check_interval_hours')!r}"
            ) from None
        return cls(
            lookback_days=d.get("lookback_days", DEFAULT_LOOKBACK_DAYS),
            date_format=d.get("date_format", DEFAULT_DATE_FORMAT),
            check_interval_hours=interval,
            unassigned_label=d.get("unassigned_label", UNASSIGNED_TRADE),
        )


def load_config(
    stored: AnalysisConfig | None = None,
    environ: Mapping[str, str] | None = None,
) -> AnalysisConfig:
    """Return the stored config (or defaults) with environment overrides applied."""
    config = stored or AnalysisConfig()
    env = os.environ if environ is None else environ

    overrides: dict = {}
    if raw := env.get(ENV_LOOKBACK_DAYS):
        try:
            overrides["lookback_days"] = int(raw)
        except ValueError:
            raise ConfigError(f"{ENV_LOOKBACK_DAYS} must be an integer, got {raw!r}") from None
    if raw := env.get(ENV_DATE_FORMAT):
        overrides["date_format"] = raw
    if raw := env.get(ENV_CHECK_INTERVAL_HOURS):
        try:
            overrides["check_interval_hours"] = float(raw)
        except ValueError:
            raise ConfigError(f"{ENV_CHECK_INTERVAL_HOURS} must be a number, got {raw!r}") from None

    return replace(config, **overrides) if overrides else config
