"""Configuration for the polling engine."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pmpoller.core.intervals import interval_to_ms

DEFAULT_REFRESH_INTERVAL_MS = 1000
DEFAULT_RETENTION_TIME_MS = 30 * 60 * 1000
DEFAULT_MAX_AGE_MS = 20 * 1000


@dataclass(frozen=True)
class PollerConfig:
    """Timing configuration for a poller and its data store.

    Attributes:
        refresh_interval_ms: Delay between poll cycles.
        retention_time_ms: How long samples are kept in the data store.
        max_age_ms: How long a metric keeps being polled after it was last
            requested.
    """

    refresh_interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS
    retention_time_ms: int = DEFAULT_RETENTION_TIME_MS
    max_age_ms: int = DEFAULT_MAX_AGE_MS

    def __post_init__(self) -> None:
        for name in ("refresh_interval_ms", "retention_time_ms", "max_age_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

    @classmethod
    def from_json_data(cls, json_data: Mapping[str, Any]) -> "PollerConfig":
        """Build a config from data source settings.

        Reads the ``refreshInterval``, ``retentionTime`` and ``keepPolling``
        interval strings; missing keys fall back to the defaults.
        """
        kwargs: dict[str, int] = {}
        for key, field_name in (
            ("refreshInterval", "refresh_interval_ms"),
            ("retentionTime", "retention_time_ms"),
            ("keepPolling", "max_age_ms"),
        ):
            value = json_data.get(key)
            if value:
                kwargs[field_name] = interval_to_ms(str(value))
        return cls(**kwargs)
