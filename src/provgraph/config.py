"""provgraph application configuration.

AppConfig is frozen after creation and reaches providers through
config_provider, so a container can be given its own configuration with
config_provider.override_with_value(AppConfig(...)).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

from provgraph.provider import Provider


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Configuration for the application's providers.

    Attributes:
        session_check_interval: Seconds between session expiry checks.
        session_expiring_soon_minutes: Remaining session time below which the
            session counts as expiring soon.
        timer_check_interval: Seconds between expired unit-timer checks.
        persisted_sort_key: Preferences key holding the library sort option.

    """

    session_check_interval: float = 60.0
    session_expiring_soon_minutes: int = 30
    timer_check_interval: float = 30.0
    persisted_sort_key: str = "library_sort_option"

    def __post_init__(self) -> None:
        if self.session_check_interval <= 0:
            raise ValueError("session_check_interval must be positive")
        if self.timer_check_interval <= 0:
            raise ValueError("timer_check_interval must be positive")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AppConfig:
        """Build from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


config_provider: Provider[AppConfig] = Provider(lambda ref: AppConfig(), name="config")
