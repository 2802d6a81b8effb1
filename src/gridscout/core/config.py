"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class StoreConfig:
    """Retention settings for the tenant state store."""

    liveness_window: timedelta = timedelta(minutes=5)
    max_local_reports: int = 5000


@dataclass(frozen=True)
class RetryConfig:
    """Backoff settings for external delivery calls."""

    max_attempts: int = 3
    base_delay: float = 0.2
    max_jitter: float = 0.075

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")


@dataclass(frozen=True)
class NotificationConfig:
    """Cooldown windows for each deduplicated notification class."""

    scout_login_cooldown: timedelta = timedelta(minutes=5)
    enemy_sighting_cooldown: timedelta = timedelta(minutes=10)
    on_grid_threat_cooldown: timedelta = timedelta(minutes=2)
    spy_behavior_cooldown: timedelta = timedelta(minutes=10)
    retry: RetryConfig = RetryConfig()
