"""Expiring key-value map and cooldown tracking (core domain).

Both scout liveness and notification dedupe are time-windowed maps. Expired
entries are swept lazily whenever the map is accessed, so there are no
background timers and tests can drive time through an injected clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Generic, Hashable, Iterator, List, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class _Entry(Generic[V]):
    value: V
    inserted_at: datetime


class ExpiringMap(Generic[K, V]):
    """Dict-like map whose entries expire ``ttl`` after insertion."""

    def __init__(self, ttl: timedelta, clock: Clock = utcnow) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: Dict[K, _Entry[V]] = {}

    def sweep(self) -> int:
        """Drop expired entries and return how many were removed."""

        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now - entry.inserted_at > self._ttl]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def set(self, key: K, value: V, inserted_at: Optional[datetime] = None) -> None:
        self._entries[key] = _Entry(value=value, inserted_at=inserted_at or self._clock())

    def get(self, key: K) -> Optional[V]:
        self.sweep()
        entry = self._entries.get(key)
        return entry.value if entry else None

    def inserted_at(self, key: K) -> Optional[datetime]:
        self.sweep()
        entry = self._entries.get(key)
        return entry.inserted_at if entry else None

    def pop(self, key: K) -> Optional[V]:
        entry = self._entries.pop(key, None)
        return entry.value if entry else None

    def items(self) -> List[Tuple[K, V]]:
        self.sweep()
        return [(key, entry.value) for key, entry in self._entries.items()]

    def values(self) -> List[V]:
        return [value for _, value in self.items()]

    def __contains__(self, key: object) -> bool:
        self.sweep()
        return key in self._entries

    def __len__(self) -> int:
        self.sweep()
        return len(self._entries)

    def __iter__(self) -> Iterator[K]:
        return iter([key for key, _ in self.items()])


class CooldownTracker:
    """Remember when a dedupe key was last sent and gate repeats.

    Entries are kept for twice the cooldown before being swept.
    """

    def __init__(self, cooldown: timedelta, clock: Clock = utcnow) -> None:
        self._cooldown = cooldown
        self._clock = clock
        self._sent: ExpiringMap[str, None] = ExpiringMap(cooldown * 2, clock)

    def sweep(self) -> int:
        return self._sent.sweep()

    def try_acquire(self, key: str) -> bool:
        """Return True (and stamp the key) when the cooldown has elapsed."""

        now = self._clock()
        last_sent = self._sent.inserted_at(key)
        if last_sent is not None and now - last_sent < self._cooldown:
            return False
        self._sent.set(key, None, inserted_at=now)
        return True

    def __len__(self) -> int:
        return len(self._sent)
