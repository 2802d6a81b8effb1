from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from gridscout.core.errors import DeliveryError, PersistenceError


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeBlobStore:
    def __init__(self) -> None:
        self.blobs: Dict[str, bytes] = {}
        self.writes: List[str] = []
        self.fail_writes = False

    def get(self, key: str) -> Optional[bytes]:
        return self.blobs.get(key)

    def set(self, key: str, value: bytes) -> None:
        if self.fail_writes:
            raise PersistenceError(f"disk full while writing {key}")
        self.blobs[key] = value
        self.writes.append(key)


class FakeDelivery:
    """Records deliveries; queued errors are raised before a call succeeds."""

    def __init__(self, owners: Optional[Dict[str, str]] = None) -> None:
        self.owners = owners or {}
        self.channel_posts: List[Tuple[str, str]] = []
        self.direct_messages: List[Tuple[str, str]] = []
        self.channel_attempts = 0
        self.dm_attempts = 0
        self.channel_errors: List[Exception] = []
        self.dm_errors: List[Exception] = []
        self.always_fail_channel: Optional[Exception] = None

    async def publish_to_channel(self, channel_id: str, text: str) -> None:
        self.channel_attempts += 1
        if self.always_fail_channel is not None:
            raise self.always_fail_channel
        if self.channel_errors:
            raise self.channel_errors.pop(0)
        self.channel_posts.append((channel_id, text))

    async def fetch_owner(self, tenant_id: str) -> str:
        owner = self.owners.get(tenant_id)
        if not owner:
            raise DeliveryError(f"no owner for {tenant_id}", status=404)
        return owner

    async def send_direct_message(self, user_id: str, text: str) -> None:
        self.dm_attempts += 1
        if self.dm_errors:
            raise self.dm_errors.pop(0)
        self.direct_messages.append((user_id, text))


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def delivery() -> FakeDelivery:
    return FakeDelivery()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
