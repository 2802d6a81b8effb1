"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for persistence, tenant configuration and
delivery adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from gridscout.core.models import ScoutStatus, TenantConfig


class BlobStorePort(Protocol):
    """Durable get/set of opaque blobs by key."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class TenantConfigPort(Protocol):
    """Per-tenant routing configuration lookup."""

    def get_tenant_config(self, tenant_id: str) -> TenantConfig:
        ...


class LiveScoutsPort(Protocol):
    """Read-only view of scout liveness consumed by the notification engine."""

    def list_live_scouts(self, tenant_id: str) -> List[ScoutStatus]:
        ...


class DeliveryPort(Protocol):
    """Delivery operations required by the notification engine.

    Implementations raise ``DeliveryError`` so failures can be classified
    as transient or permanent.
    """

    async def publish_to_channel(self, channel_id: str, text: str) -> None:
        ...

    async def fetch_owner(self, tenant_id: str) -> str:
        ...

    async def send_direct_message(self, user_id: str, text: str) -> None:
        ...
