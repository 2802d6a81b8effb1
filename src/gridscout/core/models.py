"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any persistence- or platform-specific types. String fields
default to "" and are never None.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

LOST_CONNECTION = "Lost Connection"
NO_WORMHOLE = "No Wormhole"
ACTIVATION_NAME = "Activation"


@dataclass(frozen=True)
class PilotEntry:
    """One pilot row taken from a scout report."""

    name: str = ""
    ship_type: str = ""
    corporation: str = ""
    alliance: str = ""


@dataclass(frozen=True)
class ParsedReport:
    """Canonical form of a single scout report."""

    reporter_name: str
    reporter_identity: str
    tenant_id: str
    system: str = ""
    wormhole_label: str = ""
    wormhole_class: str = ""
    entries: tuple[PilotEntry, ...] = ()
    is_activation_event: bool = False
    is_disconnect_event: bool = False
    raw_message: str = ""
    version: str = ""


@dataclass(frozen=True)
class PilotSighting:
    """Persisted observation of a pilot+ship on a given wormhole grid."""

    key: str
    name: str
    ship: str
    alliance: str
    corp: str
    wormhole_class: str
    wormhole_label: str
    first_seen_at: datetime
    last_seen_at: datetime
    scout_name: str
    scout_identity: str
    system: str


@dataclass(frozen=True)
class ScoutStatus:
    """Latest heartbeat of a scout, kept in memory only."""

    name: str
    system: str
    wormhole_label: str
    wormhole_class: str
    reporter_identity: str
    version: str
    last_seen_at: datetime

    @property
    def is_connected(self) -> bool:
        return self.wormhole_label != LOST_CONNECTION


@dataclass(frozen=True)
class LocalPilot:
    name: str = ""
    character_id: int = 0
    standing_hint: str = ""
    standing_icon_id: Optional[int] = None


@dataclass(frozen=True)
class GridPilot:
    pilot_name: str = ""
    ship_type: str = ""
    ship_type_id: Optional[int] = None
    standing_hint: str = ""
    standing_icon_id: Optional[int] = None
    action: str = ""
    distance: str = ""
    distance_meters: Optional[float] = None
    corporation: str = ""
    alliance: str = ""


@dataclass(frozen=True)
class LocalReport:
    """Snapshot of the pilots present in local (and on grid) for one system."""

    system: str
    scout_name: str
    status: str
    time: int
    locals: tuple[LocalPilot, ...] = ()
    on_grid: tuple[GridPilot, ...] = ()


@dataclass(frozen=True)
class TenantConfig:
    """Per-tenant routing and event toggles."""

    tenant_id: str
    event_channel_id: str = ""
    owner_id: str = ""
    enabled_events: tuple[str, ...] = field(default_factory=tuple)

    def is_enabled(self, event_type: str) -> bool:
        return event_type in self.enabled_events


@dataclass(frozen=True)
class SpyFlag:
    identity: str
    tenant_ids: tuple[str, ...]
    reason: str
    flagged_at: str


@dataclass(frozen=True)
class SpyFlagClearResult:
    found: bool
    removed_for_tenant: bool
    remaining_tenant_ids: tuple[str, ...]
