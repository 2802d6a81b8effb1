"""Tenant configuration and spy flag store.

Backed by the same blob store as the Grid. Config rows are small and read on
every notification, so they are cached after the first load and written
through on every change.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from gridscout.core.errors import PersistenceError
from gridscout.core.models import SpyFlag, SpyFlagClearResult, TenantConfig
from gridscout.core.ports import BlobStorePort

LOGGER = logging.getLogger(__name__)

SPY_FLAGS_KEY = "spy_flags"

# Events a tenant can toggle; the remaining notification classes always fire.
GRID_EVENT_TYPES = (
    "all_scouts_logged_off",
    "new_scout_logged_in",
    "new_enemy_sighted",
    "scout_decloaked",
)


def _config_key(tenant_id: str) -> str:
    return f"tenant_config:{tenant_id}"


def _decode_config(tenant_id: str, raw: Any) -> TenantConfig:
    if not isinstance(raw, dict):
        return TenantConfig(tenant_id=tenant_id)
    enabled = raw.get("enabled_events", raw.get("enabledEvents", []))
    if not isinstance(enabled, list):
        enabled = []
    return TenantConfig(
        tenant_id=tenant_id,
        event_channel_id=str(raw.get("event_channel_id", raw.get("eventChannelId")) or ""),
        owner_id=str(raw.get("owner_id", raw.get("ownerId")) or ""),
        enabled_events=tuple(str(event) for event in enabled if str(event) in GRID_EVENT_TYPES),
    )


def _decode_spy_flag(identity: str, raw: Any) -> Optional[SpyFlag]:
    if not isinstance(raw, dict):
        return None
    tenant_ids = raw.get("tenant_ids", raw.get("guildIds", []))
    if not isinstance(tenant_ids, list):
        return None
    return SpyFlag(
        identity=identity,
        tenant_ids=tuple(str(t) for t in tenant_ids if t),
        reason=str(raw.get("reason") or ""),
        flagged_at=str(raw.get("flagged_at", raw.get("flaggedAt")) or ""),
    )


class TenantConfigStore:
    """Reads and writes per-tenant routing config and spy flags."""

    def __init__(self, blob_store: BlobStorePort) -> None:
        self._blob_store = blob_store
        self._configs: Dict[str, TenantConfig] = {}
        self._spy_flags: Optional[Dict[str, SpyFlag]] = None

    def _load_json(self, key: str) -> Any:
        raw = self._blob_store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            LOGGER.warning("Discarding unreadable snapshot %s", key)
            return None

    def _persist(self, key: str, value: Any) -> None:
        try:
            self._blob_store.set(key, json.dumps(value).encode("utf-8"))
        except OSError as exc:
            raise PersistenceError(f"Failed to persist {key}: {exc}") from exc

    # tenant config

    def get_tenant_config(self, tenant_id: str) -> TenantConfig:
        config = self._configs.get(tenant_id)
        if config is None:
            config = _decode_config(tenant_id, self._load_json(_config_key(tenant_id)))
            self._configs[tenant_id] = config
        return config

    def _save_config(self, config: TenantConfig) -> TenantConfig:
        self._persist(
            _config_key(config.tenant_id),
            {
                "event_channel_id": config.event_channel_id,
                "owner_id": config.owner_id,
                "enabled_events": list(config.enabled_events),
            },
        )
        self._configs[config.tenant_id] = config
        return config

    def set_event_channel(self, tenant_id: str, channel_id: str) -> TenantConfig:
        config = self.get_tenant_config(tenant_id)
        return self._save_config(replace(config, event_channel_id=channel_id.strip()))

    def set_owner(self, tenant_id: str, owner_id: str) -> TenantConfig:
        config = self.get_tenant_config(tenant_id)
        return self._save_config(replace(config, owner_id=owner_id.strip()))

    def enable_event(self, tenant_id: str, event_type: str) -> TenantConfig:
        if event_type not in GRID_EVENT_TYPES:
            raise ValueError(f"Unsupported event type: {event_type}")
        config = self.get_tenant_config(tenant_id)
        if config.is_enabled(event_type):
            return config
        return self._save_config(replace(config, enabled_events=config.enabled_events + (event_type,)))

    def disable_event(self, tenant_id: str, event_type: str) -> TenantConfig:
        if event_type not in GRID_EVENT_TYPES:
            raise ValueError(f"Unsupported event type: {event_type}")
        config = self.get_tenant_config(tenant_id)
        if not config.is_enabled(event_type):
            return config
        enabled = tuple(event for event in config.enabled_events if event != event_type)
        return self._save_config(replace(config, enabled_events=enabled))

    # spy flags

    def _flags(self) -> Dict[str, SpyFlag]:
        if self._spy_flags is None:
            raw = self._load_json(SPY_FLAGS_KEY)
            flags: Dict[str, SpyFlag] = {}
            if isinstance(raw, dict):
                for identity, row in raw.items():
                    flag = _decode_spy_flag(str(identity), row)
                    if flag is not None and flag.tenant_ids:
                        flags[flag.identity] = flag
            self._spy_flags = flags
        return self._spy_flags

    def _save_flags(self, flags: Dict[str, SpyFlag]) -> None:
        self._persist(
            SPY_FLAGS_KEY,
            {
                identity: {
                    "tenant_ids": list(flag.tenant_ids),
                    "reason": flag.reason,
                    "flagged_at": flag.flagged_at,
                }
                for identity, flag in flags.items()
            },
        )
        self._spy_flags = flags

    def flag_spy(self, identity: str, tenant_ids: Iterable[str], reason: str) -> SpyFlag:
        flags = dict(self._flags())
        existing = flags.get(identity)
        merged = list(existing.tenant_ids) if existing else []
        for tenant_id in tenant_ids:
            if tenant_id and tenant_id not in merged:
                merged.append(tenant_id)
        flag = SpyFlag(
            identity=identity,
            tenant_ids=tuple(merged),
            reason=reason,
            flagged_at=datetime.now(timezone.utc).isoformat(),
        )
        flags[identity] = flag
        self._save_flags(flags)
        LOGGER.info("Flagged %s as suspected spy for %s tenant(s)", identity, len(flag.tenant_ids))
        return flag

    def clear_spy_flag(self, identity: str, tenant_id: str) -> SpyFlagClearResult:
        flags = dict(self._flags())
        flag = flags.get(identity)
        if flag is None:
            return SpyFlagClearResult(found=False, removed_for_tenant=False, remaining_tenant_ids=())
        if tenant_id not in flag.tenant_ids:
            return SpyFlagClearResult(found=True, removed_for_tenant=False, remaining_tenant_ids=flag.tenant_ids)

        remaining = tuple(t for t in flag.tenant_ids if t != tenant_id)
        if remaining:
            flags[identity] = replace(flag, tenant_ids=remaining)
        else:
            del flags[identity]
        self._save_flags(flags)
        return SpyFlagClearResult(found=True, removed_for_tenant=True, remaining_tenant_ids=remaining)

    def list_spies(self, tenant_id: str) -> List[SpyFlag]:
        return [flag for flag in self._flags().values() if tenant_id in flag.tenant_ids]

    def is_flagged(self, identity: str, tenant_id: str) -> bool:
        flag = self._flags().get(identity)
        return flag is not None and tenant_id in flag.tenant_ids
