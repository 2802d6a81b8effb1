"""Notification engine.

Derives discrete notification events from ingested reports and explicit
calls, gates them through per-class cooldowns, and delivers them through the
``DeliveryPort`` with retry. Delivery failures are logged and never raised:
notifications are best-effort relative to state durability.

Routing:
- grid events (log-in, log-off, enemy sighted, decloak broadcast) fire only
  when the tenant enabled them;
- tenant-scoped messages go to the event channel first and fall back to a
  direct message to the tenant owner;
- a scout decloak prefers a direct message to the scout.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from typing import Awaitable, Callable, Iterable, Sequence

from gridscout.core.config import NotificationConfig
from gridscout.core.errors import DeliveryFailed
from gridscout.core.events import ReportIngested
from gridscout.core.expiring import Clock, CooldownTracker, utcnow
from gridscout.core.formatting import (
    format_all_scouts_logged_off,
    format_enemy_sighted,
    format_on_grid_threat,
    format_scout_decloaked,
    format_scout_decloaked_dm,
    format_scout_logged_in,
    format_spy_behavior,
    format_undocked_local_warning,
)
from gridscout.core.models import GridPilot, ParsedReport, TenantConfig
from gridscout.core.parser import is_valid_platform_id
from gridscout.core.ports import DeliveryPort, LiveScoutsPort, TenantConfigPort
from gridscout.core.retry import Sleep, with_retry

LOGGER = logging.getLogger(__name__)

NEW_SCOUT_LOGGED_IN = "new_scout_logged_in"
ALL_SCOUTS_LOGGED_OFF = "all_scouts_logged_off"
NEW_ENEMY_SIGHTED = "new_enemy_sighted"
SCOUT_DECLOAKED = "scout_decloaked"

_DECLOAK_RE = re.compile(r"decloak", re.IGNORECASE)


class NotificationEngine:
    """Turns ingest events into deduplicated, retried deliveries."""

    def __init__(
        self,
        tenant_configs: TenantConfigPort,
        delivery: DeliveryPort,
        scouts: LiveScoutsPort,
        config: NotificationConfig = NotificationConfig(),
        *,
        clock: Clock = utcnow,
        sleep: Sleep = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._tenant_configs = tenant_configs
        self._delivery = delivery
        self._scouts = scouts
        self._config = config
        self._sleep = sleep
        self._rng = rng
        self._scout_login = CooldownTracker(config.scout_login_cooldown, clock)
        self._enemy_sighting = CooldownTracker(config.enemy_sighting_cooldown, clock)
        self._on_grid_threat = CooldownTracker(config.on_grid_threat_cooldown, clock)
        self._spy_behavior = CooldownTracker(config.spy_behavior_cooldown, clock)
        self._logged_off_tenants: set[str] = set()

    def _sweep(self) -> None:
        for tracker in (self._scout_login, self._enemy_sighting, self._on_grid_threat, self._spy_behavior):
            tracker.sweep()

    # ------------------------------------------------------------------
    # ingest-driven events
    # ------------------------------------------------------------------

    async def on_parsed_report(self, event: ReportIngested) -> int:
        """Handle one ingested report; returns the number of deliveries made."""

        self._sweep()
        report = event.report
        sent = await self._handle_scout_login(event)
        sent += await self.check_scout_coverage(report.tenant_id)
        sent += await self._handle_enemy_sightings(report)
        sent += await self._handle_scout_decloaked(report)
        return sent

    async def _handle_scout_login(self, event: ReportIngested) -> int:
        report = event.report
        if report.is_disconnect_event or not report.reporter_name or event.scout_was_live:
            return 0

        online = any(
            scout.name == report.reporter_name and scout.is_connected
            for scout in self._scouts.list_live_scouts(report.tenant_id)
        )
        if not online:
            return 0
        if not self._scout_login.try_acquire(f"{report.tenant_id}|{report.reporter_name}"):
            LOGGER.debug("Scout login notice for %s is cooling down", report.reporter_name)
            return 0
        return await self._publish_event(
            NEW_SCOUT_LOGGED_IN,
            report.tenant_id,
            format_scout_logged_in(report.reporter_name, report.system),
        )

    async def check_scout_coverage(self, tenant_id: str) -> int:
        """Send the all-scouts-logged-off notice once per coverage gap."""

        online = [scout for scout in self._scouts.list_live_scouts(tenant_id) if scout.is_connected]
        if online:
            self._logged_off_tenants.discard(tenant_id)
            return 0
        if tenant_id in self._logged_off_tenants:
            return 0
        self._logged_off_tenants.add(tenant_id)
        LOGGER.info("All scouts logged off for tenant %s", tenant_id)
        return await self._publish_event(ALL_SCOUTS_LOGGED_OFF, tenant_id, format_all_scouts_logged_off())

    async def _handle_enemy_sightings(self, report: ParsedReport) -> int:
        sent = 0
        for entry in report.entries:
            pilot_name = entry.name.strip()
            ship_name = entry.ship_type.strip()
            if not pilot_name or not ship_name:
                continue

            dedupe_key = "|".join(
                [
                    report.tenant_id,
                    pilot_name.lower(),
                    ship_name.lower(),
                    report.system.lower(),
                    report.wormhole_label.lower(),
                ]
            )
            if not self._enemy_sighting.try_acquire(dedupe_key):
                LOGGER.debug("Enemy sighting %s is cooling down", dedupe_key)
                continue
            sent += await self._publish_event(
                NEW_ENEMY_SIGHTED,
                report.tenant_id,
                format_enemy_sighted(pilot_name, ship_name, report.wormhole_label, report.system),
            )
        return sent

    async def _handle_scout_decloaked(self, report: ParsedReport) -> int:
        if not _DECLOAK_RE.search(report.raw_message):
            return 0

        identity = report.reporter_identity.strip()
        if is_valid_platform_id(identity):
            text = format_scout_decloaked_dm(report.reporter_name, report.system)
            try:
                await self._retry(
                    lambda: self._delivery.send_direct_message(identity, text),
                    f"user_dm_send:{identity}",
                )
                return 1
            except DeliveryFailed:
                LOGGER.exception("Failed to DM scout decloak notification")

        return await self._publish_event(SCOUT_DECLOAKED, report.tenant_id, format_scout_decloaked(report.reporter_name))

    # ------------------------------------------------------------------
    # explicit events
    # ------------------------------------------------------------------

    async def notify_on_grid_threat(
        self,
        tenant_id: str,
        system: str,
        scout_name: str,
        status: str,
        on_grid: Sequence[GridPilot],
    ) -> int:
        self._sweep()
        if not tenant_id or not on_grid:
            return 0

        normalized_system = (system or "").strip() or "Unknown System"
        dedupe_key = f"{tenant_id}|{normalized_system.lower()}|{(status or '').lower()}"
        if not self._on_grid_threat.try_acquire(dedupe_key):
            LOGGER.debug("On-grid threat %s is cooling down", dedupe_key)
            return 0

        text = format_on_grid_threat(system, scout_name, status, on_grid)
        return await self._publish_to_tenant(self._tenant_configs.get_tenant_config(tenant_id), text)

    async def notify_undocked_local_warning(
        self,
        tenant_id: str,
        scout_identity: str,
        scout_name: str,
        system: str,
        new_pilot_count: int,
    ) -> int:
        if not tenant_id or not scout_identity or new_pilot_count <= 0:
            return 0

        text = format_undocked_local_warning(scout_identity, scout_name, system, new_pilot_count)
        return await self._publish_to_tenant(self._tenant_configs.get_tenant_config(tenant_id), text)

    async def notify_spy_behavior(
        self,
        tenant_ids: Iterable[str],
        identity: str,
        reason: str,
        source: str = "",
    ) -> int:
        self._sweep()
        unique_tenants = sorted({tenant_id for tenant_id in tenant_ids if tenant_id})
        if not unique_tenants:
            return 0

        dedupe_key = f"{identity}|{','.join(unique_tenants)}|{source}"
        if not self._spy_behavior.try_acquire(dedupe_key):
            LOGGER.debug("Spy behavior notice %s is cooling down", dedupe_key)
            return 0

        text = format_spy_behavior(identity, reason)
        sent = 0
        for tenant_id in unique_tenants:
            sent += await self._publish_to_tenant(self._tenant_configs.get_tenant_config(tenant_id), text)
        return sent

    # ------------------------------------------------------------------
    # delivery
    # ------------------------------------------------------------------

    async def _retry(self, operation: Callable[[], Awaitable], operation_name: str):
        return await with_retry(
            operation,
            operation_name,
            self._config.retry,
            sleep=self._sleep,
            rng=self._rng,
        )

    async def _publish_event(self, event_type: str, tenant_id: str, text: str) -> int:
        config = self._tenant_configs.get_tenant_config(tenant_id)
        if not config.is_enabled(event_type):
            LOGGER.debug("Event %s disabled for tenant %s", event_type, tenant_id)
            return 0
        sent = await self._publish_to_tenant(config, text)
        if sent:
            LOGGER.info("Published %s for tenant %s", event_type, tenant_id)
        return sent

    async def _publish_to_tenant(self, config: TenantConfig, text: str) -> int:
        channel_id = config.event_channel_id
        if channel_id:
            try:
                await self._retry(
                    lambda: self._delivery.publish_to_channel(channel_id, text),
                    f"channel_send:{channel_id}",
                )
                return 1
            except DeliveryFailed as exc:
                LOGGER.warning("Failed to send message to event channel %s: %s", channel_id, exc)

        tenant_id = config.tenant_id
        try:
            owner = await self._retry(lambda: self._delivery.fetch_owner(tenant_id), f"owner_fetch:{tenant_id}")
            await self._retry(
                lambda: self._delivery.send_direct_message(owner, text),
                f"owner_dm_send:{tenant_id}",
            )
            return 1
        except DeliveryFailed as exc:
            LOGGER.error("Failed to DM tenant owner for %s: %s", tenant_id, exc)
            return 0
