"""Core ingest pipeline.

The pipeline enforces a strict order:
1) Resolve the reporter's tenant (reject on zero or several memberships)
2) Parse the payload (reject on missing/invalid reporter identity)
3) Apply the report to the Grid (write-through persistence)
4) Emit ``ReportIngested`` to the notification engine

Notification failures are logged and never reach the ingest caller;
rejections and persistence failures do.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Union

from gridscout.core.errors import ReportRejected
from gridscout.core.events import ReportIngested
from gridscout.core.grid import Grid
from gridscout.core.local_reports import is_undocked, new_non_friendly_count, normalize_local_report, threats_on_grid
from gridscout.core.models import LocalReport, ParsedReport
from gridscout.core.notifications import NotificationEngine
from gridscout.core.parser import ReportParser, is_valid_platform_id, resolve_tenant

LOGGER = logging.getLogger(__name__)


class ReportProcessor:
    """Orchestrates parsing, state mutation and notifications."""

    def __init__(
        self,
        grid: Grid,
        notifications: NotificationEngine,
        parser: ReportParser = ReportParser(),
    ) -> None:
        self._grid = grid
        self._notifications = notifications
        self._parser = parser

    async def handle(self, raw_body: bytes, reporter_identity: str, tenant_ids: Iterable[str]) -> ParsedReport:
        """Process one scout report; raises ``ReportRejected`` on refusal."""

        tenant_id = resolve_tenant(tenant_ids)
        report = self._parser.parse(raw_body, tenant_id, reporter_identity)

        # State mutation completes (and persists) before any suspension point.
        scout_was_live = self._grid.ingest(report)
        LOGGER.info(
            "Accepted report from %s for tenant %s (%s entries)",
            report.reporter_name or "unknown scout",
            tenant_id,
            len(report.entries),
        )

        await self._emit(ReportIngested(report=report, scout_was_live=scout_was_live))
        return report

    async def _emit(self, event: ReportIngested) -> None:
        try:
            await self._notifications.on_parsed_report(event)
        except Exception:
            LOGGER.exception("Notification handling failed for tenant %s", event.tenant_id)

    async def handle_local_report(
        self,
        payload: Union[bytes, dict],
        reporter_identity: str,
        tenant_ids: Iterable[str],
    ) -> LocalReport:
        """Store a local report and raise threat/undock warnings from it."""

        tenant_id = resolve_tenant(tenant_ids)
        identity = (reporter_identity or "").strip()
        if not is_valid_platform_id(identity):
            raise ReportRejected("invalid reporter identity")

        raw = _decode_local_payload(payload)
        try:
            report = normalize_local_report(raw)
        except ValueError as exc:
            raise ReportRejected(str(exc)) from exc

        previous = self._grid.previous_local_report(tenant_id, report.system, report.scout_name)
        report = self._grid.submit_local_report(tenant_id, raw)

        try:
            threats = threats_on_grid(report)
            if threats:
                await self._notifications.notify_on_grid_threat(
                    tenant_id, report.system, report.scout_name, report.status, threats
                )
            if is_undocked(report.status):
                new_count = new_non_friendly_count(previous, report)
                if new_count:
                    await self._notifications.notify_undocked_local_warning(
                        tenant_id, identity, report.scout_name, report.system, new_count
                    )
        except Exception:
            LOGGER.exception("Local report notifications failed for tenant %s", tenant_id)
        return report


def _decode_local_payload(payload: Union[bytes, dict]) -> Any:
    if isinstance(payload, dict):
        return payload
    try:
        return json.loads(payload.decode("utf-8", errors="replace"))
    except (ValueError, RecursionError) as exc:
        raise ReportRejected("local report is not valid JSON") from exc
