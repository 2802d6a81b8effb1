"""Tenant state store ("Grid").

The Grid is the only component allowed to mutate sightings, scout liveness
and local reports. Every mutating call writes the whole affected collection
through the blob store before the in-memory copy is replaced, so a
successful return means the change is durable.

Sightings keep most-recent-last ordering: a re-sighting on the same wormhole
label moves the record to the end of the list.
"""

from __future__ import annotations

from dataclasses import replace
import json
import logging
from typing import Any, Dict, List, Optional, Set, Union

from gridscout.core.config import StoreConfig
from gridscout.core.errors import PersistenceError
from gridscout.core.expiring import Clock, ExpiringMap, utcnow
from gridscout.core.local_reports import encode_local_report, normalize_local_report, standing_icon_ids
from gridscout.core.migrations import (
    decode_local_reports,
    decode_sightings,
    encode_sighting,
    sighting_key,
)
from gridscout.core.models import (
    ACTIVATION_NAME,
    LOST_CONNECTION,
    NO_WORMHOLE,
    LocalReport,
    ParsedReport,
    PilotSighting,
    ScoutStatus,
)
from gridscout.core.ports import BlobStorePort

LOGGER = logging.getLogger(__name__)

STANDING_ICON_IDS_KEY = "standing_icon_ids"


def _sightings_key(tenant_id: str) -> str:
    return f"sightings:{tenant_id}"


def _local_reports_key(tenant_id: str) -> str:
    return f"local_reports:{tenant_id}"


class Grid:
    """Per-tenant aggregation of scouts, sightings and local reports."""

    def __init__(
        self,
        blob_store: BlobStorePort,
        config: StoreConfig = StoreConfig(),
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._blob_store = blob_store
        self._config = config
        self._clock = clock
        self._sightings: Dict[str, List[PilotSighting]] = {}
        self._local_reports: Dict[str, List[LocalReport]] = {}
        self._scouts: Dict[str, ExpiringMap[str, ScoutStatus]] = {}
        self._standing_icon_ids: Optional[Set[int]] = None

    # ------------------------------------------------------------------
    # persistence helpers
    # ------------------------------------------------------------------

    def _load_json(self, key: str) -> Any:
        raw = self._blob_store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            LOGGER.warning("Discarding unreadable snapshot %s", key)
            return None

    def _persist(self, key: str, rows: Any) -> None:
        payload = json.dumps(rows, separators=(",", ":")).encode("utf-8")
        try:
            self._blob_store.set(key, payload)
        except OSError as exc:
            raise PersistenceError(f"Failed to persist {key}: {exc}") from exc

    def _tenant_sightings(self, tenant_id: str) -> List[PilotSighting]:
        sightings = self._sightings.get(tenant_id)
        if sightings is None:
            sightings = decode_sightings(self._load_json(_sightings_key(tenant_id)))
            self._sightings[tenant_id] = sightings
            LOGGER.info("Loaded %s sightings for tenant %s", len(sightings), tenant_id)
        return sightings

    def _tenant_local_reports(self, tenant_id: str) -> List[LocalReport]:
        reports = self._local_reports.get(tenant_id)
        if reports is None:
            reports = decode_local_reports(self._load_json(_local_reports_key(tenant_id)))
            self._local_reports[tenant_id] = reports
        return reports

    def _tenant_scouts(self, tenant_id: str) -> ExpiringMap[str, ScoutStatus]:
        scouts = self._scouts.get(tenant_id)
        if scouts is None:
            scouts = ExpiringMap(self._config.liveness_window, self._clock)
            self._scouts[tenant_id] = scouts
        return scouts

    def _save_sightings(self, tenant_id: str, sightings: List[PilotSighting]) -> None:
        self._persist(_sightings_key(tenant_id), [encode_sighting(s) for s in sightings])
        self._sightings[tenant_id] = sightings

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------

    def ingest(self, report: ParsedReport) -> bool:
        """Apply a parsed report and return whether its scout was already live.

        Empty pilot lists never touch sighting history; activation and
        disconnect reports always update liveness.
        """

        was_live = self.is_scout_live(report.tenant_id, report.reporter_name)
        if report.is_activation_event:
            self.record_activation(
                report.tenant_id,
                report.reporter_name,
                report.wormhole_label,
                report.system,
                report.reporter_identity,
            )
        elif report.entries:
            self.record_sighting(report)
        self.record_scout_heartbeat(report)
        return was_live

    def record_sighting(self, report: ParsedReport) -> None:
        """Record every entry of ``report`` as a sighting.

        The most recent sighting with the same key and wormhole label is
        refreshed and moved to the end; a new label always yields a new record.
        """

        now = self._clock()
        sightings = list(self._tenant_sightings(report.tenant_id))

        for entry in report.entries:
            if not entry.name and not entry.ship_type:
                continue
            key = sighting_key(entry.name, entry.ship_type)
            index = next(
                (
                    i
                    for i in range(len(sightings) - 1, -1, -1)
                    if sightings[i].key == key and sightings[i].wormhole_label == report.wormhole_label
                ),
                None,
            )
            if index is not None:
                existing = sightings.pop(index)
                sightings.append(
                    replace(
                        existing,
                        last_seen_at=now,
                        scout_name=report.reporter_name,
                        scout_identity=report.reporter_identity,
                        system=report.system or existing.system,
                    )
                )
                continue

            sightings.append(
                PilotSighting(
                    key=key,
                    name=entry.name,
                    ship=entry.ship_type,
                    alliance=entry.alliance,
                    corp=entry.corporation,
                    wormhole_class=report.wormhole_class,
                    wormhole_label=report.wormhole_label,
                    first_seen_at=now,
                    last_seen_at=now,
                    scout_name=report.reporter_name,
                    scout_identity=report.reporter_identity,
                    system=report.system,
                )
            )
            LOGGER.info("New sighting %s at %s for tenant %s", key, report.wormhole_label or "?", report.tenant_id)

        self._save_sightings(report.tenant_id, sightings)

    def record_activation(
        self,
        tenant_id: str,
        scout: str,
        wormhole_label: str,
        system: str,
        reporter_identity: str,
    ) -> PilotSighting:
        """Append a synthetic activation sighting; activations never merge."""

        now = self._clock()
        sightings = list(self._tenant_sightings(tenant_id))
        existing_keys = {s.key for s in sightings}
        stamp = int(now.timestamp() * 1000)
        key = f"{ACTIVATION_NAME}/{scout}/{wormhole_label}/{stamp}"
        while key in existing_keys:
            stamp += 1
            key = f"{ACTIVATION_NAME}/{scout}/{wormhole_label}/{stamp}"

        sighting = PilotSighting(
            key=key,
            name=ACTIVATION_NAME,
            ship="",
            alliance="",
            corp="",
            wormhole_class="",
            wormhole_label=wormhole_label,
            first_seen_at=now,
            last_seen_at=now,
            scout_name=scout,
            scout_identity=reporter_identity,
            system=system,
        )
        sightings.append(sighting)
        self._save_sightings(tenant_id, sightings)
        LOGGER.info("Activation reported by %s in %s for tenant %s", scout, system or "?", tenant_id)
        return sighting

    def record_scout_heartbeat(self, report: ParsedReport) -> Optional[ScoutStatus]:
        """Refresh liveness for the reporting scout.

        Reports without a scout name (legacy free text) are not tracked.
        """

        if not report.reporter_name:
            return None

        if report.is_disconnect_event:
            label = LOST_CONNECTION
        else:
            label = report.wormhole_label or NO_WORMHOLE

        status = ScoutStatus(
            name=report.reporter_name,
            system=report.system,
            wormhole_label=label,
            wormhole_class=report.wormhole_class,
            reporter_identity=report.reporter_identity,
            version=report.version,
            last_seen_at=self._clock(),
        )
        self._tenant_scouts(report.tenant_id).set(report.reporter_name, status, inserted_at=status.last_seen_at)
        return status

    def submit_local_report(self, tenant_id: str, report: Union[LocalReport, dict]) -> LocalReport:
        """Normalize and append a local report, dropping the oldest over the cap."""

        if not isinstance(report, LocalReport):
            report = normalize_local_report(report, default_time=int(self._clock().timestamp() * 1000))

        reports = list(self._tenant_local_reports(tenant_id))
        reports.append(report)
        overflow = len(reports) - self._config.max_local_reports
        if overflow > 0:
            del reports[:overflow]

        self._persist(_local_reports_key(tenant_id), [encode_local_report(r) for r in reports])
        self._local_reports[tenant_id] = reports
        self._record_standing_icon_ids(report)
        return report

    def _record_standing_icon_ids(self, report: LocalReport) -> None:
        known = set(self.observed_standing_icon_ids())
        merged = known | standing_icon_ids([report])
        if merged == known:
            return
        try:
            self._persist(STANDING_ICON_IDS_KEY, sorted(merged))
        except PersistenceError:
            LOGGER.exception("Failed to persist standing icon id observations")
            return
        self._standing_icon_ids = merged

    def delete_sighting(self, tenant_id: str, key: str) -> bool:
        """Remove every sighting stored under ``key``."""

        sightings = self._tenant_sightings(tenant_id)
        remaining = [s for s in sightings if s.key != key]
        if len(remaining) == len(sightings):
            return False
        self._save_sightings(tenant_id, remaining)
        LOGGER.info("Deleted sighting %s for tenant %s", key, tenant_id)
        return True

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def is_scout_live(self, tenant_id: str, scout_name: str) -> bool:
        if not scout_name:
            return False
        status = self._tenant_scouts(tenant_id).get(scout_name)
        return status is not None and status.is_connected

    def list_live_scouts(self, tenant_id: str) -> List[ScoutStatus]:
        """Snapshot of scouts heard from within the liveness window."""

        return self._tenant_scouts(tenant_id).values()

    def list_sightings(self, tenant_id: str, limit: Optional[int] = None) -> List[PilotSighting]:
        """Return up to ``limit`` most recent sightings, oldest first."""

        sightings = self._tenant_sightings(tenant_id)
        if limit is None:
            return list(sightings)
        if limit <= 0:
            return []
        return list(sightings[-limit:])

    def local_reports_so_far(self, tenant_id: str) -> List[LocalReport]:
        return list(self._tenant_local_reports(tenant_id))

    def previous_local_report(self, tenant_id: str, system: str, scout_name: str) -> Optional[LocalReport]:
        for report in reversed(self._tenant_local_reports(tenant_id)):
            if report.system == system and report.scout_name == scout_name:
                return report
        return None

    def observed_standing_icon_ids(self) -> List[int]:
        if self._standing_icon_ids is None:
            rows = self._load_json(STANDING_ICON_IDS_KEY)
            ids: Set[int] = set()
            if isinstance(rows, list):
                for value in rows:
                    if isinstance(value, (int, float)) and not isinstance(value, bool):
                        ids.add(int(value))
            self._standing_icon_ids = ids
        return sorted(self._standing_icon_ids)
