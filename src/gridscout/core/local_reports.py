"""Local report normalization and population deltas (core domain).

Scout clients post local reports with PascalCase fields (``System``,
``Locals``, ``OnGrid``...). Everything is coerced into ``LocalReport`` here
so the store and notification engine only ever see one shape.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Set

from gridscout.core.models import GridPilot, LocalPilot, LocalReport
from gridscout.core.standing import is_friendly

DOCKED_STATUSES = {"docked", "in station", "station"}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _first(raw: dict, *names: str) -> Any:
    for name in names:
        if name in raw:
            return raw[name]
    return None


def normalize_local_pilot(raw: Any) -> Optional[LocalPilot]:
    if not isinstance(raw, dict):
        return None
    name = _text(_first(raw, "name", "Name"))
    character_id = _int(_first(raw, "character_id", "CharacterID"))
    if not name and not character_id:
        return None
    return LocalPilot(
        name=name,
        character_id=character_id,
        standing_hint=_text(_first(raw, "standing_hint", "StandingHint")),
        standing_icon_id=_optional_int(_first(raw, "standing_icon_id", "StandingIconId")),
    )


def normalize_grid_pilot(raw: Any) -> Optional[GridPilot]:
    if not isinstance(raw, dict):
        return None
    pilot_name = _text(_first(raw, "pilot_name", "PilotName"))
    ship_type = _text(_first(raw, "ship_type", "ShipType"))
    if not pilot_name and not ship_type:
        return None
    return GridPilot(
        pilot_name=pilot_name,
        ship_type=ship_type,
        ship_type_id=_optional_int(_first(raw, "ship_type_id", "ShipTypeId")),
        standing_hint=_text(_first(raw, "standing_hint", "StandingHint")),
        standing_icon_id=_optional_int(_first(raw, "standing_icon_id", "StandingIconId")),
        action=_text(_first(raw, "action", "Action")),
        distance=_text(_first(raw, "distance", "Distance")),
        distance_meters=_optional_float(_first(raw, "distance_meters", "DistanceMeters")),
        corporation=_text(_first(raw, "corporation", "Corporation")),
        alliance=_text(_first(raw, "alliance", "Alliance")),
    )


def _rows(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def normalize_local_report(raw: Any, default_time: int = 0) -> LocalReport:
    """Coerce a client payload (or a legacy stored row) into a LocalReport.

    Raises ``ValueError`` when the payload is not an object at all; malformed
    pilot rows are dropped.
    """

    if not isinstance(raw, dict):
        raise ValueError("local report must be a JSON object")

    locals_ = [pilot for pilot in map(normalize_local_pilot, _rows(_first(raw, "locals", "Locals"))) if pilot]
    on_grid = [pilot for pilot in map(normalize_grid_pilot, _rows(_first(raw, "on_grid", "OnGrid"))) if pilot]
    return LocalReport(
        system=_text(_first(raw, "system", "System")),
        scout_name=_text(_first(raw, "scout_name", "ScoutName")),
        status=_text(_first(raw, "status", "Status")),
        time=_int(_first(raw, "time", "Time"), default_time),
        locals=tuple(locals_),
        on_grid=tuple(on_grid),
    )


def encode_local_report(report: LocalReport) -> dict:
    return {
        "system": report.system,
        "scout_name": report.scout_name,
        "status": report.status,
        "time": report.time,
        "locals": [
            {
                "name": pilot.name,
                "character_id": pilot.character_id,
                "standing_hint": pilot.standing_hint,
                "standing_icon_id": pilot.standing_icon_id,
            }
            for pilot in report.locals
        ],
        "on_grid": [
            {
                "pilot_name": pilot.pilot_name,
                "ship_type": pilot.ship_type,
                "ship_type_id": pilot.ship_type_id,
                "standing_hint": pilot.standing_hint,
                "standing_icon_id": pilot.standing_icon_id,
                "action": pilot.action,
                "distance": pilot.distance,
                "distance_meters": pilot.distance_meters,
                "corporation": pilot.corporation,
                "alliance": pilot.alliance,
            }
            for pilot in report.on_grid
        ],
    }


def is_undocked(status: str) -> bool:
    return status.strip().lower() not in DOCKED_STATUSES


def _identity(pilot: LocalPilot) -> str:
    if pilot.character_id:
        return f"id:{pilot.character_id}"
    return f"name:{pilot.name.lower()}"


def non_friendly_locals(report: LocalReport) -> List[LocalPilot]:
    return [pilot for pilot in report.locals if not is_friendly(pilot.standing_hint)]


def new_non_friendly_count(previous: Optional[LocalReport], current: LocalReport) -> int:
    """Count non-friendly locals in ``current`` that were absent from ``previous``."""

    known: Set[str] = set()
    if previous is not None:
        known = {_identity(pilot) for pilot in previous.locals}
    return sum(1 for pilot in non_friendly_locals(current) if _identity(pilot) not in known)


def threats_on_grid(report: LocalReport) -> List[GridPilot]:
    return [pilot for pilot in report.on_grid if not is_friendly(pilot.standing_hint)]


def standing_icon_ids(reports: Iterable[LocalReport]) -> Set[int]:
    observed: Set[int] = set()
    for report in reports:
        for pilot in report.locals:
            if pilot.standing_icon_id is not None:
                observed.add(pilot.standing_icon_id)
        for grid_pilot in report.on_grid:
            if grid_pilot.standing_icon_id is not None:
                observed.add(grid_pilot.standing_icon_id)
    return observed
