"""Versioned decoding of persisted records.

Historic snapshots were written in looser shapes: camelCase sighting objects
with millisecond timestamps, or bare strings holding a pilot key or a raw
scan line. Each record goes through the strict decoder first and then through
the legacy decoders in order; the first one that succeeds wins. A record that
no decoder accepts is dropped and never aborts a load.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, TypeVar

from gridscout.core.local_reports import normalize_local_report
from gridscout.core.models import LocalReport, PilotSighting
from gridscout.core.parser import parse_pilot_line

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

_SIGHTING_FIELDS = (
    "key",
    "name",
    "ship",
    "alliance",
    "corp",
    "wormhole_class",
    "wormhole_label",
    "scout_name",
    "scout_identity",
    "system",
)


def sighting_key(name: str, ship: str) -> str:
    return f"{name}/{ship}"


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO string, epoch seconds or epoch milliseconds.

    Raises ``ValueError`` for anything else.
    """

    if isinstance(value, datetime):
        return _ensure_aware(value)
    if isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return parse_timestamp(float(text))
        except ValueError:
            pass
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return _ensure_aware(datetime.fromisoformat(text))
    raise ValueError(f"not a timestamp: {value!r}")


def _loose_timestamp(value: Any) -> datetime:
    try:
        return parse_timestamp(value)
    except (ValueError, OverflowError, OSError):
        return EPOCH


def _loose_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def encode_sighting(sighting: PilotSighting) -> dict:
    record = {name: getattr(sighting, name) for name in _SIGHTING_FIELDS}
    record["first_seen_at"] = sighting.first_seen_at.isoformat()
    record["last_seen_at"] = sighting.last_seen_at.isoformat()
    return record


def _decode_sighting_current(raw: Any) -> PilotSighting:
    if not isinstance(raw, dict):
        raise ValueError("sighting is not an object")
    values = {}
    for name in _SIGHTING_FIELDS:
        value = raw.get(name)
        if not isinstance(value, str):
            raise ValueError(f"field {name} missing or not a string")
        values[name] = value
    if not values["key"]:
        raise ValueError("empty key")
    return PilotSighting(
        first_seen_at=parse_timestamp(raw.get("first_seen_at")),
        last_seen_at=parse_timestamp(raw.get("last_seen_at")),
        **values,
    )


def _decode_sighting_camel_case(raw: Any) -> PilotSighting:
    if not isinstance(raw, dict):
        raise ValueError("sighting is not an object")
    name = _loose_text(raw.get("name"))
    ship = _loose_text(raw.get("ship"))
    key = _loose_text(raw.get("key")) or (sighting_key(name, ship) if name or ship else "")
    if not key:
        raise ValueError("sighting has no identity")
    first_seen = _loose_timestamp(raw.get("firstSeenOnGrid", raw.get("first_seen_at")))
    last_seen_raw = raw.get("lastSeenOnGrid", raw.get("last_seen_at"))
    last_seen = _loose_timestamp(last_seen_raw) if last_seen_raw is not None else first_seen
    wormhole_class = _loose_text(raw.get("wormhole", raw.get("wormhole_class")))
    return PilotSighting(
        key=key,
        name=name,
        ship=ship,
        alliance=_loose_text(raw.get("alliance")),
        corp=_loose_text(raw.get("corp")),
        wormhole_class=wormhole_class,
        wormhole_label=_loose_text(raw.get("wormholeName", raw.get("wormhole_label"))) or wormhole_class,
        first_seen_at=first_seen,
        last_seen_at=last_seen,
        scout_name=_loose_text(raw.get("scoutName", raw.get("scout_name"))),
        scout_identity=_loose_text(raw.get("scoutDiscordId", raw.get("scout_identity"))),
        system=_loose_text(raw.get("system")),
    )


def _decode_sighting_string(raw: Any) -> PilotSighting:
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError("sighting is not a non-empty string")
    text = raw.strip()
    if "[" not in text and "/" in text:
        name, _, ship = text.partition("/")
        corp = alliance = ""
    else:
        entry = parse_pilot_line(text)
        name, ship, corp, alliance = entry.name, entry.ship_type, entry.corporation, entry.alliance
    return PilotSighting(
        key=sighting_key(name.strip(), ship.strip()),
        name=name.strip(),
        ship=ship.strip(),
        alliance=alliance,
        corp=corp,
        wormhole_class="",
        wormhole_label="",
        first_seen_at=EPOCH,
        last_seen_at=EPOCH,
        scout_name="",
        scout_identity="",
        system="",
    )


SIGHTING_DECODERS: Sequence[Callable[[Any], PilotSighting]] = (
    _decode_sighting_current,
    _decode_sighting_camel_case,
    _decode_sighting_string,
)


def _decode_local_report_current(raw: Any) -> LocalReport:
    if not isinstance(raw, dict) or "scout_name" not in raw or "locals" not in raw:
        raise ValueError("not a current local report")
    return normalize_local_report(raw)


LOCAL_REPORT_DECODERS: Sequence[Callable[[Any], LocalReport]] = (
    _decode_local_report_current,
    normalize_local_report,
)


def decode_record(raw: Any, decoders: Sequence[Callable[[Any], T]]) -> Optional[T]:
    """Run ``raw`` through ``decoders`` in order; None when all of them fail."""

    for decoder in decoders:
        try:
            return decoder(raw)
        except (TypeError, ValueError, OverflowError, OSError):
            continue
    return None


def decode_records(rows: Any, decoders: Sequence[Callable[[Any], T]], label: str) -> List[T]:
    """Decode a persisted list, dropping rows that cannot be recovered."""

    if rows is None:
        return []
    if not isinstance(rows, list):
        LOGGER.warning("Discarding %s snapshot: expected a list, got %s", label, type(rows).__name__)
        return []

    decoded: List[T] = []
    dropped = 0
    for raw in rows:
        record = decode_record(raw, decoders)
        if record is None:
            dropped += 1
            continue
        decoded.append(record)
    if dropped:
        LOGGER.warning("Dropped %s malformed %s record(s) on load", dropped, label)
    return decoded


def decode_sightings(rows: Any) -> List[PilotSighting]:
    return decode_records(rows, SIGHTING_DECODERS, "sighting")


def decode_local_reports(rows: Any) -> List[LocalReport]:
    return decode_records(rows, LOCAL_REPORT_DECODERS, "local report")
