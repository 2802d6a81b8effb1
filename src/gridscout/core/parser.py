"""Scout report parsing (core domain).

Turns one raw ingest payload into a ``ParsedReport``. Structured JSON from the
scout client is preferred; anything that does not decode to a JSON object is
treated as a legacy free-text report with unknown scout and system.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from gridscout.core.errors import ReportRejected
from gridscout.core.models import ParsedReport, PilotEntry

LOGGER = logging.getLogger(__name__)

ACTIVATION_MESSAGE = "Possible activation detected!"
NOTHING_FOUND = "Nothing Found"
WORMHOLE_PREFIX = "Wormhole "
HEADER_WORDS = ("Type", "Corporation", "Alliance", "Name")

_REPORTER_ID_RE = re.compile(r"[0-9]{17,20}")
TRUE_FLAG_TEXT = {"true", "1"}


def is_valid_platform_id(value: str) -> bool:
    """Return True for platform numeric ids (17-20 digits)."""

    return bool(_REPORTER_ID_RE.fullmatch(value or ""))


def resolve_tenant(tenant_ids: Iterable[str]) -> str:
    """Pick the single tenant a reporter belongs to, or reject the report."""

    unique = sorted({tenant_id for tenant_id in tenant_ids if tenant_id})
    if not unique:
        raise ReportRejected("missing tenant")
    if len(unique) > 1:
        raise ReportRejected("ambiguous tenant membership")
    return unique[0]


def _is_bracketed(token: str) -> bool:
    return token.startswith("[") or token.endswith("]")


def parse_pilot_line(line: str) -> PilotEntry:
    """Split ``<ship words> [CORP] [ALLIANCE] <name words>`` into a PilotEntry.

    The alliance ticker is optional. Lines without any bracketed token are
    kept entirely as the ship type.
    """

    tokens = line.split()
    boundary = next((index for index, token in enumerate(tokens) if _is_bracketed(token)), None)
    if boundary is None:
        return PilotEntry(ship_type=" ".join(tokens))

    ship_type = " ".join(tokens[:boundary])
    corporation = tokens[boundary].strip("[]")
    alliance = ""
    rest = boundary + 1
    if rest < len(tokens) and _is_bracketed(tokens[rest]):
        alliance = tokens[rest].strip("[]")
        rest += 1
    name = " ".join(tokens[rest:])
    return PilotEntry(name=name, ship_type=ship_type, corporation=corporation, alliance=alliance)


def _is_header_row(tokens: Sequence[str]) -> bool:
    # Fewer than 3 of the 4 header words means a pilot row.
    return sum(1 for word in HEADER_WORDS if word in tokens) >= 3


def parse_free_text(message: str) -> Tuple[str, List[PilotEntry]]:
    """Parse a free-text scan dump into (wormhole_class, pilot entries)."""

    wormhole_class = ""
    entries: List[PilotEntry] = []

    for raw_line in message.split("\n"):
        line = raw_line.strip()
        if not line or line == NOTHING_FOUND:
            continue

        tokens = line.split()
        if line.startswith(WORMHOLE_PREFIX):
            wormhole_class = tokens[1] if len(tokens) > 1 else ""
            continue

        if len(tokens) > 2 and not _is_header_row(tokens):
            entries.append(parse_pilot_line(line))

    return wormhole_class, entries


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _flag(value: Any) -> bool:
    """Only an explicit true value counts; "false", 0 and junk do not."""

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUE_FLAG_TEXT
    return False


def _parse_structured_entries(raw_entries: Sequence[Any]) -> Tuple[str, List[PilotEntry]]:
    wormhole_class = ""
    entries: List[PilotEntry] = []
    for raw in raw_entries:
        if not isinstance(raw, dict):
            continue
        ship_type = _text(raw.get("Type"))
        if ship_type.startswith(WORMHOLE_PREFIX):
            tokens = ship_type.split()
            wormhole_class = tokens[1] if len(tokens) > 1 else ""
            continue
        entries.append(
            PilotEntry(
                name=_text(raw.get("Name")),
                ship_type=ship_type,
                corporation=_text(raw.get("Corporation")),
                alliance=_text(raw.get("Alliance")),
            )
        )
    return wormhole_class, entries


def _decode_payload(text: str) -> Optional[dict]:
    try:
        payload = json.loads(text)
    except (ValueError, RecursionError):
        return None
    if not isinstance(payload, dict):
        return None
    return payload


class ReportParser:
    """Stateless parser for scout ingest payloads."""

    def parse(self, raw_body: bytes, tenant_id: str, reporter_identity: str) -> ParsedReport:
        """Return a canonical report or raise ``ReportRejected``."""

        identity = (reporter_identity or "").strip()
        if not identity:
            raise ReportRejected("missing reporter identity")
        if not is_valid_platform_id(identity):
            raise ReportRejected("invalid reporter identity")
        if not tenant_id:
            raise ReportRejected("missing tenant")

        text = raw_body.decode("utf-8", errors="replace")
        payload = _decode_payload(text)
        if payload is None:
            # Legacy free-text report: no scout, system or flags are known.
            LOGGER.debug("Payload is not a JSON object, parsing as free text")
            payload = {"Message": text}

        message = _text(payload.get("Message"))
        scout = _text(payload.get("Scout"))
        system = _text(payload.get("System"))
        wormhole = _text(payload.get("Wormhole"))
        version = _text(payload.get("Version"))
        disconnected = _flag(payload.get("Disconnected"))

        if message == ACTIVATION_MESSAGE:
            return ParsedReport(
                reporter_name=scout,
                reporter_identity=identity,
                tenant_id=tenant_id,
                system=system,
                wormhole_label=wormhole,
                is_activation_event=True,
                is_disconnect_event=disconnected,
                raw_message=message,
                version=version,
            )

        raw_entries = payload.get("Entries")
        if isinstance(raw_entries, list) and raw_entries:
            wormhole_class, entries = _parse_structured_entries(raw_entries)
        else:
            wormhole_class, entries = parse_free_text(message)

        return ParsedReport(
            reporter_name=scout,
            reporter_identity=identity,
            tenant_id=tenant_id,
            system=system,
            wormhole_label=wormhole or wormhole_class,
            wormhole_class=wormhole_class,
            entries=tuple(entries),
            is_activation_event=False,
            is_disconnect_event=disconnected,
            raw_message=message,
            version=version,
        )
