"""Notification text formatting.

Keeping formatting here prevents drift between event classes and keeps
messages consistent regardless of delivery channel. Output is Markdown with
``**bold**`` markers; user-supplied values are escaped.
"""

from __future__ import annotations

from typing import Iterable

from gridscout.core.models import GridPilot

UNKNOWN_SYSTEM = "Unknown System"
UNKNOWN_SCOUT = "Unknown Scout"
UNKNOWN_WORMHOLE = "Unknown Wormhole"


def escape_md(value: str) -> str:
    for ch in r"*[`_":
        value = value.replace(ch, f"\\{ch}")
    return value


def _or(value: str, fallback: str) -> str:
    return escape_md((value or "").strip() or fallback)


def format_scout_logged_in(scout_name: str, system: str) -> str:
    return f"🛰️ **New scout logged in:** {_or(scout_name, UNKNOWN_SCOUT)} is now active in {_or(system, UNKNOWN_SYSTEM)}."


def format_all_scouts_logged_off() -> str:
    return "⚠️ **All scouts logged off.** GridScout currently has no active coverage."


def format_enemy_sighted(pilot_name: str, ship: str, wormhole: str, system: str) -> str:
    return (
        f"🚨 **New enemy sighted:** {escape_md(pilot_name)} in {escape_md(ship)} "
        f"at {_or(wormhole, UNKNOWN_WORMHOLE)} ({_or(system, UNKNOWN_SYSTEM)})."
    )


def format_scout_decloaked_dm(scout_name: str, system: str) -> str:
    return f"⚠️ **Scout decloaked:** {_or(scout_name, UNKNOWN_SCOUT)} appears decloaked in {_or(system, UNKNOWN_SYSTEM)}."


def format_scout_decloaked(scout_name: str) -> str:
    return f"⚠️ **Scout decloaked:** {_or(scout_name, UNKNOWN_SCOUT)} appears decloaked."


def format_spy_behavior(identity: str, reason: str) -> str:
    return f"🚫 **Possible spy behavior detected** for {escape_md(identity)}. {escape_md(reason)}"


def format_undocked_local_warning(scout_identity: str, scout_name: str, system: str, new_pilot_count: int) -> str:
    suffix = "" if new_pilot_count == 1 else "s"
    return (
        f"⚠️ **Non-friendlies in local:** {escape_md(scout_identity)} ({_or(scout_name, UNKNOWN_SCOUT)}) "
        f"is undocked in **{_or(system, UNKNOWN_SYSTEM)}**. "
        f"{new_pilot_count} new non-friendly pilot{suffix} entered local."
    )


def _grid_pilot_line(pilot: GridPilot) -> str:
    corp = pilot.corporation.strip()
    alliance = pilot.alliance.strip()
    org_parts = []
    if alliance:
        org_parts.append(alliance)
    if corp and corp != alliance:
        org_parts.append(corp)
    org_text = f" [{escape_md('/'.join(org_parts))}]" if org_parts else ""
    distance = pilot.distance.strip()
    distance_text = f" @ {escape_md(distance)}" if distance else ""
    return (
        f"- {_or(pilot.pilot_name, 'Unknown Pilot')}{org_text} - "
        f"{_or(pilot.ship_type, 'Unknown Ship')} ({_or(pilot.action, 'Unknown')}){distance_text}"
    )


def format_on_grid_threat(system: str, scout_name: str, status: str, on_grid: Iterable[GridPilot]) -> str:
    lines = [
        f"🚨 **{_or(status, 'Unknown Status')}** in **{_or(system, UNKNOWN_SYSTEM)}** "
        f"(Scout: {_or(scout_name, UNKNOWN_SCOUT)}).",
        "On-grid pilots:",
    ]
    lines.extend(_grid_pilot_line(pilot) for pilot in on_grid)
    return "\n".join(lines)
