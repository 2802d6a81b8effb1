from __future__ import annotations

import asyncio

from gridscout.core.errors import DeliveryError
from gridscout.core.events import ReportIngested
from gridscout.core.grid import Grid
from gridscout.core.models import GridPilot, ParsedReport, PilotEntry
from gridscout.core.notifications import NotificationEngine
from gridscout.core.tenants import TenantConfigStore

REPORTER_ID = "123456789012345678"
TENANT = "guild-1"


def _setup(blob_store, delivery, clock, sleep, *events: str, channel: str = "chan-1"):
    tenants = TenantConfigStore(blob_store)
    if channel:
        tenants.set_event_channel(TENANT, channel)
    for event in events:
        tenants.enable_event(TENANT, event)
    grid = Grid(blob_store, clock=clock)
    engine = NotificationEngine(tenants, delivery, grid, clock=clock, sleep=sleep, rng=lambda: 0.0)
    return grid, engine


def _report(*entries: PilotEntry, scout: str = "Scoutie", disconnected: bool = False, message: str = "") -> ParsedReport:
    return ParsedReport(
        reporter_name=scout,
        reporter_identity=REPORTER_ID,
        tenant_id=TENANT,
        system="J100001",
        wormhole_label="C5",
        wormhole_class="C5",
        entries=tuple(entries),
        is_disconnect_event=disconnected,
        raw_message=message,
    )


def _ingest(grid: Grid, engine: NotificationEngine, report: ParsedReport) -> int:
    was_live = grid.ingest(report)
    return asyncio.run(engine.on_parsed_report(ReportIngested(report=report, scout_was_live=was_live)))


JANE = PilotEntry(name="Jane Doe", ship_type="Gila", corporation="TEST")


def test_enemy_sighting_respects_cooldown(blob_store, delivery, clock, sleep) -> None:
    grid, engine = _setup(blob_store, delivery, clock, sleep, "new_enemy_sighted")

    assert _ingest(grid, engine, _report(JANE)) == 1
    clock.advance(minutes=5)
    assert _ingest(grid, engine, _report(JANE)) == 0
    clock.advance(minutes=6)
    assert _ingest(grid, engine, _report(JANE)) == 1

    assert len(delivery.channel_posts) == 2
    channel, text = delivery.channel_posts[0]
    assert channel == "chan-1"
    assert text.startswith("🚨 **New enemy sighted:** Jane Doe in Gila at C5 (J100001).")


def test_enemy_sighting_dedupe_is_case_insensitive(blob_store, delivery, clock, sleep) -> None:
    grid, engine = _setup(blob_store, delivery, clock, sleep, "new_enemy_sighted")

    _ingest(grid, engine, _report(JANE))
    _ingest(grid, engine, _report(PilotEntry(name="JANE DOE", ship_type="gila")))

    assert len(delivery.channel_posts) == 1


def test_enemy_sighting_is_suppressed_when_event_disabled(blob_store, delivery, clock, sleep) -> None:
    grid, engine = _setup(blob_store, delivery, clock, sleep)

    assert _ingest(grid, engine, _report(JANE)) == 0
    assert delivery.channel_attempts == 0


def test_scout_login_fires_on_transition_only(blob_store, delivery, clock, sleep) -> None:
    grid, engine = _setup(blob_store, delivery, clock, sleep, "new_scout_logged_in")

    assert _ingest(grid, engine, _report()) == 1
    assert _ingest(grid, engine, _report()) == 0

    clock.advance(minutes=6)
    assert _ingest(grid, engine, _report()) == 1
    assert "Scoutie" in delivery.channel_posts[0][1]


def test_all_scouts_logged_off_once_per_gap(blob_store, delivery, clock, sleep) -> None:
    grid, engine = _setup(blob_store, delivery, clock, sleep, "all_scouts_logged_off")

    assert _ingest(grid, engine, _report()) == 0
    assert _ingest(grid, engine, _report(disconnected=True)) == 1
    assert _ingest(grid, engine, _report(disconnected=True)) == 0

    _ingest(grid, engine, _report())
    assert _ingest(grid, engine, _report(disconnected=True)) == 1
    assert len(delivery.channel_posts) == 2


def test_coverage_check_after_scouts_expire(blob_store, delivery, clock, sleep) -> None:
    grid, engine = _setup(blob_store, delivery, clock, sleep, "all_scouts_logged_off")
    _ingest(grid, engine, _report())

    clock.advance(minutes=6)
    assert asyncio.run(engine.check_scout_coverage(TENANT)) == 1
    assert asyncio.run(engine.check_scout_coverage(TENANT)) == 0


def test_decloak_prefers_direct_message(blob_store, delivery, clock, sleep) -> None:
    grid, engine = _setup(blob_store, delivery, clock, sleep, "scout_decloaked")

    assert _ingest(grid, engine, _report(message="Scout DECLOAKED by gate")) == 1
    assert [user for user, _ in delivery.direct_messages] == [REPORTER_ID]
    assert delivery.channel_posts == []


def test_decloak_falls_back_to_channel(blob_store, delivery, clock, sleep) -> None:
    grid, engine = _setup(blob_store, delivery, clock, sleep, "scout_decloaked")
    delivery.dm_errors.append(DeliveryError("privacy settings", status=403))

    assert _ingest(grid, engine, _report(message="decloaked")) == 1
    assert delivery.dm_attempts == 1
    assert delivery.channel_posts[0][1].startswith("⚠️ **Scout decloaked:** Scoutie")


def test_transient_channel_failure_is_retried(blob_store, delivery, clock, sleep) -> None:
    grid, engine = _setup(blob_store, delivery, clock, sleep, "new_enemy_sighted")
    delivery.channel_errors.append(DeliveryError("bad gateway", status=502))

    assert _ingest(grid, engine, _report(JANE)) == 1
    assert delivery.channel_attempts == 2
    assert sleep.delays == [0.2]


def test_channel_failure_falls_back_to_owner(blob_store, delivery, clock, sleep) -> None:
    grid, engine = _setup(blob_store, delivery, clock, sleep, "new_enemy_sighted")
    delivery.always_fail_channel = DeliveryError("unavailable", status=503)
    delivery.owners[TENANT] = "owner-1"

    assert _ingest(grid, engine, _report(JANE)) == 1
    assert delivery.channel_attempts == 3
    assert [user for user, _ in delivery.direct_messages] == ["owner-1"]


def test_missing_channel_and_owner_drops_notification(blob_store, delivery, clock, sleep) -> None:
    grid, engine = _setup(blob_store, delivery, clock, sleep, "new_enemy_sighted", channel="")

    assert _ingest(grid, engine, _report(JANE)) == 0
    assert delivery.direct_messages == []


def test_on_grid_threat_cooldown(blob_store, delivery, clock, sleep) -> None:
    _, engine = _setup(blob_store, delivery, clock, sleep)
    pilots = [GridPilot(pilot_name="Bad Guy", ship_type="Loki", action="Approaching", alliance="HOST")]

    assert asyncio.run(engine.notify_on_grid_threat(TENANT, "J1", "Scoutie", "Undocked", pilots)) == 1
    clock.advance(minutes=1)
    assert asyncio.run(engine.notify_on_grid_threat(TENANT, "j1", "Scoutie", "UNDOCKED", pilots)) == 0
    assert asyncio.run(engine.notify_on_grid_threat(TENANT, "J1", "Scoutie", "Docked", pilots)) == 1
    clock.advance(minutes=2)
    assert asyncio.run(engine.notify_on_grid_threat(TENANT, "J1", "Scoutie", "Undocked", pilots)) == 1
    assert asyncio.run(engine.notify_on_grid_threat(TENANT, "J2", "Scoutie", "Undocked", [])) == 0


def test_undocked_local_warning(blob_store, delivery, clock, sleep) -> None:
    _, engine = _setup(blob_store, delivery, clock, sleep)

    assert asyncio.run(engine.notify_undocked_local_warning(TENANT, REPORTER_ID, "Scoutie", "J1", 0)) == 0
    assert asyncio.run(engine.notify_undocked_local_warning(TENANT, REPORTER_ID, "Scoutie", "J1", 2)) == 1
    assert asyncio.run(engine.notify_undocked_local_warning(TENANT, REPORTER_ID, "Scoutie", "J1", 2)) == 1
    assert "2 new non-friendly pilots entered local" in delivery.channel_posts[0][1]


def test_spy_behavior_notifies_each_tenant_once(blob_store, delivery, clock, sleep) -> None:
    tenants = TenantConfigStore(blob_store)
    tenants.set_event_channel("guild-1", "chan-1")
    tenants.set_event_channel("guild-2", "chan-2")
    engine = NotificationEngine(tenants, delivery, Grid(blob_store, clock=clock), clock=clock, sleep=sleep)

    sent = asyncio.run(engine.notify_spy_behavior(["guild-2", "guild-1", "guild-1"], "mole", "alt detected", "oauth"))
    assert sent == 2
    assert sorted(channel for channel, _ in delivery.channel_posts) == ["chan-1", "chan-2"]

    assert asyncio.run(engine.notify_spy_behavior(["guild-1", "guild-2"], "mole", "again", "oauth")) == 0
    assert asyncio.run(engine.notify_spy_behavior(["guild-1"], "mole", "different tenants", "oauth")) == 1
