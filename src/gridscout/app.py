"""Application entry point for the gridscout pipeline."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
from typing import AsyncIterator, List, Optional

from art import tprint

from gridscout import settings
from gridscout.adapters.bot_api_delivery import BotApiDelivery
from gridscout.adapters.sqlite_blob_store import SQLiteBlobStore
from gridscout.adapters.telegram_delivery import TelegramClientDelivery
from gridscout.client import build_client
from gridscout.core.errors import GridScoutError, ReportRejected
from gridscout.core.grid import Grid
from gridscout.core.models import TenantConfig
from gridscout.core.notifications import NotificationEngine
from gridscout.core.ports import DeliveryPort
from gridscout.core.processor import ReportProcessor
from gridscout.core.tenants import GRID_EVENT_TYPES, TenantConfigStore
from gridscout.logging_setup import configure_logging

NAME = "GRIDSCOUT"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


def _blob_store() -> SQLiteBlobStore:
    store = SQLiteBlobStore(settings.DB_PATH)
    store.init_db()
    return store


@contextlib.asynccontextmanager
async def _delivery(tenant_configs: TenantConfigStore) -> AsyncIterator[DeliveryPort]:
    """Select the delivery adapter based on configuration."""

    if settings.DELIVERY_METHOD == "bot":
        bot_token = os.getenv("BOT_TOKEN")
        if not bot_token:
            raise RuntimeError("BOT_TOKEN is required when delivery_method=bot")
        yield BotApiDelivery(bot_token, tenant_configs)
        return

    if settings.DELIVERY_METHOD != "client":
        raise RuntimeError("delivery_method must be 'client' or 'bot'")

    client = build_client()
    await client.start()
    try:
        yield TelegramClientDelivery(client, tenant_configs)
    finally:
        await client.disconnect()


async def _ingest(tenant: str, reporter: str, paths: List[str], local: bool) -> int:
    blob_store = _blob_store()
    tenant_configs = TenantConfigStore(blob_store)
    grid = Grid(blob_store, settings.STORE_CONFIG)
    rejected = 0

    async with _delivery(tenant_configs) as delivery:
        engine = NotificationEngine(tenant_configs, delivery, grid, settings.NOTIFICATION_CONFIG)
        processor = ReportProcessor(grid, engine)
        for path in paths:
            with open(path, "rb") as handle:
                body = handle.read()
            try:
                if local:
                    report = await processor.handle_local_report(body, reporter, [tenant])
                    print(f"{path}: stored local report for {report.system or 'unknown system'}")
                else:
                    parsed = await processor.handle(body, reporter, [tenant])
                    print(f"{path}: accepted ({len(parsed.entries)} entries)")
            except ReportRejected as exc:
                rejected += 1
                print(f"{path}: rejected ({exc.reason})")
    return 1 if rejected else 0


async def _flag_spy(identity: str, tenants: List[str], reason: str) -> int:
    blob_store = _blob_store()
    tenant_configs = TenantConfigStore(blob_store)
    tenant_configs.flag_spy(identity, tenants, reason)
    async with _delivery(tenant_configs) as delivery:
        engine = NotificationEngine(tenant_configs, delivery, Grid(blob_store, settings.STORE_CONFIG))
        sent = await engine.notify_spy_behavior(tenants, identity, reason, source="cli")
    print(f"Flagged {identity}; {sent} notification(s) sent")
    return 0


def _show_sightings(tenant: str, limit: int) -> int:
    grid = Grid(_blob_store(), settings.STORE_CONFIG)
    for sighting in grid.list_sightings(tenant, limit):
        print(
            f"{sighting.last_seen_at:%Y-%m-%d %H:%M:%S} | {sighting.key} | "
            f"[{sighting.corp}] [{sighting.alliance}] | {sighting.wormhole_label or '-'} | "
            f"{sighting.system or '-'} | {sighting.scout_name or '-'}"
        )
    return 0


def _show_local_reports(tenant: str, limit: int) -> int:
    grid = Grid(_blob_store(), settings.STORE_CONFIG)
    for report in grid.local_reports_so_far(tenant)[-limit:]:
        print(
            f"{report.time} | {report.system or '-'} | {report.scout_name or '-'} | "
            f"{report.status or '-'} | locals={len(report.locals)} on_grid={len(report.on_grid)}"
        )
    return 0


def _delete_sighting(tenant: str, key: str) -> int:
    grid = Grid(_blob_store(), settings.STORE_CONFIG)
    if grid.delete_sighting(tenant, key):
        print(f"Deleted {key}")
        return 0
    print(f"No sighting stored under {key}")
    return 1


def _describe_config(config: TenantConfig) -> str:
    enabled = ", ".join(config.enabled_events) or "none"
    return (
        f"Tenant {config.tenant_id}: channel={config.event_channel_id or '-'} "
        f"owner={config.owner_id or '-'} events={enabled}"
    )


def _configure_tenant(args: argparse.Namespace) -> int:
    tenant_configs = TenantConfigStore(_blob_store())
    if args.command == "set-channel":
        config = tenant_configs.set_event_channel(args.tenant, args.channel)
    elif args.command == "set-owner":
        config = tenant_configs.set_owner(args.tenant, args.owner)
    elif args.command == "enable-event":
        config = tenant_configs.enable_event(args.tenant, args.event)
    else:
        config = tenant_configs.disable_event(args.tenant, args.event)
    print(_describe_config(config))
    return 0


def _show_config(tenant: str) -> int:
    tenant_configs = TenantConfigStore(_blob_store())
    print(_describe_config(tenant_configs.get_tenant_config(tenant)))
    print(f"Suspected spies: {len(tenant_configs.list_spies(tenant))}")
    return 0


def _clear_spy(identity: str, tenant: str) -> int:
    result = TenantConfigStore(_blob_store()).clear_spy_flag(identity, tenant)
    if not result.found:
        print(f"{identity} is not flagged")
        return 1
    remaining = ", ".join(result.remaining_tenant_ids) or "none"
    if not result.removed_for_tenant:
        print(f"{identity} is not flagged for {tenant}; flagged for: {remaining}")
        return 1
    print(f"Cleared {identity} for {tenant}; still flagged for: {remaining}")
    return 0


def _show_spies(tenant: str, identity: Optional[str] = None) -> int:
    tenant_configs = TenantConfigStore(_blob_store())
    if identity:
        flagged = tenant_configs.is_flagged(identity, tenant)
        print(f"{identity} is {'flagged' if flagged else 'not flagged'} for {tenant}")
        return 0 if flagged else 1
    flags = tenant_configs.list_spies(tenant)
    if not flags:
        print("No users are currently flagged as suspected spies.")
        return 0
    for flag in flags:
        print(f"{flag.identity} | {flag.flagged_at} | {flag.reason}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gridscout")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest scout report payload files")
    ingest.add_argument("paths", nargs="+")
    ingest.add_argument("--tenant", required=True)
    ingest.add_argument("--reporter", required=True, help="Authenticated reporter platform id")

    local = subparsers.add_parser("local-report", help="Ingest local report payload files")
    local.add_argument("paths", nargs="+")
    local.add_argument("--tenant", required=True)
    local.add_argument("--reporter", required=True)

    sightings = subparsers.add_parser("sightings", help="List the most recent sightings")
    sightings.add_argument("--tenant", required=True)
    sightings.add_argument("--limit", type=int, default=20)

    local_reports = subparsers.add_parser("local-reports", help="List stored local reports")
    local_reports.add_argument("--tenant", required=True)
    local_reports.add_argument("--limit", type=int, default=20)

    delete = subparsers.add_parser("delete-sighting", help="Delete a sighting by key")
    delete.add_argument("key")
    delete.add_argument("--tenant", required=True)

    channel = subparsers.add_parser("set-channel", help="Set the tenant notification channel")
    channel.add_argument("channel")
    channel.add_argument("--tenant", required=True)

    owner = subparsers.add_parser("set-owner", help="Set the tenant owner used as DM fallback")
    owner.add_argument("owner")
    owner.add_argument("--tenant", required=True)

    for name in ("enable-event", "disable-event"):
        toggle = subparsers.add_parser(name, help=f"{name.split('-')[0].capitalize()} a grid event")
        toggle.add_argument("event", choices=GRID_EVENT_TYPES)
        toggle.add_argument("--tenant", required=True)

    spies = subparsers.add_parser("spies", help="List suspected spies for a tenant")
    spies.add_argument("--tenant", required=True)
    spies.add_argument("--identity", help="Only report whether this user is flagged")

    flag = subparsers.add_parser("flag-spy", help="Flag a user and notify the affected tenants")
    flag.add_argument("identity")
    flag.add_argument("--tenant", action="append", required=True)
    flag.add_argument("--reason", default="Flagged manually.")

    clear = subparsers.add_parser("clear-spy", help="Remove a spy flag for one tenant")
    clear.add_argument("identity")
    clear.add_argument("--tenant", required=True)

    show = subparsers.add_parser("show-config", help="Show the tenant notification settings")
    show.add_argument("--tenant", required=True)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _print_banner()
    configure_logging(settings.LOGGING, settings.PROJECT_ROOT)

    try:
        if args.command == "ingest":
            return asyncio.run(_ingest(args.tenant, args.reporter, args.paths, local=False))
        if args.command == "local-report":
            return asyncio.run(_ingest(args.tenant, args.reporter, args.paths, local=True))
        if args.command == "sightings":
            return _show_sightings(args.tenant, args.limit)
        if args.command == "local-reports":
            return _show_local_reports(args.tenant, args.limit)
        if args.command == "delete-sighting":
            return _delete_sighting(args.tenant, args.key)
        if args.command in {"set-channel", "set-owner", "enable-event", "disable-event"}:
            return _configure_tenant(args)
        if args.command == "spies":
            return _show_spies(args.tenant, args.identity)
        if args.command == "clear-spy":
            return _clear_spy(args.identity, args.tenant)
        if args.command == "show-config":
            return _show_config(args.tenant)
        return asyncio.run(_flag_spy(args.identity, args.tenant, args.reason))
    except GridScoutError:
        LOGGER.exception("gridscout %s failed", args.command)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
