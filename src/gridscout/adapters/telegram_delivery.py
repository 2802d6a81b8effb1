"""Telegram delivery adapter backed by a Telethon client.

Channel posts and direct messages both go through ``send_message`` with
Markdown parsing. Telethon errors are translated into ``DeliveryError`` so
the core retry wrapper can classify them.
"""

from __future__ import annotations

from telethon import TelegramClient, errors

from gridscout.adapters.delivery_errors import channel_target, from_os_error
from gridscout.core.errors import DeliveryError
from gridscout.core.ports import TenantConfigPort


class TelegramClientDelivery:
    """DeliveryPort implementation using an authorized Telethon client."""

    def __init__(self, client: TelegramClient, tenant_configs: TenantConfigPort) -> None:
        self._client = client
        self._tenant_configs = tenant_configs

    async def _send(self, target: str, text: str) -> None:
        try:
            await self._client.send_message(channel_target(target), text, parse_mode="md")
        except errors.FloodWaitError as exc:
            raise DeliveryError(f"Flood wait of {exc.seconds}s for {target}", status=429) from exc
        except errors.RPCError as exc:
            raise DeliveryError(f"Telegram error for {target}: {exc}", status=exc.code) from exc
        except OSError as exc:
            raise from_os_error(exc, f"send to {target}") from exc

    async def publish_to_channel(self, channel_id: str, text: str) -> None:
        await self._send(channel_id, text)

    async def send_direct_message(self, user_id: str, text: str) -> None:
        await self._send(user_id, text)

    async def fetch_owner(self, tenant_id: str) -> str:
        owner_id = self._tenant_configs.get_tenant_config(tenant_id).owner_id
        if not owner_id:
            raise DeliveryError(f"No owner configured for tenant {tenant_id}", status=404)
        return owner_id
