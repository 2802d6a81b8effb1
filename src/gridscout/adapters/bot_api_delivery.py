"""Telegram Bot API delivery adapter.

Uses the Bot API for delivery so notifications can be routed via a bot
without a user session.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request

from gridscout.adapters.delivery_errors import channel_target, from_os_error
from gridscout.core.errors import DeliveryError
from gridscout.core.ports import TenantConfigPort


class BotApiDelivery:
    """DeliveryPort implementation that posts via the Telegram Bot API."""

    def __init__(self, bot_token: str, tenant_configs: TenantConfigPort, timeout: float = 10.0) -> None:
        self._bot_token = bot_token
        self._tenant_configs = tenant_configs
        self._timeout = timeout

    def _endpoint(self) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    def _post(self, chat_id: str, text: str) -> None:
        payload = {
            "chat_id": channel_target(chat_id),
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        }
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout):
                pass
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise DeliveryError(f"Bot API error {e.code}: {body}", status=e.code) from e
        except urllib.error.URLError as e:
            if isinstance(e.reason, OSError):
                raise from_os_error(e.reason, f"sendMessage to {chat_id}") from e
            raise DeliveryError(f"Bot API unreachable: {e.reason}") from e
        except OSError as e:
            raise from_os_error(e, f"sendMessage to {chat_id}") from e

    async def _send(self, chat_id: str, text: str) -> None:
        # urllib blocks; run it off the event loop.
        await asyncio.to_thread(self._post, chat_id, text)

    async def publish_to_channel(self, channel_id: str, text: str) -> None:
        await self._send(channel_id, text)

    async def send_direct_message(self, user_id: str, text: str) -> None:
        await self._send(user_id, text)

    async def fetch_owner(self, tenant_id: str) -> str:
        owner_id = self._tenant_configs.get_tenant_config(tenant_id).owner_id
        if not owner_id:
            raise DeliveryError(f"No owner configured for tenant {tenant_id}", status=404)
        return owner_id
