"""Telethon client construction for the ``client`` delivery method.

The CLI owns the client lifecycle: it starts the client before the first
send and disconnects it when the command finishes.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv
from telethon import TelegramClient

LOGGER = logging.getLogger(__name__)

DEFAULT_SESSION = "gridscout"


@dataclass(frozen=True)
class ClientCredentials:
    api_id: int
    api_hash: str
    session_name: str = DEFAULT_SESSION


def load_credentials(environ: Optional[Mapping[str, str]] = None) -> ClientCredentials:
    """Read API_ID, API_HASH and SESSION_NAME; ``.env`` is loaded for os.environ."""

    if environ is None:
        load_dotenv()
        environ = os.environ

    api_id = (environ.get("API_ID") or "").strip()
    api_hash = (environ.get("API_HASH") or "").strip()
    if not api_id or not api_hash:
        raise RuntimeError("API_ID and API_HASH are required when delivery_method=client")
    if not api_id.isdigit():
        raise RuntimeError(f"API_ID must be numeric, got {api_id!r}")

    session_name = (environ.get("SESSION_NAME") or "").strip() or DEFAULT_SESSION
    return ClientCredentials(api_id=int(api_id), api_hash=api_hash, session_name=session_name)


def build_client(credentials: Optional[ClientCredentials] = None) -> TelegramClient:
    credentials = credentials or load_credentials()
    LOGGER.info("Creating Telegram client for session %s", credentials.session_name)
    return TelegramClient(credentials.session_name, credentials.api_id, credentials.api_hash)
