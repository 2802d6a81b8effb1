"""Translate transport exceptions into ``DeliveryError`` for retry classification."""

from __future__ import annotations

import errno
import socket

from gridscout.core.errors import DeliveryError


def from_os_error(exc: OSError, operation: str) -> DeliveryError:
    """Map socket-level failures onto connection error codes."""

    if isinstance(exc, socket.gaierror):
        code = "EAI_AGAIN" if exc.errno == socket.EAI_AGAIN else "EAI_FAIL"
    elif isinstance(exc, TimeoutError):
        code = "ETIMEDOUT"
    else:
        code = errno.errorcode.get(exc.errno or 0, "")
    return DeliveryError(f"{operation} failed: {exc}", code=code)


def channel_target(channel_id: str):
    """Numeric ids are sent as ints, usernames and links as-is."""

    value = channel_id.strip()
    if value.lstrip("-").isdigit():
        return int(value)
    return value
