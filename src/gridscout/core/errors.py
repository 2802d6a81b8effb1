"""Exception hierarchy for gridscout."""

from __future__ import annotations

from typing import Optional


class GridScoutError(Exception):
    """Base exception for all gridscout errors."""


class ReportRejected(GridScoutError):
    """An ingest payload was refused; no state was mutated."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class PersistenceError(GridScoutError):
    """Write-through to the blob store did not complete."""


class DeliveryError(GridScoutError):
    """A single delivery call failed.

    ``status`` carries an HTTP-like status when the platform returned one,
    ``code`` a connection-level error code (e.g. ``ECONNRESET``).
    """

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: str = "",
    ) -> None:
        self.status = status
        self.code = code
        super().__init__(message)


class DeliveryFailed(GridScoutError):
    """A delivery operation failed after all retry attempts."""

    def __init__(self, operation_name: str, last_error: BaseException) -> None:
        self.operation_name = operation_name
        self.last_error = last_error
        super().__init__(f"Delivery operation failed after retries ({operation_name}): {last_error}")
