"""Events emitted by the ingest pipeline after a successful state mutation."""

from __future__ import annotations

from dataclasses import dataclass

from gridscout.core.models import ParsedReport


@dataclass(frozen=True)
class ReportIngested:
    """A parsed report that has been durably applied to the Grid.

    ``scout_was_live`` is the reporting scout's liveness right before the
    report was applied, so the notification engine can detect log-ins.
    """

    report: ParsedReport
    scout_was_live: bool = False

    @property
    def tenant_id(self) -> str:
        return self.report.tenant_id
