from __future__ import annotations

from typing import Optional

from schemas.market_report import MarketReport


class ReportStore:
    """Single-slot holder for the live market report.

    Last write wins: concurrent fetches are not serialized, and a replace is one
    attribute assignment so readers never see a partial report.
    """

    def __init__(self, report: Optional[MarketReport] = None):
        self._report = report
        self._version = 0 if report is None else 1

    @property
    def version(self) -> int:
        return self._version

    def get(self) -> Optional[MarketReport]:
        return self._report

    def replace(self, report: MarketReport) -> None:
        self._report = report
        self._version += 1
