"""Sales dashboard exception hierarchy.

Structural ingestion failures and manual-entry validation failures are
raised; row-level problems never are (they are reported as skips).
"""

from __future__ import annotations

from typing import Iterable, List, Sequence


class SalesDashboardError(Exception):
    """Base exception for all sales dashboard failures."""


class IngestError(SalesDashboardError):
    """Raised when a whole ingestion call fails structurally."""


class UnsupportedSourceError(IngestError):
    """Raised for file names whose extension maps to no source kind."""


class EmptyIngestError(IngestError):
    """Raised when a source decodes fine but yields no valid records."""

    def __init__(self, message: str, skipped: Sequence[object] = ()) -> None:
        super().__init__(message)
        self.skipped = list(skipped)


class EntryValidationError(SalesDashboardError):
    """Raised when a manual entry breaks one or more field rules."""

    def __init__(self, violations: Iterable[str]) -> None:
        self.violations: List[str] = list(violations)
        super().__init__("; ".join(self.violations))
