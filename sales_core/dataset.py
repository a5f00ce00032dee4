from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

import pandas as pd

from sales_core.records import RECORD_COLUMNS, SalesRecord


logger = logging.getLogger(__name__)


class SalesDataset:
    """Ordered, in-memory collection of sales records.

    Ingestion appends, manual edits replace in place by index, and nothing
    here ever reorders. Mutations hold ``lock`` so there is a single writer at
    a time; ``on_change`` is called after every mutation (e.g. to persist).
    The mutation stands even if the hook fails; the failure is logged, not
    raised, so callers never see an error for a change that was applied.
    """

    def __init__(
        self,
        records: Optional[Iterable[SalesRecord]] = None,
        *,
        on_change: Optional[Callable[["SalesDataset"], None]] = None,
    ) -> None:
        self._records: List[SalesRecord] = list(records or [])
        self._on_change = on_change
        self.lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[SalesRecord]:
        return iter(self.records)

    def __getitem__(self, index: int) -> SalesRecord:
        return self._records[index]

    @property
    def records(self) -> Tuple[SalesRecord, ...]:
        with self.lock:
            return tuple(self._records)

    def _changed(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self)
        except Exception:
            logger.exception("on_change hook failed; the dataset change was kept")

    def append(self, record: SalesRecord) -> int:
        with self.lock:
            self._records.append(record)
            index = len(self._records) - 1
            self._changed()
        return index

    def extend(self, records: Iterable[SalesRecord]) -> int:
        batch = list(records)
        with self.lock:
            self._records.extend(batch)
            self._changed()
        return len(batch)

    def replace(self, index: int, record: SalesRecord) -> SalesRecord:
        with self.lock:
            if index < 0 or index >= len(self._records):
                raise IndexError(f"No record at index {index}")
            previous = self._records[index]
            self._records[index] = record
            self._changed()
        return previous

    def clear(self) -> None:
        with self.lock:
            self._records.clear()
            self._changed()
        logger.info("Dataset cleared")

    def branches(self) -> List[str]:
        return sorted({r.branch for r in self.records})

    def channels(self) -> List[str]:
        return sorted({r.channel for r in self.records})

    def to_frame(self) -> pd.DataFrame:
        rows = [r.to_dict() for r in self.records]
        if not rows:
            return pd.DataFrame(columns=RECORD_COLUMNS)
        return pd.DataFrame(rows)[RECORD_COLUMNS]
