"""Format adapters: one per source kind, all feeding ``normalize_row``.

Each adapter knows how to decode raw file bytes into its format's parsed
structure and how to walk that structure as raw rows. Only structural
problems raise ``IngestError``; bad rows end up in the skip list.
"""

from __future__ import annotations

import io
import itertools
import json
import logging
import re
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from sales_core.dates import convert_serial_date
from sales_core.errors import IngestError, UnsupportedSourceError
from sales_core.records import (
    RAW_FIELDS,
    RowSkip,
    SalesRecord,
    is_blank,
    normalize_key,
    normalize_keys,
    normalize_row,
    skip_row,
)
from sales_core.settings import DEFAULT_SETTINGS, IngestSettings


logger = logging.getLogger(__name__)

RawRow = Dict[str, object]
Workbook = Dict[str, List[List[object]]]

# Header spellings accepted by the tabular adapters, keyed by normalized header.
HEADER_ALIASES = {
    "date": "date",
    "branch": "branch",
    "channel": "channel",
    "transactions": "transactions",
    "transaction count": "transactions",
    "transactioncount": "transactions",
    "sales": "sales",
    "sales amount": "sales",
    "salesamount": "sales",
}
REQUIRED_COLUMNS = ("date", "branch", "transactions", "sales")

# pandas reports each malformed line it drops as "Skipping line N: ...".
_SKIPPED_LINE = re.compile(r"Skipping line (\d+)")


class SourceKind(str, Enum):
    SPREADSHEET = "spreadsheet"
    DELIMITED_TEXT = "delimited_text"
    JSON = "json"


EXTENSION_KINDS = {
    ".xlsx": SourceKind.SPREADSHEET,
    ".xls": SourceKind.SPREADSHEET,
    ".csv": SourceKind.DELIMITED_TEXT,
    ".json": SourceKind.JSON,
}


def detect_source_kind(filename: str) -> SourceKind:
    suffix = PurePath(filename or "").suffix.lower()
    kind = EXTENSION_KINDS.get(suffix)
    if kind is None:
        supported = ", ".join(EXTENSION_KINDS)
        raise UnsupportedSourceError(f"Unsupported file type {filename!r}; expected one of {supported}")
    return kind


def map_header(header: object) -> Optional[str]:
    if is_blank(header):
        return None
    return HEADER_ALIASES.get(normalize_key(header))


@dataclass(frozen=True)
class DelimitedText:
    """Header-mapped rows from a delimited text file.

    ``bad_rows`` holds the 1-based data-row numbers of lines the decoder
    dropped because they had more fields than the header.
    """

    headers: List[str]
    rows: List[Dict[str, object]] = field(default_factory=list)
    bad_rows: List[int] = field(default_factory=list)

    @classmethod
    def from_rows(cls, rows: Sequence[Mapping[str, object]]) -> "DelimitedText":
        headers: List[str] = []
        for row in rows:
            headers.extend(k for k in row.keys() if k not in headers)
        return cls(headers=headers, rows=[dict(r) for r in rows])


class FormatAdapter(ABC):
    kind: SourceKind
    label: str

    @abstractmethod
    def decode(self, content: bytes, settings: IngestSettings = DEFAULT_SETTINGS) -> Any:
        """Parse raw file bytes into this format's structure."""

    @abstractmethod
    def rows(self, decoded: Any, skips: List[RowSkip]) -> Iterator[Tuple[int, RawRow]]:
        """Yield ``(row_index, raw_row)`` pairs; row indexes are 1-based data rows."""

    def records(
        self,
        decoded: Any,
        skips: List[RowSkip],
        *,
        settings: IngestSettings = DEFAULT_SETTINGS,
    ) -> List[SalesRecord]:
        out: List[SalesRecord] = []
        for row_index, raw in self.rows(decoded, skips):
            record = normalize_row(raw, row_index, skips, settings=settings)
            if record is not None:
                out.append(record)
        return out


class SpreadsheetAdapter(FormatAdapter):
    kind = SourceKind.SPREADSHEET
    label = "spreadsheet"

    def decode(self, content: bytes, settings: IngestSettings = DEFAULT_SETTINGS) -> Workbook:
        try:
            sheets = pd.read_excel(io.BytesIO(content), sheet_name=None, header=None)
        except Exception as exc:
            raise IngestError(f"Could not read spreadsheet: {exc}") from exc
        workbook: Workbook = {}
        for name, df in sheets.items():
            df = df.astype(object)
            workbook[str(name)] = df.where(pd.notna(df), None).values.tolist()
        return workbook

    def rows(self, decoded: Workbook, skips: List[RowSkip]) -> Iterator[Tuple[int, RawRow]]:
        if isinstance(decoded, (list, tuple)):
            # A bare 2-D grid is a workbook with a single sheet.
            if decoded and not isinstance(decoded[0], (list, tuple)):
                raise IngestError("Spreadsheet grid must be a list of rows")
            decoded = {"Sheet1": list(decoded)}
        elif not isinstance(decoded, Mapping):
            raise IngestError(f"Expected a workbook or a grid of rows, got {type(decoded).__name__}")
        if not decoded:
            raise IngestError("Workbook contains no sheets")
        sheet_name = next(iter(decoded))
        grid = decoded[sheet_name] or []
        if not grid:
            return
        columns: Dict[int, str] = {}
        for idx, header in enumerate(grid[0]):
            name = map_header(header)
            if name is not None and name not in columns.values():
                columns[idx] = name
        logger.debug("Sheet %r columns: %s", sheet_name, columns)

        for row_index, cells in enumerate(grid[1:], start=1):
            cells = list(cells or [])
            if all(is_blank(c) for c in cells):
                continue
            raw: RawRow = {name: cells[idx] for idx, name in columns.items() if idx < len(cells)}
            if "date" in raw:
                raw["date"] = convert_serial_date(raw["date"])
            yield row_index, raw


class DelimitedTextAdapter(FormatAdapter):
    kind = SourceKind.DELIMITED_TEXT
    label = "CSV"

    def decode(self, content: bytes, settings: IngestSettings = DEFAULT_SETTINGS) -> DelimitedText:
        try:
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always", pd.errors.ParserWarning)
                df = pd.read_csv(
                    io.BytesIO(content),
                    header=None,
                    dtype=str,
                    keep_default_na=False,
                    skip_blank_lines=True,
                    encoding=settings.text_encoding,
                    engine="python",
                    on_bad_lines="warn",
                )
        except pd.errors.EmptyDataError as exc:
            raise IngestError("CSV file is empty") from exc
        except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as exc:
            raise IngestError(f"Could not read CSV: {exc}") from exc
        # File line 1 is the header, so line N holds data row N - 1.
        bad_rows = sorted(
            int(line) - 1
            for w in caught
            if issubclass(w.category, pd.errors.ParserWarning)
            for line in _SKIPPED_LINE.findall(str(w.message))
        )
        # The header is read as data so a long first row is never taken as an index.
        grid = df.itertuples(index=False, name=None)
        headers = ["" if is_blank(c) else str(c).strip() for c in next(grid, ())]
        rows = [
            {h: ("" if is_blank(v) else str(v).strip()) for h, v in zip(headers, values)}
            for values in grid
        ]
        return DelimitedText(headers=headers, rows=rows, bad_rows=bad_rows)

    def rows(self, decoded: DelimitedText, skips: List[RowSkip]) -> Iterator[Tuple[int, RawRow]]:
        if not isinstance(decoded, DelimitedText):
            decoded = DelimitedText.from_rows(decoded)
        columns: Dict[str, str] = {}
        for header in decoded.headers:
            name = map_header(header)
            if name is not None and name not in columns.values():
                columns[header] = name
        missing = [c for c in REQUIRED_COLUMNS if c not in columns.values()]
        if missing:
            raise IngestError(f"Missing required column(s): {', '.join(missing)}")

        bad = set(decoded.bad_rows)
        for row_index in sorted(bad):
            skip_row(skips, row_index, "more fields than the header")
        positions = (i for i in itertools.count(1) if i not in bad)
        for row_index, row in zip(positions, decoded.rows):
            raw: RawRow = {}
            for header, name in columns.items():
                value = row.get(header)
                raw[name] = value.strip() if isinstance(value, str) else value
            yield row_index, raw


class JsonAdapter(FormatAdapter):
    kind = SourceKind.JSON
    label = "JSON"

    def decode(self, content: bytes, settings: IngestSettings = DEFAULT_SETTINGS) -> Any:
        try:
            return json.loads(content.decode(settings.text_encoding))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise IngestError(f"Could not read JSON: {exc}") from exc

    def rows(self, decoded: Any, skips: List[RowSkip]) -> Iterator[Tuple[int, RawRow]]:
        if not isinstance(decoded, list):
            raise IngestError("JSON payload must be an array of sales records")
        for row_index, entry in enumerate(decoded, start=1):
            if not isinstance(entry, Mapping):
                skip_row(skips, row_index, "entry is not an object")
                continue
            raw = normalize_keys(entry)
            # Every field, channel included, has to be present as a key.
            missing = [f for f in RAW_FIELDS if f not in raw]
            if missing:
                skip_row(skips, row_index, f"missing key(s): {', '.join(missing)}")
                continue
            yield row_index, raw


ADAPTERS: Dict[SourceKind, FormatAdapter] = {
    adapter.kind: adapter for adapter in (SpreadsheetAdapter(), DelimitedTextAdapter(), JsonAdapter())
}


def get_adapter(kind: SourceKind) -> FormatAdapter:
    return ADAPTERS[SourceKind(kind)]
