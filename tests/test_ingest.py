"""Unit tests for the ingestion orchestrator."""

from __future__ import annotations

import asyncio
import threading

import pytest

from sales_core import ingest as ingest_module
from sales_core.adapters import DelimitedText, SourceKind
from sales_core.dataset import SalesDataset
from sales_core.errors import EmptyIngestError, IngestError, UnsupportedSourceError
from sales_core.ingest import ingest, ingest_bytes, ingest_upload, resolve_source_kind
from sales_core.records import normalize_row
from sales_core.settings import normalize_settings

CSV_CONTENT = b"Date,Branch,Channel,Transactions,Sales\n01/05/2024,Main,Online,4,40\n01/06/2024,North,Dine-In,0,30\n01/07/2024,South,,5,55\n"


class FakeUpload:
    def __init__(self, filename: str, content: bytes) -> None:
        self.filename = filename
        self.content = content
        self.read_calls = 0

    async def read(self) -> bytes:
        self.read_calls += 1
        return self.content


def _seeded_dataset() -> SalesDataset:
    seed = normalize_row(
        {"date": "12/31/2023", "branch": "Seed", "channel": "Online", "transactions": 1, "sales": 1},
        1,
        [],
    )
    return SalesDataset([seed])


def test_ingest_appends_after_existing_records_in_source_order() -> None:
    """Existing records stay first; new ones follow in source order."""
    dataset = _seeded_dataset()
    decoded = DelimitedText(
        headers=["Date", "Branch", "Transactions", "Sales"],
        rows=[
            {"Date": "01/05/2024", "Branch": "A", "Transactions": "1", "Sales": "10"},
            {"Date": "01/06/2024", "Branch": "B", "Transactions": "2", "Sales": "20"},
        ],
    )

    result = ingest(dataset, decoded, SourceKind.DELIMITED_TEXT)

    assert result.added_count == 2
    assert [r.branch for r in dataset.records] == ["Seed", "A", "B"]


def test_ingest_counts_one_skip_per_bad_row() -> None:
    """A zero-transaction row drops exactly one record from the batch."""
    dataset = SalesDataset()

    result = ingest_bytes(dataset, "sales.csv", CSV_CONTENT)

    assert result.added_count == 2
    assert len(result.skipped) == 1
    assert result.skipped[0].row_index == 2
    assert result.message == "Imported 2 record(s), skipped 1 invalid row(s)"
    assert len(dataset) == 2


def test_ingest_with_no_valid_records_fails_and_leaves_dataset_alone() -> None:
    """Zero valid records is a structural failure, not a silent no-op."""
    dataset = _seeded_dataset()
    payload = [{"date": "01/05/2024", "branch": "Main", "transactions": 5, "sales": 50}]

    with pytest.raises(EmptyIngestError) as excinfo:
        ingest(dataset, payload, "json")

    assert len(excinfo.value.skipped) == 1
    assert len(dataset) == 1


def test_ingest_empty_workbook_fails_structurally() -> None:
    """A workbook without sheets never reaches row normalization."""
    dataset = SalesDataset()

    with pytest.raises(IngestError, match="no sheets"):
        ingest(dataset, {}, SourceKind.SPREADSHEET)

    assert len(dataset) == 0


def test_ingest_bytes_rejects_unknown_extensions() -> None:
    """Only spreadsheet, CSV and JSON files are accepted."""
    with pytest.raises(UnsupportedSourceError):
        ingest_bytes(SalesDataset(), "sales.txt", CSV_CONTENT)


def test_ingest_bytes_enforces_upload_limit() -> None:
    """Content over the configured limit is rejected before decoding."""
    settings = normalize_settings({"max_upload_bytes": 10})

    with pytest.raises(IngestError, match="upload limit"):
        ingest_bytes(SalesDataset(), "sales.csv", CSV_CONTENT, settings=settings)


def test_ingest_bytes_reports_missing_columns() -> None:
    """Missing required CSV headers should be named in the failure."""
    content = b"Date,Branch,Sales\n01/05/2024,Main,40\n"

    with pytest.raises(IngestError, match="transactions"):
        ingest_bytes(SalesDataset(), "sales.csv", content)


def test_ingest_upload_reads_and_ingests() -> None:
    """Uploads are read once and ingested by their file name."""
    dataset = SalesDataset()
    upload = FakeUpload(
        "sales.json",
        b'[{"date": "01/05/2024", "branch": "Main", "channel": "Online", "transactions": 5, "sales": 50}]',
    )

    result = asyncio.run(ingest_upload(dataset, upload))

    assert result.kind is SourceKind.JSON
    assert upload.read_calls == 1
    assert dataset[0].average_sale == 10.0


def test_ingest_upload_rejects_before_reading() -> None:
    """Unsupported uploads are rejected without reading their content."""
    upload = FakeUpload("sales.pdf", b"%PDF")

    with pytest.raises(UnsupportedSourceError):
        asyncio.run(ingest_upload(SalesDataset(), upload))

    assert upload.read_calls == 0


def test_resolve_source_kind_accepts_kind_value_or_filename() -> None:
    """Kinds can be declared or detected."""
    assert resolve_source_kind(SourceKind.JSON) is SourceKind.JSON
    assert resolve_source_kind("delimited_text") is SourceKind.DELIMITED_TEXT
    assert resolve_source_kind("book.xlsx") is SourceKind.SPREADSHEET


def test_ingest_skips_out_of_range_serial_dates() -> None:
    """A serial too large for a calendar date is skipped, not fatal."""
    dataset = SalesDataset()
    workbook = {
        "S": [
            ["Date", "Branch", "Channel", "Transactions", "Sales"],
            [3000000, "Main", "Online", 1, 10],
            ["01/05/2024", "Main", "Online", 1, 10],
        ]
    }

    result = ingest(dataset, workbook, "spreadsheet")

    assert result.added_count == 1
    assert [s.row_index for s in result.skipped] == [1]


def test_ingest_keeps_rows_with_very_large_amounts() -> None:
    """An amount too wide for default decimal precision does not abort the batch."""
    dataset = SalesDataset()
    workbook = {
        "S": [
            ["Date", "Branch", "Channel", "Transactions", "Sales"],
            ["01/05/2024", "Main", "Online", 1, 1e30],
            ["01/06/2024", "North", "Online", 2, 20],
        ]
    }

    result = ingest(dataset, workbook, "spreadsheet")

    assert result.added_count == 2
    assert dataset[0].average_sale == 1e30


def test_ingest_accepts_a_bare_grid() -> None:
    """Spreadsheet input may be a plain 2-D array of rows."""
    dataset = SalesDataset()

    grid = [
        ["Date", "Branch", "Channel", "Transactions", "Sales"],
        ["01/05/2024", "Main", "Online", 1, 10],
    ]

    result = ingest(dataset, grid, "spreadsheet")

    assert result.added_count == 1


def test_ingest_bytes_skips_malformed_csv_lines() -> None:
    """A line with an extra field is one skip; the other rows import."""
    dataset = SalesDataset()
    content = b"Date,Branch,Transactions,Sales\n01/05/2024,Main,4,40\n01/06/2024,North,2,30,extra\n01/07/2024,South,1,9\n"

    result = ingest_bytes(dataset, "sales.csv", content)

    assert result.added_count == 2
    assert len(result.skipped) == 1
    assert [r.branch for r in dataset.records] == ["Main", "South"]


def test_ingest_upload_rejects_declared_oversize_before_reading() -> None:
    """An upload whose declared size is over the limit is never read."""
    upload = FakeUpload("sales.csv", CSV_CONTENT)
    upload.size = 11
    settings = normalize_settings({"max_upload_bytes": 10})

    with pytest.raises(IngestError, match="upload limit"):
        asyncio.run(ingest_upload(SalesDataset(), upload, settings=settings))

    assert upload.read_calls == 0


def test_ingest_upload_decodes_off_the_event_loop(monkeypatch) -> None:
    """Decoding runs in a worker thread, not the thread driving the event loop."""
    seen = {}
    original = ingest_module.ingest_bytes

    def recording_ingest_bytes(*args, **kwargs):
        seen["thread"] = threading.current_thread()
        return original(*args, **kwargs)

    monkeypatch.setattr(ingest_module, "ingest_bytes", recording_ingest_bytes)

    result = asyncio.run(ingest_upload(SalesDataset(), FakeUpload("sales.csv", CSV_CONTENT)))

    assert result.added_count == 2
    assert seen["thread"] is not threading.main_thread()
