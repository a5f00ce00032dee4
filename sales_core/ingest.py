"""Ingestion orchestrator: source kind -> adapter -> records -> dataset."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Tuple, Union

from sales_core.adapters import SourceKind, detect_source_kind, get_adapter
from sales_core.dataset import SalesDataset
from sales_core.errors import EmptyIngestError, IngestError
from sales_core.records import RowSkip, SalesRecord
from sales_core.settings import DEFAULT_SETTINGS, IngestSettings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    kind: SourceKind
    added_count: int
    records: Tuple[SalesRecord, ...]
    skipped: Tuple[RowSkip, ...] = ()

    @property
    def message(self) -> str:
        text = f"Imported {self.added_count} record(s)"
        if self.skipped:
            text += f", skipped {len(self.skipped)} invalid row(s)"
        return text


def resolve_source_kind(kind_or_filename: Union[SourceKind, str]) -> SourceKind:
    """Accept a SourceKind, its value (``"json"``), or a file name to detect from."""
    if isinstance(kind_or_filename, SourceKind):
        return kind_or_filename
    try:
        return SourceKind(kind_or_filename)
    except ValueError:
        return detect_source_kind(kind_or_filename)


def ingest(
    dataset: SalesDataset,
    decoded: Any,
    kind: Union[SourceKind, str],
    *,
    settings: IngestSettings = DEFAULT_SETTINGS,
) -> IngestResult:
    """Normalize an already-decoded source and append its records to ``dataset``.

    Raises IngestError for structural failures, including a source that
    yields no valid records; the dataset is left untouched in that case.
    """
    kind = resolve_source_kind(kind)
    adapter = get_adapter(kind)
    skips: List[RowSkip] = []
    records = adapter.records(decoded, skips, settings=settings)
    if not records:
        raise EmptyIngestError(
            f"No valid records found in {adapter.label} data ({len(skips)} row(s) skipped)",
            skips,
        )

    dataset.extend(records)
    logger.info("Ingested %s source: %d added, %d skipped", kind.value, len(records), len(skips))
    return IngestResult(kind=kind, added_count=len(records), records=tuple(records), skipped=tuple(skips))


def ingest_bytes(
    dataset: SalesDataset,
    filename: str,
    content: bytes,
    *,
    settings: IngestSettings = DEFAULT_SETTINGS,
) -> IngestResult:
    kind = detect_source_kind(filename)
    if len(content) > settings.max_upload_bytes:
        raise IngestError(
            f"{filename} is {len(content)} bytes; the upload limit is {settings.max_upload_bytes} bytes"
        )
    decoded = get_adapter(kind).decode(content, settings)
    return ingest(dataset, decoded, kind, settings=settings)


async def ingest_upload(
    dataset: SalesDataset,
    upload: Any,
    *,
    settings: IngestSettings = DEFAULT_SETTINGS,
) -> IngestResult:
    """Read an uploaded file (anything with ``filename`` and async ``read()``) and ingest it.

    The extension and the declared ``size``, when the upload has one, are
    checked before the content is read. Decoding runs in a worker thread.
    """
    filename = getattr(upload, "filename", None) or ""
    detect_source_kind(filename)
    size = getattr(upload, "size", None)
    if size is not None and size > settings.max_upload_bytes:
        raise IngestError(f"{filename} is {size} bytes; the upload limit is {settings.max_upload_bytes} bytes")
    content = await upload.read()
    return await asyncio.to_thread(ingest_bytes, dataset, filename, content, settings=settings)
