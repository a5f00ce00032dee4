from __future__ import annotations

from dataclasses import asdict
import logging
import math
from typing import Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, File, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from sales_api.schemas import EntryResponse, IngestResponse, SalesEntryModel, SummaryFiltersModel
from sales_core.dataset import SalesDataset
from sales_core.entry import submit_entry
from sales_core.errors import EmptyIngestError, EntryValidationError, IngestError
from sales_core.filters import normalize_filters
from sales_core.ingest import ingest_upload
from sales_core.settings import DEFAULT_SETTINGS
from sales_core.summary import compute_summary


app = FastAPI(title="Sales Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_dataset = SalesDataset()


def get_dataset() -> SalesDataset:
    return _dataset


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, status_code: int, **extra: object) -> JSONResponse:
    return _json({"error": str(exc), "type": type(exc).__name__, **extra}, status_code=status_code)


@app.post("/ingest", response_model=IngestResponse)
async def ingest_file(file: UploadFile = File(...), dataset: SalesDataset = Depends(get_dataset)):
    try:
        result = await ingest_upload(dataset, file, settings=DEFAULT_SETTINGS)
        return _json(
            {
                "kind": result.kind.value,
                "added_count": result.added_count,
                "total_records": len(dataset),
                "message": result.message,
                "skipped": [asdict(s) for s in result.skipped],
            }
        )
    except EmptyIngestError as exc:
        logger.warning("ingest of %s produced no records: %s", file.filename, exc)
        return _error(exc, 422, added_count=0, skipped=[asdict(s) for s in exc.skipped])
    except IngestError as exc:
        logger.warning("ingest of %s failed: %s", file.filename, exc)
        return _error(exc, 422, added_count=0)
    except Exception as exc:
        logger.exception("ingest failed")
        return _error(exc, 500)


@app.post("/entries", response_model=EntryResponse)
def create_or_update_entry(
    entry: SalesEntryModel,
    editing_index: Optional[int] = Query(default=None),
    dataset: SalesDataset = Depends(get_dataset),
):
    try:
        result = submit_entry(dataset, entry.model_dump(), editing_index, settings=DEFAULT_SETTINGS)
        return _json({"action": result.action, "index": result.index, "record": result.record.to_dict()})
    except EntryValidationError as exc:
        return _error(exc, 422, violations=exc.violations)
    except Exception as exc:
        logger.exception("entry failed")
        return _error(exc, 500)


@app.get("/records")
def list_records(dataset: SalesDataset = Depends(get_dataset)):
    try:
        records = [r.to_dict() for r in dataset.records]
        return _json({"count": len(records), "records": records})
    except Exception as exc:
        logger.exception("list_records failed")
        return _error(exc, 500)


@app.get("/meta/branches")
def meta_branches(dataset: SalesDataset = Depends(get_dataset)):
    return _json({"branches": dataset.branches()})


@app.get("/meta/channels")
def meta_channels(dataset: SalesDataset = Depends(get_dataset)):
    return _json({"channels": dataset.channels()})


@app.post("/summary")
def summary(filters: SummaryFiltersModel, dataset: SalesDataset = Depends(get_dataset)):
    try:
        return _json(compute_summary(dataset, normalize_filters(filters.model_dump())))
    except Exception as exc:
        logger.exception("summary failed")
        return _error(exc, 500)
