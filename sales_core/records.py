"""Canonical sales records and the row normalizer every source funnels into."""

from __future__ import annotations

import itertools
import logging
import math
import re
import time
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Dict, List, Mapping, Optional

import pandas as pd

from sales_core.dates import canonical_date
from sales_core.settings import DEFAULT_SETTINGS, IngestSettings


logger = logging.getLogger(__name__)

RAW_FIELDS = ("date", "branch", "channel", "transactions", "sales")
RECORD_COLUMNS = [
    "id",
    "date",
    "branch",
    "channel",
    "transaction_count",
    "sales_amount",
    "average_sale",
    "product",
    "sales_rep",
]

_INT_PREFIX = re.compile(r"^[+-]?\d+")
_FLOAT_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_NUMBER_NOISE = re.compile(r"[\s,$]")

_ID_SEQUENCE = itertools.count(1)


@dataclass(frozen=True)
class SalesRecord:
    date: str
    branch: str
    channel: str
    transaction_count: int
    sales_amount: float
    average_sale: float
    product: str = DEFAULT_SETTINGS.default_product
    sales_rep: str = DEFAULT_SETTINGS.default_sales_rep
    id: str = ""

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class RowSkip:
    """A source row that was left out of the batch, and why."""

    row_index: int
    reason: str


def next_record_id() -> str:
    """Millisecond timestamp plus a process-wide counter; never repeats within a process."""
    return f"{int(time.time() * 1000)}-{next(_ID_SEQUENCE)}"


def normalize_key(name: object) -> str:
    return str(name).strip().lower()


def normalize_keys(row: Mapping[object, object]) -> Dict[str, object]:
    out: Dict[str, object] = {}
    for key, value in row.items():
        out.setdefault(normalize_key(key), value)
    return out


def is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def as_text(value: object) -> str:
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _is_real(value: object) -> bool:
    return not isinstance(value, bool) and pd.api.types.is_number(value)


def parse_int(value: object) -> int:
    """Leading-integer parse; anything unparseable becomes 0."""
    if _is_real(value):
        number = float(value)
        return int(number) if math.isfinite(number) else 0
    if not isinstance(value, str):
        return 0
    match = _INT_PREFIX.match(_NUMBER_NOISE.sub("", value))
    return int(match.group(0)) if match else 0


def parse_float(value: object) -> float:
    """Leading-decimal parse; anything unparseable becomes 0.0."""
    if _is_real(value):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    if not isinstance(value, str):
        return 0.0
    match = _FLOAT_PREFIX.match(_NUMBER_NOISE.sub("", value))
    if not match:
        return 0.0
    number = float(match.group(0))
    return number if math.isfinite(number) else 0.0


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    number = Decimal(str(value))
    if not number.is_finite():
        return float(number)
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the kept decimals.
        ctx.prec = max(ctx.prec, number.adjusted() + ndigits + 2)
        return float(number.quantize(Decimal(10) ** -ndigits, rounding=ROUND_HALF_UP))


def skip_row(skips: List[RowSkip], row_index: int, reason: str) -> None:
    logger.info("Skipping row %d: %s", row_index, reason)
    skips.append(RowSkip(row_index=row_index, reason=reason))


def normalize_row(
    raw: Mapping[object, object],
    row_index: int,
    skips: List[RowSkip],
    *,
    settings: IngestSettings = DEFAULT_SETTINGS,
    product: Optional[str] = None,
    sales_rep: Optional[str] = None,
    record_id: Optional[str] = None,
) -> Optional[SalesRecord]:
    """Turn one raw row into a SalesRecord, or record a skip and return None.

    ``raw`` is keyed by the source field names (``date``, ``branch``,
    ``channel``, ``transactions``, ``sales``); keys are matched after trimming
    and lower-casing. A rejected row is appended to ``skips`` and never raises.
    """
    row = normalize_keys(raw)

    missing = [name for name in ("date", "branch") if is_blank(row.get(name))]
    if missing:
        skip_row(skips, row_index, f"missing required field(s): {', '.join(missing)}")
        return None

    date_text = as_text(row.get("date"))
    date = canonical_date(date_text)
    if date is None:
        skip_row(skips, row_index, f"invalid date {date_text!r} (expected MM/DD/YYYY)")
        return None

    channel = as_text(row.get("channel")) or settings.default_channel

    transaction_count = parse_int(row.get("transactions"))
    sales_amount = parse_float(row.get("sales"))
    if transaction_count <= 0 or sales_amount <= 0:
        skip_row(
            skips,
            row_index,
            f"transactions ({transaction_count}) and sales ({sales_amount}) must both be positive",
        )
        return None

    return SalesRecord(
        date=date,
        branch=as_text(row.get("branch")),
        channel=channel,
        transaction_count=transaction_count,
        sales_amount=sales_amount,
        average_sale=round_half_up(sales_amount / transaction_count, 2),
        product=as_text(product) or settings.default_product,
        sales_rep=as_text(sales_rep) or settings.default_sales_rep,
        id=record_id or next_record_id(),
    )
