from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sales_core.dates import canonical_date


@dataclass(frozen=True)
class SummaryFilters:
    selected_branches: List[str] = field(default_factory=list)
    selected_channels: List[str] = field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    top_n: int = 15


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s and s not in out:
            out.append(s)
    return out


def normalize_filters(raw: Optional[dict]) -> SummaryFilters:
    raw = raw or {}

    top_n = raw.get("top_n", 15)
    try:
        top_n = int(top_n)
    except Exception:
        top_n = 15
    top_n = max(1, min(200, top_n))

    start_date = canonical_date(raw.get("start_date"))
    end_date = canonical_date(raw.get("end_date"))

    return SummaryFilters(
        selected_branches=_as_str_list(raw.get("selected_branches")),
        selected_channels=_as_str_list(raw.get("selected_channels")),
        start_date=start_date,
        end_date=end_date,
        top_n=top_n,
    )
