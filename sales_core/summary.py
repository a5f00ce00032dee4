from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Union

import pandas as pd

from sales_core.charts import daily_sales_chart, sales_by_dimension_chart, to_vega_spec
from sales_core.dataset import SalesDataset
from sales_core.filters import SummaryFilters, normalize_filters
from sales_core.records import round_half_up


DATE_FORMAT = "%m/%d/%Y"


def apply_filters(df: pd.DataFrame, filters: SummaryFilters) -> pd.DataFrame:
    if df.empty:
        return df
    out = df.copy()
    out["day"] = pd.to_datetime(out["date"], format=DATE_FORMAT, errors="coerce")
    if filters.selected_branches:
        out = out[out["branch"].isin(filters.selected_branches)]
    if filters.selected_channels:
        out = out[out["channel"].isin(filters.selected_channels)]
    if filters.start_date:
        out = out[out["day"] >= pd.to_datetime(filters.start_date, format=DATE_FORMAT)]
    if filters.end_date:
        out = out[out["day"] <= pd.to_datetime(filters.end_date, format=DATE_FORMAT)]
    return out


def totals_by(df: pd.DataFrame, dimension: str, top_n: int) -> pd.DataFrame:
    grouped = (
        df.groupby(dimension)
        .agg(
            sales_amount=("sales_amount", "sum"),
            transaction_count=("transaction_count", "sum"),
            records=("id", "count"),
        )
        .reset_index()
        .sort_values(["sales_amount", dimension], ascending=[False, True])
        .head(top_n)
        .reset_index(drop=True)
    )
    grouped["sales_amount"] = grouped["sales_amount"].apply(lambda v: round_half_up(v, 2))
    grouped["average_sale"] = (grouped["sales_amount"] / grouped["transaction_count"]).apply(lambda v: round_half_up(v, 2))
    grouped.insert(0, "rank", grouped.index + 1)
    return grouped


def _kpis(df: pd.DataFrame) -> Dict[str, Any]:
    if df.empty:
        return {"record_count": 0, "total_sales": 0.0, "total_transactions": 0, "average_sale": None}
    total_sales = float(df["sales_amount"].sum())
    total_transactions = int(df["transaction_count"].sum())
    return {
        "record_count": int(len(df)),
        "total_sales": round_half_up(total_sales, 2),
        "total_transactions": total_transactions,
        "average_sale": round_half_up(total_sales / total_transactions, 2) if total_transactions else None,
    }


def compute_summary(dataset: SalesDataset, filters: Union[dict, SummaryFilters, None] = None) -> Dict[str, Any]:
    """KPIs, per-branch/per-channel totals and chart specs for the filtered dataset."""
    if not isinstance(filters, SummaryFilters):
        filters = normalize_filters(filters)
    df = apply_filters(dataset.to_frame(), filters)
    if df.empty:
        return {"filters": asdict(filters), "kpis": _kpis(df), "by_branch": [], "by_channel": [], "charts": {}}

    by_branch = totals_by(df, "branch", filters.top_n)
    by_channel = totals_by(df, "channel", filters.top_n)

    charts: Dict[str, Any] = {
        "sales_by_branch": to_vega_spec(sales_by_dimension_chart(by_branch, "branch", "Branch")),
        "sales_by_channel": to_vega_spec(sales_by_dimension_chart(by_channel, "channel", "Channel")),
    }
    daily = df.dropna(subset=["day"]).groupby(["day", "channel"], as_index=False)["sales_amount"].sum()
    if not daily.empty:
        charts["daily_sales"] = to_vega_spec(daily_sales_chart(daily))

    return {
        "filters": asdict(filters),
        "kpis": _kpis(df),
        "by_branch": by_branch.to_dict(orient="records"),
        "by_channel": by_channel.to_dict(orient="records"),
        "charts": charts,
    }
