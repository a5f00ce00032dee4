from __future__ import annotations

from typing import Any, Dict

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def sales_by_dimension_chart(totals: pd.DataFrame, dimension: str, title: str) -> alt.Chart:
    """Horizontal bars of sales per branch/channel; expects ``sales_amount`` and ``transaction_count``."""
    hover = alt.selection_point(fields=[dimension], on="mouseover", empty="all")
    return (
        alt.Chart(totals)
        .mark_bar(cornerRadiusEnd=3)
        .encode(
            x=alt.X("sales_amount:Q", title="Sales", axis=alt.Axis(format="$,.0f", gridDash=[4, 4])),
            y=alt.Y(f"{dimension}:N", title=title, sort="-x"),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[
                alt.Tooltip(f"{dimension}:N", title=title),
                alt.Tooltip("sales_amount:Q", title="Sales", format="$,.2f"),
                alt.Tooltip("transaction_count:Q", title="Transactions", format=",d"),
                alt.Tooltip("average_sale:Q", title="Avg Sale", format="$,.2f"),
            ],
        )
        .add_params(hover)
    )


def daily_sales_chart(daily: pd.DataFrame) -> alt.Chart:
    """Sales trend per day, one line per channel; expects ``day``, ``channel``, ``sales_amount``."""
    return (
        alt.Chart(daily)
        .mark_line(point={"filled": True})
        .encode(
            x=alt.X("day:T", title="Date", axis=alt.Axis(format="%m/%d/%Y", grid=False)),
            y=alt.Y("sales_amount:Q", title="Sales", axis=alt.Axis(format="$,.0f", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("channel:N", title="Channel"),
            tooltip=[
                alt.Tooltip("day:T", title="Date", format="%m/%d/%Y"),
                alt.Tooltip("channel:N", title="Channel"),
                alt.Tooltip("sales_amount:Q", title="Sales", format="$,.2f"),
            ],
        )
    )
