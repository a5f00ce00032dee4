from datetime import date

import altair as alt
import pandas as pd
import streamlit as st

from sales_core.charts import daily_sales_chart, sales_by_dimension_chart
from sales_core.dataset import SalesDataset
from sales_core.entry import submit_entry
from sales_core.errors import EntryValidationError, IngestError
from sales_core.filters import normalize_filters
from sales_core.ingest import ingest_bytes
from sales_core.summary import apply_filters, compute_summary, totals_by

alt.data_transformers.disable_max_rows()

CHANNEL_OPTIONS = ["Delivery", "Dine-In", "Takeaway", "Online"]


def get_dataset() -> SalesDataset:
    if "dataset" not in st.session_state:
        st.session_state["dataset"] = SalesDataset()
    return st.session_state["dataset"]


def render_upload(dataset: SalesDataset):
    st.markdown("### Import")
    uploaded = st.file_uploader(
        "Sales file",
        type=["xlsx", "xls", "csv", "json"],
        key=f"upload_{st.session_state.get('upload_generation', 0)}",
    )
    if uploaded is None:
        return
    # Streamlit reruns the script on every interaction; import each upload once.
    upload_key = (uploaded.name, uploaded.size)
    if st.session_state.get("_last_upload") == upload_key:
        return
    st.session_state["_last_upload"] = upload_key
    try:
        result = ingest_bytes(dataset, uploaded.name, uploaded.getvalue())
    except IngestError as exc:
        st.error(f"0 rows imported: {exc}")
        return
    st.success(result.message)
    if result.skipped:
        with st.expander(f"Skipped rows ({len(result.skipped)})"):
            st.dataframe(pd.DataFrame([s.__dict__ for s in result.skipped]), hide_index=True)


def clear_data(dataset: SalesDataset):
    dataset.clear()
    st.session_state["editing_index"] = -1
    # A fresh uploader key empties the widget, so the same file can be imported again.
    st.session_state.pop("_last_upload", None)
    st.session_state["upload_generation"] = st.session_state.get("upload_generation", 0) + 1


def render_entry_form(dataset: SalesDataset):
    editing_index = st.session_state.get("editing_index", -1)
    editing = dataset[editing_index] if 0 <= editing_index < len(dataset) else None

    st.markdown("### Edit record" if editing else "### Add record")
    with st.form("entry_form", clear_on_submit=editing is None):
        c1, c2, c3 = st.columns(3)
        entry_date = c1.text_input("Date (MM/DD/YYYY)", value=editing.date if editing else date.today().strftime("%m/%d/%Y"))
        branch = c2.text_input("Branch", value=editing.branch if editing else "")
        channel_options = CHANNEL_OPTIONS + ([editing.channel] if editing and editing.channel not in CHANNEL_OPTIONS else [])
        channel = c3.selectbox("Channel", channel_options, index=channel_options.index(editing.channel) if editing else 0)
        c4, c5 = st.columns(2)
        transactions = c4.number_input("Transactions", min_value=0, step=1, value=editing.transaction_count if editing else 0)
        sales = c5.number_input("Sales amount", min_value=0.0, step=0.01, value=float(editing.sales_amount) if editing else 0.0)
        c6, c7 = st.columns(2)
        product = c6.text_input("Product", value=editing.product if editing else "")
        sales_rep = c7.text_input("Sales rep", value=editing.sales_rep if editing else "")
        submitted = st.form_submit_button("Update" if editing else "Add")

    if not submitted:
        return
    fields = {
        "date": entry_date,
        "branch": branch,
        "channel": channel,
        "transaction_count": transactions or None,
        "sales_amount": sales or None,
        "product": product,
        "sales_rep": sales_rep,
    }
    try:
        result = submit_entry(dataset, fields, editing_index)
    except EntryValidationError as exc:
        st.error("Please fix: " + "; ".join(exc.violations))
        return
    st.session_state["editing_index"] = -1
    st.success(f"Record {result.action} at row {result.index + 1}.")


# ---------- UI setup ----------
st.set_page_config(page_title="Sales Dashboard", layout="wide")
st.title("Sales Dashboard")
st.caption("Import spreadsheet, CSV or JSON sales data, or enter records by hand.")

dataset = get_dataset()

with st.sidebar:
    render_upload(dataset)
    st.markdown("---")
    st.markdown("### Filters")
    selected_branches = st.multiselect("Branch", dataset.branches())
    selected_channels = st.multiselect("Channel", dataset.channels())
    top_n = st.slider("Top N", min_value=5, max_value=50, value=15, step=5)
    if st.button("Clear all data", disabled=len(dataset) == 0):
        clear_data(dataset)

filters = normalize_filters(
    {"selected_branches": selected_branches, "selected_channels": selected_channels, "top_n": top_n}
)

render_entry_form(dataset)

summary = compute_summary(dataset, filters)
kpis = summary["kpis"]
k1, k2, k3, k4 = st.columns(4)
k1.metric("Total Sales", f"${kpis['total_sales']:,.2f}")
k2.metric("Transactions", f"{kpis['total_transactions']:,}")
k3.metric("Avg Sale", f"${kpis['average_sale']:,.2f}" if kpis["average_sale"] is not None else "N/A")
k4.metric("Records", f"{kpis['record_count']:,}")

filtered = apply_filters(dataset.to_frame(), filters)
if filtered.empty:
    st.info("No sales records yet. Import a file or add a record.")
    st.stop()

c1, c2 = st.columns(2)
with c1:
    st.subheader("Sales by Branch")
    st.altair_chart(sales_by_dimension_chart(totals_by(filtered, "branch", filters.top_n), "branch", "Branch"), use_container_width=True)
with c2:
    st.subheader("Sales by Channel")
    st.altair_chart(sales_by_dimension_chart(totals_by(filtered, "channel", filters.top_n), "channel", "Channel"), use_container_width=True)

daily = filtered.dropna(subset=["day"]).groupby(["day", "channel"], as_index=False)["sales_amount"].sum()
if not daily.empty:
    st.subheader("Daily Sales")
    st.altair_chart(daily_sales_chart(daily), use_container_width=True)

st.subheader("Records")
table = dataset.to_frame()
st.dataframe(table.drop(columns=["id"]), use_container_width=True)
row_labels = [f"{i + 1}: {r.date} {r.branch} ({r.channel})" for i, r in enumerate(dataset.records)]
choice = st.selectbox("Edit a record", ["(none)"] + row_labels)
if choice != "(none)" and st.button("Edit selected"):
    st.session_state["editing_index"] = row_labels.index(choice)
    st.rerun()
