"""Core (UI-agnostic) sales dashboard logic.

This package contains:
- date and record normalization (canonical SalesRecord)
- format adapters (spreadsheet / CSV / JSON -> raw rows)
- ingestion orchestration and the manual-entry path
- the in-memory SalesDataset
- dashboard summaries (KPIs + Altair -> Vega-Lite spec dicts)
"""
