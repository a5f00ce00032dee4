from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


Scalar = Union[int, float, str, None]


class SalesEntryModel(BaseModel):
    """Manual entry form payload; presence and value rules are checked by the core."""

    model_config = ConfigDict(populate_by_name=True)

    date: Scalar = None
    branch: Scalar = None
    channel: Scalar = None
    transaction_count: Scalar = Field(default=None, alias="transactionCount")
    sales_amount: Scalar = Field(default=None, alias="salesAmount")
    product: Optional[str] = None
    sales_rep: Optional[str] = Field(default=None, alias="salesRep")


class SummaryFiltersModel(BaseModel):
    selected_branches: List[str] = Field(default_factory=list)
    selected_channels: List[str] = Field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    top_n: int = 15


class SalesRecordModel(BaseModel):
    id: str
    date: str
    branch: str
    channel: str
    transaction_count: int
    sales_amount: float
    average_sale: float
    product: str
    sales_rep: str


class RowSkipModel(BaseModel):
    row_index: int
    reason: str


class IngestResponse(BaseModel):
    kind: str
    added_count: int
    total_records: int
    message: str
    skipped: List[RowSkipModel]


class EntryResponse(BaseModel):
    action: str
    index: int
    record: SalesRecordModel
