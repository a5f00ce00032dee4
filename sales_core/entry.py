"""Manual entry: validate one user-entered row, then create or update it."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Literal, Mapping, Optional

from sales_core.dataset import SalesDataset
from sales_core.dates import format_date, is_valid_calendar_date
from sales_core.errors import EntryValidationError
from sales_core.records import RowSkip, SalesRecord, as_text, is_blank, normalize_row, parse_float, parse_int
from sales_core.settings import DEFAULT_SETTINGS, IngestSettings


logger = logging.getLogger(__name__)

REQUIRED_ENTRY_FIELDS = {
    "date": "Date",
    "branch": "Branch",
    "channel": "Channel",
    "transaction_count": "Transactions",
    "sales_amount": "Sales amount",
}

# Form field spellings, compared with case, spaces and underscores removed.
_ENTRY_KEYS = {
    "date": "date",
    "branch": "branch",
    "channel": "channel",
    "transactioncount": "transaction_count",
    "transactions": "transaction_count",
    "salesamount": "sales_amount",
    "sales": "sales_amount",
    "product": "product",
    "salesrep": "sales_rep",
}


@dataclass(frozen=True)
class EntryResult:
    record: SalesRecord
    action: Literal["created", "updated"]
    index: int


def _entry_values(fields: Mapping[str, object]) -> Dict[str, object]:
    values: Dict[str, object] = {}
    for key, value in fields.items():
        name = _ENTRY_KEYS.get(re.sub(r"[\s_]", "", str(key).lower()))
        if name is not None and name not in values:
            values[name] = value
    return values


def _entry_date(value: object) -> str:
    """Date widgets hand over date objects or ISO text; both become MM/DD/YYYY."""
    if isinstance(value, (date, datetime)):
        return format_date(value)
    text = as_text(value)
    try:
        return format_date(date.fromisoformat(text))
    except ValueError:
        return text


def validate_entry(fields: Mapping[str, object]) -> List[str]:
    """Every presence rule the entry breaks, in form order."""
    values = _entry_values(fields)
    return [f"{label} is required" for name, label in REQUIRED_ENTRY_FIELDS.items() if is_blank(values.get(name))]


def submit_entry(
    dataset: SalesDataset,
    fields: Mapping[str, object],
    editing_index: Optional[int] = None,
    *,
    settings: IngestSettings = DEFAULT_SETTINGS,
) -> EntryResult:
    """Create a record from a manual entry, or overwrite the one at ``editing_index``.

    A negative or missing ``editing_index`` means "create". All broken rules
    are reported together in one EntryValidationError.
    """
    values = _entry_values(fields)
    violations = validate_entry(values)
    if violations:
        raise EntryValidationError(violations)

    entry_date = _entry_date(values["date"])
    if not is_valid_calendar_date(entry_date):
        violations.append("Date must be a real calendar date in MM/DD/YYYY format")
    if parse_int(values["transaction_count"]) <= 0:
        violations.append("Transactions must be a positive whole number")
    if parse_float(values["sales_amount"]) <= 0:
        violations.append("Sales amount must be greater than zero")

    editing = editing_index is not None and editing_index >= 0
    with dataset.lock:
        if editing and editing_index >= len(dataset):
            violations.append(f"No record at index {editing_index} to update")
        if violations:
            raise EntryValidationError(violations)

        skips: List[RowSkip] = []
        record = normalize_row(
            {
                "date": entry_date,
                "branch": values["branch"],
                "channel": values["channel"],
                "transactions": values["transaction_count"],
                "sales": values["sales_amount"],
            },
            editing_index if editing else len(dataset),
            skips,
            settings=settings,
            product=values.get("product"),
            sales_rep=values.get("sales_rep"),
            record_id=dataset[editing_index].id if editing else None,
        )
        if record is None:
            raise EntryValidationError([s.reason for s in skips])

        if editing:
            dataset.replace(editing_index, record)
            logger.info("Updated record %s at index %d", record.id, editing_index)
            return EntryResult(record=record, action="updated", index=editing_index)

        index = dataset.append(record)
        logger.info("Created record %s at index %d", record.id, index)
        return EntryResult(record=record, action="created", index=index)
