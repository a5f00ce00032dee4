"""Unit tests for the manual-entry path."""

from __future__ import annotations

from datetime import date

import pytest

from sales_core.dataset import SalesDataset
from sales_core.entry import submit_entry, validate_entry
from sales_core.errors import EntryValidationError


def _fields(**overrides) -> dict:
    fields = {
        "date": "01/05/2024",
        "branch": "Main",
        "channel": "Dine-In",
        "transaction_count": "4",
        "sales_amount": "50",
    }
    fields.update(overrides)
    return fields


def test_missing_date_and_sales_lists_both_rules() -> None:
    """Every broken presence rule is reported, not just the first."""
    with pytest.raises(EntryValidationError) as excinfo:
        submit_entry(SalesDataset(), _fields(date="", sales_amount=None))

    assert excinfo.value.violations == ["Date is required", "Sales amount is required"]


def test_validate_entry_reports_every_missing_field() -> None:
    """An empty form breaks all five presence rules."""
    assert len(validate_entry({})) == 5


def test_value_rules_are_collected_together() -> None:
    """Bad date and non-positive transactions are reported at once."""
    with pytest.raises(EntryValidationError) as excinfo:
        submit_entry(SalesDataset(), _fields(date="02/30/2024", transaction_count=0))

    assert len(excinfo.value.violations) == 2
    assert "calendar date" in excinfo.value.violations[0]


def test_submit_creates_record_with_defaults() -> None:
    """A new entry is appended with product/rep defaults."""
    dataset = SalesDataset()

    result = submit_entry(dataset, _fields())

    assert result.action == "created"
    assert result.index == 0
    assert result.record.average_sale == 12.5
    assert result.record.product == "General"
    assert result.record.sales_rep == "Unassigned"
    assert dataset[0] == result.record


def test_submit_with_editing_index_replaces_in_place() -> None:
    """Editing overwrites the indexed record and keeps order and id."""
    dataset = SalesDataset()
    first = submit_entry(dataset, _fields(branch="A")).record
    submit_entry(dataset, _fields(branch="B"))

    result = submit_entry(dataset, _fields(branch="A2", product="Pizza"), editing_index=0)

    assert result.action == "updated"
    assert len(dataset) == 2
    assert [r.branch for r in dataset.records] == ["A2", "B"]
    assert dataset[0].id == first.id
    assert dataset[0].product == "Pizza"


def test_negative_editing_index_creates() -> None:
    """An index below zero means no record is being edited."""
    dataset = SalesDataset()

    result = submit_entry(dataset, _fields(), editing_index=-1)

    assert result.action == "created"


def test_editing_index_out_of_range_is_a_violation() -> None:
    """Updating a record that does not exist is rejected."""
    with pytest.raises(EntryValidationError, match="index 3"):
        submit_entry(SalesDataset(), _fields(), editing_index=3)


def test_form_style_keys_are_accepted() -> None:
    """Camel-case form keys map to the same fields."""
    fields = {
        "date": "01/05/2024",
        "branch": "Main",
        "channel": "Online",
        "transactionCount": "3",
        "salesAmount": "30",
        "salesRep": "Ana",
    }

    record = submit_entry(SalesDataset(), fields).record

    assert record.sales_rep == "Ana"
    assert record.transaction_count == 3


def test_date_widget_values_are_converted() -> None:
    """Date objects and ISO text become MM/DD/YYYY."""
    dataset = SalesDataset()

    from_object = submit_entry(dataset, _fields(date=date(2024, 2, 29))).record
    from_iso = submit_entry(dataset, _fields(date="2024-03-01")).record

    assert from_object.date == "02/29/2024"
    assert from_iso.date == "03/01/2024"


def test_submit_entry_reports_success_when_save_hook_fails() -> None:
    """A failing save hook does not turn a stored entry into a reported failure."""

    def failing_hook(ds):
        raise RuntimeError("save failed")

    dataset = SalesDataset(on_change=failing_hook)

    result = submit_entry(dataset, _fields())

    assert result.action == "created"
    assert len(dataset) == 1
