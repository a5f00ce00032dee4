from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Optional

import pandas as pd


DATE_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

# Serial 1 is 01/01/1900. Serial 60 is the phantom 02/29/1900 that spreadsheet
# software keeps for Lotus compatibility; later serials are one day ahead.
SERIAL_EPOCH = date(1899, 12, 31)
PHANTOM_LEAP_SERIAL = 60


def parse_calendar_date(text: object) -> Optional[date]:
    """Parse ``M/D/YYYY`` text into a date, or None when it is not a real date."""
    if text is None or not isinstance(text, str):
        return None
    match = DATE_PATTERN.match(text.strip())
    if not match:
        return None
    month, day, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def is_valid_calendar_date(text: object) -> bool:
    return parse_calendar_date(text) is not None


def format_date(value: date) -> str:
    return f"{value.month:02d}/{value.day:02d}/{value.year:04d}"


def canonical_date(text: object) -> Optional[str]:
    """Zero-padded ``MM/DD/YYYY`` form of a valid date string."""
    parsed = parse_calendar_date(text)
    return format_date(parsed) if parsed is not None else None


def _is_number(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if pd.api.types.is_number(value):
        return not pd.isna(value)
    return False


def convert_serial_date(value: object) -> object:
    """Convert a spreadsheet serial day number to ``MM/DD/YYYY`` text.

    Non-numeric values pass through unchanged. Date-formatted cells that a
    decoder already turned into ``datetime``/``Timestamp`` objects are
    rendered in the canonical format as well. A serial outside the range of
    representable dates also passes through, so the row normalizer rejects
    it as an invalid date.
    """
    if value is pd.NaT:
        return value
    if isinstance(value, (datetime, date)):
        return format_date(value)
    if not _is_number(value):
        return value
    try:
        serial = int(float(value))
        offset = serial - 1 if serial > PHANTOM_LEAP_SERIAL else serial
        return format_date(SERIAL_EPOCH + timedelta(days=offset))
    except (OverflowError, ValueError):
        return value
