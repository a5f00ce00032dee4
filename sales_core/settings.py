from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class IngestSettings:
    default_channel: str = "Delivery"
    default_product: str = "General"
    default_sales_rep: str = "Unassigned"
    max_upload_bytes: int = 10 * 1024 * 1024
    text_encoding: str = "utf-8-sig"


DEFAULT_SETTINGS = IngestSettings()


def _text_or(value: object, fallback: str) -> str:
    if value is None:
        return fallback
    s = str(value).strip()
    return s or fallback


def normalize_settings(raw: Optional[dict] = None) -> IngestSettings:
    raw = raw or {}
    defaults = DEFAULT_SETTINGS

    max_upload_bytes = raw.get("max_upload_bytes", defaults.max_upload_bytes)
    try:
        max_upload_bytes = int(max_upload_bytes)
    except Exception:
        max_upload_bytes = defaults.max_upload_bytes
    if max_upload_bytes <= 0:
        max_upload_bytes = defaults.max_upload_bytes

    return IngestSettings(
        default_channel=_text_or(raw.get("default_channel"), defaults.default_channel),
        default_product=_text_or(raw.get("default_product"), defaults.default_product),
        default_sales_rep=_text_or(raw.get("default_sales_rep"), defaults.default_sales_rep),
        max_upload_bytes=max_upload_bytes,
        text_encoding=_text_or(raw.get("text_encoding"), defaults.text_encoding),
    )
