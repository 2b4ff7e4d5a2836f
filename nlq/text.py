"""Small text helpers shared by the classifier, resolver and context builders."""
from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime
from typing import Any, Optional

NOT_AVAILABLE = "N/A"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_message(message: str) -> str:
    """NFC-normalize and collapse whitespace; case is preserved."""
    if not message:
        return ""
    message = unicodedata.normalize("NFC", message)
    return _WHITESPACE_RE.sub(" ", message).strip()


def fold(value: Optional[str]) -> str:
    """Lower-cased, NFC, whitespace-collapsed form used for substring matching."""
    return normalize_message(value or "").lower()


def format_date(value: Any) -> str:
    """Render a date as DD/MM/YYYY, or the not-available marker."""
    if value is None or value == "":
        return NOT_AVAILABLE
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10]).strftime("%d/%m/%Y")
        except ValueError:
            return value
    return str(value)


def or_na(value: Any) -> str:
    if value is None:
        return NOT_AVAILABLE
    text = str(value).strip()
    return text or NOT_AVAILABLE


def display_name(saint_name: Optional[str], birth_name: Optional[str]) -> str:
    """Saint name followed by birth name, skipping whichever is missing."""
    parts = [p.strip() for p in (saint_name, birth_name) if p and p.strip()]
    return " ".join(parts) or NOT_AVAILABLE
