"""Output normalization applied to every generated answer. Idempotent."""
from __future__ import annotations

import re

from nlq.types import Intent

STATISTICS_FOLLOW_UP = (
    "💡 Bạn có thể hỏi thêm về thống kê theo cộng đoàn hoặc theo từng giai đoạn ơn gọi."
)

_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_ISO_DATE_RE = re.compile(r"(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)")
_DMY_DATE_RE = re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)")


def _iso_to_dmy(match: re.Match) -> str:
    year, month, day = match.groups()
    return f"{int(day):02d}/{int(month):02d}/{year}"


def _pad_dmy(match: re.Match) -> str:
    day, month, year = match.groups()
    return f"{int(day):02d}/{int(month):02d}/{year}"


def normalize_dates(text: str) -> str:
    text = _ISO_DATE_RE.sub(_iso_to_dmy, text)
    return _DMY_DATE_RE.sub(_pad_dmy, text)


def postprocess(text: str, intent: Intent) -> str:
    text = _EXCESS_NEWLINES_RE.sub("\n\n", text or "").strip()
    text = normalize_dates(text)
    if intent == Intent.STATISTICS and STATISTICS_FOLLOW_UP not in text:
        text = f"{text}\n\n{STATISTICS_FOLLOW_UP}" if text else STATISTICS_FOLLOW_UP
    return text
