"""Vocation-journey stages and the keyword table used to detect them."""
from __future__ import annotations

import re
from typing import NamedTuple, Optional, Pattern, Tuple


class StageRule(NamedTuple):
    code: str
    label: str
    pattern: Pattern[str]


# First match wins, so "tiền tập viện" must be tested before "tập viện".
STAGE_RULES: Tuple[StageRule, ...] = (
    StageRule(
        "inquiry",
        "Tìm hiểu",
        re.compile(r"tìm hiểu|giai đoạn đầu|\binquiry\b", re.IGNORECASE),
    ),
    StageRule(
        "pre_postulancy",
        "Tiền tập viện",
        re.compile(r"tiền\s*tập|pre.?postulancy", re.IGNORECASE),
    ),
    StageRule(
        "postulancy",
        "Tập viện",
        re.compile(r"tập viện|postulancy", re.IGNORECASE),
    ),
    StageRule(
        "novitiate",
        "Nhà tập",
        re.compile(r"nhà tập|tập sinh|novitiate", re.IGNORECASE),
    ),
    StageRule(
        "temporary_vows",
        "Khấn tạm",
        re.compile(r"khấn tạm|khấn lần đầu|temporary vows", re.IGNORECASE),
    ),
    StageRule(
        "perpetual_vows",
        "Khấn trọn",
        re.compile(r"khấn trọn|khấn vĩnh viễn|vĩnh khấn|perpetual vows", re.IGNORECASE),
    ),
)

STAGE_LABELS = {rule.code: rule.label for rule in STAGE_RULES}


def stage_label(code: Optional[str]) -> str:
    if not code:
        return ""
    return STAGE_LABELS.get(code, code)


def detect_stage(message: str) -> Optional[StageRule]:
    for rule in STAGE_RULES:
        if rule.pattern.search(message):
            return rule
    return None
