"""Greeting replies; these never reach the language model."""
from __future__ import annotations

import random
from typing import Optional, Tuple

GREETING_TEMPLATES: Tuple[str, ...] = (
    "Xin chào {name}! Tôi là trợ lý hồ sơ của Hội Dòng. Bạn muốn tìm hiểu thông tin gì hôm nay?",
    "Chào {name}! Tôi có thể giúp bạn tra cứu thông tin nữ tu, cộng đoàn và hành trình ơn gọi.",
    "Xin chào {name}, rất vui được hỗ trợ bạn. Hãy đặt câu hỏi về dữ liệu của hệ thống nhé!",
)

DEFAULT_NAME = "bạn"


def render_greeting(display_name: Optional[str], rng: Optional[random.Random] = None) -> str:
    template = (rng or random).choice(GREETING_TEMPLATES)
    name = (display_name or "").strip() or DEFAULT_NAME
    return template.format(name=name)
