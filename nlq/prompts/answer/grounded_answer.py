"""Grounded answer prompt builder.

Fixed system instructions, the recent history block, the retrieved records
labelled as authoritative data, the verbatim question and a closing
instruction to answer only from that data.
"""
from __future__ import annotations

from typing import List, Optional

from nlq.types import HistoryMessage

SYSTEM_PROMPT = """Bạn là trợ lý của hệ thống quản lý hồ sơ Hội Dòng.

Nhiệm vụ của bạn:
1. Trả lời các câu hỏi về nữ tu, hành trình ơn gọi, cộng đoàn, học vấn, sức khỏe và sứ vụ dựa trên dữ liệu được cung cấp
2. Giải thích thông tin rõ ràng, dễ hiểu, có cấu trúc
3. Sử dụng ngôn ngữ tôn trọng, lịch sự
4. Trả lời bằng tiếng Việt

Các giai đoạn ơn gọi trong hệ thống:
- Tìm hiểu (Inquiry)
- Tiền tập viện (Pre-postulancy)
- Tập viện (Postulancy)
- Nhà tập (Novitiate)
- Khấn tạm (Temporary Vows)
- Khấn trọn (Perpetual Vows)

Ngày tháng được trình bày theo dạng DD/MM/YYYY."""

CONTEXT_LABEL = "Dữ liệu liên quan từ hệ thống (nguồn chính xác duy nhất):"
NO_CONTEXT_NOTE = "Không có dữ liệu liên quan từ hệ thống cho câu hỏi này."
CLOSING_INSTRUCTION = (
    "Chỉ trả lời dựa trên dữ liệu được cung cấp ở trên, không bịa đặt thông tin. "
    "Nếu dữ liệu không có thông tin cần thiết, hãy nói rõ rằng hệ thống không có dữ liệu đó."
)

ROLE_LABELS = {"user": "Người dùng", "assistant": "Trợ lý"}


def build_history_block(history: List[HistoryMessage]) -> str:
    if not history:
        return ""
    lines = ["Lịch sử hội thoại:"]
    lines += [f"{ROLE_LABELS[m.role]}: {m.content}" for m in history]
    return "\n".join(lines)


def build_grounded_prompt(
    *,
    question: str,
    context_text: Optional[str],
    history: Optional[List[HistoryMessage]] = None,
) -> str:
    parts = [SYSTEM_PROMPT]
    history_block = build_history_block(history or [])
    if history_block:
        parts.append(history_block)
    if context_text and context_text.strip():
        parts.append(f"{CONTEXT_LABEL}\n{context_text}")
    else:
        parts.append(NO_CONTEXT_NOTE)
    parts.append(f"Người dùng hỏi: {question}")
    parts.append(CLOSING_INSTRUCTION)
    return "\n\n".join(parts)
