"""Response generation with a deterministic, model-free fallback."""
from __future__ import annotations

import asyncio
import time
from typing import Any, List, Optional

import structlog
from langchain_core.language_models.chat_models import BaseChatModel

from infra.costs.pricing import calculate_cost, estimate_tokens
from nlq.prompts.answer.grounded_answer import build_grounded_prompt
from nlq.types import ContextPayload, GenerationResult, HistoryMessage

DATABASE_FALLBACK_MODEL = "database-fallback"
WELCOME_FALLBACK_MODEL = "welcome-fallback"

FALLBACK_PREFIX = "📋 **Thông tin từ hệ thống:**\n\n"

WELCOME_TEXT = (
    "Xin chào! Tôi là trợ lý của hệ thống quản lý hồ sơ Hội Dòng.\n\n"
    "Bạn có thể hỏi tôi về:\n"
    "• Thông tin nữ tu\n"
    "• Hành trình ơn gọi\n"
    "• Cộng đoàn\n"
    "• Thống kê\n\n"
    'Hãy thử hỏi: "Có bao nhiêu nữ tu?" hoặc "Danh sách cộng đoàn"'
)


def _content_text(reply: Any) -> str:
    content = getattr(reply, "content", reply)
    if isinstance(content, list):
        # Multi-part messages: keep the text parts.
        content = "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    return str(content or "")


def fallback_response(context: Optional[ContextPayload], error: Optional[str] = None) -> GenerationResult:
    if context is not None and not context.is_empty():
        return GenerationResult(
            text=f"{FALLBACK_PREFIX}{context.text}",
            model=DATABASE_FALLBACK_MODEL,
            fallback=True,
            error=error,
        )
    return GenerationResult(
        text=WELCOME_TEXT, model=WELCOME_FALLBACK_MODEL, fallback=True, error=error
    )


class ResponseGenerator:
    """Phrase a grounded answer with one bounded model call.

    ``generate`` never raises: a missing model, a timeout or a provider error
    all produce :func:`fallback_response`.
    """

    def __init__(
        self,
        llm: Optional[BaseChatModel],
        *,
        model_name: str = "gpt-4o-mini",
        timeout_seconds: float = 20.0,
        unit_price_in_usd: Optional[float] = None,
        unit_price_out_usd: Optional[float] = None,
        logger: Optional[Any] = None,
    ):
        self.llm = llm
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self.unit_price_in_usd = unit_price_in_usd
        self.unit_price_out_usd = unit_price_out_usd
        self.logger = logger or structlog.get_logger("nlq.generation")

    async def generate(
        self,
        *,
        message: str,
        context: ContextPayload,
        history: Optional[List[HistoryMessage]] = None,
    ) -> GenerationResult:
        if self.llm is None:
            return fallback_response(context, error="model_not_configured")

        prompt = build_grounded_prompt(
            question=message, context_text=context.text, history=history
        )
        start = time.time()
        try:
            reply = await asyncio.wait_for(self.llm.ainvoke(prompt), timeout=self.timeout_seconds)
            text = _content_text(reply)
            if not text.strip():
                raise ValueError("model returned an empty completion")
        except Exception as e:
            self.logger.warning(
                "generation_failed",
                model=self.model_name,
                error=str(e) or type(e).__name__,
                error_type=type(e).__name__,
            )
            return fallback_response(context, error=type(e).__name__)
        latency_ms = int((time.time() - start) * 1000)

        usage = getattr(reply, "usage_metadata", None) or {}
        prompt_tokens = usage.get("input_tokens") or estimate_tokens(prompt)
        completion_tokens = usage.get("output_tokens") or estimate_tokens(text)
        _, _, cost = calculate_cost(
            prompt_tokens,
            completion_tokens,
            unit_price_in_usd=self.unit_price_in_usd,
            unit_price_out_usd=self.unit_price_out_usd,
        )
        self.logger.info(
            "generation_completed",
            model=self.model_name,
            latency_ms=latency_ms,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            cost=cost,
        )
        return GenerationResult(
            text=text,
            model=self.model_name,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            tokens_used=prompt_tokens + completion_tokens,
            cost=cost,
        )
