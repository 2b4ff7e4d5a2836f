"""Chat model construction."""
from __future__ import annotations

from typing import Optional

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_openai import ChatOpenAI

from core.settings import OpenAISettings

logger = structlog.get_logger("nlq.generation")


def build_chat_model(settings: OpenAISettings) -> Optional[BaseChatModel]:
    """Return a ChatOpenAI client, or None when the model is disabled or has no key.

    Retries are disabled: a single failure goes straight to the fallback answer.
    """
    api_key = settings.OPENAI_API_KEY.get_secret_value()
    if not settings.USE_OPENAI or not api_key:
        logger.info("chat_model_disabled", use_openai=settings.USE_OPENAI, has_key=bool(api_key))
        return None
    return ChatOpenAI(
        model=settings.OPENAI_MODEL,
        temperature=settings.OPENAI_TEMPERATURE,
        api_key=api_key,
        timeout=settings.OPENAI_TIMEOUT_SECONDS,
        max_retries=0,
    )
