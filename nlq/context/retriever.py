"""Cache-checked, intent-dispatched context retrieval."""
from __future__ import annotations

from typing import Any, Dict, Optional

import structlog

from api.features.records.repository import RecordsRepository
from nlq.context.builders import CONTEXT_BUILDERS, BuilderRoute, builder_for
from nlq.context.cache import ContextCache, cache_key
from nlq.outcome import StageOutcome
from nlq.types import ContextPayload, EntityBag, Intent

STAGE = "context_retrieval"
CONTEXT_UNAVAILABLE_TEXT = "Không thể truy xuất dữ liệu từ hệ thống."


class ContextRetriever:
    def __init__(
        self,
        records: RecordsRepository,
        cache: ContextCache,
        builders: Optional[Dict[Intent, BuilderRoute]] = None,
        logger: Optional[Any] = None,
    ):
        self.records = records
        self.cache = cache
        self.builders = builders if builders is not None else CONTEXT_BUILDERS
        self.logger = logger or structlog.get_logger("nlq.context")

    def _cached(self, key: str) -> Optional[ContextPayload]:
        try:
            return self.cache.get(key)
        except Exception as e:
            self.logger.warning("context_cache_read_failed", error=str(e))
            return None

    def _store(self, key: str, payload: ContextPayload) -> None:
        try:
            self.cache.set(key, payload)
        except Exception as e:
            self.logger.warning("context_cache_write_failed", error=str(e))

    async def retrieve(self, intent: Intent, entities: EntityBag) -> StageOutcome[ContextPayload]:
        key = cache_key(intent, entities)
        cached = self._cached(key)
        if cached is not None:
            self.logger.debug("context_cache_hit", intent=intent.value)
            return StageOutcome(stage=STAGE, value=cached)

        builder = builder_for(intent, entities, self.builders)
        try:
            payload = await builder(self.records, entities)
        except Exception as e:
            self.logger.warning(
                "context_build_failed",
                intent=intent.value,
                builder=getattr(builder, "__name__", repr(builder)),
                error=str(e),
            )
            return StageOutcome(
                stage=STAGE,
                value=ContextPayload(text=CONTEXT_UNAVAILABLE_TEXT),
                degraded=True,
                error=str(e),
            )

        if not payload.is_empty():
            self._store(key, payload)
        self.logger.debug(
            "context_built",
            intent=intent.value,
            builder=getattr(builder, "__name__", repr(builder)),
            sources=len(payload.sources),
        )
        return StageOutcome(stage=STAGE, value=payload)
