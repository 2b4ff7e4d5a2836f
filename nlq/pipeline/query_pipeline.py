"""Query pipeline: classify → resolve → adjust → retrieve → generate → post-process.

- Greetings short-circuit before retrieval and generation
- Entity resolution, context retrieval and history load degrade instead of failing
- The turn is persisted in a background task after the answer is ready
"""
from __future__ import annotations

import asyncio
import random
import uuid
from typing import Any, List, Optional, Set

import structlog

from api.features.chatbot.exceptions import EmptyMessageError
from api.features.conversation.service import ConversationStore
from nlq.context.retriever import ContextRetriever
from nlq.entities.resolver import EntityResolver
from nlq.generation.generator import ResponseGenerator
from nlq.intent.adjuster import adjust_intent
from nlq.intent.classifier import classify_intent
from nlq.outcome import StageOutcome, run_degradable
from nlq.postprocess import postprocess
from nlq.prompts.greeting import render_greeting
from nlq.text import normalize_message
from nlq.types import (
    CallerIdentity,
    ContextPayload,
    ConversationTurn,
    EntityBag,
    HistoryMessage,
    Intent,
    IntentResult,
    QueryMetadata,
    QueryResult,
)

GREETING_MODEL = "greeting-template"
APOLOGY_TEXT = (
    "Xin lỗi, đã có lỗi xảy ra khi xử lý câu hỏi của bạn. Vui lòng thử lại sau."
)


class QueryPipeline:
    def __init__(
        self,
        *,
        resolver: EntityResolver,
        retriever: ContextRetriever,
        store: ConversationStore,
        generator: ResponseGenerator,
        persist_greetings: bool = False,
        rng: Optional[random.Random] = None,
        logger: Optional[Any] = None,
    ):
        self.resolver = resolver
        self.retriever = retriever
        self.store = store
        self.generator = generator
        self.persist_greetings = persist_greetings
        self.rng = rng or random.Random()
        self.logger = logger or structlog.get_logger("nlq.pipeline")
        self._pending: Set[asyncio.Task] = set()

    async def submit_query(
        self,
        message: Optional[str],
        conversation_id: Optional[str] = None,
        identity: Optional[CallerIdentity] = None,
    ) -> QueryResult:
        """Answer one message.

        Raises :class:`EmptyMessageError` for a blank message before any stage
        runs. Every other failure ends in a ``success=False`` apology.
        """
        text = normalize_message(message or "")
        if not text:
            raise EmptyMessageError()

        resumed = bool(conversation_id)
        conversation_id = conversation_id or str(uuid.uuid4())
        identity = identity or CallerIdentity()
        log = self.logger.bind(conversation_id=conversation_id)
        try:
            return await self._answer(text, conversation_id, resumed, identity, log)
        except Exception as e:
            log.exception("query_failed", error=str(e))
            return QueryResult(
                success=False,
                response_text=APOLOGY_TEXT,
                conversation_id=conversation_id,
                error=type(e).__name__,
            )

    async def _answer(
        self,
        text: str,
        conversation_id: str,
        resumed: bool,
        identity: CallerIdentity,
        log: Any,
    ) -> QueryResult:
        classified = classify_intent(text)
        entities_outcome = await self.resolver.resolve(text)
        entities = entities_outcome.value
        result = adjust_intent(classified, entities)
        log.info(
            "intent_resolved",
            intent=result.intent.value,
            classified=classified.intent.value,
            adjusted_by=result.adjusted_by,
            question_type=result.question_type.value,
            confidence=result.confidence,
        )

        if result.intent == Intent.GREETING:
            return self._greet(text, conversation_id, identity, result, entities, [entities_outcome])

        context_outcome = await self.retriever.retrieve(result.intent, entities)
        context = context_outcome.value

        history_outcome: StageOutcome[List[HistoryMessage]] = StageOutcome(
            stage="history_load", value=[]
        )
        if resumed:
            history_outcome = await run_degradable(
                "history_load",
                lambda: self.store.load_history(conversation_id),
                default=list,
                logger=log,
            )

        generation = await self.generator.generate(
            message=text, context=context, history=history_outcome.value
        )
        response_text = postprocess(generation.text, result.intent)

        turn_id = self._persist(
            ConversationTurn(
                conversation_id=conversation_id,
                user_id=identity.user_id,
                user_message=text,
                ai_response=response_text,
                context_used=context,
                entities_extracted=entities,
                intent=result.intent,
                sub_intent=result.sub_intent,
                confidence=result.confidence,
                tokens_used=generation.tokens_used,
                cost=generation.cost,
            )
        )

        outcomes = [entities_outcome, context_outcome, history_outcome]
        return QueryResult(
            success=True,
            response_text=response_text,
            conversation_id=conversation_id,
            turn_id=turn_id,
            sources=context.sources,
            metadata=QueryMetadata(
                intent=result.intent,
                confidence=result.confidence,
                question_type=result.question_type,
                sub_intent=result.sub_intent,
                model=generation.model,
                fallback=generation.fallback,
                degraded_stages=[o.stage for o in outcomes if o.degraded],
            ),
        )

    def _greet(
        self,
        text: str,
        conversation_id: str,
        identity: CallerIdentity,
        result: IntentResult,
        entities: EntityBag,
        outcomes: List[StageOutcome],
    ) -> QueryResult:
        reply = render_greeting(identity.display_name, self.rng)
        turn_id = None
        if self.persist_greetings:
            turn_id = self._persist(
                ConversationTurn(
                    conversation_id=conversation_id,
                    user_id=identity.user_id,
                    user_message=text,
                    ai_response=reply,
                    context_used=ContextPayload(),
                    entities_extracted=entities,
                    intent=result.intent,
                    sub_intent=result.sub_intent,
                    confidence=result.confidence,
                )
            )
        return QueryResult(
            success=True,
            response_text=reply,
            conversation_id=conversation_id,
            turn_id=turn_id,
            metadata=QueryMetadata(
                intent=result.intent,
                confidence=result.confidence,
                question_type=result.question_type,
                sub_intent=result.sub_intent,
                model=GREETING_MODEL,
                degraded_stages=[o.stage for o in outcomes if o.degraded],
            ),
        )

    def _persist(self, turn: ConversationTurn) -> str:
        """Schedule the write and return the turn id the caller can rate."""
        turn.id = turn.id or str(uuid.uuid4())
        task = asyncio.create_task(
            run_degradable(
                "turn_persist",
                lambda: self.store.append_turn(turn),
                default=lambda: None,
                logger=self.logger,
            )
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return turn.id

    async def wait_for_pending(self) -> None:
        """Wait for background turn writes; used by tests and on shutdown."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
