"""Controller for the Chatbot feature."""
import logging
from typing import Optional

from fastapi import HTTPException

from api.features.chatbot.dtos import ChatRequest, ChatResponse
from api.features.chatbot.exceptions import QueryValidationError
from api.features.conversation.dtos import (
    ClearConversationResponse,
    FeedbackRequest,
    FeedbackResponse,
    HistoryMessageDTO,
    HistoryResponse,
)
from api.features.conversation.exceptions import ConversationStoreError
from api.features.conversation.service import ConversationStore
from api.shared.dtos import HealthCheckResponse
from infra.resources import DatabaseResource
from nlq.pipeline.query_pipeline import QueryPipeline
from nlq.types import CallerIdentity

logger = logging.getLogger("records.chatbot")


class ChatbotController:
    """Maps HTTP requests onto the query pipeline and conversation store."""

    def __init__(
        self,
        query_pipeline: QueryPipeline,
        conversation_store: ConversationStore,
        database: Optional[DatabaseResource] = None,
    ):
        self.query_pipeline = query_pipeline
        self.conversation_store = conversation_store
        self.database = database

    async def chat(self, request: ChatRequest, identity: CallerIdentity) -> ChatResponse:
        try:
            result = await self.query_pipeline.submit_query(
                request.message,
                conversation_id=request.conversation_id,
                identity=identity,
            )
        except QueryValidationError as e:
            raise HTTPException(status_code=400, detail=e.message)
        if not result.success:
            logger.error(f"Chat query failed: {result.error}")
        return ChatResponse(
            success=result.success,
            response=result.response_text,
            conversation_id=result.conversation_id,
            message_id=result.turn_id,
            sources=result.sources,
            metadata=result.metadata,
        )

    async def get_history(self, conversation_id: str) -> HistoryResponse:
        try:
            messages = await self.conversation_store.get_history(conversation_id)
        except ConversationStoreError as e:
            logger.error(f"History fetch failed: {e.message}")
            raise HTTPException(status_code=500, detail=e.message)
        items = [HistoryMessageDTO(**m.model_dump()) for m in messages]
        return HistoryResponse(conversation_id=conversation_id, items=items, total=len(items))

    async def clear_conversation(self, conversation_id: str) -> ClearConversationResponse:
        try:
            cleared = await self.conversation_store.clear_conversation(conversation_id)
        except ConversationStoreError as e:
            logger.error(f"Conversation clear failed: {e.message}")
            raise HTTPException(status_code=500, detail=e.message)
        return ClearConversationResponse(conversation_id=conversation_id, cleared=cleared)

    async def submit_feedback(self, request: FeedbackRequest) -> FeedbackResponse:
        try:
            accepted = await self.conversation_store.submit_feedback(
                request.message_id, request.is_helpful, request.feedback
            )
        except ConversationStoreError as e:
            logger.error(f"Feedback failed: {e.message}")
            raise HTTPException(status_code=500, detail=e.message)
        return FeedbackResponse(accepted=accepted)

    async def health(self) -> HealthCheckResponse:
        database = "unknown"
        if self.database is not None:
            try:
                database = "ok" if await self.database.ping() else "unavailable"
            except Exception as e:
                logger.warning(f"Database ping failed: {e}")
                database = "unavailable"
        model = "configured" if self.query_pipeline.generator.llm is not None else "fallback"
        status = "healthy" if database == "ok" else "degraded"
        return HealthCheckResponse(
            status=status, dependencies={"database": database, "llm": model}
        )
