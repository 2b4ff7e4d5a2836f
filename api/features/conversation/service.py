"""Conversation store: turn persistence and short history for prompts."""
from __future__ import annotations

from typing import Any, Dict, List, Optional
import uuid

import structlog

from api.features.conversation.exceptions import ConversationStoreError
from api.features.conversation.repository import ChatTurnRepository
from nlq.types import ContextPayload, ConversationTurn, HistoryMessage

DEFAULT_HISTORY_TURNS = 5


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except (TypeError, ValueError):
        return False
    return True


def expand_turns(rows: List[Dict[str, Any]], *, with_sources: bool = False) -> List[HistoryMessage]:
    """One user message then one assistant message per turn, in turn order.

    The assistant message carries the turn id so that it can be rated.
    """
    messages: List[HistoryMessage] = []
    for row in rows:
        created_at = row.get("created_at")
        messages.append(
            HistoryMessage(role="user", content=row["user_message"], timestamp=created_at)
        )
        sources = None
        if with_sources:
            sources = ContextPayload.from_storage(row.get("context_used")).sources
        messages.append(
            HistoryMessage(
                role="assistant",
                content=row["ai_response"],
                timestamp=created_at,
                sources=sources,
                message_id=row.get("id"),
            )
        )
    return messages


class ConversationStore:
    def __init__(
        self,
        turns: ChatTurnRepository,
        history_turns: int = DEFAULT_HISTORY_TURNS,
        logger: Optional[Any] = None,
    ):
        self.turns = turns
        self.history_turns = history_turns
        self.logger = logger or structlog.get_logger("nlq.conversation")

    async def load_history(self, conversation_id: Optional[str]) -> List[HistoryMessage]:
        """Recent turns for prompt assembly; an unknown id gives an empty list.

        Storage errors propagate so the pipeline can report a degraded stage.
        """
        if not conversation_id:
            return []
        rows = await self.turns.fetch_recent(conversation_id, limit=self.history_turns)
        return expand_turns(rows)

    async def append_turn(self, turn: ConversationTurn) -> Optional[str]:
        """Persist a turn. Failures are logged and swallowed."""
        try:
            turn_id = await self.turns.create(turn)
        except Exception as e:
            self.logger.warning(
                "turn_persist_failed",
                conversation_id=turn.conversation_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        self.logger.debug("turn_persisted", conversation_id=turn.conversation_id, turn_id=turn_id)
        return turn_id

    async def get_history(self, conversation_id: str) -> List[HistoryMessage]:
        try:
            rows = await self.turns.fetch_all(conversation_id)
            return expand_turns(rows, with_sources=True)
        except Exception as e:
            self.logger.error("history_fetch_failed", conversation_id=conversation_id, error=str(e))
            raise ConversationStoreError(
                "Failed to load conversation history", {"conversation_id": conversation_id}
            ) from e

    async def clear_conversation(self, conversation_id: str) -> bool:
        """Delete every turn of the conversation; True when something was deleted."""
        try:
            deleted = await self.turns.delete(conversation_id)
        except Exception as e:
            self.logger.error("conversation_clear_failed", conversation_id=conversation_id, error=str(e))
            raise ConversationStoreError(
                "Failed to clear conversation", {"conversation_id": conversation_id}
            ) from e
        self.logger.info("conversation_cleared", conversation_id=conversation_id, deleted=deleted)
        return deleted > 0

    async def submit_feedback(
        self, turn_id: str, is_helpful: bool, feedback: Optional[str] = None
    ) -> bool:
        """Attach feedback to a turn. Only the first submission per turn is kept."""
        if not _is_uuid(turn_id):
            return False
        try:
            updated = await self.turns.update_feedback(turn_id, is_helpful, feedback)
        except Exception as e:
            self.logger.error("feedback_failed", turn_id=turn_id, error=str(e))
            raise ConversationStoreError("Failed to save feedback", {"turn_id": turn_id}) from e
        if not updated:
            self.logger.info("feedback_rejected", turn_id=turn_id)
        return updated
