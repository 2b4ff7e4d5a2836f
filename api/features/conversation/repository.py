"""Repository for chat turn persistence.

Raw SQL via SQLAlchemy AsyncSession. Turns are ordered by ``created_at`` with
the ``seq`` identity column breaking ties.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from infra.resources import DatabaseResource
from nlq.types import ConversationTurn

TURN_COLUMNS = """
    id::text AS id, conversation_id, user_id, user_message, ai_response,
    context_used, entities_extracted, intent, sub_intent, confidence,
    tokens_used, cost, is_helpful, feedback, created_at
"""


async def insert_turn(session: AsyncSession, *, turn: ConversationTurn) -> str:
    turn_id = turn.id or str(uuid.uuid4())
    sql = text(
        """
        INSERT INTO chat_turn (
            id, conversation_id, user_id, user_message, ai_response,
            context_used, entities_extracted, intent, sub_intent, confidence,
            tokens_used, cost
        )
        VALUES (
            CAST(:id AS UUID), :conversation_id, :user_id, :user_message, :ai_response,
            CAST(:context_used AS JSONB), CAST(:entities_extracted AS JSONB),
            :intent, :sub_intent, :confidence, :tokens_used, :cost
        )
        """
    )
    await session.execute(
        sql,
        {
            "id": turn_id,
            "conversation_id": turn.conversation_id,
            "user_id": turn.user_id,
            "user_message": turn.user_message,
            "ai_response": turn.ai_response,
            "context_used": turn.context_used.to_storage(),
            "entities_extracted": turn.entities_extracted.to_storage(),
            "intent": turn.intent.value,
            "sub_intent": turn.sub_intent,
            "confidence": turn.confidence,
            "tokens_used": turn.tokens_used,
            "cost": turn.cost,
        },
    )
    return turn_id


async def fetch_recent_turns(
    session: AsyncSession,
    *,
    conversation_id: str,
    limit: int = 5,
) -> List[Dict[str, Any]]:
    """Latest ``limit`` turns, returned oldest first."""
    sql = text(
        f"""
        SELECT * FROM (
            SELECT {TURN_COLUMNS}, seq
            FROM chat_turn
            WHERE conversation_id = :conversation_id
            ORDER BY created_at DESC, seq DESC
            LIMIT :limit
        ) AS recent
        ORDER BY created_at ASC, seq ASC
        """
    )
    res = await session.execute(
        sql, {"conversation_id": conversation_id, "limit": limit}
    )
    return [dict(r) for r in res.mappings().all()]


async def fetch_all_turns(
    session: AsyncSession,
    *,
    conversation_id: str,
) -> List[Dict[str, Any]]:
    sql = text(
        f"""
        SELECT {TURN_COLUMNS}
        FROM chat_turn
        WHERE conversation_id = :conversation_id
        ORDER BY created_at ASC, seq ASC
        """
    )
    res = await session.execute(sql, {"conversation_id": conversation_id})
    return [dict(r) for r in res.mappings().all()]


async def delete_turns(session: AsyncSession, *, conversation_id: str) -> int:
    res = await session.execute(
        text("DELETE FROM chat_turn WHERE conversation_id = :conversation_id"),
        {"conversation_id": conversation_id},
    )
    return res.rowcount or 0


async def set_feedback(
    session: AsyncSession,
    *,
    turn_id: str,
    is_helpful: bool,
    feedback: Optional[str] = None,
) -> bool:
    """Record feedback once; later attempts leave the row untouched."""
    sql = text(
        """
        UPDATE chat_turn
        SET is_helpful = :is_helpful, feedback = :feedback, feedback_at = NOW()
        WHERE id = CAST(:id AS UUID) AND feedback_at IS NULL
        """
    )
    res = await session.execute(
        sql, {"id": turn_id, "is_helpful": is_helpful, "feedback": feedback}
    )
    return (res.rowcount or 0) == 1


class ChatTurnRepository:
    """Session-per-call facade over the chat_turn queries."""

    def __init__(self, db: DatabaseResource):
        self.db = db

    async def create(self, turn: ConversationTurn) -> str:
        async with self.db.session_scope() as session:
            return await insert_turn(session, turn=turn)

    async def fetch_recent(self, conversation_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        async with self.db.session_scope() as session:
            return await fetch_recent_turns(
                session, conversation_id=conversation_id, limit=limit
            )

    async def fetch_all(self, conversation_id: str) -> List[Dict[str, Any]]:
        async with self.db.session_scope() as session:
            return await fetch_all_turns(session, conversation_id=conversation_id)

    async def delete(self, conversation_id: str) -> int:
        async with self.db.session_scope() as session:
            return await delete_turns(session, conversation_id=conversation_id)

    async def update_feedback(
        self, turn_id: str, is_helpful: bool, feedback: Optional[str] = None
    ) -> bool:
        async with self.db.session_scope() as session:
            return await set_feedback(
                session, turn_id=turn_id, is_helpful=is_helpful, feedback=feedback
            )
