"""DTOs for the Conversation feature."""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from api.shared.dtos import BaseDTO
from nlq.types import SourceRef


class HistoryMessageDTO(BaseDTO):
    """One message of a conversation transcript."""

    role: Literal["user", "assistant"] = Field(description="Message role: user or assistant")
    content: str = Field(description="Message content")
    timestamp: Optional[datetime] = Field(default=None, description="Turn creation time")
    sources: Optional[List[SourceRef]] = Field(
        default=None, description="Records cited by an assistant message"
    )
    message_id: Optional[str] = Field(
        default=None, description="Turn id of an assistant message, used for feedback"
    )


class HistoryResponse(BaseDTO):
    conversation_id: str = Field(description="Conversation identifier")
    items: List[HistoryMessageDTO] = Field(description="Messages in chronological order")
    total: int = Field(description="Total messages returned")


class FeedbackRequest(BaseDTO):
    """Feedback on one assistant answer."""

    message_id: str = Field(description="Chat turn identifier")
    is_helpful: bool = Field(description="Whether the answer was helpful")
    feedback: Optional[str] = Field(default=None, max_length=2000, description="Free-text feedback")


class FeedbackResponse(BaseDTO):
    accepted: bool = Field(description="False when feedback was already recorded or the turn is unknown")


class ClearConversationResponse(BaseDTO):
    conversation_id: str = Field(description="Conversation identifier")
    cleared: bool = Field(description="Whether any turns were deleted")
