"""DTOs for the Chatbot feature."""
from typing import List, Optional

from pydantic import Field

from api.shared.dtos import BaseDTO
from nlq.types import QueryMetadata, SourceRef


class ChatRequest(BaseDTO):
    """A question for the records assistant.

    ``message`` is optional here so that a blank question is reported as an
    input error (400) rather than a schema error.
    """

    message: Optional[str] = Field(default=None, max_length=4000, description="User question")
    conversation_id: Optional[str] = Field(
        default=None, max_length=64, description="Existing conversation to continue"
    )


class ChatResponse(BaseDTO):
    success: bool = Field(description="False only when the pipeline hit an unexpected error")
    response: str = Field(description="Answer text")
    conversation_id: str = Field(description="Conversation identifier")
    message_id: Optional[str] = Field(
        default=None, description="Turn id for feedback; absent when the turn is not stored"
    )
    sources: List[SourceRef] = Field(default_factory=list, description="Records cited by the answer")
    metadata: Optional[QueryMetadata] = Field(default=None, description="Intent and generation details")
