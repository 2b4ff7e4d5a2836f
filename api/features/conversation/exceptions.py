"""Conversation feature exceptions."""
from typing import Any, Dict, Optional

from api.shared.exceptions import RecordsAssistantError


class ConversationStoreError(RecordsAssistantError):
    """Raised when chat turns cannot be read or written."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONVERSATION_STORE_ERROR", details)
