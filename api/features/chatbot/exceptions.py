"""Chatbot feature exceptions."""
from typing import Any, Dict, Optional

from api.shared.exceptions import ValidationError


class QueryValidationError(ValidationError):
    """Raised when a chat query is rejected before the pipeline starts."""


class EmptyMessageError(QueryValidationError):
    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__("Message is required", details)
