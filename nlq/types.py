"""Typed values passed between query pipeline stages.

ContextPayload and EntityBag are persisted as JSON on every chat turn, so they
carry a ``schema_version`` and are loaded through :meth:`from_storage`.
"""
from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from api.shared.exceptions import RecordsAssistantError

CURRENT_SCHEMA_VERSION = 1

P = TypeVar("P", bound="VersionedPayload")


class Intent(str, Enum):
    """Closed set of message purposes."""

    GREETING = "greeting"
    JOURNEY_INFO = "journey_info"
    SISTER_INFO = "sister_info"
    COMMUNITY_INFO = "community_info"
    STATISTICS = "statistics"
    EDUCATION_INFO = "education_info"
    HEALTH_INFO = "health_info"
    MISSION_INFO = "mission_info"
    HELP = "help"
    GENERAL = "general"


class QuestionType(str, Enum):
    COUNT = "count"
    LIST = "list"
    DEFINITION = "definition"
    HOWTO = "howto"
    WHY = "why"
    LOCATION = "location"
    TIME = "time"
    WHO = "who"
    COMPARISON = "comparison"
    GENERAL = "general"


class IntentResult(BaseModel):
    """Outcome of classification, optionally refined by the adjuster."""

    model_config = ConfigDict(frozen=True)

    intent: Intent = Field(default=Intent.GENERAL)
    sub_intent: Optional[str] = Field(default=None)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    keywords: List[str] = Field(default_factory=list)
    subjects: List[str] = Field(
        default_factory=list, description="Record kinds the message talks about"
    )
    question_type: QuestionType = Field(default=QuestionType.GENERAL)
    adjusted_by: Optional[str] = Field(
        default=None, description="Adjustment rule that replaced a general intent"
    )


class UnsupportedSchemaVersion(RecordsAssistantError):
    """Raised when a stored payload was written by a newer schema."""

    def __init__(self, payload_type: str, version: Any):
        message = (
            f"{payload_type} schema version {version!r} is not supported "
            f"(current: {CURRENT_SCHEMA_VERSION})"
        )
        super().__init__(
            message,
            "UNSUPPORTED_SCHEMA_VERSION",
            {"payload_type": payload_type, "version": version},
        )


class VersionedPayload(BaseModel):
    """Base for JSON blobs stored alongside chat turns."""

    schema_version: int = Field(default=CURRENT_SCHEMA_VERSION)

    @classmethod
    def from_storage(cls: Type[P], raw: Any) -> P:
        """Load a stored payload; rows written before versioning count as v1."""
        if raw is None or raw == "" or raw == b"":
            return cls()
        if isinstance(raw, (str, bytes)):
            raw = json.loads(raw)
        if not isinstance(raw, dict):
            raise UnsupportedSchemaVersion(cls.__name__, type(raw).__name__)
        version = raw.get("schema_version", 1)
        if not isinstance(version, int) or version > CURRENT_SCHEMA_VERSION:
            raise UnsupportedSchemaVersion(cls.__name__, version)
        return cls.model_validate({**raw, "schema_version": version})

    def to_storage(self) -> str:
        return self.model_dump_json(exclude_none=True)


class EntityBag(VersionedPayload):
    """Sparse set of references found in a message.

    A missing field means the message did not mention it.
    """

    sister_id: Optional[int] = None
    sister_name: Optional[str] = None
    saint_name: Optional[str] = None
    community_id: Optional[int] = None
    community_name: Optional[str] = None
    date: Optional[str] = None
    year: Optional[int] = None
    stage: Optional[str] = None
    stage_label: Optional[str] = None

    def has_sister(self) -> bool:
        return self.sister_id is not None

    def has_community(self) -> bool:
        return self.community_id is not None

    def has_stage(self) -> bool:
        return self.stage is not None

    def cache_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"schema_version"})


class SourceRef(BaseModel):
    """Record actually used to ground an answer."""

    type: Literal["sister", "community"]
    id: int
    name: Optional[str] = None


class ContextPayload(VersionedPayload):
    text: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    sources: List[SourceRef] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.text.strip()


class CallerIdentity(BaseModel):
    """Caller details supplied by the authentication layer."""

    user_id: Optional[str] = None
    display_name: Optional[str] = None


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: Optional[datetime] = None
    sources: Optional[List[SourceRef]] = None
    message_id: Optional[str] = None


class GenerationResult(BaseModel):
    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    tokens_used: int = 0
    cost: float = 0.0
    fallback: bool = False
    error: Optional[str] = None


class ConversationTurn(BaseModel):
    """One persisted user message / assistant response pair."""

    id: Optional[str] = None
    conversation_id: str
    user_id: Optional[str] = None
    user_message: str
    ai_response: str
    context_used: ContextPayload = Field(default_factory=ContextPayload)
    entities_extracted: EntityBag = Field(default_factory=EntityBag)
    intent: Intent = Intent.GENERAL
    sub_intent: Optional[str] = None
    confidence: float = 0.0
    tokens_used: int = 0
    cost: float = 0.0
    is_helpful: Optional[bool] = None
    feedback: Optional[str] = None
    created_at: Optional[datetime] = None


class QueryMetadata(BaseModel):
    intent: Intent
    confidence: float
    question_type: QuestionType
    sub_intent: Optional[str] = None
    model: Optional[str] = None
    fallback: bool = False
    degraded_stages: List[str] = Field(default_factory=list)


class QueryResult(BaseModel):
    success: bool
    response_text: str
    conversation_id: str
    turn_id: Optional[str] = Field(
        default=None, description="Id to send feedback against; None when nothing is stored"
    )
    sources: List[SourceRef] = Field(default_factory=list)
    metadata: Optional[QueryMetadata] = None
    error: Optional[str] = None
