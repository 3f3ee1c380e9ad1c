"""Models for sessions, messages and the state exposed to views."""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    """Role in a chat conversation."""
    USER = "user"
    ASSISTANT = "assistant"


class MessageSource(BaseModel):
    """A citation attached to an assistant reply. Every field is optional."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    published_at: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("published_at", "publishedAt"),
    )
    source: Optional[str] = Field(default=None, description="Name of the originating outlet")
    relevance_score: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("relevance_score", "relevanceScore", "score"),
    )


class ChatMessage(BaseModel):
    """A single message in a session's conversation."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    role: Role
    content: str = ""
    sources: List[MessageSource] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)
    is_streaming: bool = Field(default=False, description="True while the placeholder still receives chunks")
    is_error: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # backends hand out numeric ids as well as string tokens
        return str(value)


class SessionSummary(BaseModel):
    """Registry entry for one session, as listed by the backend."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str
    title: str = "New Chat"
    created_at: datetime = Field(default_factory=datetime.now)
    last_activity: datetime = Field(default_factory=datetime.now)
    message_count: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value)

    @field_validator("title", mode="before")
    @classmethod
    def _none_title(cls, value):
        return value or "New Chat"

    @field_validator("message_count", mode="before")
    @classmethod
    def _none_count(cls, value):
        return value or 0


class ReplyPayload(BaseModel):
    """Terminal payload of a send: authoritative text, citations and title."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    response: str = ""
    sources: List[MessageSource] = Field(default_factory=list)
    auto_title: Optional[str] = Field(default=None, validation_alias=AliasChoices("autoTitle", "auto_title"))

    @model_validator(mode="before")
    @classmethod
    def _pick_text(cls, data):
        # older backends answer with "message" instead of "response"
        if isinstance(data, dict) and not data.get("response"):
            data = {**data, "response": data.get("message") or ""}
        return data

    @field_validator("sources", mode="before")
    @classmethod
    def _none_sources(cls, value):
        return value or []


class ChatViewState(BaseModel):
    """Everything a view needs to render, with no transport detail."""
    sessions: List[SessionSummary] = Field(default_factory=list)
    current_session_id: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    is_loading: bool = False
    is_streaming: bool = False
    is_connected: bool = False
    error: Optional[str] = None
