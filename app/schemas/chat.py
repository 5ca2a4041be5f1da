"""Chat schemas for request/response serialization."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import ConfigDict, Field, field_validator

from models.chat_message import MessageRole

from .base import BaseModelSchema, BaseSchema


class HistoryMessage(BaseSchema):
    """Role/content pair sent to the inference gateway."""

    role: MessageRole
    content: str

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class ChatMessageResponse(BaseSchema):
    """Schema for chat message response."""

    id: UUID
    conversation_id: UUID
    user_id: str
    role: MessageRole
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatConversationCreate(BaseSchema):
    """Schema for creating a new conversation."""

    title: str | None = Field(None, max_length=255, description="Optional conversation title")


class ChatConversationResponse(BaseModelSchema):
    """Schema for chat conversation response."""

    user_id: str
    title: str

    model_config = ConfigDict(from_attributes=True)


class ChatRequest(BaseSchema):
    """Schema for chat request."""

    conversation_id: UUID | None = Field(None, description="Existing conversation ID, null for new")
    message: str = Field(..., min_length=1, max_length=10000, description="User message")

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message must not be empty")
        return v


class ChatResponse(BaseSchema):
    """Schema for a completed (non-streamed) send."""

    conversation_id: UUID
    user_message: ChatMessageResponse
    assistant_message: ChatMessageResponse | None = None
    content: str = Field(..., description="Full assistant text as generated")
    persisted: bool = Field(..., description="Whether the assistant reply was stored")
    persistence_error: str | None = None
    timestamp: datetime


class StreamEvent(BaseSchema):
    """One event of the server-sent stream relayed to the browser."""

    type: str = Field(..., description="delta | complete | error")
    conversation_id: UUID | None = None
    content: str | None = None
    message: str | None = None
    error_code: str | None = None
    persisted: bool | None = None
