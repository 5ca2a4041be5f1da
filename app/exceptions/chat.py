# ruff: noqa: D107
"""Chat pipeline exceptions."""

from typing import Any
from uuid import UUID

from .base import BaseAppException, ConflictError, NotFoundError, ValidationError


class PersistenceError(BaseAppException):
    """Exception raised when a conversation or message write fails."""

    def __init__(
        self,
        message: str = "Failed to save chat data",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, status_code=500, error_code="PERSISTENCE_ERROR", details=details)


class ConversationNotFoundError(NotFoundError):
    """Exception raised when a conversation does not exist for the caller."""

    def __init__(self, conversation_id: UUID | str | None = None):
        details = {"conversation_id": str(conversation_id)} if conversation_id else None
        super().__init__("Conversation not found", details, error_code="CONVERSATION_NOT_FOUND")


class StreamInProgressError(ConflictError):
    """Exception raised when a send is issued while another is streaming."""

    def __init__(self, message: str = "A response is already streaming for this chat"):
        super().__init__(message, error_code="STREAM_IN_PROGRESS")


class PipelineClosedError(ConflictError):
    """Exception raised when a disposed pipeline is asked to send."""

    def __init__(self, message: str = "Chat pipeline has been closed"):
        super().__init__(message, error_code="PIPELINE_CLOSED")


class ChatValidationError(ValidationError):
    """Exception raised when a chat request is invalid."""

    def __init__(self, message: str = "Message must not be empty"):
        super().__init__(message)
