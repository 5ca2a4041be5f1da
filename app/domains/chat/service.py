"""Chat service layer: the streaming send pipeline and conversation management."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.domains.chat.gateway import InferenceGateway
from app.domains.chat.store import ChatStore
from app.domains.chat.stream import iter_deltas
from app.exceptions.base import BaseAppException
from app.exceptions.chat import (
    ChatValidationError,
    ConversationNotFoundError,
    PipelineClosedError,
    StreamInProgressError,
)
from app.schemas.chat import HistoryMessage
from models.base import utcnow
from models.chat_conversation import ChatConversation
from models.chat_message import ChatMessage, MessageRole

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], Any]
CompleteCallback = Callable[[str], Any]
ErrorCallback = Callable[[BaseAppException], Any]


def derive_title(text: str, limit: int | None = None) -> str:
    """Conversation title from the first user message."""
    limit = limit or settings.conversation_title_length
    title = text[:limit]
    if len(text) > limit:
        title += "..."
    return title


@dataclass
class SendResult:
    """Outcome of one ``send_message`` call."""

    conversation_id: UUID
    user_message: ChatMessage
    assistant_message: ChatMessage | None = None
    content: str = ""
    persistence_error: BaseAppException | None = None
    cancelled: bool = False


class ChatService:
    """Service class for assistant chat backed by a streamed completion gateway.

    One instance holds at most one streaming session. Callers that want
    concurrent streams use separate instances; nothing is shared between them.
    """

    def __init__(self, db: AsyncSession, user_id: str, gateway: InferenceGateway | None = None):
        """Initialize chat service.

        Args:
            db: Async database session for data operations.
            user_id: Owner identity all conversations are scoped to.
            gateway: Inference gateway; built from settings when omitted.
        """
        self.store = ChatStore(db, user_id)
        self.gateway = gateway or InferenceGateway.from_settings()
        self._streaming = False
        self._closed = False
        self._cancel = asyncio.Event()

    @property
    def is_streaming(self) -> bool:
        return self._streaming

    @property
    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Dispose of the pipeline, abandoning any in-flight stream.

        No further callbacks fire and no assistant message is stored for the
        abandoned turn.
        """
        if not self._closed:
            logger.info("Chat pipeline closed")
        self._closed = True
        self._cancel.set()

    async def send_message(
        self,
        conversation_id: UUID | None,
        text: str,
        prior_messages: Iterable[Any],
        on_delta: DeltaCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback | None = None,
    ) -> SendResult:
        """Send a user message and stream the assistant reply.

        Args:
            conversation_id: Target conversation, or None to start a new one.
            text: The user's message.
            prior_messages: Earlier turns (objects or mappings with role and
                content) in chronological order.
            on_delta: Called synchronously with every text delta, in order.
            on_complete: Called once with the full reply text.
            on_error: Receives storage failures that happen after generation,
                including the conversation having been deleted mid-stream.

        Returns:
            SendResult describing what was stored.

        Raises:
            ChatValidationError: Text is empty after trimming.
            PipelineClosedError: The pipeline was closed.
            StreamInProgressError: A send is already streaming on this instance.
            ConversationNotFoundError: The conversation does not exist.
            PersistenceError: The user message could not be stored.
            RateLimitedError, QuotaExhaustedError, InferenceFailureError:
                The gateway call failed; the user message stays stored.
        """
        if not text or not text.strip():
            raise ChatValidationError()
        if self._closed:
            raise PipelineClosedError()
        if self._streaming:
            raise StreamInProgressError()

        self._streaming = True
        try:
            return await self._send(conversation_id, text, list(prior_messages), on_delta, on_complete, on_error)
        finally:
            self._streaming = False

    async def _send(
        self,
        conversation_id: UUID | None,
        text: str,
        prior_messages: list[Any],
        on_delta: DeltaCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback | None,
    ) -> SendResult:
        if conversation_id is None:
            conversation = await self.store.insert_conversation()
        else:
            conversation = await self.store.get_conversation(conversation_id)
        conversation_id = conversation.id

        user_message = await self.store.insert_message(conversation_id, MessageRole.USER, text)
        result = SendResult(conversation_id=conversation_id, user_message=user_message)

        history = [self._history_entry(m) for m in prior_messages]
        history.append({"role": MessageRole.USER.value, "content": text})

        if self._cancel.is_set():
            logger.info(f"Pipeline closed before contacting the gateway for conversation {conversation_id}")
            result.cancelled = True
            return result

        buffer: list[str] = []
        try:
            async with self.gateway.stream_chat(history) as chunks:
                deltas = iter_deltas(
                    chunks,
                    max_line_length=settings.ai_stream_max_line_length,
                    cancel_event=self._cancel,
                )
                async with aclosing(deltas):
                    async for delta in deltas:
                        if self._closed:
                            break
                        buffer.append(delta)
                        on_delta(delta)
        except BaseAppException as e:
            logger.error(f"Chat stream failed for conversation {conversation_id}: {e.message}")
            await self._touch_after_failure(conversation_id)
            raise

        result.content = "".join(buffer)

        if self._closed:
            logger.info(f"Stream for conversation {conversation_id} abandoned after {len(buffer)} deltas")
            result.cancelled = True
            return result

        conversation_exists = True
        if result.content:
            try:
                await self.store.get_conversation(conversation_id)
                result.assistant_message = await self.store.insert_message(
                    conversation_id, MessageRole.ASSISTANT, result.content
                )
            except ConversationNotFoundError as e:
                conversation_exists = False
                self._report(result, e, on_error)
            except BaseAppException as e:
                self._report(result, e, on_error)

        if conversation_exists:
            title = derive_title(text) if not prior_messages else None
            try:
                await self.store.update_conversation(conversation_id, title=title, updated_at=utcnow())
            except BaseAppException as e:
                self._report(result, e, on_error)

        if self._closed:
            result.cancelled = True
        else:
            on_complete(result.content)
        return result

    async def create_conversation(self, title: str | None = None) -> ChatConversation:
        return await self.store.insert_conversation(title)

    async def delete_conversation(self, conversation_id: UUID) -> None:
        await self.store.delete_conversation(conversation_id)
        logger.info(f"Deleted conversation {conversation_id}")

    async def list_conversations(self) -> list[ChatConversation]:
        return await self.store.list_conversations()

    async def list_messages(self, conversation_id: UUID) -> list[ChatMessage]:
        return await self.store.list_messages(conversation_id)

    # Private helper methods

    @staticmethod
    def _history_entry(message: Any) -> dict[str, str]:
        return HistoryMessage.model_validate(message).model_dump()

    async def _touch_after_failure(self, conversation_id: UUID) -> None:
        try:
            await self.store.update_conversation(conversation_id, updated_at=utcnow())
        except BaseAppException as e:
            logger.warning(f"Could not bump conversation {conversation_id} after failed send: {e.message}")

    def _report(self, result: SendResult, error: BaseAppException, on_error: ErrorCallback | None) -> None:
        logger.error(f"Reply generated but not fully stored for conversation {result.conversation_id}")
        if result.persistence_error is None:
            result.persistence_error = error
        if on_error is not None:
            on_error(error)
