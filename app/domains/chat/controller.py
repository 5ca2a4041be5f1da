"""Chat API controller with FastAPI endpoints."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import suppress
from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path, status
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.dependencies import get_current_user_id, validate_token
from app.database import get_db, get_session_factory
from app.domains.chat.gateway import InferenceGateway
from app.domains.chat.service import ChatService
from app.exceptions.base import BaseAppException
from app.schemas.base import ResponseSchema
from app.schemas.chat import (
    ChatConversationCreate,
    ChatConversationResponse,
    ChatMessageResponse,
    ChatRequest,
    ChatResponse,
    HistoryMessage,
    StreamEvent,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/chat",
    tags=["chat"],
    dependencies=[Depends(validate_token)],
)


def get_gateway() -> InferenceGateway:
    """Inference gateway built from settings."""
    return InferenceGateway.from_settings()


def _error_response(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ResponseSchema(status="error", message=message, data=None).model_dump(),
    )


def _sse(payload: str) -> str:
    return f"data: {payload}\n\n"


@router.post("/conversations", response_model=ResponseSchema, status_code=201)
async def create_conversation(
    body: ChatConversationCreate | None = Body(None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: InferenceGateway = Depends(get_gateway),
):
    """Create an empty conversation.

    Args:
        body: Optional title
        user_id: Current authenticated user
        db: Database session

    Returns:
        The created conversation
    """
    try:
        service = ChatService(db, user_id, gateway)
        conversation = await service.create_conversation(body.title if body else None)

        return ResponseSchema(
            status="success",
            message="Conversation created successfully",
            data=ChatConversationResponse.model_validate(conversation).model_dump(mode="json"),
        )

    except BaseAppException:
        raise
    except Exception as e:
        logger.error(f"Error creating conversation: {str(e)}")
        return _error_response("Failed to create conversation")


@router.get("/conversations", response_model=ResponseSchema)
async def get_conversations(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: InferenceGateway = Depends(get_gateway),
):
    """Get all conversations for the current user, most recently updated first."""
    try:
        service = ChatService(db, user_id, gateway)
        conversations = await service.list_conversations()

        return ResponseSchema(
            status="success",
            message="Conversations retrieved successfully",
            data=[ChatConversationResponse.model_validate(c).model_dump(mode="json") for c in conversations],
        )

    except BaseAppException:
        raise
    except Exception as e:
        logger.error(f"Error retrieving conversations: {str(e)}")
        return _error_response("Failed to retrieve conversations")


@router.get("/conversations/{conversation_id}/messages", response_model=ResponseSchema)
async def get_conversation_messages(
    conversation_id: UUID = Path(..., description="Conversation ID"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: InferenceGateway = Depends(get_gateway),
):
    """Get the messages of a conversation, oldest first."""
    try:
        service = ChatService(db, user_id, gateway)
        messages = await service.list_messages(conversation_id)

        return ResponseSchema(
            status="success",
            message="Messages retrieved successfully",
            data=[ChatMessageResponse.model_validate(m).model_dump(mode="json") for m in messages],
        )

    except BaseAppException:
        raise
    except Exception as e:
        logger.error(f"Error retrieving messages: {str(e)}")
        return _error_response("Failed to retrieve messages")


@router.delete("/conversations/{conversation_id}", response_model=ResponseSchema)
async def delete_conversation(
    conversation_id: UUID = Path(..., description="Conversation ID"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: InferenceGateway = Depends(get_gateway),
):
    """Delete a conversation and all of its messages."""
    try:
        service = ChatService(db, user_id, gateway)
        await service.delete_conversation(conversation_id)

        return ResponseSchema(
            status="success",
            message="Conversation deleted successfully",
            data=None,
        )

    except BaseAppException:
        raise
    except Exception as e:
        logger.error(f"Error deleting conversation: {str(e)}")
        return _error_response("Failed to delete conversation")


@router.post("/messages", response_model=ResponseSchema, status_code=201)
async def send_chat_message(
    chat_request: ChatRequest = Body(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    gateway: InferenceGateway = Depends(get_gateway),
):
    """Send a message and wait for the full assistant reply.

    Args:
        chat_request: Message and optional conversation ID
        user_id: Current authenticated user
        db: Database session

    Returns:
        Stored user message, assistant reply and persistence status
    """
    service = ChatService(db, user_id, gateway)
    prior = await _load_history(service, chat_request.conversation_id)

    result = await service.send_message(
        chat_request.conversation_id,
        chat_request.message,
        prior,
        on_delta=lambda _delta: None,
        on_complete=lambda _content: None,
    )

    response = ChatResponse(
        conversation_id=result.conversation_id,
        user_message=ChatMessageResponse.model_validate(result.user_message),
        assistant_message=(
            ChatMessageResponse.model_validate(result.assistant_message) if result.assistant_message else None
        ),
        content=result.content,
        persisted=result.persistence_error is None,
        persistence_error=result.persistence_error.message if result.persistence_error else None,
        timestamp=datetime.now(UTC),
    )

    return ResponseSchema(
        status="success",
        message="Message sent successfully",
        data=response.model_dump(mode="json"),
    )


@router.post("/messages/stream")
async def stream_chat_message(
    chat_request: ChatRequest = Body(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory),
    gateway: InferenceGateway = Depends(get_gateway),
):
    """Send a message and relay the reply as server-sent events.

    Emits ``delta`` events as text arrives, then a single ``complete`` or
    ``error`` event, then ``data: [DONE]``. Unknown conversations are rejected
    with 404 before the stream starts.
    """
    prior = await _load_history(ChatService(db, user_id, gateway), chat_request.conversation_id)

    return StreamingResponse(
        _relay(session_factory, user_id, gateway, chat_request, prior),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def _load_history(service: ChatService, conversation_id: UUID | None) -> list[dict[str, str]]:
    if conversation_id is None:
        return []
    messages = await service.list_messages(conversation_id)
    return [HistoryMessage.model_validate(m).model_dump() for m in messages]


async def _relay(
    session_factory: async_sessionmaker,
    user_id: str,
    gateway: InferenceGateway,
    chat_request: ChatRequest,
    prior: list[dict[str, str]],
) -> AsyncIterator[str]:
    queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()

    async with session_factory() as session:
        service = ChatService(session, user_id, gateway)

        async def run() -> None:
            try:
                result = await service.send_message(
                    chat_request.conversation_id,
                    chat_request.message,
                    prior,
                    on_delta=lambda delta: queue.put_nowait(StreamEvent(type="delta", content=delta)),
                    on_complete=lambda _content: None,
                )
                if not result.cancelled:
                    queue.put_nowait(
                        StreamEvent(
                            type="complete",
                            conversation_id=result.conversation_id,
                            content=result.content,
                            persisted=result.persistence_error is None,
                            message=result.persistence_error.message if result.persistence_error else None,
                        )
                    )
            except BaseAppException as e:
                queue.put_nowait(StreamEvent(type="error", message=e.message, error_code=e.error_code))
            except Exception as e:
                logger.error(f"Unexpected error in chat stream: {str(e)}")
                queue.put_nowait(
                    StreamEvent(type="error", message="An unexpected error occurred", error_code="INTERNAL_ERROR")
                )
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(run())
        try:
            while (event := await queue.get()) is not None:
                yield _sse(event.model_dump_json(exclude_none=True))
            yield _sse("[DONE]")
        finally:
            service.close()
            if not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
