"""Conversation and message persistence scoped to one owner."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.config import settings
from app.exceptions.chat import ConversationNotFoundError, PersistenceError
from models.base import utcnow
from models.chat_conversation import ChatConversation
from models.chat_message import ChatMessage, MessageRole

logger = logging.getLogger(__name__)


class ChatStore:
    """Durable storage for one user's conversations and messages.

    Every write commits on its own; nothing spans more than one call.
    """

    def __init__(self, db: AsyncSession, user_id: str):
        self.db = db
        self.user_id = user_id

    async def insert_conversation(self, title: str | None = None) -> ChatConversation:
        conversation = ChatConversation(
            user_id=self.user_id,
            title=title or settings.default_conversation_title,
        )
        self.db.add(conversation)
        await self._commit("create conversation")
        await self.db.refresh(conversation)
        return conversation

    async def get_conversation(self, conversation_id: UUID) -> ChatConversation:
        query = select(ChatConversation).where(
            ChatConversation.id == conversation_id, ChatConversation.user_id == self.user_id
        )
        result = await self._execute(query, "load conversation")
        conversation = result.scalar_one_or_none()

        if not conversation:
            raise ConversationNotFoundError(conversation_id)

        return conversation

    async def insert_message(self, conversation_id: UUID, role: MessageRole, content: str) -> ChatMessage:
        message = ChatMessage(
            conversation_id=conversation_id,
            user_id=self.user_id,
            role=role,
            content=content,
            created_at=utcnow(),
        )
        self.db.add(message)
        await self._commit(f"save {role.value} message")
        await self.db.refresh(message)
        return message

    async def update_conversation(
        self,
        conversation_id: UUID,
        *,
        updated_at: datetime,
        title: str | None = None,
    ) -> None:
        conversation = await self.get_conversation(conversation_id)
        if title is not None:
            conversation.title = title
        conversation.updated_at = updated_at
        await self._commit("update conversation")

    async def delete_conversation(self, conversation_id: UUID) -> None:
        conversation = await self.get_conversation(conversation_id)
        await self._execute(
            delete(ChatMessage).where(ChatMessage.conversation_id == conversation.id), "delete messages"
        )
        await self.db.delete(conversation)
        await self._commit("delete conversation")

    async def list_conversations(self) -> list[ChatConversation]:
        query = (
            select(ChatConversation)
            .where(ChatConversation.user_id == self.user_id)
            .order_by(ChatConversation.updated_at.desc())
        )
        result = await self._execute(query, "list conversations")
        return list(result.scalars().all())

    async def list_messages(self, conversation_id: UUID) -> list[ChatMessage]:
        await self.get_conversation(conversation_id)
        query = (
            select(ChatMessage)
            .where(ChatMessage.conversation_id == conversation_id)
            .order_by(ChatMessage.created_at)
        )
        result = await self._execute(query, "list messages")
        return list(result.scalars().all())

    async def _execute(self, statement, action: str):
        try:
            return await self.db.execute(statement)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to {action}: {str(e)}")
            raise PersistenceError(f"Failed to {action}", details={"reason": str(e)}) from e

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to {action}: {str(e)}")
            raise PersistenceError(f"Failed to {action}", details={"reason": str(e)}) from e
