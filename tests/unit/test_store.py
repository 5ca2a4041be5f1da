"""Unit tests for the chat store."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domains.chat.store import ChatStore
from app.exceptions.chat import ConversationNotFoundError, PersistenceError
from models.chat_message import MessageRole


def database_down() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


@pytest.mark.asyncio
class TestChatStore:
    """Test cases for ChatStore."""

    async def test_read_failure_becomes_persistence_error(self, test_db: AsyncSession, user_id):
        store = ChatStore(test_db, user_id)

        with patch.object(test_db, "execute", AsyncMock(side_effect=database_down())):
            with pytest.raises(PersistenceError) as exc_info:
                await store.get_conversation(uuid.uuid4())

        assert exc_info.value.message == "Failed to load conversation"
        assert "database is locked" in exc_info.value.details["reason"]

    async def test_update_of_unknown_conversation(self, test_db: AsyncSession, user_id):
        store = ChatStore(test_db, user_id)

        with pytest.raises(ConversationNotFoundError):
            await store.update_conversation(uuid.uuid4(), updated_at=None)

    async def test_commit_failure_rolls_back(self, test_db: AsyncSession, user_id):
        store = ChatStore(test_db, user_id)
        conversation = await store.insert_conversation("Evening review")

        with patch.object(test_db, "commit", AsyncMock(side_effect=database_down())):
            with pytest.raises(PersistenceError) as exc_info:
                await store.insert_message(conversation.id, MessageRole.USER, "hello")

        assert exc_info.value.message == "Failed to save user message"
        assert await store.list_messages(conversation.id) == []
