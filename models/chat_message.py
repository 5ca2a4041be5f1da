"""
Chat message model for AI assistant messages.
"""

import enum

from sqlalchemy import Column, Enum, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class MessageRole(str, enum.Enum):
    """Message role enumeration."""

    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """
    One user or assistant turn within a conversation.
    """

    __tablename__ = "chat_messages"

    conversation_id = Column(
        UUID(), ForeignKey("chat_conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(255), nullable=False)
    role = Column(Enum(MessageRole, values_callable=lambda e: [m.value for m in e]), nullable=False)
    content = Column(Text, nullable=False)

    # Relationships
    conversation = relationship("ChatConversation", back_populates="messages")
