"""
Chat conversation model for AI assistant conversations.
"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class ChatConversation(BaseModel):
    """
    A titled, ordered thread of chat messages belonging to one user.
    """

    __tablename__ = "chat_conversations"

    user_id = Column(String(255), nullable=False, index=True)  # Auth subject of the owner
    title = Column(String(255), nullable=False)  # Placeholder until the first exchange

    # Relationships
    messages = relationship(
        "ChatMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ChatMessage.created_at",
    )
