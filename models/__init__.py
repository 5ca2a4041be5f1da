"""
Models package initialization.
"""

from .base import Base, BaseModel
from .chat_conversation import ChatConversation
from .chat_message import ChatMessage, MessageRole

__all__ = [
    "Base",
    "BaseModel",
    # Chat models
    "ChatConversation",
    "ChatMessage",
    "MessageRole",
]
