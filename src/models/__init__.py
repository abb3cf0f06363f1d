"""Conversation model type definitions."""

from src.models.conversation import Conversation
from src.models.message import Attachment, Message, MessageLifecycle, MessageRole, Source

__all__ = [
    "Attachment",
    "Conversation",
    "Message",
    "MessageLifecycle",
    "MessageRole",
    "Source",
]
