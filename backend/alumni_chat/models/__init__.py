"""Database models."""
from alumni_chat.models.user import User
from alumni_chat.models.conversation import Conversation
from alumni_chat.models.message import Message

__all__ = ["User", "Conversation", "Message"]
