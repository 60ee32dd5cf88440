"""Pydantic schemas for request/response validation."""
from alumni_chat.schemas.chat import (
    UserSummary,
    MessageOut,
    ConversationOut,
    CreateConversationRequest,
    SendMessageRequest,
    StatusResponse,
    ClientFrame,
)

__all__ = [
    "UserSummary",
    "MessageOut",
    "ConversationOut",
    "CreateConversationRequest",
    "SendMessageRequest",
    "StatusResponse",
    "ClientFrame",
]
