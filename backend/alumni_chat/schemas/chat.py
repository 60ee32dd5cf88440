"""Chat request/response schemas."""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime
from uuid import UUID

from alumni_chat.config import get_settings


class UserSummary(BaseModel):
    """Display fields of a user, joined in from the directory at read time."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    profile_image: Optional[str] = None
    batch: Optional[str] = None
    branch: Optional[str] = None


class MessageOut(BaseModel):
    """A message populated with its sender's display data."""

    id: UUID
    conversation_id: UUID
    sender: Optional[UserSummary]
    text: str
    sequence: int
    created_at: datetime


class ConversationOut(BaseModel):
    """A conversation populated with participants and its latest message."""

    id: UUID
    participants: List[UserSummary]
    last_message: Optional[MessageOut] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class CreateConversationRequest(BaseModel):
    """Request to open (or create) a conversation with another user."""

    recipient_id: UUID = Field(..., description="User to chat with")

    class Config:
        json_schema_extra = {
            "example": {
                "recipient_id": "123e4567-e89b-12d3-a456-426614174000"
            }
        }


class SendMessageRequest(BaseModel):
    """Request to send a message to a conversation."""

    text: str = Field(..., min_length=1, description="Message body")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError("text cannot be blank")
        max_length = get_settings().max_message_length
        if len(v) > max_length:
            raise ValueError(f"text cannot exceed {max_length} characters")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "text": "Hi! Are you still at the Pune office?"
            }
        }


class StatusResponse(BaseModel):
    status: str = Field(default="success")
    message: str


class ClientFrame(BaseModel):
    """Frame sent by a client over the real-time channel."""

    type: Literal["join_conversation", "leave_conversation", "ping"]
    conversation_id: Optional[UUID] = None
