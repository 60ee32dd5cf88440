"""Message model."""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from alumni_chat.database import Base


class Message(Base):
    """Immutable message in a conversation."""

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("conversation_id", "sequence", name="uq_messages_conversation_sequence"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid(as_uuid=True), ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    text = Column(Text, nullable=False)
    sequence = Column(Integer, nullable=False)  # 1-based position within the conversation
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    conversation = relationship(
        "Conversation",
        back_populates="messages",
        foreign_keys=[conversation_id]
    )

    def __repr__(self):
        return f"<Message {self.id} seq={self.sequence}>"
