"""Conversation model."""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from alumni_chat.database import Base


def make_pair_key(user_a, user_b) -> str:
    """Normalize an unordered pair of user ids into a single lookup key."""
    first, second = sorted((str(user_a), str(user_b)))
    return f"{first}:{second}"


class Conversation(Base):
    """Two-party conversation, unique per unordered pair of users."""

    __tablename__ = "conversations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    initiator_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    recipient_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    pair_key = Column(String(80), unique=True, nullable=False)
    last_message_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("messages.id", use_alter=True, name="fk_conversations_last_message_id"),
        nullable=True
    )
    message_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    messages = relationship(
        "Message",
        back_populates="conversation",
        foreign_keys="Message.conversation_id",
        order_by="Message.sequence"
    )

    @property
    def participant_ids(self) -> list:
        """Participants in creation order: initiator first."""
        return [self.initiator_id, self.recipient_id]

    def has_participant(self, user_id) -> bool:
        return str(user_id) in (str(self.initiator_id), str(self.recipient_id))

    def __repr__(self):
        return f"<Conversation {self.id}>"
