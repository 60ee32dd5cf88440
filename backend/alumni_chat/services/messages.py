"""Message store: append-only message log per conversation."""
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from alumni_chat.models.conversation import Conversation
from alumni_chat.models.message import Message
from alumni_chat.schemas.chat import MessageOut
from alumni_chat.services.conversations import as_uuid
from alumni_chat.services.directory import UserDirectory
from alumni_chat.services.errors import ConversationNotFound, NotParticipant
from alumni_chat.middleware.logging import get_logger

logger = get_logger()


class MessageStore:
    """Appends messages and keeps the conversation's latest pointer in step."""

    def __init__(self, db: Session, directory: UserDirectory | None = None):
        self.db = db
        self.directory = directory or UserDirectory(db)

    def append(self, conversation_id, sender_id, text: str) -> MessageOut:
        """
        Append a message and point the conversation at it.

        The conversation row is locked for the duration of the transaction,
        so appends to one conversation are serialized: each gets the next
        sequence number and unconditionally becomes the latest message.
        The insert and the pointer update commit together or not at all.

        Args:
            conversation_id: Target conversation
            sender_id: Authenticated sender, must be a participant
            text: Message body

        Returns:
            The stored message populated with its sender's display data

        Raises:
            ConversationNotFound: no such conversation
            NotParticipant: sender is not part of the conversation
        """
        sender_id = as_uuid(sender_id)

        conversation = self.db.query(Conversation).filter(
            Conversation.id == as_uuid(conversation_id)
        ).with_for_update().populate_existing().first()

        if conversation is None:
            self.db.rollback()
            raise ConversationNotFound()

        if not conversation.has_participant(sender_id):
            self.db.rollback()
            logger.warning(
                "message_send_denied",
                conversation_id=str(conversation_id),
                user_id=str(sender_id)
            )
            raise NotParticipant()

        now = datetime.utcnow()
        sequence = conversation.message_count + 1

        message = Message(
            conversation_id=conversation.id,
            sender_id=sender_id,
            text=text,
            sequence=sequence,
            created_at=now
        )

        try:
            self.db.add(message)
            self.db.flush()

            conversation.last_message_id = message.id
            conversation.message_count = sequence
            conversation.updated_at = now
            conversation.is_active = True

            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(
                "message_append_failed",
                conversation_id=str(conversation_id),
                sender_id=str(sender_id)
            )
            raise

        logger.info(
            "message_appended",
            conversation_id=str(message.conversation_id),
            message_id=str(message.id),
            sequence=sequence,
            text_length=len(text)
        )

        return self.directory.populate_message(message)
