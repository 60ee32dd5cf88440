"""Conversation store: two-party conversations and their history."""
from typing import List
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import uuid

from alumni_chat.models.conversation import Conversation, make_pair_key
from alumni_chat.models.message import Message
from alumni_chat.schemas.chat import ConversationOut, MessageOut
from alumni_chat.services.directory import UserDirectory
from alumni_chat.services.errors import (
    ConversationNotFound,
    NotParticipant,
    RecipientNotFound,
    SelfConversationError,
)
from alumni_chat.middleware.logging import get_logger

logger = get_logger()


def as_uuid(value) -> uuid.UUID:
    """Coerce an id given as str or UUID into a UUID."""
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


class ConversationStore:
    """Owns conversation identity, membership and the latest-message pointer."""

    def __init__(self, db: Session, directory: UserDirectory | None = None):
        self.db = db
        self.directory = directory or UserDirectory(db)

    def get_or_create(self, requester_id, recipient_id) -> ConversationOut:
        """
        Return the conversation between two users, creating it on first contact.

        Lookup is by the unordered pair, so (A, B) and (B, A) resolve to the
        same record. The unique ``pair_key`` column rejects a concurrent
        duplicate insert; the losing request rolls back and reads the
        winner's row.

        Raises:
            SelfConversationError: requester and recipient are the same user
            RecipientNotFound: recipient is unknown or inactive
        """
        requester_id = as_uuid(requester_id)
        recipient_id = as_uuid(recipient_id)

        if requester_id == recipient_id:
            raise SelfConversationError()

        if not self.directory.get_active_user(recipient_id):
            raise RecipientNotFound()

        pair_key = make_pair_key(requester_id, recipient_id)
        conversation = self._find_by_pair(pair_key)

        if conversation is None:
            conversation = Conversation(
                initiator_id=requester_id,
                recipient_id=recipient_id,
                pair_key=pair_key
            )
            self.db.add(conversation)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                conversation = self._find_by_pair(pair_key)
                if conversation is None:
                    raise
                logger.info(
                    "conversation_create_race_resolved",
                    conversation_id=str(conversation.id)
                )
            else:
                logger.info(
                    "conversation_created",
                    conversation_id=str(conversation.id),
                    initiator_id=str(requester_id)
                )

        elif not conversation.is_active:
            conversation.is_active = True
            self.db.commit()
            logger.info("conversation_reactivated", conversation_id=str(conversation.id))

        return self.directory.populate_conversation(conversation)

    def list_for_user(self, user_id) -> List[ConversationOut]:
        """
        Active conversations of a user that have at least one message.

        Most recently updated first.
        """
        user_id = as_uuid(user_id)

        conversations = self.db.query(Conversation).filter(
            or_(Conversation.initiator_id == user_id, Conversation.recipient_id == user_id),
            Conversation.is_active == True,
            Conversation.last_message_id.isnot(None)
        ).order_by(Conversation.updated_at.desc()).all()

        # Drop accidental duplicates, keeping the first (newest) entry
        unique = []
        seen = set()
        for conversation in conversations:
            if conversation.id not in seen:
                unique.append(conversation)
                seen.add(conversation.id)

        return self.directory.populate_conversations(unique)

    def get(self, conversation_id, requester_id) -> ConversationOut:
        """Single populated conversation, visible to its participants only."""
        conversation = self.get_for_participant(conversation_id, requester_id)
        return self.directory.populate_conversation(conversation)

    def list_messages(self, conversation_id, requester_id) -> List[MessageOut]:
        """All messages of a conversation, oldest first."""
        conversation = self.get_for_participant(conversation_id, requester_id)

        messages = self.db.query(Message).filter(
            Message.conversation_id == conversation.id
        ).order_by(Message.sequence.asc()).all()

        return self.directory.populate_messages(messages)

    def deactivate(self, conversation_id, requester_id) -> None:
        """Soft-delete: hide the conversation from conversation lists."""
        conversation = self.get_for_participant(conversation_id, requester_id)
        if conversation.is_active:
            conversation.is_active = False
            self.db.commit()
            logger.info(
                "conversation_deactivated",
                conversation_id=str(conversation.id),
                user_id=str(requester_id)
            )

    def get_for_participant(self, conversation_id, user_id) -> Conversation:
        """
        Load a conversation and check the caller belongs to it.

        Raises:
            ConversationNotFound: no such conversation
            NotParticipant: the caller is not one of the two participants
        """
        conversation = self.db.get(Conversation, as_uuid(conversation_id))
        if conversation is None:
            raise ConversationNotFound()

        if not conversation.has_participant(user_id):
            logger.warning(
                "conversation_access_denied",
                conversation_id=str(conversation.id),
                user_id=str(user_id)
            )
            raise NotParticipant()

        return conversation

    def _find_by_pair(self, pair_key: str) -> Conversation | None:
        return self.db.query(Conversation).filter(
            Conversation.pair_key == pair_key
        ).first()
