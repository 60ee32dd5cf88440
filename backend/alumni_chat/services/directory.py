"""User directory lookups and read-side population of chat records.

Chat tables store only user ids. Display data (name, avatar, cohort) is
joined in when a conversation or message is returned, using one batched
query per response instead of one lookup per record.
"""
from typing import Dict, Iterable, List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from alumni_chat.models.user import User
from alumni_chat.models.conversation import Conversation
from alumni_chat.models.message import Message
from alumni_chat.schemas.chat import UserSummary, MessageOut, ConversationOut


class UserDirectory:
    """Read-only access to the alumni directory."""

    def __init__(self, db: Session):
        self.db = db

    def get_active_user(self, user_id) -> Optional[User]:
        """Return the user if it exists and is active."""
        return self.db.query(User).filter(
            User.id == user_id,
            User.is_active == True
        ).first()

    def summaries(self, user_ids: Iterable[UUID]) -> Dict[UUID, UserSummary]:
        """Batch-fetch display summaries keyed by user id."""
        ids = {user_id for user_id in user_ids if user_id is not None}
        if not ids:
            return {}

        users = self.db.query(User).filter(User.id.in_(ids)).all()
        return {user.id: UserSummary.model_validate(user) for user in users}

    def populate_messages(self, messages: List[Message]) -> List[MessageOut]:
        """Attach sender summaries to messages, preserving their order."""
        senders = self.summaries(message.sender_id for message in messages)
        return [self._message_out(message, senders) for message in messages]

    def populate_message(self, message: Message) -> MessageOut:
        return self.populate_messages([message])[0]

    def populate_conversations(self, conversations: List[Conversation]) -> List[ConversationOut]:
        """
        Attach participant summaries and latest messages to conversations.

        Issues one query for latest messages and one for all referenced
        users, regardless of how many conversations are passed in.
        """
        last_ids = [c.last_message_id for c in conversations if c.last_message_id]
        last_messages: Dict[UUID, Message] = {}
        if last_ids:
            rows = self.db.query(Message).filter(Message.id.in_(last_ids)).all()
            last_messages = {message.id: message for message in rows}

        user_ids = set()
        for conversation in conversations:
            user_ids.update(conversation.participant_ids)
        user_ids.update(message.sender_id for message in last_messages.values())
        users = self.summaries(user_ids)

        result = []
        for conversation in conversations:
            last_message = last_messages.get(conversation.last_message_id)
            result.append(ConversationOut(
                id=conversation.id,
                participants=[
                    users[participant_id]
                    for participant_id in conversation.participant_ids
                    if participant_id in users
                ],
                last_message=self._message_out(last_message, users) if last_message else None,
                is_active=conversation.is_active,
                created_at=conversation.created_at,
                updated_at=conversation.updated_at
            ))
        return result

    def populate_conversation(self, conversation: Conversation) -> ConversationOut:
        return self.populate_conversations([conversation])[0]

    @staticmethod
    def _message_out(message: Message, users: Dict[UUID, UserSummary]) -> MessageOut:
        return MessageOut(
            id=message.id,
            conversation_id=message.conversation_id,
            sender=users.get(message.sender_id),
            text=message.text,
            sequence=message.sequence,
            created_at=message.created_at
        )
