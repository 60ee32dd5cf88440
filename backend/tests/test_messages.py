"""Tests for the message store."""
import uuid
import pytest
from sqlalchemy.orm import Session

from alumni_chat.database import SessionLocal
from alumni_chat.models.conversation import Conversation
from alumni_chat.models.message import Message
from alumni_chat.services.conversations import ConversationStore
from alumni_chat.services.messages import MessageStore
from alumni_chat.services.errors import ConversationNotFound, NotParticipant


@pytest.fixture
def conversation(db: Session, alice, bob):
    return ConversationStore(db).get_or_create(alice.id, bob.id)


def test_append_returns_durable_populated_message(db: Session, alice, conversation):
    message = MessageStore(db).append(conversation.id, alice.id, "hello")

    assert message.id is not None
    assert message.conversation_id == conversation.id
    assert message.text == "hello"
    assert message.sequence == 1
    assert message.created_at is not None
    assert message.sender.id == alice.id
    assert message.sender.name == "Alice Menon"


def test_append_moves_latest_pointer(db: Session, alice, bob, conversation):
    """Test that the conversation always points at the newest message."""
    store = MessageStore(db)

    for i, sender in enumerate([alice, bob, alice]):
        message = store.append(conversation.id, sender.id, f"message {i}")

        db.expire_all()
        stored = db.get(Conversation, conversation.id)
        assert stored.last_message_id == message.id
        assert stored.message_count == i + 1


def test_latest_pointer_belongs_to_same_conversation(db: Session, alice, bob, carol):
    conversations = ConversationStore(db)
    with_bob = conversations.get_or_create(alice.id, bob.id)
    with_carol = conversations.get_or_create(alice.id, carol.id)
    store = MessageStore(db)

    store.append(with_bob.id, alice.id, "to bob")
    store.append(with_carol.id, alice.id, "to carol")

    db.expire_all()
    for conversation_id in (with_bob.id, with_carol.id):
        stored = db.get(Conversation, conversation_id)
        latest = db.get(Message, stored.last_message_id)
        assert latest.conversation_id == conversation_id


def test_append_touches_updated_at(db: Session, alice, conversation):
    before = db.get(Conversation, conversation.id).updated_at

    message = MessageStore(db).append(conversation.id, alice.id, "hello")

    db.expire_all()
    stored = db.get(Conversation, conversation.id)
    assert stored.updated_at >= before
    assert stored.updated_at == message.created_at


def test_append_unknown_conversation(db: Session, alice):
    with pytest.raises(ConversationNotFound):
        MessageStore(db).append(uuid.uuid4(), alice.id, "hello")

    assert db.query(Message).count() == 0


def test_append_by_non_participant_is_forbidden(db: Session, carol, conversation):
    with pytest.raises(NotParticipant):
        MessageStore(db).append(conversation.id, carol.id, "let me in")

    db.expire_all()
    assert db.query(Message).count() == 0
    assert db.get(Conversation, conversation.id).last_message_id is None


def test_appends_from_separate_sessions_stay_sequential(db: Session, alice, bob, conversation):
    """Each append reads the current count even when its session holds an older copy."""
    first, second = SessionLocal(), SessionLocal()
    try:
        # Loaded before any message exists
        assert second.get(Conversation, conversation.id).message_count == 0

        m1 = MessageStore(first).append(conversation.id, alice.id, "one")
        m2 = MessageStore(second).append(conversation.id, bob.id, "two")
        m3 = MessageStore(first).append(conversation.id, alice.id, "three")
    finally:
        first.close()
        second.close()

    assert [m.sequence for m in (m1, m2, m3)] == [1, 2, 3]

    db.expire_all()
    stored = db.get(Conversation, conversation.id)
    assert stored.message_count == 3
    assert stored.last_message_id == m3.id
    history = ConversationStore(db).list_messages(conversation.id, alice.id)
    assert [m.text for m in history] == ["one", "two", "three"]
