"""Tests for the conversation store."""
import uuid
import pytest
from sqlalchemy.orm import Session

from alumni_chat.models.conversation import Conversation, make_pair_key
from alumni_chat.services.conversations import ConversationStore
from alumni_chat.services.messages import MessageStore
from alumni_chat.services.errors import (
    ConversationNotFound,
    NotParticipant,
    RecipientNotFound,
    SelfConversationError,
)


def test_pair_key_ignores_order():
    a, b = uuid.uuid4(), uuid.uuid4()

    assert make_pair_key(a, b) == make_pair_key(b, a)


def test_new_conversation_has_no_latest_message(db: Session, alice, bob):
    conversation = ConversationStore(db).get_or_create(alice.id, bob.id)

    assert conversation.last_message is None
    assert [p.id for p in conversation.participants] == [alice.id, bob.id]
    assert conversation.participants[0].name == "Alice Menon"
    assert conversation.participants[1].branch == "Civil"
    assert conversation.is_active is True


def test_get_or_create_is_idempotent_in_either_order(db: Session, alice, bob):
    """Test that (A, B) and (B, A) resolve to one stored conversation."""
    store = ConversationStore(db)

    first = store.get_or_create(alice.id, bob.id)
    second = store.get_or_create(alice.id, bob.id)
    reversed_pair = store.get_or_create(bob.id, alice.id)

    assert first.id == second.id == reversed_pair.id
    assert db.query(Conversation).count() == 1


def test_get_or_create_accepts_string_ids(db: Session, alice, bob):
    store = ConversationStore(db)

    by_uuid = store.get_or_create(alice.id, bob.id)
    by_str = store.get_or_create(str(bob.id), str(alice.id))

    assert by_uuid.id == by_str.id


def test_concurrent_first_contact_reuses_existing_row(db: Session, alice, bob):
    """
    Test the losing side of a first-contact race.

    The lookup misses, the insert hits the unique pair constraint, and the
    store falls back to the row created by the other request.
    """
    store = ConversationStore(db)
    winner = store.get_or_create(alice.id, bob.id)

    real_find = store._find_by_pair
    calls = []

    def stale_then_real(pair_key):
        calls.append(pair_key)
        return None if len(calls) == 1 else real_find(pair_key)

    store._find_by_pair = stale_then_real

    loser = store.get_or_create(bob.id, alice.id)

    assert loser.id == winner.id
    assert len(calls) == 2
    assert db.query(Conversation).count() == 1


def test_self_conversation_rejected_before_any_write(db: Session, alice):
    with pytest.raises(SelfConversationError):
        ConversationStore(db).get_or_create(alice.id, alice.id)

    assert db.query(Conversation).count() == 0


def test_unknown_recipient_rejected(db: Session, alice):
    with pytest.raises(RecipientNotFound):
        ConversationStore(db).get_or_create(alice.id, uuid.uuid4())

    assert db.query(Conversation).count() == 0


def test_list_for_user_hides_conversations_without_messages(db: Session, alice, bob):
    store = ConversationStore(db)
    store.get_or_create(alice.id, bob.id)

    assert store.list_for_user(alice.id) == []
    assert store.list_for_user(bob.id) == []


def test_conversation_listed_after_first_message(db: Session, alice, bob):
    store = ConversationStore(db)
    conversation = store.get_or_create(alice.id, bob.id)

    MessageStore(db).append(conversation.id, alice.id, "hello")

    for user in (alice, bob):
        listed = store.list_for_user(user.id)
        assert [c.id for c in listed] == [conversation.id]
        assert listed[0].last_message.text == "hello"
        assert listed[0].last_message.sender.name == "Alice Menon"


def test_list_for_user_most_recent_first(db: Session, alice, bob, carol):
    store = ConversationStore(db)
    messages = MessageStore(db)
    with_bob = store.get_or_create(alice.id, bob.id)
    with_carol = store.get_or_create(alice.id, carol.id)

    messages.append(with_bob.id, alice.id, "first")
    messages.append(with_carol.id, carol.id, "second")
    assert [c.id for c in store.list_for_user(alice.id)] == [with_carol.id, with_bob.id]

    messages.append(with_bob.id, bob.id, "third")
    assert [c.id for c in store.list_for_user(alice.id)] == [with_bob.id, with_carol.id]


def test_list_for_user_only_own_conversations(db: Session, alice, bob, carol):
    store = ConversationStore(db)
    conversation = store.get_or_create(alice.id, bob.id)
    MessageStore(db).append(conversation.id, bob.id, "hi")

    assert store.list_for_user(carol.id) == []


def test_list_messages_oldest_first(db: Session, alice, bob):
    store = ConversationStore(db)
    conversation = store.get_or_create(alice.id, bob.id)
    messages = MessageStore(db)
    texts = ["one", "two", "three", "four"]
    for i, text in enumerate(texts):
        messages.append(conversation.id, (alice if i % 2 == 0 else bob).id, text)

    history = store.list_messages(conversation.id, bob.id)

    assert [m.text for m in history] == texts
    assert [m.sequence for m in history] == [1, 2, 3, 4]
    assert history[1].sender.name == "Bob Fernandes"


def test_list_messages_unknown_conversation(db: Session, alice):
    with pytest.raises(ConversationNotFound):
        ConversationStore(db).list_messages(uuid.uuid4(), alice.id)


def test_list_messages_forbidden_for_non_participant(db: Session, alice, bob, carol):
    store = ConversationStore(db)
    conversation = store.get_or_create(alice.id, bob.id)
    MessageStore(db).append(conversation.id, alice.id, "private")

    with pytest.raises(NotParticipant) as exc_info:
        store.list_messages(conversation.id, carol.id)

    assert str(alice.id) not in str(exc_info.value)
    assert str(bob.id) not in str(exc_info.value)


def test_deactivate_hides_conversation_until_reopened(db: Session, alice, bob):
    store = ConversationStore(db)
    conversation = store.get_or_create(alice.id, bob.id)
    MessageStore(db).append(conversation.id, alice.id, "hello")

    store.deactivate(conversation.id, bob.id)
    assert store.list_for_user(alice.id) == []

    reopened = store.get_or_create(bob.id, alice.id)
    assert reopened.id == conversation.id
    assert reopened.is_active is True
    assert [c.id for c in store.list_for_user(alice.id)] == [conversation.id]


def test_new_message_reactivates_conversation(db: Session, alice, bob):
    store = ConversationStore(db)
    conversation = store.get_or_create(alice.id, bob.id)
    MessageStore(db).append(conversation.id, alice.id, "hello")
    store.deactivate(conversation.id, alice.id)

    MessageStore(db).append(conversation.id, bob.id, "still there?")

    assert [c.id for c in store.list_for_user(alice.id)] == [conversation.id]


def test_deactivate_forbidden_for_non_participant(db: Session, alice, bob, carol):
    store = ConversationStore(db)
    conversation = store.get_or_create(alice.id, bob.id)

    with pytest.raises(NotParticipant):
        store.deactivate(conversation.id, carol.id)
