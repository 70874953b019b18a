import asyncio

import pytest

from app.chat import delivery as delivery_module
from app.chat.errors import (
    ConversationClosed,
    ConversationNotFound,
    InvalidConversation,
    InvalidMessage,
    NotParticipant,
    PersistenceError,
)


def test_send_persists_one_unread_message(delivery, store):
    msg = asyncio.run(delivery.send_message(1, "J", "Hello"))

    assert msg["sender_id"] == "J"
    assert msg["is_read"] is False
    assert msg["message"] == "Hello"
    assert store.messages_in(1) == [msg]


def test_send_advances_last_message_at(delivery, store):
    msg = asyncio.run(delivery.send_message(1, "R", "Thanks for applying"))
    assert store.conversations[1]["last_message_at"] == msg["created_at"]


def test_last_message_at_never_moves_backward(delivery, store):
    store.conversations[1]["last_message_at"] = "2999-01-01T00:00:00.000000"
    asyncio.run(delivery.send_message(1, "R", "late write"))
    assert store.conversations[1]["last_message_at"] == "2999-01-01T00:00:00.000000"


def test_non_participant_is_rejected_before_any_write(delivery, store):
    store.add_user("X", "job_seeker")

    with pytest.raises(NotParticipant):
        asyncio.run(delivery.send_message(1, "X", "let me in"))
    assert store.messages == []


def test_unknown_conversation(delivery, store):
    with pytest.raises(ConversationNotFound):
        asyncio.run(delivery.send_message(99, "J", "Hello"))
    assert store.messages == []


@pytest.mark.parametrize("body", ["", "   ", None, 42])
def test_invalid_bodies_are_rejected(delivery, store, body):
    with pytest.raises(InvalidMessage):
        asyncio.run(delivery.send_message(1, "J", body))
    assert store.messages == []


def test_body_length_limit(delivery, store, monkeypatch):
    monkeypatch.setattr(delivery_module, "MAX_MESSAGE_LENGTH", 10)
    with pytest.raises(InvalidMessage):
        asyncio.run(delivery.send_message(1, "J", "x" * 11))
    asyncio.run(delivery.send_message(1, "J", "x" * 10))
    assert len(store.messages) == 1


def test_unknown_message_type(delivery):
    with pytest.raises(InvalidMessage):
        asyncio.run(delivery.send_message(1, "J", "hi", message_type="video"))


def test_closed_conversation_rejects_sends(delivery, store):
    store.conversations[1]["is_active"] = False
    with pytest.raises(ConversationClosed):
        asyncio.run(delivery.send_message(1, "J", "anyone there?"))
    assert store.messages == []


def test_persistence_failure_is_fatal_and_pushes_nothing(delivery, store, registry, make_connection):
    recruiter = make_connection()
    registry.register("R", recruiter)
    store.fail_writes = True

    with pytest.raises(PersistenceError) as excinfo:
        asyncio.run(delivery.send_message(1, "J", "Hello"))

    assert excinfo.value.retryable is True
    assert store.messages == []
    assert recruiter.sent == []


def test_last_message_at_failure_does_not_fail_send(delivery, store, caplog):
    store.fail_last_message_update = True
    with caplog.at_level("WARNING"):
        msg = asyncio.run(delivery.send_message(1, "J", "Hello"))
    assert store.messages_in(1) == [msg]
    assert any("last_message_at" in rec.message for rec in caplog.records)


def test_recipient_gets_new_message_and_sender_gets_echo(delivery, registry, make_connection):
    recruiter, seeker_tab1, seeker_tab2 = make_connection(), make_connection(), make_connection()
    registry.register("R", recruiter)
    registry.register("J", seeker_tab1)
    registry.register("J", seeker_tab2)

    msg = asyncio.run(delivery.send_message(1, "J", "Hello"))

    [pushed] = recruiter.of_type("newMessage")
    assert pushed["conversationId"] == 1
    assert pushed["message"]["id"] == msg["id"]
    assert pushed["message"]["senderId"] == "J"
    assert pushed["message"]["isRead"] is False
    assert recruiter.of_type("messageSent") == []
    for tab in (seeker_tab1, seeker_tab2):
        [echo] = tab.of_type("messageSent")
        assert echo["message"]["id"] == msg["id"]


def test_offline_recipient_still_succeeds(delivery, store, registry):
    msg = asyncio.run(delivery.send_message(1, "J", "Hello"))

    assert asyncio.run(registry.send("R", {"type": "pong"})) is False
    listed = store.list_messages(1)
    assert [m["message"] for m in listed] == ["Hello"]
    assert listed[0]["is_read"] is False
    assert listed[0]["id"] == msg["id"]


def test_push_failure_is_swallowed(delivery, store, registry, make_connection):
    registry.register("R", make_connection(fail=True))

    msg = asyncio.run(delivery.send_message(1, "J", "Hello"))

    assert store.messages_in(1) == [msg]
    assert not registry.is_online("R")


def test_sequential_sends_keep_call_order(delivery, store):
    async def run():
        for body in ("one", "two", "three"):
            await delivery.send_message(1, "J", body)

    asyncio.run(run())
    assert [m["message"] for m in store.list_messages(1)] == ["one", "two", "three"]


def test_concurrent_sends_from_one_sender_keep_call_order(delivery, store):
    async def run():
        await asyncio.gather(*(delivery.send_message(1, "J", f"m{i}") for i in range(10)))

    asyncio.run(run())
    assert [m["message"] for m in store.list_messages(1)] == [f"m{i}" for i in range(10)]
    assert len(delivery._send_locks) == 0


def test_both_participants_can_send_concurrently(delivery, store):
    async def run():
        await asyncio.gather(
            delivery.send_message(1, "J", "from seeker"),
            delivery.send_message(1, "R", "from recruiter"),
        )

    asyncio.run(run())
    assert sorted(m["sender_id"] for m in store.messages_in(1)) == ["J", "R"]


def test_history_requires_participation(delivery, store):
    asyncio.run(delivery.send_message(1, "J", "Hello"))
    store.add_user("X", "recruiter")

    conversation, messages = asyncio.run(delivery.history(1, "R"))
    assert conversation["id"] == 1
    assert [m["message"] for m in messages] == ["Hello"]
    with pytest.raises(NotParticipant):
        asyncio.run(delivery.history(1, "X"))


def test_history_limit_returns_newest_in_order(delivery):
    async def run():
        for i in range(5):
            await delivery.send_message(1, "J", f"m{i}")
        return await delivery.history(1, "R", limit=2)

    _, messages = asyncio.run(run())
    assert [m["message"] for m in messages] == ["m3", "m4"]


def test_list_conversations_decorates_counterpart(delivery, registry, make_connection):
    registry.register("J", make_connection())
    asyncio.run(delivery.send_message(1, "J", "Hello"))

    [item] = asyncio.run(delivery.list_conversations("R"))

    assert item["counterpart_id"] == "J"
    assert item["counterpart_name"] == "Jay Seeker"
    assert item["counterpart_online"] is True
    assert item["unread_count"] == 1


def test_start_conversation_assigns_sides_by_user_type(delivery, store):
    store.add_user("R2", "recruiter")
    conv, created = asyncio.run(
        delivery.start_conversation(store.users["J"], "R2", job_posting_id=7, application_id=3)
    )

    assert created is True
    assert conv["recruiter_id"] == "R2"
    assert conv["job_seeker_id"] == "J"
    assert conv["job_posting_id"] == 7
    assert conv["application_id"] == 3


def test_start_conversation_reuses_active_thread(delivery, store):
    first, created_first = asyncio.run(delivery.start_conversation(store.users["R"], "J"))
    second, created_second = asyncio.run(delivery.start_conversation(store.users["J"], "R"))

    assert first["id"] == second["id"] == 1
    assert created_first is False and created_second is False


@pytest.mark.parametrize(
    "other_id",
    ["R", "nobody"],
)
def test_start_conversation_rejects_bad_counterparts(delivery, store, other_id):
    store.add_user("R2", "recruiter")
    with pytest.raises(InvalidConversation):
        asyncio.run(delivery.start_conversation(store.users["R2"], other_id))


def test_start_conversation_with_self(delivery, store):
    with pytest.raises(InvalidConversation):
        asyncio.run(delivery.start_conversation(store.users["J"], "J"))


def test_deactivate_notifies_counterpart_and_blocks_sends(delivery, store, registry, make_connection):
    seeker = make_connection()
    registry.register("J", seeker)

    conv = asyncio.run(delivery.deactivate_conversation(1, "R"))

    assert conv["is_active"] is False
    assert store.conversations[1]["is_active"] is False
    assert seeker.of_type("conversationClosed") == [{"type": "conversationClosed", "conversationId": 1}]
    with pytest.raises(ConversationClosed):
        asyncio.run(delivery.send_message(1, "J", "wait"))
    # messages stay readable
    assert asyncio.run(delivery.history(1, "J"))[1] == []


def test_deactivate_requires_participation(delivery, store):
    store.add_user("X", "recruiter")
    with pytest.raises(NotParticipant):
        asyncio.run(delivery.deactivate_conversation(1, "X"))
    assert store.conversations[1]["is_active"] is True
