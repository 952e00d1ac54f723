"""Tests for the conversation and message endpoints."""
from datetime import datetime, timezone

import pytest

from models import Conversation, Message
from schemas import ConversationCreate
from services import AuthService, ConversationService
from tests.conftest import add_message, create_conversation, parse_timestamp

NOT_FOUND = {"error": "Conversation not found"}


@pytest.mark.parametrize("method, path, body", [
    ("get", "/conversations", None),
    ("post", "/conversations", {}),
    ("get", "/conversations/some-id", None),
    ("patch", "/conversations/some-id", {"title": "New"}),
    ("delete", "/conversations/some-id", None),
    ("post", "/conversations/some-id/messages", {"role": "user", "content": "Hi"}),
])
def test_requires_session(client, method, path, body):
    kwargs = {"json": body} if body is not None else {}
    response = client.request(method.upper(), path, **kwargs)

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_invalid_session_token_is_unauthorized(make_client, alice):
    response = make_client("not-a-real-token").get("/conversations")

    assert response.status_code == 401


def test_bearer_token_is_accepted(db, alice, make_client):
    token = AuthService.create_session(db, alice).token
    client = make_client()

    response = client.get("/conversations", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200


def test_list_returns_only_own_conversations_most_recent_first(db, alice, bob, alice_client):
    older = create_conversation(db, alice, "Older", datetime(2024, 1, 1, tzinfo=timezone.utc))
    newer = create_conversation(db, alice, "Newer", datetime(2024, 1, 3, tzinfo=timezone.utc))
    create_conversation(db, bob, "Bob's", datetime(2024, 1, 5, tzinfo=timezone.utc))

    response = alice_client.get("/conversations")

    assert response.status_code == 200
    conversations = response.json()["conversations"]
    assert [c["id"] for c in conversations] == [newer.id, older.id]
    assert all(c["userId"] == alice.id for c in conversations)
    assert set(conversations[0]) == {"id", "userId", "title", "createdAt", "updatedAt"}


def test_list_is_empty_for_new_user(alice_client):
    response = alice_client.get("/conversations")

    assert response.status_code == 200
    assert response.json() == {"conversations": []}


def test_create_with_empty_body_has_empty_title_and_no_message(alice, alice_client):
    response = alice_client.post("/conversations", json={})

    assert response.status_code == 201
    body = response.json()
    assert "message" not in body
    assert body["conversation"]["title"] == ""
    assert body["conversation"]["userId"] == alice.id
    assert body["conversation"]["createdAt"] == body["conversation"]["updatedAt"]


def test_create_without_body(alice_client):
    response = alice_client.post("/conversations")

    assert response.status_code == 201
    assert "message" not in response.json()


def test_create_with_first_message(db, alice_client):
    response = alice_client.post(
        "/conversations",
        json={"title": "Greeting", "firstMessage": {"content": "Hello AI!"}},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["conversation"]["title"] == "Greeting"
    assert body["message"]["role"] == "user"
    assert body["message"]["content"] == "Hello AI!"
    assert body["message"]["conversationId"] == body["conversation"]["id"]
    assert db.query(Message).count() == 1


def test_create_with_empty_first_message_is_rejected(db, alice_client):
    response = alice_client.post("/conversations", json={"firstMessage": {"content": ""}})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"
    assert db.query(Conversation).count() == 0


def test_create_then_get_round_trip(alice_client):
    created = alice_client.post("/conversations", json={"firstMessage": {"content": "First"}}).json()
    conversation_id = created["conversation"]["id"]
    alice_client.post(f"/conversations/{conversation_id}/messages",
                      json={"role": "assistant", "content": "Second", "model": "gpt-4"})
    alice_client.post(f"/conversations/{conversation_id}/messages",
                      json={"role": "user", "content": "Third"})

    response = alice_client.get(f"/conversations/{conversation_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["conversation"]["id"] == conversation_id
    assert [m["content"] for m in body["messages"]] == ["First", "Second", "Third"]
    assert body["messages"][1]["model"] == "gpt-4"
    assert body["messages"][0]["model"] is None


def test_get_orders_messages_by_creation_time(db, alice, alice_client):
    conversation = create_conversation(db, alice)
    add_message(db, conversation, "later", created_at=datetime(2024, 1, 2, tzinfo=timezone.utc))
    add_message(db, conversation, "earlier", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))

    response = alice_client.get(f"/conversations/{conversation.id}")

    assert [m["content"] for m in response.json()["messages"]] == ["earlier", "later"]


def test_get_missing_and_foreign_conversations_look_the_same(db, alice, bob_client):
    conversation = create_conversation(db, alice, "Private")

    foreign = bob_client.get(f"/conversations/{conversation.id}")
    missing = bob_client.get("/conversations/does-not-exist")

    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json() == NOT_FOUND


def test_other_user_cannot_see_conversation(alice_client, bob_client):
    conversation_id = alice_client.post("/conversations", json={"title": "X"}).json()["conversation"]["id"]

    assert bob_client.get(f"/conversations/{conversation_id}").status_code == 404
    assert conversation_id not in [c["id"] for c in bob_client.get("/conversations").json()["conversations"]]


def test_rename_updates_title_and_bumps_updated_at(db, alice, alice_client):
    conversation = create_conversation(db, alice, "Old title")

    response = alice_client.patch(f"/conversations/{conversation.id}", json={"title": "New title"})

    assert response.status_code == 200
    body = response.json()["conversation"]
    assert body["title"] == "New title"
    assert parse_timestamp(body["updatedAt"]) > datetime(2024, 1, 1)
    assert parse_timestamp(body["createdAt"]) == datetime(2024, 1, 1)


@pytest.mark.parametrize("title", ["", "x" * 256])
def test_rename_rejects_bad_title_length(db, alice, alice_client, title):
    conversation = create_conversation(db, alice, "Keep me")

    response = alice_client.patch(f"/conversations/{conversation.id}", json={"title": title})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


def test_rename_rejects_missing_title(db, alice, alice_client):
    conversation = create_conversation(db, alice)

    response = alice_client.patch(f"/conversations/{conversation.id}", json={})

    assert response.status_code == 400


def test_rename_accepts_max_length_title(db, alice, alice_client):
    conversation = create_conversation(db, alice)
    title = "x" * 255

    response = alice_client.patch(f"/conversations/{conversation.id}", json={"title": title})

    assert response.status_code == 200
    assert alice_client.get(f"/conversations/{conversation.id}").json()["conversation"]["title"] == title


def test_rename_keeps_surrounding_whitespace(db, alice, alice_client):
    conversation = create_conversation(db, alice)

    response = alice_client.patch(f"/conversations/{conversation.id}", json={"title": " "})

    assert response.status_code == 200
    assert response.json()["conversation"]["title"] == " "


def test_rename_foreign_conversation_is_not_found(db, alice, bob_client):
    conversation = create_conversation(db, alice, "Mine")

    response = bob_client.patch(f"/conversations/{conversation.id}", json={"title": "Stolen"})

    assert response.status_code == 404
    assert response.json() == NOT_FOUND
    db.expire_all()
    assert db.get(Conversation, conversation.id).title == "Mine"


def test_rename_reports_row_lost_between_check_and_update(alice_client, monkeypatch):
    monkeypatch.setattr(ConversationService, "get_conversation", staticmethod(lambda *args, **kwargs: object()))

    response = alice_client.patch("/conversations/vanished", json={"title": "New"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to update conversation"}


def test_append_message_reports_conversation_lost_between_check_and_insert(db, alice_client, monkeypatch):
    monkeypatch.setattr(ConversationService, "get_conversation", staticmethod(lambda *args, **kwargs: object()))

    response = alice_client.post("/conversations/vanished/messages", json={"role": "user", "content": "hi"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to create message"}
    assert db.query(Message).count() == 0


def test_delete_then_get_is_not_found(db, alice, alice_client):
    conversation = create_conversation(db, alice)
    add_message(db, conversation, "bye")
    conversation_id = conversation.id

    deleted = alice_client.delete(f"/conversations/{conversation_id}")
    fetched = alice_client.get(f"/conversations/{conversation_id}")
    deleted_again = alice_client.delete(f"/conversations/{conversation_id}")

    assert deleted.status_code == 200
    assert deleted.json() == {"deleted": True}
    assert fetched.status_code == 404
    assert deleted_again.status_code == 404
    assert db.query(Message).filter(Message.conversation_id == conversation_id).count() == 0


def test_delete_foreign_conversation_is_not_found(db, alice, bob_client):
    conversation = create_conversation(db, alice)

    response = bob_client.delete(f"/conversations/{conversation.id}")

    assert response.status_code == 404
    assert response.json() == NOT_FOUND
    assert db.query(Conversation).filter(Conversation.id == conversation.id).count() == 1


def test_append_message(db, alice, alice_client):
    conversation = create_conversation(db, alice)

    response = alice_client.post(
        f"/conversations/{conversation.id}/messages",
        json={"role": "assistant", "content": "Hello!", "model": "gpt-4"},
    )

    assert response.status_code == 201
    message = response.json()["message"]
    assert message["conversationId"] == conversation.id
    assert message["role"] == "assistant"
    assert message["content"] == "Hello!"
    assert message["model"] == "gpt-4"


def test_append_message_moves_conversation_to_front(db, alice, alice_client):
    stale = create_conversation(db, alice, "Stale", datetime(2024, 1, 1, tzinfo=timezone.utc))
    fresh = create_conversation(db, alice, "Fresh", datetime(2024, 1, 2, tzinfo=timezone.utc))
    before = [c["id"] for c in alice_client.get("/conversations").json()["conversations"]]

    alice_client.post(f"/conversations/{stale.id}/messages", json={"role": "user", "content": "ping"})

    after = alice_client.get("/conversations").json()["conversations"]
    assert before == [fresh.id, stale.id]
    assert [c["id"] for c in after] == [stale.id, fresh.id]
    assert parse_timestamp(after[0]["updatedAt"]) > datetime(2024, 1, 2)


@pytest.mark.parametrize("body", [
    {"role": "robot", "content": "Hi"},
    {"role": "user", "content": ""},
    {"role": "user"},
    {"content": "Hi"},
])
def test_append_message_rejects_invalid_input(db, alice, alice_client, body):
    conversation = create_conversation(db, alice)

    response = alice_client.post(f"/conversations/{conversation.id}/messages", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"
    assert db.query(Message).count() == 0


def test_append_message_to_foreign_conversation_is_not_found(db, alice, bob_client):
    conversation = create_conversation(db, alice)

    response = bob_client.post(f"/conversations/{conversation.id}/messages",
                               json={"role": "user", "content": "intrusion"})

    assert response.status_code == 404
    assert response.json() == NOT_FOUND
    assert db.query(Message).count() == 0


def test_unexpected_errors_are_hidden(alice, db, make_client, monkeypatch):

    def explode(*args, **kwargs):
        raise RuntimeError("database exploded at 10.0.0.1")

    monkeypatch.setattr(ConversationService, "list_conversations", staticmethod(explode))
    client = make_client(AuthService.create_session(db, alice).token, raise_server_exceptions=False)

    response = client.get("/conversations")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}


def test_create_rolls_back_when_commit_fails(db, alice, monkeypatch):
    def failing_commit():
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(RuntimeError):
        ConversationService.create_conversation(
            db, alice.id, ConversationCreate(first_message={"content": "Hello"})
        )

    assert db.query(Conversation).count() == 0
    assert db.query(Message).count() == 0
