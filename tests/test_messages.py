import pytest
from sqlmodel import Session

from core.errors import NotFound, ValidationFailed
from models.models import Message
from services.message_service import (
    list_conversation,
    list_conversations,
    mark_conversation_read,
    mark_message_read,
    send_message,
    unread_message_count,
)
from services.notification_service import create_notification, unread_count
from services.unread_counts import MESSAGES, unread_cache

from conftest import auth_headers


def test_send_and_read_conversation(session, buyer, seller):
    send_message(session, buyer, seller.id, "Can you start next week?")
    send_message(session, seller, buyer.id, "Yes, Monday works.")
    send_message(session, buyer, seller.id, "Great, see you then.")

    thread = list_conversation(session, seller.id, buyer.id)

    assert [m.content for m in thread] == ["Can you start next week?", "Yes, Monday works.", "Great, see you then."]
    assert [m.sender_id for m in thread] == [buyer.id, seller.id, buyer.id]


def test_send_rejects_bad_input(session, buyer, seller):
    with pytest.raises(ValidationFailed):
        send_message(session, buyer, seller.id, "   ")
    with pytest.raises(ValidationFailed):
        send_message(session, buyer, buyer.id, "Note to self")
    with pytest.raises(NotFound):
        send_message(session, buyer, 9999, "Hello?")
    with pytest.raises(NotFound):
        send_message(session, buyer, seller.id, "About that project", project_id=9999)


def test_unread_message_count_is_cached_per_receiver(session, buyer, seller):
    send_message(session, buyer, seller.id, "First")
    send_message(session, buyer, seller.id, "Second")

    assert unread_message_count(session, seller.id) == 2
    assert unread_cache.get(seller.id, MESSAGES) == 2
    assert unread_message_count(session, buyer.id) == 0


def test_new_message_invalidates_cached_count(session, buyer, seller):
    assert unread_message_count(session, seller.id) == 0

    send_message(session, buyer, seller.id, "Are you free on Friday?")

    assert unread_cache.get(seller.id, MESSAGES) is None
    assert unread_message_count(session, seller.id) == 1


def test_message_and_notification_counts_are_independent(session, buyer, seller):
    create_notification(session, seller.id, "New project", "")
    send_message(session, buyer, seller.id, "Hello")

    assert unread_count(session, seller.id) == 1
    assert unread_message_count(session, seller.id) == 1

    mark_conversation_read(session, seller.id, buyer.id)

    assert unread_message_count(session, seller.id) == 0
    assert unread_count(session, seller.id) == 1


def test_only_receiver_marks_message_read(session, buyer, seller):
    message = send_message(session, buyer, seller.id, "Private")

    assert mark_message_read(session, buyer.id, message.id) is None
    session.refresh(message)
    assert message.is_read is False

    assert mark_message_read(session, seller.id, message.id).is_read is True
    assert unread_message_count(session, seller.id) == 0


def test_conversations_group_by_partner(session, buyer, seller, make_user):
    other_seller = make_user(full_name="Sam Auditor")
    send_message(session, seller, buyer.id, "Quote attached")
    send_message(session, other_seller, buyer.id, "I can help")
    send_message(session, other_seller, buyer.id, "Any update?")
    send_message(session, buyer, seller.id, "Thanks, reviewing now")

    conversations = list_conversations(session, buyer.id)

    assert [c.partner_id for c in conversations] == [seller.id, other_seller.id]
    assert conversations[0].last_message == "Thanks, reviewing now"
    assert conversations[0].unread_count == 1
    assert conversations[1].partner_name == "Sam Auditor"
    assert conversations[1].unread_count == 2


def test_mark_conversation_read_only_touches_that_partner(session, buyer, seller, make_user):
    other_seller = make_user()
    send_message(session, seller, buyer.id, "One")
    send_message(session, other_seller, buyer.id, "Two")

    assert mark_conversation_read(session, buyer.id, seller.id) == 1
    assert unread_message_count(session, buyer.id) == 1


def test_commit_while_counting_messages_is_not_cached(session, engine, buyer, seller, monkeypatch):
    store = unread_cache.set
    interleaved = {"done": False}

    def commit_then_store(*args, **kwargs):
        if not interleaved["done"]:
            interleaved["done"] = True
            with Session(engine) as writer:
                writer.add(Message(sender_id=buyer.id, receiver_id=seller.id, content="Sent mid-count"))
                writer.commit()
        return store(*args, **kwargs)

    monkeypatch.setattr(unread_cache, "set", commit_then_store)

    assert unread_message_count(session, seller.id) == 0
    assert unread_cache.get(seller.id, MESSAGES) is None
    assert unread_message_count(session, seller.id) == 1


# ============================================================
# Routes
# ============================================================
def test_message_routes(client, buyer, seller):
    response = client.post(
        "/messages/",
        json={"receiver_id": seller.id, "content": "Is the audit still available?"},
        headers=auth_headers(buyer),
    )
    assert response.status_code == 201
    message_id = response.json()["id"]

    seller_headers = auth_headers(seller)
    assert client.get("/messages/unread-count", headers=seller_headers).json() == {"unread": 1}

    conversations = client.get("/messages/conversations", headers=seller_headers).json()
    assert conversations[0]["partner_id"] == buyer.id
    assert conversations[0]["partner_name"] == "Care Home Ltd"
    assert conversations[0]["unread_count"] == 1

    thread = client.get(f"/messages/with/{buyer.id}", headers=seller_headers).json()
    assert [m["id"] for m in thread] == [message_id]

    assert client.post(f"/messages/{message_id}/read", headers=auth_headers(buyer)).status_code == 404
    assert client.post(f"/messages/{message_id}/read", headers=seller_headers).json()["is_read"] is True
    assert client.get("/messages/unread-count", headers=seller_headers).json() == {"unread": 0}


def test_read_conversation_route(client, session, buyer, seller):
    send_message(session, buyer, seller.id, "One")
    send_message(session, buyer, seller.id, "Two")

    response = client.post(f"/messages/with/{buyer.id}/read", headers=auth_headers(seller))

    assert response.json() == {"updated": 2}
    assert client.get("/messages/unread-count", headers=auth_headers(seller)).json() == {"unread": 0}


def test_empty_message_is_rejected(client, buyer, seller):
    response = client.post("/messages/", json={"receiver_id": seller.id, "content": ""}, headers=auth_headers(buyer))
    assert response.status_code == 422


def test_messages_require_login(client):
    assert client.get("/messages/unread-count").status_code == 401
