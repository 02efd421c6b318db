from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from conftest import add_messages, client_for, make_conversation
from inbox_api.models import Conversation, Message
from inbox_api.services.errors import TransportFailure

PHONE = "whatsapp:+50255550001"


@pytest.fixture
def conversation(db, acme):
    return make_conversation(db, acme, PHONE)


def _reload(db, conversation_id):
    db.expire_all()
    return db.query(Conversation).filter(Conversation.id == conversation_id).one()


class TestTenantResolution:
    def test_unknown_tenant(self, api, acme):
        response = client_for("nobody.inbox.example.com").get("/api/conversations")
        assert response.status_code == 404
        assert response.json()["code"] == "tenant_not_found"

    def test_invalid_subdomain(self, api):
        client = client_for("inbox.example.com")
        response = client.get("/api/conversations", headers={"X-Forwarded-Host": "bad_slug.inbox.example.com"})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_subdomain"

    def test_forwarded_host(self, api, acme, globex):
        client = client_for("internal:8000")
        response = client.get("/api/conversations", headers={"X-Forwarded-Host": "globex.inbox.example.com"})
        assert response.status_code == 200

    def test_localhost_uses_default_tenant(self, api, default_tenant):
        response = client_for("localhost:8000").get("/api/conversations")
        assert response.status_code == 200

    def test_public_single_label_host_rejected(self, api, default_tenant):
        response = client_for("evilhost").get("/api/conversations")
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_subdomain"


class TestListConversations:
    def test_summaries(self, db, acme_client, conversation):
        add_messages(db, conversation, 2)
        response = acme_client.get("/api/conversations")
        assert response.status_code == 200
        [item] = response.json()
        assert item["id"] == conversation.id
        assert item["phone_number"] == PHONE
        assert item["mode"] == "BOT"
        assert item["message_count"] == 2
        assert item["last_message"] == "msg 2"

    def test_other_tenant_sees_nothing(self, globex_client, conversation):
        assert globex_client.get("/api/conversations").json() == []


class TestMessages:
    def test_pages(self, db, acme_client, conversation):
        ids = [m.id for m in add_messages(db, conversation, 120)]

        first = acme_client.get(f"/api/conversations/{conversation.id}/messages", params={"limit": "50"}).json()
        assert [m["id"] for m in first["messages"]] == ids[70:]
        assert first["hasMore"] is True
        assert first["oldestMessageId"] == ids[70]
        assert first["total"] == 120

        second = acme_client.get(
            f"/api/conversations/{conversation.id}/messages",
            params={"limit": "50", "beforeId": str(first["oldestMessageId"])},
        ).json()
        assert [m["id"] for m in second["messages"]] == ids[20:70]
        assert second["beforeId"] == ids[70]

    def test_bad_cursor(self, acme_client, conversation):
        response = acme_client.get(f"/api/conversations/{conversation.id}/messages", params={"beforeId": "abc"})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_cursor"

    def test_other_tenant_forbidden(self, db, acme, globex_client, conversation):
        add_messages(db, conversation, 1)
        response = globex_client.get(f"/api/conversations/{conversation.id}/messages")
        assert response.status_code == 403
        assert response.json()["code"] == "tenant_ownership_mismatch"
        assert PHONE not in response.text
        assert "msg 1" not in response.text

    def test_deleted_conversation_not_found(self, db, acme, acme_client):
        deleted = make_conversation(db, acme, PHONE, deleted_at=datetime.now(timezone.utc))
        response = acme_client.get(f"/api/conversations/{deleted.id}/messages")
        assert response.status_code == 404

    def test_single_message_ownership(self, db, acme_client, globex_client, conversation):
        [message] = add_messages(db, conversation, 1)
        assert acme_client.get(f"/api/messages/{message.id}").json()["body"] == "msg 1"
        assert globex_client.get(f"/api/messages/{message.id}").status_code == 403
        assert acme_client.get("/api/messages/9999").status_code == 404

    def test_locations(self, db, acme_client, conversation):
        db.add(
            Message(
                conversation_id=conversation.id,
                direction="inbound",
                body="[Ubicación]",
                latitude=14.6,
                longitude=-90.5,
                created_at=datetime.now(timezone.utc),
            )
        )
        db.commit()
        add_messages(db, conversation, 2)
        [location] = acme_client.get(f"/api/conversations/{conversation.id}/locations").json()
        assert location["latitude"] == 14.6


class TestReply:
    def test_reply_sets_human_and_stores(self, db, acme_client, conversation):
        with patch("inbox_api.services.operator_service.send_message", return_value=True) as send:
            response = acme_client.post(f"/api/conversations/{conversation.id}/reply", json={"text": "  Hola!  "})

        assert response.status_code == 200
        body = response.json()
        assert body["delivered"] is True
        assert body["message"]["direction"] == "outbound"
        assert body["message"]["body"] == "Hola!"
        send.assert_called_once()
        assert send.call_args.args[:2] == (PHONE, "Hola!")

        stored = _reload(db, conversation.id)
        assert stored.mode == "HUMAN"
        assert stored.human_handled is True

    def test_transport_failure(self, db, acme_client, conversation):
        with patch(
            "inbox_api.services.operator_service.send_message",
            side_effect=TransportFailure("Twilio returned HTTP 500"),
        ):
            response = acme_client.post(f"/api/conversations/{conversation.id}/reply", json={"text": "Hola"})

        assert response.status_code == 502
        assert response.json()["code"] == "transport_failure"
        stored = _reload(db, conversation.id)
        assert stored.mode == "HUMAN"
        assert stored.human_handled is True
        assert db.query(Message).filter(Message.conversation_id == conversation.id).count() == 1

    def test_empty_text(self, acme_client, conversation):
        response = acme_client.post(f"/api/conversations/{conversation.id}/reply", json={"text": "   "})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_payload"

    def test_other_tenant(self, globex_client, conversation):
        with patch("inbox_api.services.operator_service.send_message") as send:
            response = globex_client.post(f"/api/conversations/{conversation.id}/reply", json={"text": "Hola"})
        assert response.status_code == 403
        send.assert_not_called()

    def test_deleted(self, db, acme, acme_client):
        deleted = make_conversation(db, acme, PHONE, deleted_at=datetime.now(timezone.utc))
        response = acme_client.post(f"/api/conversations/{deleted.id}/reply", json={"text": "Hola"})
        assert response.status_code == 404
        assert response.json()["code"] == "conversation_not_found"


class TestResetBot:
    def test_idempotent(self, db, acme_client, conversation):
        conversation.mode = "HUMAN"
        db.commit()
        first = acme_client.post(f"/api/conversations/{conversation.id}/reset-bot")
        second = acme_client.post(f"/api/conversations/{conversation.id}/reset-bot")
        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["conversation"]["mode"] == "BOT"

    def test_other_tenant(self, globex_client, conversation):
        assert globex_client.post(f"/api/conversations/{conversation.id}/reset-bot").status_code == 403


class TestDelete:
    def test_soft_delete_then_already_deleted(self, acme_client, conversation):
        assert acme_client.delete(f"/api/conversations/{conversation.id}").status_code == 200
        assert acme_client.get("/api/conversations").json() == []

        again = acme_client.delete(f"/api/conversations/{conversation.id}")
        assert again.status_code == 400
        assert again.json()["code"] == "already_deleted"

    def test_unknown(self, acme_client):
        assert acme_client.delete("/api/conversations/9999").status_code == 404


class TestInboxSend:
    def test_creates_conversation(self, db, acme_client):
        with patch("inbox_api.services.operator_service.send_message", return_value=False):
            response = acme_client.post("/inbox/send", json={"phoneNumber": "+50255550009", "message": "Hola"})

        assert response.status_code == 200
        body = response.json()
        assert body["delivered"] is False
        stored = _reload(db, body["conversationId"])
        assert stored.phone_number == "whatsapp:+50255550009"
        assert stored.mode == "HUMAN"

    def test_restores_deleted(self, db, acme, acme_client):
        deleted = make_conversation(db, acme, PHONE, deleted_at=datetime.now(timezone.utc))
        with patch("inbox_api.services.operator_service.send_message", return_value=True):
            response = acme_client.post("/inbox/send", json={"phoneNumber": PHONE, "message": "Hola"})

        assert response.json()["conversationId"] == deleted.id
        stored = _reload(db, deleted.id)
        assert stored.deleted_at is None
        assert stored.mode == "HUMAN"

    def test_missing_fields(self, acme_client):
        response = acme_client.post("/inbox/send", json={"phoneNumber": "+502"})
        assert response.status_code == 400
