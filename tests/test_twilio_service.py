from unittest.mock import MagicMock, patch

import httpx
import pytest

from inbox_api.config import settings
from inbox_api.services.errors import TransportFailure
from inbox_api.services.tenant_service import TenantRecord
from inbox_api.services.twilio_service import resolve_credentials, send_media_message, send_message

TO = "whatsapp:+50255550001"

TENANT = TenantRecord(
    id=1,
    slug="acme",
    name="Acme",
    provider_account_id="AC123",
    provider_auth_secret="s3cret",
    sender_address="whatsapp:+14155238886",
)
BARE_TENANT = TenantRecord(id=2, slug="globex", name="Globex")


@pytest.fixture
def live(monkeypatch):
    monkeypatch.setattr(settings, "enable_twilio_mock", False)
    monkeypatch.setattr(settings, "twilio_account_sid", None)
    monkeypatch.setattr(settings, "twilio_auth_token", None)
    monkeypatch.setattr(settings, "whatsapp_from", None)
    monkeypatch.setattr(settings, "environment", "development")


def _mock_client(response=None, error=None):
    client = MagicMock()
    client.__enter__.return_value = client
    if error:
        client.post.side_effect = error
    else:
        client.post.return_value = response
    return client


def _response(status_code, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = str(payload)
    return response


class TestResolveCredentials:
    def test_tenant_values(self, live):
        credentials = resolve_credentials(TENANT)
        assert credentials.account_sid == "AC123"
        assert credentials.sender == "whatsapp:+14155238886"
        assert credentials.source == "tenant"

    def test_each_field_falls_back(self, live, monkeypatch):
        monkeypatch.setattr(settings, "whatsapp_from", "whatsapp:+10000000000")
        tenant = TenantRecord(id=3, slug="x", name="X", provider_account_id="AC9", provider_auth_secret="t9")
        credentials = resolve_credentials(tenant)
        assert credentials.account_sid == "AC9"
        assert credentials.sender == "whatsapp:+10000000000"
        assert credentials.source == "mixed"

    def test_token_not_in_repr(self, live):
        assert "s3cret" not in repr(resolve_credentials(TENANT))


class TestSendMessage:
    def test_posts_to_messages_api(self, live):
        client = _mock_client(_response(201, {"sid": "SM1"}))
        with patch("inbox_api.services.twilio_service.httpx.Client", return_value=client):
            assert send_message(TO, "hola", TENANT) is True

        url = client.post.call_args.args[0]
        assert url == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
        assert client.post.call_args.kwargs["data"] == {"To": TO, "From": "whatsapp:+14155238886", "Body": "hola"}
        assert client.post.call_args.kwargs["auth"] == ("AC123", "s3cret")

    def test_simulated_without_credentials_outside_production(self, live):
        with patch("inbox_api.services.twilio_service.httpx.Client") as client_cls:
            assert send_message(TO, "hola", BARE_TENANT) is False
        client_cls.assert_not_called()

    def test_production_without_credentials_fails(self, live, monkeypatch):
        monkeypatch.setattr(settings, "environment", "production")
        with pytest.raises(TransportFailure):
            send_message(TO, "hola", BARE_TENANT)

    def test_mock_flag_forces_simulation(self, live, monkeypatch):
        monkeypatch.setattr(settings, "enable_twilio_mock", True)
        with patch("inbox_api.services.twilio_service.httpx.Client") as client_cls:
            assert send_message(TO, "hola", TENANT) is False
        client_cls.assert_not_called()

    def test_missing_sender(self, live):
        tenant = TenantRecord(id=3, slug="x", name="X", provider_account_id="AC9", provider_auth_secret="t9")
        with pytest.raises(TransportFailure):
            send_message(TO, "hola", tenant)

    def test_http_error_status(self, live):
        client = _mock_client(_response(400, {"message": "invalid To"}))
        with patch("inbox_api.services.twilio_service.httpx.Client", return_value=client):
            with pytest.raises(TransportFailure):
                send_message(TO, "hola", TENANT)

    def test_accepted_without_json_body_counts_as_delivered(self, live):
        response = _response(201)
        response.json.side_effect = ValueError("Expecting value")
        client = _mock_client(response)
        with patch("inbox_api.services.twilio_service.httpx.Client", return_value=client):
            assert send_message(TO, "hola", TENANT) is True

    def test_network_error(self, live):
        client = _mock_client(error=httpx.ConnectTimeout("timed out"))
        with patch("inbox_api.services.twilio_service.httpx.Client", return_value=client):
            with pytest.raises(TransportFailure):
                send_message(TO, "hola", TENANT)


class TestSendMedia:
    def test_media_with_caption(self, live):
        client = _mock_client(_response(201, {"sid": "MM1"}))
        with patch("inbox_api.services.twilio_service.httpx.Client", return_value=client):
            assert send_media_message(TO, "https://cdn.example.com/a.jpg", "image/jpeg", "mira", TENANT) is True

        data = client.post.call_args.kwargs["data"]
        assert data["MediaUrl"] == "https://cdn.example.com/a.jpg"
        assert data["Body"] == "mira"

    def test_media_without_caption(self, live):
        client = _mock_client(_response(201, {"sid": "MM2"}))
        with patch("inbox_api.services.twilio_service.httpx.Client", return_value=client):
            send_media_message(TO, "https://cdn.example.com/a.jpg", tenant=TENANT)

        assert "Body" not in client.post.call_args.kwargs["data"]
