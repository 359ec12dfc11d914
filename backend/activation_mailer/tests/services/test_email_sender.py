"""
Tests for the transactional email senders.

Tests cover:
- Brevo payload and headers
- Provider failures mapped to MAILER errors
- Missing API key as a CONFIGURATION error
- Provider selection from the environment
"""

import pytest
from unittest.mock import AsyncMock, patch

import httpx

from activation_mailer.services.email_sender import (
    BREVO_SEND_URL,
    BrevoEmailSender,
    EmailMessage,
    MockEmailSender,
    get_email_sender,
)
from activation_mailer.services.order_email_errors import ErrorKind, OrderEmailError


@pytest.fixture
def message():
    return EmailMessage(
        to_email="erika@example.com",
        subject="Ihre Aktivierungslinks von myon.clinic",
        html_body="<html><body>Hallo</body></html>",
    )


@pytest.fixture
def sender(monkeypatch):
    monkeypatch.delenv("NOTIFICATION_FROM_EMAIL", raising=False)
    monkeypatch.delenv("NOTIFICATION_FROM_NAME", raising=False)
    return BrevoEmailSender(api_key="xkeysib-test")


class TestBrevoEmailSender:

    @pytest.mark.asyncio
    async def test_send_success(self, sender, message):
        with patch.object(sender._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = httpx.Response(201, json={"messageId": "<202505081504.1@smtp-relay.brevo.com>"})
            result = await sender.send(message)

        assert result.message_id == "<202505081504.1@smtp-relay.brevo.com>"
        args, kwargs = mock_post.call_args
        assert args[0] == BREVO_SEND_URL
        assert kwargs["headers"]["api-key"] == "xkeysib-test"
        assert kwargs["json"] == {
            "sender": {"name": "MyOnClinic Shop", "email": "marketing@myon.clinic"},
            "to": [{"email": "erika@example.com"}],
            "subject": "Ihre Aktivierungslinks von myon.clinic",
            "htmlContent": "<html><body>Hallo</body></html>",
        }

    @pytest.mark.asyncio
    async def test_provider_rejection_is_mailer_error(self, sender, message):
        with patch.object(sender._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = httpx.Response(400, json={"code": "invalid_parameter", "message": "bad email"})
            with pytest.raises(OrderEmailError) as exc_info:
                await sender.send(message)

        error = exc_info.value
        assert error.kind is ErrorKind.MAILER
        assert error.status_code == 400
        assert error.details == {"code": "invalid_parameter", "message": "bad email"}
        assert error.http_status == 502

    @pytest.mark.asyncio
    async def test_missing_message_id_is_mailer_error(self, sender, message):
        with patch.object(sender._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = httpx.Response(200, json={})
            with pytest.raises(OrderEmailError) as exc_info:
                await sender.send(message)
        assert exc_info.value.kind is ErrorKind.MAILER

    @pytest.mark.asyncio
    async def test_transport_error_is_mailer_error(self, sender, message):
        with patch.object(sender._client, "post", new_callable=AsyncMock) as mock_post:
            mock_post.side_effect = httpx.ConnectTimeout("timed out")
            with pytest.raises(OrderEmailError) as exc_info:
                await sender.send(message)
        assert exc_info.value.kind is ErrorKind.MAILER

    @pytest.mark.asyncio
    async def test_missing_api_key_is_configuration_error(self, message, monkeypatch):
        monkeypatch.delenv("BREVO_API_TOKEN", raising=False)
        sender = BrevoEmailSender()
        with patch.object(sender._client, "post", new_callable=AsyncMock) as mock_post:
            with pytest.raises(OrderEmailError) as exc_info:
                await sender.send(message)

        assert exc_info.value.kind is ErrorKind.CONFIGURATION
        mock_post.assert_not_awaited()

    def test_sender_identity_from_env(self, monkeypatch):
        monkeypatch.setenv("NOTIFICATION_FROM_EMAIL", "shop@myon.clinic")
        monkeypatch.setenv("NOTIFICATION_FROM_NAME", "myon.clinic")
        sender = BrevoEmailSender(api_key="key")
        assert sender.from_email == "shop@myon.clinic"
        assert sender.from_name == "myon.clinic"


class TestMockEmailSender:

    @pytest.mark.asyncio
    async def test_records_messages(self, message):
        sender = MockEmailSender()
        result = await sender.send(message)

        assert result.message_id.startswith("<mock-")
        assert sender.sent_messages == [message]
        sender.clear()
        assert sender.sent_messages == []


class TestGetEmailSender:

    def test_mock_provider(self, monkeypatch):
        monkeypatch.setenv("NOTIFICATION_EMAIL_PROVIDER", "mock")
        assert isinstance(get_email_sender(), MockEmailSender)

    def test_defaults_to_brevo(self, monkeypatch):
        monkeypatch.delenv("NOTIFICATION_EMAIL_PROVIDER", raising=False)
        assert isinstance(get_email_sender(), BrevoEmailSender)
