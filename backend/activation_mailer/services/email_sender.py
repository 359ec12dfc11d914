"""
Email sender abstraction for transactional email delivery.

Supports multiple providers:
- Brevo (production)
- Mock (testing and local runs)

A send either returns the provider message id or raises an
OrderEmailError of kind MAILER carrying the provider status code and
response details. A missing API key is a CONFIGURATION error.
"""

import os
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import httpx

from activation_mailer.services.order_email_errors import OrderEmailError

logger = logging.getLogger(__name__)

BREVO_SEND_URL = "https://api.brevo.com/v3/smtp/email"
DEFAULT_FROM_EMAIL = "marketing@myon.clinic"
DEFAULT_FROM_NAME = "MyOnClinic Shop"


@dataclass
class EmailMessage:
    """Email message data."""
    to_email: str
    subject: str
    html_body: str
    to_name: Optional[str] = None
    from_email: Optional[str] = None
    from_name: Optional[str] = None
    tags: Optional[List[str]] = None


@dataclass
class EmailSendResult:
    """Provider acknowledgement of a queued email."""
    message_id: str


class EmailSender(ABC):
    """Abstract base class for email sending."""

    @abstractmethod
    async def send(self, message: EmailMessage) -> EmailSendResult:
        """
        Send an email.

        Returns:
            EmailSendResult with the provider message id

        Raises:
            OrderEmailError: MAILER on provider failure, CONFIGURATION if unconfigured
        """
        pass

    async def close(self) -> None:
        """Release provider resources."""
        return None


class BrevoEmailSender(EmailSender):
    """Brevo transactional email sender."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        send_url: str = BREVO_SEND_URL,
    ):
        """
        Initialize Brevo sender.

        Args:
            api_key: Brevo API key (or from BREVO_API_TOKEN env var)
            from_email: Default sender email (or from NOTIFICATION_FROM_EMAIL env var)
            from_name: Default sender name (or from NOTIFICATION_FROM_NAME env var)
        """
        self.api_key = api_key or os.getenv("BREVO_API_TOKEN")
        self.from_email = from_email or os.getenv("NOTIFICATION_FROM_EMAIL", DEFAULT_FROM_EMAIL)
        self.from_name = from_name or os.getenv("NOTIFICATION_FROM_NAME", DEFAULT_FROM_NAME)
        self.send_url = send_url
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0))

        if not self.api_key:
            logger.warning("Brevo API key not configured")

    async def close(self) -> None:
        await self._client.aclose()

    def _build_payload(self, message: EmailMessage) -> dict:
        recipient = {"email": message.to_email}
        if message.to_name:
            recipient["name"] = message.to_name

        payload = {
            "sender": {
                "name": message.from_name or self.from_name,
                "email": message.from_email or self.from_email,
            },
            "to": [recipient],
            "subject": message.subject,
            "htmlContent": message.html_body,
        }
        if message.tags:
            payload["tags"] = message.tags
        return payload

    async def send(self, message: EmailMessage) -> EmailSendResult:
        """Send email via the Brevo API."""
        if not self.api_key:
            logger.error("Cannot send email: Brevo API key not configured")
            raise OrderEmailError.configuration("Brevo API key is not configured")

        logger.info(
            "Sending email via Brevo",
            extra={"to_email": message.to_email, "subject": message.subject},
        )

        try:
            response = await self._client.post(
                self.send_url,
                headers={
                    "api-key": self.api_key,
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                json=self._build_payload(message),
            )
        except httpx.HTTPError as e:
            logger.error(
                "Failed to send email via Brevo",
                extra={"to_email": message.to_email, "error": str(e)},
                exc_info=True,
            )
            raise OrderEmailError.mailer(f"Failed to send email via Brevo: {e}")

        try:
            body = response.json()
        except ValueError:
            body = response.text

        if not response.is_success:
            logger.error(
                "Brevo API error",
                extra={
                    "status_code": response.status_code,
                    "response": response.text[:500],
                    "to_email": message.to_email,
                },
            )
            raise OrderEmailError.mailer(
                f"Failed to send email via Brevo: HTTP {response.status_code}",
                status_code=response.status_code,
                details=body,
            )

        message_id = body.get("messageId") if isinstance(body, dict) else None
        if not message_id:
            logger.error(
                "Brevo response did not acknowledge the email",
                extra={"status_code": response.status_code, "to_email": message.to_email},
            )
            raise OrderEmailError.mailer(
                "Brevo did not return a message id",
                status_code=response.status_code,
                details=body,
            )

        logger.info(
            "Email sent successfully",
            extra={"to_email": message.to_email, "message_id": message_id},
        )
        return EmailSendResult(message_id=message_id)


class MockEmailSender(EmailSender):
    """Mock email sender for testing."""

    def __init__(self):
        """Initialize mock sender."""
        self.sent_messages: List[EmailMessage] = []

    async def send(self, message: EmailMessage) -> EmailSendResult:
        """Record email in sent_messages list."""
        self.sent_messages.append(message)
        logger.info(
            "Mock email sent",
            extra={
                "to_email": message.to_email,
                "subject": message.subject,
            },
        )
        return EmailSendResult(message_id=f"<mock-{uuid.uuid4()}@localhost>")

    def clear(self) -> None:
        """Clear sent messages."""
        self.sent_messages.clear()


def get_email_sender() -> EmailSender:
    """
    Get configured email sender based on environment.

    Returns:
        Appropriate EmailSender implementation
    """
    provider = os.getenv("NOTIFICATION_EMAIL_PROVIDER", "brevo").lower()

    if provider == "mock":
        return MockEmailSender()
    return BrevoEmailSender()
