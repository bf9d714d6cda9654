import logging

import aiohttp
from opentelemetry.trace import SpanKind
from pydantic import BaseModel, ValidationError

from open_telemetry import Telemetry
from schemas import EmailReceipt

logger = logging.getLogger(__name__)


# === Response Models ===


class MailgunSendResponse(BaseModel):
    """Successful Mailgun messages API response."""

    id: str
    message: str | None = None


# === Exceptions ===


class MailgunError(Exception):
    """Error sending an email through Mailgun."""

    pass


class MailgunConnectionError(MailgunError):
    """Connection to Mailgun failed."""

    pass


class MailgunClient:
    """Client for the Mailgun messages API."""

    def __init__(
        self,
        api_key: str,
        domain: str,
        sender: str,
        telemetry: Telemetry,
        base_url: str = "https://api.mailgun.net/v3",
        timeout: float = 30.0,
    ):
        """
        Initialize Mailgun client.

        Args:
            api_key: Mailgun private API key
            domain: Sending domain configured in Mailgun
            sender: From header, e.g. "Discord Newsletter <newsletter@example.com>"
            telemetry: Telemetry instance for tracing
            base_url: API base URL (EU accounts use https://api.eu.mailgun.net/v3)
            timeout: Total request timeout in seconds
        """
        if not api_key:
            raise ValueError("MAILGUN_API_KEY environment variable is required")
        if not domain:
            raise ValueError("MAILGUN_DOMAIN environment variable is required")

        self.api_key = api_key
        self.domain = domain
        self.sender = sender
        self.telemetry = telemetry
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/{self.domain}/messages"

    async def send_email(self, to: str, subject: str, text: str | None = None, html: str | None = None) -> EmailReceipt:
        """
        Send an email.

        Args:
            to: Recipient email address
            subject: Email subject
            text: Plain text body
            html: Optional HTML body

        Returns:
            EmailReceipt with the Mailgun message id

        Raises:
            ValueError: Missing recipient, subject or body
            MailgunConnectionError: Mailgun could not be reached
            MailgunError: Mailgun rejected the request
        """
        if not to:
            raise ValueError("Recipient email (to) is required")
        if not subject:
            raise ValueError("Email subject is required")
        if not text and not html:
            raise ValueError("Email body (text or html) is required")

        data = {
            "from": self.sender,
            "to": to,
            "subject": subject,
            "text": text or "",
        }
        if html:
            data["html"] = html

        async with self.telemetry.async_create_span("mailgun.send_email", kind=SpanKind.CLIENT) as span:
            span.set_attribute("subject", subject)
            span.set_attribute("has_html", bool(html))

            try:
                async with aiohttp.ClientSession() as session:
                    async with session.post(
                        self.messages_url,
                        data=data,
                        auth=aiohttp.BasicAuth("api", self.api_key),
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        try:
                            body = await response.json(content_type=None)
                        except ValueError as e:
                            # Mailgun answers some auth failures with plain text, e.g. "Forbidden"
                            raise MailgunError(f"Mailgun API error {response.status}: non-JSON response") from e
                        receipt = self._parse_response(body, response.status)
            except aiohttp.ClientError as e:
                logger.error("Mailgun connection error", exc_info=True)
                self.telemetry.metrics.emails_sent.add(1, {"outcome": "error"})
                raise MailgunConnectionError(f"Connection error: {e}") from e
            except MailgunError:
                self.telemetry.metrics.emails_sent.add(1, {"outcome": "rejected"})
                raise
            except Exception as e:
                logger.error("Unexpected Mailgun error", exc_info=True)
                self.telemetry.metrics.emails_sent.add(1, {"outcome": "error"})
                raise MailgunError(f"Unexpected error: {e}") from e

            span.set_attribute("email_id", receipt.id)
            self.telemetry.metrics.emails_sent.add(1, {"outcome": "success"})
            logger.info(f"Email {receipt.id} queued for {to}")
            return receipt

    def _parse_response(self, data: dict | None, http_status: int) -> EmailReceipt:
        """Parse Mailgun API response."""
        if http_status >= 400:
            detail = (data or {}).get("message") if isinstance(data, dict) else None
            raise MailgunError(f"Mailgun API error {http_status}: {detail or data}")

        try:
            parsed = MailgunSendResponse.model_validate(data)
        except ValidationError as e:
            raise MailgunError(f"Unexpected Mailgun response: {data}") from e

        return EmailReceipt(id=parsed.id, message=parsed.message)
