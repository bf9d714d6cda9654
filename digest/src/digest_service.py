import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from opentelemetry.trace import SpanKind

from channel_summarizer import ChannelSummarizer
from chat_message import ChatMessage
from conversation_formatter import ConversationFormatter
from mailgun_client import MailgunClient
from open_telemetry import Telemetry
from schemas import ChannelSummary, EmailReceipt, EmailSummaryResult, TranscriptPreview
from store import MessageStore
from summary_email import SummaryMetadata, build_subject, render_html_email, render_text_email
from utils import parse_duration

logger = logging.getLogger(__name__)


class DigestError(Exception):
    """Base class for digest request failures."""


class NoMessagesFoundError(DigestError):
    """The store returned no messages for the requested channel and range."""

    def __init__(self, channel_id: str):
        super().__init__("No messages found for the specified channel and time range")
        self.channel_id = channel_id


class InvalidTimePeriodError(DigestError, ValueError):
    """The requested look-back period could not be parsed."""


class DigestService:
    """Fetches channel history, renders it, summarizes it and mails the result."""

    def __init__(
        self,
        store: MessageStore,
        formatter: ConversationFormatter,
        summarizer: ChannelSummarizer,
        mailer: MailgunClient,
        telemetry: Telemetry,
    ):
        self._store = store
        self._formatter = formatter
        self._summarizer = summarizer
        self._mailer = mailer
        self._telemetry = telemetry

    async def _load_messages(self, channel_id: str, start: datetime, end: datetime) -> list[ChatMessage]:
        messages = await self._store.get_channel_messages(channel_id, start=start, end=end)
        if not messages:
            raise NoMessagesFoundError(channel_id)
        return messages

    def _render(self, messages: Sequence[ChatMessage]) -> str:
        strategy = "flat" if len(messages) <= self._formatter.flat_threshold else "threaded"
        with self._telemetry.create_span("render_transcript") as span:
            span.set_attribute("message_count", len(messages))
            span.set_attribute("strategy", strategy)
            transcript = self._formatter.format_transcript(messages)

        self._telemetry.metrics.transcripts_rendered.add(1, {"strategy": strategy})
        self._telemetry.metrics.transcript_messages.record(len(messages), {"strategy": strategy})
        return transcript

    async def preview_transcript(self, channel_id: str, start: datetime, end: datetime) -> TranscriptPreview:
        """Render the transcript that would be sent to the summarizer."""
        async with self._telemetry.async_create_span("preview_transcript") as span:
            span.set_attribute("channel_id", channel_id)
            messages = await self._load_messages(channel_id, start, end)

            return TranscriptPreview(
                channel_id=channel_id,
                start_date=start,
                end_date=end,
                message_count=len(messages),
                formatted_messages=self._render(messages),
            )

    async def summarize_channel(
        self,
        channel_id: str,
        start: datetime,
        end: datetime,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> ChannelSummary:
        """Summarize a channel's messages between two timestamps."""
        async with self._telemetry.async_create_span("summarize_channel", kind=SpanKind.INTERNAL) as span:
            span.set_attribute("channel_id", channel_id)
            try:
                messages = await self._load_messages(channel_id, start, end)
                span.set_attribute("message_count", len(messages))

                result = await self._summarizer.summarize(self._render(messages), model=model, max_tokens=max_tokens)
            except Exception as e:
                self._telemetry.metrics.digest_jobs.add(
                    1, {"kind": "summary", "outcome": type(e).__name__}
                )
                raise

            self._telemetry.metrics.digest_jobs.add(1, {"kind": "summary", "outcome": "success"})
            return ChannelSummary(
                channel_id=channel_id,
                start_date=start,
                end_date=end,
                message_count=len(messages),
                summary=result.summary,
                usage=result.usage,
            )

    async def email_channel_summary(
        self,
        channel_id: str,
        to: str,
        since: str,
        format: str = "html",
        model: str | None = None,
        max_tokens: int | None = None,
        now: datetime | None = None,
    ) -> EmailSummaryResult:
        """
        Summarize the last ``since`` of a channel and email it.

        Args:
            channel_id: Channel to summarize
            to: Recipient address
            since: Look-back period such as "24h" or "7d"
            format: "html" sends an HTML part alongside the text, anything else text only
            model: Optional model override
            max_tokens: Optional completion token budget override
            now: End of the window, defaults to the current time

        Raises:
            ValueError: If the recipient is missing
            InvalidTimePeriodError: If ``since`` cannot be parsed
            NoMessagesFoundError: If the window holds no messages
        """
        if not to:
            raise ValueError("Email recipient (to) is required")
        if not since:
            raise InvalidTimePeriodError("Time period (since) is required")

        try:
            duration = parse_duration(since)
        except ValueError as e:
            raise InvalidTimePeriodError(
                'Invalid time period format. Use values like "24h", "1d", "7d", etc.'
            ) from e

        end = now or datetime.now(timezone.utc)
        start = end - duration

        async with self._telemetry.async_create_span("email_channel_summary") as span:
            span.set_attribute("channel_id", channel_id)
            span.set_attribute("since", since)

            summary = await self.summarize_channel(channel_id, start, end, model=model, max_tokens=max_tokens)
            metadata = SummaryMetadata(
                channel_id=channel_id,
                start_date=start,
                end_date=end,
                message_count=summary.message_count,
            )
            receipt = await self._send_summary_email(to, summary.summary, metadata, format, generated_on=end)

            logger.info(f"Summary of {summary.message_count} messages in {channel_id} sent to {to} ({receipt.id})")
            return EmailSummaryResult(
                channel_id=channel_id,
                to=to,
                start_date=start,
                end_date=end,
                message_count=summary.message_count,
                email_id=receipt.id,
            )

    async def _send_summary_email(
        self, to: str, summary: str, metadata: SummaryMetadata, format: str, generated_on: datetime
    ) -> EmailReceipt:
        subject = build_subject(metadata.start_date, metadata.end_date)
        text = render_text_email(summary, metadata, generated_on)

        if (format or "").lower() == "html":
            html = render_html_email(summary, metadata, generated_on)
            return await self._mailer.send_email(to=to, subject=subject, text=text, html=html)

        return await self._mailer.send_email(to=to, subject=subject, text=text)

    async def export_messages(
        self,
        channel_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        format: str = "txt",
    ) -> str | Sequence[ChatMessage]:
        """Read a channel oldest-first and format it for export."""
        messages = await self._store.get_channel_messages(channel_id, start=start, end=end)
        logger.info(f"Exporting {len(messages)} messages from channel {channel_id} as {format}")
        return self._formatter.format_messages(messages, format=format)
