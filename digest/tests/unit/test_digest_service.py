import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

from channel_summarizer import ChannelSummarizer
from chat_message import ChatMessage
from conversation_formatter import ConversationFormatter
from digest_service import DigestService, InvalidTimePeriodError, NoMessagesFoundError
from in_memory_store import InMemoryMessageStore
from mailgun_client import MailgunClient
from null_telemetry import NullTelemetry
from schemas import EmailReceipt, SummaryResult, TokenUsage

NOW = datetime(2025, 4, 3, 12, 0, tzinfo=timezone.utc)


def create_message(msg_id: str, hours_ago: float, channel_id: str = "chan", **kwargs) -> ChatMessage:
    return ChatMessage(
        id=msg_id,
        content=f"message {msg_id}",
        author_username="alice",
        created_at=NOW - timedelta(hours=hours_ago),
        channel_id=channel_id,
        **kwargs,
    )


class TestDigestService(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.store = InMemoryMessageStore([
            create_message("old", hours_ago=30),
            create_message("1", hours_ago=3),
            create_message("2", hours_ago=2, reply_to_id="1"),
            create_message("t1", hours_ago=1, channel_id="thread", thread_id="1", parent_id="chan"),
            create_message("elsewhere", hours_ago=1, channel_id="other"),
        ])
        self.summarizer = Mock(spec=ChannelSummarizer)
        self.summarizer.summarize = AsyncMock(
            return_value=SummaryResult(summary="## News\n\nalice posted", usage=TokenUsage(total_tokens=7))
        )
        self.mailer = Mock(spec=MailgunClient)
        self.mailer.send_email = AsyncMock(return_value=EmailReceipt(id="<mail-id>"))
        self.service = DigestService(
            store=self.store,
            formatter=ConversationFormatter(),
            summarizer=self.summarizer,
            mailer=self.mailer,
            telemetry=NullTelemetry(),
        )

    async def test_preview_includes_thread_messages(self):
        preview = await self.service.preview_transcript("chan", NOW - timedelta(hours=24), NOW)

        self.assertEqual(preview.message_count, 3)
        lines = preview.formatted_messages.splitlines()
        self.assertEqual([l.split(": ", 1)[1] for l in lines], ["message 1", "message 2", "message t1"])

    async def test_summarize_channel(self):
        summary = await self.service.summarize_channel("chan", NOW - timedelta(hours=24), NOW, model="gpt-4o")

        self.assertEqual(summary.summary, "## News\n\nalice posted")
        self.assertEqual(summary.message_count, 3)
        self.assertEqual(summary.usage.total_tokens, 7)
        transcript = self.summarizer.summarize.await_args.args[0]
        self.assertIn("alice: message 2", transcript)
        self.assertEqual(self.summarizer.summarize.await_args.kwargs, {"model": "gpt-4o", "max_tokens": None})

    async def test_no_messages_raises(self):
        with self.assertRaises(NoMessagesFoundError) as cm:
            await self.service.summarize_channel("empty", NOW - timedelta(hours=24), NOW)

        self.assertEqual(cm.exception.channel_id, "empty")
        self.summarizer.summarize.assert_not_awaited()

    async def test_email_channel_summary_sends_html_and_text(self):
        result = await self.service.email_channel_summary("chan", to="reader@example.com", since="24h", now=NOW)

        self.assertTrue(result.success)
        self.assertEqual(result.email_id, "<mail-id>")
        self.assertEqual(result.start_date, NOW - timedelta(hours=24))
        self.assertEqual(result.end_date, NOW)
        self.assertEqual(result.message_count, 3)
        self.assertEqual(self.store.queries[-1], {"channel_id": "chan", "start": NOW - timedelta(hours=24), "end": NOW})

        kwargs = self.mailer.send_email.await_args.kwargs
        self.assertEqual(kwargs["to"], "reader@example.com")
        self.assertEqual(kwargs["subject"], "Discord Channel Summary (2025-04-02 to 2025-04-03)")
        self.assertIn("Messages Processed: 3", kwargs["text"])
        self.assertIn("<h2>News</h2>", kwargs["html"])

    async def test_email_channel_summary_text_format(self):
        await self.service.email_channel_summary(
            "chan", to="reader@example.com", since="6h", format="text", now=NOW
        )

        kwargs = self.mailer.send_email.await_args.kwargs
        self.assertNotIn("html", kwargs)
        self.assertIn("alice posted", kwargs["text"])

    async def test_email_requires_recipient(self):
        with self.assertRaises(ValueError):
            await self.service.email_channel_summary("chan", to="", since="24h", now=NOW)

    async def test_invalid_period(self):
        for since in ("", "soon", "0h"):
            with self.subTest(since=since):
                with self.assertRaises(InvalidTimePeriodError):
                    await self.service.email_channel_summary("chan", to="reader@example.com", since=since)

        self.mailer.send_email.assert_not_awaited()

    async def test_empty_window_does_not_send(self):
        with self.assertRaises(NoMessagesFoundError):
            await self.service.email_channel_summary("chan", to="reader@example.com", since="30m", now=NOW)

        self.mailer.send_email.assert_not_awaited()

    async def test_export_messages(self):
        text = await self.service.export_messages("chan", format="txt")
        raw = await self.service.export_messages("chan", format="json")

        self.assertEqual(len(text.splitlines()), 4)
        self.assertIn("message old", text.splitlines()[0])
        self.assertEqual([m.id for m in raw], ["old", "1", "2", "t1"])

    async def test_export_empty_channel(self):
        self.assertEqual(await self.service.export_messages("empty", format="txt"), "")
        self.assertEqual(await self.service.export_messages("empty", format="json"), [])


if __name__ == '__main__':
    unittest.main()
