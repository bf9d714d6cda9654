"""
Channel summarizer turning a conversation transcript into a news-style digest.

The transcript produced by ConversationFormatter is passed to the model as-is,
so its ordering and completeness directly shape the summary.
"""

import logging
from ai_client import AIClient
from open_telemetry import Telemetry
from opentelemetry.trace import SpanKind
from schemas import SummaryResult

logger = logging.getLogger(__name__)


SUMMARY_PROMPT = """I need a daily email that will allow me to stay up to date on what's going on in discord channels. write a detailed news report as a journalist. Never say "a user" always use their username. No fluff preamble.

bad: soandso expressed excitement about whatever
good: soandso is excited about whatever

bad: soandso commented on whatever, indicating wanting to get it later
good: soandso wants to get whatever

if you mention a tip, technique, or resource, link it. (always link the noun like "github repo" and never "you can find the repo here")"""


class SummarizationError(RuntimeError):
    """Raised when the model returns no usable summary."""


class ChannelSummarizer:
    """Generates narrative summaries of channel transcripts."""

    def __init__(self, ai_client: AIClient, telemetry: Telemetry):
        self.ai_client = ai_client
        self.telemetry = telemetry

    async def summarize(
        self, transcript: str, model: str | None = None, max_tokens: int | None = None
    ) -> SummaryResult:
        """
        Summarize a rendered transcript.

        Args:
            transcript: Plain-text transcript of the conversation
            model: Optional model override
            max_tokens: Optional completion token budget override

        Returns:
            SummaryResult with the summary text and token usage

        Raises:
            ValueError: If the transcript is empty
            SummarizationError: If the model returns an empty summary
        """
        if not transcript or not transcript.strip():
            raise ValueError("Cannot summarize an empty transcript")

        async with self.telemetry.async_create_span("summarize_transcript", kind=SpanKind.CLIENT) as span:
            span.set_attribute("transcript_length", len(transcript))
            if model:
                span.set_attribute("model", model)

            logger.info(f"Summarizing transcript of {len(transcript)} characters")

            response = await self.ai_client.generate_content(
                message=f"{SUMMARY_PROMPT}\n\n{transcript}",
                max_tokens=max_tokens,
                model=model,
            )

            summary = response.content.strip()
            if not summary:
                raise SummarizationError("Model returned an empty summary")

            span.set_attribute("summary_length", len(summary))
            span.set_attribute("total_tokens", response.usage.total_tokens)
            return SummaryResult(summary=summary, usage=response.usage)
