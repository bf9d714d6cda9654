"""
Shared Pydantic schemas for LLM responses and digest results.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class TokenUsage(BaseModel):
    """Token accounting reported by the LLM provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class AIResponse(BaseModel):
    """Plain-text completion together with its token accounting."""

    content: str
    model: str | None = None
    usage: TokenUsage = Field(default_factory=TokenUsage)


class SummaryResult(BaseModel):
    """Narrative summary of a conversation transcript."""

    summary: str
    usage: TokenUsage


class TranscriptPreview(BaseModel):
    """Rendered transcript for a channel and time range, without summarization."""

    channel_id: str
    start_date: datetime
    end_date: datetime
    message_count: int
    formatted_messages: str


class ChannelSummary(BaseModel):
    """Narrative summary of a channel over a time range."""

    channel_id: str
    start_date: datetime
    end_date: datetime
    message_count: int
    summary: str
    usage: TokenUsage


class EmailReceipt(BaseModel):
    """Delivery acknowledgement from the email transport."""

    id: str
    message: str | None = None


class EmailSummaryResult(BaseModel):
    """Outcome of emailing a channel summary to one recipient."""

    success: bool = True
    channel_id: str
    to: str
    start_date: datetime
    end_date: datetime
    message_count: int
    email_id: str
