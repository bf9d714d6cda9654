from contextlib import asynccontextmanager, contextmanager
from types import SimpleNamespace


class NullTelemetry:
    """A no-op implementation of Telemetry for testing"""

    def __init__(self):
        def _counter():
            return SimpleNamespace(add=lambda *args, **kwargs: None)

        def _histogram():
            return SimpleNamespace(record=lambda *args, **kwargs: None)

        def _timer():
            # Return callable that returns 0.0 seconds when invoked
            return lambda: 0.0

        self.metrics = SimpleNamespace(
            message_counter=_counter(),
            messages_archived=_counter(),
            transcripts_rendered=_counter(),
            transcript_messages=_histogram(),
            prompt_tokens_counter=_counter(),
            completion_tokens_counter=_counter(),
            total_tokens_counter=_counter(),
            llm_requests=_counter(),
            llm_latency=_histogram(),
            emails_sent=_counter(),
            digest_jobs=_counter(),
            db_latency=_histogram(),
            timer=_timer
        )

    @contextmanager
    def create_span(self, name, kind=None, attributes=None):
        """No-op span for synchronous code"""
        yield SimpleNamespace(
            set_attribute=lambda *args: None,
            set_status=lambda *args: None,
            record_exception=lambda *args: None
        )

    @asynccontextmanager
    async def async_create_span(self, name, kind=None, attributes=None):
        """No-op span for async code"""
        yield SimpleNamespace(
            set_attribute=lambda *args: None,
            set_status=lambda *args: None,
            record_exception=lambda *args: None
        )

    def increment_message_counter(self, *args, **kwargs):
        pass

    def track_token_usage(self, *args, **kwargs):
        pass
