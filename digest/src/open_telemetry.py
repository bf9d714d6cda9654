import uuid
import logging
import sys
from types import SimpleNamespace
import time

import nextcord
# OpenTelemetry imports
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.trace import SpanKind, Status, StatusCode
from contextlib import asynccontextmanager, contextmanager

# OpenTelemetry logging imports
from opentelemetry._logs import set_logger_provider
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter

# JSON logging for OpenTelemetry
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

LATENCY_BUCKETS_MS = [
    100.0, 250.0, 500.0, 750.0,  # Sub-second
    1000.0, 2000.0, 5000.0,
    10000.0, 15000.0, 30000.0,
    60000.0, 120000.0, 180000.0, 300000.0  # Long summaries (1-5 minutes)
]


class Telemetry:
    def __init__(self, service_name, endpoint):
        self.service_name = service_name
        self.endpoint = endpoint

        # Shared resource for logs, metrics and tracing
        self.resource = Resource.create({
            "service.name": self.service_name,
            "service.instance.id": self.get_container_id(),
        })

        self.setup_logging()

        self.metrics = self.setup_metrics()
        self.tracer = self.setup_tracing()

    def get_container_id(self):
        """Get the Docker container ID or generate a unique ID if not in Docker"""
        try:
            with open('/proc/self/cgroup', 'r') as f:
                for line in f:
                    if '/docker/' in line:
                        return line.split('/')[-1][:12]
        except (FileNotFoundError, OSError):
            pass

        try:
            with open('/etc/hostname', 'r') as f:
                hostname = f.read().strip()
                if len(hostname) == 12 and all(c in '0123456789abcdef' for c in hostname):
                    return hostname
        except (FileNotFoundError, OSError):
            pass

        return uuid.uuid4().hex[:12]

    def setup_logging(self):
        """Configure structured logging with standard stdout and OpenTelemetry integration."""
        stdout_handler = logging.StreamHandler(sys.stdout)

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.INFO)
        root_logger.addHandler(stdout_handler)

        console_formatter = logging.Formatter('[%(name)s] %(message)s')
        stdout_handler.setFormatter(console_formatter)

        otel_logger_provider = LoggerProvider(resource=self.resource)
        set_logger_provider(otel_logger_provider)

        otlp_log_exporter = OTLPLogExporter(
            endpoint=self.endpoint,
            insecure=True
        )
        otel_logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(otlp_log_exporter)
        )

        otel_handler = LoggingHandler(
            level=logging.NOTSET,
            logger_provider=otel_logger_provider
        )
        otel_handler.setFormatter(jsonlogger.JsonFormatter())

        root_logger.addHandler(otel_handler)

        logger.info("OpenTelemetry logging configured")

    def setup_metrics(self):
        """Set up OpenTelemetry metrics"""
        logger.info(f"Setting up OpenTelemetry metrics for {self.service_name} -> {self.endpoint}")

        otlp_exporter = OTLPMetricExporter(
            endpoint=self.endpoint,
            insecure=True
        )
        otlp_reader = PeriodicExportingMetricReader(
            exporter=otlp_exporter,
            export_interval_millis=15000
        )

        provider = MeterProvider(metric_readers=[otlp_reader], resource=self.resource)
        metrics.set_meter_provider(provider)

        meter = metrics.get_meter("channel_digest_metrics")

        message_counter = meter.create_counter(
            name="discord_messages",
            description="Number of Discord messages received",
            unit="1"
        )

        messages_archived = meter.create_counter(
            name="messages_archived_total",
            description="Archived messages by outcome (inserted, updated, error)",
            unit="1",
        )

        transcripts_rendered = meter.create_counter(
            name="transcripts_rendered_total",
            description="Rendered transcripts by strategy",
            unit="1",
        )

        transcript_messages = meter.create_histogram(
            name="transcript_messages",
            description="Number of messages per rendered transcript",
            unit="1",
        )

        prompt_tokens_counter = meter.create_counter(
            name="llm_prompt_tokens",
            description="Number of tokens used in prompts",
            unit="tokens"
        )

        completion_tokens_counter = meter.create_counter(
            name="llm_completion_tokens",
            description="Number of tokens used in completions",
            unit="tokens"
        )

        total_tokens_counter = meter.create_counter(
            name="llm_total_tokens",
            description="Total number of tokens used",
            unit="tokens"
        )

        llm_requests = meter.create_counter(
            name="llm_requests_total",
            description="Total LLM requests",
            unit="1",
        )

        llm_latency = meter.create_histogram(
            name="llm_latency",
            description="LLM request latency in milliseconds",
            unit="ms",
            explicit_bucket_boundaries=LATENCY_BUCKETS_MS,
        )

        emails_sent = meter.create_counter(
            name="emails_sent_total",
            description="Summary emails by outcome",
            unit="1",
        )

        digest_jobs = meter.create_counter(
            name="digest_jobs_total",
            description="Digest requests by kind and outcome",
            unit="1",
        )

        db_latency = meter.create_histogram(
            name="db_query_latency",
            description="Database operation latency",
            unit="ms",
        )

        def timer():
            t0 = time.monotonic()
            def elapsed_ms():
                return (time.monotonic() - t0) * 1000.0
            return elapsed_ms

        return SimpleNamespace(
            message_counter=message_counter,
            messages_archived=messages_archived,
            transcripts_rendered=transcripts_rendered,
            transcript_messages=transcript_messages,
            prompt_tokens_counter=prompt_tokens_counter,
            completion_tokens_counter=completion_tokens_counter,
            total_tokens_counter=total_tokens_counter,
            llm_requests=llm_requests,
            llm_latency=llm_latency,
            emails_sent=emails_sent,
            digest_jobs=digest_jobs,
            db_latency=db_latency,
            timer=timer
        )

    def setup_tracing(self):
        """Set up OpenTelemetry tracing"""
        otlp_span_exporter = OTLPSpanExporter(
            endpoint=self.endpoint,
            insecure=True
        )

        trace_provider = TracerProvider(resource=self.resource)
        trace_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
        trace.set_tracer_provider(trace_provider)
        logger.info(f"Tracer provider configured with OTLP exporter targeting {self.endpoint}")

        return trace.get_tracer("channel_digest_tracer")

    @contextmanager
    def create_span(self, name, kind=SpanKind.INTERNAL, attributes=None):
        """Create a span as a context manager for tracing operations"""
        span = self.tracer.start_span(name, kind=kind, attributes=attributes or {})
        try:
            with trace.use_span(span, end_on_exit=False):
                yield span
                span.set_status(Status(StatusCode.OK))
                span.end()
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR))
            span.record_exception(e)
            span.end()
            raise

    @asynccontextmanager
    async def async_create_span(self, name, kind=SpanKind.INTERNAL, attributes=None):
        """Create a span as an async context manager for async operations"""
        span = self.tracer.start_span(name, kind=kind, attributes=attributes or {})
        try:
            with trace.use_span(span, end_on_exit=False):
                yield span
                span.set_status(Status(StatusCode.OK))
                span.end()
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR))
            span.record_exception(e)
            span.end()
            raise

    def increment_message_counter(self, message: nextcord.Message):
        """Count a received Discord message by channel and guild"""
        try:
            attributes = {
                "channel_id": str(message.channel.id),
                "guild_id": str(message.guild.id) if message.guild else "dm",
            }
            self.metrics.message_counter.add(1, attributes)
        except Exception as e:
            logger.error(f"Error incrementing counter: {e}", exc_info=True)

    def track_token_usage(self, prompt_tokens: int, completion_tokens: int, total_tokens: int, attributes: dict = None):
        """Track token usage from LLM API calls with custom attributes"""
        try:
            attributes = {k: v for k, v in (attributes or {}).items() if v is not None}

            self.metrics.prompt_tokens_counter.add(prompt_tokens, attributes)
            self.metrics.completion_tokens_counter.add(completion_tokens, attributes)
            self.metrics.total_tokens_counter.add(total_tokens, attributes)

            logger.info(f"Token usage tracked - Prompt: {prompt_tokens}, Completion: {completion_tokens}, Total: {total_tokens}, Attributes: {attributes}")
        except Exception as e:
            logger.error(f"Error tracking token usage: {e}", exc_info=True)
