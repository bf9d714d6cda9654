from store import MessageStore
from open_telemetry import Telemetry
from openai_client import OpenAIClient
from ai_client_wrappers import RetryAIClient
from channel_summarizer import ChannelSummarizer
from conversation_formatter import ConversationFormatter
from mailgun_client import MailgunClient
from digest_service import DigestService
from discord_listener import ChannelFilter, DiscordListener
from utils import parse_guild_channels
from config import AppConfig


class Container:
    def __init__(self, config: AppConfig | None = None):
        self.config = config or AppConfig()

        self.telemetry = Telemetry(
            service_name=self.config.otel_service_name,
            endpoint=self.config.otel_exporter_otlp_endpoint,
        )

        self.store = MessageStore(
            telemetry=self.telemetry,
            host=self.config.postgres_host,
            port=self.config.postgres_port,
            user=self.config.postgres_user,
            password=self.config.postgres_password,
            database=self.config.postgres_db,
        )

        self.openai = OpenAIClient(
            api_key=self.config.openai_api_key,
            model_name=self.config.openai_model,
            telemetry=self.telemetry,
            max_tokens=self.config.openai_max_tokens,
            temperature=self.config.openai_temperature,
        )

        # Summaries are long-running; retry transient failures for up to two minutes
        self.retrying_openai = RetryAIClient(self.openai, telemetry=self.telemetry, max_time=120, jitter=True)

        self.summarizer = ChannelSummarizer(self.retrying_openai, self.telemetry)

        self.formatter = ConversationFormatter(flat_threshold=self.config.flat_render_threshold)

        self.mailer = MailgunClient(
            api_key=self.config.mailgun_api_key,
            domain=self.config.mailgun_domain,
            sender=self.config.mailgun_from,
            telemetry=self.telemetry,
            base_url=self.config.mailgun_base_url,
        )

        self.digest_service = DigestService(
            store=self.store,
            formatter=self.formatter,
            summarizer=self.summarizer,
            mailer=self.mailer,
            telemetry=self.telemetry,
        )

    def build_listener(self) -> DiscordListener:
        channel_filter = ChannelFilter(parse_guild_channels(self.config.guild_channels))
        return DiscordListener(store=self.store, telemetry=self.telemetry, channel_filter=channel_filter)


# Create a single instance to be imported by other modules
container = Container()
