from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from utils import parse_guild_channels


class AppConfig(BaseSettings):
    """Centralized configuration model for all environment variables."""

    # Database configuration
    postgres_host: str = Field(env="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, env="POSTGRES_PORT")
    postgres_user: str = Field(env="POSTGRES_USER")
    postgres_password: str = Field(env="POSTGRES_PASSWORD")
    postgres_db: str = Field(env="POSTGRES_DB")

    # OpenAI configuration
    openai_api_key: str = Field(env="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", env="OPENAI_MODEL")
    openai_max_tokens: int = Field(default=10000, env="OPENAI_MAX_TOKENS")
    openai_temperature: float = Field(default=0.7, env="OPENAI_TEMPERATURE")

    # Mailgun configuration
    mailgun_api_key: str = Field(env="MAILGUN_API_KEY")
    mailgun_domain: str = Field(env="MAILGUN_DOMAIN")
    mailgun_from: str = Field(
        default="Discord Newsletter <newsletter@example.com>", env="MAILGUN_FROM"
    )
    mailgun_base_url: str = Field(default="https://api.mailgun.net/v3", env="MAILGUN_BASE_URL")

    # Discord configuration, only needed by the listener
    discord_token: str = Field(default="", env="DISCORD_TOKEN")
    guild_channels: str = Field(default="", env="GUILD_CHANNELS")

    # Transcripts up to this many messages are rendered without threading
    flat_render_threshold: int = Field(default=50, env="FLAT_RENDER_THRESHOLD")

    # OpenTelemetry configuration
    otel_service_name: str = Field(default="channel-digest", env="OTEL_SERVICE_NAME")
    otel_exporter_otlp_endpoint: str = Field(
        default="localhost:4317", env="OTEL_EXPORTER_OTLP_ENDPOINT"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",  # Ignore extra environment variables
    }

    @field_validator("postgres_port")
    @classmethod
    def validate_postgres_port(cls, v: int) -> int:
        """Validate PostgreSQL port is within valid range."""
        if not (1 <= v <= 65535):
            raise ValueError("POSTGRES_PORT must be between 1 and 65535")
        return v

    @field_validator("openai_max_tokens")
    @classmethod
    def validate_openai_max_tokens(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("OPENAI_MAX_TOKENS must be positive")
        return v

    @field_validator("flat_render_threshold")
    @classmethod
    def validate_flat_render_threshold(cls, v: int) -> int:
        if v < 0:
            raise ValueError("FLAT_RENDER_THRESHOLD must not be negative")
        return v

    @field_validator("openai_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        """Validate temperature is within valid range."""
        if not (0.0 <= v <= 2.0):
            raise ValueError("Temperature must be between 0.0 and 2.0")
        return v

    @field_validator("guild_channels")
    @classmethod
    def validate_guild_channels(cls, v: str) -> str:
        """Validate GUILD_CHANNELS is a comma-separated list of guildId:channelId pairs."""
        parse_guild_channels(v)
        return v
