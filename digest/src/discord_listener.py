import logging

import nextcord
from opentelemetry.trace import SpanKind

from chat_message import Attachment, ChatMessage, Embed
from open_telemetry import Telemetry
from store import MessageStore
from utils import GuildChannel, parse_guild_channels

logger = logging.getLogger(__name__)


class ChannelFilter:
    """Decides whether a message belongs to one of the archived channels."""

    def __init__(self, channels: list[GuildChannel]) -> None:
        self.channels = set(channels)

    def __len__(self) -> int:
        return len(self.channels)

    def matches(self, message: nextcord.Message) -> bool:
        if message.guild is None:
            return False

        guild_id = str(message.guild.id)
        channel = message.channel
        if GuildChannel(guild_id, str(channel.id)) in self.channels:
            return True

        # Threads are archived under their parent channel
        if isinstance(channel, nextcord.Thread) and channel.parent_id is not None:
            return GuildChannel(guild_id, str(channel.parent_id)) in self.channels

        return False


def discord_to_chat_message(message: nextcord.Message) -> ChatMessage:
    """Convert a Discord message into the archived ChatMessage form."""
    channel = message.channel
    is_thread = isinstance(channel, nextcord.Thread)

    reply_to_id = None
    mentions_reply_target = False
    if message.reference and message.reference.message_id:
        reply_to_id = str(message.reference.message_id)
        resolved = getattr(message.reference, "resolved", None)
        if isinstance(resolved, nextcord.Message):
            mentions_reply_target = resolved.author in message.mentions

    return ChatMessage(
        id=str(message.id),
        content=message.content,
        author_username=message.author.name,
        created_at=message.created_at,
        thread_id=str(channel.id) if is_thread else None,
        reply_to_id=reply_to_id,
        attachments=[
            Attachment(id=str(a.id), url=a.url, name=a.filename, size=a.size)
            for a in message.attachments
        ],
        embeds=[
            Embed(type=e.type or "rich", title=e.title, description=e.description, url=e.url)
            for e in message.embeds
        ],
        author_id=str(message.author.id),
        channel_id=str(channel.id),
        channel_name=getattr(channel, "name", None),
        guild_id=str(message.guild.id) if message.guild else None,
        guild_name=message.guild.name if message.guild else None,
        parent_id=str(channel.parent_id) if is_thread and channel.parent_id else None,
        updated_at=message.edited_at or message.created_at,
        mentions_reply_target=mentions_reply_target,
    )


class DiscordListener:
    """Archives messages from the configured channels as they are posted or edited."""

    def __init__(
        self,
        store: MessageStore,
        telemetry: Telemetry,
        channel_filter: ChannelFilter,
        client: nextcord.Client | None = None,
    ) -> None:
        self._store = store
        self._telemetry = telemetry
        self._channel_filter = channel_filter

        if client is None:
            intents = nextcord.Intents.default()
            intents.message_content = True  # MUST have this to receive message content
            client = nextcord.Client(intents=intents)
        self.client = client

        self.client.event(self.on_ready)
        self.client.event(self.on_message)
        self.client.event(self.on_message_edit)

    async def on_ready(self) -> None:
        logger.info(f"Logged in as {self.client.user}, archiving {len(self._channel_filter)} channel(s)")

    async def on_message(self, message: nextcord.Message) -> None:
        await self.handle_message(message)

    async def on_message_edit(self, before: nextcord.Message, after: nextcord.Message) -> None:
        await self.handle_message(after)

    async def handle_message(self, message: nextcord.Message) -> bool:
        """Store a message if it comes from an archived channel.

        Returns:
            True if the message was stored
        """
        if message.guild is None or not self._channel_filter.matches(message):
            return False

        async with self._telemetry.async_create_span("archive_message", kind=SpanKind.CONSUMER) as span:
            span.set_attribute("guild_id", str(message.guild.id))
            span.set_attribute("channel_id", str(message.channel.id))
            self._telemetry.increment_message_counter(message)

            try:
                result = await self._store.save_message(discord_to_chat_message(message))
            except Exception as e:
                logger.error(f"Error saving message {message.id}: {e}", exc_info=True)
                span.record_exception(e)
                self._telemetry.metrics.messages_archived.add(1, {"outcome": "error"})
                return False

            outcome = "inserted" if result.was_inserted else "updated"
            self._telemetry.metrics.messages_archived.add(1, {"outcome": outcome})
            logger.info(
                f"Saved message {message.id} from guild {message.guild.id} channel {message.channel.id} ({outcome})"
            )
            return True

    def run(self, token: str) -> None:
        if not token:
            raise ValueError("DISCORD_TOKEN environment variable is required")
        if not len(self._channel_filter):
            raise ValueError("GUILD_CHANNELS environment variable is required")
        self.client.run(token)
