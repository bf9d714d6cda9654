import datetime
from dataclasses import dataclass, field, asdict
from typing import Any


@dataclass
class Attachment:
    url: str
    name: str | None = None
    size: int | None = None
    id: str | None = None


@dataclass
class Embed:
    type: str = "rich"
    title: str | None = None
    description: str | None = None
    url: str | None = None


@dataclass
class ChatMessage:
    """Archived chat message as stored and as consumed by the formatter."""
    id: str
    content: str | None
    author_username: str | None
    created_at: datetime.datetime
    thread_id: str | None = None
    reply_to_id: str | None = None
    attachments: list[Attachment] = field(default_factory=list)
    embeds: list[Embed] = field(default_factory=list)
    author_id: str | None = None
    channel_id: str | None = None
    channel_name: str | None = None
    guild_id: str | None = None
    guild_name: str | None = None
    parent_id: str | None = None
    updated_at: datetime.datetime | None = None
    mentions_reply_target: bool = False

    def __post_init__(self) -> None:
        if self.attachments is None:
            self.attachments = []
        if self.embeds is None:
            self.embeds = []

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = _isoformat(self.created_at)
        data["updated_at"] = _isoformat(self.updated_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        """Build a message from a dict with snake_case or camelCase keys."""
        def get(snake: str, camel: str | None = None, default: Any = None) -> Any:
            if snake in data:
                return data[snake]
            if camel and camel in data:
                return data[camel]
            return default

        created_at = _parse_timestamp(get("created_at", "createdAt"))
        if created_at is None:
            raise ValueError(f"Message {get('id')} has no created_at/createdAt timestamp")

        attachments = [
            a if isinstance(a, Attachment) else Attachment(
                url=a.get("url"), name=a.get("name"), size=a.get("size"), id=a.get("id")
            )
            for a in get("attachments") or []
        ]
        embeds = [
            e if isinstance(e, Embed) else Embed(
                type=e.get("type") or "rich",
                title=e.get("title"),
                description=e.get("description"),
                url=e.get("url"),
            )
            for e in get("embeds") or []
        ]

        return cls(
            id=str(get("id")),
            content=get("content"),
            author_username=get("author_username", "authorUsername"),
            created_at=created_at,
            thread_id=_optional_id(get("thread_id", "threadId")),
            reply_to_id=_optional_id(get("reply_to_id", "replyToId")),
            attachments=attachments,
            embeds=embeds,
            author_id=_optional_id(get("author_id", "authorId")),
            channel_id=_optional_id(get("channel_id", "channelId")),
            channel_name=get("channel_name", "channelName"),
            guild_id=_optional_id(get("guild_id", "guildId")),
            guild_name=get("guild_name", "guildName"),
            parent_id=_optional_id(get("parent_id", "parentId")),
            updated_at=_parse_timestamp(get("updated_at", "updatedAt")),
            mentions_reply_target=bool(get("mentions_reply_target", "mentionsReplyTarget", False)),
        )


def _optional_id(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _parse_timestamp(value: Any) -> datetime.datetime | None:
    if value is None or isinstance(value, datetime.datetime):
        return value
    # Accept the trailing "Z" that JavaScript's toISOString() produces
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.datetime.fromisoformat(text)


def _isoformat(value: datetime.datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
