import re
from dataclasses import dataclass
from datetime import datetime, timedelta

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-z]*)\s*$", re.IGNORECASE)

_UNIT_SECONDS = {
    "ms": 0.001, "msec": 0.001, "msecs": 0.001, "millisecond": 0.001, "milliseconds": 0.001,
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "h": 3600, "hr": 3600, "hrs": 3600, "hour": 3600, "hours": 3600,
    "d": 86400, "day": 86400, "days": 86400,
    "w": 604800, "week": 604800, "weeks": 604800,
}


def parse_duration(text: str) -> timedelta:
    """Parse a short duration such as "24h", "7d" or "90 minutes".

    A bare number is taken as milliseconds.
    """
    match = _DURATION_PATTERN.match(text or "")
    if not match:
        raise ValueError(f'Invalid time period "{text}"')

    amount, unit = match.groups()
    unit = unit.lower() or "ms"
    if unit not in _UNIT_SECONDS:
        raise ValueError(f'Unknown time unit "{unit}" in "{text}"')

    duration = timedelta(seconds=float(amount) * _UNIT_SECONDS[unit])
    if duration <= timedelta(0):
        raise ValueError(f'Time period "{text}" must be positive')
    return duration


def format_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


@dataclass(frozen=True)
class GuildChannel:
    guild_id: str
    channel_id: str


def parse_guild_channels(value: str) -> list[GuildChannel]:
    """Parse "guildId:channelId,guildId:channelId" into GuildChannel entries."""
    entries = []
    for entry in filter(None, (part.strip() for part in (value or "").split(","))):
        guild_id, _, channel_id = entry.partition(":")
        if not guild_id.strip() or not channel_id.strip():
            raise ValueError('Invalid GUILD_CHANNELS format. Use "guildId:channelId,guildId:channelId"')
        entries.append(GuildChannel(guild_id=guild_id.strip(), channel_id=channel_id.strip()))
    return entries
