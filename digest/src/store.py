import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime

import psycopg
from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from chat_message import ChatMessage, Attachment, Embed
from open_telemetry import Telemetry

logger = logging.getLogger(__name__)

MESSAGE_COLUMNS = """
    message_id, content, author_id, author_username, channel_id, channel_name,
    guild_id, guild_name, thread_id, parent_id, created_at, updated_at,
    reply_to_id, mentions_reply_target, attachments, embeds
"""


@dataclass
class SaveResult:
    message_id: str
    was_inserted: bool
    was_updated: bool


class MessageStore:
    def __init__(self, telemetry: Telemetry, host: str = "localhost",
                 port: int = 5432,
                 user: str = "postgres",
                 password: str = "postgres",
                 database: str = "postgres"):
        self._telemetry = telemetry
        self.connection_params = {
            "host": host,
            "port": port,
            "user": user,
            "password": password,
            "dbname": database
        }
        self.conn: AsyncConnection | None = None

    async def _connect(self) -> AsyncConnection:
        return await psycopg.AsyncConnection.connect(**self.connection_params, row_factory=dict_row)

    async def _ensure_connection(self) -> None:
        if self.conn is None or self.conn.closed:
            if self.conn is not None:
                try:
                    await self.conn.close()
                except psycopg.Error:
                    logger.warning("Failed to close stale connection", exc_info=True)
            self.conn = await self._connect()

    async def close(self) -> None:
        if self.conn is not None and not self.conn.closed:
            await self.conn.close()
        self.conn = None

    async def save_message(self, message: ChatMessage) -> SaveResult:
        """Insert or update a message keyed by its id."""
        async with self._telemetry.async_create_span("save_message") as span:
            span.set_attribute("message_id", message.id)
            span.set_attribute("channel_id", str(message.channel_id))

            timer = self._telemetry.metrics.timer()
            try:
                await self._ensure_connection()
                async with self.conn.cursor() as cur:
                    await cur.execute(
                        f"""
                        INSERT INTO messages ({MESSAGE_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        ON CONFLICT (message_id) DO UPDATE SET
                            content = EXCLUDED.content,
                            author_id = EXCLUDED.author_id,
                            author_username = EXCLUDED.author_username,
                            channel_id = EXCLUDED.channel_id,
                            channel_name = EXCLUDED.channel_name,
                            guild_id = EXCLUDED.guild_id,
                            guild_name = EXCLUDED.guild_name,
                            thread_id = EXCLUDED.thread_id,
                            parent_id = EXCLUDED.parent_id,
                            created_at = EXCLUDED.created_at,
                            updated_at = EXCLUDED.updated_at,
                            reply_to_id = EXCLUDED.reply_to_id,
                            mentions_reply_target = EXCLUDED.mentions_reply_target,
                            attachments = EXCLUDED.attachments,
                            embeds = EXCLUDED.embeds
                        RETURNING (xmax = 0) AS inserted
                        """,
                        (
                            message.id, message.content, message.author_id, message.author_username,
                            message.channel_id, message.channel_name, message.guild_id, message.guild_name,
                            message.thread_id, message.parent_id, message.created_at,
                            message.updated_at or message.created_at, message.reply_to_id,
                            message.mentions_reply_target,
                            Jsonb([asdict(a) for a in message.attachments]),
                            Jsonb([asdict(e) for e in message.embeds]),
                        )
                    )
                    row = await cur.fetchone()
                    await self.conn.commit()
            except Exception:
                if self.conn is not None and not self.conn.closed:
                    await self.conn.rollback()
                raise
            finally:
                self._telemetry.metrics.db_latency.record(timer(), {"operation": "save_message"})

            inserted = bool(row["inserted"])
            span.set_attribute("inserted", inserted)
            return SaveResult(message_id=message.id, was_inserted=inserted, was_updated=not inserted)

    async def get_message(self, message_id: str) -> ChatMessage | None:
        rows = await self._fetch(
            "get_message",
            f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE message_id = %s",
            (message_id,),
        )
        return rows[0] if rows else None

    async def get_channel_messages(self, channel_id: str,
                                   start: datetime | None = None,
                                   end: datetime | None = None,
                                   descending: bool = False,
                                   include_threads: bool = True,
                                   limit: int | None = None,
                                   offset: int = 0) -> list[ChatMessage]:
        """
        Messages posted in a channel within an optional inclusive time range.

        Args:
            channel_id: Channel to read
            start: Earliest creation time, inclusive
            end: Latest creation time, inclusive
            descending: Newest first instead of oldest first
            include_threads: Also return messages from threads started in the channel
            limit: Maximum number of rows
            offset: Rows to skip, for pagination

        Returns:
            Messages ordered by creation time
        """
        where, params = self._channel_filter(channel_id, start, end, include_threads)
        query = f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE {where} ORDER BY created_at {'DESC' if descending else 'ASC'}"
        query, params = self._paginate(query, params, limit, offset)
        return await self._fetch("get_channel_messages", query, params)

    async def count_channel_messages(self, channel_id: str,
                                     start: datetime | None = None,
                                     end: datetime | None = None,
                                     include_threads: bool = True) -> int:
        where, params = self._channel_filter(channel_id, start, end, include_threads)
        async with self._telemetry.async_create_span("count_channel_messages") as span:
            span.set_attribute("channel_id", channel_id)
            timer = self._telemetry.metrics.timer()
            try:
                await self._ensure_connection()
                async with self.conn.cursor() as cur:
                    await cur.execute(f"SELECT COUNT(*) AS total FROM messages WHERE {where}", params)
                    row = await cur.fetchone()
                    return row["total"]
            finally:
                self._telemetry.metrics.db_latency.record(timer(), {"operation": "count_channel_messages"})

    async def get_thread_messages(self, thread_id: str,
                                  descending: bool = False,
                                  limit: int | None = None,
                                  offset: int = 0) -> list[ChatMessage]:
        query = f"SELECT {MESSAGE_COLUMNS} FROM messages WHERE thread_id = %s ORDER BY created_at {'DESC' if descending else 'ASC'}"
        query, params = self._paginate(query, [thread_id], limit, offset)
        return await self._fetch("get_thread_messages", query, params)

    @staticmethod
    def _channel_filter(channel_id: str, start: datetime | None, end: datetime | None,
                        include_threads: bool) -> tuple[str, list]:
        if include_threads:
            conditions = ["(channel_id = %s OR parent_id = %s)"]
            params: list = [channel_id, channel_id]
        else:
            conditions = ["channel_id = %s"]
            params = [channel_id]

        if start is not None:
            conditions.append("created_at >= %s")
            params.append(start)
        if end is not None:
            conditions.append("created_at <= %s")
            params.append(end)

        return " AND ".join(conditions), params

    @staticmethod
    def _paginate(query: str, params: list, limit: int | None, offset: int) -> tuple[str, list]:
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)
        if offset:
            query += " OFFSET %s"
            params.append(offset)
        return query, params

    async def _fetch(self, operation: str, query: str, params) -> list[ChatMessage]:
        async with self._telemetry.async_create_span(operation) as span:
            timer = self._telemetry.metrics.timer()
            try:
                await self._ensure_connection()
                async with self.conn.cursor() as cur:
                    await cur.execute(query, params)
                    rows = await cur.fetchall()
            finally:
                self._telemetry.metrics.db_latency.record(timer(), {"operation": operation})

            span.set_attribute("row_count", len(rows))
            return [row_to_message(row) for row in rows]


def row_to_message(row: dict) -> ChatMessage:
    """Convert a ``messages`` row into a ChatMessage."""
    return ChatMessage(
        id=row["message_id"],
        content=row["content"],
        author_username=row["author_username"],
        created_at=row["created_at"],
        thread_id=row["thread_id"],
        reply_to_id=row["reply_to_id"],
        attachments=[Attachment(**a) for a in _json_list(row["attachments"])],
        embeds=[Embed(**e) for e in _json_list(row["embeds"])],
        author_id=row["author_id"],
        channel_id=row["channel_id"],
        channel_name=row["channel_name"],
        guild_id=row["guild_id"],
        guild_name=row["guild_name"],
        parent_id=row["parent_id"],
        updated_at=row["updated_at"],
        mentions_reply_target=bool(row["mentions_reply_target"]),
    )


def _json_list(value) -> list[dict]:
    # JSONB columns arrive decoded; plain JSON text columns do not
    if value is None:
        return []
    if isinstance(value, str):
        return json.loads(value)
    return list(value)
