from datetime import datetime

from chat_message import ChatMessage
from store import MessageStore, SaveResult


class InMemoryMessageStore(MessageStore):
    """In-memory test double for MessageStore following the NullTelemetry pattern."""

    def __init__(self, messages: list[ChatMessage] | None = None) -> None:
        # Don't call super().__init__() since we don't need a real database
        self._messages: dict[str, ChatMessage] = {}
        self.queries: list[dict] = []
        for message in messages or []:
            self._messages[message.id] = message

    async def save_message(self, message: ChatMessage) -> SaveResult:
        inserted = message.id not in self._messages
        self._messages[message.id] = message
        return SaveResult(message_id=message.id, was_inserted=inserted, was_updated=not inserted)

    async def get_message(self, message_id: str) -> ChatMessage | None:
        return self._messages.get(message_id)

    async def get_channel_messages(self, channel_id: str,
                                   start: datetime | None = None,
                                   end: datetime | None = None,
                                   descending: bool = False,
                                   include_threads: bool = True,
                                   limit: int | None = None,
                                   offset: int = 0) -> list[ChatMessage]:
        self.queries.append({"channel_id": channel_id, "start": start, "end": end})
        selected = [
            m for m in self._messages.values()
            if (m.channel_id == channel_id or (include_threads and m.parent_id == channel_id))
            and (start is None or m.created_at >= start)
            and (end is None or m.created_at <= end)
        ]
        selected.sort(key=lambda m: m.created_at, reverse=descending)
        selected = selected[offset:]
        return selected[:limit] if limit is not None else selected

    async def count_channel_messages(self, channel_id: str,
                                     start: datetime | None = None,
                                     end: datetime | None = None,
                                     include_threads: bool = True) -> int:
        return len(await self.get_channel_messages(channel_id, start, end, include_threads=include_threads))

    async def get_thread_messages(self, thread_id: str,
                                  descending: bool = False,
                                  limit: int | None = None,
                                  offset: int = 0) -> list[ChatMessage]:
        selected = sorted(
            (m for m in self._messages.values() if m.thread_id == thread_id),
            key=lambda m: m.created_at,
            reverse=descending,
        )[offset:]
        return selected[:limit] if limit is not None else selected

    async def close(self) -> None:
        pass
