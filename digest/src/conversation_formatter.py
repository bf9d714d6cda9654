"""Renders archived chat messages as a plain-text conversation transcript."""

import datetime
import logging
from collections.abc import Sequence

from chat_message import ChatMessage
from conversation_graph import ThreadIndex, build_index

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown User"
INDENT_UNIT = "  "
DEFAULT_FLAT_THRESHOLD = 50


class ConversationFormatter:
    """Formats conversation messages into a readable, optionally threaded transcript.

    Conversations of up to ``flat_threshold`` messages are rendered linearly in
    the order given. Larger ones are reconstructed into reply trees and thread
    groups first.
    """

    def __init__(self, flat_threshold: int = DEFAULT_FLAT_THRESHOLD) -> None:
        self.flat_threshold = flat_threshold

    @staticmethod
    def format_timestamp(timestamp: datetime.datetime) -> str:
        """Render a timestamp as ``YYYY-MM-DD HH:MM:SS`` in UTC."""
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone(datetime.timezone.utc)
        return timestamp.strftime("%Y-%m-%d %H:%M:%S")

    def format_message(self, message: ChatMessage, indent: int = 0) -> str:
        """Format one message with its embed and attachment annotations.

        Args:
            message: Message to render
            indent: Nesting depth, two spaces per level

        Returns:
            The message block without a trailing newline
        """
        prefix = INDENT_UNIT * indent
        username = message.author_username or UNKNOWN_USER
        content = message.content or ""
        lines = [f"{prefix}[{self.format_timestamp(message.created_at)}] {username}: {content}"]

        for embed in message.embeds:
            lines.append(f"{prefix}  [Embed]")
            if embed.title:
                lines.append(f"{prefix}    Title: {embed.title}")
            if embed.description:
                lines.append(f"{prefix}    Description: {embed.description}")
            if embed.url:
                lines.append(f"{prefix}    URL: {embed.url}")

        for attachment in message.attachments:
            lines.append(f"{prefix}  [Attachment: {attachment.url}]")

        return "\n".join(lines)

    def format_flat(self, messages: Sequence[ChatMessage]) -> str:
        return "".join(self.format_message(message) + "\n" for message in messages)

    def format_threaded(self, messages: Sequence[ChatMessage]) -> str:
        index = build_index(messages)
        return "".join(self._render_root(index, root_id) for root_id in index.roots)

    def _render_root(self, index: ThreadIndex, root_id: str) -> str:
        """
        Render one root and everything reachable from it.

        Walks depth-first with an explicit stack: a message, then each of its
        reply subtrees, then its thread members as single lines one level
        deeper. Thread members' own replies are not expanded from there.

        The visited set lives for this root only, so each message appears at
        most once under a root but may appear again under another root.
        """
        visited: set[str] = set()
        output: list[str] = []
        # Entries are (message_id, indent_override); None means "expand as a node"
        stack: list[tuple[str, int | None]] = [(root_id, None)]

        while stack:
            message_id, thread_indent = stack.pop()
            if message_id in visited:
                continue
            node = index.get(message_id)
            if node is None:
                continue
            visited.add(message_id)

            if thread_indent is not None:
                output.append(self.format_message(node.message, thread_indent) + "\n")
                continue

            output.append(self.format_message(node.message, node.indent) + "\n")

            # Pushed in reverse so replies pop first, then thread members, in recorded order
            for child_id in reversed(index.thread_children.get(message_id, [])):
                stack.append((child_id, node.indent + 1))
            for reply_id in reversed(node.replies):
                stack.append((reply_id, None))

        return "".join(output)

    def format_transcript(self, messages: Sequence[ChatMessage]) -> str:
        """Choose flat or threaded rendering based on the message count."""
        if not messages:
            return ""
        if len(messages) <= self.flat_threshold:
            return self.format_flat(messages)

        logger.info(f"Rendering {len(messages)} messages with threading (threshold {self.flat_threshold})")
        return self.format_threaded(messages)

    def format_messages(
        self, messages: Sequence[ChatMessage] | None, format: str | None = "json"
    ) -> str | Sequence[ChatMessage]:
        """Format messages for a caller-facing output format.

        Args:
            messages: Messages in the order the caller wants them rendered
            format: ``"txt"`` for a transcript; ``"json"`` or anything else
                returns the messages unchanged

        Returns:
            Transcript text for ``"txt"``, otherwise the input records
        """
        is_text = (format or "json").lower() == "txt"

        if not messages:
            return "" if is_text else []

        if is_text:
            return self.format_transcript(messages)
        return messages
