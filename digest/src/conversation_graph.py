import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from chat_message import ChatMessage

logger = logging.getLogger(__name__)


@dataclass
class ThreadNode:
    """A message plus the reply linkage discovered for it."""
    message: ChatMessage
    replies: list[str] = field(default_factory=list)
    indent: int = 0


@dataclass
class ThreadIndex:
    """Reconstructed conversation structure for one rendering request."""
    nodes: dict[str, ThreadNode] = field(default_factory=dict)
    thread_children: dict[str, list[str]] = field(default_factory=dict)
    roots: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, message_id: str) -> ThreadNode | None:
        return self.nodes.get(message_id)

    def is_thread_starter(self, message_id: str) -> bool:
        return message_id in self.thread_children

    def orphaned_thread_ids(self) -> list[str]:
        """Thread ids whose starter message is not part of the index."""
        return [thread_id for thread_id in self.thread_children if thread_id not in self.nodes]


def build_index(messages: Iterable[ChatMessage]) -> ThreadIndex:
    """
    Link replies to their parents and thread messages to their starters.

    Two passes over the input, both in input order. The first registers every
    message and groups thread members by thread id; the second attaches each
    reply to its parent and collects the roots. A reply whose parent is not in
    the input becomes a root. A thread message that is not a resolvable reply
    is not a root; it is reachable only through its thread starter.

    Nothing here recurses, so reply cycles are harmless at this stage.
    """
    messages = list(messages)
    index = ThreadIndex()

    for message in messages:
        if message.id in index.nodes:
            logger.warning(f"Duplicate message id {message.id} in input, later occurrence wins")
        index.nodes[message.id] = ThreadNode(message=message)

        if message.thread_id:
            index.thread_children.setdefault(message.thread_id, []).append(message.id)

    for message in messages:
        if message.reply_to_id:
            parent = index.nodes.get(message.reply_to_id)
            if parent is not None:
                parent.replies.append(message.id)
                index.nodes[message.id].indent = parent.indent + 1
            else:
                index.roots.append(message.id)
        elif not message.thread_id:
            index.roots.append(message.id)

    orphaned = index.orphaned_thread_ids()
    if orphaned:
        logger.debug(f"{len(orphaned)} thread(s) have no starter message in the input: {orphaned}")

    return index
