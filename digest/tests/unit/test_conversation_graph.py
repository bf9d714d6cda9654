import datetime
import unittest

from chat_message import ChatMessage
from conversation_graph import build_index


class BaseConversationTest(unittest.TestCase):
    """Shared helpers for building chat messages."""

    def setUp(self):
        self.base_time = datetime.datetime(2025, 4, 3, 12, 0, 0, tzinfo=datetime.timezone.utc)

    def create_message(self, msg_id: str, content: str = "", author: str | None = "alice",
                       minutes: int = 0, reply_to: str | None = None,
                       thread: str | None = None) -> ChatMessage:
        return ChatMessage(
            id=msg_id,
            content=content or f"message {msg_id}",
            author_username=author,
            created_at=self.base_time + datetime.timedelta(minutes=minutes),
            thread_id=thread,
            reply_to_id=reply_to,
        )


class TestBuildIndex(BaseConversationTest):

    def test_plain_messages_are_roots(self):
        messages = [self.create_message("1"), self.create_message("2", minutes=1)]

        index = build_index(messages)

        self.assertEqual(index.roots, ["1", "2"])
        self.assertEqual(len(index), 2)
        self.assertEqual(index.thread_children, {})

    def test_reply_links_to_parent(self):
        messages = [
            self.create_message("1"),
            self.create_message("2", reply_to="1", minutes=1),
        ]

        index = build_index(messages)

        self.assertEqual(index.roots, ["1"])
        self.assertEqual(index.get("1").replies, ["2"])
        self.assertEqual(index.get("2").indent, 1)

    def test_reply_chain_indents(self):
        messages = [
            self.create_message("a"),
            self.create_message("b", reply_to="a", minutes=1),
            self.create_message("c", reply_to="b", minutes=2),
        ]

        index = build_index(messages)

        self.assertEqual([index.get(i).indent for i in ("a", "b", "c")], [0, 1, 2])
        self.assertEqual(index.roots, ["a"])

    def test_dangling_reply_becomes_root(self):
        messages = [
            self.create_message("1"),
            self.create_message("2", reply_to="missing", minutes=1),
        ]

        index = build_index(messages)

        self.assertEqual(index.roots, ["1", "2"])
        self.assertEqual(index.get("2").indent, 0)

    def test_thread_member_without_reply_is_not_root(self):
        messages = [
            self.create_message("starter"),
            self.create_message("t1", thread="starter", minutes=1),
            self.create_message("t2", thread="starter", minutes=2),
        ]

        index = build_index(messages)

        self.assertEqual(index.roots, ["starter"])
        self.assertEqual(index.thread_children, {"starter": ["t1", "t2"]})
        self.assertTrue(index.is_thread_starter("starter"))
        self.assertFalse(index.is_thread_starter("t1"))

    def test_thread_member_with_dangling_reply_is_root(self):
        messages = [self.create_message("t1", thread="starter", reply_to="gone")]

        index = build_index(messages)

        self.assertEqual(index.roots, ["t1"])
        self.assertEqual(index.thread_children, {"starter": ["t1"]})

    def test_reply_inside_thread_is_recorded_twice(self):
        messages = [
            self.create_message("starter"),
            self.create_message("t1", thread="starter", reply_to="starter", minutes=1),
        ]

        index = build_index(messages)

        self.assertEqual(index.get("starter").replies, ["t1"])
        self.assertEqual(index.thread_children["starter"], ["t1"])
        self.assertEqual(index.roots, ["starter"])

    def test_reply_cycle_terminates(self):
        messages = [
            self.create_message("a", reply_to="b"),
            self.create_message("b", reply_to="a", minutes=1),
            self.create_message("self", reply_to="self", minutes=2),
        ]

        index = build_index(messages)

        self.assertEqual(index.roots, [])
        self.assertEqual(index.get("a").replies, ["b"])
        self.assertEqual(index.get("b").replies, ["a"])
        self.assertEqual(index.get("self").replies, ["self"])

    def test_duplicate_id_later_occurrence_wins(self):
        messages = [
            self.create_message("1", content="old"),
            self.create_message("1", content="new", thread="t"),
        ]

        index = build_index(messages)

        self.assertEqual(len(index), 1)
        self.assertEqual(index.get("1").message.content, "new")
        self.assertEqual(index.thread_children["t"], ["1"])
        self.assertEqual(index.roots, ["1"])

    def test_orphaned_thread_ids(self):
        messages = [
            self.create_message("starter"),
            self.create_message("t1", thread="starter", minutes=1),
            self.create_message("o1", thread="elsewhere", minutes=2),
        ]

        index = build_index(messages)

        self.assertEqual(index.orphaned_thread_ids(), ["elsewhere"])

    def test_empty_input(self):
        index = build_index([])

        self.assertEqual(len(index), 0)
        self.assertEqual(index.roots, [])

    def test_each_call_builds_fresh_index(self):
        messages = [self.create_message("1"), self.create_message("2", reply_to="1")]

        first = build_index(messages)
        second = build_index(messages)

        self.assertIsNot(first.nodes["1"], second.nodes["1"])
        self.assertEqual(second.get("1").replies, ["2"])


if __name__ == '__main__':
    unittest.main()
