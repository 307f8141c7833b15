from __future__ import annotations

import threading

import pytest

from chat_memory import (
    ConfigurationError,
    InMemoryChatMemoryRepository,
    Message,
    MessageWindowChatMemory,
    apply_window,
)


def _contents(messages):
    return [m.content for m in messages]


def test_window_keeps_leading_system_and_evicts_oldest():
    memory = MessageWindowChatMemory(max_messages=3)
    memory.add("c1", [Message.system("S")])
    memory.add("c1", [Message.user("A")])
    memory.add("c1", [Message.assistant("B")])
    memory.add("c1", [Message.user("C")])

    history = memory.get("c1")
    assert _contents(history) == ["S", "B", "C"]
    assert history[0].is_system


def test_system_run_filling_window_drops_everything_else():
    memory = MessageWindowChatMemory(max_messages=2)
    memory.add("c1", Message.system("S1"))
    memory.add("c1", Message.system("S2"))
    memory.add("c1", Message.user("A"))

    assert _contents(memory.get("c1")) == ["S1", "S2"]


def test_system_run_larger_than_window_keeps_newest_system():
    memory = MessageWindowChatMemory(max_messages=1)
    memory.add("c1", Message.system("S1"))
    memory.add("c1", Message.system("S2"))

    assert _contents(memory.get("c1")) == ["S2"]


def test_system_message_after_user_is_evictable():
    messages = [
        Message.user("A"),
        Message.system("late"),
        Message.user("B"),
        Message.assistant("C"),
    ]
    assert _contents(apply_window(messages, 2)) == ["B", "C"]


def test_apply_window_under_limit_is_unchanged():
    messages = [Message.user("A"), Message.assistant("B")]
    kept = apply_window(messages, 5)
    assert kept == messages
    assert kept is not messages


def test_window_bound_holds_for_any_sequence():
    memory = MessageWindowChatMemory(max_messages=4)
    memory.add("c1", [Message.system("S1"), Message.system("S2")])
    for i in range(10):
        memory.add("c1", [Message.user(f"u{i}"), Message.assistant(f"a{i}")])
        assert len(memory.get("c1")) <= 4

    assert _contents(memory.get("c1")) == ["S1", "S2", "u9", "a9"]


def test_batch_add_is_windowed_as_a_whole():
    memory = MessageWindowChatMemory(max_messages=3)
    memory.add("c1", [Message.system("S")] + [Message.user(str(i)) for i in range(5)])
    assert _contents(memory.get("c1")) == ["S", "3", "4"]


def test_conversations_are_isolated():
    memory = MessageWindowChatMemory(max_messages=2)
    memory.add("alice", [Message.user("a1"), Message.user("a2"), Message.user("a3")])
    memory.add("bob", Message.user("b1"))

    assert _contents(memory.get("alice")) == ["a2", "a3"]
    assert _contents(memory.get("bob")) == ["b1"]


def test_get_missing_conversation_is_empty():
    memory = MessageWindowChatMemory()
    assert memory.get("nope") == []


def test_get_is_idempotent():
    memory = MessageWindowChatMemory(max_messages=5)
    memory.add("c1", [Message.user("hi"), Message.assistant("hello")])
    assert memory.get("c1") == memory.get("c1")


def test_clear_then_get_is_empty():
    memory = MessageWindowChatMemory()
    memory.add("c1", Message.user("hi"))
    memory.clear("c1")
    assert memory.get("c1") == []
    assert memory.conversation_ids() == []


def test_empty_add_still_persists_current_state():
    repo = InMemoryChatMemoryRepository()
    memory = MessageWindowChatMemory(repo, max_messages=3)
    memory.add("c1", [])
    assert repo.find_conversation_ids() == ["c1"]
    assert memory.get("c1") == []


@pytest.mark.parametrize("bad", [0, -1, 2.5, True, "3"])
def test_invalid_window_fails_at_construction(bad):
    with pytest.raises(ConfigurationError):
        MessageWindowChatMemory(max_messages=bad)


def test_invalid_arguments_rejected_before_repository():
    class ExplodingRepo(InMemoryChatMemoryRepository):
        def find_by_conversation_id(self, conversation_id):  # pragma: no cover - must not run
            raise AssertionError("repository touched")

    memory = MessageWindowChatMemory(ExplodingRepo())
    with pytest.raises(ValueError):
        memory.add("  ", Message.user("x"))
    with pytest.raises(TypeError):
        memory.add("c1", [{"role": "user", "content": "x"}])


def test_repository_failure_propagates_and_keeps_state():
    class FailingSaveRepo(InMemoryChatMemoryRepository):
        def __init__(self):
            super().__init__()
            self.fail = False

        def save_all(self, conversation_id, messages):
            if self.fail:
                raise OSError("disk full")
            super().save_all(conversation_id, messages)

    repo = FailingSaveRepo()
    memory = MessageWindowChatMemory(repo, max_messages=2)
    memory.add("c1", [Message.user("a"), Message.user("b")])

    repo.fail = True
    with pytest.raises(OSError, match="disk full"):
        memory.add("c1", Message.user("c"))
    assert _contents(memory.get("c1")) == ["a", "b"]


def test_save_receives_full_post_eviction_list():
    class RecordingRepo(InMemoryChatMemoryRepository):
        def __init__(self):
            super().__init__()
            self.saves = []

        def save_all(self, conversation_id, messages):
            self.saves.append((conversation_id, list(messages)))
            super().save_all(conversation_id, messages)

    repo = RecordingRepo()
    memory = MessageWindowChatMemory(repo, max_messages=2)
    memory.add("c1", Message.user("a"))
    memory.add("c1", [Message.user("b"), Message.user("c")])

    assert [cid for cid, _ in repo.saves] == ["c1", "c1"]
    assert _contents(repo.saves[-1][1]) == ["b", "c"]


def test_concurrent_adds_to_same_conversation_lose_nothing():
    class SlowRepo(InMemoryChatMemoryRepository):
        def find_by_conversation_id(self, conversation_id):
            out = super().find_by_conversation_id(conversation_id)
            threading.Event().wait(0.001)
            return out

    memory = MessageWindowChatMemory(SlowRepo(), max_messages=1000)
    threads = [
        threading.Thread(target=lambda i=i: [memory.add("shared", Message.user(f"{i}-{j}")) for j in range(10)])
        for i in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    history = memory.get("shared")
    assert len(history) == 80
    assert len(set(_contents(history))) == 80


def test_appended_message_cannot_be_changed_afterwards():
    memory = MessageWindowChatMemory()
    meta = {"tag": "orig", "labels": ["a"]}
    msg = Message.user("hi", **meta)
    memory.add("c1", msg)

    meta["tag"] = "changed"
    with pytest.raises(TypeError):
        msg.metadata["tag"] = "tampered"
    with pytest.raises(AttributeError):
        msg.metadata["labels"].append("b")

    stored = memory.get("c1")[0]
    assert stored.metadata == {"tag": "orig", "labels": ("a",)}
    with pytest.raises(AttributeError):
        stored.tool_calls.append("junk")
    assert memory.get("c1")[0].tool_calls == ()


def test_frozen_metadata_still_serializes_as_plain_json():
    msg = Message.user("hi", labels=["a", "b"], extra={"k": 1})
    assert msg.to_dict() == {
        "message_type": "user",
        "content": "hi",
        "metadata": {"labels": ["a", "b"], "extra": {"k": 1}},
    }
    assert Message.from_dict(msg.to_dict()) == msg
