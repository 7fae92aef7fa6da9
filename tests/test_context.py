"""Tests for the wire-format message log."""

import typing

from mistral_cli.context import ContextStore, entry_to_message
from mistral_cli.messages import ChatEntry, ToolCall, ToolResult
from mistral_cli.tokens import TokenBudgetTracker


def _store():
    return ContextStore(TokenBudgetTracker())


def test_append_then_list_preserves_order():
    store = _store()
    msgs = [{"role": "user", "content": str(i)} for i in range(5)]
    for m in msgs:
        store.append(m)
    assert store.list() == msgs
    assert len(store) == 5


def test_list_returns_a_copy():
    store = _store()
    store.append({"role": "user", "content": "a"})
    snapshot = store.list()
    snapshot.append({"role": "user", "content": "b"})
    assert len(store) == 1


def test_optimized_keeps_system_first():
    store = _store()
    store.append({"role": "system", "content": "sys"})
    store.append({"role": "user", "content": "q"})
    assert store.optimized()[0]["role"] == "system"
    assert store.optimized() == store.list()


def test_clear_keeps_system_message():
    store = _store()
    store.append({"role": "system", "content": "sys"})
    store.append({"role": "user", "content": "q"})
    store.clear()
    assert store.list() == [{"role": "system", "content": "sys"}]


def test_clear_without_system_empties():
    store = _store()
    store.append({"role": "user", "content": "q"})
    store.clear()
    assert len(store) == 0


def test_clear_drop_system():
    store = _store()
    store.append({"role": "system", "content": "sys"})
    store.clear(keep_system=False)
    assert len(store) == 0


def test_percentage_left_stable_without_append():
    store = _store()
    store.append({"role": "system", "content": "sys"})
    first = store.percentage_left()
    assert store.percentage_left() == first
    assert store.total_tokens() == store.total_tokens()


def test_rebuild_replays_entries():
    call = ToolCall(id="call_1", name="view_file", arguments='{"path": "."}')
    entries = [
        ChatEntry(kind="user", content="list files"),
        ChatEntry(kind="assistant", content="Using tools to help you...", tool_calls=[call], wire_content=""),
        ChatEntry(kind="tool_result", content="a.py", tool_call=call, tool_result=ToolResult.ok("a.py")),
        ChatEntry(kind="assistant", content="There is a.py"),
    ]
    store = _store()
    store.append({"role": "user", "content": "stale"})
    store.rebuild("new system", entries, "next question")

    msgs = store.list()
    assert msgs[0] == {"role": "system", "content": "new system"}
    assert [m["role"] for m in msgs] == ["system", "user", "assistant", "tool", "assistant", "user"]
    assert msgs[2]["content"] == ""
    assert msgs[2]["tool_calls"][0]["id"] == "call_1"
    assert msgs[3]["tool_call_id"] == "call_1"
    assert msgs[-1]["content"] == "next question"


def test_entry_to_message_failed_tool_result_uses_error():
    call = ToolCall(id="c", name="bash", arguments="{}")
    entry = ChatEntry(
        kind="tool_result", content="boom", tool_call=call, tool_result=ToolResult.fail("boom")
    )
    assert entry_to_message(entry) == {"role": "tool", "content": "boom", "tool_call_id": "c"}


def test_annotations_resolve_to_builtin_list():
    # The list() method must not shadow the builtin in signatures.
    assert typing.get_type_hints(ContextStore.optimized)["return"] == list[dict]
    assert typing.get_type_hints(ContextStore.rebuild)["entries"] is list
