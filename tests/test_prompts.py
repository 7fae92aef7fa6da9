"""Tests for system prompts and custom instructions."""

from mistral_cli.messages import Mode
from mistral_cli.prompts import (
    MAX_INSTRUCTIONS_CHARS,
    PLAN_MODE_RESTRICTIONS,
    TODO_INSTRUCTIONS,
    PromptManager,
    load_custom_instructions,
)


def test_system_message_includes_working_directory(tmp_path):
    pm = PromptManager(str(tmp_path))
    msg = pm.system_message(Mode.AUTO_ACCEPT_OFF)
    assert msg.startswith(pm.base_prompt)
    assert msg.endswith(f"Current working directory: {tmp_path}")


def test_accept_modes_get_edit_and_todo_tools(tmp_path):
    pm = PromptManager(str(tmp_path))
    for mode in (Mode.AUTO_ACCEPT_OFF, Mode.AUTO_ACCEPT_ON):
        msg = pm.system_message(mode)
        assert "str_replace_editor" in msg
        assert TODO_INSTRUCTIONS in msg
        assert PLAN_MODE_RESTRICTIONS not in msg


def test_plan_mode_gets_restrictions(tmp_path):
    msg = PromptManager(str(tmp_path)).system_message("plan")
    assert PLAN_MODE_RESTRICTIONS in msg
    assert "## Expected Outcome" in msg
    assert TODO_INSTRUCTIONS not in msg


def test_custom_instructions_block(tmp_path):
    msg = PromptManager(str(tmp_path)).system_message(Mode.PLAN, "Use tabs.")
    assert "CUSTOM INSTRUCTIONS:\nUse tabs." in msg


def test_set_working_directory(tmp_path):
    pm = PromptManager("/old")
    pm.set_working_directory(str(tmp_path))
    assert f"Current working directory: {tmp_path}" in pm.system_message(Mode.PLAN)


def test_plan_wrap():
    wrapped = PromptManager("/x").plan_wrap("add a cache")
    assert wrapped.startswith("PLAN MODE ACTIVE - READ-ONLY ANALYSIS REQUIRED")
    for section in ("Objective", "Codebase Analysis", "Files to Modify", "Implementation Steps", "Expected Outcome"):
        assert section in wrapped
    assert wrapped.endswith("User request: add a cache")


def test_wrap_request_only_in_plan_mode():
    pm = PromptManager("/x")
    assert pm.wrap_request("hi", Mode.AUTO_ACCEPT_ON) == "hi"
    assert pm.wrap_request("hi", Mode.PLAN) != "hi"


def test_load_custom_instructions_missing(tmp_path):
    assert load_custom_instructions(str(tmp_path)) is None


def test_load_custom_instructions_prefers_dot_dir(tmp_path):
    (tmp_path / "MISTRAL.md").write_text("root")
    (tmp_path / ".mistral").mkdir()
    (tmp_path / ".mistral" / "MISTRAL.md").write_text("hidden")
    assert load_custom_instructions(str(tmp_path)) == "hidden"


def test_load_custom_instructions_truncates(tmp_path):
    (tmp_path / "MISTRAL.md").write_text("x" * (MAX_INSTRUCTIONS_CHARS + 50))
    content = load_custom_instructions(str(tmp_path))
    assert content.startswith("x" * MAX_INSTRUCTIONS_CHARS)
    assert "[truncated" in content


def test_load_custom_instructions_blank_is_none(tmp_path):
    (tmp_path / "MISTRAL.md").write_text("   \n")
    assert load_custom_instructions(str(tmp_path)) is None
