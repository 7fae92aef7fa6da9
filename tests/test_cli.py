"""Tests for the command line: argument parsing, one-shot runs, and the REPL."""

import sys
import types
from unittest.mock import MagicMock, patch

import pytest

from mistral_cli import agent
from mistral_cli.agent import AgentOrchestrator
from mistral_cli.cli import (
    EXIT_ERROR,
    EXIT_MAX_ROUNDS,
    build_parser,
    init_config,
    main,
    repl_loop,
    run_submission,
)
from mistral_cli.config import _UNSET
from mistral_cli.errors import AgentError, ConfigError
from mistral_cli.messages import Mode


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_message(content=None, tool_calls=None):
    return types.SimpleNamespace(content=content, tool_calls=tool_calls, role="assistant")


def _make_tool_call(name, arguments, call_id):
    return types.SimpleNamespace(
        id=call_id, function=types.SimpleNamespace(name=name, arguments=arguments)
    )


class FakeLLM:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, model, messages, tools, **kwargs):
        self.calls.append(list(messages))
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("MISTRAL_API_KEY", raising=False)
    monkeypatch.delenv("LINKUP_API_KEY", raising=False)


def _run_main(monkeypatch, argv):
    monkeypatch.setattr(sys, "argv", ["mistral", *argv])
    with pytest.raises(SystemExit) as exc_info:
        main()
    return exc_info.value.code


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


class TestArgumentParsing:
    def test_config_backed_options_default_to_sentinel(self):
        args = build_parser().parse_args(["hi"])
        assert args.model is _UNSET
        assert args.mode is _UNSET
        assert args.api_key is _UNSET
        assert args.directory == "."

    def test_mode_choices(self):
        args = build_parser().parse_args(["--mode", "plan", "hi"])
        assert args.mode == "plan"
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--mode", "reckless", "hi"])

    def test_question_optional_with_repl(self):
        args = build_parser().parse_args(["--repl"])
        assert args.repl is True
        assert args.question is None

    def test_color_flags_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--color", "--no-color", "hi"])

    def test_question_required_without_repl(self, monkeypatch, tmp_path):
        code = _run_main(monkeypatch, ["-d", str(tmp_path), "-k", "key"])
        assert code == 2

    def test_project_requires_init_config(self, monkeypatch):
        assert _run_main(monkeypatch, ["--project", "hi"]) == 2


# ---------------------------------------------------------------------------
# One-shot runs
# ---------------------------------------------------------------------------


class TestOneShot:
    def test_prints_answer_on_stdout(self, monkeypatch, tmp_path, capsys):
        fake = FakeLLM(_make_message("42"))
        monkeypatch.setattr(agent, "call_llm", fake)
        code = _run_main(monkeypatch, ["-q", "-d", str(tmp_path), "-k", "key", "what is it?"])
        captured = capsys.readouterr()
        assert code == 0
        assert captured.out == "42\n"
        assert "42" not in captured.err

    def test_api_key_from_env(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("MISTRAL_API_KEY", "env-key")
        seen = {}

        def fake(model, messages, tools, **kwargs):
            seen.update(kwargs)
            return _make_message("ok")

        monkeypatch.setattr(agent, "call_llm", fake)
        assert _run_main(monkeypatch, ["-q", "-d", str(tmp_path), "hi"]) == 0
        assert seen["api_key"] == "env-key"

    def test_missing_api_key(self, monkeypatch, tmp_path, capsys):
        code = _run_main(monkeypatch, ["-q", "-d", str(tmp_path), "hi"])
        assert code == EXIT_ERROR
        assert "API key" in capsys.readouterr().err

    def test_missing_directory(self, monkeypatch, tmp_path, capsys):
        code = _run_main(monkeypatch, ["-d", str(tmp_path / "nope"), "-k", "key", "hi"])
        assert code == EXIT_ERROR
        assert "does not exist" in capsys.readouterr().err

    def test_model_error_exits_1(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr(agent, "call_llm", FakeLLM(AgentError("Mistral API error: 401")))
        code = _run_main(monkeypatch, ["-q", "-d", str(tmp_path), "-k", "key", "hi"])
        assert code == EXIT_ERROR
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Mistral API error: 401" in captured.err

    def test_max_rounds_exits_2(self, monkeypatch, tmp_path):
        monkeypatch.setattr(agent, "MAX_STREAM_ROUNDS", 1)
        monkeypatch.setattr(
            agent,
            "call_llm",
            FakeLLM(_make_message(None, [_make_tool_call("view_file", '{"path": "."}', "c1")])),
        )
        code = _run_main(monkeypatch, ["-q", "-d", str(tmp_path), "-k", "key", "loop"])
        assert code == EXIT_MAX_ROUNDS

    def test_mode_from_project_config(self, monkeypatch, tmp_path):
        (tmp_path / "mistral.toml").write_text('mode = "plan"\n')
        fake = FakeLLM(_make_message("analysis only"))
        monkeypatch.setattr(agent, "call_llm", fake)
        _run_main(monkeypatch, ["-q", "-d", str(tmp_path), "-k", "key", "refactor"])
        assert fake.calls[0][-1]["content"].startswith("PLAN MODE ACTIVE")

    def test_custom_instructions_loaded(self, monkeypatch, tmp_path):
        (tmp_path / "MISTRAL.md").write_text("Always answer in French.")
        fake = FakeLLM(_make_message("oui"))
        monkeypatch.setattr(agent, "call_llm", fake)
        _run_main(monkeypatch, ["-q", "-d", str(tmp_path), "-k", "key", "hi"])
        assert "Always answer in French." in fake.calls[0][0]["content"]

    def test_no_instructions_flag(self, monkeypatch, tmp_path):
        (tmp_path / "MISTRAL.md").write_text("Always answer in French.")
        fake = FakeLLM(_make_message("hi"))
        monkeypatch.setattr(agent, "call_llm", fake)
        _run_main(monkeypatch, ["-q", "--no-instructions", "-d", str(tmp_path), "-k", "key", "hi"])
        assert "Always answer in French." not in fake.calls[0][0]["content"]


class TestInitConfig:
    def test_writes_project_template(self, tmp_path):
        path = init_config(str(tmp_path), project=True)
        assert path == tmp_path.resolve() / "mistral.toml"
        assert "Project config" in path.read_text()

    def test_writes_global_template(self, tmp_path):
        path = init_config(str(tmp_path), project=False)
        assert path == tmp_path / "xdg" / "mistral-cli" / "config.toml"

    def test_refuses_overwrite(self, tmp_path):
        (tmp_path / "mistral.toml").write_text("model = 'x'\n")
        with pytest.raises(ConfigError, match="already exists"):
            init_config(str(tmp_path), project=True)


# ---------------------------------------------------------------------------
# run_submission
# ---------------------------------------------------------------------------


def _orchestrator(tmp_path, monkeypatch, *responses):
    fake = FakeLLM(*responses)
    monkeypatch.setattr(agent, "call_llm", fake)
    return AgentOrchestrator(api_key="k", working_directory=str(tmp_path)), fake


class TestRunSubmission:
    def test_returns_answer(self, tmp_path, monkeypatch):
        orch, _ = _orchestrator(tmp_path, monkeypatch, _make_message("done it"))
        assert run_submission(orch, "hi", Mode.AUTO_ACCEPT_ON, verbose=False) == (
            "done it",
            False,
            False,
        )

    def test_plan_flagged(self, tmp_path, monkeypatch):
        plan = "# Plan for x\n## Objective\ny\n## Implementation Steps\n1. z\n"
        orch, _ = _orchestrator(tmp_path, monkeypatch, _make_message(plan))
        answer, is_plan, _ = run_submission(orch, "x", Mode.PLAN, verbose=False)
        assert answer == plan
        assert is_plan

    def test_error_reported_not_returned(self, tmp_path, monkeypatch, capsys):
        orch, _ = _orchestrator(tmp_path, monkeypatch, RuntimeError("oops"))
        answer, _, _ = run_submission(orch, "hi", Mode.AUTO_ACCEPT_ON, verbose=False)
        assert answer is None
        assert "Sorry, I encountered an error: oops" in capsys.readouterr().err

    def test_ctrl_c_cancels(self, tmp_path, monkeypatch):
        orch, _ = _orchestrator(tmp_path, monkeypatch, KeyboardInterrupt())
        assert run_submission(orch, "hi", Mode.AUTO_ACCEPT_ON, verbose=False) == (None, False, False)
        assert not orch.busy

    def test_verbose_reports_tokens(self, tmp_path, monkeypatch, capsys):
        orch, _ = _orchestrator(tmp_path, monkeypatch, _make_message("hello"))
        run_submission(orch, "hi", Mode.AUTO_ACCEPT_ON, verbose=True)
        assert "tokens" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# repl_loop
# ---------------------------------------------------------------------------


_PLAN = "# Plan for refactor\n## Objective\nTidy up\n## Implementation Steps\n1. Split module\n"


class TestReplLoop:
    def _patch_session(self, inputs):
        mock_session = MagicMock()
        mock_session.prompt.side_effect = [
            v() if isinstance(v, type) and issubclass(v, BaseException) else v for v in inputs
        ]
        return patch("prompt_toolkit.PromptSession", return_value=mock_session)

    def test_exit_commands(self, tmp_path, monkeypatch):
        for command in ("/exit", "/quit", "exit", "quit"):
            orch, fake = _orchestrator(tmp_path, monkeypatch)
            with self._patch_session([command]):
                repl_loop(orch, verbose=False)
            assert fake.calls == []

    def test_eof_exits(self, tmp_path, monkeypatch):
        orch, _ = _orchestrator(tmp_path, monkeypatch)
        with self._patch_session([EOFError]):
            repl_loop(orch, verbose=False)

    def test_history_persists_between_questions(self, tmp_path, monkeypatch, capsys):
        orch, fake = _orchestrator(
            tmp_path, monkeypatch, _make_message("one"), _make_message("two")
        )
        with self._patch_session(["", "first", "second", "/exit"]):
            repl_loop(orch, verbose=False)
        assert len(fake.calls) == 2
        assert [m["content"] for m in fake.calls[1] if m["role"] == "user"] == ["first", "second"]
        assert capsys.readouterr().out == "one\ntwo\n"

    def test_first_question_runs_before_prompt(self, tmp_path, monkeypatch):
        orch, fake = _orchestrator(tmp_path, monkeypatch, _make_message("hi"))
        with self._patch_session(["/exit"]):
            repl_loop(orch, first_question="start here", verbose=False)
        assert fake.calls[0][-1]["content"] == "start here"

    def test_mode_command_switches_mode(self, tmp_path, monkeypatch):
        orch, fake = _orchestrator(tmp_path, monkeypatch, _make_message("analysis"))
        with self._patch_session(["/mode plan", "refactor", "/exit"]):
            repl_loop(orch, verbose=False)
        assert orch.mode is Mode.PLAN
        assert fake.calls[0][-1]["content"].startswith("PLAN MODE ACTIVE")

    def test_mode_command_rejects_unknown(self, tmp_path, monkeypatch, capsys):
        orch, _ = _orchestrator(tmp_path, monkeypatch)
        with self._patch_session(["/mode sideways", "/exit"]):
            repl_loop(orch, verbose=False)
        assert "unknown mode" in capsys.readouterr().err

    def test_models_command(self, tmp_path, monkeypatch, capsys):
        orch, _ = _orchestrator(tmp_path, monkeypatch)
        with self._patch_session(["/models", "/models devstral-small-2505", "/exit"]):
            repl_loop(orch, verbose=False)
        assert orch.model == "devstral-small-2505"
        err = capsys.readouterr().err
        assert "devstral-medium-2507" in err
        assert "Switched to model: devstral-small-2505" in err

    def test_clear_command(self, tmp_path, monkeypatch):
        orch, _ = _orchestrator(tmp_path, monkeypatch, _make_message("hi"))
        with self._patch_session(["hello", "/clear", "/exit"]):
            repl_loop(orch, verbose=False)
        assert orch.history == []

    def test_help_command(self, tmp_path, monkeypatch, capsys):
        orch, _ = _orchestrator(tmp_path, monkeypatch)
        with self._patch_session(["/help", "/exit"]):
            repl_loop(orch, verbose=False)
        assert "/models" in capsys.readouterr().err

    def test_ctrl_c_during_question_keeps_repl(self, tmp_path, monkeypatch):
        orch, fake = _orchestrator(
            tmp_path, monkeypatch, KeyboardInterrupt(), _make_message("second try")
        )
        with self._patch_session(["interrupted", "ok", "/exit"]):
            repl_loop(orch, verbose=False)
        assert len(fake.calls) == 2
        assert orch.history[-1].content == "second try"

    def test_plan_approved_with_auto_accept(self, tmp_path, monkeypatch, capsys):
        orch, fake = _orchestrator(
            tmp_path, monkeypatch, _make_message(_PLAN), _make_message("refactored")
        )
        with self._patch_session(["/mode plan", "refactor", "1", "/exit"]):
            repl_loop(orch, verbose=False)
        assert orch.mode is Mode.AUTO_ACCEPT_ON
        assert orch.confirmations.auto_accept
        assert len(fake.calls) == 2
        assert fake.calls[1][-1] == {"role": "user", "content": "refactor"}
        out = capsys.readouterr()
        assert out.out == _PLAN + "\nrefactored\n"
        assert "Yes, and auto-accept edits" in out.err

    def test_plan_approved_with_manual_edits(self, tmp_path, monkeypatch):
        orch, fake = _orchestrator(
            tmp_path, monkeypatch, _make_message(_PLAN), _make_message("refactored")
        )
        with self._patch_session(["/mode plan", "refactor", "2", "/exit"]):
            repl_loop(orch, verbose=False)
        assert orch.mode is Mode.AUTO_ACCEPT_OFF
        assert not orch.confirmations.auto_accept
        assert len(fake.calls) == 2

    def test_keep_planning(self, tmp_path, monkeypatch):
        orch, fake = _orchestrator(tmp_path, monkeypatch, _make_message(_PLAN))
        with self._patch_session(["/mode plan", "refactor", "3", "/exit"]):
            repl_loop(orch, verbose=False)
        assert orch.mode is Mode.PLAN
        assert len(fake.calls) == 1

    def test_plan_choice_interrupted_keeps_planning(self, tmp_path, monkeypatch):
        orch, fake = _orchestrator(tmp_path, monkeypatch, _make_message(_PLAN))
        with self._patch_session(["/mode plan", "refactor", KeyboardInterrupt, "/exit"]):
            repl_loop(orch, verbose=False)
        assert orch.mode is Mode.PLAN
        assert len(fake.calls) == 1
