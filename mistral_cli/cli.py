"""Command-line entry point: one-shot questions and the interactive REPL."""

import argparse
import os
import sys
from importlib import metadata
from pathlib import Path

from . import fmt
from .agent import AVAILABLE_MODELS, MAX_ROUNDS_MESSAGE, AgentOrchestrator, AgentState
from .config import (
    _UNSET,
    PROJECT_CONFIG_NAME,
    apply_config_to_args,
    generate_config,
    global_config_dir,
    load_config,
)
from .confirm import ConfirmationService, NonInteractiveGateway, TerminalGateway
from .errors import AgentError, ConfigError
from .messages import Mode
from .prompts import load_custom_instructions

EXIT_ERROR = 1
EXIT_MAX_ROUNDS = 2

MODE_CHOICES = [m.value for m in Mode]

# Offered after a plan is shown: label, mode to execute it in (None keeps planning).
PLAN_CHOICES = (
    ("Yes, and auto-accept edits", Mode.AUTO_ACCEPT_ON),
    ("Yes, and manually approve edits", Mode.AUTO_ACCEPT_OFF),
    ("No, keep planning", None),
)


def build_parser():
    """Build and return the argument parser.

    Options that can also come from config files default to a sentinel so
    that apply_config_to_args() can tell "not given" from "given".
    """
    parser = argparse.ArgumentParser(
        prog="mistral",
        usage="%(prog)s [options] <question>\n       %(prog)s --repl [options] [question]",
        description="A terminal coding assistant powered by Mistral's Devstral models.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the version and exit.",
    )
    parser.add_argument(
        "question", nargs="?", default=None, help="The question or task for the model."
    )
    parser.add_argument(
        "--repl",
        action="store_true",
        help="Start an interactive session instead of answering a single question.",
    )
    parser.add_argument(
        "-d",
        "--directory",
        type=str,
        default=".",
        help="Working directory for tools (default: current directory).",
    )
    parser.add_argument(
        "-k",
        "--api-key",
        type=str,
        default=_UNSET,
        help="Mistral API key (overrides MISTRAL_API_KEY).",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=_UNSET,
        help=f"Model to use (default: devstral-medium-2507; known: {', '.join(AVAILABLE_MODELS)}).",
    )
    parser.add_argument(
        "--mode",
        choices=MODE_CHOICES,
        default=_UNSET,
        help="auto-accept-off asks before edits and commands, auto-accept-on never asks, "
        "plan only analyses and proposes a plan (default: auto-accept-off).",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=_UNSET,
        help="Suppress all diagnostics; only print the final result.",
    )
    parser.add_argument(
        "--no-instructions",
        action="store_true",
        default=_UNSET,
        help="Don't load MISTRAL.md custom instructions from the working directory.",
    )

    color_group = parser.add_mutually_exclusive_group()
    color_group.add_argument(
        "--color",
        action="store_true",
        default=_UNSET,
        help="Force ANSI color even when stderr is not a TTY.",
    )
    color_group.add_argument(
        "--no-color",
        action="store_true",
        default=_UNSET,
        help="Disable ANSI color even when stderr is a TTY.",
    )

    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a commented config template and exit.",
    )
    parser.add_argument(
        "--project",
        action="store_true",
        help=f"With --init-config, write ./{PROJECT_CONFIG_NAME} instead of the global config.",
    )
    return parser


def init_config(base_dir: str, project: bool) -> Path:
    """Write a config template, refusing to overwrite an existing file."""
    if project:
        path = Path(base_dir).resolve() / PROJECT_CONFIG_NAME
    else:
        path = global_config_dir() / "config.toml"
    if path.exists():
        raise ConfigError(f"{path} already exists, not overwriting")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_config(project=project), encoding="utf-8")
    return path


def main():
    parser = build_parser()
    args = parser.parse_args()

    if args.version:
        try:
            version = metadata.version("mistral-cli")
        except metadata.PackageNotFoundError:
            version = "unknown"
        print(version)
        sys.exit(0)

    if args.project and not args.init_config:
        parser.error("--project only makes sense with --init-config")

    try:
        if args.init_config:
            path = init_config(args.directory, args.project)
            print(f"Wrote {path}")
            sys.exit(0)
        sys.exit(_run_main(args, parser))
    except AgentError as e:
        fmt.error(str(e))
        sys.exit(EXIT_ERROR)


def _run_main(args, parser) -> int:
    base_dir = os.path.abspath(args.directory)
    if not os.path.isdir(base_dir):
        raise ConfigError(f"directory does not exist: {args.directory}")

    config = load_config(Path(base_dir))
    apply_config_to_args(args, config)
    args.verbose = not args.quiet

    if not args.repl and args.question is None:
        parser.error("question is required (or use --repl)")

    fmt.init(color=args.color, no_color=args.no_color)

    if not args.api_key:
        raise ConfigError(
            "no Mistral API key. Set MISTRAL_API_KEY, pass --api-key, "
            "or add api_key to your config."
        )

    custom_instructions = None
    if not args.no_instructions:
        custom_instructions = load_custom_instructions(base_dir, verbose=args.verbose)

    gateway = TerminalGateway() if sys.stdin.isatty() else NonInteractiveGateway()
    agent = AgentOrchestrator(
        api_key=args.api_key,
        model=args.model,
        base_url=args.base_url,
        mode=args.mode,
        working_directory=base_dir,
        confirmations=ConfirmationService(gateway),
        custom_instructions=custom_instructions,
        linkup_api_key=args.linkup_api_key,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
        verbose=args.verbose,
    )
    if args.verbose:
        fmt.model_info(f"Using model: {args.model}")

    if args.repl:
        repl_loop(agent, first_question=args.question, verbose=args.verbose)
        return 0

    answer, _, exhausted = run_submission(agent, args.question, agent.mode, args.verbose)
    if answer is not None:
        print(answer)
    if agent.state is AgentState.ERROR:
        return EXIT_ERROR
    if exhausted:
        return EXIT_MAX_ROUNDS
    return 0


def run_submission(
    agent: AgentOrchestrator, question: str, mode: Mode, verbose: bool
) -> tuple[str | None, bool, bool]:
    """Drive one submission to completion, rendering diagnostics on stderr.

    Returns (final_answer, is_plan, exhausted). Errors and cancellation are reported
    via fmt and leave the answer as None.
    """
    if verbose:
        fmt.submission_header(str(mode), agent.percentage_left())

    answer = None
    is_plan = False
    exhausted = False
    tokens = None
    try:
        for chunk in agent.submit(question, mode):
            if chunk.type == "token_count":
                tokens = chunk.token_count
            elif chunk.type == "plan":
                answer = chunk.plan
                is_plan = True
            elif chunk.type == "content":
                if chunk.content == MAX_ROUNDS_MESSAGE:
                    exhausted = True
                    fmt.warning(chunk.content)
                elif agent.state is AgentState.CANCELLED:
                    fmt.warning(chunk.content.strip())
                elif agent.state is AgentState.ERROR:
                    fmt.error(chunk.content)
                else:
                    answer = chunk.content
    except KeyboardInterrupt:
        agent.cancel()
        fmt.warning("interrupted, request cancelled.")
        return None, False, False

    if verbose and tokens is not None:
        fmt.token_usage(tokens)
    return answer, is_plan, exhausted


def _repl_help() -> None:
    fmt.info(
        "Available commands:\n"
        "  /help              Show this help message\n"
        "  /clear             Reset the conversation\n"
        "  /models [name]     List models, or switch to one\n"
        "  /mode <mode>       Switch mode: " + ", ".join(MODE_CHOICES) + "\n"
        "  /exit, /quit       Exit the REPL"
    )


def _repl_models(agent: AgentOrchestrator, arg: str) -> None:
    name = arg.strip()
    if not name:
        lines = [
            f"  {'*' if model == agent.model else ' '} {model}" for model in AVAILABLE_MODELS
        ]
        fmt.info("Available models:\n" + "\n".join(lines))
        return
    if name not in AVAILABLE_MODELS:
        fmt.warning(f"{name} is not a known Devstral model, using it anyway")
    agent.set_model(name)
    fmt.info(f"Switched to model: {name}")


def _repl_mode(current: Mode, arg: str) -> Mode:
    arg = arg.strip()
    if not arg:
        fmt.info(f"Current mode: {current}")
        return current
    try:
        new = Mode.parse(arg)
    except ValueError as e:
        fmt.warning(str(e))
        return current
    if new is not current:
        fmt.mode_change(str(current), str(new))
    return new


def _ask_plan_approval(session) -> Mode | None:
    """Ask whether to execute the plan just shown. Returns the mode to run it in."""
    options = "\n".join(f"  {i}. {label}" for i, (label, _) in enumerate(PLAN_CHOICES, 1))
    fmt.info("Ready to code?\n" + options)
    try:
        answer = session.prompt("  Choice [1-3]: ").strip()
    except (EOFError, KeyboardInterrupt):
        return None
    for i, (label, mode) in enumerate(PLAN_CHOICES, 1):
        if answer == str(i) or answer.lower() == label.lower():
            return mode
    return None


def repl_loop(
    agent: AgentOrchestrator, first_question: str | None = None, verbose: bool = True
) -> None:
    """Interactive read-eval-print loop."""
    from prompt_toolkit import PromptSession
    from prompt_toolkit.formatted_text import FormattedText
    from prompt_toolkit.history import FileHistory

    history_path = os.path.join(agent.current_directory, ".mistral", "repl_history")
    os.makedirs(os.path.dirname(history_path), exist_ok=True)
    session = PromptSession(
        history=FileHistory(history_path),
        enable_history_search=True,
    )
    prompt_text = FormattedText([("bold fg:ansiyellow", "mistral> ")])

    mode = agent.mode
    if verbose:
        fmt.repl_banner(str(mode))

    pending = first_question
    while True:
        if pending is not None:
            line, pending = pending, None
        else:
            try:
                print(file=sys.stderr)  # blank line before prompt
                line = session.prompt(prompt_text)
            except (EOFError, KeyboardInterrupt):
                print(file=sys.stderr)  # newline after ^D / ^C
                break

        line = line.strip()
        if not line:
            continue
        if line in ("/exit", "/quit", "exit", "quit"):
            break

        cmd_parts = line.split(None, 1)
        cmd = cmd_parts[0].lower()
        cmd_arg = cmd_parts[1] if len(cmd_parts) > 1 else ""

        if cmd == "/help":
            _repl_help()
            continue
        elif cmd == "/clear":
            agent.clear()
            fmt.info("conversation cleared")
            continue
        elif cmd == "/models":
            _repl_models(agent, cmd_arg)
            continue
        elif cmd == "/mode":
            mode = _repl_mode(mode, cmd_arg)
            continue

        answer, is_plan, _ = run_submission(agent, line, mode, verbose)
        if answer is None:
            continue
        if is_plan and verbose:
            fmt.plan(answer)
        else:
            print(answer)
        if not is_plan:
            continue

        chosen = _ask_plan_approval(session)
        if chosen is None:
            continue
        if chosen is Mode.AUTO_ACCEPT_OFF:
            agent.confirmations.reset_session()
        fmt.mode_change(str(mode), str(chosen))
        mode = chosen
        pending = line  # execute the same request in the chosen mode


if __name__ == "__main__":
    main()
