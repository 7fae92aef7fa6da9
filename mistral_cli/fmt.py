"""ANSI-formatted stderr output using Rich."""

from rich.console import Console
from rich.rule import Rule
from rich.text import Text

_console = Console(stderr=True)


def init(*, color: bool = False, no_color: bool = False) -> None:
    """Reconfigure the module-level console from CLI flags.

    Call once at startup, before any output.
    """
    global _console
    kwargs: dict = {"stderr": True}
    if color:
        kwargs["force_terminal"] = True
        kwargs["no_color"] = False
    if no_color:
        kwargs["no_color"] = True
    _console = Console(**kwargs)


# -- Submission structure ----------------------------------------------------


def submission_header(mode: str, percent_left: int) -> None:
    title = f"{mode} ({percent_left}% context left)"
    _console.print(Rule(title, style="cyan"))


def token_usage(tokens: int) -> None:
    _console.print(Text(f"  ~{tokens} tokens", style="dim"))


def mode_change(old: str, new: str) -> None:
    line = Text()
    line.append("  ⇄ Mode: ", style="bold cyan")
    line.append(f"{old} -> {new}", style="cyan")
    _console.print(line)


def llm_spinner(label: str = "Waiting for Mistral"):
    """Return a Rich Status context manager that spins on stderr."""
    return _console.status(f"  {label}", spinner="dots")


# -- Tool calls --------------------------------------------------------------


def tool_call(name: str, args_json: str) -> None:
    header = Text()
    header.append("  ▶ ", style="bold magenta")
    header.append(name, style="bold magenta")
    _console.print(header)
    if args_json:
        for line in args_json.splitlines():
            _console.print(Text(f"    {line}", style="dim"))


def tool_result(name: str, preview: str) -> None:
    header = Text()
    header.append(f"  ✓ {name}", style="green")
    _console.print(header)
    if preview:
        for line in preview.splitlines():
            _console.print(Text(f"    {line}", style="dim"))


def tool_error(name: str, msg: str) -> None:
    header = Text()
    header.append(f"  ✗ {name}", style="bold red")
    header.append(f"  {msg}", style="red")
    _console.print(header)


# -- Todo lists --------------------------------------------------------------


_TODO_STYLES = {"completed": "green", "in_progress": "cyan", "pending": "yellow"}
_TODO_MARKS = {"completed": "✓", "in_progress": "○", "pending": "·"}


def todo_list(items: list[dict]) -> None:
    for item in items:
        status = item.get("status", "pending")
        line = Text()
        line.append(f"  {_TODO_MARKS.get(status, '?')} ", style=_TODO_STYLES.get(status, ""))
        line.append(str(item.get("content", "")))
        line.append(f"  [{item.get('priority', 'medium')}]", style="dim")
        _console.print(line)


# -- Plans ----------------------------------------------------------


def plan(text: str) -> None:
    _console.print(Rule("Plan", style="magenta"))
    _console.print(Text(text))
    _console.print(Rule(style="magenta"))


# -- Diagnostics -------------------------------------------------------------


def model_info(msg: str) -> None:
    _console.print(Text(f"  {msg}", style="dim"))


def info(msg: str) -> None:
    _console.print(Text(f"  {msg}", style="dim"))


def warning(msg: str) -> None:
    line = Text()
    line.append("  ⚠ Warning: ", style="yellow")
    line.append(msg, style="yellow")
    _console.print(line)


def error(msg: str) -> None:
    line = Text()
    line.append("Error: ", style="bold red")
    line.append(msg, style="red")
    _console.print(line)


def confirmation_prompt(operation: str, filename: str | None, content: str | None) -> None:
    header = Text()
    header.append("  ? ", style="bold yellow")
    header.append(operation, style="bold yellow")
    if filename:
        header.append(f"  {filename}", style="yellow")
    _console.print(header)
    if content:
        for line in content.splitlines()[:40]:
            _console.print(Text(f"    {line}", style="dim"))


def repl_banner(mode: str) -> None:
    _console.print(
        Text(
            f"Interactive mode ({mode}). Type /help for commands, /exit or Ctrl-D to quit.",
            style="dim",
        )
    )
