"""Shell command execution with an in-process working directory."""

import os
import shlex
import signal
import subprocess
import threading
from pathlib import Path

from .confirm import BASH_COMMANDS, ConfirmationService
from .messages import ToolResult

DEFAULT_TIMEOUT = 30
MAX_OUTPUT_BYTES = 100 * 1024
KILL_WAIT_TIMEOUT = 5  # seconds to wait for the process to die after SIGKILL


def _kill_process_tree(proc: subprocess.Popen) -> None:
    """Kill the process group started for proc, then reap it."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except OSError:
        pass  # already exited
    try:
        proc.kill()
    except OSError:
        pass
    try:
        proc.wait(timeout=KILL_WAIT_TIMEOUT)
    except subprocess.TimeoutExpired:
        pass  # unkillable, give up


def _capture(proc: subprocess.Popen, timeout: int) -> tuple[str, int | None, bool]:
    """Drain stdout with a byte cap. Returns (output, returncode, timed_out)."""
    chunks: list[bytes] = []
    total = 0
    truncated = False

    def _reader():
        nonlocal total, truncated
        try:
            while True:
                chunk = proc.stdout.read(4096)
                if not chunk:
                    break
                if truncated:
                    continue  # keep draining so the child never blocks on a full pipe
                remaining = MAX_OUTPUT_BYTES - total
                chunks.append(chunk[:remaining])
                total += len(chunks[-1])
                if total >= MAX_OUTPUT_BYTES:
                    truncated = True
        except (OSError, ValueError):
            pass  # pipe closed after kill

    reader = threading.Thread(target=_reader, daemon=True)
    reader.start()

    timed_out = False
    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        _kill_process_tree(proc)

    reader.join(timeout=2)
    proc.stdout.close()

    output = b"".join(chunks).decode("utf-8", errors="replace")
    if truncated:
        output += f"\n[output truncated at {MAX_OUTPUT_BYTES // 1024}KB]"
    return output, proc.returncode, timed_out


class BashTool:
    """Handler for the bash tool.

    ``cd`` is interpreted here rather than in the child shell so the new
    directory persists between calls; ``cwd`` is shared with the editor.
    """

    def __init__(
        self,
        confirmations: ConfirmationService,
        cwd: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.confirmations = confirmations
        self.cwd = str(Path(cwd or os.getcwd()).resolve())
        self.timeout = timeout

    def current_directory(self) -> str:
        return self.cwd

    def execute(self, command: str) -> ToolResult:
        command = command.strip()
        if not command:
            return ToolResult.fail("Command is empty")

        rejection = self.confirmations.confirm(
            "Run bash command", BASH_COMMANDS, content=command
        )
        if rejection is not None:
            return rejection

        if command == "cd" or command.startswith("cd "):
            return self._change_directory(command)
        return self._run(command)

    def _change_directory(self, command: str) -> ToolResult:
        try:
            parts = shlex.split(command)
        except ValueError as exc:
            return ToolResult.fail(f"Cannot change directory: {exc}")
        if len(parts) > 2:
            return ToolResult.fail("cd takes a single directory argument")

        target = Path(parts[1] if len(parts) == 2 else "~").expanduser()
        if not target.is_absolute():
            target = Path(self.cwd) / target
        target = target.resolve()
        if not target.is_dir():
            return ToolResult.fail(f"Cannot change directory: {target} is not a directory")
        self.cwd = str(target)
        return ToolResult.ok(f"Changed directory to: {self.cwd}")

    def _run(self, command: str) -> ToolResult:
        if not Path(self.cwd).is_dir():
            return ToolResult.fail(f"Working directory does not exist: {self.cwd}")
        try:
            proc = subprocess.Popen(
                ["/bin/sh", "-c", command],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                cwd=self.cwd,
                start_new_session=True,
            )
        except OSError as exc:
            return ToolResult.fail(f"Failed to start command: {exc}")

        output, returncode, timed_out = _capture(proc, self.timeout)
        if timed_out:
            return ToolResult.fail(
                f"Command timed out after {self.timeout}s" + (f"\n{output}" if output else "")
            )
        if returncode != 0:
            return ToolResult.fail(
                f"Exit code: {returncode}" + (f"\n{output}" if output else "")
            )
        return ToolResult.ok(output.rstrip("\n") or "Command executed successfully (no output)")
