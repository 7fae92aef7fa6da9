"""File viewing, creation and string-replacement editing."""

import os
import re
from pathlib import Path
from typing import Callable

from .confirm import FILE_OPERATIONS, ConfirmationService
from .messages import ToolResult

MAX_OUTPUT_BYTES = 50 * 1024
MAX_LINE_LENGTH = 2000
BINARY_CHECK_BYTES = 8 * 1024


# ---------------------------------------------------------------------------
# Replacement engine
# ---------------------------------------------------------------------------

_UNICODE_SINGLE_QUOTES = re.compile(r"[‘’‚‛]")
_UNICODE_DOUBLE_QUOTES = re.compile(r"[“”„‟]")
_UNICODE_DASHES = re.compile(r"[‐‑‒–—―]")


def _trimmed(line: str) -> str:
    return line.strip()


def _normalized(line: str) -> str:
    line = _UNICODE_SINGLE_QUOTES.sub("'", line.strip())
    line = _UNICODE_DOUBLE_QUOTES.sub('"', line)
    line = _UNICODE_DASHES.sub("-", line)
    return line.replace("\u2026", "...").replace("\u00a0", " ")


def _line_spans(content: str, old_str: str, key: Callable[[str], str]) -> list[tuple[int, int]]:
    """Character spans in content whose lines match old_str under key()."""
    content_lines = content.split("\n")
    wanted = [key(line) for line in old_str.split("\n")]
    n = len(wanted)
    offsets = [0]
    for line in content_lines:
        offsets.append(offsets[-1] + len(line) + 1)

    spans = []
    i = 0
    while i <= len(content_lines) - n:
        if all(key(content_lines[i + j]) == wanted[j] for j in range(n)):
            start = offsets[i]
            end = offsets[i + n]
            if not old_str.endswith("\n"):
                end -= 1
            spans.append((start, min(end, len(content))))
            i += n
        else:
            i += 1
    return spans


def replace(content: str, old_str: str, new_str: str, replace_all: bool = False) -> str:
    """Replace old_str with new_str in content.

    Tries an exact match first, then a per-line whitespace-trimmed match,
    then a match that also folds Unicode quotes and dashes to ASCII.

    Raises ValueError with "no changes", "not found" or "multiple matches".
    """
    if not old_str:
        raise ValueError("old_str must not be empty")
    if old_str == new_str:
        raise ValueError("no changes")

    count = content.count(old_str)
    if count == 1 or (count > 1 and replace_all):
        return content.replace(old_str, new_str, -1 if replace_all else 1)
    if count > 1:
        raise ValueError("multiple matches")

    for key in (_trimmed, _normalized):
        spans = _line_spans(content, old_str, key)
        if not spans:
            continue
        if len(spans) > 1 and not replace_all:
            raise ValueError("multiple matches")
        for start, end in reversed(spans if replace_all else spans[:1]):
            content = content[:start] + new_str + content[end:]
        return content

    raise ValueError("not found")


# ---------------------------------------------------------------------------
# Tool
# ---------------------------------------------------------------------------


class TextEditorTool:
    """Handlers for view_file, create_file and str_replace_editor.

    Relative paths resolve against ``cwd()``, which the bash tool keeps in
    sync with ``cd`` commands.
    """

    def __init__(
        self,
        confirmations: ConfirmationService,
        cwd: Callable[[], str] = os.getcwd,
    ):
        self.confirmations = confirmations
        self.cwd = cwd

    def _resolve(self, path: str) -> Path:
        p = Path(path).expanduser()
        if not p.is_absolute():
            p = Path(self.cwd()) / p
        return p.resolve()

    def view(self, path: str, start_line: int | None = None, end_line: int | None = None) -> ToolResult:
        resolved = self._resolve(path)
        if not resolved.exists():
            return ToolResult.fail(f"File or directory not found: {path}")

        if resolved.is_dir():
            try:
                names = [
                    child.name + ("/" if child.is_dir() else "")
                    for child in sorted(resolved.iterdir())
                ]
            except PermissionError as exc:
                return ToolResult.fail(str(exc))
            listing = "\n".join(names)
            return ToolResult.ok(f"Directory contents of {path}:\n{listing}")

        try:
            with open(resolved, "rb") as f:
                head = f.read(BINARY_CHECK_BYTES)
        except OSError as exc:
            return ToolResult.fail(str(exc))
        if b"\x00" in head:
            return ToolResult.fail(f"Binary file detected: {path}")

        try:
            lines = resolved.read_text(encoding="utf-8").splitlines()
        except (UnicodeDecodeError, OSError) as exc:
            return ToolResult.fail(f"Failed to read {path}: {exc}")

        start = 1
        end = len(lines)
        if start_line is not None and end_line is not None:
            if start_line < 1 or end_line < start_line:
                return ToolResult.fail(
                    f"Invalid line range {start_line}-{end_line} for {path}"
                )
            start, end = start_line, min(end_line, len(lines))

        parts = []
        total = 0
        for number in range(start, end + 1):
            line = lines[number - 1][:MAX_LINE_LENGTH]
            numbered = f"{number}: {line}"
            total += len(numbered.encode("utf-8")) + 1
            if total > MAX_OUTPUT_BYTES:
                parts.append(f"[truncated, use start_line={number} to continue]")
                break
            parts.append(numbered)
        return ToolResult.ok("\n".join(parts))

    def create(self, path: str, content: str) -> ToolResult:
        resolved = self._resolve(path)
        if resolved.exists():
            return ToolResult.fail(
                f"File already exists: {path}. Use str_replace_editor to modify it."
            )

        rejection = self.confirmations.confirm(
            "Create file", FILE_OPERATIONS, filename=path, content=content
        )
        if rejection is not None:
            return rejection

        try:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            data = content.encode("utf-8")
            resolved.write_bytes(data)
        except OSError as exc:
            return ToolResult.fail(f"Failed to create {path}: {exc}")
        line_count = content.count("\n") + (0 if content.endswith("\n") or not content else 1)
        return ToolResult.ok(f"Created {path} ({line_count} lines, {len(data)} bytes)")

    def str_replace(self, path: str, old_str: str, new_str: str, replace_all: bool = False) -> ToolResult:
        resolved = self._resolve(path)
        if not resolved.is_file():
            return ToolResult.fail(f"File not found: {path}")

        try:
            content = resolved.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError) as exc:
            return ToolResult.fail(f"Failed to read {path}: {exc}")

        try:
            new_content = replace(content, old_str, new_str, replace_all=replace_all)
        except ValueError as exc:
            return ToolResult.fail(f"Could not edit {path}: {exc}")

        rejection = self.confirmations.confirm(
            "Edit file",
            FILE_OPERATIONS,
            filename=path,
            content=f"- {old_str}\n+ {new_str}",
        )
        if rejection is not None:
            return rejection

        try:
            resolved.write_text(new_content, encoding="utf-8")
        except OSError as exc:
            return ToolResult.fail(f"Failed to write {path}: {exc}")
        return ToolResult.ok(f"Edited {path}")
