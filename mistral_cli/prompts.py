"""System prompts and per-mode request wrapping."""

import os
from pathlib import Path

from . import fmt
from .messages import Mode

BASE_PROMPT_FILE = Path(__file__).parent / "base_prompt.txt"
MAX_INSTRUCTIONS_CHARS = 10_000

EDIT_TOOLS = """\
- create_file: Create new files with content (ONLY use this for files that don't exist yet)
- str_replace_editor: Replace text in existing files (ALWAYS use this to edit or update existing files)

IMPORTANT TOOL USAGE RULES:
- NEVER use create_file on files that already exist - this will overwrite them completely
- ALWAYS use str_replace_editor to modify existing files, even for small changes
- Before editing a file, use view_file to see its current contents
- Use create_file ONLY when creating entirely new files that don't exist

USER CONFIRMATION SYSTEM:
File operations (create_file, str_replace_editor) and bash commands may request user confirmation before execution. Users can approve individual operations or approve all operations of that type for the session.
If a user rejects an operation, the tool will return an error and you should not proceed with that specific operation."""

TODO_TOOLS = """\
- create_todo_list: Create a visual todo list for planning and tracking tasks
- update_todo_list: Update existing todos in your todo list"""

TODO_INSTRUCTIONS = """\
TASK PLANNING WITH TODO LISTS:
- For complex requests with multiple steps, ALWAYS create a todo list first to plan your approach
- Use create_todo_list to break down tasks into manageable items with priorities
- Mark tasks as 'in_progress' when you start working on them (only one at a time)
- Mark tasks as 'completed' immediately when finished
- Use update_todo_list to track your progress throughout the task
- Always create todos with priorities: 'high', 'medium', 'low'"""

PLAN_MODE_RESTRICTIONS = """\
RESTRICTIONS IN PLAN MODE:
- DO NOT use create_file, str_replace_editor, or any modification tools
- ONLY use view_file, bash (for read-only operations like ls, find, grep, cat), and analysis tools
- Your job is to PLAN, not to execute
- DO NOT make any changes to files or create new files
- DO NOT create todo lists or use todo-related tools"""

PLAN_MODE_PROCESS = """\
REQUIRED PROCESS:
1. First, explore the codebase using view_file and bash (ls, find, grep, etc.)
2. Understand the current state of relevant files
3. Create a structured plan with specific details

FORMAT YOUR PLAN like this:
# Plan for [task]

## Objective
[Clear description of what needs to be accomplished]

## Codebase Analysis
[What you found in the current code - current state, existing patterns, etc.]

## Files to Modify
- file1.py: [current state and what specific changes are needed]
- file2.py: [current state and what specific changes are needed]

## Implementation Steps
1. [Step 1 with specific details, line numbers if applicable]
2. [Step 2 with specific details, line numbers if applicable]
3. [Continue with all necessary steps]

## Expected Outcome
[What the result should be after implementation]

IMPORTANT: Do not execute any modifications. Only analyze and plan."""


def load_custom_instructions(base_dir: str, verbose: bool = False) -> str | None:
    """Load .mistral/MISTRAL.md (or MISTRAL.md) from base_dir, if present.

    Returns the file text, truncated to MAX_INSTRUCTIONS_CHARS, or None.
    """
    base = Path(base_dir).resolve()
    for candidate in (base / ".mistral" / "MISTRAL.md", base / "MISTRAL.md"):
        if not candidate.is_file():
            continue
        try:
            with candidate.open(encoding="utf-8", errors="replace") as f:
                content = f.read(MAX_INSTRUCTIONS_CHARS + 1)
        except OSError:
            continue
        if len(content) > MAX_INSTRUCTIONS_CHARS:
            content = (
                content[:MAX_INSTRUCTIONS_CHARS]
                + f"\n[truncated, {candidate.name} exceeds {MAX_INSTRUCTIONS_CHARS} character limit]"
            )
        if verbose:
            fmt.info(f"Loaded custom instructions from {candidate}")
        content = content.strip()
        return content or None
    return None


class PromptManager:
    """Builds the system message for a mode and wraps plan-mode requests."""

    def __init__(self, working_directory: str | None = None):
        self.working_directory = working_directory or os.getcwd()
        self._base_prompt: str | None = None

    @property
    def base_prompt(self) -> str:
        if self._base_prompt is None:
            self._base_prompt = BASE_PROMPT_FILE.read_text(encoding="utf-8").rstrip()
        return self._base_prompt

    def set_working_directory(self, directory: str) -> None:
        self.working_directory = directory

    def system_message(self, mode: Mode | str, custom_instructions: str | None = None) -> str:
        mode = Mode.parse(mode)
        custom = ""
        if custom_instructions:
            custom = (
                f"\n\nCUSTOM INSTRUCTIONS:\n{custom_instructions}\n\n"
                "The above custom instructions should be followed alongside "
                "the standard instructions below."
            )
        return (
            f"{self.base_prompt}{custom}{self._mode_suffix(mode)}"
            f"\n\nCurrent working directory: {self.working_directory}"
        )

    def plan_wrap(self, user_text: str) -> str:
        return (
            "PLAN MODE ACTIVE - READ-ONLY ANALYSIS REQUIRED\n\n"
            "You are in PLAN MODE. Your role is to analyze the codebase and create "
            "a detailed action plan WITHOUT executing any modifications.\n\n"
            f"{PLAN_MODE_RESTRICTIONS}\n\n"
            f"{PLAN_MODE_PROCESS}\n\n"
            f"User request: {user_text}"
        )

    def wrap_request(self, user_text: str, mode: Mode | str) -> str:
        """The user message as sent to the model for the given mode."""
        if Mode.parse(mode) is Mode.PLAN:
            return self.plan_wrap(user_text)
        return user_text

    @staticmethod
    def _mode_suffix(mode: Mode) -> str:
        if mode is Mode.PLAN:
            return f"\n\n{PLAN_MODE_RESTRICTIONS}\n\n{PLAN_MODE_PROCESS}"
        return f"\n\n{EDIT_TOOLS}\n\n{TODO_TOOLS}\n\n{TODO_INSTRUCTIONS}"
