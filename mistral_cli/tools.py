"""Tool schemas and the dispatcher that routes model tool calls to handlers."""

import json
from typing import Callable

from .bash import BashTool
from .confirm import ConfirmationService
from .editor import TextEditorTool
from .messages import Mode, ToolCall, ToolResult
from .todo import TodoTool
from .websearch import WebSearchTool

__all__ = ["TOOLS", "MUTATING_TOOLS", "ToolCall", "ToolDispatcher", "ToolResult"]

_TODO_ITEM_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": "Unique identifier for the todo item"},
        "content": {"type": "string", "description": "Description of the todo item"},
        "status": {
            "type": "string",
            "enum": ["pending", "in_progress", "completed"],
            "description": "Current status of the todo item",
        },
        "priority": {
            "type": "string",
            "enum": ["high", "medium", "low"],
            "description": "Priority level of the todo item",
        },
    },
    "required": ["id", "content", "status", "priority"],
}

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "view_file",
            "description": (
                "View the contents of a file or list the contents of a directory. "
                "File lines are prefixed with their line numbers."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Path to the file or directory to view.",
                    },
                    "start_line": {
                        "type": "integer",
                        "description": "First line to show (1-based). Requires end_line.",
                    },
                    "end_line": {
                        "type": "integer",
                        "description": "Last line to show (inclusive). Requires start_line.",
                    },
                },
                "required": ["path"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "create_file",
            "description": "Create a new file with the given content. Fails if the file already exists.",
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Path of the file to create."},
                    "content": {"type": "string", "description": "Content to write."},
                },
                "required": ["path", "content"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "str_replace_editor",
            "description": (
                "Replace text in an existing file. old_str must match exactly one "
                "location unless replace_all is true."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Path of the file to edit."},
                    "old_str": {"type": "string", "description": "Text to replace."},
                    "new_str": {"type": "string", "description": "Replacement text."},
                    "replace_all": {
                        "type": "boolean",
                        "description": "Replace every occurrence instead of exactly one.",
                        "default": False,
                    },
                },
                "required": ["path", "old_str", "new_str"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "bash",
            "description": (
                "Execute a shell command. 'cd <dir>' changes the working directory "
                "for later commands. Commands time out after 30 seconds."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "The command to execute."},
                },
                "required": ["command"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "create_todo_list",
            "description": "Create a new todo list for planning and tracking tasks.",
            "parameters": {
                "type": "object",
                "properties": {
                    "todos": {
                        "type": "array",
                        "description": "Array of todo items",
                        "items": _TODO_ITEM_SCHEMA,
                    },
                },
                "required": ["todos"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "update_todo_list",
            "description": "Update existing todos in the todo list.",
            "parameters": {
                "type": "object",
                "properties": {
                    "updates": {
                        "type": "array",
                        "description": "Array of todo updates",
                        "items": {
                            "type": "object",
                            "properties": {
                                "id": {"type": "string", "description": "ID of the todo to update"},
                                "status": {
                                    "type": "string",
                                    "enum": ["pending", "in_progress", "completed"],
                                },
                                "content": {"type": "string"},
                                "priority": {"type": "string", "enum": ["high", "medium", "low"]},
                            },
                            "required": ["id"],
                        },
                    },
                },
                "required": ["updates"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "web_search",
            "description": "Search the web and return a sourced answer.",
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "The search query."},
                    "max_results": {
                        "type": "integer",
                        "description": "Maximum number of sources to list. Defaults to 5.",
                        "default": 5,
                    },
                },
                "required": ["query"],
            },
        },
    },
]

# Tools refused in plan mode, mapped to the operation named in the refusal.
MUTATING_TOOLS = {
    "create_file": "File creation",
    "str_replace_editor": "File editing",
    "create_todo_list": "Todo list creation",
    "update_todo_list": "Todo list updates",
}

Handler = Callable[[dict], object]


class ToolDispatcher:
    """Routes a ToolCall to its registered handler and returns a ToolResult.

    Never raises for tool-local problems: malformed arguments, unknown
    names, plan-mode refusals and handler exceptions all come back as a
    failed ToolResult so the agent loop can feed them to the model.
    """

    def __init__(self):
        self.handlers: dict[str, Handler] = {}
        self.bash: BashTool | None = None
        self.todo: TodoTool | None = None

    def register(self, name: str, handler: Handler) -> None:
        self.handlers[name] = handler

    @property
    def names(self) -> list[str]:
        return list(self.handlers)

    def dispatch(self, tool_call: ToolCall, mode: Mode | str = Mode.AUTO_ACCEPT_OFF) -> ToolResult:
        try:
            args = json.loads(tool_call.arguments) if tool_call.arguments.strip() else {}
        except json.JSONDecodeError as e:
            return ToolResult.fail(f"Tool execution error: invalid JSON arguments ({e})")
        if not isinstance(args, dict):
            return ToolResult.fail(
                f"Tool execution error: arguments must be a JSON object, got {type(args).__name__}"
            )

        handler = self.handlers.get(tool_call.name)
        if handler is None:
            return ToolResult.fail(f"Unknown tool: {tool_call.name}")

        if Mode.parse(mode) is Mode.PLAN and tool_call.name in MUTATING_TOOLS:
            return ToolResult.fail(
                f"{MUTATING_TOOLS[tool_call.name]} is not allowed in plan mode. "
                "Only read-only analysis is permitted; describe the change in your plan instead."
            )

        try:
            result = handler(args)
        except KeyError as e:
            return ToolResult.fail(f"Tool execution error: missing required argument {e}")
        except Exception as e:
            return ToolResult.fail(f"Tool execution error: {e}")

        if isinstance(result, ToolResult):
            return result
        if result is None:
            return ToolResult.ok()
        return ToolResult.ok(str(result))

    @classmethod
    def default(
        cls,
        confirmations: ConfirmationService,
        working_directory: str | None = None,
        linkup_api_key: str | None = None,
        verbose: bool = False,
    ) -> "ToolDispatcher":
        """Dispatcher wired to the standard tool set, sharing one working directory."""
        bash = BashTool(confirmations, cwd=working_directory)
        editor = TextEditorTool(confirmations, cwd=bash.current_directory)
        todo = TodoTool(verbose=verbose)
        search = WebSearchTool(api_key=linkup_api_key)

        dispatcher = cls()
        dispatcher.bash = bash
        dispatcher.todo = todo
        dispatcher.register(
            "view_file",
            lambda a: editor.view(a["path"], a.get("start_line"), a.get("end_line")),
        )
        dispatcher.register("create_file", lambda a: editor.create(a["path"], a["content"]))
        dispatcher.register(
            "str_replace_editor",
            lambda a: editor.str_replace(
                a["path"], a["old_str"], a["new_str"], bool(a.get("replace_all", False))
            ),
        )
        dispatcher.register("bash", lambda a: bash.execute(a["command"]))
        dispatcher.register("create_todo_list", lambda a: todo.create(a["todos"]))
        dispatcher.register("update_todo_list", lambda a: todo.update(a["updates"]))
        dispatcher.register(
            "web_search",
            lambda a: search.search(a["query"], a.get("max_results", 5)),
        )
        return dispatcher
