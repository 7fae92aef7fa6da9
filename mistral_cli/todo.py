"""Todo list tool for planning and tracking work within a session."""

from dataclasses import asdict, dataclass

from . import fmt
from .messages import ToolResult

MAX_ITEMS = 50
MAX_ITEM_TEXT = 500
VALID_STATUSES = ("pending", "in_progress", "completed")
VALID_PRIORITIES = ("high", "medium", "low")

_MARKS = {"completed": "[x]", "in_progress": "[~]", "pending": "[ ]"}


@dataclass
class TodoItem:
    id: str
    content: str
    status: str = "pending"
    priority: str = "medium"


def _check_field(name: str, value, allowed: tuple[str, ...]) -> str | None:
    if value not in allowed:
        return f"invalid {name} {value!r}, expected one of: {', '.join(allowed)}"
    return None


class TodoTool:
    """Handlers for create_todo_list and update_todo_list.

    The list lives in memory for the lifetime of the session and is echoed
    back to the model as plain text after every change.
    """

    def __init__(self, verbose: bool = False):
        self.items: list[TodoItem] = []
        self.verbose = verbose

    def create(self, todos: list) -> ToolResult:
        if not isinstance(todos, list) or not todos:
            return ToolResult.fail("todos must be a non-empty array")
        if len(todos) > MAX_ITEMS:
            return ToolResult.fail(f"too many todos ({MAX_ITEMS} items max)")

        items: list[TodoItem] = []
        seen: set[str] = set()
        for raw in todos:
            if not isinstance(raw, dict):
                return ToolResult.fail("each todo must be an object")
            item_id = str(raw.get("id", "")).strip()
            content = str(raw.get("content", "")).strip()
            if not item_id or not content:
                return ToolResult.fail("each todo needs a non-empty 'id' and 'content'")
            if item_id in seen:
                return ToolResult.fail(f"duplicate todo id {item_id!r}")
            if len(content) > MAX_ITEM_TEXT:
                return ToolResult.fail(
                    f"todo {item_id!r} exceeds {MAX_ITEM_TEXT} characters, please shorten it"
                )
            status = raw.get("status", "pending")
            priority = raw.get("priority", "medium")
            problem = _check_field("status", status, VALID_STATUSES) or _check_field(
                "priority", priority, VALID_PRIORITIES
            )
            if problem:
                return ToolResult.fail(f"todo {item_id!r}: {problem}")
            seen.add(item_id)
            items.append(TodoItem(item_id, content, status, priority))

        self.items = items
        return self._response()

    def update(self, updates: list) -> ToolResult:
        if not isinstance(updates, list) or not updates:
            return ToolResult.fail("updates must be a non-empty array")
        by_id = {item.id: item for item in self.items}

        # Validate everything before applying anything.
        for raw in updates:
            if not isinstance(raw, dict):
                return ToolResult.fail("each update must be an object")
            item_id = str(raw.get("id", ""))
            if item_id not in by_id:
                return ToolResult.fail(f"no todo with id {item_id!r}")
            if "status" in raw:
                problem = _check_field("status", raw["status"], VALID_STATUSES)
                if problem:
                    return ToolResult.fail(f"todo {item_id!r}: {problem}")
            if "priority" in raw:
                problem = _check_field("priority", raw["priority"], VALID_PRIORITIES)
                if problem:
                    return ToolResult.fail(f"todo {item_id!r}: {problem}")
            if "content" in raw and not str(raw["content"]).strip():
                return ToolResult.fail(f"todo {item_id!r}: content must not be empty")

        for raw in updates:
            item = by_id[str(raw["id"])]
            if "status" in raw:
                item.status = raw["status"]
            if "priority" in raw:
                item.priority = raw["priority"]
            if "content" in raw:
                item.content = str(raw["content"]).strip()[:MAX_ITEM_TEXT]
        return self._response()

    def render(self) -> str:
        if not self.items:
            return "No todos"
        lines = [
            f"{_MARKS[item.status]} {item.id}. {item.content} ({item.priority})"
            for item in self.items
        ]
        done = sum(1 for item in self.items if item.status == "completed")
        lines.append(f"{done}/{len(self.items)} completed")
        return "\n".join(lines)

    def reset(self) -> None:
        self.items.clear()

    def _response(self) -> ToolResult:
        if self.verbose:
            fmt.todo_list([asdict(item) for item in self.items])
        return ToolResult.ok(self.render())
