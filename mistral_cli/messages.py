"""Data types passed between the agent loop, the dispatcher and the UI."""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime


class Mode(str, enum.Enum):
    AUTO_ACCEPT_OFF = "auto-accept-off"
    AUTO_ACCEPT_ON = "auto-accept-on"
    PLAN = "plan"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "str | Mode") -> "Mode":
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"unknown mode {value!r}, expected one of: {valid}") from None


@dataclass(frozen=True)
class ToolCall:
    """One function call requested by the model. ``arguments`` is raw JSON text."""

    id: str
    name: str
    arguments: str = ""

    @classmethod
    def from_response(cls, tc) -> "ToolCall":
        """Normalize a LiteLLM/OpenAI tool call object or dict."""
        if isinstance(tc, cls):
            return tc
        if isinstance(tc, dict):
            fn = tc.get("function") or {}
            return cls(
                id=tc.get("id") or "",
                name=fn.get("name") or "",
                arguments=fn.get("arguments") or "",
            )
        fn = getattr(tc, "function", None)
        return cls(
            id=getattr(tc, "id", None) or "",
            name=getattr(fn, "name", None) or "",
            arguments=getattr(fn, "arguments", None) or "",
        )

    def to_wire(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class ToolResult:
    success: bool
    output: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, output: str | None = None) -> "ToolResult":
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    @property
    def text(self) -> str:
        """Content of the tool message fed back to the model."""
        if self.success:
            return self.output or "Success"
        return self.error or "Error"


@dataclass
class ChatEntry:
    """Durable record of one conversational turn, as shown to the user.

    ``wire_content`` holds what the model actually returned when the
    displayed ``content`` is a placeholder.
    """

    kind: str  # "user" | "assistant" | "tool_result"
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    tool_calls: list[ToolCall] | None = None
    tool_call: ToolCall | None = None
    tool_result: ToolResult | None = None
    wire_content: str | None = None


CHUNK_TYPES = ("content", "tool_calls", "tool_result", "token_count", "plan", "done")


@dataclass
class StreamingChunk:
    """One typed event of a submission's output sequence.

    Only the fields belonging to ``type`` are set.
    """

    type: str
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call: ToolCall | None = None
    tool_result: ToolResult | None = None
    token_count: int | None = None
    plan: str | None = None

    @classmethod
    def text(cls, content: str) -> "StreamingChunk":
        return cls(type="content", content=content)

    @classmethod
    def calls(cls, tool_calls: list[ToolCall]) -> "StreamingChunk":
        return cls(type="tool_calls", tool_calls=list(tool_calls))

    @classmethod
    def result(cls, tool_call: ToolCall, tool_result: ToolResult) -> "StreamingChunk":
        return cls(type="tool_result", tool_call=tool_call, tool_result=tool_result)

    @classmethod
    def tokens(cls, count: int) -> "StreamingChunk":
        return cls(type="token_count", token_count=count)

    @classmethod
    def plan_text(cls, plan: str) -> "StreamingChunk":
        return cls(type="plan", plan=plan)

    @classmethod
    def done(cls) -> "StreamingChunk":
        return cls(type="done")
