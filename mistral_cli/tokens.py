"""Token counting and context-window budget tracking."""

import json

import tiktoken

DEFAULT_ENCODING = "cl100k_base"
MAX_BUDGET = 128_000  # devstral context window
PER_MESSAGE_OVERHEAD = 4  # role markers and message boundaries
RESPONSE_PRIMING = 3


def _tool_calls_text(tool_calls) -> str:
    """Serialize tool calls (dicts or ToolCall-like objects) for counting."""
    serializable = []
    for tc in tool_calls:
        if isinstance(tc, dict):
            serializable.append(tc)
        elif hasattr(tc, "to_wire"):
            serializable.append(tc.to_wire())
        else:
            fn = getattr(tc, "function", None)
            serializable.append(
                {
                    "id": getattr(tc, "id", None),
                    "type": "function",
                    "function": {
                        "name": getattr(fn, "name", ""),
                        "arguments": getattr(fn, "arguments", "") or "",
                    },
                }
            )
    return json.dumps(serializable)


class TokenBudgetTracker:
    """Estimates token usage of a conversation against a fixed budget.

    The estimate is not exact. It is monotonic in message content and stable
    for a given encoding, which is all the budget display needs.
    """

    def __init__(self, encoding: str = DEFAULT_ENCODING, max_budget: int = MAX_BUDGET):
        self.encoding_name = encoding
        self.max_budget = max_budget
        self._encoder = tiktoken.get_encoding(encoding)

    @classmethod
    def for_model(cls, model: str, max_budget: int = MAX_BUDGET) -> "TokenBudgetTracker":
        """Build a tracker with the encoding tiktoken associates with model, if any."""
        try:
            encoding = tiktoken.encoding_for_model(model).name
        except KeyError:
            encoding = DEFAULT_ENCODING
        return cls(encoding=encoding, max_budget=max_budget)

    def count_tokens(self, text: str | None) -> int:
        if not text:
            return 0
        return len(self._encoder.encode(text, disallowed_special=()))

    def count_message_tokens(self, messages: list) -> int:
        total = 0
        for m in messages:
            if isinstance(m, dict):
                role = m.get("role", "")
                content = m.get("content")
                tool_calls = m.get("tool_calls")
            else:
                role = getattr(m, "role", "") or ""
                content = getattr(m, "content", None)
                tool_calls = getattr(m, "tool_calls", None)
            total += self.count_tokens(role)
            if isinstance(content, str):
                total += self.count_tokens(content)
            if tool_calls:
                total += self.count_tokens(_tool_calls_text(tool_calls))
            total += PER_MESSAGE_OVERHEAD
        return total + RESPONSE_PRIMING

    def usage_percent(self, messages: list) -> int:
        return round(100 * self.count_message_tokens(messages) / self.max_budget)

    def percentage_left(self, messages: list) -> int:
        return max(0, 100 - self.usage_percent(messages))

    def is_near_limit(self, messages: list, threshold: int = 90) -> bool:
        return self.usage_percent(messages) >= threshold
