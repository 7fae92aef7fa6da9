"""Wire-format message log sent to the remote model."""

from __future__ import annotations

from .tokens import TokenBudgetTracker


def _role(msg) -> str | None:
    return msg.get("role") if isinstance(msg, dict) else getattr(msg, "role", None)


def entry_to_message(entry) -> dict:
    """Convert a ChatEntry back into the message shape the model saw."""
    if entry.kind == "user":
        return {"role": "user", "content": entry.content}
    if entry.kind == "tool_result":
        result = entry.tool_result
        return {
            "role": "tool",
            "content": result.text if result is not None else entry.content,
            "tool_call_id": entry.tool_call.id,
        }
    content = entry.wire_content if entry.wire_content is not None else entry.content
    msg: dict = {"role": "assistant", "content": content}
    if entry.tool_calls:
        msg["tool_calls"] = [tc.to_wire() for tc in entry.tool_calls]
    return msg


class ContextStore:
    """Ordered message list with a token budget attached.

    Messages are plain dicts in OpenAI chat format. The first message, when
    present and role=system, carries the mode-specific instructions.
    """

    def __init__(self, tracker: TokenBudgetTracker):
        self.tracker = tracker
        self._messages: list[dict] = []

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: dict) -> None:
        self._messages.append(message)

    def list(self) -> list[dict]:
        return list(self._messages)

    def optimized(self) -> list[dict]:
        """Messages to send on the next call.

        Returns everything today. Any future compression must keep the
        leading system message and the original order.
        """
        return self.list()

    def clear(self, keep_system: bool = True) -> None:
        if keep_system and self._messages and _role(self._messages[0]) == "system":
            self._messages = self._messages[:1]
        else:
            self._messages = []

    def rebuild(self, system_message: str, entries: list, pending_user_message: str | None) -> None:
        """Reseed for a new mode: system message, replayed history, new user turn.

        ``entries`` must already exclude the in-flight user entry.
        """
        self.clear(keep_system=False)
        self.append({"role": "system", "content": system_message})
        for entry in entries:
            self.append(entry_to_message(entry))
        if pending_user_message is not None:
            self.append({"role": "user", "content": pending_user_message})

    def total_tokens(self) -> int:
        return self.tracker.count_message_tokens(self._messages)

    def percentage_left(self) -> int:
        return self.tracker.percentage_left(self._messages)
