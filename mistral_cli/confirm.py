"""User confirmation for side-effecting tool operations.

Mutating tool handlers receive a ConfirmationService and ask it before
touching the filesystem or running a command. The service consults an
injected gateway (terminal prompt, auto-approve, or a test double) and
remembers "approve for this session" answers per kind of operation.
"""

from dataclasses import dataclass
from typing import Protocol

from . import fmt
from .messages import ToolResult

FILE_OPERATIONS = "file"
BASH_COMMANDS = "bash"


@dataclass
class ConfirmationRequest:
    operation: str
    filename: str | None = None
    content: str | None = None


@dataclass
class Confirmation:
    approved: bool
    remember: bool = False
    reason: str | None = None

    @classmethod
    def approve(cls) -> "Confirmation":
        return cls(approved=True)

    @classmethod
    def approve_for_session(cls) -> "Confirmation":
        return cls(approved=True, remember=True)

    @classmethod
    def reject(cls, reason: str | None = None) -> "Confirmation":
        return cls(approved=False, reason=reason)


class ConfirmationGateway(Protocol):
    def request(self, options: ConfirmationRequest) -> Confirmation: ...


class AutoApprove:
    """Gateway that approves everything without asking."""

    def request(self, options: ConfirmationRequest) -> Confirmation:
        return Confirmation.approve()


class NonInteractiveGateway:
    """Rejects every request; used when there is no terminal to ask on."""

    def request(self, options: ConfirmationRequest) -> Confirmation:
        return Confirmation.reject(
            "no terminal available to confirm, rerun with --mode auto-accept-on"
        )


class TerminalGateway:
    """Ask on the terminal: yes, always (this session), or no with a reason."""

    def request(self, options: ConfirmationRequest) -> Confirmation:
        from prompt_toolkit import prompt

        fmt.confirmation_prompt(options.operation, options.filename, options.content)
        try:
            answer = prompt("  Approve? [y]es / [a]lways / [n]o: ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            return Confirmation.reject("no answer")
        if answer in ("y", "yes"):
            return Confirmation.approve()
        if answer in ("a", "always"):
            return Confirmation.approve_for_session()
        try:
            reason = prompt("  Reason (optional): ").strip()
        except (EOFError, KeyboardInterrupt):
            reason = ""
        return Confirmation.reject(reason or None)


class ConfirmationService:
    """Session-aware front for a ConfirmationGateway.

    ``auto_accept`` is toggled by the orchestrator from the active mode;
    when set, no gateway request is made. Without a gateway every request
    is rejected.
    """

    def __init__(self, gateway: ConfirmationGateway | None = None, auto_accept: bool = False):
        self.gateway = gateway if gateway is not None else NonInteractiveGateway()
        self.auto_accept = auto_accept
        self.session_flags: dict[str, bool] = {FILE_OPERATIONS: False, BASH_COMMANDS: False}

    def confirm(
        self,
        operation: str,
        kind: str,
        filename: str | None = None,
        content: str | None = None,
    ) -> ToolResult | None:
        """Return None when approved, or a failed ToolResult on rejection."""
        if self.auto_accept or self.session_flags.get(kind):
            return None
        answer = self.gateway.request(
            ConfirmationRequest(operation=operation, filename=filename, content=content)
        )
        if answer.approved:
            if answer.remember:
                self.session_flags[kind] = True
            return None
        message = f"{operation} cancelled by user"
        if answer.reason:
            message += f": {answer.reason}"
        return ToolResult.fail(message)

    def reset_session(self) -> None:
        for kind in self.session_flags:
            self.session_flags[kind] = False
