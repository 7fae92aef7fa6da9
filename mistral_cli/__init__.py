"""Terminal coding assistant driving Mistral's Devstral models with local tools."""

from .agent import (
    AVAILABLE_MODELS,
    DEFAULT_MODEL,
    MAX_STREAM_ROUNDS,
    MAX_TOOL_ROUNDS,
    AgentOrchestrator,
    AgentState,
)
from .confirm import (
    AutoApprove,
    Confirmation,
    ConfirmationRequest,
    ConfirmationService,
    NonInteractiveGateway,
)
from .context import ContextStore
from .errors import AgentError, ConfigError
from .messages import ChatEntry, Mode, StreamingChunk, ToolCall, ToolResult
from .plan import is_plan_content
from .prompts import PromptManager
from .tokens import TokenBudgetTracker
from .tools import TOOLS, ToolDispatcher

__all__ = [
    "AVAILABLE_MODELS",
    "DEFAULT_MODEL",
    "MAX_STREAM_ROUNDS",
    "MAX_TOOL_ROUNDS",
    "TOOLS",
    "AgentError",
    "AgentOrchestrator",
    "AgentState",
    "AutoApprove",
    "ChatEntry",
    "ConfigError",
    "Confirmation",
    "ConfirmationRequest",
    "ConfirmationService",
    "ContextStore",
    "Mode",
    "NonInteractiveGateway",
    "PromptManager",
    "StreamingChunk",
    "TokenBudgetTracker",
    "ToolCall",
    "ToolDispatcher",
    "ToolResult",
    "is_plan_content",
]
