"""The agent loop: multi-round tool calling against the Mistral chat API."""

import enum
import json
import os
import threading
from typing import Iterator

from . import fmt
from .confirm import ConfirmationService
from .context import ContextStore
from .errors import AgentError
from .messages import ChatEntry, Mode, StreamingChunk, ToolCall, ToolResult
from .plan import is_plan_content
from .prompts import PromptManager
from .tokens import TokenBudgetTracker
from .tools import TOOLS, ToolDispatcher

MAX_STREAM_ROUNDS = 30
MAX_TOOL_ROUNDS = 10

DEFAULT_MODEL = "devstral-medium-2507"
AVAILABLE_MODELS = ("devstral-small-2505", "devstral-medium-2507")
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000
MAX_ARG_LOG = 1000

CANCELLED_MESSAGE = "[Operation cancelled by user]"
MAX_ROUNDS_MESSAGE = "Maximum tool execution rounds reached. Stopping to prevent infinite loops."
TOOLS_PLACEHOLDER = "Using tools to help you..."


class AgentState(enum.Enum):
    IDLE = "idle"
    RESPONDING = "responding"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    CANCELLED = "cancelled"
    ERROR = "error"


def call_llm(
    model: str,
    messages: list,
    tools: list,
    *,
    api_key: str | None = None,
    base_url: str | None = None,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    verbose: bool = False,
):
    """Call Mistral through LiteLLM. Returns the first choice's message."""
    import litellm

    litellm.suppress_debug_info = True

    model_str = model if model.startswith("mistral/") else f"mistral/{model}"
    kwargs = {}
    if api_key:
        kwargs["api_key"] = api_key
    if base_url:
        kwargs["api_base"] = base_url

    if verbose:
        fmt.model_info(
            f"Calling model {model_str} with max_tokens={max_tokens}, temperature={temperature}"
        )

    try:
        response = litellm.completion(
            model=model_str,
            messages=messages,
            tools=tools,
            tool_choice="auto",
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )
    except Exception as e:
        raise AgentError(f"Mistral API error: {e}")

    return response.choices[0].message


class AgentOrchestrator:
    """One conversation with the model, driven one submission at a time.

    ``submit()`` returns a generator of StreamingChunk events; the caller
    pulls it to drive the loop. ``cancel()`` may be called from another
    thread (a key handler) or between pulls; it is honoured before the next
    model call and before each tool dispatch.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        *,
        base_url: str | None = None,
        mode: Mode | str = Mode.AUTO_ACCEPT_OFF,
        working_directory: str | None = None,
        confirmations: ConfirmationService | None = None,
        dispatcher: ToolDispatcher | None = None,
        custom_instructions: str | None = None,
        linkup_api_key: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        verbose: bool = False,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.verbose = verbose
        self.custom_instructions = custom_instructions
        self._working_directory = os.path.abspath(working_directory or os.getcwd())

        self.confirmations = confirmations or ConfirmationService()
        self.dispatcher = dispatcher or ToolDispatcher.default(
            self.confirmations,
            working_directory=self._working_directory,
            linkup_api_key=linkup_api_key,
            verbose=verbose,
        )

        self.model = model
        self.tracker = TokenBudgetTracker.for_model(model)
        self.context = ContextStore(self.tracker)
        self.prompts = PromptManager(self.current_directory)

        self._history: list[ChatEntry] = []
        self._mode = Mode.parse(mode)
        self.confirmations.auto_accept = self._mode is Mode.AUTO_ACCEPT_ON
        self.state = AgentState.IDLE
        self._cancel_event: threading.Event | None = None

        self.context.append({"role": "system", "content": self._system_message()})

    # -- Read-only session state --------------------------------------------

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def history(self) -> list[ChatEntry]:
        return list(self._history)

    @property
    def current_directory(self) -> str:
        if self.dispatcher.bash is not None:
            return self.dispatcher.bash.cwd
        return self._working_directory

    @property
    def busy(self) -> bool:
        return self._cancel_event is not None

    def percentage_left(self) -> int:
        return self.context.percentage_left()

    # -- Session control ------------------------------------------------------

    def set_model(self, name: str) -> None:
        """Switch models; the token tracker is rebuilt for the new model."""
        self.model = name
        self.tracker = TokenBudgetTracker.for_model(name)
        self.context.tracker = self.tracker

    def cancel(self) -> None:
        event = self._cancel_event
        if event is not None:
            event.set()

    def clear(self) -> None:
        """Forget the conversation and start over in the current mode."""
        if self.busy:
            raise AgentError("Cannot clear the conversation while a request is running")
        self._history.clear()
        self.context.rebuild(self._system_message(), [], None)
        self.confirmations.reset_session()
        if self.dispatcher.todo is not None:
            self.dispatcher.todo.reset()
        self.state = AgentState.IDLE

    # -- Submissions --------------------------------------------------------

    def submit(self, user_text: str, mode: Mode | str | None = None) -> Iterator[StreamingChunk]:
        """Run one user request, yielding chunks until exactly one ``done``."""
        yield from self._stream(user_text, mode, MAX_STREAM_ROUNDS)

    def process_user_message(self, user_text: str, mode: Mode | str | None = None) -> list[ChatEntry]:
        """Run one request to completion and return the entries it created.

        On failure only the user entry and the error entry are returned.
        """
        start = len(self._history)
        for _ in self._stream(user_text, mode, MAX_TOOL_ROUNDS):
            pass
        created = self._history[start:]
        if self.state is AgentState.ERROR and len(created) > 2:
            return [created[0], created[-1]]
        return created

    def _stream(self, user_text: str, mode, max_rounds: int) -> Iterator[StreamingChunk]:
        if self._cancel_event is not None:
            raise AgentError("A request is already in progress")
        cancel = threading.Event()
        self._cancel_event = cancel
        try:
            yield from self._converse(user_text, mode, max_rounds, cancel)
        finally:
            self._cancel_event = None
            if self.state in (AgentState.RESPONDING, AgentState.EXECUTING_TOOLS):
                # Consumer stopped pulling before the loop finished.
                self._answer_open_tool_calls()
                self.state = AgentState.CANCELLED

    def _converse(
        self, user_text: str, mode, max_rounds: int, cancel: threading.Event
    ) -> Iterator[StreamingChunk]:
        requested = self._mode if mode is None else Mode.parse(mode)
        self.state = AgentState.RESPONDING

        self.prompts.set_working_directory(self.current_directory)
        wrapped = self.prompts.wrap_request(user_text, requested)
        if requested is not self._mode:
            if self.verbose:
                fmt.mode_change(str(self._mode), str(requested))
            self._mode = requested
            self.confirmations.auto_accept = requested is Mode.AUTO_ACCEPT_ON
            self.context.rebuild(self._system_message(), self._history, wrapped)
        else:
            self.context.append({"role": "user", "content": wrapped})
        self._history.append(ChatEntry(kind="user", content=user_text))

        yield StreamingChunk.tokens(self.context.total_tokens())

        rounds = 0
        try:
            while rounds < max_rounds:
                if cancel.is_set():
                    yield from self._cancelled()
                    return

                input_tokens = self.context.total_tokens()
                message = self._request()
                content = getattr(message, "content", None) or ""
                tool_calls = [
                    ToolCall.from_response(tc)
                    for tc in (getattr(message, "tool_calls", None) or [])
                ]
                if not content and not tool_calls:
                    raise AgentError("No response from Mistral")

                output_tokens = self.tracker.count_tokens(content)
                if tool_calls:
                    output_tokens += self.tracker.count_tokens(
                        json.dumps([tc.to_wire() for tc in tool_calls])
                    )
                yield StreamingChunk.tokens(input_tokens + output_tokens)

                if not tool_calls:
                    if requested is Mode.PLAN and is_plan_content(content):
                        yield StreamingChunk.plan_text(content)
                    else:
                        yield StreamingChunk.text(content)
                    self.context.append({"role": "assistant", "content": content})
                    self._history.append(ChatEntry(kind="assistant", content=content))
                    self.state = AgentState.DONE
                    yield StreamingChunk.done()
                    return

                rounds += 1
                yield StreamingChunk.calls(tool_calls)
                self.context.append(
                    {
                        "role": "assistant",
                        "content": content,
                        "tool_calls": [tc.to_wire() for tc in tool_calls],
                    }
                )
                self._history.append(
                    ChatEntry(
                        kind="assistant",
                        content=content or TOOLS_PLACEHOLDER,
                        tool_calls=tool_calls,
                        wire_content=content,
                    )
                )

                self.state = AgentState.EXECUTING_TOOLS
                for tc in tool_calls:
                    if cancel.is_set():
                        yield from self._cancelled()
                        return
                    if self.verbose:
                        fmt.tool_call(tc.name, tc.arguments[:MAX_ARG_LOG])
                    result = self.dispatcher.dispatch(tc, requested)
                    if self.verbose:
                        if result.success:
                            fmt.tool_result(tc.name, result.text)
                        else:
                            fmt.tool_error(tc.name, result.text)
                    self.context.append(
                        {"role": "tool", "content": result.text, "tool_call_id": tc.id}
                    )
                    self._history.append(
                        ChatEntry(
                            kind="tool_result",
                            content=result.text,
                            tool_call=tc,
                            tool_result=result,
                        )
                    )
                    yield StreamingChunk.result(tc, result)
                self.state = AgentState.RESPONDING

            yield StreamingChunk.text(MAX_ROUNDS_MESSAGE)
            self._history.append(ChatEntry(kind="assistant", content=MAX_ROUNDS_MESSAGE))
            self.state = AgentState.DONE
            yield StreamingChunk.done()
        except Exception as e:
            if cancel.is_set():
                yield from self._cancelled()
                return
            error_text = f"Sorry, I encountered an error: {e}"
            self._history.append(ChatEntry(kind="assistant", content=error_text))
            self.state = AgentState.ERROR
            yield StreamingChunk.text(error_text)
            yield StreamingChunk.done()

    def _request(self):
        kwargs = dict(
            api_key=self.api_key,
            base_url=self.base_url,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            verbose=self.verbose,
        )
        if self.verbose:
            with fmt.llm_spinner():
                return call_llm(self.model, self.context.optimized(), TOOLS, **kwargs)
        return call_llm(self.model, self.context.optimized(), TOOLS, **kwargs)

    def _cancelled(self) -> Iterator[StreamingChunk]:
        self._answer_open_tool_calls()
        self.state = AgentState.CANCELLED
        yield StreamingChunk.text(f"\n\n{CANCELLED_MESSAGE}")
        yield StreamingChunk.done()

    def _system_message(self) -> str:
        self.prompts.set_working_directory(self.current_directory)
        return self.prompts.system_message(self._mode, self.custom_instructions)

    def _answer_open_tool_calls(self) -> None:
        """Give every undispatched call of the last round a cancelled result.

        Every assistant tool_call id must be answered by a tool message
        before the context is sent again.
        """
        answered = set()
        for entry in reversed(self._history):
            if entry.kind == "tool_result":
                answered.add(entry.tool_call.id)
                continue
            if entry.kind != "assistant" or not entry.tool_calls:
                return
            for tc in entry.tool_calls:
                if tc.id in answered:
                    continue
                result = ToolResult.fail(CANCELLED_MESSAGE)
                self.context.append(
                    {"role": "tool", "content": result.text, "tool_call_id": tc.id}
                )
                self._history.append(
                    ChatEntry(
                        kind="tool_result", content=result.text, tool_call=tc, tool_result=result
                    )
                )
            return
