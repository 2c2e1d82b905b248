"""Callback manager and per-run managers.

``CallbackManager`` owns the live handler roster and starts runs. Each start
returns a run manager bound to one run id and a snapshot of the handlers
registered at that moment; the run manager raises the rest of that run's
events. Every event fans out to all accepting handlers concurrently, and a
failing handler is logged and skipped, never surfaced to the caller.
"""

import asyncio
import inspect
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict

from ..config.logging import logger
from ..config.settings import RuntraceSettings
from ..schema import AgentAction, AgentFinish, ChainValues, LLMResult
from .base import AsyncCallbackHandler, BaseCallbackHandler
from .events import EventType
from .functional import FunctionCallbackHandler
from .handlers.console import ConsoleCallbackHandler
from .tracers.log_tracer import LoggingTracer, get_tracing_handler

# Type alias for handlers
Handler = BaseCallbackHandler | AsyncCallbackHandler

__all__ = [
    "BaseRunManager",
    "CallbackManager",
    "CallbackManagerForChainRun",
    "CallbackManagerForLLMRun",
    "CallbackManagerForToolRun",
    "CallbackManagerOptions",
    "ParentRunManager",
]


async def _run_handler(
    handler: Handler,
    event: EventType,
    *args: Any,
    **kwargs: Any,
) -> None:
    """Run one handler method (sync or async), logging any failure."""
    try:
        result = getattr(handler, event.method_name)(*args, **kwargs)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning(
            f"Error in callback handler {handler.__class__.__name__}({handler.name}).{event.method_name}: {e!r}"
        )


async def _handle_event(
    handlers: Iterable[Handler],
    event: EventType,
    *args: Any,
    **kwargs: Any,
) -> None:
    """Deliver ``event`` to every accepting handler and wait for all of them."""
    tasks = [_run_handler(handler, event, *args, **kwargs) for handler in handlers if handler.accepts(event)]
    if tasks:
        await asyncio.gather(*tasks)


def _contains(handlers: Iterable[Handler], handler: Handler) -> bool:
    return any(existing is handler for existing in handlers)


class BaseRunManager:
    """Events shared by every run.

    The handler tuples are captured when the run starts; later changes to the
    ``CallbackManager`` that started the run do not reach it.
    """

    def __init__(
        self,
        run_id: UUID,
        handlers: Sequence[Handler],
        inheritable_handlers: Sequence[Handler],
        parent_run_id: UUID | None = None,
    ):
        self._run_id = run_id
        self._handlers: tuple[Handler, ...] = tuple(handlers)
        self._inheritable_handlers: tuple[Handler, ...] = tuple(inheritable_handlers)
        self._parent_run_id = parent_run_id

    @property
    def run_id(self) -> UUID:
        return self._run_id

    @property
    def parent_run_id(self) -> UUID | None:
        return self._parent_run_id

    @property
    def handlers(self) -> tuple[Handler, ...]:
        return self._handlers

    @property
    def inheritable_handlers(self) -> tuple[Handler, ...]:
        return self._inheritable_handlers

    async def _dispatch(self, event: EventType, *args: Any, **kwargs: Any) -> None:
        await _handle_event(
            self._handlers,
            event,
            *args,
            run_id=self._run_id,
            parent_run_id=self._parent_run_id,
            **kwargs,
        )

    async def on_text(self, text: str, **kwargs: Any) -> None:
        """Notify handlers of free trace text."""
        await self._dispatch(EventType.TEXT, text, **kwargs)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(run_id={self._run_id}, parent_run_id={self._parent_run_id}, "
            f"handlers={len(self._handlers)})"
        )


class ParentRunManager(BaseRunManager):
    """Run manager for runs that may spawn nested runs."""

    def get_child(self) -> "CallbackManager":
        """Get a callback manager for runs nested under this one.

        The child sees exactly this run's inheritable handlers, all of them
        inheritable again so grandchildren keep receiving events.
        """
        manager = CallbackManager(parent_run_id=self._run_id)
        manager.set_handlers(self._inheritable_handlers, inherit=True)
        return manager


class CallbackManagerForLLMRun(BaseRunManager):
    """Run manager for a model call. Model calls are leaves: no children."""

    async def on_llm_new_token(self, token: str, **kwargs: Any) -> None:
        """Notify handlers of a new streamed token."""
        await self._dispatch(EventType.LLM_NEW_TOKEN, token, **kwargs)

    async def on_llm_end(self, response: LLMResult, **kwargs: Any) -> None:
        """Notify handlers that the model run ended."""
        await self._dispatch(EventType.LLM_END, response, **kwargs)

    async def on_llm_error(self, error: BaseException, **kwargs: Any) -> None:
        """Notify handlers that the model run failed."""
        await self._dispatch(EventType.LLM_ERROR, error, **kwargs)


class CallbackManagerForChainRun(ParentRunManager):
    """Run manager for a chain run."""

    async def on_chain_end(self, outputs: ChainValues, **kwargs: Any) -> None:
        """Notify handlers that the chain run ended."""
        await self._dispatch(EventType.CHAIN_END, outputs, **kwargs)

    async def on_chain_error(self, error: BaseException, **kwargs: Any) -> None:
        """Notify handlers that the chain run failed."""
        await self._dispatch(EventType.CHAIN_ERROR, error, **kwargs)

    async def on_agent_action(self, action: AgentAction, **kwargs: Any) -> None:
        """Notify handlers of the tool an agent chose."""
        await self._dispatch(EventType.AGENT_ACTION, action, **kwargs)

    async def on_agent_end(self, finish: AgentFinish, **kwargs: Any) -> None:
        """Notify handlers of an agent's final answer."""
        await self._dispatch(EventType.AGENT_END, finish, **kwargs)


class CallbackManagerForToolRun(ParentRunManager):
    """Run manager for a tool run."""

    async def on_tool_end(self, output: str, **kwargs: Any) -> None:
        """Notify handlers that the tool run ended."""
        await self._dispatch(EventType.TOOL_END, output, **kwargs)

    async def on_tool_error(self, error: BaseException, **kwargs: Any) -> None:
        """Notify handlers that the tool run failed."""
        await self._dispatch(EventType.TOOL_ERROR, error, **kwargs)


class CallbackManagerOptions(BaseModel):
    """Switches for ``CallbackManager.configure``.

    Attributes:
        verbose: Add a console handler to the configured manager.
        tracing: Add the run tracer. ``None`` defers to ``RUNTRACE_TRACING``.
    """

    model_config = ConfigDict(frozen=True)

    verbose: bool = False
    tracing: bool | None = None


class CallbackManager:
    """Owns callback handlers and starts runs.

    ``handlers`` receive events raised through this manager;
    ``inheritable_handlers`` (always a subset of ``handlers``) also reach
    managers derived for nested runs via ``get_child()``.

    Example:
        manager = CallbackManager([ConsoleCallbackHandler()])
        run = await manager.on_chain_start({"name": "qa"}, {"question": q})
        try:
            answer = await answer_question(q, callbacks=run.get_child())
        except Exception as e:
            await run.on_chain_error(e)
            raise
        await run.on_chain_end({"answer": answer})
    """

    def __init__(
        self,
        handlers: Sequence[Handler] | None = None,
        inheritable_handlers: Sequence[Handler] | None = None,
        parent_run_id: UUID | None = None,
    ):
        self._handlers: list[Handler] = []
        self._inheritable_handlers: list[Handler] = []
        self.parent_run_id = parent_run_id
        # Without an explicit inheritable list every handler is inheritable, as with add_handler.
        inherit_all = inheritable_handlers is None
        for handler in handlers or []:
            self.add_handler(handler, inherit=inherit_all or _contains(inheritable_handlers, handler))
        for handler in inheritable_handlers or []:
            if not _contains(self._handlers, handler):
                self.add_handler(handler, inherit=True)

    @property
    def handlers(self) -> list[Handler]:
        """Snapshot of the handlers active for runs started here."""
        return list(self._handlers)

    @property
    def inheritable_handlers(self) -> list[Handler]:
        """Snapshot of the handlers passed down to nested runs."""
        return list(self._inheritable_handlers)

    def has_handler_named(self, name: str) -> bool:
        return any(handler.name == name for handler in self._handlers)

    # === Handler registration ===

    def add_handler(self, handler: Handler, inherit: bool = True) -> None:
        """Add a callback handler."""
        self._handlers.append(handler)
        if inherit:
            self._inheritable_handlers.append(handler)

    def remove_handler(self, handler: Handler) -> None:
        """Remove a callback handler (matched by identity)."""
        handlers = [h for h in self._handlers if h is not handler]
        inheritable = [h for h in self._inheritable_handlers if h is not handler]
        self._handlers, self._inheritable_handlers = handlers, inheritable

    def set_handlers(self, handlers: Iterable[Handler], inherit: bool = True) -> None:
        """Replace all handlers."""
        new_handlers = list(handlers)
        self._handlers, self._inheritable_handlers = new_handlers, (list(new_handlers) if inherit else [])

    def set_handler(self, handler: Handler, inherit: bool = True) -> None:
        """Replace all handlers with a single one."""
        self.set_handlers([handler], inherit=inherit)

    def copy(
        self,
        additional_handlers: Iterable[Handler] | None = None,
        inherit: bool = True,
    ) -> "CallbackManager":
        """Create a manager owning copies of this manager's handlers.

        Handlers keep their inheritability; ``additional_handlers`` are
        copied too and registered with ``inherit``.
        """
        manager = CallbackManager(parent_run_id=self.parent_run_id)
        for handler in self._handlers:
            manager.add_handler(handler.copy(), inherit=_contains(self._inheritable_handlers, handler))
        for handler in additional_handlers or []:
            manager.add_handler(handler.copy(), inherit=inherit)
        return manager

    # === Run start ===

    def _snapshot(self) -> tuple[tuple[Handler, ...], tuple[Handler, ...]]:
        return tuple(self._handlers), tuple(self._inheritable_handlers)

    async def on_llm_start(
        self,
        serialized: dict[str, Any],
        prompts: list[str],
        *,
        run_id: UUID | None = None,
        **kwargs: Any,
    ) -> CallbackManagerForLLMRun:
        """Notify handlers of a model run start and return its run manager."""
        run_id = run_id or uuid4()
        handlers, inheritable = self._snapshot()
        await _handle_event(
            handlers,
            EventType.LLM_START,
            serialized,
            prompts,
            run_id=run_id,
            parent_run_id=self.parent_run_id,
            **kwargs,
        )
        return CallbackManagerForLLMRun(run_id, handlers, inheritable, self.parent_run_id)

    async def on_chain_start(
        self,
        serialized: dict[str, Any],
        inputs: ChainValues,
        *,
        run_id: UUID | None = None,
        **kwargs: Any,
    ) -> CallbackManagerForChainRun:
        """Notify handlers of a chain run start and return its run manager."""
        run_id = run_id or uuid4()
        handlers, inheritable = self._snapshot()
        await _handle_event(
            handlers,
            EventType.CHAIN_START,
            serialized,
            inputs,
            run_id=run_id,
            parent_run_id=self.parent_run_id,
            **kwargs,
        )
        return CallbackManagerForChainRun(run_id, handlers, inheritable, self.parent_run_id)

    async def on_tool_start(
        self,
        serialized: dict[str, Any],
        input_str: str,
        *,
        run_id: UUID | None = None,
        **kwargs: Any,
    ) -> CallbackManagerForToolRun:
        """Notify handlers of a tool run start and return its run manager."""
        run_id = run_id or uuid4()
        handlers, inheritable = self._snapshot()
        await _handle_event(
            handlers,
            EventType.TOOL_START,
            serialized,
            input_str,
            run_id=run_id,
            parent_run_id=self.parent_run_id,
            **kwargs,
        )
        return CallbackManagerForToolRun(run_id, handlers, inheritable, self.parent_run_id)

    # === Construction helpers ===

    @classmethod
    def from_handlers(cls, callbacks: Mapping[str, Callable[..., Any]]) -> "CallbackManager":
        """Create a manager with one handler built from plain callables.

        Example:
            manager = CallbackManager.from_handlers(
                {"on_llm_new_token": lambda token, **kwargs: print(token, end="")}
            )
        """
        manager = cls()
        manager.add_handler(FunctionCallbackHandler(callbacks))
        return manager

    @classmethod
    def configure(
        cls,
        inheritable_callbacks: "CallbackManager | Sequence[Handler] | None" = None,
        local_callbacks: Sequence[Handler] | None = None,
        options: CallbackManagerOptions | None = None,
        settings: RuntraceSettings | None = None,
    ) -> "CallbackManager | None":
        """Resolve the callback manager for a new top-level operation.

        ``inheritable_callbacks`` is either an existing manager (its handlers
        are reused) or a list of handlers registered as inheritable.
        ``local_callbacks`` only observe this operation's own runs. The
        console handler (``options.verbose``) and the run tracer
        (``options.tracing`` or ``RUNTRACE_TRACING``) are added at most once,
        matched by handler name.

        Returns:
            The configured manager, or ``None`` when no handlers were given
            and nothing asked for one. ``None`` means "no callbacks", not an
            error.

        Raises:
            pydantic.ValidationError: if the ``RUNTRACE_*`` environment is invalid.
        """
        options = options or CallbackManagerOptions()
        tracing = options.tracing
        if tracing is None:
            settings = settings or RuntraceSettings()
            tracing = settings.tracing

        manager: CallbackManager | None = None
        if inheritable_callbacks is not None or local_callbacks is not None:
            if isinstance(inheritable_callbacks, CallbackManager):
                base = inheritable_callbacks
            else:
                base = cls()
                base.set_handlers(inheritable_callbacks or [], inherit=True)
            manager = base.copy(local_callbacks, inherit=False)

        if options.verbose or tracing:
            if manager is None:
                manager = cls()
            if options.verbose and not manager.has_handler_named(ConsoleCallbackHandler.name):
                manager.add_handler(ConsoleCallbackHandler(), inherit=False)
            if tracing and not manager.has_handler_named(LoggingTracer.name):
                manager.add_handler(get_tracing_handler(settings or RuntraceSettings()), inherit=True)

        return manager

    def __repr__(self) -> str:
        return (
            f"CallbackManager(handlers={self._handlers!r}, "
            f"inheritable={len(self._inheritable_handlers)}, parent_run_id={self.parent_run_id})"
        )
