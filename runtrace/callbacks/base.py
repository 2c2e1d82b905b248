"""Base callback handlers.

Provides the sync and async handler base classes. Subclasses override only
the events they care about; every method has a no-op default.
"""

from copy import deepcopy
from typing import Any, Self
from uuid import UUID

from ..schema import AgentAction, AgentFinish, ChainValues, LLMResult
from .events import Capability, EventType

__all__ = [
    "BaseCallbackHandler",
    "AsyncCallbackHandler",
    "CallbackHandlerMixin",
]


class CallbackHandlerMixin:
    """Base mixin for callback handlers providing common attributes.

    Attributes:
        name: Stable identity used to deduplicate handlers injected by
            ``CallbackManager.configure``.
        capabilities: Event categories this handler receives.
        ignore_llm: If True, skip model run events.
        ignore_chain: If True, skip chain run events and agent decisions.
        ignore_agent: If True, skip agent decisions and tool run events.
        ignore_tool: If True, skip tool run events.
    """

    name: str = "callback_handler"
    capabilities: frozenset[Capability] = frozenset(Capability)

    # Ignore flags
    ignore_llm: bool = False
    ignore_chain: bool = False
    ignore_agent: bool = False
    ignore_tool: bool = False

    def accepts(self, event: EventType) -> bool:
        """Whether ``event`` should be delivered to this handler."""
        if event.capability not in self.capabilities:
            return False
        return not any(getattr(self, flag) for flag in event.suppressed_by)

    def copy(self) -> Self:
        """Return an independent handler with the same configuration."""
        return deepcopy(self)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class BaseCallbackHandler(CallbackHandlerMixin):
    """Base callback handler for sync operations.

    Sync handlers run inline on the event loop, so keep them fast.
    """

    # === Model runs ===

    def on_llm_start(
        self,
        serialized: dict[str, Any],
        prompts: list[str],
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called when a model run starts."""
        pass

    def on_llm_new_token(
        self,
        token: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called for each token during streaming model output."""
        pass

    def on_llm_end(
        self,
        response: LLMResult,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called when a model run ends."""
        pass

    def on_llm_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called when a model run fails."""
        pass

    # === Chain runs ===

    def on_chain_start(
        self,
        serialized: dict[str, Any],
        inputs: ChainValues,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called when a chain run starts."""
        pass

    def on_chain_end(
        self,
        outputs: ChainValues,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called when a chain run ends."""
        pass

    def on_chain_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called when a chain run fails."""
        pass

    # === Agent decisions ===

    def on_agent_action(
        self,
        action: AgentAction,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called when an agent chooses a tool."""
        pass

    def on_agent_end(
        self,
        finish: AgentFinish,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called when an agent returns its final answer."""
        pass

    # === Tool runs ===

    def on_tool_start(
        self,
        serialized: dict[str, Any],
        input_str: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called when a tool run starts."""
        pass

    def on_tool_end(
        self,
        output: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called when a tool run ends."""
        pass

    def on_tool_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called when a tool run fails."""
        pass

    # === Free text ===

    def on_text(
        self,
        text: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        """Called with arbitrary trace text from any run."""
        pass


class AsyncCallbackHandler(CallbackHandlerMixin):
    """Async callback handler for async operations.

    All methods are async versions of BaseCallbackHandler methods.
    """

    # === Model runs ===

    async def on_llm_start(
        self,
        serialized: dict[str, Any],
        prompts: list[str],
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    async def on_llm_new_token(
        self,
        token: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    async def on_llm_end(
        self,
        response: LLMResult,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    async def on_llm_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    # === Chain runs ===

    async def on_chain_start(
        self,
        serialized: dict[str, Any],
        inputs: ChainValues,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    async def on_chain_end(
        self,
        outputs: ChainValues,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    async def on_chain_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    # === Agent decisions ===

    async def on_agent_action(
        self,
        action: AgentAction,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    async def on_agent_end(
        self,
        finish: AgentFinish,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    # === Tool runs ===

    async def on_tool_start(
        self,
        serialized: dict[str, Any],
        input_str: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    async def on_tool_end(
        self,
        output: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    async def on_tool_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass

    # === Free text ===

    async def on_text(
        self,
        text: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        pass
