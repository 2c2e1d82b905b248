"""Event types for the callback system.

Every event raised through a run manager maps to one handler method,
one capability and the set of ignore flags that suppress it.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

__all__ = [
    "Capability",
    "EventType",
    "CallbackEvent",
]


class Capability(str, Enum):
    """Event categories a handler can declare it handles."""

    LLM = "llm"
    CHAIN = "chain"
    TOOL = "tool"
    AGENT = "agent"
    TEXT = "text"


class EventType(str, Enum):
    """Types of callback events."""

    # Model runs
    LLM_START = "llm_start"
    LLM_NEW_TOKEN = "llm_new_token"
    LLM_END = "llm_end"
    LLM_ERROR = "llm_error"

    # Chain runs
    CHAIN_START = "chain_start"
    CHAIN_END = "chain_end"
    CHAIN_ERROR = "chain_error"

    # Agent decisions inside a chain run
    AGENT_ACTION = "agent_action"
    AGENT_END = "agent_end"

    # Tool runs
    TOOL_START = "tool_start"
    TOOL_END = "tool_end"
    TOOL_ERROR = "tool_error"

    # Free text
    TEXT = "text"

    @property
    def method_name(self) -> str:
        """Name of the handler method receiving this event."""
        return f"on_{self.value}"

    @property
    def capability(self) -> Capability:
        return _CAPABILITIES[self]

    @property
    def suppressed_by(self) -> tuple[str, ...]:
        """Handler ignore flags that keep this event from being delivered."""
        return _SUPPRESSED_BY[self.capability]

    @classmethod
    def from_method_name(cls, method_name: str) -> "EventType":
        """Resolve ``on_<event>`` back to its event type.

        Raises:
            ValueError: if ``method_name`` is not a handler method.
        """
        if method_name.startswith("on_"):
            try:
                return cls(method_name[3:])
            except ValueError:
                pass
        known = ", ".join(event.method_name for event in cls)
        raise ValueError(f"Unknown callback method '{method_name}'. Expected one of: {known}")


_CAPABILITIES: dict[EventType, Capability] = {
    EventType.LLM_START: Capability.LLM,
    EventType.LLM_NEW_TOKEN: Capability.LLM,
    EventType.LLM_END: Capability.LLM,
    EventType.LLM_ERROR: Capability.LLM,
    EventType.CHAIN_START: Capability.CHAIN,
    EventType.CHAIN_END: Capability.CHAIN,
    EventType.CHAIN_ERROR: Capability.CHAIN,
    EventType.AGENT_ACTION: Capability.AGENT,
    EventType.AGENT_END: Capability.AGENT,
    EventType.TOOL_START: Capability.TOOL,
    EventType.TOOL_END: Capability.TOOL,
    EventType.TOOL_ERROR: Capability.TOOL,
    EventType.TEXT: Capability.TEXT,
}

# Agent events are raised on chain runs, tools are invoked by agents.
_SUPPRESSED_BY: dict[Capability, tuple[str, ...]] = {
    Capability.LLM: ("ignore_llm",),
    Capability.CHAIN: ("ignore_chain",),
    Capability.AGENT: ("ignore_chain", "ignore_agent"),
    Capability.TOOL: ("ignore_agent", "ignore_tool"),
    Capability.TEXT: (),
}


class CallbackEvent(BaseModel):
    """Serializable record of one delivered event."""

    model_config = {"arbitrary_types_allowed": True}

    event_type: EventType
    run_id: UUID
    parent_run_id: UUID | None = None
    timestamp: datetime = Field(default_factory=datetime.now)
    data: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "run_id": str(self.run_id),
            "parent_run_id": str(self.parent_run_id) if self.parent_run_id else None,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }
