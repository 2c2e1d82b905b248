"""Tracer base: rebuilds the run tree from callback events.

The callback core only hands out ``(run_id, parent_run_id)`` pairs. A tracer
collects them into ``Run`` records, nests child runs under their parent and
hands each finished root run to ``_persist_run``.
"""

from abc import ABC, abstractmethod
from copy import copy as shallow_copy
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Self
from uuid import UUID

from pydantic import BaseModel, Field

from ...schema import AgentAction, AgentFinish, ChainValues, LLMResult
from ..base import BaseCallbackHandler

__all__ = ["BaseTracer", "Run", "RunEvent", "RunType"]


class RunType(str, Enum):
    """Kinds of traced runs."""

    LLM = "llm"
    CHAIN = "chain"
    TOOL = "tool"


class RunEvent(BaseModel):
    """Intermediate event recorded on a run (token, text, agent decision)."""

    name: str
    time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict)


class Run(BaseModel):
    """One traced run and the runs nested under it."""

    id: UUID
    parent_run_id: UUID | None = None
    run_type: RunType
    name: str
    serialized: dict[str, Any] = Field(default_factory=dict)
    inputs: dict[str, Any] = Field(default_factory=dict)
    outputs: dict[str, Any] | None = None
    error: str | None = None
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    execution_order: int = 1
    events: list[RunEvent] = Field(default_factory=list)
    child_runs: list["Run"] = Field(default_factory=list)

    @property
    def duration_ms(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000


class BaseTracer(BaseCallbackHandler, ABC):
    """Collects runs into trees and persists every finished root run.

    A run whose parent is unknown to this tracer (for example a parent run id
    passed in from another process) is treated as a root.
    """

    name = "base_tracer"

    def __init__(self) -> None:
        self.run_map: dict[UUID, Run] = {}
        self._execution_order: dict[UUID, int] = {}

    def copy(self) -> Self:
        """Return a tracer sharing this one's run tree.

        A manager reconfigured from ``get_child()`` holds copies of the
        tracer; runs started there must still nest under the parents
        recorded here, and finished roots reach the same store.
        """
        return shallow_copy(self)

    @abstractmethod
    def _persist_run(self, run: Run) -> None:
        """Store a finished root run."""

    def _start_trace(self, run: Run) -> None:
        parent = self.run_map.get(run.parent_run_id) if run.parent_run_id else None
        if parent is not None:
            root_id = self._root_id(parent)
            self._execution_order[root_id] += 1
            run.execution_order = self._execution_order[root_id]
            parent.child_runs.append(run)
        else:
            self._execution_order[run.id] = 1
        self.run_map[run.id] = run

    def _root_id(self, run: Run) -> UUID:
        while run.parent_run_id is not None and run.parent_run_id in self.run_map:
            run = self.run_map[run.parent_run_id]
        return run.id

    def _end_trace(self, run_id: UUID, outputs: dict[str, Any] | None = None, error: BaseException | None = None) -> None:
        run = self.run_map.get(run_id)
        if run is None:
            return
        run.end_time = datetime.now(UTC)
        if error is not None:
            run.error = f"{error.__class__.__name__}: {error}"
        else:
            run.outputs = outputs
        is_root = run.parent_run_id is None or run.parent_run_id not in self.run_map
        del self.run_map[run_id]
        if is_root:
            self._execution_order.pop(run_id, None)
            self._persist_run(run)

    def _add_event(self, run_id: UUID, name: str, data: dict[str, Any]) -> None:
        run = self.run_map.get(run_id)
        if run is not None:
            run.events.append(RunEvent(name=name, data=data))

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
        self._start_trace(
            Run(
                id=run_id,
                parent_run_id=parent_run_id,
                run_type=RunType.LLM,
                name=serialized.get("name", "llm"),
                serialized=serialized,
                inputs={"prompts": prompts},
            )
        )

    def on_llm_new_token(self, token: str, *, run_id: UUID, **kwargs: Any) -> None:
        self._add_event(run_id, "new_token", {"token": token})

    def on_llm_end(self, response: LLMResult, *, run_id: UUID, **kwargs: Any) -> None:
        self._end_trace(run_id, outputs=response.model_dump())

    def on_llm_error(self, error: BaseException, *, run_id: UUID, **kwargs: Any) -> None:
        self._end_trace(run_id, error=error)

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
        self._start_trace(
            Run(
                id=run_id,
                parent_run_id=parent_run_id,
                run_type=RunType.CHAIN,
                name=serialized.get("name", "chain"),
                serialized=serialized,
                inputs=dict(inputs),
            )
        )

    def on_chain_end(self, outputs: ChainValues, *, run_id: UUID, **kwargs: Any) -> None:
        self._end_trace(run_id, outputs=dict(outputs))

    def on_chain_error(self, error: BaseException, *, run_id: UUID, **kwargs: Any) -> None:
        self._end_trace(run_id, error=error)

    def on_agent_action(self, action: AgentAction, *, run_id: UUID, **kwargs: Any) -> None:
        self._add_event(run_id, "agent_action", action.model_dump())

    def on_agent_end(self, finish: AgentFinish, *, run_id: UUID, **kwargs: Any) -> None:
        self._add_event(run_id, "agent_end", finish.model_dump())

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
        self._start_trace(
            Run(
                id=run_id,
                parent_run_id=parent_run_id,
                run_type=RunType.TOOL,
                name=serialized.get("name", "tool"),
                serialized=serialized,
                inputs={"input": input_str},
            )
        )

    def on_tool_end(self, output: str, *, run_id: UUID, **kwargs: Any) -> None:
        self._end_trace(run_id, outputs={"output": output})

    def on_tool_error(self, error: BaseException, *, run_id: UUID, **kwargs: Any) -> None:
        self._end_trace(run_id, error=error)

    # === Free text ===

    def on_text(self, text: str, *, run_id: UUID, **kwargs: Any) -> None:
        self._add_event(run_id, "text", {"text": text})
