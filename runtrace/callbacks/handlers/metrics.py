"""Metrics callback handler for aggregating run metrics."""

from collections import deque
from copy import copy as shallow_copy
from datetime import UTC, datetime
from typing import Any, Self
from uuid import UUID

from ...schema import AgentAction, LLMResult
from ..base import BaseCallbackHandler

__all__ = ["MetricsCallbackHandler"]


class MetricsCallbackHandler(BaseCallbackHandler):
    """
    Aggregates metrics from run events.

    Collects:
    - Started, completed and failed runs per run type
    - Total duration per run type
    - Streamed token and generation counts
    - Agent tool choices
    - Errors (last 10 kept)

    Copies share the counters, so a handler passed to
    ``CallbackManager.configure`` keeps reporting runs seen through the
    configured manager and its children.
    """

    max_errors: int = 10

    def __init__(self):
        self._run_starts: dict[UUID, tuple[str, datetime]] = {}
        self._runs_started: dict[str, int] = {}
        self._runs_completed: dict[str, int] = {}
        self._runs_failed: dict[str, int] = {}
        self._durations_ms: dict[str, float] = {}
        self._totals: dict[str, int] = {"streamed_tokens": 0, "generations": 0, "errors": 0}
        self._tool_choices: dict[str, int] = {}
        self._errors: deque[dict[str, Any]] = deque(maxlen=self.max_errors)

    def copy(self) -> Self:
        return shallow_copy(self)

    @property
    def streamed_tokens(self) -> int:
        return self._totals["streamed_tokens"]

    @property
    def runs_completed(self) -> int:
        return sum(self._runs_completed.values())

    @property
    def runs_failed(self) -> int:
        return sum(self._runs_failed.values())

    def get_metrics(self) -> dict[str, Any]:
        """Get aggregated metrics."""
        return {
            "runs_started": dict(self._runs_started),
            "runs_completed": dict(self._runs_completed),
            "runs_failed": dict(self._runs_failed),
            "runs_in_progress": len(self._run_starts),
            "durations_ms": dict(self._durations_ms),
            "streamed_tokens": self._totals["streamed_tokens"],
            "generations": self._totals["generations"],
            "tool_choices": dict(self._tool_choices),
            "errors_count": self._totals["errors"],
            "errors": list(self._errors),
        }

    def reset(self) -> None:
        """Reset all metrics."""
        self._run_starts.clear()
        self._runs_started.clear()
        self._runs_completed.clear()
        self._runs_failed.clear()
        self._durations_ms.clear()
        for key in self._totals:
            self._totals[key] = 0
        self._tool_choices.clear()
        self._errors.clear()

    def _start(self, run_type: str, run_id: UUID) -> None:
        self._run_starts[run_id] = (run_type, datetime.now(UTC))
        self._runs_started[run_type] = self._runs_started.get(run_type, 0) + 1

    def _finish(self, run_id: UUID, error: BaseException | None = None) -> None:
        started = self._run_starts.pop(run_id, None)
        if started is None:
            return
        run_type, start_time = started
        elapsed_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        self._durations_ms[run_type] = self._durations_ms.get(run_type, 0.0) + elapsed_ms
        if error is None:
            self._runs_completed[run_type] = self._runs_completed.get(run_type, 0) + 1
            return
        self._runs_failed[run_type] = self._runs_failed.get(run_type, 0) + 1
        self._totals["errors"] += 1
        self._errors.append(
            {
                "run_id": str(run_id),
                "run_type": run_type,
                "error_type": type(error).__name__,
                "error": str(error),
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )

    # === Model runs ===

    def on_llm_start(self, serialized: dict[str, Any], prompts: list[str], *, run_id: UUID, **kwargs: Any) -> None:
        del serialized, prompts, kwargs
        self._start("llm", run_id)

    def on_llm_new_token(self, token: str, **kwargs: Any) -> None:
        del token, kwargs
        self._totals["streamed_tokens"] += 1

    def on_llm_end(self, response: LLMResult, *, run_id: UUID, **kwargs: Any) -> None:
        del kwargs
        self._totals["generations"] += sum(len(group) for group in response.generations)
        self._finish(run_id)

    def on_llm_error(self, error: BaseException, *, run_id: UUID, **kwargs: Any) -> None:
        del kwargs
        self._finish(run_id, error)

    # === Chain runs ===

    def on_chain_start(self, serialized: dict[str, Any], inputs: dict[str, Any], *, run_id: UUID, **kwargs: Any) -> None:
        del serialized, inputs, kwargs
        self._start("chain", run_id)

    def on_chain_end(self, outputs: dict[str, Any], *, run_id: UUID, **kwargs: Any) -> None:
        del outputs, kwargs
        self._finish(run_id)

    def on_chain_error(self, error: BaseException, *, run_id: UUID, **kwargs: Any) -> None:
        del kwargs
        self._finish(run_id, error)

    def on_agent_action(self, action: AgentAction, **kwargs: Any) -> None:
        del kwargs
        self._tool_choices[action.tool] = self._tool_choices.get(action.tool, 0) + 1

    # === Tool runs ===

    def on_tool_start(self, serialized: dict[str, Any], input_str: str, *, run_id: UUID, **kwargs: Any) -> None:
        del serialized, input_str, kwargs
        self._start("tool", run_id)

    def on_tool_end(self, output: str, *, run_id: UUID, **kwargs: Any) -> None:
        del output, kwargs
        self._finish(run_id)

    def on_tool_error(self, error: BaseException, *, run_id: UUID, **kwargs: Any) -> None:
        del kwargs
        self._finish(run_id, error)
