"""File callback handler for writing events to JSON lines file."""

import json
from pathlib import Path
from typing import Any, Self
from uuid import UUID

from pydantic import BaseModel

from ...schema import AgentAction, AgentFinish, ChainValues, LLMResult
from ..base import BaseCallbackHandler
from ..events import CallbackEvent, EventType

__all__ = ["FileCallbackHandler"]


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, BaseException):
        return f"{value.__class__.__name__}: {value}"
    return value


class FileCallbackHandler(BaseCallbackHandler):
    """
    Writes events to a JSON lines file.

    Each event is written as a single ``CallbackEvent`` JSON line. Copies of
    this handler append to the same file.
    """

    def __init__(
        self,
        file_path: str | Path,
        append: bool = True,
        flush_every: int = 1,
    ):
        self.file_path = Path(file_path)
        self.append = append
        self.flush_every = flush_every
        self._file = None
        self._event_count = 0
        self._open_file()

    def _open_file(self) -> None:
        mode = "a" if self.append else "w"
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.file_path, mode, encoding="utf-8")

    def _write_event(
        self,
        event_type: EventType,
        run_id: UUID,
        parent_run_id: UUID | None,
        data: dict[str, Any],
    ) -> None:
        if self._file is None:
            return

        event = CallbackEvent(
            event_type=event_type,
            run_id=run_id,
            parent_run_id=parent_run_id,
            data={key: _jsonable(value) for key, value in data.items()},
        )
        self._file.write(json.dumps(event.to_dict(), default=str) + "\n")
        self._event_count += 1

        if self._event_count % self.flush_every == 0:
            self._file.flush()

    def copy(self) -> Self:
        return self.__class__(self.file_path, append=True, flush_every=self.flush_every)

    def close(self) -> None:
        """Close the file."""
        if self._file:
            self._file.close()
            self._file = None

    def __del__(self):
        self.close()

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
        self._write_event(
            EventType.LLM_START,
            run_id,
            parent_run_id,
            {"serialized": serialized, "prompts": prompts},
        )

    def on_llm_new_token(
        self,
        token: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        self._write_event(EventType.LLM_NEW_TOKEN, run_id, parent_run_id, {"token": token})

    def on_llm_end(
        self,
        response: LLMResult,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        self._write_event(EventType.LLM_END, run_id, parent_run_id, {"response": response})

    def on_llm_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        self._write_event(EventType.LLM_ERROR, run_id, parent_run_id, {"error": error})

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
        self._write_event(
            EventType.CHAIN_START,
            run_id,
            parent_run_id,
            {"serialized": serialized, "inputs": inputs},
        )

    def on_chain_end(
        self,
        outputs: ChainValues,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        self._write_event(EventType.CHAIN_END, run_id, parent_run_id, {"outputs": outputs})

    def on_chain_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        self._write_event(EventType.CHAIN_ERROR, run_id, parent_run_id, {"error": error})

    # === Agent decisions ===

    def on_agent_action(
        self,
        action: AgentAction,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        self._write_event(EventType.AGENT_ACTION, run_id, parent_run_id, {"action": action})

    def on_agent_end(
        self,
        finish: AgentFinish,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        self._write_event(EventType.AGENT_END, run_id, parent_run_id, {"finish": finish})

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
        self._write_event(
            EventType.TOOL_START,
            run_id,
            parent_run_id,
            {"serialized": serialized, "input": input_str},
        )

    def on_tool_end(
        self,
        output: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        self._write_event(EventType.TOOL_END, run_id, parent_run_id, {"output": output})

    def on_tool_error(
        self,
        error: BaseException,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        self._write_event(EventType.TOOL_ERROR, run_id, parent_run_id, {"error": error})

    # === Free text ===

    def on_text(
        self,
        text: str,
        *,
        run_id: UUID,
        parent_run_id: UUID | None = None,
        **kwargs: Any,
    ) -> None:
        self._write_event(EventType.TEXT, run_id, parent_run_id, {"text": text})
