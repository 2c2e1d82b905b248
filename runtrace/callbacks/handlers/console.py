"""Console callback handler for readable run traces."""

from typing import Any
from uuid import UUID

from ...schema import AgentAction, AgentFinish, ChainValues, LLMResult
from ..base import BaseCallbackHandler

__all__ = ["ConsoleCallbackHandler"]


class ConsoleCallbackHandler(BaseCallbackHandler):
    """Prints events to stdout, indented by run depth.

    Added by ``CallbackManager.configure`` in verbose mode.
    """

    name = "console_callback_handler"

    def __init__(
        self,
        show_inputs: bool = True,
        show_outputs: bool = True,
        truncate_length: int = 200,
    ):
        self.show_inputs = show_inputs
        self.show_outputs = show_outputs
        self.truncate_length = truncate_length
        self._depth: dict[UUID, int] = {}

    def _truncate(self, text: Any) -> str:
        text = str(text)
        if len(text) <= self.truncate_length:
            return text
        return text[: self.truncate_length] + "..."

    def _enter(self, run_id: UUID, parent_run_id: UUID | None) -> int:
        depth = self._depth[parent_run_id] + 1 if parent_run_id in self._depth else 0
        self._depth[run_id] = depth
        return depth

    def _exit(self, run_id: UUID) -> int:
        return self._depth.pop(run_id, 0)

    def _print(self, depth: int, message: str) -> None:
        indent = "  " * depth
        print(f"{indent}{message}")

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
        depth = self._enter(run_id, parent_run_id)
        self._print(depth, f"🤖 LLM {serialized.get('name', 'llm')} started: {len(prompts)} prompt(s)")
        if self.show_inputs:
            for prompt in prompts:
                self._print(depth, f"   Prompt: {self._truncate(prompt)}")

    def on_llm_new_token(self, token: str, **kwargs: Any) -> None:
        print(token, end="", flush=True)

    def on_llm_end(self, response: LLMResult, *, run_id: UUID, **kwargs: Any) -> None:
        depth = self._exit(run_id)
        generations = sum(len(group) for group in response.generations)
        self._print(depth, f"✅ LLM finished: {generations} generation(s)")
        if self.show_outputs:
            for group in response.generations:
                for generation in group:
                    self._print(depth, f"   Output: {self._truncate(generation.text)}")

    def on_llm_error(self, error: BaseException, *, run_id: UUID, **kwargs: Any) -> None:
        self._print(self._exit(run_id), f"❌ LLM error: {error}")

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
        depth = self._enter(run_id, parent_run_id)
        self._print(depth, f"▶️  Entering chain {serialized.get('name', 'chain')}")
        if self.show_inputs and inputs:
            self._print(depth, f"   Inputs: {self._truncate(inputs)}")

    def on_chain_end(self, outputs: ChainValues, *, run_id: UUID, **kwargs: Any) -> None:
        depth = self._exit(run_id)
        self._print(depth, "✅ Finished chain")
        if self.show_outputs and outputs:
            self._print(depth, f"   Outputs: {self._truncate(outputs)}")

    def on_chain_error(self, error: BaseException, *, run_id: UUID, **kwargs: Any) -> None:
        self._print(self._exit(run_id), f"❌ Chain error: {error}")

    # === Agent decisions ===

    def on_agent_action(self, action: AgentAction, *, run_id: UUID, **kwargs: Any) -> None:
        depth = self._depth.get(run_id, 0)
        self._print(depth, f"🔧 Action: {action.tool}({self._truncate(action.tool_input)})")

    def on_agent_end(self, finish: AgentFinish, *, run_id: UUID, **kwargs: Any) -> None:
        depth = self._depth.get(run_id, 0)
        self._print(depth, f"🏁 Agent finished: {self._truncate(finish.return_values)}")

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
        depth = self._enter(run_id, parent_run_id)
        self._print(depth, f"🛠️  Tool {serialized.get('name', 'tool')} started")
        if self.show_inputs and input_str:
            self._print(depth, f"   Input: {self._truncate(input_str)}")

    def on_tool_end(self, output: str, *, run_id: UUID, **kwargs: Any) -> None:
        depth = self._exit(run_id)
        self._print(depth, "✅ Tool finished")
        if self.show_outputs and output:
            self._print(depth, f"   Output: {self._truncate(output)}")

    def on_tool_error(self, error: BaseException, *, run_id: UUID, **kwargs: Any) -> None:
        self._print(self._exit(run_id), f"❌ Tool error: {error}")

    # === Free text ===

    def on_text(self, text: str, *, run_id: UUID, **kwargs: Any) -> None:
        self._print(self._depth.get(run_id, 0), text)
