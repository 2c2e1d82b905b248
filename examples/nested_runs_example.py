"""
Nested runs example.

Demonstrates how a small agent loop reports its work through runtrace:
1. Verbose console output via CallbackManager.configure
2. Child runs created with get_child() so inherited handlers follow along
3. Token streaming from a mock model
4. Local handlers that only see the top-level run
5. Tracing: the finished run tree is logged as one JSON record

The example uses a local mock LLM so no API key is needed.

Run with:
    python -m examples.nested_runs_example
"""

import asyncio
import sys

# Fix Windows console encoding
if sys.platform == "win32" and hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")  # type: ignore[union-attr]

from runtrace.callbacks import (
    CallbackManager,
    CallbackManagerForChainRun,
    CallbackManagerOptions,
    FunctionCallbackHandler,
    MetricsCallbackHandler,
)
from runtrace.config import logger, setup_logging
from runtrace.schema import AgentAction, AgentFinish, Generation, LLMResult

# Setup runtrace logging
setup_logging(level="INFO")


# ── Mock model and tool ───────────────────────────────────────────────────────


async def mock_stream(prompt: str):
    """Yield words one by one to simulate token-level streaming."""
    answer = "It is sunny in Paris today." if "weather" in prompt.lower() else "I do not know."
    words = answer.split(" ")
    for i, word in enumerate(words):
        await asyncio.sleep(0.01)
        yield word + (" " if i < len(words) - 1 else "")


def weather_tool(city: str) -> str:
    return f"{city}: 24°C, clear sky"


# ── Traced pieces ─────────────────────────────────────────────────────────────


async def call_model(manager: CallbackManager, prompt: str) -> str:
    """Run the mock model as an LLM run, streaming tokens to the handlers."""
    run = await manager.on_llm_start({"name": "mock-llm"}, [prompt])
    tokens: list[str] = []
    try:
        async for token in mock_stream(prompt):
            tokens.append(token)
            await run.on_llm_new_token(token)
    except Exception as exc:
        await run.on_llm_error(exc)
        raise
    text = "".join(tokens)
    await run.on_llm_end(LLMResult(generations=[[Generation(text=text)]]))
    return text


async def call_tool(chain: CallbackManagerForChainRun, city: str) -> str:
    """Run the weather tool as a child of the agent chain."""
    action = AgentAction(tool="weather", tool_input=city, log=f"Looking up weather for {city}")
    await chain.on_agent_action(action)

    run = await chain.get_child().on_tool_start({"name": action.tool}, action.tool_input)
    try:
        observation = weather_tool(city)
    except Exception as exc:
        await run.on_tool_error(exc)
        raise
    await run.on_tool_end(observation)

    # The summary is nested under the tool run
    await call_model(run.get_child(), f"Summarize the weather: {observation}")
    return observation


async def run_agent(manager: CallbackManager, question: str) -> dict[str, str]:
    """A one-step agent: pick a tool, call it, answer."""
    chain = await manager.on_chain_start({"name": "weather_agent"}, {"question": question})
    try:
        observation = await call_tool(chain, "Paris")
        await chain.on_text(f"Observation: {observation}")
        answer = await call_model(chain.get_child(), f"Answer '{question}' using: {observation}")
    except Exception as exc:
        await chain.on_chain_error(exc)
        raise

    outputs = {"answer": answer}
    await chain.on_agent_end(AgentFinish(return_values=outputs))
    await chain.on_chain_end(outputs)
    return outputs


# ── Examples ──────────────────────────────────────────────────────────────────


async def example_verbose() -> None:
    print("\n=== 1. Verbose console output ===\n")
    manager = CallbackManager.configure(options=CallbackManagerOptions(verbose=True, tracing=False))
    await run_agent(manager, "What is the weather in Paris?")


async def example_local_and_inherited() -> None:
    print("\n=== 2. Inherited metrics, local top-level hook ===\n")
    metrics = MetricsCallbackHandler()
    top_level_only = FunctionCallbackHandler(
        {"on_chain_end": lambda outputs, **kwargs: print(f"[top-level] outputs: {outputs}")}
    )

    manager = CallbackManager.configure(
        [metrics],
        [top_level_only],
        options=CallbackManagerOptions(tracing=False),
    )
    await run_agent(manager, "What is the weather in Paris?")

    logger.info(f"Metrics: {metrics.get_metrics()}")


async def example_tracing() -> None:
    print("\n=== 3. Tracing ===\n")
    manager = CallbackManager.configure(options=CallbackManagerOptions(tracing=True))
    await run_agent(manager, "What is the weather in Paris?")


async def main() -> None:
    await example_verbose()
    await example_local_and_inherited()
    await example_tracing()


if __name__ == "__main__":
    asyncio.run(main())
