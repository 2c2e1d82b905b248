"""
runtrace

Run tracking and event dispatch for trees of nested operations: model
calls, chains, tools and agent decisions.

Every operation started through a ``CallbackManager`` gets a run id and,
when nested, the id of its parent run. Registered handlers receive the
lifecycle events of the run types they handle; a failing handler is logged
and never breaks the operation it observes.

Пример использования:

    from runtrace import CallbackManager, CallbackManagerOptions, LLMResult, Generation

    manager = CallbackManager.configure(options=CallbackManagerOptions(verbose=True))

    chain_run = await manager.on_chain_start({"name": "summarize"}, {"text": text})
    llm_run = await chain_run.get_child().on_llm_start({"name": "gpt-4o-mini"}, [prompt])
    async for token in stream:
        await llm_run.on_llm_new_token(token)
    await llm_run.on_llm_end(LLMResult(generations=[[Generation(text=summary)]]))
    await chain_run.on_chain_end({"summary": summary})

Трассировка включается переменной окружения ``RUNTRACE_TRACING=1``.
"""

from runtrace.callbacks import (
    AsyncCallbackHandler,
    BaseCallbackHandler,
    BaseTracer,
    CallbackManager,
    CallbackManagerForChainRun,
    CallbackManagerForLLMRun,
    CallbackManagerForToolRun,
    CallbackManagerOptions,
    ConsoleCallbackHandler,
    FileCallbackHandler,
    FunctionCallbackHandler,
    LoggingTracer,
    MetricsCallbackHandler,
)
from runtrace.config import RuntraceSettings, load_settings, logger, setup_logging
from runtrace.schema import AgentAction, AgentFinish, ChainValues, Generation, LLMResult

__version__ = "0.1.0"

__all__ = [
    "AgentAction",
    "AgentFinish",
    "AsyncCallbackHandler",
    "BaseCallbackHandler",
    "BaseTracer",
    "CallbackManager",
    "CallbackManagerForChainRun",
    "CallbackManagerForLLMRun",
    "CallbackManagerForToolRun",
    "CallbackManagerOptions",
    "ChainValues",
    "ConsoleCallbackHandler",
    "FileCallbackHandler",
    "FunctionCallbackHandler",
    "Generation",
    "LLMResult",
    "LoggingTracer",
    "MetricsCallbackHandler",
    "RuntraceSettings",
    "load_settings",
    "logger",
    "setup_logging",
]
