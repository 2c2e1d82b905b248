"""Callback system for observing nested runs.

Example (basic usage):
    from runtrace.callbacks import CallbackManager, ConsoleCallbackHandler

    manager = CallbackManager([ConsoleCallbackHandler()])
    run = await manager.on_chain_start({"name": "qa"}, {"question": "..."})
    llm_run = await run.get_child().on_llm_start({"name": "gpt"}, ["..."])
    await llm_run.on_llm_end(result)
    await run.on_chain_end({"answer": "..."})

Example (configure for a top-level operation):
    from runtrace.callbacks import CallbackManager, CallbackManagerOptions

    manager = CallbackManager.configure(
        inheritable_callbacks=[MetricsCallbackHandler()],
        local_callbacks=[FileCallbackHandler("events.jsonl")],
        options=CallbackManagerOptions(verbose=True),
    )

Example (custom handler):
    from runtrace.callbacks import AsyncCallbackHandler

    class MyHandler(AsyncCallbackHandler):
        async def on_llm_new_token(self, token, *, run_id, **kwargs):
            await queue.put(token)
"""

from .base import AsyncCallbackHandler, BaseCallbackHandler, CallbackHandlerMixin
from .events import CallbackEvent, Capability, EventType
from .functional import FunctionCallbackHandler
from .handlers import (
    ConsoleCallbackHandler,
    FileCallbackHandler,
    MetricsCallbackHandler,
)
from .manager import (
    BaseRunManager,
    CallbackManager,
    CallbackManagerForChainRun,
    CallbackManagerForLLMRun,
    CallbackManagerForToolRun,
    CallbackManagerOptions,
    ParentRunManager,
)
from .tracers import BaseTracer, LoggingTracer, Run, RunEvent, RunType, get_tracing_handler

# Type alias for handlers
Handler = BaseCallbackHandler | AsyncCallbackHandler

__all__ = [
    # Base handlers
    "CallbackHandlerMixin",
    "BaseCallbackHandler",
    "AsyncCallbackHandler",
    "FunctionCallbackHandler",
    "Handler",
    # Managers
    "CallbackManager",
    "CallbackManagerOptions",
    "BaseRunManager",
    "ParentRunManager",
    "CallbackManagerForLLMRun",
    "CallbackManagerForChainRun",
    "CallbackManagerForToolRun",
    # Built-in handlers
    "ConsoleCallbackHandler",
    "MetricsCallbackHandler",
    "FileCallbackHandler",
    # Tracers
    "BaseTracer",
    "LoggingTracer",
    "Run",
    "RunEvent",
    "RunType",
    "get_tracing_handler",
    # Events
    "Capability",
    "EventType",
    "CallbackEvent",
]
