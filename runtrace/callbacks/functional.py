"""Build a one-off handler from plain callables."""

from collections.abc import Callable, Mapping
from copy import copy as shallow_copy
from typing import Any, Self
from uuid import uuid4

from .base import BaseCallbackHandler
from .events import EventType

__all__ = ["FunctionCallbackHandler"]


class FunctionCallbackHandler(BaseCallbackHandler):
    """Handler assembled from a mapping of handler method name to callable.

    Only the supplied events are delivered. Callables receive the same
    arguments as the matching handler method (without ``self``) and may be
    plain functions or coroutine functions.

    Example:
        handler = FunctionCallbackHandler(
            {
                "on_llm_new_token": lambda token, **kwargs: print(token, end=""),
                "on_chain_end": log_outputs,
            }
        )
    """

    def __init__(self, callbacks: Mapping[str, Callable[..., Any]]):
        events: set[EventType] = set()
        for method_name, callback in callbacks.items():
            event = EventType.from_method_name(method_name)
            if not callable(callback):
                raise TypeError(f"Callback for '{method_name}' is not callable: {callback!r}")
            events.add(event)

        # Every built handler is distinct, so configure never dedups it away.
        self.name = str(uuid4())
        self.events = frozenset(events)
        self.capabilities = frozenset(event.capability for event in events)
        for method_name, callback in callbacks.items():
            setattr(self, method_name, callback)

    def copy(self) -> Self:
        """Return a handler with the same name, flags and callables.

        The callables themselves are shared, so bound methods keep
        reporting to the caller's object.
        """
        return shallow_copy(self)

    def accepts(self, event: EventType) -> bool:
        return event in self.events and super().accepts(event)
