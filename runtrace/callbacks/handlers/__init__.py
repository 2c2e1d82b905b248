"""Built-in callback handlers."""

from .console import ConsoleCallbackHandler
from .file import FileCallbackHandler
from .metrics import MetricsCallbackHandler

__all__ = [
    "ConsoleCallbackHandler",
    "MetricsCallbackHandler",
    "FileCallbackHandler",
]
