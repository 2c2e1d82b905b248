"""Tracers: handlers that rebuild and persist run trees."""

from .base import BaseTracer, Run, RunEvent, RunType
from .log_tracer import LoggingTracer, get_tracing_handler

__all__ = [
    "BaseTracer",
    "LoggingTracer",
    "Run",
    "RunEvent",
    "RunType",
    "get_tracing_handler",
]
