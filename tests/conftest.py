"""Pytest fixtures and configuration."""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from runtrace.callbacks import AsyncCallbackHandler, BaseCallbackHandler, EventType
from runtrace.config.logging import logger

_RUNTRACE_ENV = (
    "RUNTRACE_TRACING",
    "RUNTRACE_TRACER_LOG_LEVEL",
    "RUNTRACE_LOG_LEVEL",
    "RUNTRACE_LOG_FILE",
    "RUNTRACE_LOG_BACKTRACE",
    "RUNTRACE_LOG_FORMAT",
    "RUNTRACE_LOG_ROTATION",
    "RUNTRACE_LOG_RETENTION",
    "RUNTRACE_LOG_COMPRESSION",
)


@dataclass
class Call:
    name: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


def _sync_recorder(method_name: str):
    def method(self, *args: Any, **kwargs: Any) -> None:
        self.calls.append(Call(method_name, args, kwargs))

    return method


def _async_recorder(method_name: str):
    async def method(self, *args: Any, **kwargs: Any) -> None:
        self.calls.append(Call(method_name, args, kwargs))

    return method


class RecordingHandler(BaseCallbackHandler):
    """Записывает каждое полученное событие."""

    def __init__(self, name: str = "recording_handler") -> None:
        self.name = name
        self.calls: list[Call] = []

    @property
    def names(self) -> list[str]:
        return [call.name for call in self.calls]


class AsyncRecordingHandler(AsyncCallbackHandler):
    """Асинхронный вариант RecordingHandler."""

    def __init__(self, name: str = "async_recording_handler") -> None:
        self.name = name
        self.calls: list[Call] = []

    @property
    def names(self) -> list[str]:
        return [call.name for call in self.calls]


for _event in EventType:
    setattr(RecordingHandler, _event.method_name, _sync_recorder(_event.method_name))
    setattr(AsyncRecordingHandler, _event.method_name, _async_recorder(_event.method_name))


@pytest.fixture(autouse=True)
def clean_runtrace_env(monkeypatch):
    """Убрать RUNTRACE_* из окружения и откатить всё, что тест туда запишет."""
    for name in _RUNTRACE_ENV:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture
def make_recorder():
    """Фабрика синхронных записывающих обработчиков."""
    return RecordingHandler


@pytest.fixture
def make_async_recorder():
    """Фабрика асинхронных записывающих обработчиков."""
    return AsyncRecordingHandler


@pytest.fixture
def log_records():
    """Записи loguru, сделанные во время теста."""
    records: list[dict[str, Any]] = []
    sink_id = logger.add(lambda message: records.append(message.record), level="TRACE")
    yield records
    logger.remove(sink_id)
