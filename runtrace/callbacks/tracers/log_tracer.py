"""Tracer that writes finished run trees to the runtrace logger."""

from ...config.logging import logger
from ...config.settings import RuntraceSettings
from .base import BaseTracer, Run

__all__ = ["LoggingTracer", "get_tracing_handler"]


class LoggingTracer(BaseTracer):
    """Logs each finished root run, with its nested runs, as one JSON record.

    This is the handler ``CallbackManager.configure`` adds when tracing is on.
    """

    name = "run_tracer"

    def __init__(self, level: str = "INFO") -> None:
        super().__init__()
        self.level = level

    def _persist_run(self, run: Run) -> None:
        logger.bind(run_id=str(run.id)).log(
            self.level,
            "Run {} ({}) finished: {}",
            run.name,
            run.run_type.value,
            run.model_dump_json(),
        )


def get_tracing_handler(settings: RuntraceSettings) -> LoggingTracer:
    """Build the tracer used when tracing is enabled."""
    return LoggingTracer(level=settings.tracer_log_level)
