import sys

from loguru import logger as _logger

from .settings import RuntraceSettings

__all__ = ["logger", "setup_logging"]

logger = _logger

_DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(
    level: str | None = None,
    *,
    log_file: str | None = None,
    backtrace: bool | None = None,
    format_string: str | None = None,
    settings: RuntraceSettings | None = None,
) -> None:
    """
    Сконфигурировать loguru-логгер runtrace для stderr и, опционально, файла.

    Через этот логгер проходят ошибки обработчиков колбэков (`WARNING`) и
    завершённые запуски `LoggingTracer` (уровень `tracer_log_level`), поэтому
    уровень выше уровня трасс скрывает только трассы.

    Явные аргументы важнее настроек; всё, что не передано, берётся из
    `settings` (по умолчанию `RuntraceSettings()` из окружения `RUNTRACE_*`).

    Args:
        level: Уровень логирования вместо `settings.log_level`.
        log_file: Путь к файлу лога вместо `settings.log_file`.
        backtrace: Детальный backtrace вместо `settings.log_backtrace`.
        format_string: Формат сообщений вместо `settings.log_format`.
        settings: Готовые настройки; ротация, хранение и сжатие файла
            берутся только отсюда.
    """
    settings = settings or RuntraceSettings()
    configured_level = (level or settings.log_level).upper()
    configured_format = format_string or settings.log_format or _DEFAULT_FORMAT
    configured_backtrace = settings.log_backtrace if backtrace is None else backtrace

    logger.remove()
    logger.add(
        sys.stderr,
        level=configured_level,
        format=configured_format,
        backtrace=configured_backtrace,
        diagnose=False,
        enqueue=True,
    )

    destination = log_file or settings.log_file
    if destination:
        logger.add(
            destination,
            level=configured_level,
            format=configured_format,
            backtrace=configured_backtrace,
            diagnose=False,
            enqueue=True,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            compression=settings.log_compression,
        )
