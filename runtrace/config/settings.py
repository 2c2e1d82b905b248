import os
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["LOG_LEVELS", "RuntraceSettings", "load_env_file", "load_settings"]

# Встроенные уровни loguru.
LOG_LEVELS = frozenset({"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"})


class RuntraceSettings(BaseSettings):
    """Настройки runtrace, загружаемые из окружения с префиксом `RUNTRACE_`.

    Ключевые поля:
        - `tracing`: включить трассирующий обработчик в `CallbackManager.configure`.
        - `tracer_log_level`: уровень, на котором `LoggingTracer` пишет завершённые запуски.
        - `log_*`: параметры `setup_logging` (уровень, файл, формат, ротация).
    """

    model_config = SettingsConfigDict(env_prefix="RUNTRACE_", extra="ignore")

    tracing: bool = Field(default=False, description="Attach the run tracer on configure")
    tracer_log_level: str = Field(default="INFO", description="Level for finished run traces")
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str | None = Field(default=None, description="Log file path")
    log_backtrace: bool = Field(default=False, description="Enable backtrace")
    log_format: str | None = Field(default=None, description="loguru format string")
    log_rotation: str = Field(default="10 MB", description="Log file rotation")
    log_retention: str = Field(default="7 days", description="Log file retention")
    log_compression: str | None = Field(default="gz", description="Rotated log compression")

    @field_validator("log_file", "log_format", "log_compression", mode="before")
    @classmethod
    def _handle_empty_strings(cls, value):
        """Преобразовать пустые строки в None."""
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("tracer_log_level", "log_level", mode="before")
    @classmethod
    def _validate_level(cls, value):
        """Нормализовать имя уровня и проверить, что loguru его знает."""
        if value is None or (isinstance(value, str) and value.strip() == ""):
            return "INFO"
        level = str(value).strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level '{value}'. Use one of: {', '.join(sorted(LOG_LEVELS))}")
        return level


def load_env_file(path: Path | str | None = None) -> None:
    """Загрузить переменные окружения из .env (если файл существует).

    Уже заданные переменные окружения не перезаписываются.

    Args:
        path: Путь к .env файлу; по умолчанию ищется в текущей директории.
    """
    env_path = Path(path or ".env")
    if not env_path.exists():
        return

    with env_path.open("r", encoding="utf-8") as handle:
        for raw_line in handle:
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            if not key:
                continue

            cleaned = value.strip().strip('"').strip("'")
            if key not in os.environ:
                os.environ[key] = cleaned


def load_settings(path: Path | str | None = None) -> RuntraceSettings:
    """Прочитать .env (если указан), загрузить и провалидировать настройки.

    Args:
        path: Путь к .env файлу для предварительной загрузки окружения.

    Returns:
        Провалидированный экземпляр `RuntraceSettings`.

    Raises:
        RuntimeError: если валидация настроек завершилась ошибкой.
    """
    load_env_file(path)

    try:
        settings = RuntraceSettings()
    except ValidationError as exc:
        messages = [err.get("msg", "invalid configuration value") for err in exc.errors()]
        detail = "; ".join(messages)
        raise RuntimeError(detail) from exc

    return settings
