from runtrace.config.logging import logger, setup_logging
from runtrace.config.settings import RuntraceSettings, load_env_file, load_settings

__all__ = ["RuntraceSettings", "load_env_file", "load_settings", "logger", "setup_logging"]
