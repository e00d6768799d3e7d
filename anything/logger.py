import logging
import os
from datetime import datetime
from pathlib import Path

_LOGGERS: dict[str, logging.Logger] = {}

# runtime -> handler writing that runtime's per-run log file
_FILE_HANDLERS: dict[str, logging.FileHandler] = {}

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _file_handler(runtime: str) -> logging.FileHandler | None:
    log_dir = os.getenv("LOG_DIR")
    if not log_dir:
        return None
    if runtime not in _FILE_HANDLERS:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        handler = logging.FileHandler(path / f"{runtime}-{timestamp}.log", encoding="utf-8")
        handler.setFormatter(logging.Formatter(_FORMAT))
        _FILE_HANDLERS[runtime] = handler
    return _FILE_HANDLERS[runtime]


def get_logger(name: str, *, runtime: str = "anything") -> logging.Logger:
    """
    Create or retrieve a named logger.

    Parameters:
    - name: logger namespace (e.g. anything.store, api.server)
    - runtime: log file prefix

    Logs go to the console. When LOG_DIR is set, they also go to a per-run
    file in that directory, shared by every logger of the same runtime.
    """
    cache_key = f"{runtime}:{name}"
    if cache_key in _LOGGERS:
        return _LOGGERS[cache_key]

    logger = logging.getLogger(cache_key)
    logger.setLevel(logging.DEBUG)

    # ------------------------------
    # Console handler
    # ------------------------------
    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(console)

    # ------------------------------
    # File handler (one per run)
    # ------------------------------
    file_handler = _file_handler(runtime)
    if file_handler is not None:
        logger.addHandler(file_handler)

    logger.propagate = False
    _LOGGERS[cache_key] = logger

    return logger


def configure_file_logging() -> None:
    """
    Attach file handlers to loggers created before LOG_DIR was known.

    Module-level loggers are created at import time, before a .env file
    has been read. Call this once the environment is complete.
    """
    for cache_key, logger in _LOGGERS.items():
        runtime = cache_key.split(":", 1)[0]
        file_handler = _file_handler(runtime)
        if file_handler is not None and file_handler not in logger.handlers:
            logger.addHandler(file_handler)
