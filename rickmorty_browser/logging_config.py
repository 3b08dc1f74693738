"""Process-wide logging setup driven by LOG_LEVEL, LOG_FILE_PATH and LOG_FORMAT."""

import os
import logging
import logging.config
from pathlib import Path
from typing import Dict, Any, List, Tuple


DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# httpx logs one INFO line per request; a fetch-all walks ~40 pages.
_CHATTY_LOGGERS = ("httpx", "httpcore")
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi")

_configured = False


def _handlers(log_file: str | None) -> Tuple[Dict[str, Any], List[str]]:
    """Console handler always; a WatchedFileHandler when ``log_file`` is set."""
    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "line",
        }
    }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.WatchedFileHandler",
            "filename": log_file,
            "formatter": "line",
        }
    return handlers, list(handlers)


def _library_loggers(level: str) -> Dict[str, Any]:
    """Server loggers follow ``level``; HTTP client loggers stay at WARNING unless DEBUG."""
    client_level = level if level == "DEBUG" else "WARNING"
    loggers = {name: {"level": level} for name in _SERVER_LOGGERS}
    loggers.update({name: {"level": client_level} for name in _CHATTY_LOGGERS})
    return loggers


def _resolve_level(raw: str) -> Tuple[str, bool]:
    """Return ``(level, known)``; an unrecognised name falls back to INFO."""
    level = raw.strip().upper()
    if isinstance(logging.getLevelName(level), int):
        return level, True
    return "INFO", False


def _build_dict_config(
    log_file: str | None, level: str, fmt: str = DEFAULT_FORMAT
) -> Dict[str, Any]:
    handlers, names = _handlers(log_file)
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"line": {"format": fmt}},
        "handlers": handlers,
        "loggers": _library_loggers(level),
        "root": {"level": level, "handlers": names},
    }


def configure_logging() -> None:
    """Apply the logging config once per process.

    ``LOG_LEVEL`` defaults to INFO, ``LOG_FILE_PATH`` adds a file sink and
    ``LOG_FORMAT`` overrides the line format for both sinks.
    """
    global _configured
    if _configured:
        return

    raw_level = os.getenv("LOG_LEVEL", "INFO")
    level, known = _resolve_level(raw_level)
    fmt = os.getenv("LOG_FORMAT") or DEFAULT_FORMAT

    logging.config.dictConfig(
        _build_dict_config(os.getenv("LOG_FILE_PATH") or None, level, fmt)
    )
    _configured = True

    if not known:
        logging.getLogger(__name__).warning(
            "logging.level unknown=%r using=%s", raw_level, level
        )
