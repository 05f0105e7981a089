"""Logging setup for the engine.

Three sinks hang off the ``velo`` logger:

* a Rich console handler for warnings and above,
* ``app.log``, a rotating JSON file at the configured level,
* ``events.log``, a rotating JSON file holding only records that carry an
  ``event_type`` (queue enqueue/compaction/drain, quick step runs).

Message bodies and credentials never reach a sink in clear text.
"""

import json
import logging
import os
import re
import time
from datetime import datetime, timezone
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

from rich.logging import RichHandler

from .paths import LOGS_DIR

ROOT_LOGGER = "velo"
REDACTED = "[REDACTED]"

# Fields copied from the record into the JSON line when present
RECORD_FIELDS = ("event_type", "account_id", "operation_id", "operation_type", "context")

_LOG_DIR: Optional[Path] = None


def _get_log_dir() -> Path:
    """``VELO_LOG_DIR`` when set, otherwise ``~/.velo/logs``."""

    from .errors import FileSystemError

    global _LOG_DIR

    if _LOG_DIR is None:
        override = os.getenv("VELO_LOG_DIR")
        _LOG_DIR = Path(override) if override else LOGS_DIR
        try:
            _LOG_DIR.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(f"Cannot create log directory {_LOG_DIR}") from e

    return _LOG_DIR


def _parse_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Invalid logging level: {level}")
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "where": f"{record.funcName}:{record.lineno}",
            "message": record.getMessage(),
        }
        entry.update({key: getattr(record, key) for key in RECORD_FIELDS if hasattr(record, key)})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """Stamps account and operation ids onto every record it emits."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


## Redaction


class Redactor:
    """Hides mail content and credentials in log output.

    Keys are compared case-insensitively with ``_`` and ``-`` removed, so
    ``rawBase64Url`` and ``raw_base64url`` both match.
    """

    SECRET_KEYS = {
        "password",
        "secret",
        "token",
        "accesstoken",
        "refreshtoken",
        "authorization",
        "rawbase64url",
        "body",
        "html",
    }

    _ASSIGNMENT = re.compile(
        r'((?:password|token|authorization|rawbase64url)["\']?\s*[:=]\s*["\']?)([^"\'},\s]+)',
        re.IGNORECASE,
    )
    _ADDRESS = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9])[A-Za-z0-9.-]*\.[A-Za-z]{2,}\b")

    @classmethod
    def is_secret(cls, key: str) -> bool:
        return key.replace("_", "").replace("-", "").lower() in cls.SECRET_KEYS

    def text(self, value: str) -> str:
        value = self._ASSIGNMENT.sub(lambda m: m.group(1) + REDACTED, value)
        return self._ADDRESS.sub(lambda m: f"{m.group(1)}***@{m.group(2)}***", value)

    def mapping(self, data: Dict[str, Any]) -> Dict[str, Any]:
        clean: Dict[str, Any] = {}
        for key, value in data.items():
            if self.is_secret(str(key)):
                clean[key] = REDACTED
            elif isinstance(value, dict):
                clean[key] = self.mapping(value)
            elif isinstance(value, str):
                clean[key] = self.text(value)
            else:
                clean[key] = value
        return clean


class RedactingFilter(logging.Filter):
    def __init__(self):
        super().__init__()
        self.redactor = Redactor()

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.redactor.text(record.msg)

        for key, value in list(record.__dict__.items()):
            if isinstance(value, dict):
                setattr(record, key, self.redactor.mapping(value))
            elif key not in ("msg", "message") and self.redactor.is_secret(key):
                setattr(record, key, REDACTED)

        return True


## Log manager


class LogManager:
    """Owns the handlers on the ``velo`` logger."""

    def __init__(self, log_level: str = "INFO"):
        self.log_level = _parse_level(log_level)
        self.root_logger = logging.getLogger(ROOT_LOGGER)
        self.root_logger.setLevel(logging.DEBUG)
        self._install_handlers()

    def _rotating(self, filename: str, max_bytes: int, backups: int) -> RotatingFileHandler:
        from .errors import FileSystemError

        path = _get_log_dir() / filename
        try:
            handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
        except OSError as e:
            raise FileSystemError(f"Cannot open log file {path}: {e}") from e
        handler.setFormatter(JSONFormatter())
        return handler

    def _install_handlers(self) -> None:
        redact = RedactingFilter()
        self.root_logger.handlers.clear()

        console = RichHandler(show_time=True, show_path=False, markup=False, rich_tracebacks=True)
        console.setLevel(logging.WARNING)
        console.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

        self.app_handler = self._rotating("app.log", 5_242_880, 5)
        self.app_handler.setLevel(self.log_level)

        events = self._rotating("events.log", 2_097_152, 3)
        events.setLevel(logging.INFO)
        events.addFilter(lambda record: hasattr(record, "event_type"))

        for handler in (console, self.app_handler, events):
            handler.addFilter(redact)
            self.root_logger.addHandler(handler)

    def get_logger(
        self, name: Optional[str] = None, **context
    ) -> logging.Logger | ContextAdapter:
        """Child of ``velo``; wrapped in a ContextAdapter when context is given."""

        if not name:
            name = ROOT_LOGGER
        elif name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
            name = f"{ROOT_LOGGER}.{name}"

        logger = logging.getLogger(name)
        return ContextAdapter(logger, context) if context else logger

    def set_level(self, level: str) -> None:
        """Change the ``app.log`` threshold at runtime."""
        self.log_level = _parse_level(level)
        self.app_handler.setLevel(self.log_level)

    def log_event(self, event_type: str, message: str, level: str = "INFO", **extra) -> None:
        self.root_logger.log(_parse_level(level), message, extra={"event_type": event_type, **extra})


## Call tracing


def _qualified(func) -> str:
    return f"{func.__module__}.{func.__qualname__}"


def log_call(func):
    """Trace entry, exit and duration of a function at DEBUG."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(ROOT_LOGGER)
        name = _qualified(func)
        started = time.perf_counter()
        logger.debug(f"call {name}")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.exception(f"{name} raised after {time.perf_counter() - started:.3f}s: {e}")
            raise
        logger.debug(f"done {name} in {time.perf_counter() - started:.3f}s")
        return result

    return wrapper


def async_log_call(func):
    """Coroutine version of :func:`log_call`."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        logger = logging.getLogger(ROOT_LOGGER)
        name = _qualified(func)
        started = time.perf_counter()
        logger.debug(f"await {name}")
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.exception(f"{name} raised after {time.perf_counter() - started:.3f}s: {e}")
            raise
        logger.debug(f"done {name} in {time.perf_counter() - started:.3f}s")
        return result

    return wrapper


## Module-level helpers

_log_manager: Optional[LogManager] = None


def init_logging(log_level: str = "INFO") -> LogManager:
    """Create the shared LogManager on first use and return it."""

    global _log_manager

    if _log_manager is None:
        _log_manager = LogManager(log_level)

    return _log_manager


def get_logger(
    name: Optional[str] = None, **context
) -> logging.Logger | ContextAdapter:
    return init_logging().get_logger(name, **context)


def log_event(event_type: str, message: Any, **extra) -> None:
    """Write a record to ``events.log`` (and ``app.log``).

    A dict ``message`` is merged into the record's extra fields.
    """

    if isinstance(message, dict):
        extra.update(message)
        message = f"Event: {event_type}"

    init_logging().log_event(event_type, message, **extra)
