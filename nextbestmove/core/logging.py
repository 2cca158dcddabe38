"""Logging for NextBestMove.

Engine log lines are almost always about one user, and usually about one
relationship or action. Those ids travel in ``extra={"context": {...}}``
like any other field; the formatters lift them out so that:
    - file logs (JSON lines) carry user_id / relationship_id / action_id as
      top-level keys, filterable without digging into "context"
    - console lines lead with them

Usage:
    from nextbestmove.core.logging import bind_context, get_logger, setup_logging

    setup_logging()  # Call once at startup
    logger = get_logger(__name__)

    log = bind_context(logger, user_id="u1")
    log.info("Scored action", extra={"context": {"action_id": "a1", "score": 72}})
"""

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Mapping, Optional

ROOT_LOGGER_NAME = "nextbestmove"
LOG_FILE_NAME = "nextbestmove.log"

# Ids promoted out of "context", in display order.
ENTITY_FIELDS = ("user_id", "relationship_id", "action_id")
_CONSOLE_LABELS = {"user_id": "user", "relationship_id": "rel", "action_id": "action"}


def split_context(context: Optional[Mapping[str, Any]]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split a record context into (entity ids, remaining fields).

    Ids that are None are dropped rather than promoted.
    """
    if not context:
        return {}, {}
    entities = {k: context[k] for k in ENTITY_FIELDS if context.get(k) is not None}
    rest = {k: v for k, v in context.items() if k not in ENTITY_FIELDS}
    return entities, rest


class JSONFormatter(logging.Formatter):
    """One JSON object per line, entity ids at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entities, rest = split_context(getattr(record, "context", None))
        created = datetime.fromtimestamp(record.created, timezone.utc)
        log_data: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        log_data.update(entities)
        if rest:
            log_data["context"] = rest
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Scores and dates in context are not all JSON-native.
        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable format for console output.

    ``12:00:00 INFO nextbestmove.engine: user=u1 action=a1 | Best action selected [score=38.0]``
    """

    def format(self, record: logging.LogRecord) -> str:
        entities, rest = split_context(getattr(record, "context", None))
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = record.levelname[:4]
        message = record.getMessage()

        if entities:
            who = " ".join(f"{_CONSOLE_LABELS[k]}={v}" for k, v in entities.items())
            message = f"{who} | {message}"
        if rest:
            message += f" [{', '.join(f'{k}={v}' for k, v in rest.items())}]"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return f"{timestamp} {level:4s} {record.name}: {message}"


class ContextAdapter(logging.LoggerAdapter):
    """Logger that stamps bound context onto every record.

    Per-call ``extra={"context": ...}`` fields win over bound ones.
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(kwargs.get("extra") or {})
        extra["context"] = {**self.extra, **(extra.get("context") or {})}
        kwargs["extra"] = extra
        return msg, kwargs


def bind_context(logger: logging.Logger, **context: Any) -> ContextAdapter:
    """Return a logger that adds ``context`` to everything it logs."""
    return ContextAdapter(logger, context)


_logging_initialized = False
_installed_handlers: list[logging.Handler] = []


def setup_logging(
    log_dir: Optional[Path] = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """Attach console and rotating JSON file handlers to the nextbestmove logger.

    Safe to call more than once; only the first call installs handlers.
    Library callers that never call this get the standard library's default
    (no handlers on our namespace).

    Args:
        log_dir: Directory for log files. Defaults to ~/.nextbestmove/logs
        console_level: Minimum level for console output (default: INFO)
        file_level: Minimum level for file output (default: DEBUG)

    Returns:
        Path of the JSON log file
    """
    global _logging_initialized

    if log_dir is None:
        log_dir = Path.home() / ".nextbestmove" / "logs"
    log_file = log_dir / LOG_FILE_NAME

    if _logging_initialized:
        return log_file

    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ConsoleFormatter())

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(JSONFormatter())

    for handler in (console_handler, file_handler):
        root_logger.addHandler(handler)
        _installed_handlers.append(handler)

    _logging_initialized = True
    root_logger.info("Logging initialized", extra={"context": {"log_file": str(log_file)}})
    return log_file


def reset_logging() -> None:
    """Remove the handlers setup_logging() installed."""
    global _logging_initialized

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root_logger.removeHandler(handler)
        handler.close()
    _logging_initialized = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the nextbestmove namespace.

    ``nextbestmove.engine.scoring`` and ``engine.scoring`` name the same logger.
    """
    prefix = f"{ROOT_LOGGER_NAME}."
    if name.startswith(prefix):
        name = name[len(prefix):]
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
