"""
Logging setup for TrackSense.

Console output is human-readable text; log files are always one JSON
object per line so degraded analyses can be queried afterwards.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

STAGE_LOGGER_PREFIX = "analyzer."
TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Records from estimator loggers (``analyzer.<stage>``) carry a ``stage``
    key, and records emitted through AnalysisLoggerAdapter carry the
    per-analysis ``context`` (source, hash).
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.name.startswith(STAGE_LOGGER_PREFIX):
            entry["stage"] = record.name[len(STAGE_LOGGER_PREFIX):]

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Text formatter that colors the level name for terminals."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # The record is shared with other handlers; restore it afterwards
        plain = record.levelname
        record.levelname = f"{self.COLORS.get(plain, '')}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: Optional[str] = None,
    max_bytes: int = 10485760,
    backup_count: int = 5,
    console_enabled: bool = True,
    colored: bool = True,
) -> None:
    """
    Replace the root logger's handlers.

    Args:
        level: Root log level name
        log_format: Console format, "text" or "json"
        log_file: Optional rotating JSON log file
        max_bytes: Rotation size of the log file
        backup_count: Rotated files kept
        console_enabled: Log to stderr
        colored: Color level names on a text console
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    root.handlers = []

    if console_enabled:
        console = logging.StreamHandler(sys.stderr)
        if log_format == "json":
            console.setFormatter(JSONFormatter())
        elif colored:
            console.setFormatter(ColoredFormatter(TEXT_FORMAT, DATE_FORMAT))
        else:
            console.setFormatter(logging.Formatter(TEXT_FORMAT, DATE_FORMAT))
        root.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)


def setup_logging_from_config(logging_config: Mapping[str, Any], verbose: bool = False) -> None:
    """Apply the ``logging`` config section; ``verbose`` forces DEBUG."""
    setup_logging(
        level="DEBUG" if verbose else logging_config.get("level", "INFO"),
        log_format=logging_config.get("format", "text"),
        log_file=logging_config.get("file"),
        max_bytes=logging_config.get("max_bytes", 10485760),
        backup_count=logging_config.get("backup_count", 5),
    )


class AnalysisLoggerAdapter(logging.LoggerAdapter):
    """
    Attaches one analysis call's context to every record as ``record.context``.

    A per-call ``extra={"context": {...}}`` is merged over the adapter's own.
    """

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        context = dict(self.extra)
        context.update(extra.pop("context", {}))
        extra["context"] = context
        kwargs["extra"] = extra
        return msg, kwargs


def create_logger_with_context(name: str, context: Dict[str, Any]) -> AnalysisLoggerAdapter:
    """
    Example:
        log = create_logger_with_context("engine", {"source": "song.wav"})
        log.info("Decoded audio")
        # file log: {"message": "Decoded audio", "context": {"source": "song.wav"}, ...}
    """
    return AnalysisLoggerAdapter(logging.getLogger(name), context)
