"""
Structured logging for the Arcade server.

Provides:
- JSONFormatter for production (one JSON object per line)
- ConsoleFormatter for development (colored, single line)
- Context variables so every line inside a WebSocket session carries the
  connection and room it belongs to
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Per-connection context, set by the WebSocket loop
connection_id_var: ContextVar[Optional[str]] = ContextVar("connection_id", default=None)
room_id_var: ContextVar[Optional[str]] = ContextVar("room_id", default=None)

CONTEXT_FIELDS = ("connection_id", "room_id", "player_id", "game_type")


def _context(record: logging.LogRecord) -> dict:
    """Merge context vars with `extra=` fields; explicit extras win."""
    values = {
        "connection_id": connection_id_var.get(),
        "room_id": room_id_var.get(),
    }
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value:
            values[name] = value
    return {k: v for k, v in values.items() if v}


class JSONFormatter(logging.Formatter):
    """Machine-readable log lines for aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }

        if record.levelno >= logging.ERROR:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored, human-readable lines for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        ctx = _context(record)
        parts = []
        if "room_id" in ctx:
            parts.append(f"room={ctx['room_id']}")
        if "connection_id" in ctx:
            parts.append(f"conn={ctx['connection_id'][:8]}")
        if "player_id" in ctx:
            parts.append(f"player={ctx['player_id'][:8]}")
        context = f" [{', '.join(parts)}]" if parts else ""

        output = f"{timestamp} {color}{record.levelname:8}{reset} {record.name}{context} - {record.getMessage()}"
        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)
        return output


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name.
        environment: "production" selects JSON output, anything else the console format.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if environment == "production" else ConsoleFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    for noisy in ("uvicorn.access", "uvicorn.error", "websockets", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, environment={environment}")


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter carrying fixed context.

    Usage:
        log = get_logger(__name__).with_context(room_id="lobby-1")
        log.info("Match started")
    """

    def __init__(self, logger: logging.Logger, extra: Optional[dict] = None):
        super().__init__(logger, extra or {})

    def with_context(self, **kwargs) -> "ContextLogger":
        return ContextLogger(self.logger, {**self.extra, **kwargs})

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name))
