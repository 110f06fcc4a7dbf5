"""
Structured logging configuration for the Crazy Eights server.

Provides:
- JSONFormatter for production (machine-readable logs)
- Human-readable formatter for development
- Contextual logging (connection_id, room_code, player_id)
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Context variables for connection-scoped data
connection_id_var: ContextVar[Optional[str]] = ContextVar("connection_id", default=None)
room_code_var: ContextVar[Optional[str]] = ContextVar("room_code", default=None)
player_id_var: ContextVar[Optional[str]] = ContextVar("player_id", default=None)

_CONTEXT_VARS = (
    ("connection_id", connection_id_var),
    ("room_code", room_code_var),
    ("player_id", player_id_var),
)


def bind_context(
    connection_id: Optional[str] = None,
    room_code: Optional[str] = None,
    player_id: Optional[str] = None,
) -> None:
    """Set the logging context for the current task."""
    connection_id_var.set(connection_id)
    room_code_var.set(room_code)
    player_id_var.set(player_id)


def _context(record: logging.LogRecord) -> dict:
    """Context vars, overridden by explicit `extra` fields on the record."""
    context = {}
    for name, var in _CONTEXT_VARS:
        value = getattr(record, name, None) or var.get()
        if value:
            context[name] = value
    return context


class JSONFormatter(logging.Formatter):
    """
    Format logs as JSON for production log aggregation.

    Output format is compatible with common log aggregation systems
    (ELK, CloudWatch, Datadog, etc.).
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(_context(record))

        # Add source location for errors
        if record.levelno >= logging.ERROR:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Includes colors and context for easy debugging.
    """

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        context_parts = []
        ctx = _context(record)
        if "connection_id" in ctx:
            context_parts.append(f"conn={ctx['connection_id'][:8]}")
        if "room_code" in ctx:
            context_parts.append(f"room={ctx['room_code']}")
        if "player_id" in ctx:
            context_parts.append(f"player={ctx['player_id'][:8]}")
        context = f" [{', '.join(context_parts)}]" if context_parts else ""

        output = f"{timestamp} {color}{record.levelname:8}{reset} {record.name}{context} - {record.getMessage()}"

        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)

        return output


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        environment: Environment name (production uses JSON, else human-readable).
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if environment == "production":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured: level={level}, environment={environment}")
