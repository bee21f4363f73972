"""
logging.py - Global logging configuration

Structured logging for every pare tool server:
- Color-coded log levels (DEBUG=gray, INFO=green, WARNING=yellow, ERROR=red)
- Timestamps with consistent formatting
- Logger name visible
- Structured key=value pairs rendered after the message

All output goes to stderr. stdout belongs to the stdio transport that talks
to the host, so nothing here may ever write to it.

Example output:
    2024-01-21 10:30:45 [INFO    ] pare.runner: runner.spawn program=git args=2
    2024-01-21 10:30:45 [WARNING ] pare.runner: runner.timeout program=sleep timeout_ms=100

Usage:
    from pare.config.logging import configure_logging, get_logger
    configure_logging(level="INFO")
    logger = get_logger("pare.my_module")
    logger.info("runner.spawn", program="git")
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from typing import Any

import structlog


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    DIM = "\033[2m"
    BOLD = "\033[1m"
    REVERSE = "\033[7m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BRIGHT_BLACK = "\033[90m"


LOG_COLORS = {
    "DEBUG": f"{Colors.BRIGHT_BLACK}{Colors.DIM}",
    "INFO": Colors.GREEN,
    "WARNING": Colors.YELLOW,
    "ERROR": f"{Colors.RED}{Colors.BOLD}",
    "CRITICAL": f"{Colors.RED}{Colors.BOLD}{Colors.REVERSE}",
}

_RESERVED_KEYS = ("logger", "logger_name", "event", "_colors", "level", "timestamp")


def format_log(
    _logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> str:
    """Render a log entry, with ANSI colors when enabled.

    Args:
        _logger: The logger instance (unused)
        method_name: The log method name (info, error, etc.)
        event_dict: The event dictionary containing event and other data

    Returns:
        Formatted log line
    """
    colors = event_dict.pop("_colors", None)
    if colors is None:
        colors = _force_colors

    msg = event_dict.get("event", "")
    level = event_dict.get("level", method_name)

    if not colors:
        return _format_plain(level, msg, event_dict)
    return _format_rich(level, msg, event_dict)


def _format_rich(level: str, msg: str, data: dict[str, Any]) -> str:
    level_upper = level.upper()
    color = LOG_COLORS.get(level_upper, "")
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    parts = [
        f"{Colors.BRIGHT_BLACK}{timestamp}{Colors.RESET}",
        f"{color}[{level_upper:<8}]{Colors.RESET}",
    ]

    logger_name = data.get("logger", "") or data.get("logger_name", "")
    if logger_name:
        parts.append(f"{Colors.CYAN}{logger_name}:{Colors.RESET}")

    parts.append(str(msg))

    for key, value in data.items():
        if key in _RESERVED_KEYS:
            continue
        parts.append(f"{Colors.MAGENTA}{key}={Colors.RESET}{Colors.GREEN}{value}{Colors.RESET}")

    return " ".join(parts)


def _format_plain(level: str, msg: str, data: dict[str, Any]) -> str:
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    parts = [f"{timestamp} [{level.upper():<8}]"]

    logger_name = data.get("logger", "") or data.get("logger_name", "")
    if logger_name:
        parts.append(f"{logger_name}:")
    parts.append(str(msg))

    extra = {k: v for k, v in data.items() if k not in _RESERVED_KEYS}
    if extra:
        parts.append(" ".join(f"{k}={v}" for k, v in extra.items()))

    return " ".join(parts)


class _SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that tolerates closed streams.

    pytest closes captured streams while asyncio subprocess transports may
    still be logging from their callbacks.
    """

    def emit(self, record: logging.LogRecord) -> None:
        stream = self.stream
        if stream is not None and getattr(stream, "closed", False):
            return
        super().emit(record)


def _setup_log_filters(level: int) -> None:
    """Quiet third-party loggers that the MCP SDK pulls in."""
    noisy_loggers = [
        ("asyncio", logging.WARNING),
        ("mcp.server.lowlevel.server", logging.WARNING if level > logging.DEBUG else logging.INFO),
        ("httpx", logging.WARNING),
        ("httpcore", logging.WARNING),
        ("uvicorn", logging.WARNING),
        ("uvicorn.access", logging.WARNING),
    ]
    for logger_name, log_lvl in noisy_loggers:
        logging.getLogger(logger_name).setLevel(log_lvl)


_configured = False
_force_colors = False
_verbose_level = logging.INFO


def configure_logging(
    level: str | None = None,
    colors: bool | None = None,
    verbose: bool = False,
    force: bool = False,
) -> None:
    """Configure global structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to
            ``PARE_LOG_LEVEL`` or INFO.
        colors: Enable ANSI colors. If None, auto-detect from TTY.
        verbose: Enable verbose mode (DEBUG level)
        force: Force reconfiguration even if already configured
    """
    global _configured, _force_colors, _verbose_level

    if _configured and not force:
        return

    if level is None:
        level = os.environ.get("PARE_LOG_LEVEL", "INFO")
    log_level = getattr(logging, level.strip().upper(), logging.INFO)
    if verbose:
        log_level = logging.DEBUG
    _verbose_level = log_level

    if colors is None:
        colors = sys.stderr.isatty()
    _force_colors = colors

    root_logger = logging.getLogger()
    root_logger.handlers = []
    stderr_handler = _SafeStreamHandler(sys.stderr)
    stderr_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(stderr_handler)
    root_logger.setLevel(log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            format_log,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _setup_log_filters(log_level)
    _configured = True


def get_logger(name: str = "pare") -> structlog.stdlib.BoundLogger:
    """Get a structured logger bound to ``name``."""
    return structlog.get_logger(name)


def is_verbose() -> bool:
    """True when DEBUG logging is enabled."""
    return _verbose_level <= logging.DEBUG


def get_log_level() -> str:
    return logging.getLevelName(_verbose_level)


__all__ = [
    "Colors",
    "configure_logging",
    "format_log",
    "get_log_level",
    "get_logger",
    "is_verbose",
]
