"""
Structured Logging for CiteForge.

This module provides a logging infrastructure that supports context binding,
a specialized logger for citation sessions, and consistent formatting across
the engine.

Architecture Context
--------------------
Logging is a Core layer service used by every module in the system. All modules
should import get_logger() from here rather than using Python's logging directly:

    # Good - uses CiteForge's structured logging
    from citeforge.core.logging import get_logger
    logger = get_logger(__name__)

    # Avoid - bypasses our structure
    import logging
    logger = logging.getLogger(__name__)

Logger Types
------------
**StructuredLogger**
    Base logger with context binding support. Allows attaching key-value pairs
    that appear in all subsequent log messages:

        logger = get_logger(__name__)
        logger.bind(style="apa")
        logger.info("Session started")  # includes style=apa

**SessionLogger**
    Specialized for citation sessions. Tracks processed citation events,
    disambiguation passes and bibliography generation:

        slog = SessionLogger(session_id)
        slog.event_processed(event_index=3, items=2, dirty=1)
        slog.bibliography_built(entries=12)

Module-Level Factory
--------------------
The get_logger() function provides cached logger instances:

    logger = get_logger("citeforge.citation.driver")

Loggers are cached by name, so multiple calls return the same instance.
Loggers created without an explicit config use the defaults installed by
configure_logging().
"""

import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from rich.logging import RichHandler


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    file_path: Optional[Path] = None
    console: bool = True
    rich_console: bool = True


class StructuredLogger:
    """
    Structured logger with context support.

    Provides consistent logging across the engine with
    support for structured fields and context tracking.
    """

    def __init__(self, name: str, config: Optional[LogConfig] = None) -> None:
        self.logger = logging.getLogger(name)
        self.config = config or _ConfigHolder.get_config()
        self._context: dict[str, Any] = {}
        self._setup_logger()

    def _setup_logger(self) -> None:
        """Configure the logger."""
        level = getattr(logging, self.config.level.upper(), logging.INFO)
        self.logger.setLevel(level)

        # Remove existing handlers
        self.logger.handlers.clear()

        formatter = logging.Formatter(
            self.config.format,
            datefmt=self.config.date_format,
        )

        if self.config.console:
            console_handler: logging.Handler
            if self.config.rich_console:
                console_handler = RichHandler(
                    show_time=True,
                    show_path=False,
                    markup=False,
                    rich_tracebacks=True,
                )
            else:
                console_handler = logging.StreamHandler(sys.stderr)
                console_handler.setFormatter(formatter)
            console_handler.setLevel(level)
            self.logger.addHandler(console_handler)

        if self.config.file_path:
            self.config.file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.config.file_path)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def bind(self, **kwargs: Any) -> "StructuredLogger":
        """Attach context fields to every subsequent message."""
        self._context.update(kwargs)
        return self

    def unbind(self, *keys: str) -> None:
        """Remove context fields."""
        for key in keys:
            self._context.pop(key, None)

    def _format_message(self, message: str, **kwargs: Any) -> str:
        """Format message with context and extra fields."""
        fields = {**self._context, **kwargs}
        if fields:
            field_str = " | ".join(f"{k}={v}" for k, v in fields.items())
            return f"{message} | {field_str}"
        return message

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self.logger.error(self._format_message(message, **kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message, **kwargs))


# Module-level logger factory
_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str, config: Optional[LogConfig] = None) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name (typically __name__).
        config: Optional logging configuration.

    Returns:
        Configured StructuredLogger instance.
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name, config)
    return _loggers[name]


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
) -> None:
    """
    Configure global logging settings.

    Already-created loggers are reconfigured so that the new level
    and handlers take effect everywhere.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional file path for log output.
        console: Whether to log to console.
    """
    config = LogConfig(
        level=level,
        file_path=log_file,
        console=console,
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    _ConfigHolder.set_config(config)

    for structured in _loggers.values():
        structured.config = config
        structured._setup_logger()


class _ConfigHolder:
    """Holds default logging configuration.

    Rule #6: Encapsulates singleton state in smallest scope.
    """

    _config: LogConfig = LogConfig()

    @classmethod
    def get_config(cls) -> LogConfig:
        """Get the default config."""
        return cls._config

    @classmethod
    def set_config(cls, config: LogConfig) -> None:
        """Set the default config."""
        cls._config = config


class SessionLogger:
    """
    Specialized logger for citation sessions.

    Tracks citation events, disambiguation passes and
    bibliography generation for one driver instance.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.logger = get_logger("citeforge.session")
        self._started = datetime.now()
        self._events = 0

    @property
    def events(self) -> int:
        """Number of events logged so far."""
        return self._events

    def event_processed(self, event_index: int, items: int, dirty: int = 0) -> None:
        """Log a processed citation event."""
        self._events += 1
        self.logger.debug(
            "Processed citation event",
            session=self.session_id,
            event=event_index,
            items=items,
            dirty=dirty,
        )

    def entries_disambiguated(self, cited: int, changed: int) -> None:
        """Log the outcome of a disambiguation pass."""
        if changed:
            self.logger.debug(
                "Disambiguated entries",
                session=self.session_id,
                cited=cited,
                changed=changed,
            )

    def events_refreshed(self, count: int) -> None:
        """Log re-rendering of dirty events."""
        self.logger.debug(
            "Re-rendered dirty events",
            session=self.session_id,
            count=count,
        )

    def bibliography_built(self, entries: int) -> None:
        """Log bibliography generation with session duration."""
        duration = (datetime.now() - self._started).total_seconds()
        self.logger.info(
            "Bibliography generated",
            session=self.session_id,
            entries=entries,
            events=self._events,
            duration_sec=f"{duration:.2f}",
        )
