"""Core services: logging, configuration and the exception hierarchy."""

from citeforge.core.config import Config, EngineConfig, LoggingConfig
from citeforge.core.exceptions import (
    CapacityError,
    CitationOrderError,
    CiteForgeError,
    ConfigurationError,
    ConfigValidationError,
    DisambiguationError,
    DuplicateEntryError,
    EngineInvariantError,
    InputError,
    UnknownEntryError,
    UnknownStyleError,
)
from citeforge.core.logging import (
    LogConfig,
    SessionLogger,
    StructuredLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    # Config
    "Config",
    "EngineConfig",
    "LoggingConfig",
    # Exceptions
    "CiteForgeError",
    "ConfigurationError",
    "ConfigValidationError",
    "InputError",
    "UnknownEntryError",
    "DuplicateEntryError",
    "CitationOrderError",
    "CapacityError",
    "UnknownStyleError",
    "EngineInvariantError",
    "DisambiguationError",
    # Logging
    "LogConfig",
    "StructuredLogger",
    "SessionLogger",
    "get_logger",
    "configure_logging",
]
