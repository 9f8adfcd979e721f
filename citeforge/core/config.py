"""
Configuration for CiteForge.

This module provides the Config dataclass hierarchy that maps to a YAML
configuration file. Values can reference environment variables with
${VAR_NAME} / ${VAR_NAME:default} syntax (expanded by config_loaders).

Configuration Hierarchy
-----------------------
    Config
    ├── EngineConfig       # Near-note distance, capacity, default style/locale
    └── LoggingConfig      # Level, log file, console output

Example YAML
------------
    engine:
      near_note_distance: 5
      default_style: chicago-note
    logging:
      level: ${CITEFORGE_LOG_LEVEL:INFO}

Key Design Decisions
--------------------
1. **Dataclasses over dicts**: Type safety and IDE autocompletion.
2. **Defaults for everything**: Zero-config operation is possible.
3. **Validation in __post_init__**: Catch config errors early at load time.
4. **Engine receives values, not files**: the rendering engine never reads
   configuration itself; callers load it and pass EngineConfig in.
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from citeforge.core.exceptions import ConfigValidationError

MAX_NEAR_NOTE_DISTANCE = 1000
MAX_ENTRIES_LIMIT = 1_000_000
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class EngineConfig:
    """Rendering engine settings."""

    near_note_distance: int = 5  # Events; a style's own value takes precedence
    max_entries: int = 10_000
    default_style: str = "apa"
    default_locale: str = "en-US"

    def __post_init__(self) -> None:
        if not 0 <= self.near_note_distance <= MAX_NEAR_NOTE_DISTANCE:
            raise ConfigValidationError(
                f"near_note_distance must be between 0 and {MAX_NEAR_NOTE_DISTANCE}, "
                f"got {self.near_note_distance}"
            )
        if not 1 <= self.max_entries <= MAX_ENTRIES_LIMIT:
            raise ConfigValidationError(
                f"max_entries must be between 1 and {MAX_ENTRIES_LIMIT}, "
                f"got {self.max_entries}"
            )
        if not self.default_style:
            raise ConfigValidationError("default_style must not be empty")


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    file: Optional[str] = None
    console: bool = True

    def __post_init__(self) -> None:
        self.level = self.level.upper()
        if self.level not in VALID_LOG_LEVELS:
            raise ConfigValidationError(
                f"logging.level must be one of {sorted(VALID_LOG_LEVELS)}, "
                f"got {self.level}"
            )

    @property
    def file_path(self) -> Optional[Path]:
        """Log file as a Path, if configured."""
        return Path(self.file) if self.file else None


@dataclass
class Config:
    """Main CiteForge configuration."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        # JPL #5: Assertions for nested config types
        assert isinstance(self.engine, EngineConfig), "engine must be EngineConfig"
        assert isinstance(self.logging, LoggingConfig), "logging must be LoggingConfig"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @staticmethod
    def _filter_fields(cls_type: Any, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Filter dict to only keys that match dataclass fields, handling None."""
        if not data:
            return {}
        valid_keys = {f.name for f in fields(cls_type)}
        return {k: v for k, v in data.items() if k in valid_keys}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        # Import here to avoid circular dependency
        from citeforge.core.config_loaders import expand_env_vars

        data = expand_env_vars(data or {})
        engine = EngineConfig(**cls._filter_fields(EngineConfig, data.get("engine")))
        logging_config = LoggingConfig(
            **cls._filter_fields(LoggingConfig, data.get("logging"))
        )
        return cls(engine=engine, logging=logging_config)
