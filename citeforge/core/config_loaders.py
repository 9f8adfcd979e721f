"""
Configuration Loading and Management Functions.

Handles loading and applying environment overrides to CiteForge
configuration.

Configuration precedence: 1. Env vars, 2. YAML file, 3. Defaults

Environment Variables
---------------------
    CITEFORGE_NEAR_NOTE_DISTANCE   int, 0..1000
    CITEFORGE_MAX_ENTRIES          int, 1..1000000
    CITEFORGE_DEFAULT_STYLE        one of the built-in style names
    CITEFORGE_LOG_LEVEL            DEBUG, INFO, WARNING, ERROR, CRITICAL
    CITEFORGE_LOG_CONSOLE          true/false
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from citeforge.core.config import (
    MAX_ENTRIES_LIMIT,
    MAX_NEAR_NOTE_DISTANCE,
    Config,
)
from citeforge.core.env import (
    LOG_LEVELS,
    get_env_bool,
    get_env_int,
    get_env_whitelist,
)
from citeforge.core.exceptions import ConfigurationError
from citeforge.core.logging import configure_logging, get_logger

logger = get_logger(__name__)

CONFIG_FILENAMES = ("citeforge.yaml", "config.yaml")


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values.

    Handles nested structures including:
    - Strings with ${VAR_NAME} or ${VAR_NAME:default} syntax
    - Nested dictionaries
    - Nested lists

    Args:
        value: Configuration value (string, dict, list, or primitive)

    Returns:
        Value with all environment variables expanded
    """
    if isinstance(value, str):
        pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

        def replace_env_var(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def _apply_env_overrides(config: Config) -> Config:
    """
    Apply environment variable overrides to configuration.

    Environment variables take precedence over config file values.
    """
    _apply_engine_overrides(config)
    _apply_logging_overrides(config)
    return config


def _apply_engine_overrides(config: Config) -> None:
    """Apply engine overrides from environment.

    Security:
        Uses get_env_int with bounds and get_env_whitelist for style names.
    """
    # Lazy import: the style registry lives in the citation layer
    from citeforge.citation.styles import available_styles

    distance = get_env_int(
        "CITEFORGE_NEAR_NOTE_DISTANCE",
        min_value=0,
        max_value=MAX_NEAR_NOTE_DISTANCE,
    )
    if distance is not None:
        config.engine.near_note_distance = distance

    max_entries = get_env_int(
        "CITEFORGE_MAX_ENTRIES",
        min_value=1,
        max_value=MAX_ENTRIES_LIMIT,
    )
    if max_entries is not None:
        config.engine.max_entries = max_entries

    style = get_env_whitelist(
        "CITEFORGE_DEFAULT_STYLE",
        frozenset(available_styles()),
    )
    if style:
        config.engine.default_style = style


def _apply_logging_overrides(config: Config) -> None:
    """Apply logging overrides from environment."""
    level = get_env_whitelist("CITEFORGE_LOG_LEVEL", LOG_LEVELS)
    if level:
        config.logging.level = level
    config.logging.console = get_env_bool(
        "CITEFORGE_LOG_CONSOLE", default=config.logging.console
    )


def _find_config_file(base_path: Path) -> Optional[Path]:
    """Locate the first known config filename under base_path."""
    for filename in CONFIG_FILENAMES:
        candidate = base_path / filename
        if candidate.exists():
            return candidate
    return None


def load_config(
    config_path: Optional[Path] = None,
    base_path: Optional[Path] = None,
    data: Optional[Dict[str, Any]] = None,
) -> Config:
    """
    Load configuration from YAML with environment variable overrides.

    Args:
        config_path: Path to config file. Defaults to citeforge.yaml or
            config.yaml in base_path.
        base_path: Directory searched when config_path is not given.
        data: Already-parsed configuration mapping; skips file lookup.

    Returns:
        Config object with all settings.

    Raises:
        ConfigurationError: If the file exists but is not valid YAML.
        ConfigValidationError: If a value is out of range.
    """
    if data is not None:
        return _apply_env_overrides(Config.from_dict(data))

    if config_path is None:
        config_path = _find_config_file(base_path or Path.cwd())
    if config_path is None or not config_path.exists():
        logger.debug("No configuration file found, using defaults")
        return _apply_env_overrides(Config())

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {config_path}: {e}") from e

    if not isinstance(loaded, dict):
        raise ConfigurationError(
            f"{config_path} must contain a mapping at the top level"
        )

    logger.debug("Loaded configuration", path=str(config_path))
    return _apply_env_overrides(Config.from_dict(loaded))


def load_config_text(text: str) -> Config:
    """Load configuration from a YAML string."""
    try:
        loaded = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse configuration: {e}") from e
    if not isinstance(loaded, dict):
        raise ConfigurationError("Configuration must be a mapping at the top level")
    return load_config(data=loaded)


def save_config(config: Config, config_path: Path) -> None:
    """Save configuration to YAML file."""
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)


def apply_logging_config(config: Config) -> None:
    """Install the logging section of a configuration.

    Every cached logger is reconfigured with the new level, log file and
    console setting.

    Args:
        config: Loaded configuration
    """
    configure_logging(
        level=config.logging.level,
        log_file=config.logging.file_path,
        console=config.logging.console,
    )
    logger.debug(
        "Applied logging configuration",
        level=config.logging.level,
        file=config.logging.file or "",
    )
