"""
Safe environment variable parsing with validation.

Provides type-safe functions for reading environment variables with
bounds checking and whitelist validation.

Usage Pattern
-------------
Instead of unsafe direct environment access:

    # no validation
    distance = int(os.environ.get("CITEFORGE_NEAR_NOTE_DISTANCE", "5"))

Use safe getters:

    from citeforge.core.env import get_env_int
    distance = get_env_int("CITEFORGE_NEAR_NOTE_DISTANCE", default=5, min_value=0)
"""

from __future__ import annotations

import os
from typing import FrozenSet, Optional

from citeforge.core.logging import get_logger

logger = get_logger(__name__)

LOG_LEVELS: FrozenSet[str] = frozenset(
    ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
)


def get_env_int(
    name: str,
    default: Optional[int] = None,
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
) -> Optional[int]:
    """
    Get integer from environment variable with bounds validation.

    Args:
        name: Environment variable name.
        default: Default value if not set or invalid.
        min_value: Minimum allowed value (clamped if exceeded).
        max_value: Maximum allowed value (clamped if exceeded).

    Returns:
        Validated integer or default.

    Example:
        >>> get_env_int("CITEFORGE_MAX_ENTRIES", default=10000, min_value=1)
        10000  # If not set
    """
    value = os.environ.get(name)
    if value is None:
        return default

    try:
        int_value = int(value)
    except ValueError:
        logger.warning(
            f"Invalid integer value for {name}={value}: Returning default {default}"
        )
        return default

    if min_value is not None and int_value < min_value:
        return min_value
    if max_value is not None and int_value > max_value:
        return max_value

    return int_value


def get_env_whitelist(
    name: str,
    allowed: FrozenSet[str],
    default: Optional[str] = None,
    case_sensitive: bool = False,
) -> Optional[str]:
    """
    Get string from environment variable with whitelist validation.

    Only returns value if it matches one of the allowed values.

    Args:
        name: Environment variable name.
        allowed: Set of allowed values.
        default: Default value if not set or not in whitelist.
        case_sensitive: If False (default), comparison is case-insensitive.

    Returns:
        Validated string or default.
    """
    value = os.environ.get(name)
    if value is None:
        return default

    if case_sensitive:
        if value in allowed:
            return value
    else:
        normalized = value.lower()
        for allowed_value in allowed:
            if normalized == allowed_value.lower():
                return allowed_value

    logger.warning(f"Ignoring {name}={value}: not one of {sorted(allowed)}")
    return default


def get_env_bool(
    name: str,
    default: bool = False,
) -> bool:
    """
    Get boolean from environment variable.

    Recognizes common truthy/falsy values:
    - True: "true", "yes", "1", "on"
    - False: "false", "no", "0", "off", ""

    Args:
        name: Environment variable name.
        default: Default value if not set or unrecognized.

    Returns:
        Boolean value.
    """
    value = os.environ.get(name)
    if value is None:
        return default

    normalized = value.lower().strip()

    if normalized in ("true", "yes", "1", "on"):
        return True
    if normalized in ("false", "no", "0", "off", ""):
        return False

    return default
