"""
Centralized Exception Hierarchy for CiteForge.

This module defines all custom exceptions used throughout CiteForge.
All exceptions inherit from CiteForgeError for easy catching.

Helpful Error Messages
----------------------
Each exception includes:
- user_message: Human-readable description of what went wrong
- why_it_happened: Explanation of the root cause
- how_to_fix: Actionable steps to resolve the issue
- error_code: Unique identifier for documentation lookup (e.g., "CF-IN-001")

Usage
-----
    from citeforge.core.exceptions import CiteForgeError, UnknownEntryError

    try:
        driver.process(event)
    except UnknownEntryError as e:
        logger.error(f"Citation rejected: {e}")

Exception Hierarchy
-------------------
    CiteForgeError (base)
    ├── ConfigurationError
    │   └── ConfigValidationError
    ├── InputError
    │   ├── UnknownEntryError
    │   ├── DuplicateEntryError
    │   ├── CitationOrderError
    │   └── CapacityError
    ├── UnknownStyleError
    └── EngineInvariantError
        └── DisambiguationError

Rendering itself never raises: missing variables and macros render empty.
InputError subclasses are raised at the engine boundary before any session
state changes. EngineInvariantError signals a programming error.
"""

from typing import List, Optional


class CiteForgeError(Exception):
    """
    Base exception for all CiteForge errors.

    Includes helpful error information:
    - error_code: Unique code for documentation lookup (e.g., "CF-ERR-001")
    - why_it_happened: Explanation of the root cause
    - how_to_fix: List of actionable suggestions

    Example
    -------
        try:
            engine.cite(["smith2020"])
        except CiteForgeError as e:
            logger.error(f"Citation failed: {e}")
            print(f"Fix: {e.how_to_fix}")
    """

    error_code: str = "CF-ERR-000"
    why_it_happened: str = "An unexpected error occurred"
    how_to_fix: List[str] = ["Check the error message for details"]

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        """Initialize CiteForgeError with helpful information.

        Args:
            message: Human-readable error message
            error_code: Unique identifier (e.g., "CF-IN-001")
            why_it_happened: Explanation of root cause
            how_to_fix: List of actionable fix suggestions
        """
        super().__init__(message)

        if error_code is not None:
            self.error_code = error_code
        if why_it_happened is not None:
            self.why_it_happened = why_it_happened
        if how_to_fix is not None:
            self.how_to_fix = how_to_fix

    @property
    def user_message(self) -> str:
        """Get the user-friendly error message."""
        return str(self)


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigurationError(CiteForgeError):
    """Raised when engine configuration is invalid or cannot be loaded."""

    error_code = "CF-CFG-000"
    why_it_happened = "The configuration could not be loaded or applied"
    how_to_fix = [
        "Check the YAML syntax of your configuration file",
        "Remove unknown keys from the configuration",
    ]


class ConfigValidationError(ConfigurationError):
    """
    Raised when a configuration value is out of range.

    Example
    -------
        EngineConfig(near_note_distance=-1)
        # Raises: ConfigValidationError("near_note_distance must be >= 0")
    """

    error_code = "CF-CFG-001"
    why_it_happened = "A configuration value is outside its allowed range"
    how_to_fix = [
        "Check the value against the documented bounds",
        "Delete the key to fall back to the default",
    ]


# ============================================================================
# Input Exceptions
# ============================================================================


class InputError(CiteForgeError):
    """
    Base exception for malformed inputs at the engine boundary.

    Raised before any session state is modified, so the session
    remains usable after catching it.
    """

    error_code = "CF-IN-000"
    why_it_happened = "The engine received input it cannot process"
    how_to_fix = ["Check the citation or entry data passed to the engine"]


class UnknownEntryError(InputError):
    """Raised when a citation references an entry id that was never registered."""

    error_code = "CF-IN-001"
    why_it_happened = "The citation references an entry that is not in the store"
    how_to_fix = [
        "Register the entry before citing it",
        "Check the entry id for typos",
    ]

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Unknown entry id: {entry_id!r}")
        self.entry_id = entry_id


class DuplicateEntryError(InputError):
    """Raised when two entries share the same id."""

    error_code = "CF-IN-002"
    why_it_happened = "Entry ids must be unique within a session"
    how_to_fix = ["Rename or merge the duplicate entries before loading them"]

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Duplicate entry id: {entry_id!r}")
        self.entry_id = entry_id


class CitationOrderError(InputError):
    """
    Raised when citation events arrive out of document order.

    Events are consumed strictly in document order; every event must
    carry a document position greater than the previous one.
    """

    error_code = "CF-IN-003"
    why_it_happened = "Citation events must be submitted in document order"
    how_to_fix = [
        "Submit events sorted by document position",
        "Start a new session to re-cite a document from the beginning",
    ]


class CapacityError(InputError):
    """Raised when the entry store exceeds its configured capacity."""

    error_code = "CF-IN-004"
    why_it_happened = "The session holds more entries than max_entries allows"
    how_to_fix = [
        "Raise engine.max_entries in the configuration",
        "Partition the bibliography at the entry-loading boundary",
    ]


# ============================================================================
# Style Exceptions
# ============================================================================


class UnknownStyleError(CiteForgeError):
    """Raised when a built-in style name is not registered."""

    error_code = "CF-STY-001"
    why_it_happened = "The requested style is not one of the built-in styles"
    how_to_fix = [
        "Use one of the names listed by citeforge.citation.styles.available_styles()",
        "Pass a pre-built Style object instead of a name",
    ]

    def __init__(self, name: str, available: List[str]) -> None:
        super().__init__(
            f"Unknown style {name!r}; available: {', '.join(sorted(available))}"
        )
        self.name = name


# ============================================================================
# Invariant Violations
# ============================================================================


class EngineInvariantError(CiteForgeError):
    """
    Raised when an internal engine invariant is violated.

    This is a programming error, not a recoverable runtime condition.
    """

    error_code = "CF-BUG-000"
    why_it_happened = "An internal invariant of the rendering engine was violated"
    how_to_fix = ["Report the bug together with the style and entries involved"]


class DisambiguationError(EngineInvariantError):
    """Raised when entries remain identical after the year-suffix fallback."""

    error_code = "CF-BUG-001"
    why_it_happened = (
        "Two or more entries still render identically after every "
        "disambiguation method and the year-suffix fallback were applied"
    )
