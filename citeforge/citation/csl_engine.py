"""CSL engine facade.

Bundles an entry store, a style, a locale and a citation driver behind
one object, so callers can add references, cite them in document order
and generate a bibliography without wiring the pieces together."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Union

from citeforge.citation.driver import (
    CitationDriver,
    CitationEvent,
    CitationItem,
    EntryStore,
)
from citeforge.citation.locale import Locale, get_locale
from citeforge.citation.output import Bibliography, RenderedCitation
from citeforge.citation.style import Style
from citeforge.citation.styles import get_style
from citeforge.citation.types import Entry
from citeforge.core.config import Config, EngineConfig
from citeforge.core.config_loaders import apply_logging_config
from citeforge.core.exceptions import CapacityError
from citeforge.core.logging import get_logger

logger = get_logger(__name__)

CiteTarget = Union[str, CitationItem]


class CSLEngine:
    """Citation Style Language engine.

    Generates citations and bibliographies from entries using a style
    tree, either one of the built-in styles or a caller-supplied Style.

    Args:
        style: Built-in style name or a Style (default from config)
        locale: Locale tag or a Locale (default from config)
        config: Engine settings
    """

    def __init__(
        self,
        style: Union[str, Style, None] = None,
        locale: Union[str, Locale, None] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.config = config or EngineConfig()
        if isinstance(style, Style):
            self.style = style
        else:
            self.style = get_style(style or self.config.default_style)
        if isinstance(locale, Locale):
            self.locale = locale
        else:
            self.locale = get_locale(locale or self.config.default_locale)
        self.store = EntryStore(max_entries=self.config.max_entries)
        self._driver: Optional[CitationDriver] = None
        self._last_position = 0

    @classmethod
    def from_config(
        cls,
        config: Config,
        style: Union[str, Style, None] = None,
        locale: Union[str, Locale, None] = None,
    ) -> "CSLEngine":
        """Create an engine from a loaded configuration.

        The logging section is installed first, so the engine's own
        loggers follow the configured level and log file.
        """
        apply_logging_config(config)
        return cls(style=style, locale=locale, config=config.engine)

    @property
    def reference_count(self) -> int:
        """Number of stored references."""
        return len(self.store)

    @property
    def reference_ids(self) -> list[str]:
        """List of reference IDs in insertion order."""
        return self.store.ids

    @property
    def driver(self) -> CitationDriver:
        """The citation session, created on first use."""
        if self._driver is None:
            self._driver = CitationDriver(
                self.store, self.style, self.locale, self.config
            )
        return self._driver

    def add_reference(self, entry: Entry) -> bool:
        """Add a reference to the engine.

        Args:
            entry: Entry to add

        Returns:
            True if added, False when the store is full

        Raises:
            DuplicateEntryError: If the id is already stored
        """
        try:
            self.store.add(entry)
        except CapacityError:
            logger.warning(
                "Max references reached", max_entries=self.config.max_entries
            )
            return False
        return True

    def add_references(self, entries: Iterable[Entry]) -> int:
        """Add several references; returns how many were stored."""
        return sum(1 for entry in entries if self.add_reference(entry))

    def get_reference(self, ref_id: str) -> Optional[Entry]:
        """Get a reference by ID.

        Args:
            ref_id: Reference ID

        Returns:
            Entry or None
        """
        return self.store.by_id(ref_id)

    # ------------------------------------------------------------------
    # Citing
    # ------------------------------------------------------------------

    def cite(
        self,
        *targets: CiteTarget,
        locator: Optional[str] = None,
        locator_type: str = "page",
        position: Optional[int] = None,
    ) -> RenderedCitation:
        """Cite entries at the next document position.

        Plain ids take the shared ``locator``; CitationItem targets carry
        their own.

        Args:
            targets: Entry ids or CitationItems
            locator: Locator applied to plain ids
            locator_type: Locator term for ``locator``
            position: Explicit document position (default: previous + 1)

        Returns:
            The rendered citation
        """
        items = tuple(
            target
            if isinstance(target, CitationItem)
            else CitationItem(target, locator=locator, locator_type=locator_type)
            for target in targets
        )
        if position is None:
            position = self._last_position + 1
        return self.process(CitationEvent(items, position))

    def process(self, event: CitationEvent) -> RenderedCitation:
        """Process a fully specified citation event."""
        rendered = self.driver.process(event)
        self._last_position = event.position
        return rendered

    def format_citation(
        self,
        *targets: CiteTarget,
        locator: Optional[str] = None,
        locator_type: str = "page",
    ) -> str:
        """Cite entries and return the citation as plain text."""
        if not targets:
            return ""
        return self.cite(*targets, locator=locator, locator_type=locator_type).to_text()

    def updates(self) -> dict[int, str]:
        """Plain text of earlier citations whose output changed."""
        return {
            index: rendered.to_text()
            for index, rendered in self.driver.refresh().items()
        }

    def citations(self) -> list[str]:
        """Current plain text of every citation, in document order."""
        return [rendered.to_text() for rendered in self.driver.citations()]

    def nocite(self, ref_ids: Sequence[str]) -> None:
        """Include references in the bibliography without citing them."""
        self.driver.nocite(ref_ids)

    # ------------------------------------------------------------------
    # Bibliography
    # ------------------------------------------------------------------

    def generate_bibliography(self, ref_ids: Optional[list[str]] = None) -> Bibliography:
        """Generate a bibliography.

        Without ``ref_ids`` the bibliography lists every cited or nocited
        reference, or every stored reference when nothing was cited.
        With ``ref_ids`` those references are nocited and only they are
        listed.

        Args:
            ref_ids: Specific references (or all if None)

        Returns:
            Generated bibliography
        """
        driver = self.driver
        if ref_ids:
            driver.nocite(ref_ids)
        elif driver.event_count == 0:
            driver.nocite(self.store.ids)

        bibliography = driver.bibliography()
        if not ref_ids:
            return bibliography
        wanted = set(ref_ids)
        return Bibliography(
            items=[item for item in bibliography.items if item.entry_id in wanted],
            style=bibliography.style,
        )

    def clear(self) -> None:
        """Remove all references and forget the citation history."""
        self.store = EntryStore(max_entries=self.config.max_entries)
        self._driver = None
        self._last_position = 0


def create_engine(
    style: Union[str, Style] = "apa",
    locale: Union[str, Locale] = "en-US",
    config: Optional[EngineConfig] = None,
) -> CSLEngine:
    """Factory function to create CSL engine.

    Args:
        style: Citation style
        locale: Locale
        config: Engine settings

    Returns:
        Configured engine
    """
    return CSLEngine(style=style, locale=locale, config=config)


def format_references(
    entries: Iterable[Entry],
    style: Union[str, Style] = "apa",
) -> str:
    """Convenience function to format references.

    Args:
        entries: Entries to format
        style: Citation style

    Returns:
        Formatted bibliography string
    """
    engine = create_engine(style=style)
    engine.add_references(entries)
    return engine.generate_bibliography().to_string()
