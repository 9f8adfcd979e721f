"""
Citation Driver: consumes citation events in document order.

For every incoming event the driver:

1. validates it (known entry ids, increasing document position)
2. computes each cite's position (first, subsequent, ibid, near-note)
3. assigns first-seen citation numbers
4. asks the disambiguation engine to resolve collisions over every cited
   entry and marks earlier events of affected entries dirty
5. renders the event and appends it to the history

Arena Model
-----------
Entries live in an EntryStore and are addressed by integer index; events
are addressed by their index in the history list. Dirty flags are a set of
event indexes, so a later citation invalidating an earlier render is a
set insertion, not a back-pointer. refresh() re-renders dirty events with
the positions recorded when they were processed.

Position Rules
--------------
- FIRST: the entry was never cited before
- IBID: same entry as the preceding cite, locators equal or both absent
- IBID_WITH_LOCATOR: same entry, the current locator differs
- SUBSEQUENT: any other repeat (also an ibid candidate whose predecessor
  had a locator while this cite has none)

The preceding cite of an event's first item is the single item of the
previous non-empty event; an event with several items only makes an ibid
for an event citing exactly the same entries in the same order. Later
items of an event compare with the item before them. Near-note is
reported alongside: the entry was cited within the near-note distance,
measured in events.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Sequence

from citeforge.citation.disambiguation import (
    DisambiguationEngine,
    DisambiguationState,
    EntryDisambiguation,
)
from citeforge.citation.interpreter import CiteContext, Interpreter, RenderContext
from citeforge.citation.locale import Locale, en_us_locale
from citeforge.citation.output import (
    Bibliography,
    BibliographyItem,
    RenderedCitation,
    TextRun,
)
from citeforge.citation.sorting import BibliographySorter
from citeforge.citation.style import Position, Section, Style
from citeforge.citation.types import NAME_VARIABLES, Entry
from citeforge.core.config import EngineConfig
from citeforge.core.exceptions import (
    CapacityError,
    CitationOrderError,
    DuplicateEntryError,
    UnknownEntryError,
)
from citeforge.core.logging import SessionLogger, get_logger

logger = get_logger(__name__)


# ============================================================================
# Inputs
# ============================================================================


@dataclass(frozen=True)
class CitationItem:
    """One cite inside a citation event."""

    entry_id: str
    locator: Optional[str] = None
    locator_type: str = "page"
    prefix: str = ""
    suffix: str = ""


@dataclass(frozen=True)
class CitationEvent:
    """A citation at a document position, citing one or more entries."""

    items: tuple[CitationItem, ...]
    position: int

    @classmethod
    def of(cls, *entry_ids: str, position: int) -> "CitationEvent":
        """Build an event citing entries without locators."""
        return cls(tuple(CitationItem(entry_id) for entry_id in entry_ids), position)

    @property
    def entry_ids(self) -> tuple[str, ...]:
        return tuple(item.entry_id for item in self.items)


# ============================================================================
# Entry store
# ============================================================================


class EntryStore:
    """Append-only arena of entries addressed by integer index.

    Args:
        entries: Initial entries
        max_entries: Capacity limit

    Raises:
        DuplicateEntryError: If an id is added twice
        CapacityError: If the store would exceed max_entries
    """

    def __init__(self, entries: Iterable[Entry] = (), max_entries: int = 10_000) -> None:
        self.max_entries = max_entries
        self._entries: list[Entry] = []
        self._index: dict[str, int] = {}
        for entry in entries:
            self.add(entry)

    def add(self, entry: Entry) -> int:
        if entry.id in self._index:
            raise DuplicateEntryError(entry.id)
        if len(self._entries) >= self.max_entries:
            raise CapacityError(
                f"Entry store is full ({self.max_entries} entries); cannot add {entry.id!r}"
            )
        self._index[entry.id] = len(self._entries)
        self._entries.append(entry)
        return self._index[entry.id]

    def index_of(self, entry_id: str) -> int:
        try:
            return self._index[entry_id]
        except KeyError:
            raise UnknownEntryError(entry_id) from None

    def get(self, index: int) -> Entry:
        return self._entries[index]

    def by_id(self, entry_id: str) -> Optional[Entry]:
        index = self._index.get(entry_id)
        return self._entries[index] if index is not None else None

    @property
    def ids(self) -> list[str]:
        return [entry.id for entry in self._entries]

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._index

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)


# ============================================================================
# Driver
# ============================================================================


@dataclass
class _EventRecord:
    event: CitationEvent
    entry_indexes: tuple[int, ...]
    cites: tuple[CiteContext, ...]
    rendered: RenderedCitation = field(default_factory=lambda: RenderedCitation(()))


class CitationDriver:
    """
    Owns a citation session: history, numbering and disambiguation state.

    Single writer; callers serialize access.

    Args:
        store: Entries of the session
        style: Style to render with
        locale: Locale table (style term overrides are merged in)
        config: Engine settings (near-note distance fallback)
        session_id: Identifier used in log output
    """

    def __init__(
        self,
        store: EntryStore,
        style: Style,
        locale: Optional[Locale] = None,
        config: Optional[EngineConfig] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.store = store
        self.style = style
        self.config = config or EngineConfig()
        self.locale = (locale or en_us_locale()).with_terms(style.locale_terms)
        self.interpreter = Interpreter()
        self.sorter = BibliographySorter(self.interpreter)
        self.state = DisambiguationState()
        self.engine = DisambiguationEngine(
            style.citation.disambiguation,
            style.citation.givenname_rule,
            self.state,
        )
        self.session = SessionLogger(session_id or uuid.uuid4().hex[:8])

        distance = style.citation.near_note_distance
        self.near_note_distance = (
            distance if distance is not None else self.config.near_note_distance
        )

        self._events: list[_EventRecord] = []
        self._numbers: dict[int, int] = {}
        self._first_note: dict[int, int] = {}
        self._last_cited: dict[int, int] = {}
        self._entry_events: dict[int, set[int]] = {}
        self._dirty: set[int] = set()
        self._last_position: Optional[int] = None
        self._previous: Optional[int] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(self, event: CitationEvent) -> RenderedCitation:
        """Process the next event in document order and return its render.

        Raises:
            UnknownEntryError: If an item cites an unregistered entry
            CitationOrderError: If the position does not increase
        """
        indexes = tuple(self.store.index_of(item.entry_id) for item in event.items)
        if self._last_position is not None and event.position <= self._last_position:
            raise CitationOrderError(
                f"Event at position {event.position} follows position "
                f"{self._last_position}"
            )

        event_index = len(self._events)
        self._last_position = event.position
        for entry_index in indexes:
            self._register(entry_index, event_index)

        record = _EventRecord(event, indexes, self._positions(event, indexes, event_index))
        self._events.append(record)
        for entry_index in indexes:
            self._entry_events.setdefault(entry_index, set()).add(event_index)
        if event.items:
            self._previous = event_index

        affected = self._disambiguate()
        dirty_before = len(self._dirty)
        for entry_index in affected:
            self._dirty.update(self._entry_events.get(entry_index, ()))
        self._dirty.discard(event_index)

        record.rendered = self._render_event(event_index)
        self.session.event_processed(
            event_index, len(event.items), dirty=len(self._dirty) - dirty_before
        )
        return record.rendered

    def nocite(self, entry_ids: Sequence[str]) -> None:
        """Include entries in the bibliography without citing them."""
        indexes = [self.store.index_of(entry_id) for entry_id in entry_ids]
        added = False
        for entry_index in indexes:
            if entry_index not in self._numbers:
                self._numbers[entry_index] = len(self._numbers) + 1
                added = True
        if added:
            for entry_index in self._disambiguate():
                self._dirty.update(self._entry_events.get(entry_index, ()))

    @property
    def dirty(self) -> frozenset[int]:
        """Indexes of events whose stored render is out of date."""
        return frozenset(self._dirty)

    def refresh(self) -> dict[int, RenderedCitation]:
        """Re-render dirty events; returns the new renders by event index."""
        updated = {}
        for event_index in sorted(self._dirty):
            record = self._events[event_index]
            record.rendered = self._render_event(event_index)
            updated[event_index] = record.rendered
        self._dirty.clear()
        if updated:
            self.session.events_refreshed(len(updated))
        return updated

    def citations(self) -> list[RenderedCitation]:
        """Current renders of every event, refreshing dirty ones first."""
        self.refresh()
        return [record.rendered for record in self._events]

    def positions(self, event_index: int) -> tuple[Position, ...]:
        """Reported positions of the items of one event."""
        return tuple(cite.state for cite in self._events[event_index].cites)

    def citation_number(self, entry_id: str) -> Optional[int]:
        return self._numbers.get(self.store.index_of(entry_id))

    def disambiguation(self, entry_id: str) -> EntryDisambiguation:
        return self.state.get(self.store.index_of(entry_id))

    @property
    def event_count(self) -> int:
        return len(self._events)

    def bibliography(self) -> Bibliography:
        """Sorted, rendered bibliography of every cited or nocited entry."""
        section = self.style.bibliography
        if section is None:
            logger.debug("Style has no bibliography section", style=self.style.id)
            return Bibliography(style=self.style.id)

        indexes = list(self._numbers)
        entries = [self.store.get(index) for index in indexes]
        order = self.sorter.sort(
            entries,
            section.sort,
            lambda position: self._bibliography_context(section, indexes[position]),
        )

        items = []
        previous_names: Optional[str] = None
        for position in order:
            entry_index = indexes[position]
            context = self._bibliography_context(section, entry_index)
            runs = self.interpreter.render_item(
                self.store.get(entry_index), section.layout, context
            )
            substituted, previous_names = self._substitute_author(
                runs, previous_names, section.subsequent_author_substitute
            )
            finished = self.interpreter.finish_layout(substituted, section.layout, self.locale)
            rendered = RenderedCitation(finished, (self.store.get(entry_index).id,))
            items.append(
                BibliographyItem(
                    self.store.get(entry_index).id, rendered, self._numbers[entry_index]
                )
            )

        self.session.bibliography_built(len(items))
        return Bibliography(items=items, style=self.style.id)

    # ------------------------------------------------------------------
    # Positions and numbering
    # ------------------------------------------------------------------

    def _register(self, entry_index: int, event_index: int) -> None:
        if entry_index not in self._numbers:
            self._numbers[entry_index] = len(self._numbers) + 1
        self._first_note.setdefault(entry_index, event_index + 1)

    def _positions(
        self, event: CitationEvent, indexes: tuple[int, ...], event_index: int
    ) -> tuple[CiteContext, ...]:
        previous = self._events[self._previous] if self._previous is not None else None
        same_set = previous is not None and previous.entry_indexes == indexes

        cites = []
        for k, (item, entry_index) in enumerate(zip(event.items, indexes)):
            last = self._last_cited.get(entry_index)
            if last is None:
                position = Position.FIRST
                near_note = False
            else:
                prior = self._prior_item(k, event, previous, same_set)
                if prior is not None and prior.entry_id == item.entry_id:
                    position = _ibid_position(prior, item)
                else:
                    position = Position.SUBSEQUENT
                near_note = event_index - last <= self.near_note_distance
            self._last_cited[entry_index] = event_index
            cites.append(
                CiteContext(
                    position=position,
                    near_note=near_note,
                    locator=item.locator,
                    locator_type=item.locator_type,
                    citation_number=self._numbers[entry_index],
                    first_note_number=self._first_note[entry_index],
                )
            )
        return tuple(cites)

    @staticmethod
    def _prior_item(
        k: int,
        event: CitationEvent,
        previous: Optional[_EventRecord],
        same_set: bool,
    ) -> Optional[CitationItem]:
        if same_set and previous is not None:
            return previous.event.items[k]
        if k > 0:
            return event.items[k - 1]
        if previous is not None and len(previous.event.items) == 1:
            return previous.event.items[0]
        return None

    # ------------------------------------------------------------------
    # Disambiguation
    # ------------------------------------------------------------------

    def _key_context(self, entry_index: int, value: EntryDisambiguation) -> RenderContext:
        cite = CiteContext(
            position=Position.SUBSEQUENT,
            citation_number=self._numbers.get(entry_index),
        )
        return RenderContext(
            self.style, self.locale, self.style.citation, cite, value
        )

    def _render_key(self, entry_index: int, value: EntryDisambiguation) -> str:
        runs = self.interpreter.render_citation(
            [(self.store.get(entry_index), self._key_context(entry_index, value), "", "")],
            self.style.citation.layout,
            self.locale,
        )
        return "".join(run.text for run in runs)

    def _name_count(self, entry_index: int) -> int:
        entry = self.store.get(entry_index)
        return max((len(entry.names(v)) for v in NAME_VARIABLES), default=0)

    def _disambiguate(self) -> set[int]:
        cited = list(self._numbers)
        affected = self.engine.resolve(cited, self._render_key, self._name_count)
        if affected:
            self.session.entries_disambiguated(cited=len(cited), changed=len(affected))
        return affected

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render_event(self, event_index: int) -> RenderedCitation:
        record = self._events[event_index]
        section = self.style.citation
        base = RenderContext(self.style, self.locale, section)
        items = [
            (
                self.store.get(entry_index),
                base.for_cite(cite, self.state.get(entry_index)),
                item.prefix,
                item.suffix,
            )
            for item, entry_index, cite in zip(
                record.event.items, record.entry_indexes, record.cites
            )
        ]
        if section.sort and len(items) > 1:
            order = self.sorter.sort(
                [entry for entry, _, _, _ in items],
                section.sort,
                lambda position: items[position][1],
            )
            items = [items[position] for position in order]
        runs = self.interpreter.render_citation(items, section.layout, self.locale)
        return RenderedCitation(runs, record.event.entry_ids, event_index)

    def _bibliography_context(self, section: Section, entry_index: int) -> RenderContext:
        cite = CiteContext(citation_number=self._numbers[entry_index])
        return RenderContext(
            self.style, self.locale, section, cite, self.state.get(entry_index)
        )

    @staticmethod
    def _substitute_author(
        runs: Sequence[TextRun],
        previous: Optional[str],
        substitute: Optional[str],
    ) -> tuple[list[TextRun], Optional[str]]:
        """Replace leading names repeating the previous entry's names."""
        runs = list(runs)
        lead = 0
        while lead < len(runs) and runs[lead].variable in NAME_VARIABLES:
            lead += 1
        if lead == 0:
            return runs, None
        names = "".join(run.text for run in runs[:lead])
        if substitute is None or names != previous:
            return runs, names
        first = runs[0]
        replaced = [TextRun(substitute, first.tag, first.variable, first.styles)]
        return replaced + runs[lead:], names


def _ibid_position(prior: CitationItem, current: CitationItem) -> Position:
    if current.locator is None:
        return Position.IBID if prior.locator is None else Position.SUBSEQUENT
    if prior.locator == current.locator and prior.locator_type == current.locator_type:
        return Position.IBID
    return Position.IBID_WITH_LOCATOR

