"""
Tests for the Citation Driver.

Test Strategy
-------------
- Feed events in document order and assert on positions, numbers and
  rendered text
- Use the built-in styles for collision scenarios and small inline
  styles where only positions or numbering matter
- Check that rejected events leave the session untouched

Organization
------------
- TestEntryStore: arena add/lookup/limits
- TestPositions: first, ibid, ibid-with-locator, subsequent, near-note
- TestValidation: unknown ids and out-of-order positions
- TestNumbering: citation numbers, nocite, note numbers
- TestCollisions: year-suffix scenarios and dirty tracking
- TestBibliography: ordering and subsequent-author-substitute
"""

from dataclasses import replace

import pytest

from citeforge.citation.driver import (
    CitationDriver,
    CitationEvent,
    CitationItem,
    EntryStore,
)
from citeforge.citation.locale import Term
from citeforge.citation.style import (
    Formatting,
    Group,
    Layout,
    Position,
    Section,
    TermForm,
    Text,
)
from citeforge.citation.styles import get_style
from citeforge.citation.types import EntryType, PersonName, StructuredDate
from citeforge.core.config import EngineConfig
from citeforge.core.exceptions import (
    CapacityError,
    CitationOrderError,
    DuplicateEntryError,
    UnknownEntryError,
)


@pytest.fixture
def entries(entry_factory):
    """Three unrelated entries A, B and C."""
    return [
        entry_factory(entry_id, title=f"Title {entry_id}", issued=StructuredDate(2000 + n))
        for n, entry_id in enumerate(("A", "B", "C"))
    ]


@pytest.fixture
def title_style(style_factory):
    """A style whose citation is just the title."""
    return style_factory(Text(variable="title"))


def _process_all(driver, *events):
    """Process events given as tuples of ids (or CitationItems)."""
    results = []
    for position, ids in enumerate(events, start=1):
        items = tuple(
            item if isinstance(item, CitationItem) else CitationItem(item) for item in ids
        )
        results.append(driver.process(CitationEvent(items, position)))
    return results


def _positions(driver):
    return [driver.positions(index) for index in range(driver.event_count)]


# ============================================================================
# Test Classes
# ============================================================================


class TestEntryStore:
    """Tests for EntryStore."""

    def test_add_and_lookup(self, entries):
        """Test entries are addressed by insertion index."""
        store = EntryStore(entries)

        assert store.index_of("B") == 1
        assert store.get(2).id == "C"
        assert store.ids == ["A", "B", "C"]
        assert "A" in store
        assert len(store) == 3

    def test_duplicate_rejected(self, entries):
        """Test a second entry with the same id is refused."""
        store = EntryStore(entries)

        with pytest.raises(DuplicateEntryError) as exc_info:
            store.add(entries[0])

        assert exc_info.value.entry_id == "A"

    def test_capacity(self, entries):
        """Test the store refuses entries beyond its limit."""
        store = EntryStore(max_entries=2)
        store.add(entries[0])
        store.add(entries[1])

        with pytest.raises(CapacityError):
            store.add(entries[2])

        assert len(store) == 2

    def test_unknown_id(self):
        """Test unknown ids raise UnknownEntryError."""
        store = EntryStore()

        with pytest.raises(UnknownEntryError):
            store.index_of("missing")

        assert store.by_id("missing") is None


class TestPositions:
    """Tests for cite positions."""

    def test_first_then_ibid(self, entries, title_style):
        """Test a repeat of the previous cite is ibid."""
        driver = CitationDriver(EntryStore(entries), title_style)

        _process_all(driver, ("A",), ("A",))

        assert _positions(driver) == [(Position.FIRST,), (Position.IBID,)]

    def test_ibid_with_locator(self, entries, title_style):
        """Test a changed locator makes ibid-with-locator; an equal one plain ibid."""
        driver = CitationDriver(EntryStore(entries), title_style)

        _process_all(
            driver,
            (CitationItem("A", locator="5"),),
            (CitationItem("A", locator="7"),),
            (CitationItem("A", locator="7"),),
        )

        assert _positions(driver)[1:] == [(Position.IBID_WITH_LOCATOR,), (Position.IBID,)]

    def test_dropped_locator_is_subsequent(self, entries, title_style):
        """Test a cite without locator after one with a locator is not ibid."""
        driver = CitationDriver(EntryStore(entries), title_style)

        _process_all(driver, (CitationItem("A", locator="5"),), ("A",))

        assert driver.positions(1) == (Position.NEAR_NOTE,)

    def test_intervening_cite(self, entries, title_style):
        """Test another entry in between makes a subsequent, near-note cite."""
        driver = CitationDriver(EntryStore(entries), title_style)

        _process_all(driver, ("A",), ("B",), ("A",))

        assert driver.positions(2) == (Position.NEAR_NOTE,)

    def test_near_note_distance_from_config(self, entries, title_style):
        """Test the engine setting bounds near-note."""
        driver = CitationDriver(
            EntryStore(entries), title_style, config=EngineConfig(near_note_distance=1)
        )

        _process_all(driver, ("A",), ("B",), ("A",))

        assert driver.positions(2) == (Position.SUBSEQUENT,)

    def test_style_distance_wins(self, entries, style_factory):
        """Test the style's near-note distance overrides the engine setting."""
        style = style_factory(Text(variable="title"), near_note_distance=1)
        driver = CitationDriver(
            EntryStore(entries), style, config=EngineConfig(near_note_distance=10)
        )

        _process_all(driver, ("A",), ("B",), ("A",))

        assert driver.near_note_distance == 1
        assert driver.positions(2) == (Position.SUBSEQUENT,)

    def test_same_multi_cite_repeated(self, entries, title_style):
        """Test repeating the same multi-entry citation makes every item ibid."""
        driver = CitationDriver(EntryStore(entries), title_style)

        _process_all(driver, ("A", "B"), ("A", "B"))

        assert driver.positions(1) == (Position.IBID, Position.IBID)

    def test_single_then_multi(self, entries, title_style):
        """Test the first item compares with a single-item previous event."""
        driver = CitationDriver(EntryStore(entries), title_style)

        _process_all(driver, ("A",), ("A", "B"))

        assert driver.positions(1) == (Position.IBID, Position.FIRST)

    def test_multi_then_single(self, entries, title_style):
        """Test a multi-item previous event never makes an ibid."""
        driver = CitationDriver(EntryStore(entries), title_style)

        _process_all(driver, ("A", "B"), ("A",))

        assert driver.positions(1) == (Position.NEAR_NOTE,)

    def test_repeat_within_event(self, entries, title_style):
        """Test later items compare with the item before them."""
        driver = CitationDriver(EntryStore(entries), title_style)

        _process_all(driver, ("B", "B"))

        assert driver.positions(0) == (Position.FIRST, Position.IBID)

    def test_empty_event_skipped(self, entries, title_style):
        """Test empty events neither render nor break ibid chains."""
        driver = CitationDriver(EntryStore(entries), title_style)

        results = _process_all(driver, ("A",), (), ("A",))

        assert results[1].to_text() == ""
        assert driver.positions(2) == (Position.IBID,)


class TestValidation:
    """Tests for rejected events."""

    def test_unknown_entry(self, entries, title_style):
        """Test an unknown id is rejected before any state changes."""
        driver = CitationDriver(EntryStore(entries), title_style)

        with pytest.raises(UnknownEntryError):
            driver.process(CitationEvent.of("A", "missing", position=1))

        assert driver.event_count == 0
        assert driver.citation_number("A") is None
        driver.process(CitationEvent.of("A", position=1))
        assert driver.positions(0) == (Position.FIRST,)

    def test_out_of_order(self, entries, title_style):
        """Test a position that does not increase is rejected."""
        driver = CitationDriver(EntryStore(entries), title_style)
        driver.process(CitationEvent.of("A", position=5))

        with pytest.raises(CitationOrderError):
            driver.process(CitationEvent.of("B", position=5))
        with pytest.raises(CitationOrderError):
            driver.process(CitationEvent.of("B", position=2))

        assert driver.event_count == 1
        assert driver.citation_number("B") is None
        driver.process(CitationEvent.of("A", position=6))
        assert driver.positions(1) == (Position.IBID,)


class TestNumbering:
    """Tests for citation numbers."""

    def test_first_seen_order(self, entries):
        """Test numbers follow first citation."""
        driver = CitationDriver(EntryStore(entries), get_style("ieee"))

        results = _process_all(driver, ("B",), ("A",), ("B",))

        assert [str(result) for result in results] == ["[1]", "[2]", "[1]"]
        assert driver.citation_number("A") == 2

    def test_items_sorted_by_number(self, entries):
        """Test items inside one citation follow the citation sort."""
        driver = CitationDriver(EntryStore(entries), get_style("ieee"))

        results = _process_all(driver, ("B",), ("A", "B"))

        assert str(results[1]) == "[1], [2]"

    def test_nocite_numbers_after_cited(self, entries, title_style):
        """Test nocited entries are numbered and join the bibliography."""
        driver = CitationDriver(EntryStore(entries), title_style)
        _process_all(driver, ("B",))

        driver.nocite(["C", "B"])

        assert driver.citation_number("C") == 2
        assert driver.bibliography().entry_ids == ["B", "C"]

    def test_nocite_unknown(self, entries, title_style):
        """Test nocite validates ids."""
        driver = CitationDriver(EntryStore(entries), title_style)

        with pytest.raises(UnknownEntryError):
            driver.nocite(["missing"])

    def test_first_reference_note_number(self, entries, style_factory):
        """Test first-reference-note-number points at the first citing event."""
        style = style_factory(
            Group(
                delimiter=" ",
                children=(
                    Text(variable="title"),
                    Text(variable="first-reference-note-number"),
                ),
            )
        )
        driver = CitationDriver(EntryStore(entries), style)

        results = _process_all(driver, ("A",), ("B",), ("A",))

        assert str(results[2]) == "Title A 1"


class TestCollisions:
    """Tests for disambiguation through the driver."""

    def test_year_suffix_letters(self, sample_entries):
        """Test two identical cites get letters and the earlier one is marked dirty."""
        driver = CitationDriver(EntryStore(sample_entries), get_style("apa"))

        first, second = _process_all(driver, ("E1",), ("E2",))

        assert str(first) == "(Smith, 2020)"
        assert str(second) == "(Smith, 2020b)"
        assert driver.dirty == frozenset({0})

        updates = driver.refresh()

        assert {index: str(result) for index, result in updates.items()} == {
            0: "(Smith, 2020a)"
        }
        assert driver.dirty == frozenset()

    def test_keys_rendered_once_per_entry(self, entry_factory, title_style):
        """Test citing distinct entries renders each disambiguation key once."""
        entries = [entry_factory(f"R{n}", title=f"Title {n}") for n in range(100)]
        driver = CitationDriver(EntryStore(entries), title_style)
        render_key = driver._render_key
        calls = []

        def counting(entry_index, value):
            calls.append(entry_index)
            return render_key(entry_index, value)

        driver._render_key = counting
        _process_all(driver, *[(entry.id,) for entry in entries])

        assert len(calls) == len(entries)

    def test_newcomer_gets_next_letter(self, sample_entries):
        """Test a third colliding entry receives c and earlier letters hold."""
        driver = CitationDriver(EntryStore(sample_entries), get_style("apa"))
        _process_all(driver, ("E1",), ("E2",))
        driver.refresh()

        third = driver.process(CitationEvent.of("E3", position=3))

        assert str(third) == "(Smith, 2020c)"
        assert driver.dirty == frozenset({0, 1})
        assert [str(result) for result in driver.citations()] == [
            "(Smith, 2020a)",
            "(Smith, 2020b)",
            "(Smith, 2020c)",
        ]

    def test_disambiguation_state(self, sample_entries):
        """Test per-entry state is exposed by id."""
        driver = CitationDriver(EntryStore(sample_entries), get_style("apa"))
        _process_all(driver, ("E1",), ("E2",))

        assert driver.disambiguation("E2").year_suffix_letter == "b"

    def test_given_names_separate_authors(self, entry_factory):
        """Test initials are added when they separate authors."""
        entries = [
            entry_factory(
                entry_id,
                author=[PersonName(family="Smith", given=given)],
                issued=StructuredDate(2020),
                title=entry_id,
            )
            for entry_id, given in (("J", "John"), ("A", "Alice"))
        ]
        driver = CitationDriver(EntryStore(entries), get_style("apa"))

        _process_all(driver, ("J",), ("A",))

        assert [str(result) for result in driver.citations()] == [
            "(J. Smith, 2020)",
            "(A. Smith, 2020)",
        ]

    def test_empty_citation_forms_do_not_collide(self, entries, style_factory):
        """Test entries rendering nothing are left alone."""
        driver = CitationDriver(EntryStore(entries), style_factory(Text(variable="note")))

        results = _process_all(driver, ("A",), ("B",))

        assert [str(result) for result in results] == ["", ""]
        assert driver.disambiguation("B").year_suffix is None

    def test_ibid_in_notes(self, journal_article):
        """Test repeated note cites collapse to Ibid."""
        driver = CitationDriver(EntryStore([journal_article]), get_style("chicago-note"))

        results = _process_all(
            driver,
            (CitationItem("ref1", locator="5"),),
            (CitationItem("ref1", locator="5"),),
            (CitationItem("ref1", locator="7"),),
        )

        assert [str(result) for result in results[1:]] == ["Ibid.", "Ibid., 7."]

    def test_style_terms_override_locale(self, journal_article):
        """Test terms defined by the style replace locale terms."""
        style = replace(
            get_style("chicago-note"),
            locale_terms={("ibid", TermForm.LONG): Term("id.")},
        )
        driver = CitationDriver(EntryStore([journal_article]), style)

        results = _process_all(driver, ("ref1",), ("ref1",))

        assert str(results[1]) == "Id."


class TestBibliography:
    """Tests for CitationDriver.bibliography."""

    def test_sorted_with_letters(self, sample_entries):
        """Test author-date bibliographies keep letters in title order."""
        driver = CitationDriver(EntryStore(sample_entries), get_style("apa"))
        _process_all(driver, ("E2",), ("E1",))

        bibliography = driver.bibliography()

        assert bibliography.entry_ids == ["E1", "E2"]
        assert bibliography.entries == ["Smith. (2020b). Alpha.", "Smith. (2020a). Beta."]

    def test_empty_without_citations(self, entries, title_style):
        """Test nothing cited gives an empty bibliography."""
        driver = CitationDriver(EntryStore(entries), title_style)

        assert driver.bibliography().reference_count == 0

    def test_subsequent_author_substitute(self, journal_article, entry_factory):
        """Test repeated leading names are replaced by the substitute string."""
        second = entry_factory(
            "ref2",
            author=list(journal_article.names("author")),
            title="Another Article",
            container_title="Journal of Testing",
            issued=StructuredDate(2021),
        )
        driver = CitationDriver(
            EntryStore([journal_article, second]), get_style("chicago-note")
        )
        _process_all(driver, ("ref1",), ("ref2",))

        entries = driver.bibliography().entries

        assert entries[0].startswith("Smith, John, and Jane Jones. “Another Article.”")
        assert entries[1].startswith("———. “Test Article.”")

    def test_layout_formatting_applied(self, entries, title_style):
        """Test the bibliography layout's own affixes wrap every entry."""
        layout = Layout(
            children=(Text(variable="title"),),
            formatting=Formatting(prefix="<", suffix=">."),
        )
        style = replace(title_style, bibliography=Section(layout=layout))
        driver = CitationDriver(EntryStore(entries), style)
        _process_all(driver, ("A",), ("B",))

        assert driver.bibliography().entries == ["<Title A>.", "<Title B>."]

    def test_note_style_entry_ends_with_period(self, entry_factory):
        """Test the layout suffix closes a note-style bibliography entry."""
        entry = entry_factory(
            "E1",
            author=[PersonName(family="Smith", given="John")],
            title="Alpha",
            container_title="J",
            page="1-5",
            issued=StructuredDate(2020),
        )
        driver = CitationDriver(EntryStore([entry]), get_style("chicago-note"))
        _process_all(driver, ("E1",))

        assert driver.bibliography().entries == ["Smith, John. “Alpha.” J (2020): 1–5."]

    def test_no_bibliography_section(self, entries):
        """Test styles without a bibliography produce an empty one."""
        style = replace(get_style("ieee"), bibliography=None)
        driver = CitationDriver(EntryStore(entries), style)
        _process_all(driver, ("A",))

        assert driver.bibliography().entries == []

    def test_book_type_irrelevant_to_numbering(self, entry_factory):
        """Test numbering ignores entry types."""
        book = entry_factory("bk", EntryType.BOOK, title="Book")
        driver = CitationDriver(EntryStore([book]), get_style("ieee"))
        _process_all(driver, ("bk",))

        assert driver.bibliography().items[0].number == 1
