"""
Shared pytest fixtures and configuration for CiteForge tests.

This file is automatically discovered by pytest and provides fixtures
that can be used across all test files.

Fixture Organization
--------------------
- **locale**: Built-in en-US locale table
- **interpreter**: Stateless style interpreter
- **entry_factory**: Builds entries from keyword variables
- **sample_entries**: The Smith 2020 trio used by the collision scenarios
- **journal_article / edited_book**: Fully populated entries
- **context_factory**: Builds RenderContexts for a style section

All fixtures are designed to be reusable, generic, and composable.
"""

from typing import Any, Callable, Dict, List, Optional

import pytest

from citeforge.citation.interpreter import CiteContext, Interpreter, RenderContext
from citeforge.citation.locale import Locale, en_us_locale
from citeforge.citation.style import Layout, Section, Style, StyleNode
from citeforge.citation.types import Entry, EntryType, PersonName, StructuredDate


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def locale() -> Locale:
    """Built-in American English locale."""
    return en_us_locale()


@pytest.fixture
def interpreter() -> Interpreter:
    """A fresh interpreter (holds no session state)."""
    return Interpreter()


@pytest.fixture
def context_factory(locale: Locale) -> Callable[..., RenderContext]:
    """Build a RenderContext for a style's citation section.

    Example:
        def test_render(context_factory):
            context = context_factory(style, position=Position.IBID)
    """

    def _build(
        style: Style,
        section: Optional[Section] = None,
        **cite: Any,
    ) -> RenderContext:
        return RenderContext(
            style=style,
            locale=locale,
            section=section or style.citation,
            cite=CiteContext(**cite),
        )

    return _build


@pytest.fixture
def style_factory() -> Callable[..., Style]:
    """Build a minimal style around citation layout nodes.

    Example:
        style = style_factory(Text(variable="title"), macros={...})
    """

    def _build(
        *nodes: StyleNode,
        macros: Optional[Dict[str, tuple]] = None,
        **section: Any,
    ) -> Style:
        layout = Layout(children=tuple(nodes))
        return Style(
            id="test",
            citation=Section(layout=layout, **section),
            bibliography=Section(layout=layout),
            macros=macros or {},
        )

    return _build


# ============================================================================
# Entry Fixtures
# ============================================================================


@pytest.fixture
def entry_factory() -> Callable[..., Entry]:
    """Build an entry from keyword variables.

    Underscores in keyword names become hyphens, so
    ``container_title="Nature"`` sets ``container-title``.
    """

    def _build(
        entry_id: str = "ref1",
        entry_type: EntryType = EntryType.ARTICLE_JOURNAL,
        **variables: Any,
    ) -> Entry:
        return Entry(
            id=entry_id,
            type=entry_type,
            variables={name.replace("_", "-"): value for name, value in variables.items()},
        )

    return _build


@pytest.fixture
def sample_entries(entry_factory: Callable[..., Entry]) -> List[Entry]:
    """Three entries by Smith, 2020, differing only in title."""
    return [
        entry_factory(
            entry_id,
            author=[PersonName(family="Smith")],
            issued=StructuredDate(2020),
            title=title,
        )
        for entry_id, title in (("E1", "Alpha"), ("E2", "Beta"), ("E3", "Gamma"))
    ]


@pytest.fixture
def journal_article(entry_factory: Callable[..., Entry]) -> Entry:
    """A two-author journal article with every common variable set."""
    return entry_factory(
        "ref1",
        author=[
            PersonName(family="Smith", given="John"),
            PersonName(family="Jones", given="Jane"),
        ],
        title="Test Article",
        container_title="Journal of Testing",
        volume="10",
        issue="2",
        page="100-120",
        issued=StructuredDate(2023, 6),
        DOI="10.1234/test.2023.001",
    )


@pytest.fixture
def edited_book(entry_factory: Callable[..., Entry]) -> Entry:
    """An edited book without authors."""
    return entry_factory(
        "book1",
        EntryType.BOOK,
        editor=[PersonName(family="Doe", given="Jane")],
        title="Collected Essays",
        publisher="Academic Press",
        publisher_place="Boston",
        issued=StructuredDate(2019),
        edition="2",
    )
