"""Rendered output: semantically tagged text runs.

The engine never produces markup. Each run carries a tag (author, year,
title, locator, punctuation, ...) and a set of style flags (italic, bold,
small-caps, display:block, ...) for the caller to turn into plain or rich
text.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

from citeforge.citation.types import DATE_VARIABLES, NAME_VARIABLES, NUMBER_VARIABLES


class RunTag(str, Enum):
    """Semantic category of a text run."""

    AUTHOR = "author"
    NAMES = "names"
    YEAR = "year"
    DATE = "date"
    TITLE = "title"
    CONTAINER = "container"
    PUBLISHER = "publisher"
    LOCATOR = "locator"
    NUMBER = "number"
    CITATION_NUMBER = "citation-number"
    YEAR_SUFFIX = "year-suffix"
    IDENTIFIER = "identifier"
    TERM = "term"
    PUNCTUATION = "punctuation"
    TEXT = "text"


_VARIABLE_TAGS = {
    "author": RunTag.AUTHOR,
    "title": RunTag.TITLE,
    "title-short": RunTag.TITLE,
    "container-title": RunTag.CONTAINER,
    "container-title-short": RunTag.CONTAINER,
    "collection-title": RunTag.CONTAINER,
    "publisher": RunTag.PUBLISHER,
    "publisher-place": RunTag.PUBLISHER,
    "locator": RunTag.LOCATOR,
    "citation-number": RunTag.CITATION_NUMBER,
    "year-suffix": RunTag.YEAR_SUFFIX,
    "DOI": RunTag.IDENTIFIER,
    "ISBN": RunTag.IDENTIFIER,
    "ISSN": RunTag.IDENTIFIER,
    "PMID": RunTag.IDENTIFIER,
    "PMCID": RunTag.IDENTIFIER,
    "URL": RunTag.IDENTIFIER,
}


def tag_for_variable(variable: str) -> RunTag:
    """Map a variable name to the tag of the runs it produces."""
    if variable in _VARIABLE_TAGS:
        return _VARIABLE_TAGS[variable]
    if variable in NAME_VARIABLES:
        return RunTag.NAMES
    if variable == "issued":
        return RunTag.YEAR
    if variable in DATE_VARIABLES:
        return RunTag.DATE
    if variable in NUMBER_VARIABLES:
        return RunTag.NUMBER
    return RunTag.TEXT


@dataclass(frozen=True)
class TextRun:
    """A piece of output text with its tag and style flags."""

    text: str
    tag: RunTag = RunTag.TEXT
    variable: Optional[str] = None
    styles: frozenset[str] = frozenset()
    verbatim: bool = False

    def with_styles(self, styles: frozenset[str]) -> "TextRun":
        if not styles or styles <= self.styles:
            return self
        return replace(self, styles=self.styles | styles)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"text": self.text, "tag": self.tag.value}
        if self.variable:
            data["variable"] = self.variable
        if self.styles:
            data["styles"] = sorted(self.styles)
        return data


# ============================================================================
# Run list helpers
# ============================================================================


def punctuation(text: str) -> TextRun:
    return TextRun(text, RunTag.PUNCTUATION)


def plain_text(runs: Iterable[TextRun]) -> str:
    return "".join(run.text for run in runs)


def is_empty(runs: Sequence[TextRun]) -> bool:
    return not any(run.text for run in runs)


def apply_affixes(runs: list[TextRun], prefix: str, suffix: str) -> list[TextRun]:
    """Attach affixes only around non-empty output."""
    if is_empty(runs):
        return []
    if not prefix and not suffix:
        return runs
    wrapped = list(runs)
    if prefix:
        wrapped.insert(0, punctuation(prefix))
    if suffix:
        wrapped.append(punctuation(suffix))
    return wrapped


def add_styles(runs: list[TextRun], styles: frozenset[str]) -> list[TextRun]:
    if not styles:
        return runs
    return [run.with_styles(styles) for run in runs]


def join_runs(groups: Iterable[list[TextRun]], delimiter: str) -> list[TextRun]:
    """Join non-empty groups with a delimiter run."""
    joined: list[TextRun] = []
    for group in groups:
        if is_empty(group):
            continue
        if joined and delimiter:
            joined.append(punctuation(delimiter))
        joined.extend(group)
    return joined


_TERMINAL = (".", "?", "!")


def normalize_punctuation(
    runs: Iterable[TextRun], punctuation_in_quote: bool = False
) -> tuple[TextRun, ...]:
    """Collapse duplicated punctuation and spaces across run boundaries.

    ``"Why?" + "."`` gives ``"Why?"``, ``"J." + ". "`` gives ``"J. "``,
    ``", " + ", "`` keeps one comma. With ``punctuation_in_quote`` a
    period or comma following a closing quote moves inside it.
    """
    result: list[TextRun] = []
    for run in runs:
        text = run.text
        if not text:
            continue
        if result:
            previous = result[-1].text
            if previous.endswith(" ") and text.startswith(" "):
                text = text.lstrip(" ")
            if text.startswith(".") and previous.endswith(_TERMINAL):
                text = text[1:]
            elif text[:1] in (",", ";", ":") and previous.endswith(text[0]):
                text = text[1:]
            if (
                punctuation_in_quote
                and text[:1] in (".", ",")
                and previous.endswith("”")
            ):
                moved = previous[:-1] + text[0] + "”"
                result[-1] = replace(result[-1], text=moved)
                text = text[1:]
            if result[-1].text.endswith(" ") and text.startswith(" "):
                text = text.lstrip(" ")
        if text:
            result.append(run if text == run.text else replace(run, text=text))
    return tuple(result)


# ============================================================================
# Results
# ============================================================================


@dataclass(frozen=True)
class RenderedCitation:
    """The output for one citation event or one bibliography entry."""

    runs: tuple[TextRun, ...]
    entry_ids: tuple[str, ...] = ()
    event_index: Optional[int] = None

    def to_text(self) -> str:
        return plain_text(self.runs)

    def __str__(self) -> str:
        return self.to_text()

    def tagged(self, tag: RunTag) -> list[TextRun]:
        return [run for run in self.runs if run.tag == tag]

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.to_text(),
            "entries": list(self.entry_ids),
            "event": self.event_index,
            "runs": [run.to_dict() for run in self.runs],
        }


@dataclass(frozen=True)
class BibliographyItem:
    entry_id: str
    rendered: RenderedCitation
    number: Optional[int] = None

    @property
    def text(self) -> str:
        return self.rendered.to_text()


@dataclass
class Bibliography:
    """Generated bibliography output."""

    items: list[BibliographyItem] = field(default_factory=list)
    style: str = ""

    @property
    def entries(self) -> list[str]:
        """Plain-text entries in bibliography order."""
        return [item.text for item in self.items]

    @property
    def entry_ids(self) -> list[str]:
        return [item.entry_id for item in self.items]

    @property
    def reference_count(self) -> int:
        return len(self.items)

    def to_string(self) -> str:
        """Convert to single string."""
        return "\n".join(self.entries)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "entries": self.entries,
            "ids": self.entry_ids,
            "style": self.style,
            "count": self.reference_count,
        }
