"""Bibliographic data model.

Entries are immutable records owned by the caller's entry store; the
engine refers to them by id. Variable values are typed:

- FormattableString: text with verbatim spans exempt from case transforms
- tuple[PersonName, ...]: ordered name list
- StructuredDate: year/month/day/season with an optional range end
- NumberValue: integer with optional affixes, or free text
- SerialNumbers: DOI/ISBN/ISSN style identifiers
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Union


class EntryType(str, Enum):
    """Closed set of entry types."""

    ARTICLE = "article"
    ARTICLE_JOURNAL = "article-journal"
    ARTICLE_MAGAZINE = "article-magazine"
    ARTICLE_NEWSPAPER = "article-newspaper"
    BOOK = "book"
    CHAPTER = "chapter"
    DATASET = "dataset"
    ENTRY = "entry"
    MANUSCRIPT = "manuscript"
    MOTION_PICTURE = "motion-picture"
    ORIGINAL = "original"
    PAPER_CONFERENCE = "paper-conference"
    PATENT = "patent"
    PERFORMANCE = "performance"
    PERIODICAL = "periodical"
    POST = "post"
    POST_WEBLOG = "post-weblog"
    REPORT = "report"
    SOFTWARE = "software"
    THESIS = "thesis"
    WEBPAGE = "webpage"
    MISC = "misc"


NAME_VARIABLES = frozenset(
    [
        "author",
        "chair",
        "collection-editor",
        "composer",
        "container-author",
        "director",
        "editor",
        "editorial-director",
        "illustrator",
        "interviewer",
        "original-author",
        "recipient",
        "reviewed-author",
        "translator",
    ]
)

DATE_VARIABLES = frozenset(
    ["accessed", "event-date", "issued", "original-date", "submitted"]
)

NUMBER_VARIABLES = frozenset(
    [
        "chapter-number",
        "citation-number",
        "collection-number",
        "edition",
        "first-reference-note-number",
        "issue",
        "locator",
        "number",
        "number-of-pages",
        "number-of-volumes",
        "page",
        "page-first",
        "part-number",
        "volume",
    ]
)

SERIAL_VARIABLES = frozenset(["DOI", "ISBN", "ISSN", "PMCID", "PMID", "URL"])


# ============================================================================
# Strings
# ============================================================================

_BRACE_SPAN = re.compile(r"\{([^{}]*)\}")


@dataclass(frozen=True)
class FormattableString:
    """Text with verbatim spans that case transforms must leave untouched.

    Spans are half-open (start, end) character offsets into ``text``,
    sorted and non-overlapping.
    """

    text: str
    verbatim: tuple[tuple[int, int], ...] = ()

    def __post_init__(self) -> None:
        spans = tuple(sorted(self.verbatim))
        for start, end in spans:
            if not 0 <= start <= end <= len(self.text):
                raise ValueError(f"Verbatim span ({start}, {end}) outside text")
        for (_, prev_end), (next_start, _) in zip(spans, spans[1:]):
            if next_start < prev_end:
                raise ValueError("Verbatim spans must not overlap")
        object.__setattr__(self, "verbatim", spans)

    @classmethod
    def parse(cls, marked: str) -> "FormattableString":
        """Build from text where ``{...}`` marks verbatim spans.

        >>> FormattableString.parse("The {CIA} Files").verbatim
        ((4, 7),)
        """
        parts: list[str] = []
        spans: list[tuple[int, int]] = []
        cursor = 0
        length = 0
        for match in _BRACE_SPAN.finditer(marked):
            before = marked[cursor : match.start()]
            parts.append(before)
            length += len(before)
            inner = match.group(1)
            spans.append((length, length + len(inner)))
            parts.append(inner)
            length += len(inner)
            cursor = match.end()
        parts.append(marked[cursor:])
        return cls("".join(parts), tuple(spans))

    @classmethod
    def verbatim_text(cls, text: str) -> "FormattableString":
        """Wrap text that must never be case-transformed."""
        return cls(text, ((0, len(text)),) if text else ())

    def segments(self) -> Iterator[tuple[str, bool]]:
        """Yield (text, is_verbatim) pairs covering the whole string."""
        cursor = 0
        for start, end in self.verbatim:
            if start > cursor:
                yield self.text[cursor:start], False
            if end > start:
                yield self.text[start:end], True
            cursor = end
        if cursor < len(self.text):
            yield self.text[cursor:], False

    def __str__(self) -> str:
        return self.text

    def __bool__(self) -> bool:
        return bool(self.text)


# ============================================================================
# Names
# ============================================================================


@dataclass(frozen=True)
class PersonName:
    """A personal or institutional name.

    ``literal`` holds institutional names that are never split or
    initialized.
    """

    family: str = ""
    given: str = ""
    particle: str = ""  # non-dropping, e.g. "van" in "van Gogh"
    dropping_particle: str = ""  # e.g. "de" in "Jean de La Fontaine"
    suffix: str = ""
    literal: str = ""

    @property
    def is_literal(self) -> bool:
        """Whether this is an institutional name."""
        return bool(self.literal) or not (self.family or self.given)

    @property
    def family_with_particle(self) -> str:
        """Family name preceded by its non-dropping particle."""
        return join_words(self.particle, self.family)

    def initials(self, initialize_with: str = ". ", hyphenate: bool = True) -> str:
        """Initialize the given name.

        >>> PersonName("Günther", "Hans-Joseph").initials(".")
        'H.-J.'
        >>> PersonName("Mädje", "Laurenz Elias").initials(". ")
        'L. E.'
        """
        pieces: list[str] = []
        for word in self.given.split():
            hyphen_parts = [p for p in word.split("-") if p]
            initials = [_initial(p) + initialize_with.rstrip() for p in hyphen_parts]
            if hyphenate:
                pieces.append("-".join(initials))
            else:
                pieces.append("".join(initials))
        spacer = " " if initialize_with.endswith(" ") else ""
        return spacer.join(pieces).strip()

    def sort_parts(self) -> tuple[str, str, str]:
        """(family with particle, given with dropping particle, suffix)."""
        if self.is_literal:
            return (self.literal or "", "", "")
        return (
            self.family_with_particle,
            join_words(self.given, self.dropping_particle),
            self.suffix,
        )


def _initial(word: str) -> str:
    return word[0].upper() if word else ""


def join_words(*words: str) -> str:
    joined = ""
    for word in words:
        if not word:
            continue
        if not joined or joined.endswith(("'", "’", "-")):
            joined += word
        else:
            joined += " " + word
    return joined


NameList = tuple[PersonName, ...]


# ============================================================================
# Dates
# ============================================================================


@dataclass(frozen=True)
class StructuredDate:
    """A calendar date with optional granularity and range end.

    Comparison orders by year, then month, then day; missing parts sort
    before present ones.
    """

    year: int
    month: Optional[int] = None
    day: Optional[int] = None
    season: Optional[int] = None  # 1=spring .. 4=winter
    approximate: bool = False
    end: Optional["StructuredDate"] = None

    def __post_init__(self) -> None:
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValueError(f"Month out of range: {self.month}")
        if self.day is not None and not 1 <= self.day <= 31:
            raise ValueError(f"Day out of range: {self.day}")
        if self.season is not None and not 1 <= self.season <= 4:
            raise ValueError(f"Season out of range: {self.season}")
        if self.day is not None and self.month is None:
            raise ValueError("A day requires a month")

    def sort_key(self) -> tuple[int, int, int]:
        """Key comparing year, then month, then day."""
        return (self.year, self.month or 0, self.day or 0)

    @property
    def is_range(self) -> bool:
        """Whether the date has a distinct range end."""
        return self.end is not None and self.end.sort_key() != self.sort_key()

    def __lt__(self, other: "StructuredDate") -> bool:
        return self.sort_key() < other.sort_key()

    def __le__(self, other: "StructuredDate") -> bool:
        return self.sort_key() <= other.sort_key()

    def __gt__(self, other: "StructuredDate") -> bool:
        return self.sort_key() > other.sort_key()

    def __ge__(self, other: "StructuredDate") -> bool:
        return self.sort_key() >= other.sort_key()


# ============================================================================
# Numbers
# ============================================================================

_AFFIXED_NUMBER = re.compile(r"^([^\d\s]*)(\d+)([^\d\s]*)$")
_PLURAL_MARKERS = re.compile(r"\d\s*(?:[-–—&,]|and)\s*\S")
_NUMERIC_RANGE = re.compile(r"^\s*[A-Za-z]*\d+[A-Za-z]*(?:\s*[-–—&,]\s*[A-Za-z]*\d+[A-Za-z]*)*\s*$")


@dataclass(frozen=True)
class NumberValue:
    """A number variable: an integer with optional affixes, a range, or text."""

    raw: str

    @classmethod
    def of(cls, value: Union[int, str]) -> "NumberValue":
        return cls(str(value))

    @property
    def integer(self) -> Optional[int]:
        """The value as int when it is exactly an integer, else None."""
        text = self.raw.strip()
        if text.isdigit():
            return int(text)
        return None

    @property
    def affixed(self) -> Optional[tuple[str, int, str]]:
        """(prefix, number, suffix) for values like ``A12`` or ``2nd``."""
        match = _AFFIXED_NUMBER.match(self.raw.strip())
        if not match:
            return None
        return match.group(1), int(match.group(2)), match.group(3)

    @property
    def is_numeric(self) -> bool:
        """Whether every component of the value contains digits."""
        return bool(_NUMERIC_RANGE.match(self.raw))

    @property
    def is_plural(self) -> bool:
        """Whether the value is a range or list (``3-5``, ``1, 4``)."""
        return bool(_PLURAL_MARKERS.search(self.raw))

    def __str__(self) -> str:
        return self.raw

    def __bool__(self) -> bool:
        return bool(self.raw.strip())


@dataclass(frozen=True)
class SerialNumbers:
    """Identifiers such as DOI, ISBN or ISSN."""

    numbers: tuple[tuple[str, str], ...] = ()

    @classmethod
    def of(cls, **numbers: str) -> "SerialNumbers":
        return cls(tuple((k, v) for k, v in numbers.items() if v))

    def get(self, kind: str) -> Optional[str]:
        lowered = kind.lower()
        for name, value in self.numbers:
            if name.lower() == lowered:
                return value
        return None

    def __bool__(self) -> bool:
        return bool(self.numbers)


VariableValue = Union[
    FormattableString, NameList, StructuredDate, NumberValue, SerialNumbers
]


# ============================================================================
# Entries
# ============================================================================


@dataclass(frozen=True)
class Entry:
    """An immutable bibliographic record.

    Plain ``str`` and ``int`` values passed in ``variables`` are coerced:
    strings become FormattableString (or NumberValue for number
    variables), ints become NumberValue.
    """

    id: str
    type: EntryType = EntryType.ARTICLE_JOURNAL
    variables: Mapping[str, VariableValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        coerced = {
            name: _coerce(name, value)
            for name, value in self.variables.items()
            if value is not None
        }
        object.__setattr__(self, "variables", MappingProxyType(coerced))

    def __hash__(self) -> int:
        return hash((self.id, self.type))

    def get(self, name: str) -> Optional[VariableValue]:
        """Return a variable's value, or None when absent or empty."""
        value = self.variables.get(name)
        if value is None and name in SERIAL_VARIABLES:
            serials = self.variables.get("serial-numbers")
            if isinstance(serials, SerialNumbers):
                found = serials.get(name)
                value = FormattableString.verbatim_text(found) if found else None
        if value is None or not value:
            return None
        return value

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def names(self, name: str) -> NameList:
        value = self.get(name)
        return value if isinstance(value, tuple) else ()

    def date(self, name: str) -> Optional[StructuredDate]:
        value = self.get(name)
        return value if isinstance(value, StructuredDate) else None


def _coerce(name: str, value: Any) -> Any:
    if isinstance(value, list):
        value = tuple(value)
    if isinstance(value, tuple):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Unsupported value for {name!r}: {value!r}")
    if isinstance(value, int):
        return NumberValue.of(value)
    if isinstance(value, str):
        if name in NUMBER_VARIABLES:
            return NumberValue(value)
        return FormattableString.parse(value)
    return value
