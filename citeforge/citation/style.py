"""Style tree: the pre-parsed, read-only representation of a CSL style.

The element vocabulary is closed. Each element kind is a frozen dataclass
and the interpreter dispatches on the node's type, so a tree built once
can be shared by every render in a session.

Example
-------
    year_group = Group(
        children=(DateNode("issued", parts=(DatePart("year"),)),),
        formatting=Formatting(prefix="(", suffix=")"),
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterator, Mapping, Optional, Union

if TYPE_CHECKING:
    from citeforge.citation.locale import Term


# ============================================================================
# Enumerations
# ============================================================================


class TextCase(str, Enum):
    """Case transforms."""

    LOWERCASE = "lowercase"
    UPPERCASE = "uppercase"
    CAPITALIZE_FIRST = "capitalize-first"
    CAPITALIZE_ALL = "capitalize-all"
    TITLE = "title"
    SENTENCE = "sentence"


class Display(str, Enum):
    """Block-level display hints passed through to the caller."""

    BLOCK = "block"
    LEFT_MARGIN = "left-margin"
    RIGHT_INLINE = "right-inline"
    INDENT = "indent"


class TermForm(str, Enum):
    """Term and variable forms."""

    LONG = "long"
    SHORT = "short"
    VERB = "verb"
    VERB_SHORT = "verb-short"
    SYMBOL = "symbol"


class LabelPlural(str, Enum):
    CONTEXTUAL = "contextual"
    ALWAYS = "always"
    NEVER = "never"


class NumberForm(str, Enum):
    NUMERIC = "numeric"
    ORDINAL = "ordinal"
    LONG_ORDINAL = "long-ordinal"
    ROMAN = "roman"


class DateForm(str, Enum):
    """Localized date forms."""

    TEXT = "text"
    NUMERIC = "numeric"


class DatePartsSelection(str, Enum):
    YEAR_MONTH_DAY = "year-month-day"
    YEAR_MONTH = "year-month"
    YEAR = "year"


class And(str, Enum):
    TEXT = "text"
    SYMBOL = "symbol"


class DelimiterRule(str, Enum):
    """When a delimiter precedes the last name or the et-al term."""

    CONTEXTUAL = "contextual"
    ALWAYS = "always"
    NEVER = "never"
    AFTER_INVERTED_NAME = "after-inverted-name"


class NameAsSortOrder(str, Enum):
    FIRST = "first"
    ALL = "all"


class NameForm(str, Enum):
    LONG = "long"
    SHORT = "short"
    COUNT = "count"


class Match(str, Enum):
    ALL = "all"
    ANY = "any"
    NONE = "none"


class Position(str, Enum):
    """Citation positions, tested by conditions and reported by the driver."""

    FIRST = "first"
    SUBSEQUENT = "subsequent"
    IBID = "ibid"
    IBID_WITH_LOCATOR = "ibid-with-locator"
    NEAR_NOTE = "near-note"


class StyleClass(str, Enum):
    IN_TEXT = "in-text"
    NOTE = "note"


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class MissingPolicy(str, Enum):
    """Where entries lacking a sort value go, regardless of direction."""

    FIRST = "first"
    LAST = "last"


class DisambiguationMethod(str, Enum):
    ADD_NAMES = "add-names"
    ADD_GIVENNAME = "add-givenname"
    CONDITIONAL = "conditional"
    ADD_YEAR_SUFFIX = "add-year-suffix"


class GivennameRule(str, Enum):
    ALL_NAMES = "all-names"
    ALL_NAMES_WITH_INITIALS = "all-names-with-initials"
    PRIMARY_NAME = "primary-name"
    PRIMARY_NAME_WITH_INITIALS = "primary-name-with-initials"
    BY_CITE = "by-cite"


class PageRangeFormat(str, Enum):
    EXPANDED = "expanded"
    MINIMAL = "minimal"
    MINIMAL_TWO = "minimal-two"
    CHICAGO = "chicago"


class ParticleDemotion(str, Enum):
    NEVER = "never"
    SORT_ONLY = "sort-only"
    DISPLAY_AND_SORT = "display-and-sort"


# ============================================================================
# Formatting
# ============================================================================


@dataclass(frozen=True)
class Formatting:
    """Affixes, font and case options shared by rendering elements."""

    prefix: str = ""
    suffix: str = ""
    font_style: Optional[str] = None  # italic, oblique, normal
    font_variant: Optional[str] = None  # small-caps
    font_weight: Optional[str] = None  # bold, light
    text_decoration: Optional[str] = None  # underline
    vertical_align: Optional[str] = None  # sup, sub
    display: Optional[Display] = None
    text_case: Optional[TextCase] = None
    quotes: bool = False
    strip_periods: bool = False

    @cached_property
    def styles(self) -> frozenset[str]:
        """Style flags attached to the runs this formatting wraps."""
        flags = set()
        for value in (
            self.font_style,
            self.font_variant,
            self.font_weight,
            self.text_decoration,
            self.vertical_align,
        ):
            if value and value not in ("normal", "baseline", "none"):
                flags.add(value)
        if self.display is not None:
            flags.add(f"display:{self.display.value}")
        return frozenset(flags)


PLAIN = Formatting()


# ============================================================================
# Rendering elements
# ============================================================================


@dataclass(frozen=True)
class Text:
    """Renders a variable, a macro, a locale term or a literal value."""

    variable: Optional[str] = None
    macro: Optional[str] = None
    term: Optional[str] = None
    value: Optional[str] = None
    form: TermForm = TermForm.LONG
    plural: bool = False
    formatting: Formatting = PLAIN


@dataclass(frozen=True)
class Label:
    """Renders the locale term matching a variable (``p.``, ``eds.``)."""

    variable: str = "locator"
    form: TermForm = TermForm.LONG
    plural: LabelPlural = LabelPlural.CONTEXTUAL
    formatting: Formatting = PLAIN


@dataclass(frozen=True)
class Number:
    variable: str
    form: NumberForm = NumberForm.NUMERIC
    formatting: Formatting = PLAIN


@dataclass(frozen=True)
class DatePart:
    """One of year, month or day with its own form and affixes.

    Forms: month long/short/numeric/numeric-leading-zeros, day
    numeric/numeric-leading-zeros/ordinal, year long/short.
    """

    name: str
    form: Optional[str] = None
    range_delimiter: str = "–"
    formatting: Formatting = PLAIN


@dataclass(frozen=True)
class DateNode:
    """Renders a date variable.

    With ``form`` set the locale's date format is used, filtered by
    ``date_parts``; ``parts`` then only override per-part options.
    Without ``form`` the ``parts`` are rendered in order.
    """

    variable: str
    form: Optional[DateForm] = None
    date_parts: DatePartsSelection = DatePartsSelection.YEAR_MONTH_DAY
    parts: tuple[DatePart, ...] = ()
    delimiter: str = ""
    formatting: Formatting = PLAIN


@dataclass(frozen=True)
class NameOptions:
    """Name-list options. ``None`` values inherit from the section."""

    and_: Optional[And] = None
    delimiter: str = ", "
    delimiter_precedes_last: DelimiterRule = DelimiterRule.CONTEXTUAL
    delimiter_precedes_et_al: DelimiterRule = DelimiterRule.CONTEXTUAL
    et_al_min: Optional[int] = None
    et_al_use_first: Optional[int] = None
    et_al_subsequent_min: Optional[int] = None
    et_al_subsequent_use_first: Optional[int] = None
    et_al_use_last: bool = False
    initialize: bool = True
    initialize_with: Optional[str] = None
    name_as_sort_order: Optional[NameAsSortOrder] = None
    sort_separator: str = ", "
    form: NameForm = NameForm.LONG
    family_formatting: Formatting = PLAIN
    given_formatting: Formatting = PLAIN
    formatting: Formatting = PLAIN


@dataclass(frozen=True)
class EtAl:
    term: str = "et-al"
    formatting: Formatting = PLAIN


@dataclass(frozen=True)
class NameLabel:
    """Role term next to a name list; ``before`` puts it ahead of the names."""

    form: TermForm = TermForm.LONG
    plural: LabelPlural = LabelPlural.CONTEXTUAL
    before: bool = False
    formatting: Formatting = PLAIN


@dataclass(frozen=True)
class Names:
    """Renders one or more name variables, with substitution when all are empty."""

    variables: tuple[str, ...]
    name: NameOptions = NameOptions()
    et_al: EtAl = EtAl()
    label: Optional[NameLabel] = None
    substitute: tuple["StyleNode", ...] = ()
    delimiter: str = ", "
    formatting: Formatting = PLAIN


@dataclass(frozen=True)
class Group:
    """Suppressed when it calls variables and all of them render empty."""

    children: tuple["StyleNode", ...]
    delimiter: str = ""
    formatting: Formatting = PLAIN


@dataclass(frozen=True)
class Condition:
    """Tests combined by ``match``. An empty condition is always true."""

    types: tuple[str, ...] = ()
    variables: tuple[str, ...] = ()
    is_numeric: tuple[str, ...] = ()
    is_uncertain_date: tuple[str, ...] = ()
    locators: tuple[str, ...] = ()
    positions: tuple[Position, ...] = ()
    disambiguate: Optional[bool] = None
    match: Match = Match.ALL


@dataclass(frozen=True)
class Branch:
    condition: Condition
    children: tuple["StyleNode", ...]


@dataclass(frozen=True)
class Choose:
    """``if``/``else-if`` branches followed by optional ``else`` children."""

    branches: tuple[Branch, ...]
    otherwise: tuple["StyleNode", ...] = ()


StyleNode = Union[Text, Label, Number, DateNode, Names, Group, Choose]


@dataclass(frozen=True)
class Layout:
    """Top-level layout; ``delimiter`` separates cites within a citation."""

    children: tuple[StyleNode, ...]
    delimiter: str = ""
    formatting: Formatting = PLAIN


# ============================================================================
# Sections and style
# ============================================================================


@dataclass(frozen=True)
class SortKey:
    """One bibliography/citation sort key: a variable or a macro."""

    variable: Optional[str] = None
    macro: Optional[str] = None
    direction: SortDirection = SortDirection.ASCENDING
    missing: MissingPolicy = MissingPolicy.LAST

    def __post_init__(self) -> None:
        if (self.variable is None) == (self.macro is None):
            raise ValueError("SortKey needs exactly one of variable or macro")


@dataclass(frozen=True)
class Section:
    """Citation or bibliography section of a style."""

    layout: Layout
    sort: tuple[SortKey, ...] = ()
    et_al_min: Optional[int] = None
    et_al_use_first: Optional[int] = None
    et_al_subsequent_min: Optional[int] = None
    et_al_subsequent_use_first: Optional[int] = None
    initialize_with: Optional[str] = None
    disambiguation: tuple[DisambiguationMethod, ...] = ()
    givenname_rule: GivennameRule = GivennameRule.BY_CITE
    near_note_distance: Optional[int] = None
    subsequent_author_substitute: Optional[str] = None


@dataclass(frozen=True)
class Style:
    """A complete, pre-parsed style."""

    id: str
    citation: Section
    bibliography: Optional[Section] = None
    title: str = ""
    style_class: StyleClass = StyleClass.IN_TEXT
    macros: Mapping[str, tuple[StyleNode, ...]] = field(default_factory=dict)
    locale_terms: Mapping[tuple[str, TermForm], "Term"] = field(default_factory=dict)
    page_range_format: Optional[PageRangeFormat] = None
    demote_non_dropping_particle: ParticleDemotion = ParticleDemotion.DISPLAY_AND_SORT
    initialize_with_hyphen: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "macros", MappingProxyType(dict(self.macros)))
        object.__setattr__(
            self, "locale_terms", MappingProxyType(dict(self.locale_terms))
        )

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def is_note(self) -> bool:
        return self.style_class == StyleClass.NOTE

    def macro(self, name: str) -> Optional[tuple[StyleNode, ...]]:
        return self.macros.get(name)

    @cached_property
    def renders_year_suffix(self) -> bool:
        """Whether the style renders ``year-suffix`` through a Text element."""
        roots: list[StyleNode] = list(self.citation.layout.children)
        if self.bibliography is not None:
            roots.extend(self.bibliography.layout.children)
        for nodes in self.macros.values():
            roots.extend(nodes)
        return any(
            isinstance(node, Text) and node.variable == "year-suffix"
            for node in iter_nodes(roots)
        )


def iter_nodes(nodes: "tuple[StyleNode, ...] | list[StyleNode]") -> Iterator[StyleNode]:
    """Depth-first walk over a node sequence (macros are not followed)."""
    for node in nodes:
        yield node
        if isinstance(node, Group):
            yield from iter_nodes(node.children)
        elif isinstance(node, Choose):
            for branch in node.branches:
                yield from iter_nodes(branch.children)
            yield from iter_nodes(node.otherwise)
        elif isinstance(node, Names):
            yield from iter_nodes(node.substitute)
