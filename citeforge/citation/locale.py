"""Locale term tables and date formats.

Loading locale files is the caller's job; this module defines the
in-memory table the engine consumes plus a built-in ``en-US`` table.

Term lookup falls back across forms the way CSL prescribes:
verb-short → verb → long, symbol → short → long, short → long.
Style-level term overrides (``Style.locale_terms``) take precedence over
the locale's own terms, including their singular/plural pair.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from citeforge.citation.style import DatePart, Formatting, TermForm

FORM_FALLBACKS: dict[TermForm, tuple[TermForm, ...]] = {
    TermForm.LONG: (TermForm.LONG,),
    TermForm.SHORT: (TermForm.SHORT, TermForm.LONG),
    TermForm.VERB: (TermForm.VERB, TermForm.LONG),
    TermForm.VERB_SHORT: (TermForm.VERB_SHORT, TermForm.VERB, TermForm.LONG),
    TermForm.SYMBOL: (TermForm.SYMBOL, TermForm.SHORT, TermForm.LONG),
}


@dataclass(frozen=True)
class Term:
    """A localized term with optional plural form."""

    single: str
    multiple: Optional[str] = None

    def text(self, plural: bool = False) -> str:
        if plural and self.multiple is not None:
            return self.multiple
        return self.single


@dataclass(frozen=True)
class LocaleDateFormat:
    """A localized date layout: ordered parts with per-part affixes."""

    parts: tuple[DatePart, ...]
    delimiter: str = ""


@dataclass(frozen=True)
class Locale:
    """Immutable term and date-format table for one language."""

    lang: str
    terms: Mapping[tuple[str, TermForm], Term] = field(default_factory=dict)
    date_formats: Mapping[str, LocaleDateFormat] = field(default_factory=dict)
    punctuation_in_quote: bool = False
    limit_day_ordinals_to_day_1: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "terms", MappingProxyType(dict(self.terms)))
        object.__setattr__(
            self, "date_formats", MappingProxyType(dict(self.date_formats))
        )

    def __hash__(self) -> int:
        return hash((self.lang, len(self.terms)))

    def with_terms(self, overrides: Mapping[tuple[str, TermForm], Term]) -> "Locale":
        """Return a copy where ``overrides`` replace matching terms."""
        if not overrides:
            return self
        merged = dict(self.terms)
        merged.update(overrides)
        return Locale(
            lang=self.lang,
            terms=merged,
            date_formats=self.date_formats,
            punctuation_in_quote=self.punctuation_in_quote,
            limit_day_ordinals_to_day_1=self.limit_day_ordinals_to_day_1,
        )

    def lookup(self, name: str, form: TermForm = TermForm.LONG) -> Optional[Term]:
        """Find a term, following the form fallback chain."""
        for candidate in FORM_FALLBACKS[form]:
            term = self.terms.get((name, candidate))
            if term is not None:
                return term
        return None

    def term(
        self, name: str, form: TermForm = TermForm.LONG, plural: bool = False
    ) -> str:
        """Term text, or an empty string when the term is undefined."""
        term = self.lookup(name, form)
        return term.text(plural) if term is not None else ""

    def has_term(self, name: str, form: TermForm = TermForm.LONG) -> bool:
        return self.lookup(name, form) is not None

    def month(self, month: int, form: TermForm = TermForm.LONG) -> str:
        return self.term(f"month-{month:02d}", form)

    def season(self, season: int) -> str:
        return self.term(f"season-{season:02d}")

    def ordinal_suffix(self, number: int) -> str:
        """Ordinal suffix, checking two-digit terms before one-digit ones."""
        last_two = number % 100
        if last_two >= 10 and self.has_term(f"ordinal-{last_two:02d}"):
            return self.term(f"ordinal-{last_two:02d}")
        last_one = number % 10
        if self.has_term(f"ordinal-{last_one:02d}"):
            return self.term(f"ordinal-{last_one:02d}")
        return self.term("ordinal")

    def ordinal(self, number: int) -> str:
        return f"{number}{self.ordinal_suffix(number)}"

    def long_ordinal(self, number: int) -> str:
        """Spelled-out ordinal for 1-10, numeric ordinal otherwise."""
        if 1 <= number <= 10 and self.has_term(f"long-ordinal-{number:02d}"):
            return self.term(f"long-ordinal-{number:02d}")
        return self.ordinal(number)

    def collation_key(self, text: str) -> str:
        """Accent- and case-insensitive key for sorting."""
        decomposed = unicodedata.normalize("NFKD", text)
        stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
        return stripped.casefold()


# ============================================================================
# Built-in en-US table
# ============================================================================

_MONTHS = (
    ("January", "Jan."),
    ("February", "Feb."),
    ("March", "Mar."),
    ("April", "Apr."),
    ("May", "May"),
    ("June", "Jun."),
    ("July", "Jul."),
    ("August", "Aug."),
    ("September", "Sep."),
    ("October", "Oct."),
    ("November", "Nov."),
    ("December", "Dec."),
)

# name: (long single, long plural, short single, short plural)
_LOCATOR_TERMS = {
    "book": ("book", "books", "bk.", "bks."),
    "chapter": ("chapter", "chapters", "chap.", "chaps."),
    "column": ("column", "columns", "col.", "cols."),
    "figure": ("figure", "figures", "fig.", "figs."),
    "folio": ("folio", "folios", "fol.", "fols."),
    "issue": ("issue", "issues", "no.", "nos."),
    "line": ("line", "lines", "l.", "ll."),
    "note": ("note", "notes", "n.", "nn."),
    "number": ("number", "numbers", "no.", "nos."),
    "opus": ("opus", "opera", "op.", "opp."),
    "page": ("page", "pages", "p.", "pp."),
    "paragraph": ("paragraph", "paragraphs", "para.", "paras."),
    "part": ("part", "parts", "pt.", "pts."),
    "section": ("section", "sections", "sec.", "secs."),
    "sub-verbo": ("sub verbo", "sub verbis", "s.v.", "s.vv."),
    "verse": ("verse", "verses", "v.", "vv."),
    "volume": ("volume", "volumes", "vol.", "vols."),
    "edition": ("edition", "editions", "ed.", "eds."),
}

# role: (long single, long plural, short single, short plural, verb, verb-short)
_ROLE_TERMS = {
    "editor": ("editor", "editors", "ed.", "eds.", "edited by", "ed."),
    "translator": (
        "translator",
        "translators",
        "tran.",
        "trans.",
        "translated by",
        "trans.",
    ),
    "director": ("director", "directors", "dir.", "dirs.", "directed by", "dir."),
    "illustrator": (
        "illustrator",
        "illustrators",
        "ill.",
        "ills.",
        "illustrated by",
        "illus.",
    ),
    "collection-editor": ("editor", "editors", "ed.", "eds.", "edited by", "ed."),
    "container-author": ("author", "authors", "", "", "by", "by"),
    "interviewer": (
        "interviewer",
        "interviewers",
        "",
        "",
        "interview by",
        "interview by",
    ),
    "recipient": ("recipient", "recipients", "", "", "to", "to"),
    "composer": ("composer", "composers", "comp.", "comps.", "composed by", "comp."),
}

_SIMPLE_TERMS = {
    ("and", TermForm.LONG): Term("and"),
    ("and", TermForm.SYMBOL): Term("&"),
    ("and others", TermForm.LONG): Term("and others"),
    ("et-al", TermForm.LONG): Term("et al."),
    ("anonymous", TermForm.LONG): Term("anonymous"),
    ("anonymous", TermForm.SHORT): Term("anon."),
    ("at", TermForm.LONG): Term("at"),
    ("accessed", TermForm.LONG): Term("accessed"),
    ("available at", TermForm.LONG): Term("available at"),
    ("by", TermForm.LONG): Term("by"),
    ("circa", TermForm.LONG): Term("circa"),
    ("circa", TermForm.SHORT): Term("c."),
    ("cited", TermForm.LONG): Term("cited"),
    ("forthcoming", TermForm.LONG): Term("forthcoming"),
    ("from", TermForm.LONG): Term("from"),
    ("ibid", TermForm.LONG): Term("ibid."),
    ("in", TermForm.LONG): Term("in"),
    ("in press", TermForm.LONG): Term("in press"),
    ("internet", TermForm.LONG): Term("internet"),
    ("letter", TermForm.LONG): Term("letter"),
    ("no date", TermForm.LONG): Term("no date"),
    ("no date", TermForm.SHORT): Term("n.d."),
    ("online", TermForm.LONG): Term("online"),
    ("presented at", TermForm.LONG): Term("presented at the"),
    ("reference", TermForm.LONG): Term("reference", "references"),
    ("reference", TermForm.SHORT): Term("ref.", "refs."),
    ("retrieved", TermForm.LONG): Term("retrieved"),
    ("scale", TermForm.LONG): Term("scale"),
    ("version", TermForm.LONG): Term("version"),
    ("ad", TermForm.LONG): Term("AD"),
    ("bc", TermForm.LONG): Term("BC"),
    ("open-quote", TermForm.LONG): Term("“"),
    ("close-quote", TermForm.LONG): Term("”"),
    ("open-inner-quote", TermForm.LONG): Term("‘"),
    ("close-inner-quote", TermForm.LONG): Term("’"),
    ("page-range-delimiter", TermForm.LONG): Term("–"),
    ("ordinal", TermForm.LONG): Term("th"),
    ("ordinal-01", TermForm.LONG): Term("st"),
    ("ordinal-02", TermForm.LONG): Term("nd"),
    ("ordinal-03", TermForm.LONG): Term("rd"),
    ("ordinal-11", TermForm.LONG): Term("th"),
    ("ordinal-12", TermForm.LONG): Term("th"),
    ("ordinal-13", TermForm.LONG): Term("th"),
    ("season-01", TermForm.LONG): Term("Spring"),
    ("season-02", TermForm.LONG): Term("Summer"),
    ("season-03", TermForm.LONG): Term("Autumn"),
    ("season-04", TermForm.LONG): Term("Winter"),
}

_LONG_ORDINALS = (
    "first",
    "second",
    "third",
    "fourth",
    "fifth",
    "sixth",
    "seventh",
    "eighth",
    "ninth",
    "tenth",
)


def _en_us_terms() -> dict[tuple[str, TermForm], Term]:
    terms = dict(_SIMPLE_TERMS)
    for index, (long_name, short_name) in enumerate(_MONTHS, start=1):
        terms[(f"month-{index:02d}", TermForm.LONG)] = Term(long_name)
        terms[(f"month-{index:02d}", TermForm.SHORT)] = Term(short_name)
    for index, word in enumerate(_LONG_ORDINALS, start=1):
        terms[(f"long-ordinal-{index:02d}", TermForm.LONG)] = Term(word)
    for name, (long_s, long_p, short_s, short_p) in _LOCATOR_TERMS.items():
        terms[(name, TermForm.LONG)] = Term(long_s, long_p)
        terms[(name, TermForm.SHORT)] = Term(short_s, short_p)
    terms[("page", TermForm.SYMBOL)] = Term("p.", "pp.")
    terms[("paragraph", TermForm.SYMBOL)] = Term("¶", "¶¶")
    terms[("section", TermForm.SYMBOL)] = Term("§", "§§")
    for name, (long_s, long_p, short_s, short_p, verb, verb_short) in _ROLE_TERMS.items():
        terms[(name, TermForm.LONG)] = Term(long_s, long_p)
        if short_s:
            terms[(name, TermForm.SHORT)] = Term(short_s, short_p)
        terms[(name, TermForm.VERB)] = Term(verb)
        terms[(name, TermForm.VERB_SHORT)] = Term(verb_short)
    return terms


def en_us_locale() -> Locale:
    """Built-in American English locale."""
    text_format = LocaleDateFormat(
        parts=(
            DatePart("month", form="long", formatting=Formatting(suffix=" ")),
            DatePart("day", formatting=Formatting(suffix=", ")),
            DatePart("year"),
        )
    )
    numeric_format = LocaleDateFormat(
        parts=(
            DatePart("month", form="numeric", formatting=Formatting(suffix="/")),
            DatePart("day", formatting=Formatting(suffix="/")),
            DatePart("year"),
        )
    )
    return Locale(
        lang="en-US",
        terms=_en_us_terms(),
        date_formats={"text": text_format, "numeric": numeric_format},
        punctuation_in_quote=True,
    )


_BUILTIN_LOCALES = {"en-US": en_us_locale}


def get_locale(lang: str = "en-US") -> Locale:
    """Return a built-in locale, falling back to en-US for unknown tags."""
    factory = _BUILTIN_LOCALES.get(lang, en_us_locale)
    return factory()
