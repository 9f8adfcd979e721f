"""
Bibliography Sorter: deterministic ordering of referenced entries.

Keys apply left to right. Each key reads a variable or renders a macro,
compares in its direction, and puts entries lacking a value first or last
according to its own missing policy, whichever the direction. Full ties
keep first-citation order (the sort is stable over that order).

Value Comparison
----------------
- names: family (particle per demotion rule), given, suffix, collated
- dates: year, month, day
- numbers: numerically when integral
- text and macro output: collation key (NFKD, marks stripped, casefolded)

Values of different kinds under the same key (a date where another entry
has free text) never raise: they compare by their literal text, as do
same-kind values that cannot be ordered against each other.
"""

from __future__ import annotations

from dataclasses import replace
from functools import cmp_to_key
from typing import Any, Callable, Optional, Sequence

from citeforge.citation.formatting.names import name_sort_key
from citeforge.citation.interpreter import Interpreter, RenderContext
from citeforge.citation.style import MissingPolicy, SortDirection, SortKey
from citeforge.citation.types import (
    Entry,
    FormattableString,
    NumberValue,
    StructuredDate,
    join_words,
)

# (kind, value, literal text); values of one kind compare by value
SortValue = tuple[str, Any, str]

_NAMES = "names"
_DATE = "date"
_NUMBER = "number"
_TEXT = "text"


class BibliographySorter:
    """Orders entries by a tuple of sort keys.

    Args:
        interpreter: Used to render macro keys
    """

    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def sort(
        self,
        entries: Sequence[Entry],
        keys: Sequence[SortKey],
        context_for: Callable[[int], RenderContext],
    ) -> list[int]:
        """Return positions into ``entries`` in sorted order.

        Args:
            entries: Entries in first-citation order
            keys: Sort keys, most significant first
            context_for: Render context of the entry at a position
                (carries its citation number and disambiguation state)

        Returns:
            Permutation of ``range(len(entries))``
        """
        if not keys:
            return list(range(len(entries)))

        values = [
            [self.value(entry, key, context_for(position)) for key in keys]
            for position, entry in enumerate(entries)
        ]

        def compare(left: int, right: int) -> int:
            return compare_values(values[left], values[right], keys)

        return sorted(range(len(entries)), key=cmp_to_key(compare))

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def value(
        self, entry: Entry, key: SortKey, context: RenderContext
    ) -> Optional[SortValue]:
        """Sort value of one entry under one key, None when missing."""
        locale = context.locale
        if key.macro is not None:
            text = self.interpreter.render_macro_text(
                entry, key.macro, _sorting(context)
            )
            return _text_value(locale.collation_key(text)) if text else None

        variable = key.variable
        assert variable is not None
        if variable == "citation-number":
            number = context.cite.citation_number
            return (_NUMBER, number, str(number)) if number is not None else None

        value = entry.get(variable)
        if value is None:
            return None
        if isinstance(value, tuple):
            demote = context.style.demote_non_dropping_particle
            literal = "; ".join(join_words(*name.sort_parts()) for name in value)
            return (
                _NAMES,
                tuple(name_sort_key(n, locale, demote) for n in value),
                locale.collation_key(literal),
            )
        if isinstance(value, StructuredDate):
            return (_DATE, value.sort_key(), _date_literal(value))
        if isinstance(value, NumberValue) and value.integer is not None:
            return (_NUMBER, value.integer, str(value))
        if isinstance(value, FormattableString):
            return _text_value(locale.collation_key(value.text))
        return _text_value(locale.collation_key(str(value)))


def _text_value(key: str) -> SortValue:
    return (_TEXT, key, key)


def _date_literal(date: StructuredDate) -> str:
    """ISO-like text of a date: 2020, 2020-05 or 2020-05-03."""
    pieces = [f"{date.year:04d}"]
    if date.month is not None:
        pieces.append(f"{date.month:02d}")
        if date.day is not None:
            pieces.append(f"{date.day:02d}")
    return "-".join(pieces)


def _sorting(context: RenderContext) -> RenderContext:
    return replace(
        context,
        sorting=True,
        disambiguation=context.disambiguation.without_year_suffix(),
    )


def compare_values(
    left: Sequence[Optional[SortValue]],
    right: Sequence[Optional[SortValue]],
    keys: Sequence[SortKey],
) -> int:
    """Three-way comparison of two entries' key values."""
    for a, b, key in zip(left, right, keys):
        if a is None and b is None:
            continue
        if a is None or b is None:
            missing_first = key.missing == MissingPolicy.FIRST
            if a is None:
                return -1 if missing_first else 1
            return 1 if missing_first else -1
        result = _compare_one(a, b)
        if result == 0:
            continue
        if key.direction == SortDirection.DESCENDING:
            result = -result
        return result
    return 0


def _compare_one(a: SortValue, b: SortValue) -> int:
    if a[0] == b[0]:
        try:
            if a[1] == b[1]:
                return 0
            return -1 if a[1] < b[1] else 1
        except TypeError:
            pass
    left, right = a[2], b[2]
    if left == right:
        return 0
    return -1 if left < right else 1
