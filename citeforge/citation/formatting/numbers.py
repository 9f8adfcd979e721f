"""Number forms and page-range collapsing.

Ordinal, long-ordinal and roman forms apply only to values that are
exactly integers; anything else (``12a``, ``iv``, ``3-5``) renders as
given, with hyphens between numbers turned into en-dashes.
"""

from __future__ import annotations

import re
from typing import Optional

from citeforge.citation.locale import Locale
from citeforge.citation.style import NumberForm, PageRangeFormat
from citeforge.citation.types import NumberValue

_ROMAN_NUMERALS = (
    (1000, "m"),
    (900, "cm"),
    (500, "d"),
    (400, "cd"),
    (100, "c"),
    (90, "xc"),
    (50, "l"),
    (40, "xl"),
    (10, "x"),
    (9, "ix"),
    (5, "v"),
    (4, "iv"),
    (1, "i"),
)

MAX_ROMAN = 3999

_RANGE_HYPHEN = re.compile(r"(?<=\w)\s*[-–]\s*(?=\w)")
_PAGE_RANGE = re.compile(r"^(\s*)(\d+)\s*[-–—]+\s*(\d+)(\s*)$")
_RANGE_LIST_SPLIT = re.compile(r"(\s*[,&]\s*)")


def to_roman(number: int) -> str:
    """Lowercase roman numeral; values outside 1..3999 stay arabic."""
    if not 0 < number <= MAX_ROMAN:
        return str(number)
    result = []
    for value, numeral in _ROMAN_NUMERALS:
        count, number = divmod(number, value)
        result.append(numeral * count)
    return "".join(result)


def normalize_range(text: str, delimiter: str = "–") -> str:
    """Replace hyphens between numbers with the range delimiter."""
    return _RANGE_HYPHEN.sub(delimiter, text)


def format_number(
    value: NumberValue, form: NumberForm, locale: Locale
) -> str:
    integer = value.integer
    if integer is None:
        if value.is_numeric:
            return normalize_range(value.raw.strip())
        return value.raw
    if form == NumberForm.ORDINAL:
        return locale.ordinal(integer)
    if form == NumberForm.LONG_ORDINAL:
        return locale.long_ordinal(integer)
    if form == NumberForm.ROMAN:
        return to_roman(integer)
    return str(integer)


# ============================================================================
# Page ranges
# ============================================================================


def _expand(start: str, end: str) -> str:
    """Fill in leading digits of an abbreviated range end (``321-8``)."""
    if len(end) < len(start):
        return start[: len(start) - len(end)] + end
    return end


def _minimal(start: str, end: str, keep: int) -> str:
    """Drop leading digits shared with ``start``, keeping at least ``keep``."""
    if len(start) != len(end):
        return end
    index = 0
    while index < len(start) - keep and start[index] == end[index]:
        index += 1
    return end[index:]


def _chicago(start: str, end: str) -> str:
    first = int(start)
    if first < 100 or first % 100 == 0:
        return end
    if first % 100 < 10:
        return _minimal(start, end, 1)
    collapsed = _minimal(start, end, 2)
    # four-digit numbers changing in three or more places are shown in full
    if len(start) == 4 and len(collapsed) > 2:
        return end
    return collapsed


def collapse_range(start: str, end: str, fmt: Optional[PageRangeFormat]) -> str:
    """Return the end of a numeric range rendered per ``fmt``."""
    full_end = _expand(start, end)
    if int(full_end) <= int(start):
        return end
    if fmt is None or fmt == PageRangeFormat.EXPANDED:
        return full_end
    if fmt == PageRangeFormat.MINIMAL:
        return _minimal(start, full_end, 1)
    if fmt == PageRangeFormat.MINIMAL_TWO:
        return _minimal(start, full_end, 2)
    return _chicago(start, full_end)


def format_page_range(
    text: str, fmt: Optional[PageRangeFormat], delimiter: str = "–"
) -> str:
    """Format page ranges in a list like ``321-328, 400-405``.

    >>> format_page_range("321-328", PageRangeFormat.MINIMAL)
    '321–8'
    """
    pieces = _RANGE_LIST_SPLIT.split(text)
    formatted = []
    for piece in pieces:
        match = _PAGE_RANGE.match(piece)
        if not match:
            formatted.append(normalize_range(piece, delimiter) if piece.strip(" ,&") else piece)
            continue
        lead, start, end, trail = match.groups()
        if fmt is None:
            formatted.append(f"{lead}{start}{delimiter}{end}{trail}")
        else:
            formatted.append(
                f"{lead}{start}{delimiter}{collapse_range(start, end, fmt)}{trail}"
            )
    return "".join(formatted)
