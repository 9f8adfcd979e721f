"""Date rendering: localized and explicit date parts, ranges and seasons.

Ranges collapse the parts both ends share:

- ``2019–2020`` when years differ
- ``May 3–5, 2020`` when only days differ
- ``May 3–June 5, 2020`` when month and day differ

The delimiter comes from the largest differing part present in the
layout. When no displayed part differs the start date renders alone.
"""

from __future__ import annotations

from typing import Optional, Sequence

from citeforge.citation.formatting.case import transform_text
from citeforge.citation.locale import Locale
from citeforge.citation.output import RunTag, TextRun, punctuation
from citeforge.citation.style import DatePart, TermForm
from citeforge.citation.types import StructuredDate

_PART_ORDER = ("year", "month", "day")


def format_year(year: int, form: Optional[str], locale: Locale) -> str:
    """Year text with era terms for BC and for years before 1000."""
    if year <= 0:
        return f"{-year or 1}{locale.term('bc')}"
    if form == "short":
        return f"{year % 100:02d}"
    if year < 1000:
        return f"{year}{locale.term('ad')}"
    return str(year)


def format_month(date: StructuredDate, form: Optional[str], locale: Locale) -> str:
    if date.month is None:
        return locale.season(date.season) if date.season else ""
    if form == "numeric":
        return str(date.month)
    if form == "numeric-leading-zeros":
        return f"{date.month:02d}"
    if form == "short":
        return locale.month(date.month, TermForm.SHORT)
    return locale.month(date.month, TermForm.LONG)


def format_day(day: Optional[int], form: Optional[str], locale: Locale) -> str:
    if day is None:
        return ""
    if form == "numeric-leading-zeros":
        return f"{day:02d}"
    if form == "ordinal":
        if locale.limit_day_ordinals_to_day_1 and day != 1:
            return str(day)
        return locale.ordinal(day)
    return str(day)


def part_value(date: StructuredDate, part: DatePart, locale: Locale) -> str:
    """Bare text of one date part, or "" when the date lacks it."""
    if part.name == "year":
        return format_year(date.year, part.form, locale)
    if part.name == "month":
        return format_month(date, part.form, locale)
    if part.name == "day":
        return format_day(date.day, part.form, locale)
    return ""


def _part_runs(
    date: StructuredDate,
    part: DatePart,
    locale: Locale,
    tag: RunTag,
    variable: str,
    *,
    strip_prefix: bool = False,
    strip_suffix: bool = False,
) -> list[TextRun]:
    value = part_value(date, part, locale)
    if not value:
        return []
    formatting = part.formatting
    if formatting.text_case is not None:
        value = transform_text(value, formatting.text_case)
    if formatting.strip_periods:
        value = value.replace(".", "")
    run_tag = tag if part.name == "year" else RunTag.DATE
    runs = []
    if formatting.prefix and not strip_prefix:
        runs.append(punctuation(formatting.prefix))
    runs.append(TextRun(value, run_tag, variable, formatting.styles))
    if formatting.suffix and not strip_suffix:
        runs.append(punctuation(formatting.suffix))
    return runs


def _render_parts(
    date: StructuredDate,
    parts: Sequence[DatePart],
    locale: Locale,
    delimiter: str,
    tag: RunTag,
    variable: str,
    *,
    strip_first_prefix: bool = False,
    strip_last_suffix: bool = False,
) -> list[TextRun]:
    runs: list[TextRun] = []
    for index, part in enumerate(parts):
        piece = _part_runs(
            date,
            part,
            locale,
            tag,
            variable,
            strip_prefix=strip_first_prefix and index == 0,
            strip_suffix=strip_last_suffix and index == len(parts) - 1,
        )
        if not piece:
            continue
        if runs and delimiter:
            runs.append(punctuation(delimiter))
        runs.extend(piece)
    return runs


def _differing_parts(start: StructuredDate, end: StructuredDate) -> set[str]:
    if start.year != end.year:
        return {"year", "month", "day"}
    if start.month != end.month or start.season != end.season:
        return {"month", "day"}
    if start.day != end.day:
        return {"day"}
    return set()


def render_date(
    date: StructuredDate,
    parts: Sequence[DatePart],
    locale: Locale,
    *,
    delimiter: str = "",
    tag: RunTag = RunTag.DATE,
    variable: str = "issued",
) -> list[TextRun]:
    """Render a date, or a date range, through the given parts.

    Year runs carry ``tag`` (``RunTag.YEAR`` for ``issued``); month and
    day runs are tagged ``RunTag.DATE``. Approximate dates are prefixed
    with the ``circa`` term by the caller's style, not here.
    """
    if date.end is None or (not date.is_range and date.end.season == date.season):
        return _render_parts(date, parts, locale, delimiter, tag, variable)

    differing = _differing_parts(date, date.end)
    indexes = [
        i
        for i, part in enumerate(parts)
        if part.name in differing
        and (part_value(date, part, locale) or part_value(date.end, part, locale))
    ]
    if not indexes:
        return _render_parts(date, parts, locale, delimiter, tag, variable)

    first, last = indexes[0], indexes[-1]
    largest = min(
        (parts[i] for i in indexes), key=lambda part: _PART_ORDER.index(part.name)
    )

    runs = _render_parts(date, parts[:first], locale, delimiter, tag, variable)
    start = _render_parts(
        date, parts[first : last + 1], locale, delimiter, tag, variable,
        strip_last_suffix=True,
    )
    end = _render_parts(
        date.end, parts[first : last + 1], locale, delimiter, tag, variable,
        strip_first_prefix=True,
    )
    if runs and start and delimiter:
        runs.append(punctuation(delimiter))
    runs.extend(start)
    runs.append(punctuation(largest.range_delimiter))
    runs.extend(end)

    tail = _render_parts(date.end, parts[last + 1 :], locale, delimiter, tag, variable)
    if tail and delimiter:
        runs.append(punctuation(delimiter))
    runs.extend(tail)
    return runs
