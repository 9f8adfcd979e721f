"""
Tests for date rendering.

Organization
------------
- TestDateParts: years, months, days and seasons
- TestDateRanges: collapsing of shared parts
"""

import pytest

from citeforge.citation.formatting.dates import format_year, render_date
from citeforge.citation.output import RunTag, plain_text
from citeforge.citation.style import DatePart, Formatting
from citeforge.citation.types import StructuredDate

TEXT_PARTS = (
    DatePart("month", form="long", formatting=Formatting(suffix=" ")),
    DatePart("day", formatting=Formatting(suffix=", ")),
    DatePart("year"),
)


def _text(date, locale, parts=TEXT_PARTS, **kwargs):
    return plain_text(render_date(date, parts, locale, **kwargs))


# ============================================================================
# Test Classes
# ============================================================================


class TestDateParts:
    """Tests for individual date parts."""

    @pytest.mark.parametrize(
        "year,form,expected",
        [
            (2020, None, "2020"),
            (2020, "short", "20"),
            (2005, "short", "05"),
            (800, None, "800AD"),
            (-43, None, "43BC"),
            (0, None, "1BC"),
        ],
    )
    def test_years(self, locale, year, form, expected):
        """Test year forms and era terms."""
        assert format_year(year, form, locale) == expected

    def test_full_date(self, locale):
        """Test a full date in the text layout."""
        assert _text(StructuredDate(2020, 5, 3), locale) == "May 3, 2020"

    def test_missing_parts_skipped(self, locale):
        """Test absent month and day drop their affixes."""
        assert _text(StructuredDate(2020), locale) == "2020"

    def test_short_month(self, locale):
        """Test the short month form."""
        parts = (DatePart("month", form="short", formatting=Formatting(suffix=" ")), DatePart("year"))

        assert _text(StructuredDate(2023, 6), locale, parts) == "Jun. 2023"

    def test_numeric_month_leading_zero(self, locale):
        """Test numeric-leading-zeros month and day."""
        parts = (
            DatePart("year", formatting=Formatting(suffix="-")),
            DatePart("month", form="numeric-leading-zeros", formatting=Formatting(suffix="-")),
            DatePart("day", form="numeric-leading-zeros"),
        )

        assert _text(StructuredDate(2020, 5, 3), locale, parts) == "2020-05-03"

    def test_ordinal_day(self, locale):
        """Test ordinal day form."""
        parts = (DatePart("day", form="ordinal", formatting=Formatting(suffix=" ")), DatePart("month"))

        assert _text(StructuredDate(2020, 5, 2), locale, parts) == "2nd May"

    def test_season_stands_in_for_month(self, locale):
        """Test a season renders where the month would."""
        date = StructuredDate(2020, season=3)

        assert _text(date, locale) == "Autumn 2020"

    def test_year_runs_tagged(self, locale):
        """Test year runs carry the requested tag, other parts DATE."""
        runs = render_date(StructuredDate(2020, 5), TEXT_PARTS, locale, tag=RunTag.YEAR)

        tags = {run.text: run.tag for run in runs}
        assert tags["2020"] == RunTag.YEAR
        assert tags["May"] == RunTag.DATE


class TestDateRanges:
    """Tests for date ranges."""

    def test_year_range(self, locale):
        """Test differing years render both dates in full."""
        date = StructuredDate(2019, end=StructuredDate(2020))

        assert _text(date, locale, (DatePart("year"),)) == "2019–2020"

    def test_day_range(self, locale):
        """Test only the days repeat when month and year are shared."""
        date = StructuredDate(2020, 5, 3, end=StructuredDate(2020, 5, 5))

        assert _text(date, locale) == "May 3–5, 2020"

    def test_month_day_range(self, locale):
        """Test month and day repeat when only the year is shared."""
        date = StructuredDate(2020, 5, 3, end=StructuredDate(2020, 6, 5))

        assert _text(date, locale) == "May 3–June 5, 2020"

    def test_full_range(self, locale):
        """Test every part repeats when the years differ."""
        date = StructuredDate(2019, 12, 30, end=StructuredDate(2020, 1, 2))

        assert _text(date, locale) == "December 30, 2019–January 2, 2020"

    def test_undisplayed_difference(self, locale):
        """Test a range differing only in hidden parts renders once."""
        date = StructuredDate(2020, 5, 3, end=StructuredDate(2020, 5, 9))

        assert _text(date, locale, (DatePart("year"),)) == "2020"

    def test_custom_range_delimiter(self, locale):
        """Test the range delimiter of the largest differing part is used."""
        parts = (DatePart("year", range_delimiter="/"),)
        date = StructuredDate(2019, end=StructuredDate(2020))

        assert _text(date, locale, parts) == "2019/2020"
