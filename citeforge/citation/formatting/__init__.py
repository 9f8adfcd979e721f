"""Leaf formatters used by the style interpreter."""

from citeforge.citation.formatting.case import STOP_WORDS, apply_case, transform_text
from citeforge.citation.formatting.dates import render_date
from citeforge.citation.formatting.names import (
    NameListSettings,
    format_name,
    render_name_list,
    shown_count,
)
from citeforge.citation.formatting.numbers import (
    collapse_range,
    format_number,
    format_page_range,
    to_roman,
)

__all__ = [
    "STOP_WORDS",
    "apply_case",
    "transform_text",
    "render_date",
    "NameListSettings",
    "format_name",
    "render_name_list",
    "shown_count",
    "collapse_range",
    "format_number",
    "format_page_range",
    "to_roman",
]
