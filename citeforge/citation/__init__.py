"""
Citation rendering engine.

Public entry points:

    CSLEngine          facade: store + style + locale + driver
    CitationDriver     document-order citation session
    Interpreter        style-tree evaluation for one entry
    get_style          built-in style trees (apa, chicago-note, ieee)
"""

from citeforge.citation.csl_engine import CSLEngine, create_engine, format_references
from citeforge.citation.disambiguation import (
    DisambiguationEngine,
    DisambiguationState,
    EntryDisambiguation,
)
from citeforge.citation.driver import (
    CitationDriver,
    CitationEvent,
    CitationItem,
    EntryStore,
)
from citeforge.citation.interpreter import CiteContext, Interpreter, RenderContext
from citeforge.citation.locale import Locale, Term, en_us_locale, get_locale
from citeforge.citation.output import (
    Bibliography,
    BibliographyItem,
    RenderedCitation,
    RunTag,
    TextRun,
)
from citeforge.citation.sorting import BibliographySorter
from citeforge.citation.style import Position, Style
from citeforge.citation.styles import available_styles, get_style
from citeforge.citation.types import (
    Entry,
    EntryType,
    FormattableString,
    NumberValue,
    PersonName,
    SerialNumbers,
    StructuredDate,
)

__all__ = [
    "Bibliography",
    "BibliographyItem",
    "BibliographySorter",
    "CSLEngine",
    "CitationDriver",
    "CitationEvent",
    "CitationItem",
    "CiteContext",
    "DisambiguationEngine",
    "DisambiguationState",
    "Entry",
    "EntryDisambiguation",
    "EntryStore",
    "EntryType",
    "FormattableString",
    "Interpreter",
    "Locale",
    "NumberValue",
    "PersonName",
    "Position",
    "RenderContext",
    "RenderedCitation",
    "RunTag",
    "SerialNumbers",
    "StructuredDate",
    "Style",
    "Term",
    "TextRun",
    "available_styles",
    "create_engine",
    "en_us_locale",
    "format_references",
    "get_locale",
    "get_style",
]
