"""
Tests for the Style Interpreter.

Test Strategy
-------------
- Build small style trees inline and render them against fixture entries
- Assert on plain text; inspect runs only where tags or styles matter
- Positions and disambiguation state are supplied through RenderContext

Organization
------------
- TestTextNodes: variables, values, terms, macros
- TestGroupSuppression: group semantics
- TestConditions: Choose and every condition kind
- TestLabelsAndNumbers: Label and Number nodes
- TestNames: names, substitution, labels, et-al inheritance
- TestFormatting: quotes, case, strip-periods, styles, affixes
- TestDates: localized date forms
- TestYearSuffix: year-suffix placement
- TestRenderCitation: whole citations
"""

import logging
from dataclasses import replace

import pytest

from citeforge.citation.disambiguation import EntryDisambiguation
from citeforge.citation.interpreter import CiteContext
from citeforge.citation.output import RunTag, plain_text
from citeforge.citation.style import (
    And,
    Branch,
    Choose,
    Condition,
    DateForm,
    DateNode,
    DatePart,
    DatePartsSelection,
    Formatting,
    Group,
    Label,
    Layout,
    Match,
    NameForm,
    NameLabel,
    NameOptions,
    Names,
    Number,
    NumberForm,
    PageRangeFormat,
    Position,
    TermForm,
    Text,
    TextCase,
)
from citeforge.citation.types import EntryType, StructuredDate


@pytest.fixture
def render(interpreter, style_factory, context_factory):
    """Render nodes for one entry and return plain text.

    Extra keyword arguments go to CiteContext, except ``disambiguation``,
    ``macros`` and ``style``.
    """

    def _render(entry, *nodes, macros=None, disambiguation=None, style=None, **cite):
        style = style or style_factory(*nodes, macros=macros)
        context = context_factory(style, **cite)
        if disambiguation is not None:
            context = context.for_cite(context.cite, disambiguation)
        return plain_text(interpreter.render(entry, style.citation.layout.children, context))

    return _render


# ============================================================================
# Test Classes
# ============================================================================


class TestTextNodes:
    """Tests for Text nodes."""

    def test_variable(self, render, journal_article):
        """Test a variable renders its value."""
        assert render(journal_article, Text(variable="title")) == "Test Article"

    def test_missing_variable_empty(self, render, journal_article):
        """Test a missing variable renders nothing, affixes included."""
        node = Text(variable="note", formatting=Formatting(prefix="(", suffix=")"))

        assert render(journal_article, node) == ""

    def test_value(self, render, journal_article):
        """Test literal values with affixes."""
        node = Text(value="Hello", formatting=Formatting(prefix="[", suffix="]"))

        assert render(journal_article, node) == "[Hello]"

    def test_term(self, render, journal_article):
        """Test terms render in the requested form."""
        assert render(journal_article, Text(term="no date", form=TermForm.SHORT)) == "n.d."

    def test_plural_term(self, render, journal_article):
        """Test plural terms."""
        node = Text(term="page", form=TermForm.SHORT, plural=True)

        assert render(journal_article, node) == "pp."

    def test_macro(self, render, journal_article):
        """Test macros expand in place."""
        result = render(
            journal_article,
            Text(macro="title", formatting=Formatting(suffix=".")),
            macros={"title": (Text(variable="title"),)},
        )

        assert result == "Test Article."

    def test_undefined_macro_warns(self, render, journal_article, caplog):
        """Test an undefined macro renders empty and logs a warning."""
        with caplog.at_level(logging.WARNING):
            result = render(journal_article, Text(macro="missing"))

        assert result == ""
        assert "undefined macro" in caplog.text

    def test_short_form_variable(self, render, entry_factory):
        """Test the short form prefers the -short variable."""
        entry = entry_factory(title="A Very Long Title", title_short="Long Title")

        assert render(entry, Text(variable="title", form=TermForm.SHORT)) == "Long Title"

    def test_short_form_falls_back(self, render, journal_article):
        """Test the short form falls back to the long variable."""
        assert render(journal_article, Text(variable="title", form=TermForm.SHORT)) == "Test Article"

    def test_citation_number(self, render, journal_article):
        """Test citation-number comes from the cite context."""
        node = Text(variable="citation-number", formatting=Formatting(prefix="[", suffix="]"))

        assert render(journal_article, node, citation_number=3) == "[3]"

    def test_page_range_format(self, render, style_factory, journal_article):
        """Test the page variable follows the style's range format."""
        style = replace(
            style_factory(Text(variable="page")),
            page_range_format=PageRangeFormat.MINIMAL,
        )

        assert render(journal_article, style=style) == "100–20"


class TestGroupSuppression:
    """Tests for Group semantics."""

    def test_suppressed_when_variables_empty(self, render, journal_article):
        """Test a group whose variables are all empty disappears with its terms."""
        node = Group(delimiter=" ", children=(Text(term="in"), Text(variable="collection-title")))

        assert render(journal_article, node) == ""

    def test_rendered_when_a_variable_renders(self, render, journal_article):
        """Test the group renders when one of its variables does."""
        node = Group(delimiter=" ", children=(Text(term="in"), Text(variable="container-title")))

        assert render(journal_article, node) == "in Journal of Testing"

    def test_group_without_variables(self, render, journal_article):
        """Test a group calling no variables is kept."""
        node = Group(children=(Text(value="Hello"),))

        assert render(journal_article, node) == "Hello"

    def test_nested_suppression(self, render, journal_article):
        """Test a suppressed inner group makes the outer group empty too."""
        node = Group(
            children=(
                Text(value="Vol. "),
                Group(children=(Text(variable="number-of-volumes"),)),
            )
        )

        assert render(journal_article, node) == ""

    def test_delimiter_skips_empty_children(self, render, journal_article):
        """Test delimiters appear only between non-empty children."""
        node = Group(
            delimiter=", ",
            children=(
                Text(variable="title"),
                Text(variable="note"),
                Text(variable="volume"),
            ),
        )

        assert render(journal_article, node) == "Test Article, 10"


class TestConditions:
    """Tests for Choose and conditions."""

    @staticmethod
    def _choose(condition):
        return Choose(
            branches=(Branch(condition, (Text(value="yes"),)),),
            otherwise=(Text(value="no"),),
        )

    def test_type(self, render, journal_article, edited_book):
        """Test type conditions."""
        node = self._choose(Condition(types=("book",)))

        assert render(edited_book, node) == "yes"
        assert render(journal_article, node) == "no"

    def test_match_any(self, render, journal_article):
        """Test match any over variables."""
        node = self._choose(Condition(variables=("URL", "DOI"), match=Match.ANY))

        assert render(journal_article, node) == "yes"

    def test_match_all(self, render, journal_article):
        """Test match all requires every variable."""
        node = self._choose(Condition(variables=("URL", "DOI")))

        assert render(journal_article, node) == "no"

    def test_match_none(self, render, journal_article):
        """Test match none."""
        node = self._choose(Condition(variables=("URL", "ISBN"), match=Match.NONE))

        assert render(journal_article, node) == "yes"

    def test_first_branch_wins(self, render, journal_article):
        """Test branches are tried in order."""
        node = Choose(
            branches=(
                Branch(Condition(variables=("title",)), (Text(value="first"),)),
                Branch(Condition(variables=("DOI",)), (Text(value="second"),)),
            )
        )

        assert render(journal_article, node) == "first"

    @pytest.mark.parametrize(
        "tested,position,near_note,expected",
        [
            (Position.FIRST, Position.FIRST, False, "yes"),
            (Position.SUBSEQUENT, Position.IBID, False, "yes"),
            (Position.SUBSEQUENT, Position.FIRST, False, "no"),
            (Position.IBID, Position.IBID_WITH_LOCATOR, False, "yes"),
            (Position.IBID_WITH_LOCATOR, Position.IBID, False, "no"),
            (Position.NEAR_NOTE, Position.SUBSEQUENT, True, "yes"),
            (Position.NEAR_NOTE, Position.SUBSEQUENT, False, "no"),
            (Position.NEAR_NOTE, Position.FIRST, True, "no"),
        ],
    )
    def test_positions(self, render, journal_article, tested, position, near_note, expected):
        """Test position conditions against the cite context."""
        node = self._choose(Condition(positions=(tested,)))

        result = render(journal_article, node, position=position, near_note=near_note)

        assert result == expected

    def test_locator(self, render, journal_article):
        """Test locator-type conditions."""
        node = self._choose(Condition(locators=("chapter",)))

        assert render(journal_article, node, locator="3", locator_type="chapter") == "yes"
        assert render(journal_article, node, locator="3") == "no"

    @pytest.mark.parametrize("volume,expected", [("12", "yes"), ("2-3", "yes"), ("iv", "no")])
    def test_is_numeric(self, render, entry_factory, volume, expected):
        """Test is-numeric conditions."""
        node = self._choose(Condition(is_numeric=("volume",)))

        assert render(entry_factory(volume=volume), node) == expected

    def test_is_uncertain_date(self, render, entry_factory):
        """Test is-uncertain-date conditions."""
        node = self._choose(Condition(is_uncertain_date=("issued",)))
        entry = entry_factory(issued=StructuredDate(1850, approximate=True))

        assert render(entry, node) == "yes"

    def test_disambiguate(self, render, journal_article):
        """Test disambiguate conditions read the entry's state."""
        node = self._choose(Condition(disambiguate=True))

        assert render(journal_article, node) == "no"
        assert render(
            journal_article, node, disambiguation=EntryDisambiguation(condition=True)
        ) == "yes"

    def test_state_reports_near_note(self):
        """Test near-note replaces subsequent in the reported state."""
        assert CiteContext(Position.SUBSEQUENT, near_note=True).state == Position.NEAR_NOTE
        assert CiteContext(Position.IBID, near_note=True).state == Position.IBID


class TestLabelsAndNumbers:
    """Tests for Label and Number nodes."""

    def test_plural_page_label(self, render, journal_article):
        """Test a page range takes the plural label."""
        node = Group(
            delimiter=" ",
            children=(Label("page", form=TermForm.SHORT), Text(variable="page")),
        )

        assert render(journal_article, node) == "pp. 100–120"

    def test_singular_locator_label(self, render, journal_article):
        """Test the locator label follows the locator type."""
        node = Group(
            delimiter=" ",
            children=(Label("locator", form=TermForm.SHORT), Text(variable="locator")),
        )

        assert render(journal_article, node, locator="5") == "p. 5"
        assert render(journal_article, node, locator="4", locator_type="chapter") == "chap. 4"

    def test_label_without_value_suppresses_group(self, render, journal_article):
        """Test a label counts as a variable call for group suppression."""
        node = Group(children=(Label("locator"),))

        assert render(journal_article, node) == ""

    def test_ordinal(self, render, edited_book):
        """Test ordinal number form."""
        assert render(edited_book, Number("edition", form=NumberForm.ORDINAL)) == "2nd"

    def test_roman(self, render, entry_factory):
        """Test roman number form."""
        assert render(entry_factory(volume="4"), Number("volume", form=NumberForm.ROMAN)) == "iv"

    def test_number_of_pages_label(self, render, entry_factory):
        """Test number-of-pages labels use the page term."""
        entry = entry_factory(number_of_pages="320")
        node = Group(
            delimiter=" ",
            children=(Number("number-of-pages"), Label("number-of-pages", form=TermForm.SHORT)),
        )

        assert render(entry, node) == "320 pp."


class TestNames:
    """Tests for Names nodes."""

    def test_name_list(self, render, journal_article):
        """Test a name list with the and term."""
        node = Names(("author",), name=NameOptions(and_=And.TEXT))

        assert render(journal_article, node) == "John Smith and Jane Jones"

    def test_runs_tagged_author(self, interpreter, style_factory, context_factory, journal_article):
        """Test author runs carry the author tag."""
        style = style_factory(Names(("author",)))
        runs = interpreter.render(
            journal_article, style.citation.layout.children, context_factory(style)
        )

        assert {run.tag for run in runs} == {RunTag.AUTHOR}

    def test_substitute_editor_with_label(self, render, edited_book):
        """Test editors substitute for authors and keep the label."""
        node = Names(
            ("author",),
            label=NameLabel(form=TermForm.SHORT, formatting=Formatting(prefix=" (", suffix=")")),
            substitute=(Names(("editor",)),),
        )

        assert render(edited_book, node) == "Jane Doe (ed.)"

    def test_substituted_variable_suppressed(self, render, entry_factory):
        """Test a title used in place of the author is not repeated."""
        entry = entry_factory(title="Anonymous Pamphlet", issued=StructuredDate(1850))
        node = Group(
            delimiter=". ",
            children=(
                Names(("author",), substitute=(Text(variable="title"),)),
                DateNode("issued", parts=(DatePart("year"),)),
                Text(variable="title"),
            ),
        )

        assert render(entry, node) == "Anonymous Pamphlet. 1850"

    def test_label_before(self, render, edited_book):
        """Test a verb label placed before the names."""
        node = Names(
            ("editor",),
            label=NameLabel(form=TermForm.VERB, before=True, formatting=Formatting(suffix=" ")),
        )

        assert render(edited_book, node) == "edited by Jane Doe"

    def test_count_form(self, render, journal_article):
        """Test the count form renders the number of names."""
        node = Names(("author",), name=NameOptions(form=NameForm.COUNT))

        assert render(journal_article, node) == "2"

    def test_subsequent_et_al(self, render, journal_article):
        """Test subsequent cites use the subsequent et-al settings."""
        node = Names(
            ("author",),
            name=NameOptions(
                form=NameForm.SHORT,
                and_=And.TEXT,
                et_al_min=3,
                et_al_use_first=3,
                et_al_subsequent_min=2,
                et_al_subsequent_use_first=1,
            ),
        )

        assert render(journal_article, node) == "Smith and Jones"
        assert render(journal_article, node, position=Position.SUBSEQUENT) == "Smith et al."

    def test_givenname_level(self, render, journal_article):
        """Test disambiguation levels expand short names."""
        node = Names(("author",), name=NameOptions(form=NameForm.SHORT, and_=And.SYMBOL))
        state = EntryDisambiguation(givenname_levels=(1,))

        assert render(journal_article, node, disambiguation=state) == "J. Smith & Jones"

    def test_sorting_inverts_names(self, interpreter, style_factory, context_factory, journal_article):
        """Test sort renders invert every name and use the long form."""
        style = style_factory(Names(("author",), name=NameOptions(form=NameForm.SHORT)))
        context = replace(context_factory(style), sorting=True)

        runs = interpreter.render(journal_article, style.citation.layout.children, context)

        assert plain_text(runs) == "Smith, John, Jones, Jane"


class TestFormatting:
    """Tests for formatting attributes."""

    def test_quotes_take_punctuation(self, render, journal_article):
        """Test a following comma moves inside the closing quote."""
        node = Group(
            delimiter=", ",
            children=(
                Text(variable="title", formatting=Formatting(quotes=True)),
                Text(variable="container-title"),
            ),
        )

        assert render(journal_article, node) == "“Test Article,” Journal of Testing"

    def test_title_case_keeps_verbatim(self, render, entry_factory):
        """Test title case leaves verbatim spans alone."""
        entry = entry_factory(title="a study of {mRNA} in mice")
        node = Text(variable="title", formatting=Formatting(text_case=TextCase.TITLE))

        assert render(entry, node) == "A Study of mRNA in Mice"

    def test_sentence_case(self, render, entry_factory):
        """Test sentence case keeps acronyms."""
        entry = entry_factory(title="The {CIA} Files")
        node = Text(variable="title", formatting=Formatting(text_case=TextCase.SENTENCE))

        assert render(entry, node) == "The CIA files"

    def test_strip_periods(self, render, journal_article):
        """Test strip-periods removes periods."""
        node = Text(term="page", form=TermForm.SHORT, formatting=Formatting(strip_periods=True))

        assert render(journal_article, node) == "p"

    def test_italic_styles(self, interpreter, style_factory, context_factory, journal_article):
        """Test font style reaches the runs."""
        style = style_factory(
            Text(variable="container-title", formatting=Formatting(font_style="italic"))
        )

        runs = interpreter.render(journal_article, style.citation.layout.children, context_factory(style))

        assert runs[0].styles == frozenset({"italic"})

    def test_duplicate_period_collapsed(self, render, entry_factory):
        """Test a suffix period after a terminal period is dropped."""
        entry = entry_factory(title="Why?")
        node = Text(variable="title", formatting=Formatting(suffix="."))

        assert render(entry, node) == "Why?"


class TestDates:
    """Tests for DateNode rendering."""

    def test_localized_text_form(self, render, journal_article):
        """Test the locale text form without a day."""
        assert render(journal_article, DateNode("issued", form=DateForm.TEXT)) == "June 2023"

    def test_year_month_selection(self, render, entry_factory):
        """Test date-parts selection drops the day."""
        entry = entry_factory(issued=StructuredDate(2020, 5, 3))
        node = DateNode("issued", form=DateForm.TEXT, date_parts=DatePartsSelection.YEAR_MONTH)

        assert render(entry, node) == "May 2020"

    def test_year_selection(self, render, entry_factory):
        """Test the year-only selection."""
        entry = entry_factory(issued=StructuredDate(2020, 5, 3))
        node = DateNode("issued", form=DateForm.TEXT, date_parts=DatePartsSelection.YEAR)

        assert render(entry, node) == "2020"

    def test_literal_date(self, render, entry_factory):
        """Test a literal date string renders as given."""
        entry = entry_factory(issued="forthcoming")

        assert render(entry, DateNode("issued", parts=(DatePart("year"),))) == "forthcoming"

    def test_literal_date_skipped_without_year(self, render, entry_factory):
        """Test a literal date stays out of month and day parts."""
        entry = entry_factory(issued="forthcoming")
        node = DateNode("issued", parts=(DatePart("month"), DatePart("day")))

        assert render(entry, node) == ""


class TestYearSuffix:
    """Tests for year-suffix placement."""

    def test_after_issued_year(self, render, sample_entries):
        """Test the suffix follows the first issued year."""
        node = Group(
            delimiter=", ",
            children=(Names(("author",)), DateNode("issued", parts=(DatePart("year"),))),
        )

        result = render(
            sample_entries[0], node, disambiguation=EntryDisambiguation(year_suffix=0)
        )

        assert result == "Smith, 2020a"

    def test_appended_without_date(self, render, sample_entries):
        """Test the suffix is appended when no issued year renders."""
        result = render(
            sample_entries[0],
            Text(variable="title"),
            disambiguation=EntryDisambiguation(year_suffix=1),
        )

        assert result == "Alphab"

    def test_explicit_variable(self, render, sample_entries):
        """Test an explicit year-suffix variable controls placement."""
        node = Group(
            delimiter=" ",
            children=(
                DateNode("issued", parts=(DatePart("year"),)),
                Text(variable="year-suffix", formatting=Formatting(prefix="(", suffix=")")),
            ),
        )

        result = render(
            sample_entries[0], node, disambiguation=EntryDisambiguation(year_suffix=2)
        )

        assert result == "2020 (c)"


class TestRenderCitation:
    """Tests for Interpreter.render_citation."""

    def test_joins_items(self, interpreter, style_factory, context_factory, sample_entries, locale):
        """Test items join with the layout delimiter inside layout affixes."""
        style = style_factory(Names(("author",)))
        layout = Layout(
            children=(Text(variable="title"),),
            delimiter="; ",
            formatting=Formatting(prefix="(", suffix=")"),
        )
        context = context_factory(style)
        items = [
            (sample_entries[0], context, "see ", ""),
            (sample_entries[1], context, "", ", 5"),
        ]

        runs = interpreter.render_citation(items, layout, locale)

        assert plain_text(runs) == "(see Alpha; Beta, 5)"

    def test_empty_items_render_nothing(self, interpreter, style_factory, context_factory, sample_entries, locale):
        """Test layout affixes vanish when every item is empty."""
        style = style_factory(Names(("author",)))
        layout = Layout(children=(Text(variable="note"),), formatting=Formatting(prefix="("))

        runs = interpreter.render_citation(
            [(sample_entries[0], context_factory(style), "", "")], layout, locale
        )

        assert plain_text(runs) == ""

    def test_idempotent(self, interpreter, style_factory, context_factory, journal_article):
        """Test rendering twice gives identical runs."""
        style = style_factory(
            Names(("author",)),
            Text(variable="title", formatting=Formatting(quotes=True, prefix=" ")),
        )
        context = context_factory(style)
        nodes = style.citation.layout.children

        assert interpreter.render(journal_article, nodes, context) == interpreter.render(
            journal_article, nodes, context
        )

    def test_entry_type_irrelevant_to_plain_variables(self, render, entry_factory):
        """Test plain variables render the same for any entry type."""
        book = entry_factory(entry_type=EntryType.BOOK, title="Same")
        article = entry_factory(title="Same")

        assert render(book, Text(variable="title")) == render(article, Text(variable="title"))

