"""
Style Interpreter: evaluates a style tree against one entry.

Rendering is a pure function of its arguments. Everything a render needs
(style, locale, section, cite position, disambiguation state) travels in
an explicit RenderContext; there is no "current style" anywhere.

Architecture Context
--------------------
The interpreter sits below the driver and the disambiguation engine:

    CitationDriver ──► Interpreter.render_citation()  (one event)
    DisambiguationEngine ──► render_key() ──► Interpreter.render()
    BibliographySorter ──► Interpreter.render()       (macro sort keys)

Node Dispatch
-------------
The element vocabulary is closed, so each node type maps to one handler
in a dispatch table built at construction time. Every handler returns an
_Output: the runs plus how many variables the subtree called and how many
of those rendered non-empty. Groups use those counts for suppression:

    Group(children=(Text(term="in"), Text(variable="container-title")))
    # no container-title → the whole group, "in" included, disappears

Substitution
------------
When every name variable of a Names node is empty its substitute nodes
are tried in order. The first non-empty one wins and the variables it
rendered are suppressed for the rest of the render, so a title used in
place of an author is not printed a second time.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Optional, Sequence

from citeforge.citation.disambiguation import NEUTRAL, EntryDisambiguation
from citeforge.citation.formatting.case import apply_case
from citeforge.citation.formatting.dates import render_date
from citeforge.citation.formatting.names import NameListSettings, render_name_list, shown_count
from citeforge.citation.formatting.numbers import format_number, format_page_range
from citeforge.citation.locale import Locale
from citeforge.citation.output import (
    RunTag,
    TextRun,
    add_styles,
    apply_affixes,
    is_empty,
    join_runs,
    normalize_punctuation,
    punctuation,
    tag_for_variable,
)
from citeforge.citation.style import (
    Choose,
    Condition,
    DateNode,
    DatePart,
    DatePartsSelection,
    Formatting,
    Group,
    Label,
    LabelPlural,
    Layout,
    Match,
    NameAsSortOrder,
    NameForm,
    NameOptions,
    Names,
    Number,
    PageRangeFormat,
    Position,
    Section,
    Style,
    StyleNode,
    TermForm,
    Text,
)
from citeforge.citation.types import (
    Entry,
    FormattableString,
    NumberValue,
    StructuredDate,
)
from citeforge.core.logging import get_logger

logger = get_logger(__name__)

# Number variables whose label term has a different name
_LABEL_TERMS = {
    "chapter-number": "chapter",
    "collection-number": "number",
    "number-of-pages": "page",
    "number-of-volumes": "volume",
    "page-first": "page",
}


# ============================================================================
# Contexts
# ============================================================================


@dataclass(frozen=True)
class CiteContext:
    """Per-cite information supplied by the driver.

    ``position`` is one of FIRST, SUBSEQUENT, IBID or IBID_WITH_LOCATOR;
    ``near_note`` is tracked separately because it combines with them.
    """

    position: Position = Position.FIRST
    near_note: bool = False
    locator: Optional[str] = None
    locator_type: str = "page"
    citation_number: Optional[int] = None
    first_note_number: Optional[int] = None

    @property
    def state(self) -> Position:
        """The single position reported to callers."""
        if self.position == Position.SUBSEQUENT and self.near_note:
            return Position.NEAR_NOTE
        return self.position

    def matches(self, position: Position) -> bool:
        """Evaluate a ``position`` condition test."""
        if position == Position.FIRST:
            return self.position == Position.FIRST
        if position == Position.SUBSEQUENT:
            return self.position != Position.FIRST
        if position == Position.IBID:
            return self.position in (Position.IBID, Position.IBID_WITH_LOCATOR)
        if position == Position.IBID_WITH_LOCATOR:
            return self.position == Position.IBID_WITH_LOCATOR
        return self.near_note and self.position != Position.FIRST


@dataclass(frozen=True)
class RenderContext:
    """Everything one render depends on."""

    style: Style
    locale: Locale
    section: Section
    cite: CiteContext = CiteContext()
    disambiguation: EntryDisambiguation = NEUTRAL
    sorting: bool = False

    def for_cite(
        self, cite: CiteContext, disambiguation: EntryDisambiguation
    ) -> "RenderContext":
        return replace(self, cite=cite, disambiguation=disambiguation)


@dataclass
class _Output:
    runs: list[TextRun] = field(default_factory=list)
    called: int = 0
    rendered: int = 0


@dataclass
class _Pass:
    """Mutable scratch state of a single render."""

    suppressed: set[str] = field(default_factory=set)
    year_suffix_done: bool = False


Handler = Callable[[StyleNode, Entry, RenderContext, _Pass], _Output]


# ============================================================================
# Interpreter
# ============================================================================


class Interpreter:
    """Walks style trees; holds no per-session state."""

    def __init__(self) -> None:
        self._handlers: dict[type, Handler] = {
            Text: self._render_text,
            Label: self._render_label,
            Number: self._render_number,
            DateNode: self._render_date,
            Names: self._render_names,
            Group: self._render_group,
            Choose: self._render_choose,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def render(
        self, entry: Entry, nodes: Sequence[StyleNode], context: RenderContext
    ) -> tuple[TextRun, ...]:
        """Render nodes for one entry, with punctuation normalized."""
        runs = self._render_entry(entry, nodes, context)
        return normalize_punctuation(runs, context.locale.punctuation_in_quote)

    def render_item(
        self,
        entry: Entry,
        layout: Layout,
        context: RenderContext,
        prefix: str = "",
        suffix: str = "",
    ) -> list[TextRun]:
        """Render one cite of a layout without the layout's own affixes."""
        runs = self._render_entry(entry, layout.children, context)
        return apply_affixes(runs, prefix, suffix)

    def render_citation(
        self,
        items: Sequence[tuple[Entry, RenderContext, str, str]],
        layout: Layout,
        locale: Locale,
    ) -> tuple[TextRun, ...]:
        """Render a whole citation: cites joined by the layout delimiter.

        Args:
            items: (entry, context, prefix, suffix) per cite, in output order
            layout: Citation layout
            locale: Locale used for punctuation normalization

        Returns:
            Normalized runs, empty when every cite rendered empty
        """
        groups = [
            self.render_item(entry, layout, context, prefix, suffix)
            for entry, context, prefix, suffix in items
        ]
        return self.finish_layout(join_runs(groups, layout.delimiter), layout, locale)

    def finish_layout(
        self, runs: Sequence[TextRun], layout: Layout, locale: Locale
    ) -> tuple[TextRun, ...]:
        """Apply a layout's own formatting and normalize punctuation."""
        finished = self._finish(list(runs), layout.formatting, locale)
        return normalize_punctuation(finished, locale.punctuation_in_quote)

    def render_macro_text(
        self, entry: Entry, macro: str, context: RenderContext
    ) -> str:
        """Plain-text render of a macro, used for macro sort keys."""
        nodes = context.style.macro(macro)
        if nodes is None:
            return ""
        return "".join(run.text for run in self.render(entry, nodes, context))

    # ------------------------------------------------------------------
    # Core walk
    # ------------------------------------------------------------------

    def _render_entry(
        self, entry: Entry, nodes: Sequence[StyleNode], context: RenderContext
    ) -> list[TextRun]:
        state = _Pass()
        runs = self._render_sequence(nodes, "", entry, context, state).runs
        letter = context.disambiguation.year_suffix_letter
        if letter and not state.year_suffix_done and not is_empty(runs):
            runs.append(TextRun(letter, RunTag.YEAR_SUFFIX, "year-suffix"))
        return runs

    def _render_node(
        self, node: StyleNode, entry: Entry, context: RenderContext, state: _Pass
    ) -> _Output:
        handler = self._handlers.get(type(node))
        if handler is None:
            logger.debug("Skipping unknown node type", node=type(node).__name__)
            return _Output()
        return handler(node, entry, context, state)

    def _render_sequence(
        self,
        nodes: Sequence[StyleNode],
        delimiter: str,
        entry: Entry,
        context: RenderContext,
        state: _Pass,
    ) -> _Output:
        outputs = [self._render_node(node, entry, context, state) for node in nodes]
        return _Output(
            runs=join_runs((out.runs for out in outputs), delimiter),
            called=sum(out.called for out in outputs),
            rendered=sum(out.rendered for out in outputs),
        )

    def _finish(
        self, runs: list[TextRun], formatting: Formatting, locale: Locale
    ) -> list[TextRun]:
        """Apply strip-periods, case, quotes, styles and affixes, in that order."""
        if is_empty(runs):
            return []
        if formatting.strip_periods:
            runs = [
                run if run.verbatim else replace(run, text=run.text.replace(".", ""))
                for run in runs
            ]
        if formatting.text_case is not None:
            texts = apply_case(
                [(run.text, run.verbatim) for run in runs], formatting.text_case
            )
            runs = [
                run if text == run.text else replace(run, text=text)
                for run, text in zip(runs, texts)
            ]
        if formatting.quotes:
            runs = (
                [punctuation(locale.term("open-quote"))]
                + runs
                + [punctuation(locale.term("close-quote"))]
            )
        runs = add_styles(runs, formatting.styles)
        return apply_affixes(runs, formatting.prefix, formatting.suffix)

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def _render_text(
        self, node: Text, entry: Entry, context: RenderContext, state: _Pass
    ) -> _Output:
        if node.variable is not None:
            runs = self._variable_runs(node.variable, node.form, entry, context, state)
            out = _Output(runs, called=1, rendered=1 if runs else 0)
        elif node.macro is not None:
            nodes = context.style.macro(node.macro)
            if nodes is None:
                logger.warning("Style references undefined macro", macro=node.macro)
                return _Output()
            out = self._render_sequence(nodes, "", entry, context, state)
        elif node.term is not None:
            text = context.locale.term(node.term, node.form, node.plural)
            out = _Output([TextRun(text, RunTag.TERM)] if text else [])
        elif node.value is not None:
            out = _Output([TextRun(node.value, RunTag.TEXT)] if node.value else [])
        else:
            return _Output()
        out.runs = self._finish(out.runs, node.formatting, context.locale)
        return out

    def _variable_runs(
        self,
        variable: str,
        form: TermForm,
        entry: Entry,
        context: RenderContext,
        state: _Pass,
    ) -> list[TextRun]:
        if variable in state.suppressed:
            return []
        tag = tag_for_variable(variable)
        cite = context.cite

        if variable == "year-suffix":
            letter = context.disambiguation.year_suffix_letter
            if not letter:
                return []
            state.year_suffix_done = True
            return [TextRun(letter, RunTag.YEAR_SUFFIX, variable)]
        if variable == "citation-number":
            return self._number_run(cite.citation_number, tag, variable)
        if variable == "first-reference-note-number":
            return self._number_run(cite.first_note_number, tag, variable)
        if variable == "locator":
            if cite.locator is None:
                return []
            text = self._page_text(cite.locator, context) if cite.locator_type == "page" else cite.locator
            return [TextRun(text, tag, variable)]

        value = None
        if form == TermForm.SHORT:
            value = entry.get(f"{variable}-short")
        if value is None:
            value = entry.get(variable)
        if value is None:
            return []

        if variable == "page" and isinstance(value, NumberValue):
            return [TextRun(self._page_text(value.raw, context), tag, variable)]
        if isinstance(value, FormattableString):
            return [
                TextRun(text, tag, variable, verbatim=verbatim)
                for text, verbatim in value.segments()
            ]
        if isinstance(value, NumberValue):
            return [TextRun(value.raw, tag, variable)]
        return []

    @staticmethod
    def _number_run(number: Optional[int], tag: RunTag, variable: str) -> list[TextRun]:
        if number is None:
            return []
        return [TextRun(str(number), tag, variable)]

    @staticmethod
    def _page_text(text: str, context: RenderContext) -> str:
        delimiter = context.locale.term("page-range-delimiter") or "–"
        fmt: Optional[PageRangeFormat] = context.style.page_range_format
        return format_page_range(text, fmt, delimiter)

    # ------------------------------------------------------------------
    # Label and Number
    # ------------------------------------------------------------------

    def _render_label(
        self, node: Label, entry: Entry, context: RenderContext, state: _Pass
    ) -> _Output:
        variable = node.variable
        if variable == "locator":
            locator = context.cite.locator
            if locator is None:
                return _Output(called=1)
            term_name = context.cite.locator_type
            plural = NumberValue(locator).is_plural
        else:
            value = None if variable in state.suppressed else entry.get(variable)
            if value is None:
                return _Output(called=1)
            term_name = _LABEL_TERMS.get(variable, variable)
            plural = self._is_plural(variable, value)

        if node.plural == LabelPlural.ALWAYS:
            plural = True
        elif node.plural == LabelPlural.NEVER:
            plural = False

        text = context.locale.term(term_name, node.form, plural)
        runs = [TextRun(text, RunTag.TERM, variable)] if text else []
        runs = self._finish(runs, node.formatting, context.locale)
        return _Output(runs, called=1, rendered=1 if runs else 0)

    @staticmethod
    def _is_plural(variable: str, value: object) -> bool:
        if isinstance(value, tuple):
            return len(value) > 1
        if isinstance(value, NumberValue):
            if variable in ("number-of-pages", "number-of-volumes"):
                return (value.integer or 0) > 1
            return value.is_plural
        return False

    def _render_number(
        self, node: Number, entry: Entry, context: RenderContext, state: _Pass
    ) -> _Output:
        variable = node.variable
        tag = tag_for_variable(variable)
        if variable in state.suppressed:
            return _Output(called=1)
        if variable == "citation-number":
            value: object = NumberValue.of(context.cite.citation_number) if context.cite.citation_number else None
        elif variable == "locator":
            value = NumberValue(context.cite.locator) if context.cite.locator else None
        else:
            value = entry.get(variable)
        if value is None:
            return _Output(called=1)

        if isinstance(value, NumberValue):
            text = format_number(value, node.form, context.locale)
        else:
            text = str(value)
        runs = [TextRun(text, tag, variable)] if text else []
        runs = self._finish(runs, node.formatting, context.locale)
        return _Output(runs, called=1, rendered=1 if runs else 0)

    # ------------------------------------------------------------------
    # Dates
    # ------------------------------------------------------------------

    def _date_layout(
        self, node: DateNode, locale: Locale
    ) -> tuple[tuple[DatePart, ...], str]:
        if node.form is None:
            return node.parts, node.delimiter
        date_format = locale.date_formats.get(node.form.value)
        if date_format is None:
            return node.parts, node.delimiter

        allowed = {"year", "month", "day"}
        if node.date_parts == DatePartsSelection.YEAR_MONTH:
            allowed = {"year", "month"}
        elif node.date_parts == DatePartsSelection.YEAR:
            allowed = {"year"}

        overrides = {part.name: part for part in node.parts}
        parts = []
        for part in date_format.parts:
            if part.name not in allowed:
                continue
            override = overrides.get(part.name)
            if override is not None:
                part = replace(
                    part,
                    form=override.form or part.form,
                    formatting=replace(
                        part.formatting,
                        text_case=override.formatting.text_case,
                        font_style=override.formatting.font_style,
                        font_weight=override.formatting.font_weight,
                        strip_periods=override.formatting.strip_periods,
                    ),
                )
            parts.append(part)
        if len(parts) < len(date_format.parts) and parts:
            # the last kept part must not carry a separator meant for a dropped one
            last = parts[-1]
            parts[-1] = replace(last, formatting=replace(last.formatting, suffix=""))
        return tuple(parts), date_format.delimiter

    def _render_date(
        self, node: DateNode, entry: Entry, context: RenderContext, state: _Pass
    ) -> _Output:
        variable = node.variable
        if variable in state.suppressed:
            return _Output(called=1)
        value = entry.get(variable)
        if value is None:
            return _Output(called=1)

        tag = tag_for_variable(variable)
        if isinstance(value, StructuredDate):
            parts, delimiter = self._date_layout(node, context.locale)
            runs = render_date(
                value, parts, context.locale, delimiter=delimiter, tag=tag,
                variable=variable,
            )
        elif isinstance(value, FormattableString):
            # literal date such as "forthcoming" takes the year's place
            parts, _ = self._date_layout(node, context.locale)
            if parts and all(part.name != "year" for part in parts):
                runs = []
            else:
                runs = [TextRun(value.text, tag, variable)]
        else:
            runs = []

        if variable == "issued":
            runs = self._insert_year_suffix(runs, context, state)
        runs = self._finish(runs, node.formatting, context.locale)
        return _Output(runs, called=1, rendered=1 if runs else 0)

    @staticmethod
    def _insert_year_suffix(
        runs: list[TextRun], context: RenderContext, state: _Pass
    ) -> list[TextRun]:
        letter = context.disambiguation.year_suffix_letter
        if not letter or state.year_suffix_done or context.style.renders_year_suffix:
            return runs
        for index, run in enumerate(runs):
            if run.tag == RunTag.YEAR:
                state.year_suffix_done = True
                suffix_run = TextRun(letter, RunTag.YEAR_SUFFIX, "year-suffix", run.styles)
                return runs[: index + 1] + [suffix_run] + runs[index + 1 :]
        return runs

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    def _name_settings(self, options: NameOptions, context: RenderContext) -> NameListSettings:
        section = context.section
        subsequent = context.cite.position != Position.FIRST

        def pick(*values: Optional[int]) -> Optional[int]:
            for value in values:
                if value is not None:
                    return value
            return None

        if subsequent:
            et_al_min = pick(
                options.et_al_subsequent_min,
                section.et_al_subsequent_min,
                options.et_al_min,
                section.et_al_min,
            )
            et_al_use_first = pick(
                options.et_al_subsequent_use_first,
                section.et_al_subsequent_use_first,
                options.et_al_use_first,
                section.et_al_use_first,
            )
        else:
            et_al_min = pick(options.et_al_min, section.et_al_min)
            et_al_use_first = pick(options.et_al_use_first, section.et_al_use_first)

        initialize_with = options.initialize_with
        if initialize_with is None:
            initialize_with = section.initialize_with

        sort_order = NameAsSortOrder.ALL if context.sorting else options.name_as_sort_order
        if context.sorting and options.form == NameForm.SHORT:
            options = replace(options, form=NameForm.LONG)

        return NameListSettings(
            options=options,
            et_al_min=et_al_min,
            et_al_use_first=et_al_use_first,
            initialize_with=initialize_with,
            sort_order=sort_order,
            demote=context.style.demote_non_dropping_particle,
            hyphenate=context.style.initialize_with_hyphen,
            extra_names=context.disambiguation.extra_names,
            givenname_levels=context.disambiguation.givenname_levels,
        )

    def _render_names(
        self,
        node: Names,
        entry: Entry,
        context: RenderContext,
        state: _Pass,
        inherited: Optional[Names] = None,
    ) -> _Output:
        if inherited is not None and node.name == NameOptions():
            node = replace(node, name=inherited.name, et_al=inherited.et_al,
                           label=node.label or inherited.label)

        variables = [v for v in node.variables if v not in state.suppressed]
        lists = [(v, entry.names(v)) for v in variables if entry.names(v)]

        if not lists:
            return self._substitute(node, entry, context, state)

        settings = self._name_settings(node.name, context)
        if node.name.form == NameForm.COUNT:
            count = sum(shown_count(len(names), settings) for _, names in lists)
            runs = [TextRun(str(count), RunTag.NUMBER, lists[0][0])]
            return _Output(
                self._finish(runs, node.formatting, context.locale), called=1, rendered=1
            )

        blocks = []
        for variable, names in lists:
            runs = render_name_list(
                names,
                settings,
                context.locale,
                tag=tag_for_variable(variable),
                variable=variable,
                et_al=node.et_al,
            )
            runs = add_styles(runs, node.name.formatting.styles)
            runs = apply_affixes(runs, node.name.formatting.prefix, node.name.formatting.suffix)
            if node.label is not None:
                runs = self._with_label(runs, node, variable, len(names), context)
            blocks.append(runs)

        runs = join_runs(blocks, node.delimiter)
        return _Output(self._finish(runs, node.formatting, context.locale), called=1, rendered=1)

    def _with_label(
        self,
        runs: list[TextRun],
        node: Names,
        variable: str,
        count: int,
        context: RenderContext,
    ) -> list[TextRun]:
        label = node.label
        assert label is not None
        plural = count > 1
        if label.plural == LabelPlural.ALWAYS:
            plural = True
        elif label.plural == LabelPlural.NEVER:
            plural = False
        text = context.locale.term(variable, label.form, plural)
        label_runs = self._finish(
            [TextRun(text, RunTag.TERM, variable)] if text else [],
            label.formatting,
            context.locale,
        )
        return label_runs + runs if label.before else runs + label_runs

    def _substitute(
        self, node: Names, entry: Entry, context: RenderContext, state: _Pass
    ) -> _Output:
        for candidate in node.substitute:
            if isinstance(candidate, Names):
                out = self._render_names(candidate, entry, context, state, inherited=node)
            else:
                out = self._render_node(candidate, entry, context, state)
            if is_empty(out.runs):
                continue
            state.suppressed.update(
                run.variable
                for run in out.runs
                if run.variable and run.variable != "year-suffix"
            )
            if isinstance(candidate, Names):
                state.suppressed.update(candidate.variables)
            runs = self._finish(out.runs, node.formatting, context.locale)
            return _Output(runs, called=1, rendered=1)
        return _Output(called=1)

    # ------------------------------------------------------------------
    # Group and Choose
    # ------------------------------------------------------------------

    def _render_group(
        self, node: Group, entry: Entry, context: RenderContext, state: _Pass
    ) -> _Output:
        out = self._render_sequence(node.children, node.delimiter, entry, context, state)
        if out.called > 0 and out.rendered == 0:
            return _Output(called=out.called)
        out.runs = self._finish(out.runs, node.formatting, context.locale)
        return out

    def _render_choose(
        self, node: Choose, entry: Entry, context: RenderContext, state: _Pass
    ) -> _Output:
        for branch in node.branches:
            if self.evaluate(branch.condition, entry, context):
                return self._render_sequence(branch.children, "", entry, context, state)
        return self._render_sequence(node.otherwise, "", entry, context, state)

    def evaluate(self, condition: Condition, entry: Entry, context: RenderContext) -> bool:
        """Evaluate a Choose condition for one entry and cite."""
        cite = context.cite
        tests: list[bool] = []
        tests.extend(entry.type.value == name for name in condition.types)
        tests.extend(self._has_variable(v, entry, context) for v in condition.variables)
        tests.extend(self._is_numeric(v, entry, context) for v in condition.is_numeric)
        tests.extend(self._is_uncertain(v, entry) for v in condition.is_uncertain_date)
        tests.extend(
            cite.locator is not None and cite.locator_type == locator
            for locator in condition.locators
        )
        tests.extend(cite.matches(position) for position in condition.positions)
        if condition.disambiguate is not None:
            tests.append(context.disambiguation.condition == condition.disambiguate)

        if condition.match == Match.ANY:
            return any(tests)
        if condition.match == Match.NONE:
            return not any(tests)
        return all(tests)

    @staticmethod
    def _has_variable(variable: str, entry: Entry, context: RenderContext) -> bool:
        if variable == "locator":
            return context.cite.locator is not None
        if variable == "citation-number":
            return context.cite.citation_number is not None
        if variable == "year-suffix":
            return context.disambiguation.year_suffix is not None
        return entry.has(variable)

    @staticmethod
    def _is_uncertain(variable: str, entry: Entry) -> bool:
        date = entry.date(variable)
        return date is not None and date.approximate

    @staticmethod
    def _is_numeric(variable: str, entry: Entry, context: RenderContext) -> bool:
        if variable == "locator":
            value: object = NumberValue(context.cite.locator) if context.cite.locator else None
        else:
            value = entry.get(variable)
        if isinstance(value, NumberValue):
            return value.is_numeric
        if isinstance(value, FormattableString):
            return NumberValue(value.text).is_numeric
        return False
