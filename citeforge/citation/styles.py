"""
Built-in style trees.

Styles are normally parsed from CSL documents outside the engine; these
three pre-built trees cover the common families and double as working
examples of the node vocabulary:

    apa           author-date, year suffixes, "&" between authors
    chicago-note  notes with Ibid. and short subsequent notes
    ieee          numeric, bracketed citation numbers

Usage:
    style = get_style("chicago-note")
"""

from __future__ import annotations

from functools import lru_cache
from typing import Callable, Dict, List

from citeforge.citation.style import (
    And,
    Branch,
    Choose,
    Condition,
    DateForm,
    DateNode,
    DatePart,
    DelimiterRule,
    DisambiguationMethod,
    EtAl,
    Formatting,
    GivennameRule,
    Group,
    Label,
    Layout,
    Match,
    NameAsSortOrder,
    NameForm,
    NameLabel,
    NameOptions,
    Names,
    Number,
    NumberForm,
    PageRangeFormat,
    Position,
    Section,
    SortKey,
    Style,
    StyleClass,
    TermForm,
    Text,
    TextCase,
)
from citeforge.core.exceptions import UnknownStyleError

ITALIC = Formatting(font_style="italic")
SENTENCE_ITALIC = Formatting(font_style="italic", text_case=TextCase.SENTENCE)
SENTENCE = Formatting(text_case=TextCase.SENTENCE)

PERIODICAL_TYPES = (
    "article-journal",
    "article-magazine",
    "article-newspaper",
)
CONTAINED_TYPES = ("chapter", "paper-conference", "entry")
STANDALONE_TYPES = (
    "book",
    "report",
    "thesis",
    "dataset",
    "software",
    "motion-picture",
    "webpage",
)


def _year(formatting: Formatting = Formatting()) -> DateNode:
    return DateNode("issued", parts=(DatePart("year"),), formatting=formatting)


def _month_day() -> DateNode:
    """Month and day of the issued date, led by a comma when either exists."""
    return DateNode(
        "issued",
        parts=(
            DatePart("month", form="long"),
            DatePart("day", formatting=Formatting(prefix=" ")),
        ),
        formatting=Formatting(prefix=", "),
    )


# ============================================================================
# APA
# ============================================================================


def apa() -> Style:
    """APA-like author-date style."""
    bibliography_names = NameOptions(
        and_=And.SYMBOL,
        delimiter_precedes_last=DelimiterRule.ALWAYS,
        initialize_with=". ",
        name_as_sort_order=NameAsSortOrder.ALL,
        et_al_min=21,
        et_al_use_first=19,
        et_al_use_last=True,
    )
    editor_label = NameLabel(
        form=TermForm.SHORT,
        formatting=Formatting(prefix=" (", suffix=")", text_case=TextCase.CAPITALIZE_FIRST),
    )
    macros = {
        "author": (
            Names(
                ("author",),
                name=bibliography_names,
                substitute=(
                    Names(("editor",), label=editor_label),
                    Text(macro="title"),
                ),
            ),
        ),
        "author-short": (
            Names(
                ("author",),
                name=NameOptions(
                    form=NameForm.SHORT,
                    and_=And.SYMBOL,
                    et_al_min=3,
                    et_al_use_first=1,
                ),
                substitute=(
                    Names(("editor",)),
                    Text(variable="title", form=TermForm.SHORT, formatting=ITALIC),
                ),
            ),
        ),
        "issued-year": (
            Choose(
                branches=(
                    Branch(
                        Condition(variables=("issued",)),
                        (_year(), Text(variable="year-suffix")),
                    ),
                ),
                otherwise=(
                    Text(term="no date", form=TermForm.SHORT),
                    Text(variable="year-suffix", formatting=Formatting(prefix="-")),
                ),
            ),
        ),
        "issued-date": (
            Choose(
                branches=(
                    Branch(
                        Condition(variables=("issued",)),
                        (_year(), Text(variable="year-suffix"), _month_day()),
                    ),
                ),
                otherwise=(Text(macro="issued-year"),),
            ),
        ),
        "edition-volume": (
            Group(
                delimiter=", ",
                children=(
                    Group(
                        children=(
                            Number("edition", form=NumberForm.ORDINAL),
                            Text(
                                term="edition",
                                form=TermForm.SHORT,
                                formatting=Formatting(prefix=" "),
                            ),
                        )
                    ),
                    Group(
                        delimiter=" ",
                        children=(
                            Label(
                                "volume",
                                form=TermForm.SHORT,
                                formatting=Formatting(text_case=TextCase.CAPITALIZE_FIRST),
                            ),
                            Number("volume"),
                        ),
                    ),
                ),
                formatting=Formatting(prefix=" (", suffix=")"),
            ),
        ),
        "title": (
            Choose(
                branches=(
                    Branch(
                        Condition(types=STANDALONE_TYPES, match=Match.ANY),
                        (
                            Group(
                                children=(
                                    Text(variable="title", formatting=SENTENCE_ITALIC),
                                    Text(macro="edition-volume"),
                                )
                            ),
                        ),
                    ),
                ),
                otherwise=(Text(variable="title", formatting=SENTENCE),),
            ),
        ),
        "container": (
            Choose(
                branches=(
                    Branch(
                        Condition(types=PERIODICAL_TYPES, match=Match.ANY),
                        (
                            Group(
                                delimiter=", ",
                                children=(
                                    Text(variable="container-title", formatting=ITALIC),
                                    Group(
                                        children=(
                                            Text(variable="volume", formatting=ITALIC),
                                            Text(
                                                variable="issue",
                                                formatting=Formatting(prefix="(", suffix=")"),
                                            ),
                                        )
                                    ),
                                    Text(variable="page"),
                                ),
                            ),
                        ),
                    ),
                    Branch(
                        Condition(types=CONTAINED_TYPES, match=Match.ANY),
                        (
                            Group(
                                delimiter=" ",
                                children=(
                                    Text(term="in", formatting=Formatting(text_case=TextCase.CAPITALIZE_FIRST)),
                                    Group(
                                        delimiter=", ",
                                        children=(
                                            Names(
                                                ("editor",),
                                                name=NameOptions(
                                                    and_=And.SYMBOL,
                                                    initialize_with=". ",
                                                ),
                                                label=editor_label,
                                            ),
                                            Text(variable="container-title", formatting=ITALIC),
                                        ),
                                    ),
                                    Group(
                                        delimiter=" ",
                                        children=(
                                            Label("page", form=TermForm.SHORT),
                                            Text(variable="page"),
                                        ),
                                        formatting=Formatting(prefix="(", suffix=")"),
                                    ),
                                ),
                            ),
                            Text(variable="publisher", formatting=Formatting(prefix=". ")),
                        ),
                    ),
                ),
                otherwise=(Text(variable="publisher"),),
            ),
        ),
        "access": (
            Choose(
                branches=(
                    Branch(
                        Condition(variables=("DOI",)),
                        (Text(variable="DOI", formatting=Formatting(prefix="https://doi.org/")),),
                    ),
                    Branch(
                        Condition(variables=("URL",)),
                        (
                            Group(
                                delimiter=" ",
                                children=(
                                    Text(
                                        term="retrieved",
                                        formatting=Formatting(text_case=TextCase.CAPITALIZE_FIRST),
                                    ),
                                    DateNode(
                                        "accessed",
                                        form=DateForm.TEXT,
                                        formatting=Formatting(suffix=","),
                                    ),
                                    Text(term="from"),
                                ),
                                formatting=Formatting(suffix=" "),
                            ),
                            Text(variable="URL"),
                        ),
                    ),
                ),
            ),
        ),
    }

    citation = Section(
        layout=Layout(
            children=(
                Group(
                    delimiter=", ",
                    children=(
                        Text(macro="author-short"),
                        Text(macro="issued-year"),
                        Group(
                            delimiter=" ",
                            children=(
                                Label("locator", form=TermForm.SHORT),
                                Text(variable="locator"),
                            ),
                        ),
                    ),
                ),
            ),
            delimiter="; ",
            formatting=Formatting(prefix="(", suffix=")"),
        ),
        disambiguation=(
            DisambiguationMethod.ADD_NAMES,
            DisambiguationMethod.ADD_GIVENNAME,
            DisambiguationMethod.ADD_YEAR_SUFFIX,
        ),
        givenname_rule=GivennameRule.PRIMARY_NAME_WITH_INITIALS,
    )
    bibliography = Section(
        layout=Layout(
            children=(
                Group(
                    delimiter=". ",
                    children=(
                        Text(macro="author"),
                        Text(macro="issued-date", formatting=Formatting(prefix="(", suffix=")")),
                        Text(macro="title"),
                        Text(macro="container"),
                    ),
                    formatting=Formatting(suffix="."),
                ),
                Text(macro="access", formatting=Formatting(prefix=" ")),
            )
        ),
        sort=(
            SortKey(macro="author"),
            SortKey(variable="issued"),
            SortKey(variable="title"),
        ),
    )
    return Style(
        id="apa",
        title="American Psychological Association 7th edition",
        citation=citation,
        bibliography=bibliography,
        macros=macros,
        page_range_format=PageRangeFormat.EXPANDED,
    )


# ============================================================================
# Chicago (notes)
# ============================================================================


def chicago_note() -> Style:
    """Chicago-like note style with Ibid. and short subsequent notes."""
    title_as_quote = Branch(
        Condition(types=PERIODICAL_TYPES + CONTAINED_TYPES + ("post-weblog",), match=Match.ANY),
        (Text(variable="title", formatting=Formatting(quotes=True)),),
    )
    short_title_as_quote = Branch(
        title_as_quote.condition,
        (Text(variable="title", form=TermForm.SHORT, formatting=Formatting(quotes=True)),),
    )
    ibid = Text(term="ibid", formatting=Formatting(text_case=TextCase.CAPITALIZE_FIRST))
    periodical = Condition(types=PERIODICAL_TYPES, match=Match.ANY)
    imprint = Group(
        delimiter=": ",
        children=(Text(variable="publisher-place"), Text(variable="publisher")),
    )

    macros = {
        "contributors-long": (
            Names(
                ("author",),
                name=NameOptions(and_=And.TEXT, et_al_min=4, et_al_use_first=1),
                substitute=(
                    Names(
                        ("editor",),
                        label=NameLabel(form=TermForm.SHORT, formatting=Formatting(prefix=", ")),
                    ),
                ),
            ),
        ),
        "contributors-short": (
            Names(
                ("author",),
                name=NameOptions(
                    form=NameForm.SHORT, and_=And.TEXT, et_al_min=4, et_al_use_first=1
                ),
                substitute=(Names(("editor",)),),
            ),
        ),
        "title": (
            Choose(
                branches=(title_as_quote,),
                otherwise=(Text(variable="title", formatting=ITALIC),),
            ),
        ),
        "title-short": (
            Choose(
                branches=(short_title_as_quote,),
                otherwise=(Text(variable="title", form=TermForm.SHORT, formatting=ITALIC),),
            ),
        ),
        "publication-note": (
            Choose(
                branches=(
                    Branch(
                        periodical,
                        (
                            Group(
                                delimiter=" ",
                                children=(
                                    Text(variable="container-title", formatting=ITALIC),
                                    Text(variable="volume"),
                                    _year(Formatting(prefix="(", suffix=")")),
                                ),
                                formatting=Formatting(prefix=", "),
                            ),
                        ),
                    ),
                ),
                otherwise=(
                    Group(
                        delimiter=", ",
                        children=(imprint, _year()),
                        formatting=Formatting(prefix=" (", suffix=")"),
                    ),
                ),
            ),
        ),
        "publication-bib": (
            Choose(
                branches=(
                    Branch(
                        periodical,
                        (
                            Group(
                                delimiter=" ",
                                children=(
                                    Text(variable="container-title", formatting=ITALIC),
                                    Text(variable="volume"),
                                    _year(Formatting(prefix="(", suffix=")")),
                                ),
                            ),
                            Text(variable="page", formatting=Formatting(prefix=": ")),
                        ),
                    ),
                ),
                otherwise=(
                    Group(delimiter=", ", children=(imprint, _year())),
                ),
            ),
        ),
    }

    citation = Section(
        layout=Layout(
            children=(
                Choose(
                    branches=(
                        Branch(
                            Condition(positions=(Position.IBID_WITH_LOCATOR,)),
                            (Group(delimiter=", ", children=(ibid, Text(variable="locator"))),),
                        ),
                        Branch(Condition(positions=(Position.IBID,)), (ibid,)),
                        Branch(
                            Condition(positions=(Position.SUBSEQUENT,)),
                            (
                                Group(
                                    delimiter=", ",
                                    children=(
                                        Text(macro="contributors-short"),
                                        Text(macro="title-short"),
                                        Text(variable="locator"),
                                    ),
                                ),
                            ),
                        ),
                    ),
                    otherwise=(
                        Group(
                            delimiter=", ",
                            children=(
                                Text(macro="contributors-long"),
                                Group(
                                    children=(
                                        Text(macro="title"),
                                        Text(macro="publication-note"),
                                    )
                                ),
                                Text(variable="locator"),
                            ),
                        ),
                    ),
                ),
            ),
            delimiter="; ",
            formatting=Formatting(suffix="."),
        ),
        disambiguation=(
            DisambiguationMethod.ADD_NAMES,
            DisambiguationMethod.ADD_GIVENNAME,
        ),
        givenname_rule=GivennameRule.BY_CITE,
    )
    bibliography = Section(
        layout=Layout(
            children=(
                Group(
                    delimiter=". ",
                    children=(
                        Names(
                            ("author",),
                            name=NameOptions(
                                and_=And.TEXT,
                                name_as_sort_order=NameAsSortOrder.FIRST,
                                delimiter_precedes_last=DelimiterRule.ALWAYS,
                                et_al_min=11,
                                et_al_use_first=7,
                            ),
                            substitute=(
                                Names(
                                    ("editor",),
                                    label=NameLabel(
                                        form=TermForm.SHORT,
                                        formatting=Formatting(prefix=", "),
                                    ),
                                ),
                            ),
                        ),
                        Text(macro="title"),
                        Text(macro="publication-bib"),
                    ),
                ),
            ),
            formatting=Formatting(suffix="."),
        ),
        sort=(
            SortKey(variable="author"),
            SortKey(variable="title"),
            SortKey(variable="issued"),
        ),
        subsequent_author_substitute="———",
    )
    return Style(
        id="chicago-note",
        title="Chicago Manual of Style 17th edition (note)",
        style_class=StyleClass.NOTE,
        citation=citation,
        bibliography=bibliography,
        macros=macros,
        page_range_format=PageRangeFormat.CHICAGO,
    )


# ============================================================================
# IEEE
# ============================================================================


def ieee() -> Style:
    """IEEE-like numeric style."""

    def labelled(variable: str) -> Group:
        return Group(
            delimiter=" ",
            children=(Label(variable, form=TermForm.SHORT), Text(variable=variable)),
        )

    citation = Section(
        layout=Layout(
            children=(
                Text(variable="citation-number", formatting=Formatting(prefix="[", suffix="]")),
            ),
            delimiter=", ",
        ),
        sort=(SortKey(variable="citation-number"),),
    )
    bibliography = Section(
        layout=Layout(
            children=(
                Text(
                    variable="citation-number",
                    formatting=Formatting(prefix="[", suffix="] "),
                ),
                Group(
                    delimiter=", ",
                    children=(
                        Names(
                            ("author",),
                            name=NameOptions(
                                and_=And.TEXT,
                                initialize_with=". ",
                                et_al_min=7,
                                et_al_use_first=1,
                            ),
                            et_al=EtAl(formatting=ITALIC),
                        ),
                        Text(variable="title", formatting=Formatting(quotes=True)),
                        Text(variable="container-title", formatting=ITALIC),
                        labelled("volume"),
                        labelled("issue"),
                        labelled("page"),
                        DateNode(
                            "issued",
                            parts=(
                                DatePart(
                                    "month",
                                    form="short",
                                    formatting=Formatting(suffix=" "),
                                ),
                                DatePart("year"),
                            ),
                        ),
                    ),
                    formatting=Formatting(suffix="."),
                ),
            )
        ),
        sort=(SortKey(variable="citation-number"),),
    )
    return Style(
        id="ieee",
        title="IEEE",
        citation=citation,
        bibliography=bibliography,
        page_range_format=PageRangeFormat.EXPANDED,
    )


# ============================================================================
# Registry
# ============================================================================

STYLES: Dict[str, Callable[[], Style]] = {
    "apa": apa,
    "chicago-note": chicago_note,
    "ieee": ieee,
}


def available_styles() -> List[str]:
    """Names of the built-in styles."""
    return sorted(STYLES)


@lru_cache(maxsize=None)
def get_style(name: str) -> Style:
    """Return a built-in style by name.

    Raises:
        UnknownStyleError: If the name is not registered
    """
    factory = STYLES.get(name.lower())
    if factory is None:
        raise UnknownStyleError(name, available_styles())
    return factory()
