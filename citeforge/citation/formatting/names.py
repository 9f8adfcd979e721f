"""Personal name and name-list formatting.

A name renders in one of three shapes:

- display order: ``Vincent van Gogh``, ``Martin Luther King Jr.``
- sort order: ``Gogh, Vincent van`` (particle demoted) or
  ``van Gogh, Vincent`` (never demoted)
- short: ``van Gogh``

Given-name expansion levels come from disambiguation: level 1 shows
initials, level 2 the full given name, on top of what the style asks for.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from citeforge.citation.locale import Locale
from citeforge.citation.output import RunTag, TextRun
from citeforge.citation.style import (
    And,
    DelimiterRule,
    EtAl,
    NameAsSortOrder,
    NameForm,
    NameOptions,
    ParticleDemotion,
    TermForm,
)
from citeforge.citation.types import PersonName, join_words

ELLIPSIS = "…"


@dataclass(frozen=True)
class NameListSettings:
    """Name-list options after section and position inheritance."""

    options: NameOptions
    et_al_min: Optional[int] = None
    et_al_use_first: Optional[int] = None
    initialize_with: Optional[str] = None
    sort_order: Optional[NameAsSortOrder] = None
    demote: ParticleDemotion = ParticleDemotion.DISPLAY_AND_SORT
    hyphenate: bool = True
    extra_names: int = 0
    givenname_levels: tuple[int, ...] = ()

    def level(self, index: int) -> int:
        if index < len(self.givenname_levels):
            return self.givenname_levels[index]
        return 0


def shown_count(total: int, settings: NameListSettings) -> int:
    """How many names are displayed before et-al truncation."""
    if settings.et_al_min is None or settings.et_al_use_first is None:
        return total
    if total < settings.et_al_min:
        return total
    return min(total, settings.et_al_use_first + settings.extra_names)


def _given(name: PersonName, form: NameForm, initialize_with: Optional[str],
           initialize: bool, level: int, hyphenate: bool) -> Optional[str]:
    """Given-name text for a name, or None when the form hides it."""
    if form == NameForm.SHORT and level == 0:
        return None
    if not name.given:
        return ""
    if level >= 2:
        return name.given
    if form == NameForm.SHORT:
        return name.initials(initialize_with or ". ", hyphenate)
    if initialize_with is not None and initialize:
        return name.initials(initialize_with, hyphenate)
    return name.given


def name_parts(
    name: PersonName,
    settings: NameListSettings,
    *,
    inverted: bool,
    level: int = 0,
) -> list[tuple[str, str]]:
    """Render one name as ``(text, part)`` pieces.

    ``part`` is ``"family"``, ``"given"`` or ``"other"`` so that family
    and given formatting can style their own runs.
    """
    if name.is_literal:
        return [(name.literal or name.family or name.given, "family")]

    options = settings.options
    given = _given(
        name, options.form, settings.initialize_with, options.initialize, level,
        settings.hyphenate,
    )

    if given is None:
        return [(name.family_with_particle, "family")]

    if inverted:
        if settings.demote == ParticleDemotion.DISPLAY_AND_SORT:
            head = name.family
            tail = join_words(given, name.dropping_particle, name.particle)
        else:
            head = name.family_with_particle
            tail = join_words(given, name.dropping_particle)
        pieces = [(head, "family")]
        if tail:
            pieces += [(options.sort_separator, "other"), (tail, "given")]
        if name.suffix:
            pieces += [(options.sort_separator, "other"), (name.suffix, "other")]
        return pieces

    pieces = []
    if given:
        pieces += [(given, "given"), (" ", "other")]
    pieces.append(
        (join_words(name.dropping_particle, name.particle, name.family), "family")
    )
    if name.suffix:
        pieces.append((f" {name.suffix}", "other"))
    return pieces


def format_name(
    name: PersonName,
    settings: NameListSettings,
    *,
    inverted: bool,
    level: int = 0,
) -> str:
    """Render one name as plain text."""
    return "".join(
        text for text, _ in name_parts(name, settings, inverted=inverted, level=level)
    )


def _is_inverted(index: int, settings: NameListSettings) -> bool:
    if settings.options.form == NameForm.SHORT:
        return False
    if settings.sort_order == NameAsSortOrder.ALL:
        return True
    return settings.sort_order == NameAsSortOrder.FIRST and index == 0


def _delimiter_applies(rule: DelimiterRule, shown: int, previous_inverted: bool,
                       contextual_threshold: int) -> bool:
    if rule == DelimiterRule.ALWAYS:
        return True
    if rule == DelimiterRule.NEVER:
        return False
    if rule == DelimiterRule.AFTER_INVERTED_NAME:
        return previous_inverted
    return shown >= contextual_threshold


def render_name_list(
    names: Sequence[PersonName],
    settings: NameListSettings,
    locale: Locale,
    *,
    tag: RunTag,
    variable: str,
    et_al: EtAl = EtAl(),
) -> list[TextRun]:
    """Render a name list with et-al truncation and "and" joining.

    Every run, delimiters included, carries the variable's tag so callers
    can find the leading name block of an entry.
    """
    if not names:
        return []
    options = settings.options
    total = len(names)
    shown = shown_count(total, settings)
    truncated = shown < total

    part_styles = {
        "family": options.family_formatting.styles,
        "given": options.given_formatting.styles,
        "other": frozenset(),
    }
    runs: list[TextRun] = []

    def emit(text: str, styles: frozenset[str] = frozenset()) -> None:
        if text:
            runs.append(TextRun(text, tag, variable, styles))

    def emit_name(index: int) -> None:
        pieces = name_parts(
            names[index], settings, inverted=_is_inverted(index, settings),
            level=settings.level(index),
        )
        for text, part in pieces:
            emit(text, part_styles[part])

    use_last = truncated and options.et_al_use_last and shown + 2 <= total
    and_term = ""
    if options.and_ is not None:
        form = TermForm.SYMBOL if options.and_ == And.SYMBOL else TermForm.LONG
        and_term = locale.term("and", form)

    for index in range(shown):
        if index > 0:
            last_joint = not truncated and index == shown - 1
            if last_joint and and_term:
                previous_inverted = _is_inverted(index - 1, settings)
                if _delimiter_applies(
                    options.delimiter_precedes_last, shown, previous_inverted, 3
                ):
                    emit(options.delimiter)
                else:
                    emit(" ")
                emit(f"{and_term} ")
            else:
                emit(options.delimiter)
        emit_name(index)

    if use_last:
        emit(options.delimiter)
        emit(f"{ELLIPSIS} ")
        emit_name(total - 1)
    elif truncated:
        et_al_text = locale.term(et_al.term)
        if et_al_text:
            if _delimiter_applies(
                options.delimiter_precedes_et_al,
                shown,
                _is_inverted(shown - 1, settings),
                2,
            ):
                emit(options.delimiter)
            else:
                emit(" ")
            emit(et_al_text, et_al.formatting.styles)
    return runs


def name_sort_key(
    name: PersonName, locale: Locale, demote: ParticleDemotion
) -> tuple[str, str, str]:
    """Collation key: family, then given, then suffix."""
    if name.is_literal:
        return (locale.collation_key(name.literal or name.family or name.given), "", "")
    if demote == ParticleDemotion.NEVER:
        family = name.family_with_particle
        given = join_words(name.given, name.dropping_particle)
    else:
        family = name.family
        given = join_words(name.given, name.dropping_particle, name.particle)
    return (
        locale.collation_key(family),
        locale.collation_key(given),
        locale.collation_key(name.suffix),
    )
