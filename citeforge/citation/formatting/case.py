"""Case transforms that never touch verbatim spans.

Input is a sequence of ``(text, verbatim)`` segments, typically one per
text run; output is the transformed text of each segment, in order.
Word positions (first word, last word, word after a colon) are computed
across all segments, verbatim ones included, so a verbatim word at the
start of a title still counts as the first word.

Rules:
- title: lowercase words are capitalized except stop words that are not
  first, last or after a colon; capitalized stop words in the middle are
  lowered; words with capitals elsewhere ("iPhone", "NASA") are kept.
- sentence: the first word is capitalized; later words in plain title
  form ("Files") are lowered; acronyms and mixed-case words are kept.
- An all-uppercase input is lowered first for title and sentence case.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from citeforge.citation.style import TextCase

STOP_WORDS = frozenset(
    [
        "a",
        "an",
        "and",
        "as",
        "at",
        "but",
        "by",
        "down",
        "for",
        "from",
        "in",
        "into",
        "nor",
        "of",
        "on",
        "onto",
        "or",
        "over",
        "so",
        "the",
        "till",
        "to",
        "up",
        "via",
        "with",
        "yet",
    ]
)

_WORD = re.compile(r"[^\W_][\w'’]*")


@dataclass(frozen=True)
class _Token:
    segment: int
    start: int
    end: int
    offset: int
    verbatim: bool


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def _is_title_form(word: str) -> bool:
    return word[:1].isupper() and (len(word) == 1 or word[1:].islower())


def _after_colon(full_text: str, offset: int) -> bool:
    before = full_text[:offset].rstrip()
    return before.endswith((":", "?", "!"))


def _shouting(segments: Sequence[tuple[str, bool]]) -> bool:
    letters = "".join(text for text, verbatim in segments if not verbatim)
    cased = [c for c in letters if c.isalpha()]
    return len(cased) > 1 and all(c.isupper() for c in cased)


def _tokenize(segments: Sequence[tuple[str, bool]]) -> list[_Token]:
    tokens: list[_Token] = []
    offset = 0
    for index, (text, verbatim) in enumerate(segments):
        for match in _WORD.finditer(text):
            tokens.append(
                _Token(index, match.start(), match.end(), offset + match.start(), verbatim)
            )
        offset += len(text)
    return tokens


def _title_word(word: str, edge: bool) -> str:
    lowered = word.lower()
    if lowered in STOP_WORDS and not edge:
        return lowered if (word.islower() or _is_title_form(word)) else word
    if word.islower():
        return _capitalize(word)
    return word


def _sentence_word(word: str, first: bool) -> str:
    if first:
        return _capitalize(word) if word.islower() else word
    if _is_title_form(word) and len(word) > 1:
        return word.lower()
    return word


def apply_case(segments: Sequence[tuple[str, bool]], case: TextCase) -> list[str]:
    """Transform each non-verbatim segment; verbatim segments are returned as-is."""
    if case == TextCase.LOWERCASE:
        return [text if verbatim else text.lower() for text, verbatim in segments]
    if case == TextCase.UPPERCASE:
        return [text if verbatim else text.upper() for text, verbatim in segments]

    if case in (TextCase.TITLE, TextCase.SENTENCE) and _shouting(segments):
        segments = [
            (text if verbatim else text.lower(), verbatim) for text, verbatim in segments
        ]

    texts = [text for text, _ in segments]
    full_text = "".join(texts)
    tokens = _tokenize(segments)
    replacements: dict[int, list[tuple[int, int, str]]] = {}

    for position, token in enumerate(tokens):
        if token.verbatim:
            continue
        word = texts[token.segment][token.start : token.end]
        first = position == 0
        last = position == len(tokens) - 1

        if case == TextCase.CAPITALIZE_FIRST:
            new = _capitalize(word) if first else word
        elif case == TextCase.CAPITALIZE_ALL:
            new = _capitalize(word)
        elif case == TextCase.TITLE:
            edge = first or last or _after_colon(full_text, token.offset)
            new = _title_word(word, edge)
        else:
            new = _sentence_word(word, first or _after_colon(full_text, token.offset))

        if new != word:
            replacements.setdefault(token.segment, []).append(
                (token.start, token.end, new)
            )

    result = []
    for index, text in enumerate(texts):
        pieces = replacements.get(index)
        if not pieces:
            result.append(text)
            continue
        rebuilt = []
        cursor = 0
        for start, end, new in pieces:
            rebuilt.append(text[cursor:start])
            rebuilt.append(new)
            cursor = end
        rebuilt.append(text[cursor:])
        result.append("".join(rebuilt))
    return result


def transform_text(text: str, case: TextCase) -> str:
    """Apply a case transform to plain text with no verbatim spans."""
    return apply_case([(text, False)], case)[0]
