"""
Disambiguation of citations that would otherwise render identically.

Two cited entries collide when their citation form (subsequent position,
no locator, no cite affixes) renders to the same text. Collisions are
resolved with the style's declared methods, in declared order:

1. add-names: show more names past the et-al cut-off
2. add-givenname: expand given names to initials, then to full names
3. conditional: switch on ``disambiguate="true"`` branches
4. add-year-suffix: append a, b, c ... to the year

Each method is tried in steps of increasing strength. A step is kept only
when it separates more entries than before, so names are never exposed
for nothing. Whatever still collides afterwards gets year-suffix letters
in first-citation order; this fallback always runs, declared or not.

State Monotonicity
------------------
DisambiguationState only ever grows: levels and counters never decrease,
letters once assigned are kept. Later citations can therefore add
information to earlier output but never take it away. Entries sharing a
base render (the render without year suffix) share one letter sequence,
so a newcomer colliding with "Smith 2020a"/"Smith 2020b" receives "c".

Usage Example
-------------
    engine = DisambiguationEngine(
        methods=(DisambiguationMethod.ADD_GIVENNAME,),
        givenname_rule=GivennameRule.BY_CITE,
    )
    changed = engine.resolve([0, 1, 2], render_key, name_count)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Iterable, Iterator, Optional, Sequence

from citeforge.citation.style import DisambiguationMethod, GivennameRule
from citeforge.core.exceptions import DisambiguationError, EngineInvariantError
from citeforge.core.logging import get_logger

logger = get_logger(__name__)

MAX_PASSES = 32


def year_suffix_letter(index: int) -> str:
    """Letters for a 0-based suffix index: a..z, then aa, ab, ...

    >>> [year_suffix_letter(i) for i in (0, 25, 26, 27)]
    ['a', 'z', 'aa', 'ab']
    """
    if index < 0:
        raise ValueError("Year suffix index must be non-negative")
    letters = ""
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("a") + remainder) + letters
    return letters


@dataclass(frozen=True)
class EntryDisambiguation:
    """Disambiguation state of one entry.

    Attributes:
        givenname_levels: Per-name expansion (0 as styled, 1 initials, 2 full)
        extra_names: Names shown past the et-al cut-off
        year_suffix: 0-based suffix index, None when unassigned
        condition: Whether ``disambiguate="true"`` branches are active
    """

    givenname_levels: tuple[int, ...] = ()
    extra_names: int = 0
    year_suffix: Optional[int] = None
    condition: bool = False

    def level(self, index: int) -> int:
        if index < len(self.givenname_levels):
            return self.givenname_levels[index]
        return 0

    @property
    def year_suffix_letter(self) -> Optional[str]:
        if self.year_suffix is None:
            return None
        return year_suffix_letter(self.year_suffix)

    def without_year_suffix(self) -> "EntryDisambiguation":
        if self.year_suffix is None:
            return self
        return replace(self, year_suffix=None)

    def with_levels(self, levels: Iterable[int]) -> "EntryDisambiguation":
        """Raise given-name levels elementwise; never lowers an existing level."""
        wanted = list(levels)
        current = list(self.givenname_levels)
        size = max(len(wanted), len(current))
        merged = tuple(
            max(
                wanted[i] if i < len(wanted) else 0,
                current[i] if i < len(current) else 0,
            )
            for i in range(size)
        )
        return replace(self, givenname_levels=merged)

    def covers(self, other: "EntryDisambiguation") -> bool:
        """Whether this state carries at least everything ``other`` does."""
        if self.extra_names < other.extra_names:
            return False
        if other.condition and not self.condition:
            return False
        if other.year_suffix is not None and (
            self.year_suffix is None or self.year_suffix < other.year_suffix
        ):
            return False
        return all(
            self.level(i) >= level for i, level in enumerate(other.givenname_levels)
        )


NEUTRAL = EntryDisambiguation()

RenderKey = Callable[[int, EntryDisambiguation], str]
NameCount = Callable[[int], int]


class DisambiguationState:
    """Per-session mapping from entry index to EntryDisambiguation.

    Only the DisambiguationEngine writes to it; every write must cover the
    previous value, otherwise an EngineInvariantError is raised.
    """

    def __init__(self) -> None:
        self._entries: dict[int, EntryDisambiguation] = {}

    def get(self, index: int) -> EntryDisambiguation:
        return self._entries.get(index, NEUTRAL)

    def update(self, index: int, value: EntryDisambiguation) -> bool:
        """Store a new state; returns True when it differs from the old one."""
        current = self.get(index)
        if value == current:
            return False
        if not value.covers(current):
            raise EngineInvariantError(
                f"Disambiguation state of entry {index} would regress: "
                f"{current} -> {value}"
            )
        self._entries[index] = value
        return True

    def __contains__(self, index: object) -> bool:
        return index in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> Iterator[tuple[int, EntryDisambiguation]]:
        return iter(sorted(self._entries.items()))


class DisambiguationEngine:
    """Resolves collisions between cited entries.

    Rendered keys are cached per (entry, state) for as long as callers
    keep passing the same ``render_key``, and entries are indexed into
    buckets by their current and suffix-free keys. A resolve call only
    renders entries that are new or whose state changed, and only
    inspects the buckets those entries fall into.

    Args:
        methods: Declared methods, applied in order
        givenname_rule: Which names add-givenname may expand
        state: Shared state; a fresh one is created when omitted
    """

    def __init__(
        self,
        methods: Sequence[DisambiguationMethod] = (),
        givenname_rule: GivennameRule = GivennameRule.BY_CITE,
        state: Optional[DisambiguationState] = None,
    ) -> None:
        self.methods = tuple(methods)
        self.givenname_rule = givenname_rule
        self.state = state if state is not None else DisambiguationState()
        self._keys: dict[tuple[int, EntryDisambiguation], str] = {}
        self._render_key: Optional[RenderKey] = None
        self._current: dict[int, str] = {}
        self._base: dict[int, str] = {}
        self._buckets: dict[str, set[int]] = {}
        self._base_buckets: dict[str, set[int]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(
        self,
        entries: Sequence[int],
        render_key: RenderKey,
        name_count: NameCount,
    ) -> set[int]:
        """Disambiguate ``entries`` (given in first-citation order).

        Entries seen by an earlier call with the same ``render_key`` are
        known not to collide and are not rendered again.

        Args:
            entries: Entry indexes of every cited entry
            render_key: Renders an entry's citation form under a given state
            name_count: Largest name-list length of an entry

        Returns:
            Entries whose rendering may have changed

        Raises:
            DisambiguationError: If entries still collide after the fallback
        """
        cited = set(entries)
        if render_key != self._render_key or not cited.issuperset(self._current):
            self._reset(render_key)
        order = dict(zip(entries, range(len(entries))))

        fresh = sorted(cited.difference(self._current), key=order.__getitem__)
        for index in fresh:
            self._track(index)

        touched = set(fresh)
        checked = set(fresh)
        affected: set[int] = set()
        for _ in range(MAX_PASSES):
            changed: set[int] = set()
            for group in self._collisions(touched, order):
                affected.update(group)
                changed |= self._separate(group, name_count, order)
            changed |= self._complete_suffixes(touched | changed, order, affected)
            if not changed:
                break
            affected |= changed
            touched = changed
            checked |= changed

        remaining = self._collisions(checked, order)
        if remaining:
            # rescan everything on the next call
            self._reset(None)
            ids = sorted(index for group in remaining for index in group)
            raise DisambiguationError(
                f"Entries {ids} still render identically after disambiguation"
            )
        if affected:
            logger.debug(
                "Disambiguation pass complete",
                entries=len(entries),
                fresh=len(fresh),
                affected=len(affected),
            )
        return affected

    # ------------------------------------------------------------------
    # Key cache and buckets
    # ------------------------------------------------------------------

    def _reset(self, render_key: Optional[RenderKey]) -> None:
        self._render_key = render_key
        self._keys = {}
        self._current = {}
        self._base = {}
        self._buckets = {}
        self._base_buckets = {}

    def _key(self, index: int, value: EntryDisambiguation) -> str:
        cache_key = (index, value)
        if cache_key not in self._keys:
            assert self._render_key is not None
            self._keys[cache_key] = self._render_key(index, value)
        return self._keys[cache_key]

    def _current_key(self, index: int) -> str:
        return self._key(index, self.state.get(index))

    def _base_key(self, index: int) -> str:
        return self._key(index, self.state.get(index).without_year_suffix())

    def _track(self, index: int) -> None:
        current = self._current_key(index)
        base = self._base_key(index)
        self._current[index] = current
        self._base[index] = base
        self._buckets.setdefault(current, set()).add(index)
        self._base_buckets.setdefault(base, set()).add(index)

    def _untrack(self, index: int) -> None:
        for keys, buckets in ((self._current, self._buckets), (self._base, self._base_buckets)):
            key = keys.pop(index)
            members = buckets[key]
            members.discard(index)
            if not members:
                del buckets[key]

    def _commit(self, index: int, value: EntryDisambiguation) -> bool:
        """Store a new state and move the entry to its new buckets."""
        if not self.state.update(index, value):
            return False
        if index in self._current:
            self._untrack(index)
        self._track(index)
        return True

    @staticmethod
    def _group(entries: Iterable[int], key: Callable[[int], str]) -> list[list[int]]:
        buckets: dict[str, list[int]] = {}
        for index in entries:
            buckets.setdefault(key(index), []).append(index)
        # empty renders show nothing a reader could confuse
        return [members for text, members in buckets.items() if text and len(members) > 1]

    @staticmethod
    def _crowded(
        keys: Iterable[str], buckets: dict[str, set[int]], order: dict[int, int]
    ) -> list[list[int]]:
        """Buckets under ``keys`` holding more than one entry, in citation order."""
        groups = [
            sorted(buckets[key], key=order.__getitem__)
            for key in set(keys)
            if key and len(buckets.get(key, ())) > 1
        ]
        return sorted(groups, key=lambda members: order[members[0]])

    def _collisions(self, indexes: Iterable[int], order: dict[int, int]) -> list[list[int]]:
        """Collision groups containing any of ``indexes``."""
        return self._crowded(
            (self._current[index] for index in indexes), self._buckets, order
        )

    def _distinct(self, group: Sequence[int], candidate: dict[int, EntryDisambiguation]) -> int:
        return len({self._key(i, candidate.get(i, self.state.get(i))) for i in group})

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------

    def _separate(
        self, group: list[int], name_count: NameCount, order: dict[int, int]
    ) -> set[int]:
        changed: set[int] = set()
        remaining = [group]
        for method in self.methods:
            if method == DisambiguationMethod.ADD_YEAR_SUFFIX:
                continue
            next_remaining = []
            for members in remaining:
                changed |= self._apply_method(method, members, name_count)
                next_remaining.extend(self._group(members, self._current_key))
            remaining = next_remaining
            if not remaining:
                return changed

        for members in remaining:
            changed |= self._assign_suffixes(members, order)
        return changed

    def _apply_method(
        self, method: DisambiguationMethod, members: list[int], name_count: NameCount
    ) -> set[int]:
        changed: set[int] = set()
        for candidate in self._steps(method, members, name_count):
            if self._distinct(members, candidate) > self._distinct(members, {}):
                for index, value in candidate.items():
                    if self._commit(index, value):
                        changed.add(index)
            if self._distinct(members, {}) == len(members):
                break
        return changed

    def _steps(
        self, method: DisambiguationMethod, members: list[int], name_count: NameCount
    ) -> Iterator[dict[int, EntryDisambiguation]]:
        """Yield candidate states of increasing strength for one method."""
        if method == DisambiguationMethod.CONDITIONAL:
            yield {i: replace(self.state.get(i), condition=True) for i in members}
            return

        limit = max((name_count(i) for i in members), default=0)

        if method == DisambiguationMethod.ADD_NAMES:
            for extra in range(1, limit + 1):
                yield {
                    i: replace(
                        self.state.get(i),
                        extra_names=max(self.state.get(i).extra_names, extra),
                    )
                    for i in members
                }
            return

        if method == DisambiguationMethod.ADD_GIVENNAME:
            for levels in self._givenname_steps(limit):
                yield {i: self.state.get(i).with_levels(levels) for i in members}

    def _givenname_steps(self, limit: int) -> Iterator[tuple[int, ...]]:
        rule = self.givenname_rule
        if limit == 0:
            return
        if rule == GivennameRule.ALL_NAMES:
            yield (1,) * limit
            yield (2,) * limit
        elif rule == GivennameRule.ALL_NAMES_WITH_INITIALS:
            yield (1,) * limit
        elif rule == GivennameRule.PRIMARY_NAME:
            yield (1,)
            yield (2,)
        elif rule == GivennameRule.PRIMARY_NAME_WITH_INITIALS:
            yield (1,)
        else:
            for position in range(limit):
                for level in (1, 2):
                    yield (0,) * position + (level,)

    # ------------------------------------------------------------------
    # Year suffixes
    # ------------------------------------------------------------------

    def _next_letter(self, index: int, peers: Iterable[int]) -> int:
        used = {
            self.state.get(peer).year_suffix
            for peer in peers
            if peer != index and self.state.get(peer).year_suffix is not None
        }
        current = self.state.get(index).year_suffix
        letter = 0 if current is None else current + 1
        while letter in used:
            letter += 1
        return letter

    def _peers(self, index: int) -> list[int]:
        return list(self._base_buckets.get(self._base[index], ()))

    def _assign_suffixes(self, members: list[int], order: dict[int, int]) -> set[int]:
        changed: set[int] = set()
        seen: set[int] = set()
        for index in sorted(members, key=order.__getitem__):
            value = self.state.get(index)
            if value.year_suffix is None or value.year_suffix in seen:
                letter = self._next_letter(index, self._peers(index))
                if self._commit(index, replace(value, year_suffix=letter)):
                    changed.add(index)
            seen.add(self.state.get(index).year_suffix)
        return changed

    def _complete_suffixes(
        self, indexes: Iterable[int], order: dict[int, int], affected: set[int]
    ) -> set[int]:
        """Give suffixes to entries sharing a base render with suffixed ones."""
        changed: set[int] = set()
        bases = [self._base[index] for index in indexes]
        for members in self._crowded(bases, self._base_buckets, order):
            suffixes = [self.state.get(i).year_suffix for i in members]
            if all(s is None for s in suffixes):
                continue
            missing = [i for i, s in zip(members, suffixes) if s is None]
            present = [s for s in suffixes if s is not None]
            if not missing and len(present) == len(set(present)):
                continue
            affected.update(members)
            changed |= self._assign_suffixes(members, order)
        return changed
