import re
import time
import logging
from enum import Enum
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from config import settings
from ..errors import EvaluationError
from ..text_processing import is_inside_quotes, normalize_costume_name
from .pattern_compiler import CompiledHeuristicSet

logger = logging.getLogger(__name__)

_GENERAL_HONORIFIC_RE = re.compile(r'-(?:sama|san)$', re.IGNORECASE)


class MatchKind(str, Enum):
    """Heuristic that produced a candidate match."""
    SPEAKER = "speaker"
    ATTRIBUTION = "attribution"
    ACTION = "action"
    PRONOUN = "pronoun"
    VOCATIVE = "vocative"
    POSSESSIVE = "possessive"
    NAME = "name"

    @property
    def priority(self) -> int:
        return settings.HEURISTIC_PRIORITIES[self.value]


# Scan order; also the order of the report in the pattern tester.
ALL_KINDS: Tuple[MatchKind, ...] = (
    MatchKind.SPEAKER,
    MatchKind.ATTRIBUTION,
    MatchKind.ACTION,
    MatchKind.PRONOUN,
    MatchKind.VOCATIVE,
    MatchKind.POSSESSIVE,
    MatchKind.NAME,
)

# Address happens inside quoted speech, so vocatives are never quote-filtered.
QUOTE_EXEMPT_KINDS = frozenset({MatchKind.VOCATIVE})


@dataclass(frozen=True)
class Match:
    """A candidate speaker/actor found in a turn buffer."""
    name: str
    kind: MatchKind
    index: int
    priority: int


def _remaining_seconds(start: Optional[float], budget_ms: Optional[float],
                       clock: Callable[[], float]) -> Optional[float]:
    """Seconds left in the budget, None when unbudgeted."""
    if start is None or not budget_ms:
        return None
    remaining = budget_ms / 1000.0 - (clock() - start)
    if remaining <= 0:
        raise EvaluationError(f"Match budget of {budget_ms}ms exceeded")
    return remaining


def budgeted_search(pattern: Pattern, text: str, position: int = 0, start: Optional[float] = None,
                    budget_ms: Optional[float] = None, clock: Callable[[], float] = time.perf_counter):
    """
    pattern.search with whatever is left of the budget as a hard timeout.

    The `regex` engine checks the timeout while it backtracks, so a single
    catastrophic search is interrupted instead of blocking the stream.

    Raises:
        EvaluationError: If the budget is spent before or during the search
    """
    timeout = _remaining_seconds(start, budget_ms, clock)
    if timeout is None:
        return pattern.search(text, position)
    try:
        return pattern.search(text, position, timeout=timeout)
    except TimeoutError as err:
        raise EvaluationError(f"Match budget of {budget_ms}ms exceeded") from err


def _captured_name(match) -> Optional[str]:
    """First participating capture group, falling back to the whole match."""
    for group in match.groups():
        if group:
            return group
    return match.group(0) or None


def iter_pattern_matches(pattern: Pattern, text: str, limit: Optional[int] = None,
                         start: Optional[float] = None, budget_ms: Optional[float] = None,
                         clock: Callable[[], float] = time.perf_counter):
    """
    Yield every match of a pattern over text, left to right.

    The scan cursor always advances: after an empty match it moves one
    character forward, so user patterns that can match the empty string
    terminate. Scanning stops after `limit` matches. With a budget, every
    search runs under the time left from `start` (now, when not given).

    Raises:
        EvaluationError: If the time budget measured from `start` runs out
    """
    if budget_ms and start is None:
        start = clock()
    position = 0
    found = 0
    length = len(text)
    while position <= length:
        match = budgeted_search(pattern, text, position, start, budget_ms, clock)
        if match is None:
            return
        yield match
        found += 1
        if limit and found >= limit:
            logger.debug(f"Match cap of {limit} reached for pattern {pattern.pattern[:40]!r}")
            return
        position = match.end() if match.end() > match.start() else match.start() + 1


def find_veto(text: str, compiled: CompiledHeuristicSet, budget_ms: Optional[float] = None,
              clock: Callable[[], float] = time.perf_counter) -> Optional[str]:
    """
    Return the first veto phrase found in text, or None.

    Raises:
        EvaluationError: If the search exceeds the time budget
    """
    if not text or compiled is None or compiled.veto is None:
        return None
    budget_ms = settings.MATCH_TIME_BUDGET_MS if budget_ms is None else budget_ms
    match = budgeted_search(compiled.veto, text, 0, clock(), budget_ms, clock)
    return match.group(0) if match else None


def find_matches(text: str, compiled: CompiledHeuristicSet, quote_ranges: Sequence[Tuple[int, int]],
                 enabled_kinds: Optional[Iterable[MatchKind]] = None, pronoun_subject: Optional[str] = None,
                 budget_ms: Optional[float] = None, max_matches: Optional[int] = None,
                 clock: Callable[[], float] = time.perf_counter) -> List[Match]:
    """
    Run every enabled heuristic over a buffer and collect candidate matches.

    Args:
        text: Normalized buffer text
        compiled: Compiled heuristic set
        quote_ranges: Quoted spans from index_quotes(text)
        enabled_kinds: Heuristics to run (all when None)
        pronoun_subject: Name that pronoun matches resolve to; pronoun
            matching is skipped without one
        budget_ms: Wall-clock budget for the whole scan
        max_matches: Per-heuristic match cap
        clock: Monotonic clock in seconds

    Returns:
        Matches grouped by heuristic, each group in buffer order

    Raises:
        EvaluationError: If scanning exceeds the time budget
    """
    if not text or compiled is None:
        return []

    kinds = set(ALL_KINDS if enabled_kinds is None else enabled_kinds)
    budget_ms = settings.MATCH_TIME_BUDGET_MS if budget_ms is None else budget_ms
    max_matches = settings.MAX_MATCHES_PER_HEURISTIC if max_matches is None else max_matches
    start = clock()
    matches: List[Match] = []

    for kind in ALL_KINDS:
        if kind not in kinds:
            continue
        if kind is MatchKind.PRONOUN and not pronoun_subject:
            continue
        pattern = compiled.pattern_for(kind.value)
        if pattern is None:
            continue

        for found in iter_pattern_matches(pattern, text, max_matches, start, budget_ms, clock):
            index = found.start()
            if kind not in QUOTE_EXEMPT_KINDS and is_inside_quotes(quote_ranges, index):
                continue

            if kind is MatchKind.PRONOUN:
                name = pronoun_subject
            else:
                name = _captured_name(found)
                if kind is MatchKind.NAME and name:
                    name = _GENERAL_HONORIFIC_RE.sub('', name)
            if not name:
                continue
            matches.append(Match(name=name.strip(), kind=kind, index=index, priority=kind.priority))

    return matches


def character_focus_scores(matches: Iterable[Match]) -> Dict[str, int]:
    """
    Aggregate focus points per character across all matches.

    Strong evidence (speaker tags, attribution, pronoun continuation) counts
    more than incidental mentions. Keys are normalized costume names.
    """
    scores: Dict[str, int] = {}
    for match in matches:
        key = normalize_costume_name(match.name).lower()
        if not key:
            continue
        scores[key] = scores.get(key, 0) + settings.FOCUS_POINTS.get(match.kind.value, 0)
    return scores
