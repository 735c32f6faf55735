import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from config import settings
from ..text_processing import normalize_costume_name
from .match_finder import Match, MatchKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredMatch:
    """A Match plus its ranking score."""
    name: str
    kind: MatchKind
    index: int
    priority: int
    score: float

    @classmethod
    def from_match(cls, match: Match, score: float) -> "ScoredMatch":
        return cls(name=match.name, kind=match.kind, index=match.index,
                   priority=match.priority, score=score)


def score_match(match: Match, bias: float = 0.0, roster: Optional[Mapping[str, int]] = None,
                roster_bonus: float = settings.ROSTER_BONUS) -> float:
    """
    Score one candidate.

    Position is the base score so that later evidence wins. Bias only
    applies to high-confidence kinds (priority at or above the action tier);
    candidates already in the active roster receive a flat bonus.
    """
    score = float(match.index)
    if match.priority >= settings.HIGH_CONFIDENCE_PRIORITY:
        score += match.priority * float(bias or 0.0)
    if roster and normalize_costume_name(match.name).lower() in roster:
        score += roster_bonus
    return score


def select_best(matches: Sequence[Match], bias: float = 0.0, roster: Optional[Mapping[str, int]] = None,
                roster_bonus: float = settings.ROSTER_BONUS) -> Optional[ScoredMatch]:
    """
    Pick the single best candidate.

    Ordering is by score, then buffer index (most recent evidence), then
    priority. Candidates that tie on all three keep the earliest one in input
    order, so the result is deterministic for a given input.

    With a bias of zero the candidate set is first narrowed to the highest
    priority present: the winner is the rightmost match of the strongest
    heuristic seen.

    Args:
        matches: Candidates from the match finder
        bias: Detection bias (positive favours strong heuristics)
        roster: Active roster keyed by normalized lower-case name, or None
            when the scene roster is disabled
        roster_bonus: Score added for roster members

    Returns:
        Best ScoredMatch, or None for no candidates
    """
    if not matches:
        return None

    candidates = list(matches)
    if not bias:
        top_priority = max(match.priority for match in candidates)
        candidates = [match for match in candidates if match.priority == top_priority]

    best: Optional[ScoredMatch] = None
    best_key = None
    for match in candidates:
        scored = ScoredMatch.from_match(match, score_match(match, bias, roster, roster_bonus))
        key = (scored.score, scored.index, scored.priority)
        if best_key is None or key > best_key:
            best, best_key = scored, key

    return best
