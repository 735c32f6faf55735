"""
Speaker attribution for streamed chat text.

- Pattern compilation with complexity ceilings and per-entry diagnosis
- Multi-heuristic match finding with quote awareness
- Priority/bias scoring with scene-roster continuity
- Cooldown gate for switch decisions
- Accent- and typo-tolerant name resolution
"""

from .pattern_compiler import (
    PatternEntry,
    CompiledHeuristicSet,
    PatternCompiler,
    parse_pattern_entry,
)
from .match_finder import MatchKind, Match, find_matches, find_veto, character_focus_scores
from .scorer import ScoredMatch, select_best
from .cooldown_gate import CooldownGate, GateDecision, GateStatus, GlobalDecisionState
from .name_preprocessor import (
    FuzzyTolerance,
    NamePreprocessor,
    NameResolution,
    resolve_fuzzy_tolerance,
    resolve_name,
    strip_diacritics,
    has_diacritics,
)

__all__ = [
    'PatternEntry',
    'CompiledHeuristicSet',
    'PatternCompiler',
    'parse_pattern_entry',
    'MatchKind',
    'Match',
    'find_matches',
    'find_veto',
    'character_focus_scores',
    'ScoredMatch',
    'select_best',
    'CooldownGate',
    'GateDecision',
    'GateStatus',
    'GlobalDecisionState',
    'FuzzyTolerance',
    'NamePreprocessor',
    'NameResolution',
    'resolve_fuzzy_tolerance',
    'resolve_name',
    'strip_diacritics',
    'has_diacritics',
]
