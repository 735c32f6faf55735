import re
import logging
import unicodedata
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from fuzzywuzzy import fuzz, process
from rapidfuzz.distance import OSA

from config import settings

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r'[\W_]+', re.UNICODE)

ToleranceSetting = Union[None, bool, int, float, str, Mapping[str, Any]]


@dataclass(frozen=True)
class FuzzyTolerance:
    """
    When fuzzy matching may run, and how loose it may be.

    Attributes:
        enabled: Master switch
        accent_sensitive: Trigger when the raw token carries diacritics
        low_confidence_threshold: Trigger when the heuristic priority is at
            or below this value (None disables the trigger)
        max_score: Maximum fuzzy distance (0 identical, 1 unrelated)
    """
    enabled: bool = False
    accent_sensitive: bool = True
    low_confidence_threshold: Optional[int] = None
    max_score: float = settings.FUZZY_MAX_SCORE

    def should_apply(self, priority: Optional[int] = None, has_accents: bool = False) -> bool:
        if not self.enabled:
            return False
        # Neither trigger configured means fuzzy matching always runs.
        if self.low_confidence_threshold is None and not self.accent_sensitive:
            return True
        low_confidence = (self.low_confidence_threshold is not None and priority is not None
                          and priority <= self.low_confidence_threshold)
        return low_confidence or (self.accent_sensitive and has_accents)


@dataclass(frozen=True)
class NameResolution:
    """Result of mapping a raw detected token onto a canonical roster name."""
    raw: str
    normalized: str
    canonical: str
    method: str
    confidence: float
    score: Optional[float] = None
    applied: bool = False
    changed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _to_bool(value: Any, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ('true', 'yes', 'on'):
            return True
        if lowered in ('false', 'no', 'off'):
            return False
    return fallback


def _to_number(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def resolve_fuzzy_tolerance(value: ToleranceSetting) -> FuzzyTolerance:
    """
    Interpret a profile's fuzzy tolerance setting.

    Accepted forms: "off", "always", "accent", "low", "auto" (the default
    for unknown strings), an integer low-confidence priority threshold, or a
    mapping with enabled/accent_sensitive/low_confidence_threshold/max_score.
    """
    disabled = FuzzyTolerance()
    if value is None or value is False:
        return disabled
    if value is True:
        value = "auto"

    if isinstance(value, (int, float)):
        return FuzzyTolerance(enabled=True, accent_sensitive=True,
                              low_confidence_threshold=max(0, int(value)))

    if isinstance(value, str):
        mode = value.strip().lower()
        if mode in ('off', 'disabled', 'none'):
            return disabled
        if mode in ('always', 'on'):
            return FuzzyTolerance(enabled=True, accent_sensitive=False, low_confidence_threshold=None)
        if mode in ('accent', 'accented'):
            return FuzzyTolerance(enabled=True, accent_sensitive=True, low_confidence_threshold=None)
        if mode in ('low', 'low-confidence', 'lowconfidence'):
            return FuzzyTolerance(enabled=True, accent_sensitive=False,
                                  low_confidence_threshold=settings.LOW_CONFIDENCE_PRIORITY_THRESHOLD)
        return FuzzyTolerance(enabled=True, accent_sensitive=True,
                              low_confidence_threshold=settings.LOW_CONFIDENCE_PRIORITY_THRESHOLD)

    if isinstance(value, Mapping):
        if not _to_bool(value.get('enabled'), True):
            return disabled
        threshold = value.get('low_confidence_threshold', value.get('threshold'))
        threshold = _to_number(threshold)
        max_score = _to_number(value.get('max_score'))
        if max_score is None:
            max_score = settings.FUZZY_MAX_SCORE
        return FuzzyTolerance(
            enabled=True,
            accent_sensitive=_to_bool(value.get('accent_sensitive'), True),
            low_confidence_threshold=None if threshold is None else max(0, int(threshold)),
            max_score=max(0.0, min(1.0, max_score)),
        )

    return disabled


def strip_diacritics(value: str) -> str:
    """Canonical decomposition followed by removal of combining marks."""
    if not isinstance(value, str):
        return ""
    decomposed = unicodedata.normalize('NFD', value)
    return ''.join(char for char in decomposed if not unicodedata.combining(char))


def has_diacritics(value: str) -> bool:
    return isinstance(value, str) and strip_diacritics(value) != unicodedata.normalize('NFD', value)


def overlap_key(value: str) -> str:
    """Accent-folded, lower-cased letters and digits only."""
    if not isinstance(value, str) or not value.strip():
        return ""
    return _NON_ALNUM_RE.sub('', strip_diacritics(value).lower())


def character_overlap_ratio(source: str, target: str) -> float:
    """Shared character multiset size relative to the longer string."""
    if not source or not target:
        return 0.0
    available: Dict[str, int] = {}
    for char in source:
        available[char] = available.get(char, 0) + 1
    shared = 0
    for char in target:
        if available.get(char, 0) > 0:
            shared += 1
            available[char] -= 1
    return shared / max(len(source), len(target))


def normalized_edit_distance(source: str, target: str) -> float:
    """Optimal string alignment distance (a swap of neighbours is one edit) over the longer length."""
    longest = max(len(source or ''), len(target or ''))
    if not longest:
        return 0.0
    if not source or not target:
        return 1.0
    return OSA.normalized_distance(source, target)


def _token_extends_candidate(token: str, candidate: str) -> bool:
    return (len(candidate) < len(token) <= len(candidate) + settings.MAX_FUZZY_AFFIX_OVERHANG
            and (token.startswith(candidate) or token.endswith(candidate)))


class NamePreprocessor:
    """
    Maps raw detected tokens onto canonical roster names.

    Resolution order is exact (case-insensitive), then the alias table,
    then accent-folded comparison, then fuzzy matching when the tolerance
    allows it for this attempt. Fuzzy candidates are ranked with
    fuzzywuzzy and must additionally pass a character-overlap check and
    either be a short affix extension or stay within a normalized edit
    distance, which keeps short unrelated names from being conflated.

    Unresolved tokens are returned unchanged with method "raw".
    """

    def __init__(self, candidates: Sequence[str] = (), tolerance: ToleranceSetting = None,
                 alias_map: Optional[Mapping[str, str]] = None):
        self.logger = logging.getLogger(__name__)
        self.tolerance = tolerance if isinstance(tolerance, FuzzyTolerance) else resolve_fuzzy_tolerance(tolerance)

        self.candidates: List[str] = []
        for candidate in candidates or []:
            trimmed = str(candidate or '').strip()
            if trimmed and trimmed not in self.candidates:
                self.candidates.append(trimmed)

        self._direct: Dict[str, str] = {}
        self._accentless: Dict[str, str] = {}
        for candidate in self.candidates:
            self._direct.setdefault(candidate.lower(), candidate)
            accent_key = strip_diacritics(candidate).lower()
            if accent_key:
                self._accentless.setdefault(accent_key, candidate)

        self._aliases: Dict[str, str] = {}
        for alias, canonical in (alias_map or {}).items():
            alias_key = str(alias or '').strip().lower()
            if alias_key and str(canonical or '').strip():
                self._aliases[alias_key] = str(canonical).strip()

    def resolve(self, raw_name: Optional[str], priority: Optional[int] = None) -> NameResolution:
        """
        Resolve one raw name.

        Args:
            raw_name: Token captured by a heuristic
            priority: Priority of the heuristic that produced it, used by the
                low-confidence fuzzy trigger

        Returns:
            NameResolution
        """
        raw = str(raw_name or '').strip()
        if not raw:
            return NameResolution(raw="", normalized="", canonical="", method="empty", confidence=0.0)

        lowered = raw.lower()
        accent_key = strip_diacritics(raw).lower()

        if lowered in self._direct:
            return self._result(raw, self._direct[lowered], "exact", 1.0)
        if lowered in self._aliases:
            return self._result(raw, self._aliases[lowered], "alias", 1.0)
        if accent_key in self._aliases:
            return self._result(raw, self._aliases[accent_key], "alias", 1.0)
        if accent_key in self._accentless:
            return self._result(raw, self._accentless[accent_key], "accent-fold", 0.95)

        applied = self.tolerance.should_apply(priority=priority, has_accents=has_diacritics(raw))
        if applied and self.candidates:
            fuzzy = self._fuzzy_match(raw)
            if fuzzy is not None:
                canonical, distance = fuzzy
                self.logger.debug(f"Fuzzy resolved '{raw}' -> '{canonical}' (distance {distance:.2f})")
                return self._result(raw, canonical, "fuzzy", round(1.0 - distance, 4), distance, applied=True)

        return self._result(raw, raw, "raw", 0.0, applied=applied)

    __call__ = resolve

    def _fuzzy_match(self, raw: str):
        query = strip_diacritics(raw)
        token_key = overlap_key(raw)
        results = process.extract(query, self.candidates, scorer=fuzz.ratio, limit=None)

        for candidate, ratio in results:
            distance = 1.0 - ratio / 100.0
            if distance > self.tolerance.max_score:
                continue
            candidate_key = overlap_key(candidate)
            if not token_key or not candidate_key:
                return candidate, distance
            if character_overlap_ratio(token_key, candidate_key) < settings.MIN_FUZZY_CHARACTER_OVERLAP_RATIO:
                continue
            if _token_extends_candidate(token_key, candidate_key):
                return candidate, distance
            if normalized_edit_distance(token_key, candidate_key) <= settings.MAX_NORMALIZED_FUZZY_EDIT_DISTANCE:
                return candidate, distance
        return None

    def _result(self, raw: str, canonical: str, method: str, confidence: float,
                score: Optional[float] = None, applied: bool = False) -> NameResolution:
        return NameResolution(
            raw=raw,
            normalized=raw,
            canonical=canonical,
            method=method,
            confidence=confidence,
            score=score,
            applied=applied,
            changed=canonical.lower() != raw.lower(),
        )


def resolve_name(raw_name: Optional[str], candidates: Sequence[str], tolerance: ToleranceSetting = None,
                 alias_map: Optional[Mapping[str, str]] = None, priority: Optional[int] = None) -> NameResolution:
    """One-shot resolution without keeping a preprocessor around."""
    return NamePreprocessor(candidates, tolerance, alias_map).resolve(raw_name, priority=priority)
