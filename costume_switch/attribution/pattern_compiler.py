import re
import logging
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence, Tuple, Union

import regex

from config import settings
from ..cache import LRUCache
from ..errors import PatternCompileError, PatternTooComplex
from .cache_keys import CacheKeyGenerator

logger = logging.getLogger(__name__)

_REGEX_ENTRY_RE = re.compile(r'^/((?:\\.|[^/])+)/([a-z]*)$')
_FLAG_MAP = {'i': regex.IGNORECASE, 'm': regex.MULTILINE, 's': regex.DOTALL}

VerbList = Union[str, Sequence[str], None]


@dataclass(frozen=True)
class PatternEntry:
    """One user-supplied pattern line, either a literal name or a /body/flags regex."""
    body: str
    flags: str
    raw: str


@dataclass(frozen=True)
class CompiledHeuristicSet:
    """
    Immutable bundle of compiled heuristic patterns.

    Any attribute may be None when the heuristic has nothing to match (no
    names, no verbs) or when its combined alternation could not be built.
    Rebuilt wholesale whenever the pattern or verb configuration changes.
    """
    speaker: Optional[Pattern] = None
    attribution: Optional[Pattern] = None
    action: Optional[Pattern] = None
    vocative: Optional[Pattern] = None
    possessive: Optional[Pattern] = None
    pronoun: Optional[Pattern] = None
    name: Optional[Pattern] = None
    veto: Optional[Pattern] = None
    signature: str = ""
    warnings: Tuple[str, ...] = ()

    def pattern_for(self, kind: str) -> Optional[Pattern]:
        """Compiled pattern for a heuristic kind ('speaker', 'attribution', ...)."""
        return getattr(self, str(kind), None)

    @property
    def is_empty(self) -> bool:
        return not any((self.speaker, self.attribution, self.action, self.vocative,
                        self.possessive, self.pronoun, self.name, self.veto))


def parse_pattern_entry(raw: Optional[str]) -> Optional[PatternEntry]:
    """
    Parse one pattern line.

    "/Ko(?:tori|to)/i" becomes a regex entry with flags "i"; anything else is
    escaped and matched literally. Blank lines yield None.
    """
    text = str(raw or '').strip()
    if not text:
        return None
    match = _REGEX_ENTRY_RE.match(text)
    if match and all(flag in settings.ALLOWED_PATTERN_FLAGS for flag in match.group(2)):
        return PatternEntry(body=match.group(1), flags=match.group(2), raw=text)
    return PatternEntry(body=re.escape(text), flags='', raw=text)


def parse_pattern_entries(lines: Optional[Sequence[str]]) -> List[PatternEntry]:
    entries = (parse_pattern_entry(line) for line in (lines or []))
    return [entry for entry in entries if entry is not None]


def compute_flags(entries: Sequence[PatternEntry], require_ignore_case: bool = True) -> int:
    """Union of the entries' regex flags, always case-insensitive by default."""
    flags = regex.IGNORECASE if require_ignore_case else 0
    for entry in entries:
        for flag in entry.flags:
            flags |= _FLAG_MAP.get(flag, 0)
    return flags


def check_pattern_complexity(entries: Sequence, label: str = "pattern") -> None:
    """
    Reject pattern lists that are too long or too large to compile safely.

    Raises:
        PatternTooComplex: If the entry count or total body length exceeds its ceiling
    """
    total_length = sum(len(getattr(entry, 'body', entry) or '') for entry in entries)
    if len(entries) > settings.MAX_PATTERN_ENTRIES:
        raise PatternTooComplex(
            f"Too many {label} entries ({len(entries)} > {settings.MAX_PATTERN_ENTRIES}); shorten the list."
        )
    if total_length > settings.MAX_PATTERN_BODY_CHARS:
        raise PatternTooComplex(
            f"{label.capitalize()} list is too long ({total_length} > {settings.MAX_PATTERN_BODY_CHARS} characters); shorten the list."
        )


def split_verbs(verbs: VerbList) -> List[str]:
    """Accept a list of verbs or a '|'-separated string and return clean entries."""
    if verbs is None:
        return []
    if isinstance(verbs, str):
        verbs = verbs.split('|')
    return [str(verb).strip() for verb in verbs if str(verb or '').strip()]


def process_verbs(verbs: VerbList) -> str:
    """
    Build a regex alternation body from a verb list.

    Verbs are matched literally; internal whitespace matches any run of
    whitespace so multi-word verbs ("called out") survive line wrapping.
    """
    parts = []
    for verb in split_verbs(verbs):
        words = [re.escape(word) for word in verb.split()]
        parts.append(r'\s+'.join(words))
    return '|'.join(parts)


def _diagnose_entries(entries: Sequence[PatternEntry]) -> None:
    """Recompile entries one by one and raise for the first invalid one."""
    for position, entry in enumerate(entries, start=1):
        try:
            regex.compile(entry.body, compute_flags([entry]))
        except regex.error as err:
            raise PatternCompileError(
                f'Pattern #{position} failed to compile: "{entry.raw}" - {err}',
                pattern_index=position,
                pattern=entry.raw,
            ) from err


class PatternCompiler:
    """
    Turns user-supplied name, verb and veto lists into a CompiledHeuristicSet.

    Every heuristic is one alternation over all name entries, each wrapped in
    a non-capturing group, with the entries' flags merged and
    case-insensitivity forced on. Lists are bounded in size before anything is
    compiled, and everything is compiled with the `regex` engine so that each
    search can be cut off by a timeout (see match_finder).

    If a combined alternation fails to compile, the entries are re-tested
    individually and the first invalid one is reported by position. If every
    entry compiles on its own, only that heuristic is dropped and a warning is
    attached to the set.

    Results are memoized by configuration signature.
    """

    def __init__(self, cache_size: Optional[int] = None):
        self.cache = LRUCache(max_size=cache_size or settings.COMPILED_SET_CACHE_MAX_SIZE)
        self.logger = logging.getLogger(__name__)

    def compile(self, patterns: Optional[Sequence[str]], attribution_verbs: VerbList = None,
                action_verbs: VerbList = None, veto_patterns: Optional[Sequence[str]] = None) -> CompiledHeuristicSet:
        """
        Compile a heuristic set.

        Args:
            patterns: Name pattern lines (ignore list already removed)
            attribution_verbs: Speech verbs ("said", "asked", ...)
            action_verbs: Action verbs ("smiled", "nodded", ...)
            veto_patterns: Out-of-character marker lines

        Returns:
            CompiledHeuristicSet

        Raises:
            PatternTooComplex: If any list exceeds the size ceilings
            PatternCompileError: If a pattern entry is not a valid regex
        """
        attribution_verb_list = split_verbs(attribution_verbs)
        action_verb_list = split_verbs(action_verbs)
        signature = CacheKeyGenerator.generate_heuristic_set_key(
            patterns or [], attribution_verb_list, action_verb_list, veto_patterns or []
        )

        if settings.COMPILED_SET_CACHE_ENABLED:
            cached = self.cache.get(signature)
            if cached is not None:
                return cached

        name_entries = parse_pattern_entries(patterns)
        veto_entries = parse_pattern_entries(veto_patterns)
        check_pattern_complexity(name_entries, "name pattern")
        check_pattern_complexity(veto_entries, "veto pattern")
        check_pattern_complexity(attribution_verb_list, "attribution verb")
        check_pattern_complexity(action_verb_list, "action verb")

        attribution_verbs_body = process_verbs(attribution_verb_list)
        action_verbs_body = process_verbs(action_verb_list)
        pronoun_verbs_body = process_verbs(action_verb_list + attribution_verb_list)

        warnings: List[str] = []
        names = '|'.join(f'(?:{entry.body})' for entry in name_entries)
        flags = compute_flags(name_entries)
        middle = rf'(?:\s+(?-i:[A-Z][a-z]+)){{0,{settings.MAX_MIDDLE_NAME_WORDS}}}'
        verb_gap = rf"(?:\s+[a-zA-Z']+){{0,{settings.MAX_VERB_GAP_WORDS}}}?"

        def build(kind: str, body: Optional[str], entries: Sequence[PatternEntry], entry_flags: int) -> Optional[Pattern]:
            if not body or not entries:
                return None
            try:
                return regex.compile(body, entry_flags)
            except regex.error as err:
                _diagnose_entries(entries)
                message = f"Combined {kind} pattern failed to compile: {err}"
                self.logger.warning(message)
                warnings.append(message)
                return None

        speaker_body = rf'(?:^|\n)\s*({names})\s*[:;,]\s*' if names else None

        attribution_parts = []
        if names and attribution_verbs_body:
            attribution_parts.append(
                rf'"[^"]{{0,{settings.MAX_QUOTED_SPAN_CHARS}}}"\s*,?\s*({names}){middle}\s+(?:{attribution_verbs_body})\b'
            )
            attribution_parts.append(
                rf'\b({names}){middle}\s+(?:{attribution_verbs_body})\s*[:,]?\s*"'
            )
        if names:
            attribution_parts.append(
                rf"\b({names}){middle}['`]s\s+(?:[a-zA-Z']+\s+){{0,{settings.MAX_VOICE_GAP_WORDS}}}?voice\b"
            )
        attribution_body = '|'.join(f'(?:{part})' for part in attribution_parts)

        action_body = None
        if names and action_verbs_body:
            action_body = rf'\b({names}){middle}\b{verb_gap}\s+(?:{action_verbs_body})\b'

        vocative_body = rf'["\'\s]({names})[,.!?]' if names else None
        possessive_body = rf"\b({names})['`]s\b" if names else None
        general_body = rf"\b({names})\b(?!['`](?:s|d|ll|ve|re)\b|:)" if names else None

        pronoun = None
        if pronoun_verbs_body:
            pronouns = '|'.join(re.escape(p) for p in settings.PRONOUNS)
            pronoun = regex.compile(
                rf'\b(?:{pronouns})\b{verb_gap}\s+(?:{pronoun_verbs_body})\b',
                regex.IGNORECASE
            )

        veto_body = '(?:' + '|'.join(f'(?:{entry.body})' for entry in veto_entries) + ')' if veto_entries else None

        compiled = CompiledHeuristicSet(
            speaker=build("speaker", speaker_body, name_entries, flags),
            attribution=build("attribution", attribution_body, name_entries, flags),
            action=build("action", action_body, name_entries, flags),
            vocative=build("vocative", vocative_body, name_entries, flags),
            possessive=build("possessive", possessive_body, name_entries, flags),
            pronoun=pronoun,
            name=build("name", general_body, name_entries, flags),
            veto=build("veto", veto_body, veto_entries, compute_flags(veto_entries)),
            signature=signature,
            warnings=tuple(warnings),
        )

        if settings.COMPILED_SET_CACHE_ENABLED:
            self.cache.put(signature, compiled)

        self.logger.debug(
            f"Compiled heuristic set {signature} ({len(name_entries)} names, {len(veto_entries)} veto patterns)"
        )
        return compiled

