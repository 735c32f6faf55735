import hashlib
import json
from typing import List, Sequence

from config import settings


class CacheKeyGenerator:
    """
    Generates cache keys for compiled heuristic sets.

    Two configurations that would compile to the same regexes must produce
    the same key, so list entries are trimmed and empty lines dropped before
    hashing, while order is preserved (alternation order is significant).
    """

    @staticmethod
    def _normalize_entries(entries: Sequence[str]) -> List[str]:
        """Trim entries and drop blanks for consistent cache keys."""
        return [str(entry).strip() for entry in (entries or []) if str(entry or '').strip()]

    @staticmethod
    def _hash_content(content: str, length: int = 16) -> str:
        """Generate hash for content with specified length."""
        return hashlib.sha256(content.encode('utf-8')).hexdigest()[:length]

    @classmethod
    def generate_heuristic_set_key(cls, patterns: Sequence[str], attribution_verbs: Sequence[str],
                                   action_verbs: Sequence[str], veto_patterns: Sequence[str]) -> str:
        """
        Generate cache key for a compiled heuristic set.

        Args:
            patterns: Effective name patterns (ignore list already applied)
            attribution_verbs: Speech verbs used by attribution heuristics
            action_verbs: Verbs used by action and pronoun heuristics
            veto_patterns: Out-of-character marker patterns

        Returns:
            Cache key identifying this configuration
        """
        payload = json.dumps({
            'patterns': cls._normalize_entries(patterns),
            'attribution_verbs': cls._normalize_entries(attribution_verbs),
            'action_verbs': cls._normalize_entries(action_verbs),
            'veto_patterns': cls._normalize_entries(veto_patterns),
        }, sort_keys=True)

        return f"heuristics:{cls._hash_content(payload, settings.COMPILED_SET_HASH_LENGTH)}"
