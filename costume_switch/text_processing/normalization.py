"""
Text normalization helpers for streamed chat output.

Streamed tokens arrive with typographic quotes, zero-width joiners and
markdown emphasis that would otherwise defeat the heuristic patterns, so
every token is normalized before it reaches a turn buffer.
"""

import re
from typing import List, Tuple

from config import settings

QuoteRange = Tuple[int, int]

_ZERO_WIDTH_RE = re.compile(r'[\uFEFF\u200B\u200C\u200D]')
_CURLY_SINGLE_RE = re.compile(r'[\u2018\u2019\u201A\u201B]')
_CURLY_DOUBLE_RE = re.compile(r'[\u201C\u201D\u201E\u201F]')
_MARKDOWN_RE = re.compile(r'(\*\*|__|~~|`{1,3})')
_QUOTE_RE = re.compile(r'["\u201C\u201D]')
_NAME_SPLIT_RE = re.compile(r'[/\s]+')
_HONORIFIC_RE = re.compile(
    r'[-_](?:' + '|'.join(settings.HONORIFIC_SUFFIXES) + r')$',
    re.IGNORECASE
)
_TERMINAL_RE = re.compile(r"[.!?\u2026][\"'\)\]\u201D\u2019*_]*\s*$")


def normalize_stream_text(text: str) -> str:
    """
    Normalize a chunk of streamed text.

    Removes zero-width characters, folds curly quotes to their straight
    equivalents, strips markdown emphasis markers and replaces non-breaking
    spaces with plain spaces.

    Args:
        text: Raw token or buffer text

    Returns:
        Normalized text ('' for empty input)
    """
    if not text:
        return ""
    text = _ZERO_WIDTH_RE.sub("", str(text))
    text = _CURLY_SINGLE_RE.sub("'", text)
    text = _CURLY_DOUBLE_RE.sub('"', text)
    text = _MARKDOWN_RE.sub("", text)
    return text.replace("\u00A0", " ")


def normalize_costume_name(name: str) -> str:
    """
    Reduce a detected name or folder reference to its bare costume name.

    "/Kotori" -> "Kotori", "Kotori-chan" -> "Kotori", "Kotori/casual" -> "Kotori"
    """
    if not name:
        return ""
    value = str(name).strip()
    if value.startswith("/"):
        value = value[1:].strip()
    parts = [part for part in _NAME_SPLIT_RE.split(value) if part]
    first = parts[0] if parts else value
    return _HONORIFIC_RE.sub("", first).strip()


def ends_with_terminal_punctuation(token: str) -> bool:
    """True if the token closes a sentence (optionally followed by closing quotes)."""
    if not token:
        return False
    return bool(_TERMINAL_RE.search(token))


def index_quotes(text: str) -> List[QuoteRange]:
    """
    Pair double-quote characters positionally into quoted spans.

    The 1st quote pairs with the 2nd, the 3rd with the 4th and so on. Quotes
    escaped with a backslash are ignored. Streamed text is usually partial,
    so an odd quote count leaves the last quote opening a span that runs to
    the end of the buffer.

    Args:
        text: Normalized buffer text

    Returns:
        List of (start, end) offsets of the quote characters delimiting each span
    """
    if not text:
        return []

    positions = []
    for match in _QUOTE_RE.finditer(text):
        index = match.start()
        if index > 0 and text[index - 1] == "\\":
            continue
        positions.append(index)

    ranges = [(positions[i], positions[i + 1]) for i in range(0, len(positions) - 1, 2)]
    if len(positions) % 2 == 1:
        ranges.append((positions[-1], len(text)))
    return ranges


def is_inside_quotes(quote_ranges: List[QuoteRange], index: int) -> bool:
    """True if index lies strictly between the delimiters of any quoted span."""
    for start, end in quote_ranges:
        if start < index < end:
            return True
    return False
