from .normalization import (
    normalize_stream_text,
    normalize_costume_name,
    ends_with_terminal_punctuation,
    index_quotes,
    is_inside_quotes,
)
from .buffer_manager import StreamBufferManager, TurnState, turn_key

__all__ = [
    'normalize_stream_text',
    'normalize_costume_name',
    'ends_with_terminal_punctuation',
    'index_quotes',
    'is_inside_quotes',
    'StreamBufferManager',
    'TurnState',
    'turn_key',
]
