import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Any, Iterator, Optional

from config import settings
from .normalization import normalize_stream_text, ends_with_terminal_punctuation


def turn_key(message_id: Optional[Any]) -> str:
    """Registry key for a turn: 'm<id>' for a known message, the live sentinel otherwise."""
    if message_id is None:
        return settings.LIVE_TURN_KEY
    return f"{settings.MESSAGE_TURN_KEY_PREFIX}{message_id}"


@dataclass
class TurnState:
    """Incremental buffer and evaluation state for one generation turn."""
    buffer: str = ""
    last_accepted_name: Optional[str] = None
    last_accepted_timestamp: float = 0.0
    vetoed: bool = False
    next_evaluation_threshold: int = 0
    chars_seen: int = 0


class StreamBufferManager:
    """
    Bounded registry of per-turn text buffers.

    Each in-flight turn (a message id, or the "live" sentinel while streaming)
    owns one TurnState. Tokens are normalized and appended to the tail of the
    turn's buffer, which is truncated from the head so that the newest text,
    where attribution evidence matters most, is always kept.

    Evaluation is throttled: a turn is due for a heuristic pass only after it
    has received at least `token_process_threshold` new characters since the
    last pass, or immediately when a token closes a sentence.

    The registry holds at most `max_turns` entries; when exceeded, the oldest
    turn (insertion order) is evicted together with its buffer.
    """

    def __init__(self, max_turns: Optional[int] = None):
        self.max_turns = max_turns or settings.MAX_MESSAGE_BUFFERS
        self._turns: "OrderedDict[str, TurnState]" = OrderedDict()
        self.logger = logging.getLogger(__name__)

    def start_turn(self, key: str) -> TurnState:
        """Create a fresh state for a turn, discarding any previous buffer under the same key."""
        self._turns.pop(key, None)
        state = TurnState()
        self._turns[key] = state
        self._enforce_limit()
        return state

    def get(self, key: str) -> Optional[TurnState]:
        return self._turns.get(key)

    def append(self, key: str, token: str, max_buffer_chars: int, token_process_threshold: int) -> bool:
        """
        Append a token to a turn's buffer.

        Args:
            key: Turn key
            token: Raw token text
            max_buffer_chars: Maximum characters retained in the buffer
            token_process_threshold: Characters to accumulate between evaluations

        Returns:
            True if the turn is due for an evaluation pass
        """
        state = self._turns.get(key)
        if state is None:
            state = self.start_turn(key)
        if state.vetoed:
            return False

        normalized = normalize_stream_text(token)
        if not normalized:
            return False

        combined = state.buffer + normalized
        if max_buffer_chars and max_buffer_chars > 0 and len(combined) > max_buffer_chars:
            combined = combined[-max_buffer_chars:]
        state.buffer = combined
        state.chars_seen += len(normalized)

        threshold = max(int(token_process_threshold or 0), 0)
        if not state.next_evaluation_threshold:
            state.next_evaluation_threshold = threshold

        if state.chars_seen >= state.next_evaluation_threshold or ends_with_terminal_punctuation(normalized):
            state.next_evaluation_threshold = state.chars_seen + threshold
            return True
        return False

    def end_turn(self, key: str) -> None:
        """Drop a turn's buffer and state together."""
        if self._turns.pop(key, None) is not None:
            self.logger.debug(f"Released turn buffer {key}")

    def clear(self) -> None:
        self._turns.clear()

    def keys(self) -> Iterator[str]:
        return iter(list(self._turns.keys()))

    def __len__(self) -> int:
        return len(self._turns)

    def __contains__(self, key: str) -> bool:
        return key in self._turns

    def stats(self) -> Dict[str, Any]:
        return {
            'turns': len(self._turns),
            'max_turns': self.max_turns,
            'buffered_chars': sum(len(state.buffer) for state in self._turns.values()),
        }

    def _enforce_limit(self) -> None:
        while len(self._turns) > self.max_turns:
            oldest_key = next(iter(self._turns))
            del self._turns[oldest_key]
            self.logger.debug(f"Evicted turn buffer {oldest_key}")
