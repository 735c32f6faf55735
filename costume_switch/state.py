import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from .attribution.cooldown_gate import GlobalDecisionState
from .text_processing import StreamBufferManager


@dataclass
class EngineState:
    """
    All mutable state of one engine instance.

    The turn registry holds per-turn buffers; the decision state is shared by
    every turn because the visible costume is a single resource.
    """
    turns: StreamBufferManager = field(default_factory=StreamBufferManager)
    decision: GlobalDecisionState = field(default_factory=GlobalDecisionState)

    def reset(self) -> None:
        """Clear turn buffers and switch history together."""
        self.turns.clear()
        self.decision.reset()
        logging.getLogger(__name__).info("Engine state reset")

    def snapshot(self) -> Dict[str, Any]:
        return {
            'turns': self.turns.stats(),
            'decision': self.decision.to_dict(),
        }
