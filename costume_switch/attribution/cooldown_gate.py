import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..text_processing import TurnState, normalize_costume_name


class GateStatus(Enum):
    IDLE = "idle"
    EVALUATED = "evaluated"
    ACCEPTED = "accepted"
    SUPPRESSED = "suppressed"


@dataclass
class GateDecision:
    """Outcome of one decision attempt."""
    status: GateStatus = GateStatus.IDLE
    reason: str = ""
    target: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status is GateStatus.ACCEPTED


@dataclass
class GlobalDecisionState:
    """
    Switch history shared by every turn of one engine.

    Timestamps are milliseconds on the engine clock; a missing entry means
    the target was never switched to (or never failed).
    """
    last_issued_target: Optional[str] = None
    last_switch_timestamp: Optional[float] = None
    success_timestamps: Dict[str, float] = field(default_factory=dict)
    failure_timestamps: Dict[str, float] = field(default_factory=dict)
    pronoun_subject: Optional[str] = None
    active_roster: Dict[str, int] = field(default_factory=dict)

    def reset(self) -> None:
        self.last_issued_target = None
        self.last_switch_timestamp = None
        self.success_timestamps.clear()
        self.failure_timestamps.clear()
        self.pronoun_subject = None
        self.active_roster.clear()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'last_issued_target': self.last_issued_target,
            'last_switch_timestamp': self.last_switch_timestamp,
            'success_timestamps': dict(self.success_timestamps),
            'failure_timestamps': dict(self.failure_timestamps),
            'pronoun_subject': self.pronoun_subject,
            'active_roster': dict(self.active_roster),
        }


def _elapsed_at_least(now: float, since: Optional[float], window_ms: float) -> bool:
    if since is None:
        return True
    return now - since >= float(window_ms or 0)


class CooldownGate:
    """
    Decides whether a winning candidate may trigger a visible switch.

    A candidate is accepted only if it differs from the current target and
    the global, per-target and failure cooldowns have all elapsed. A lock
    override (focus lock, manual reset) skips the cooldowns but never the
    redundancy check.

    The gate also owns the bookkeeping that follows a switch attempt:
    success and failure timestamps, the pronoun subject and the scene roster.
    """

    def __init__(self, state: Optional[GlobalDecisionState] = None):
        self.state = state if state is not None else GlobalDecisionState()
        self.logger = logging.getLogger(__name__)

    def current_target(self, default_costume: str = "") -> str:
        return self.state.last_issued_target or default_costume or ""

    def is_repeat(self, turn: TurnState, name: str, now: float, repeat_suppress_ms: float) -> bool:
        """
        Per-turn repeat suppression.

        Returns True if the same name already won in this turn within the
        suppression window; otherwise records the name as the turn's latest
        winner and returns False.
        """
        previous = turn.last_accepted_name
        if previous and previous.lower() == name.lower() and now - turn.last_accepted_timestamp < repeat_suppress_ms:
            return True
        turn.last_accepted_name = name
        turn.last_accepted_timestamp = now
        return False

    def evaluate(self, target: str, now: float, profile, override: bool = False) -> GateDecision:
        """
        Run the acceptance rules for a resolved target.

        Args:
            target: Folder/costume the switch would issue
            now: Current time in milliseconds
            profile: Active detection profile (cooldown settings, default costume)
            override: Explicit lock override; bypasses the cooldown rules

        Returns:
            GateDecision with status ACCEPTED or SUPPRESSED
        """
        if not target:
            return GateDecision(GateStatus.IDLE, "no target")

        decision = GateDecision(GateStatus.EVALUATED, target=target)
        current = normalize_costume_name(self.current_target(profile.default_costume))

        if current and current.lower() == normalize_costume_name(target).lower():
            return self._suppress(decision, "redundant")

        if not override:
            if not _elapsed_at_least(now, self.state.last_switch_timestamp, profile.global_cooldown_ms):
                return self._suppress(decision, "global cooldown")
            if not _elapsed_at_least(now, self.state.success_timestamps.get(target), profile.per_trigger_cooldown_ms):
                return self._suppress(decision, "per-trigger cooldown")
            if not _elapsed_at_least(now, self.state.failure_timestamps.get(target), profile.failed_trigger_cooldown_ms):
                return self._suppress(decision, "failed-trigger cooldown")

        decision.status = GateStatus.ACCEPTED
        decision.reason = "override" if override else "accepted"
        return decision

    def record_success(self, name: str, target: str, kind: str, now: float,
                       roster_enabled: bool = True, roster_ttl: int = 0,
                       update_subject: bool = True) -> None:
        """Book a successful switch: timestamps, current target, pronoun subject, roster."""
        self.state.success_timestamps[target] = now
        self.state.last_issued_target = target
        self.state.last_switch_timestamp = now
        if update_subject and getattr(kind, "value", kind) != "pronoun":
            self.state.pronoun_subject = name
        key = normalize_costume_name(name).lower()
        if roster_enabled and roster_ttl and roster_ttl > 0 and key:
            self.state.active_roster[key] = int(roster_ttl)

    def record_failure(self, target: str, now: float) -> None:
        self.state.failure_timestamps[target] = now

    def decay_roster(self) -> List[str]:
        """Age every roster entry by one turn; returns the names that expired."""
        expired = []
        for name in list(self.state.active_roster):
            remaining = self.state.active_roster[name] - 1
            if remaining <= 0:
                del self.state.active_roster[name]
                expired.append(name)
            else:
                self.state.active_roster[name] = remaining
        if expired:
            self.logger.debug(f"Roster entries expired: {', '.join(expired)}")
        return expired

    def _suppress(self, decision: GateDecision, reason: str) -> GateDecision:
        decision.status = GateStatus.SUPPRESSED
        decision.reason = reason
        return decision
