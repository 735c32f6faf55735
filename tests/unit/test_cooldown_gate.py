"""
Unit tests for the switch acceptance gate and its bookkeeping.
"""

import pytest

from costume_switch.attribution.cooldown_gate import (
    CooldownGate,
    GateStatus,
    GlobalDecisionState,
)
from costume_switch.attribution.match_finder import MatchKind
from costume_switch.profiles import DetectionProfile
from costume_switch.text_processing import TurnState


@pytest.fixture
def gate():
    return CooldownGate()


@pytest.fixture
def gate_profile():
    return DetectionProfile(default_costume="Narrator")


class TestEvaluate:
    """Test the acceptance rules in order."""

    def test_accepts_new_target(self, gate, gate_profile):
        decision = gate.evaluate("Kotori", 1000, gate_profile)
        assert decision.accepted
        assert decision.reason == "accepted"
        assert decision.target == "Kotori"

    def test_empty_target_is_idle(self, gate, gate_profile):
        decision = gate.evaluate("", 1000, gate_profile)
        assert decision.status is GateStatus.IDLE
        assert not decision.accepted

    def test_default_costume_is_redundant_before_any_switch(self, gate, gate_profile):
        decision = gate.evaluate("narrator-chan", 1000, gate_profile)
        assert decision.status is GateStatus.SUPPRESSED
        assert decision.reason == "redundant"

    def test_current_target_is_redundant_even_with_override(self, gate, gate_profile):
        gate.record_success("Kotori", "Kotori", "action", 1000)
        assert gate.evaluate("Kotori", 100000, gate_profile).reason == "redundant"
        assert gate.evaluate("Kotori", 100000, gate_profile, override=True).reason == "redundant"

    def test_global_cooldown(self, gate, gate_profile):
        gate.record_success("Kotori", "Kotori", "action", 1000)
        assert gate.evaluate("Hanabi", 1500, gate_profile).reason == "global cooldown"
        assert gate.evaluate("Hanabi", 2200, gate_profile).accepted

    def test_per_trigger_cooldown(self, gate, gate_profile):
        gate.state.last_issued_target = "Kotori"
        gate.state.last_switch_timestamp = 0
        gate.state.success_timestamps["Hanabi"] = 2000
        assert gate.evaluate("Hanabi", 2100, gate_profile).reason == "per-trigger cooldown"
        assert gate.evaluate("Hanabi", 2250, gate_profile).accepted

    def test_failed_trigger_cooldown(self, gate, gate_profile):
        gate.record_failure("Hanabi", 1000)
        assert gate.evaluate("Hanabi", 5000, gate_profile).reason == "failed-trigger cooldown"
        assert gate.evaluate("Hanabi", 11000, gate_profile).accepted

    def test_override_skips_cooldowns(self, gate, gate_profile):
        gate.record_success("Kotori", "Kotori", "action", 1000)
        gate.record_failure("Hanabi", 1000)
        decision = gate.evaluate("Hanabi", 1001, gate_profile, override=True)
        assert decision.accepted
        assert decision.reason == "override"

    def test_cooldowns_come_from_profile(self, gate, gate_profile):
        gate.record_success("Kotori", "Kotori", "action", 1000)
        relaxed = gate_profile.copy(global_cooldown_ms=0)
        assert gate.evaluate("Hanabi", 1000, relaxed).accepted


class TestBookkeeping:
    """Test what a success or failure records."""

    def test_success_updates_current_target_and_subject(self, gate):
        gate.record_success("Kotori", "kotori_casual", "attribution", 1000)
        assert gate.current_target("Narrator") == "kotori_casual"
        assert gate.state.last_switch_timestamp == 1000
        assert gate.state.success_timestamps == {"kotori_casual": 1000}
        assert gate.state.pronoun_subject == "Kotori"

    def test_pronoun_switch_keeps_subject(self, gate):
        gate.record_success("Kotori", "Kotori", "action", 1000)
        gate.record_success("Hanabi", "Hanabi", "pronoun", 3000)
        gate.record_success("Mika", "Mika", MatchKind.PRONOUN, 5000)
        assert gate.state.pronoun_subject == "Kotori"

    def test_subject_update_can_be_disabled(self, gate):
        gate.record_success("Narrator", "Narrator", "manual-reset", 1000, update_subject=False)
        assert gate.state.pronoun_subject is None

    def test_roster_entry_uses_normalized_name(self, gate):
        gate.record_success("Kotori-chan", "Kotori", "action", 1000, roster_ttl=5)
        assert gate.state.active_roster == {"kotori": 5}

    def test_roster_disabled(self, gate):
        gate.record_success("Kotori", "Kotori", "action", 1000, roster_enabled=False, roster_ttl=5)
        assert gate.state.active_roster == {}

    def test_current_target_falls_back_to_default(self, gate):
        assert gate.current_target("Narrator") == "Narrator"
        assert gate.current_target() == ""


class TestRosterDecay:

    def test_single_turn_ttl_expires(self, gate):
        gate.record_success("Kotori", "Kotori", "action", 1000, roster_ttl=1)
        assert gate.decay_roster() == ["kotori"]
        assert gate.state.active_roster == {}

    def test_longer_ttl_counts_down(self, gate):
        gate.record_success("Kotori", "Kotori", "action", 1000, roster_ttl=2)
        assert gate.decay_roster() == []
        assert gate.state.active_roster == {"kotori": 1}
        assert gate.decay_roster() == ["kotori"]


class TestRepeatSuppression:

    def test_same_name_within_window(self, gate):
        turn = TurnState()
        assert gate.is_repeat(turn, "Kotori", 1000, 800) is False
        assert gate.is_repeat(turn, "kotori", 1500, 800) is True
        assert gate.is_repeat(turn, "Kotori", 1900, 800) is False
        assert turn.last_accepted_timestamp == 1900

    def test_different_name_is_not_repeat(self, gate):
        turn = TurnState()
        gate.is_repeat(turn, "Kotori", 1000, 800)
        assert gate.is_repeat(turn, "Hanabi", 1100, 800) is False
        assert turn.last_accepted_name == "Hanabi"


class TestGlobalDecisionState:

    def test_reset_clears_everything(self):
        state = GlobalDecisionState(last_issued_target="Kotori", last_switch_timestamp=5,
                                    pronoun_subject="Kotori")
        state.active_roster["kotori"] = 3
        state.failure_timestamps["Hanabi"] = 4
        state.reset()
        assert state.to_dict() == GlobalDecisionState().to_dict()

    def test_to_dict_copies_maps(self):
        state = GlobalDecisionState()
        snapshot = state.to_dict()
        snapshot['active_roster']['kotori'] = 1
        assert state.active_roster == {}
