"""
Unit tests for multi-heuristic match finding.
"""

import time
from itertools import count
from unittest.mock import Mock

import pytest
import regex

from config import settings
from costume_switch.attribution.match_finder import (
    Match,
    MatchKind,
    budgeted_search,
    character_focus_scores,
    find_matches,
    find_veto,
    iter_pattern_matches,
)
from costume_switch.errors import EvaluationError
from costume_switch.text_processing import index_quotes


@pytest.fixture
def compiled(compiler):
    return compiler.compile(
        ["Kotori", "Hanabi", "/Mika(?:-sama)?/"],
        settings.DEFAULT_ATTRIBUTION_VERBS,
        settings.DEFAULT_ACTION_VERBS,
        ["OOC:"],
    )


def run(text, compiled, kinds, subject=None, **kwargs):
    return find_matches(text, compiled, index_quotes(text), kinds, pronoun_subject=subject, **kwargs)


class TestMatchKind:

    def test_priorities(self):
        assert MatchKind.SPEAKER.priority == 5
        assert MatchKind.ATTRIBUTION.priority == 4
        assert MatchKind.ACTION.priority == MatchKind.PRONOUN.priority == 3
        assert MatchKind.VOCATIVE.priority == 2
        assert MatchKind.POSSESSIVE.priority == 1
        assert MatchKind.NAME.priority == 0

    def test_compares_equal_to_string(self):
        assert MatchKind.ATTRIBUTION == "attribution"


class TestFindMatches:
    """Test candidate extraction per heuristic."""

    def test_speaker(self, compiled):
        matches = run("Kotori: Hello there.", compiled, [MatchKind.SPEAKER])
        assert matches == [Match("Kotori", MatchKind.SPEAKER, 0, 5)]

    def test_quoted_narration_is_excluded(self, compiled):
        text = '"Kotori smiled at me," Hanabi said.'
        matches = run(text, compiled, [MatchKind.ACTION, MatchKind.ATTRIBUTION])
        assert matches == [Match("Hanabi", MatchKind.ATTRIBUTION, 0, 4)]

    def test_vocative_allowed_inside_quotes(self, compiled):
        text = '"Thank you, Hanabi!" she said.'
        matches = run(text, compiled, [MatchKind.VOCATIVE])
        assert matches == [Match("Hanabi", MatchKind.VOCATIVE, 11, 2)]

    def test_possessive_inside_quotes_excluded(self, compiled):
        assert run('"Is that Kotori\'s bag?"', compiled, [MatchKind.POSSESSIVE]) == []
        assert run("It was Kotori's bag.", compiled, [MatchKind.POSSESSIVE]) == [
            Match("Kotori", MatchKind.POSSESSIVE, 7, 1)
        ]

    def test_pronoun_needs_subject(self, compiled):
        assert run("She smiled.", compiled, [MatchKind.PRONOUN]) == []
        matches = run("She smiled.", compiled, [MatchKind.PRONOUN], subject="Kotori")
        assert matches == [Match("Kotori", MatchKind.PRONOUN, 0, 3)]

    def test_general_name_strips_honorific(self, compiled):
        matches = run("Then Mika-sama arrived", compiled, [MatchKind.NAME])
        assert [m.name for m in matches] == ["Mika"]

    def test_disabled_kinds_are_skipped(self, compiled):
        text = "Kotori: hi. Hanabi nodded."
        matches = run(text, compiled, [MatchKind.ACTION])
        assert {m.kind for m in matches} == {MatchKind.ACTION}

    def test_all_kinds_by_default(self, compiled):
        text = "Kotori: hi. Hanabi nodded."
        matches = find_matches(text, compiled, index_quotes(text))
        kinds = {m.kind for m in matches}
        assert MatchKind.SPEAKER in kinds
        assert MatchKind.ACTION in kinds
        assert MatchKind.NAME in kinds

    def test_every_occurrence_reported(self, compiled):
        matches = run("Kotori nodded. Later Kotori waved.", compiled, [MatchKind.ACTION])
        assert [m.index for m in matches] == [0, 21]

    def test_match_cap(self, compiled):
        matches = run("Kotori Kotori Kotori Kotori", compiled, [MatchKind.NAME], max_matches=2)
        assert len(matches) == 2

    def test_empty_text(self, compiled):
        assert find_matches("", compiled, []) == []


class TestScanSafety:
    """Test termination and budget guarantees for user-supplied patterns."""

    def test_zero_width_pattern_advances(self):
        matches = list(iter_pattern_matches(regex.compile("x*"), "abc"))
        assert [m.start() for m in matches] == [0, 1, 2, 3]

    def test_zero_width_user_pattern_terminates(self, compiler):
        compiled = compiler.compile(["/x*/"], ["said"], ["nodded"], [])
        text = "abc def ghi"
        assert run(text, compiled, [MatchKind.NAME, MatchKind.POSSESSIVE]) == []

    def test_time_budget_raises(self, compiled):
        ticks = count()
        with pytest.raises(EvaluationError):
            run("Kotori Kotori Kotori", compiled, [MatchKind.NAME],
                budget_ms=250, clock=lambda: float(next(ticks)))

    def test_search_runs_under_remaining_budget(self):
        pattern = Mock()
        pattern.search.return_value = None
        assert budgeted_search(pattern, "Kotori", 0, start=10.0, budget_ms=250, clock=lambda: 10.1) is None
        timeout = pattern.search.call_args.kwargs['timeout']
        assert timeout == pytest.approx(0.15)

    def test_search_timeout_becomes_evaluation_error(self):
        pattern = Mock()
        pattern.search.side_effect = TimeoutError("regex timed out")
        with pytest.raises(EvaluationError, match="budget"):
            list(iter_pattern_matches(pattern, "a" * 30 + "!", budget_ms=250))

    def test_catastrophic_pattern_is_cut_off(self):
        pattern = regex.compile(r'(a+)+b')
        began = time.perf_counter()
        try:
            list(iter_pattern_matches(pattern, "a" * 30 + "!", budget_ms=50))
        except EvaluationError:
            pass
        assert time.perf_counter() - began < 2.0


class TestVeto:

    def test_veto_phrase_found(self, compiled):
        assert find_veto("OOC: ignore this, Kotori said hi", compiled) == "OOC:"

    def test_no_veto(self, compiled):
        assert find_veto("Kotori said hi", compiled) is None

    def test_veto_search_is_budgeted(self, compiled):
        ticks = count()
        with pytest.raises(EvaluationError):
            find_veto("OOC: ignore this", compiled, budget_ms=250, clock=lambda: float(next(ticks)))


class TestFocusScores:

    def test_aggregates_points_per_character(self):
        matches = [
            Match("Kotori", MatchKind.SPEAKER, 0, 5),
            Match("kotori-chan", MatchKind.ACTION, 10, 3),
            Match("Hanabi", MatchKind.NAME, 20, 0),
        ]
        assert character_focus_scores(matches) == {"kotori": 5, "hanabi": 1}
