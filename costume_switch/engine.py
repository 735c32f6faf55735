import re
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .attribution.cooldown_gate import CooldownGate
from .attribution.match_finder import Match, character_focus_scores, find_matches, find_veto
from .attribution.name_preprocessor import NamePreprocessor
from .attribution.pattern_compiler import CompiledHeuristicSet, PatternCompiler
from .attribution.scorer import ScoredMatch, select_best
from .errors import PatternCompileError, SwitchExecutionFailure
from .events import LifecycleEvent
from .profiles import DetectionProfile
from .state import EngineState
from .text_processing import (
    StreamBufferManager,
    index_quotes,
    normalize_costume_name,
    normalize_stream_text,
    turn_key,
)
from config import settings

SwitchHandler = Callable[[str, str], None]
DiagnosticHandler = Callable[[str, str], None]

FOCUS_LOCK_KIND = "focus-lock"
MANUAL_RESET_KIND = "manual-reset"

_WORD_RE = re.compile(r'\S+')
_LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass(frozen=True)
class SwitchDecision:
    """A switch that was issued to the host."""
    name: str
    target: str
    kind: str
    method: str
    turn_key: Optional[str]
    timestamp: float
    override: bool = False


@dataclass
class DetectionReport:
    """Pattern tester output for one piece of text."""
    text: str
    veto: Optional[str] = None
    matches: List[Match] = field(default_factory=list)
    winners: List[ScoredMatch] = field(default_factory=list)
    best: Optional[ScoredMatch] = None
    focus_scores: Dict[str, int] = field(default_factory=dict)

    @property
    def vetoed(self) -> bool:
        return self.veto is not None


class CostumeSwitchEngine:
    """
    Streaming speaker attribution engine.

    Consumes turn lifecycle callbacks and streamed tokens, and issues a
    switch to the host whenever the evidence in a turn's buffer names a
    new speaker and the cooldowns allow it.

    Per evaluation the pipeline runs strictly in sequence:
        1. Veto check (marks the turn and stops)
        2. Quote indexing and heuristic match finding
        3. Scoring (bias, roster bonus) and per-turn repeat suppression
        4. Name resolution and folder mapping
        5. Cooldown gate, switch execution, bookkeeping

    Callbacks are synchronous and non-reentrant. Unexpected faults during an
    evaluation are logged, reported as an 'error' diagnostic and swallowed;
    the turn carries on with no detection for that tick.

    Args:
        profile: Active detection profile
        switch_handler: Called as switch_handler(target, kind); raising marks
            the switch as failed
        diagnostic_handler: Called as diagnostic_handler(level, message)
        clock: Returns the current time in milliseconds
        compiler: PatternCompiler to use (shares its cache)
        max_turns: Turn registry capacity
    """

    def __init__(self, profile: Optional[DetectionProfile] = None, switch_handler: Optional[SwitchHandler] = None,
                 diagnostic_handler: Optional[DiagnosticHandler] = None, clock: Optional[Callable[[], float]] = None,
                 compiler: Optional[PatternCompiler] = None, max_turns: Optional[int] = None):
        self.logger = logging.getLogger(__name__)
        self.switch_handler = switch_handler
        self.diagnostic_handler = diagnostic_handler
        self.clock = clock or monotonic_ms
        self.compiler = compiler or PatternCompiler()

        self.state = EngineState(turns=StreamBufferManager(max_turns))
        self.gate = CooldownGate(self.state.decision)
        self.enabled = True
        self.focus_lock: Optional[str] = None
        self.last_decision: Optional[SwitchDecision] = None

        self.profile = DetectionProfile()
        self.compiled = CompiledHeuristicSet()
        self.resolver = NamePreprocessor()
        try:
            self.update_profile(profile or DetectionProfile())
        except PatternCompileError:
            self.profile = profile or DetectionProfile()

    # Configuration

    def update_profile(self, profile: DetectionProfile) -> CompiledHeuristicSet:
        """
        Activate a profile and recompile its heuristics.

        Raises:
            PatternCompileError: If the profile's patterns do not compile; the
                previous profile and heuristic set stay active
        """
        try:
            compiled = self.compiler.compile(
                profile.effective_patterns(),
                profile.attribution_verbs,
                profile.action_verbs,
                profile.veto_patterns,
            )
        except PatternCompileError as e:
            self._diagnostic('error', f"Pattern compile failed, keeping previous patterns: {e}")
            raise

        self.profile = profile
        self.compiled = compiled
        self.resolver = NamePreprocessor(profile.resolver_candidates(), profile.fuzzy_tolerance, profile.alias_map())
        for warning in compiled.warnings:
            self._diagnostic('warn', warning)
        self._debug(f"Profile applied ({compiled.signature})")
        return compiled

    # Lifecycle callbacks

    def handle_event(self, event: LifecycleEvent, message_id=None, text: Optional[str] = None):
        if event is LifecycleEvent.TURN_START:
            return self.on_turn_start(message_id)
        if event is LifecycleEvent.TOKEN:
            return self.on_token(message_id, text)
        if event is LifecycleEvent.TURN_END:
            return self.on_turn_end(message_id)
        if event is LifecycleEvent.MESSAGE_FINALIZED:
            return self.on_message_finalized(message_id)
        if event is LifecycleEvent.CONVERSATION_RESET:
            return self.on_conversation_reset()
        raise ValueError(f"Unknown lifecycle event: {event}")

    def on_turn_start(self, message_id=None) -> None:
        key = turn_key(message_id)
        self.state.turns.start_turn(key)
        self.gate.decay_roster()
        self._debug(f"Turn started: {key}")

    def on_token(self, message_id, text: Optional[str]) -> Optional[SwitchDecision]:
        """
        Feed one streamed token.

        Returns:
            The SwitchDecision issued by this token, if any
        """
        if not self.enabled or not text:
            return None

        key = turn_key(message_id)
        due = self.state.turns.append(key, text, self.profile.max_buffer_chars, self.profile.token_process_threshold)
        if not due:
            return None

        try:
            return self._evaluate(key)
        except Exception as e:
            self.logger.exception(f"Evaluation failed for turn {key}")
            self._diagnostic('error', f"Evaluation failed for turn {key}: {e}")
            return None

    def on_turn_end(self, message_id=None) -> None:
        self.state.turns.end_turn(turn_key(message_id))

    def on_message_finalized(self, message_id=None) -> None:
        self.state.turns.end_turn(turn_key(message_id))

    def on_conversation_reset(self) -> None:
        self.state.reset()
        self.last_decision = None
        self._diagnostic('info', "Conversation changed; detection state cleared")

    # Manual control

    def set_focus_lock(self, name: str) -> Optional[SwitchDecision]:
        """Switch to a character and suspend automatic detection until released."""
        name = str(name or '').strip()
        if not name:
            return None
        self.focus_lock = name
        self._diagnostic('info', f"Focus locked on {name}")
        return self._issue(name, FOCUS_LOCK_KIND, None, None, self.clock(), override=True)

    def clear_focus_lock(self) -> None:
        if self.focus_lock:
            self._diagnostic('info', f"Focus lock on {self.focus_lock} released")
        self.focus_lock = None

    def reset_to_default(self) -> Optional[SwitchDecision]:
        """Switch back to the profile's default costume, bypassing cooldowns."""
        target = self.profile.default_costume
        if not target:
            self._diagnostic('warn', "No default costume configured")
            return None
        now = self.clock()
        decision = self.gate.evaluate(target, now, self.profile, override=True)
        if not decision.accepted:
            self._debug(f"Reset to {target} suppressed: {decision.reason}")
            return None
        if not self._execute(target, MANUAL_RESET_KIND, now):
            return None
        self.gate.record_success(target, target, MANUAL_RESET_KIND, now, update_subject=False, roster_enabled=False)
        return self._remember(SwitchDecision(target, target, MANUAL_RESET_KIND, "default", None, now, override=True))

    # Pattern tester

    def analyze_text(self, text: str, profile: Optional[DetectionProfile] = None) -> DetectionReport:
        """
        Run every heuristic over a piece of text without touching engine state.

        The report lists all detections in buffer order, the overall winner,
        per-character focus points and a word-by-word timeline of winner
        changes as the text would have streamed in.

        Raises:
            PatternCompileError: If the given profile's patterns do not compile
        """
        profile = profile or self.profile
        compiled = self.compiled
        if profile is not self.profile:
            compiled = self.compiler.compile(
                profile.effective_patterns(), profile.attribution_verbs, profile.action_verbs, profile.veto_patterns
            )

        normalized = normalize_stream_text(text)
        report = DetectionReport(text=normalized, veto=find_veto(normalized, compiled))
        if not normalized:
            return report

        kinds = profile.enabled_kinds()
        subject = self.state.decision.pronoun_subject
        roster = dict(self.state.decision.active_roster) if profile.enable_scene_roster else None

        report.matches = sorted(
            find_matches(normalized, compiled, index_quotes(normalized), kinds, pronoun_subject=subject),
            key=lambda match: match.index
        )
        report.best = select_best(report.matches, profile.detection_bias, roster)
        report.focus_scores = character_focus_scores(report.matches)

        previous = None
        for word in _WORD_RE.finditer(normalized):
            prefix = normalized[:word.end()]
            prefix_matches = find_matches(prefix, compiled, index_quotes(prefix), kinds, pronoun_subject=subject)
            winner = select_best(prefix_matches, profile.detection_bias, roster)
            if winner is not None and (previous is None or winner.name.lower() != previous.name.lower()):
                report.winners.append(winner)
                previous = winner
        return report

    # Internals

    def _evaluate(self, key: str) -> Optional[SwitchDecision]:
        turn = self.state.turns.get(key)
        if turn is None or turn.vetoed:
            return None

        text = turn.buffer
        veto = find_veto(text, self.compiled)
        if veto is not None:
            turn.vetoed = True
            self._diagnostic('info', f"Veto phrase '{veto}' matched; detection suppressed for turn {key}")
            return None

        if self.focus_lock:
            return None

        decision_state = self.state.decision
        matches = find_matches(
            text,
            self.compiled,
            index_quotes(text),
            self.profile.enabled_kinds(),
            pronoun_subject=decision_state.pronoun_subject,
        )
        roster = decision_state.active_roster if self.profile.enable_scene_roster else None
        best = select_best(matches, self.profile.detection_bias, roster)
        if best is None:
            return None

        now = self.clock()
        if self.gate.is_repeat(turn, best.name, now, self.profile.repeat_suppress_ms):
            self._debug(f"Repeat of {best.name} suppressed in turn {key}")
            return None

        self._debug(f"Best match {best.name} ({best.kind.value} @ {best.index}, score {best.score:.1f})")
        return self._issue(best.name, best.kind.value, best.priority, key, now)

    def _issue(self, name: str, kind: str, priority: Optional[int], key: Optional[str], now: float,
               override: bool = False) -> Optional[SwitchDecision]:
        resolution = self.resolver.resolve(name, priority=priority)
        canonical = normalize_costume_name(resolution.canonical) or resolution.canonical
        if not canonical:
            return None
        target = self.profile.folder_for(canonical)

        decision = self.gate.evaluate(target, now, self.profile, override=override)
        if not decision.accepted:
            self._debug(f"Switch to {target} suppressed: {decision.reason}")
            return None

        if not self._execute(target, kind, now):
            return None

        self.gate.record_success(canonical, target, kind, now,
                                 roster_enabled=self.profile.enable_scene_roster,
                                 roster_ttl=self.profile.scene_roster_ttl)
        return self._remember(SwitchDecision(canonical, target, kind, resolution.method, key, now, override))

    def _execute(self, target: str, kind: str, now: float) -> bool:
        if self.switch_handler is None:
            return True
        try:
            self.switch_handler(target, kind)
        except Exception as e:
            failure = SwitchExecutionFailure(target, e)
            self.gate.record_failure(target, now)
            self.logger.error(str(failure))
            self._diagnostic('error', str(failure))
            return False
        return True

    def _remember(self, decision: SwitchDecision) -> SwitchDecision:
        self.last_decision = decision
        self._diagnostic('info', f"Switched to {decision.target} ({decision.kind})")
        return decision

    def _debug(self, message: str) -> None:
        if self.profile.debug:
            self._diagnostic('debug', message)

    def _diagnostic(self, level: str, message: str) -> None:
        self.logger.log(_LOG_LEVELS.get(level, logging.INFO), f"{settings.LOG_PREFIX} {message}")
        if self.diagnostic_handler is None:
            return
        try:
            self.diagnostic_handler(level, message)
        except Exception:
            self.logger.exception("Diagnostic handler failed")
