"""
Shared fixtures for the costume switch test suite.

Provides a controllable millisecond clock, recording switch/diagnostic
handlers, a small detection profile and a ready-to-use engine.
"""

import logging
from typing import List, Tuple

import pytest

from costume_switch import CostumeSwitchEngine, DetectionProfile
from costume_switch.attribution import PatternCompiler

logging.basicConfig(level=logging.INFO)


class FakeClock:
    """Manually advanced clock returning milliseconds."""

    def __init__(self, start_ms: float = 100000.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


class RecordingSwitchHandler:
    """Records every switch; can be told to fail for chosen targets."""

    def __init__(self):
        self.calls: List[Tuple[str, str]] = []
        self.failing_targets = set()

    def __call__(self, target: str, kind: str) -> None:
        self.calls.append((target, kind))
        if target in self.failing_targets:
            raise RuntimeError(f"costume folder '{target}' not found")

    @property
    def targets(self) -> List[str]:
        return [target for target, _ in self.calls]


class RecordingDiagnostics:
    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def __call__(self, level: str, message: str) -> None:
        self.messages.append((level, message))

    def at_level(self, level: str) -> List[str]:
        return [message for lvl, message in self.messages if lvl == level]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def switch_handler():
    return RecordingSwitchHandler()


@pytest.fixture
def diagnostics():
    return RecordingDiagnostics()


@pytest.fixture
def profile():
    """Profile with a small cast and the default verb lists."""
    return DetectionProfile(
        patterns=["Kotori", "Hanabi", "Mika"],
        default_costume="Narrator",
    )


@pytest.fixture
def compiler():
    return PatternCompiler()


@pytest.fixture
def engine(profile, switch_handler, diagnostics, clock, compiler):
    return CostumeSwitchEngine(
        profile=profile,
        switch_handler=switch_handler,
        diagnostic_handler=diagnostics,
        clock=clock,
        compiler=compiler,
    )
