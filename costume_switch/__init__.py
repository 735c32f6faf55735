"""
Streaming speaker attribution for chat front-ends.

Watches text as a chat backend generates it and decides which character is
speaking or acting, so the visible costume can follow the conversation.
"""

from .engine import CostumeSwitchEngine, DetectionReport, SwitchDecision
from .events import HostEventAdapter, LifecycleEvent
from .profiles import DetectionProfile, ProfileStore
from .errors import (
    CostumeSwitchError,
    PatternCompileError,
    PatternTooComplex,
    EvaluationError,
    SwitchExecutionFailure,
)

__all__ = [
    'CostumeSwitchEngine',
    'DetectionReport',
    'SwitchDecision',
    'HostEventAdapter',
    'LifecycleEvent',
    'DetectionProfile',
    'ProfileStore',
    'CostumeSwitchError',
    'PatternCompileError',
    'PatternTooComplex',
    'EvaluationError',
    'SwitchExecutionFailure',
]
