from typing import Optional


class CostumeSwitchError(Exception):
    """Base class for all errors raised by the attribution engine."""


class PatternCompileError(CostumeSwitchError):
    """
    A user-supplied pattern list could not be compiled.

    Recoverable: the engine keeps its previous working heuristic set and the
    message is surfaced to whoever owns the settings.

    Attributes:
        pattern_index: 1-based position of the offending entry, when known
        pattern: Raw text of the offending entry, when known
    """

    def __init__(self, message: str, pattern_index: Optional[int] = None, pattern: Optional[str] = None):
        super().__init__(message)
        self.pattern_index = pattern_index
        self.pattern = pattern


class PatternTooComplex(PatternCompileError):
    """A pattern list exceeds the entry-count or total-length ceiling."""


class EvaluationError(CostumeSwitchError):
    """Unexpected fault during a single evaluation tick; never crosses the turn boundary."""


class SwitchExecutionFailure(CostumeSwitchError):
    """The downstream switch command failed for a target."""

    def __init__(self, target: str, cause: Optional[BaseException] = None):
        message = f"Switch to '{target}' failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.target = target
        self.cause = cause
