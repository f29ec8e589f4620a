"""Exception types for trace replay.

Every error carries the index of the step where it occurred (``None`` for
decode-time and configuration errors), so a report pinpoints the first point
of divergence. Nothing here is retried.
"""

from __future__ import annotations

from typing import Any, Optional


class ReplayError(Exception):
    """Base class for every failure surfaced by the replay engine."""

    kind = "replay_error"

    def __init__(self, message: str, *, step_index: Optional[int] = None) -> None:
        self.message = message
        self.step_index = step_index
        super().__init__(message)

    def __str__(self) -> str:
        if self.step_index is None:
            return self.message
        return f"step {self.step_index}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "step_index": self.step_index, "message": self.message}


class MalformedTrace(ReplayError):
    """Raised when a trace document is missing fields or has the wrong shape."""

    kind = "malformed_trace"


class UnknownAction(ReplayError):
    """Raised when a step names an action outside the dispatch table."""

    kind = "unknown_action"

    def __init__(self, action: str, *, step_index: Optional[int] = None) -> None:
        self.action = action
        super().__init__(f"unknown action {action!r}", step_index=step_index)


class IncompleteStep(ReplayError):
    """Raised when a step lacks a value its action cannot be realized without."""

    kind = "incomplete_step"


class InitializationFailed(ReplayError):
    """Raised by an adapter when the SUT cannot be instantiated."""

    kind = "initialization_failed"


class QueryFailed(ReplayError):
    """Raised by an adapter when a queried record does not exist in the SUT."""

    kind = "query_failed"


class OutcomeMismatch(ReplayError):
    """Raised when the SUT call succeeded where the trace expected failure, or vice versa."""

    kind = "outcome_mismatch"

    def __init__(self, *, expected: bool, actual: bool, step_index: Optional[int], detail: str = "") -> None:
        self.expected = expected
        self.actual = actual
        want = "success" if expected else "failure"
        got = "success" if actual else "failure"
        message = f"expected {want}, SUT reported {got}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, step_index=step_index)

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out.update({"expected": self.expected, "actual": self.actual})
        return out


class StateMismatch(ReplayError):
    """Raised when an observable entity in the SUT differs from the model."""

    kind = "state_mismatch"

    def __init__(
        self,
        *,
        entity: str,
        expected: Any,
        actual: Any,
        step_index: Optional[int] = None,
        reason: str = "values differ",
    ) -> None:
        self.entity = entity
        self.expected = expected
        self.actual = actual
        self.reason = reason
        super().__init__(
            f"{entity}: {reason}: expected {expected!r}, SUT has {actual!r}",
            step_index=step_index,
        )

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out.update(
            {
                "entity": self.entity,
                "expected": _jsonable(self.expected),
                "actual": _jsonable(self.actual),
                "reason": self.reason,
            }
        )
        return out


class ConfigError(ValueError):
    """Raised when a replay configuration file is invalid."""


def _jsonable(value: Any) -> Any:
    # Amounts can exceed JSON's safe integer range; keep them exact as strings.
    if isinstance(value, int) and not isinstance(value, bool) and abs(value) > 2**53:
        return str(value)
    return value
