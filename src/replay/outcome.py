"""Outcome comparison policies.

Only the success/failure discriminant is a conformance obligation; the
model's error text and the SUT's error text are never compared.
"""

from __future__ import annotations

import logging
from typing import Callable

from ..trace.model import FlagOutcome, ResultOutcome, Step, TraceVariant
from .adapter import CallResult
from .errors import MalformedTrace, OutcomeMismatch

logger = logging.getLogger(__name__)

OutcomePolicy = Callable[[Step, CallResult], None]


def _mismatch(step: Step, expected: bool, result: CallResult, detail: str) -> OutcomeMismatch:
    if not detail and not result.ok:
        detail = f"SUT error: {result.error}"
    return OutcomeMismatch(expected=expected, actual=result.ok, step_index=step.index, detail=detail)


def _wrong_shape(step: Step, kind: type) -> MalformedTrace:
    return MalformedTrace(
        f"expected a {kind.__name__}, trace has {type(step.outcome).__name__}", step_index=step.index
    )


def compare_flag_outcome(step: Step, result: CallResult) -> None:
    """Trace carries an explicit success flag: ``result.ok`` must equal it."""
    outcome = step.outcome
    if not isinstance(outcome, FlagOutcome):
        raise _wrong_shape(step, FlagOutcome)
    if result.ok != outcome.success:
        detail = "" if outcome.success else f"model error: {outcome.error_description}"
        raise _mismatch(step, outcome.success, result, detail)
    logger.info("step %s: %s %s as expected", step.index, step.action, "succeeded" if result.ok else "failed")


def compare_result_outcome(step: Step, result: CallResult) -> None:
    """Trace carries Ok(...)|Err(str): the SUT must succeed exactly on Ok."""
    outcome = step.outcome
    if not isinstance(outcome, ResultOutcome):
        raise _wrong_shape(step, ResultOutcome)
    if result.ok != outcome.ok:
        detail = "" if outcome.ok else f"model error: {outcome.error}"
        raise _mismatch(step, outcome.ok, result, detail)
    logger.info("step %s: %s %s as expected", step.index, step.action, "succeeded" if result.ok else "failed")


_POLICIES: dict[TraceVariant, OutcomePolicy] = {
    TraceVariant.FLAG: compare_flag_outcome,
    TraceVariant.RESULT: compare_result_outcome,
}


def outcome_policy(variant: TraceVariant) -> OutcomePolicy:
    return _POLICIES[variant]
