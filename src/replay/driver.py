"""Replay driver.

``ReplayDriver.run(trace)`` walks the trace once, strictly in order:

1. Steps whose expected result still has queued sub-calls are skipped
   entirely (when ``skip_pending_messages`` is on).
2. Otherwise the step is dispatched, the SUT is invoked, the outcome is
   compared, then the model state is compared.
3. ``advance_time`` steps move the SUT clock by the configured tick; with
   ``advance_clock_every_step`` the clock also moves after every step.

The first failure stops the run (``FAILED`` is terminal); errors are
returned in the ``ReplayReport`` rather than raised, so a host runner can
report them as data. ``replay_or_raise`` raises instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, unique
from typing import Any, Optional

from ..trace.model import Step, Trace
from .adapter import CallResult, Handle, InitializeRequest, SutAdapter
from .config import ReplayConfig
from .dispatch import CallRequest, ClockAdvance, Limits, NoOp, Request, dispatch
from .errors import IncompleteStep, MalformedTrace, ReplayError
from .outcome import outcome_policy
from .state_compare import compare_state

logger = logging.getLogger(__name__)


@unique
class ReplayStatus(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"


@dataclass
class ReplaySession:
    """Mutable state of one run: the SUT handle, once initialized."""

    handle: Optional[Handle] = None


@dataclass(frozen=True)
class ReplayReport:
    status: ReplayStatus
    steps_total: int
    steps_checked: int = 0
    steps_skipped: int = 0
    failure: Optional[ReplayError] = None

    @property
    def ok(self) -> bool:
        return self.status is ReplayStatus.FINISHED

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "status": self.status.value,
            "steps_total": self.steps_total,
            "steps_checked": self.steps_checked,
            "steps_skipped": self.steps_skipped,
            "failure": self.failure.to_dict() if self.failure else None,
        }


class ReplayDriver:
    """Replays one trace against one freshly created SUT adapter."""

    def __init__(self, adapter: SutAdapter, config: ReplayConfig) -> None:
        self.adapter = adapter
        self.config = config
        self.status = ReplayStatus.NOT_STARTED
        self._policy = outcome_policy(config.variant)
        self._limits = Limits(balance_max=adapter.balance_max, id_max=adapter.id_max)

    def run(self, trace: Trace) -> ReplayReport:
        if self.status is not ReplayStatus.NOT_STARTED:
            raise RuntimeError(f"replay driver already used (status={self.status.value})")
        self.status = ReplayStatus.RUNNING
        session = ReplaySession()
        checked = 0
        skipped = 0

        try:
            if trace.variant is not self.config.variant:
                raise MalformedTrace(
                    f"trace is a {trace.variant.value} trace, config expects {self.config.variant.value}"
                )
            for step in trace:
                if self.config.skip_pending_messages and step.outcome.pending_messages > 0:
                    logger.info(
                        "step %s: %s still has %d queued messages, skipping",
                        step.index,
                        step.action,
                        step.outcome.pending_messages,
                    )
                    skipped += 1
                    continue
                self._run_step(step, session)
                checked += 1
        except ReplayError as exc:
            self.status = ReplayStatus.FAILED
            logger.error("replay failed: %s", exc)
            return ReplayReport(
                status=self.status,
                steps_total=len(trace),
                steps_checked=checked,
                steps_skipped=skipped,
                failure=exc,
            )

        self.status = ReplayStatus.FINISHED
        logger.info("replay finished: %d steps checked, %d skipped", checked, skipped)
        return ReplayReport(
            status=self.status,
            steps_total=len(trace),
            steps_checked=checked,
            steps_skipped=skipped,
        )

    def _run_step(self, step: Step, session: ReplaySession) -> None:
        logger.info("step %s: %s", step.index, step.action)
        try:
            request = dispatch(step, self.config, limits=self._limits)
            self._execute(step, request, session)
            compare_state(step, adapter=self.adapter, handle=self._handle(step, session), config=self.config)
            if self.config.advance_clock_every_step:
                self._advance(step, session, self.config.tick_seconds)
        except ReplayError as exc:
            if exc.step_index is None:
                exc.step_index = step.index
            raise

    def _execute(self, step: Step, request: Request, session: ReplaySession) -> None:
        if isinstance(request, InitializeRequest):
            logger.info("step %s: initializing as %s, funds=%s", step.index, request.sender, _coins(request.funds))
            session.handle = self.adapter.initialize(request)
            logger.info("step %s: SUT initialized at %s", step.index, session.handle)
            # Init failures surface as InitializationFailed; a successful one must be expected.
            self._policy(step, CallResult(ok=True))
        elif isinstance(request, CallRequest):
            handle = self._handle(step, session)
            logger.info(
                "step %s: %s from %s args=%s funds=%s",
                step.index,
                request.operation,
                request.sender,
                dict(request.args),
                _coins(request.funds),
            )
            result = self.adapter.call(handle, request.operation, request.args, request.funds, sender=request.sender)
            self._policy(step, result)
        elif isinstance(request, ClockAdvance):
            self._advance(step, session, request.seconds)
        elif isinstance(request, NoOp):
            logger.debug("step %s: state assertion only", step.index)
        else:
            raise TypeError(f"unsupported request: {request!r}")

    def _advance(self, step: Step, session: ReplaySession, seconds: int) -> None:
        logger.info("step %s: clock is advancing for %d seconds", step.index, seconds)
        self.adapter.advance_clock(self._handle(step, session), seconds)

    @staticmethod
    def _handle(step: Step, session: ReplaySession) -> Handle:
        if session.handle is None:
            raise IncompleteStep(f"{step.action} runs before the SUT is initialized", step_index=step.index)
        return session.handle


def _coins(funds: tuple) -> str:
    return "[" + ", ".join(str(c) for c in funds) + "]"


def replay(trace: Trace, adapter: SutAdapter, config: ReplayConfig) -> ReplayReport:
    """Replay `trace` against `adapter`; failures are reported, not raised."""
    return ReplayDriver(adapter, config).run(trace)


def replay_or_raise(trace: Trace, adapter: SutAdapter, config: ReplayConfig) -> ReplayReport:
    """Like ``replay()`` but raises the first failure.

    Raises:
        ReplayError: the first mismatch or engine/input defect, with its step index.
    """
    report = replay(trace, adapter, config)
    if report.failure is not None:
        raise report.failure
    return report
