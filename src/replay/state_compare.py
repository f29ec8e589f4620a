"""
Model-to-SUT state comparison.

After each step every observable entity in the model state is looked up in
the SUT through the adapter's query surface:

- the contract's own balance (flag shape),
- every (account, denom) pair in the model ledger,
- every lockup record, by id (owner and amount).

The check is one-directional: the model must be contained in the SUT. SUT
records the model does not mention are not looked for, because the query
surface has no way to enumerate them.
"""

from __future__ import annotations

import logging

from ..trace.model import LockupRecord, Step
from .adapter import BalanceQuery, Handle, LockupQuery, LockupView, SutAdapter
from .config import ReplayConfig
from .errors import QueryFailed, StateMismatch

logger = logging.getLogger(__name__)


def to_native(value: int, *, limit: int, entity: str, actual: object = None, step_index: int | None = None) -> int:
    """Lossless conversion of a model integer into an unsigned SUT value in [0, limit]."""
    if value < 0 or value > limit:
        raise StateMismatch(
            entity=entity,
            expected=value,
            actual=actual,
            step_index=step_index,
            reason="does not fit the SUT's native width",
        )
    return value


def _compare_balance(
    adapter: SutAdapter, handle: Handle, *, address: str, denom: str, expected: int, step: Step
) -> None:
    entity = f"balance[{address}][{denom}]"
    actual = adapter.query(handle, BalanceQuery(address=address, denom=denom))
    native = to_native(expected, limit=adapter.balance_max, entity=entity, actual=actual, step_index=step.index)
    logger.debug("step %s: %s model=%s sut=%s", step.index, entity, expected, actual)
    if actual != native:
        raise StateMismatch(entity=entity, expected=expected, actual=actual, step_index=step.index)


def _compare_lockup(adapter: SutAdapter, handle: Handle, *, lockup_id: int, record: LockupRecord, step: Step) -> None:
    entity = f"lockup[{lockup_id}]"
    native_id = to_native(lockup_id, limit=adapter.id_max, entity=f"{entity}.id", step_index=step.index)
    try:
        view = adapter.query(handle, LockupQuery(id=native_id))
    except QueryFailed:
        raise StateMismatch(
            entity=entity, expected=record, actual=None, step_index=step.index, reason="missing from SUT"
        ) from None
    if not isinstance(view, LockupView):
        raise StateMismatch(entity=entity, expected=record, actual=view, step_index=step.index, reason="not a lockup")

    if view.owner != record.owner:
        raise StateMismatch(
            entity=f"{entity}.owner", expected=record.owner, actual=view.owner, step_index=step.index
        )
    amount = to_native(
        record.amount, limit=adapter.balance_max, entity=f"{entity}.amount", actual=view.amount, step_index=step.index
    )
    if view.amount != amount:
        raise StateMismatch(
            entity=f"{entity}.amount", expected=record.amount, actual=view.amount, step_index=step.index
        )


def compare_state(step: Step, *, adapter: SutAdapter, handle: Handle, config: ReplayConfig) -> int:
    """
    Check the model state of `step` against the SUT.

    Returns the number of entities compared; raises `StateMismatch` on the
    first difference.
    """
    state = step.state
    checked = 0

    if state.contract_balance is not None:
        _compare_balance(
            adapter, handle, address=handle, denom=config.denom, expected=state.contract_balance, step=step
        )
        checked += 1

    for address in sorted(state.ledger):
        denoms = state.ledger[address]
        for denom in sorted(denoms):
            _compare_balance(adapter, handle, address=address, denom=denom, expected=denoms[denom], step=step)
            checked += 1

    for lockup_id in sorted(state.lockups):
        _compare_lockup(adapter, handle, lockup_id=lockup_id, record=state.lockups[lockup_id], step=step)
        checked += 1

    logger.info("step %s: %d entities match the model", step.index, checked)
    return checked
