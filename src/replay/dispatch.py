"""Dispatch-table action resolution.

``dispatch(step, config)`` is the single entry point. It:

1. Looks the step's action id up in a closed, per-variant table
   (unknown ids raise ``UnknownAction``; nothing is silently skipped).
2. Resolves the step's arguments into exactly one request:
   ``InitializeRequest``, ``CallRequest``, ``ClockAdvance`` or ``NoOp``.

Argument sources:
- ``ExplicitArgs`` are used verbatim; the attached coin uses the configured denom.
- ``Picks`` are optional field by field. A missing amount or denom means no
  funds are attached at all (never a zero coin). A missing sender, or a
  missing id list for a withdrawal, raises ``IncompleteStep`` before any SUT
  call is made.
- An amount or id beyond the SUT's native width cannot be sent either and
  also raises ``IncompleteStep``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Callable, Mapping, Optional, Union

from ..state.balances import Coin
from ..trace.model import ExplicitArgs, Picks, Step, TraceVariant
from .adapter import DEFAULT_BALANCE_MAX, DEFAULT_ID_MAX, InitializeRequest
from .config import ReplayConfig
from .errors import ConfigError, IncompleteStep, MalformedTrace, UnknownAction


@unique
class ActionKind(Enum):
    INITIALIZE = "initialize"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    ADVANCE_TIME = "advance_time"
    ASSERT_ONLY = "assert_only"


_ACTIONS: dict[TraceVariant, dict[str, ActionKind]] = {
    TraceVariant.FLAG: {
        "init": ActionKind.INITIALIZE,
        "advance_time": ActionKind.ADVANCE_TIME,
        "deposit": ActionKind.DEPOSIT,
        "withdraw": ActionKind.WITHDRAW,
    },
    TraceVariant.RESULT: {
        "q::init": ActionKind.INITIALIZE,
        "deposit_action": ActionKind.DEPOSIT,
        "withdraw_action": ActionKind.WITHDRAW,
    },
}


@dataclass(frozen=True)
class CallRequest:
    operation: str
    sender: str
    args: Mapping[str, Any] = field(default_factory=dict)
    funds: tuple[Coin, ...] = ()


@dataclass(frozen=True)
class ClockAdvance:
    seconds: int


@dataclass(frozen=True)
class NoOp:
    pass


Request = Union[InitializeRequest, CallRequest, ClockAdvance, NoOp]


@dataclass(frozen=True)
class Limits:
    """Native widths the SUT can represent; values beyond them cannot be sent."""

    balance_max: int = DEFAULT_BALANCE_MAX
    id_max: int = DEFAULT_ID_MAX


def action_table(config: ReplayConfig) -> dict[str, ActionKind]:
    table = dict(_ACTIONS[config.variant])
    for action in config.assert_only_actions:
        if action in table:
            raise ConfigError(f"assert-only action {action!r} shadows a dispatched action")
        table[action] = ActionKind.ASSERT_ONLY
    return table


def known_actions(config: ReplayConfig) -> frozenset[str]:
    return frozenset(action_table(config))


def classify(step: Step, config: ReplayConfig) -> ActionKind:
    kind = action_table(config).get(step.action)
    if kind is None:
        raise UnknownAction(step.action, step_index=step.index)
    return kind


def _native(value: int, *, limit: int, name: str, step: Step) -> int:
    if value < 0 or value > limit:
        raise IncompleteStep(f"{name}={value} is outside the SUT's native range", step_index=step.index)
    return value


def _coin(amount: int, denom: str, *, step: Step, limits: Limits) -> Coin:
    return Coin(amount=_native(amount, limit=limits.balance_max, name="amount", step=step), denom=denom)


def _ids(ids: Any, *, step: Step, limits: Limits) -> tuple[int, ...]:
    return tuple(_native(i, limit=limits.id_max, name="lockup id", step=step) for i in ids)


# -- explicit arguments ------------------------------------------------------


def _require_explicit(args: ExplicitArgs, kind: str, names: tuple[str, ...], *, step: Step) -> list[Any]:
    if args.kind != kind:
        raise IncompleteStep(f"{step.action} needs {kind}, trace has {args.kind}", step_index=step.index)
    values = [args.get(name) for name in names]
    for name, value in zip(names, values):
        if value is None:
            raise IncompleteStep(f"{step.action} is missing {name}", step_index=step.index)
    return values


def _explicit_initialize(step: Step, args: ExplicitArgs, config: ReplayConfig, limits: Limits) -> Request:
    contract_seed: tuple[Coin, ...] = ()
    if config.contract_seed > 0:
        contract_seed = (_coin(config.contract_seed, config.denom, step=step, limits=limits),)
    genesis = {account: {config.denom: amount} for account, amount in config.account_seed.items() if amount > 0}
    return InitializeRequest(sender=config.admin, genesis=genesis, contract_seed=contract_seed)


def _explicit_deposit(step: Step, args: ExplicitArgs, config: ReplayConfig, limits: Limits) -> Request:
    sender, amount = _require_explicit(args, "DepositArgs", ("sender", "amount"), step=step)
    return CallRequest(
        operation="deposit",
        sender=sender,
        funds=(_coin(amount, config.denom, step=step, limits=limits),),
    )


def _explicit_withdraw(step: Step, args: ExplicitArgs, config: ReplayConfig, limits: Limits) -> Request:
    sender, lockup_ids = _require_explicit(args, "WithdrawArgs", ("sender", "lockup_ids"), step=step)
    return CallRequest(
        operation="withdraw",
        sender=sender,
        args={"ids": _ids(lockup_ids, step=step, limits=limits)},
    )


# -- picks -------------------------------------------------------------------


def _picked_sender(step: Step, picks: Picks) -> str:
    if picks.sender is None:
        raise IncompleteStep(f"{step.action} has no sender pick", step_index=step.index)
    return picks.sender


def funds_from_picks(picks: Picks, *, step: Step, limits: Limits = Limits()) -> tuple[Coin, ...]:
    """No amount, no denom, or a zero amount all mean no coin is attached."""
    if picks.amount is None or picks.denom is None or picks.amount == 0:
        return ()
    return (_coin(picks.amount, picks.denom, step=step, limits=limits),)


def _picked_initialize(step: Step, picks: Picks, config: ReplayConfig, limits: Limits) -> Request:
    return InitializeRequest(
        sender=_picked_sender(step, picks),
        funds=funds_from_picks(picks, step=step, limits=limits),
        genesis=step.state.ledger,
    )


def _picked_deposit(step: Step, picks: Picks, config: ReplayConfig, limits: Limits) -> Request:
    return CallRequest(
        operation="deposit",
        sender=_picked_sender(step, picks),
        funds=funds_from_picks(picks, step=step, limits=limits),
    )


def _picked_withdraw(step: Step, picks: Picks, config: ReplayConfig, limits: Limits) -> Request:
    sender = _picked_sender(step, picks)
    if picks.message_ids is None:
        raise IncompleteStep(f"{step.action} has no message_ids pick", step_index=step.index)
    return CallRequest(
        operation="withdraw",
        sender=sender,
        args={"ids": _ids(picks.message_ids, step=step, limits=limits)},
        funds=funds_from_picks(picks, step=step, limits=limits),
    )


ResolveFn = Callable[[Step, Any, ReplayConfig, Limits], Request]

_EXPLICIT: dict[ActionKind, ResolveFn] = {
    ActionKind.INITIALIZE: _explicit_initialize,
    ActionKind.DEPOSIT: _explicit_deposit,
    ActionKind.WITHDRAW: _explicit_withdraw,
}

_PICKED: dict[ActionKind, ResolveFn] = {
    ActionKind.INITIALIZE: _picked_initialize,
    ActionKind.DEPOSIT: _picked_deposit,
    ActionKind.WITHDRAW: _picked_withdraw,
}


def dispatch(step: Step, config: ReplayConfig, *, limits: Optional[Limits] = None) -> Request:
    """Resolve one step into the single request the driver should execute."""
    kind = classify(step, config)
    if kind is ActionKind.ADVANCE_TIME:
        return ClockAdvance(seconds=config.tick_seconds)
    if kind is ActionKind.ASSERT_ONLY:
        return NoOp()

    limits = limits or Limits()
    if isinstance(step.args, ExplicitArgs):
        return _EXPLICIT[kind](step, step.args, config, limits)
    if isinstance(step.args, Picks):
        return _PICKED[kind](step, step.args, config, limits)
    raise MalformedTrace(f"unsupported argument shape {type(step.args).__name__}", step_index=step.index)
