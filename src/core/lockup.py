"""
Time-locked deposit contract kernel.

This is a pure state machine intended for the functional core:
- Deposits lock a single coin of the contract denomination until
  `now + lock_period`.
- Withdrawals release a set of matured lockups owned by the sender and emit
  one bank send of the total (returned as a message, not executed here).
- Outputs are a `LockupStepResult` with the next state or an error.

Bank movements of attached funds are the shell's job (`src/integration/lockup_chain.py`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional

from ..state.balances import UINT128_MAX, Coin


DENOM = "uawesome"
MINIMUM_DEPOSIT_AMOUNT = 10_000
LOCK_PERIOD = 60 * 60 * 24

UINT64_MAX = 2**64 - 1


@dataclass(frozen=True)
class LockupParams:
    denom: str = DENOM
    minimum_deposit: int = MINIMUM_DEPOSIT_AMOUNT
    lock_period: int = LOCK_PERIOD

    def __post_init__(self) -> None:
        if not self.denom:
            raise ValueError("denom must be non-empty")
        if self.minimum_deposit < 0:
            raise ValueError("minimum_deposit must be non-negative")
        if self.lock_period < 0:
            raise ValueError("lock_period must be non-negative")


@dataclass(frozen=True)
class Lockup:
    id: int
    owner: str
    amount: int
    release_timestamp: int


@dataclass(frozen=True)
class LockupState:
    """Contract storage: next lockup id and the live lockups by id."""

    last_id: int = 1
    lockups: Mapping[int, Lockup] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.last_id < 1:
            raise ValueError("last_id must be >= 1")
        for lockup_id in self.lockups:
            if lockup_id >= self.last_id:
                raise ValueError(f"lockup id {lockup_id} not below last_id {self.last_id}")


@dataclass(frozen=True)
class BankSend:
    """Bank transfer emitted by the contract, executed by the chain afterwards."""

    to_address: str
    amount: tuple[Coin, ...]


@dataclass(frozen=True)
class LockupCommand:
    tag: Literal["deposit", "withdraw"]
    sender: str
    funds: tuple[Coin, ...] = ()
    args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LockupStepResult:
    ok: bool
    state: Optional[LockupState] = None
    messages: tuple[BankSend, ...] = ()
    attributes: Mapping[str, str] = field(default_factory=dict)
    error: Optional[str] = None


def init_lockup_state() -> LockupState:
    return LockupState()


def step(state: LockupState, cmd: LockupCommand, *, now: int, params: LockupParams = LockupParams()) -> LockupStepResult:
    """Execute a contract command at block time `now`."""
    try:
        if cmd.tag == "deposit":
            return _deposit(state, cmd, now=now, params=params)
        if cmd.tag == "withdraw":
            return _withdraw(state, cmd, now=now, params=params)
        return LockupStepResult(ok=False, error=f"unknown action: {cmd.tag}")
    except Exception as exc:
        return LockupStepResult(ok=False, error=str(exc))


def query_lockup(state: LockupState, lockup_id: int) -> Optional[Lockup]:
    return state.lockups.get(lockup_id)


def _must_pay(funds: tuple[Coin, ...], denom: str) -> int | str:
    # Exactly one non-zero coin of the contract denomination.
    if not funds:
        return "no funds sent"
    if len(funds) != 1:
        return "sent more than one denomination"
    coin = funds[0]
    if coin.denom != denom:
        return f"must send reserve token '{denom}'"
    if coin.amount <= 0:
        return "no funds sent"
    return coin.amount


def _deposit(state: LockupState, cmd: LockupCommand, *, now: int, params: LockupParams) -> LockupStepResult:
    paid = _must_pay(cmd.funds, params.denom)
    if isinstance(paid, str):
        return LockupStepResult(ok=False, error=paid)
    if paid < params.minimum_deposit:
        return LockupStepResult(ok=False, error="Unauthorized")

    lockup_id = state.last_id
    if lockup_id + 1 > UINT64_MAX:
        return LockupStepResult(ok=False, error="overflow in last_id")
    lockup = Lockup(
        id=lockup_id,
        owner=cmd.sender,
        amount=paid,
        release_timestamp=now + params.lock_period,
    )
    lockups = dict(state.lockups)
    lockups[lockup_id] = lockup
    return LockupStepResult(
        ok=True,
        state=LockupState(last_id=lockup_id + 1, lockups=lockups),
        attributes={
            "action": "deposit",
            "id": str(lockup.id),
            "owner": lockup.owner,
            "amount": str(lockup.amount),
            "release_timestamp": str(lockup.release_timestamp),
        },
    )


def _withdraw(state: LockupState, cmd: LockupCommand, *, now: int, params: LockupParams) -> LockupStepResult:
    ids = cmd.args.get("ids")
    if not isinstance(ids, (list, tuple)) or not ids:
        return LockupStepResult(ok=False, error="invalid param ids")
    if len(set(ids)) != len(ids):
        return LockupStepResult(ok=False, error="duplicate lockup id")

    lockups = dict(state.lockups)
    total = 0
    for lockup_id in ids:
        lockup = lockups.get(lockup_id)
        if lockup is None:
            return LockupStepResult(ok=False, error=f"lockup {lockup_id} not found")
        if lockup.owner != cmd.sender or now < lockup.release_timestamp:
            return LockupStepResult(ok=False, error="Unauthorized")
        total += lockup.amount
        del lockups[lockup_id]

    if total > UINT128_MAX:
        return LockupStepResult(ok=False, error="overflow in withdraw total")

    msg = BankSend(to_address=cmd.sender, amount=(Coin(amount=total, denom=params.denom),))
    return LockupStepResult(
        ok=True,
        state=LockupState(last_id=state.last_id, lockups=lockups),
        messages=(msg,),
        attributes={"action": "withdraw", "ids": ",".join(str(i) for i in ids), "total_amount": str(total)},
    )
