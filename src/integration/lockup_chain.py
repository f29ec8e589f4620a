"""
In-process chain simulation implementing the `SutAdapter` contract.

This is an imperative-shell wrapper around the functional core
(`src/core/lockup.py`):
- Moves attached funds from the sender to the contract before execution.
- Runs the contract kernel at the current block time.
- Executes the bank sends the contract emits, and reports them in the receipt.
- Reverts bank and contract state together if any part of a call fails.

Contract addresses are deterministic (`contract0`, `contract1`, ...), so a
trace can name the contract's account in its ledger before it exists.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from ..core.lockup import LockupCommand, LockupParams, LockupState, init_lockup_state, query_lockup
from ..core.lockup import step as lockup_step
from ..replay.adapter import (
    DEFAULT_BALANCE_MAX,
    DEFAULT_ID_MAX,
    BalanceQuery,
    CallResult,
    Handle,
    InitializeRequest,
    LockupQuery,
    LockupView,
    QueryRequest,
    QueryResult,
    Receipt,
)
from ..replay.errors import InitializationFailed, QueryFailed
from ..state.balances import BalanceTable, Coin


class LockupChain:
    """A single-node chain hosting time-locked deposit contracts."""

    balance_max = DEFAULT_BALANCE_MAX
    id_max = DEFAULT_ID_MAX

    def __init__(self, *, params: LockupParams = LockupParams(), genesis_time: int = 0) -> None:
        if genesis_time < 0:
            raise ValueError("genesis_time must be non-negative")
        self.params = params
        self.bank = BalanceTable()
        self.time = genesis_time
        self._contracts: Dict[Handle, LockupState] = {}

    def contract_state(self, handle: Handle) -> LockupState:
        return self._contracts[handle]

    # -- SutAdapter ----------------------------------------------------------

    def initialize(self, request: InitializeRequest) -> Handle:
        address = f"contract{len(self._contracts)}"
        snapshot = self.bank.get_all_balances()
        try:
            for coin in request.funds:
                self.bank.transfer(request.sender, address, coin.denom, coin.amount)
            for coin in request.contract_seed:
                self.bank.add(address, coin.denom, coin.amount)
            for account, denoms in request.genesis.items():
                for denom, amount in denoms.items():
                    self.bank.add(account, denom, amount)
        except ValueError as exc:
            self.bank.restore(snapshot)
            raise InitializationFailed(f"cannot instantiate {address}: {exc}") from exc
        self._contracts[address] = init_lockup_state()
        return address

    def call(
        self,
        handle: Handle,
        operation: str,
        args: Mapping[str, Any],
        funds: tuple[Coin, ...],
        *,
        sender: str,
    ) -> CallResult:
        state = self._contracts.get(handle)
        if state is None:
            return CallResult(ok=False, error=f"contract not found: {handle}")

        snapshot = self.bank.get_all_balances()
        try:
            for coin in funds:
                self.bank.transfer(sender, handle, coin.denom, coin.amount)
        except ValueError as exc:
            self.bank.restore(snapshot)
            return CallResult(ok=False, error=str(exc))

        cmd = LockupCommand(tag=operation, sender=sender, funds=tuple(funds), args=dict(args))  # type: ignore[arg-type]
        res = lockup_step(state, cmd, now=self.time, params=self.params)
        if not res.ok or res.state is None:
            self.bank.restore(snapshot)
            return CallResult(ok=False, error=res.error or "execution failed")

        try:
            for msg in res.messages:
                for coin in msg.amount:
                    self.bank.transfer(handle, msg.to_address, coin.denom, coin.amount)
        except ValueError as exc:
            self.bank.restore(snapshot)
            return CallResult(ok=False, error=f"sub-message failed: {exc}")

        self._contracts[handle] = res.state
        return CallResult(ok=True, receipt=Receipt(messages=res.messages, attributes=dict(res.attributes)))

    def query(self, handle: Handle, request: QueryRequest) -> QueryResult:
        if isinstance(request, BalanceQuery):
            return self.bank.get(request.address, request.denom)
        state = self._contracts.get(handle)
        if state is None:
            raise QueryFailed(f"contract not found: {handle}")
        if isinstance(request, LockupQuery):
            lockup = query_lockup(state, request.id)
            if lockup is None:
                raise QueryFailed(f"lockup {request.id} not found")
            return LockupView(
                id=lockup.id,
                owner=lockup.owner,
                amount=lockup.amount,
                release_timestamp=lockup.release_timestamp,
            )
        raise QueryFailed(f"unsupported query: {request!r}")

    def advance_clock(self, handle: Handle, seconds: int) -> None:
        if seconds < 0:
            raise ValueError("cannot move the clock backwards")
        self.time += seconds
