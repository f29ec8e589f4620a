"""
SUT adapter contract.

The replay engine talks to a system-under-test only through these four
operations; any implementation (in-process simulation, networked node, ...)
can be substituted without touching the engine:

    initialize(request) -> Handle                         raises InitializationFailed
    call(handle, operation, args, funds) -> CallResult    never raises for SUT errors
    query(handle, request) -> QueryResult                 raises QueryFailed
    advance_clock(handle, seconds) -> None

`src/integration/lockup_chain.py` is the reference implementation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Union

from ..state.balances import UINT128_MAX, Coin


Handle = str

UINT64_MAX = 2**64 - 1


@dataclass(frozen=True)
class InitializeRequest:
    """
    Instantiate the contract and seed the ledger.

    `genesis` is minted after instantiation; `contract_seed` is minted to the
    new contract's own address, which is only known once it exists.
    """

    sender: str
    funds: tuple[Coin, ...] = ()
    genesis: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    contract_seed: tuple[Coin, ...] = ()


@dataclass(frozen=True)
class Receipt:
    # Sub-calls the operation queued (e.g. bank sends); non-empty means
    # follow-up processing happened after the call itself.
    messages: tuple[Any, ...] = ()
    attributes: Mapping[str, str] = field(default_factory=dict)
    data: Any = None

    @property
    def queued_messages(self) -> int:
        return len(self.messages)

    def attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)


@dataclass(frozen=True)
class CallResult:
    ok: bool
    receipt: Optional[Receipt] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BalanceQuery:
    address: str
    denom: str


@dataclass(frozen=True)
class LockupQuery:
    id: int


@dataclass(frozen=True)
class LockupView:
    id: int
    owner: str
    amount: int
    release_timestamp: int


QueryRequest = Union[BalanceQuery, LockupQuery]
QueryResult = Union[int, LockupView]


class SutAdapter(Protocol):
    """Call surface of a system-under-test."""

    # Largest value the SUT's native balance / identifier types can hold.
    balance_max: int
    id_max: int

    def initialize(self, request: InitializeRequest) -> Handle:
        ...

    def call(
        self,
        handle: Handle,
        operation: str,
        args: Mapping[str, Any],
        funds: tuple[Coin, ...],
        *,
        sender: str,
    ) -> CallResult:
        ...

    def query(self, handle: Handle, request: QueryRequest) -> QueryResult:
        ...

    def advance_clock(self, handle: Handle, seconds: int) -> None:
        ...


DEFAULT_BALANCE_MAX = UINT128_MAX
DEFAULT_ID_MAX = UINT64_MAX
