"""Typed trace model.

All types are frozen dataclasses (immutable); a decoded `Trace` is a
read-only walk over its steps.

Conventions:
- amounts, identifiers and timestamps are Python ints (arbitrary precision);
  width checks happen where they meet the SUT.
- a pick that the model left unspecified is ``None``; a present zero or
  empty value is kept as ``0`` / ``()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Iterator, Mapping, Optional, Union


@unique
class TraceVariant(Enum):
    """Shape of the trace; selected once per run."""
    FLAG = "flag"        # explicit args + actionSuccessful flag
    RESULT = "result"    # nondeterministic picks + Result<Response, str>


@dataclass(frozen=True)
class LockupRecord:
    owner: str
    amount: int
    release_time: int


@dataclass(frozen=True)
class ModelState:
    """The model's state after a step."""

    free_id: int
    lockups: Mapping[int, LockupRecord] = field(default_factory=dict)
    # account -> denom -> balance
    ledger: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    time: int = 0
    # Only the flag shape tracks the contract's own balance as a scalar.
    contract_balance: Optional[int] = None

    def __post_init__(self) -> None:
        for lockup_id in self.lockups:
            if lockup_id >= self.free_id:
                raise ValueError(f"lockup id {lockup_id} not below free id {self.free_id}")


@dataclass(frozen=True)
class ExplicitArgs:
    """Fully determined arguments (`msgArgs` variant payload)."""

    kind: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def get(self, name: str) -> Any:
        return self.fields.get(name)


@dataclass(frozen=True)
class Picks:
    """Nondeterministic choices; each field is independently optional."""

    sender: Optional[str] = None
    denom: Optional[str] = None
    amount: Optional[int] = None
    message_ids: Optional[tuple[int, ...]] = None


StepArgs = Union[ExplicitArgs, Picks]


@dataclass(frozen=True)
class FlagOutcome:
    success: bool
    error_description: str = ""

    @property
    def expects_success(self) -> bool:
        return self.success

    @property
    def pending_messages(self) -> int:
        return 0


@dataclass(frozen=True)
class ResultOutcome:
    ok: bool
    messages: tuple[Any, ...] = ()
    error: Optional[str] = None

    @property
    def expects_success(self) -> bool:
        return self.ok

    @property
    def pending_messages(self) -> int:
        """Sub-calls the model still has queued after this step."""
        return len(self.messages) if self.ok else 0


StepOutcome = Union[FlagOutcome, ResultOutcome]


@dataclass(frozen=True)
class Step:
    index: int
    action: str
    args: StepArgs
    outcome: StepOutcome
    state: ModelState


@dataclass(frozen=True)
class Trace:
    variant: TraceVariant
    steps: tuple[Step, ...]

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)
