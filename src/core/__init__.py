"""
Core contract kernels
"""

from .lockup import (
    DENOM,
    LOCK_PERIOD,
    MINIMUM_DEPOSIT_AMOUNT,
    BankSend,
    Lockup,
    LockupCommand,
    LockupParams,
    LockupState,
    LockupStepResult,
    init_lockup_state,
    query_lockup,
)
from .lockup import step as lockup_step

__all__ = [
    "DENOM",
    "LOCK_PERIOD",
    "MINIMUM_DEPOSIT_AMOUNT",
    "BankSend",
    "Lockup",
    "LockupCommand",
    "LockupParams",
    "LockupState",
    "LockupStepResult",
    "init_lockup_state",
    "query_lockup",
    "lockup_step",
]
