"""`replay`: replay model-checker traces against a system-under-test.

Each step of a decoded `Trace` is dispatched to the SUT through the
`SutAdapter` contract; after every step the call's outcome and the SUT's
observable state are compared with the model's expectations.

Public API:
- `replay(trace, adapter, config) -> ReplayReport`
- `replay_or_raise(trace, adapter, config) -> ReplayReport` (raises on failure)
- `dispatch(step, config) -> Request`
- `compare_state(step, adapter=..., handle=..., config=...)`
"""

# errors and config first: src.trace imports them while it initializes.
from .errors import (
    ConfigError,
    IncompleteStep,
    InitializationFailed,
    MalformedTrace,
    OutcomeMismatch,
    QueryFailed,
    ReplayError,
    StateMismatch,
    UnknownAction,
)
from .config import (
    ReplayConfig,
    config_for_variant,
    config_from_dict,
    flag_policy_config,
    load_replay_config,
    result_policy_config,
)
from .adapter import (
    BalanceQuery,
    CallResult,
    Handle,
    InitializeRequest,
    LockupQuery,
    LockupView,
    Receipt,
    SutAdapter,
)
from .dispatch import ActionKind, CallRequest, ClockAdvance, NoOp, dispatch, known_actions
from .driver import ReplayDriver, ReplayReport, ReplaySession, ReplayStatus, replay, replay_or_raise
from .outcome import compare_flag_outcome, compare_result_outcome, outcome_policy
from .state_compare import compare_state

__all__ = [
    "replay",
    "replay_or_raise",
    "dispatch",
    "known_actions",
    "compare_state",
    "compare_flag_outcome",
    "compare_result_outcome",
    "outcome_policy",
    "ActionKind",
    "CallRequest",
    "ClockAdvance",
    "NoOp",
    "ReplayConfig",
    "config_for_variant",
    "config_from_dict",
    "flag_policy_config",
    "load_replay_config",
    "result_policy_config",
    "BalanceQuery",
    "CallResult",
    "Handle",
    "InitializeRequest",
    "LockupQuery",
    "LockupView",
    "Receipt",
    "SutAdapter",
    "ReplayDriver",
    "ReplayReport",
    "ReplaySession",
    "ReplayStatus",
    "ConfigError",
    "IncompleteStep",
    "InitializationFailed",
    "MalformedTrace",
    "OutcomeMismatch",
    "QueryFailed",
    "ReplayError",
    "StateMismatch",
    "UnknownAction",
]
