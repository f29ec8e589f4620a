"""
Replay configuration.

A `ReplayConfig` is fixed for a whole run; the trace variant it names decides
the step shape, the outcome policy and the dispatch table once, up front.

YAML form (every key optional except `variant`):

    variant: result            # flag | result
    tick_seconds: 86400
    denom: uawesome
    skip_pending_messages: true
    advance_clock_every_step: true
    admin: admin
    contract_seed: 1000000
    account_seed: {user_a: 100000000}
    assert_only_actions: []
    strict_actions: true
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from ..core.lockup import DENOM, LOCK_PERIOD, MINIMUM_DEPOSIT_AMOUNT
from ..trace.model import TraceVariant
from .errors import ConfigError


ADMIN = "admin"
INIT_CONTRACT_COINS = 1_000_000
INIT_USER_FUNDS = MINIMUM_DEPOSIT_AMOUNT * 10_000
USERS = ("user_a", "user_b", "user_c")


@dataclass(frozen=True)
class ReplayConfig:
    variant: TraceVariant
    tick_seconds: int = LOCK_PERIOD
    denom: str = DENOM
    # Skip steps whose expected result still has queued sub-calls.
    skip_pending_messages: bool = False
    # Advance the SUT clock by `tick_seconds` after every step.
    advance_clock_every_step: bool = False

    # Seeding used by the flag shape, whose init step carries no ledger.
    admin: str = ADMIN
    contract_seed: int = 0
    account_seed: Mapping[str, int] = field(default_factory=dict)

    # Extra action ids that only assert state (no SUT call).
    assert_only_actions: tuple[str, ...] = ()
    # Reject unknown action ids while decoding instead of at dispatch.
    strict_actions: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.variant, TraceVariant):
            raise ConfigError("variant must be a TraceVariant")
        if self.tick_seconds < 0:
            raise ConfigError("tick_seconds must be non-negative")
        if not self.denom:
            raise ConfigError("denom must be non-empty")
        if self.contract_seed < 0:
            raise ConfigError("contract_seed must be non-negative")
        for account, amount in self.account_seed.items():
            if amount < 0:
                raise ConfigError(f"account_seed[{account}] must be non-negative")


def flag_policy_config(**overrides: Any) -> ReplayConfig:
    """Explicit-args traces: seeded admin/users, time moves only on `advance_time`."""
    base = ReplayConfig(
        variant=TraceVariant.FLAG,
        contract_seed=INIT_CONTRACT_COINS,
        account_seed={user: INIT_USER_FUNDS for user in USERS},
    )
    return replace(base, **overrides)


def result_policy_config(**overrides: Any) -> ReplayConfig:
    """Picks traces: ledger comes from the init step, one tick after every step."""
    base = ReplayConfig(
        variant=TraceVariant.RESULT,
        skip_pending_messages=True,
        advance_clock_every_step=True,
    )
    return replace(base, **overrides)


_PRESETS = {
    TraceVariant.FLAG: flag_policy_config,
    TraceVariant.RESULT: result_policy_config,
}


def config_for_variant(variant: TraceVariant, **overrides: Any) -> ReplayConfig:
    return _PRESETS[variant](**overrides)


def _require_mapping(obj: Any, *, name: str) -> dict[str, Any]:
    if not isinstance(obj, dict):
        raise ConfigError(f"{name} must be an object")
    return obj


def _require_str(obj: Any, *, name: str) -> str:
    if not isinstance(obj, str) or not obj.strip():
        raise ConfigError(f"{name} must be a non-empty string")
    return obj.strip()


def _require_int(obj: Any, *, name: str) -> int:
    if not isinstance(obj, int) or isinstance(obj, bool) or obj < 0:
        raise ConfigError(f"{name} must be a non-negative integer")
    return obj


def _require_bool(obj: Any, *, name: str) -> bool:
    if not isinstance(obj, bool):
        raise ConfigError(f"{name} must be a boolean")
    return obj


def _require_str_list(obj: Any, *, name: str) -> tuple[str, ...]:
    if not isinstance(obj, list):
        raise ConfigError(f"{name} must be a list")
    return tuple(_require_str(x, name=f"{name}[{i}]") for i, x in enumerate(obj))


def _require_seed(obj: Any, *, name: str) -> dict[str, int]:
    data = _require_mapping(obj, name=name)
    return {_require_str(k, name=f"{name} key"): _require_int(v, name=f"{name}[{k}]") for k, v in data.items()}


_FIELDS = {
    "tick_seconds": _require_int,
    "denom": _require_str,
    "skip_pending_messages": _require_bool,
    "advance_clock_every_step": _require_bool,
    "admin": _require_str,
    "contract_seed": _require_int,
    "account_seed": _require_seed,
    "assert_only_actions": _require_str_list,
    "strict_actions": _require_bool,
}


def config_from_dict(data: Mapping[str, Any]) -> ReplayConfig:
    """Build a config from plain data, starting from the variant's preset."""
    root = _require_mapping(dict(data), name="config")
    raw_variant = _require_str(root.get("variant"), name="config.variant")
    try:
        variant = TraceVariant(raw_variant)
    except ValueError:
        raise ConfigError(f"unsupported config.variant: {raw_variant}") from None

    unknown = sorted(set(root) - set(_FIELDS) - {"variant"})
    if unknown:
        raise ConfigError(f"unknown config keys: {unknown}")

    overrides = {key: check(root[key], name=f"config.{key}") for key, check in _FIELDS.items() if key in root}
    return config_for_variant(variant, **overrides)


def load_replay_config(path: Path) -> ReplayConfig:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc
    try:
        obj = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"config {path} is not valid YAML: {exc}") from exc
    return config_from_dict(_require_mapping(obj, name="config"))
