"""
Decode ITF trace documents into typed `Trace` values.

Two state shapes are supported (see `TraceVariant`):

flag shape (one record per state):
  contract_state: {free_id, lockups: #map id -> {owner, amount, release_time}, contract_balance}
  chain_state:    {time}
  step_info:      {actionTaken, msgArgs: NoArgs | DepositArgs | WithdrawArgs,
                   stepNumber, actionErrorDescription, actionSuccessful}

result shape:
  contract_state: {last_id, lockups: #map id -> {id, owner, amount, release_timestamp}}
  bank:           #map account -> #map denom -> amount
  result:         Ok({messages: [...]}) | Err(str)
  action_taken, time
  nondet_picks:   {sender, denom, amount, message_ids}, each an Option

Decoding is all-or-nothing: the first problem raises `MalformedTrace` and no
partial trace is returned.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Collection, Optional

from ..replay.errors import MalformedTrace
from .itf import (
    decode_bigint,
    decode_map,
    decode_option,
    decode_result,
    decode_seq,
    decode_states,
    decode_variant,
    require_bool,
    require_field,
    require_mapping,
    require_str,
)
from .model import (
    ExplicitArgs,
    FlagOutcome,
    LockupRecord,
    ModelState,
    Picks,
    ResultOutcome,
    Step,
    Trace,
    TraceVariant,
)


def _str(obj: Any, *, name: str) -> str:
    return require_str(obj, name=name)


def _ids(obj: Any, *, name: str) -> tuple[int, ...]:
    return decode_seq(obj, name=name, item=decode_bigint)


def _model_state(**kwargs: Any) -> ModelState:
    try:
        return ModelState(**kwargs)
    except ValueError as exc:
        raise MalformedTrace(str(exc)) from exc


# -- flag shape --------------------------------------------------------------


def _flag_lockup(obj: Any, *, name: str) -> LockupRecord:
    data = require_mapping(obj, name=name)
    return LockupRecord(
        owner=_str(require_field(data, "owner", name=name), name=f"{name}.owner"),
        amount=decode_bigint(require_field(data, "amount", name=name), name=f"{name}.amount"),
        release_time=decode_bigint(require_field(data, "release_time", name=name), name=f"{name}.release_time"),
    )


_FLAG_ARG_FIELDS: dict[str, tuple[tuple[str, Any], ...]] = {
    "NoArgs": (),
    "DepositArgs": (("sender", _str), ("amount", decode_bigint)),
    "WithdrawArgs": (("sender", _str), ("lockup_ids", _ids)),
}


def _flag_args(obj: Any, *, name: str) -> ExplicitArgs:
    kind, payload = decode_variant(obj, name=name)
    spec = _FLAG_ARG_FIELDS.get(kind)
    if spec is None:
        raise MalformedTrace(f"{name} has unknown variant {kind!r}")
    if not spec:
        return ExplicitArgs(kind=kind)
    data = require_mapping(payload, name=f"{name}.value")
    fields = {
        field_name: decode(require_field(data, field_name, name=f"{name}.value"), name=f"{name}.{field_name}")
        for field_name, decode in spec
    }
    return ExplicitArgs(kind=kind, fields=fields)


def _decode_flag_state(pos_index: int, raw: dict[str, Any]) -> Step:
    contract = require_mapping(require_field(raw, "contract_state", name="state"), name="contract_state")
    chain = require_mapping(require_field(raw, "chain_state", name="state"), name="chain_state")
    info = require_mapping(require_field(raw, "step_info", name="state"), name="step_info")

    lockups = decode_map(
        require_field(contract, "lockups", name="contract_state"),
        name="contract_state.lockups",
        key=decode_bigint,
        value=_flag_lockup,
    )
    state = _model_state(
        free_id=decode_bigint(require_field(contract, "free_id", name="contract_state"), name="contract_state.free_id"),
        lockups=lockups,
        time=decode_bigint(require_field(chain, "time", name="chain_state"), name="chain_state.time"),
        contract_balance=decode_bigint(
            require_field(contract, "contract_balance", name="contract_state"),
            name="contract_state.contract_balance",
        ),
    )
    outcome = FlagOutcome(
        success=require_bool(require_field(info, "actionSuccessful", name="step_info"), name="step_info.actionSuccessful"),
        error_description=_str(
            info.get("actionErrorDescription", ""), name="step_info.actionErrorDescription"
        ),
    )
    index = pos_index
    if "stepNumber" in info:
        index = decode_bigint(info["stepNumber"], name="step_info.stepNumber")
    return Step(
        index=index,
        action=_str(require_field(info, "actionTaken", name="step_info"), name="step_info.actionTaken"),
        args=_flag_args(require_field(info, "msgArgs", name="step_info"), name="step_info.msgArgs"),
        outcome=outcome,
        state=state,
    )


# -- result shape ------------------------------------------------------------


def _result_lockup(obj: Any, *, name: str) -> tuple[int, LockupRecord]:
    data = require_mapping(obj, name=name)
    record_id = decode_bigint(require_field(data, "id", name=name), name=f"{name}.id")
    return record_id, LockupRecord(
        owner=_str(require_field(data, "owner", name=name), name=f"{name}.owner"),
        amount=decode_bigint(require_field(data, "amount", name=name), name=f"{name}.amount"),
        release_time=decode_bigint(
            require_field(data, "release_timestamp", name=name), name=f"{name}.release_timestamp"
        ),
    )


def _denom_balances(obj: Any, *, name: str) -> dict[str, int]:
    return decode_map(obj, name=name, key=_str, value=decode_bigint)


def _response(obj: Any, *, name: str) -> tuple[Any, ...]:
    data = require_mapping(obj, name=name)
    return decode_seq(require_field(data, "messages", name=name), name=f"{name}.messages", item=lambda x, name: x)


def _picks(obj: Any, *, name: str) -> Picks:
    data = require_mapping(obj, name=name)
    return Picks(
        sender=decode_option(require_field(data, "sender", name=name), name=f"{name}.sender", value=_str),
        denom=decode_option(require_field(data, "denom", name=name), name=f"{name}.denom", value=_str),
        amount=decode_option(require_field(data, "amount", name=name), name=f"{name}.amount", value=decode_bigint),
        message_ids=decode_option(
            require_field(data, "message_ids", name=name), name=f"{name}.message_ids", value=_ids
        ),
    )


def _decode_result_state(index: int, raw: dict[str, Any]) -> Step:
    contract = require_mapping(require_field(raw, "contract_state", name="state"), name="contract_state")

    keyed = decode_map(
        require_field(contract, "lockups", name="contract_state"),
        name="contract_state.lockups",
        key=decode_bigint,
        value=_result_lockup,
    )
    lockups: dict[int, LockupRecord] = {}
    for key, (record_id, record) in keyed.items():
        if key != record_id:
            raise MalformedTrace(f"contract_state.lockups[{key}] carries id {record_id}")
        lockups[key] = record

    state = _model_state(
        free_id=decode_bigint(require_field(contract, "last_id", name="contract_state"), name="contract_state.last_id"),
        lockups=lockups,
        ledger=decode_map(require_field(raw, "bank", name="state"), name="bank", key=_str, value=_denom_balances),
        time=decode_bigint(require_field(raw, "time", name="state"), name="time"),
    )
    ok, messages, error = decode_result(require_field(raw, "result", name="state"), name="result", ok=_response)
    outcome = ResultOutcome(ok=ok, messages=messages or (), error=error)
    return Step(
        index=index,
        action=_str(require_field(raw, "action_taken", name="state"), name="action_taken"),
        args=_picks(require_field(raw, "nondet_picks", name="state"), name="nondet_picks"),
        outcome=outcome,
        state=state,
    )


_DECODERS = {
    TraceVariant.FLAG: _decode_flag_state,
    TraceVariant.RESULT: _decode_result_state,
}


def decode_trace(
    doc: Any,
    variant: TraceVariant,
    *,
    known_actions: Optional[Collection[str]] = None,
) -> Trace:
    """
    Decode a parsed ITF document into a `Trace`.

    If `known_actions` is given, a step naming any other action is rejected
    at decode time.
    """
    decoder = _DECODERS[variant]
    steps: list[Step] = []
    for pos, (index, raw) in enumerate(decode_states(doc)):
        try:
            step = decoder(index, raw)
        except MalformedTrace as exc:
            raise MalformedTrace(f"trace.states[{pos}]: {exc.message}") from exc
        if known_actions is not None and step.action not in known_actions:
            raise MalformedTrace(f"trace.states[{pos}]: unknown action {step.action!r}")
        steps.append(step)
    return Trace(variant=variant, steps=tuple(steps))


def parse_trace(
    text: str,
    variant: TraceVariant,
    *,
    known_actions: Optional[Collection[str]] = None,
) -> Trace:
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedTrace(f"trace is not valid JSON: {exc}") from exc
    return decode_trace(doc, variant, known_actions=known_actions)


def load_trace_file(
    path: Path,
    variant: TraceVariant,
    *,
    known_actions: Optional[Collection[str]] = None,
) -> Trace:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise MalformedTrace(f"cannot read trace {path}: {exc}") from exc
    return parse_trace(text, variant, known_actions=known_actions)
