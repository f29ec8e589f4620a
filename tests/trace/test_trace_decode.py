from __future__ import annotations

import json

import pytest

from src.replay.errors import MalformedTrace
from src.trace import (
    ExplicitArgs,
    FlagOutcome,
    LockupRecord,
    Picks,
    ResultOutcome,
    TraceVariant,
    decode_trace,
    load_trace_file,
    parse_trace,
)
from tests.itf_builders import (
    bigint,
    deposit_args,
    err,
    flag_state,
    ok,
    result_state,
    trace_doc,
    withdraw_args,
)


def _result_trace() -> dict:
    return trace_doc(
        [
            result_state(action="q::init", sender="admin", bank={"A": {"D": 100}}),
            result_state(
                action="deposit_action",
                sender="A",
                denom="D",
                amount=40,
                bank={"A": {"D": 60}, "contract0": {"D": 40}},
                lockups=[(1, "A", 40, 86400)],
                last_id=2,
                time=86400,
            ),
            result_state(
                action="withdraw_action",
                sender="A",
                message_ids=[1],
                bank={"A": {"D": 60}, "contract0": {"D": 40}},
                lockups=[(1, "A", 40, 86400)],
                last_id=2,
                result=err("lockup not released"),
            ),
        ]
    )


def test_decode_result_shape() -> None:
    trace = decode_trace(_result_trace(), TraceVariant.RESULT)
    assert trace.variant is TraceVariant.RESULT
    assert [s.index for s in trace] == [0, 1, 2]

    init, deposit, withdraw = trace.steps
    assert init.args == Picks(sender="admin")
    assert init.state.ledger == {"A": {"D": 100}}
    assert init.outcome == ResultOutcome(ok=True)

    assert deposit.args == Picks(sender="A", denom="D", amount=40)
    assert deposit.state.free_id == 2
    assert deposit.state.lockups == {1: LockupRecord(owner="A", amount=40, release_time=86400)}
    assert deposit.state.time == 86400
    assert deposit.state.contract_balance is None

    assert withdraw.args.message_ids == (1,)
    assert withdraw.outcome.expects_success is False
    assert withdraw.outcome.error == "lockup not released"


def test_result_shape_pending_messages() -> None:
    doc = trace_doc([result_state(action="withdraw_action", bank={}, result=ok([{"bank_send": 1}]))])
    step = decode_trace(doc, TraceVariant.RESULT).steps[0]
    assert step.outcome.pending_messages == 1


def test_decode_flag_shape() -> None:
    doc = trace_doc(
        [
            flag_state(action="init", step=0, contract_balance=1_000_000),
            flag_state(
                action="deposit",
                step=1,
                args=deposit_args("user_a", 10_000),
                free_id=2,
                lockups=[(1, "user_a", 10_000, 86400)],
                contract_balance=1_010_000,
            ),
            flag_state(
                action="withdraw",
                step=2,
                args=withdraw_args("user_b", [1]),
                success=False,
                error="not the owner",
                free_id=2,
                lockups=[(1, "user_a", 10_000, 86400)],
                contract_balance=1_010_000,
            ),
        ]
    )
    trace = decode_trace(doc, TraceVariant.FLAG)
    init, deposit, withdraw = trace.steps

    assert init.args == ExplicitArgs(kind="NoArgs")
    assert init.state.contract_balance == 1_000_000
    assert deposit.args.fields == {"sender": "user_a", "amount": 10_000}
    assert withdraw.args.get("lockup_ids") == (1,)
    assert withdraw.outcome == FlagOutcome(success=False, error_description="not the owner")
    assert withdraw.outcome.pending_messages == 0


def test_flag_shape_uses_step_number_as_index() -> None:
    doc = trace_doc([flag_state(action="init", step=7)])
    assert decode_trace(doc, TraceVariant.FLAG).steps[0].index == 7


def test_missing_field_is_malformed() -> None:
    doc = _result_trace()
    del doc["states"][1]["nondet_picks"]["amount"]
    with pytest.raises(MalformedTrace, match=r"states\[1\].*amount"):
        decode_trace(doc, TraceVariant.RESULT)


def test_bad_amount_is_malformed() -> None:
    doc = _result_trace()
    doc["states"][0]["bank"]["#map"][0][1]["#map"][0][1] = {"#bigint": "1e3"}
    with pytest.raises(MalformedTrace):
        decode_trace(doc, TraceVariant.RESULT)


def test_wrong_shape_for_variant_is_malformed() -> None:
    with pytest.raises(MalformedTrace):
        decode_trace(_result_trace(), TraceVariant.FLAG)


def test_unknown_msg_args_variant_is_malformed() -> None:
    doc = trace_doc([flag_state(action="init", step=0, args={"tag": "StakeArgs", "value": {}})])
    with pytest.raises(MalformedTrace, match="StakeArgs"):
        decode_trace(doc, TraceVariant.FLAG)


def test_known_actions_are_enforced_when_given() -> None:
    doc = _result_trace()
    doc["states"][2]["action_taken"] = "foo"
    assert decode_trace(doc, TraceVariant.RESULT).steps[2].action == "foo"
    with pytest.raises(MalformedTrace, match="unknown action 'foo'"):
        decode_trace(doc, TraceVariant.RESULT, known_actions={"q::init", "deposit_action", "withdraw_action"})


def test_lockup_ids_must_be_below_free_id() -> None:
    doc = trace_doc([result_state(action="q::init", bank={}, lockups=[(3, "A", 1, 0)], last_id=3)])
    with pytest.raises(MalformedTrace, match="free id"):
        decode_trace(doc, TraceVariant.RESULT)


def test_lockup_key_must_match_record_id() -> None:
    doc = trace_doc([result_state(action="q::init", bank={}, lockups=[(1, "A", 1, 0)], last_id=5)])
    doc["states"][0]["contract_state"]["lockups"]["#map"][0][0] = bigint(2)
    with pytest.raises(MalformedTrace, match="carries id 1"):
        decode_trace(doc, TraceVariant.RESULT)


def test_parse_and_load(tmp_path) -> None:
    text = json.dumps(_result_trace())
    assert len(parse_trace(text, TraceVariant.RESULT)) == 3

    path = tmp_path / "trace.itf.json"
    path.write_text(text, encoding="utf-8")
    assert len(load_trace_file(path, TraceVariant.RESULT)) == 3

    with pytest.raises(MalformedTrace, match="not valid JSON"):
        parse_trace("{", TraceVariant.RESULT)
    with pytest.raises(MalformedTrace, match="cannot read"):
        load_trace_file(tmp_path / "missing.json", TraceVariant.RESULT)
