from __future__ import annotations

import pytest

from src.core.lockup import LockupParams
from src.integration.lockup_chain import LockupChain
from src.replay import (
    IncompleteStep,
    MalformedTrace,
    OutcomeMismatch,
    ReplayDriver,
    ReplayStatus,
    StateMismatch,
    UnknownAction,
    flag_policy_config,
    replay,
    replay_or_raise,
    result_policy_config,
)
from src.trace import TraceVariant, decode_trace
from tests.itf_builders import (
    RecordingChain,
    deposit_args,
    err,
    flag_state,
    ok,
    result_state,
    trace_doc,
    withdraw_args,
)


def _small_chain(cls=LockupChain) -> LockupChain:
    return cls(params=LockupParams(denom="D", minimum_deposit=1))


def _config():
    return result_policy_config(denom="D")


def _init_state() -> dict:
    return result_state(action="q::init", sender="admin", bank={"A": {"D": 100}})


def _deposit_state(**overrides) -> dict:
    kwargs = dict(
        action="deposit_action",
        sender="A",
        denom="D",
        amount=40,
        bank={"A": {"D": 60}, "contract0": {"D": 40}},
        lockups=[(1, "A", 40, 2 * 86400)],
        last_id=2,
    )
    kwargs.update(overrides)
    return result_state(**kwargs)


def _result_trace(*states: dict):
    return decode_trace(trace_doc(states), TraceVariant.RESULT)


def test_init_then_deposit_matches_ledger_and_contract_balance() -> None:
    chain = _small_chain()
    report = replay(_result_trace(_init_state(), _deposit_state()), chain, _config())

    assert report.ok, report.failure
    assert report.status is ReplayStatus.FINISHED
    assert (report.steps_total, report.steps_checked, report.steps_skipped) == (2, 2, 0)
    assert chain.bank.get("A", "D") == 60
    assert chain.bank.get("contract0", "D") == 40
    assert chain.contract_state("contract0").last_id == 2


def test_init_only_trace_finishes() -> None:
    chain = _small_chain()
    report = replay(_result_trace(_init_state()), chain, _config())
    assert report.status is ReplayStatus.FINISHED
    assert report.steps_checked == 1
    assert chain.bank.get_all_balances() == {("A", "D"): 100}


def test_missing_sender_pick_fails_before_any_sut_call() -> None:
    chain = _small_chain(RecordingChain)
    trace = _result_trace(_init_state(), _deposit_state(sender=None))
    report = replay(trace, chain, _config())

    assert report.status is ReplayStatus.FAILED
    assert isinstance(report.failure, IncompleteStep)
    assert report.failure.step_index == 1
    assert [c for c in chain.calls if c[0] == "call"] == []


def test_unknown_action_halts_at_that_step() -> None:
    chain = _small_chain(RecordingChain)
    trace = _result_trace(_init_state(), _deposit_state(), result_state(action="foo", bank={}))
    report = replay(trace, chain, _config())

    assert isinstance(report.failure, UnknownAction)
    assert report.failure.action == "foo"
    assert report.failure.step_index == 2
    assert report.steps_checked == 2
    assert chain.calls[-1] == ("advance_clock", 86400)


def test_steps_with_queued_messages_are_skipped() -> None:
    chain = _small_chain(RecordingChain)
    pending = result_state(
        action="withdraw_action",
        sender="A",
        message_ids=[1],
        bank={"A": {"D": 12345}},
        result=ok([{"bank_send": "A"}]),
    )
    report = replay(_result_trace(_init_state(), pending), chain, _config())

    assert report.ok, report.failure
    assert (report.steps_checked, report.steps_skipped) == (1, 1)
    assert chain.calls == [("initialize", "admin"), ("advance_clock", 86400)]


def test_balance_beyond_native_width_is_a_state_mismatch() -> None:
    trace = _result_trace(_init_state(), _deposit_state(bank={"A": {"D": 2**128}, "contract0": {"D": 40}}))
    report = replay(trace, _small_chain(), _config())

    assert isinstance(report.failure, StateMismatch)
    assert report.failure.entity == "balance[A][D]"
    assert "native width" in report.failure.reason
    assert report.failure.step_index == 1


def test_balance_difference_names_the_entity() -> None:
    trace = _result_trace(_init_state(), _deposit_state(bank={"A": {"D": 61}, "contract0": {"D": 40}}))
    with pytest.raises(StateMismatch, match=r"step 1: balance\[A\]\[D\]"):
        replay_or_raise(trace, _small_chain(), _config())


def test_expected_success_but_sut_fails() -> None:
    chain = LockupChain(params=LockupParams(denom="D", minimum_deposit=50))
    report = replay(_result_trace(_init_state(), _deposit_state()), chain, _config())

    assert isinstance(report.failure, OutcomeMismatch)
    assert (report.failure.expected, report.failure.actual) == (True, False)
    assert "Unauthorized" in str(report.failure)


def test_expected_failure_but_sut_succeeds() -> None:
    rejected = _deposit_state(
        bank={"A": {"D": 100}},
        lockups=[],
        last_id=1,
        result=err("deposit too small"),
    )
    report = replay(_result_trace(_init_state(), rejected), _small_chain(), _config())

    assert isinstance(report.failure, OutcomeMismatch)
    assert (report.failure.expected, report.failure.actual) == (False, True)
    assert report.failure.step_index == 1


def test_expected_failure_matches_sut_failure() -> None:
    not_owner = result_state(
        action="withdraw_action",
        sender="B",
        message_ids=[1],
        bank={"A": {"D": 60}, "contract0": {"D": 40}},
        lockups=[(1, "A", 40, 2 * 86400)],
        last_id=2,
        result=err("Unauthorized"),
    )
    report = replay(_result_trace(_init_state(), _deposit_state(), not_owner), _small_chain(), _config())
    assert report.ok, report.failure


def test_replay_is_deterministic_across_fresh_adapters() -> None:
    trace = _result_trace(_init_state(), _deposit_state())
    first = replay(trace, _small_chain(), _config())
    second = replay(trace, _small_chain(), _config())
    assert first == second


def test_driver_is_single_use() -> None:
    driver = ReplayDriver(_small_chain(), _config())
    driver.run(_result_trace(_init_state()))
    with pytest.raises(RuntimeError):
        driver.run(_result_trace(_init_state()))


def test_variant_mismatch_is_reported() -> None:
    report = replay(_result_trace(_init_state()), _small_chain(), flag_policy_config())
    assert isinstance(report.failure, MalformedTrace)
    assert report.steps_checked == 0


def test_call_before_init_is_incomplete() -> None:
    report = replay(_result_trace(_deposit_state(bank={})), _small_chain(), _config())
    assert isinstance(report.failure, IncompleteStep)
    assert report.failure.step_index == 0


def test_report_serializes_failure() -> None:
    trace = _result_trace(_init_state(), _deposit_state(bank={"A": {"D": 2**128}, "contract0": {"D": 40}}))
    data = replay(trace, _small_chain(), _config()).to_dict()
    assert data["ok"] is False
    assert data["status"] == "failed"
    assert data["failure"]["kind"] == "state_mismatch"
    assert data["failure"]["expected"] == str(2**128)


# -- flag shape --------------------------------------------------------------


def _flag_trace():
    lockup = [(1, "user_a", 10_000, 86_400)]
    doc = trace_doc(
        [
            flag_state(action="init", step=0, contract_balance=1_000_000),
            flag_state(
                action="deposit",
                step=1,
                args=deposit_args("user_a", 10_000),
                free_id=2,
                lockups=lockup,
                contract_balance=1_010_000,
            ),
            flag_state(
                action="withdraw",
                step=2,
                args=withdraw_args("user_a", [1]),
                success=False,
                error="lockup is not released yet",
                free_id=2,
                lockups=lockup,
                contract_balance=1_010_000,
            ),
            flag_state(
                action="advance_time",
                step=3,
                free_id=2,
                lockups=lockup,
                contract_balance=1_010_000,
                time=86_400,
            ),
            flag_state(
                action="withdraw",
                step=4,
                args=withdraw_args("user_a", [1]),
                free_id=2,
                contract_balance=1_000_000,
                time=86_400,
            ),
        ]
    )
    return decode_trace(doc, TraceVariant.FLAG)


def test_flag_trace_full_lifecycle() -> None:
    chain = RecordingChain()
    report = replay(_flag_trace(), chain, flag_policy_config())

    assert report.ok, report.failure
    assert report.steps_checked == 5
    assert chain.time == 86_400
    assert ("advance_clock", 86_400) in chain.calls
    assert chain.bank.get("contract0", "uawesome") == 1_000_000
    assert chain.contract_state("contract0").lockups == {}


def test_flag_trace_lockup_owner_mismatch() -> None:
    doc = trace_doc(
        [
            flag_state(action="init", step=0, contract_balance=1_000_000),
            flag_state(
                action="deposit",
                step=1,
                args=deposit_args("user_a", 10_000),
                free_id=2,
                lockups=[(1, "user_b", 10_000, 86_400)],
                contract_balance=1_010_000,
            ),
        ]
    )
    report = replay(decode_trace(doc, TraceVariant.FLAG), LockupChain(), flag_policy_config())
    assert isinstance(report.failure, StateMismatch)
    assert report.failure.entity == "lockup[1].owner"


def test_failing_verdict_is_deterministic_across_fresh_adapters() -> None:
    trace = _result_trace(_init_state(), _deposit_state(bank={"A": {"D": 59}, "contract0": {"D": 40}}))
    verdicts = []
    for _ in range(2):
        report = replay(trace, _small_chain(), _config())
        verdicts.append((report.status, report.steps_checked, report.failure.kind, report.failure.step_index))
    assert verdicts[0] == verdicts[1] == (ReplayStatus.FAILED, 1, "state_mismatch", 1)


def test_init_expected_to_fail_but_sut_instantiates() -> None:
    trace = _result_trace(result_state(action="q::init", sender="admin", bank={"A": {"D": 100}}, result=err("boom")))
    report = replay(trace, _small_chain(), _config())

    assert isinstance(report.failure, OutcomeMismatch)
    assert (report.failure.expected, report.failure.actual) == (False, True)
    assert report.failure.step_index == 0
    assert "model error: boom" in str(report.failure)
    assert report.steps_checked == 0


def test_amount_beyond_native_width_halts_at_dispatch() -> None:
    chain = _small_chain(RecordingChain)
    report = replay(_result_trace(_init_state(), _deposit_state(amount=2**128)), chain, _config())

    assert isinstance(report.failure, IncompleteStep)
    assert report.failure.step_index == 1
    assert report.steps_checked == 1
    assert [c for c in chain.calls if c[0] == "call"] == []


def test_flag_init_expected_to_fail_but_sut_instantiates() -> None:
    doc = trace_doc([flag_state(action="init", step=0, success=False, error="already instantiated")])
    report = replay(decode_trace(doc, TraceVariant.FLAG), LockupChain(), flag_policy_config())

    assert isinstance(report.failure, OutcomeMismatch)
    assert (report.failure.expected, report.failure.actual) == (False, True)
    assert report.failure.step_index == 0
