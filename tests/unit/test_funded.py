from __future__ import annotations

import pytest

from conftest import BASE_TS
from propdesk.config.constants import MAX_DAILY_LOSS_PCT, MAX_TOTAL_LOSS_PCT
from propdesk.core.models.funded import FundedAccount
from propdesk.core.models.results import Rejected
from propdesk.funded.engine import FundedAllocationEngine


def _engine(store, sink, venue=None, **kw) -> FundedAllocationEngine:
    return FundedAllocationEngine(store, sink, venue, clock=lambda: BASE_TS, **kw)


async def _active_account(engine, passed_agent, capital_k=10, handle=None) -> FundedAccount:
    passed_agent(capital_k=capital_k)
    fa = engine.apply("agent-1", "AGENT-1", account_handle=handle)
    assert isinstance(fa, FundedAccount)
    fa = await engine.activate(fa.id)
    assert isinstance(fa, FundedAccount)
    return fa


def test_apply_requires_both_phases(store, sink, enroll) -> None:
    engine = _engine(store, sink)
    res = engine.apply("agent-1", "AGENT-1")
    assert isinstance(res, Rejected)
    assert res.code == "NOT_ELIGIBLE"

    p1 = enroll()
    p1.status = "passed"
    assert engine.apply("agent-1", "AGENT-1").code == "NOT_ELIGIBLE"

    # a passed phase 2 that is not linked to the agent's phase 1 does not count
    stray = enroll(challenge_id="10k-p2", phase1_entry_id="someone-else")
    stray.status = "passed"
    assert engine.apply("agent-1", "AGENT-1").code == "NOT_ELIGIBLE"
    assert store.funded.list() == []


def test_allocation_is_tier_capital_times_multiplier(store, sink, passed_agent) -> None:
    passed_agent(capital_k=25)
    fa = _engine(store, sink).apply("agent-1", "AGENT-1")
    assert fa.allocation == 125_000.0
    assert fa.status == "pending"
    assert fa.protocol_fee_bps == 1000
    assert fa.current_equity is None
    assert (fa.max_daily_loss, fa.max_total_loss) == (MAX_DAILY_LOSS_PCT, MAX_TOTAL_LOSS_PCT)


def test_apply_is_idempotent(store, sink, passed_agent) -> None:
    p1, p2 = passed_agent()
    engine = _engine(store, sink)
    a = engine.apply("agent-1", "AGENT-1")
    b = engine.apply("agent-1", "AGENT-1")
    assert a.id == b.id
    assert a.challenge_entry_id == p1.id
    assert a.verification_entry_id == p2.id
    assert len(engine.list_accounts()) == 1
    assert engine.get_status("agent-1") is a
    assert engine.get_status("nobody") is None


@pytest.mark.asyncio
async def test_activate(store, sink, passed_agent) -> None:
    engine = _engine(store, sink)
    fa = await _active_account(engine, passed_agent)
    assert fa.status == "active"
    assert fa.activated_at == BASE_TS
    assert fa.current_equity == 50_000.0
    assert fa.proof_ref == "sig_1"
    assert sink.memos[0]["type"] == "funded_status"

    again = await engine.activate(fa.id)
    assert again.code == "NOT_PENDING"
    assert (await engine.activate("missing")).code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_activate_survives_attestation_failure(store, failing_sink, passed_agent) -> None:
    engine = _engine(store, failing_sink)
    fa = await _active_account(engine, passed_agent)
    assert fa.status == "active"
    assert fa.proof_ref is None
    assert failing_sink.attempts == 1


@pytest.mark.asyncio
async def test_withdraw_without_profit(store, sink, passed_agent) -> None:
    engine = _engine(store, sink)
    fa = await _active_account(engine, passed_agent)
    await engine.record_equity(fa.id, 49_000.0)
    res = await engine.withdraw_profits(fa.id)
    assert res.code == "NO_PROFIT"
    assert fa.total_withdrawn == 0.0
    assert fa.current_equity == 49_000.0


@pytest.mark.asyncio
async def test_withdraw_splits_fee_and_resets_equity(store, sink, passed_agent) -> None:
    engine = _engine(store, sink)
    fa = await _active_account(engine, passed_agent)
    await engine.record_equity(fa.id, 55_000.0)

    w = await engine.withdraw_profits(fa.id)
    assert w.profit == pytest.approx(5_000.0)
    assert w.fee == pytest.approx(500.0)
    assert w.payout == pytest.approx(4_500.0)
    assert w.fee_bps == 1000
    assert w.reference.startswith(f"withdraw_{fa.id[:8]}_")
    assert fa.current_equity == 50_000.0
    assert fa.total_withdrawn == pytest.approx(4_500.0)

    # the same profit cannot be paid out twice
    assert (await engine.withdraw_profits(fa.id)).code == "NO_PROFIT"
    assert fa.total_withdrawn == pytest.approx(4_500.0)


@pytest.mark.asyncio
async def test_loss_breach_revokes(store, sink, passed_agent) -> None:
    engine = _engine(store, sink)
    fa = await _active_account(engine, passed_agent)

    await engine.record_equity(fa.id, 45_000.0)
    check = await engine.check_loss_limits(fa.id)
    assert not check.breached
    assert check.total_loss_percent == pytest.approx(10.0)

    await engine.record_equity(fa.id, 44_000.0)
    res = await engine.withdraw_profits(fa.id)
    assert res.code == "LOSS_LIMIT"
    assert fa.status == "revoked"
    assert store.funded.get(fa.id).status == "revoked"
    assert fa.id not in engine._locks

    assert (await engine.withdraw_profits(fa.id)).code == "NOT_ACTIVE"
    assert not (await engine.check_loss_limits(fa.id)).breached
    assert fa.id not in engine._locks


@pytest.mark.asyncio
async def test_check_loss_limits_reports_breach(store, sink, passed_agent) -> None:
    engine = _engine(store, sink)
    fa = await _active_account(engine, passed_agent)
    await engine.record_equity(fa.id, 40_000.0)
    check = await engine.check_loss_limits(fa.id)
    assert check.breached
    assert check.total_loss_percent == pytest.approx(20.0)
    assert "exceeded" in check.reason
    assert fa.status == "revoked"
    assert fa.id not in engine._locks


@pytest.mark.asyncio
async def test_unknown_account(store, sink) -> None:
    engine = _engine(store, sink)
    assert (await engine.withdraw_profits("nope")).code == "NOT_FOUND"
    assert (await engine.check_loss_limits("nope")).code == "NOT_FOUND"
    assert (await engine.record_equity("nope", 1.0)).code == "NOT_FOUND"
    assert engine.get_performance("nope").code == "NOT_FOUND"
    assert engine.get("nope") is None


@pytest.mark.asyncio
async def test_withdraw_from_pending_account(store, sink, passed_agent) -> None:
    passed_agent()
    engine = _engine(store, sink)
    fa = engine.apply("agent-1", "AGENT-1")
    assert (await engine.withdraw_profits(fa.id)).code == "NOT_ACTIVE"


@pytest.mark.asyncio
async def test_performance_does_not_mutate(store, sink, passed_agent) -> None:
    engine = _engine(store, sink)
    fa = await _active_account(engine, passed_agent)
    await engine.record_equity(fa.id, 52_000.0)
    perf = engine.get_performance(fa.id)
    assert perf.allocation == 50_000.0
    assert perf.total_profit == pytest.approx(2_000.0)
    assert perf.available_to_withdraw == pytest.approx(1_800.0)
    assert perf.protocol_fee_rate == pytest.approx(0.1)
    assert perf.agent_share_rate == pytest.approx(0.9)
    assert fa.current_equity == 52_000.0

    await engine.record_equity(fa.id, 48_000.0)
    assert engine.get_performance(fa.id).available_to_withdraw == 0.0


@pytest.mark.asyncio
async def test_sync_equity(store, sink, source, passed_agent) -> None:
    engine = _engine(store, sink, venue=source)
    fa = await _active_account(engine, passed_agent, handle=77)

    source.push(77, 51_000.0)
    await engine.sync_equity(fa.id)
    assert fa.current_equity == 51_000.0

    source.failing.add(77)
    await engine.sync_equity(fa.id)
    assert fa.current_equity == 51_000.0


@pytest.mark.asyncio
async def test_custom_fee(store, sink, passed_agent) -> None:
    engine = _engine(store, sink, fee_bps=2000)
    fa = await _active_account(engine, passed_agent)
    await engine.record_equity(fa.id, 51_000.0)
    w = await engine.withdraw_profits(fa.id)
    assert w.fee == pytest.approx(200.0)
    assert w.payout == pytest.approx(800.0)
