"""Funded allocations for agents that cleared both qualification phases.

No profit target; the same loss limits apply. Profits can be withdrawn at any
time minus the protocol fee, and a total-loss breach revokes the account.
"""
import asyncio, time, uuid
from typing import Callable, Dict, List, Optional, Union

import structlog

from propdesk.attestation import proofs
from propdesk.attestation.sinks import AttestationSink, attest
from propdesk.config.constants import MAX_DAILY_LOSS_PCT, MAX_TOTAL_LOSS_PCT
from propdesk.core.models.enums import LOSS_LIMIT, NO_PROFIT, NOT_ACTIVE, NOT_ELIGIBLE, NOT_FOUND, NOT_PENDING
from propdesk.core.models.funded import FundedAccount, LossCheck, PerformanceSummary, Withdrawal
from propdesk.core.models.results import Rejected, rejected
from propdesk.core.usecases.enroll import has_passed_both_phases
from propdesk.portfolio.tracker import SnapshotSource
from propdesk.risk.guards import total_loss_pct
from propdesk.store.memory import InMemoryStore

log = structlog.get_logger()

ALLOCATION_MULTIPLIER = 5.0
DEFAULT_PROTOCOL_FEE_BPS = 1000


class FundedAllocationEngine:
    def __init__(self, store: InMemoryStore, sink: AttestationSink, venue: Optional[SnapshotSource] = None, *,
                 multiplier: float = ALLOCATION_MULTIPLIER, fee_bps: int = DEFAULT_PROTOCOL_FEE_BPS,
                 max_daily_loss: float = MAX_DAILY_LOSS_PCT, max_total_loss: float = MAX_TOTAL_LOSS_PCT,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.sink = sink
        self.venue = venue
        self.multiplier = multiplier
        self.fee_bps = fee_bps
        self.max_daily_loss = max_daily_loss
        self.max_total_loss = max_total_loss
        self.clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, account_id: str) -> asyncio.Lock:
        return self._locks.setdefault(account_id, asyncio.Lock())

    def _release(self, account: FundedAccount) -> None:
        if account.status == "revoked":
            self._locks.pop(account.id, None)

    def apply(self, agent_id: str, agent_name: str,
              account_handle: Optional[int] = None) -> Union[FundedAccount, Rejected]:
        passed = has_passed_both_phases(self.store, agent_id)
        if passed is None:
            return rejected(NOT_ELIGIBLE, "Agent must pass both Phase 1 (Challenge) and Phase 2 (Verification) to get funded")
        for fa in self.store.funded.list():
            if fa.agent_id == agent_id and fa.status in ("pending", "active"):
                return fa
        phase1, phase2 = passed
        tier = self.store.challenges.get(phase1.challenge_id)
        if tier is None:
            return rejected(NOT_FOUND, f"Challenge {phase1.challenge_id} not found")
        account = FundedAccount(
            id=str(uuid.uuid4()),
            agent_id=agent_id,
            agent_name=agent_name,
            challenge_entry_id=phase1.id,
            verification_entry_id=phase2.id,
            allocation=tier.starting_capital * self.multiplier,
            applied_at=self.clock(),
            protocol_fee_bps=self.fee_bps,
            max_daily_loss=self.max_daily_loss,
            max_total_loss=self.max_total_loss,
            account_handle=account_handle,
        )
        self.store.funded.upsert(account)
        log.info("funded account application", agent_id=agent_id, agent_name=agent_name,
                 allocation=account.allocation, account_id=account.id)
        return account

    def get(self, account_id: str) -> Optional[FundedAccount]:
        return self.store.funded.get(account_id)

    def get_status(self, agent_id: str) -> Optional[FundedAccount]:
        for fa in self.store.funded.list():
            if fa.agent_id == agent_id:
                return fa
        return None

    def list_accounts(self) -> List[FundedAccount]:
        return self.store.funded.list()

    async def activate(self, account_id: str) -> Union[FundedAccount, Rejected]:
        account = self.store.funded.get(account_id)
        if account is None:
            return rejected(NOT_FOUND, "Funded account not found")
        if account.status != "pending":
            return rejected(NOT_PENDING, f"Account is {account.status}, not pending")
        now = self.clock()
        account.status = "active"
        account.activated_at = now
        if account.current_equity is None:
            account.current_equity = account.allocation
        self.store.funded.upsert(account)
        try:
            account.proof_ref = await self.sink.store(proofs.build_memo(proofs.funded_status(account, now)))
            self.store.funded.upsert(account)
        except Exception as e:
            log.warning("funded activation attestation failed", account_id=account_id, err=str(e))
        log.info("funded account activated", account_id=account_id, agent_id=account.agent_id,
                 allocation=account.allocation)
        return account

    def _equity(self, account: FundedAccount) -> float:
        if account.current_equity is None:
            account.current_equity = account.allocation
        return account.current_equity

    async def record_equity(self, account_id: str, equity: float) -> Union[FundedAccount, Rejected]:
        account = self.store.funded.get(account_id)
        if account is None:
            return rejected(NOT_FOUND, "Funded account not found")
        async with self._lock(account_id):
            account.current_equity = float(equity)
            self.store.funded.upsert(account)
        return account

    async def sync_equity(self, account_id: str) -> Union[FundedAccount, Rejected]:
        """Pull the latest equity mark from the venue; the last mark is kept if the read fails."""
        account = self.store.funded.get(account_id)
        if account is None:
            return rejected(NOT_FOUND, "Funded account not found")
        if self.venue is None or account.account_handle is None:
            return account
        try:
            snap = await self.venue.get_account_snapshot(account.account_handle)
        except Exception as e:
            log.warning("funded equity read failed", account_id=account_id, err=str(e))
            return account
        if snap.equity > 0:
            return await self.record_equity(account_id, snap.equity)
        return account

    def _check_locked(self, account: FundedAccount) -> LossCheck:
        if account.status != "active":
            return LossCheck(breached=False)
        loss = total_loss_pct(account.allocation, self._equity(account))
        if loss > account.max_total_loss:
            account.status = "revoked"
            self.store.funded.upsert(account)
            reason = f"Total loss {loss:.2f}% exceeded {account.max_total_loss:g}% limit"
            log.warning("funded account revoked", account_id=account.id, agent_id=account.agent_id, reason=reason)
            return LossCheck(breached=True, total_loss_percent=loss, reason=reason)
        return LossCheck(breached=False, total_loss_percent=loss)

    async def check_loss_limits(self, account_id: str) -> Union[LossCheck, Rejected]:
        account = self.store.funded.get(account_id)
        if account is None:
            return rejected(NOT_FOUND, "Funded account not found")
        async with self._lock(account_id):
            check = self._check_locked(account)
        self._release(account)
        return check

    async def withdraw_profits(self, account_id: str) -> Union[Withdrawal, Rejected]:
        account = self.store.funded.get(account_id)
        if account is None:
            return rejected(NOT_FOUND, "Funded account not found")
        async with self._lock(account_id):
            if account.status != "active":
                self._release(account)
                return rejected(NOT_ACTIVE, "Account is not active")
            check = self._check_locked(account)
            if check.breached:
                self._release(account)
                return rejected(LOSS_LIMIT, f"Account revoked: {check.reason}")
            equity = self._equity(account)
            profit = equity - account.allocation
            if profit <= 0:
                return rejected(NO_PROFIT, f"No profit to withdraw. Equity: ${equity:.2f}, Allocation: ${account.allocation:g}")
            fee_bps = account.protocol_fee_bps
            fee = profit * (fee_bps / 10000)
            payout = profit - fee
            # profit leaves the account; it is not compounded
            account.current_equity = account.allocation
            account.total_withdrawn += payout
            self.store.funded.upsert(account)
        ref = f"withdraw_{account.id[:8]}_{int(self.clock() * 1000):x}"
        log.info("profit withdrawal", account_id=account.id, payout=round(payout, 2), fee=round(fee, 2), fee_bps=fee_bps)
        return Withdrawal(reference=ref, allocation=account.allocation, equity=equity, profit=profit,
                          fee=fee, payout=payout, fee_bps=fee_bps)

    def get_performance(self, account_id: str) -> Union[PerformanceSummary, Rejected]:
        account = self.store.funded.get(account_id)
        if account is None:
            return rejected(NOT_FOUND, "Funded account not found")
        equity = account.current_equity if account.current_equity is not None else account.allocation
        fee_rate = account.protocol_fee_bps / 10000
        profit = equity - account.allocation
        return PerformanceSummary(
            allocation=account.allocation,
            current_equity=equity,
            total_profit=profit,
            available_to_withdraw=profit * (1 - fee_rate) if profit > 0 else 0.0,
            protocol_fee_rate=fee_rate,
            agent_share_rate=1 - fee_rate,
            total_withdrawn=account.total_withdrawn,
        )
