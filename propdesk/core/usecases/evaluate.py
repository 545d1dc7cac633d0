import time
from typing import Optional

import structlog
from pydantic import BaseModel

from propdesk.attestation import proofs
from propdesk.attestation.sinks import AttestationSink, attest
from propdesk.core.models.challenge import ChallengeSpec
from propdesk.core.models.entry import Entry
from propdesk.core.models.enums import EntryStatus
from propdesk.core.usecases.enroll import auto_enroll_phase2
from propdesk.events.bus import EventBus, EntryEvent
from propdesk.risk.guards import within_limits, target_met
from propdesk.store.memory import InMemoryStore

log = structlog.get_logger()


class Decision(BaseModel):
    status: EntryStatus
    reason: str = ""


def decide(entry: Entry, challenge: ChallengeSpec, now: float) -> Decision:
    """First matching rule wins: daily loss, total loss, pass, expiry."""
    m = entry.metrics
    ok, reason = within_limits(m.daily_loss_percent, challenge.max_daily_loss,
                               m.max_drawdown_percent, challenge.max_total_loss)
    if not ok:
        return Decision(status="failed", reason=reason)
    if target_met(m.current_pnl_percent, challenge.profit_target, len(m.trading_days), challenge.min_trading_days):
        return Decision(status="passed", reason="TARGET")
    if now >= entry.ends_at:
        return Decision(status="expired", reason="WINDOW")
    return Decision(status="active")


class EntryLifecycle:
    def __init__(self, store: InMemoryStore, sink: AttestationSink, bus: Optional[EventBus] = None):
        self.store = store
        self.sink = sink
        self.bus = bus

    async def step(self, entry: Entry, challenge: ChallengeSpec, now: Optional[float] = None) -> Optional[Decision]:
        """Decide and apply one transition. Returns None for entries that are already terminal."""
        if not entry.is_active:
            return None
        ts = time.time() if now is None else now
        d = decide(entry, challenge, ts)
        if d.status == "active":
            return d

        # status is committed before the attestation call so a slow or failing sink cannot lose it
        entry.status = d.status
        self.store.entries.upsert(entry)
        entry.proof_ref = await attest(self.sink, proofs.challenge_result(entry, d.status == "passed", ts), ts)
        self.store.entries.upsert(entry)

        m = entry.metrics
        log.info(f"entry {d.status}", entry_id=entry.id, agent_name=entry.agent_name, phase=challenge.phase,
                 reason=d.reason, pnl_pct=round(m.current_pnl_percent, 2),
                 daily_loss_pct=round(m.daily_loss_percent, 2), max_dd_pct=round(m.max_drawdown_percent, 2),
                 trading_days=len(m.trading_days), proof=entry.proof_ref)
        if self.bus is not None:
            self.bus.publish(EntryEvent(kind=d.status, entry_id=entry.id, agent_id=entry.agent_id,
                                        challenge_id=entry.challenge_id, phase=entry.phase,
                                        reason=d.reason, proof_ref=entry.proof_ref, ts=ts))

        if d.status == "passed" and challenge.phase == 1:
            p2 = auto_enroll_phase2(self.store, entry, challenge, now=ts, bus=self.bus)
            if p2 is not None:
                log.info("auto-entered phase 2", agent_name=entry.agent_name, entry_id=p2.id,
                         phase1_entry_id=entry.id)
        return d
