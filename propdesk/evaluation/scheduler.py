import asyncio, time
from typing import Callable, Dict, Optional

import structlog
from pydantic import BaseModel, Field

from propdesk.config.constants import FALLBACK_DEVIATION, PNL_HISTORY_CAP, SHARPE_ANNUALIZATION
from propdesk.core.models.challenge import ChallengeSpec
from propdesk.core.models.entry import Entry
from propdesk.core.usecases.accumulate import accumulate
from propdesk.core.usecases.enroll import entries_for_challenge
from propdesk.core.usecases.evaluate import Decision, EntryLifecycle
from propdesk.portfolio.tracker import EquitySource, SnapshotSource, is_plausible
from propdesk.store.memory import InMemoryStore
from propdesk.venue.types import AccountSnapshot

log = structlog.get_logger()


class CycleReport(BaseModel):
    evaluated: int = 0
    fallback: int = 0
    errors: int = 0
    skipped: int = 0
    transitions: Dict[str, int] = Field(default_factory=dict)


class EvaluationScheduler:
    """Recurring tick: snapshot → accumulate → decide, for every active entry of every active challenge."""

    def __init__(self, store: InMemoryStore, lifecycle: EntryLifecycle,
                 live: Optional[SnapshotSource], fallback: EquitySource, *,
                 deviation: float = FALLBACK_DEVIATION,
                 annualization: float = SHARPE_ANNUALIZATION,
                 history_cap: int = PNL_HISTORY_CAP,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.lifecycle = lifecycle
        self.live = live
        self.fallback = fallback
        self.deviation = deviation
        self.annualization = annualization
        self.history_cap = history_cap
        self.clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._task: Optional[asyncio.Task] = None
        self._stop_evt: Optional[asyncio.Event] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def snapshot_for(self, entry: Entry, challenge: ChallengeSpec) -> AccountSnapshot:
        capital = challenge.starting_capital
        if self.live is not None:
            try:
                snap = await self.live.get_account_snapshot(entry.account_handle)
                if is_plausible(snap, capital, self.deviation):
                    return snap
                log.warning("implausible venue equity, using simulation", entry_id=entry.id,
                            equity=snap.equity, starting_capital=capital)
            except Exception as e:
                log.warning("venue read failed, using simulation", entry_id=entry.id,
                            account_handle=entry.account_handle, err=str(e))
        return self.fallback.next_snapshot(entry.metrics, capital)

    async def evaluate_entry(self, entry: Entry, challenge: ChallengeSpec, now: float,
                             report: Optional[CycleReport] = None) -> Optional[Decision]:
        snap = await self.snapshot_for(entry, challenge)
        entry.metrics = accumulate(entry.metrics, challenge.starting_capital, snap, now,
                                   annualization=self.annualization, history_cap=self.history_cap)
        self.store.entries.upsert(entry)
        if report is not None:
            report.evaluated += 1
            report.fallback += 1 if snap.simulated else 0
        return await self.lifecycle.step(entry, challenge, now)

    async def run_cycle(self, now: Optional[float] = None) -> CycleReport:
        ts = self.clock() if now is None else now
        report = CycleReport()
        for challenge in self.store.challenges.list(lambda c: c.status == "active"):
            for entry in entries_for_challenge(self.store, challenge.id):
                if not entry.is_active:
                    continue
                lock = self._locks.setdefault(entry.id, asyncio.Lock())
                if lock.locked():
                    report.skipped += 1
                    continue
                async with lock:
                    try:
                        d = await self.evaluate_entry(entry, challenge, ts, report)
                    except Exception:
                        report.errors += 1
                        log.error("entry evaluation failed", entry_id=entry.id, challenge_id=challenge.id, exc_info=True)
                        continue
                    if d is not None and d.status != "active":
                        report.transitions[d.status] = report.transitions.get(d.status, 0) + 1
                if not entry.is_active:
                    self._locks.pop(entry.id, None)
        self.ticks += 1
        return report

    def start(self, period: float = 5.0) -> bool:
        """Schedule the loop on the running event loop. A second start while running is a no-op."""
        if self.running:
            return False
        self._stop_evt = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._loop(period))
        log.info("evaluation engine started", interval_sec=period)
        return True

    async def stop(self) -> None:
        """Let the in-flight tick finish, then stop scheduling."""
        if self._task is None or self._stop_evt is None:
            return
        self._stop_evt.set()
        await self._task
        self._task = None
        log.info("evaluation engine stopped", ticks=self.ticks)

    async def _loop(self, period: float) -> None:
        stop_evt = self._stop_evt
        if stop_evt is None:
            return
        while not stop_evt.is_set():
            try:
                report = await self.run_cycle()
                log.debug("evaluation cycle", **report.model_dump())
            except Exception:
                log.error("evaluation cycle failed", exc_info=True)
            try:
                await asyncio.wait_for(stop_evt.wait(), timeout=period)
            except asyncio.TimeoutError:
                pass
