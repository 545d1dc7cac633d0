import random
from typing import Optional, Protocol

from propdesk.config.constants import FALLBACK_DEVIATION
from propdesk.core.models.entry import PerformanceMetrics
from propdesk.venue.types import AccountSnapshot


class SnapshotSource(Protocol):
    async def get_account_snapshot(self, handle: int) -> AccountSnapshot: ...


class EquitySource(Protocol):
    """Produces a snapshot from the entry's own history when the venue cannot."""
    def next_snapshot(self, metrics: PerformanceMetrics, starting_capital: float) -> AccountSnapshot: ...


class FallbackEquitySource:
    """Random walk with a slight downward bias; trades tick up ~30% of the time."""

    def __init__(self, rng: Optional[random.Random] = None, step_pct: float = 0.003, bias: float = 0.48,
                 trade_prob: float = 0.3):
        self.rng = rng or random.Random()
        self.step_pct = step_pct
        self.bias = bias
        self.trade_prob = trade_prob

    def next_snapshot(self, metrics: PerformanceMetrics, starting_capital: float) -> AccountSnapshot:
        delta = (self.rng.random() - self.bias) * starting_capital * self.step_pct
        pnl = metrics.current_pnl + delta
        trades = metrics.total_trades + (1 if self.rng.random() > 1 - self.trade_prob else 0)
        return AccountSnapshot(
            equity=starting_capital + pnl,
            unrealized_pnl=pnl,
            trade_count=trades,
            simulated=True,
        )


def is_plausible(snap: AccountSnapshot, starting_capital: float, deviation: float = FALLBACK_DEVIATION) -> bool:
    if snap.equity > 0 and abs(snap.equity - starting_capital) > starting_capital * deviation:
        return False
    return True
