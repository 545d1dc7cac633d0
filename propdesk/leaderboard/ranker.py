from typing import Iterable

from propdesk.core.models.entry import Entry
from .models import LeaderboardRow, EntryView

def entry_view(e: Entry) -> EntryView:
    m = e.metrics
    return EntryView(
        entry_id=e.id, agent_id=e.agent_id, challenge_id=e.challenge_id, phase=e.phase,
        status=e.status, started_at=e.started_at, ends_at=e.ends_at,
        pnl_percent=m.current_pnl_percent, current_equity=m.current_equity,
        max_drawdown_percent=m.max_drawdown_percent, daily_loss_percent=m.daily_loss_percent,
        max_daily_loss_percent=m.max_daily_loss_percent, sharpe_ratio=m.sharpe_ratio,
        win_rate=m.win_rate, total_trades=m.total_trades, trading_days=len(m.trading_days),
        phase1_entry_id=e.phase1_entry_id, proof_ref=e.proof_ref,
    )

def build_leaderboard(entries: Iterable[Entry]) -> list[LeaderboardRow]:
    # sorted() is stable, so ties keep their input order
    pool = sorted(entries, key=lambda e: e.metrics.current_pnl_percent, reverse=True)
    return [
        LeaderboardRow(
            rank=i,
            agent_id=e.agent_id,
            agent_name=e.agent_name,
            pnl_percent=e.metrics.current_pnl_percent,
            max_drawdown_percent=e.metrics.max_drawdown_percent,
            sharpe_ratio=e.metrics.sharpe_ratio,
            status=e.status,
        )
        for i, e in enumerate(pool, 1)
    ]
