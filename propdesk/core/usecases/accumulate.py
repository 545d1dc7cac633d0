"""Fold one account snapshot into an entry's running performance metrics.

Pure: takes the previous record and returns a new one; the caller decides
where the result is stored.
"""
import math
from datetime import datetime, timezone
from typing import Sequence

from propdesk.config.constants import PNL_HISTORY_CAP, SHARPE_ANNUALIZATION
from propdesk.core.models.entry import PerformanceMetrics
from propdesk.venue.types import AccountSnapshot


def day_of(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat()

def calc_sharpe(pnl_history: Sequence[float], annualization: float = SHARPE_ANNUALIZATION) -> float:
    if len(pnl_history) < 2:
        return 0.0
    returns = [pnl_history[i] - pnl_history[i - 1] for i in range(1, len(pnl_history))]
    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / len(returns)
    std = math.sqrt(variance)
    if std == 0:
        return 10.0 if mean > 0 else 0.0
    return (mean / std) * math.sqrt(annualization)

def _pct(value: float, base: float) -> float:
    return (value / base) * 100.0 if base > 0 else 0.0

def accumulate(prev: PerformanceMetrics, starting_capital: float, snap: AccountSnapshot, now: float,
               *, annualization: float = SHARPE_ANNUALIZATION,
               history_cap: int = PNL_HISTORY_CAP) -> PerformanceMetrics:
    equity = snap.equity if snap.equity > 0 else starting_capital + snap.unrealized_pnl
    pnl = equity - starting_capital
    today = day_of(now)

    # losses accumulate intraday; a recovery does not offset them
    daily_loss = prev.daily_loss if prev.daily_loss_date == today else 0.0
    drop = prev.current_equity - equity
    if drop > 0:
        daily_loss += drop
    daily_loss_pct = _pct(daily_loss, starting_capital)

    peak = max(prev.peak_equity, equity)
    drawdown = peak - equity
    drawdown_pct = _pct(drawdown, peak)

    history = list(prev.pnl_history)
    history.append(pnl)
    if len(history) > history_cap:
        history = history[len(history) - history_cap:]

    trading_days = list(prev.trading_days)
    if snap.trade_count > prev.total_trades and today not in trading_days:
        trading_days.append(today)

    positions = snap.open_positions
    wins = sum(1 for p in positions if p.unrealized_pnl > 0)

    return PerformanceMetrics(
        current_pnl=pnl,
        current_pnl_percent=_pct(pnl, starting_capital),
        peak_equity=peak,
        current_equity=equity,
        max_drawdown=max(prev.max_drawdown, drawdown),
        max_drawdown_percent=max(prev.max_drawdown_percent, drawdown_pct),
        daily_loss=daily_loss,
        daily_loss_percent=daily_loss_pct,
        daily_loss_date=today,
        max_daily_loss=max(prev.max_daily_loss, daily_loss),
        max_daily_loss_percent=max(prev.max_daily_loss_percent, daily_loss_pct),
        sharpe_ratio=calc_sharpe(history, annualization),
        total_trades=max(prev.total_trades, snap.trade_count),
        win_rate=wins / len(positions) if positions else 0.0,
        pnl_history=history,
        trading_days=trading_days,
    )
