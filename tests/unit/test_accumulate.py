from __future__ import annotations

import math
import random

import pytest

from conftest import BASE_TS, DAY
from propdesk.config.constants import PNL_HISTORY_CAP
from propdesk.core.models.entry import default_metrics
from propdesk.core.usecases.accumulate import accumulate, calc_sharpe, day_of
from propdesk.venue.types import AccountSnapshot, Position

CAPITAL = 10_000.0


def _snap(equity: float, trades: int = 0, **kw) -> AccountSnapshot:
    return AccountSnapshot(equity=equity, trade_count=trades, **kw)


def _fold(equities, start_ts=BASE_TS, step=3600.0, trades=None):
    m = default_metrics(CAPITAL, day_of(start_ts))
    out = []
    for i, eq in enumerate(equities):
        t = trades[i] if trades else 0
        m = accumulate(m, CAPITAL, _snap(eq, t), start_ts + i * step)
        out.append(m)
    return out


def test_pnl_and_percent() -> None:
    m = _fold([10_250.0])[-1]
    assert m.current_pnl == pytest.approx(250.0)
    assert m.current_pnl_percent == pytest.approx(2.5)
    assert m.current_equity == 10_250.0
    assert m.peak_equity == 10_250.0


def test_nonpositive_equity_falls_back_to_unrealized_pnl() -> None:
    m = default_metrics(CAPITAL, day_of(BASE_TS))
    m = accumulate(m, CAPITAL, AccountSnapshot(equity=0.0, unrealized_pnl=-150.0), BASE_TS)
    assert m.current_equity == pytest.approx(9_850.0)
    assert m.current_pnl == pytest.approx(-150.0)


def test_gains_do_not_offset_intraday_loss() -> None:
    m = _fold([9_800.0, 10_300.0])[-1]
    assert m.daily_loss == pytest.approx(200.0)
    assert m.daily_loss_percent == pytest.approx(2.0)


def test_daily_loss_resets_on_new_day() -> None:
    m = default_metrics(CAPITAL, day_of(BASE_TS))
    m = accumulate(m, CAPITAL, _snap(9_700.0), BASE_TS)
    assert m.daily_loss == pytest.approx(300.0)
    m = accumulate(m, CAPITAL, _snap(9_600.0), BASE_TS + DAY)
    assert m.daily_loss == pytest.approx(100.0)
    assert m.daily_loss_date == day_of(BASE_TS + DAY)
    assert m.max_daily_loss == pytest.approx(300.0)
    assert m.max_daily_loss_percent == pytest.approx(3.0)


def test_daily_loss_reset_with_gain_on_new_day() -> None:
    m = default_metrics(CAPITAL, day_of(BASE_TS))
    m = accumulate(m, CAPITAL, _snap(9_500.0), BASE_TS)
    m = accumulate(m, CAPITAL, _snap(9_900.0), BASE_TS + DAY)
    assert m.daily_loss == 0.0
    assert m.daily_loss_percent == 0.0


def test_drawdown_relative_to_peak() -> None:
    m = _fold([11_000.0, 9_900.0])[-1]
    assert m.peak_equity == 11_000.0
    assert m.max_drawdown == pytest.approx(1_100.0)
    assert m.max_drawdown_percent == pytest.approx(10.0)


def test_running_maxima_never_decrease() -> None:
    rng = random.Random(7)
    equities = [CAPITAL + rng.uniform(-900, 900) for _ in range(400)]
    series = _fold(equities, step=1800.0)
    fields = ("peak_equity", "max_drawdown", "max_drawdown_percent", "max_daily_loss", "max_daily_loss_percent")
    for prev, cur in zip(series, series[1:]):
        for f in fields:
            assert getattr(cur, f) >= getattr(prev, f), f
        assert len(cur.trading_days) >= len(prev.trading_days)


def test_history_is_capped_and_drops_oldest() -> None:
    m = default_metrics(CAPITAL, day_of(BASE_TS))
    m = m.model_copy(update={"pnl_history": [float(i) for i in range(PNL_HISTORY_CAP)]})
    m = accumulate(m, CAPITAL, _snap(10_500.0), BASE_TS)
    assert len(m.pnl_history) == PNL_HISTORY_CAP
    assert m.pnl_history[0] == 1.0
    assert m.pnl_history[-1] == pytest.approx(500.0)


def test_small_cap_over_many_ticks() -> None:
    m = default_metrics(CAPITAL, day_of(BASE_TS))
    for i in range(120):
        m = accumulate(m, CAPITAL, _snap(CAPITAL + i), BASE_TS + i, history_cap=25)
        assert len(m.pnl_history) <= 25
    assert m.pnl_history[-1] == pytest.approx(119.0)


def test_trading_day_added_once_per_day_on_new_trades() -> None:
    series = _fold([10_000.0] * 4, step=3600.0, trades=[0, 1, 2, 2])
    assert series[0].trading_days == []
    assert series[1].trading_days == [day_of(BASE_TS)]
    assert series[2].trading_days == [day_of(BASE_TS)]
    assert series[3].total_trades == 2


def test_trading_days_across_days() -> None:
    series = _fold([10_000.0] * 3, step=DAY, trades=[1, 2, 2])
    assert len(series[-1].trading_days) == 2


def test_trade_count_never_moves_backwards() -> None:
    series = _fold([10_000.0] * 2, trades=[5, 3])
    assert series[-1].total_trades == 5


def test_win_rate_from_open_positions() -> None:
    m = default_metrics(CAPITAL, day_of(BASE_TS))
    positions = [Position(market="SOL-PERP", unrealized_pnl=12.0),
                 Position(market="BTC-PERP", unrealized_pnl=-3.0),
                 Position(market="ETH-PERP", unrealized_pnl=4.0)]
    m = accumulate(m, CAPITAL, _snap(10_013.0, open_positions=positions), BASE_TS)
    assert m.win_rate == pytest.approx(2 / 3)
    m = accumulate(m, CAPITAL, _snap(10_013.0), BASE_TS + 1)
    assert m.win_rate == 0.0


def test_sharpe_edge_cases() -> None:
    assert calc_sharpe([]) == 0.0
    assert calc_sharpe([5.0]) == 0.0
    assert calc_sharpe([0.0, 1.0, 2.0, 3.0]) == 10.0
    assert calc_sharpe([0.0, 0.0, 0.0]) == 0.0
    assert calc_sharpe([3.0, 2.0, 1.0]) == 0.0


def test_sharpe_value_and_annualization() -> None:
    # returns [1, 2]: mean 1.5, population std 0.5
    assert calc_sharpe([0.0, 1.0, 3.0], annualization=1.0) == pytest.approx(3.0)
    assert calc_sharpe([0.0, 1.0, 3.0]) == pytest.approx(3.0 * math.sqrt(8760))


def test_accumulate_does_not_mutate_previous() -> None:
    m0 = default_metrics(CAPITAL, day_of(BASE_TS))
    accumulate(m0, CAPITAL, _snap(9_000.0, 3), BASE_TS)
    assert m0.current_equity == CAPITAL
    assert m0.pnl_history == []
    assert m0.trading_days == []
