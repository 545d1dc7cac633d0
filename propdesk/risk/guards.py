def within_limits(daily_loss_pct: float, max_daily_loss: float,
                  total_loss_pct: float, max_total_loss: float):
    # instantaneous daily loss, not the running max
    if daily_loss_pct > max_daily_loss: return (False, "DAILY_LOSS")
    if total_loss_pct > max_total_loss: return (False, "TOTAL_LOSS")
    return (True, "")

def target_met(pnl_pct: float, profit_target: float, trading_days: int, min_trading_days: int) -> bool:
    return pnl_pct >= profit_target and trading_days >= min_trading_days

def total_loss_pct(allocation: float, equity: float) -> float:
    if allocation <= 0: return 0.0
    return (allocation - equity) / allocation * 100.0
