from typing import Optional
from pydantic import BaseModel, Field

from .enums import ChallengePhase, EntryStatus


class PerformanceMetrics(BaseModel):
    current_pnl: float = 0.0
    current_pnl_percent: float = 0.0
    peak_equity: float = 0.0
    current_equity: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    daily_loss: float = 0.0
    daily_loss_percent: float = 0.0
    daily_loss_date: str = ""
    max_daily_loss: float = 0.0
    max_daily_loss_percent: float = 0.0
    sharpe_ratio: float = 0.0
    total_trades: int = 0
    win_rate: float = 0.0
    pnl_history: list[float] = Field(default_factory=list)
    trading_days: list[str] = Field(default_factory=list)


def default_metrics(starting_capital: float, today: str) -> PerformanceMetrics:
    return PerformanceMetrics(
        peak_equity=starting_capital,
        current_equity=starting_capital,
        daily_loss_date=today,
    )


class Entry(BaseModel):
    id: str
    challenge_id: str
    agent_id: str
    agent_name: str
    account_handle: int
    authority: str = ""
    started_at: float
    ends_at: float
    status: EntryStatus = "active"
    phase: ChallengePhase
    phase1_entry_id: Optional[str] = None
    metrics: PerformanceMetrics
    proof_ref: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"
