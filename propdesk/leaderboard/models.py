from pydantic import BaseModel
from typing import Optional

class LeaderboardRow(BaseModel):
    rank: int
    agent_id: str
    agent_name: str
    pnl_percent: float
    max_drawdown_percent: float
    sharpe_ratio: float
    status: str

class EntryView(BaseModel):
    entry_id: str
    agent_id: str
    challenge_id: str
    phase: int
    status: str
    started_at: float
    ends_at: float
    pnl_percent: float
    current_equity: float
    max_drawdown_percent: float
    daily_loss_percent: float
    max_daily_loss_percent: float
    sharpe_ratio: float
    win_rate: float
    total_trades: int
    trading_days: int
    phase1_entry_id: Optional[str] = None
    proof_ref: Optional[str] = None
