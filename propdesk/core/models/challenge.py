from pydantic import BaseModel, ConfigDict

from .enums import ChallengePhase, ChallengeStatus


class ChallengeSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    starting_capital: float
    duration_days: int
    profit_target: float          # percent
    max_daily_loss: float         # percent
    max_total_loss: float         # percent
    min_trading_days: int
    phase: ChallengePhase
    challenge_fee: float = 0.0
    market: str = "SOL-PERP"
    status: ChallengeStatus = "active"
    created_at: float = 0.0
