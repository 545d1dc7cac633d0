from pydantic import BaseModel, Field


class Position(BaseModel):
    market: str = "?"
    size: float = 0.0
    unrealized_pnl: float = 0.0


class AccountSnapshot(BaseModel):
    equity: float
    unrealized_pnl: float = 0.0
    open_positions: list[Position] = Field(default_factory=list)
    trade_count: int = 0
    simulated: bool = False
