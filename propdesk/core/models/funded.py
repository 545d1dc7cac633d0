from typing import Optional
from pydantic import BaseModel

from .enums import FundedStatus


class FundedAccount(BaseModel):
    id: str
    agent_id: str
    agent_name: str
    challenge_entry_id: str
    verification_entry_id: str
    allocation: float
    status: FundedStatus = "pending"
    applied_at: float
    activated_at: Optional[float] = None
    current_equity: Optional[float] = None
    total_withdrawn: float = 0.0
    protocol_fee_bps: int = 1000
    max_daily_loss: float = 5.0
    max_total_loss: float = 10.0
    account_handle: Optional[int] = None
    proof_ref: Optional[str] = None


class LossCheck(BaseModel):
    breached: bool
    total_loss_percent: float = 0.0
    reason: Optional[str] = None


class Withdrawal(BaseModel):
    reference: str
    allocation: float
    equity: float
    profit: float
    fee: float
    payout: float
    fee_bps: int


class PerformanceSummary(BaseModel):
    allocation: float
    current_equity: float
    total_profit: float
    available_to_withdraw: float
    protocol_fee_rate: float
    agent_share_rate: float
    total_withdrawn: float
