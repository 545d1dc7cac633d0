from typing import Optional
from pydantic import BaseModel

from .enums import VaultStatus


class VaultConfig(BaseModel):
    name: str
    delegate_authority: str
    agent_profit_share_bps: Optional[int] = None
    max_allocation: float = 0.0


class Vault(BaseModel):
    pubkey: str
    name: str
    delegate_authority: str
    account_handle: int
    total_deposits: float = 0.0
    current_equity: float = 0.0
    agent_profit_share_bps: int = 9000
    status: VaultStatus = "active"
    created_at: float
    last_payout_at: Optional[float] = None


class ProfitSplit(BaseModel):
    total_profit: float
    agent_profit: float
    protocol_profit: float
