# config environment
import os
from typing import Optional
from dotenv import load_dotenv
from pydantic import BaseModel

class Cfg(BaseModel):
    venue_base_url: str
    attestation_url: Optional[str] = None
    eval_interval_sec: float = 5.0
    sharpe_annualization: float = 8760.0
    fallback_deviation: float = 0.5
    pnl_history_cap: int = 10_000
    funded_allocation_multiplier: float = 5.0
    funded_protocol_fee_bps: int = 1000
    funded_max_daily_loss: float = 5.0
    funded_max_total_loss: float = 10.0
    vault_agent_share_bps: int = 9000
    catalog_path: Optional[str] = None
    log_level: str = "INFO"

def load_cfg(env_file: str) -> Cfg:
    load_dotenv(env_file)
    return Cfg(
        venue_base_url=os.environ["VENUE_BASE_URL"],
        attestation_url=os.environ.get("ATTESTATION_URL") or None,
        eval_interval_sec=float(os.environ.get("EVAL_INTERVAL_SEC","5")),
        sharpe_annualization=float(os.environ.get("SHARPE_ANNUALIZATION","8760")),
        fallback_deviation=float(os.environ.get("FALLBACK_DEVIATION","0.5")),
        pnl_history_cap=int(os.environ.get("PNL_HISTORY_CAP","10000")),
        funded_allocation_multiplier=float(os.environ.get("FUNDED_ALLOCATION_MULTIPLIER","5")),
        funded_protocol_fee_bps=int(os.environ.get("FUNDED_PROTOCOL_FEE_BPS","1000")),
        funded_max_daily_loss=float(os.environ.get("FUNDED_MAX_DAILY_LOSS","5")),
        funded_max_total_loss=float(os.environ.get("FUNDED_MAX_TOTAL_LOSS","10")),
        vault_agent_share_bps=int(os.environ.get("VAULT_AGENT_SHARE_BPS","9000")),
        catalog_path=os.environ.get("CATALOG_PATH") or None,
        log_level=os.environ.get("LOG_LEVEL","INFO"),
    )
