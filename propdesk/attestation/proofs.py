import hashlib, json
from typing import Any, Dict

from propdesk.core.models.entry import Entry
from propdesk.core.models.funded import FundedAccount

PROTOCOL = "propdesk"
VERSION = "1.0"


def canonical_json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)

def hash_payload(payload: Dict[str, Any]) -> str:
    return hashlib.sha256(canonical_json(payload).encode()).hexdigest()

def build_memo(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Compact record handed to the ledger; `hash` commits to the full payload."""
    return {
        "protocol": PROTOCOL,
        "version": VERSION,
        "hash": hash_payload(payload),
        "type": payload.get("type"),
        "agent": payload.get("agent_id"),
        "result": "PASS" if payload.get("passed") else "FAIL",
        "pnl": f"{float(payload.get('pnl_percent') or 0.0):.2f}",
        "dd": f"{float(payload.get('max_drawdown') or 0.0):.2f}",
        "ts": payload.get("timestamp"),
    }

def challenge_result(entry: Entry, passed: bool, now: float) -> Dict[str, Any]:
    m = entry.metrics
    return {
        "type": "challenge_result",
        "agent_id": entry.agent_id,
        "challenge_id": entry.challenge_id,
        "entry_id": entry.id,
        "phase": entry.phase,
        "pnl_percent": m.current_pnl_percent,
        "max_drawdown": m.max_drawdown_percent,
        "max_daily_loss": m.max_daily_loss_percent,
        "trading_days": len(m.trading_days),
        "sharpe_ratio": m.sharpe_ratio,
        "total_trades": m.total_trades,
        "passed": passed,
        "timestamp": int(now * 1000),
    }

def funded_status(account: FundedAccount, now: float) -> Dict[str, Any]:
    return {
        "type": "funded_status",
        "agent_id": account.agent_id,
        "account_id": account.id,
        "allocation": account.allocation,
        "passed": True,
        "pnl_percent": 0.0,
        "max_drawdown": 0.0,
        "timestamp": int(now * 1000),
    }
