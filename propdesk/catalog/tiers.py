import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog
import yaml

from propdesk.config.constants import (
    ACCOUNT_TIERS, PHASE_CONFIG, MAX_DAILY_LOSS_PCT, MAX_TOTAL_LOSS_PCT,
    MIN_TRADING_DAYS, DEFAULT_MARKET,
)
from propdesk.core.models.challenge import ChallengeSpec
from propdesk.store.memory import InMemoryStore

log = structlog.get_logger()


class CatalogError(ValueError):
    pass


PHASE_KEYS = {"label", "profit_target", "duration_days"}


def challenge_id(capital: float, phase: int) -> str:
    return f"{int(capital) // 1000}k-p{phase}"

def build_challenges(tiers: Iterable[Tuple[float, float]] = ACCOUNT_TIERS,
                     phases: Optional[Dict[int, Dict[str, Any]]] = None,
                     max_daily_loss: float = MAX_DAILY_LOSS_PCT,
                     max_total_loss: float = MAX_TOTAL_LOSS_PCT,
                     min_trading_days: int = MIN_TRADING_DAYS,
                     market: str = DEFAULT_MARKET,
                     now: Optional[float] = None) -> List[ChallengeSpec]:
    phases = phases or PHASE_CONFIG
    ts = time.time() if now is None else now
    out: List[ChallengeSpec] = []
    for capital, fee in tiers:
        for phase in (1, 2):
            cfg = phases[phase]
            k = f"${int(capital) // 1000}k"
            out.append(ChallengeSpec(
                id=challenge_id(capital, phase),
                name=f"{k} {cfg['label']}",
                description=(f"Phase {phase} {cfg['label']}: {k} capital, {cfg['profit_target']:g}% profit target, "
                             f"{max_daily_loss:g}% max daily loss, {max_total_loss:g}% max total loss, "
                             f"min {min_trading_days} trading days, {cfg['duration_days']}-day window. "
                             f"Fee: ${fee:g} (refundable on pass)."),
                starting_capital=float(capital),
                duration_days=int(cfg["duration_days"]),
                profit_target=float(cfg["profit_target"]),
                max_daily_loss=float(max_daily_loss),
                max_total_loss=float(max_total_loss),
                min_trading_days=int(min_trading_days),
                phase=phase,
                challenge_fee=float(fee),
                market=market,
                status="active",
                created_at=ts,
            ))
    return out

def load_catalog(path: str, now: Optional[float] = None) -> List[ChallengeSpec]:
    """Read tiers/phases/limits from a YAML file shaped like configs/catalog.yml."""
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if not isinstance(raw, dict):
        raise CatalogError(f"catalog must be a mapping: {path}")
    limits = raw.get("limits", {}) or {}
    tiers = [(float(t["capital"]), float(t.get("fee", 0))) for t in raw.get("tiers", [])] or ACCOUNT_TIERS
    phases = {int(k): v for k, v in (raw.get("phases") or {}).items()} or None
    if phases is not None and set(phases) != {1, 2}:
        raise CatalogError("catalog phases must define exactly phase 1 and phase 2")
    for n, p in (phases or {}).items():
        missing = PHASE_KEYS - set(p) if isinstance(p, dict) else PHASE_KEYS
        if missing:
            raise CatalogError(f"catalog phase {n} is missing {sorted(missing)}")
    return build_challenges(
        tiers, phases,
        max_daily_loss=float(limits.get("max_daily_loss", MAX_DAILY_LOSS_PCT)),
        max_total_loss=float(limits.get("max_total_loss", MAX_TOTAL_LOSS_PCT)),
        min_trading_days=int(limits.get("min_trading_days", MIN_TRADING_DAYS)),
        market=str(raw.get("market", DEFAULT_MARKET)),
        now=now,
    )

def seed_challenges(store: InMemoryStore, challenges: Optional[List[ChallengeSpec]] = None) -> int:
    challenges = challenges if challenges is not None else build_challenges()
    for c in challenges:
        store.challenges.upsert(c)
    log.info("challenges seeded", count=len(challenges))
    return len(challenges)

def phase2_challenge(store: InMemoryStore, phase1: ChallengeSpec) -> Optional[ChallengeSpec]:
    for c in store.challenges.list():
        if c.phase == 2 and c.starting_capital == phase1.starting_capital and c.status == "active":
            return c
    return None
