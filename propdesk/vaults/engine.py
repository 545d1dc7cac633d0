"""Delegated-trading vaults: agent/protocol profit split, bi-weekly payouts, scale-up."""
import asyncio, math, time
from typing import Any, Callable, Dict, List, Optional, Protocol

import structlog

from propdesk.core.models.vault import ProfitSplit, Vault, VaultConfig
from propdesk.store.memory import InMemoryStore
from propdesk.venue.rest import NULL_AUTHORITY
from propdesk.venue.types import AccountSnapshot, Position

log = structlog.get_logger()

DEFAULT_AGENT_PROFIT_SHARE_BPS = 9000
PAYOUT_INTERVAL_SEC = 14 * 24 * 3600
SCALE_UP_PERCENT = 25
SCALE_UP_REQUIRED_MONTHS = 2
SCALE_UP_MIN_PROFIT_PERCENT = 10


class VaultVenue(Protocol):
    async def get_account_snapshot(self, handle: int) -> AccountSnapshot: ...
    async def create_subaccount(self, handle: int, name: str) -> str: ...
    async def delegate_subaccount(self, handle: int, authority: str) -> str: ...


def check_scale_up(current_allocation: float, consecutive_profitable_months: int,
                   consecutive_profit_percent: float) -> Optional[int]:
    """New allocation after a scale-up, or None when the rule is not met."""
    if (consecutive_profitable_months >= SCALE_UP_REQUIRED_MONTHS
            and consecutive_profit_percent >= SCALE_UP_MIN_PROFIT_PERCENT):
        # .5 rounds up
        return math.floor(current_allocation * (1 + SCALE_UP_PERCENT / 100) + 0.5)
    return None

def payout_due(vault: Vault, now: float) -> bool:
    last = vault.last_payout_at if vault.last_payout_at is not None else vault.created_at
    return vault.status == "active" and now - last >= PAYOUT_INTERVAL_SEC


class VaultEngine:
    def __init__(self, store: InMemoryStore, venue: VaultVenue, *,
                 default_share_bps: int = DEFAULT_AGENT_PROFIT_SHARE_BPS,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.venue = venue
        self.default_share_bps = default_share_bps
        self.clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, pubkey: str) -> asyncio.Lock:
        return self._locks.setdefault(pubkey, asyncio.Lock())

    async def create_vault(self, config: VaultConfig) -> Vault:
        handle = self.store.next_vault_handle()
        pubkey = await self.venue.create_subaccount(handle, f"vault-{config.name}")
        await self.venue.delegate_subaccount(handle, config.delegate_authority)
        vault = Vault(
            pubkey=pubkey,
            name=config.name,
            delegate_authority=config.delegate_authority,
            account_handle=handle,
            agent_profit_share_bps=config.agent_profit_share_bps or self.default_share_bps,
            created_at=self.clock(),
        )
        self.store.vaults.upsert(vault)
        share = vault.agent_profit_share_bps / 100
        log.info("vault created", name=vault.name, pubkey=pubkey, split=f"{share:g}/{100 - share:g}")
        return vault

    def get_vault(self, pubkey: str) -> Optional[Vault]:
        return self.store.vaults.get(pubkey)

    def list_vaults(self) -> List[Vault]:
        return self.store.vaults.list()

    def vaults_for_agent(self, delegate: str) -> List[Vault]:
        return self.store.vaults.list(lambda v: v.delegate_authority == delegate)

    def deposit(self, pubkey: str, amount: float) -> Optional[Vault]:
        vault = self.store.vaults.get(pubkey)
        if vault is None:
            return None
        vault.total_deposits += amount
        vault.current_equity += amount
        self.store.vaults.upsert(vault)
        return vault

    def record_payout(self, pubkey: str) -> Optional[Vault]:
        vault = self.store.vaults.get(pubkey)
        if vault is None:
            return None
        vault.last_payout_at = self.clock()
        self.store.vaults.upsert(vault)
        return vault

    async def refresh(self, pubkey: str) -> Optional[Vault]:
        vault = self.store.vaults.get(pubkey)
        if vault is None:
            return None
        try:
            vault.current_equity = (await self.venue.get_account_snapshot(vault.account_handle)).equity
            self.store.vaults.upsert(vault)
        except Exception as e:
            log.warning("vault equity read failed", pubkey=pubkey, err=str(e))
        return vault

    async def calculate_profit_split(self, pubkey: str) -> Optional[ProfitSplit]:
        if self.store.vaults.get(pubkey) is None:
            return None
        async with self._lock(pubkey):
            vault = await self.refresh(pubkey)
            if vault is None:
                return None
            total = vault.current_equity - vault.total_deposits
            if total <= 0:
                return ProfitSplit(total_profit=total, agent_profit=0.0, protocol_profit=0.0)
            share = vault.agent_profit_share_bps / 10000
            return ProfitSplit(total_profit=total, agent_profit=total * share, protocol_profit=total * (1 - share))

    async def freeze_vault(self, pubkey: str) -> bool:
        vault = self.store.vaults.get(pubkey)
        if vault is None:
            return False
        try:
            await self.venue.delegate_subaccount(vault.account_handle, NULL_AUTHORITY)
        except Exception as e:
            log.error("vault freeze failed", pubkey=pubkey, err=str(e))
            return False
        vault.status = "frozen"
        self.store.vaults.upsert(vault)
        self._locks.pop(pubkey, None)
        log.info("vault frozen", pubkey=pubkey)
        return True

    async def vault_performance(self, pubkey: str) -> Optional[Dict[str, Any]]:
        vault = self.store.vaults.get(pubkey)
        if vault is None:
            return None
        positions: List[Position] = []
        try:
            positions = (await self.venue.get_account_snapshot(vault.account_handle)).open_positions
        except Exception as e:
            log.warning("vault positions read failed", pubkey=pubkey, err=str(e))
        split = await self.calculate_profit_split(pubkey)
        return {"vault": vault, "positions": positions, "profit_split": split,
                "payout_due": payout_due(vault, self.clock())}
