import asyncio, random, time
from typing import Any, Dict, List, Optional

import httpx

from .types import AccountSnapshot, Position

NULL_AUTHORITY = "11111111111111111111111111111111"


def _to_float(value: Any) -> float:
    if value in (None, ""):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0

def _extract_positions_shape(account_payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    root = account_payload.get("account", account_payload)
    pos = root.get("positions") or root.get("openPositions") or []
    return pos if isinstance(pos, list) else []

def parse_snapshot(payload: Dict[str, Any]) -> AccountSnapshot:
    """Normalize the venue's account payload; tolerates the common field spellings."""
    root = payload.get("account", payload)
    positions = [
        Position(
            market=p.get("symbol") or p.get("market") or "?",
            size=_to_float(p.get("position") or p.get("size") or p.get("qty")),
            unrealized_pnl=_to_float(p.get("unrealized_pnl") or p.get("uPnL") or p.get("unrealizedPnl")),
        )
        for p in _extract_positions_shape(payload)
    ]
    upnl = root.get("unrealized_pnl")
    if upnl is None:
        upnl = sum(p.unrealized_pnl for p in positions)
    trades = root.get("total_trades") or root.get("trade_count") or root.get("tradeCount") or 0
    return AccountSnapshot(
        equity=_to_float(root.get("total_asset_value") or root.get("equity") or root.get("collateral")),
        unrealized_pnl=_to_float(upnl),
        open_positions=positions,
        trade_count=int(trades),
    )


class VenueClient:
    """Thin REST adapter for the execution venue: account reads and sub-account delegation."""

    def __init__(self, base_url: str, timeout: float = 15.0, rps: float = 5.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._min_interval = 1.0 / max(0.1, rps)
        self._last_req_ts = 0.0

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def _rate_limit(self):
        wait = self._min_interval - (time.time() - self._last_req_ts)
        if wait > 0:
            await asyncio.sleep(wait)
        self._last_req_ts = time.time()

    async def _with_backoff(self, coro_factory, *, max_tries: int = 3, base_delay: float = 0.5):
        """Retry on 429 with exponential backoff; other errors propagate."""
        attempt = 0
        while True:
            try:
                await self._rate_limit()
                return await coro_factory()
            except httpx.HTTPStatusError as e:
                if e.response.status_code != 429 or attempt >= max_tries - 1:
                    raise
                delay = base_delay * (2 ** attempt) + random.uniform(0, 0.25)
                await asyncio.sleep(delay)
                attempt += 1

    async def get_account_by_index(self, index: int) -> Dict[str, Any]:
        async def _get():
            async with self._client() as h:
                r = await h.get("/api/v1/account", params={"by": "index", "value": str(index)})
                r.raise_for_status()
                return r.json()
        return await self._with_backoff(_get)

    async def get_account_snapshot(self, handle: int) -> AccountSnapshot:
        return parse_snapshot(await self.get_account_by_index(handle))

    async def create_subaccount(self, handle: int, name: str) -> str:
        async def _post():
            async with self._client() as h:
                r = await h.post("/api/v1/subaccounts", json={"index": handle, "name": name})
                if r.status_code == 409:
                    # already exists; resolve its pubkey instead
                    r = await h.get(f"/api/v1/subaccounts/{handle}")
                r.raise_for_status()
                return r.json()
        data = await self._with_backoff(_post)
        return str(data.get("pubkey") or data.get("address"))

    async def delegate_subaccount(self, handle: int, authority: str) -> str:
        async def _post():
            async with self._client() as h:
                r = await h.post(f"/api/v1/subaccounts/{handle}/delegate", json={"delegate": authority})
                r.raise_for_status()
                return r.json()
        data = await self._with_backoff(_post)
        return str(data.get("tx") or data.get("signature") or "")
