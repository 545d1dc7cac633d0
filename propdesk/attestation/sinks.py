from typing import Any, Dict, Optional, Protocol

import httpx
import structlog

from .proofs import build_memo

log = structlog.get_logger()


class AttestationSink(Protocol):
    async def store(self, memo: Dict[str, Any]) -> str: ...


class HttpAttestationSink:
    """Posts memos to a ledger gateway; expects {"signature": ...} or {"reference": ...} back."""

    def __init__(self, url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def store(self, memo: Dict[str, Any]) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as h:
            r = await h.post(self.url, json=memo)
            r.raise_for_status()
            body = r.json()
        ref = body.get("signature") or body.get("reference")
        if not ref:
            raise ValueError("attestation gateway returned no reference")
        return str(ref)


class LocalAttestationSink:
    """Keeps memos in memory; used when no ledger gateway is configured."""

    def __init__(self) -> None:
        self.memos: list[Dict[str, Any]] = []

    async def store(self, memo: Dict[str, Any]) -> str:
        self.memos.append(memo)
        return f"local_{memo['hash'][:16]}"


async def attest(sink: AttestationSink, payload: Dict[str, Any], now: float) -> str:
    """Store the payload's memo; on any sink failure return a local placeholder reference."""
    memo = build_memo(payload)
    try:
        ref = await sink.store(memo)
        log.info("attestation stored", type=memo["type"], agent=memo["agent"], ref=ref)
        return ref
    except Exception as e:
        log.warning("attestation failed, using placeholder", type=memo["type"], agent=memo["agent"], err=str(e))
        return f"offline_proof_{int(now * 1000)}"
