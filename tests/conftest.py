"""Shared fixtures: a seeded store, scripted venue snapshots and attestation sinks."""

from __future__ import annotations

from typing import Dict, List

import pytest

from propdesk.catalog.tiers import seed_challenges
from propdesk.core.models.entry import Entry
from propdesk.core.usecases.enroll import enter_challenge
from propdesk.store.memory import InMemoryStore
from propdesk.venue.types import AccountSnapshot

# 2026-01-01 12:00 UTC, midday so +/- a few hours never crosses a date
BASE_TS = 1767225600.0 + 12 * 3600
DAY = 86400.0


class ScriptedSource:
    """Returns queued snapshots per account handle; the last one repeats once the queue drains."""

    def __init__(self) -> None:
        self.script: Dict[int, List[AccountSnapshot]] = {}
        self.failing: set[int] = set()
        self.calls: List[int] = []

    def push(self, handle: int, equity: float, trade_count: int = 0, **kw) -> None:
        self.script.setdefault(handle, []).append(AccountSnapshot(equity=equity, trade_count=trade_count, **kw))

    async def get_account_snapshot(self, handle: int) -> AccountSnapshot:
        self.calls.append(handle)
        if handle in self.failing:
            raise ConnectionError(f"venue unavailable for {handle}")
        queue = self.script.get(handle)
        if not queue:
            raise LookupError(f"no snapshot scripted for {handle}")
        return queue.pop(0) if len(queue) > 1 else queue[0]


class RecordingSink:
    def __init__(self) -> None:
        self.memos: List[dict] = []

    async def store(self, memo: dict) -> str:
        self.memos.append(memo)
        return f"sig_{len(self.memos)}"


class FailingSink:
    def __init__(self) -> None:
        self.attempts = 0

    async def store(self, memo: dict) -> str:
        self.attempts += 1
        raise RuntimeError("ledger unavailable")


@pytest.fixture
def store() -> InMemoryStore:
    s = InMemoryStore()
    seed_challenges(s)
    return s


@pytest.fixture
def source() -> ScriptedSource:
    return ScriptedSource()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> FailingSink:
    return FailingSink()


@pytest.fixture
def enroll(store):
    def _enroll(agent_id: str = "agent-1", challenge_id: str = "10k-p1", now: float = BASE_TS, **kw) -> Entry:
        e = enter_challenge(store, challenge_id, agent_id, agent_id.upper(), now=now, **kw)
        assert e is not None
        return e
    return _enroll


@pytest.fixture
def passed_agent(store, enroll):
    """Agent with a passed phase 1 entry and a passed, linked phase 2 entry for the given tier."""
    def _make(agent_id: str = "agent-1", capital_k: int = 10):
        p1 = enroll(agent_id, f"{capital_k}k-p1")
        p1.status = "passed"
        store.entries.upsert(p1)
        p2 = enroll(agent_id, f"{capital_k}k-p2", phase1_entry_id=p1.id)
        p2.status = "passed"
        store.entries.upsert(p2)
        return p1, p2
    return _make

