import time, uuid
from typing import List, Optional, Tuple

import structlog

from propdesk.catalog.tiers import phase2_challenge
from propdesk.config.constants import SECONDS_PER_DAY
from propdesk.core.models.challenge import ChallengeSpec
from propdesk.core.models.entry import Entry, default_metrics
from propdesk.core.usecases.accumulate import day_of
from propdesk.events.bus import EventBus, EntryEvent
from propdesk.store.memory import InMemoryStore

log = structlog.get_logger()


def enter_challenge(store: InMemoryStore, challenge_id: str, agent_id: str, agent_name: str,
                    authority: str = "", phase1_entry_id: Optional[str] = None,
                    account_handle: Optional[int] = None, now: Optional[float] = None,
                    bus: Optional[EventBus] = None) -> Optional[Entry]:
    challenge = store.challenges.get(challenge_id)
    if challenge is None or challenge.status != "active":
        return None

    for e in store.entries.list():
        if e.challenge_id == challenge_id and e.agent_id == agent_id and e.status == "active":
            return e

    ts = time.time() if now is None else now
    entry = Entry(
        id=str(uuid.uuid4()),
        challenge_id=challenge_id,
        agent_id=agent_id,
        agent_name=agent_name,
        account_handle=store.next_entry_handle() if account_handle is None else account_handle,
        authority=authority,
        started_at=ts,
        ends_at=ts + challenge.duration_days * SECONDS_PER_DAY,
        phase=challenge.phase,
        phase1_entry_id=phase1_entry_id,
        metrics=default_metrics(challenge.starting_capital, day_of(ts)),
    )
    store.entries.upsert(entry)
    log.info("agent entered challenge", agent_id=agent_id, agent_name=agent_name,
             challenge=challenge.name, phase=challenge.phase, entry_id=entry.id)
    if bus is not None:
        bus.publish(EntryEvent(kind="enrolled", entry_id=entry.id, agent_id=agent_id,
                               challenge_id=challenge_id, phase=entry.phase, ts=ts))
    return entry

def auto_enroll_phase2(store: InMemoryStore, phase1_entry: Entry, phase1: ChallengeSpec,
                       now: Optional[float] = None, bus: Optional[EventBus] = None) -> Optional[Entry]:
    for e in store.entries.list():
        if e.phase == 2 and e.phase1_entry_id == phase1_entry.id:
            return e
    p2 = phase2_challenge(store, phase1)
    if p2 is None:
        log.warning("no phase 2 challenge for tier", starting_capital=phase1.starting_capital)
        return None
    return enter_challenge(store, p2.id, phase1_entry.agent_id, phase1_entry.agent_name,
                           authority=phase1_entry.authority, phase1_entry_id=phase1_entry.id,
                           now=now, bus=bus)

def entries_for_agent(store: InMemoryStore, agent_id: str) -> List[Entry]:
    return store.entries.list(lambda e: e.agent_id == agent_id)

def entries_for_challenge(store: InMemoryStore, challenge_id: str) -> List[Entry]:
    return store.entries.list(lambda e: e.challenge_id == challenge_id)

def has_passed_both_phases(store: InMemoryStore, agent_id: str) -> Optional[Tuple[Entry, Entry]]:
    mine = entries_for_agent(store, agent_id)
    passed1 = {e.id: e for e in mine if e.phase == 1 and e.status == "passed"}
    for p2 in mine:
        if p2.phase == 2 and p2.status == "passed" and p2.phase1_entry_id in passed1:
            return passed1[p2.phase1_entry_id], p2
    return None
