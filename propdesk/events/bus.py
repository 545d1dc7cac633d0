from typing import Any, Callable, List, Literal, Optional

import structlog
from pydantic import BaseModel

log = structlog.get_logger()

EventKind = Literal["enrolled", "passed", "failed", "expired"]


class EntryEvent(BaseModel):
    kind: EventKind
    entry_id: str
    agent_id: str
    challenge_id: str
    phase: int
    reason: str = ""
    proof_ref: Optional[str] = None
    ts: float


class EventBus:
    """Simple in-process pub/sub bus for entry lifecycle events.

    - subscribe(handler): registers a callable that takes an EntryEvent
    - publish(event): pushes a single event to all subscribers
    """

    def __init__(self) -> None:
        self._subscribers: List[Callable[[EntryEvent], Any]] = []

    def subscribe(self, handler: Callable[[EntryEvent], Any]) -> None:
        self._subscribers.append(handler)

    def publish(self, event: EntryEvent) -> None:
        for handler in list(self._subscribers):
            try:
                handler(event)
            except Exception as e:
                # a broken subscriber must not undo or block the transition
                log.warning("event handler failed", kind=event.kind, entry_id=event.entry_id, err=str(e))
