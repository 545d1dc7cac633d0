from typing import Callable, Dict, Generic, List, Optional, Protocol, TypeVar

from pydantic import BaseModel

from propdesk.core.models.challenge import ChallengeSpec
from propdesk.core.models.entry import Entry
from propdesk.core.models.funded import FundedAccount
from propdesk.core.models.vault import Vault

T = TypeVar("T", bound=BaseModel)


class Repository(Protocol[T]):
    def get(self, key: str) -> Optional[T]: ...
    def list(self, where: Optional[Callable[[T], bool]] = None) -> List[T]: ...
    def upsert(self, item: T) -> T: ...


class MemoryRepository(Generic[T]):
    """Keyed collection preserving insertion order."""

    def __init__(self, key: Callable[[T], str]) -> None:
        self._key = key
        self._items: Dict[str, T] = {}

    def get(self, key: str) -> Optional[T]:
        return self._items.get(key)

    def list(self, where: Optional[Callable[[T], bool]] = None) -> List[T]:
        items = list(self._items.values())
        if where is None:
            return items
        return [i for i in items if where(i)]

    def upsert(self, item: T) -> T:
        self._items[self._key(item)] = item
        return item

    def __len__(self) -> int:
        return len(self._items)


class InMemoryStore:
    """Process-wide authoritative store; swap the repositories for a database-backed one."""

    def __init__(self, first_entry_handle: int = 0, first_vault_handle: int = 1001) -> None:
        self.challenges: MemoryRepository[ChallengeSpec] = MemoryRepository(lambda c: c.id)
        self.entries: MemoryRepository[Entry] = MemoryRepository(lambda e: e.id)
        self.funded: MemoryRepository[FundedAccount] = MemoryRepository(lambda f: f.id)
        self.vaults: MemoryRepository[Vault] = MemoryRepository(lambda v: v.pubkey)
        self._next_entry_handle = first_entry_handle
        self._next_vault_handle = first_vault_handle

    def next_entry_handle(self) -> int:
        h = self._next_entry_handle
        self._next_entry_handle += 1
        return h

    def next_vault_handle(self) -> int:
        h = self._next_vault_handle
        self._next_vault_handle += 1
        return h
