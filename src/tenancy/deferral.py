"""Queue of entities that asked for scoping before any tenant was active.

Entries remember the scope policy they requested so that replaying them
installs the same kind of scope an immediate request would have.
"""

from dataclasses import dataclass
from typing import Any, Iterator, List

from .scopes import ScopePolicy


@dataclass(frozen=True)
class DeferredEntry:
    """An entity class or instance waiting for tenants to be registered."""

    target: Any
    policy: ScopePolicy

    @property
    def is_instance(self) -> bool:
        return not isinstance(self.target, type)


class DeferralQueue:
    """FIFO of deferred entries, drained once per flush."""

    def __init__(self):
        self._entries: List[DeferredEntry] = []

    def push(self, target: Any, policy: ScopePolicy) -> DeferredEntry:
        entry = DeferredEntry(target=target, policy=policy)
        self._entries.append(entry)
        return entry

    def drain(self) -> List[DeferredEntry]:
        """Take every queued entry and leave the queue empty."""
        entries, self._entries = self._entries, []
        return entries

    def __iter__(self) -> Iterator[DeferredEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)
