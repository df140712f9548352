"""Per-subtree mutexes for structural repository mutations.

A lock key is ``(owner_id, root_folder_id)`` where ``root_folder_id`` is the
top-level ancestor of the folder being touched, or ``None`` for the owner's
root namespace. Operations spanning two subtrees (reparenting) take several
keys; keys are always acquired in sorted order so two such operations cannot
deadlock.

Locks live in process memory. Deployments running several worker processes
additionally rely on the ``SELECT ... FOR UPDATE`` row locks taken by the
repository service on PostgreSQL.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

LockKey = tuple[int, Optional[int]]


@dataclass
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


def _sort_key(key: LockKey) -> tuple[int, int]:
    owner_id, root_id = key
    return owner_id, -1 if root_id is None else root_id


class SubtreeLocks:
    """Registry of reference-counted locks, created on demand and dropped when idle."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[LockKey, _Entry] = {}

    @contextmanager
    def hold(self, owner_id: int, *root_ids: Optional[int]) -> Iterator[None]:
        """Hold the locks for every ``(owner_id, root_id)`` pair for the block's duration."""
        keys = sorted({(owner_id, root_id) for root_id in root_ids}, key=_sort_key)
        acquired: list[LockKey] = []
        try:
            for key in keys:
                entry = self._checkout(key)
                try:
                    entry.lock.acquire()
                except BaseException:
                    self._drop(key)
                    raise
                acquired.append(key)
            logger.debug("Subtree locks acquired: %s", keys)
            yield
        finally:
            for key in reversed(acquired):
                self._release(key)

    def held_keys(self) -> list[LockKey]:
        """Keys that currently have holders or waiters."""
        with self._guard:
            return list(self._entries)

    def _checkout(self, key: LockKey) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.holders += 1
            return entry

    def _release(self, key: LockKey) -> None:
        with self._guard:
            self._entries[key].lock.release()
        self._drop(key)

    def _drop(self, key: LockKey) -> None:
        with self._guard:
            entry = self._entries[key]
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]


# Process-wide registry used by RepositoryTreeService.
subtree_locks = SubtreeLocks()
