"""
Key-value storage for governance records.

The ledger treats persistence as an abstract key-value store of JSON
documents. `MemoryStore` is the in-process implementation; it supports
snapshots so an operation can be rolled back in full when any of its
precondition checks fail part-way through.
"""

import json
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

from .exceptions import StorageError
from .logger import get_logger

logger = get_logger(__name__)


def _ensure_key(key: str) -> str:
    if not isinstance(key, str) or not key:
        raise StorageError(f"key must be a non-empty str, got {key!r}")
    return key


class KeyValueStore(ABC):
    """Minimal storage surface required by the governance engine."""

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the document stored under *key*, or None."""

    @abstractmethod
    def put(self, key: str, value: Dict[str, Any]) -> None:
        """Store *value* under *key*, replacing any previous document."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def items(self, prefix: str = "") -> Iterator[Tuple[str, Dict[str, Any]]]:
        ...

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator["KeyValueStore"]:
        """All-or-nothing unit of work."""


class MemoryStore(KeyValueStore):
    """
    In-memory store keeping values as serialized JSON.

    Serializing on write means callers never hold a live reference into the
    store; a record must be written back with `put` for a change to stick.
    """

    @dataclass(frozen=True)
    class Snapshot:
        data: Tuple[Tuple[str, str], ...]

    def __init__(self) -> None:
        self._kv: Dict[str, str] = {}
        self._in_transaction = False

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._kv.get(_ensure_key(key))
        return None if raw is None else json.loads(raw)

    def put(self, key: str, value: Dict[str, Any]) -> None:
        self._kv[_ensure_key(key)] = json.dumps(value, sort_keys=True)

    def exists(self, key: str) -> bool:
        return _ensure_key(key) in self._kv

    def items(self, prefix: str = "") -> Iterator[Tuple[str, Dict[str, Any]]]:
        for k in sorted(self._kv):
            if prefix and not k.startswith(prefix):
                continue
            yield k, json.loads(self._kv[k])

    def __len__(self) -> int:
        return len(self._kv)

    # -------- Snapshots --------

    def snapshot(self) -> "MemoryStore.Snapshot":
        return MemoryStore.Snapshot(tuple(self._kv.items()))

    def restore(self, snap: "MemoryStore.Snapshot") -> None:
        self._kv = dict(snap.data)

    @contextmanager
    def transaction(self) -> Iterator["MemoryStore"]:
        """
        Run a block of reads and writes atomically.

        Any exception escaping the block restores the store to the state it
        had on entry and is re-raised.
        """
        if self._in_transaction:
            raise StorageError("nested transactions are not supported")
        snap = self.snapshot()
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            self.restore(snap)
            logger.debug("Transaction rolled back (%d keys restored)", len(snap.data))
            raise
        finally:
            self._in_transaction = False
