"""
vestledger - Key-Value Storage

The ledger only needs a durable key-value store with get/set-by-key semantics
and ordered prefix scans. This module provides:
- KeyValueStore: the contract every backend implements
- MemoryStore: in-process dictionary backend (tests, embedding hosts)
- JsonFileStore: whole-keyspace JSON file with atomic replace on write
- StoreTransaction / atomic(): all-or-nothing overlay used by every ledger call
"""

from __future__ import annotations

import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Tuple

from vestledger.core.ledger_exceptions import CorruptedStateError, StorageError

logger = logging.getLogger(__name__)

# Marker for keys deleted inside a transaction overlay
_DELETED = object()


class KeyValueStore(ABC):
    """Minimal storage contract consumed by the ledger."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the value stored under key, or None."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value under key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present."""

    @abstractmethod
    def scan(self, prefix: str) -> Iterator[Tuple[str, Any]]:
        """Yield (key, value) pairs whose key starts with prefix, in key order."""

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def apply_batch(self, writes: Mapping[str, Any]) -> None:
        """Apply a batch of writes; a value of None deletes the key."""
        for key, value in writes.items():
            if value is None:
                self.delete(key)
            else:
                self.set(key, value)


class MemoryStore(KeyValueStore):
    """Dictionary-backed store. Values are copied in and out to avoid aliasing."""

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(data) if data else {}

    def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        if value is None:
            raise StorageError(f"Cannot store None under {key}; use delete()")
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def scan(self, prefix: str) -> Iterator[Tuple[str, Any]]:
        for key in sorted(k for k in self._data if k.startswith(prefix)):
            yield key, copy.deepcopy(self._data[key])

    def snapshot(self) -> Dict[str, Any]:
        """Return a deep copy of the whole keyspace."""
        return copy.deepcopy(self._data)

    def __len__(self) -> int:
        return len(self._data)


class JsonFileStore(MemoryStore):
    """
    Store persisted as one JSON document.

    Every batch is written to ``<path>.tmp`` and moved into place with
    os.replace, so the file on disk always holds a complete keyspace.
    """

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path
        self._load()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            logger.debug(
                "Ledger state file not found, starting empty",
                extra={"event": "storage.new", "path": self.path},
            )
            return
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise CorruptedStateError(
                f"Ledger state file {self.path} is not valid JSON",
                details={"path": self.path},
            ) from exc
        except OSError as exc:
            raise StorageError(f"Cannot read ledger state file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise CorruptedStateError(
                f"Ledger state file {self.path} must hold a JSON object",
                details={"path": self.path},
            )
        self._data = data
        logger.info(
            "Ledger state loaded",
            extra={"event": "storage.loaded", "path": self.path, "keys": len(data)},
        )

    def _atomic_write_json(self, payload: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageError(f"Cannot write ledger state file {self.path}: {exc}") from exc

    def set(self, key: str, value: Any) -> None:
        self.apply_batch({key: value})

    def delete(self, key: str) -> None:
        self.apply_batch({key: None})

    def apply_batch(self, writes: Mapping[str, Any]) -> None:
        updated = copy.deepcopy(self._data)
        for key, value in writes.items():
            if value is None:
                updated.pop(key, None)
            else:
                updated[key] = copy.deepcopy(value)
        self._atomic_write_json(updated)
        self._data = updated


class StoreTransaction(KeyValueStore):
    """
    Write overlay on top of a base store.

    Reads see the overlay first (read-your-writes within one call). Nothing
    reaches the base store until commit(), which hands the whole batch to
    base.apply_batch().
    """

    def __init__(self, base: KeyValueStore) -> None:
        self.base = base
        self._writes: Dict[str, Any] = {}
        self.committed = False

    def get(self, key: str) -> Any | None:
        if key in self._writes:
            value = self._writes[key]
            return None if value is _DELETED else copy.deepcopy(value)
        return self.base.get(key)

    def set(self, key: str, value: Any) -> None:
        if value is None:
            raise StorageError(f"Cannot store None under {key}; use delete()")
        self._writes[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._writes[key] = _DELETED

    def scan(self, prefix: str) -> Iterator[Tuple[str, Any]]:
        merged: Dict[str, Any] = dict(self.base.scan(prefix))
        for key, value in self._writes.items():
            if not key.startswith(prefix):
                continue
            if value is _DELETED:
                merged.pop(key, None)
            else:
                merged[key] = copy.deepcopy(value)
        for key in sorted(merged):
            yield key, merged[key]

    @property
    def pending_writes(self) -> int:
        return len(self._writes)

    def commit(self) -> None:
        if self.committed:
            raise StorageError("Transaction already committed")
        batch = {
            key: (None if value is _DELETED else value) for key, value in self._writes.items()
        }
        if batch:
            self.base.apply_batch(batch)
        self.committed = True
        self._writes = {}


@contextmanager
def atomic(store: KeyValueStore) -> Iterator[StoreTransaction]:
    """
    Run a block of ledger work all-or-nothing.

    Usage:
        with atomic(store) as txn:
            txn.set("balance:alice", "10")
    """
    txn = StoreTransaction(store)
    try:
        yield txn
    except Exception:
        logger.debug(
            "Discarding uncommitted ledger writes",
            extra={"event": "storage.rollback", "writes": txn.pending_writes},
        )
        raise
    txn.commit()
