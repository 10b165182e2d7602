"""
In-memory implementation of key-value storage.

Keeps everything in a dict guarded by a lock. Nothing survives the process,
so this backend is meant for tests and local experiments.
"""
import threading
from typing import Dict, List, Optional, Tuple

from briefly.kv_store import KVStore


class InMemoryKVStore(KVStore):
    """Key-value store backed by a plain dict."""

    def __init__(self):
        self._data: Dict[str, Tuple[bytes, str]] = {}
        self._counter = 0
        self._lock = threading.Lock()

    def _next_version(self) -> str:
        self._counter += 1
        return str(self._counter)

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            entry = self._data.get(key)
        return entry[0] if entry else None

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = (bytes(value), self._next_version())

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def list_keys(self, prefix: str) -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def get_versioned(self, key: str) -> Tuple[Optional[bytes], Optional[str]]:
        with self._lock:
            entry = self._data.get(key)
        if entry is None:
            return None, None
        return entry

    def put_if_version(self, key: str, value: bytes, version: Optional[str]) -> bool:
        with self._lock:
            entry = self._data.get(key)
            current = entry[1] if entry else None
            if current != version:
                return False
            self._data[key] = (bytes(value), self._next_version())
            return True

    def delete_if_version(self, key: str, version: str) -> bool:
        with self._lock:
            entry = self._data.get(key)
            if entry is None or entry[1] != version:
                return False
            del self._data[key]
            return True
