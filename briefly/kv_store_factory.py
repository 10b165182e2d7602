"""
Factory function for creating key-value stores.
"""
import os
from typing import Optional

from briefly.kv_store import KVStore
from briefly.local_disk_kv_store import LocalDiskKVStore
from briefly.memory_kv_store import InMemoryKVStore
from briefly.tigris_kv_store import TigrisKVStore


def create_kv_store(state_dir: str = "state", key_prefix: Optional[str] = None) -> KVStore:
    """
    Create a key-value store based on environment configuration.

    Reads the KV_STORAGE_TYPE environment variable to determine
    which implementation to use:
    - 'local' or unset: LocalDiskKVStore (default)
    - 'memory': InMemoryKVStore
    - 'tigris': TigrisKVStore

    Args:
        state_dir: Directory for local disk storage (default: "state")
        key_prefix: Object key prefix for Tigris (TIGRIS_KEY_PREFIX when None)

    Returns:
        KVStore: Configured key-value store instance
    """
    storage_type = os.getenv('KV_STORAGE_TYPE', 'local').lower()

    if storage_type == 'tigris':
        return TigrisKVStore(key_prefix=key_prefix)
    if storage_type == 'memory':
        return InMemoryKVStore()
    return LocalDiskKVStore(state_dir=state_dir)
