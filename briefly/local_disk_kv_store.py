"""
Local disk implementation of key-value storage.

Stores every key as its own file under the state directory.
Default location: state/kv/
"""
import hashlib
import os
import threading
from typing import List, Optional, Tuple

from briefly.file_utils import (
    filename_to_key,
    is_hashed_filename,
    key_sidecar_filename,
    key_to_filename,
    load_bytes_file,
    save_bytes_file,
)
from briefly.kv_store import KVStore


class LocalDiskKVStore(KVStore):
    """
    Local disk implementation of key-value storage.

    Each key maps to one file named after the URL-quoted key. Keys too long
    for a filename are stored under a digest name, with the real key kept
    in a ".key" sidecar next to the value. The version token of an entry is
    the SHA-256 digest of its contents. Conditional writes are serialized
    by a lock that only covers this process.
    """

    def __init__(self, state_dir: str = "state"):
        """
        Initialize local disk store.

        Args:
            state_dir: Directory for state files (default: "state")
        """
        self.state_dir = state_dir
        self.data_dir = os.path.join(state_dir, "kv")
        os.makedirs(self.data_dir, exist_ok=True)
        self._lock = threading.Lock()

    def _get_filepath(self, key: str) -> str:
        return os.path.join(self.data_dir, key_to_filename(key))

    @staticmethod
    def _version_of(value: bytes) -> str:
        return hashlib.sha256(value).hexdigest()

    def _write(self, key: str, value: bytes) -> None:
        filename = key_to_filename(key)
        if is_hashed_filename(filename):
            # Sidecar first, so a listed value always has its key.
            sidecar = os.path.join(self.data_dir, key_sidecar_filename(filename))
            save_bytes_file(sidecar, key.encode('utf-8'), ensure_dir=False)
        save_bytes_file(os.path.join(self.data_dir, filename), value, ensure_dir=False)

    def _remove(self, key: str) -> None:
        filename = key_to_filename(key)
        paths = [os.path.join(self.data_dir, filename)]
        if is_hashed_filename(filename):
            paths.append(os.path.join(self.data_dir, key_sidecar_filename(filename)))
        for path in paths:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass

    def get(self, key: str) -> Optional[bytes]:
        return load_bytes_file(self._get_filepath(key))

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._write(key, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._remove(key)

    def list_keys(self, prefix: str) -> List[str]:
        filenames = set(os.listdir(self.data_dir))
        keys = []
        for filename in filenames:
            if is_hashed_filename(filename) and filename.endswith(".key"):
                if filename[:-len(".key")] + ".json" not in filenames:
                    continue
                raw = load_bytes_file(os.path.join(self.data_dir, filename))
                key = raw.decode('utf-8') if raw is not None else None
            else:
                key = filename_to_key(filename)
            if key is not None and key.startswith(prefix):
                keys.append(key)
        return sorted(keys)

    def get_versioned(self, key: str) -> Tuple[Optional[bytes], Optional[str]]:
        value = self.get(key)
        if value is None:
            return None, None
        return value, self._version_of(value)

    def put_if_version(self, key: str, value: bytes, version: Optional[str]) -> bool:
        with self._lock:
            current = load_bytes_file(self._get_filepath(key))
            current_version = self._version_of(current) if current is not None else None
            if current_version != version:
                return False
            self._write(key, value)
            return True

    def delete_if_version(self, key: str, version: str) -> bool:
        with self._lock:
            current = load_bytes_file(self._get_filepath(key))
            if current is None or self._version_of(current) != version:
                return False
            self._remove(key)
            return True
