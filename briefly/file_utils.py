"""
File utility functions for the Briefly news backend.
Common file operations to avoid code duplication.
"""
import hashlib
import os
import tempfile
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote, unquote

# Well under the 255-byte limit of common filesystems.
MAX_FILENAME_BYTES = 200
HASHED_PREFIX = "#"


def key_to_filename(key: str) -> str:
    """
    Turn a storage key into a safe filename.

    Keys whose quoted form would exceed MAX_FILENAME_BYTES are named after
    the SHA-256 digest of the key instead, prefixed with HASHED_PREFIX.
    quote() always escapes '#', so the two forms cannot collide.

    Args:
        key: Storage key (may contain ':' , '/' or non-ASCII characters)

    Returns:
        Filename with a .json suffix
    """
    filename = quote(key, safe="") + ".json"
    if len(filename) <= MAX_FILENAME_BYTES:
        return filename
    return HASHED_PREFIX + hashlib.sha256(key.encode('utf-8')).hexdigest() + ".json"


def is_hashed_filename(filename: str) -> bool:
    """Whether the filename is a digest name that needs a key sidecar."""
    return filename.startswith(HASHED_PREFIX)


def key_sidecar_filename(filename: str) -> str:
    """Sidecar file holding the real key of a digest-named entry."""
    return filename[:-len(".json")] + ".key"


def filename_to_key(filename: str) -> Optional[str]:
    """
    Reverse key_to_filename for quoted names.

    Args:
        filename: Filename produced by key_to_filename

    Returns:
        Original storage key, or None for digest names and files that are
        not store entries
    """
    if not filename.endswith(".json") or is_hashed_filename(filename):
        return None
    return unquote(filename[:-len(".json")])


def load_bytes_file(filepath: str) -> Optional[bytes]:
    """
    Load raw bytes from a file.

    Args:
        filepath: Path to the file

    Returns:
        File contents, or None if the file doesn't exist
    """
    try:
        with open(filepath, 'rb') as f:
            return f.read()
    except FileNotFoundError:
        return None


def save_bytes_file(filepath: str, data: bytes, ensure_dir: bool = True) -> None:
    """
    Atomically write bytes to a file.

    The data is written to a temporary file in the same directory and then
    moved over the target, so readers never see a half-written file.

    Args:
        filepath: Path to save the file
        data: Bytes to write
        ensure_dir: Whether to create parent directory if it doesn't exist
    """
    directory = os.path.dirname(filepath) or "."
    if ensure_dir:
        os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-")
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(tmp_path, filepath)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def get_utc_timestamp() -> str:
    """
    Get current UTC timestamp in ISO format.

    Returns:
        ISO formatted timestamp string with a Z suffix instead of +00:00
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
