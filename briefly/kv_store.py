"""
Abstract interface for key-value storage backends.

Defines the interface for getting, saving, deleting and listing opaque
byte values keyed by string. Articles and all derived indexes are stored
through this interface, so implementations can keep data in memory, on
local disk, or in distributed storage (Tigris/S3).

Key naming is shared with previously stored data and must not change:
articles:<id>, categories:<categoryName>, breaking, search_index:<keyword>.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

ARTICLE_PREFIX = "articles:"
CATEGORY_PREFIX = "categories:"
SEARCH_PREFIX = "search_index:"
BREAKING_KEY = "breaking"


def article_key(article_id: str) -> str:
    """Key holding the full article record."""
    return f"{ARTICLE_PREFIX}{article_id}"


def category_key(category: str) -> str:
    """Key holding the id list for a category."""
    return f"{CATEGORY_PREFIX}{category}"


def search_key(keyword: str) -> str:
    """Key holding the id list for a search keyword."""
    return f"{SEARCH_PREFIX}{keyword}"


class VersionConflictError(RuntimeError):
    """Raised when a conditional write keeps losing to concurrent writers."""


class KVStore(ABC):
    """Abstract base class for key-value storage backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """
        Get the value stored under a key.

        Args:
            key: Storage key.

        Returns:
            Stored bytes, or None if the key does not exist.
        """

    @abstractmethod
    def put(self, key: str, value: bytes) -> None:
        """
        Store a value unconditionally.

        Args:
            key: Storage key.
            value: Bytes to store.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Delete a key. Deleting a missing key is not an error.

        Args:
            key: Storage key.
        """

    @abstractmethod
    def list_keys(self, prefix: str) -> List[str]:
        """
        List all keys starting with a prefix.

        Args:
            prefix: Key prefix (e.g. "articles:").

        Returns:
            Sorted list of matching keys.
        """

    @abstractmethod
    def get_versioned(self, key: str) -> Tuple[Optional[bytes], Optional[str]]:
        """
        Get a value together with an opaque version token.

        Args:
            key: Storage key.

        Returns:
            (value, version) tuple; (None, None) if the key does not exist.
        """

    @abstractmethod
    def put_if_version(self, key: str, value: bytes, version: Optional[str]) -> bool:
        """
        Store a value only if the key is still at the given version.

        Args:
            key: Storage key.
            value: Bytes to store.
            version: Version returned by get_versioned, or None to require
                that the key does not exist yet.

        Returns:
            True if written, False if the key changed since it was read.
        """

    @abstractmethod
    def delete_if_version(self, key: str, version: str) -> bool:
        """
        Delete a key only if it is still at the given version.

        Args:
            key: Storage key.
            version: Version returned by get_versioned.

        Returns:
            True if deleted, False if the key changed since it was read.
        """
