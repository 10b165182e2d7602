"""
Maintenance of the derived article indexes.

Three indexes are kept next to the article records, each entry being a JSON
array of article ids:
- categories:<category>   ids of articles in that category
- breaking                ids of articles flagged as breaking news
- search_index:<keyword>  ids of articles whose title or content has the keyword

Entries are created on first insert and deleted as soon as they become
empty. Every entry change is a read/modify/conditional-write loop, so two
writers touching the same entry cannot silently overwrite each other.
Changes spanning several entries are not atomic: a failure halfway leaves
the earlier entries updated.
"""
import json
import logging
from typing import Callable, List

from briefly.article import Article
from briefly.keywords import article_keywords
from briefly.kv_store import (
    BREAKING_KEY,
    KVStore,
    VersionConflictError,
    article_key,
    category_key,
    search_key,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 5


class MalformedIndexError(ValueError):
    """Raised when an index entry that must be modified is not a JSON list of ids."""


def decode_ids(raw: bytes) -> List[str]:
    """
    Decode a stored index entry.

    Raises:
        ValueError: If the entry is not a JSON array of strings
    """
    ids = json.loads(raw.decode('utf-8'))
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise ValueError("index entry must be a JSON array of strings")
    return ids


def encode_ids(ids: List[str]) -> bytes:
    """Encode an index entry for storage."""
    return json.dumps(ids).encode('utf-8')


class IndexMaintainer:
    """Keeps category, breaking and search indexes in step with article mutations."""

    def __init__(self, store: KVStore, max_retries: int = DEFAULT_MAX_RETRIES):
        """
        Initialize the index maintainer.

        Args:
            store: Key-value store holding articles and indexes
            max_retries: Attempts per index entry before giving up on conflicts
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.store = store
        self.max_retries = max_retries

    def read_ids(self, key: str) -> List[str]:
        """
        Read an index entry for the query path.

        Missing and unreadable entries both read as empty.

        Args:
            key: Index key

        Returns:
            List of article ids in index order
        """
        raw = self.store.get(key)
        if raw is None:
            return []
        try:
            return decode_ids(raw)
        except ValueError as e:
            logger.warning("Ignoring malformed index entry %s: %s", key, e)
            return []

    def _update_entry(self, key: str, change: Callable[[List[str]], List[str]]) -> None:
        for attempt in range(1, self.max_retries + 1):
            raw, version = self.store.get_versioned(key)
            if raw is None:
                ids: List[str] = []
            else:
                try:
                    ids = decode_ids(raw)
                except ValueError as e:
                    raise MalformedIndexError(f"Index entry {key} is malformed: {e}") from e

            updated = change(list(ids))
            if updated == ids and (updated or raw is None):
                return

            if updated:
                written = self.store.put_if_version(key, encode_ids(updated), version)
            else:
                written = self.store.delete_if_version(key, version)
            if written:
                return
            logger.info("Concurrent update on %s (attempt %d/%d), retrying", key, attempt, self.max_retries)

        raise VersionConflictError(f"Gave up updating {key} after {self.max_retries} attempts")

    def _add_id(self, key: str, article_id: str) -> None:
        self._update_entry(key, lambda ids: ids if article_id in ids else ids + [article_id])

    def _remove_id(self, key: str, article_id: str) -> None:
        self._update_entry(key, lambda ids: [i for i in ids if i != article_id])

    def on_create(self, article: Article) -> None:
        """
        Index a newly stored article.

        Args:
            article: Article already written to the store
        """
        self._add_id(category_key(article.category), article.id)
        if article.is_breaking:
            self._add_id(BREAKING_KEY, article.id)
        keywords = article_keywords(article)
        for keyword in sorted(keywords):
            self._add_id(search_key(keyword), article.id)
        logger.debug("Indexed article %s under %d keywords", article.id, len(keywords))

    def on_update(self, previous: Article, current: Article) -> None:
        """
        Move an updated article between index entries.

        Every keyword of the new text is (re)inserted, not only the ones
        that are new compared to the previous text.

        Args:
            previous: Article as stored before the update
            current: Article as stored after the update
        """
        article_id = current.id

        if previous.category != current.category:
            self._remove_id(category_key(previous.category), article_id)
            self._add_id(category_key(current.category), article_id)

        if not previous.is_breaking and current.is_breaking:
            self._add_id(BREAKING_KEY, article_id)
        elif previous.is_breaking and not current.is_breaking:
            self._remove_id(BREAKING_KEY, article_id)

        old_keywords = article_keywords(previous)
        new_keywords = article_keywords(current)
        for keyword in sorted(old_keywords - new_keywords):
            self._remove_id(search_key(keyword), article_id)
        for keyword in sorted(new_keywords):
            self._add_id(search_key(keyword), article_id)
        logger.debug(
            "Reindexed article %s: %d keywords dropped, %d current",
            article_id, len(old_keywords - new_keywords), len(new_keywords)
        )

    def on_delete(self, article: Article) -> None:
        """
        Remove an article from every index, then delete its record.

        Args:
            article: Article as currently stored
        """
        self._remove_id(category_key(article.category), article.id)
        if article.is_breaking:
            self._remove_id(BREAKING_KEY, article.id)
        for keyword in sorted(article_keywords(article)):
            self._remove_id(search_key(keyword), article.id)
        self.store.delete(article_key(article.id))
        logger.debug("Deleted article %s and its index entries", article.id)
