"""
Read path: turns article queries into index lookups and record fetches.

Ids are always truncated to the requested limit before any record is
fetched. Ids whose record is gone or unreadable are stale index references
and are skipped without error.
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from briefly.article import Article
from briefly.index_maintainer import IndexMaintainer
from briefly.keywords import extract_keywords
from briefly.kv_store import (
    ARTICLE_PREFIX,
    BREAKING_KEY,
    CATEGORY_PREFIX,
    KVStore,
    article_key,
    category_key,
    search_key,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArticleFilter:
    """Optional criteria for query(); all given criteria must match."""

    category: Optional[str] = None
    is_breaking: Optional[bool] = None
    search: Optional[str] = None


def category_slug(name: str) -> str:
    """URL slug of a category name, as used in /category/<slug> links."""
    return re.sub(r"\s+", "-", name.strip().lower())


class QueryResolver:
    """Resolves category, breaking, keyword and full-listing queries."""

    def __init__(self, store: KVStore, maintainer: Optional[IndexMaintainer] = None):
        self.store = store
        self.maintainer = maintainer or IndexMaintainer(store)

    def get_article(self, article_id: str) -> Optional[Article]:
        """
        Fetch a single article.

        Args:
            article_id: Article id

        Returns:
            Article, or None if missing or unreadable
        """
        raw = self.store.get(article_key(article_id))
        if raw is None:
            return None
        try:
            return Article.from_json(raw)
        except ValueError as e:
            logger.warning("Skipping unreadable article record %s: %s", article_id, e)
            return None

    def fetch(self, ids: List[str], limit: Optional[int] = None) -> List[Article]:
        """
        Resolve ids to articles, truncating to limit first.

        Args:
            ids: Article ids in result order
            limit: Maximum number of ids to fetch (None for all)

        Returns:
            Articles that still exist, in id order
        """
        if limit is not None:
            ids = ids[:max(limit, 0)]
        articles = []
        for article_id in ids:
            article = self.get_article(article_id)
            if article is None:
                logger.debug("Skipping stale index reference %s", article_id)
                continue
            articles.append(article)
        return articles

    def category_ids(self, category: str) -> List[str]:
        return self.maintainer.read_ids(category_key(category))

    def breaking_ids(self) -> List[str]:
        return self.maintainer.read_ids(BREAKING_KEY)

    def all_ids(self) -> List[str]:
        return [key[len(ARTICLE_PREFIX):] for key in self.store.list_keys(ARTICLE_PREFIX)]

    def list_categories(self) -> List[str]:
        """
        Names of categories that currently hold at least one article id.

        Entries are pruned when their last id is removed, so a category
        disappears with its last article. Empty legacy entries are skipped.
        """
        names = []
        for key in self.store.list_keys(CATEGORY_PREFIX):
            if self.maintainer.read_ids(key):
                names.append(key[len(CATEGORY_PREFIX):])
        return names

    def search_ids(self, query: Optional[str]) -> List[str]:
        """
        Ids of articles containing every keyword of the query.

        Order follows the index entry of the alphabetically first keyword.
        """
        keywords = sorted(extract_keywords(query))
        if not keywords:
            return []
        result = self.maintainer.read_ids(search_key(keywords[0]))
        for keyword in keywords[1:]:
            if not result:
                break
            matching = set(self.maintainer.read_ids(search_key(keyword)))
            result = [article_id for article_id in result if article_id in matching]
        return result

    def list_by_category(self, category: str, limit: Optional[int] = None) -> List[Article]:
        return self.fetch(self.category_ids(category), limit)

    def list_breaking(self, limit: Optional[int] = None) -> List[Article]:
        return self.fetch(self.breaking_ids(), limit)

    def list_all(self, limit: Optional[int] = None) -> List[Article]:
        return self.fetch(self.all_ids(), limit)

    def search(self, query: Optional[str], limit: Optional[int] = None) -> List[Article]:
        return self.fetch(self.search_ids(query), limit)

    def query(self, article_filter: Optional[ArticleFilter] = None, limit: Optional[int] = None) -> List[Article]:
        """
        Resolve a combined query.

        The candidate list comes from the most specific criterion given
        (search, then category, then breaking) and is narrowed by the other
        criteria using their indexes. is_breaking=False excludes breaking
        articles. Without criteria every article is listed.

        Args:
            article_filter: Query criteria
            limit: Maximum number of articles to return

        Returns:
            Matching articles
        """
        article_filter = article_filter or ArticleFilter()
        criteria = []
        if article_filter.search is not None:
            criteria.append(self.search_ids(article_filter.search))
        if article_filter.category:
            criteria.append(self.category_ids(article_filter.category))
        if article_filter.is_breaking is True:
            criteria.append(self.breaking_ids())

        if criteria:
            ids = criteria[0]
            for other in criteria[1:]:
                allowed = set(other)
                ids = [article_id for article_id in ids if article_id in allowed]
        else:
            ids = self.all_ids()

        if article_filter.is_breaking is False:
            excluded = set(self.breaking_ids())
            ids = [article_id for article_id in ids if article_id not in excluded]

        return self.fetch(ids, limit)
