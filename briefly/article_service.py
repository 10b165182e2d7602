"""
Article service: the write and read entry points used by the HTTP layer.

Callers pass fully built Article records; validation and authentication
happen before these methods are called.
"""
import logging
from typing import List, Optional

from briefly.article import Article, ArticleNotFoundError
from briefly.index_maintainer import IndexMaintainer
from briefly.kv_store import KVStore, article_key
from briefly.query_resolver import ArticleFilter, QueryResolver

logger = logging.getLogger(__name__)


class ArticleService:
    """Stores articles and keeps their indexes consistent."""

    def __init__(
        self,
        store: KVStore,
        maintainer: Optional[IndexMaintainer] = None,
        resolver: Optional[QueryResolver] = None
    ):
        """
        Initialize the article service.

        Args:
            store: Key-value store for articles and indexes
            maintainer: Index maintainer (built on the store if omitted)
            resolver: Query resolver (built on the store if omitted)
        """
        self.store = store
        self.maintainer = maintainer or IndexMaintainer(store)
        self.resolver = resolver or QueryResolver(store, self.maintainer)

    def create_article(self, article: Article) -> Article:
        """
        Store a new article and index it.

        Args:
            article: Article with a freshly assigned id

        Returns:
            The stored article
        """
        self.store.put(article_key(article.id), article.to_json())
        self.maintainer.on_create(article)
        logger.info("Created article %s in category %s", article.id, article.category)
        return article

    def update_article(self, article: Article) -> Article:
        """
        Replace an existing article and move it between index entries.

        The previous record is read from the store right before the write.

        Args:
            article: Complete new version of the article

        Returns:
            The stored article

        Raises:
            ArticleNotFoundError: If no article with this id exists
        """
        previous = self.require_article(article.id)
        self.store.put(article_key(article.id), article.to_json())
        self.maintainer.on_update(previous, article)
        logger.info("Updated article %s", article.id)
        return article

    def delete_article(self, article_id: str) -> Article:
        """
        Delete an article and remove it from every index.

        Args:
            article_id: Article id

        Returns:
            The deleted article

        Raises:
            ArticleNotFoundError: If no article with this id exists
        """
        article = self.require_article(article_id)
        self.maintainer.on_delete(article)
        logger.info("Deleted article %s", article_id)
        return article

    def get_article(self, article_id: str) -> Optional[Article]:
        return self.resolver.get_article(article_id)

    def require_article(self, article_id: str) -> Article:
        """
        Fetch an article for a write path.

        Unlike the read path, an unreadable record is an error here.

        Raises:
            ArticleNotFoundError: If the record does not exist
            ValueError: If the record exists but cannot be parsed
        """
        raw = self.store.get(article_key(article_id))
        if raw is None:
            raise ArticleNotFoundError(f"Article {article_id} not found")
        return Article.from_json(raw)

    def query_articles(
        self,
        article_filter: Optional[ArticleFilter] = None,
        limit: Optional[int] = None
    ) -> List[Article]:
        return self.resolver.query(article_filter, limit)

    def list_categories(self) -> List[str]:
        return self.resolver.list_categories()
