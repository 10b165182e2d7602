"""
Configuration management for the Briefly news backend.
Loads environment variables and provides access to configuration settings.
"""
import logging
import os
from typing import Optional
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class Config:
    """Configuration settings loaded from environment variables."""

    def __init__(self):
        """Initialize configuration by loading environment variables."""
        load_dotenv()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a configuration value by key.

        Args:
            key: Configuration key name
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return os.getenv(key, default)

    @property
    def kv_storage_type(self) -> str:
        """Get storage backend name (local, memory or tigris)."""
        return os.getenv("KV_STORAGE_TYPE", "local").lower()

    @property
    def state_dir(self) -> str:
        """Get directory used by the local disk store."""
        return os.getenv("STATE_DIR", "state")

    @property
    def tigris_key_prefix(self) -> str:
        """Get prefix prepended to every Tigris object key (e.g. "news_db:")."""
        return os.getenv("TIGRIS_KEY_PREFIX", "")

    @property
    def admin_token(self) -> str:
        """Get bearer token required for write requests (empty disables writes)."""
        return os.getenv("NEWS_ADMIN_TOKEN", "")

    @property
    def allowed_origin(self) -> str:
        """Get origin allowed by CORS."""
        return os.getenv("CORS_ALLOWED_ORIGIN", "*")

    @property
    def api_host(self) -> str:
        """Get API server host."""
        return os.getenv("API_HOST", "0.0.0.0")

    @property
    def api_port(self) -> int:
        """Get API server port."""
        return int(os.getenv("API_PORT", "8787"))

    @property
    def index_max_retries(self) -> int:
        """Get attempts per index entry when concurrent writers conflict."""
        return int(os.getenv("INDEX_MAX_RETRIES", "5"))

    @property
    def default_page_limit(self) -> Optional[int]:
        """
        Get result limit applied when a listing request has none.

        Returns None (no limit) when unset or not a positive integer.
        """
        value = os.getenv("DEFAULT_PAGE_LIMIT")
        if not value:
            return None
        try:
            limit = int(value)
        except ValueError:
            logger.warning("Ignoring invalid DEFAULT_PAGE_LIMIT: %s", value)
            return None
        return limit if limit > 0 else None
