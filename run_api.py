#!/usr/bin/env python
"""
Run the news API server.
"""
import logging

import uvicorn

from briefly.api import create_news_app
from briefly.article_service import ArticleService
from briefly.config import Config
from briefly.index_maintainer import IndexMaintainer
from briefly.kv_store_factory import create_kv_store


def configure_logging() -> None:
    """Send application logs to the console."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root = logging.getLogger('briefly')
    root.setLevel(logging.INFO)
    if not root.handlers:
        root.addHandler(handler)


def main():
    """Run the API server."""
    configure_logging()
    config = Config()

    store = create_kv_store(state_dir=config.state_dir, key_prefix=config.tigris_key_prefix)
    maintainer = IndexMaintainer(store, max_retries=config.index_max_retries)
    service = ArticleService(store, maintainer=maintainer)

    if not config.admin_token:
        print("Warning: NEWS_ADMIN_TOKEN is not set, write requests will be rejected")

    app = create_news_app(
        service,
        admin_token=config.admin_token,
        allowed_origin=config.allowed_origin,
        default_limit=config.default_page_limit
    )

    print(f"Starting news API with {config.kv_storage_type} storage...")
    print(f"Listening on http://{config.api_host}:{config.api_port}")

    uvicorn.run(
        app,
        host=config.api_host,
        port=config.api_port,
        log_level="info"
    )


if __name__ == "__main__":
    main()
