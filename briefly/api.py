"""
HTTP API for the Briefly news frontend.

Routes mirror what the frontend calls: listing/filtering/search under
GET /api/news, single articles under /api/news/{id}, the category list
under GET /api/categories, and bearer-token protected create/update/delete.
"""
import hmac
import json
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from briefly.article import ArticleNotFoundError, ArticleValidationError, apply_changes, new_article
from briefly.article_service import ArticleService
from briefly.kv_store import VersionConflictError
from briefly.query_resolver import ArticleFilter, category_slug

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = "admin"


def sanitize_log_input(value: Any) -> str:
    """
    Sanitize user input for logging to prevent log injection attacks.

    Args:
        value: The user input to sanitize

    Returns:
        Sanitized string safe for logging
    """
    if not isinstance(value, str):
        value = str(value)
    sanitized = value.replace('\n', '_').replace('\r', '_').replace('\t', '_')
    return sanitized[:200]


def parse_limit(value: Optional[str]) -> Optional[int]:
    """
    Parse the limit query parameter.

    Missing, non-numeric and non-positive values mean "no limit".
    """
    if not value:
        return None
    try:
        limit = int(value)
    except ValueError:
        return None
    return limit if limit > 0 else None


def parse_breaking(value: Optional[str]) -> Optional[bool]:
    """Any isBreaking value other than "true" filters out breaking news."""
    if value is None:
        return None
    return value.lower() == "true"


def is_authorized(request: Request, admin_token: str) -> bool:
    """
    Check the bearer token of a write request.

    Args:
        request: Incoming request
        admin_token: Configured token; an empty token rejects every request

    Returns:
        True if the Authorization header carries the admin token
    """
    if not admin_token:
        return False
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return False
    return hmac.compare_digest(header[len("Bearer "):].encode(), admin_token.encode())


def create_news_app(
    service: ArticleService,
    admin_token: str = "",
    allowed_origin: str = "*",
    default_limit: Optional[int] = None
) -> FastAPI:
    """
    Create the news API application.

    Args:
        service: Article service backed by the configured store
        admin_token: Bearer token required for writes
        allowed_origin: Origin allowed by CORS
        default_limit: Limit applied to listings that don't ask for one

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(title="Briefly News API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[allowed_origin],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    @app.exception_handler(VersionConflictError)
    async def version_conflict_handler(request: Request, exc: VersionConflictError):
        logger.warning("Write conflict on %s: %s", sanitize_log_input(request.url.path), exc)
        return JSONResponse(status_code=409, content={"detail": "Concurrent update, please retry"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Request to %s failed: %s", sanitize_log_input(request.url.path), exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    def require_auth(request: Request) -> None:
        if not is_authorized(request, admin_token):
            logger.warning("Rejected unauthorized %s %s", request.method, sanitize_log_input(request.url.path))
            raise HTTPException(status_code=401, detail="Unauthorized")

    async def read_payload(request: Request) -> Dict[str, Any]:
        try:
            return await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise HTTPException(status_code=400, detail="Request body must be valid JSON") from e

    @app.get("/api/news")
    async def list_news(request: Request):
        params = request.query_params
        article_filter = ArticleFilter(
            category=params.get("category") or None,
            is_breaking=parse_breaking(params.get("isBreaking")),
            search=params.get("search"),
        )
        limit = parse_limit(params.get("limit")) or default_limit
        articles = service.query_articles(article_filter, limit)
        logger.info(
            "Listed %d articles (category=%s, search=%s)",
            len(articles), sanitize_log_input(article_filter.category), sanitize_log_input(article_filter.search)
        )
        return [article.to_dict() for article in articles]

    @app.get("/api/categories")
    async def list_categories():
        categories = []
        for name in service.list_categories():
            slug = category_slug(name)
            categories.append({"id": slug, "name": name, "path": f"/category/{slug}"})
        return categories

    @app.get("/api/news/{article_id}")
    async def get_news(article_id: str):
        article = service.get_article(article_id)
        if article is None:
            raise HTTPException(status_code=404, detail="Article not found")
        return article.to_dict()

    @app.post("/api/news", status_code=201)
    async def create_news(request: Request):
        require_auth(request)
        payload = await read_payload(request)
        try:
            article = new_article(payload, author=DEFAULT_AUTHOR)
        except ArticleValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return service.create_article(article).to_dict()

    @app.put("/api/news/{article_id}")
    async def update_news(article_id: str, request: Request):
        require_auth(request)
        payload = await read_payload(request)
        try:
            previous = service.require_article(article_id)
            article = apply_changes(previous, payload)
            return service.update_article(article).to_dict()
        except ArticleNotFoundError as e:
            raise HTTPException(status_code=404, detail="Article not found") from e
        except ArticleValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    @app.delete("/api/news/{article_id}")
    async def delete_news(article_id: str, request: Request):
        require_auth(request)
        try:
            service.delete_article(article_id)
        except ArticleNotFoundError as e:
            raise HTTPException(status_code=404, detail="Article not found") from e
        return {"status": "deleted"}

    return app
