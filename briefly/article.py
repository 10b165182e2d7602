"""
Article record model.

Articles are stored as JSON using the field names the frontend expects
(_id, isBreaking, imageCredit, ...).
"""
import json
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from briefly.file_utils import get_utc_timestamp

EXCERPT_LENGTH = 200

REQUIRED_FIELDS = ("title", "content", "category")
OPTIONAL_TEXT_FIELDS = ("author", "excerpt", "image", "imageCredit")


class ArticleValidationError(ValueError):
    """Raised when an article payload is missing fields or has wrong types."""


class ArticleNotFoundError(LookupError):
    """Raised when an update or delete targets an article that doesn't exist."""


@dataclass(frozen=True)
class Article:
    """A news article as stored under articles:<id>."""

    id: str
    title: str
    content: str
    category: str
    date: str
    is_breaking: bool = False
    author: Optional[str] = None
    excerpt: Optional[str] = None
    image: Optional[str] = None
    image_credit: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Article":
        """
        Build an article from its stored JSON mapping.

        Raises:
            KeyError: If _id is missing
        """
        return cls(
            id=str(data["_id"]),
            title=data.get("title") or "",
            content=data.get("content") or "",
            category=data.get("category") or "",
            date=data.get("date") or "",
            is_breaking=bool(data.get("isBreaking", False)),
            author=data.get("author"),
            excerpt=data.get("excerpt"),
            image=data.get("image"),
            image_credit=data.get("imageCredit"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the stored JSON mapping."""
        return {
            "_id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "date": self.date,
            "author": self.author,
            "excerpt": self.excerpt,
            "isBreaking": self.is_breaking,
            "image": self.image,
            "imageCredit": self.image_credit,
        }

    @classmethod
    def from_json(cls, raw: bytes) -> "Article":
        """
        Parse a stored article record.

        Raises:
            ValueError: If the record is not a JSON object with an _id
        """
        data = json.loads(raw.decode('utf-8'))
        if not isinstance(data, dict) or "_id" not in data:
            raise ValueError("article record must be a JSON object with an _id")
        return cls.from_dict(data)

    def to_json(self) -> bytes:
        """Serialize for storage."""
        return json.dumps(self.to_dict()).encode('utf-8')


def build_excerpt(content: Optional[str], max_length: int = EXCERPT_LENGTH) -> str:
    """
    Derive an excerpt from article content.

    Whitespace is collapsed and long content is cut on a word boundary
    with a trailing "...".

    Args:
        content: Article body
        max_length: Maximum excerpt length before the ellipsis

    Returns:
        Excerpt string ("" for empty content)
    """
    text = " ".join((content or "").split())
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    if " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.rstrip(".,;:!? ") + "..."


def validate_payload(payload: Any, partial: bool = False) -> None:
    """
    Validate an incoming article payload.

    Args:
        payload: Decoded JSON body
        partial: True for updates, where required fields may be omitted

    Raises:
        ArticleValidationError: On the first problem found
    """
    if not isinstance(payload, dict):
        raise ArticleValidationError("Article payload must be a JSON object")

    for field in REQUIRED_FIELDS:
        if field not in payload:
            if partial:
                continue
            raise ArticleValidationError(f"Missing required field: {field}")
        value = payload[field]
        if not isinstance(value, str):
            raise ArticleValidationError(f"Field {field} must be a string")
        if field != "content" and not value.strip():
            raise ArticleValidationError(f"Field {field} must not be empty")

    for field in OPTIONAL_TEXT_FIELDS:
        value = payload.get(field)
        if value is not None and not isinstance(value, str):
            raise ArticleValidationError(f"Field {field} must be a string")

    if "isBreaking" in payload and not isinstance(payload["isBreaking"], bool):
        raise ArticleValidationError("Field isBreaking must be a boolean")


def new_article(payload: Dict[str, Any], author: Optional[str] = None) -> Article:
    """
    Create a new article from a create payload.

    A fresh id and creation timestamp are assigned; the excerpt is derived
    from the content when the payload has none.

    Args:
        payload: Decoded JSON body
        author: Fallback author when the payload has none

    Returns:
        New Article (not yet stored)
    """
    validate_payload(payload)
    content = payload["content"]
    return Article(
        id=uuid.uuid4().hex,
        title=payload["title"].strip(),
        content=content,
        category=payload["category"].strip(),
        date=get_utc_timestamp(),
        is_breaking=payload.get("isBreaking", False),
        author=payload.get("author") or author,
        excerpt=payload.get("excerpt") or build_excerpt(content),
        image=payload.get("image"),
        image_credit=payload.get("imageCredit"),
    )


def apply_changes(previous: Article, payload: Dict[str, Any]) -> Article:
    """
    Apply an update payload to an existing article.

    The id and creation date never change. When the content changes and
    no excerpt is supplied, the excerpt is derived again.

    Args:
        previous: Article as currently stored
        payload: Decoded JSON body with the fields to change

    Returns:
        Updated Article (not yet stored)
    """
    validate_payload(payload, partial=True)
    changes: Dict[str, Any] = {}
    if "title" in payload:
        changes["title"] = payload["title"].strip()
    if "content" in payload:
        changes["content"] = payload["content"]
    if "category" in payload:
        changes["category"] = payload["category"].strip()
    if "isBreaking" in payload:
        changes["is_breaking"] = payload["isBreaking"]
    for field, attr in (("author", "author"), ("image", "image"), ("imageCredit", "image_credit")):
        if field in payload:
            changes[attr] = payload[field]

    if payload.get("excerpt"):
        changes["excerpt"] = payload["excerpt"]
    elif "content" in payload and payload["content"] != previous.content:
        changes["excerpt"] = build_excerpt(payload["content"])

    return replace(previous, **changes)
