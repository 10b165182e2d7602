"""
Keyword extraction shared by the search index and search queries.
"""
import re
from typing import Optional, Set

MIN_KEYWORD_LENGTH = 3
MAX_KEYWORDS = 50

# Word characters are ASCII-only to match keys already in the search index.
_NON_WORD_RE = re.compile(r'[^A-Za-z0-9_\s]')


def extract_keywords(text: Optional[str]) -> Set[str]:
    """
    Extract normalized keywords from free text.

    The text is lowercased, punctuation is stripped, and it is split on
    whitespace. Tokens shorter than three characters are dropped and only
    the first 50 remaining tokens are kept.

    Args:
        text: Text to tokenize (None or empty yields no keywords)

    Returns:
        Set of keywords
    """
    if not text:
        return set()
    cleaned = _NON_WORD_RE.sub('', text.lower())
    tokens = [token for token in cleaned.split() if len(token) >= MIN_KEYWORD_LENGTH]
    return set(tokens[:MAX_KEYWORDS])


def article_keywords(article) -> Set[str]:
    """Keywords of an article's title and content."""
    return extract_keywords(f"{article.title or ''} {article.content or ''}")
