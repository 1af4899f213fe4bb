"""
Text helpers shared by the search pipeline and the feature generators.

All functions are pure (no I/O, no providers).
"""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")


def normalize_query(text: str | None) -> str:
    """Trim, collapse inner whitespace and lowercase a query string."""
    return _WHITESPACE.sub(" ", (text or "").strip()).lower()


def collapse_whitespace(text: str | None) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def excerpt(text: str | None, limit: int = 180, fallback: str = "") -> str:
    """
    Whitespace-collapsed prefix of ``text``, suffixed with an ellipsis
    when truncated.  Empty text yields ``fallback``.
    """
    clean = collapse_whitespace(text)
    if not clean:
        return fallback
    if len(clean) <= limit:
        return clean
    return clean[:limit].rstrip() + "…"


def title_case(theme: str, default: str = "Contextual Collection") -> str:
    """Normalize a model-provided theme into title case without shouting."""
    words = [w for w in (theme or "").strip().split(" ") if w]
    if not words:
        return default
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


def slugify(value: str) -> str:
    return _WHITESPACE.sub("-", (value or "").strip().lower())


def truncate_words(text: str, max_words: int) -> str:
    words = (text or "").split()
    if len(words) <= max_words:
        return (text or "").strip()
    return " ".join(words[:max_words])
