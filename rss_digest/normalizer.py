from __future__ import annotations

import re
from typing import Any, Dict

from bs4 import BeautifulSoup

from .models import ArticleDraft, FeedSource


ELLIPSIS = "..."
DEFAULT_DESCRIPTION_MAX_CHARS = 300

_WS_RE = re.compile(r"\s+")


def strip_html(html: str) -> str:
    """Plain text of an HTML fragment, without script/style content and with whitespace collapsed."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return _WS_RE.sub(" ", text).strip()


def truncate(text: str, max_chars: int) -> str:
    """
    Cut `text` so that it fits in `max_chars`, marker included.
    The ellipsis is only added when something was cut.
    """
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    keep = max(0, max_chars - len(ELLIPSIS))
    return text[:keep].rstrip() + ELLIPSIS


def clean_description(html: str, max_chars: int = DEFAULT_DESCRIPTION_MAX_CHARS) -> str:
    return truncate(strip_html(html), max_chars)


def to_draft(entry: Dict[str, Any], source: FeedSource) -> ArticleDraft:
    """
    Convert a parsed entry dict into a strict ArticleDraft.
    Requires:
    - link (non-empty)
    Optional (defaults applied here):
    - title -> ""
    - description -> ""
    - published_at -> None (sorted as oldest)
    """
    link = (entry.get("link") or "").strip()
    if not link:
        raise ValueError("Entry lacks required field for ArticleDraft: link")

    return ArticleDraft(
        title=(entry.get("title") or "").strip(),
        link=link,
        published_at=entry.get("published_at"),
        raw_description=entry.get("description") or "",
        source_default_category=source.default_category,
        source=source.display_name,
    )
