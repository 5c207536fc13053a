from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Tuple

from .models import Article


NEW_WINDOW = timedelta(days=2)
MAX_RETAINED = 50

# articles without a usable date sort after every dated one
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def is_new(article: Article, now: datetime, window: timedelta = NEW_WINDOW) -> bool:
    return now - article.first_seen_at < window


def refresh_staleness(articles: Iterable[Article], now: datetime, window: timedelta = NEW_WINDOW) -> int:
    """Recompute `is_new` for every article. Returns how many flags changed."""
    changed = 0
    for a in articles:
        flag = is_new(a, now, window)
        if flag != a.is_new:
            a.is_new = flag
            changed += 1
    return changed


def _sort_key(a: Article) -> datetime:
    return a.published_at or _OLDEST


def apply_retention(articles: Iterable[Article], max_retained: int = MAX_RETAINED) -> Tuple[List[Article], List[Article]]:
    """
    Newest first by publication date, truncated to `max_retained`.

    The sort is stable, so articles with equal dates keep their prior order.
    Returns (kept, dropped).
    """
    if max_retained < 0:
        raise ValueError("max_retained must not be negative")
    ordered = sorted(articles, key=_sort_key, reverse=True)
    return ordered[:max_retained], ordered[max_retained:]
