"""
Persisted article store.

The snapshot is a single JSON document holding the article list and the time of
the last successful refresh. Writes go to a temporary file in the same directory
and are moved into place with `os.replace`, so a failed write leaves the previous
snapshot intact.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from .categories import DEFAULT_DISCOVERED_CAP, CategoryRegistry
from .dedup import article_id
from .exceptions import PersistenceError
from .models import Article
from .parser import _as_utc, _parse_date_string


logger = logging.getLogger(__name__)


def _article_from_legacy(item: Dict[str, Any]) -> Article:
    """
    Map one record of the PHP updater's bare list.

    Those records carry an RFC 822 `pubDate`, a unix `timestamp` of first sighting
    and a display-only `date`, which is ignored.
    """
    link = item["link"]
    categories = [c for c in (item.get("categories") or []) if isinstance(c, str) and c]
    if not categories and item.get("category"):
        categories = [item["category"]]
    if not categories:
        raise ValueError(f"Article {link!r} has no categories")
    pub = item.get("pubDate")
    return Article(
        id=item.get("id") or article_id(link),
        title=item.get("title") or "",
        link=link,
        published_at=_parse_date_string(pub) if isinstance(pub, str) else None,
        description=item.get("description") or "",
        categories=list(dict.fromkeys(categories)),
        first_seen_at=datetime.fromtimestamp(int(item["timestamp"]), tz=timezone.utc),
        source=item.get("source") or "unknown",
        is_new=bool(item.get("isNew", False)),
    )


class ArticleStore:
    def __init__(
        self,
        path: Union[str, Path],
        *,
        predefined_categories: Iterable[str] = (),
        discovered_category_cap: int = DEFAULT_DISCOVERED_CAP,
    ) -> None:
        self.path = Path(path)
        self.articles: List[Article] = []
        self.last_refresh_at: Optional[datetime] = None
        self.categories = CategoryRegistry(predefined_categories, cap=discovered_category_cap)
        self._guard = threading.Lock()

    # -- cycle guard -------------------------------------------------------

    @contextmanager
    def cycle_guard(self) -> Iterator[bool]:
        """
        Yield True when the caller owns the store for one refresh cycle, False when
        another cycle is already running. Never blocks.
        """
        acquired = self._guard.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._guard.release()

    @property
    def in_flight(self) -> bool:
        return self._guard.locked()

    # -- contents ----------------------------------------------------------

    def replace_articles(self, articles: Iterable[Article]) -> None:
        self.articles = list(articles)
        self._rebuild_categories()

    def _rebuild_categories(self) -> None:
        self.categories.reset_discovered()
        for a in self.articles:
            self.categories.observe(a.categories)

    def filter(self, category: Optional[str] = None) -> List[Article]:
        if not category:
            return list(self.articles)
        return [a for a in self.articles if category in a.categories]

    def __len__(self) -> int:
        return len(self.articles)

    # -- persistence -------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastRefreshAt": self.last_refresh_at.isoformat() if self.last_refresh_at else None,
            "articles": [a.to_dict() for a in self.articles],
        }

    def load(self) -> "ArticleStore":
        """
        Read the snapshot from disk. A missing file means an empty store.

        Raises PersistenceError when the file exists but cannot be read or decoded.
        """
        if not self.path.exists():
            logger.info("No snapshot at %s, starting empty", self.path)
            self.articles = []
            self.last_refresh_at = None
            self._rebuild_categories()
            return self

        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read snapshot {self.path}: {e}") from e

        legacy = isinstance(data, list)
        if legacy:
            # bare article list written by the PHP updater (articles.json)
            data = {"lastRefreshAt": None, "articles": data}
        if not isinstance(data, dict) or not isinstance(data.get("articles", []), list):
            raise PersistenceError(f"Unexpected snapshot layout in {self.path}")

        decode = _article_from_legacy if legacy else Article.from_dict
        try:
            articles = [decode(item) for item in data.get("articles", [])]
            last = data.get("lastRefreshAt")
            last_refresh_at = _as_utc(datetime.fromisoformat(last)) if last else None
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
            raise PersistenceError(f"Corrupt snapshot {self.path}: {e}") from e

        self.articles = articles
        self.last_refresh_at = last_refresh_at
        self._rebuild_categories()
        logger.debug("Loaded %d articles from %s", len(articles), self.path)
        return self

    def save(self, *, last_refresh_at: Optional[datetime] = None) -> None:
        """
        Overwrite the snapshot atomically.

        `last_refresh_at`, when given, is written with the articles and only applied
        to the in-memory store once the write succeeded.
        """
        payload = self.to_dict()
        if last_refresh_at is not None:
            payload["lastRefreshAt"] = last_refresh_at.isoformat()

        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot write snapshot {self.path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temporary file %s", tmp_name)

        if last_refresh_at is not None:
            self.last_refresh_at = last_refresh_at
        logger.debug("Saved %d articles to %s", len(self.articles), self.path)
