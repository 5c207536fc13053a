from __future__ import annotations

import concurrent.futures as _fut
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import feedparser

from .exceptions import ParseError, RSSDigestError, SourceFetchError
from .models import FeedSource


logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "rss-digest/0.1"


@dataclass
class FetchReport:
    """Outcome of fetching every configured source once."""
    results: List[Tuple[FeedSource, List[Dict[str, Any]]]] = field(default_factory=list)
    failures: List[Tuple[FeedSource, RSSDigestError]] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return not self.results and bool(self.failures)

    def entry_count(self) -> int:
        return sum(len(entries) for _, entries in self.results)


def fetch_feed_entries(source: FeedSource, *, user_agent: str = DEFAULT_USER_AGENT) -> List[Dict[str, Any]]:
    """
    Fetch a single feed and return its entries.

    Raises SourceFetchError on network issues or an HTTP error status, ParseError when the
    document is malformed and nothing could be salvaged from it.
    """
    url = source.url
    try:
        feed = feedparser.parse(url, agent=user_agent)
    except Exception as e:  # feedparser rarely raises, surface it as a domain error
        raise SourceFetchError(f"Failed to fetch feed: {url} ({e})") from e

    status = feed.get("status")
    # feedparser follows redirects and keeps the 3xx code of the redirect it followed
    if status is not None and int(status) >= 400:
        raise SourceFetchError(f"Feed answered HTTP {status}: {url}")

    entries = feed.get("entries")
    if not isinstance(entries, list):
        entries = []

    if feed.get("bozo"):
        exc = feed.get("bozo_exception")
        if not entries:
            # feedparser reports connection errors as bozo with no status
            if status is None and isinstance(exc, (OSError, ValueError)) and not isinstance(exc, UnicodeError):
                raise SourceFetchError(f"Failed to fetch feed: {url} ({exc})")
            msg = f"Invalid RSS/Atom feed: {url}"
            if exc:
                msg += f" ({exc})"
            raise ParseError(msg)
        logger.warning("Feed %s is malformed but yielded %d entries (%s)", url, len(entries), exc)

    return entries


def fetch_many(
    sources: Iterable[FeedSource],
    *,
    max_workers: int = 8,
    user_agent: str = DEFAULT_USER_AGENT,
) -> FetchReport:
    """
    Fetch every source concurrently and wait for all of them.

    A failing source is logged and reported; it never cancels or blocks the others.
    Successful results keep the registry order.
    """
    sources = list(sources)
    report = FetchReport()
    if not sources:
        return report

    workers = max(1, min(int(max_workers or 1), len(sources)))
    with _fut.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [(src, ex.submit(fetch_feed_entries, src, user_agent=user_agent)) for src in sources]
        for src, fu in futures:
            error: Optional[RSSDigestError] = None
            try:
                entries = fu.result()
            except RSSDigestError as e:
                error = e
            except Exception as e:  # pragma: no cover - unexpected worker error
                error = SourceFetchError(f"Unexpected error fetching {src.url}: {e}")
            if error is not None:
                logger.warning("Skipping feed %s: %s", src.display_name, error)
                report.failures.append((src, error))
                continue
            logger.debug("Fetched %d entries from %s", len(entries), src.display_name)
            report.results.append((src, entries))
    return report
