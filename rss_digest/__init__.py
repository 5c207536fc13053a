"""
rss_digest

Keeps a bounded, deduplicated and categorized store of articles pulled from a set of RSS/Atom feeds.

Core ideas:
- Input: configured feed sources (url, display name, default category)
- Process: fetch (concurrently) → parse → categorize (keywords) → merge by link → flag new → keep newest 50 → persist
- Output: filtered, newest-first article lists for a presentation layer

Example
-------
from rss_digest import NewsAggregator, load_config

aggregator = NewsAggregator(load_config("config.yaml"))

aggregator.refresh()                      # no-op while the store is younger than the TTL
aggregator.refresh(force=True)            # always runs a cycle

response = aggregator.query("ios")
for article in response["articles"]:
    print(article["pubDate"], article["isNew"], article["title"])
"""
from .config import AppConfig, load_config
from .core import NewsAggregator, RefreshResult
from .exceptions import (
    InvalidFilterError,
    ParseError,
    PersistenceError,
    RSSDigestError,
    SourceFetchError,
)
from .models import Article, ArticleDraft, FeedSource
from .scheduler import RefreshScheduler

__all__ = [
    "AppConfig",
    "Article",
    "ArticleDraft",
    "FeedSource",
    "InvalidFilterError",
    "NewsAggregator",
    "ParseError",
    "PersistenceError",
    "RSSDigestError",
    "RefreshResult",
    "RefreshScheduler",
    "SourceFetchError",
    "load_config",
]
