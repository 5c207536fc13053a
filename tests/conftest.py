# tests/conftest.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from rss_digest.config import AppConfig
from rss_digest.models import FeedSource


T0 = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_entry(
    title: str,
    link: str,
    published: Optional[datetime] = None,
    summary: str = "",
) -> Dict[str, Any]:
    """A feed entry shaped like what feedparser returns."""
    entry: Dict[str, Any] = {"title": title, "link": link, "summary": summary}
    if published is not None:
        entry["published_parsed"] = published.utctimetuple()
    return entry


def feed_result(entries: List[Dict[str, Any]], status: int = 200) -> Dict[str, Any]:
    return {"status": status, "bozo": 0, "entries": entries}


FEEDS = [
    FeedSource(url="https://feeds.example/all", display_name="All", default_category="autres"),
    FeedSource(url="https://feeds.example/ios", display_name="iOS", default_category="ios"),
    FeedSource(url="https://feeds.example/mac", display_name="Mac", default_category="hardware"),
    FeedSource(url="https://feeds.example/other", display_name="Other", default_category="autres"),
]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(tmp_path) -> AppConfig:
    return AppConfig(feeds=list(FEEDS), snapshot_path=str(tmp_path / "data" / "articles.json"))


@pytest.fixture
def fake_feeds(monkeypatch) -> Dict[str, Any]:
    """
    Route feedparser.parse by URL. Map a URL to a feed result dict, or to an
    exception instance to make that source blow up. Unknown URLs answer 404.
    """
    responses: Dict[str, Any] = {}
    calls: List[str] = []

    def fake_parse(url: str, **kwargs: Any) -> Dict[str, Any]:
        calls.append(url)
        resp = responses.get(url)
        if resp is None:
            return {"status": 404, "bozo": 0, "entries": []}
        if isinstance(resp, Exception):
            raise resp
        if callable(resp):
            return resp()
        return resp

    monkeypatch.setattr("rss_digest.fetcher.feedparser.parse", fake_parse)
    responses["__calls__"] = calls
    return responses


def calls_of(responses: Dict[str, Any]) -> List[str]:
    return responses["__calls__"]


def entries_at(base: datetime, count: int, prefix: str = "https://news.example/a") -> List[Dict[str, Any]]:
    return [
        make_entry(f"Story number {i}", f"{prefix}/{i}", base - timedelta(hours=i))
        for i in range(count)
    ]
