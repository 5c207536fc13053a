import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from rss_digest.categories import CategoryRegistry
from rss_digest.dedup import article_id
from rss_digest.exceptions import PersistenceError
from rss_digest.models import Article
from rss_digest.store import ArticleStore


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _article(i, categories=("ios",), published=NOW):
    return Article(
        id=f"id-{i}",
        title=f"Title {i}",
        link=f"https://x/{i}",
        published_at=published,
        description=f"Description {i}",
        categories=list(categories),
        first_seen_at=NOW - timedelta(days=i),
        source="MacRumors",
        is_new=True,
    )


def test_missing_snapshot_loads_empty(tmp_path):
    store = ArticleStore(tmp_path / "articles.json").load()
    assert store.articles == []
    assert store.last_refresh_at is None


def test_round_trip_keeps_ids_categories_and_fields(tmp_path):
    path = tmp_path / "data" / "articles.json"
    store = ArticleStore(path)
    store.replace_articles([_article(1, ("ios", "services")), _article(2, ("hardware",), published=None)])
    store.save(last_refresh_at=NOW)

    loaded = ArticleStore(path).load()
    ArticleStore(path).load().save()
    reloaded = ArticleStore(path).load()

    for other in (loaded, reloaded):
        assert other.last_refresh_at == NOW
        assert [a.id for a in other.articles] == ["id-1", "id-2"]
        assert other.articles[0].categories == ["ios", "services"]
        assert other.articles[1].published_at is None
        assert other.articles[0].first_seen_at == NOW - timedelta(days=1)
        assert other.articles[0].title == "Title 1"


def test_snapshot_layout(tmp_path):
    path = tmp_path / "articles.json"
    store = ArticleStore(path)
    store.replace_articles([_article(1)])
    store.save(last_refresh_at=NOW)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["lastRefreshAt"] == NOW.isoformat()
    assert set(data["articles"][0]) == {
        "id", "title", "link", "pubDate", "description", "categories", "firstSeenAt", "isNew", "source",
    }


def test_failed_write_keeps_previous_snapshot(tmp_path, monkeypatch):
    path = tmp_path / "articles.json"
    store = ArticleStore(path)
    store.replace_articles([_article(1)])
    store.save(last_refresh_at=NOW)
    before = path.read_text(encoding="utf-8")

    def boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("rss_digest.store.os.replace", boom)
    store.replace_articles([_article(1), _article(2)])

    with pytest.raises(PersistenceError):
        store.save(last_refresh_at=NOW + timedelta(hours=1))

    assert path.read_text(encoding="utf-8") == before
    assert store.last_refresh_at == NOW
    assert len(store.articles) == 2
    assert [p.name for p in tmp_path.iterdir()] == ["articles.json"]


def test_corrupt_snapshot_raises(tmp_path):
    path = tmp_path / "articles.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistenceError):
        ArticleStore(path).load()


def test_snapshot_without_categories_is_rejected(tmp_path):
    path = tmp_path / "articles.json"
    bad = _article(1).to_dict()
    bad["categories"] = []
    path.write_text(json.dumps({"lastRefreshAt": None, "articles": [bad]}), encoding="utf-8")
    with pytest.raises(PersistenceError):
        ArticleStore(path).load()


def test_php_article_list_is_mapped(tmp_path):
    path = tmp_path / "articles.json"
    record = {
        "title": "iOS 19.4 beta",
        "link": "https://www.macrumors.com/2026/03/09/ios-19-4-beta/",
        "pubDate": "Mon, 09 Mar 2026 10:00:00 +0000",
        "date": "09 mars 2026",
        "description": "Apple seeded the first beta...",
        "categories": ["ios", "autres"],
        "id": "5d41402abc4b2a76b9719d911017c592",
        "isNew": True,
        "timestamp": 1773050400,
    }
    path.write_text(json.dumps([record]), encoding="utf-8")

    store = ArticleStore(path).load()

    [article] = store.articles
    assert article.id == "5d41402abc4b2a76b9719d911017c592"
    assert article.published_at == datetime(2026, 3, 9, 10, 0, tzinfo=timezone.utc)
    assert article.first_seen_at == datetime.fromtimestamp(1773050400, tz=timezone.utc)
    assert article.categories == ["ios", "autres"]
    assert article.source == "unknown"
    assert store.last_refresh_at is None


def test_php_article_without_id_gets_link_hash(tmp_path):
    path = tmp_path / "articles.json"
    record = {"link": "https://x/1", "pubDate": "not a date", "categories": ["ios"], "timestamp": 1773050400}
    path.write_text(json.dumps([record]), encoding="utf-8")

    [article] = ArticleStore(path).load().articles

    assert article.id == article_id("https://x/1")
    assert article.published_at is None


def test_php_article_without_timestamp_is_rejected(tmp_path):
    path = tmp_path / "articles.json"
    path.write_text(json.dumps([{"link": "https://x/1", "categories": ["ios"]}]), encoding="utf-8")
    with pytest.raises(PersistenceError):
        ArticleStore(path).load()


def test_naive_datetimes_are_read_as_utc(tmp_path):
    path = tmp_path / "articles.json"
    record = _article(1).to_dict()
    record["firstSeenAt"] = "2026-03-10T11:00:00"
    record["pubDate"] = "2026-03-10T10:00:00"
    path.write_text(json.dumps({"lastRefreshAt": "2026-03-10T11:30:00", "articles": [record]}), encoding="utf-8")

    store = ArticleStore(path).load()

    [article] = store.articles
    assert article.first_seen_at == datetime(2026, 3, 10, 11, 0, tzinfo=timezone.utc)
    assert article.published_at == datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)
    assert store.last_refresh_at == datetime(2026, 3, 10, 11, 30, tzinfo=timezone.utc)
    assert NOW - article.first_seen_at == timedelta(hours=1)


def test_cycle_guard_rejects_overlap(tmp_path):
    store = ArticleStore(tmp_path / "articles.json")
    with store.cycle_guard() as first:
        assert first is True
        assert store.in_flight
        with store.cycle_guard() as second:
            assert second is False
    assert not store.in_flight


def test_filter_and_discovered_categories(tmp_path):
    store = ArticleStore(tmp_path / "articles.json", predefined_categories=["ios", "hardware"])
    store.replace_articles([_article(1, ("ios",)), _article(2, ("podcasts",))])

    assert [a.id for a in store.filter("ios")] == ["id-1"]
    assert len(store.filter(None)) == 2
    assert store.categories.discovered == ["podcasts"]
    assert "podcasts" in store.categories


def test_registry_cap_and_reset():
    reg = CategoryRegistry(["ios"], cap=2)
    assert reg.observe(["ios", "a", "b", "c"]) == ["a", "b"]
    assert reg.labels() == ["ios", "a", "b"]
    assert "c" not in reg
    reg.reset_discovered()
    assert reg.labels() == ["ios"]
    assert len(reg) == 1


def test_unwritable_directory_raises(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    store = ArticleStore(blocker / "articles.json")
    with pytest.raises(PersistenceError):
        store.save()
    assert os.path.isfile(blocker)
