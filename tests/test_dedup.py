from datetime import datetime, timedelta, timezone

from rss_digest.dedup import article_id, merge_drafts
from rss_digest.models import ArticleDraft


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _draft(link, title="Title", desc="desc", published=NOW, default="autres"):
    return ArticleDraft(
        title=title,
        link=link,
        published_at=published,
        raw_description=desc,
        source_default_category=default,
        source="Feed",
    )


def test_article_id_is_pure_function_of_link():
    assert article_id("https://x/1") == article_id("https://x/1")
    assert article_id("https://x/1") != article_id("https://x/1/")
    assert len(article_id("https://x/1")) == 32


def test_new_drafts_become_articles():
    merged, stats = merge_drafts([], [(_draft("https://x/1"), ["ios"])], now=NOW)

    assert stats.inserted == 1
    [a] = merged
    assert a.id == article_id("https://x/1")
    assert a.categories == ["ios"]
    assert a.first_seen_at == NOW
    assert a.is_new is True


def test_same_link_merges_categories_first_write_wins():
    first, _ = merge_drafts([], [(_draft("https://x/1", title="Original", desc="first"), ["ios"])], now=NOW)
    later = NOW + timedelta(hours=5)
    merged, stats = merge_drafts(
        first,
        [(_draft("https://x/1", title="Edited", desc="second", published=later), ["hardware", "ios"])],
        now=later,
    )

    assert stats.updated == 1
    assert stats.inserted == 0
    [a] = merged
    assert a.title == "Original"
    assert a.description == "first"
    assert a.published_at == NOW
    assert a.first_seen_at == NOW
    assert a.categories == ["ios", "hardware"]


def test_duplicates_inside_one_batch_collapse():
    merged, stats = merge_drafts(
        [],
        [(_draft("https://x/1"), ["ios"]), (_draft("https://x/1"), ["services"])],
        now=NOW,
    )
    assert len(merged) == 1
    assert merged[0].categories == ["ios", "services"]
    assert stats.inserted == 1 and stats.updated == 1


def test_merging_same_batch_twice_is_idempotent():
    batch = [(_draft(f"https://x/{i}"), ["ios", "apps"]) for i in range(5)]
    once, _ = merge_drafts([], batch, now=NOW)
    twice, stats = merge_drafts(once, batch, now=NOW + timedelta(minutes=1))

    assert [a.to_dict() for a in twice] == [a.to_dict() for a in once]
    assert len({a.id for a in twice}) == 5
    assert stats.unchanged == 5


def test_merge_does_not_mutate_input():
    base, _ = merge_drafts([], [(_draft("https://x/1"), ["ios"])], now=NOW)
    merge_drafts(base, [(_draft("https://x/1"), ["hardware"])], now=NOW)
    assert base[0].categories == ["ios"]


def test_description_is_cleaned_and_truncated():
    html = "<p>" + "a" * 400 + "</p>"
    merged, _ = merge_drafts([], [(_draft("https://x/1", desc=html), ["ios"])], now=NOW, description_max_chars=250)
    assert len(merged[0].description) == 250
    assert merged[0].description.endswith("...")


def test_empty_categories_fall_back_to_source_default():
    merged, _ = merge_drafts([], [(_draft("https://x/1", default="autres"), [])], now=NOW)
    assert merged[0].categories == ["autres"]
