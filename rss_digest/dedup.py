from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple

from .models import Article, ArticleDraft
from .normalizer import DEFAULT_DESCRIPTION_MAX_CHARS, clean_description


@dataclass
class MergeStats:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0


def article_id(link: str) -> str:
    """Stable article identity: MD5 of the exact link."""
    return hashlib.md5(link.encode("utf-8")).hexdigest()


def merge_drafts(
    articles: Sequence[Article],
    categorized: Iterable[Tuple[ArticleDraft, List[str]]],
    *,
    now: datetime,
    description_max_chars: int = DEFAULT_DESCRIPTION_MAX_CHARS,
) -> Tuple[List[Article], MergeStats]:
    """
    Merge a batch of categorized drafts into a copy of `articles`.

    Known ids only gain categories; everything else about the first sighting is
    kept. Unknown ids become new articles appended in batch order. The input
    sequence is left untouched so the caller can swap the result in as a whole.
    """
    merged: List[Article] = [_copy(a) for a in articles]
    by_id: Dict[str, Article] = {a.id: a for a in merged}
    stats = MergeStats()

    for draft, categories in categorized:
        key = article_id(draft.link)
        existing = by_id.get(key)
        if existing is not None:
            if existing.add_categories(categories):
                stats.updated += 1
            else:
                stats.unchanged += 1
            continue

        article = Article(
            id=key,
            title=draft.title,
            link=draft.link,
            published_at=draft.published_at,
            description=clean_description(draft.raw_description, description_max_chars),
            categories=list(dict.fromkeys(categories)) or [draft.source_default_category],
            first_seen_at=now,
            source=draft.source,
            is_new=True,
        )
        by_id[key] = article
        merged.append(article)
        stats.inserted += 1

    return merged, stats


def _copy(a: Article) -> Article:
    return Article(
        id=a.id,
        title=a.title,
        link=a.link,
        published_at=a.published_at,
        description=a.description,
        categories=list(a.categories),
        first_seen_at=a.first_seen_at,
        source=a.source,
        is_new=a.is_new,
    )
