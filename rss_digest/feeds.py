"""Feed registry: the sources a refresh cycle pulls from."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, List, Union

import yaml

from .models import FeedSource


FALLBACK_CATEGORY = "autres"

DEFAULT_FEEDS: List[FeedSource] = [
    FeedSource(url="https://feeds.macrumors.com/MacRumors-All", display_name="MacRumors", default_category=FALLBACK_CATEGORY),
    FeedSource(url="https://feeds.macrumors.com/MacRumors-iOS", display_name="MacRumors iOS", default_category="ios"),
    FeedSource(url="https://feeds.macrumors.com/MacRumors-Mac", display_name="MacRumors Mac", default_category="hardware"),
    FeedSource(url="https://www.imore.com/rss.xml", display_name="iMore", default_category=FALLBACK_CATEGORY),
]


def feed_from_dict(raw: Any, *, fallback_category: str = FALLBACK_CATEGORY) -> FeedSource:
    if not isinstance(raw, dict):
        raise ValueError(f"Feed entry must be a mapping, got {type(raw).__name__}")
    url = (raw.get("url") or "").strip()
    if not url:
        raise ValueError("Feed entry lacks a url")
    name = (raw.get("name") or raw.get("display_name") or "").strip() or url
    category = (raw.get("category") or raw.get("default_category") or "").strip() or fallback_category
    return FeedSource(url=url, display_name=name, default_category=category)


def load_feeds(path: Union[str, Path], *, fallback_category: str = FALLBACK_CATEGORY) -> List[FeedSource]:
    """
    Load a feed list from a JSON or YAML file.

    Each entry is a mapping with `url`, `name` and `category` keys; the file may
    hold the list directly or under a top-level `feeds` key.
    """
    p = Path(path)
    with p.open("r", encoding="utf-8") as fh:
        if p.suffix.lower() == ".json":
            data = json.load(fh)
        else:
            data = yaml.safe_load(fh)

    if isinstance(data, dict):
        data = data.get("feeds")
    if not isinstance(data, list):
        raise ValueError(f"No feed list found in {p}")
    return [feed_from_dict(item, fallback_category=fallback_category) for item in data]


def feed_categories(feeds: Iterable[FeedSource]) -> List[str]:
    """Default categories of the given feeds, first occurrence order."""
    return list(dict.fromkeys(f.default_category for f in feeds))
