"""
Keyword-based topic categorization.

Each category owns an ordered list of keyword phrases. A keyword found in the
title scores 2, a keyword found only in the description scores 1. The best
scoring category comes first; with the canonical policy every other matching
category is kept as well.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .models import ArticleDraft
from .normalizer import strip_html


KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "ios": (
        "iOS", "iPhone", "iPad", "iPadOS", "Apple Watch", "watchOS", "Siri",
        "App Store", "SwiftUI",
    ),
    "hardware": (
        "Mac", "MacBook", "iMac", "Mac mini", "Mac Pro", "Mac Studio", "MacBook Pro",
        "MacBook Air", "AirPods", "AirTag", "Vision Pro", "HomePod", "Apple Silicon",
        "M1", "M2", "M3", "M4", "puce", "processeur", "écran",
    ),
    "apps": (
        "App", "apps", "application", "logiciel", "mise à jour", "update", "Safari",
        "Mail", "Photos", "jeux", "games", "gaming",
    ),
    "services": (
        "Apple TV+", "Apple Music", "Apple Arcade", "iCloud", "Apple Pay", "Apple Card",
        "Apple One", "abonnement", "subscription",
    ),
}

TITLE_WEIGHT = 2
DESCRIPTION_WEIGHT = 1


@dataclass(frozen=True)
class CategorizerPolicy:
    multi_category: bool = True
    keywords: Mapping[str, Sequence[str]] = field(default_factory=lambda: KEYWORDS)


PRESETS: Dict[str, CategorizerPolicy] = {
    "canonical": CategorizerPolicy(),
    "single_best": CategorizerPolicy(multi_category=False),
}


@lru_cache(maxsize=512)
def _keyword_pattern(keyword: str) -> "re.Pattern[str]":
    # whole phrase only: "App" must not match inside "Apple"
    return re.compile(r"(?<!\w)" + re.escape(keyword) + r"(?!\w)", re.IGNORECASE)


def _contains(text: str, keyword: str) -> bool:
    return bool(text) and _keyword_pattern(keyword).search(text) is not None


def score_categories(
    title: str,
    description: str,
    keywords: Mapping[str, Sequence[str]] = KEYWORDS,
) -> Dict[str, int]:
    """Weighted keyword score per category, in declaration order (zero scores included)."""
    scores: Dict[str, int] = {}
    for category, words in keywords.items():
        score = 0
        for kw in words:
            if _contains(title, kw):
                score += TITLE_WEIGHT
            elif _contains(description, kw):
                score += DESCRIPTION_WEIGHT
        scores[category] = score
    return scores


def categorize(
    title: str,
    description: str,
    default_category: str,
    *,
    policy: Optional[CategorizerPolicy] = None,
) -> List[str]:
    """
    Categories for an item, primary first. Never empty.

    Ties for the primary category break in declaration order. Without any
    keyword match the item gets `default_category` alone.
    """
    policy = policy or PRESETS["canonical"]
    scores = score_categories(title, description, policy.keywords)
    matched = [c for c, s in scores.items() if s > 0]
    if not matched:
        return [default_category]

    primary = matched[0]
    for c in matched[1:]:
        if scores[c] > scores[primary]:
            primary = c

    if not policy.multi_category:
        return [primary]
    return [primary] + [c for c in matched if c != primary]


def classify_draft(draft: ArticleDraft, *, policy: Optional[CategorizerPolicy] = None) -> List[str]:
    return categorize(
        draft.title,
        strip_html(draft.raw_description),
        draft.source_default_category,
        policy=policy,
    )


def get_policy(name: str) -> CategorizerPolicy:
    try:
        return PRESETS[name]
    except KeyError:
        raise ValueError(f"Unknown categorizer preset: {name!r} (expected one of {sorted(PRESETS)})") from None
