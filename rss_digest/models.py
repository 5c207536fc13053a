from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from .parser import _as_utc


@dataclass(frozen=True)
class FeedSource:
    """One configured feed: where to fetch it and which category to fall back on."""
    url: str
    display_name: str
    default_category: str


@dataclass(frozen=True)
class ArticleDraft:
    """
    One parsed feed item for the current cycle.

    Drafts are discarded once merged into the store.
    """
    title: str
    link: str
    published_at: Optional[datetime]
    raw_description: str
    source_default_category: str
    source: str = "unknown"


@dataclass
class Article:
    """
    Canonical, deduplicated article kept in the store across cycles.

    Only `categories` and `is_new` change after creation.
    """
    id: str
    title: str
    link: str
    published_at: Optional[datetime]
    description: str
    categories: List[str]
    first_seen_at: datetime
    source: str
    is_new: bool = True

    def add_categories(self, labels: List[str]) -> bool:
        """Union `labels` into categories, keeping order. Returns True when anything was added."""
        added = False
        for label in labels:
            if label not in self.categories:
                self.categories.append(label)
                added = True
        return added

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "link": self.link,
            "pubDate": self.published_at.isoformat() if self.published_at else None,
            "description": self.description,
            "categories": list(self.categories),
            "firstSeenAt": self.first_seen_at.isoformat(),
            "isNew": self.is_new,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Article":
        pub = data.get("pubDate")
        categories = [c for c in (data.get("categories") or []) if isinstance(c, str) and c]
        if not categories:
            raise ValueError(f"Article {data.get('id')!r} has no categories")
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            link=data["link"],
            published_at=_as_utc(datetime.fromisoformat(pub)) if pub else None,
            description=data.get("description") or "",
            categories=list(dict.fromkeys(categories)),
            first_seen_at=_as_utc(datetime.fromisoformat(data["firstSeenAt"])),
            source=data.get("source") or "unknown",
            # isNew is recomputed by the staleness pass after loading.
            is_new=bool(data.get("isNew", False)),
        )
