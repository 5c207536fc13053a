"""
Configuration for the aggregator, as dataclasses with YAML loading.

Values missing from the YAML file keep their defaults. Two environment
variables override the file: RSS_DIGEST_SNAPSHOT (snapshot path) and
RSS_DIGEST_TTL (refresh TTL in seconds).
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .classifier import PRESETS
from .feeds import DEFAULT_FEEDS, FALLBACK_CATEGORY, feed_from_dict, load_feeds
from .fetcher import DEFAULT_USER_AGENT
from .models import FeedSource


@dataclass
class AppConfig:
    """
    Attributes:
        feeds: Sources fetched on every refresh cycle
        feeds_file: Optional JSON/YAML feed list replacing `feeds`
        snapshot_path: Where the article snapshot is persisted
        refresh_ttl_seconds: Minimum age of the last refresh before a non-forced refresh runs
        max_retained: Store size cap applied after every cycle
        new_window_seconds: How long after first sighting an article counts as new
        description_max_chars: Description length cap, ellipsis included
        categorizer: Name of a categorizer preset ("canonical" or "single_best")
        fallback_category: Category of feeds configured without one
        all_category: Filter value that selects every article
        max_workers: Concurrent feed fetches
        user_agent: User-Agent sent to feed servers
        discovered_category_cap: Size cap of the discovered category overlay
        stale_after_seconds: Age of the last refresh after which status() warns
        scheduler_interval_seconds: Cadence of the `watch` command
        scheduler_max_backoff_seconds: Upper bound of the retry delay after failures
    """
    feeds: List[FeedSource] = field(default_factory=lambda: list(DEFAULT_FEEDS))
    feeds_file: Optional[str] = None
    snapshot_path: str = "data/articles.json"
    refresh_ttl_seconds: int = 1800
    max_retained: int = 50
    new_window_seconds: int = 2 * 24 * 60 * 60
    description_max_chars: int = 300
    categorizer: str = "canonical"
    fallback_category: str = FALLBACK_CATEGORY
    all_category: str = "all"
    max_workers: int = 8
    user_agent: str = DEFAULT_USER_AGENT
    discovered_category_cap: int = 20
    stale_after_seconds: int = 2 * 60 * 60
    scheduler_interval_seconds: int = 1800
    scheduler_max_backoff_seconds: int = 4 * 60 * 60

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(seconds=self.refresh_ttl_seconds)

    @property
    def new_window(self) -> timedelta:
        return timedelta(seconds=self.new_window_seconds)

    @property
    def stale_after(self) -> timedelta:
        return timedelta(seconds=self.stale_after_seconds)

    def validate(self) -> "AppConfig":
        if not self.feeds:
            raise ValueError("At least one feed must be configured")
        for name in ("refresh_ttl_seconds", "new_window_seconds", "max_workers", "scheduler_interval_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_retained < 1:
            raise ValueError("max_retained must be at least 1")
        if self.discovered_category_cap < 0:
            raise ValueError("discovered_category_cap must not be negative")
        if not 200 <= self.description_max_chars <= 300:
            raise ValueError("description_max_chars must be between 200 and 300")
        if self.categorizer not in PRESETS:
            raise ValueError(f"Unknown categorizer preset: {self.categorizer!r}")
        if not self.all_category:
            raise ValueError("all_category must not be empty")
        return self


def load_config(path: Union[str, Path, None] = None) -> AppConfig:
    """Load configuration from a YAML file with defaults, then apply environment overrides."""
    raw: Dict[str, Any] = {}
    if path:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config file {path} must hold a mapping")

    cfg = _merge_config(AppConfig(), raw)
    if cfg.feeds_file:
        feeds_path = Path(cfg.feeds_file)
        if path and not feeds_path.is_absolute():
            feeds_path = Path(path).parent / feeds_path
        cfg = replace(cfg, feeds=load_feeds(feeds_path, fallback_category=cfg.fallback_category))

    cfg = _apply_env(cfg)
    return cfg.validate()


def _merge_config(base: AppConfig, raw: Dict[str, Any]) -> AppConfig:
    known = {f.name for f in fields(AppConfig)}
    updates: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            continue
        if key == "feeds":
            fallback = raw.get("fallback_category") or base.fallback_category
            value = [feed_from_dict(item, fallback_category=fallback) for item in (value or [])]
        updates[key] = value
    return replace(base, **updates)


def _apply_env(cfg: AppConfig) -> AppConfig:
    snapshot = os.getenv("RSS_DIGEST_SNAPSHOT")
    if snapshot:
        cfg = replace(cfg, snapshot_path=snapshot)
    ttl = os.getenv("RSS_DIGEST_TTL")
    if ttl:
        try:
            cfg = replace(cfg, refresh_ttl_seconds=int(ttl))
        except ValueError:
            raise ValueError(f"RSS_DIGEST_TTL must be an integer number of seconds, got {ttl!r}") from None
    return cfg
