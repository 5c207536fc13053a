from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .classifier import classify_draft, get_policy
from .config import AppConfig
from .dedup import MergeStats, merge_drafts
from .exceptions import InvalidFilterError, PersistenceError
from .feeds import feed_categories
from .fetcher import FetchReport, fetch_many
from .logging_utils import log_event
from .models import ArticleDraft
from .normalizer import to_draft
from .parser import parse_entry
from .retention import apply_retention, refresh_staleness
from .store import ArticleStore


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Fetch = Callable[..., FetchReport]

DISK_WARNING_PERCENT = 90.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RefreshResult:
    """What a call to `refresh` did. `reason` is set when no cycle ran to completion."""
    refreshed: bool
    reason: Optional[str] = None
    fetched_sources: int = 0
    failed_sources: int = 0
    drafts: int = 0
    stats: Optional[MergeStats] = None
    dropped: int = 0
    article_count: int = 0


class NewsAggregator:
    """
    High-level API: keep a bounded, deduplicated, categorized article store fresh.

    Cycle: fetch → parse → categorize → merge → staleness → retention → persist

    The aggregator never schedules itself; call `refresh()` (or use
    `rss_digest.scheduler.RefreshScheduler`) to decide when cycles run.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        *,
        store: Optional[ArticleStore] = None,
        clock: Clock = utcnow,
        fetch: Fetch = fetch_many,
    ) -> None:
        self.config = (config or AppConfig()).validate()
        self.policy = get_policy(self.config.categorizer)
        self._clock = clock
        self._fetch = fetch
        predefined = list(self.policy.keywords) + feed_categories(self.config.feeds)
        if self.config.fallback_category not in predefined:
            predefined.append(self.config.fallback_category)
        if store is None:
            store = ArticleStore(
                self.config.snapshot_path,
                predefined_categories=predefined,
                discovered_category_cap=self.config.discovered_category_cap,
            )
            store.load()
        self.store = store
        refresh_staleness(self.store.articles, self._clock(), self.config.new_window)

    # -- refresh -----------------------------------------------------------

    def needs_refresh(self, now: Optional[datetime] = None) -> bool:
        last = self.store.last_refresh_at
        if last is None:
            return True
        now = now or self._clock()
        return now - last > self.config.refresh_ttl

    def refresh(self, force: bool = False) -> RefreshResult:
        """
        Run one refresh cycle when forced or when the TTL has expired.

        A cycle already in flight makes this call a no-op. Raises PersistenceError when
        the new snapshot cannot be written; the in-memory store keeps the new articles.
        """
        if not force and not self.needs_refresh():
            logger.debug("Store is fresh (last refresh %s), skipping", self.store.last_refresh_at)
            return RefreshResult(refreshed=False, reason="fresh", article_count=len(self.store))

        with self.store.cycle_guard() as acquired:
            if not acquired:
                logger.info("Refresh already in progress, ignoring request")
                return RefreshResult(refreshed=False, reason="in_flight", article_count=len(self.store))
            # a cycle may have finished between the check above and taking the guard
            if not force and not self.needs_refresh():
                logger.debug("Store was refreshed meanwhile (%s), skipping", self.store.last_refresh_at)
                return RefreshResult(refreshed=False, reason="fresh", article_count=len(self.store))
            return self._run_cycle(force=force)

    def _run_cycle(self, *, force: bool) -> RefreshResult:
        cfg = self.config
        log_event(logger, "Refresh cycle started", sources=len(cfg.feeds), force=force)

        report = self._fetch(cfg.feeds, max_workers=cfg.max_workers, user_agent=cfg.user_agent)
        result = RefreshResult(
            refreshed=False,
            fetched_sources=len(report.results),
            failed_sources=len(report.failures),
        )
        if report.all_failed:
            logger.warning("All %d sources failed, keeping the current store", len(report.failures))
            result.reason = "all_sources_failed"
            result.article_count = len(self.store)
            return result

        logger.debug("Fetched %d entries from %d sources", report.entry_count(), len(report.results))
        drafts = self._parse(report)
        categorized = [(d, classify_draft(d, policy=self.policy)) for d in drafts]
        result.drafts = len(drafts)

        now = self._clock()
        merged, stats = merge_drafts(
            self.store.articles,
            categorized,
            now=now,
            description_max_chars=cfg.description_max_chars,
        )
        refresh_staleness(merged, now, cfg.new_window)
        kept, dropped = apply_retention(merged, cfg.max_retained)
        self.store.replace_articles(kept)
        result.stats = stats
        result.dropped = len(dropped)
        result.article_count = len(kept)

        self.store.save(last_refresh_at=now)
        result.refreshed = True
        log_event(
            logger,
            f"Refresh cycle finished: {stats.inserted} new, {stats.updated} updated, {len(kept)} kept",
            inserted=stats.inserted,
            updated=stats.updated,
            dropped=len(dropped),
            failed_sources=len(report.failures),
        )
        return result

    def _parse(self, report: FetchReport) -> List[ArticleDraft]:
        drafts: List[ArticleDraft] = []
        for source, entries in report.results:
            for entry in entries:
                try:
                    drafts.append(to_draft(parse_entry(entry), source))
                except (ValueError, TypeError, AttributeError) as e:
                    logger.debug("Skipping malformed entry from %s: %s", source.display_name, e)
        return drafts

    # -- queries -----------------------------------------------------------

    def categories(self) -> List[str]:
        """Filter values the presentation layer may offer, `all` first."""
        return [self.config.all_category] + self.store.categories.labels()

    def validate_category(self, category: Optional[str]) -> str:
        category = category or self.config.all_category
        if category != self.config.all_category and category not in self.store.categories:
            raise InvalidFilterError(category)
        return category

    def query(self, category: Optional[str] = None, force_refresh: bool = False) -> Dict[str, Any]:
        """
        Filtered, newest-first article list.

        The category is validated before anything is fetched. A refresh runs first
        when forced or when the TTL has expired.
        """
        category = self.validate_category(category)
        self.refresh(force=force_refresh)
        refresh_staleness(self.store.articles, self._clock(), self.config.new_window)

        selected = None if category == self.config.all_category else category
        articles = self.store.filter(selected)
        last = self.store.last_refresh_at
        return {
            "status": "success",
            "count": len(articles),
            "category": category,
            "lastUpdate": last.isoformat() if last else None,
            "articles": [a.to_dict() for a in articles],
        }

    def respond(self, params: Mapping[str, Any]) -> Tuple[int, Dict[str, Any]]:
        """
        Answer a request given as query parameters (`category`, `force_update`).

        Returns (status_code, body) so any HTTP layer can serve it as JSON.
        """
        category = params.get("category") or self.config.all_category
        force = str(params.get("force_update", "")).lower() == "true"
        try:
            return 200, self.query(category, force_refresh=force)
        except InvalidFilterError as e:
            return 400, {"status": "error", "error": str(e), "categories": self.categories()}
        except PersistenceError as e:
            logger.error("Could not serve articles: %s", e)
            return 500, {"status": "error", "error": f"Could not refresh articles: {e}"}

    # -- health ------------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        """Health report on the snapshot, the last refresh and the disk holding them."""
        now = self._clock()
        path = self.store.path
        exists = path.exists()
        stat = path.stat() if exists else None
        last = self.store.last_refresh_at

        report: Dict[str, Any] = {
            "status": "ok",
            "timestamp": now.isoformat(),
            "snapshot": {
                "path": str(path),
                "exists": exists,
                "size": stat.st_size if stat else 0,
                "last_modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat() if stat else None,
            },
            "last_refresh": {
                "at": last.isoformat() if last else None,
                "age_seconds": int((now - last).total_seconds()) if last else None,
            },
            "articles_count": len(self.store),
            "refresh_in_progress": self.store.in_flight,
            "feeds": [f.url for f in self.config.feeds],
        }
        warnings: List[str] = []

        if not exists:
            warnings.append("Snapshot file does not exist")
        if last is not None and now - last > self.config.stale_after:
            warnings.append(f"Last refresh is older than {int(self.config.stale_after.total_seconds() // 3600)} hours")
        if len(self.store) == 0:
            warnings.append("No articles have been retrieved")

        disk_dir = path.parent if path.parent.exists() else path.parent.resolve().anchor
        try:
            usage = shutil.disk_usage(str(disk_dir))
        except OSError as e:
            logger.debug("Disk usage unavailable for %s: %s", disk_dir, e)
        else:
            percent = round(usage.used / usage.total * 100, 2) if usage.total else 0.0
            report["disk"] = {"free": usage.free, "total": usage.total, "used": usage.used, "percent_used": percent}
            if percent > DISK_WARNING_PERCENT:
                warnings.append(f"Disk is almost full ({percent}%)")

        if warnings:
            report["status"] = "warning"
            report["message"] = warnings[-1]
            report["warnings"] = warnings
        return report
