from __future__ import annotations

import calendar
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_date_string(s: str) -> Optional[datetime]:
    s = s.strip()
    if not s:
        return None
    try:
        return _as_utc(parsedate_to_datetime(s))
    except (TypeError, ValueError, IndexError):
        pass
    try:
        return _as_utc(datetime.fromisoformat(s.replace("Z", "+00:00")))
    except ValueError:
        return None


def _to_datetime(entry: Dict[str, Any]) -> Optional[datetime]:
    """
    Convert feed entry date fields to timezone-aware UTC datetime.
    Priority: published_parsed -> updated_parsed -> created_parsed -> raw strings -> None.
    """
    for key in ("published_parsed", "updated_parsed", "created_parsed"):
        val = entry.get(key)
        if isinstance(val, time.struct_time):
            try:
                # feedparser normalizes *_parsed to UTC
                return datetime.fromtimestamp(calendar.timegm(val), tz=timezone.utc)
            except (OverflowError, ValueError, OSError):
                continue
    # *_parsed is missing when feedparser could not make sense of the value itself
    for key in ("published", "pubDate", "updated", "created"):
        s = entry.get(key)
        if isinstance(s, str) and s:
            parsed = _parse_date_string(s)
            if parsed is not None:
                return parsed
    return None


def _get_description(entry: Dict[str, Any]) -> str:
    for key in ("summary", "description"):
        val = entry.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    content = entry.get("content")
    if isinstance(content, list):
        for part in content:
            if isinstance(part, dict):
                val = part.get("value")
                if isinstance(val, str) and val.strip():
                    return val.strip()
    return ""


def parse_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a raw feed entry (from feedparser) to a dict with the fields the engine uses.
    Fields: title, link, description (raw HTML), published_at (datetime|None)
    """
    title = (entry.get("title") or "").strip()
    link = (entry.get("link") or entry.get("feedburner_origlink") or "").strip()

    return {
        "title": title,
        "link": link,
        "description": _get_description(entry),
        "published_at": _to_datetime(entry),
    }
