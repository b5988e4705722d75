"""RSS/Atom feed fetcher — httpx download, feedparser parse."""

import logging
import re
from calendar import timegm
from datetime import datetime, timezone
from typing import Optional

import feedparser
import httpx
from dateutil import parser as dateparser

from hndigest.config import RssSource
from hndigest.models import CandidateItem, Source

logger = logging.getLogger(__name__)

_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) hndigest/1.0",
    "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8",
}

_TAG_RE = re.compile(r"<[^>]+>")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def fetch_all_feeds(
    sources: list[RssSource],
    timeout: float = 15,
    transport: Optional[httpx.BaseTransport] = None,
) -> list[CandidateItem]:
    """Fetch every configured feed in order. A failing feed is logged and skipped."""
    all_items: list[CandidateItem] = []
    with httpx.Client(
        timeout=timeout, follow_redirects=True, headers=_HEADERS, transport=transport
    ) as client:
        for source in sources:
            logger.info(f"  [Feed] Fetching {source.name}...")
            try:
                items = fetch_feed(client, source)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"  [Feed] Error fetching {source.name}: {e}")
                continue
            logger.info(f"  [RSS]  {source.name} — {len(items)} items")
            all_items.extend(items)
    return all_items


def fetch_feed(client: httpx.Client, source: RssSource) -> list[CandidateItem]:
    resp = client.get(source.url)
    resp.raise_for_status()
    return parse_feed(resp.text, source.name)


# ---------------------------------------------------------------------------
# RSS/Atom parsing helpers
# ---------------------------------------------------------------------------

def parse_feed(text: str, source_name: str) -> list[CandidateItem]:
    """Parse RSS/Atom feed from raw text."""
    feed = feedparser.parse(text)
    if feed.bozo and not feed.entries:
        raise ValueError(f"Failed to parse feed: {feed.bozo_exception}")
    return _entries_to_items(feed.entries, source_name)


def _entries_to_items(entries, source_name: str) -> list[CandidateItem]:
    """Convert feedparser entries to CandidateItems."""
    source = Source.rss(source_name)
    fetched_at = datetime.now(timezone.utc)
    items = []
    for entry in entries:
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        external_id = (entry.get("id") or link or title).strip()
        if not external_id:
            continue

        description = entry.get("summary", "") or entry.get("description", "")
        if description:
            description = _TAG_RE.sub("", description).strip()

        items.append(CandidateItem(
            external_id=external_id,
            source=source,
            title=title,
            url=link or None,
            text=f"{title} {description}".strip(),
            published_at=_parse_date(entry) or fetched_at,
        ))
    return items


def _parse_date(entry) -> Optional[datetime]:
    """Try to parse a date from a feed entry."""
    for field in ("published", "updated", "created"):
        raw = entry.get(f"{field}_parsed") or entry.get(field)
        if raw is None:
            continue
        if hasattr(raw, "tm_year"):
            try:
                # feedparser normalizes *_parsed to UTC
                return datetime.fromtimestamp(timegm(raw), tz=timezone.utc)
            except (OverflowError, ValueError, OSError):
                continue
        if isinstance(raw, str):
            try:
                return dateparser.parse(raw)
            except (ValueError, OverflowError):
                continue
    return None
