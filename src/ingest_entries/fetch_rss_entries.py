"""RSS feed adapter."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import feedparser
import requests
from dateutil.parser import parse as parse_date

from common.errors import FetchError
from ingest_entries.base import FeedSource
from ingest_entries.models import FeedItem

logger = logging.getLogger(__name__)

# Timezone abbreviations for date parsing
TZINFOS = {
    "CET": timezone(timedelta(hours=1)),
    "CEST": timezone(timedelta(hours=2)),
    "GMT": timezone.utc,
    "UTC": timezone.utc,
}


class RssFeed(FeedSource):
    def fetch(self, http: requests.Session) -> list[FeedItem]:
        try:
            content = self._get(http)
        except requests.RequestException as exc:
            raise FetchError(f"failed to fetch {self.href}: {exc}") from exc

        feed = feedparser.parse(content)
        if feed.bozo and not feed.entries:
            raise FetchError(f"failed to parse {self.href}: {feed.get('bozo_exception')}")

        items = []
        seen_links: set[str] = set()
        for entry in feed.entries:
            item = self._parse_entry(entry, seen_links)
            if item is not None:
                items.append(item)
        return items

    def _parse_entry(self, entry, seen_links: set[str]) -> FeedItem | None:
        """Parse a single RSS entry into a FeedItem."""
        link = (entry.get("link") or "").strip()
        if not link or link in seen_links:
            return None

        headline = (entry.get("title") or "").strip()
        if not headline:
            logger.debug("Skipping entry without title: %s", link)
            return None

        published_at = _parse_published_date(entry)
        if published_at is None:
            logger.debug("Skipping entry without date: %s", link)
            return None

        seen_links.add(link)
        return FeedItem(link=link, headline=headline, lang=self.lang, published_at=published_at)


def _parse_published_date(entry) -> datetime | None:
    """Extract and parse the published date from an RSS entry."""
    published = entry.get("published") or entry.get("updated")
    if not published:
        return None

    try:
        dt = parse_date(published, tzinfos=TZINFOS)
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
