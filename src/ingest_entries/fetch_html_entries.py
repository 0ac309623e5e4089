"""Scraped HTML adapter for the Dagens Nyheter live page."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from urllib.parse import urljoin

import requests
from dateutil.parser import isoparse
from lxml import etree
from lxml import html as lxml_html

from common.errors import FetchError
from ingest_entries.base import FeedSource
from ingest_entries.models import FeedItem

logger = logging.getLogger(__name__)

BASE_URL = "https://www.dn.se"


def _class_xpath(name: str) -> str:
    return f"contains(concat(' ', normalize-space(@class), ' '), ' {name} ')"


POST_XPATH = f"//article[{_class_xpath('direkt-post')}]"
TITLE_XPATH = ".//h2"
SHARE_XPATH = f".//*[{_class_xpath('direkt-post__share-button')}]/@data-link"
TIME_XPATHS = (
    f".//*[{_class_xpath('direkt-post__update-time')}]/@datetime",
    f".//*[{_class_xpath('direkt-post__publication-time')}]/@datetime",
)


class DnDirektFeed(FeedSource):
    """Posts on dn.se/direkt; each ``article.direkt-post`` becomes one item."""

    def fetch(self, http: requests.Session) -> list[FeedItem]:
        try:
            content = self._get(http)
        except requests.RequestException as exc:
            raise FetchError(f"failed to fetch {self.href}: {exc}") from exc

        try:
            tree = lxml_html.fromstring(content)
        except (etree.ParserError, ValueError) as exc:
            raise FetchError(f"failed to parse {self.href}: {exc}") from exc

        return parse_direkt_posts(tree, self.lang)


def parse_direkt_posts(tree, lang: str = "sv") -> list[FeedItem]:
    items = []
    seen_links: set[str] = set()
    for post in tree.xpath(POST_XPATH):
        item = _parse_post(post, lang)
        if item is None or item.link in seen_links:
            continue
        seen_links.add(item.link)
        items.append(item)
    return items


def _parse_post(post, lang: str) -> FeedItem | None:
    titles = post.xpath(TITLE_XPATH)
    headline = " ".join(titles[0].text_content().split()) if titles else ""
    if not headline:
        return None

    links = post.xpath(SHARE_XPATH)
    if not links or not links[0].strip():
        return None
    link = urljoin(BASE_URL, links[0].strip())

    published_at = None
    for xpath in TIME_XPATHS:
        values = post.xpath(xpath)
        if values:
            published_at = _parse_datetime(values[0])
            if published_at is not None:
                break
    if published_at is None:
        logger.debug("Skipping post without time: %s", link)
        return None

    return FeedItem(link=link, headline=headline, lang=lang, published_at=published_at)


def _parse_datetime(value: str) -> datetime | None:
    try:
        dt = isoparse(value.strip())
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
