"""Tests for ingest_entries.fetch_rss_entries module."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from common.errors import FetchError
from ingest_entries.fetch_rss_entries import RssFeed, _parse_published_date

RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>SVT Nyheter</title>
    <item>
      <title>Brand i G\xc3\xb6teborg</title>
      <link>https://www.svt.se/nyheter/1</link>
      <pubDate>Fri, 01 Mar 2024 13:00:00 +0100</pubDate>
    </item>
    <item>
      <title>Brand i G\xc3\xb6teborg igen</title>
      <link>https://www.svt.se/nyheter/1</link>
      <pubDate>Fri, 01 Mar 2024 13:05:00 +0100</pubDate>
    </item>
    <item>
      <title>Utan datum</title>
      <link>https://www.svt.se/nyheter/2</link>
    </item>
    <item>
      <title></title>
      <link>https://www.svt.se/nyheter/3</link>
      <pubDate>Fri, 01 Mar 2024 13:00:00 +0100</pubDate>
    </item>
  </channel>
</rss>
"""


def _http(content: bytes = RSS, status: int = 200) -> MagicMock:
    response = MagicMock()
    response.content = content
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status}")
    http = MagicMock()
    http.get.return_value = response
    return http


class TestRssFeed:
    def test_parses_items(self) -> None:
        feed = RssFeed(feed_id=1, href="https://www.svt.se/rss.xml")
        items = feed.fetch(_http())

        assert len(items) == 1
        item = items[0]
        assert item.link == "https://www.svt.se/nyheter/1"
        assert item.headline == "Brand i Göteborg"
        assert item.lang == "sv"
        assert item.published_at == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_sends_user_agent_and_timeout(self) -> None:
        http = _http()
        RssFeed(feed_id=1, href="https://www.svt.se/rss.xml", timeout=5, user_agent="ua").fetch(http)
        http.get.assert_called_once_with(
            "https://www.svt.se/rss.xml", timeout=5, headers={"User-Agent": "ua"}
        )

    def test_http_error_is_fetch_error(self) -> None:
        feed = RssFeed(feed_id=1, href="https://www.svt.se/rss.xml")
        with pytest.raises(FetchError):
            feed.fetch(_http(status=503))

    def test_connection_error_is_fetch_error(self) -> None:
        http = MagicMock()
        http.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(FetchError):
            RssFeed(feed_id=1, href="https://www.svt.se/rss.xml").fetch(http)

    def test_unparseable_feed_is_fetch_error(self) -> None:
        with pytest.raises(FetchError):
            RssFeed(feed_id=1, href="https://www.svt.se/rss.xml").fetch(_http(b"<html><oops"))


class TestParsePublishedDate:
    def test_timezone_abbreviation(self) -> None:
        result = _parse_published_date({"published": "Fri, 01 Mar 2024 14:00:00 CEST"})
        assert result == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_naive_is_utc(self) -> None:
        result = _parse_published_date({"updated": "2024-03-01T12:00:00"})
        assert result == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_invalid_returns_none(self) -> None:
        assert _parse_published_date({"published": "not a date"}) is None
        assert _parse_published_date({}) is None
