"""Common interface of all feed adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod

import requests

from ingest_entries.models import FeedItem

DEFAULT_USER_AGENT = "sverige-news crawler"


class FeedSource(ABC):
    """A source of entries. Adapters differ only in how they fetch and parse."""

    def __init__(
        self,
        feed_id: int,
        href: str,
        lang: str = "sv",
        timeout: float = 30,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.feed_id = feed_id
        self.href = href
        self.lang = lang
        self.timeout = timeout
        self.user_agent = user_agent

    def _get(self, http: requests.Session) -> bytes:
        response = http.get(
            self.href,
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
        )
        response.raise_for_status()
        return response.content

    @abstractmethod
    def fetch(self, http: requests.Session) -> list[FeedItem]:
        """Fetch and parse the feed. Raises FetchError on network or parse failure."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(feed_id={self.feed_id}, href={self.href!r})"
