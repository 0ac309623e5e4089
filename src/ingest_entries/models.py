"""Data models for ingest_entries pipeline stage."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class FeedItem:
    """One article observed in a feed."""

    link: str
    headline: str
    lang: str
    published_at: datetime


@dataclass
class IngestStats:
    feeds_fetched: int = 0
    feeds_failed: int = 0
    items: int = 0
    inserted: int = 0
    duplicates: int = 0
