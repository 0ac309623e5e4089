"""Fetch feeds concurrently and store their entries with content-hashed fields."""

from __future__ import annotations

import logging
import concurrent.futures
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone

import requests
from sqlalchemy.exc import SQLAlchemyError

from common.config import IngestConfig
from common.errors import FetchError, PersistenceError, RunCancelled
from common.hashing import content_hash
from common.retry import call_with_retry
from ingest_entries.base import FeedSource
from ingest_entries.fetch_html_entries import DnDirektFeed
from ingest_entries.fetch_rss_entries import RssFeed
from ingest_entries.models import FeedItem, IngestStats
from news_db.connection import Database
from news_db.entries import insert_entry, insert_field, mark_feed_fetched
from news_db.models import Feed
from run_pipeline.run_context import RunContext

logger = logging.getLogger(__name__)

FEED_KINDS: dict[str, type[FeedSource]] = {
    "rss": RssFeed,
    "html": DnDirektFeed,
}


def build_feed_source(feed: Feed, config: IngestConfig) -> FeedSource:
    try:
        source_cls = FEED_KINDS[feed.kind]
    except KeyError:
        raise ValueError(f"Unknown feed kind {feed.kind!r} for feed {feed.id}") from None
    return source_cls(
        feed_id=feed.id,
        href=feed.href,
        timeout=config.request_timeout,
        user_agent=config.user_agent,
    )


def fetch_feeds(
    sources: list[FeedSource],
    config: IngestConfig,
    run: RunContext | None = None,
    http: requests.Session | None = None,
) -> tuple[dict[int, list[FeedItem]], IngestStats]:
    """
    Fetch all sources on a bounded worker pool.

    A source that still fails after retries is logged and left out; the
    remaining sources are unaffected. With a ``run``, waiting stops at its
    deadline: pending fetches are cancelled and RunCancelled is raised.

    Returns:
        Items per feed id, and fetch statistics.
    """
    stats = IngestStats()
    results: dict[int, list[FeedItem]] = {}
    if not sources:
        return results, stats

    session = http or requests.Session()
    cancelled = run.is_cancelled if run is not None else None
    sleep = run.cancel_event.wait if run is not None else None
    executor = ThreadPoolExecutor(max_workers=config.max_workers, thread_name_prefix="ingest")
    try:
        futures = {
            executor.submit(
                call_with_retry,
                lambda source=source: source.fetch(session),
                config.retry,
                FetchError,
                cancelled,
                sleep,
            ): source
            for source in sources
        }
        timeout = run.remaining() if run is not None else None
        try:
            for future in as_completed(futures, timeout=timeout):
                source = futures[future]
                try:
                    items = future.result()
                except FetchError as exc:
                    stats.feeds_failed += 1
                    logger.warning("Dropping feed %d for this run: %s", source.feed_id, exc)
                    continue
                stats.feeds_fetched += 1
                stats.items += len(items)
                results[source.feed_id] = items
                logger.info("Found %d entries from feed %d", len(items), source.feed_id)
        except concurrent.futures.TimeoutError:
            run.cancel()
            raise RunCancelled(run.run_id, "time budget exceeded while fetching feeds") from None
    finally:
        executor.shutdown(wait=run is None or not run.is_cancelled(), cancel_futures=True)
        if http is None:
            session.close()

    return results, stats


def store_items(
    database: Database,
    feed_id: int,
    items: list[FeedItem],
    field_name: str = "title",
) -> tuple[int, int]:
    """
    Insert entries and their hashed fields for one feed in one transaction.

    Links already stored are skipped without touching the existing entry.

    Returns:
        (inserted, duplicates)
    """
    inserted = 0
    duplicates = 0
    seen_links: set[str] = set()
    try:
        with database.session() as session:
            for item in items:
                if item.link in seen_links:
                    duplicates += 1
                    continue
                seen_links.add(item.link)

                entry_id = insert_entry(
                    session,
                    feed_id=feed_id,
                    link=item.link,
                    title=item.headline,
                    published_at=item.published_at,
                )
                if entry_id is None:
                    duplicates += 1
                    continue
                insert_field(
                    session,
                    entry_id=entry_id,
                    name=field_name,
                    lang_code=item.lang,
                    digest=content_hash(item.headline, item.lang),
                )
                inserted += 1
            session.commit()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"failed to store entries for feed {feed_id}: {exc}") from exc

    try:
        mark_feed_fetched(database, feed_id, datetime.now(timezone.utc))
    except SQLAlchemyError as exc:
        raise PersistenceError(f"failed to update feed {feed_id}: {exc}") from exc

    logger.info("Feed %d: %d new entries, %d duplicates", feed_id, inserted, duplicates)
    return inserted, duplicates
