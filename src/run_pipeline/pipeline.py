"""One pipeline run: ingest, hash, embed, cluster, select, translate, score, publish."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, TypeVar

import requests

from build_report.build_report import build_report_draft
from build_report.select_representative import select_representative
from cluster_entries.cluster_entries import cluster_points, get_cluster_stats, tune_eps
from cluster_entries.models import ClusteringResult, ClusterPoint
from common.config import Config
from common.errors import (
    FatalProviderError,
    PersistenceError,
    RetryableProviderError,
    RunCancelled,
)
from common.retry import call_with_retry
from ingest_entries.base import FeedSource
from ingest_entries.ingest_entries import build_feed_source, fetch_feeds, store_items
from ingest_entries.models import FeedItem
from news_db.caches import EmbeddingStore, TranslationStore
from news_db.connection import Database
from news_db.entries import WindowEntry, list_enabled_feeds, list_window_entries
from news_db.reports import publish_report
from resolve_content.content_cache import ContentCache
from resolve_content.providers import EmbeddingProvider, ProviderGate, TranslationProvider
from run_pipeline.run_context import RunContext, RunState

logger = logging.getLogger(__name__)

T = TypeVar("T")

RUN_ABORTING_ERRORS = (RunCancelled, FatalProviderError, PersistenceError)


@dataclass
class RunResult:
    run_id: str
    state: RunState
    report_id: int | None = None
    error: str | None = None
    counts: dict[str, int] = field(default_factory=dict)
    history: list[RunState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.report_id is not None


class Pipeline:
    """
    Runs the aggregation pipeline, one run at a time.

    ``run_once`` returns immediately with ``None`` when another run holds the
    run lock. Each run gets a fresh RunContext; the caches and the database
    are the only state shared between runs.
    """

    def __init__(
        self,
        database: Database,
        config: Config,
        embedder: EmbeddingProvider,
        translator: TranslationProvider,
        feeds: list[FeedSource] | None = None,
        http: requests.Session | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.database = database
        self.config = config
        self.embedder = embedder
        self.translator = translator
        self.feeds = feeds
        self.http = http
        self.clock = clock
        self.now = now

        self.embeddings: ContentCache[list[float]] = ContentCache(
            EmbeddingStore(database), "embedding"
        )
        self.translations: ContentCache[str] = ContentCache(
            TranslationStore(database, config.run.target_lang), "translation"
        )
        self.gate = ProviderGate(config.provider.max_concurrency)
        self._run_lock = threading.Lock()
        self.current_run: RunContext | None = None

    def run_once(self) -> RunResult | None:
        if not self._run_lock.acquire(blocking=False):
            logger.warning("A run is already in progress; skipping this trigger")
            return None
        try:
            run = RunContext(
                time_budget_seconds=self.config.run.time_budget_seconds,
                started_at=self.now(),
                clock=self.clock,
            )
            self.current_run = run
            logger.info(
                "Starting run %s (budget %.0fs)", run.run_id, self.config.run.time_budget_seconds
            )
            return self._execute(run)
        finally:
            self.current_run = None
            self._run_lock.release()

    def _execute(self, run: RunContext) -> RunResult:
        counts: dict[str, int] = {}
        try:
            run.advance(RunState.INGESTING)
            items = self._ingest(run, counts)

            run.advance(RunState.HASHING)
            self._store(items, counts)

            run.advance(RunState.EMBEDDING)
            points = self._embed(run, counts)

            run.advance(RunState.CLUSTERING)
            result = self._cluster(points)
            counts["clusters"] = len(result.clusters)
            counts["noise"] = len(result.noise)

            run.advance(RunState.SELECTING)
            representatives = {
                cluster.cluster_id: select_representative(cluster.members)
                for cluster in result.clusters
            }

            run.advance(RunState.TRANSLATING)
            translations = self._translate(run, list(representatives.values()), counts)

            run.advance(RunState.SCORING)
            draft = build_report_draft(
                run.run_id,
                result,
                representatives,
                translations,
                self.now(),
                self.config.scoring,
            )

            run.advance(RunState.PUBLISHING)
            with run.commit_guard():
                report_id = publish_report(self.database, draft)

            run.advance(RunState.IDLE)
        except RUN_ABORTING_ERRORS as exc:
            failed_in = run.state
            run.cancel()
            run.advance(RunState.FAILED)
            logger.error("Run %s failed while %s: %s", run.run_id, failed_in.value, exc)
            return RunResult(
                run_id=run.run_id,
                state=RunState.FAILED,
                error=str(exc),
                counts=counts,
                history=list(run.history),
            )
        except Exception:
            failed_in = run.state
            run.cancel()
            run.advance(RunState.FAILED)
            logger.exception("Run %s failed unexpectedly while %s", run.run_id, failed_in.value)
            raise

        logger.info("Run %s published report %d: %s", run.run_id, report_id, counts)
        return RunResult(
            run_id=run.run_id,
            state=run.state,
            report_id=report_id,
            counts=counts,
            history=list(run.history),
        )

    def _sources(self) -> list[FeedSource]:
        if self.feeds is not None:
            return self.feeds
        feeds = list_enabled_feeds(self.database)
        if self.config.ingest.feeds:
            wanted = set(self.config.ingest.feeds)
            feeds = [feed for feed in feeds if feed.id in wanted]
        return [build_feed_source(feed, self.config.ingest) for feed in feeds]

    def _ingest(self, run: RunContext, counts: dict[str, int]) -> dict[int, list[FeedItem]]:
        items, stats = fetch_feeds(self._sources(), self.config.ingest, run=run, http=self.http)
        counts["feeds_fetched"] = stats.feeds_fetched
        counts["feeds_failed"] = stats.feeds_failed
        counts["items"] = stats.items
        return items

    def _store(self, items: dict[int, list[FeedItem]], counts: dict[str, int]) -> None:
        inserted = 0
        duplicates = 0
        for feed_id in sorted(items):
            new, seen = store_items(
                self.database, feed_id, items[feed_id], self.config.clustering.field_name
            )
            inserted += new
            duplicates += seen
        counts["entries_inserted"] = inserted
        counts["duplicates"] = duplicates

    def _window(self, run: RunContext) -> list[WindowEntry]:
        since = run.started_at - timedelta(hours=self.config.clustering.lookback_hours)
        return list_window_entries(
            self.database,
            since,
            self.config.clustering.field_name,
            self.config.clustering.lang,
        )

    def _call_provider(self, run: RunContext, fn: Callable[..., T], *args) -> T:
        return call_with_retry(
            lambda: self.gate.call(fn, *args),
            self.config.provider.retry,
            RetryableProviderError,
            cancelled=run.is_cancelled,
            sleep=run.cancel_event.wait,
        )

    def _resolve_all(
        self,
        run: RunContext,
        cache: ContentCache[T],
        jobs: dict[str, str],
        compute: Callable[[str], T],
    ) -> tuple[dict[str, T], int]:
        """Resolve every digest in ``jobs`` on the provider pool.

        Digests whose provider calls exhaust their retries are skipped.
        Returns the resolved values and the number skipped.
        """
        resolved: dict[str, T] = {}
        skipped = 0
        if not jobs:
            return resolved, skipped

        executor = ThreadPoolExecutor(
            max_workers=self.config.provider.max_workers, thread_name_prefix=cache.name
        )
        try:
            futures = {
                executor.submit(cache.resolve, digest, text, compute, run): digest
                for digest, text in jobs.items()
            }
            for future in as_completed(futures, timeout=run.remaining()):
                digest = futures[future]
                try:
                    resolved[digest] = future.result()
                except RetryableProviderError as exc:
                    skipped += 1
                    logger.warning("Skipping %s for %s this run: %s", cache.name, digest, exc)
        except concurrent.futures.TimeoutError:
            run.cancel()
            raise RunCancelled(
                run.run_id, f"time budget exceeded while resolving {cache.name}s"
            ) from None
        except RUN_ABORTING_ERRORS:
            run.cancel()
            raise
        finally:
            executor.shutdown(wait=not run.is_cancelled(), cancel_futures=True)

        run.check()
        return resolved, skipped

    def _embed(self, run: RunContext, counts: dict[str, int]) -> list[ClusterPoint]:
        window = self._window(run)
        missing = {}
        for entry in window:
            if entry.vector is None and entry.hash not in missing:
                missing[entry.hash] = entry.title

        logger.info(
            "Window has %d entries, %d distinct hashes need embeddings", len(window), len(missing)
        )
        resolved, skipped = self._resolve_all(
            run,
            self.embeddings,
            missing,
            lambda text: self._call_provider(run, self.embedder.embed, text),
        )
        counts["embedded"] = len(resolved)
        counts["embeddings_skipped"] = skipped

        if resolved:
            window = self._window(run)
        points = [
            ClusterPoint(
                entry_id=entry.entry_id,
                link=entry.link,
                title=entry.title,
                published_at=entry.published_at,
                hash=entry.hash,
                embedding_id=entry.embedding_id,
                vector=entry.vector,
            )
            for entry in window
            if entry.vector is not None and entry.embedding_id is not None
        ]
        points = _keep_dominant_dimension(points)
        counts["points"] = len(points)
        return points

    def _cluster(self, points: list[ClusterPoint]) -> ClusteringResult:
        clustering = self.config.clustering
        if clustering.eps_search is not None:
            result = tune_eps(
                points,
                clustering.min_points,
                clustering.eps_search.eps_min,
                clustering.eps_search.eps_max,
                clustering.eps_search.max_steps,
                n_jobs=clustering.n_jobs,
            )
        else:
            result = cluster_points(points, clustering.eps, clustering.min_points, clustering.n_jobs)
        logger.info("Cluster stats: %s", get_cluster_stats(result))
        return result

    def _translate(
        self,
        run: RunContext,
        representatives: list[ClusterPoint],
        counts: dict[str, int],
    ) -> dict[str, str]:
        target_lang = self.config.run.target_lang
        jobs = {}
        for representative in representatives:
            jobs.setdefault(representative.hash, representative.title)

        translations, skipped = self._resolve_all(
            run,
            self.translations,
            jobs,
            lambda text: self._call_provider(run, self.translator.translate, text, target_lang),
        )
        counts["translated"] = len(translations)
        counts["translations_skipped"] = skipped
        return translations


def _keep_dominant_dimension(points: list[ClusterPoint]) -> list[ClusterPoint]:
    """Drop vectors whose dimension differs from the most common one."""
    if not points:
        return points
    dimensions = Counter(len(point.vector) for point in points)
    if len(dimensions) == 1:
        return points
    dimension, _ = max(dimensions.items(), key=lambda item: (item[1], item[0]))
    kept = [point for point in points if len(point.vector) == dimension]
    logger.warning(
        "Ignoring %d vectors with dimensions other than %d", len(points) - len(kept), dimension
    )
    return kept
