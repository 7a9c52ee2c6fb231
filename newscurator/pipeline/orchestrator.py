"""One curation run, end to end.

LoadDedupIndex -> DrainRetryQueue(pre) -> Fetch -> Classify -> FilterExisting
-> per record {ResolveImage -> Bilingual -> Persist-or-Enqueue}
-> DrainRetryQueue(post) -> ReportStats

Each record ends persisted, skipped (duplicate) or queued for retry. Only
initialization problems (config, unreachable datastore) abort a run.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import psycopg

from newscurator import config
from newscurator.bilingual.pipeline import BilingualPipeline
from newscurator.bilingual.rewrite import ArticleRewriter
from newscurator.bilingual.translate import Translator
from newscurator.classification.classifier import RelevanceClassifier
from newscurator.config import CuratorConfig
from newscurator.dedup.semantic import SemanticDeduper
from newscurator.dedup.titles import DedupIndex
from newscurator.errors import DatastoreUnavailable
from newscurator.extraction.fulltext import extract_text
from newscurator.images.browser import BrowserSession
from newscurator.images.cascade import ImageResolver
from newscurator.images.fallbacks import stock_image
from newscurator.images.validator import ImageValidator
from newscurator.ingestion.article_types import FeedSource, RawItem
from newscurator.ingestion.feeds import FeedFetcher
from newscurator.ingestion.sources import default_sources
from newscurator.llm.client import build_oracle
from newscurator.llm.embeddings import Embedder
from newscurator.pipeline.records import CuratedRecord
from newscurator.pipeline.writer import DUPLICATE, PERSISTED, RecordWriter
from newscurator.storage.postgres_repo import PostgresRepo
from newscurator.storage.postgres_schema import ensure_postgres_schema
from newscurator.storage.retry_queue import PostgresRetryQueue, utc_now


logger = logging.getLogger(__name__)

STORED = "stored"
QUEUED = "queued"
SKIPPED = "skipped"
ERROR = "error"


@dataclass
class RunStats:
    fetched: int = 0
    lexical_duplicates: int = 0
    classified: int = 0
    accepted: int = 0
    already_known: int = 0
    stored: int = 0
    queued: int = 0
    skipped: int = 0
    stock_images: int = 0
    retry_attempted: int = 0
    retry_stored: int = 0
    errors: int = 0

    def count(self, outcome: str) -> None:
        if outcome == STORED:
            self.stored += 1
        elif outcome == QUEUED:
            self.queued += 1
        else:
            self.skipped += 1

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class CurationPipeline:
    def __init__(
        self,
        *,
        repo: Any,
        queue: Any,
        fetcher: FeedFetcher,
        classifier: RelevanceClassifier,
        resolver: ImageResolver,
        bilingual: BilingualPipeline,
        writer: RecordWriter,
        sources: Optional[Sequence[FeedSource]] = None,
        use_stock_fallback: bool = False,
        retry_batch_size: int = config.RETRY_BATCH_SIZE,
        dedup_window_days: int = config.DEDUP_WINDOW_DAYS,
        text_extractor: Callable[[Optional[str]], Optional[str]] = extract_text,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repo = repo
        self.queue = queue
        self.fetcher = fetcher
        self.classifier = classifier
        self.resolver = resolver
        self.bilingual = bilingual
        self.writer = writer
        self.sources = list(sources) if sources is not None else default_sources()
        self.use_stock_fallback = use_stock_fallback
        self.retry_batch_size = retry_batch_size
        self.dedup_window_days = dedup_window_days
        self.text_extractor = text_extractor
        self.clock = clock
        self.index: Optional[DedupIndex] = None

    # --- run ---------------------------------------------------------------

    def load_dedup_index(self) -> DedupIndex:
        try:
            titles = self.repo.recent_titles(days=self.dedup_window_days)
        except psycopg.Error as e:
            raise DatastoreUnavailable(f"could not load recent titles: {e}") from e
        self.index = DedupIndex(titles)
        logger.info(f"[run] dedup index loaded with {len(self.index)} titles from the last {self.dedup_window_days} days")
        return self.index

    def run(self) -> RunStats:
        started = self.clock()
        stats = RunStats()
        self.load_dedup_index()

        self.drain_retry_queue(stats, phase="pre")

        items = self.fetcher.fetch(self.sources)
        stats.fetched = len(items)

        fresh = self.prefilter(items, stats)
        stats.classified = len(fresh)
        accepted = self.classifier.classify(fresh)
        stats.accepted = len(accepted)

        records = self.filter_existing([CuratedRecord(item=it, classification=c) for it, c in accepted], stats)
        for record in records:
            outcome, _ = self._process_safely(record, stats)
            stats.count(outcome)

        self.drain_retry_queue(stats, phase="post")

        finished = self.clock()
        try:
            self.repo.record_run(started_at=started, finished_at=finished, success=True, stats=stats.to_dict())
        except psycopg.Error as e:
            logger.error(f"[run] failed to record run stats: {e}")
        logger.info(
            f"[run] done in {(finished - started).total_seconds():.1f}s: "
            f"stored={stats.stored} queued={stats.queued} skipped={stats.skipped} "
            f"(fetched={stats.fetched}, accepted={stats.accepted}, errors={stats.errors})"
        )
        return stats

    def prefilter(self, items: Iterable[RawItem], stats: RunStats) -> List[RawItem]:
        """Drop titles already represented in recent history before spending oracle calls."""
        out: List[RawItem] = []
        for item in items:
            dup = self.index.find_duplicate(item.title)
            if dup is not None:
                stats.lexical_duplicates += 1
                stats.skipped += 1
                logger.info(f"[dedup] {item.title[:70]!r} near-duplicates {dup[:70]!r}")
                continue
            out.append(item)
        return out

    def filter_existing(self, records: List[CuratedRecord], stats: RunStats) -> List[CuratedRecord]:
        links = [r.link for r in records]
        try:
            known = set(self.repo.existing_links(links))
        except psycopg.Error as e:
            logger.warning(f"[run] existing-link lookup failed; the writer will re-check: {e}")
            known = set()
        try:
            known |= set(self.queue.queued_links(links))
        except psycopg.Error as e:
            logger.warning(f"[retry-queue] queued-link lookup failed: {e}")
        out = [r for r in records if r.link not in known]
        dropped = len(records) - len(out)
        stats.already_known += dropped
        stats.skipped += dropped
        return out

    # --- per record -----------------------------------------------------

    def _process_safely(self, record: CuratedRecord, stats: RunStats) -> Tuple[str, Optional[str]]:
        """(outcome, error message). ERROR means the record hit an unexpected failure."""
        try:
            return self.process(record, stats), None
        except Exception as e:
            # One bad record never stops the batch.
            stats.errors += 1
            logger.exception(f"[run] unexpected error for {record.link}: {e}")
            return ERROR, f"{type(e).__name__}: {e}"

    def process(self, record: CuratedRecord, stats: RunStats) -> str:
        item = record.item
        dup = self.index.find_duplicate(item.title)
        if dup is not None:
            logger.info(f"[dedup] {item.title[:70]!r} near-duplicates {dup[:70]!r} (this run)")
            return SKIPPED

        if record.image is None:
            result = self.resolver.resolve(item.link, media_hints=item.media_hints)
            if record.scraped_content is None and result.page_html:
                record = replace(record, scraped_content=self.text_extractor(result.page_html))
            if result.ok:
                record = record.with_image(result.image)
            elif self.use_stock_fallback:
                record = record.with_image(stock_image(item.title, item.link))
                stats.stock_images += 1
            else:
                return self._enqueue(record, f"image: {result.error or 'unresolved'}")

        if record.copy is None:
            record = record.with_copy(
                self.bilingual.build(item, record.classification, scraped_content=record.scraped_content)
            )

        result = self.writer.persist(record)
        if result.outcome == PERSISTED:
            for title in (item.title, record.copy.title_en, record.copy.title_es):
                self.index.add(title)
            return STORED
        if result.outcome == DUPLICATE:
            logger.info(f"[writer] skipped {item.link}: {result.reason}")
            return SKIPPED
        return self._enqueue(result.record, result.reason or "write failed")

    def _enqueue(self, record: CuratedRecord, reason: str) -> str:
        entry = self.queue.enqueue(record.link, record.to_payload(), reason)
        if entry is None:
            logger.warning(f"[run] retry queue unavailable; dropping {record.link} ({reason})")
            return SKIPPED
        return QUEUED

    # --- retry queue ----------------------------------------------------

    def drain_retry_queue(self, stats: RunStats, *, phase: str) -> None:
        try:
            entries = self.queue.due(limit=self.retry_batch_size)
        except psycopg.Error as e:
            logger.error(f"[retry-queue] could not list due entries ({phase}); skipping drain: {e}")
            return
        if not entries:
            return
        logger.info(f"[retry-queue] draining {len(entries)} due entries ({phase})")
        for entry in entries:
            stats.retry_attempted += 1
            try:
                record = CuratedRecord.from_payload(entry.payload)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"[retry-queue] dropping unreadable entry {entry.link}: {e}")
                self._delete_entry(entry.link)
                continue

            outcome, error = self._process_safely(record, stats)
            if outcome == QUEUED:
                stats.queued += 1
                continue
            if outcome == ERROR:
                # Keep the entry; the enqueue bumps the attempt count and backs off.
                try:
                    self.queue.enqueue(record.link, record.to_payload(), f"error: {error}")
                except psycopg.Error as e:
                    logger.error(f"[retry-queue] could not reschedule {record.link}: {e}")
                stats.queued += 1
                continue
            # Stored, or redundant now (already stored / duplicate): either way it leaves the queue.
            self._delete_entry(entry.link)
            if outcome == STORED:
                stats.stored += 1
                stats.retry_stored += 1
            else:
                stats.skipped += 1

    def _delete_entry(self, link: str) -> None:
        try:
            self.queue.delete(link)
        except psycopg.Error as e:
            logger.error(f"[retry-queue] could not delete {link}: {e}")


def build_pipeline(cfg: CuratorConfig, *, browser: Optional[BrowserSession] = None, sources: Optional[Sequence[FeedSource]] = None) -> CurationPipeline:
    """Wire real components from configuration. The caller owns (and closes) `browser`."""
    repo = PostgresRepo(cfg.pg_dsn)
    try:
        known_hashes = repo.known_image_hashes()
    except psycopg.Error as e:
        raise DatastoreUnavailable(f"could not load image fingerprints: {e}") from e

    oracle = build_oracle(cfg)
    rewrite_oracle = build_oracle(cfg, temperature=0.7, max_tokens=3000)
    validator = ImageValidator(known_hashes)
    translator = Translator(oracle)
    return CurationPipeline(
        repo=repo,
        queue=PostgresRetryQueue(cfg.pg_dsn),
        fetcher=FeedFetcher(),
        classifier=RelevanceClassifier(oracle),
        resolver=ImageResolver(validator, browser),
        bilingual=BilingualPipeline(ArticleRewriter(rewrite_oracle), translator),
        writer=RecordWriter(repo, Embedder.from_config(cfg), SemanticDeduper(repo), validator),
        sources=sources,
        use_stock_fallback=cfg.use_stock_fallback,
    )


def run_curation(cfg: CuratorConfig, *, sources: Optional[Sequence[FeedSource]] = None) -> RunStats:
    """Initialize, run once and release the browser. Raises DatastoreUnavailable on startup failure."""
    repo = PostgresRepo(cfg.pg_dsn)
    repo.ping()
    if cfg.manage_schema:
        try:
            ensure_postgres_schema(cfg.pg_dsn)
        except psycopg.Error as e:
            raise DatastoreUnavailable(f"schema setup failed: {e}") from e

    browser = BrowserSession() if cfg.browser_enabled else None
    try:
        pipeline = build_pipeline(cfg, browser=browser, sources=sources)
        return pipeline.run()
    finally:
        if browser is not None:
            browser.close()
