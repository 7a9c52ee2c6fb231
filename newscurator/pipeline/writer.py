"""Persist one curated record: embed -> semantic check -> insert -> embedding + image hash."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import psycopg

from newscurator.dedup.semantic import SemanticDeduper
from newscurator.images.validator import ImageValidator
from newscurator.pipeline.records import CuratedRecord


logger = logging.getLogger(__name__)

PERSISTED = "persisted"
DUPLICATE = "duplicate"
RETRYABLE = "retryable"


@dataclass(frozen=True)
class WriteResult:
    outcome: str
    record: CuratedRecord
    content_id: Optional[int] = None
    reason: Optional[str] = None


class RecordWriter:
    def __init__(self, repo: Any, embedder: Any, deduper: SemanticDeduper, validator: ImageValidator):
        self.repo = repo
        self.embedder = embedder
        self.deduper = deduper
        self.validator = validator

    def persist(self, record: CuratedRecord) -> WriteResult:
        link = record.link
        try:
            if self.repo.link_exists(link):
                return WriteResult(DUPLICATE, record, reason="link_exists")
        except psycopg.Error as e:
            return WriteResult(RETRYABLE, record, reason=f"datastore: {e}")

        if record.embedding is None:
            try:
                record = record.with_embedding(self.embedder.embed(record.embedding_input()))
            except Exception as e:
                logger.error(f"[writer] embedding failed for {link}: {e}")
                return WriteResult(RETRYABLE, record, reason=f"embedding: {e}")

        verdict = self.deduper.check(record.embedding)
        if verdict.is_duplicate:
            return WriteResult(DUPLICATE, record, reason=f"semantic:{verdict.match_id}:{verdict.similarity:.3f}")

        try:
            content_id = self.repo.insert_record(record.to_row())
        except psycopg.Error as e:
            logger.error(f"[writer] insert failed for {link}: {e}")
            return WriteResult(RETRYABLE, record, reason=f"insert: {e}")
        if content_id is None:
            return WriteResult(DUPLICATE, record, reason="link_conflict")

        try:
            self.repo.insert_embedding(content_id, record.embedding)
        except psycopg.Error as e:
            logger.error(f"[writer] embedding row failed for record {content_id}: {e}")

        image_hash = record.image.validation.hash if record.image else None
        if image_hash:
            self.validator.register(image_hash)
            try:
                self.repo.register_image(image_hash, content_id=content_id, image_url=record.image.url)
            except psycopg.Error as e:
                logger.error(f"[writer] image fingerprint failed for record {content_id}: {e}")

        logger.info(f"[writer] stored record {content_id}: {record.copy.title_en[:80]!r}")
        return WriteResult(PERSISTED, record, content_id=content_id)
