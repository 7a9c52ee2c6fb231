"""Semantic duplicate check against the stored embedding index.

Two thresholds: crossing the coarse one is only logged; the strict one rejects.
A failing or missing vector index yields "unknown", which never blocks a write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import psycopg

from newscurator import config
from newscurator.llm.embeddings import Embedding


logger = logging.getLogger(__name__)

UNIQUE = "unique"
DUPLICATE = "duplicate"
UNKNOWN = "unknown"


@dataclass(frozen=True)
class SemanticVerdict:
    status: str
    similarity: Optional[float] = None
    match_id: Optional[int] = None
    advisory: bool = False
    error: Optional[str] = None

    @property
    def is_duplicate(self) -> bool:
        return self.status == DUPLICATE


class SemanticDeduper:
    def __init__(
        self,
        store: Any,
        *,
        coarse_threshold: float = config.SEMANTIC_COARSE_THRESHOLD,
        strict_threshold: float = config.SEMANTIC_STRICT_THRESHOLD,
        limit: int = config.SEMANTIC_MATCH_LIMIT,
    ):
        self.store = store
        self.coarse_threshold = coarse_threshold
        self.strict_threshold = strict_threshold
        self.limit = limit

    def check(self, embedding: Embedding) -> SemanticVerdict:
        try:
            matches = self.store.similar_records(
                embedding.vector,
                provider=embedding.provider,
                threshold=self.coarse_threshold,
                limit=self.limit,
            )
        except psycopg.Error as e:
            logger.warning(f"[semantic] similarity query unavailable, treating as unknown: {e}")
            return SemanticVerdict(status=UNKNOWN, error=str(e))

        if not matches:
            return SemanticVerdict(status=UNIQUE)

        match_id, similarity = max(matches, key=lambda m: m[1])
        if similarity >= self.strict_threshold:
            logger.info(f"[semantic] duplicate of record {match_id} (similarity={similarity:.3f})")
            return SemanticVerdict(status=DUPLICATE, similarity=similarity, match_id=match_id, advisory=True)
        if similarity >= self.coarse_threshold:
            logger.info(f"[semantic] close to record {match_id} (similarity={similarity:.3f}), below strict threshold; keeping")
            return SemanticVerdict(status=UNIQUE, similarity=similarity, match_id=match_id, advisory=True)
        return SemanticVerdict(status=UNIQUE, similarity=similarity, match_id=match_id)
