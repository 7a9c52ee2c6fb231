"""Postgres repository for curated records, embeddings and image fingerprints.

This is intentionally lightweight (psycopg + SQL) to keep control and transparency.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import psycopg
from psycopg.types.json import Jsonb

from newscurator import config
from newscurator.errors import DatastoreUnavailable
from newscurator.llm.embeddings import Embedding, vector_literal


logger = logging.getLogger(__name__)

EMBEDDING_TABLES = {
    "openai": "content_embeddings",
    "voyage": "content_embeddings_voyage",
}

RECORD_COLUMNS = (
    "source_url",
    "title_en",
    "title_es",
    "summary_en",
    "summary_es",
    "content_en",
    "content_es",
    "category",
    "tags",
    "source_name",
    "language",
    "image_url",
    "image_alt_text_en",
    "image_alt_text_es",
    "image_width",
    "image_height",
    "image_mime",
    "image_bytes",
    "image_hash",
    "image_layer",
    "image_confidence",
    "quality_score",
    "reading_time_minutes",
    "published_at",
)


def embedding_table(provider: str) -> str:
    return EMBEDDING_TABLES.get(provider, EMBEDDING_TABLES["openai"])


class PostgresRepo:
    def __init__(self, pg_dsn: str):
        self.pg_dsn = pg_dsn

    def _connect(self, *, autocommit: bool = True):
        return psycopg.connect(self.pg_dsn, autocommit=autocommit)

    def ping(self) -> None:
        """Fail fast when the datastore is unreachable."""
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        except psycopg.OperationalError as e:
            raise DatastoreUnavailable(f"cannot reach Postgres: {e}") from e

    # --- dedup inputs -------------------------------------------------

    def recent_titles(self, *, days: int = config.DEDUP_WINDOW_DAYS) -> List[str]:
        """English and Spanish titles stored in the trailing window."""
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT title_en, title_es
                    FROM curated_articles
                    WHERE created_at >= now() - make_interval(days => %(days)s)
                    ORDER BY created_at DESC
                    """,
                    {"days": int(days)},
                )
                rows = cur.fetchall()
        titles: List[str] = []
        for title_en, title_es in rows:
            titles.append(title_en)
            if title_es and title_es != title_en:
                titles.append(title_es)
        return titles

    def known_image_hashes(self) -> Set[str]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT hash FROM image_fingerprints
                    UNION
                    SELECT image_hash FROM curated_articles WHERE image_hash IS NOT NULL
                    """
                )
                return {r[0] for r in cur.fetchall() if r[0]}

    def existing_links(self, links: Iterable[str]) -> Set[str]:
        links = [l for l in links if l]
        if not links:
            return set()
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT source_url FROM curated_articles WHERE source_url = ANY(%s)", (links,))
                return {r[0] for r in cur.fetchall()}

    def link_exists(self, link: str) -> bool:
        return bool(self.existing_links([link]))

    # --- writes ---------------------------------------------------------

    def insert_record(self, row: Dict[str, Any]) -> Optional[int]:
        """Insert one curated record; returns its id, or None when the link already exists."""
        cols = ", ".join(RECORD_COLUMNS)
        vals = ", ".join(f"%({c})s" for c in RECORD_COLUMNS)
        params = {c: row.get(c) for c in RECORD_COLUMNS}
        params["tags"] = list(row.get("tags") or [])
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO curated_articles ({cols})
                    VALUES ({vals})
                    ON CONFLICT (source_url) DO NOTHING
                    RETURNING id
                    """,
                    params,
                )
                got = cur.fetchone()
        return int(got[0]) if got else None

    def insert_embedding(self, content_id: int, embedding: Embedding, *, content_type: str = "article", model: Optional[str] = None) -> None:
        table = embedding_table(embedding.provider)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO {table} (content_id, content_type, embedding, model)
                    VALUES (%(content_id)s, %(content_type)s, %(embedding)s::vector, %(model)s)
                    ON CONFLICT (content_id, content_type) DO UPDATE SET
                      embedding = EXCLUDED.embedding,
                      model = EXCLUDED.model,
                      created_at = now()
                    """,
                    {
                        "content_id": int(content_id),
                        "content_type": content_type,
                        "embedding": vector_literal(embedding.vector),
                        "model": model,
                    },
                )

    def register_image(self, image_hash: str, *, content_id: Optional[int] = None, image_url: Optional[str] = None) -> None:
        if not image_hash:
            return
        # data: payloads are megabytes; only the fingerprint matters for them
        if image_url and image_url.startswith("data:"):
            image_url = None
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO image_fingerprints (hash, content_id, image_url)
                    VALUES (%(hash)s, %(content_id)s, %(image_url)s)
                    ON CONFLICT (hash) DO NOTHING
                    """,
                    {"hash": image_hash, "content_id": content_id, "image_url": image_url},
                )

    # --- vector search --------------------------------------------------

    def similar_records(
        self,
        vector: Sequence[float],
        *,
        provider: str = "openai",
        threshold: float = config.SEMANTIC_COARSE_THRESHOLD,
        limit: int = config.SEMANTIC_MATCH_LIMIT,
    ) -> List[Tuple[int, float]]:
        """(content_id, cosine similarity) pairs at or above `threshold`, closest first."""
        table = embedding_table(provider)
        qlit = vector_literal(list(vector))
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT content_id, 1 - (embedding <=> %(q)s::vector) AS similarity
                    FROM {table}
                    WHERE content_type = 'article'
                      AND 1 - (embedding <=> %(q)s::vector) >= %(threshold)s
                    ORDER BY embedding <=> %(q)s::vector
                    LIMIT %(limit)s
                    """,
                    {"q": qlit, "threshold": float(threshold), "limit": int(limit)},
                )
                return [(int(r[0]), float(r[1])) for r in cur.fetchall()]

    # --- runs -------------------------------------------------------------

    def record_run(
        self,
        *,
        started_at: datetime,
        finished_at: datetime,
        success: bool,
        stats: Dict[str, Any],
        error: Optional[str] = None,
    ) -> Optional[int]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO curation_runs (started_at, finished_at, success, stats, error)
                    VALUES (%(started_at)s, %(finished_at)s, %(success)s, %(stats)s, %(error)s)
                    RETURNING id
                    """,
                    {
                        "started_at": started_at,
                        "finished_at": finished_at,
                        "success": success,
                        "stats": Jsonb(stats),
                        "error": error,
                    },
                )
                got = cur.fetchone()
        return int(got[0]) if got else None

    # --- maintenance --------------------------------------------------

    def records_missing_images(self, *, limit: int = 50) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id, source_url, title_en, source_name
                    FROM curated_articles
                    WHERE image_url IS NULL OR image_url = ''
                    ORDER BY created_at DESC
                    LIMIT %(limit)s
                    """,
                    {"limit": max(1, int(limit))},
                )
                rows = cur.fetchall()
        return [{"id": int(r[0]), "source_url": r[1], "title_en": r[2], "source_name": r[3]} for r in rows]

    def update_image(self, content_id: int, image: Dict[str, Any]) -> None:
        """Set the image columns of an existing record (`image` uses the record column names)."""
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE curated_articles SET
                      image_url = %(image_url)s,
                      image_width = %(image_width)s,
                      image_height = %(image_height)s,
                      image_mime = %(image_mime)s,
                      image_bytes = %(image_bytes)s,
                      image_hash = %(image_hash)s,
                      image_layer = %(image_layer)s,
                      image_confidence = %(image_confidence)s,
                      updated_at = now()
                    WHERE id = %(id)s
                    """,
                    {
                        "id": int(content_id),
                        "image_url": image.get("image_url"),
                        "image_width": image.get("image_width"),
                        "image_height": image.get("image_height"),
                        "image_mime": image.get("image_mime"),
                        "image_bytes": image.get("image_bytes"),
                        "image_hash": image.get("image_hash"),
                        "image_layer": image.get("image_layer"),
                        "image_confidence": image.get("image_confidence"),
                    },
                )
