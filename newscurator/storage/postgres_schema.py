"""Postgres schema management for the curator.

Schema creation is idempotent (CREATE IF NOT EXISTS) so every worker can call
`ensure_postgres_schema` on startup.
"""

from __future__ import annotations

from typing import Iterable, Optional

import psycopg


SCHEMA_STATEMENTS: list[str] = [
    # Extensions
    "CREATE EXTENSION IF NOT EXISTS vector;",
    # Curated records (bilingual copy + image metadata)
    """
    CREATE TABLE IF NOT EXISTS curated_articles (
      id BIGSERIAL PRIMARY KEY,
      source_url TEXT NOT NULL UNIQUE,
      title_en TEXT NOT NULL,
      title_es TEXT NOT NULL,
      summary_en TEXT NOT NULL DEFAULT '',
      summary_es TEXT NOT NULL DEFAULT '',
      content_en TEXT NOT NULL DEFAULT '',
      content_es TEXT NOT NULL DEFAULT '',
      category TEXT NOT NULL DEFAULT 'other',
      tags TEXT[] NOT NULL DEFAULT '{}',
      source_name TEXT,
      language TEXT NOT NULL DEFAULT 'en',
      image_url TEXT,
      image_alt_text_en TEXT,
      image_alt_text_es TEXT,
      image_width INTEGER,
      image_height INTEGER,
      image_mime TEXT,
      image_bytes INTEGER,
      image_hash TEXT,
      image_layer INTEGER,
      image_confidence REAL,
      quality_score REAL NOT NULL DEFAULT 0.0,
      reading_time_minutes INTEGER NOT NULL DEFAULT 1,
      published_at TIMESTAMPTZ,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_curated_articles_created_at ON curated_articles (created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_curated_articles_published_at ON curated_articles (published_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_curated_articles_category ON curated_articles (category);",
    "CREATE INDEX IF NOT EXISTS idx_curated_articles_missing_image ON curated_articles (created_at DESC) WHERE image_url IS NULL;",
    # Embeddings keyed by (content id, content type)
    """
    CREATE TABLE IF NOT EXISTS content_embeddings (
      content_id BIGINT NOT NULL,
      content_type TEXT NOT NULL DEFAULT 'article',
      embedding vector(1536),
      model TEXT,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      PRIMARY KEY (content_id, content_type)
    );
    """,
    # Use cosine distance operator class; our queries use `<=>` (cosine distance).
    "CREATE INDEX IF NOT EXISTS idx_content_embeddings_hnsw ON content_embeddings USING hnsw (embedding vector_cosine_ops);",
    """
    CREATE TABLE IF NOT EXISTS content_embeddings_voyage (
      content_id BIGINT NOT NULL,
      content_type TEXT NOT NULL DEFAULT 'article',
      embedding vector(1024),
      model TEXT,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      PRIMARY KEY (content_id, content_type)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_content_embeddings_voyage_hnsw ON content_embeddings_voyage USING hnsw (embedding vector_cosine_ops);",
    # Image fingerprints already used by a record
    """
    CREATE TABLE IF NOT EXISTS image_fingerprints (
      hash TEXT PRIMARY KEY,
      content_id BIGINT,
      image_url TEXT,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    # Durable retry queue for records whose image could not be resolved
    """
    CREATE TABLE IF NOT EXISTS image_retry_queue (
      source_link TEXT PRIMARY KEY,
      payload JSONB NOT NULL,
      attempt_count INTEGER NOT NULL DEFAULT 1,
      last_error TEXT,
      next_eligible_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_image_retry_queue_due ON image_retry_queue (next_eligible_at, created_at);",
    # One row per pipeline run
    """
    CREATE TABLE IF NOT EXISTS curation_runs (
      id BIGSERIAL PRIMARY KEY,
      started_at TIMESTAMPTZ NOT NULL,
      finished_at TIMESTAMPTZ,
      success BOOLEAN NOT NULL DEFAULT FALSE,
      stats JSONB,
      error TEXT
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_curation_runs_started_at ON curation_runs (started_at DESC);",
]


def ensure_postgres_schema(pg_dsn: str, *, statements: Optional[Iterable[str]] = None) -> None:
    """Ensure Postgres schema exists."""
    stmts = list(statements) if statements is not None else SCHEMA_STATEMENTS
    with psycopg.connect(pg_dsn, autocommit=True) as conn:
        with conn.cursor() as cur:
            for s in stmts:
                cur.execute(s)
