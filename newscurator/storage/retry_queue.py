"""Durable retry queue for records whose image could not be resolved.

One row per source link. Re-enqueuing the same link bumps its attempt count and
pushes the next eligible time out with capped exponential backoff. When the
table does not exist the queue switches itself off for the rest of the process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import psycopg
from psycopg.errors import UndefinedTable
from psycopg.types.json import Jsonb

from newscurator import config


logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_retry_delay(
    attempt: int,
    *,
    base: timedelta = config.RETRY_BASE_DELAY,
    ceiling: timedelta = config.RETRY_MAX_DELAY,
    max_growth_attempt: int = config.RETRY_MAX_GROWTH_ATTEMPT,
) -> timedelta:
    """min(ceiling, base * 2^(min(n, max_growth_attempt) - 1)) for attempt n >= 1."""
    n = max(1, min(int(attempt), max_growth_attempt))
    return min(ceiling, base * (2 ** (n - 1)))


@dataclass(frozen=True)
class QueueEntry:
    link: str
    payload: Dict[str, Any]
    attempt_count: int
    next_eligible_at: datetime
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None


class PostgresRetryQueue:
    def __init__(self, pg_dsn: str, *, clock: Callable[[], datetime] = utc_now):
        self.pg_dsn = pg_dsn
        self.clock = clock
        self.enabled = True

    def _disable(self, e: Exception) -> None:
        if self.enabled:
            logger.warning(f"[retry-queue] image_retry_queue table missing; retry queue disabled for this process: {e}")
        self.enabled = False

    def enqueue(self, link: str, payload: Dict[str, Any], reason: str) -> Optional[QueueEntry]:
        """Insert or bump the entry for `link`; None when the queue is disabled."""
        if not self.enabled:
            return None
        now = self.clock()
        try:
            with psycopg.connect(self.pg_dsn) as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.execute(
                            "SELECT attempt_count FROM image_retry_queue WHERE source_link = %s FOR UPDATE",
                            (link,),
                        )
                        row = cur.fetchone()
                        attempt = (int(row[0]) + 1) if row else 1
                        eligible = now + next_retry_delay(attempt)
                        cur.execute(
                            """
                            INSERT INTO image_retry_queue (
                              source_link, payload, attempt_count, last_error, next_eligible_at, created_at, updated_at
                            )
                            VALUES (
                              %(link)s, %(payload)s, %(attempt)s, %(error)s, %(eligible)s, %(now)s, %(now)s
                            )
                            ON CONFLICT (source_link) DO UPDATE SET
                              payload = EXCLUDED.payload,
                              attempt_count = EXCLUDED.attempt_count,
                              last_error = EXCLUDED.last_error,
                              next_eligible_at = EXCLUDED.next_eligible_at,
                              updated_at = EXCLUDED.updated_at
                            """,
                            {
                                "link": link,
                                "payload": Jsonb(payload),
                                "attempt": attempt,
                                "error": (reason or "")[:1000],
                                "eligible": eligible,
                                "now": now,
                            },
                        )
        except UndefinedTable as e:
            self._disable(e)
            return None
        logger.info(f"[retry-queue] queued {link} (attempt {attempt}, next at {eligible.isoformat()}): {reason}")
        return QueueEntry(link=link, payload=payload, attempt_count=attempt, next_eligible_at=eligible, last_error=reason)

    def due(self, *, limit: int = config.RETRY_BATCH_SIZE) -> List[QueueEntry]:
        if not self.enabled:
            return []
        try:
            with psycopg.connect(self.pg_dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        SELECT source_link, payload, attempt_count, next_eligible_at, last_error, created_at
                        FROM image_retry_queue
                        WHERE next_eligible_at <= %(now)s
                        ORDER BY next_eligible_at ASC, created_at ASC
                        LIMIT %(limit)s
                        """,
                        {"now": self.clock(), "limit": max(1, int(limit))},
                    )
                    rows = cur.fetchall()
        except UndefinedTable as e:
            self._disable(e)
            return []
        return [
            QueueEntry(
                link=r[0],
                payload=r[1] or {},
                attempt_count=int(r[2]),
                next_eligible_at=r[3],
                last_error=r[4],
                created_at=r[5],
            )
            for r in rows
        ]

    def delete(self, link: str) -> None:
        if not self.enabled:
            return
        try:
            with psycopg.connect(self.pg_dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM image_retry_queue WHERE source_link = %s", (link,))
        except UndefinedTable as e:
            self._disable(e)

    def queued_links(self, links: Iterable[str]) -> Set[str]:
        links = [l for l in links if l]
        if not self.enabled or not links:
            return set()
        try:
            with psycopg.connect(self.pg_dsn, autocommit=True) as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT source_link FROM image_retry_queue WHERE source_link = ANY(%s)", (links,))
                    return {r[0] for r in cur.fetchall()}
        except UndefinedTable as e:
            self._disable(e)
            return set()
