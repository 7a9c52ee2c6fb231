#!/usr/bin/env python3
"""News curation worker.

Runs one curation cycle (or scheduled) to:
- fetch AI/tech feeds and classify items for relevance and quality
- drop near-duplicate and semantically duplicate stories
- resolve a source image per article (records without one go to the retry queue)
- store bilingual (en/es) copy plus embeddings in Postgres

CURATE_MODE=once (default) exits non-zero only on configuration or datastore errors.
"""

from __future__ import annotations

import logging
import sys
import time

import schedule
from dotenv import load_dotenv

from newscurator.config import CuratorConfig
from newscurator.errors import ConfigError, DatastoreUnavailable
from newscurator.pipeline.orchestrator import run_curation

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def run_once(cfg: CuratorConfig) -> int:
    try:
        stats = run_curation(cfg)
    except DatastoreUnavailable as e:
        logger.error(f"Datastore unavailable: {e}")
        return 1
    print(f"[curate] stored={stats.stored} queued={stats.queued} skipped={stats.skipped}")
    return 0


def run_scheduled(cfg: CuratorConfig) -> None:
    # Every 6 hours: full curation cycle
    schedule.every(6).hours.do(run_once, cfg)
    run_once(cfg)
    while True:
        schedule.run_pending()
        time.sleep(30)


def main() -> int:
    load_dotenv()
    try:
        cfg = CuratorConfig.from_env()
    except ConfigError as e:
        logger.error(str(e))
        return 1

    if cfg.mode in ("scheduled", "daemon"):
        run_scheduled(cfg)
        return 0
    return run_once(cfg)


if __name__ == "__main__":
    sys.exit(main())
