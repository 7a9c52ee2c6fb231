#!/usr/bin/env python3
"""Image backfill worker.

Re-runs the image cascade for stored records that have no image (rows stored
before image resolution existed, or imported from elsewhere) and updates them
in place.
"""

from __future__ import annotations

import logging
import os
import sys

import psycopg
from dotenv import load_dotenv

from newscurator.config import CuratorConfig
from newscurator.errors import ConfigError
from newscurator.images.browser import BrowserSession
from newscurator.images.cascade import ImageResolver
from newscurator.images.validator import ImageValidator
from newscurator.pipeline.records import image_columns
from newscurator.storage.postgres_repo import PostgresRepo
from newscurator.storage.postgres_schema import ensure_postgres_schema

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def backfill(repo: PostgresRepo, resolver: ImageResolver, validator: ImageValidator, *, limit: int) -> int:
    rows = repo.records_missing_images(limit=limit)
    logger.info(f"{len(rows)} records without an image")
    fixed = 0
    for row in rows:
        result = resolver.resolve(row["source_url"])
        if not result.ok:
            logger.info(f"still no image for {row['source_url']}: {result.error}")
            continue
        cols = image_columns(result.image)
        repo.update_image(row["id"], cols)
        if cols["image_hash"]:
            validator.register(cols["image_hash"])
            repo.register_image(cols["image_hash"], content_id=row["id"], image_url=cols["image_url"])
        fixed += 1
    return fixed


def main() -> int:
    load_dotenv()
    try:
        cfg = CuratorConfig.from_env()
    except ConfigError as e:
        logger.error(str(e))
        return 1
    if cfg.manage_schema:
        ensure_postgres_schema(cfg.pg_dsn)

    limit = int(os.environ.get("IMAGE_BACKFILL_BATCH", "50"))
    repo = PostgresRepo(cfg.pg_dsn)
    try:
        validator = ImageValidator(repo.known_image_hashes())
    except psycopg.Error as e:
        logger.error(f"Datastore unavailable: {e}")
        return 1

    browser = BrowserSession() if cfg.browser_enabled else None
    try:
        fixed = backfill(repo, ImageResolver(validator, browser), validator, limit=limit)
    finally:
        if browser is not None:
            browser.close()
    print(f"[images] fixed={fixed}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
