"""Run constants and environment-driven configuration for the curator."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

from newscurator.errors import ConfigError


# Fetch
MAX_ARTICLES_PER_RUN = 100
ITEMS_PER_FEED = 10
FEED_FETCH_CONCURRENCY = 4
FEED_TIMEOUT_SECONDS = 20

# Classification
CLASSIFY_CONCURRENCY = 5
MIN_QUALITY_SCORE = 0.6
CLASSIFY_SNIPPET_CHARS = 500

# Dedup
DEDUP_WINDOW_DAYS = 21
NEAR_DUP_JACCARD = 0.78
NEAR_DUP_MIN_SUBSTRING = 18
SEMANTIC_COARSE_THRESHOLD = 0.90
SEMANTIC_STRICT_THRESHOLD = 0.93
SEMANTIC_MATCH_LIMIT = 5

# Image resolution
IMAGE_MAX_ATTEMPTS = 3
IMAGE_RETRY_STEP_SECONDS = 2.0
PAGE_TIMEOUT_SECONDS = 15
IMAGE_HEAD_TIMEOUT_SECONDS = 5

# Retry queue
RETRY_BATCH_SIZE = 12
RETRY_BASE_DELAY = timedelta(minutes=15)
RETRY_MAX_DELAY = timedelta(hours=6)
RETRY_MAX_GROWTH_ATTEMPT = 6

# Bilingual copy
LANGUAGE_DETECTION_MIN_CHARS = 120
TRANSLATION_CHUNK_CHARS = 3800
SCRAPED_CONTENT_MAX_CHARS = 9000

# Embeddings
EMBEDDING_DIMENSIONS = 1536
EMBEDDING_INPUT_MAX_CHARS = 8000
EMBEDDING_CONTENT_PREFIX_CHARS = 1000

DEFAULT_PG_DSN = "dbname=newscurator user=curator password=curatorpass host=localhost port=5432"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class CuratorConfig:
    """Credentials and feature flags loaded from the environment."""

    pg_dsn: str = DEFAULT_PG_DSN

    # Oracles
    openai_api_key: str = ""
    openrouter_api_key: str = ""
    ai_model: str = "gpt-4o-mini"
    openrouter_model: str = "openai/gpt-4o-mini"

    # Embeddings
    embeddings_provider: str = "openai"
    voyage_api_key: str = ""

    # Feature flags
    use_stock_fallback: bool = False
    browser_enabled: bool = True
    manage_schema: bool = True

    mode: str = "once"

    @classmethod
    def from_env(cls) -> "CuratorConfig":
        """Load and validate configuration from environment variables"""
        config = cls(
            pg_dsn=os.getenv("PG_DSN", DEFAULT_PG_DSN),
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY", "").strip(),
            ai_model=os.getenv("AI_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini",
            openrouter_model=os.getenv("OPENROUTER_MODEL", "openai/gpt-4o-mini").strip() or "openai/gpt-4o-mini",
            embeddings_provider=os.getenv("EMBEDDINGS_PROVIDER", "openai").strip().lower() or "openai",
            voyage_api_key=os.getenv("VOYAGE_API_KEY", "").strip(),
            use_stock_fallback=_env_flag("IMAGE_STOCK_FALLBACK"),
            browser_enabled=_env_flag("ENABLE_BROWSER_RENDERING", "true"),
            manage_schema=_env_flag("MANAGE_SCHEMA", "true"),
            mode=(os.getenv("CURATE_MODE") or "once").strip().lower(),
        )
        config._validate()
        return config

    def _validate(self) -> None:
        errors = []

        if not self.pg_dsn.strip():
            errors.append("PG_DSN is required")

        if not self.openai_api_key and not self.openrouter_api_key:
            errors.append("OPENAI_API_KEY or OPENROUTER_API_KEY is required")
        elif self.openai_api_key and not self.openai_api_key.startswith(("sk-", "sk-proj-")):
            errors.append("OPENAI_API_KEY appears to be invalid (wrong format)")

        if self.embeddings_provider not in ("openai", "voyage"):
            errors.append(f"EMBEDDINGS_PROVIDER must be 'openai' or 'voyage', got {self.embeddings_provider!r}")
        if not self.openai_api_key and not (self.embeddings_provider == "voyage" and self.voyage_api_key):
            # Embeddings always fall back to OpenAI.
            errors.append("OPENAI_API_KEY is required for embeddings unless EMBEDDINGS_PROVIDER=voyage with VOYAGE_API_KEY")

        if self.mode not in ("once", "scheduled", "daemon"):
            errors.append(f"CURATE_MODE must be 'once' or 'scheduled', got {self.mode!r}")

        if errors:
            raise ConfigError("Configuration errors: " + "; ".join(errors))
