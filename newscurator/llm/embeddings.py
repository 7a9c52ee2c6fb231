"""Provider-aware text embeddings (OpenAI default, Voyage optional)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List

import openai
import voyageai
from tenacity import retry, stop_after_attempt, wait_exponential

from newscurator import config
from newscurator.config import CuratorConfig


logger = logging.getLogger(__name__)

OPENAI_EMBEDDING_MODEL = "text-embedding-3-small"
VOYAGE_EMBEDDING_MODEL = "voyage-3-large"


@dataclass(frozen=True)
class Embedding:
    vector: List[float]
    provider: str = "openai"


def embedding_text(title_en: str, summary_en: str, content_en: str) -> str:
    """Fixed template: title + summary + content prefix."""
    text = f"{title_en} {summary_en} {(content_en or '')[: config.EMBEDDING_CONTENT_PREFIX_CHARS]}"
    return text[: config.EMBEDDING_INPUT_MAX_CHARS]


def vector_literal(vec: List[float]) -> str:
    """Format a Python embedding list into pgvector textual literal."""
    return "[" + ",".join(f"{float(x):.6f}" for x in (vec or [])) + "]"


@retry(stop=stop_after_attempt(3), wait=wait_exponential(min=1, max=8))
def _embed_text_openai(client: Any, text: str) -> List[float]:
    resp = client.embeddings.create(model=OPENAI_EMBEDDING_MODEL, input=text[: config.EMBEDDING_INPUT_MAX_CHARS])
    return list(resp.data[0].embedding)


@retry(stop=stop_after_attempt(3), wait=wait_exponential(min=1, max=8))
def _embed_text_voyage(client: Any, text: str) -> List[float]:
    res = client.embed(texts=[text[: config.EMBEDDING_INPUT_MAX_CHARS]], model=VOYAGE_EMBEDDING_MODEL, input_type="document")
    return list(res.embeddings[0])


class Embedder:
    def __init__(self, *, openai_client: Any = None, voyage_client: Any = None, provider: str = "openai"):
        self.openai_client = openai_client
        self.voyage_client = voyage_client
        self.provider = provider

    @classmethod
    def from_config(cls, cfg: CuratorConfig) -> "Embedder":
        openai_client = openai.OpenAI(api_key=cfg.openai_api_key, max_retries=0) if cfg.openai_api_key else None
        voyage_client = None
        if cfg.embeddings_provider == "voyage" and cfg.voyage_api_key:
            voyage_client = voyageai.Client(api_key=cfg.voyage_api_key)
        return cls(openai_client=openai_client, voyage_client=voyage_client, provider=cfg.embeddings_provider)

    def embed(self, text: str) -> Embedding:
        """Provider-aware embed with fallback to OpenAI if voyage fails."""
        if self.provider == "voyage" and self.voyage_client is not None:
            try:
                return Embedding(vector=_embed_text_voyage(self.voyage_client, text), provider="voyage")
            except Exception as e:
                if self.openai_client is None:
                    raise
                logger.warning(f"voyage embed failed, falling back to OpenAI: {e}")
        if self.openai_client is None:
            raise RuntimeError("no embedding provider configured")
        return Embedding(vector=_embed_text_openai(self.openai_client, text), provider="openai")
