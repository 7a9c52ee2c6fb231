"""Relevance + quality classification via the JSON oracle."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from newscurator import config
from newscurator.classification.contracts import validate_payload
from newscurator.errors import OracleError
from newscurator.ingestion.article_types import RawItem


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a JSON-only response AI. You MUST respond ONLY with valid JSON, no markdown, no explanations, no formatting.
Your response must match this exact structure:
{
  "relevant": boolean,
  "quality_score": number (0-1),
  "category": "machinelearning" | "nlp" | "computervision" | "robotics" | "ethics" | "business" | "research" | "tools" | "news" | "other",
  "summary": string,
  "image_alt_text": string (optional, short description of the likely lead image)
}
"relevant" is true only for articles about artificial intelligence, machine learning or the technology around them.
"quality_score" rates originality, depth and factual substance; press-release fluff and listicles score low."""


@dataclass(frozen=True)
class Classification:
    relevant: bool
    quality_score: float
    category: str
    summary: str
    image_alt_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "relevant": self.relevant,
            "quality_score": self.quality_score,
            "category": self.category,
            "summary": self.summary,
            "image_alt_text": self.image_alt_text,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Classification":
        alt = data.get("image_alt_text")
        return cls(
            relevant=bool(data.get("relevant")),
            quality_score=float(data.get("quality_score") or 0.0),
            category=str(data.get("category") or "other"),
            summary=str(data.get("summary") or ""),
            image_alt_text=(str(alt).strip() or None) if alt else None,
        )


def build_prompt(item: RawItem, *, snippet_chars: int = config.CLASSIFY_SNIPPET_CHARS) -> str:
    content = item.body[:snippet_chars]
    return f"""Title: {item.title}
Content: {content}...

Is this article relevant to AI/ML/tech? Return JSON only."""


def is_accepted(c: Optional[Classification], *, min_quality: float = config.MIN_QUALITY_SCORE) -> bool:
    return c is not None and c.relevant is True and c.quality_score >= min_quality


class RelevanceClassifier:
    """Fans out classification calls over a bounded thread pool."""

    def __init__(self, oracle: Any, *, max_workers: int = config.CLASSIFY_CONCURRENCY, min_quality: float = config.MIN_QUALITY_SCORE):
        self.oracle = oracle
        self.max_workers = max(1, max_workers)
        self.min_quality = min_quality

    def classify_one(self, item: RawItem) -> Optional[Classification]:
        """Classify one item; any oracle or contract failure yields None (item dropped, not retried)."""
        try:
            payload = self.oracle.complete_json(system=SYSTEM_PROMPT, prompt=build_prompt(item), max_tokens=400)
        except OracleError as e:
            logger.warning(f"[classify] oracle failed for {item.title[:60]!r}: {e}")
            return None
        errors = validate_payload("classification", payload)
        if errors:
            logger.warning(f"[classify] contract violation for {item.title[:60]!r}: {'; '.join(errors)}")
            return None
        c = Classification.from_dict(payload)
        logger.info(f"[classify] {item.title[:50]!r} relevant={c.relevant} score={c.quality_score:.2f} category={c.category}")
        return c

    def classify(self, items: Sequence[RawItem]) -> List[Tuple[RawItem, Classification]]:
        """Return accepted (item, classification) pairs in input order."""
        if not items:
            return []
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="classify") as pool:
            results = list(pool.map(self.classify_one, items))
        accepted = [(it, c) for it, c in zip(items, results) if is_accepted(c, min_quality=self.min_quality)]
        logger.info(f"[classify] {len(accepted)}/{len(items)} items passed filter")
        return accepted
