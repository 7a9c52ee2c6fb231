"""The record that travels through resolve -> bilingual -> persist, and its serialized form."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from newscurator.bilingual.pipeline import BilingualCopy
from newscurator.classification.classifier import Classification
from newscurator.images.image_types import ResolvedImage
from newscurator.ingestion.article_types import RawItem
from newscurator.llm.embeddings import Embedding, embedding_text


PAYLOAD_VERSION = 1
WORDS_PER_MINUTE = 200

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def source_slug(name: str) -> str:
    return _SLUG_RE.sub("-", (name or "").lower()).strip("-")


def reading_time_minutes(text: str) -> int:
    words = len((text or "").split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


@dataclass(frozen=True)
class CuratedRecord:
    """A classified item plus whatever later stages have produced so far.

    Queued records keep their partial state, so a retry only redoes the
    missing stages.
    """

    item: RawItem
    classification: Classification
    image: Optional[ResolvedImage] = None
    copy: Optional[BilingualCopy] = None
    scraped_content: Optional[str] = None
    embedding: Optional[Embedding] = None

    @property
    def link(self) -> str:
        return self.item.link

    def with_image(self, image: Optional[ResolvedImage]) -> "CuratedRecord":
        return replace(self, image=image)

    def with_copy(self, copy: BilingualCopy) -> "CuratedRecord":
        # New copy means new embedding input.
        return replace(self, copy=copy, embedding=None)

    def with_embedding(self, embedding: Embedding) -> "CuratedRecord":
        return replace(self, embedding=embedding)

    def embedding_input(self) -> str:
        if self.copy is None:
            raise ValueError("record has no bilingual copy yet")
        return embedding_text(self.copy.title_en, self.copy.summary_en, self.copy.content_en)

    def tags(self) -> List[str]:
        src = self.item.source
        language = self.copy.language if self.copy else src.language
        out: List[str] = []
        for tag in (
            source_slug(src.name),
            f"lang-{language}",
            f"source-lang-{src.language}",
            f"source-category-{src.category}",
            self.classification.category,
        ):
            if tag and tag not in out:
                out.append(tag)
        return out

    def to_row(self) -> Dict[str, Any]:
        """Column values for `curated_articles`."""
        if self.copy is None:
            raise ValueError("record has no bilingual copy yet")
        c = self.copy
        row: Dict[str, Any] = {
            "source_url": self.item.link,
            "title_en": c.title_en,
            "title_es": c.title_es,
            "summary_en": c.summary_en,
            "summary_es": c.summary_es,
            "content_en": c.content_en,
            "content_es": c.content_es,
            "category": self.classification.category,
            "tags": self.tags(),
            "source_name": self.item.source.name,
            "language": c.language,
            "image_alt_text_en": c.image_alt_text_en,
            "image_alt_text_es": c.image_alt_text_es,
            "quality_score": float(self.classification.quality_score),
            "reading_time_minutes": reading_time_minutes(c.content_en),
            "published_at": self.item.published_at,
        }
        row.update(image_columns(self.image))
        return row

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe form stored in the retry queue."""
        return {
            "version": PAYLOAD_VERSION,
            "item": self.item.to_dict(),
            "classification": self.classification.to_dict(),
            "image": self.image.to_dict() if self.image else None,
            "copy": self.copy.to_dict() if self.copy else None,
            "scraped_content": self.scraped_content,
            "embedding": (
                {"vector": list(self.embedding.vector), "provider": self.embedding.provider} if self.embedding else None
            ),
        }

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "CuratedRecord":
        emb = data.get("embedding")
        return cls(
            item=RawItem.from_dict(data["item"]),
            classification=Classification.from_dict(data.get("classification") or {}),
            image=ResolvedImage.from_dict(data["image"]) if data.get("image") else None,
            copy=BilingualCopy.from_dict(data["copy"]) if data.get("copy") else None,
            scraped_content=data.get("scraped_content"),
            embedding=Embedding(vector=list(emb["vector"]), provider=emb.get("provider") or "openai") if emb else None,
        )


def image_columns(image: Optional[ResolvedImage]) -> Dict[str, Any]:
    if image is None:
        return {
            "image_url": None,
            "image_width": None,
            "image_height": None,
            "image_mime": None,
            "image_bytes": None,
            "image_hash": None,
            "image_layer": None,
            "image_confidence": None,
        }
    v = image.validation
    return {
        "image_url": image.url,
        "image_width": v.width,
        "image_height": v.height,
        "image_mime": v.mime,
        "image_bytes": v.bytes,
        "image_hash": v.hash,
        "image_layer": image.layer,
        "image_confidence": image.confidence,
    }
