"""Shared ingestion data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


SOURCE_CATEGORIES = ("company", "news", "research", "newsletter", "tutorials", "aggregator", "community")
SOURCE_LANGUAGES = ("en", "es", "multi")


@dataclass(frozen=True)
class FeedSource:
    """A configured feed endpoint."""

    name: str
    url: str
    category: str = "news"
    language: str = "en"
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "category": self.category,
            "language": self.language,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedSource":
        return cls(
            name=str(data.get("name") or ""),
            url=str(data.get("url") or ""),
            category=str(data.get("category") or "news"),
            language=str(data.get("language") or "en"),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class RawItem:
    """Normalized feed entry (pre-classification).

    `link` is already canonicalized and is the unique key for the rest of the pipeline.
    """

    title: str
    link: str
    source: FeedSource
    published_at: Optional[datetime] = None
    content: str = ""
    snippet: str = ""
    media_hints: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def body(self) -> str:
        """Best available cleaned text for prompts and language detection."""
        return self.content or self.snippet or ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "link": self.link,
            "source": self.source.to_dict(),
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "content": self.content,
            "snippet": self.snippet,
            "media_hints": list(self.media_hints),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawItem":
        published = data.get("published_at")
        return cls(
            title=str(data.get("title") or ""),
            link=str(data.get("link") or ""),
            source=FeedSource.from_dict(data.get("source") or {}),
            published_at=datetime.fromisoformat(published) if published else None,
            content=str(data.get("content") or ""),
            snippet=str(data.get("snippet") or ""),
            media_hints=tuple(data.get("media_hints") or ()),
        )
