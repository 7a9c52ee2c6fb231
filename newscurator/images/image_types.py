"""Image resolution data types."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


# Layer numbers used in ResolvedImage.layer
LAYER_FEED_HINT = 0
LAYER_META = 1
LAYER_JSON_LD = 2
LAYER_FEATURED = 3
LAYER_CONTENT = 4
LAYER_BROWSER = 5
LAYER_SCREENSHOT = 6
LAYER_STOCK = -1


@dataclass(frozen=True)
class ImageCandidate:
    """Raw output of one cascade layer, before validation."""

    url: str
    layer: int
    method: str
    confidence: float
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class ImageValidation:
    is_valid: bool
    is_duplicate: bool = False
    error: Optional[str] = None
    hash: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    mime: Optional[str] = None
    bytes: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "is_duplicate": self.is_duplicate,
            "error": self.error,
            "hash": self.hash,
            "width": self.width,
            "height": self.height,
            "mime": self.mime,
            "bytes": self.bytes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageValidation":
        return cls(
            is_valid=bool(data.get("is_valid")),
            is_duplicate=bool(data.get("is_duplicate")),
            error=data.get("error"),
            hash=data.get("hash"),
            width=data.get("width"),
            height=data.get("height"),
            mime=data.get("mime"),
            bytes=data.get("bytes"),
        )


@dataclass(frozen=True)
class ResolvedImage:
    url: str
    layer: int
    method: str
    confidence: float
    validation: ImageValidation

    @classmethod
    def from_candidate(cls, candidate: ImageCandidate, validation: ImageValidation) -> "ResolvedImage":
        # Declared dimensions from the page win over URL estimates.
        if candidate.width and not validation.width:
            validation = replace(validation, width=candidate.width)
        if candidate.height and not validation.height:
            validation = replace(validation, height=candidate.height)
        return cls(
            url=candidate.url,
            layer=candidate.layer,
            method=candidate.method,
            confidence=max(0.0, min(1.0, float(candidate.confidence))),
            validation=validation,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "layer": self.layer,
            "method": self.method,
            "confidence": self.confidence,
            "validation": self.validation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResolvedImage":
        return cls(
            url=str(data["url"]),
            layer=int(data.get("layer", 0)),
            method=str(data.get("method") or ""),
            confidence=float(data.get("confidence") or 0.0),
            validation=ImageValidation.from_dict(data.get("validation") or {}),
        )


@dataclass(frozen=True)
class ResolutionResult:
    """Outcome of a full resolve() call, including retries."""

    image: Optional[ResolvedImage]
    transient: bool = False
    error: Optional[str] = None
    attempts: int = 1
    page_html: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image is not None
