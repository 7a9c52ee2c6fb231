"""Text-quality checks for rewritten copy (URL-only text, link spam, scraping boilerplate)."""

from __future__ import annotations

import re
from typing import List, Tuple


_URL_RE = re.compile(r"https?://", re.IGNORECASE)
_URL_TOKEN_RE = re.compile(r"https?://[\w\-._~:/?#\[\]@!$&'()*+,;=%]+", re.IGNORECASE)
_PUNCT_RE = re.compile(r"[()\[\]<>\"'.,;:!?]")

BOILERPLATE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(read more|continue\s+reading|view image|see image)\b",
        r"\b(leer más|seguir leyendo|continúa leyendo|ver imagen|ver\s+la\s+imagen)\b",
        r"\b(reuse this content|republish|reutilizar este contenido|republicar)\b",
        r"\b(sign up|subscribe|newsletter|suscríbete|suscribirte|boletín)\b",
        r"\b(cookie policy|privacy policy|política de cookies|política de privacidad)\b",
        r"\b(share|compartir|copy link|copiar enlace)\b",
        r"\b(all rights reserved|todos los derechos reservados)\b",
    )
)

MIN_TITLE_CHARS = 8
MIN_SUMMARY_CHARS = 40
MIN_CONTENT_CHARS = 220
MAX_URLS = 6


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").replace("\u00a0", " ")).strip()


def count_urls(text: str) -> int:
    return len(_URL_TOKEN_RE.findall(_normalize(text)))


def looks_like_url_only(text: str) -> bool:
    cleaned = _normalize(text)
    if not cleaned:
        return True

    parts = [p for p in _PUNCT_RE.sub(" ", cleaned).split(" ") if p]
    if len(parts) <= 3 and any(_URL_RE.search(p) for p in parts):
        return True

    # short text carrying a link is a link, not a summary
    if len(cleaned) < 120 and _URL_RE.search(cleaned):
        return True

    url_count = count_urls(cleaned)
    if url_count >= 2 and len(parts) <= url_count * 6:
        return True
    return False


def contains_boilerplate(text: str) -> bool:
    cleaned = _normalize(text).lower()
    if not cleaned:
        return False
    return any(p.search(cleaned) for p in BOILERPLATE_PATTERNS)


def assess_text_quality(title: str, summary: str, content: str) -> Tuple[bool, List[str]]:
    """(ok, reasons) for a title/summary/content triple."""
    reasons: List[str] = []
    title = _normalize(title)
    summary = _normalize(summary)
    content = _normalize(content)

    if len(title) < MIN_TITLE_CHARS:
        reasons.append("title_too_short")
    if looks_like_url_only(summary):
        reasons.append("summary_url_only")
    if looks_like_url_only(content):
        reasons.append("content_url_only")
    if len(summary) < MIN_SUMMARY_CHARS:
        reasons.append("summary_too_short")
    if len(content) < MIN_CONTENT_CHARS:
        reasons.append("content_too_short")
    if count_urls(f"{summary} {content}") >= MAX_URLS:
        reasons.append("too_many_urls")
    if contains_boilerplate(f"{summary}\n{content}"):
        reasons.append("boilerplate_artifacts")

    return not reasons, reasons
