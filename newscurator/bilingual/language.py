"""Dominant-language detection for article bodies (en/es only)."""

from __future__ import annotations

import logging
from typing import Optional

from langdetect import DetectorFactory, LangDetectException, detect

from newscurator import config


logger = logging.getLogger(__name__)

# Deterministic language detection
DetectorFactory.seed = 0

SUPPORTED_LANGUAGES = ("en", "es")


def sibling_language(lang: str) -> str:
    return "es" if lang == "en" else "en"


def _from_hint(hint: Optional[str]) -> str:
    hint = (hint or "").strip().lower()
    return hint if hint in SUPPORTED_LANGUAGES else "en"


def detect_language(text: Optional[str], *, hint: Optional[str] = None, min_chars: int = config.LANGUAGE_DETECTION_MIN_CHARS) -> str:
    """Detect en/es on the cleaned body.

    Bodies shorter than `min_chars` use the feed's declared language (`multi`
    and unknown hints mean English). Languages other than en/es fall back the
    same way.
    """
    body = (text or "").strip()
    if len(body) < min_chars:
        return _from_hint(hint)
    try:
        detected = detect(body[:2000])
    except LangDetectException as e:
        logger.debug(f"language detection failed, using hint {hint!r}: {e}")
        return _from_hint(hint)
    if detected in SUPPORTED_LANGUAGES:
        return detected
    return _from_hint(hint)
