"""Lexical near-duplicate detection on article titles.

A title is reduced to a normalized string and a token set:
    "GPT-5 Launch Announced (Update)" -> "gpt 5 launch announced", {"gpt", "launch", "announced"}
Two titles are near-duplicates when the normalized strings are equal, when one
(long enough) contains the other, or when token-set Jaccard reaches the threshold.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import FrozenSet, Iterable, List, Optional, Tuple

from newscurator import config


logger = logging.getLogger(__name__)


STOPWORDS = {
    # en
    "the", "a", "an", "and", "or", "but", "of", "to", "in", "on", "for", "with", "by", "at", "as", "is", "are",
    "was", "were", "be", "been", "from", "about", "into", "over", "after", "this", "that", "these", "those",
    "it", "its", "how", "what", "why", "when", "who", "new", "now", "just", "your", "you", "our", "will", "can",
    "update", "updated", "breaking", "live", "exclusive", "video", "watch",
    # es
    "el", "la", "los", "las", "un", "una", "unos", "unas", "de", "del", "y", "o", "en", "con", "por", "para",
    "que", "se", "su", "sus", "al", "es", "como", "mas", "ultima", "hora", "actualizacion",
}

_SEQUENCE_MARKER_RE = re.compile(
    r"\b(?:episode|episodio|ep\.?|part|parte|pt\.?|chapter|capitulo|ch\.?|vol\.?|volume|season|temporada|no\.)\s*#?\s*\d+\b"
    r"|#\s*\d+\b"
    r"|\b\d+\s*/\s*\d+\b",
    re.IGNORECASE,
)
_ASIDE_RE = re.compile(r"\([^)]*\)|\[[^\]]*\]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_SPACE_RE = re.compile(r"\s+")

MIN_TOKEN_LEN = 3


def _strip_diacritics(s: str) -> str:
    return "".join(ch for ch in unicodedata.normalize("NFKD", s) if not unicodedata.combining(ch))


def normalize_title(title: str) -> str:
    if not title:
        return ""
    s = _strip_diacritics(title.lower())
    s = _SEQUENCE_MARKER_RE.sub(" ", s)
    s = _ASIDE_RE.sub(" ", s)
    s = _NON_ALNUM_RE.sub(" ", s)
    words = [w for w in _SPACE_RE.split(s) if w and w not in STOPWORDS]
    return " ".join(words)


def title_tokens(normalized: str) -> FrozenSet[str]:
    return frozenset(w for w in normalized.split() if len(w) >= MIN_TOKEN_LEN)


def jaccard(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def is_near_duplicate(
    a: str,
    b: str,
    *,
    threshold: float = config.NEAR_DUP_JACCARD,
    min_substring: int = config.NEAR_DUP_MIN_SUBSTRING,
) -> bool:
    """Compare two already-normalized titles."""
    if a == b:
        return True
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if len(shorter) >= min_substring and shorter in longer:
        return True
    return jaccard(title_tokens(a), title_tokens(b)) >= threshold


class DedupIndex:
    """Normalized titles from recent history plus everything persisted this run.

    Grows via `add`; never shrinks during a run.
    """

    def __init__(
        self,
        titles: Iterable[str] = (),
        *,
        threshold: float = config.NEAR_DUP_JACCARD,
        min_substring: int = config.NEAR_DUP_MIN_SUBSTRING,
    ):
        self.threshold = threshold
        self.min_substring = min_substring
        self._exact: set = set()
        self._entries: List[Tuple[str, FrozenSet[str]]] = []
        for t in titles:
            self.add(t)

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, title: str) -> None:
        norm = normalize_title(title)
        if not norm or norm in self._exact:
            return
        self._exact.add(norm)
        self._entries.append((norm, title_tokens(norm)))

    def find_duplicate(self, title: str) -> Optional[str]:
        """Return the normalized title this one duplicates, if any."""
        norm = normalize_title(title)
        if not norm:
            return None
        if norm in self._exact:
            return norm
        toks = title_tokens(norm)
        for other, other_toks in self._entries:
            shorter, longer = (norm, other) if len(norm) <= len(other) else (other, norm)
            if len(shorter) >= self.min_substring and shorter in longer:
                return other
            if jaccard(toks, other_toks) >= self.threshold:
                return other
        return None

    def is_duplicate(self, title: str) -> bool:
        return self.find_duplicate(title) is not None
