"""en <-> es translation through the JSON oracle.

Texts travel as a batch (`{"translations": [...]}`) so short fields share one
call. Long bodies are split on paragraph/line breaks first. Any failure raises;
callers decide what to fall back to.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Sequence

from newscurator import config
from newscurator.bilingual.rewrite import ArticleText
from newscurator.classification.contracts import validate_payload
from newscurator.errors import OracleResponseError


logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {"en": "English", "es": "Spanish"}

SYSTEM_PROMPT = (
    "You are a professional news translator. Translate faithfully, keep names, numbers and product names "
    "unchanged, keep paragraph breaks, and do not add commentary. "
    "You MUST respond ONLY with valid JSON: {\"translations\": [string, ...]} with exactly one entry per input, in order."
)


def normalize_newlines(text: str) -> str:
    return str(text or "").replace("\r\n", "\n").replace("\r", "\n")


def chunk_by_newlines(text: str, max_chars: int = config.TRANSLATION_CHUNK_CHARS) -> List[str]:
    """Split on the last blank line (else line break) before `max_chars`; joining the chunks restores the input."""
    if len(text) <= max_chars:
        return [text]
    chunks: List[str] = []
    cursor = 0
    while cursor < len(text):
        target_end = min(cursor + max_chars, len(text))
        if target_end == len(text):
            chunks.append(text[cursor:])
            break
        min_end = cursor + int(max_chars * 0.6)
        cut = text.rfind("\n\n", cursor, target_end)
        if cut < min_end:
            cut = text.rfind("\n", cursor, target_end)
        if cut < min_end:
            cut = target_end
        chunks.append(text[cursor:cut])
        cursor = cut
    return chunks


class Translator:
    def __init__(self, oracle: Any, *, max_chunk_chars: int = config.TRANSLATION_CHUNK_CHARS, max_tokens: int = 4000):
        self.oracle = oracle
        self.max_chunk_chars = max_chunk_chars
        self.max_tokens = max_tokens

    def translate_batch(self, texts: Sequence[str], *, source: str, target: str) -> List[str]:
        """Translate several short texts in one call. Raises OracleError."""
        texts = list(texts)
        if source == target or not texts:
            return texts
        prompt = (
            f"Translate each string from {LANGUAGE_NAMES[source]} to {LANGUAGE_NAMES[target]}.\n"
            f"Input ({len(texts)} strings):\n{json.dumps(texts, ensure_ascii=False)}"
        )
        payload = self.oracle.complete_json(system=SYSTEM_PROMPT, prompt=prompt, max_tokens=self.max_tokens)
        errors = validate_payload("translation", payload)
        if errors:
            raise OracleResponseError(f"translation contract violation: {errors[:3]}")
        out = [str(t) for t in payload["translations"]]
        if len(out) != len(texts):
            raise OracleResponseError(f"expected {len(texts)} translations, got {len(out)}")
        # A blank answer for non-blank input is a failed translation.
        for src, dst in zip(texts, out):
            if src.strip() and not dst.strip():
                raise OracleResponseError("empty translation for non-empty input")
        return out

    def translate_text(self, text: str, *, source: str, target: str) -> str:
        if source == target:
            return text
        normalized = normalize_newlines(text)
        if not normalized.strip():
            return normalized
        parts = chunk_by_newlines(normalized, self.max_chunk_chars)
        return "".join(self.translate_batch([part], source=source, target=target)[0] for part in parts)

    def translate_article(self, article: ArticleText, *, source: str, target: str) -> ArticleText:
        """All three fields or nothing: raises on any failure."""
        if source == target:
            return article
        title, summary = self.translate_batch([article.title, article.summary], source=source, target=target)
        content = self.translate_text(article.content, source=source, target=target)
        return ArticleText(title=title.strip(), summary=summary.strip(), content=content.strip())
