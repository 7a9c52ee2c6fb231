"""Produce the en/es copy for one record: detect -> rewrite -> translate -> alt text.

Every oracle step degrades instead of failing: a failed rewrite keeps the
scraped text, a failed translation mirrors the source language into the
sibling fields, and alt text is never empty.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from newscurator.bilingual.language import detect_language, sibling_language
from newscurator.bilingual.rewrite import ArticleRewriter, ArticleText
from newscurator.bilingual.translate import Translator
from newscurator.classification.classifier import Classification
from newscurator.errors import OracleError
from newscurator.ingestion.article_types import RawItem
from newscurator.ingestion.feeds import clean_html


logger = logging.getLogger(__name__)

FALLBACK_SUMMARY_CHARS = 300

DEFAULT_ALT_TEXT = {
    "en": "AI news image for: {title}",
    "es": "Imagen de noticia de IA: {title}",
}


def default_alt_text(title: str, language: str) -> str:
    return DEFAULT_ALT_TEXT.get(language, DEFAULT_ALT_TEXT["en"]).format(title=(title or "")[:100])


@dataclass(frozen=True)
class BilingualCopy:
    title_en: str
    title_es: str
    summary_en: str
    summary_es: str
    content_en: str
    content_es: str
    image_alt_text_en: str
    image_alt_text_es: str
    language: str = "en"
    rewritten: bool = False
    translated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BilingualCopy":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def assemble(
        cls,
        language: str,
        source: ArticleText,
        sibling: ArticleText,
        alt_source: str,
        alt_sibling: str,
        *,
        rewritten: bool,
        translated: bool,
    ) -> "BilingualCopy":
        en, es = (source, sibling) if language == "en" else (sibling, source)
        alt_en, alt_es = (alt_source, alt_sibling) if language == "en" else (alt_sibling, alt_source)
        return cls(
            title_en=en.title,
            title_es=es.title,
            summary_en=en.summary,
            summary_es=es.summary,
            content_en=en.content,
            content_es=es.content,
            image_alt_text_en=alt_en,
            image_alt_text_es=alt_es,
            language=language,
            rewritten=rewritten,
            translated=translated,
        )


def original_text(item: RawItem, scraped_content: Optional[str] = None) -> ArticleText:
    """The scraped title/summary/content used when no rewrite is available."""
    content = (scraped_content or "").strip() or clean_html(item.content or item.snippet, max_chars=9000)
    snippet = clean_html(item.snippet, max_chars=2000) if item.snippet else ""
    summary = (snippet or content)[:FALLBACK_SUMMARY_CHARS].strip()
    return ArticleText(title=item.title.strip(), summary=summary, content=content)


class BilingualPipeline:
    def __init__(self, rewriter: ArticleRewriter, translator: Translator):
        self.rewriter = rewriter
        self.translator = translator

    def build(
        self,
        item: RawItem,
        classification: Optional[Classification] = None,
        *,
        scraped_content: Optional[str] = None,
    ) -> BilingualCopy:
        original = original_text(item, scraped_content)
        language = detect_language(original.content, hint=item.source.language)
        target = sibling_language(language)

        rewritten = self.rewriter.rewrite(original, language=language)
        source = rewritten or original
        if rewritten is None:
            logger.info(f"[bilingual] keeping original copy for {item.link}")

        translated = True
        try:
            sibling = self.translator.translate_article(source, source=language, target=target)
        except OracleError as e:
            logger.warning(f"[bilingual] translation {language}->{target} failed for {item.link}: {e}")
            sibling = source
            translated = False

        hint = (classification.image_alt_text if classification else None) or ""
        alt_source = hint.strip() or default_alt_text(source.title, language)
        try:
            alt_sibling = self.translator.translate_batch([alt_source], source=language, target=target)[0].strip()
        except OracleError as e:
            logger.warning(f"[bilingual] alt text translation failed for {item.link}: {e}")
            alt_sibling = ""
        alt_sibling = alt_sibling or alt_source

        return BilingualCopy.assemble(
            language,
            source,
            sibling,
            alt_source,
            alt_sibling,
            rewritten=rewritten is not None,
            translated=translated,
        )
