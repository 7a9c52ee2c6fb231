"""Editorial rewrite of scraped copy via the JSON oracle.

The oracle gets a voice/tone contract and a prohibition list. Its reply must
pass the rewrite schema and the text-quality checks; otherwise the caller keeps
the scraped title/summary/content unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from newscurator.bilingual.quality import assess_text_quality
from newscurator.classification.contracts import validate_payload
from newscurator.errors import OracleError


logger = logging.getLogger(__name__)

REWRITE_CONTENT_CHARS = 5200


@dataclass(frozen=True)
class ArticleText:
    title: str
    summary: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "summary": self.summary, "content": self.content}


SYSTEM_PROMPTS = {
    "en": (
        "You are a senior AI analyst and tech journalist writing for a bilingual AI news site. "
        "Voice: clear, precise, calm; explain technical terms briefly; no hype, no clickbait, no first person. "
        "You MUST respond ONLY with valid JSON: {\"title\": string, \"summary\": string, \"content\": string}."
    ),
    "es": (
        "Eres un analista senior de IA y periodista tecnológico que escribe para un sitio bilingüe de noticias de IA. "
        "Voz: clara, precisa y serena; explica brevemente los términos técnicos; sin exageraciones, sin clickbait, sin primera persona. "
        "Responde SOLO con JSON válido: {\"title\": string, \"summary\": string, \"content\": string}."
    ),
}

_RULES = {
    "en": """Rewrite the article below in English.

Title: informative, at most 110 characters, clearly different from the original headline.
Summary: one opening paragraph (80-120 words) answering what happened and why it matters.
Content: 300-900 words of flowing journalistic prose in short paragraphs. No markdown headings, no bullet lists.

RULES
- Do NOT include raw URLs.
- Do NOT write "Read more", "Continue reading", subscription prompts, cookie or share notices.
- Do NOT mention images, photos or figures that the reader cannot see.
- Do NOT invent facts, quotes or numbers that are not in the original.
- Paraphrase; do not copy long phrases from the original.""",
    "es": """Reescribe el artículo siguiente en español.

Título: informativo, máximo 110 caracteres, claramente distinto del titular original.
Resumen: un párrafo de entrada (80-120 palabras) que responda qué pasó y por qué importa.
Contenido: 300-900 palabras de prosa periodística en párrafos cortos. Sin encabezados markdown, sin listas.

REGLAS
- NO incluyas URLs crudas.
- NO escribas "Leer más", "Seguir leyendo", invitaciones a suscribirse, avisos de cookies ni de compartir.
- NO menciones imágenes, fotos o figuras que el lector no puede ver.
- NO inventes datos, citas ni cifras que no estén en el original.
- Reformula; no copies frases largas del original.""",
}

_ORIGINAL_LABELS = {
    "en": ("ORIGINAL ARTICLE", "Title", "Summary", "Content"),
    "es": ("ARTÍCULO ORIGINAL", "Título", "Resumen", "Contenido"),
}


def build_rewrite_prompt(source: ArticleText, language: str) -> str:
    heading, t, s, c = _ORIGINAL_LABELS[language]
    return (
        f"{_RULES[language]}\n\n---\n{heading}:\n"
        f"{t}: {source.title}\n"
        f"{s}: {source.summary}\n"
        f"{c}: {source.content[:REWRITE_CONTENT_CHARS]}"
    )


class ArticleRewriter:
    def __init__(self, oracle: Any, *, max_tokens: int = 3000):
        self.oracle = oracle
        self.max_tokens = max_tokens

    def rewrite(self, source: ArticleText, *, language: str) -> Optional[ArticleText]:
        """Rewritten copy in `language`, or None when the oracle result is unusable."""
        language = language if language in SYSTEM_PROMPTS else "en"
        try:
            payload = self.oracle.complete_json(
                system=SYSTEM_PROMPTS[language],
                prompt=build_rewrite_prompt(source, language),
                max_tokens=self.max_tokens,
            )
        except OracleError as e:
            logger.warning(f"[rewrite] oracle failed for {source.title[:60]!r}: {e}")
            return None

        errors = validate_payload("rewrite", payload)
        if errors:
            logger.warning(f"[rewrite] contract violation for {source.title[:60]!r}: {errors[:3]}")
            return None

        result = ArticleText(
            title=str(payload["title"]).strip(),
            summary=str(payload["summary"]).strip(),
            content=str(payload["content"]).strip(),
        )
        ok, reasons = assess_text_quality(result.title, result.summary, result.content)
        if not ok:
            logger.warning(f"[rewrite] quality check failed for {source.title[:60]!r}: {reasons}")
            return None
        return result
