"""Curated AI news feeds (English + Spanish)."""

from __future__ import annotations

from typing import List, Optional, Sequence

from newscurator.ingestion.article_types import FeedSource


_DEFAULT_SOURCES: Sequence[FeedSource] = (
    # Company blogs (primary sources)
    FeedSource("OpenAI Blog", "https://openai.com/news/rss.xml", "company", "en", "Official OpenAI announcements"),
    FeedSource("Google DeepMind", "https://deepmind.google/discover/blog/rss.xml", "company", "en"),
    FeedSource("Google AI Blog", "http://googleaiblog.blogspot.com/atom.xml", "company", "en"),
    FeedSource("Hugging Face Blog", "https://huggingface.co/blog/feed.xml", "company", "en", "Open source AI hub"),
    FeedSource("Microsoft Research", "https://www.microsoft.com/en-us/research/feed/", "research", "en"),
    FeedSource("NVIDIA Technical Blog - AI", "https://developer.nvidia.com/blog/tag/artificial-intelligence/feed/", "company", "en"),
    FeedSource("Meta AI Blog", "https://ai.meta.com/blog/rss/", "company", "en"),
    FeedSource("Mistral AI Blog", "https://mistral.ai/news/rss", "company", "en"),
    # Research
    FeedSource("arXiv cs.AI", "http://export.arxiv.org/rss/cs.AI", "research", "en"),
    FeedSource("arXiv cs.LG", "http://export.arxiv.org/rss/cs.LG", "research", "en"),
    FeedSource("arXiv cs.CL", "http://export.arxiv.org/rss/cs.CL", "research", "en"),
    FeedSource("arXiv cs.CV", "http://export.arxiv.org/rss/cs.CV", "research", "en"),
    # English news
    FeedSource("TechCrunch AI", "https://techcrunch.com/category/artificial-intelligence/feed/", "news", "en", "Startups and funding"),
    FeedSource("The Verge AI", "https://www.theverge.com/rss/artificial-intelligence/index.xml", "news", "en"),
    FeedSource("MIT Technology Review - AI", "https://www.technologyreview.com/topic/artificial-intelligence/feed", "news", "en"),
    FeedSource("The Guardian - Artificial Intelligence", "https://www.theguardian.com/technology/artificialintelligenceai/rss", "news", "en"),
    FeedSource("Wired - AI", "https://www.wired.com/feed/tag/ai/latest/rss", "news", "en"),
    FeedSource("Ars Technica - AI", "https://feeds.arstechnica.com/arstechnica/technology-lab", "news", "en"),
    FeedSource("IEEE Spectrum - AI", "https://spectrum.ieee.org/feeds/topic/artificial-intelligence.rss", "news", "en"),
    FeedSource("ScienceDaily - Artificial Intelligence", "https://www.sciencedaily.com/rss/computers_math/artificial_intelligence.xml", "news", "en"),
    # Newsletters
    FeedSource("Last Week in AI", "https://lastweekin.ai/feed", "newsletter", "en"),
    FeedSource("Import AI Newsletter", "https://jack-clark.net/feed/", "newsletter", "en"),
    FeedSource("Ahead of AI", "https://magazine.sebastianraschka.com/feed", "newsletter", "en"),
    # Spanish news
    FeedSource("RTVE - Tecnologia", "https://www.rtve.es/rss/temas_tecnologia.xml", "news", "es"),
    FeedSource("ABC Tecnologia", "https://www.abc.es/rss/feeds/abc_tecnologia.xml", "news", "es"),
    FeedSource("El Mundo Tecnologia", "https://www.elmundo.es/rss/tecnologia.xml", "news", "es"),
    FeedSource("Clarin Tecnologia", "https://www.clarin.com/rss/tecnologia/", "news", "es"),
    FeedSource("WWWhats New", "https://wwwhatsnew.com/feed/", "news", "es", "Apps and AI tools in Spanish"),
    # Aggregators
    FeedSource(
        "Google News ES - Inteligencia Artificial",
        "https://news.google.com/rss/search?q=inteligencia+artificial&hl=es&gl=ES&ceid=ES:es",
        "aggregator",
        "es",
    ),
)


def default_sources(*, language: Optional[str] = None) -> List[FeedSource]:
    """Starter feed set, optionally filtered by language hint."""
    if not language:
        return list(_DEFAULT_SOURCES)
    return [s for s in _DEFAULT_SOURCES if s.language == language]
