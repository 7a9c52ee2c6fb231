"""Per-hostname overrides for image extraction.

A profile can prepend selectors, rewrite an image URL to its high-resolution
variant, require a minimum width, and blacklist URL patterns. Unknown hosts get
the generic profile with a conservative blacklist.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Pattern, Tuple

from newscurator.ingestion.url_utils import hostname


@dataclass(frozen=True)
class DomainProfile:
    domain: str
    primary: Tuple[str, ...] = ()
    fallback: Tuple[str, ...] = ()
    min_width: Optional[int] = None
    min_height: Optional[int] = None
    blacklist: Tuple[Pattern[str], ...] = ()
    rewrite: Optional[Callable[[str], str]] = field(default=None, compare=False)

    @property
    def selectors(self) -> Tuple[str, ...]:
        return self.primary + self.fallback

    def transform(self, url: str) -> str:
        """Apply the high-resolution rewrite; data URIs pass through untouched."""
        if self.rewrite is None or url.startswith("data:"):
            return url
        try:
            return self.rewrite(url) or url
        except (re.error, TypeError, ValueError):
            return url

    def is_blacklisted(self, url: str) -> bool:
        return any(p.search(url) for p in self.blacklist)


def _ci(*patterns: str) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


GENERIC_PROFILE = DomainProfile(
    domain="*",
    primary=('meta[property="og:image"]', 'meta[name="twitter:image"]', "article img:first-of-type", 'img[itemprop="image"]'),
    fallback=("img",),
    min_width=800,
    blacklist=_ci(r"logo", r"avatar", r"profile", r"icon", r"button", r"badge", r"banner", r"ad[s]?[-_]"),
)


DOMAIN_PROFILES: Dict[str, DomainProfile] = {
    "techcrunch.com": DomainProfile(
        domain="techcrunch.com",
        primary=('meta[property="og:image"]', ".article__featured-image img", ".wp-post-image"),
        fallback=('article img[src*="wp-content"]',),
        rewrite=lambda u: re.sub(r"\?.*$", "", u),
        min_width=1200,
        blacklist=_ci(r"logo", r"avatar", r"author"),
    ),
    "venturebeat.com": DomainProfile(
        domain="venturebeat.com",
        primary=('meta[property="og:image"]', ".article-image img", ".ArticlePage-hero-image img"),
        fallback=("article img.wp-image",),
        min_width=1024,
    ),
    "wired.com": DomainProfile(
        domain="wired.com",
        primary=('meta[property="og:image"]', '[data-testid="ContentHeaderHed"] + figure img', ".lead-asset__image img"),
        fallback=("article figure img",),
        min_width=1200,
    ),
    "technologyreview.com": DomainProfile(
        domain="technologyreview.com",
        primary=('meta[property="og:image"]', ".hero__image img", ".tease-card__image img"),
        fallback=("article img",),
        min_width=1200,
    ),
    "theguardian.com": DomainProfile(
        domain="theguardian.com",
        primary=('meta[property="og:image"]', ".article__img img", '[data-component="picture"] img'),
        fallback=("article figure img",),
        rewrite=lambda u: re.sub(r"/\d+\.jpg", "/master/0.jpg", u),
        min_width=1200,
    ),
    "arxiv.org": DomainProfile(
        domain="arxiv.org",
        primary=('meta[property="og:image"]', ".abs-figure img"),
        min_width=800,
    ),
    "medium.com": DomainProfile(
        domain="medium.com",
        primary=('meta[property="og:image"]', 'article figure img[src*="cdn-images"]'),
        fallback=("article img",),
        rewrite=lambda u: re.sub(r"/max/\d+/", "/max/2000/", u),
        min_width=1200,
        blacklist=_ci(r"avatar", r"clap", r"profile"),
    ),
    "substack.com": DomainProfile(
        domain="substack.com",
        primary=('meta[property="og:image"]', ".image-container img", 'article img[src*="substackcdn"]'),
        fallback=("article img",),
        min_width=1024,
    ),
    "huggingface.co": DomainProfile(
        domain="huggingface.co",
        primary=('meta[property="og:image"]', ".SVELTE_HYDRATER img", "article img"),
        min_width=800,
    ),
    "ai.googleblog.com": DomainProfile(
        domain="ai.googleblog.com",
        primary=('meta[property="og:image"]', ".post-body img:first-of-type"),
        fallback=("article img",),
        min_width=1024,
    ),
    "openai.com": DomainProfile(
        domain="openai.com",
        primary=('meta[property="og:image"]', ".f-post-header__image img", "article img:first-of-type"),
        min_width=1200,
    ),
}


def get_domain_profile(url: str, *, profiles: Optional[Dict[str, DomainProfile]] = None) -> DomainProfile:
    """Profile for the URL's host (`www.` stripped, substring match), else the generic one."""
    host = hostname(url)
    if not host:
        return GENERIC_PROFILE
    for key, profile in (profiles if profiles is not None else DOMAIN_PROFILES).items():
        if key in host:
            return profile
    return GENERIC_PROFILE
