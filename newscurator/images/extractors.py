"""Static-HTML image strategies (cascade layers 1-4).

Each strategy takes (soup, page_url, profile) and returns ranked candidates,
best first; the cascade validates them in order. Nothing here touches the network.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, List, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from newscurator.images.domain_profiles import DomainProfile
from newscurator.images.image_types import (
    LAYER_CONTENT,
    LAYER_FEATURED,
    LAYER_JSON_LD,
    LAYER_META,
    ImageCandidate,
)
from newscurator.ingestion.url_utils import absolutize


logger = logging.getLogger(__name__)


# (css selector, confidence) in priority order
META_TAGS = (
    ('meta[property="og:image"]', 1.00),
    ('meta[property="og:image:secure_url"]', 1.00),
    ('meta[name="twitter:image"]', 0.95),
    ('meta[property="twitter:image"]', 0.95),
    ('meta[name="image"]', 0.85),
    ('meta[property="image"]', 0.85),
    ('meta[name="thumbnail"]', 0.80),
    ('meta[itemprop="image"]', 0.80),
)

FEATURED_IMAGE_SELECTORS = (
    # WordPress
    "img.wp-post-image",
    ".featured-image img",
    ".post-thumbnail img",
    ".wp-featured-image",
    # Generic featured/hero
    "img.featured",
    "img.hero",
    "img.hero-image",
    ".hero-image img",
    ".hero img",
    ".featured img",
    ".main-image img",
    ".primary-image img",
    ".lead-image img",
    ".cover-image img",
    ".banner-image img",
    ".article-image img",
    ".article-hero img",
    ".article-header img",
    ".post-header img",
    ".entry-header img",
    ".story-image img",
    ".story-header img",
    # CMS patterns
    ".article-featured-image img",
    ".post-featured-image img",
    ".entry-featured-image img",
    ".content-featured-image img",
    ".page-featured-image img",
    # News sites
    "figure.featured img",
    "figure.lead img",
    "figure.hero img",
    ".article-figure img",
    ".story-figure img",
    ".news-figure img",
    # Data attributes
    'img[data-featured="true"]',
    'img[data-hero="true"]',
    'img[data-main="true"]',
    "img[data-featured-image]",
    "img[data-hero-image]",
    # Schema.org
    '[itemprop="image"] img',
    '[itemtype*="ImageObject"] img',
    # Lazy loading variants
    "img[data-src][data-featured]",
    "img[data-lazy-src][data-featured]",
    "img[data-original][data-featured]",
    # Picture elements
    "picture img",
    "picture source[srcset]",
    # Modern frameworks
    "[data-gatsby-image-wrapper] img",
    ".gatsby-image-wrapper img",
    "[data-next-image] img",
    ".next-image img",
    # Medium, Substack, Ghost
    ".medium-feed-image",
    ".post-full-image img",
    ".kg-image",
    ".post-card-image",
    # Aggregators
    ".thumbnail img",
    ".preview img",
    # Size-based (likely featured)
    'img[width="1200"]',
    'img[width="1920"]',
    'img[height="630"]',
    'img[height="1080"]',
)

ARTICLE_CONTENT_SELECTORS = (
    "article img",
    "main img",
    ".article-content img",
    ".post-content img",
    ".entry-content img",
    '[role="main"] img',
    ".content img",
    "#content img",
    ".story-body img",
    ".article-body img",
)

IMAGE_SOURCE_ATTRS = ("src", "data-src", "data-lazy-src", "data-original", "data-lazy", "srcset", "data-srcset")

_QUALITY_HINT_RE = re.compile(r"featured|hero|main|lead|banner|cover", re.IGNORECASE)
_QUICK_REJECT_RE = re.compile(r"avatar|icon|logo|1x1|pixel|tracking|analytics", re.IGNORECASE)


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def plausible_image_url(url: Optional[str]) -> bool:
    """Quick structural filter applied before full validation."""
    if not url:
        return False
    u = url.strip()
    if u.startswith("data:"):
        return False
    if _QUICK_REJECT_RE.search(u):
        return False
    return True


def _largest_from_srcset(srcset: str) -> Optional[str]:
    best_url, best_w = None, -1.0
    for part in srcset.split(","):
        bits = part.strip().split()
        if not bits:
            continue
        w = 0.0
        if len(bits) > 1:
            m = re.match(r"([\d.]+)[wx]$", bits[1])
            if m:
                w = float(m.group(1))
        if w >= best_w:
            best_url, best_w = bits[0], w
    return best_url


def _int_attr(el: Tag, name: str) -> Optional[int]:
    raw = str(el.get(name) or "").strip().lower().rstrip("px")
    if raw.isdigit() and int(raw) > 0:
        return int(raw)
    return None


def image_url_from_element(el: Tag) -> Optional[str]:
    if el.name == "meta":
        return (el.get("content") or "").strip() or None
    for attr in IMAGE_SOURCE_ATTRS:
        value = el.get(attr)
        if not value:
            continue
        value = str(value).strip()
        if attr.endswith("srcset"):
            value = _largest_from_srcset(value) or ""
        if value and not value.startswith("data:"):
            return value
    return None


def meta_tag_candidates(soup: BeautifulSoup, page_url: str, profile: Optional[DomainProfile] = None) -> List[ImageCandidate]:
    """Layer 1: page-level image hints ranked by tag specificity."""
    out: List[ImageCandidate] = []
    for selector, score in META_TAGS:
        el = soup.select_one(selector)
        if el is None:
            continue
        url = image_url_from_element(el)
        if plausible_image_url(url):
            out.append(ImageCandidate(url=absolutize(url, page_url), layer=LAYER_META, method=selector, confidence=score))
    return out


def image_from_schema(obj: Any, _depth: int = 0) -> Optional[str]:
    """Find an image reference anywhere in a JSON-LD structure."""
    if obj is None or _depth > 12:
        return None
    if isinstance(obj, list):
        for it in obj:
            found = image_from_schema(it, _depth + 1)
            if found:
                return found
        return None
    if not isinstance(obj, dict):
        return None

    image = obj.get("image") or obj.get("thumbnailUrl")
    if isinstance(image, str) and image.startswith(("http", "//", "/")):
        return image
    if isinstance(image, dict):
        url = image.get("url") or image.get("contentUrl")
        if isinstance(url, str) and url:
            return url
    if isinstance(image, list) and image:
        first = image[0]
        if isinstance(first, str):
            return first
        if isinstance(first, dict) and isinstance(first.get("url"), str):
            return first["url"]

    for value in obj.values():
        if isinstance(value, (dict, list)):
            found = image_from_schema(value, _depth + 1)
            if found:
                return found
    return None


def json_ld_candidates(soup: BeautifulSoup, page_url: str, profile: Optional[DomainProfile] = None) -> List[ImageCandidate]:
    """Layer 2: structured data blocks."""
    out: List[ImageCandidate] = []
    for script in soup.find_all("script", attrs={"type": re.compile(r"application/ld\+json", re.IGNORECASE)}):
        raw = script.string or script.get_text() or ""
        if not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except ValueError:
            continue
        url = image_from_schema(data)
        if plausible_image_url(url):
            out.append(ImageCandidate(url=absolutize(url, page_url), layer=LAYER_JSON_LD, method="structured-data", confidence=0.9))
    return out


def _select_first(soup: BeautifulSoup, selector: str) -> Optional[Tag]:
    try:
        return soup.select_one(selector)
    except (ValueError, NotImplementedError) as e:
        # soupsieve rejects a handful of exotic selectors
        logger.debug(f"selector {selector!r} unsupported: {e}")
        return None


def featured_candidates(soup: BeautifulSoup, page_url: str, profile: Optional[DomainProfile] = None) -> List[ImageCandidate]:
    """Layer 3: domain-profile selectors first, then the general featured-image patterns."""
    selectors: List[str] = list(profile.selectors) if profile is not None else []
    selectors.extend(s for s in FEATURED_IMAGE_SELECTORS if s not in selectors)

    out: List[ImageCandidate] = []
    seen = set()
    for selector in selectors:
        el = _select_first(soup, selector)
        if el is None:
            continue
        url = image_url_from_element(el)
        if not plausible_image_url(url):
            continue
        url = absolutize(url, page_url)
        if url in seen:
            continue
        seen.add(url)
        out.append(
            ImageCandidate(
                url=url,
                layer=LAYER_FEATURED,
                method=selector,
                confidence=0.85,
                width=_int_attr(el, "width"),
                height=_int_attr(el, "height"),
            )
        )
    return out


def score_content_image(el: Tag) -> int:
    score = 60
    width = _int_attr(el, "width")
    height = _int_attr(el, "height")
    if width and width >= 800:
        score += 15
    if height and height >= 600:
        score += 15
    classes = " ".join(el.get("class") or [])
    if _QUALITY_HINT_RE.search(classes) or _QUALITY_HINT_RE.search(str(el.get("id") or "")):
        score += 10
    return score


def content_image_candidates(soup: BeautifulSoup, page_url: str, profile: Optional[DomainProfile] = None) -> List[ImageCandidate]:
    """Layer 4: in-body images scored by declared size and class/id hints, best first."""
    scored = []
    seen = set()
    order = 0
    for selector in ARTICLE_CONTENT_SELECTORS:
        try:
            elements: Iterable[Tag] = soup.select(selector)
        except (ValueError, NotImplementedError):
            continue
        for el in elements:
            url = image_url_from_element(el)
            if not plausible_image_url(url):
                continue
            url = absolutize(url, page_url)
            if url in seen:
                continue
            seen.add(url)
            score = score_content_image(el)
            scored.append((score, order, url, _int_attr(el, "width"), _int_attr(el, "height")))
            order += 1

    # Stable: equal scores keep document order.
    scored.sort(key=lambda s: (-s[0], s[1]))
    return [
        ImageCandidate(url=url, layer=LAYER_CONTENT, method="article-image", confidence=score / 100.0, width=w, height=h)
        for score, _, url, w, h in scored
    ]


STATIC_STRATEGIES = (
    meta_tag_candidates,
    json_ld_candidates,
    featured_candidates,
    content_image_candidates,
)
