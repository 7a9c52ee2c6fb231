"""RSS/Atom feed fetcher.

Each feed is fetched with requests and parsed by feedparser; a bounded thread pool
keeps at most `max_workers` feeds in flight. A broken feed is logged and skipped.
"""

from __future__ import annotations

import calendar
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import feedparser
import requests
from bs4 import BeautifulSoup

from newscurator import config
from newscurator.ingestion.article_types import FeedSource, RawItem
from newscurator.ingestion.url_utils import canonicalize_link


logger = logging.getLogger(__name__)

FEED_USER_AGENT = "Mozilla/5.0 (compatible; NewsCurator/1.0; +https://github.com/newscurator)"

_IMAGE_EXT_RE = re.compile(r"\.(jpg|jpeg|png|webp|gif)(\?|$)", re.IGNORECASE)


def clean_html(html: Optional[str], *, max_chars: int = 2000) -> str:
    """Strip markup from feed content and collapse whitespace."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "iframe"]):
        tag.decompose()
    text = re.sub(r"\s+", " ", soup.get_text(" ", strip=True)).strip()
    return text[:max_chars]


def _parse_dt(entry: Any) -> Optional[datetime]:
    for key in ("published_parsed", "updated_parsed"):
        st = entry.get(key)
        if st:
            try:
                return datetime.fromtimestamp(calendar.timegm(st), tz=timezone.utc)
            except (OverflowError, ValueError, TypeError):
                continue
    for key in ("published", "updated"):
        raw = entry.get(key)
        if not raw:
            continue
        s = str(raw).strip().replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(s)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def _entry_html(entry: Any) -> str:
    content = entry.get("content")
    if isinstance(content, list) and content:
        value = content[0].get("value") if isinstance(content[0], dict) else None
        if value:
            return str(value)
    return str(entry.get("summary") or entry.get("description") or "")


def extract_media_hints(entry: Any) -> Tuple[str, ...]:
    """Image candidates advertised by the feed itself, best first.

    Order: media:content, media:thumbnail, image enclosures, first inline <img>.
    """
    hints: List[str] = []

    for key in ("media_content", "media_thumbnail"):
        for media in entry.get(key) or []:
            url = media.get("url") if isinstance(media, dict) else None
            if url:
                hints.append(str(url).strip())

    for enc in entry.get("enclosures") or []:
        if not isinstance(enc, dict):
            continue
        url = enc.get("href") or enc.get("url")
        if not url:
            continue
        mime = str(enc.get("type") or "")
        if mime.startswith("image/") or _IMAGE_EXT_RE.search(str(url)):
            hints.append(str(url).strip())

    html = _entry_html(entry)
    if "<img" in html:
        img = BeautifulSoup(html, "html.parser").find("img")
        src = img.get("src") if img else None
        if src and str(src).startswith("http"):
            hints.append(str(src).strip())

    seen = set()
    out = []
    for h in hints:
        if h and h not in seen:
            seen.add(h)
            out.append(h)
    return tuple(out)


def parse_feed(payload: bytes, source: FeedSource, *, limit: int = config.ITEMS_PER_FEED) -> List[RawItem]:
    """Parse one feed document into RawItems (at most `limit`)."""
    parsed = feedparser.parse(payload)
    entries = parsed.entries or []
    if not entries and getattr(parsed, "bozo", False):
        raise ValueError(f"malformed feed: {getattr(parsed, 'bozo_exception', 'unknown error')}")

    out: List[RawItem] = []
    for entry in entries[: max(0, limit)]:
        link = entry.get("link")
        title = entry.get("title")
        if not link or not title:
            continue
        html = _entry_html(entry)
        content = clean_html(html)
        snippet = clean_html(entry.get("summary") or "", max_chars=500) or content[:500]
        out.append(
            RawItem(
                title=re.sub(r"\s+", " ", str(title)).strip(),
                link=canonicalize_link(str(link)),
                source=source,
                published_at=_parse_dt(entry),
                content=content,
                snippet=snippet,
                media_hints=extract_media_hints(entry),
            )
        )
    return out


def _recency_key(item: RawItem) -> Tuple[bool, datetime]:
    return (item.published_at is not None, item.published_at or datetime.min.replace(tzinfo=timezone.utc))


@dataclass(frozen=True)
class FeedFetcher:
    max_workers: int = config.FEED_FETCH_CONCURRENCY
    items_per_feed: int = config.ITEMS_PER_FEED
    max_items: int = config.MAX_ARTICLES_PER_RUN
    timeout: int = config.FEED_TIMEOUT_SECONDS

    def fetch_one(self, source: FeedSource) -> List[RawItem]:
        """Fetch a single feed; errors are logged and produce an empty list."""
        try:
            resp = requests.get(
                source.url,
                headers={"User-Agent": FEED_USER_AGENT, "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            items = parse_feed(resp.content, source, limit=self.items_per_feed)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"[feeds] {source.name} failed: {e}")
            return []
        logger.info(f"[feeds] {source.name}: {len(items)} items")
        return items

    def fetch(self, sources: Iterable[FeedSource]) -> List[RawItem]:
        srcs: Sequence[FeedSource] = list(sources)
        if not srcs:
            return []
        with ThreadPoolExecutor(max_workers=max(1, self.max_workers), thread_name_prefix="feed") as pool:
            # map() preserves source order, so "first wins" on duplicate links is deterministic.
            batches = list(pool.map(self.fetch_one, srcs))

        seen = set()
        merged: List[RawItem] = []
        for batch in batches:
            for item in batch:
                if not item.link or item.link in seen:
                    continue
                seen.add(item.link)
                merged.append(item)

        merged.sort(key=_recency_key, reverse=True)
        out = merged[: self.max_items]
        logger.info(f"[feeds] {len(srcs)} sources -> {len(merged)} unique items, keeping {len(out)}")
        return out
