"""URL helpers for link dedup and image URL normalization."""

from __future__ import annotations

import hashlib
from typing import Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse


DEFAULT_STRIP_QUERY_PARAMS = {
    # tracking
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    "utm_name",
    "utm_reader",
    "utm_referrer",
    "utm_pubreferrer",
    "utm_swu",
    # feed readers / newsletters
    "gclid",
    "fbclid",
    "mc_cid",
    "mc_eid",
    "ref",
    "ref_src",
    "ref_url",
    "rss",
    "cmpid",
    "ito",
}

# Query params that identify an image on CDNs that serve everything from one path.
IMAGE_IDENTITY_PARAMS = ("id", "image_id", "photo_id", "media_id")


def canonicalize_link(url: str, *, strip_params: Optional[Iterable[str]] = None) -> str:
    """Canonicalize an article link so the same story from one feed maps to one key.

    - Lowercase scheme + hostname
    - Remove fragments and trailing slash on non-root paths
    - Strip tracking query parameters
    - Sort the remaining query params
    """
    if not url:
        return ""
    strip = set(strip_params) if strip_params is not None else set(DEFAULT_STRIP_QUERY_PARAMS)
    p = urlparse(url.strip())
    scheme = (p.scheme or "https").lower()
    netloc = (p.netloc or "").lower()
    path = p.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/")

    kept = []
    for k, v in parse_qsl(p.query, keep_blank_values=True):
        if k.lower() in strip:
            continue
        kept.append((k, v))
    kept.sort(key=lambda kv: (kv[0].lower(), kv[1]))
    query = urlencode(kept, doseq=True)

    return urlunparse((scheme, netloc, path, "", query, ""))


def link_hash(url: str) -> str:
    return hashlib.sha256(canonicalize_link(url).encode("utf-8")).hexdigest()


def hostname(url: str) -> str:
    """Hostname without a leading `www.` ("" when unparseable)."""
    try:
        host = (urlparse(url or "").hostname or "").lower().strip()
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def absolutize(image_url: str, base_url: str) -> str:
    """Resolve protocol-relative and relative image references against the page URL."""
    u = (image_url or "").strip()
    if not u:
        return ""
    if u.startswith(("http://", "https://", "data:")):
        return u
    if u.startswith("//"):
        return "https:" + u
    try:
        return urljoin(base_url, u)
    except ValueError:
        return u


def image_fingerprint(url: str) -> str:
    """Stable fingerprint for an image URL.

    CDN resize/quality params are dropped; only params that identify the asset are kept.
    """
    if url.startswith("data:"):
        return hashlib.md5(url.encode("utf-8")).hexdigest()
    try:
        p = urlparse(url)
    except ValueError:
        return hashlib.md5(url.split("?")[0].encode("utf-8")).hexdigest()
    params = dict(parse_qsl(p.query, keep_blank_values=False))
    kept = [(k, params[k]) for k in IMAGE_IDENTITY_PARAMS if k in params]
    clean = f"{(p.scheme or 'https').lower()}://{(p.netloc or '').lower()}{p.path}"
    if kept:
        clean += "?" + urlencode(kept)
    return hashlib.md5(clean.encode("utf-8")).hexdigest()
