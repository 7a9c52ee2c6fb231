"""Image candidate validation and in-run duplicate registry.

Checks, cheapest first: URL shape, blacklist patterns, SSRF guard, duplicate
fingerprint, then a HEAD request (ranged GET when HEAD is refused) for MIME type
and byte size. Dimensions come from declared attributes or URL patterns.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import Dict, Iterable, Optional, Tuple
from urllib.parse import urlparse

import requests

from newscurator import config
from newscurator.extraction.fulltext import validate_fetch_url
from newscurator.images.domain_profiles import DomainProfile
from newscurator.images.image_types import ImageCandidate, ImageValidation
from newscurator.ingestion.url_utils import image_fingerprint


logger = logging.getLogger(__name__)

IMAGE_BLACKLIST_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"avatar",
        r"icon",
        r"logo",
        r"1x1",
        r"pixel",
        r"tracking",
        r"analytics",
        r"transparent",
        r"placeholder",
        r"gravatar",
        r"profile",
        r"default[-_]?image",
        r"no[-_]?image",
        r"coming[-_]?soon",
        r"\.svg(\?|$)",
    )
)

IMAGE_EXTENSION_TO_MIME: Dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".avif": "image/avif",
    ".bmp": "image/bmp",
}

MIN_IMAGE_BYTES = 5000
MAX_IMAGE_BYTES = 10_000_000
# Screenshots below this size are blank or error pages.
MIN_DATA_URI_BYTES = 2000

_DIMENSION_PATTERNS = (
    re.compile(r"[/_](\d{3,5})x(\d{3,5})[/_.]", re.IGNORECASE),
    re.compile(r"[/_]w(\d{3,5})-?h(\d{3,5})[/_]", re.IGNORECASE),
    re.compile(r"[/_](\d{3,5})w-?(\d{3,5})h[/_]", re.IGNORECASE),
    re.compile(r"\.(\d{3,5})x(\d{3,5})\.\w+$", re.IGNORECASE),
)

IMAGE_REQUEST_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def guess_mime_from_url(url: str) -> Optional[str]:
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return None
    m = re.search(r"\.\w+$", path)
    if not m:
        return None
    return IMAGE_EXTENSION_TO_MIME.get(m.group(0))


def dimensions_from_url(url: str) -> Tuple[Optional[int], Optional[int]]:
    """Read WxH hints such as /1200x630/, w1200-h630, 1200w-630h or .1200x630.jpg."""
    for pattern in _DIMENSION_PATTERNS:
        m = pattern.search(url)
        if not m:
            continue
        w, h = int(m.group(1)), int(m.group(2))
        if 100 <= w <= 10000 and 100 <= h <= 10000:
            return w, h
    return None, None


def is_blacklisted(url: str) -> bool:
    return any(p.search(url) for p in IMAGE_BLACKLIST_PATTERNS)


def _data_uri_info(url: str) -> Tuple[Optional[str], int]:
    """(mime, decoded byte size) for a base64 data URI; (None, 0) when malformed."""
    m = re.match(r"data:(image/[\w.+-]+);base64,(.*)$", url, re.DOTALL)
    if not m:
        return None, 0
    try:
        raw = base64.b64decode(m.group(2), validate=False)
    except (binascii.Error, ValueError):
        return None, 0
    return m.group(1).lower(), len(raw)


class ImageValidator:
    """Validates candidates and remembers fingerprints used by other records."""

    def __init__(self, known_hashes: Iterable[str] = (), *, timeout: int = config.IMAGE_HEAD_TIMEOUT_SECONDS):
        self._hashes = set(h for h in known_hashes if h)
        self.timeout = timeout
        self._cache: Dict[str, ImageValidation] = {}

    def __len__(self) -> int:
        return len(self._hashes)

    def register(self, url_or_hash: str) -> str:
        h = url_or_hash if re.fullmatch(r"[0-9a-f]{32}", url_or_hash) else image_fingerprint(url_or_hash)
        self._hashes.add(h)
        return h

    def is_registered(self, url: str) -> bool:
        return image_fingerprint(url) in self._hashes

    def validate(self, candidate: ImageCandidate, *, profile: Optional[DomainProfile] = None) -> ImageValidation:
        url = (candidate.url or "").strip()
        if not url:
            return ImageValidation(is_valid=False, error="empty_url")

        if url.startswith("data:"):
            return self._validate_data_uri(url, candidate)

        if not url.startswith(("http://", "https://")):
            return ImageValidation(is_valid=False, error="bad_scheme")
        if is_blacklisted(url):
            return ImageValidation(is_valid=False, error="blacklisted")
        if profile is not None and profile.is_blacklisted(url):
            return ImageValidation(is_valid=False, error="domain_blacklisted")

        err = validate_fetch_url(url)
        if err:
            return ImageValidation(is_valid=False, error=f"ssrf_{err}")

        fingerprint = image_fingerprint(url)
        if fingerprint in self._hashes:
            return ImageValidation(is_valid=False, is_duplicate=True, hash=fingerprint, error="duplicate_image")

        result = self._cache.get(url)
        if result is None:
            result = self._probe(url, fingerprint)
            self._cache[url] = result
        if not result.is_valid:
            return result

        width = candidate.width or result.width
        height = candidate.height or result.height
        if profile is not None:
            if profile.min_width and width and width < profile.min_width:
                return ImageValidation(is_valid=False, error=f"too_narrow_{width}", hash=fingerprint, width=width, height=height)
            if profile.min_height and height and height < profile.min_height:
                return ImageValidation(is_valid=False, error=f"too_short_{height}", hash=fingerprint, width=width, height=height)

        return ImageValidation(
            is_valid=True,
            hash=fingerprint,
            width=width,
            height=height,
            mime=result.mime,
            bytes=result.bytes,
        )

    def _validate_data_uri(self, url: str, candidate: ImageCandidate) -> ImageValidation:
        # Only rendered screenshots may travel as inline payloads.
        if candidate.layer != 6:
            return ImageValidation(is_valid=False, error="inline_data_uri")
        mime, size = _data_uri_info(url)
        if not mime:
            return ImageValidation(is_valid=False, error="malformed_data_uri")
        if size < MIN_DATA_URI_BYTES:
            return ImageValidation(is_valid=False, error="tracking_pixel")
        fingerprint = image_fingerprint(url)
        if fingerprint in self._hashes:
            return ImageValidation(is_valid=False, is_duplicate=True, hash=fingerprint, error="duplicate_image")
        return ImageValidation(
            is_valid=True,
            hash=fingerprint,
            width=candidate.width,
            height=candidate.height,
            mime=mime,
            bytes=size,
        )

    def _probe(self, url: str, fingerprint: str) -> ImageValidation:
        headers = {
            "User-Agent": IMAGE_REQUEST_USER_AGENT,
            "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }
        try:
            p = urlparse(url)
            headers["Referer"] = f"{p.scheme}://{p.netloc}/"
        except ValueError:
            pass
        try:
            resp = requests.head(url, headers=headers, timeout=self.timeout, allow_redirects=True)
            if resp.status_code in (403, 405):
                # Some servers reject HEAD requests; fallback to lightweight GET
                resp = requests.get(
                    url,
                    headers={**headers, "Range": "bytes=0-65535"},
                    timeout=self.timeout,
                    allow_redirects=True,
                    stream=True,
                )
                resp.close()
        except requests.RequestException as e:
            return ImageValidation(is_valid=False, error=f"request_failed: {e}")

        if resp.status_code >= 400:
            return ImageValidation(is_valid=False, error=f"http_{resp.status_code}")

        content_type = (resp.headers.get("content-type") or "").split(";")[0].strip().lower() or None
        mime = content_type if content_type and content_type.startswith("image/") else None
        if mime is None and not content_type:
            mime = guess_mime_from_url(url)
        if mime is None and content_type in ("application/octet-stream", "binary/octet-stream"):
            mime = guess_mime_from_url(url)
        if not mime:
            return ImageValidation(is_valid=False, error=f"invalid_content_type: {content_type or 'unknown'}")

        size = _content_length(resp)
        if size is not None and size < MIN_IMAGE_BYTES:
            return ImageValidation(is_valid=False, error="too_small_placeholder")
        if size is not None and size > MAX_IMAGE_BYTES:
            return ImageValidation(is_valid=False, error="too_large")

        width, height = dimensions_from_url(url)
        return ImageValidation(is_valid=True, hash=fingerprint, width=width, height=height, mime=mime, bytes=size)


def _content_length(resp: requests.Response) -> Optional[int]:
    # A ranged GET reports the full size in Content-Range ("bytes 0-65535/123456").
    content_range = resp.headers.get("content-range") or ""
    m = re.search(r"/(\d+)$", content_range)
    if m:
        return int(m.group(1))
    raw = resp.headers.get("content-length")
    if raw and raw.isdigit() and int(raw) > 0 and resp.status_code != 206:
        return int(raw)
    return None
