"""Article page fetch + text extraction.

Policy:
- Pages are fetched once per resolution attempt; the HTML feeds both the image
  cascade and trafilatura body extraction.
- Every outbound fetch goes through `validate_fetch_url` (SSRF/abuse protections).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import ipaddress
import socket
from urllib.parse import urlparse

import requests
import trafilatura

from newscurator import config


@dataclass(frozen=True)
class PageResult:
    html: Optional[str]
    status: str
    error: Optional[str] = None
    final_url: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok" and bool(self.html)

    @property
    def transient(self) -> bool:
        """True when a later attempt could plausibly succeed."""
        if self.status in ("timeout", "connection_error", "http_429"):
            return True
        return self.status.startswith("http_5")


_PRIVATE_NETS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("100.64.0.0/10"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

_BLOCKED_HOSTS = {"localhost", "localhost.localdomain", "metadata.google.internal", "metadata"}
_BLOCKED_SUFFIXES = (".local", ".internal", ".localhost")


def _is_ip_hostname(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
        return True
    except ValueError:
        return False


def _is_private_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return any(ip in net for net in _PRIVATE_NETS)


def validate_fetch_url(url: str, *, resolve_dns: bool = False) -> Optional[str]:
    """Return error string if URL should not be fetched (SSRF/abuse protections)."""
    try:
        p = urlparse(url)
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    if not p.netloc:
        return "missing_host"
    host = (p.hostname or "").strip().lower()
    if not host:
        return "missing_host"
    if host in _BLOCKED_HOSTS or host.endswith(_BLOCKED_SUFFIXES):
        return "blocked_host"
    if _is_ip_hostname(host):
        if _is_private_ip(host):
            return "blocked_private_ip"
        return None
    if resolve_dns:
        try:
            infos = socket.getaddrinfo(host, None)
        except OSError:
            return "dns_failure"
        if any(_is_private_ip(info[4][0]) for info in infos):
            return "blocked_private_ip"
    return None


def fetch_page(
    url: str,
    *,
    user_agent: str,
    timeout: int = config.PAGE_TIMEOUT_SECONDS,
    max_bytes: int = 3_000_000,
) -> PageResult:
    if not url:
        return PageResult(html=None, status="error", error="empty_url")
    err = validate_fetch_url(url)
    if err:
        return PageResult(html=None, status="blocked", error=err)
    try:
        resp = requests.get(
            url,
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9,es;q=0.8",
                "DNT": "1",
                "Upgrade-Insecure-Requests": "1",
            },
            timeout=(5, timeout),
            allow_redirects=True,
            stream=True,
        )
        status_code = resp.status_code
        if status_code >= 400:
            return PageResult(html=None, status=f"http_{status_code}", error=f"http_{status_code}")
        # Size guardrail: read up to max_bytes
        content = b""
        for chunk in resp.iter_content(chunk_size=64 * 1024):
            if not chunk:
                continue
            content += chunk
            if len(content) > max_bytes:
                return PageResult(html=None, status="too_large", error="too_large")
        try:
            html = content.decode(resp.encoding or "utf-8", errors="replace")
        except LookupError:
            html = content.decode("utf-8", errors="replace")
        if not html.strip():
            return PageResult(html=None, status="empty", error="empty_html")
        return PageResult(html=html, status="ok", final_url=resp.url or url)
    except requests.Timeout as e:
        return PageResult(html=None, status="timeout", error=str(e))
    except requests.ConnectionError as e:
        return PageResult(html=None, status="connection_error", error=str(e))
    except requests.RequestException as e:
        return PageResult(html=None, status="error", error=str(e))


def extract_text(html: Optional[str], *, max_chars: int = config.SCRAPED_CONTENT_MAX_CHARS) -> Optional[str]:
    """Main article body via trafilatura (None when nothing usable)."""
    if not html or not html.strip():
        return None
    text = trafilatura.extract(html, include_comments=False, include_tables=False)
    if not text or len(text.strip()) < 200:
        return None
    return text.strip()[:max_chars]
