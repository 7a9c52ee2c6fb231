"""Headless browser session for script-rendered pages (cascade layers 5 and 6).

One chromium instance is launched on first use and reused for the rest of the
run; every call gets its own context so user agents can rotate. The owner must
call `close()` (or use the session as a context manager).
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from newscurator.errors import RenderingError
from newscurator.images.image_types import LAYER_BROWSER, LAYER_SCREENSHOT, ImageCandidate


logger = logging.getLogger(__name__)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
)

VIEWPORT = {"width": 1920, "height": 1080}
NAVIGATION_TIMEOUT_MS = 30000
SETTLE_MS = 2000
SCREENSHOT_QUALITY = 85

HEADER_REGION_SELECTORS = "article header, .article-header, .post-header, main > div:first-child"

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
]

# Same meta -> featured -> article heuristics as the static layers, run on the live DOM.
RENDERED_IMAGE_JS = """
() => {
  const found = [];
  const og = document.querySelector('meta[property="og:image"]');
  if (og && og.content) {
    found.push({url: og.content, score: 100, width: 1200, height: 630});
  }
  document.querySelectorAll('.featured-image img, .hero-image img, .wp-post-image').forEach((img) => {
    const src = img.currentSrc || img.src;
    if (src) {
      found.push({url: src, score: 90, width: img.naturalWidth || 800, height: img.naturalHeight || null});
    }
  });
  document.querySelectorAll('article img, main img, .article-content img').forEach((img) => {
    const src = img.currentSrc || img.src;
    if (src && img.naturalWidth > 600) {
      found.push({url: src, score: 75, width: img.naturalWidth, height: img.naturalHeight || null});
    }
  });
  return found;
}
"""


class BrowserSession:
    def __init__(
        self,
        *,
        headless: bool = True,
        navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS,
        settle_ms: int = SETTLE_MS,
    ):
        self.headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self.settle_ms = settle_ms
        self._playwright = None
        self._browser = None

    @property
    def started(self) -> bool:
        return self._browser is not None

    def __enter__(self) -> "BrowserSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _ensure_browser(self):
        if self._browser is not None:
            return self._browser
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=self.headless, args=LAUNCH_ARGS)
        except PlaywrightError as e:
            self.close()
            raise RenderingError(f"could not launch chromium: {e}") from e
        logger.info("Headless browser launched")
        return self._browser

    def _new_context(self, user_agent: Optional[str]):
        return self._ensure_browser().new_context(
            user_agent=user_agent or USER_AGENTS[0],
            viewport=VIEWPORT,
            ignore_https_errors=True,
        )

    def _load(self, context, url: str):
        page = context.new_page()
        page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
        page.wait_for_timeout(self.settle_ms)
        return page

    def render_candidates(self, url: str, *, user_agent: Optional[str] = None) -> List[ImageCandidate]:
        """Layer 5: image candidates from the rendered DOM, best first."""
        context = None
        try:
            context = self._new_context(user_agent)
            page = self._load(context, url)
            found: List[Dict[str, Any]] = page.evaluate(RENDERED_IMAGE_JS) or []
        except PlaywrightError as e:
            raise RenderingError(f"render failed for {url}: {e}") from e
        finally:
            if context is not None:
                _close_quietly(context)

        out: List[ImageCandidate] = []
        seen = set()
        for item in sorted(found, key=lambda f: -(f.get("score") or 0)):
            src = (item.get("url") or "").strip()
            if not src or src in seen:
                continue
            seen.add(src)
            out.append(
                ImageCandidate(
                    url=src,
                    layer=LAYER_BROWSER,
                    method="rendered-dom",
                    confidence=float(item.get("score") or 0) / 100.0,
                    width=item.get("width") or None,
                    height=item.get("height") or None,
                )
            )
        return out

    def screenshot(self, url: str, *, user_agent: Optional[str] = None) -> Optional[ImageCandidate]:
        """Layer 6: header-region screenshot, else the first viewport, as a JPEG data URI."""
        context = None
        try:
            context = self._new_context(user_agent)
            page = self._load(context, url)
            width, height = VIEWPORT["width"], VIEWPORT["height"]
            header = page.query_selector(HEADER_REGION_SELECTORS)
            raw = None
            if header is not None:
                box = header.bounding_box()
                if box and box.get("width") and box.get("height"):
                    raw = header.screenshot(type="jpeg", quality=SCREENSHOT_QUALITY)
                    width, height = int(box["width"]), int(box["height"])
            if raw is None:
                raw = page.screenshot(
                    type="jpeg",
                    quality=SCREENSHOT_QUALITY,
                    clip={"x": 0, "y": 0, "width": VIEWPORT["width"], "height": VIEWPORT["height"]},
                )
        except PlaywrightError as e:
            raise RenderingError(f"screenshot failed for {url}: {e}") from e
        finally:
            if context is not None:
                _close_quietly(context)

        if not raw:
            return None
        payload = base64.b64encode(raw).decode("ascii")
        return ImageCandidate(
            url=f"data:image/jpeg;base64,{payload}",
            layer=LAYER_SCREENSHOT,
            method="screenshot",
            confidence=0.5,
            width=width,
            height=height,
        )

    def close(self) -> None:
        browser, pw = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        if browser is not None:
            _close_quietly(browser)
        if pw is not None:
            try:
                pw.stop()
            except PlaywrightError as e:
                logger.warning(f"Playwright stop failed: {e}")
        if browser is not None:
            logger.info("Headless browser closed")


def _close_quietly(resource: Any) -> None:
    try:
        resource.close()
    except PlaywrightError as e:
        logger.debug(f"close failed: {e}")
