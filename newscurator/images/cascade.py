"""Layered image resolution.

Feed media hints are tried first. Then one page fetch feeds the static layers
(meta, JSON-LD, featured selectors, content images) and, when those come up
empty, the browser layers (rendered DOM, screenshot). The first candidate that
passes validation wins.

Transient failures (timeouts, 429/5xx, render errors) retry the whole cascade
with linear backoff and a different user agent per attempt.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from newscurator import config
from newscurator.errors import RenderingError, TransientFetchError
from newscurator.extraction.fulltext import PageResult, fetch_page
from newscurator.images.browser import USER_AGENTS, BrowserSession
from newscurator.images.domain_profiles import DomainProfile, get_domain_profile
from newscurator.images.extractors import STATIC_STRATEGIES, parse_html
from newscurator.images.image_types import (
    LAYER_FEED_HINT,
    ImageCandidate,
    ResolutionResult,
    ResolvedImage,
)
from newscurator.images.validator import ImageValidator


logger = logging.getLogger(__name__)


class ImageResolver:
    def __init__(
        self,
        validator: ImageValidator,
        browser: Optional[BrowserSession] = None,
        *,
        fetch: Callable[..., PageResult] = fetch_page,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = config.IMAGE_MAX_ATTEMPTS,
        step_seconds: float = config.IMAGE_RETRY_STEP_SECONDS,
        profiles: Optional[Dict[str, DomainProfile]] = None,
    ):
        self.validator = validator
        self.browser = browser
        self.fetch = fetch
        self.sleep = sleep
        self.max_attempts = max(1, max_attempts)
        self.step_seconds = step_seconds
        self.profiles = profiles

    def resolve(self, url: str, *, media_hints: Iterable[str] = ()) -> ResolutionResult:
        profile = get_domain_profile(url, profiles=self.profiles)

        hints = [
            ImageCandidate(url=h, layer=LAYER_FEED_HINT, method="feed-media", confidence=0.8)
            for h in media_hints
            if h
        ]
        image = self._first_valid(hints, profile)
        if image is not None:
            logger.info(f"[image] {url}: feed media accepted")
            return ResolutionResult(image=image, attempts=0)

        state = {"attempt": 0, "html": None}

        def run_once() -> ResolutionResult:
            state["attempt"] += 1
            user_agent = USER_AGENTS[(state["attempt"] - 1) % len(USER_AGENTS)]
            image, html, error = self._cascade(url, profile, user_agent)
            if html:
                state["html"] = html
            return ResolutionResult(image=image, error=error, attempts=state["attempt"], page_html=state["html"])

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.step_seconds, increment=self.step_seconds),
            retry=retry_if_exception_type(TransientFetchError),
            sleep=self.sleep,
            before_sleep=lambda rs: logger.info(
                f"[image] {url}: transient failure on attempt {rs.attempt_number}, retrying"
            ),
            reraise=True,
        )
        try:
            result = retrying(run_once)
        except TransientFetchError as e:
            logger.warning(f"[image] {url}: gave up after {state['attempt']} attempts: {e}")
            return ResolutionResult(
                image=None,
                transient=True,
                error=str(e),
                attempts=state["attempt"],
                page_html=state["html"],
            )

        if result.image is None:
            logger.warning(f"[image] {url}: no usable image ({result.error})")
        return result

    def _cascade(
        self, url: str, profile: DomainProfile, user_agent: str
    ) -> Tuple[Optional[ResolvedImage], Optional[str], Optional[str]]:
        """One pass over every layer -> (image, page html, error). Raises TransientFetchError."""
        transient_error: Optional[str] = None

        page = self.fetch(url, user_agent=user_agent)
        html = page.html if page.ok else None
        if page.status == "blocked":
            return None, None, f"blocked_{page.error}"
        if html:
            soup = parse_html(html)
            base_url = page.final_url or url
            for strategy in STATIC_STRATEGIES:
                try:
                    candidates = strategy(soup, base_url, profile)
                except Exception as e:
                    logger.warning(f"[image] {strategy.__name__} failed on {url}: {e}")
                    continue
                image = self._first_valid(candidates, profile)
                if image is not None:
                    logger.info(f"[image] {url}: layer {image.layer} ({image.method})")
                    return image, html, None
        elif page.transient:
            transient_error = f"page_{page.status}"
            logger.info(f"[image] {url}: page fetch {page.status}, trying browser layers")
        else:
            logger.info(f"[image] {url}: page fetch {page.status}, trying browser layers")

        if self.browser is not None:
            for layer in (self._rendered_layer, self._screenshot_layer):
                try:
                    candidates = layer(url, user_agent)
                except RenderingError as e:
                    logger.warning(f"[image] {url}: {e}")
                    transient_error = str(e)
                    continue
                image = self._first_valid(candidates, profile)
                if image is not None:
                    logger.info(f"[image] {url}: layer {image.layer} ({image.method})")
                    return image, html, None

        if transient_error:
            raise TransientFetchError(transient_error)
        return None, html, "no_valid_image"

    def _rendered_layer(self, url: str, user_agent: str) -> List[ImageCandidate]:
        return self.browser.render_candidates(url, user_agent=user_agent)

    def _screenshot_layer(self, url: str, user_agent: str) -> List[ImageCandidate]:
        shot = self.browser.screenshot(url, user_agent=user_agent)
        return [shot] if shot is not None else []

    def _first_valid(self, candidates: Iterable[ImageCandidate], profile: DomainProfile) -> Optional[ResolvedImage]:
        for candidate in candidates:
            candidate = replace(candidate, url=profile.transform(candidate.url))
            validation = self.validator.validate(candidate, profile=profile)
            if validation.is_valid:
                return ResolvedImage.from_candidate(candidate, validation)
            logger.debug(f"[image] rejected layer {candidate.layer} {candidate.url[:120]}: {validation.error}")
        return None
