import base64
import os
import unittest
from unittest import mock

from newscurator.errors import RenderingError
from newscurator.extraction.fulltext import PageResult
from newscurator.images.browser import USER_AGENTS
from newscurator.images.cascade import ImageResolver
from newscurator.images.fallbacks import STOCK_CATEGORIES, stock_image, stock_image_url
from newscurator.images.image_types import ImageCandidate, LAYER_STOCK
from newscurator.images.validator import ImageValidator

from curation_fakes import FakeBrowser


FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")
ARTICLE = "https://news.example.com/2026/03/story"
OG_IMAGE = "https://cdn.example.com/images/model-release-1200x630.jpg"


def fixture(name):
    with open(os.path.join(FIXTURES, name), encoding="utf-8") as f:
        return f.read()


class ScriptedFetch:
    """Returns the given PageResults in order (the last one repeats); records user agents."""

    def __init__(self, *pages):
        self.pages = list(pages)
        self.user_agents = []

    def __call__(self, url, *, user_agent):
        self.user_agents.append(user_agent)
        if len(self.pages) > 1:
            return self.pages.pop(0)
        return self.pages[0]


def ok_page(name):
    return PageResult(html=fixture(name), status="ok", final_url=ARTICLE)


TIMEOUT = PageResult(html=None, status="timeout", error="read timed out")


def image_head():
    resp = mock.Mock()
    resp.status_code = 200
    resp.headers = {"content-type": "image/jpeg", "content-length": "150000"}
    return resp


def screenshot_candidate():
    payload = base64.b64encode(b"\xff\xd8" + b"\x10" * 6000).decode("ascii")
    return ImageCandidate(url=f"data:image/jpeg;base64,{payload}", layer=6, method="screenshot", confidence=0.5, width=1920, height=1080)


class TestImageResolver(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch("newscurator.images.validator.requests.head", return_value=image_head())
        self.head = patcher.start()
        self.addCleanup(patcher.stop)
        self.sleeps = []

    def resolver(self, fetch, browser=None, validator=None):
        return ImageResolver(validator or ImageValidator(), browser, fetch=fetch, sleep=self.sleeps.append)

    def test_og_only_page_resolves_at_layer_one(self):
        fetch = ScriptedFetch(ok_page("og_only.html"))
        result = self.resolver(fetch).resolve(ARTICLE)

        self.assertTrue(result.ok)
        self.assertEqual(result.image.url, OG_IMAGE)
        self.assertEqual(result.image.layer, 1)
        self.assertGreaterEqual(result.image.confidence, 0.9)
        self.assertEqual(result.attempts, 1)
        self.assertIn("og:image", result.page_html)

    def test_static_layers_in_order(self):
        expectations = {
            "jsonld_only.html": (2, "https://news.example.com/uploads/benchmarks-lead.jpg"),
            "featured_wordpress.html": (3, "https://news.example.com/wp-content/uploads/robots-fold.jpg"),
            "content_images.html": (4, "https://news.example.com/img/datacenter-wide.jpg"),
        }
        for name, (layer, url) in expectations.items():
            result = self.resolver(ScriptedFetch(ok_page(name))).resolve(ARTICLE)
            self.assertEqual((result.image.layer, result.image.url), (layer, url), name)

    def test_feed_hint_wins_without_fetching(self):
        fetch = ScriptedFetch(ok_page("og_only.html"))
        hint = "https://cdn.example.com/media/gpt5-hero-1200x630.jpg"
        result = self.resolver(fetch).resolve(ARTICLE, media_hints=(hint,))

        self.assertEqual((result.image.layer, result.image.url), (0, hint))
        self.assertEqual(result.attempts, 0)
        self.assertEqual(fetch.user_agents, [])

    def test_rejected_feed_hint_falls_through_to_the_page(self):
        fetch = ScriptedFetch(ok_page("og_only.html"))
        result = self.resolver(fetch).resolve(ARTICLE, media_hints=("https://cdn.example.com/brand-logo.png",))
        self.assertEqual(result.image.url, OG_IMAGE)

    def test_browser_layers_run_in_order_when_static_layers_fail(self):
        browser = FakeBrowser(rendered=[], screenshot=screenshot_candidate())
        result = self.resolver(ScriptedFetch(ok_page("empty_page.html")), browser).resolve(ARTICLE)

        self.assertEqual([c[0] for c in browser.calls], ["render", "screenshot"])
        self.assertEqual(result.image.layer, 6)
        self.assertTrue(result.image.url.startswith("data:image/jpeg;base64,"))

    def test_rendered_dom_hit_skips_screenshot(self):
        rendered = ImageCandidate(
            url="https://news.example.com/img/spa-hero.jpg", layer=5, method="rendered-dom", confidence=0.9, width=1600, height=900
        )
        browser = FakeBrowser(rendered=[rendered], screenshot=screenshot_candidate())
        result = self.resolver(ScriptedFetch(ok_page("empty_page.html")), browser).resolve(ARTICLE)

        self.assertEqual(result.image.layer, 5)
        self.assertEqual([c[0] for c in browser.calls], ["render"])

    def test_nothing_found_is_not_transient(self):
        browser = FakeBrowser()
        result = self.resolver(ScriptedFetch(ok_page("empty_page.html")), browser).resolve(ARTICLE)

        self.assertFalse(result.ok)
        self.assertFalse(result.transient)
        self.assertEqual(result.error, "no_valid_image")
        self.assertEqual(result.attempts, 1)
        self.assertEqual(self.sleeps, [])

    def test_timeouts_retry_with_linear_backoff_and_rotating_agents(self):
        fetch = ScriptedFetch(TIMEOUT)
        browser = FakeBrowser(error=RenderingError("navigation timeout"))
        result = self.resolver(fetch, browser).resolve(ARTICLE)

        self.assertFalse(result.ok)
        self.assertTrue(result.transient)
        self.assertEqual(result.attempts, 3)
        self.assertEqual(self.sleeps, [2.0, 4.0])
        self.assertEqual(fetch.user_agents, list(USER_AGENTS[:3]))
        self.assertEqual(len(browser.calls), 6)

    def test_recovers_on_a_later_attempt(self):
        fetch = ScriptedFetch(TIMEOUT, ok_page("og_only.html"))
        result = self.resolver(fetch).resolve(ARTICLE)

        self.assertEqual(result.image.url, OG_IMAGE)
        self.assertEqual(result.attempts, 2)
        self.assertEqual(self.sleeps, [2.0])

    def test_blocked_page_gives_up_immediately(self):
        resolver = ImageResolver(ImageValidator(), FakeBrowser(), sleep=self.sleeps.append)
        result = resolver.resolve("http://127.0.0.1:8080/admin")

        self.assertFalse(result.ok)
        self.assertTrue(result.error.startswith("blocked"))
        self.assertEqual(self.sleeps, [])

    def test_image_used_by_another_record_is_not_reused(self):
        validator = ImageValidator()
        validator.register(OG_IMAGE)
        result = self.resolver(ScriptedFetch(ok_page("og_only.html")), validator=validator).resolve(ARTICLE)
        self.assertFalse(result.ok)


class TestStockFallback(unittest.TestCase):
    def test_deterministic_topic_image(self):
        a = stock_image_url("GPT-5 Launch Announced", "https://lab.example.com/blog/gpt-5-launch")
        b = stock_image_url("GPT-5 Launch Announced", "https://lab.example.com/blog/gpt-5-launch")
        self.assertEqual(a, b)
        self.assertTrue(a.startswith("https://source.unsplash.com/1600x900/?"))
        self.assertIn(a.split("?", 1)[1].split(",", 1)[0], STOCK_CATEGORIES)

    def test_stock_image_layer(self):
        image = stock_image("Robots fold laundry", "https://lab.example.com/robots")
        self.assertEqual(image.layer, LAYER_STOCK)
        self.assertTrue(image.validation.is_valid)
        self.assertIsNone(image.validation.hash)


if __name__ == "__main__":
    unittest.main()
