import os
import unittest
from datetime import datetime, timezone
from unittest import mock

import requests

from newscurator.ingestion.article_types import FeedSource
from newscurator.ingestion.feeds import FeedFetcher, clean_html, parse_feed
from newscurator.ingestion.sources import default_sources


FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")
SOURCE = FeedSource("Example Lab", "https://lab.example.com/feed.xml", "company", "en")


def load_feed() -> bytes:
    with open(os.path.join(FIXTURES, "ai_feed.xml"), "rb") as f:
        return f.read()


class TestParseFeed(unittest.TestCase):
    def test_entries_are_normalized(self):
        items = parse_feed(load_feed(), SOURCE)
        self.assertEqual(len(items), 2)

        first, second = items
        self.assertEqual(first.title, "GPT-5 Launch Announced")
        self.assertEqual(first.link, "https://lab.example.com/blog/gpt-5-launch")
        self.assertEqual(first.published_at, datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc))
        self.assertIn("flagship model", first.content)
        self.assertNotIn("<b>", first.content)
        self.assertIs(first.source, SOURCE)

        self.assertEqual(second.link, "https://lab.example.com/blog/robotics-update")

    def test_media_hints_in_priority_order(self):
        first, second = parse_feed(load_feed(), SOURCE)
        self.assertEqual(first.media_hints[0], "https://cdn.example.com/media/gpt5-hero-1200x630.jpg")
        self.assertIn("https://cdn.example.com/inline/gpt5.png", first.media_hints)
        self.assertIn("https://cdn.example.com/media/gripper.jpg", second.media_hints)

    def test_limit(self):
        self.assertEqual(len(parse_feed(load_feed(), SOURCE, limit=1)), 1)

    def test_clean_html(self):
        self.assertEqual(clean_html("<p>Hello <script>x()</script><b>world</b></p>"), "Hello world")
        self.assertEqual(clean_html(None), "")


class TestFeedFetcher(unittest.TestCase):
    def test_broken_feed_is_skipped_and_links_deduped(self):
        payload = load_feed()
        good_a = SOURCE
        good_b = FeedSource("Example Lab mirror", "https://mirror.example.com/feed.xml", "aggregator", "en")
        broken = FeedSource("Broken", "https://broken.example.com/feed.xml", "news", "en")

        def fake_get(url, headers=None, timeout=None):
            if "broken" in url:
                raise requests.ConnectionError("connection refused")
            resp = mock.Mock()
            resp.content = payload
            resp.raise_for_status.return_value = None
            return resp

        with mock.patch("newscurator.ingestion.feeds.requests.get", side_effect=fake_get):
            items = FeedFetcher(max_workers=2).fetch([good_a, broken, good_b])

        self.assertEqual([i.link for i in items], [
            "https://lab.example.com/blog/gpt-5-launch",
            "https://lab.example.com/blog/robotics-update",
        ])
        # first source wins on a shared link
        self.assertEqual(items[0].source.name, "Example Lab")

    def test_max_items(self):
        with mock.patch("newscurator.ingestion.feeds.requests.get") as get:
            get.return_value.content = load_feed()
            items = FeedFetcher(max_items=1).fetch([SOURCE])
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].title, "GPT-5 Launch Announced")

    def test_no_sources(self):
        self.assertEqual(FeedFetcher().fetch([]), [])


class TestDefaultSources(unittest.TestCase):
    def test_language_filter(self):
        spanish = default_sources(language="es")
        self.assertTrue(spanish)
        self.assertTrue(all(s.language == "es" for s in spanish))
        self.assertGreater(len(default_sources()), len(spanish))


if __name__ == "__main__":
    unittest.main()
