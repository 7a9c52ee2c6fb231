import unittest
from unittest import mock

import requests

from newscurator.extraction.fulltext import PageResult, fetch_page, validate_fetch_url


UA = "test-agent"


class TestFulltextSecurity(unittest.TestCase):
    def test_blocks_localhost(self):
        r = fetch_page("http://localhost:1234/", user_agent=UA)
        self.assertEqual(r.status, "blocked")

    def test_blocks_private_ip(self):
        r = fetch_page("http://127.0.0.1:1234/", user_agent=UA)
        self.assertEqual(r.status, "blocked")

    def test_blocks_non_http_scheme(self):
        r = fetch_page("file:///etc/passwd", user_agent=UA)
        self.assertEqual(r.status, "blocked")

    def test_blocks_metadata_and_internal_hosts(self):
        self.assertEqual(validate_fetch_url("http://metadata.google.internal/computeMetadata"), "blocked_host")
        self.assertEqual(validate_fetch_url("http://169.254.169.254/latest"), "blocked_private_ip")
        self.assertIsNone(validate_fetch_url("https://news.example.com/a"))


class TestPageResult(unittest.TestCase):
    def test_transient_statuses(self):
        self.assertTrue(PageResult(html=None, status="timeout").transient)
        self.assertTrue(PageResult(html=None, status="http_503").transient)
        self.assertTrue(PageResult(html=None, status="http_429").transient)
        self.assertFalse(PageResult(html=None, status="http_404").transient)
        self.assertFalse(PageResult(html=None, status="blocked").transient)

    def test_timeout_maps_to_transient_result(self):
        with mock.patch("newscurator.extraction.fulltext.requests.get", side_effect=requests.Timeout("slow")):
            r = fetch_page("https://news.example.com/a", user_agent=UA)
        self.assertEqual(r.status, "timeout")
        self.assertTrue(r.transient)


if __name__ == "__main__":
    unittest.main()
