import os
import unittest
from unittest import mock

import curate_news_worker
import fix_missing_images_worker
from newscurator.errors import DatastoreUnavailable
from newscurator.images.image_types import ResolutionResult
from newscurator.images.validator import ImageValidator
from newscurator.pipeline.orchestrator import RunStats

from curation_fakes import FakeRepo, FakeResolver


class TestCurateWorker(unittest.TestCase):
    @mock.patch("curate_news_worker.run_curation")
    def test_run_once_reports_counts(self, run_curation):
        run_curation.return_value = RunStats(stored=3, queued=1, skipped=2)
        with mock.patch("builtins.print") as printed:
            self.assertEqual(curate_news_worker.run_once(mock.Mock()), 0)
        printed.assert_called_once_with("[curate] stored=3 queued=1 skipped=2")

    @mock.patch("curate_news_worker.run_curation", side_effect=DatastoreUnavailable("connection refused"))
    def test_unreachable_datastore_exits_non_zero(self, _):
        self.assertEqual(curate_news_worker.run_once(mock.Mock()), 1)

    @mock.patch("curate_news_worker.load_dotenv")
    @mock.patch.dict(os.environ, {}, clear=True)
    def test_missing_credentials_exit_non_zero(self, _):
        self.assertEqual(curate_news_worker.main(), 1)


class TestImageBackfill(unittest.TestCase):
    def test_backfill_updates_records_without_images(self):
        repo = FakeRepo()
        repo.rows = {
            "https://lab.example.com/a": {"id": 1, "source_url": "https://lab.example.com/a", "image_url": None},
            "https://lab.example.com/b": {"id": 2, "source_url": "https://lab.example.com/b", "image_url": None},
        }
        resolver = FakeResolver({"https://lab.example.com/b": ResolutionResult(image=None, error="no_valid_image")})
        validator = ImageValidator()

        fixed = fix_missing_images_worker.backfill(repo, resolver, validator, limit=10)

        self.assertEqual(fixed, 1)
        self.assertEqual(repo.rows["https://lab.example.com/a"]["image_url"], "https://lab.example.com/a/lead.jpg")
        self.assertIsNone(repo.rows["https://lab.example.com/b"]["image_url"])
        self.assertTrue(validator.is_registered("https://lab.example.com/a/lead.jpg"))
        self.assertIn(repo.rows["https://lab.example.com/a"]["image_hash"], repo.image_hashes)


if __name__ == "__main__":
    unittest.main()
