import os
import unittest
from unittest import mock

from newscurator.config import CuratorConfig
from newscurator.errors import ConfigError


class TestCuratorConfig(unittest.TestCase):
    @mock.patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test", "PG_DSN": "dbname=curator"}, clear=True)
    def test_defaults(self):
        cfg = CuratorConfig.from_env()
        self.assertEqual(cfg.pg_dsn, "dbname=curator")
        self.assertEqual(cfg.mode, "once")
        self.assertEqual(cfg.embeddings_provider, "openai")
        self.assertTrue(cfg.browser_enabled)
        self.assertFalse(cfg.use_stock_fallback)

    @mock.patch.dict(
        os.environ,
        {"OPENAI_API_KEY": "sk-test", "IMAGE_STOCK_FALLBACK": "1", "ENABLE_BROWSER_RENDERING": "false", "CURATE_MODE": "Scheduled"},
        clear=True,
    )
    def test_flags(self):
        cfg = CuratorConfig.from_env()
        self.assertTrue(cfg.use_stock_fallback)
        self.assertFalse(cfg.browser_enabled)
        self.assertEqual(cfg.mode, "scheduled")

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_missing_credentials_are_fatal(self):
        with self.assertRaises(ConfigError) as ctx:
            CuratorConfig.from_env()
        self.assertIn("OPENAI_API_KEY", str(ctx.exception))

    @mock.patch.dict(os.environ, {"OPENAI_API_KEY": "not-a-key", "CURATE_MODE": "forever"}, clear=True)
    def test_all_problems_are_reported(self):
        with self.assertRaises(ConfigError) as ctx:
            CuratorConfig.from_env()
        self.assertIn("wrong format", str(ctx.exception))
        self.assertIn("CURATE_MODE", str(ctx.exception))

    @mock.patch.dict(
        os.environ,
        {"OPENROUTER_API_KEY": "or-key", "EMBEDDINGS_PROVIDER": "voyage", "VOYAGE_API_KEY": "pa-key"},
        clear=True,
    )
    def test_openrouter_with_voyage_embeddings(self):
        cfg = CuratorConfig.from_env()
        self.assertEqual(cfg.openai_api_key, "")
        self.assertEqual(cfg.embeddings_provider, "voyage")


if __name__ == "__main__":
    unittest.main()
