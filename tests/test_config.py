import dataclasses
import json
import os
import tempfile
import unittest
from datetime import timedelta
from pathlib import Path
from unittest import mock

from hndigest.config import (
    DEFAULT_API_BASE_URL,
    MAX_PURGE_AFTER_DAYS,
    AppConfig,
    load_app_config,
    load_config,
)
from hndigest.errors import ConfigError
from hndigest.models import TopicFilter


class ConfigFileTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, text: str, name: str = "config.yaml") -> Path:
        path = self.dir / name
        path.write_text(text, encoding="utf-8")
        return path


class TestLoadConfig(ConfigFileTestCase):
    def test_minimal_yaml_gets_defaults(self):
        config = load_app_config(self.write("purge_after_days: 7\n"))
        self.assertEqual(config.purge_after_days, 7)
        self.assertEqual(config.retention, timedelta(days=7))
        self.assertEqual(config.api_base_url, DEFAULT_API_BASE_URL)
        self.assertEqual(config.filters, ())
        self.assertEqual(config.blacklisted_domains, ())
        self.assertFalse(config.include_unmatched)
        self.assertIsNone(config.smtp)
        self.assertIsNone(config.telegram)

    def test_db_file_resolved_relative_to_config(self):
        config = load_app_config(self.write("purge_after_days: 7\ndb_file: data/x.db\n"))
        self.assertEqual(Path(config.db_file), self.dir / "data" / "x.db")

    def test_json_config_is_accepted(self):
        raw = {
            "purge_after_days": 3,
            "blacklisted_domains": ["example.com"],
            "filters": [{"title": "Rust", "value": "rust,cargo"}],
            "rss_sources": [{"name": "lobsters", "url": "https://lobste.rs/rss"}],
            "telegram": {"token": "t0k", "chat_id": 42},
        }
        config = load_app_config(self.write(json.dumps(raw), name="config.json"))
        self.assertEqual(config.filters, (TopicFilter("Rust", ("rust", "cargo")),))
        self.assertEqual(config.blacklisted_domains, ("example.com",))
        self.assertEqual(config.rss_sources[0].name, "lobsters")
        self.assertEqual(config.telegram.chat_id, "42")

    def test_env_overrides_secrets(self):
        path = self.write("purge_after_days: 1\ntelegram:\n  token: from-file\n  chat_id: '1'\n")
        with mock.patch.dict(os.environ, {"HNDIGEST_TELEGRAM_TOKEN": "from-env"}):
            config = load_app_config(path)
        self.assertEqual(config.telegram.token, "from-env")

    def test_smtp_section(self):
        path = self.write(
            "purge_after_days: 1\n"
            "smtp:\n  host: mail.example.com\n  port: 587\n  use_ssl: false\n  use_tls: true\n"
            "  username: u\n  password: p\n  from: a@example.com\n  to: b@example.com\n"
        )
        smtp = load_app_config(path).smtp
        self.assertEqual(smtp.port, 587)
        self.assertEqual(smtp.sender, "a@example.com")
        self.assertTrue(smtp.use_tls)
        self.assertFalse(smtp.use_ssl)

    def test_config_is_immutable(self):
        config = load_app_config(self.write("purge_after_days: 1\n"))
        with self.assertRaises(dataclasses.FrozenInstanceError):
            config.purge_after_days = 5

    def test_missing_file_is_config_error(self):
        with self.assertRaises(ConfigError):
            load_config(self.dir / "nope.yaml")

    def test_invalid_yaml_is_config_error(self):
        with self.assertRaises(ConfigError):
            load_config(self.write("filters: [unclosed\n"))


class TestValidation(unittest.TestCase):
    def base(self, **overrides):
        cfg = {
            "db_file": ":memory:",
            "purge_after_days": 7,
            "blacklisted_domains": [],
            "filters": [],
            "rss_sources": [],
            "api_base_url": DEFAULT_API_BASE_URL,
            "max_items": 10,
            "max_concurrent": 2,
            "feed_timeout": 5,
            "include_unmatched": False,
            "purge_after_run": False,
        }
        cfg.update(overrides)
        return cfg

    def test_valid_dict(self):
        self.assertEqual(AppConfig.from_dict(self.base()).max_items, 10)

    def test_missing_purge_after_days(self):
        cfg = self.base()
        del cfg["purge_after_days"]
        with self.assertRaises(ConfigError) as ctx:
            AppConfig.from_dict(cfg)
        self.assertIn("purge_after_days", str(ctx.exception))

    def test_negative_purge_after_days(self):
        with self.assertRaises(ConfigError):
            AppConfig.from_dict(self.base(purge_after_days=-1))

    def test_purge_after_days_upper_bound(self):
        self.assertEqual(
            AppConfig.from_dict(self.base(purge_after_days=MAX_PURGE_AFTER_DAYS)).purge_after_days,
            MAX_PURGE_AFTER_DAYS,
        )
        with self.assertRaises(ConfigError) as ctx:
            AppConfig.from_dict(self.base(purge_after_days=800000))
        self.assertIn("purge_after_days", str(ctx.exception))

    def test_smtp_flags_must_be_booleans(self):
        smtp = {"host": "h", "username": "u", "password": "p", "from": "a@b", "to": "c@d"}
        with self.assertRaises(ConfigError) as ctx:
            AppConfig.from_dict(self.base(smtp=dict(smtp, use_ssl="false")))
        self.assertIn("smtp.use_ssl", str(ctx.exception))
        with self.assertRaises(ConfigError):
            AppConfig.from_dict(self.base(smtp=dict(smtp, use_tls=1)))
        parsed = AppConfig.from_dict(self.base(smtp=dict(smtp, use_ssl=False, use_tls=True))).smtp
        self.assertFalse(parsed.use_ssl)
        self.assertTrue(parsed.use_tls)

    def test_boolean_is_not_a_number(self):
        with self.assertRaises(ConfigError):
            AppConfig.from_dict(self.base(purge_after_days=True))

    def test_malformed_filter_entry_is_named(self):
        with self.assertRaises(ConfigError) as ctx:
            AppConfig.from_dict(self.base(filters=[{"title": "ok", "value": "x"}, {"title": "bad"}]))
        self.assertIn("filters[1]", str(ctx.exception))

    def test_malformed_rss_source(self):
        with self.assertRaises(ConfigError) as ctx:
            AppConfig.from_dict(self.base(rss_sources=[{"name": "no-url"}]))
        self.assertIn("rss_sources[0]", str(ctx.exception))

    def test_incomplete_smtp_section(self):
        with self.assertRaises(ConfigError) as ctx:
            AppConfig.from_dict(self.base(smtp={"host": "h"}))
        self.assertIn("username", str(ctx.exception))

    def test_incomplete_telegram_section(self):
        with self.assertRaises(ConfigError):
            AppConfig.from_dict(self.base(telegram={"token": "t"}))


if __name__ == "__main__":
    unittest.main()
