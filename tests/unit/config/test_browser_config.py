"""Tests for config persistence and settings resolution.

Validates that persisted options and CLI overrides layer correctly and that
malformed config data is ignored rather than fatal.
"""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from lazyls import config


class ConfigPersistenceTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.config_path = Path(tmp.name) / "nested" / "config.json"
        patcher = mock.patch("lazyls.config.CONFIG_PATH", self.config_path)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_missing_or_malformed_file_loads_empty(self) -> None:
        self.assertEqual(config.load_config(), {})
        self.config_path.parent.mkdir(parents=True)
        self.config_path.write_text("{not json", encoding="utf-8")
        self.assertEqual(config.load_config(), {})
        self.config_path.write_text("[1, 2]", encoding="utf-8")
        self.assertEqual(config.load_config(), {})

    def test_toggles_round_trip_and_keep_other_keys(self) -> None:
        config.save_config({"style": "native"})
        config.save_show_hidden(True)
        config.save_sort_by("size-desc")
        config.save_sort_by("bogus")

        saved = json.loads(self.config_path.read_text(encoding="utf-8"))
        self.assertEqual(saved, {"style": "native", "show_hidden": True, "sort_by": "size-desc"})

        settings = config.load_settings()
        self.assertTrue(settings.show_hidden)
        self.assertEqual(settings.sort_by, "size-desc")
        self.assertEqual(settings.style, "native")

    def test_overrides_win_over_persisted_values(self) -> None:
        config.save_config({"worker_pool_size": 3, "log_level": "debug"})

        settings = config.load_settings({"worker_pool_size": 8})

        self.assertEqual(settings.worker_pool_size, 8)
        self.assertEqual(settings.log_level, "DEBUG")

    def test_unwritable_location_is_not_fatal(self) -> None:
        blocker = self.config_path.parent
        blocker.parent.mkdir(parents=True, exist_ok=True)
        blocker.write_text("a file, not a directory", encoding="utf-8")

        config.save_show_hidden(True)

        self.assertEqual(config.load_config(), {})


class SettingsFromMappingTests(unittest.TestCase):
    def test_invalid_values_are_ignored(self) -> None:
        base = config.BrowserSettings(worker_pool_size=4)
        settings = config.settings_from_mapping(
            {
                "worker_pool_size": 0,
                "watch_coalesce_interval": -1,
                "preview_max_bytes": True,
                "show_hidden": "yes",
                "sort_by": "sideways",
                "log_level": "LOUD",
                "unknown_key": 1,
            },
            base,
        )
        self.assertEqual(settings, base)

    def test_valid_values_are_applied(self) -> None:
        settings = config.settings_from_mapping(
            {
                "worker_pool_size": 2,
                "watch_coalesce_interval": 0,
                "poll_interval": 0.5,
                "auto_size_directories": False,
                "style": "  native  ",
                "log_file": "/tmp/lazyls.log",
            }
        )
        self.assertEqual(settings.worker_pool_size, 2)
        self.assertEqual(settings.watch_coalesce_interval, 0.0)
        self.assertEqual(settings.poll_interval, 0.5)
        self.assertFalse(settings.auto_size_directories)
        self.assertEqual(settings.style, "native")
        self.assertEqual(settings.log_file, "/tmp/lazyls.log")


if __name__ == "__main__":
    unittest.main()
