"""Tests for non-recursive listing and stat helpers."""

from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

from lazyls.listing import (
    SIZE_UNKNOWN,
    SizeKnown,
    child_stat_signatures,
    format_bytes,
    list_entries,
    stat_entry,
)


class ListEntriesTests(unittest.TestCase):
    def test_files_get_known_size_and_directories_stay_unknown(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "x").write_bytes(b"a" * 10)
            (root / "y").write_bytes(b"b" * 20)
            (root / "b").mkdir()
            (root / "b" / "nested").write_bytes(b"c" * 5)

            entries = {entry.name: entry for entry in list_entries(root, show_hidden=False)}

            self.assertEqual(set(entries), {"x", "y", "b"})
            self.assertEqual(entries["x"].size, SizeKnown(10))
            self.assertEqual(entries["y"].size, SizeKnown(20))
            self.assertEqual(entries["b"].size, SIZE_UNKNOWN)
            self.assertEqual(entries["b"].kind, "dir")
            self.assertIsNotNone(entries["x"].mtime_ns)

    def test_hidden_entries_are_filtered_unless_requested(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / ".secret").write_text("x", encoding="utf-8")
            (root / "plain").write_text("x", encoding="utf-8")

            hidden_off = {entry.name for entry in list_entries(root, show_hidden=False)}
            hidden_on = {entry.name for entry in list_entries(root, show_hidden=True)}

            self.assertEqual(hidden_off, {"plain"})
            self.assertEqual(hidden_on, {"plain", ".secret"})

    def test_symlinks_are_listed_without_following(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "target").mkdir()
            os.symlink(root / "target", root / "link")

            entries = {entry.name: entry for entry in list_entries(root, show_hidden=False)}

            self.assertEqual(entries["link"].kind, "symlink")
            self.assertIsInstance(entries["link"].size, SizeKnown)

    def test_missing_directory_raises_os_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(OSError):
                list_entries(Path(tmp) / "missing", show_hidden=False)


class StatEntryTests(unittest.TestCase):
    def test_stat_entry_raises_for_vanished_path(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(FileNotFoundError):
                stat_entry(Path(tmp) / "gone")

    def test_stat_entry_reports_fresh_file_size(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "grow.txt"
            target.write_bytes(b"1234")
            self.assertEqual(stat_entry(target).size, SizeKnown(4))
            target.write_bytes(b"123456789")
            self.assertEqual(stat_entry(target).size, SizeKnown(9))


class SignatureTests(unittest.TestCase):
    def test_signatures_change_when_file_is_rewritten(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            target = root / "demo.txt"
            target.write_text("a\n", encoding="utf-8")
            before = child_stat_signatures(root, show_hidden=True)
            target.write_text("bbbb\n", encoding="utf-8")
            after = child_stat_signatures(root, show_hidden=True)

            self.assertEqual(set(before), {"demo.txt"})
            self.assertNotEqual(before["demo.txt"], after["demo.txt"])


class FormatBytesTests(unittest.TestCase):
    def test_decimal_units(self) -> None:
        self.assertEqual(format_bytes(0), "0 B")
        self.assertEqual(format_bytes(999), "999 B")
        self.assertEqual(format_bytes(1230), "1.23 KB")
        self.assertEqual(format_bytes(45_100_000), "45.10 MB")
        self.assertEqual(format_bytes(2_000_000_000), "2.00 GB")


if __name__ == "__main__":
    unittest.main()
