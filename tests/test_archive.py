"""
Tests for archive access and in-package path resolution.
"""

import tempfile
import unittest
from pathlib import Path

from reader.epub.archive import ZipArchive, resolve_path, strip_fragment
from reader.errors import MalformedArchive
from tests.helpers import write_epub


class TestResolvePath(unittest.TestCase):

    def test_relative_to_opf_directory(self):
        self.assertEqual(resolve_path("OEBPS/content.opf", "Text/ch1.xhtml"), "OEBPS/Text/ch1.xhtml")

    def test_parent_segment(self):
        self.assertEqual(resolve_path("OEBPS/content.opf", "../images/x.png"), "images/x.png")

    def test_current_segment_dropped(self):
        self.assertEqual(resolve_path("OEBPS/content.opf", "./ch1.xhtml"), "OEBPS/ch1.xhtml")

    def test_root_level_opf(self):
        self.assertEqual(resolve_path("content.opf", "ch1.xhtml"), "ch1.xhtml")

    def test_leading_slash_is_taken_verbatim(self):
        self.assertEqual(resolve_path("OEBPS/content.opf", "/Other/ch%201.xhtml"), "Other/ch%201.xhtml")

    def test_percent_decoding(self):
        self.assertEqual(resolve_path("OEBPS/content.opf", "ch%201.xhtml"), "OEBPS/ch 1.xhtml")

    def test_parent_past_root_is_clamped(self):
        """Extra '..' segments are ignored instead of raising."""
        self.assertEqual(resolve_path("content.opf", "../../x.xhtml"), "x.xhtml")
        self.assertEqual(resolve_path("a/content.opf", "../../../b/x.xhtml"), "b/x.xhtml")

    def test_strip_fragment(self):
        self.assertEqual(strip_fragment("ch1.xhtml#sec2"), "ch1.xhtml")
        self.assertEqual(strip_fragment("ch1.xhtml"), "ch1.xhtml")


class TestZipArchive(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_entry_returns_none(self):
        path = write_epub(self.tmp / "a.epub", {"OEBPS/a.xhtml": "hello"})
        with ZipArchive(path) as archive:
            self.assertIn("OEBPS/a.xhtml", archive)
            self.assertEqual(archive.read_text("OEBPS/a.xhtml"), "hello")
            self.assertIsNone(archive.read("OEBPS/missing.xhtml"))
            self.assertIsNone(archive.read_text("OEBPS/missing.xhtml"))

    def test_not_a_zip(self):
        path = self.tmp / "broken.epub"
        path.write_text("not a zip file")
        with self.assertRaises(MalformedArchive):
            ZipArchive(path)

    def test_missing_file(self):
        with self.assertRaises(MalformedArchive):
            ZipArchive(self.tmp / "nope.epub")


if __name__ == "__main__":
    unittest.main()
