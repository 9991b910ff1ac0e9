"""
Tests for package, table-of-contents and spine parsing.
"""

import tempfile
import unittest
from pathlib import Path

from reader.epub.archive import ZipArchive
from reader.epub.parser import build_toc_map, parse, read_package
from reader.errors import MalformedArchive
from tests.helpers import (
    NCX_MEDIA,
    XHTML_MEDIA,
    nav,
    ncx,
    opf,
    simple_book,
    write_epub,
    xhtml,
)


class ParserTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()


class TestParse(ParserTestCase):

    def test_three_chapters_with_ncx_titles(self):
        path = simple_book(self.tmp / "book.epub")
        book = parse(path)

        self.assertEqual(book.title, "测试之书")
        self.assertEqual([c.title for c in book.chapters], ["第一章", "第二章", "第三章"])
        self.assertEqual(book.chapters[0].paragraphs, ("春眠不觉晓", "处处闻啼鸟"))
        self.assertEqual(book.chapters[0].word_count, 10)

    def test_three_chapters_with_nav_titles(self):
        manifest = [("nav", "nav.xhtml", XHTML_MEDIA)]
        files = {"OEBPS/nav.xhtml": nav([("One", "ch1.xhtml"), ("Two", "ch2.xhtml#top"), ("Three", "ch3.xhtml")])}
        for n in (1, 2, 3):
            manifest.append((f"c{n}", f"ch{n}.xhtml", XHTML_MEDIA))
            files[f"OEBPS/ch{n}.xhtml"] = xhtml(f"<h1>Heading {n}</h1><p>text {n}</p>")
        files["OEBPS/content.opf"] = opf("Nav Book", manifest, ["c1", "c2", "c3"])

        book = parse(write_epub(self.tmp / "nav.epub", files))
        self.assertEqual([c.title for c in book.chapters], ["One", "Two", "Three"])
        self.assertEqual([c.paragraphs for c in book.chapters], [("text 1",), ("text 2",), ("text 3",)])

    def test_spine_order_not_manifest_order(self):
        files = {
            "OEBPS/content.opf": opf(
                "Order",
                [("b", "b.xhtml", XHTML_MEDIA), ("a", "a.xhtml", XHTML_MEDIA)],
                ["a", "b"],
            ),
            "OEBPS/a.xhtml": xhtml("<h1>A</h1><p>first</p>"),
            "OEBPS/b.xhtml": xhtml("<h1>B</h1><p>second</p>"),
        }
        book = parse(write_epub(self.tmp / "o.epub", files))
        self.assertEqual([c.title for c in book.chapters], ["A", "B"])

    def test_progress_events_cover_every_spine_item(self):
        events = []
        parse(simple_book(self.tmp / "book.epub"), events.append)
        self.assertEqual([e.spine_index for e in events], [0, 1, 2])
        self.assertTrue(all(e.status == "extracted" for e in events))
        self.assertTrue(all(e.spine_total == 3 for e in events))


class TestMalformed(ParserTestCase):

    def test_missing_container(self):
        path = write_epub(self.tmp / "x.epub", {"OEBPS/content.opf": opf("T", [], [])}, container=False)
        with self.assertRaises(MalformedArchive):
            parse(path)

    def test_container_without_rootfile(self):
        files = {"META-INF/container.xml": '<?xml version="1.0"?><container><rootfiles/></container>'}
        path = write_epub(self.tmp / "x.epub", files, container=False)
        with self.assertRaises(MalformedArchive):
            parse(path)

    def test_missing_opf(self):
        path = write_epub(self.tmp / "x.epub", {}, opf_path="OEBPS/missing.opf")
        with self.assertRaises(MalformedArchive):
            parse(path)

    def test_unparsable_opf(self):
        path = write_epub(self.tmp / "x.epub", {"OEBPS/content.opf": "<package><broken"})
        with self.assertRaises(MalformedArchive):
            parse(path)


class TestPackage(ParserTestCase):

    def test_title_defaults_to_unknown(self):
        files = {"OEBPS/content.opf": opf(None, [], [], with_dc_title=False)}
        with ZipArchive(write_epub(self.tmp / "x.epub", files)) as archive:
            package = read_package(archive)
        self.assertEqual(package.title, "Unknown")
        self.assertEqual(package.opf_path, "OEBPS/content.opf")

    def test_duplicate_manifest_id_last_wins(self):
        files = {
            "OEBPS/content.opf": opf(
                "T",
                [("c", "old.xhtml", XHTML_MEDIA), ("c", "new.xhtml", XHTML_MEDIA)],
                ["c"],
            ),
        }
        with ZipArchive(write_epub(self.tmp / "x.epub", files)) as archive:
            package = read_package(archive)
        self.assertEqual(package.manifest["c"].href, "new.xhtml")
        self.assertEqual(package.spine, ["c"])


class TestTocMap(ParserTestCase):

    def _toc(self, files, manifest):
        files = {**files, "OEBPS/content.opf": opf("T", manifest, [])}
        with ZipArchive(write_epub(self.tmp / "toc.epub", files)) as archive:
            return build_toc_map(archive, read_package(archive))

    def test_ncx_fragment_is_stripped(self):
        toc = self._toc(
            {"OEBPS/toc.ncx": ncx([("One", "ch1.xhtml#start"), ("Two", "ch2.xhtml")])},
            [("ncx", "toc.ncx", NCX_MEDIA)],
        )
        self.assertEqual(toc, {"ch1.xhtml": "One", "ch2.xhtml": "Two"})

    def test_duplicate_href_last_wins(self):
        toc = self._toc(
            {"OEBPS/toc.ncx": ncx([("Part", "ch1.xhtml"), ("Chapter 1", "ch1.xhtml#c1")])},
            [("ncx", "toc.ncx", NCX_MEDIA)],
        )
        self.assertEqual(toc["ch1.xhtml"], "Chapter 1")

    def test_nav_fallback_when_no_ncx(self):
        toc = self._toc(
            {"OEBPS/nav.xhtml": nav([("Nav One", "ch1.xhtml")], extra_links=[("Outside", "ch9.xhtml")])},
            [("nav", "nav.xhtml", XHTML_MEDIA)],
        )
        self.assertEqual(toc, {"ch1.xhtml": "Nav One"})

    def test_ncx_preferred_over_nav(self):
        toc = self._toc(
            {
                "OEBPS/toc.ncx": ncx([("From NCX", "ch1.xhtml")]),
                "OEBPS/nav.xhtml": nav([("From Nav", "ch1.xhtml")]),
            },
            [("ncx", "toc.ncx", NCX_MEDIA), ("nav", "nav.xhtml", XHTML_MEDIA)],
        )
        self.assertEqual(toc, {"ch1.xhtml": "From NCX"})

    def test_empty_ncx_falls_back_to_nav(self):
        toc = self._toc(
            {
                "OEBPS/toc.ncx": ncx([]),
                "OEBPS/nav.xhtml": nav([("From Nav", "ch1.xhtml")]),
            },
            [("ncx", "toc.ncx", NCX_MEDIA), ("nav", "nav.xhtml", XHTML_MEDIA)],
        )
        self.assertEqual(toc, {"ch1.xhtml": "From Nav"})

    def test_no_toc_at_all(self):
        self.assertEqual(self._toc({}, []), {})


if __name__ == "__main__":
    unittest.main()
