"""
Tests for text-anchored position recovery.
"""

import unittest

from reader.anchor import LAST_PAGE, locate_page, locate_paragraph, matches, reposition_page, target_from_quote
from reader.layout.paginator import Page, PageFragment
from tests.helpers import make_chapters


def page(*texts):
    return Page(paragraphs=tuple(PageFragment(t, t) for t in texts))


PAGES = [page("甲段落", "乙段落"), page("丙段落"), page("丁段落", "戊段落")]


class TestMatches(unittest.TestCase):

    def test_bidirectional_containment(self):
        self.assertTrue(matches("床前明月光，疑是地上霜", "明月光"))
        self.assertTrue(matches("明月光", "床前明月光，疑是地上霜"))
        self.assertFalse(matches("床前明月光", "举头望明月"))

    def test_empty_never_matches(self):
        self.assertFalse(matches("", "x"))
        self.assertFalse(matches("x", ""))


class TestLocate(unittest.TestCase):

    def test_locate_page(self):
        self.assertEqual(locate_page(PAGES, "丙段"), 1)
        self.assertEqual(locate_page(PAGES, "戊段落\n其他"), 2)
        self.assertEqual(locate_page(PAGES, "不存在"), 0)

    def test_locate_paragraph(self):
        chapters = make_chapters(3)
        self.assertEqual(locate_paragraph(chapters, "段落0201"), (2, 1))
        self.assertIsNone(locate_paragraph(chapters, "不存在"))

    def test_target_from_quote_uses_first_line(self):
        self.assertEqual(target_from_quote("第一段\n第二段"), "第一段")
        self.assertEqual(target_from_quote("单段"), "单段")


class TestRepositionPage(unittest.TestCase):

    def test_last_page_marker(self):
        self.assertEqual(reposition_page(PAGES, LAST_PAGE, None), 2)

    def test_follows_first_paragraph(self):
        self.assertEqual(reposition_page(PAGES, 0, "丁段落"), 2)

    def test_clamps_previous_index(self):
        self.assertEqual(reposition_page(PAGES, 9, None), 2)
        self.assertEqual(reposition_page(PAGES, 1, "不存在"), 1)

    def test_empty_pages(self):
        self.assertEqual(reposition_page([], 3, "甲段落"), 0)


if __name__ == "__main__":
    unittest.main()
