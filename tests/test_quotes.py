"""
Tests for quote numbering, construction and text helpers.
"""

import unittest

from reader.models import BookMeta, Quote
from reader.quotes import (
    build_quote,
    chapters_with_quotes,
    export_quotes,
    filter_quotes,
    find_quote,
    format_copy,
    format_id,
    merge_selected,
    next_id,
    remove_quote,
    update_quote,
)


def quote(qid, text="t", chapter_index=0):
    return Quote(id=qid, text=text, author=None, source=None, tags=None, chapter_index=chapter_index, chapter_title="")


class TestIds(unittest.TestCase):

    def test_format_id_pads_to_three(self):
        self.assertEqual(format_id(7), "007")
        self.assertEqual(format_id(42), "042")
        self.assertEqual(format_id(1234), "1234")

    def test_next_id_after_existing_max(self):
        self.assertEqual(next_id([quote("005"), quote("003")], starting_id=1), "006")

    def test_next_id_respects_starting_id(self):
        self.assertEqual(next_id([], starting_id=7), "007")
        self.assertEqual(next_id([quote("002")], starting_id=50), "050")

    def test_next_id_ignores_non_numeric_ids(self):
        self.assertEqual(next_id([quote("abc"), quote("004")], starting_id=1), "005")
        self.assertEqual(next_id([quote("abc")], starting_id=1), "001")


class TestQuoteBuilding(unittest.TestCase):

    def setUp(self):
        self.book = BookMeta(title="静夜思", tags=["唐诗", "李白"])

    def test_build_quote(self):
        q = build_quote([quote("001")], 1, self.book, "床前明月光", 2, "第三章")
        self.assertEqual(q.id, "002")
        self.assertEqual(q.source, "《静夜思》第三章")
        self.assertEqual(q.tags, ["唐诗", "李白"])
        self.assertEqual(q.chapter_index, 2)
        self.assertIsNone(q.author)

    def test_tags_are_copied(self):
        q = build_quote([], 1, self.book, "x", 0, "c")
        q.tags.append("new")
        self.assertEqual(self.book.tags, ["唐诗", "李白"])

    def test_merge_selected_keeps_chapter_order(self):
        paragraphs = ["一", "二", "三", "四"]
        self.assertEqual(merge_selected(paragraphs, {"四", "二"}), "二\n四")

    def test_format_copy(self):
        self.assertEqual(format_copy("床前明月光", "静夜思", "第一章"), "床前明月光\n\n——《静夜思》第一章")


class TestQuoteEditing(unittest.TestCase):

    def setUp(self):
        self.quotes = [quote("001", "甲"), quote("002", "乙")]

    def test_find_by_text(self):
        self.assertEqual(find_quote(self.quotes, "乙").id, "002")
        self.assertIsNone(find_quote(self.quotes, "丙"))

    def test_remove(self):
        self.assertEqual([q.id for q in remove_quote(self.quotes, "001")], ["002"])
        self.assertEqual(len(remove_quote(self.quotes, "999")), 2)

    def test_update(self):
        updated = update_quote(self.quotes, "002", author="佚名", chapter_title="新章")
        self.assertEqual(updated[1].author, "佚名")
        self.assertEqual(updated[1].chapter_title, "新章")
        self.assertEqual(updated[0], self.quotes[0])

    def test_export_drops_chapter_fields(self):
        exported = export_quotes(self.quotes)
        self.assertEqual(set(exported[0]), {"id", "text", "author", "source", "tags"})


class TestQuoteFiltering(unittest.TestCase):

    def setUp(self):
        self.quotes = [
            quote("010", "甲", chapter_index=2),
            quote("002", "乙", chapter_index=0),
            quote("abc", "丙", chapter_index=2),
            quote("100", "丁", chapter_index=1),
            quote("009", "戊", chapter_index=2),
        ]

    def test_sorted_by_numeric_id(self):
        self.assertEqual([q.id for q in filter_quotes(self.quotes)], ["002", "009", "010", "100", "abc"])

    def test_filter_by_chapter(self):
        self.assertEqual([q.id for q in filter_quotes(self.quotes, chapter_index=2)], ["009", "010", "abc"])
        self.assertEqual(filter_quotes(self.quotes, chapter_index=5), [])

    def test_search_by_id_substring(self):
        self.assertEqual([q.id for q in filter_quotes(self.quotes, id_query=" 10 ")], ["010", "100"])
        self.assertEqual([q.id for q in filter_quotes(self.quotes, chapter_index=2, id_query="0")], ["009", "010"])

    def test_chapters_with_quotes(self):
        self.assertEqual(chapters_with_quotes(self.quotes), [0, 1, 2])
        self.assertEqual(chapters_with_quotes([]), [])


if __name__ == "__main__":
    unittest.main()
