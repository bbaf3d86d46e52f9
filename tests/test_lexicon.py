"""
Lexicon Test Suite
==================
Tests for word-list loading, membership lookup and pattern derivation.

Usage:
    python -m pytest tests/test_lexicon.py -v
"""
import os
import re
import sys
import tempfile
import unittest
from unittest import mock

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shakespeare.errors import LexiconError
from shakespeare.lexer import RULES, Lexer
from shakespeare.lexicon import NOUNS, Lexicon, WordCategory, default_lexicon, describe_all


class TestWordLists(unittest.TestCase):

    def setUp(self):
        self.lexicon = Lexicon()

    def test_every_category_has_words(self):
        for category in WordCategory:
            with self.subTest(category=category):
                self.assertTrue(self.lexicon.words_for(category))

    def test_be_words(self):
        self.assertEqual(
            sorted(self.lexicon.words_for(WordCategory.BE)),
            ["am", "are", "art", "be", "is"],
        )

    def test_words_for_returns_a_copy(self):
        words = self.lexicon.words_for(WordCategory.ARTICLE)
        words.append("zzz")
        self.assertNotIn("zzz", self.lexicon.words_for(WordCategory.ARTICLE))

    def test_multi_word_characters(self):
        self.assertIn("Lady Macbeth", self.lexicon.words_for(WordCategory.CHARACTER))


class TestMatching(unittest.TestCase):

    def setUp(self):
        self.lexicon = Lexicon()

    def test_case_insensitive(self):
        self.assertTrue(self.lexicon.matches(WordCategory.POSITIVE_NOUN, "kInG"))

    def test_possessive_suffix_tolerated(self):
        self.assertTrue(self.lexicon.matches(WordCategory.NEUTRAL_NOUN, "cat's"))
        self.assertTrue(self.lexicon.matches(WordCategory.NEGATIVE_NOUN, "devil'"))

    def test_non_member(self):
        self.assertFalse(self.lexicon.matches(WordCategory.POSITIVE_NOUN, "pig"))

    def test_category_of_nouns(self):
        self.assertEqual(self.lexicon.category_of("rose"), WordCategory.POSITIVE_NOUN)
        self.assertEqual(self.lexicon.category_of("pig"), WordCategory.NEUTRAL_NOUN)
        self.assertEqual(self.lexicon.category_of("beggar"), WordCategory.NEGATIVE_NOUN)
        self.assertEqual(self.lexicon.category_of("nothing"), WordCategory.NOTHING)
        self.assertIsNone(self.lexicon.category_of("lovely"))

    def test_two_word_nouns(self):
        self.assertEqual(self.lexicon.category_of("summer's day", NOUNS), WordCategory.POSITIVE_NOUN)
        self.assertEqual(self.lexicon.category_of("stone wall", NOUNS), WordCategory.NEUTRAL_NOUN)


class TestPatterns(unittest.TestCase):

    def setUp(self):
        self.lexicon = Lexicon()

    def test_longest_alternative_first(self):
        pattern = re.compile(self.lexicon.pattern(WordCategory.CHARACTER))
        self.assertEqual(pattern.match("Lady Macbeth speaks").group(0), "Lady Macbeth")

    def test_boundaries(self):
        pattern = re.compile(self.lexicon.pattern(WordCategory.SECOND_PERSON))
        self.assertIsNone(pattern.match("your"))
        self.assertIsNotNone(pattern.match("you"))

    def test_expand_placeholder(self):
        expanded = self.lexicon.expand(r"Open\s+<second_person_possessive>\s+heart")
        self.assertNotIn("<", expanded)
        self.assertIsNotNone(re.match(expanded, "Open thy heart"))

    def test_unknown_placeholder(self):
        with self.assertRaises(LexiconError):
            self.lexicon.expand("<no_such_category>")

    def test_compiled_patterns_are_cached(self):
        first = self.lexicon.compile("<be>", re.I)
        second = self.lexicon.compile("<be>", re.I)
        self.assertIs(first, second)
        self.assertEqual(len(self.lexicon.patterns), 1)
        self.lexicon.compile("<be>")
        self.assertEqual(len(self.lexicon.patterns), 2)

    def test_templates_expand_once_per_rule(self):
        source = "Romeo:\n You are as good as the sum of a cat and a big pig!\n" * 20
        with mock.patch.object(self.lexicon, "expand", wraps=self.lexicon.expand) as expand:
            Lexer(source, self.lexicon).tokenize()
            Lexer(source, self.lexicon).tokenize()
        self.assertLessEqual(expand.call_count, len(RULES))


class TestCustomDirectory(unittest.TestCase):

    def test_missing_word_list(self):
        with tempfile.TemporaryDirectory() as tmp:
            lexicon = Lexicon(tmp)
            with self.assertRaises(LexiconError):
                lexicon.words_for(WordCategory.BE)

    def test_directory_overrides_bundled_lists(self):
        with tempfile.TemporaryDirectory() as tmp:
            with open(os.path.join(tmp, "nothing.wordlist"), "w", encoding="utf-8") as f:
                f.write("naught\n\nzilch\n")
            lexicon = Lexicon(tmp)
            self.assertEqual(lexicon.words_for(WordCategory.NOTHING), ["naught", "zilch"])

    def test_default_lexicon_is_shared(self):
        self.assertIs(default_lexicon(), default_lexicon())

    def test_describe_all_lists_every_category(self):
        table = describe_all(Lexicon())
        for category in WordCategory:
            self.assertIn(category.value, table)


if __name__ == "__main__":
    unittest.main(verbosity=2)
