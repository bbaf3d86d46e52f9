"""
Shakespeare Lexicon
===================
Word classes of the language. Each category maps to an ordered list of
surface words, loaded lazily from ``<category>.wordlist`` resources and
kept for the lifetime of the ``Lexicon``. Compiled patterns built from
those lists are cached per lexicon, keyed by pattern text and flags.
"""
import functools
import logging
import os
import re
from enum import Enum
from importlib import resources
from typing import Optional

from .errors import LexiconError

logger = logging.getLogger(__name__)


class WordCategory(Enum):
    """Word-class tags; the value is the word list's file stem."""
    ARTICLE                  = "article"
    BE                       = "be"
    CHARACTER                = "character"
    FIRST_PERSON             = "first_person"
    FIRST_PERSON_POSSESSIVE  = "first_person_possessive"
    FIRST_PERSON_REFLEXIVE   = "first_person_reflexive"
    NEGATIVE_ADJECTIVE       = "negative_adjective"
    NEGATIVE_COMPARATIVE     = "negative_comparative"
    NEGATIVE_NOUN            = "negative_noun"
    NEUTRAL_ADJECTIVE        = "neutral_adjective"
    NEUTRAL_NOUN             = "neutral_noun"
    NOTHING                  = "nothing"
    POSITIVE_ADJECTIVE       = "positive_adjective"
    POSITIVE_COMPARATIVE     = "positive_comparative"
    POSITIVE_NOUN            = "positive_noun"
    SECOND_PERSON            = "second_person"
    SECOND_PERSON_POSSESSIVE = "second_person_possessive"
    SECOND_PERSON_REFLEXIVE  = "second_person_reflexive"
    THIRD_PERSON_POSSESSIVE  = "third_person_possessive"


NOUNS = (
    WordCategory.POSITIVE_NOUN,
    WordCategory.NEUTRAL_NOUN,
    WordCategory.NEGATIVE_NOUN,
    WordCategory.NOTHING,
)

_PLACEHOLDER = re.compile(r"<(\w+)>")


class PatternCache:
    """Compiled regular expressions keyed by (pattern text, flags).

    Entries are written once and never replaced.
    """

    def __init__(self):
        self._patterns: dict[tuple[str, int], re.Pattern] = {}

    def compile(self, pattern: str, flags: int = 0) -> re.Pattern:
        key = (pattern, flags)
        compiled = self._patterns.get(key)
        if compiled is None:
            compiled = re.compile(pattern, flags)
            self._patterns[key] = compiled
        return compiled

    def __len__(self) -> int:
        return len(self._patterns)


class Lexicon:
    """
    Category → word list lookup with derived regex alternations.

    Usage:
        lexicon = Lexicon()
        lexicon.words_for(WordCategory.BE)          # ['am', 'are', ...]
        lexicon.matches(WordCategory.NEGATIVE_NOUN, "beggar")
        lexicon.compile(r"Open <second_person_possessive> heart", re.I)
    """

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory
        self.patterns = PatternCache()
        self._words: dict[WordCategory, list[str]] = {}
        self._folded: dict[WordCategory, frozenset[str]] = {}
        self._templates: dict[tuple[str, int], re.Pattern] = {}

    def words_for(self, category: WordCategory) -> list[str]:
        """Return the ordered surface words of a category."""
        words = self._words.get(category)
        if words is None:
            words = self._load(category)
            self._words[category] = words
            self._folded[category] = frozenset(w.lower() for w in words)
        return list(words)

    def matches(self, category: WordCategory, word: str) -> bool:
        """Case-insensitive membership test, tolerant of a trailing 's."""
        self.words_for(category)
        folded = self._folded[category]
        word = word.lower()
        if word in folded:
            return True
        for suffix in ("'s", "'"):
            if word.endswith(suffix) and word[: -len(suffix)] in folded:
                return True
        return False

    def category_of(self, word: str, categories=NOUNS) -> Optional[WordCategory]:
        """First category among ``categories`` that contains ``word``."""
        for category in categories:
            if self.matches(category, word):
                return category
        return None

    def pattern(self, category: WordCategory, boundaries: bool = True) -> str:
        """Regex alternation for a category, longest words first."""
        words = sorted(self.words_for(category), key=len, reverse=True)
        alternation = "|".join(re.escape(w).replace(r"\ ", r"\s+") for w in words)
        if boundaries:
            return rf"\b({alternation})\b"
        return f"({alternation})"

    def expand(self, template: str) -> str:
        """Replace ``<category>`` placeholders with the category pattern."""
        def _sub(match: re.Match) -> str:
            try:
                category = WordCategory(match.group(1))
            except ValueError:
                raise LexiconError(f"Unknown word category: {match.group(1)!r}")
            return self.pattern(category)
        return _PLACEHOLDER.sub(_sub, template)

    def compile(self, template: str, flags: int = 0) -> re.Pattern:
        """Expand a rule template and return its cached compiled pattern.

        Templates are expanded once per (template, flags); later calls are a
        dictionary lookup.
        """
        key = (template, flags)
        compiled = self._templates.get(key)
        if compiled is None:
            compiled = self.patterns.compile(self.expand(template), flags)
            self._templates[key] = compiled
        return compiled

    def _load(self, category: WordCategory) -> list[str]:
        filename = f"{category.value}.wordlist"
        try:
            if self.directory:
                with open(os.path.join(self.directory, filename), "r", encoding="utf-8") as f:
                    content = f.read()
            else:
                content = resources.files(__package__).joinpath("wordlists").joinpath(filename).read_text(
                    encoding="utf-8"
                )
        except OSError as e:
            raise LexiconError(f"Cannot load word list '{filename}': {e}")
        words = [line.strip() for line in content.splitlines() if line.strip()]
        logger.debug("Loaded %d words for %s", len(words), category.value)
        return words


@functools.lru_cache(maxsize=None)
def default_lexicon(directory: Optional[str] = None) -> Lexicon:
    """The shared lexicon for a word-list directory (None = bundled lists)."""
    return Lexicon(directory)


def describe_all(lexicon: Optional[Lexicon] = None) -> str:
    """Return a formatted table of every category for CLI help."""
    lexicon = lexicon or default_lexicon()
    width = max(len(c.value) for c in WordCategory)
    lines = []
    for category in WordCategory:
        words = lexicon.words_for(category)
        preview = ", ".join(words[:6])
        if len(words) > 6:
            preview += f", … (+{len(words) - 6})"
        lines.append(f"  {category.value.ljust(width)}  {preview}")
    return "\n".join(lines)
