"""
Shakespeare Lexer
=================
Tokenizes Shakespeare source into an eager list of typed tokens.

At every cursor position the ordered rule table is tried against the text
*starting at the cursor*; the first rule that matches wins (first
applicable, not longest). Structural markers come before statement
keywords, which come before comparison and operator phrases, which come
before word classes, the catch-all word and punctuation. When nothing
matches, one character is emitted as a raw OTHER token, so tokenizing
always terminates.
"""
import logging
import re
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Iterator, Optional

from .lexicon import Lexicon, default_lexicon

logger = logging.getLogger(__name__)


class TokenType(Enum):
    """Top-level token kinds."""
    # Structure
    ACT              = auto()   # Act I: description
    SCENE            = auto()   # Scene II: description
    ENTER            = auto()   # [Enter Romeo and Juliet]
    EXIT             = auto()   # [Exit Romeo] / [Exeunt ...]
    SPEAKING         = auto()   # Romeo:

    # Statements
    PRINT_NUMBER     = auto()   # Open your heart.
    PRINT_CHARACTER  = auto()   # Speak your mind.
    SCAN_NUMBER      = auto()   # Listen to your heart.
    SCAN_CHARACTER   = auto()   # Open your mind.
    JUMP             = auto()   # Let us return to scene II.
    CONDITIONAL_JUMP = auto()   # If so, let us proceed to scene III.
    PUSH_STACK       = auto()   # Remember ...
    POP_STACK        = auto()   # Recall ...

    # Word grammar (see LexemeType)
    LEXEME           = auto()

    # Unrecognised single character
    OTHER            = auto()


class LexemeType(Enum):
    """Word-grammar categories carried by LEXEME tokens."""
    COMPARE                  = auto()
    BE                       = auto()
    FIRST_PERSON             = auto()
    FIRST_PERSON_POSSESSIVE  = auto()
    FIRST_PERSON_REFLEXIVE   = auto()
    SECOND_PERSON            = auto()
    SECOND_PERSON_POSSESSIVE = auto()
    SECOND_PERSON_REFLEXIVE  = auto()
    THIRD_PERSON_POSSESSIVE  = auto()
    CHARACTER                = auto()
    CONJUNCTION              = auto()
    PUNCTUATION              = auto()
    BINARY_OPERATION         = auto()
    UNARY_OPERATION          = auto()
    OTHER                    = auto()


class Comparison(Enum):
    LESS_THAN    = "<"
    EQUALS       = "="
    GREATER_THAN = ">"


class BinaryOperation(Enum):
    ADD      = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE   = "/"
    MODULO   = "%"


class UnaryOperation(Enum):
    TWICE       = "2x"
    SQUARE      = "^2"
    CUBE        = "^3"
    SQUARE_ROOT = "sqrt"


POSSESSIVES = frozenset({
    LexemeType.FIRST_PERSON_POSSESSIVE,
    LexemeType.SECOND_PERSON_POSSESSIVE,
    LexemeType.THIRD_PERSON_POSSESSIVE,
})


@dataclass(frozen=True)
class Token:
    """A single token.

    ``value`` holds the variant payload: act/scene identifier, frozenset of
    names, speaker, jump scene, comparison/operation enum or raw word.
    ``text`` holds the act/scene description, or the polarity ("so"/"not")
    of a conditional jump.
    """
    type: TokenType
    value: Any = None
    text: str = ""
    lexeme: Optional[LexemeType] = None
    line: int = field(default=0, compare=False)

    @property
    def positive(self) -> bool:
        """Polarity of a conditional jump."""
        return self.text != "not"

    def is_lexeme(self, *kinds: LexemeType) -> bool:
        if self.type != TokenType.LEXEME:
            return False
        return not kinds or self.lexeme in kinds

    def __str__(self) -> str:
        if self.type == TokenType.LEXEME:
            name = self.lexeme.name
            if isinstance(self.value, Enum):
                return f"Lexeme({name}, {self.value.value})"
            if self.value is not None:
                return f"Lexeme({name}, {self.value})"
            return f"Lexeme({name})"
        if self.type in (TokenType.ACT, TokenType.SCENE):
            return f"{self.type.name}({self.value}, {self.text})"
        if self.type in (TokenType.ENTER, TokenType.EXIT):
            return f"{self.type.name}({', '.join(sorted(self.value))})"
        if self.type == TokenType.CONDITIONAL_JUMP:
            return f"{self.type.name}({self.text}, {self.value})"
        if self.value is not None:
            return f"{self.type.name}({self.value})"
        return self.type.name

    def __repr__(self) -> str:
        return f"Token({self}, L{self.line})"


# ─────────────────────────────────────────────────────────────
#  Rule Table
# ─────────────────────────────────────────────────────────────

ROMAN = r"(?=[MDCLXVI])M{0,4}(?:CM|CD|D?C{0,3})(?:XC|XL|L?X{0,3})(?:IX|IV|V?I{0,3})"
WORD = r"[\w'/-]+"
NAME = r"[A-Za-z][A-Za-z \t]*?"
JUMP_PHRASE = rf"(?:let\s+us|we\s+must|we\s+shall)\s+(?:proceed|return)\s+to\s+scene\s+({ROMAN})\s*[.!?]"

TokenBuilder = Callable[[re.Match, int], Optional[Token]]


@dataclass(frozen=True)
class Rule:
    """One tokenizer rule. ``pattern`` may hold ``<category>`` placeholders."""
    pattern: str
    flags: int
    build: TokenBuilder


def normalize_name(raw: str) -> str:
    """'lady   macbeth' → 'Lady Macbeth'."""
    return " ".join(raw.split()).title()


def _skip(match: re.Match, line: int) -> None:
    return None


def _token(token_type: TokenType) -> TokenBuilder:
    return lambda match, line: Token(token_type, line=line)


def _lexeme(lexeme: LexemeType, value: Any = None) -> TokenBuilder:
    return lambda match, line: Token(TokenType.LEXEME, value, lexeme=lexeme, line=line)


def _names(token_type: TokenType) -> TokenBuilder:
    def build(match: re.Match, line: int) -> Token:
        names = frozenset(normalize_name(g) for g in match.groups() if g)
        return Token(token_type, names, line=line)
    return build


def _binary_operation(match: re.Match, line: int) -> Token:
    phrase = match.group(0).lower()
    if "product" in phrase:
        operation = BinaryOperation.MULTIPLY
    elif "sum" in phrase:
        operation = BinaryOperation.ADD
    elif "difference" in phrase:
        operation = BinaryOperation.SUBTRACT
    elif "remainder" in phrase:
        operation = BinaryOperation.MODULO
    else:
        operation = BinaryOperation.DIVIDE
    return Token(TokenType.LEXEME, operation, lexeme=LexemeType.BINARY_OPERATION, line=line)


def _unary_operation(match: re.Match, line: int) -> Token:
    phrase = match.group(0).lower()
    if "root" in phrase:
        operation = UnaryOperation.SQUARE_ROOT
    elif "twice" in phrase:
        operation = UnaryOperation.TWICE
    elif "cube" in phrase:
        operation = UnaryOperation.CUBE
    else:
        operation = UnaryOperation.SQUARE
    return Token(TokenType.LEXEME, operation, lexeme=LexemeType.UNARY_OPERATION, line=line)


RULES: tuple[Rule, ...] = (
    Rule(r"\s+", 0, _skip),

    # Structure
    Rule(rf"Act ({ROMAN}): (.*)", 0,
         lambda m, line: Token(TokenType.ACT, m.group(1), m.group(2).strip(), line=line)),
    Rule(rf"Scene ({ROMAN}): (.*)", 0,
         lambda m, line: Token(TokenType.SCENE, m.group(1), m.group(2).strip(), line=line)),
    Rule(r"\[\s*Enter\s+([A-Za-z\s]+?)\s+and\s+([A-Za-z\s]+?)\s*\]", 0, _names(TokenType.ENTER)),
    Rule(r"\[\s*Enter\s+([A-Za-z\s]+?)\s*\]", 0, _names(TokenType.ENTER)),
    Rule(r"\[\s*Exeunt\s+([A-Za-z\s]+?)\s+and\s+([A-Za-z\s]+?)\s*\]", 0, _names(TokenType.EXIT)),
    Rule(r"\[\s*(?:Exit|Exeunt)\s+([A-Za-z\s]+?)\s*\]", 0, _names(TokenType.EXIT)),
    Rule(r"\[\s*Exeunt\s*\]", 0, _names(TokenType.EXIT)),
    Rule(rf"({NAME})\s*:", 0,
         lambda m, line: Token(TokenType.SPEAKING, normalize_name(m.group(1)), line=line)),

    # Statement keywords
    Rule(r"Listen\s+to\s+<second_person_possessive>\s+heart\s*[.!?]", re.I, _token(TokenType.SCAN_NUMBER)),
    Rule(r"Open\s+<second_person_possessive>\s+mind\s*[.!?]", re.I, _token(TokenType.SCAN_CHARACTER)),
    Rule(r"Speak\s+<second_person_possessive>\s+mind\s*[.!?]", re.I, _token(TokenType.PRINT_CHARACTER)),
    Rule(r"Open\s+<second_person_possessive>\s+heart\s*[.!?]", re.I, _token(TokenType.PRINT_NUMBER)),

    # Operators
    Rule(r"the\s+product\s+of|the\s+sum\s+of|the\s+remainder\s+of\s+the\s+quotient\s+between"
         r"|the\s+quotient\s+between|the\s+difference\s+between", re.I, _binary_operation),
    Rule(r"the\s+square\s+of|the\s+cube\s+of|twice\b|the\s+square\s+root\s+of", re.I, _unary_operation),

    # Jumps
    Rule(rf"If\s+so,\s*{JUMP_PHRASE}", re.I,
         lambda m, line: Token(TokenType.CONDITIONAL_JUMP, m.group(1), "so", line=line)),
    Rule(rf"If\s+not,\s*{JUMP_PHRASE}", re.I,
         lambda m, line: Token(TokenType.CONDITIONAL_JUMP, m.group(1), "not", line=line)),
    Rule(r"and\b", 0, _lexeme(LexemeType.CONJUNCTION)),
    Rule(JUMP_PHRASE, re.I, lambda m, line: Token(TokenType.JUMP, m.group(1), line=line)),

    # Comparisons
    Rule(rf"as\s+{WORD}\s+as\b", re.I, _lexeme(LexemeType.COMPARE, Comparison.EQUALS)),
    Rule(r"<positive_comparative>\s+than\b", re.I, _lexeme(LexemeType.COMPARE, Comparison.GREATER_THAN)),
    Rule(rf"more\s+{WORD}\s+than\b", re.I, _lexeme(LexemeType.COMPARE, Comparison.GREATER_THAN)),
    Rule(r"<negative_comparative>\s+than\b", re.I, _lexeme(LexemeType.COMPARE, Comparison.LESS_THAN)),
    Rule(rf"less\s+{WORD}\s+than\b", re.I, _lexeme(LexemeType.COMPARE, Comparison.LESS_THAN)),

    # Stack
    Rule(r"Remember\b", re.I, _token(TokenType.PUSH_STACK)),
    Rule(r"Recall\b[^.!?]*[.!?]", re.I, _token(TokenType.POP_STACK)),

    # Word classes
    Rule(r"<character>", re.I,
         lambda m, line: Token(TokenType.LEXEME, normalize_name(m.group(0)),
                               lexeme=LexemeType.CHARACTER, line=line)),
    Rule(r"<second_person>", re.I, _lexeme(LexemeType.SECOND_PERSON)),
    Rule(r"<second_person_reflexive>", re.I, _lexeme(LexemeType.SECOND_PERSON_REFLEXIVE)),
    Rule(r"<first_person>", re.I, _lexeme(LexemeType.FIRST_PERSON)),
    Rule(r"<first_person_reflexive>", re.I, _lexeme(LexemeType.FIRST_PERSON_REFLEXIVE)),
    Rule(r"<second_person_possessive>", re.I, _lexeme(LexemeType.SECOND_PERSON_POSSESSIVE)),
    Rule(r"<first_person_possessive>", re.I, _lexeme(LexemeType.FIRST_PERSON_POSSESSIVE)),
    Rule(r"<third_person_possessive>", re.I, _lexeme(LexemeType.THIRD_PERSON_POSSESSIVE)),
    Rule(r"<be>", re.I, _lexeme(LexemeType.BE)),
    Rule(r"<article>", re.I, _skip),

    # Fallbacks
    Rule(WORD, 0, lambda m, line: Token(TokenType.LEXEME, m.group(0), lexeme=LexemeType.OTHER, line=line)),
    Rule(r"[.!?]", 0, _lexeme(LexemeType.PUNCTUATION)),
)


# ─────────────────────────────────────────────────────────────
#  Lexer
# ─────────────────────────────────────────────────────────────

class Lexer:
    """
    Tokenizes Shakespeare source.

    Usage:
        lexer = Lexer(source_code)
        tokens = lexer.tokenize()
    """

    def __init__(self, source: str, lexicon: Optional[Lexicon] = None, rules=RULES):
        self.source = source
        self.lexicon = lexicon or default_lexicon()
        self.rules = rules
        self.pos = 0
        self.line = 1

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source into a list of tokens."""
        tokens = list(self._iter_tokens())
        logger.debug("Tokenized %d characters into %d tokens", len(self.source), len(tokens))
        return tokens

    def _iter_tokens(self) -> Iterator[Token]:
        """Generate tokens one at a time."""
        while self.pos < len(self.source):
            for rule in self.rules:
                match = self.lexicon.compile(rule.pattern, rule.flags).match(self.source, self.pos)
                if match is None or match.end() == self.pos:
                    continue
                token = rule.build(match, self.line)
                self._advance_to(match.end())
                if token is not None:
                    yield token
                break
            else:
                # Unknown character: emit it raw and move on
                ch = self.source[self.pos]
                token = Token(TokenType.OTHER, ch, line=self.line)
                self._advance_to(self.pos + 1)
                yield token

    def _advance_to(self, end: int):
        self.line += self.source.count("\n", self.pos, end)
        self.pos = end


def tokenize(source: str, lexicon: Optional[Lexicon] = None) -> list[Token]:
    """Shorthand for ``Lexer(source, lexicon).tokenize()``."""
    return Lexer(source, lexicon).tokenize()
