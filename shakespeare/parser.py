"""
Shakespeare Parser
==================
Builds the node sequence of a play from the token stream produced by the
Lexer.

Two layers:
  - a structural state machine that enforces document shape (title,
    dramatis personae, acts, scenes, stage directions, dialogue)
  - a recursive-descent expression parser for the arithmetic noun
    phrases, including numeral reconstruction from adjectives and nouns

Parsing stops at the first error; no partial AST is returned.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional

from .errors import (
    AmbiguousTransition, ExpressionViolation, GrammarViolation, StructuralViolation,
)
from .lexer import (
    POSSESSIVES, BinaryOperation, Comparison, LexemeType, Lexer, Token, TokenType,
    UnaryOperation,
)
from .lexicon import NOUNS, Lexicon, WordCategory, default_lexicon

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
#  AST Node Types
# ─────────────────────────────────────────────────────────────

class Predicate(Enum):
    """Comparison applied by a conditional jump."""
    EQUALS        = "="
    LESS_THAN     = "<"
    GREATER_THAN  = ">"
    NOT_EQUAL     = "!="
    LESS_EQUAL    = "<="
    GREATER_EQUAL = ">="

    def negated(self) -> "Predicate":
        return _NEGATIONS[self]

    def test(self, lhs: int, rhs: int) -> bool:
        match self:
            case Predicate.EQUALS:
                return lhs == rhs
            case Predicate.LESS_THAN:
                return lhs < rhs
            case Predicate.GREATER_THAN:
                return lhs > rhs
            case Predicate.NOT_EQUAL:
                return lhs != rhs
            case Predicate.LESS_EQUAL:
                return lhs <= rhs
            case Predicate.GREATER_EQUAL:
                return lhs >= rhs


_NEGATIONS = {
    Predicate.EQUALS: Predicate.NOT_EQUAL,
    Predicate.NOT_EQUAL: Predicate.EQUALS,
    Predicate.LESS_THAN: Predicate.GREATER_EQUAL,
    Predicate.GREATER_EQUAL: Predicate.LESS_THAN,
    Predicate.GREATER_THAN: Predicate.LESS_EQUAL,
    Predicate.LESS_EQUAL: Predicate.GREATER_THAN,
}


@dataclass
class ASTNode:
    """Base class for all AST nodes."""
    node_type: str = field(default="", init=False, repr=False)
    line: int = field(default=0, compare=False, kw_only=True)


@dataclass
class ExpressionNode(ASTNode):
    """Anything that evaluates to an integer."""


@dataclass
class GotoTagNode(ASTNode):
    """Jump target emitted at every scene boundary."""
    tag: str

    def __post_init__(self):
        self.node_type = "GotoTag"

    def __str__(self) -> str:
        return f"Tag({self.tag})"


@dataclass
class CharacterDeclarationNode(ASTNode):
    name: str

    def __post_init__(self):
        self.node_type = "CharacterDeclaration"

    def __str__(self) -> str:
        return f"Character(name: {self.name})"


@dataclass
class ScanNumberNode(ASTNode):
    variable: str

    def __post_init__(self):
        self.node_type = "ScanNumber"

    def __str__(self) -> str:
        return f"ScanNumber({self.variable})"


@dataclass
class ScanCharacterNode(ASTNode):
    variable: str

    def __post_init__(self):
        self.node_type = "ScanCharacter"

    def __str__(self) -> str:
        return f"ScanCharacter({self.variable})"


@dataclass
class PrintCharacterNode(ASTNode):
    variable: str

    def __post_init__(self):
        self.node_type = "PrintCharacter"

    def __str__(self) -> str:
        return f"PrintCharacter({self.variable})"


@dataclass
class PrintNumberNode(ASTNode):
    variable: str

    def __post_init__(self):
        self.node_type = "PrintNumber"

    def __str__(self) -> str:
        return f"PrintNumber({self.variable})"


@dataclass
class PushStackNode(ASTNode):
    """Push the value of ``expression`` onto ``variable``'s stack."""
    variable: str
    expression: ExpressionNode

    def __post_init__(self):
        self.node_type = "PushStack"

    def __str__(self) -> str:
        return f"PushStack({self.variable}, expr: {self.expression})"


@dataclass
class PopStackNode(ASTNode):
    """Pop ``variable``'s stack into ``variable``."""
    variable: str

    def __post_init__(self):
        self.node_type = "PopStack"

    def __str__(self) -> str:
        return f"PopStack({self.variable})"


@dataclass
class VariableNode(ExpressionNode):
    name: str

    def __post_init__(self):
        self.node_type = "Variable"

    def __str__(self) -> str:
        return f"Variable(name: {self.name})"


@dataclass
class ValueNode(ExpressionNode):
    value: int

    def __post_init__(self):
        self.node_type = "Value"

    def __str__(self) -> str:
        return f"Value({self.value})"


@dataclass
class UnaryOperationNode(ExpressionNode):
    operation: UnaryOperation
    operand: ExpressionNode

    def __post_init__(self):
        self.node_type = "UnaryOperation"

    def __str__(self) -> str:
        return f"UnaryOperation({self.operation.value}, expr: {self.operand})"


@dataclass
class BinaryOperationNode(ExpressionNode):
    operation: BinaryOperation
    lhs: ExpressionNode
    rhs: ExpressionNode

    def __post_init__(self):
        self.node_type = "BinaryOperation"

    def __str__(self) -> str:
        return f"BinaryOperation({self.operation.value}, lhs: {self.lhs}, rhs: {self.rhs})"


@dataclass
class AssignmentNode(ASTNode):
    variable: VariableNode
    expression: ExpressionNode

    def __post_init__(self):
        self.node_type = "Assignment"

    def __str__(self) -> str:
        return f"Assign(variable: {self.variable}, expr: {self.expression})"


@dataclass
class CompareNode(ASTNode):
    """A boolean test; only ever found inside a ConditionalJumpNode."""
    lhs: ExpressionNode
    rhs: ExpressionNode
    predicate: Predicate

    def __post_init__(self):
        self.node_type = "Compare"

    def negated(self) -> "CompareNode":
        return CompareNode(self.lhs, self.rhs, self.predicate.negated(), line=self.line)

    def __str__(self) -> str:
        return f"Compare({self.predicate.value}, lhs: {self.lhs}, rhs: {self.rhs})"


@dataclass
class JumpNode(ASTNode):
    tag: str

    def __post_init__(self):
        self.node_type = "Jump"

    def __str__(self) -> str:
        return f"Jump({self.tag})"


@dataclass
class ConditionalJumpNode(ASTNode):
    test: CompareNode
    jump: JumpNode

    def __post_init__(self):
        self.node_type = "ConditionalJump"

    def __str__(self) -> str:
        return f"ConditionalJump(test: {self.test}, {self.jump})"


# ─────────────────────────────────────────────────────────────
#  Structural States
# ─────────────────────────────────────────────────────────────

class State(Enum):
    START                 = auto()   # expect title
    TITLE                 = auto()   # expect character declaration
    CHARACTER_DECLARATION = auto()   # expect more declarations or act
    ACT                   = auto()   # expect scene
    SCENE                 = auto()   # expect stage or speaking
    STAGE                 = auto()   # expect speaking, scene or act
    CHARACTER_SPEAKING    = auto()   # expect dialogue
    DIALOGUE              = auto()   # expect stage, speaking, act or scene


NEXT_STATES: dict[State, frozenset[State]] = {
    State.START: frozenset({State.TITLE}),
    State.TITLE: frozenset({State.CHARACTER_DECLARATION}),
    State.CHARACTER_DECLARATION: frozenset({State.CHARACTER_DECLARATION, State.ACT}),
    State.ACT: frozenset({State.SCENE}),
    State.SCENE: frozenset({State.SCENE, State.STAGE, State.CHARACTER_SPEAKING}),
    State.STAGE: frozenset({State.STAGE, State.CHARACTER_SPEAKING, State.SCENE, State.ACT}),
    State.CHARACTER_SPEAKING: frozenset({State.CHARACTER_SPEAKING, State.DIALOGUE}),
    State.DIALOGUE: frozenset({
        State.DIALOGUE, State.STAGE, State.CHARACTER_SPEAKING, State.ACT, State.SCENE,
    }),
}

DIALOGUE_COMMANDS = frozenset({
    TokenType.PRINT_NUMBER, TokenType.PRINT_CHARACTER,
    TokenType.SCAN_NUMBER, TokenType.SCAN_CHARACTER,
    TokenType.JUMP, TokenType.CONDITIONAL_JUMP,
    TokenType.PUSH_STACK, TokenType.POP_STACK,
})


def token_states(token: Token) -> frozenset[State]:
    """States in which ``token`` may begin the next statement."""
    match token.type:
        case TokenType.ACT:
            return frozenset({State.ACT})
        case TokenType.SCENE:
            return frozenset({State.SCENE})
        case TokenType.ENTER | TokenType.EXIT:
            return frozenset({State.STAGE})
        case TokenType.SPEAKING:
            return frozenset({State.CHARACTER_SPEAKING})
        case token_type if token_type in DIALOGUE_COMMANDS:
            return frozenset({State.DIALOGUE})
        case _:
            return frozenset({State.DIALOGUE, State.CHARACTER_DECLARATION, State.TITLE})


# ─────────────────────────────────────────────────────────────
#  Parser
# ─────────────────────────────────────────────────────────────

class Parser:
    """
    State-machine parser for Shakespeare plays.

    Usage:
        parser = Parser(tokens)
        nodes = parser.parse()

        nodes = Parser.from_source(source).parse()
    """

    next_states = NEXT_STATES

    def __init__(self, tokens: list[Token], lexicon: Optional[Lexicon] = None):
        self.tokens = tokens
        self.lexicon = lexicon or default_lexicon()
        self.pos = 0
        self.state = State.START
        self.current_act: Optional[str] = None
        self.current_scene: Optional[str] = None
        self.declared: set[str] = set()
        self.on_stage: set[str] = set()
        self.speaker: Optional[str] = None
        self.hanging_question: Optional[CompareNode] = None

    @classmethod
    def from_source(cls, source: str, lexicon: Optional[Lexicon] = None) -> "Parser":
        lexicon = lexicon or default_lexicon()
        return cls(Lexer(source, lexicon).tokenize(), lexicon)

    # ─────────────────────────────────────────────────────────
    #  Token Cursor
    # ─────────────────────────────────────────────────────────

    def _available(self) -> bool:
        return self.pos < len(self.tokens)

    def _peek(self) -> Optional[Token]:
        if self.pos >= len(self.tokens):
            return None
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _last_line(self) -> int:
        if not self.tokens:
            return 0
        return self.tokens[max(min(self.pos, len(self.tokens)) - 1, 0)].line

    # ─────────────────────────────────────────────────────────
    #  Top-Level Parsing
    # ─────────────────────────────────────────────────────────

    def parse(self) -> list[ASTNode]:
        """Parse the whole token stream into a node sequence."""
        nodes: list[ASTNode] = []
        while self._available():
            node = self._parse_state()
            if node is not None:
                nodes.append(node)
            self._transition()
        logger.debug("Parsed %d tokens into %d nodes", len(self.tokens), len(nodes))
        return nodes

    def _parse_state(self) -> Optional[ASTNode]:
        handler = getattr(self, f"_parse_{self.state.name.lower()}")
        return handler()

    def _transition(self):
        """Stay on a state-sticky token, otherwise move to the next state."""
        token = self._peek()
        if token is None:
            return
        if self.state == State.START:
            self.state = State.TITLE
            return
        if self.state == State.TITLE:
            self.state = State.CHARACTER_DECLARATION
            return
        if self._is_sticky(token):
            return
        self.state = self._next_state(token)

    def _is_sticky(self, token: Token) -> bool:
        match self.state:
            case State.CHARACTER_DECLARATION:
                return token.is_lexeme(LexemeType.CHARACTER)
            case State.SCENE:
                return token.type == TokenType.SCENE
            case State.STAGE:
                return token.type in (TokenType.ENTER, TokenType.EXIT)
            case State.DIALOGUE:
                return token.type == TokenType.LEXEME
            case _:
                return False

    def _next_state(self, token: Token) -> State:
        candidates = token_states(token) & self.next_states[self.state]
        if not candidates:
            raise GrammarViolation(
                f"Unexpected {token} after {self.state.name.lower()}", token.line
            )
        if len(candidates) > 1:
            names = ", ".join(sorted(s.name for s in candidates))
            raise AmbiguousTransition(
                f"{token} may start any of {{{names}}} after {self.state.name}", token.line
            )
        (state,) = candidates
        logger.debug("L%d: %s -> %s on %s", token.line, self.state.name, state.name, token)
        return state

    # ─────────────────────────────────────────────────────────
    #  Per-State Statements
    # ─────────────────────────────────────────────────────────

    def _parse_start(self) -> None:
        return None

    def _parse_title(self) -> None:
        """Discard everything through the first punctuation mark."""
        while self._available():
            if self._advance().is_lexeme(LexemeType.PUNCTUATION):
                return None
        raise GrammarViolation("Expected punctuation after the title", self._last_line())

    def _parse_character_declaration(self) -> CharacterDeclarationNode:
        token = self._peek()
        if not token.is_lexeme(LexemeType.CHARACTER):
            raise GrammarViolation(f"Expected a character declaration, got {token}", token.line)
        self._advance()
        while self._available():
            if self._advance().is_lexeme(LexemeType.PUNCTUATION):
                self.declared.add(token.value)
                return CharacterDeclarationNode(token.value, line=token.line)
        raise GrammarViolation(
            f"Expected punctuation after the declaration of {token.value}", token.line
        )

    def _parse_act(self) -> None:
        token = self._peek()
        if token.type != TokenType.ACT:
            raise GrammarViolation(f"Expected an act, got {token}", token.line)
        self._advance()
        self.current_act = token.value
        return None

    def _parse_scene(self) -> GotoTagNode:
        token = self._peek()
        if token.type != TokenType.SCENE:
            raise GrammarViolation(f"Expected a scene, got {token}", token.line)
        self._advance()
        self.current_scene = token.value
        return GotoTagNode(self._tag(token.value), line=token.line)

    def _parse_stage(self) -> None:
        token = self._peek()
        if token.type == TokenType.ENTER:
            undeclared = token.value - self.declared
            if undeclared:
                raise StructuralViolation(
                    f"Undeclared character(s) cannot enter: {', '.join(sorted(undeclared))}",
                    token.line,
                )
            self.on_stage |= token.value
        elif token.type == TokenType.EXIT:
            if not token.value:
                self.on_stage.clear()
            else:
                absent = token.value - self.on_stage
                if absent:
                    raise StructuralViolation(
                        f"Character(s) not on stage cannot exit: {', '.join(sorted(absent))}",
                        token.line,
                    )
                self.on_stage -= token.value
        else:
            raise GrammarViolation(f"Expected a stage direction, got {token}", token.line)
        if self.speaker not in self.on_stage:
            self.speaker = None
        self._advance()
        return None

    def _parse_character_speaking(self) -> None:
        token = self._peek()
        if len(self.on_stage) != 2:
            raise StructuralViolation(
                f"Dialogue requires exactly two characters on stage, found {len(self.on_stage)}",
                token.line,
            )
        if token.type != TokenType.SPEAKING:
            raise GrammarViolation(f"Expected a speaking character, got {token}", token.line)
        if token.value not in self.on_stage:
            raise StructuralViolation(f"{token.value} is not on stage", token.line)
        self._advance()
        self.speaker = token.value
        return None

    def _parse_dialogue(self) -> Optional[ASTNode]:
        token = self._peek()
        match token.type:
            case TokenType.PRINT_NUMBER:
                self._advance()
                return PrintNumberNode(self._other_character(token), line=token.line)
            case TokenType.PRINT_CHARACTER:
                self._advance()
                return PrintCharacterNode(self._other_character(token), line=token.line)
            case TokenType.SCAN_NUMBER:
                self._advance()
                return ScanNumberNode(self._other_character(token), line=token.line)
            case TokenType.SCAN_CHARACTER:
                self._advance()
                return ScanCharacterNode(self._other_character(token), line=token.line)
            case TokenType.POP_STACK:
                self._advance()
                return PopStackNode(self._other_character(token), line=token.line)
            case TokenType.PUSH_STACK:
                self._advance()
                expression = self._parse_expression(self._tokens_until_punctuation(token))
                return PushStackNode(self._other_character(token), expression, line=token.line)
            case TokenType.JUMP:
                self._advance()
                return JumpNode(self._tag(token.value), line=token.line)
            case TokenType.CONDITIONAL_JUMP:
                self._advance()
                return self._parse_conditional_jump(token)
            case TokenType.LEXEME if token.lexeme == LexemeType.SECOND_PERSON:
                return self._parse_assignment()
            case TokenType.LEXEME if token.lexeme == LexemeType.BE:
                if self.hanging_question is not None:
                    raise StructuralViolation(
                        "A question is already awaiting its conditional jump", token.line
                    )
                self.hanging_question = self._parse_question()
                return None
            case _:
                raise GrammarViolation(f"Unexpected {token} in dialogue", token.line)

    def _parse_conditional_jump(self, token: Token) -> ConditionalJumpNode:
        if self.hanging_question is None:
            raise StructuralViolation("Conditional jump without a preceding question", token.line)
        question, self.hanging_question = self.hanging_question, None
        test = question if token.positive else question.negated()
        jump = JumpNode(self._tag(token.value), line=token.line)
        return ConditionalJumpNode(test, jump, line=token.line)

    def _parse_assignment(self) -> AssignmentNode:
        """You <expr>. | You are <expr>. | You are as <adj> as <expr>."""
        token = self._advance()
        variable = VariableNode(self._other_character(token), line=token.line)
        following = self._peek()
        if following is not None and following.is_lexeme(LexemeType.BE):
            self._advance()
            following = self._peek()
            if following is not None and following.is_lexeme(LexemeType.COMPARE):
                if following.value != Comparison.EQUALS:
                    raise ExpressionViolation(
                        "Assignment expects an equality ('as ... as')", following.line
                    )
                self._advance()
        expression = self._parse_expression(self._tokens_until_punctuation(token))
        return AssignmentNode(variable, expression, line=token.line)

    def _parse_question(self) -> CompareNode:
        be = self._advance()
        comparison: Optional[Comparison] = None
        lhs: list[Token] = []
        rhs: list[Token] = []
        while self._available():
            token = self._advance()
            if token.is_lexeme(LexemeType.COMPARE):
                if not lhs:
                    raise ExpressionViolation("Missing left-hand side of the comparison", token.line)
                if comparison is not None:
                    raise ExpressionViolation("A question holds a single comparison", token.line)
                comparison = token.value
            elif token.is_lexeme(LexemeType.PUNCTUATION):
                if comparison is None:
                    raise ExpressionViolation("Missing comparison in question", token.line)
                if not rhs:
                    raise ExpressionViolation("Missing right-hand side of the comparison", token.line)
                return CompareNode(
                    self._parse_expression(lhs),
                    self._parse_expression(rhs),
                    Predicate(comparison.value),
                    line=be.line,
                )
            elif token.type != TokenType.LEXEME:
                raise GrammarViolation(f"Unexpected {token} in question", token.line)
            elif comparison is None:
                lhs.append(token)
            else:
                rhs.append(token)
        raise GrammarViolation("Expected punctuation after the question", be.line)

    def _tokens_until_punctuation(self, start: Token) -> list[Token]:
        tokens: list[Token] = []
        while self._available():
            token = self._advance()
            if token.is_lexeme(LexemeType.PUNCTUATION):
                return tokens
            if token.type != TokenType.LEXEME:
                raise GrammarViolation(f"Expected punctuation before {token}", token.line)
            tokens.append(token)
        raise GrammarViolation("Expected punctuation at end of sentence", start.line)

    # ─────────────────────────────────────────────────────────
    #  Expressions
    # ─────────────────────────────────────────────────────────

    def _parse_expression(self, tokens: list[Token], multiplier: int = 1) -> ExpressionNode:
        """Parse a flat run of lexemes by classifying its first token."""
        if not tokens:
            raise ExpressionViolation("Expected an expression", self._last_line())
        first, rest = tokens[0], tokens[1:]

        if first.is_lexeme(LexemeType.SECOND_PERSON, LexemeType.SECOND_PERSON_REFLEXIVE):
            self._expect_end(rest)
            return VariableNode(self._other_character(first), line=first.line)

        if first.is_lexeme(LexemeType.FIRST_PERSON, LexemeType.FIRST_PERSON_REFLEXIVE):
            self._expect_end(rest)
            return VariableNode(self.speaker, line=first.line)

        if first.is_lexeme(LexemeType.CHARACTER):
            self._expect_end(rest)
            if first.value not in self.declared:
                raise StructuralViolation(f"{first.value} was never declared", first.line)
            return VariableNode(first.value, line=first.line)

        if first.is_lexeme(LexemeType.UNARY_OPERATION):
            return UnaryOperationNode(first.value, self._parse_expression(rest), line=first.line)

        if first.is_lexeme(LexemeType.BINARY_OPERATION):
            split = self._conjunction_index(tokens)
            return BinaryOperationNode(
                first.value,
                self._parse_expression(tokens[1:split]),
                self._parse_expression(tokens[split + 1:]),
                line=first.line,
            )

        if first.is_lexeme(*POSSESSIVES):
            return self._parse_expression(rest, multiplier)

        if first.is_lexeme(LexemeType.OTHER):
            return self._parse_numeral(tokens, multiplier)

        raise ExpressionViolation(f"Unexpected {first} in expression", first.line)

    def _parse_numeral(self, tokens: list[Token], multiplier: int) -> ExpressionNode:
        """Each adjective doubles; the terminal noun supplies sign or zero."""
        first = tokens[0]
        noun_length = self._noun_length(tokens)
        if noun_length:
            remaining = tokens[noun_length:]
            if remaining and remaining[0].is_lexeme(LexemeType.OTHER):
                return self._parse_expression(remaining, multiplier)
            self._expect_end(remaining)
            phrase = " ".join(t.value for t in tokens[:noun_length])
            return ValueNode(self._noun_value(phrase, multiplier), line=first.line)

        rest = tokens[1:]
        if rest and rest[0].is_lexeme(LexemeType.OTHER):
            return self._parse_expression(rest, multiplier * 2)
        self._expect_end(rest)
        return ValueNode(multiplier, line=first.line)

    def _noun_length(self, tokens: list[Token]) -> int:
        """1 or 2 when the run starts with a (two-word) noun, else 0."""
        if len(tokens) > 1 and tokens[1].is_lexeme(LexemeType.OTHER):
            if self.lexicon.category_of(f"{tokens[0].value} {tokens[1].value}", NOUNS):
                return 2
        if self.lexicon.category_of(tokens[0].value, NOUNS):
            return 1
        return 0

    def _noun_value(self, noun: str, multiplier: int) -> int:
        category = self.lexicon.category_of(noun, NOUNS)
        if category == WordCategory.NEGATIVE_NOUN:
            return -multiplier
        if category == WordCategory.NOTHING:
            return 0
        return multiplier

    @staticmethod
    def _conjunction_index(tokens: list[Token]) -> int:
        """Index of the 'and' that closes the binary operation at tokens[0]."""
        depth = 0
        for i, token in enumerate(tokens[1:], start=1):
            if token.is_lexeme(LexemeType.BINARY_OPERATION):
                depth += 1
            elif token.is_lexeme(LexemeType.CONJUNCTION):
                depth -= 1
                if depth < 0:
                    return i
        raise ExpressionViolation("Binary operation is missing its 'and'", tokens[0].line)

    @staticmethod
    def _expect_end(tokens: list[Token]):
        if tokens:
            raise ExpressionViolation(f"Unexpected {tokens[0]} in expression", tokens[0].line)

    # ─────────────────────────────────────────────────────────
    #  Helpers
    # ─────────────────────────────────────────────────────────

    def _tag(self, scene: str) -> str:
        return f"{self.current_act}.{scene}"

    def _other_character(self, token: Token) -> str:
        """The on-stage character who is not speaking."""
        others = self.on_stage - {self.speaker}
        if self.speaker is None or len(others) != 1:
            raise StructuralViolation(
                "Second-person reference needs exactly one listener on stage", token.line
            )
        return next(iter(others))


def parse(source: str, lexicon: Optional[Lexicon] = None) -> list[ASTNode]:
    """Shorthand for ``Parser.from_source(source, lexicon).parse()``."""
    return Parser.from_source(source, lexicon).parse()
