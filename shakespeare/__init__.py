# Shakespeare: SPL Toolchain
"""
Shakespeare: a toolchain for the Shakespeare Programming Language.
Lexer, state-machine parser, static verifier and tree-walking simulator.
"""
__version__ = "0.1.0"

from .errors import (
    ShakespeareError, LexiconError, AmbiguousTransition,
    ParseError, GrammarViolation, StructuralViolation, ExpressionViolation,
    SimulatorError, UnresolvedLabel, ArithmeticFault, UndeclaredVariable,
    EmptyStack, InputExhausted, StepLimitExceeded,
)
from .lexicon import Lexicon, WordCategory, default_lexicon
from .lexer import Lexer, Token, TokenType, tokenize
from .parser import Parser, ASTNode, parse
from .simulator import Simulator, ScriptedIO, RunResult, run_source
from .verifier import ProgramVerifier, Violation, ViolationLevel
from .config import Settings
