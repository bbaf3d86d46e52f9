"""
Shakespeare Errors
==================
The diagnostic surface of the toolchain. Every failure is a typed
exception carrying a ``kind`` discriminator and, where known, the
source line it was raised for.

    ShakespeareError
    ├── LexiconError
    ├── AmbiguousTransition          (grammar-definition invariant)
    ├── ParseError
    │   ├── GrammarViolation
    │   ├── StructuralViolation
    │   └── ExpressionViolation
    └── SimulatorError
        ├── UnresolvedLabel
        ├── ArithmeticFault
        ├── UndeclaredVariable
        ├── EmptyStack
        ├── InputExhausted
        └── StepLimitExceeded
"""
from typing import Optional


class ShakespeareError(Exception):
    """Base class for every toolchain failure."""

    kind = "ShakespeareError"

    def __init__(self, message: str, line: Optional[int] = None):
        self.message = message
        self.line = line
        super().__init__(message)

    def __str__(self) -> str:
        if self.line:
            return f"L{self.line}: {self.message}"
        return self.message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "line": self.line}


class LexiconError(ShakespeareError):
    """A word list could not be loaded."""
    kind = "LexiconError"


class AmbiguousTransition(ShakespeareError):
    """More than one next state fits a token.

    Raised only when the state table itself is contradictory, never for
    a malformed program.
    """
    kind = "AmbiguousTransition"


# ─────────────────────────────────────────────────────────────
#  Parse phase
# ─────────────────────────────────────────────────────────────

class ParseError(ShakespeareError):
    """Parsing stopped at the first error; no partial AST is returned."""
    kind = "ParseError"


class GrammarViolation(ParseError):
    """Unexpected token for the current state or position."""
    kind = "GrammarViolation"


class StructuralViolation(ParseError):
    """Stage bookkeeping broken: head count, presence, declarations, questions."""
    kind = "StructuralViolation"


class ExpressionViolation(ParseError):
    """Malformed numeral phrase, missing operand or unmatched conjunction."""
    kind = "ExpressionViolation"


# ─────────────────────────────────────────────────────────────
#  Run phase
# ─────────────────────────────────────────────────────────────

class SimulatorError(ShakespeareError):
    """Fatal to the current run."""
    kind = "SimulatorError"


class UnresolvedLabel(SimulatorError):
    kind = "UnresolvedLabel"


class ArithmeticFault(SimulatorError):
    kind = "ArithmeticFault"


class UndeclaredVariable(SimulatorError):
    kind = "UndeclaredVariable"


class EmptyStack(SimulatorError):
    kind = "EmptyStack"


class InputExhausted(SimulatorError):
    kind = "InputExhausted"


class StepLimitExceeded(SimulatorError):
    kind = "StepLimitExceeded"
