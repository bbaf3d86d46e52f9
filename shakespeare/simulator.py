"""
Shakespeare Simulator
=====================
Tree-walking interpreter that executes the node sequence produced by the
Parser.

Two phases:
  1. label resolution: every GotoTagNode's tag is mapped to its index
  2. execution: an instruction pointer walks the nodes, jumps overwrite it

Each declared character is an integer cell with its own value stack.
Input and output go through caller-supplied collaborators.
"""
import logging
import math
import sys
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .errors import (
    ArithmeticFault, EmptyStack, InputExhausted, StepLimitExceeded,
    UndeclaredVariable, UnresolvedLabel,
)
from .lexer import BinaryOperation, UnaryOperation
from .lexicon import Lexicon
from .parser import (
    ASTNode, AssignmentNode, BinaryOperationNode, CharacterDeclarationNode,
    ConditionalJumpNode, ExpressionNode, GotoTagNode, JumpNode, Parser,
    PopStackNode, PrintCharacterNode, PrintNumberNode, PushStackNode,
    ScanCharacterNode, ScanNumberNode, UnaryOperationNode, ValueNode, VariableNode,
)

logger = logging.getLogger(__name__)

NumberProvider = Callable[[], int]
CharacterProvider = Callable[[], str]
OutputSink = Callable[[int | str], None]


def _write_stdout(value: int | str):
    sys.stdout.write(str(value))
    sys.stdout.flush()


class Simulator:
    """
    Executes Shakespeare node sequences.

    Usage:
        sim = Simulator(number_provider=lambda: 13)
        store = sim.run(nodes)
    """

    def __init__(
        self,
        number_provider: Optional[NumberProvider] = None,
        character_provider: Optional[CharacterProvider] = None,
        output_fn: Optional[OutputSink] = None,
        max_steps: Optional[int] = None,
    ):
        self.number_provider = number_provider or (lambda: 0)
        self.character_provider = character_provider or (lambda: "\0")
        self.output_fn = output_fn or _write_stdout
        self.max_steps = max_steps
        self.store: dict[str, int] = {}
        self.stacks: dict[str, list[int]] = {}
        self.labels: dict[str, int] = {}
        self.steps = 0

    def run(self, nodes: list[ASTNode]) -> dict[str, int]:
        """Resolve labels, then execute ``nodes``. Returns the final store."""
        self.labels = self.resolve_labels(nodes)
        self.store = {}
        self.stacks = {}
        self.steps = 0
        ip = 0
        while ip < len(nodes):
            self.steps += 1
            if self.max_steps is not None and self.steps > self.max_steps:
                raise StepLimitExceeded(
                    f"Execution exceeded {self.max_steps} steps", nodes[ip].line
                )
            target = self.execute(nodes[ip])
            ip = ip + 1 if target is None else target
        logger.debug("Run finished after %d steps", self.steps)
        return dict(self.store)

    @staticmethod
    def resolve_labels(nodes: list[ASTNode]) -> dict[str, int]:
        labels = {}
        for i, node in enumerate(nodes):
            if isinstance(node, GotoTagNode):
                labels[node.tag] = i
        logger.debug("Resolved labels: %s", labels)
        return labels

    def execute(self, node: ASTNode) -> Optional[int]:
        """Execute one statement; return the jump target, or None to fall through."""
        executor = getattr(self, f"_exec_{node.node_type.lower()}", None)
        if executor is None:
            return None
        return executor(node)

    # ─────────────────────────────────────────────────────────
    #  Statements
    # ─────────────────────────────────────────────────────────

    def _exec_characterdeclaration(self, node: CharacterDeclarationNode) -> None:
        self.store[node.name] = 0
        self.stacks.setdefault(node.name, [])

    def _exec_scannumber(self, node: ScanNumberNode) -> None:
        try:
            value = self.number_provider()
        except InputExhausted as e:
            e.line = e.line or node.line
            raise
        self.store[node.variable] = int(value)

    def _exec_scancharacter(self, node: ScanCharacterNode) -> None:
        ch = self.character_provider()
        self.store[node.variable] = ord(ch[0]) if ch else -1

    def _exec_printnumber(self, node: PrintNumberNode) -> None:
        self.output_fn(self._read(node.variable, node.line))

    def _exec_printcharacter(self, node: PrintCharacterNode) -> None:
        value = self._read(node.variable, node.line)
        try:
            ch = chr(value)
        except (ValueError, OverflowError):
            raise ArithmeticFault(f"{value} is not a printable code point", node.line)
        self.output_fn(ch)

    def _exec_assignment(self, node: AssignmentNode) -> None:
        self.store[node.variable.name] = self.evaluate(node.expression)

    def _exec_pushstack(self, node: PushStackNode) -> None:
        value = self.evaluate(node.expression)
        self.stacks.setdefault(node.variable, []).append(value)

    def _exec_popstack(self, node: PopStackNode) -> None:
        stack = self.stacks.get(node.variable)
        if not stack:
            raise EmptyStack(f"{node.variable} has nothing to recall", node.line)
        self.store[node.variable] = stack.pop()

    def _exec_jump(self, node: JumpNode) -> int:
        target = self.labels.get(node.tag)
        if target is None:
            raise UnresolvedLabel(f"No scene tagged {node.tag}", node.line)
        logger.debug("L%d: jump to %s (node %d)", node.line, node.tag, target)
        return target

    def _exec_conditionaljump(self, node: ConditionalJumpNode) -> Optional[int]:
        lhs = self.evaluate(node.test.lhs)
        rhs = self.evaluate(node.test.rhs)
        if node.test.predicate.test(lhs, rhs):
            return self._exec_jump(node.jump)
        return None

    # ─────────────────────────────────────────────────────────
    #  Expressions
    # ─────────────────────────────────────────────────────────

    def evaluate(self, expr: ExpressionNode) -> int:
        match expr:
            case VariableNode():
                return self._read(expr.name, expr.line)
            case ValueNode():
                return expr.value
            case BinaryOperationNode():
                return self._binary(expr)
            case UnaryOperationNode():
                return self._unary(expr)
            case _:
                raise TypeError(f"Not an expression: {expr!r}")

    def _read(self, name: str, line: int = 0) -> int:
        if name not in self.store:
            raise UndeclaredVariable(f"{name} was never declared", line)
        return self.store[name]

    def _binary(self, expr: BinaryOperationNode) -> int:
        lhs = self.evaluate(expr.lhs)
        rhs = self.evaluate(expr.rhs)
        match expr.operation:
            case BinaryOperation.ADD:
                return lhs + rhs
            case BinaryOperation.SUBTRACT:
                return lhs - rhs
            case BinaryOperation.MULTIPLY:
                return lhs * rhs
            case BinaryOperation.DIVIDE:
                if rhs == 0:
                    raise ArithmeticFault("Division by zero", expr.line)
                return _truncated_div(lhs, rhs)
            case BinaryOperation.MODULO:
                if rhs == 0:
                    raise ArithmeticFault("Modulo by zero", expr.line)
                return lhs - rhs * _truncated_div(lhs, rhs)

    def _unary(self, expr: UnaryOperationNode) -> int:
        value = self.evaluate(expr.operand)
        match expr.operation:
            case UnaryOperation.TWICE:
                return 2 * value
            case UnaryOperation.SQUARE:
                return self._bounded(value ** 2, value, expr)
            case UnaryOperation.CUBE:
                return self._bounded(value ** 3, value, expr)
            case UnaryOperation.SQUARE_ROOT:
                if value < 0:
                    raise ArithmeticFault(f"Square root of negative value {value}", expr.line)
                return math.isqrt(value)

    @staticmethod
    def _bounded(result: int, value: int, expr: UnaryOperationNode) -> int:
        # Powers are exact but capped at the largest finite double.
        if abs(result) > sys.float_info.max:
            raise ArithmeticFault(
                f"{expr.operation.name.lower()} of {value} overflows", expr.line
            )
        return result


def _truncated_div(lhs: int, rhs: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(lhs) // abs(rhs)
    return quotient if (lhs < 0) == (rhs < 0) else -quotient


# ─────────────────────────────────────────────────────────────
#  Scripted I/O
# ─────────────────────────────────────────────────────────────

class ScriptedIO:
    """Fixed input and captured output for non-interactive runs."""

    def __init__(self, numbers: Iterable[int] = (), characters: str = ""):
        self._numbers = list(numbers)
        self._characters = characters
        self._char_pos = 0
        self.chunks: list[str] = []

    def next_number(self) -> int:
        if not self._numbers:
            raise InputExhausted("No numeric input left")
        return self._numbers.pop(0)

    def next_character(self) -> str:
        if self._char_pos >= len(self._characters):
            return ""
        ch = self._characters[self._char_pos]
        self._char_pos += 1
        return ch

    def write(self, value: int | str):
        self.chunks.append(str(value))

    @property
    def output(self) -> str:
        return "".join(self.chunks)


@dataclass
class RunResult:
    output: str
    store: dict[str, int] = field(default_factory=dict)
    steps: int = 0


def run_source(
    source: str,
    numbers: Iterable[int] = (),
    characters: str = "",
    lexicon: Optional[Lexicon] = None,
    max_steps: Optional[int] = None,
) -> RunResult:
    """Lex, parse and run ``source`` against scripted input."""
    nodes = Parser.from_source(source, lexicon).parse()
    io = ScriptedIO(numbers, characters)
    sim = Simulator(io.next_number, io.next_character, io.write, max_steps=max_steps)
    store = sim.run(nodes)
    return RunResult(io.output, store, sim.steps)
