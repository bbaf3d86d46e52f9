"""
Shakespeare Verifier
====================
Static analysis pass that runs after parsing (before execution).

Checks:
  1. Jump targets: every (conditional) jump names a scene of the play (hard error)
  2. Duplicate tags: two scenes with the same act/scene numbers
  3. Idle characters: declared but never addressed or mentioned
  4. Unbalanced stacks: a character recalls without anyone remembering to it
"""
from collections import Counter
from dataclasses import dataclass
from enum import Enum, auto

from .parser import (
    ASTNode, AssignmentNode, BinaryOperationNode, CharacterDeclarationNode,
    ConditionalJumpNode, ExpressionNode, GotoTagNode, JumpNode, PopStackNode,
    PrintCharacterNode, PrintNumberNode, PushStackNode, ScanCharacterNode,
    ScanNumberNode, UnaryOperationNode, VariableNode,
)


class ViolationLevel(Enum):
    """Severity of a verification violation."""
    ERROR = auto()
    WARNING = auto()


@dataclass
class Violation:
    """A single verification violation."""
    level: ViolationLevel
    line: int
    rule: str  # e.g. "JUMP", "TAG", "CHARACTER", "STACK"
    message: str

    def __str__(self) -> str:
        icon = "✘" if self.level == ViolationLevel.ERROR else "⚠"
        return f"  {icon} L{self.line} [{self.rule}] {self.message}"

    def to_dict(self) -> dict:
        return {
            "level": self.level.name,
            "line": self.line,
            "rule": self.rule,
            "message": self.message,
        }


class ProgramVerifier:
    """
    Static analysis for Shakespeare plays.

    Usage:
        verifier = ProgramVerifier()
        violations = verifier.verify(nodes)
        for v in violations:
            print(v)
    """

    def __init__(self):
        self.violations: list[Violation] = []

    def verify(self, nodes: list[ASTNode]) -> list[Violation]:
        """Run all checks. Returns violations ordered by line."""
        self.violations = []
        self._check_jump_targets(nodes)
        self._check_duplicate_tags(nodes)
        self._check_idle_characters(nodes)
        self._check_stacks(nodes)
        return sorted(self.violations, key=lambda v: (v.line, v.level.value))

    def has_errors(self) -> bool:
        return any(v.level == ViolationLevel.ERROR for v in self.violations)

    def _add(self, level: ViolationLevel, line: int, rule: str, message: str):
        self.violations.append(Violation(level, line, rule, message))

    # ─────────────────────────────────────────────────────────
    #  Check 1: Jump Targets
    # ─────────────────────────────────────────────────────────

    def _check_jump_targets(self, nodes: list[ASTNode]):
        tags = {n.tag for n in nodes if isinstance(n, GotoTagNode)}
        for node in nodes:
            jump = node.jump if isinstance(node, ConditionalJumpNode) else node
            if isinstance(jump, JumpNode) and jump.tag not in tags:
                self._add(
                    ViolationLevel.ERROR, node.line, "JUMP",
                    f"Jump to scene {jump.tag} which does not exist",
                )

    # ─────────────────────────────────────────────────────────
    #  Check 2: Duplicate Tags
    # ─────────────────────────────────────────────────────────

    def _check_duplicate_tags(self, nodes: list[ASTNode]):
        seen: set[str] = set()
        for node in nodes:
            if not isinstance(node, GotoTagNode):
                continue
            if node.tag in seen:
                self._add(
                    ViolationLevel.WARNING, node.line, "TAG",
                    f"Scene {node.tag} is defined more than once; jumps reach the last one",
                )
            seen.add(node.tag)

    # ─────────────────────────────────────────────────────────
    #  Check 3: Idle Characters
    # ─────────────────────────────────────────────────────────

    def _check_idle_characters(self, nodes: list[ASTNode]):
        used: set[str] = set()
        for node in nodes:
            used.update(_referenced_names(node))
        for node in nodes:
            if isinstance(node, CharacterDeclarationNode) and node.name not in used:
                self._add(
                    ViolationLevel.WARNING, node.line, "CHARACTER",
                    f"{node.name} is declared but never used",
                )

    # ─────────────────────────────────────────────────────────
    #  Check 4: Stacks
    # ─────────────────────────────────────────────────────────

    def _check_stacks(self, nodes: list[ASTNode]):
        pushes = Counter(n.variable for n in nodes if isinstance(n, PushStackNode))
        for node in nodes:
            if isinstance(node, PopStackNode) and not pushes[node.variable]:
                self._add(
                    ViolationLevel.WARNING, node.line, "STACK",
                    f"{node.variable} recalls a value but is never told to remember one",
                )


def _referenced_names(node: ASTNode) -> set[str]:
    """Every character name a statement reads or writes."""
    match node:
        case (ScanNumberNode() | ScanCharacterNode() | PrintNumberNode()
              | PrintCharacterNode() | PopStackNode()):
            return {node.variable}
        case PushStackNode():
            return {node.variable} | _expression_names(node.expression)
        case AssignmentNode():
            return {node.variable.name} | _expression_names(node.expression)
        case ConditionalJumpNode():
            return _expression_names(node.test.lhs) | _expression_names(node.test.rhs)
        case _:
            return set()


def _expression_names(expr: ExpressionNode) -> set[str]:
    match expr:
        case VariableNode():
            return {expr.name}
        case UnaryOperationNode():
            return _expression_names(expr.operand)
        case BinaryOperationNode():
            return _expression_names(expr.lhs) | _expression_names(expr.rhs)
        case _:
            return set()
