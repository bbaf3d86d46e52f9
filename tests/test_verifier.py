"""
Verifier Test Suite
===================
Tests for the static checks run between parsing and execution.

Usage:
    python -m pytest tests/test_verifier.py -v
"""
import os
import sys
import unittest

# Add project root to path
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT)

from shakespeare.parser import (
    CharacterDeclarationNode, CompareNode, ConditionalJumpNode, GotoTagNode,
    JumpNode, PopStackNode, Predicate, PrintNumberNode, ValueNode, VariableNode, parse,
)
from shakespeare.verifier import ProgramVerifier, Violation, ViolationLevel


def read_example(name: str) -> str:
    with open(os.path.join(ROOT, "examples", name), "r", encoding="utf-8") as f:
        return f.read()


class TestVerifier(unittest.TestCase):

    def setUp(self):
        self.verifier = ProgramVerifier()

    def rules(self, nodes):
        return [(v.level, v.rule) for v in self.verifier.verify(nodes)]

    def test_examples_have_no_errors(self):
        for example in ("hello.spl", "countdown.spl", "memory.spl"):
            with self.subTest(example=example):
                self.verifier.verify(parse(read_example(example)))
                self.assertFalse(self.verifier.has_errors())

    def test_missing_jump_target(self):
        nodes = [GotoTagNode("I.I", line=1), JumpNode("I.III", line=4)]
        self.assertEqual(self.rules(nodes), [(ViolationLevel.ERROR, "JUMP")])
        self.assertTrue(self.verifier.has_errors())

    def test_missing_conditional_jump_target(self):
        test = CompareNode(ValueNode(0), ValueNode(0), Predicate.EQUALS)
        nodes = [ConditionalJumpNode(test, JumpNode("II.I"), line=3)]
        self.assertEqual(self.rules(nodes), [(ViolationLevel.ERROR, "JUMP")])

    def test_resolvable_jump(self):
        nodes = [GotoTagNode("I.I", line=1), JumpNode("I.I", line=2)]
        self.assertEqual(self.rules(nodes), [])

    def test_duplicate_tag(self):
        nodes = [GotoTagNode("I.I", line=1), GotoTagNode("I.I", line=5)]
        violations = self.verifier.verify(nodes)
        self.assertEqual([(v.rule, v.line) for v in violations], [("TAG", 5)])

    def test_idle_character(self):
        nodes = [
            CharacterDeclarationNode("Romeo", line=1),
            CharacterDeclarationNode("Juliet", line=2),
            PrintNumberNode("Juliet", line=9),
        ]
        violations = self.verifier.verify(nodes)
        self.assertEqual(len(violations), 1)
        self.assertEqual(violations[0].rule, "CHARACTER")
        self.assertIn("Romeo", violations[0].message)

    def test_character_used_in_question(self):
        test = CompareNode(VariableNode("Romeo"), ValueNode(0), Predicate.EQUALS)
        nodes = [
            CharacterDeclarationNode("Romeo", line=1),
            GotoTagNode("I.I", line=2),
            ConditionalJumpNode(test, JumpNode("I.I"), line=3),
        ]
        self.assertEqual(self.rules(nodes), [])

    def test_recall_without_remember(self):
        nodes = [PopStackNode("Juliet", line=7)]
        self.assertEqual(self.rules(nodes), [(ViolationLevel.WARNING, "STACK")])

    def test_memory_stacks_balance(self):
        violations = self.verifier.verify(parse(read_example("memory.spl")))
        self.assertNotIn("STACK", [v.rule for v in violations])

    def test_violations_sorted_by_line(self):
        nodes = [
            CharacterDeclarationNode("Romeo", line=8),
            JumpNode("I.IX", line=3),
        ]
        self.assertEqual([v.line for v in self.verifier.verify(nodes)], [3, 8])


class TestViolation(unittest.TestCase):

    def test_str(self):
        v = Violation(ViolationLevel.ERROR, 4, "JUMP", "Jump to scene I.III which does not exist")
        self.assertEqual(str(v), "  ✘ L4 [JUMP] Jump to scene I.III which does not exist")

    def test_to_dict(self):
        v = Violation(ViolationLevel.WARNING, 2, "TAG", "duplicate")
        self.assertEqual(v.to_dict(), {
            "level": "WARNING", "line": 2, "rule": "TAG", "message": "duplicate",
        })


if __name__ == "__main__":
    unittest.main(verbosity=2)
