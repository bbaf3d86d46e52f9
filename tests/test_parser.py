"""
Parser Test Suite
=================
Tests for the structural state machine, stage bookkeeping, questions and
conditional jumps, and numeral reconstruction.

Usage:
    python -m pytest tests/test_parser.py -v
"""
import os
import sys
import unittest

# Add project root to path
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT)

from shakespeare.errors import (
    AmbiguousTransition, ExpressionViolation, GrammarViolation, ParseError,
    StructuralViolation,
)
from shakespeare.lexer import BinaryOperation, UnaryOperation
from shakespeare.parser import (
    NEXT_STATES, AssignmentNode, BinaryOperationNode, CharacterDeclarationNode,
    ConditionalJumpNode, GotoTagNode, JumpNode, Parser, PopStackNode, Predicate,
    PushStackNode, State, UnaryOperationNode, ValueNode, VariableNode, parse,
)
from shakespeare.simulator import Simulator

HEADER = """A Test Play.

Romeo, a young man.
Juliet, a young woman.
Hamlet, a prince.

Act I: The test.

Scene I: The only scene.

"""

DIALOGUE = HEADER + "[Enter Romeo and Juliet]\n\nRomeo:\n"


def play(body: str) -> str:
    return HEADER + body


def assignment(text: str) -> AssignmentNode:
    """Parse 'You are <text>.' spoken by Romeo to Juliet."""
    nodes = parse(DIALOGUE + f" You are {text}.\n")
    return nodes[-1]


def value_of(text: str) -> int:
    return Simulator().evaluate(assignment(text).expression)


def read_example(name: str) -> str:
    with open(os.path.join(ROOT, "examples", name), "r", encoding="utf-8") as f:
        return f.read()


# ─────────────────────────────────────────────
#  Structure
# ─────────────────────────────────────────────

class TestStructure(unittest.TestCase):

    def test_hello_transcript(self):
        nodes = parse(read_example("hello.spl"))
        self.assertEqual([str(n) for n in nodes], [
            "Character(name: Romeo)",
            "Character(name: Juliet)",
            "Tag(I.I)",
            "Assign(variable: Variable(name: Juliet), expr: Value(1))",
            "PrintNumber(Juliet)",
        ])

    def test_declarations(self):
        nodes = parse(play(""))
        declarations = [n.name for n in nodes if isinstance(n, CharacterDeclarationNode)]
        self.assertEqual(declarations, ["Romeo", "Juliet", "Hamlet"])

    def test_tags_combine_act_and_scene(self):
        nodes = parse(play(
            "Scene II: Next.\n\n[Enter Romeo]\n\nAct III: Later.\n\nScene IV: Last.\n"
        ))
        tags = [n.tag for n in nodes if isinstance(n, GotoTagNode)]
        self.assertEqual(tags, ["I.I", "I.II", "III.IV"])

    def test_jump_tag_uses_current_act(self):
        nodes = parse(DIALOGUE + " Let us proceed to scene III.\n")
        self.assertEqual(nodes[-1], JumpNode("I.III"))

    def test_node_lines(self):
        nodes = parse(DIALOGUE + " You are nothing.\n")
        self.assertEqual(nodes[-1].line, 14)

    def test_empty_source(self):
        self.assertEqual(parse(""), [])

    def test_from_source(self):
        parser = Parser.from_source(play("[Enter Romeo and Juliet]\n"))
        parser.parse()
        self.assertEqual(parser.on_stage, {"Romeo", "Juliet"})
        self.assertEqual(parser.declared, {"Romeo", "Juliet", "Hamlet"})

    def test_stack_statements(self):
        nodes = parse(read_example("memory.spl"))
        pushes = [n for n in nodes if isinstance(n, PushStackNode)]
        pops = [n for n in nodes if isinstance(n, PopStackNode)]
        self.assertEqual(len(pushes), 3)
        self.assertEqual(len(pops), 3)
        self.assertTrue(all(n.variable == "Ophelia" for n in pushes + pops))


# ─────────────────────────────────────────────
#  Grammar Errors
# ─────────────────────────────────────────────

class TestGrammarViolations(unittest.TestCase):

    def test_title_needs_punctuation(self):
        with self.assertRaises(GrammarViolation):
            parse("A play without an end")

    def test_declaration_required(self):
        with self.assertRaises(GrammarViolation):
            parse("A play.\n\nAct I: Nobody.\n\nScene I: Empty.\n")

    def test_act_must_be_followed_by_scene(self):
        with self.assertRaises(GrammarViolation):
            parse("A play.\n\nRomeo, a man.\n\nAct I: Hasty.\n\n[Enter Romeo]\n")

    def test_unexpected_dialogue_token(self):
        with self.assertRaises(GrammarViolation):
            parse(DIALOGUE + " Hamlet.\n")

    def test_violations_are_parse_errors(self):
        with self.assertRaises(ParseError) as ctx:
            parse("A play without an end")
        self.assertEqual(ctx.exception.kind, "GrammarViolation")


# ─────────────────────────────────────────────
#  Stage Bookkeeping
# ─────────────────────────────────────────────

class TestStage(unittest.TestCase):

    def test_speaking_alone_fails(self):
        with self.assertRaises(StructuralViolation):
            parse(play("[Enter Romeo]\n\nRomeo:\n You are nothing.\n"))

    def test_speaking_with_three_on_stage_fails(self):
        with self.assertRaises(StructuralViolation):
            parse(play("[Enter Romeo and Juliet]\n[Enter Hamlet]\n\nRomeo:\n You are nothing.\n"))

    def test_speaker_must_be_on_stage(self):
        with self.assertRaises(StructuralViolation):
            parse(play("[Enter Romeo and Juliet]\n\nHamlet:\n You are nothing.\n"))

    def test_exit_requires_presence(self):
        with self.assertRaises(StructuralViolation):
            parse(play("[Enter Romeo and Juliet]\n[Exit Hamlet]\n"))

    def test_undeclared_character_cannot_enter(self):
        with self.assertRaises(StructuralViolation):
            parse(play("[Enter Macbeth and Romeo]\n"))

    def test_exeunt_clears_stage(self):
        parser = Parser.from_source(play("[Enter Romeo and Juliet]\n[Exeunt]\n"))
        parser.parse()
        self.assertEqual(parser.on_stage, set())

    def test_listener_follows_stage_changes(self):
        nodes = parse(DIALOGUE + (
            " You are nothing.\n\n"
            "[Exit Juliet]\n[Enter Hamlet]\n\n"
            "Romeo:\n You are a cat.\n"
        ))
        self.assertEqual(nodes[-1].variable, VariableNode("Hamlet"))


# ─────────────────────────────────────────────
#  Assignments and Expressions
# ─────────────────────────────────────────────

class TestExpressions(unittest.TestCase):

    def test_assignment_forms(self):
        for source in ("You cat.", "You are a cat.", "You are as good as a cat."):
            with self.subTest(source=source):
                node = parse(DIALOGUE + f" {source}\n")[-1]
                self.assertEqual(node, AssignmentNode(VariableNode("Juliet"), ValueNode(1)))

    def test_assignment_rejects_inequality(self):
        with self.assertRaises(ExpressionViolation):
            assignment("better than a cat")

    def test_sum_of_two_pigs(self):
        node = assignment("as good as the sum of a pig and a pig")
        self.assertEqual(
            node.expression,
            BinaryOperationNode(BinaryOperation.ADD, ValueNode(1), ValueNode(1)),
        )
        self.assertEqual(value_of("the sum of a pig and a pig"), 2)

    def test_difference_with_nothing(self):
        self.assertEqual(value_of("the difference between a cat and nothing"), value_of("a cat"))

    def test_three_adjectives_before_positive_noun(self):
        self.assertEqual(assignment("a mighty fine brave King").expression, ValueNode(8))

    def test_negative_noun(self):
        self.assertEqual(value_of("a bad bad beggar"), -4)

    def test_nothing_is_zero(self):
        self.assertEqual(value_of("nothing"), 0)
        self.assertEqual(value_of("a big big zero"), 0)

    def test_two_word_nouns(self):
        self.assertEqual(value_of("a big summer's day"), 2)
        self.assertEqual(value_of("a stone wall"), 1)

    def test_possessive_is_ignored(self):
        self.assertEqual(value_of("your big cat"), 2)

    def test_unary(self):
        node = assignment("twice a big cat")
        self.assertEqual(
            node.expression,
            UnaryOperationNode(UnaryOperation.TWICE, ValueNode(2)),
        )

    def test_nested_binary(self):
        self.assertEqual(
            value_of("the sum of the product of a big cat and a cat and a cat"), 3
        )

    def test_pronouns_resolve_to_characters(self):
        self.assertEqual(assignment("yourself").expression, VariableNode("Juliet"))
        self.assertEqual(assignment("as good as me").expression, VariableNode("Romeo"))
        self.assertEqual(assignment("Hamlet").expression, VariableNode("Hamlet"))

    def test_undeclared_character_in_expression(self):
        with self.assertRaises(StructuralViolation):
            assignment("Macbeth")

    def test_trailing_tokens_after_variable(self):
        with self.assertRaises(ExpressionViolation):
            assignment("yourself cat")

    def test_missing_conjunction(self):
        with self.assertRaises(ExpressionViolation):
            assignment("the sum of a cat")

    def test_missing_expression(self):
        with self.assertRaises(ExpressionViolation):
            assignment("as good as")


# ─────────────────────────────────────────────
#  Questions and Conditional Jumps
# ─────────────────────────────────────────────

class TestQuestions(unittest.TestCase):

    def test_if_not_negates_equality(self):
        nodes = parse(DIALOGUE + (
            " Is the better angel as good as nothing?\n"
            " If not, let us return to scene I.\n"
        ))
        jump = nodes[-1]
        self.assertIsInstance(jump, ConditionalJumpNode)
        self.assertEqual(jump.test.predicate, Predicate.NOT_EQUAL)
        self.assertEqual(str(jump.test), "Compare(!=, lhs: Value(2), rhs: Value(0))")
        self.assertEqual(jump.jump, JumpNode("I.I"))

    def test_if_so_keeps_predicate(self):
        nodes = parse(DIALOGUE + " Am I better than you?\n If so, let us return to scene I.\n")
        test = nodes[-1].test
        self.assertEqual(test.predicate, Predicate.GREATER_THAN)
        self.assertEqual(test.lhs, VariableNode("Romeo"))
        self.assertEqual(test.rhs, VariableNode("Juliet"))

    def test_conditional_without_question(self):
        with self.assertRaises(StructuralViolation):
            parse(DIALOGUE + " If so, let us return to scene I.\n")

    def test_second_question_while_pending(self):
        with self.assertRaises(StructuralViolation):
            parse(DIALOGUE + " Is Hamlet as good as nothing? Is Hamlet as good as a cat?\n")

    def test_question_needs_comparison(self):
        with self.assertRaises(ExpressionViolation):
            parse(DIALOGUE + " Is Hamlet?\n")

    def test_question_needs_left_side(self):
        with self.assertRaises(ExpressionViolation):
            parse(DIALOGUE + " Is as good as nothing?\n")

    def test_predicate_negation_is_logical_not(self):
        for predicate in Predicate:
            self.assertEqual(predicate.negated().negated(), predicate)
            for lhs, rhs in ((0, 1), (1, 1), (2, 1)):
                self.assertEqual(
                    predicate.negated().test(lhs, rhs), not predicate.test(lhs, rhs)
                )


# ─────────────────────────────────────────────
#  State Table
# ─────────────────────────────────────────────

class OverlappingParser(Parser):
    next_states = {
        **NEXT_STATES,
        State.CHARACTER_SPEAKING: frozenset({
            State.CHARACTER_SPEAKING, State.DIALOGUE, State.CHARACTER_DECLARATION,
        }),
    }


class TestStateTable(unittest.TestCase):

    def test_ambiguous_transition_is_distinct(self):
        parser = OverlappingParser.from_source(DIALOGUE + " You are nothing.\n")
        with self.assertRaises(AmbiguousTransition) as ctx:
            parser.parse()
        self.assertNotIsInstance(ctx.exception, ParseError)

    def test_default_table_is_unambiguous(self):
        for example in ("hello.spl", "countdown.spl", "memory.spl"):
            with self.subTest(example=example):
                self.assertTrue(parse(read_example(example)))


if __name__ == "__main__":
    unittest.main(verbosity=2)
