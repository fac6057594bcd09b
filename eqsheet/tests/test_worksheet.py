"""Tests for worksheets, sequences and auto-rule saturation."""

import logging

import pytest
from eqsheet import (
    Action, ActionProvider, Address, E, ExpressionLine, Normalizer, Rule,
    Worksheet, WorksheetContext, WorkableExpressionSequence,
    arithmetic_context, load_builtin_ruleset,
)
from eqsheet.algebra import AlgebraActions, AlgebraNormalizer
from eqsheet.worksheet import MAX_AUTO_ITERATIONS


@pytest.fixture(scope="module")
def algebra_rules():
    return load_builtin_ruleset("algebra")


def algebra_worksheet(rules, parameters):
    wctx = WorksheetContext.from_ruleset(rules, AlgebraNormalizer(), AlgebraActions(), parameters)
    return Worksheet(wctx)


def step(seq, selection, index=0):
    """Apply action ``index`` for a selection of paths or Addresses."""
    addresses = [a if isinstance(a, Address) else Address(a) for a in selection]
    assert seq.try_apply_action_by_index(addresses, index)
    line = seq[-1]
    return str(line.action), str(line.expr)


def sub(path, index):
    return Address(path, sub=index)


class TestAction:
    """Tests for Action and ExpressionLine."""

    def test_display(self):
        """Actions display as their label or description."""
        assert str(Action.introduce()) == "Introduce"
        assert str(Action.introduce("Eq. 1")) == "Introduce from Eq. 1"
        assert str(Action.apply_rule("Addition with 0")) == "Addition with 0"
        assert str(Action.apply_action("Reorder")) == "Reorder"

    def test_equality(self):
        """Actions compare by kind and text."""
        assert Action.apply_rule("A") == Action.apply_rule("A")
        assert Action.apply_rule("A") != Action.apply_action("A")

    def test_line_defaults(self):
        """Lines start unlabelled and user-driven."""
        line = ExpressionLine(Action.introduce(), E.const("x"))
        assert line.label is None
        assert not line.is_auto_generated


class TestWorksheetContext:
    """Tests for the shared context and label registry."""

    def test_defaults(self):
        """An empty context normalizes to the same tree and suggests nothing."""
        wctx = WorksheetContext()
        expr = E.const("x")
        assert wctx.normalize(expr) is expr
        assert wctx.action_provider.get_possible_actions(expr, wctx, [Address()]) == []

    def test_labels(self):
        """Labels are deduplicated and the latest registration wins."""
        wctx = WorksheetContext()
        assert wctx.register_label("L", E.const("a"))
        assert not wctx.register_label("L", E.const("a"))
        wctx.register_label("L", E.const("b"))
        assert wctx.get_label("L") == E.const("b")
        assert len(wctx.labels) == 2
        with pytest.raises(KeyError):
            wctx.get_label("missing")

    def test_from_ruleset(self, algebra_rules):
        """Rule order, auto ids and parameters come from the rule set."""
        wctx = WorksheetContext.from_ruleset(algebra_rules, parameters=["x"])
        assert wctx.rule_ids == algebra_rules.rule_ids
        assert wctx.get_rule("algebra/flip").label == "Flip the equation"
        assert wctx.context.parameters == ["x"]
        assert algebra_rules.context.parameters == []

    def test_copy(self):
        """Copies do not share the label registry."""
        wctx = WorksheetContext()
        clone = wctx.copy()
        clone.register_label("L", E.const("a"))
        assert wctx.labels == []


class TestSequence:
    """Tests for WorkableExpressionSequence bookkeeping."""

    def make_sequence(self, algebra_rules):
        ws = algebra_worksheet(algebra_rules, ["x"])
        index = ws.introduce_expression(E.infix("x + 0 = 2", ws.context.context))
        return ws, index, ws.get_workable_expression_sequence(index)

    def test_seed_not_normalized(self, algebra_rules):
        """Introduced lines are kept as written."""
        ws = algebra_worksheet(algebra_rules, ["x"])
        index = ws.introduce_expression(E("=(-(*(2,x),1),3)", ws.context.context))
        seq = ws.get_workable_expression_sequence(index)
        assert len(seq) == 1
        assert str(seq.last_expression) == "(((2 * x) - 1) = 3)"
        assert str(seq[0].action) == "Introduce"

    def test_push_normalizes(self, algebra_rules):
        """Pushed expressions pass through the normalizer."""
        _, _, seq = self.make_sequence(algebra_rules)
        seq.push(Action.apply_action("Manual"), E("=(-(x,1),2)", seq.ctx.context))
        assert str(seq.last_expression) == "((x - 1) = 2)"
        seq.push(Action.apply_action("Manual"), E("=(+(-(x,1),1),2)", seq.ctx.context))
        assert str(seq.last_expression) == "((x + (-1) + 1) = 2)"

    def test_apply_rule_at(self, algebra_rules):
        """A rule can be applied by id."""
        _, _, seq = self.make_sequence(algebra_rules)
        assert seq.apply_rule_at("algebra/add_zero/0", Address([0]))
        assert str(seq[-1].action) == "Addition with 0"
        assert str(seq.last_expression) == "(x = 2)"

    def test_failed_rule_leaves_history(self, algebra_rules, caplog):
        """A rule that does not apply is logged and changes nothing."""
        _, _, seq = self.make_sequence(algebra_rules)
        with caplog.at_level(logging.WARNING, logger="eqsheet.worksheet"):
            assert not seq.apply_rule_at("algebra/div_one", Address([0]))
        assert len(seq) == 1
        assert "PatternDoesNotMatch" in caplog.text
        assert not seq.apply_rule_at("algebra/nope", Address([0]))
        assert len(seq) == 1

    def test_action_index_out_of_range(self, algebra_rules):
        """An unknown action index fails without changes."""
        _, _, seq = self.make_sequence(algebra_rules)
        assert not seq.try_apply_action_by_index([Address([0])], 5)
        assert len(seq) == 1

    def test_labels_and_reset(self, algebra_rules):
        """Labels attach to lines and reset_to truncates."""
        _, _, seq = self.make_sequence(algebra_rules)
        step(seq, [[0]])
        seq.label_expression("solved", 1)
        assert seq[1].label == "solved"
        seq.label_expression(None, 1)
        assert seq[1].label is None
        seq.reset_to(0)
        assert len(seq) == 1
        with pytest.raises(IndexError):
            seq.reset_to(3)

    def test_format(self, algebra_rules):
        """format() numbers the lines."""
        _, _, seq = self.make_sequence(algebra_rules)
        step(seq, [[0]])
        seq.label_expression("done", 1)
        assert seq.format() == "0. Introduce: ((x + 0) = 2)\n1. Addition with 0: (x = 2)  [done]"

    def test_checkout_is_a_copy(self, algebra_rules):
        """Changes are invisible to the worksheet until stored."""
        ws, index, seq = self.make_sequence(algebra_rules)
        step(seq, [[0]])
        assert len(ws[index]) == 1
        ws.store(index, seq)
        assert len(ws[index]) == 2


class TestAutoRules:
    """Tests for auto-rule saturation."""

    def make_context(self, *rules):
        ctx = arithmetic_context(["a", "b"])
        rule_objects = [Rule(rule_id, label, E(text, ctx)) for rule_id, label, text in rules]
        wctx = WorksheetContext(
            ctx,
            rule_map={r.id: r for r in rule_objects},
            auto_rule_ids=[r.id for r in rule_objects],
        )
        return ctx, wctx

    def test_saturates(self):
        """Auto rules apply until nothing matches."""
        ctx, wctx = self.make_context(("zero", "Addition with 0", "=(+(X,0),X)"))
        seq = WorkableExpressionSequence(wctx)
        seq.push(Action.introduce(), E("=(+(+(a,0),0),b)", ctx))
        assert [str(line.expr) for line in seq] == [
            "(((a + 0) + 0) = b)", "((a + 0) = b)", "(a = b)",
        ]
        assert [line.is_auto_generated for line in seq] == [False, True, True]
        assert str(seq[1].action) == "Addition with 0"

    def test_rule_priority(self):
        """The first auto rule in the list is tried first."""
        ctx, wctx = self.make_context(
            ("one", "Multiplication with 1", "=(*(X,1),X)"),
            ("zero", "Addition with 0", "=(+(X,0),X)"),
        )
        seq = WorkableExpressionSequence(wctx)
        seq.push(Action.introduce(), E("=(+(*(a,1),0),b)", ctx))
        assert [str(line.action) for line in seq][1:] == ["Multiplication with 1", "Addition with 0"]

    def test_cyclic_rules_stop(self, caplog):
        """A rule that always applies stops at the iteration ceiling."""
        ctx, wctx = self.make_context(("swap", "Swap", "=(+(A,B),+(B,A))"))
        seq = WorkableExpressionSequence(wctx)
        with caplog.at_level(logging.WARNING, logger="eqsheet.worksheet"):
            seq.push(Action.introduce(), E("+(a,b)", ctx))
        assert len(seq) == MAX_AUTO_ITERATIONS + 1
        assert "stopped" in caplog.text

    def test_no_auto_rules(self):
        """Without auto rules a push adds exactly one line."""
        seq = WorkableExpressionSequence(WorksheetContext())
        seq.push(Action.introduce(), E.const("a"))
        assert len(seq) == 1


class TestStrategies:
    """Tests for plugging in normalizers and action providers."""

    def test_plain_functions(self):
        """Plain callables are wrapped into strategy objects."""
        ws = Worksheet()
        ws.set_normalization_function(lambda expr, ctx: E.const("normal"))
        ws.set_get_possible_actions_function(
            lambda expr, wctx, selection: [(Action.apply_action("Custom"), E.const("c"))])
        assert isinstance(ws.context.normalizer, Normalizer)
        assert isinstance(ws.context.action_provider, ActionProvider)

        index = ws.introduce_expression(E.const("a"))
        seq = ws.get_workable_expression_sequence(index)
        assert seq.try_apply_action_by_index([Address()], 0)
        assert str(seq[-1].action) == "Custom"
        assert str(seq.last_expression) == "normal"

    def test_set_ruleset(self, algebra_rules):
        """Rule maps can be swapped after construction."""
        ws = Worksheet().set_ruleset(algebra_rules)
        assert ws.context.rule_ids == algebra_rules.rule_ids


class TestSolveLinearEquation:
    """End-to-end: solving 2x - 1 = 3."""

    def test_history(self, algebra_rules):
        """Every step produces the expected line."""
        ws = algebra_worksheet(algebra_rules, ["x"])
        index = ws.introduce_expression(E("=(-(*(2,x),1),3)", ws.context.context))
        seq = ws.get_workable_expression_sequence(index)

        assert step(seq, [[], [0, 1]]) == ("Apply +1 to both side", "(((2 * x) + (-1) + 1) = (3 + 1))")
        assert step(seq, [[1]]) == ("Calculate 3 + 1 = 4", "(((2 * x) + (-1) + 1) = 4)")
        assert step(seq, [sub([0], 1)]) == ("Calculate -1 + 1 = 0", "(((2 * x) + 0) = 4)")
        assert step(seq, [[0]]) == ("Addition with 0", "((2 * x) = 4)")
        assert step(seq, [[], [0, 0]]) == ("Apply /2 to both side", "(((2 * x) / 2) = (4 / 2))")
        assert step(seq, [[1]]) == ("Calculate 4 / 2 = 2", "(((2 * x) / 2) = 2)")
        assert step(seq, [[0, 0, 0], [0, 1]]) == ("Simplify fraction", "(((1 * x) / 1) = 2)")
        assert step(seq, [[0]]) == ("Division by 1", "((1 * x) = 2)")
        assert step(seq, [[0]]) == ("Multiplication with 1", "(x = 2)")

        ws.store(index, seq)
        history = ws[index]
        assert len(history) == 10
        assert str(history[0].expr) == "(((2 * x) - 1) = 3)"
        assert str(history[-1].expr) == "(x = 2)"
        assert not any(line.is_auto_generated for line in history)


class TestLabelledEquations:
    """End-to-end: solving a system through labelled lines."""

    def test_system(self, algebra_rules):
        """Eq. 1 and Eq. 2 combine into x = 2."""
        ws = algebra_worksheet(algebra_rules, ["x", "y"])
        ctx = ws.context.context
        first = ws.introduce_expression(E.infix("x + y = 3", ctx))
        second = ws.introduce_expression(E.infix("x - y = 1", ctx))
        assert (first, second) == (0, 1)

        seq = ws.get_workable_expression_sequence(first)
        assert step(seq, [[], [0, 1]]) == ("Apply -y to both side", "((x + y + (-y)) = (3 - y))")
        assert step(seq, [sub([0], 1)]) == ("Self subtraction", "((x + 0) = (3 - y))")
        assert step(seq, [[0]]) == ("Addition with 0", "(x = (3 - y))")
        seq.label_expression("Eq. 1", 3)
        ws.store(first, seq)

        seq = ws.get_workable_expression_sequence(second)
        assert step(seq, [[0, 0]]) == ("Substitute from Eq. 1", "((3 + (-y) + (-y)) = 1)")
        assert step(seq, [sub([0], 1)]) == ("Self addition", "((3 + (2 * (-y))) = 1)")
        assert step(seq, [[0, 1]]) == ("Factor out the minus sign", "((3 - (2 * y)) = 1)")
        assert step(seq, [[], [0, 1]]) == (
            "Apply +(2 * y) to both side", "((3 + (-(2 * y)) + (2 * y)) = (1 + (2 * y)))")
        assert step(seq, [sub([0], 1)]) == ("Self subtraction", "((3 + 0) = (1 + (2 * y)))")
        assert step(seq, [[0]]) == ("Calculate 3 + 0 = 3", "(3 = (1 + (2 * y)))")
        assert step(seq, [[1, 0], [1, 1]]) == ("Reorder", "(3 = ((2 * y) + 1))")
        assert step(seq, [[], [1, 1]]) == ("Apply -1 to both side", "((3 - 1) = ((2 * y) + 1 + (-1)))")
        assert step(seq, [sub([1], 1)], index=1) == ("Self subtraction", "((3 - 1) = ((2 * y) + 0))")
        assert step(seq, [[1]]) == ("Addition with 0", "((3 - 1) = (2 * y))")
        assert step(seq, [[0]]) == ("Calculate 3 - 1 = 2", "(2 = (2 * y))")
        assert step(seq, [[]]) == ("Flip the equation", "((2 * y) = 2)")
        assert step(seq, [[], [0, 0]]) == ("Apply /2 to both side", "(((2 * y) / 2) = (2 / 2))")
        assert step(seq, [[1]]) == ("Calculate 2 / 2 = 1", "(((2 * y) / 2) = 1)")
        assert step(seq, [[0, 0, 0], [0, 1]]) == ("Simplify fraction", "(((1 * y) / 1) = 1)")
        assert step(seq, [[0]]) == ("Division by 1", "((1 * y) = 1)")
        assert step(seq, [[0]]) == ("Multiplication with 1", "(y = 1)")
        seq.label_expression("Eq. 2", len(seq) - 1)
        ws.store(second, seq)
        assert len(ws[second]) == 18

        third = ws.introduce_from_label("Eq. 1")
        seq = ws.get_workable_expression_sequence(third)
        assert str(seq[0].action) == "Introduce from Eq. 1"
        assert str(seq.last_expression) == "(x = (3 - y))"
        assert step(seq, [[1, 1]]) == ("Substitute from Eq. 2", "(x = (3 - 1))")
        assert step(seq, [[1]]) == ("Calculate 3 - 1 = 2", "(x = 2)")
        ws.store(third, seq)
        assert len(ws) == 3

    def test_unknown_label(self, algebra_rules):
        """Introducing from an unknown label raises KeyError."""
        ws = algebra_worksheet(algebra_rules, [])
        with pytest.raises(KeyError):
            ws.introduce_from_label("Eq. 9")

    def test_labels_published_on_store(self, algebra_rules):
        """Unstored labels are not offered as substitutions."""
        ws = algebra_worksheet(algebra_rules, ["x"])
        index = ws.introduce_expression(E.infix("x = 2", ws.context.context))
        seq = ws.get_workable_expression_sequence(index)
        seq.label_expression("two", 0)
        assert ws.context.labels == []
        ws.store(index, seq)
        assert ws.context.get_label("two") == E.infix("x = 2", ws.context.context)
