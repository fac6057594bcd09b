"""Tests for algebra normalization, fractions and action suggestions."""

import pytest
from eqsheet import (
    Address, Context, E, NotAnEquation, PatternDoesNotMatch, WorksheetContext,
    apply_fraction_arithmetic, apply_fraction_arithmetic_at, apply_function_to_both_side,
    arithmetic_context, generate_simple_apply_arithmetic_to_both_side,
    get_possible_actions, load_builtin_ruleset, normalize_algebra,
)
from eqsheet.algebra import (
    SIMPLIFY_ONE_AND_ZERO, AlgebraActions, AlgebraNormalizer, inverse_operator,
    normalize_fraction, simplify_one_and_zero,
)


@pytest.fixture
def ctx():
    return arithmetic_context(["a", "b", "x", "y"])


@pytest.fixture(scope="module")
def algebra_rules():
    return load_builtin_ruleset("algebra")


@pytest.fixture
def wctx(algebra_rules):
    return WorksheetContext.from_ruleset(algebra_rules, AlgebraNormalizer(), AlgebraActions(), ["x"])


def action_names(actions):
    return [str(action) for action, _ in actions]


class TestNormalizeAlgebra:
    """Tests for normalize_algebra."""

    def test_subtraction_flattens(self, ctx):
        """Subtractions join the surrounding sum as negatives."""
        assert normalize_algebra(E("+(-(x,1),2)", ctx), ctx) == E("+(x,-(1),2)", ctx)

    def test_lone_negative_reads_as_subtraction(self, ctx):
        """A two-term sum with a negative displays as a subtraction."""
        result = normalize_algebra(E("=(+(3,-(y)),x)", ctx), ctx)
        assert str(result) == "((3 - y) = x)"

    def test_two_term_train_to_binary(self, ctx):
        """Trains of two become binary nodes."""
        result = normalize_algebra(E("=(+(*(2,x),0),4)", ctx), ctx)
        assert str(result) == "(((2 * x) + 0) = 4)"

    def test_idempotent(self, ctx):
        """Normalizing twice changes nothing more."""
        once = normalize_algebra(E("=(-(-(*(2,x),1),y),3)", ctx), ctx)
        assert str(once) == "(((2 * x) + (-1) + (-y)) = 3)"
        assert normalize_algebra(once, ctx) == once

    def test_one_and_zero_kept_by_default(self, ctx):
        """Without the flag neutral terms stay."""
        result = normalize_algebra(E("=(+(*(x,1),0),2)", ctx), ctx)
        assert str(result) == "(((x * 1) + 0) = 2)"

    def test_simplify_one_and_zero_flag(self, ctx):
        """The flag drops neutral terms and zero products."""
        ctx.flags.add(SIMPLIFY_ONE_AND_ZERO)
        assert str(normalize_algebra(E("=(+(*(x,1),0),2)", ctx), ctx)) == "(x = 2)"
        assert str(normalize_algebra(E("=(+(*(2,x,0),y,0),1)", ctx), ctx)) == "(y = 1)"
        assert str(normalize_algebra(E("=(+(x,y,0),1)", ctx), ctx)) == "((x + y) = 1)"

    def test_simplify_one_and_zero(self, ctx):
        """All-neutral nodes collapse to the neutral element."""
        assert simplify_one_and_zero(E("+(0,0)", ctx)) == E("0", ctx)
        assert simplify_one_and_zero(E("*(1,1,1)", ctx)) == E("1", ctx)
        assert simplify_one_and_zero(E("-(x,0)", ctx)) == E("-(x,0)", ctx)

    def test_subtraction_passes_need_subtraction(self):
        """Without a declared '-' operator negatives are left alone."""
        ctx = Context(["x", "y"], unary_ops=["-"], binary_ops=["+", "*"],
                      assoc_ops=["+", "*"], handle_numerics=True)
        assert str(normalize_algebra(E("=(+(x,-(y)),1)", ctx), ctx)) == "((x + (-y)) = 1)"
        full = arithmetic_context(["x", "y"])
        assert str(normalize_algebra(E("=(+(x,-(y)),1)", full), full)) == "((x - y) = 1)"


class TestFractions:
    """Tests for fraction arithmetic."""

    def test_normalize_fraction(self, ctx):
        """Numerator and denominator become product trains."""
        result = normalize_fraction(E("/(*(2,x),2)", ctx))
        assert result.children[0].is_assoc_train()
        assert len(result.children[1].children) == 1

    def test_not_a_fraction(self, ctx):
        """Other operators are refused."""
        with pytest.raises(PatternDoesNotMatch):
            normalize_fraction(E("*(2,x)", ctx))

    def test_gcd(self, ctx):
        """Integer factors are divided by their gcd."""
        result = apply_fraction_arithmetic(E("/(*(4,5,6),*(1,2,3))", ctx), 0, 1)
        assert result == E("/(*(2,5,6),*(1,1,3))", ctx)

    def test_non_integer(self, ctx):
        """Decimal factors leave their ratio on top."""
        result = apply_fraction_arithmetic(E("/(*(3,x),*(1.5,y))", ctx), 0, 0)
        assert str(result) == "((2 * x) / (1 * y))"

    def test_non_numeric_factor(self, ctx):
        """Only numerals cancel."""
        with pytest.raises(PatternDoesNotMatch):
            apply_fraction_arithmetic(E("/(*(2,x),2)", ctx), 1, 0)

    def test_at_address(self, ctx):
        """The fraction is rewritten in place."""
        result = apply_fraction_arithmetic_at(E("=(/(*(2,x),2),y)", ctx), 0, 0, Address([0]))
        assert normalize_algebra(result, ctx) == E("=(/(*(1,x),1),y)", ctx)


class TestBothSides:
    """Tests for applying an operation to both sides."""

    def test_function_and_name(self, ctx):
        """The function adds the value to its argument."""
        fn, name = generate_simple_apply_arithmetic_to_both_side("+", E("1", ctx))
        assert str(fn) == "(_(X) = (X + 1))"
        assert name == "Apply +1 to both side"

    def test_fresh_variable(self, ctx):
        """The argument variable avoids the value's variables."""
        fn, name = generate_simple_apply_arithmetic_to_both_side("*", E("+(X,1)", ctx))
        assert str(fn) == "(_(X_) = (X_ * (X + 1)))"
        assert name == "Apply *(X + 1) to both side"

    def test_apply(self, ctx):
        """Both sides are transformed."""
        fn, _ = generate_simple_apply_arithmetic_to_both_side("/", E("2", ctx))
        result = apply_function_to_both_side(E("=(*(2,x),4)", ctx), fn)
        assert str(result) == "(((2 * x) / 2) = (4 / 2))"

    def test_requires_equation(self, ctx):
        """Only equations have two sides."""
        fn, _ = generate_simple_apply_arithmetic_to_both_side("+", E("1", ctx))
        with pytest.raises(NotAnEquation):
            apply_function_to_both_side(E("+(x,1)", ctx), fn)

    def test_inverse_operator(self, ctx):
        """Right operands of - and / have inverses, left ones do not."""
        assert inverse_operator(E("+(x,1)", ctx), 0) == "-"
        assert inverse_operator(E("*(x,2,y)", ctx), 2) == "/"
        assert inverse_operator(E("-(x,1)", ctx), 1) == "+"
        assert inverse_operator(E("-(x,1)", ctx), 0) is None
        assert inverse_operator(E("/(3,x)", ctx), 1) == "*"
        assert inverse_operator(E("f(x,1)", ctx), 1) is None


class TestPossibleActions:
    """Tests for algebra action suggestions."""

    def test_calculation(self, wctx):
        """A numeric node offers its value."""
        expr = E.infix("2 * x = 3 + 1", wctx.context)
        actions = get_possible_actions(expr, wctx, [Address([1])])
        assert action_names(actions) == ["Calculate 3 + 1 = 4"]
        assert str(actions[0][1]) == "((2 * x) = 4)"

    def test_single_numeral_escalates(self, wctx):
        """Clicking one numeral offers its enclosing operation."""
        expr = E.infix("2 * x = 3 + 1", wctx.context)
        assert action_names(get_possible_actions(expr, wctx, [Address([1, 0])])) == [
            "Calculate 3 + 1 = 4",
        ]

    def test_rules_in_id_order(self, wctx):
        """Applicable rules follow the rule-set order."""
        expr = E.infix("x * 1 + 0 = 2", wctx.context)
        assert action_names(get_possible_actions(expr, wctx, [Address([0])])) == [
            "Addition with 0",
        ]
        assert action_names(get_possible_actions(expr, wctx, [Address([0, 0])])) == [
            "Multiplication with 1",
        ]

    def test_flip(self, wctx):
        """Implications are offered at the root."""
        expr = E.infix("2 = 2 * x", wctx.context)
        actions = get_possible_actions(expr, wctx, [Address()])
        assert action_names(actions) == ["Flip the equation"]
        assert str(actions[0][1]) == "((2 * x) = 2)"

    @pytest.mark.parametrize("target", [[1, 1], [1, 1, 0], [1, 1, 1]])
    def test_apply_to_both_sides(self, wctx, target):
        """Any click inside a denominator offers multiplying it away."""
        expr = E("=(x,/(3,-(1,x)))", wctx.context)
        actions = get_possible_actions(expr, wctx, [Address(), Address(target)])
        assert action_names(actions) == ["Apply *(1 - x) to both side"]
        assert str(actions[0][1]) == "((x * (1 - x)) = ((3 / (1 - x)) * (1 - x)))"

    def test_both_sides_needs_equation_pivot(self, wctx):
        """The pivot must be an equation above the target."""
        expr = E.infix("2 * x - 1 = 3", wctx.context)
        assert get_possible_actions(expr, wctx, [Address([1]), Address([0, 1])]) == []

    @pytest.mark.parametrize("text, selection, expected", [
        ("1 + x = 3", [[0, 0], [0, 1]], "((x + 1) = 3)"),
        ("(1 * x) + (x * 2) = 3", [[0, 0, 1], [0, 1, 0]], "(((x * 2) + (1 * x)) = 3)"),
        ("1 + x + 2 + 4 = 3", [[0, 0], [0, 2]], "((2 + x + 1 + 4) = 3)"),
        ("(1 * x) + (x * 2) + (5 * 6) = 3", [[0, 1, 1], [0, 2, 0]],
         "(((1 * x) + (5 * 6) + (x * 2)) = 3)"),
    ])
    def test_reorder(self, wctx, text, selection, expected):
        """Two operands of a commutative node can be swapped."""
        expr = E.infix(text, wctx.context)
        actions = get_possible_actions(expr, wctx, [Address(path) for path in selection])
        assert action_names(actions) == ["Reorder"]
        assert str(actions[0][1]) == expected

    def test_no_reorder_for_subtraction(self, wctx):
        """Non-commutative operators are not reordered."""
        expr = E.infix("x - 1 = 3", wctx.context)
        assert get_possible_actions(expr, wctx, [Address([0, 0]), Address([0, 1])]) == []

    def test_simplify_fraction(self, wctx):
        """A numerator and a denominator numeral cancel."""
        expr = E.infix("(2 * x) / 2 = 2", wctx.context)
        actions = get_possible_actions(expr, wctx, [Address([0, 0, 0]), Address([0, 1])])
        assert action_names(actions) == ["Simplify fraction"]
        assert str(wctx.normalize(actions[0][1])) == "(((1 * x) / 1) = 2)"

    def test_empty_selection(self, wctx):
        """No selection, no actions."""
        assert get_possible_actions(E.infix("x = 1", wctx.context), wctx, []) == []
