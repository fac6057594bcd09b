"""
Algebra on top of the rewrite engine.

EQSHEET - step-by-step equation worksheets

Provides the algebra normalization, fraction arithmetic, "apply the same
operation to both sides" and the interactive action suggester used by
worksheets. Selections follow the usual convention: the last address is
the node the user clicked most recently; for two-node actions the
second-to-last address is the pivot.
"""

import math
from typing import List, Optional, Sequence, Tuple

from .arithmetic import (
    COMMUTATIVE_SYMBOLS, do_arithmetic_calculation_at,
    is_calculable, is_numeric, number_to_expression, parse_number,
)
from .errors import ExpressionError, InvalidAddress, NotAnEquation, PatternDoesNotMatch
from .expression import (
    Address, Context, Expression, ExpressionType, binary, const, equation, implication,
    nary, train, var,
)
from .normalize import (
    normalize_add_negative_to_sub, normalize_single_children_assoc_train,
    normalize_sub_to_negative, normalize_to_assoc_train,
    normalize_two_children_assoc_train_to_binary_op,
)
from .rewriter import apply_equation_at, apply_implication, swap_assoc_train_children
from .rule import apply_rule_at
from .worksheet import Action, ActionProvider, Normalizer, WorksheetContext

FUNCTION_SYMBOL = "_"
SIMPLIFY_ONE_AND_ZERO = "simplify one and zero"

# (A = B) => (_(A) = _(B)); "_" is renamed to the applied function
FUNCTION_APPLICATION = implication(
    equation(var("A"), var("B")),
    equation(nary(FUNCTION_SYMBOL, var("A")), nary(FUNCTION_SYMBOL, var("B"))),
)

# Operator that undoes each side operator, by operand position (None: any)
INVERSE_OPERATORS = {
    ("+", None): "-",
    ("*", None): "/",
    ("-", 1): "+",
    ("/", 1): "*",
}


# ============================================================
# Normalization
# ============================================================

def normalize_algebra(expr: Expression, ctx: Context) -> Expression:
    """
    Canonical algebra form.

    Subtractions become additions of negatives so sums flatten into
    trains; trains of two go back to binary nodes; a lone ``a + (-b)``
    reads as ``a - b`` again.

    The subtraction passes only run when ``-`` is a declared binary
    operator. With the ``"simplify one and zero"`` flag set, ``+ 0`` and
    ``* 1`` terms are dropped and products with a ``0`` factor become
    ``0``.

    Examples:
        normalize_algebra(E("+(-(x,1),2)", ctx), ctx)   # => (x + (-1) + 2)
    """
    has_sub = "-" in ctx.binary_ops
    if has_sub:
        expr = normalize_sub_to_negative(expr)
    if SIMPLIFY_ONE_AND_ZERO in ctx.flags:
        expr = simplify_one_and_zero(expr)
    expr = normalize_to_assoc_train(expr, ctx.assoc_ops)
    expr = normalize_two_children_assoc_train_to_binary_op(expr, ctx.binary_ops)
    expr = normalize_single_children_assoc_train(expr)
    if has_sub:
        expr = normalize_add_negative_to_sub(expr)
    return expr


def _is_number(expr: Expression, value) -> bool:
    return is_numeric(expr) and parse_number(expr.symbol) == value


def simplify_one_and_zero(expr: Expression) -> Expression:
    """
    Drop ``+ 0`` and ``* 1`` terms and collapse products with a ``0``.

    Works bottom-up on binary nodes and trains of ``+`` and ``*``.
    """
    if expr.children:
        expr = expr.with_children(simplify_one_and_zero(child) for child in expr.children)
    if expr.exp_type not in (ExpressionType.OPERATOR_BINARY, ExpressionType.ASSOC_TRAIN):
        return expr
    if expr.is_variadic_train():
        return expr
    if expr.symbol == "*" and any(_is_number(child, 0) for child in expr.children):
        return const("0")
    neutral = {"+": 0, "*": 1}.get(expr.symbol)
    if neutral is None:
        return expr
    kept = [child for child in expr.children if not _is_number(child, neutral)]
    if len(kept) == len(expr.children):
        return expr
    if not kept:
        return const(str(neutral))
    if len(kept) == 1:
        return kept[0]
    return train(expr.symbol, *kept)


def turn_into_assoc_train(expr: Expression, symbol: str) -> Expression:
    """View ``expr`` as a ``symbol`` train, wrapping it if needed."""
    if expr.symbol == symbol and expr.exp_type in (ExpressionType.OPERATOR_BINARY,
                                                   ExpressionType.ASSOC_TRAIN):
        return train(symbol, *expr.children)
    return train(symbol, expr)


def normalize_fraction(expr: Expression) -> Expression:
    """Rewrite ``a / b`` so numerator and denominator are both ``*`` trains."""
    if not is_fraction(expr):
        raise PatternDoesNotMatch(f"{expr} is not a fraction")
    numerator, denominator = expr.children
    return binary("/", turn_into_assoc_train(numerator, "*"),
                  turn_into_assoc_train(denominator, "*"))


def is_fraction(expr: Expression) -> bool:
    return expr.exp_type is ExpressionType.OPERATOR_BINARY and expr.symbol == "/"


# ============================================================
# Fractions
# ============================================================

def _replace_factor(product: Expression, index: int, factor: Expression) -> Expression:
    children = list(product.children)
    children[index] = factor
    return product.with_children(children)


def apply_fraction_arithmetic(expr: Expression, numerator_index: int,
                              denominator_index: int) -> Expression:
    """
    Cancel a numerator factor against a denominator factor.

    Integers are divided by their gcd. Other numbers leave their ratio
    in the numerator and 1 in the denominator.

    Examples:
        apply_fraction_arithmetic(E("/(*(4,5,6),*(1,2,3))", ctx), 0, 1)
        # => ((2 * 5 * 6) / (1 * 1 * 3))
    """
    numerator, denominator = normalize_fraction(expr).children
    if not (0 <= numerator_index < len(numerator.children)
            and 0 <= denominator_index < len(denominator.children)):
        raise InvalidAddress("fraction factor index out of range")
    top = numerator.children[numerator_index]
    bottom = denominator.children[denominator_index]
    if not (is_numeric(top) and is_numeric(bottom)):
        raise PatternDoesNotMatch(f"{top} / {bottom} is not numeric")

    a, b = parse_number(top.symbol), parse_number(bottom.symbol)
    if isinstance(a, int) and isinstance(b, int):
        divisor = math.gcd(a, b)
        if divisor == 0:
            raise PatternDoesNotMatch("0 / 0 cannot be simplified")
        a, b = a // divisor, b // divisor
    else:
        if b == 0:
            raise PatternDoesNotMatch("division by zero")
        a, b = a / b, 1

    numerator = _replace_factor(numerator, numerator_index, number_to_expression(a))
    denominator = _replace_factor(denominator, denominator_index, number_to_expression(b))
    return binary("/", numerator, denominator)


def apply_fraction_arithmetic_at(expr: Expression, numerator_index: int,
                                 denominator_index: int, address: Address) -> Expression:
    fraction = expr.at(address)
    return expr.replace_expression_at(
        apply_fraction_arithmetic(fraction, numerator_index, denominator_index), address)


# ============================================================
# Both sides
# ============================================================

def _fresh_variable(expr: Expression, base: str = "X") -> str:
    taken = expr.variables()
    name = base
    while name in taken:
        name += "_"
    return name


def generate_simple_apply_arithmetic_to_both_side(op: str, value: Expression) -> Tuple[Expression, str]:
    """
    The function ``_(X) = op(X, value)`` and its action name.

    Examples:
        generate_simple_apply_arithmetic_to_both_side("+", E("1", ctx))
        # => (_(X) = (X + 1)), "Apply +1 to both side"
    """
    x = var(_fresh_variable(value))
    fn = equation(nary(FUNCTION_SYMBOL, x), binary(op, x, value))
    return fn, f"Apply {op}{value.to_string(True)} to both side"


def apply_function_to_both_side(expr: Expression, fn: Expression) -> Expression:
    """
    Apply the one-argument function equation ``fn`` to both sides of ``expr``.

    Raises:
        NotAnEquation: if ``expr`` or ``fn`` has the wrong shape
    """
    if not expr.is_equation():
        raise NotAnEquation(f"{expr} is not an equation")
    if not (fn.is_equation() and fn.children[0].exp_type is ExpressionType.OPERATOR_NARY
            and len(fn.children[0].children) == 1):
        raise NotAnEquation(f"{fn} does not define a one-argument function")
    symbol = fn.children[0].symbol
    applied = apply_implication(expr, FUNCTION_APPLICATION.substitute_symbol(FUNCTION_SYMBOL, symbol))
    applied = apply_equation_at(applied, fn, Address([0]))
    return apply_equation_at(applied, fn, Address([1]))


# ============================================================
# Action suggestions
# ============================================================

def _calculation_actions(expr: Expression, selection: Sequence[Address]):
    address = selection[-1]
    try:
        node = expr.resolve(address)
    except ExpressionError:
        return []
    if not is_calculable(node):
        # a single click on a number offers its enclosing operation
        if len(selection) != 1 or not is_numeric(node) or not address.path or address.sub is not None:
            return []
        address = address.parent()
        if not is_calculable(expr.at(address)):
            return []
    result, name = do_arithmetic_calculation_at(expr, address)
    return [(Action.apply_action(name), result)]


def _rule_actions(expr: Expression, wctx: WorksheetContext, address: Address):
    actions = []
    for rule_id in wctx.rule_ids:
        rule = wctx.get_rule(rule_id)
        if rule is None:
            continue
        try:
            result = apply_rule_at(rule, expr, address)
        except ExpressionError:
            continue
        actions.append((Action.apply_rule(rule.label), result))
    return actions


def _both_side_actions(expr: Expression, pivot: Address, target: Address):
    depth = len(pivot.path)
    if not target.startswith(pivot) or len(target.path) < depth + 2:
        return []
    try:
        statement = expr.at(pivot)
    except ExpressionError:
        return []
    if not statement.is_equation():
        return []
    side = statement.children[target.path[depth]]
    operand_index = target.path[depth + 1]
    op = inverse_operator(side, operand_index)
    if op is None:
        return []
    fn, name = generate_simple_apply_arithmetic_to_both_side(op, side.children[operand_index])
    try:
        result = expr.replace_expression_at(apply_function_to_both_side(statement, fn), Address(pivot.path))
    except ExpressionError:
        return []
    return [(Action.apply_action(name), result)]


def inverse_operator(side: Expression, operand_index: int) -> Optional[str]:
    """
    The operator that removes operand ``operand_index`` from ``side``.

    Any operand of ``+`` or ``*`` can be removed; only the right operand
    of a binary ``-`` or ``/``.
    """
    if side.symbol in COMMUTATIVE_SYMBOLS and side.exp_type in (ExpressionType.OPERATOR_BINARY,
                                                                ExpressionType.ASSOC_TRAIN):
        return INVERSE_OPERATORS[(side.symbol, None)]
    if side.exp_type is ExpressionType.OPERATOR_BINARY:
        return INVERSE_OPERATORS.get((side.symbol, operand_index))
    return None


def _common_prefix(a: Address, b: Address) -> Tuple[int, ...]:
    prefix = []
    for i, j in zip(a.path, b.path):
        if i != j:
            break
        prefix.append(i)
    return tuple(prefix)


def _reorder_actions(expr: Expression, first: Address, second: Address):
    prefix = _common_prefix(first, second)
    depth = len(prefix)
    if len(first.path) <= depth or len(second.path) <= depth:
        return []
    parent = expr.at(Address(prefix))
    if parent.symbol not in COMMUTATIVE_SYMBOLS:
        return []
    i, j = first.path[depth], second.path[depth]
    if parent.is_assoc_train():
        swapped = swap_assoc_train_children(parent, i, j)
    elif parent.exp_type is ExpressionType.OPERATOR_BINARY:
        swapped = parent.with_children(parent.children[::-1])
    else:
        return []
    return [(Action.apply_action("Reorder"), expr.replace_expression_at(swapped, Address(prefix)))]


def _factor_index(fraction: Expression, side: int, rest: Tuple[int, ...]) -> Optional[int]:
    part = fraction.children[side]
    if not rest:
        return 0
    if len(rest) == 1 and part.symbol == "*" and part.exp_type in (ExpressionType.OPERATOR_BINARY,
                                                                   ExpressionType.ASSOC_TRAIN):
        return rest[0]
    return None


def _fraction_actions(expr: Expression, first: Address, second: Address):
    if not (is_numeric(expr.at(first)) and is_numeric(expr.at(second))):
        return []
    prefix = _common_prefix(first, second)
    depth = len(prefix)
    if len(first.path) <= depth or len(second.path) <= depth:
        return []
    fraction = expr.at(Address(prefix))
    if not is_fraction(fraction):
        return []
    if first.path[depth] == 1:
        first, second = second, first
    numerator_index = _factor_index(fraction, 0, first.path[depth + 1:])
    denominator_index = _factor_index(fraction, 1, second.path[depth + 1:])
    if numerator_index is None or denominator_index is None:
        return []
    try:
        result = apply_fraction_arithmetic_at(expr, numerator_index, denominator_index, Address(prefix))
    except ExpressionError:
        return []
    return [(Action.apply_action("Simplify fraction"), result)]


def get_possible_actions(expr: Expression, wctx: WorksheetContext,
                         selection: Sequence[Address]) -> List[Tuple[Action, Expression]]:
    """
    Candidate algebra steps for a selection, in menu order.

    1. evaluate the selected numeric operation
    2. every rule that applies at the last address
    3. apply the inverse operation to both sides (pivot equation, operand)
    4. reorder two operands of a commutative operation
    5. cancel a numerator factor against a denominator factor
    """
    if not selection:
        return []
    actions = _calculation_actions(expr, selection)
    actions += _rule_actions(expr, wctx, selection[-1])
    if len(selection) >= 2:
        pivot, target = selection[-2], selection[-1]
        if pivot.sub is None and target.sub is None:
            for suggest in (_both_side_actions, _reorder_actions, _fraction_actions):
                try:
                    actions += suggest(expr, pivot, target)
                except ExpressionError:
                    continue
    return actions


class AlgebraNormalizer(Normalizer):
    """Worksheet normalizer running normalize_algebra()."""

    def normalize(self, expr: Expression, ctx: Context) -> Expression:
        return normalize_algebra(expr, ctx)


class AlgebraActions(ActionProvider):
    """Worksheet action provider running get_possible_actions()."""

    def get_possible_actions(self, expr: Expression, wctx: WorksheetContext,
                             selection: Sequence[Address]) -> List[Tuple[Action, Expression]]:
        return get_possible_actions(expr, wctx, selection)
