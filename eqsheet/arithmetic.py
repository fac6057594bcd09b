"""
Arithmetic vocabulary and numeric evaluation.

EQSHEET - step-by-step equation worksheets

Operators are identified by symbol and node kind: a binary ``-`` is
subtraction, a unary ``-`` is negation, a ``+`` train is a sum. Numeric
evaluation folds the operands with small handler functions, one per
operator.
"""

import math
import operator
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .errors import ExpressionContainsVariable, PatternDoesNotMatch
from .expression import Address, Context, Expression, ExpressionType, const, equation, unary
from .rewriter import apply_equation_at

NumericType = Union[int, float]

# Fold handler: receives the numeric operands, returns the result or None
FoldHandler = Callable[[List[NumericType]], Optional[NumericType]]


class ArithmeticOperator(Enum):
    ADD = "Add"
    SUB = "Sub"
    MUL = "Mul"
    DIV = "Div"
    NEGATIVE = "Negative"
    RECIPROCAL = "Reciprocal"
    ADD_TRAIN = "AddTrain"
    MUL_TRAIN = "MulTrain"


_OPERATORS = {
    ("+", ExpressionType.OPERATOR_BINARY): ArithmeticOperator.ADD,
    ("-", ExpressionType.OPERATOR_BINARY): ArithmeticOperator.SUB,
    ("*", ExpressionType.OPERATOR_BINARY): ArithmeticOperator.MUL,
    ("/", ExpressionType.OPERATOR_BINARY): ArithmeticOperator.DIV,
    ("-", ExpressionType.OPERATOR_UNARY): ArithmeticOperator.NEGATIVE,
    ("/", ExpressionType.OPERATOR_UNARY): ArithmeticOperator.RECIPROCAL,
    ("+", ExpressionType.ASSOC_TRAIN): ArithmeticOperator.ADD_TRAIN,
    ("*", ExpressionType.ASSOC_TRAIN): ArithmeticOperator.MUL_TRAIN,
}

COMMUTATIVE_SYMBOLS = ("+", "*")


def arithmetic_context(parameters: Sequence[str] = ()) -> Context:
    """Context for the four operations, negation and reciprocal."""
    return Context(
        parameters=parameters,
        unary_ops=["-", "/"],
        binary_ops=["+", "-", "*", "/"],
        assoc_ops=["+", "*"],
        handle_numerics=True,
    )


def identify_arithmetic_operator(expr: Expression) -> Optional[ArithmeticOperator]:
    return _OPERATORS.get((expr.symbol, expr.exp_type))


# ============================================================
# Fold Operation Builders
# ============================================================

def nary_fold(identity: NumericType,
              binary_op: Callable[[NumericType, NumericType], NumericType]) -> FoldHandler:
    """Fold any number of operands, starting from ``identity``."""
    def handler(args: List[NumericType]) -> NumericType:
        result = identity
        for a in args:
            result = binary_op(result, a)
        return result
    return handler


def unary_only(f: Callable[[NumericType], NumericType]) -> FoldHandler:
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 1:
            return None
        return f(args[0])
    return handler


def binary_only(f: Callable[[NumericType, NumericType], NumericType]) -> FoldHandler:
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2:
            return None
        return f(args[0], args[1])
    return handler


def safe_div() -> FoldHandler:
    """Division that declines to fold a zero divisor."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2 or args[1] == 0:
            return None
        return args[0] / args[1]
    return handler


def safe_reciprocal() -> FoldHandler:
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 1 or args[0] == 0:
            return None
        return 1 / args[0]
    return handler


ARITHMETIC_FOLDS: Dict[ArithmeticOperator, FoldHandler] = {
    ArithmeticOperator.ADD: binary_only(operator.add),
    ArithmeticOperator.SUB: binary_only(operator.sub),
    ArithmeticOperator.MUL: binary_only(operator.mul),
    ArithmeticOperator.DIV: safe_div(),
    ArithmeticOperator.NEGATIVE: unary_only(operator.neg),
    ArithmeticOperator.RECIPROCAL: safe_reciprocal(),
    ArithmeticOperator.ADD_TRAIN: nary_fold(0, operator.add),
    ArithmeticOperator.MUL_TRAIN: nary_fold(1, operator.mul),
}


# ============================================================
# Numeric evaluation
# ============================================================

def parse_number(symbol: str) -> Optional[NumericType]:
    try:
        return int(symbol)
    except ValueError:
        pass
    try:
        value = float(symbol)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def is_numeric(expr: Expression) -> bool:
    """True for a constant leaf whose symbol is a number."""
    return expr.is_const() and parse_number(expr.symbol) is not None


def is_negative_numeral(expr: Expression) -> bool:
    return (identify_arithmetic_operator(expr) is ArithmeticOperator.NEGATIVE
            and is_numeric(expr.children[0]))


def calculate_numeric(expr: Expression) -> Optional[NumericType]:
    """
    Evaluate an expression built only from numerals and arithmetic.

    Returns:
        The value, or None if some operand is not numeric, an operator is
        not arithmetic, or the result is undefined (division by zero)

    Examples:
        calculate_numeric(E("+(3,1)", ctx))       # => 4
        calculate_numeric(E("+(-(1),1)", ctx))    # => 0
    """
    if expr.is_value():
        return parse_number(expr.symbol) if expr.is_const() else None
    op = identify_arithmetic_operator(expr)
    if op is None:
        return None
    args = []
    for child in expr.children:
        value = calculate_numeric(child)
        if value is None:
            return None
        args.append(value)
    result = ARITHMETIC_FOLDS[op](args)
    if result is None or not math.isfinite(result):
        return None
    return result


def is_calculable(expr: Expression) -> bool:
    """True for an arithmetic operation with a numeric value, other than a plain ``-n``."""
    if expr.is_value() or is_negative_numeral(expr):
        return False
    return calculate_numeric(expr) is not None


def format_number(value: NumericType) -> str:
    """Integral values print without a decimal point."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def number_to_expression(value: NumericType) -> Expression:
    """A numeral, wrapped in unary ``-`` when negative."""
    if value < 0:
        return unary("-", const(format_number(-value)))
    return const(format_number(value))


def generate_simple_arithmetic_equation_at(expr: Expression, address: Address) -> Tuple[Expression, str]:
    """
    Build ``node = value`` for the numeric node at ``address``.

    Returns:
        The ground equation and the action name, e.g. "Calculate 3 + 1 = 4"

    Raises:
        ExpressionContainsVariable: if the node has free variables
        PatternDoesNotMatch: if the node is not a numeric operation
    """
    node = expr.resolve(address)
    if node.contains_variable():
        raise ExpressionContainsVariable(f"{node} contains a variable")
    if not is_calculable(node):
        raise PatternDoesNotMatch(f"{node} is not a numeric operation")
    value = calculate_numeric(node)
    name = f"Calculate {node.to_string(False)} = {format_number(value)}"
    return equation(node, number_to_expression(value)), name


def do_arithmetic_calculation_at(expr: Expression, address: Address) -> Tuple[Expression, str]:
    """Replace the numeric node at ``address`` with its value."""
    eq, name = generate_simple_arithmetic_equation_at(expr, address)
    return apply_equation_at(expr, eq, address), name
