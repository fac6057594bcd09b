"""
Associative-train normalization passes.

Each pass is a pure bottom-up tree transform that is idempotent once it
reaches its fixed point. They are composed by domain normalizers, for
instance algebra.normalize_algebra().
"""

from typing import Sequence

from .expression import Expression, ExpressionType, binary, train, unary

_GROUPABLE = (ExpressionType.OPERATOR_BINARY, ExpressionType.ASSOC_TRAIN)


def _map_children(expr: Expression, transform, *args) -> Expression:
    if not expr.children:
        return expr
    return expr.with_children(transform(child, *args) for child in expr.children)


def _is_group_of(node: Expression, symbol: str) -> bool:
    return (node.symbol == symbol and node.exp_type in _GROUPABLE
            and not node.is_variadic_train())


def normalize_sub_to_negative(expr: Expression, sub: str = "-", add: str = "+",
                              negative: str = "-") -> Expression:
    """Rewrite every binary ``a - b`` into ``a + (-b)``."""
    expr = _map_children(expr, normalize_sub_to_negative, sub, add, negative)
    if expr.exp_type is ExpressionType.OPERATOR_BINARY and expr.symbol == sub:
        left, right = expr.children
        return binary(add, left, unary(negative, right))
    return expr


def normalize_add_negative_to_sub(expr: Expression, sub: str = "-", add: str = "+",
                                  negative: str = "-") -> Expression:
    """
    Rewrite every binary ``a + (-b)`` into ``a - b``.

    Trains are left alone, so ``a + (-b) + c`` keeps its negative term.
    """
    expr = _map_children(expr, normalize_add_negative_to_sub, sub, add, negative)
    if expr.exp_type is ExpressionType.OPERATOR_BINARY and expr.symbol == add:
        left, right = expr.children
        if right.exp_type is ExpressionType.OPERATOR_UNARY and right.symbol == negative:
            return binary(sub, left, right.children[0])
    return expr


def normalize_to_assoc_train(expr: Expression, assoc_ops: Sequence[str]) -> Expression:
    """
    Flatten nested applications of associative operators into trains.

    ``+(+(a,b),+(c,d))`` becomes the train ``+(a,b,c,d)``. Children keep
    their order. A binary node that absorbs nothing stays binary.
    """
    expr = _map_children(expr, normalize_to_assoc_train, assoc_ops)
    if expr.symbol not in assoc_ops or not _is_group_of(expr, expr.symbol):
        return expr
    flat = []
    absorbed = False
    for child in expr.children:
        if _is_group_of(child, expr.symbol):
            flat.extend(child.children)
            absorbed = True
        else:
            flat.append(child)
    if not absorbed:
        return expr
    return train(expr.symbol, *flat)


def normalize_two_children_assoc_train_to_binary_op(expr: Expression,
                                                    binary_ops: Sequence[str]) -> Expression:
    """Turn every two-child train of a binary operator into a binary node."""
    expr = _map_children(expr, normalize_two_children_assoc_train_to_binary_op, binary_ops)
    if expr.is_assoc_train() and len(expr.children) == 2 and expr.symbol in binary_ops:
        return expr.with_type(ExpressionType.OPERATOR_BINARY)
    return expr


def normalize_single_children_assoc_train(expr: Expression) -> Expression:
    """Replace every one-child train by its child (variadic trains excepted)."""
    expr = _map_children(expr, normalize_single_children_assoc_train)
    if expr.is_assoc_train() and len(expr.children) == 1 and not expr.is_variadic_train():
        return expr.children[0]
    return expr
