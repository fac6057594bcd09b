"""
Equation and implication application.

EQSHEET - step-by-step equation worksheets

An equation ``lhs = rhs`` rewrites a node matching ``lhs`` into the
corresponding instance of ``rhs``. An implication ``P => Q`` rewrites a
whole statement matching ``P`` into ``Q``. All functions are pure: they
return new trees and raise an ExpressionError subclass when the rewrite
does not apply.
"""

from typing import List

from .errors import (
    EquationLHSMismatch, ImplicationLHSMismatch, InvalidAddress,
    NotAnAssocTrain, NotAnEquation, NotAnImplication,
)
from .expression import Address, Expression, equation
from .matcher import apply_match_map, get_pattern_matches, pattern_match_this_node

# Grounding normally settles on the second pass; the cap stops a rule
# whose substitution never reproduces the target.
MAX_GROUNDING_PASSES = 8


def apply_equation_ltr_this_node(expr: Expression, eq: Expression) -> Expression:
    """
    Rewrite ``expr`` with ``eq`` read left to right.

    If the left side already equals ``expr`` the right side is returned.
    Otherwise the left side is matched, the bindings are substituted into
    the whole equation (which also materializes variadic right sides) and
    the grounded equation is tried again.

    Raises:
        NotAnEquation: if ``eq`` is not an `=` statement
        PatternDoesNotMatch: if the left side does not match
        EquationLHSMismatch: if grounding never reproduces ``expr``

    Examples:
        apply_equation_ltr_this_node(E("+(a,0)"), E("=(+(X,0),X)"))  # => a
    """
    if not eq.is_equation():
        raise NotAnEquation(f"{eq} is not an equation")
    for _ in range(MAX_GROUNDING_PASSES):
        lhs, rhs = eq.children
        if lhs == expr:
            return rhs
        bindings = pattern_match_this_node(expr, lhs)
        grounded = apply_match_map(eq, bindings)
        if grounded == eq:
            break
        eq = grounded
    raise EquationLHSMismatch(eq.children[0], expr)


def apply_equation_rtl_this_node(expr: Expression, eq: Expression) -> Expression:
    """Rewrite ``expr`` with ``eq`` read right to left."""
    if not eq.is_equation():
        raise NotAnEquation(f"{eq} is not an equation")
    lhs, rhs = eq.children
    return apply_equation_ltr_this_node(expr, equation(rhs, lhs))


def apply_equation_at(expr: Expression, eq: Expression, address: Address) -> Expression:
    """
    Apply ``eq`` left to right at ``address`` and graft the result back.

    A train sub-address rewrites the selected pair into one child.
    """
    target = expr.resolve(address)
    return expr.replace_expression_at(apply_equation_ltr_this_node(target, eq), address)


def apply_equation_rtl_at(expr: Expression, eq: Expression, address: Address) -> Expression:
    """Apply ``eq`` right to left at ``address``."""
    target = expr.resolve(address)
    return expr.replace_expression_at(apply_equation_rtl_this_node(target, eq), address)


def apply_implication(expr: Expression, imp: Expression) -> Expression:
    """
    Rewrite the statement ``expr`` with the implication ``imp``.

    Raises:
        NotAnImplication: if ``imp`` is not an `=>` statement
        ImplicationLHSMismatch: if a ground premise differs from ``expr``
        PatternDoesNotMatch: if the premise does not match

    Examples:
        apply_implication(E("=(+(a,b),a)"), E("=>(=(+(X,Y),X),=(Y,0))"))
        # => (b = 0)
    """
    if not imp.is_implication():
        raise NotAnImplication(f"{imp} is not an implication")
    premise, conclusion = imp.children
    if not premise.contains_variable():
        if premise != expr:
            raise ImplicationLHSMismatch(premise, expr)
        return conclusion
    bindings = pattern_match_this_node(expr, premise)
    premise, conclusion = apply_match_map(imp, bindings).children
    if premise != expr:
        raise ImplicationLHSMismatch(premise, expr)
    return conclusion


def get_possible_equation_application_addresses(expr: Expression, eq: Expression) -> List[Address]:
    """Every address where the left side of ``eq`` matches, in search order."""
    if not eq.is_equation():
        raise NotAnEquation(f"{eq} is not an equation")
    return [address for address, _ in get_pattern_matches(expr, eq.children[0])]


def swap_assoc_train_children(expr: Expression, i: int, j: int) -> Expression:
    """
    Exchange children ``i`` and ``j`` of a train.

    Raises:
        NotAnAssocTrain: if ``expr`` is not a train
        InvalidAddress: if either index is out of range
    """
    if not expr.is_assoc_train():
        raise NotAnAssocTrain(f"{expr} is not an associative train")
    count = len(expr.children)
    if not (0 <= i < count and 0 <= j < count):
        raise InvalidAddress(f"cannot swap {i} and {j} in a train of {count}")
    children = list(expr.children)
    children[i], children[j] = children[j], children[i]
    return expr.with_children(children)


def swap_assoc_train_children_at(expr: Expression, i: int, j: int, address: Address) -> Expression:
    """swap_assoc_train_children() on the train at ``address.path``."""
    target = Address(address.path)
    return expr.replace_expression_at(swap_assoc_train_children(expr.at(target), i, j), target)
