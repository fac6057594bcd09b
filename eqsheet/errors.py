"""
Failure types raised by the expression, matching and rewriting layers.

Every fallible operation raises one of these. Search code (pattern
search, rule menus, auto-rule scans) catches ExpressionError and treats
the candidate as inapplicable; user-directed code reports it.
"""


class ExpressionError(Exception):
    """Base class for every rewrite failure."""


class InvalidAddress(ExpressionError):
    """An address does not resolve inside the expression."""


class NotAnEquation(ExpressionError):
    """An operation needed an `=` statement."""


class NotAnImplication(ExpressionError):
    """An operation needed an `=>` statement."""


class NotAnAssocTrain(ExpressionError):
    """A train operation was addressed at a non-train node."""


class PatternDoesNotMatch(ExpressionError):
    """A pattern failed to unify against a subject."""


class ExpressionContainsVariable(ExpressionError):
    """A ground expression was required."""


class EquationLHSMismatch(ExpressionError):
    """A grounded equation's left side differs from the target."""

    def __init__(self, expected, got):
        self.expected = expected
        self.got = got
        super().__init__(f"expected {expected}, got {got}")


class ImplicationLHSMismatch(ExpressionError):
    """A grounded implication's premise differs from the target."""

    def __init__(self, expected, got):
        self.expected = expected
        self.got = got
        super().__init__(f"expected {expected}, got {got}")


class InvalidRule(ExpressionError):
    """A rule is neither an equation nor an implication."""


class NotAParentOfVariadic(ExpressionError):
    """expand_variadic was called on something other than `op(...(T))`."""


class ParseError(ValueError):
    """Text could not be turned into an expression."""


class RuleSetError(ValueError):
    """A rule-set document is malformed."""
