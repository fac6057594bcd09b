"""
Text to expression parsers and the E builder.

EQSHEET - step-by-step equation worksheets

Two notations are supported. Both classify symbols through a Context:
parameters and (optionally) numerals become constants, every other bare
symbol becomes a pattern variable.

Prefix notation is what rule files use. It is parsed exactly as written,
with no normalization:

    =(+(X,0),X)
    +(...(*(X,A)))      # variadic train

Infix notation is for people. It has the usual precedence and flattens
associative chains into trains:

    2 * x - 1 = 3
    (x + y) * z = x * z + y * z
    A + ...             # variadic train of A
"""

import re
from typing import List, Optional, Tuple, Union

from .errors import ParseError
from .expression import (
    STATEMENT_SYMBOLS, VARIADIC_SYMBOL, Context, Expression, ExpressionType,
    binary, const, nary, train, unary, var, variadic_train,
)
from .normalize import normalize_to_assoc_train, normalize_two_children_assoc_train_to_binary_op

# Binding strength of infix operators; unknown operators bind like "+"
PRECEDENCE = {
    "=>": 1,
    "=": 2,
    "+": 3,
    "-": 3,
    "*": 4,
    "/": 4,
    "^": 5,
}
DEFAULT_PRECEDENCE = 3

_TOKEN = re.compile(r"\s*(=>|\.\.\.|[A-Za-z0-9_]+(?:\.[0-9]+)?|[(),]|[^\sA-Za-z0-9_(),])")


# ============================================================
# Leaf and operator classification
# ============================================================

def make_leaf(symbol: str, ctx: Context) -> Expression:
    """A constant if ``symbol`` is a parameter or a handled numeral, else a variable."""
    if symbol in ctx.parameters or ctx.is_numeral(symbol):
        return const(symbol)
    return var(symbol)


def make_operator(symbol: str, children: List[Expression], ctx: Context) -> Expression:
    """
    Pick the node kind for ``symbol`` applied to ``children``.

    Raises:
        ParseError: on a misplaced variadic marker
    """
    count = len(children)
    if symbol == VARIADIC_SYMBOL:
        if count != 1:
            raise ParseError("the variadic marker takes exactly one template")
        return Expression(ExpressionType.VARIADIC, symbol, children)
    if count == 1 and children[0].exp_type is ExpressionType.VARIADIC:
        if symbol not in ctx.assoc_ops:
            raise ParseError(f"variadic marker under non-associative operator {symbol!r}")
        return Expression(ExpressionType.ASSOC_TRAIN, symbol, children)
    if any(child.exp_type is ExpressionType.VARIADIC for child in children):
        raise ParseError(f"variadic marker must be the only argument of {symbol!r}")
    if count == 1 and symbol in ctx.unary_ops:
        return unary(symbol, children[0])
    if count == 2 and symbol in STATEMENT_SYMBOLS:
        return Expression(ExpressionType.STATEMENT_OPERATOR_BINARY, symbol, children)
    if count == 2 and symbol in ctx.binary_ops:
        return binary(symbol, *children)
    if count >= 2 and symbol in ctx.assoc_ops:
        return train(symbol, *children)
    return nary(symbol, *children)


# ============================================================
# Prefix notation
# ============================================================

def _split_arguments(text: str) -> List[str]:
    parts = []
    depth = 0
    current = ''
    for c in text:
        if c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
            if depth < 0:
                raise ParseError("unbalanced parentheses")
        elif c == ',' and depth == 0:
            parts.append(current)
            current = ''
            continue
        current += c
    if depth != 0:
        raise ParseError("unbalanced parentheses")
    parts.append(current)
    return parts


def parse_prefix(text: str, ctx: Optional[Context] = None) -> Expression:
    """
    Parse prefix notation such as ``=(+(X,0),X)``.

    Examples:
        parse_prefix("+(x,y,z)", ctx)    # => (x + y + z), an AssocTrain
        parse_prefix("f(2,4)", ctx)      # => f(2, 4), an OperatorNary
    """
    ctx = ctx or Context()
    text = text.strip()
    if not text:
        raise ParseError("empty expression")

    open_at = text.find('(')
    if open_at < 0:
        if re.search(r"[\s),]", text):
            raise ParseError(f"invalid symbol {text!r}")
        return make_leaf(text, ctx)

    symbol = text[:open_at].strip()
    if not symbol or re.search(r"[\s),]", symbol):
        raise ParseError(f"missing or invalid operator before '(' in {text!r}")
    if not text.endswith(')'):
        raise ParseError(f"trailing text after {text!r}")

    inner = text[open_at + 1:-1]
    if not inner.strip():
        return make_operator(symbol, [], ctx)
    children = [parse_prefix(part, ctx) for part in _split_arguments(inner)]
    return make_operator(symbol, children, ctx)


# ============================================================
# Infix notation
# ============================================================

def tokenize(text: str) -> List[str]:
    tokens = []
    position = 0
    text = text.rstrip()
    while position < len(text):
        found = _TOKEN.match(text, position)
        if not found:
            raise ParseError(f"unexpected character at {position} in {text!r}")
        tokens.append(found.group(1))
        position = found.end()
    return tokens


def _is_symbol(token: str) -> bool:
    return re.fullmatch(r"[A-Za-z0-9_]+(?:\.[0-9]+)?", token) is not None


class _InfixParser:
    """Precedence-climbing parser over a token list."""

    def __init__(self, tokens: List[str], ctx: Context):
        self.tokens = tokens
        self.position = 0
        self.ctx = ctx

    def peek(self) -> Optional[str]:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def advance(self) -> str:
        token = self.peek()
        if token is None:
            raise ParseError("unexpected end of expression")
        self.position += 1
        return token

    def expect(self, token: str) -> None:
        found = self.advance()
        if found != token:
            raise ParseError(f"expected {token!r}, found {found!r}")

    def is_binary_operator(self, token: Optional[str]) -> bool:
        return token is not None and (
            token in STATEMENT_SYMBOLS
            or token in self.ctx.binary_ops
            or token in self.ctx.assoc_ops)

    def combine(self, op: str, left: Expression, right: Expression) -> Expression:
        if op in STATEMENT_SYMBOLS:
            return Expression(ExpressionType.STATEMENT_OPERATOR_BINARY, op, (left, right))
        if op in self.ctx.binary_ops:
            return binary(op, left, right)
        return train(op, left, right)

    def parse_expression(self, min_precedence: int = 0) -> Expression:
        left = self.parse_unary()
        while self.is_binary_operator(self.peek()):
            op = self.peek()
            precedence = PRECEDENCE.get(op, DEFAULT_PRECEDENCE)
            if precedence < min_precedence:
                break
            self.advance()
            if self.peek() == VARIADIC_SYMBOL:
                self.advance()
                if op not in self.ctx.assoc_ops:
                    raise ParseError(f"'{op} ...' needs an associative operator")
                left = variadic_train(op, left)
                continue
            right = self.parse_expression(precedence + 1)
            left = self.combine(op, left, right)
        return left

    def parse_unary(self) -> Expression:
        token = self.peek()
        if token is not None and token in self.ctx.unary_ops and not _is_symbol(token):
            self.advance()
            return unary(token, self.parse_unary())
        return self.parse_primary()

    def parse_primary(self) -> Expression:
        token = self.advance()
        if token == '(':
            inner = self.parse_expression()
            self.expect(')')
            return inner
        if not _is_symbol(token):
            raise ParseError(f"unexpected token {token!r}")
        if self.peek() == '(':
            self.advance()
            args: List[Expression] = []
            if self.peek() != ')':
                args.append(self.parse_expression())
                while self.peek() == ',':
                    self.advance()
                    args.append(self.parse_expression())
            self.expect(')')
            return make_operator(token, args, self.ctx)
        return make_leaf(token, self.ctx)


def parse_infix(text: str, ctx: Optional[Context] = None) -> Expression:
    """
    Parse infix notation and flatten associative chains.

    Examples:
        parse_infix("1 + x + 2 = 3", ctx)     # => ((1 + x + 2) = 3)
        parse_infix("x = 3 / (1 - x)", ctx)   # => (x = (3 / (1 - x)))
    """
    ctx = ctx or Context()
    tokens = tokenize(text)
    if not tokens:
        raise ParseError("empty expression")
    parser = _InfixParser(tokens, ctx)
    expr = parser.parse_expression()
    if parser.peek() is not None:
        raise ParseError(f"unexpected token {parser.peek()!r}")
    expr = normalize_to_assoc_train(expr, ctx.assoc_ops)
    return normalize_two_children_assoc_train_to_binary_op(expr, ctx.binary_ops)


# ============================================================
# Expression Builder
# ============================================================

class _ExprBuilder:
    """
    Expression builder for EQSHEET.

    Examples:
        from eqsheet import E, arithmetic_context

        ctx = arithmetic_context(["x"])

        # Parse prefix or infix text
        rule = E("=(+(X,0),X)", ctx)
        expr = E.infix("2 * x - 1 = 3", ctx)

        # Build programmatically
        x, y = E.consts("x", "y")
        expr = E.eq(E.binary("+", x, y), E.const(3))
    """

    def __call__(self, text: str, ctx: Optional[Context] = None) -> Expression:
        """Parse prefix notation: E("+(a,b)", ctx)."""
        return parse_prefix(text, ctx)

    def infix(self, text: str, ctx: Optional[Context] = None) -> Expression:
        """Parse infix notation: E.infix("a + b = c", ctx)."""
        return parse_infix(text, ctx)

    def const(self, value: Union[str, int, float]) -> Expression:
        return const(value)

    def consts(self, *values) -> Tuple[Expression, ...]:
        return tuple(const(v) for v in values)

    def var(self, name: str) -> Expression:
        return var(name)

    def vars(self, *names: str) -> Tuple[Expression, ...]:
        """
        Create several pattern variables for unpacking.

        Example:
            X, Y = E.vars("X", "Y")
        """
        return tuple(var(n) for n in names)

    def unary(self, op: str, child: Expression) -> Expression:
        return unary(op, child)

    def binary(self, op: str, left: Expression, right: Expression) -> Expression:
        return binary(op, left, right)

    def nary(self, op: str, *args: Expression) -> Expression:
        return nary(op, *args)

    def train(self, op: str, *args: Expression) -> Expression:
        return train(op, *args)

    def variadic(self, op: str, template: Expression) -> Expression:
        return variadic_train(op, template)

    def eq(self, lhs: Expression, rhs: Expression) -> Expression:
        return Expression(ExpressionType.STATEMENT_OPERATOR_BINARY, "=", (lhs, rhs))

    def implies(self, premise: Expression, conclusion: Expression) -> Expression:
        return Expression(ExpressionType.STATEMENT_OPERATOR_BINARY, "=>", (premise, conclusion))

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()
