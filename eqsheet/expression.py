"""
Expression trees, addresses and parsing context.

EQSHEET - step-by-step equation worksheets

An Expression is an immutable tagged tree. Every rewrite builds a new
tree, so any snapshot kept in a worksheet history stays valid.

Addresses point into a tree by child indices. An address whose path ends
on an associative train may also carry a ``sub`` index, which selects the
virtual binary pair ``children[sub], children[sub + 1]`` without
rebuilding the train:

    expr = E("+(a,b,c)", ctx)
    expr.resolve(Address([], sub=1))      # => (b + c)
"""

from enum import Enum
from functools import total_ordering
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import InvalidAddress, NotAnAssocTrain

VARIADIC_SYMBOL = "..."
STATEMENT_SYMBOLS = ("=", "=>")


class ExpressionType(Enum):
    VALUE_CONST = "ValueConst"
    VALUE_VAR = "ValueVar"
    OPERATOR_UNARY = "OperatorUnary"
    OPERATOR_BINARY = "OperatorBinary"
    OPERATOR_NARY = "OperatorNary"
    STATEMENT_OPERATOR_BINARY = "StatementOperatorBinary"
    ASSOC_TRAIN = "AssocTrain"
    VARIADIC = "Variadic"


_VALUE_TYPES = (ExpressionType.VALUE_CONST, ExpressionType.VALUE_VAR)
_TWO_CHILD_TYPES = (
    ExpressionType.OPERATOR_BINARY,
    ExpressionType.STATEMENT_OPERATOR_BINARY,
)


# ============================================================
# Address
# ============================================================

@total_ordering
class Address:
    """
    A position inside an expression.

    ``path`` lists child indices from the root. ``sub`` is set only when
    the path ends on an AssocTrain and selects the pair starting at that
    child. Addresses order lexicographically by path, then sub, with an
    unset sub sorting first.

    Examples:
        Address()                  # the root
        Address([0, 1])            # second child of the first child
        Address([0]).with_sub(1)   # pair (1, 2) of the train at [0]
        Address.parse("0.1:2")     # Address([0, 1], sub=2)
    """

    __slots__ = ('path', 'sub')

    def __init__(self, path: Iterable[int] = (), sub: Optional[int] = None):
        self.path: Tuple[int, ...] = tuple(path)
        self.sub = sub

    def with_sub(self, sub: Optional[int]) -> 'Address':
        """Same path, different train sub-pair."""
        return Address(self.path, sub)

    def append(self, index: int) -> 'Address':
        """Address of child ``index`` of this position (drops any sub)."""
        return Address(self.path + (index,))

    def parent(self) -> 'Address':
        if not self.path:
            raise InvalidAddress("the root has no parent")
        return Address(self.path[:-1])

    def is_root(self) -> bool:
        return not self.path and self.sub is None

    def startswith(self, other: 'Address') -> bool:
        """True if ``other``'s path is a prefix of this path."""
        return self.path[:len(other.path)] == other.path

    def _key(self):
        return (self.path, -1 if self.sub is None else self.sub)

    def __eq__(self, other):
        if isinstance(other, Address):
            return self.path == other.path and self.sub == other.sub
        return NotImplemented

    def __lt__(self, other):
        if not isinstance(other, Address):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self):
        return hash(self._key())

    def __len__(self) -> int:
        return len(self.path)

    def __repr__(self) -> str:
        if self.sub is None:
            return f"Address({list(self.path)})"
        return f"Address({list(self.path)}, sub={self.sub})"

    def __str__(self) -> str:
        text = ".".join(str(i) for i in self.path) or "."
        if self.sub is not None:
            text += f":{self.sub}"
        return text

    @classmethod
    def parse(cls, text: str) -> 'Address':
        """
        Parse the compact form used by the CLI.

        "." is the root, "0.1" a path, "0.1:2" a path with a sub-pair.
        """
        text = text.strip()
        sub = None
        if ":" in text:
            text, sub_text = text.split(":", 1)
            sub = int(sub_text)
        if text in ("", "."):
            return cls((), sub)
        try:
            return cls([int(part) for part in text.split(".")], sub)
        except ValueError:
            raise ValueError(f"invalid address: {text!r}") from None


# ============================================================
# Context
# ============================================================

class Context:
    """
    Parsing and normalization configuration.

    Args:
        parameters: symbols that are constants, never pattern variables
        unary_ops: operators parsed as unary when given one child
        binary_ops: operators parsed as binary when given two children
        assoc_ops: associative operators, flattened into trains
        handle_numerics: treat bare numerals as constants
        flags: free-form feature switches read by normalizers
    """

    def __init__(self, parameters: Sequence[str] = (),
                 unary_ops: Sequence[str] = (),
                 binary_ops: Sequence[str] = (),
                 assoc_ops: Sequence[str] = (),
                 handle_numerics: bool = False,
                 flags: Iterable[str] = ()):
        self.parameters: List[str] = list(parameters)
        self.unary_ops: List[str] = list(unary_ops)
        self.binary_ops: List[str] = list(binary_ops)
        self.assoc_ops: List[str] = list(assoc_ops)
        self.handle_numerics = handle_numerics
        self.flags = set(flags)

    def add_params(self, params: Iterable[str]) -> 'Context':
        """Declare more parameter symbols, ignoring ones already present."""
        for param in params:
            if param not in self.parameters:
                self.parameters.append(param)
        return self

    def copy(self) -> 'Context':
        return Context(self.parameters, self.unary_ops, self.binary_ops,
                       self.assoc_ops, self.handle_numerics, self.flags)

    def is_numeral(self, symbol: str) -> bool:
        if not self.handle_numerics:
            return False
        try:
            float(symbol)
        except ValueError:
            return False
        return True

    def __eq__(self, other):
        if not isinstance(other, Context):
            return NotImplemented
        return (self.parameters == other.parameters
                and self.unary_ops == other.unary_ops
                and self.binary_ops == other.binary_ops
                and self.assoc_ops == other.assoc_ops
                and self.handle_numerics == other.handle_numerics
                and self.flags == other.flags)

    def __repr__(self) -> str:
        return (f"Context(parameters={self.parameters}, unary_ops={self.unary_ops}, "
                f"binary_ops={self.binary_ops}, assoc_ops={self.assoc_ops}, "
                f"handle_numerics={self.handle_numerics})")


# ============================================================
# Expression
# ============================================================

def _check_shape(exp_type: ExpressionType, children: Tuple['Expression', ...]) -> None:
    count = len(children)
    if exp_type in _VALUE_TYPES and count:
        raise ValueError(f"{exp_type.value} cannot have children")
    if exp_type in (ExpressionType.OPERATOR_UNARY, ExpressionType.VARIADIC) and count != 1:
        raise ValueError(f"{exp_type.value} needs exactly one child, got {count}")
    if exp_type in _TWO_CHILD_TYPES and count != 2:
        raise ValueError(f"{exp_type.value} needs exactly two children, got {count}")
    # a single-child train only exists mid-normalization
    if exp_type is ExpressionType.ASSOC_TRAIN and count < 1:
        raise ValueError("AssocTrain needs at least one child")
    if any(child.exp_type is ExpressionType.VARIADIC for child in children):
        if exp_type is not ExpressionType.ASSOC_TRAIN or count != 1:
            raise ValueError("a Variadic marker must be the only child of an AssocTrain")


class Expression:
    """
    An immutable expression tree node.

    Attributes:
        exp_type: the node kind (an ExpressionType)
        symbol: operator or leaf symbol
        children: tuple of child expressions (empty for leaves)

    Two expressions are equal when kind, symbol and children are equal.
    Nodes are hashable, so they can key dicts and sets.
    """

    __slots__ = ('exp_type', 'symbol', 'children')

    def __init__(self, exp_type: ExpressionType, symbol: str,
                 children: Iterable['Expression'] = ()):
        children = tuple(children)
        _check_shape(exp_type, children)
        self.exp_type = exp_type
        self.symbol = symbol
        self.children: Tuple['Expression', ...] = children

    # ---- kind predicates -------------------------------------------

    def is_value(self) -> bool:
        return self.exp_type in _VALUE_TYPES

    def is_const(self) -> bool:
        return self.exp_type is ExpressionType.VALUE_CONST

    def is_var(self) -> bool:
        return self.exp_type is ExpressionType.VALUE_VAR

    def is_statement(self) -> bool:
        return self.exp_type is ExpressionType.STATEMENT_OPERATOR_BINARY

    def is_equation(self) -> bool:
        return self.is_statement() and self.symbol == "="

    def is_implication(self) -> bool:
        return self.is_statement() and self.symbol == "=>"

    def is_assoc_train(self) -> bool:
        return self.exp_type is ExpressionType.ASSOC_TRAIN

    def is_variadic_train(self) -> bool:
        """True for a train whose only child is a Variadic marker."""
        return (self.is_assoc_train() and len(self.children) == 1
                and self.children[0].exp_type is ExpressionType.VARIADIC)

    def contains_variable(self) -> bool:
        if self.is_var():
            return True
        return any(child.contains_variable() for child in self.children)

    def variables(self, skip_variadic: bool = False) -> List[str]:
        """
        Distinct free-variable symbols in preorder.

        Args:
            skip_variadic: ignore variables that only occur inside
                variadic templates
        """
        found: List[str] = []

        def visit(node: Expression):
            if node.is_var():
                if node.symbol not in found:
                    found.append(node.symbol)
                return
            if skip_variadic and node.exp_type is ExpressionType.VARIADIC:
                return
            for child in node.children:
                visit(child)

        visit(self)
        return found

    # ---- rebuilding ------------------------------------------------

    def with_children(self, children: Iterable['Expression']) -> 'Expression':
        return Expression(self.exp_type, self.symbol, children)

    def with_type(self, exp_type: ExpressionType) -> 'Expression':
        return Expression(exp_type, self.symbol, self.children)

    def substitute_symbol(self, old: str, new: str) -> 'Expression':
        """
        Rename every node carrying ``old``, leaves and operators alike.

        The rename is not capture-aware: bound and free occurrences are
        treated the same.
        """
        symbol = new if self.symbol == old else self.symbol
        return Expression(self.exp_type, symbol,
                          (child.substitute_symbol(old, new) for child in self.children))

    def rename_variables(self, mapping: Dict[str, str]) -> 'Expression':
        """Rename free-variable leaves in one simultaneous pass."""
        if self.is_var():
            return Expression(self.exp_type, mapping.get(self.symbol, self.symbol))
        if not self.children:
            return self
        return self.with_children(child.rename_variables(mapping) for child in self.children)

    def variadic_instance(self, index: int, const_symbols: Iterable[str] = ()) -> 'Expression':
        """
        The ``index``-th copy of a variadic train's template.

        Free variables of the template, except ``const_symbols``, are
        renamed ``symbol_index``.
        """
        template = self.children[0].children[0]
        keep = set(const_symbols)
        mapping = {name: f"{name}_{index}" for name in template.variables() if name not in keep}
        return template.rename_variables(mapping)

    # ---- addressing ------------------------------------------------

    def at(self, address: Address) -> 'Expression':
        """
        The node at ``address.path``; ``address.sub`` is not resolved.

        Raises:
            InvalidAddress: if the path leaves the tree
        """
        node = self
        for depth, index in enumerate(address.path):
            if index < 0 or index >= len(node.children):
                raise InvalidAddress(
                    f"no child {index} at depth {depth} of {self.to_string(True)}")
            node = node.children[index]
        return node

    def resolve(self, address: Address) -> 'Expression':
        """Like at(), but a set sub yields the virtual pair it selects."""
        node = self.at(address)
        if address.sub is None:
            return node
        return node.generate_subexpr_from_train(address.sub)

    def generate_subexpr_from_train(self, index: int) -> 'Expression':
        """
        Build the binary node for train children ``index`` and ``index + 1``.

        Raises:
            NotAnAssocTrain: if this node is not a train
            InvalidAddress: if ``index + 1`` is past the end
        """
        if not self.is_assoc_train():
            raise NotAnAssocTrain(f"{self.to_string(True)} is not an associative train")
        if index < 0 or index + 1 >= len(self.children):
            raise InvalidAddress(f"train has no pair at {index}")
        return Expression(ExpressionType.OPERATOR_BINARY, self.symbol,
                          self.children[index:index + 2])

    def replace_in_train(self, new: 'Expression', index: int) -> 'Expression':
        """Replace the pair starting at ``index`` with the single node ``new``."""
        if not self.is_assoc_train():
            raise NotAnAssocTrain(f"{self.to_string(True)} is not an associative train")
        if index < 0 or index + 1 >= len(self.children):
            raise InvalidAddress(f"train has no pair at {index}")
        return self.with_children(self.children[:index] + (new,) + self.children[index + 2:])

    def replace_expression_at(self, new: 'Expression', address: Address) -> 'Expression':
        """
        Return a new tree with the node at ``address`` replaced by ``new``.

        Only the ancestors on the path are rebuilt. With ``address.sub``
        set, the addressed train loses one child: the selected pair
        becomes ``new``.
        """
        return self._replace(new, address.path, address.sub)

    def _replace(self, new: 'Expression', path: Tuple[int, ...], sub: Optional[int]) -> 'Expression':
        if not path:
            return new if sub is None else self.replace_in_train(new, sub)
        index = path[0]
        if index < 0 or index >= len(self.children):
            raise InvalidAddress(f"no child {index} in {self.to_string(True)}")
        children = list(self.children)
        children[index] = children[index]._replace(new, path[1:], sub)
        return self.with_children(children)

    def walk(self, address: Optional[Address] = None) -> Iterator[Tuple[Address, 'Expression']]:
        """Yield ``(address, node)`` in preorder, children left to right."""
        address = address or Address()
        yield address, self
        for index, child in enumerate(self.children):
            yield from child.walk(address.append(index))

    # ---- display ---------------------------------------------------

    def to_string(self, parentheses: bool = True) -> str:
        """
        Render in infix notation.

        With ``parentheses`` every operator application is wrapped,
        which makes the output unambiguous:

            ((2 * x) + (-1) + 1)
            f(a, b)
            ((A_1 * x) + (A_2 * x) + ...)
        """
        kind = self.exp_type
        if kind in _VALUE_TYPES:
            return self.symbol
        if kind is ExpressionType.OPERATOR_NARY:
            args = ", ".join(child.to_string(parentheses) for child in self.children)
            return f"{self.symbol}({args})"
        if kind is ExpressionType.VARIADIC:
            return f"{VARIADIC_SYMBOL}({self.children[0].to_string(parentheses)})"

        if kind is ExpressionType.OPERATOR_UNARY:
            text = f"{self.symbol}{self.children[0].to_string(parentheses)}"
        elif self.is_variadic_train():
            parts = [self.variadic_instance(i).to_string(parentheses) for i in (1, 2)]
            text = f" {self.symbol} ".join(parts + [VARIADIC_SYMBOL])
        else:
            text = f" {self.symbol} ".join(child.to_string(parentheses)
                                           for child in self.children)
        return f"({text})" if parentheses else text

    def to_prefix(self) -> str:
        """Render in the prefix notation accepted by parse_prefix()."""
        if self.is_value():
            return self.symbol
        return f"{self.symbol}({','.join(child.to_prefix() for child in self.children)})"

    def __str__(self) -> str:
        return self.to_string(True)

    def __repr__(self) -> str:
        return f"Expression({self.to_prefix()!r})"

    def __eq__(self, other):
        if not isinstance(other, Expression):
            return NotImplemented
        return (self.exp_type is other.exp_type and self.symbol == other.symbol
                and self.children == other.children)

    def __hash__(self):
        return hash((self.exp_type, self.symbol, self.children))


def const(symbol) -> Expression:
    return Expression(ExpressionType.VALUE_CONST, str(symbol))


def var(symbol: str) -> Expression:
    return Expression(ExpressionType.VALUE_VAR, symbol)


def unary(symbol: str, child: Expression) -> Expression:
    return Expression(ExpressionType.OPERATOR_UNARY, symbol, (child,))


def binary(symbol: str, left: Expression, right: Expression) -> Expression:
    return Expression(ExpressionType.OPERATOR_BINARY, symbol, (left, right))


def nary(symbol: str, *children: Expression) -> Expression:
    return Expression(ExpressionType.OPERATOR_NARY, symbol, children)


def equation(lhs: Expression, rhs: Expression) -> Expression:
    return Expression(ExpressionType.STATEMENT_OPERATOR_BINARY, "=", (lhs, rhs))


def implication(premise: Expression, conclusion: Expression) -> Expression:
    return Expression(ExpressionType.STATEMENT_OPERATOR_BINARY, "=>", (premise, conclusion))


def train(symbol: str, *children: Expression) -> Expression:
    return Expression(ExpressionType.ASSOC_TRAIN, symbol, children)


def variadic_train(symbol: str, template: Expression) -> Expression:
    """``symbol(...(template))``: one-or-more repetitions of ``template``."""
    marker = Expression(ExpressionType.VARIADIC, VARIADIC_SYMBOL, (template,))
    return Expression(ExpressionType.ASSOC_TRAIN, symbol, (marker,))
