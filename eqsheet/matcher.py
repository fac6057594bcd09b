"""
One-directional pattern matching over expression trees.

EQSHEET - step-by-step equation worksheets

A pattern is an ordinary Expression whose ValueVar leaves are pattern
variables. Matching binds each variable to the subject sub-tree found at
the same position; a variable seen twice must bind to equal sub-trees.
Constants, operators and arity must agree exactly. There is no
backtracking.

Variadic trains (``+(...(A))``) match any train of the same operator.
The pattern is first expanded to the subject's length, with ``A``
renamed to ``A_1 .. A_n``, and the arity is recorded under the
``"..."`` key as a numeral.
"""

from typing import Any, Dict, Iterable, List, Tuple, Union

from .errors import NotAParentOfVariadic, PatternDoesNotMatch
from .expression import Address, Expression, const, train

VARIADIC_ARITY_KEY = "..."

# Internal bindings: a plain dict, or FAILED once a match is impossible
BindingsType = Union[Dict[str, Expression], str]
FAILED = "failed"


# ============================================================
# MatchMap - Dict-like interface for match results
# ============================================================

class MatchMap:
    """
    Dict-like mapping from pattern variable to the bound Expression.

    Match maps are truthy. A failed match is NoMatch, which is falsy:

        if bindings := match(expr, pattern):
            print(bindings["X"])

    Examples:
        m = MatchMap({"X": E("a")})
        m["X"]          # => a
        "Y" in m        # => False
        m.arity         # => None (no variadic binding)
    """

    __slots__ = ('_dict',)

    def __init__(self, bindings: Union[Dict[str, Expression], Iterable[Tuple[str, Expression]], None] = None):
        self._dict: Dict[str, Expression] = dict(bindings or {})

    def __bool__(self) -> bool:
        return True

    def __getitem__(self, key: str) -> Expression:
        return self._dict[key]

    def get(self, key: str, default=None):
        return self._dict.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._dict

    def keys(self):
        return self._dict.keys()

    def values(self):
        return self._dict.values()

    def items(self):
        return self._dict.items()

    def __iter__(self):
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}: {v}" for k, v in self._dict.items())
        return f"MatchMap({{{inner}}})"

    def __eq__(self, other):
        if isinstance(other, MatchMap):
            return self._dict == other._dict
        return False

    @property
    def arity(self):
        """Resolved variadic arity, or None if nothing variadic matched."""
        bound = self._dict.get(VARIADIC_ARITY_KEY)
        return None if bound is None else int(bound.symbol)

    def to_dict(self) -> Dict[str, Any]:
        return self._dict.copy()


class _NoMatch:
    """Falsy singleton returned by match() when nothing binds."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoMatch"

    def __getitem__(self, key: str):
        raise KeyError(f"NoMatch has no binding for '{key}'")

    def get(self, key: str, default=None):
        return default

    def __contains__(self, key: str) -> bool:
        return False

    def __len__(self) -> int:
        return 0


NoMatch = _NoMatch()


def wrap_bindings(result: BindingsType) -> Union[MatchMap, _NoMatch]:
    """Convert internal bindings to a MatchMap, or NoMatch on failure."""
    if result == FAILED:
        return NoMatch
    return MatchMap(result)


# ============================================================
# Variadic expansion
# ============================================================

def expand_variadic(expr: Expression, n: int, const_symbols: Iterable[str] = ()) -> Expression:
    """
    Expand ``op(...(T))`` into the concrete train ``op(T_1, ..., T_n)``.

    Args:
        expr: a train whose single child is a Variadic marker
        n: number of instances, at least 1
        const_symbols: template variables shared by every instance,
            left unrenamed

    Raises:
        NotAParentOfVariadic: if expr has another shape

    Examples:
        expand_variadic(E("+(...(*(X,A)))"), 3, ["X"])
        # => ((X * A_1) + (X * A_2) + (X * A_3))
    """
    if not expr.is_variadic_train():
        raise NotAParentOfVariadic(f"{expr} is not a variadic train")
    if n < 1:
        raise ValueError(f"variadic arity must be positive, got {n}")
    const_symbols = list(const_symbols)
    return train(expr.symbol, *(expr.variadic_instance(i, const_symbols) for i in range(1, n + 1)))


# ============================================================
# Pattern Matching
# ============================================================

def extend_bindings(name: str, value: Expression, bindings: BindingsType) -> BindingsType:
    """Bind ``name`` to ``value``, failing on a conflicting earlier binding."""
    if bindings == FAILED:
        return FAILED
    if name in bindings:
        return bindings if bindings[name] == value else FAILED
    extended = dict(bindings)
    extended[name] = value
    return extended


def match_node(pat: Expression, exp: Expression, bindings: BindingsType,
               shared: Iterable[str] = ()) -> BindingsType:
    """
    Match pattern ``pat`` against subject ``exp``, threading bindings.

    Args:
        pat: the pattern
        exp: the subject
        bindings: bindings so far, or FAILED
        shared: variables that keep their name inside variadic templates

    Returns:
        Updated bindings on success, FAILED on failure
    """
    if bindings == FAILED:
        return FAILED

    if pat.is_var():
        return extend_bindings(pat.symbol, exp, bindings)

    if pat.is_const():
        return bindings if exp.is_const() and exp.symbol == pat.symbol else FAILED

    if pat.is_variadic_train():
        if not exp.is_assoc_train() or exp.symbol != pat.symbol:
            return FAILED
        expanded = expand_variadic(pat, len(exp.children), shared)
        bindings = extend_bindings(VARIADIC_ARITY_KEY, const(len(exp.children)), bindings)
        return match_children(expanded.children, exp.children, bindings, shared)

    if (pat.exp_type is not exp.exp_type or pat.symbol != exp.symbol
            or len(pat.children) != len(exp.children)):
        return FAILED

    return match_children(pat.children, exp.children, bindings, shared)


def match_children(pats, exps, bindings: BindingsType, shared: Iterable[str] = ()) -> BindingsType:
    """Match child lists pairwise, left to right."""
    for pat, exp in zip(pats, exps):
        bindings = match_node(pat, exp, bindings, shared)
        if bindings == FAILED:
            return FAILED
    return bindings


def match(expr: Expression, pattern: Expression) -> Union[MatchMap, _NoMatch]:
    """
    Match ``pattern`` directly against ``expr``.

    Returns:
        MatchMap on success, NoMatch on failure
    """
    shared = pattern.variables(skip_variadic=True)
    return wrap_bindings(match_node(pattern, expr, {}, shared))


def pattern_match_this_node(expr: Expression, pattern: Expression) -> MatchMap:
    """
    Match ``pattern`` against ``expr`` itself, with no search.

    Raises:
        PatternDoesNotMatch: if the pattern does not unify
    """
    bindings = match(expr, pattern)
    if not bindings:
        raise PatternDoesNotMatch(f"{pattern} does not match {expr}")
    return bindings


def pattern_match_at(expr: Expression, pattern: Expression, address: Address) -> MatchMap:
    """
    Resolve ``address`` (including a train sub-pair) and match there.

    Raises:
        InvalidAddress, NotAnAssocTrain: if the address does not resolve
        PatternDoesNotMatch: if the pattern does not unify
    """
    return pattern_match_this_node(expr.resolve(address), pattern)


def get_pattern_matches(expr: Expression, pattern: Expression) -> List[Tuple[Address, MatchMap]]:
    """
    Every position where ``pattern`` matches, in traversal order.

    Each node is tried directly, then, if it is a train, each adjacent
    pair by ascending sub index, then its children left to right.
    """
    found: List[Tuple[Address, MatchMap]] = []

    def visit(node: Expression, address: Address):
        bindings = match(node, pattern)
        if bindings:
            found.append((address, bindings))
        if node.is_assoc_train():
            for i in range(len(node.children) - 1):
                bindings = match(node.generate_subexpr_from_train(i), pattern)
                if bindings:
                    found.append((address.with_sub(i), bindings))
        for index, child in enumerate(node.children):
            visit(child, address.append(index))

    visit(expr, Address())
    return found


# ============================================================
# Instantiation
# ============================================================

def apply_match_map(expr: Expression, match_map: MatchMap) -> Expression:
    """
    Substitute bound variables throughout ``expr``.

    Variadic trains are materialized first, using the arity bound under
    ``"..."``; template variables that are themselves bound keep their
    name in every instance. Unbound variables are left as they are.
    """
    if expr.is_var():
        return match_map.get(expr.symbol, expr)
    if expr.is_variadic_train() and VARIADIC_ARITY_KEY in match_map:
        expanded = expand_variadic(expr, match_map.arity, match_map.keys())
        return apply_match_map(expanded, match_map)
    if not expr.children:
        return expr
    return expr.with_children(apply_match_map(child, match_map) for child in expr.children)


def is_equivalent_to(expr: Expression, other: Expression) -> bool:
    """
    True if ``other``, used as a pattern, matches ``expr`` and substituting
    the bindings back into ``other`` reproduces ``expr`` exactly.
    """
    bindings = match(expr, other)
    if not bindings:
        return False
    return apply_match_map(other, bindings) == expr
