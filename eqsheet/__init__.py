"""
EQSHEET - step-by-step equation worksheets

A symbolic rewriting engine for worked algebra: expressions are immutable
trees, rules are equations or implications with pattern variables, and a
worksheet records every step of a derivation.

Quick Start:
    from eqsheet import (
        Address, AlgebraActions, AlgebraNormalizer, E, Worksheet,
        WorksheetContext, load_builtin_ruleset,
    )

    rules = load_builtin_ruleset("algebra")
    wctx = WorksheetContext.from_ruleset(rules, AlgebraNormalizer(),
                                         AlgebraActions(), ["x"])
    ws = Worksheet(wctx)
    index = ws.introduce_expression(E.infix("2 * x - 1 = 3", wctx.context))

    seq = ws.get_workable_expression_sequence(index)
    for action, expr in seq.get_possible_actions([Address(), Address([0, 1])]):
        print(action, expr)      # Apply +1 to both side (((2 * x) + (-1) + 1) = (3 + 1))

Notation:
    =(+(X,0),X)          prefix, as used in rule files
    X + 0 = X            infix
    +(...(*(X,A)))       variadic train: (A_1 * X) + (A_2 * X) + ...

Symbols declared as parameters (and numerals, in arithmetic contexts) are
constants; every other bare symbol is a pattern variable.

Example Rule Set (rules.json):
    {
        "name": "simple",
        "context": {"base": "arithmetic"},
        "rules": [
            {"id": "add_zero", "label": "Addition with 0", "expr": "X + 0 = X"}
        ]
    }
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    ExpressionError,
    InvalidAddress,
    NotAnEquation,
    NotAnImplication,
    NotAnAssocTrain,
    PatternDoesNotMatch,
    ExpressionContainsVariable,
    EquationLHSMismatch,
    ImplicationLHSMismatch,
    InvalidRule,
    NotAParentOfVariadic,
    ParseError,
    RuleSetError,
)

# Expression model
from .expression import (
    Address,
    Context,
    Expression,
    ExpressionType,
)

# Matching and rewriting
from .matcher import (
    MatchMap,
    NoMatch,
    match,
    expand_variadic,
    pattern_match_this_node,
    pattern_match_at,
    get_pattern_matches,
    apply_match_map,
    is_equivalent_to,
)
from .rewriter import (
    apply_equation_ltr_this_node,
    apply_equation_rtl_this_node,
    apply_equation_at,
    apply_equation_rtl_at,
    apply_implication,
    get_possible_equation_application_addresses,
    swap_assoc_train_children,
    swap_assoc_train_children_at,
)
from .normalize import (
    normalize_sub_to_negative,
    normalize_add_negative_to_sub,
    normalize_to_assoc_train,
    normalize_two_children_assoc_train_to_binary_op,
    normalize_single_children_assoc_train,
)

# Parsing
from .parser import E, parse_prefix, parse_infix

# Rules
from .rule import (
    Rule,
    RuleSet,
    apply_rule_at,
    load_ruleset_from_json,
    load_ruleset_from_file,
    load_builtin_ruleset,
)

# Arithmetic and algebra
from .arithmetic import (
    ArithmeticOperator,
    arithmetic_context,
    identify_arithmetic_operator,
    calculate_numeric,
    generate_simple_arithmetic_equation_at,
)
from .algebra import (
    AlgebraActions,
    AlgebraNormalizer,
    normalize_algebra,
    apply_fraction_arithmetic,
    apply_fraction_arithmetic_at,
    apply_function_to_both_side,
    generate_simple_apply_arithmetic_to_both_side,
    get_possible_actions,
)

# Worksheets
from .worksheet import (
    Action,
    ActionProvider,
    ExpressionLine,
    ExpressionSequence,
    Normalizer,
    WorkableExpressionSequence,
    Worksheet,
    WorksheetContext,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Errors
    "ExpressionError",
    "InvalidAddress",
    "NotAnEquation",
    "NotAnImplication",
    "NotAnAssocTrain",
    "PatternDoesNotMatch",
    "ExpressionContainsVariable",
    "EquationLHSMismatch",
    "ImplicationLHSMismatch",
    "InvalidRule",
    "NotAParentOfVariadic",
    "ParseError",
    "RuleSetError",
    # Expression model
    "Address",
    "Context",
    "Expression",
    "ExpressionType",
    # Matching
    "MatchMap",
    "NoMatch",
    "match",
    "expand_variadic",
    "pattern_match_this_node",
    "pattern_match_at",
    "get_pattern_matches",
    "apply_match_map",
    "is_equivalent_to",
    # Rewriting
    "apply_equation_ltr_this_node",
    "apply_equation_rtl_this_node",
    "apply_equation_at",
    "apply_equation_rtl_at",
    "apply_implication",
    "get_possible_equation_application_addresses",
    "swap_assoc_train_children",
    "swap_assoc_train_children_at",
    # Normalization
    "normalize_sub_to_negative",
    "normalize_add_negative_to_sub",
    "normalize_to_assoc_train",
    "normalize_two_children_assoc_train_to_binary_op",
    "normalize_single_children_assoc_train",
    # Parsing
    "E",
    "parse_prefix",
    "parse_infix",
    # Rules
    "Rule",
    "RuleSet",
    "apply_rule_at",
    "load_ruleset_from_json",
    "load_ruleset_from_file",
    "load_builtin_ruleset",
    # Arithmetic and algebra
    "ArithmeticOperator",
    "arithmetic_context",
    "identify_arithmetic_operator",
    "calculate_numeric",
    "generate_simple_arithmetic_equation_at",
    "AlgebraActions",
    "AlgebraNormalizer",
    "normalize_algebra",
    "apply_fraction_arithmetic",
    "apply_fraction_arithmetic_at",
    "apply_function_to_both_side",
    "generate_simple_apply_arithmetic_to_both_side",
    "get_possible_actions",
    # Worksheets
    "Action",
    "ActionProvider",
    "ExpressionLine",
    "ExpressionSequence",
    "Normalizer",
    "WorkableExpressionSequence",
    "Worksheet",
    "WorksheetContext",
]
