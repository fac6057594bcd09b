#!/usr/bin/env python3
"""
EQSHEET Feature Demonstration

This script walks through the major features of the EQSHEET library.
"""

from eqsheet import (
    Address, E, Worksheet, WorksheetContext,
    AlgebraActions, AlgebraNormalizer,
    apply_equation_at, arithmetic_context, get_pattern_matches,
    load_builtin_ruleset, match,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_matching():
    """Demonstrate pattern matching."""
    section("Pattern Matching")

    ctx = arithmetic_context(["x", "y"])
    pattern = E("+(X,0)", ctx)

    for text in ["+(y,0)", "+(*(2,x),0)", "+(x,1)"]:
        bindings = match(E(text, ctx), pattern)
        shown = {k: str(v) for k, v in bindings.items()} if bindings else "no match"
        print(f"  {text} ~ {pattern} => {shown}")

    variadic = E("*(X,+(...(A)))", ctx)
    expr = E("*(x,+(a,b,c))", ctx)
    print(f"  {expr} ~ {variadic} => {'match' if match(expr, variadic) else 'no match'}")


def demo_rewriting():
    """Demonstrate applying equations at addresses."""
    section("Rewriting at an Address")

    ctx = arithmetic_context(["x"])
    rule = E("=(+(X,0),X)", ctx)
    expr = E("=(*(+(x,0),2),+(4,0))", ctx)

    for address, _ in get_pattern_matches(expr, rule.children[0]):
        print(f"  at {address}: {apply_equation_at(expr, rule, address)}")


def demo_catalog():
    """Show the bundled algebra rules."""
    section("Algebra Rule Catalog")

    for line in load_builtin_ruleset("algebra").list_rules():
        print(f"  {line}")


def demo_worksheet():
    """Solve 2x - 1 = 3 step by step."""
    section("Worksheet: 2x - 1 = 3")

    rules = load_builtin_ruleset("algebra")
    ws = Worksheet(WorksheetContext.from_ruleset(
        rules, AlgebraNormalizer(), AlgebraActions(), ["x"]))
    index = ws.introduce_expression(E.infix("2 * x - 1 = 3", ws.context.context))
    seq = ws.get_workable_expression_sequence(index)

    steps = [
        [Address(), Address([0, 1])],
        [Address([1])],
        [Address([0], sub=1)],
        [Address([0])],
        [Address(), Address([0, 0])],
        [Address([1])],
        [Address([0, 0, 0]), Address([0, 1])],
        [Address([0])],
        [Address([0])],
    ]
    for selection in steps:
        seq.try_apply_action_by_index(selection, 0)

    ws.store(index, seq)
    print(seq.format())


def demo_actions():
    """List the suggestions for a selection."""
    section("Action Suggestions")

    rules = load_builtin_ruleset("algebra")
    ws = Worksheet(WorksheetContext.from_ruleset(
        rules, AlgebraNormalizer(), AlgebraActions(), ["x"]))
    index = ws.introduce_expression(E.infix("1 + x + 2 + 4 = 3", ws.context.context))
    seq = ws.get_workable_expression_sequence(index)

    for selection in ([Address([0, 0]), Address([0, 2])], [Address(), Address([0, 3])]):
        print(f"  selection {[str(a) for a in selection]}:")
        for action, expr in seq.get_possible_actions(selection):
            print(f"    {action} -> {expr}")


def main():
    """Run all demonstrations."""
    print("EQSHEET - step-by-step equation worksheets")
    print("Feature Demonstration")

    demo_matching()
    demo_rewriting()
    demo_catalog()
    demo_worksheet()
    demo_actions()

    print("\n" + "="*60)
    print(" Demo complete!")
    print("="*60)


if __name__ == "__main__":
    main()
