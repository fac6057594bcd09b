"""
Rules, rule sets and the JSON rule-set loader.

EQSHEET - step-by-step equation worksheets

A rule is a labelled equation or implication. A rule set is an ordered,
named collection of rules together with the Context their text was
parsed in, and the subset of rule ids applied automatically.

JSON Format:
    {
        "name": "algebra",
        "context": {"base": "arithmetic", "parameters": []},
        "variations": [
            {"expr_prefix": "=(+(A,B),+(B,A))"}
        ],
        "normalization": "algebra",
        "rules": [
            {"id": "add_zero", "label": "Addition with 0",
             "expr_prefix": "=(+(X,0),X)"},
            {"id": "flip", "label": "Flip the equation",
             "expr": "(A = B) => (B = A)", "auto": false}
        ]
    }

Variations are equations applied to the root of each rule's left side,
to close the rule set under commutativity and similar symmetries. A rule
with more than one resulting form gets ids ``name/id/0``, ``name/id/1``
and so on; otherwise its id is ``name/id``.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Union

from .arithmetic import arithmetic_context
from .errors import ExpressionError, InvalidAddress, InvalidRule, ParseError, RuleSetError
from .expression import Address, Context, Expression
from .matcher import is_equivalent_to
from .parser import parse_infix, parse_prefix
from .rewriter import apply_equation_at, apply_equation_ltr_this_node, apply_implication

logger = logging.getLogger(__name__)

BUILTIN_RULES_DIR = Path(__file__).parent / "rules"

CONTEXT_BASES = {
    "arithmetic": arithmetic_context,
}


class Rule:
    """An identified, labelled equation or implication."""

    __slots__ = ('id', 'label', 'expression')

    def __init__(self, id: str, label: str, expression: Expression):
        if not (expression.is_equation() or expression.is_implication()):
            raise InvalidRule(f"rule {id!r} is neither an equation nor an implication: {expression}")
        self.id = id
        self.label = label
        self.expression = expression

    def is_equation(self) -> bool:
        return self.expression.is_equation()

    def is_implication(self) -> bool:
        return self.expression.is_implication()

    @property
    def lhs(self) -> Expression:
        return self.expression.children[0]

    def to_dict(self) -> Dict:
        return {"id": self.id, "label": self.label, "expr_prefix": self.expression.to_prefix()}

    def __eq__(self, other):
        if isinstance(other, Rule):
            return (self.id, self.label, self.expression) == (other.id, other.label, other.expression)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Rule({self.id!r}, {self.label!r}, {self.expression})"


def apply_rule_at(rule: Rule, expr: Expression, address: Address) -> Expression:
    """
    Apply ``rule`` to ``expr`` at ``address``.

    Equations rewrite the addressed node. Implications rewrite the whole
    statement, so they only apply at the root.

    Raises:
        InvalidAddress: for an implication away from the root
        InvalidRule: for a rule that is neither kind
    """
    if rule.is_equation():
        return apply_equation_at(expr, rule.expression, address)
    if rule.is_implication():
        if not address.is_root():
            raise InvalidAddress(f"implication {rule.id!r} only applies at the root")
        return apply_implication(expr, rule.expression)
    raise InvalidRule(f"cannot apply {rule.id!r}")


def generate_variations(expression: Expression, variations: Sequence[Expression]) -> List[Expression]:
    """
    Close ``expression`` under the ``variations`` applied at its lhs root.

    The original comes first; forms whose left side is equivalent to one
    already generated are dropped.
    """
    results = [expression]
    position = 0
    while position < len(results):
        lhs, rhs = results[position].children
        position += 1
        for variation in variations:
            try:
                new_lhs = apply_equation_ltr_this_node(lhs, variation)
            except ExpressionError:
                continue
            if any(is_equivalent_to(new_lhs, known.children[0]) for known in results):
                continue
            results.append(expression.with_children((new_lhs, rhs)))
    return results


class RuleSet:
    """
    A named, ordered collection of rules.

    Examples:
        rules = RuleSet.from_file("algebra.json")
        rules["algebra/div_one"].label     # => "Division by 1"
        "algebra/flip" in rules            # => True
        rules.auto_rule_ids                # ids applied after every step
    """

    def __init__(self, name: str, context: Optional[Context] = None,
                 rules: Sequence[Rule] = (), auto_rule_ids: Sequence[str] = (),
                 normalization: Optional[str] = None):
        self.name = name
        self.context = context or Context()
        self.normalization = normalization
        self._rules: List[Rule] = []
        self._by_id: Dict[str, Rule] = {}
        self.auto_rule_ids: List[str] = []
        for rule in rules:
            self.add_rule(rule, auto=rule.id in auto_rule_ids)

    def add_rule(self, rule: Rule, auto: bool = False) -> 'RuleSet':
        """Append a rule (fluent). Ids must be unique."""
        if rule.id in self._by_id:
            raise RuleSetError(f"duplicate rule id {rule.id!r}")
        self._rules.append(rule)
        self._by_id[rule.id] = rule
        if auto:
            self.auto_rule_ids.append(rule.id)
        return self

    @property
    def rules(self) -> List[Rule]:
        return list(self._rules)

    @property
    def rule_ids(self) -> List[str]:
        return [rule.id for rule in self._rules]

    @property
    def rule_map(self) -> Dict[str, Rule]:
        return dict(self._by_id)

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self._by_id.get(rule_id)

    def list_rules(self) -> List[str]:
        """One ``id: label: expression`` line per rule."""
        lines = []
        for rule in self._rules:
            marker = " [auto]" if rule.id in self.auto_rule_ids else ""
            lines.append(f"{rule.id}: {rule.label}: {rule.expression}{marker}")
        return lines

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "normalization": self.normalization,
            "rules": [dict(rule.to_dict(), auto=rule.id in self.auto_rule_ids)
                      for rule in self._rules],
        }

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._by_id

    def __getitem__(self, rule_id: str) -> Rule:
        if rule_id not in self._by_id:
            raise KeyError(f"No rule with id '{rule_id}'")
        return self._by_id[rule_id]

    def __repr__(self) -> str:
        return f"RuleSet({self.name!r}, {len(self)} rules)"

    @classmethod
    def from_json(cls, text: str) -> 'RuleSet':
        return load_ruleset_from_json(text)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'RuleSet':
        return load_ruleset_from_file(path)


# ============================================================
# Loading
# ============================================================

def context_from_dict(data: Dict) -> Context:
    """
    Build a Context from the ``context`` object of a rule-set document.

    ``base`` names a predefined context; the other keys extend it.
    """
    base = data.get("base")
    if base is None:
        ctx = Context()
    elif base in CONTEXT_BASES:
        ctx = CONTEXT_BASES[base]()
    else:
        raise RuleSetError(f"unknown context base {base!r}")
    ctx.add_params(data.get("parameters", []))
    for key in ("unary_ops", "binary_ops", "assoc_ops"):
        ops = getattr(ctx, key)
        ops.extend(op for op in data.get(key, []) if op not in ops)
    if "handle_numerics" in data:
        ctx.handle_numerics = bool(data["handle_numerics"])
    ctx.flags.update(data.get("flags", []))
    return ctx


def _parse_entry(entry: Dict, ctx: Context, where: str) -> Expression:
    try:
        if "expr_prefix" in entry:
            return parse_prefix(entry["expr_prefix"], ctx)
        if "expr" in entry:
            return parse_infix(entry["expr"], ctx)
    except ParseError as e:
        raise RuleSetError(f"{where}: {e}") from e
    raise RuleSetError(f"{where}: needs 'expr_prefix' or 'expr'")


def load_ruleset_from_json(text: str) -> RuleSet:
    """
    Load a rule set from JSON text (see the module docstring).

    Raises:
        RuleSetError: on malformed documents or rules
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise RuleSetError(f"invalid JSON: {e}") from e
    if not isinstance(data, dict) or "name" not in data:
        raise RuleSetError("a rule set needs a 'name'")

    name = data["name"]
    ctx = context_from_dict(data.get("context", {}))
    variations = [_parse_entry(v, ctx, f"variation {i}")
                  for i, v in enumerate(data.get("variations", []))]
    ruleset = RuleSet(name, ctx, normalization=data.get("normalization"))

    for entry in data.get("rules", []):
        if "id" not in entry:
            raise RuleSetError(f"rule without an id in {name!r}")
        where = f"rule {entry['id']!r}"
        expression = _parse_entry(entry, ctx, where)
        if not (expression.is_equation() or expression.is_implication()):
            raise RuleSetError(f"{where}: not an equation or implication")
        label = entry.get("label", entry["id"])
        forms = generate_variations(expression, variations)
        for k, form in enumerate(forms):
            rule_id = f"{name}/{entry['id']}" if len(forms) == 1 else f"{name}/{entry['id']}/{k}"
            ruleset.add_rule(Rule(rule_id, label, form), auto=bool(entry.get("auto", False)))
            logger.debug("loaded rule %s: %s", rule_id, form)

    return ruleset


def load_ruleset_from_file(path: Union[str, Path]) -> RuleSet:
    """Load a rule set from a ``.json`` file."""
    path = Path(path)
    return load_ruleset_from_json(path.read_text())


def load_builtin_ruleset(name: str) -> RuleSet:
    """Load one of the rule sets shipped in ``eqsheet/rules``."""
    path = BUILTIN_RULES_DIR / f"{name}.json"
    if not path.exists():
        available = sorted(p.stem for p in BUILTIN_RULES_DIR.glob("*.json"))
        raise RuleSetError(f"no built-in rule set {name!r} (available: {', '.join(available)})")
    return load_ruleset_from_file(path)
