"""
Worksheets: step-by-step derivation histories.

EQSHEET - step-by-step equation worksheets

A Worksheet holds independent sequences of expression lines that share
one WorksheetContext (rules, normalization, action suggestions and the
label registry). Sequences are checked out, extended, and stored back:

    ws = Worksheet(WorksheetContext.from_ruleset(rules, AlgebraNormalizer(), AlgebraActions()))
    index = ws.introduce_expression(E.infix("2 * x - 1 = 3", ctx))
    seq = ws.get_workable_expression_sequence(index)
    seq.try_apply_action_by_index([Address(), Address([0, 1])], 0)
    ws.store(index, seq)

Storing a sequence publishes its labelled lines so other sequences can
substitute them or start from them.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import ExpressionError
from .expression import Address, Context, Expression
from .rewriter import apply_equation_at, get_possible_equation_application_addresses
from .rule import Rule, RuleSet, apply_rule_at

logger = logging.getLogger(__name__)

MAX_AUTO_ITERATIONS = 100


# ============================================================
# Actions and lines
# ============================================================

class Action:
    """
    How a line was produced.

    Three kinds exist: Introduce (optionally from a label), ApplyRule
    (shown as the rule label) and ApplyAction (shown as its description).
    """

    INTRODUCE = "Introduce"
    APPLY_RULE = "ApplyRule"
    APPLY_ACTION = "ApplyAction"

    __slots__ = ('kind', 'text')

    def __init__(self, kind: str, text: Optional[str] = None):
        self.kind = kind
        self.text = text

    @classmethod
    def introduce(cls, source: Optional[str] = None) -> 'Action':
        return cls(cls.INTRODUCE, source)

    @classmethod
    def apply_rule(cls, label: str) -> 'Action':
        return cls(cls.APPLY_RULE, label)

    @classmethod
    def apply_action(cls, description: str) -> 'Action':
        return cls(cls.APPLY_ACTION, description)

    def __str__(self) -> str:
        if self.kind == self.INTRODUCE:
            return "Introduce" if self.text is None else f"Introduce from {self.text}"
        return self.text

    def __eq__(self, other):
        if isinstance(other, Action):
            return self.kind == other.kind and self.text == other.text
        return NotImplemented

    def __hash__(self):
        return hash((self.kind, self.text))

    def __repr__(self) -> str:
        return f"Action({self.kind}, {self.text!r})"


class ExpressionLine:
    """One history entry."""

    __slots__ = ('action', 'expr', 'label', 'is_auto_generated')

    def __init__(self, action: Action, expr: Expression, label: Optional[str] = None,
                 is_auto_generated: bool = False):
        self.action = action
        self.expr = expr
        self.label = label
        self.is_auto_generated = is_auto_generated

    def copy(self) -> 'ExpressionLine':
        return ExpressionLine(self.action, self.expr, self.label, self.is_auto_generated)

    def __repr__(self) -> str:
        extra = f", label={self.label!r}" if self.label else ""
        if self.is_auto_generated:
            extra += ", auto"
        return f"ExpressionLine({self.action}: {self.expr}{extra})"


# ============================================================
# Strategies
# ============================================================

class Normalizer(ABC):
    """Brings every pushed expression into a canonical form."""

    @abstractmethod
    def normalize(self, expr: Expression, ctx: Context) -> Expression:
        ...


class ActionProvider(ABC):
    """Suggests domain-specific steps for an address selection."""

    @abstractmethod
    def get_possible_actions(self, expr: Expression, wctx: 'WorksheetContext',
                             selection: Sequence[Address]) -> List[Tuple[Action, Expression]]:
        ...


class IdentityNormalizer(Normalizer):
    def normalize(self, expr: Expression, ctx: Context) -> Expression:
        return expr


class NoActions(ActionProvider):
    def get_possible_actions(self, expr, wctx, selection):
        return []


class FunctionNormalizer(Normalizer):
    """Adapts a plain ``fn(expr, ctx)`` callable."""

    def __init__(self, fn: Callable[[Expression, Context], Expression]):
        self.fn = fn

    def normalize(self, expr: Expression, ctx: Context) -> Expression:
        return self.fn(expr, ctx)


class FunctionActions(ActionProvider):
    """Adapts a plain ``fn(expr, wctx, selection)`` callable."""

    def __init__(self, fn: Callable):
        self.fn = fn

    def get_possible_actions(self, expr, wctx, selection):
        return self.fn(expr, wctx, selection)


# ============================================================
# Shared context
# ============================================================

class WorksheetContext:
    """
    Configuration shared by every sequence of a worksheet.

    Args:
        context: parsing/normalization Context
        normalizer: Normalizer applied on every push
        rule_map: rule id -> Rule
        rule_ids: menu order of the rules
        auto_rule_ids: rules applied automatically after each push, in
            priority order
        action_provider: ActionProvider for domain suggestions
    """

    def __init__(self, context: Optional[Context] = None,
                 normalizer: Optional[Normalizer] = None,
                 rule_map: Optional[Dict[str, Rule]] = None,
                 rule_ids: Optional[Sequence[str]] = None,
                 auto_rule_ids: Sequence[str] = (),
                 action_provider: Optional[ActionProvider] = None):
        self.context = context or Context()
        self.normalizer = normalizer or IdentityNormalizer()
        self.rule_map: Dict[str, Rule] = dict(rule_map or {})
        self.rule_ids: List[str] = list(rule_ids) if rule_ids is not None else list(self.rule_map)
        self.auto_rule_ids: List[str] = list(auto_rule_ids)
        self.action_provider = action_provider or NoActions()
        self._labels: List[Tuple[str, Expression]] = []

    @classmethod
    def from_ruleset(cls, ruleset: RuleSet, normalizer: Optional[Normalizer] = None,
                     action_provider: Optional[ActionProvider] = None,
                     parameters: Iterable[str] = ()) -> 'WorksheetContext':
        """Context using ``ruleset``'s rules and a copy of its Context."""
        return cls(ruleset.context.copy().add_params(parameters), normalizer,
                   ruleset.rule_map, ruleset.rule_ids, ruleset.auto_rule_ids, action_provider)

    def normalize(self, expr: Expression) -> Expression:
        return self.normalizer.normalize(expr, self.context)

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self.rule_map.get(rule_id)

    def register_label(self, label: str, expr: Expression) -> bool:
        """Record ``label`` for ``expr``; False if that exact pair is known."""
        if (label, expr) in self._labels:
            return False
        self._labels.append((label, expr))
        return True

    def get_label(self, label: str) -> Expression:
        """
        The expression most recently registered under ``label``.

        Raises:
            KeyError: if the label was never registered
        """
        for name, expr in reversed(self._labels):
            if name == label:
                return expr
        raise KeyError(f"Unknown label '{label}'")

    @property
    def labels(self) -> List[Tuple[str, Expression]]:
        return list(self._labels)

    def copy(self) -> 'WorksheetContext':
        clone = WorksheetContext(self.context.copy(), self.normalizer, self.rule_map,
                                 self.rule_ids, self.auto_rule_ids, self.action_provider)
        clone._labels = list(self._labels)
        return clone


# ============================================================
# Sequences
# ============================================================

class ExpressionSequence:
    """A stored history, detached from any context."""

    def __init__(self, history: Iterable[ExpressionLine] = ()):
        self.history: List[ExpressionLine] = [line.copy() for line in history]

    def __len__(self) -> int:
        return len(self.history)

    def __iter__(self) -> Iterator[ExpressionLine]:
        return iter(self.history)

    def __getitem__(self, index: int) -> ExpressionLine:
        return self.history[index]


class WorkableExpressionSequence:
    """
    A history being extended under a WorksheetContext.

    Every push normalizes the new expression and then runs the auto
    rules to a fixed point (at most MAX_AUTO_ITERATIONS applications).
    The try_* methods never raise on rewrite failures: they log the
    error, leave the history untouched and return False.
    """

    def __init__(self, ctx: WorksheetContext, history: Iterable[ExpressionLine] = ()):
        self.ctx = ctx
        self.history: List[ExpressionLine] = [line.copy() for line in history]

    @property
    def last_expression(self) -> Optional[Expression]:
        return self.history[-1].expr if self.history else None

    def seed(self, action: Action, expr: Expression) -> None:
        """Record ``expr`` exactly as given, without normalization."""
        self.history.append(ExpressionLine(action, expr))

    def push(self, action: Action, expr: Expression) -> None:
        self.history.append(ExpressionLine(action, self.ctx.normalize(expr)))
        self.try_apply_auto_rules()

    def try_push(self, action: Action, produce: Callable[[], Expression]) -> bool:
        """
        Push the expression ``produce()`` returns.

        Returns:
            False, with the history unchanged, if ``produce`` raised an
            ExpressionError
        """
        try:
            expr = produce()
        except ExpressionError as e:
            logger.warning("%s failed: %s: %s", action, type(e).__name__, e)
            return False
        self.push(action, expr)
        return True

    def try_apply_auto_rules(self) -> None:
        """Apply the first applicable auto rule until none applies."""
        if not self.ctx.auto_rule_ids or not self.history:
            return
        for _ in range(MAX_AUTO_ITERATIONS):
            if not self._apply_first_auto_rule():
                return
        logger.warning("auto rules stopped after %d applications", MAX_AUTO_ITERATIONS)

    def _apply_first_auto_rule(self) -> bool:
        expr = self.last_expression
        for rule_id in self.ctx.auto_rule_ids:
            rule = self.ctx.get_rule(rule_id)
            if rule is None:
                continue
            for address in self._rule_addresses(rule, expr):
                try:
                    result = apply_rule_at(rule, expr, address)
                except ExpressionError:
                    continue
                logger.debug("auto rule %s at %s", rule_id, address)
                self.history.append(ExpressionLine(Action.apply_rule(rule.label),
                                                   self.ctx.normalize(result),
                                                   is_auto_generated=True))
                return True
        return False

    @staticmethod
    def _rule_addresses(rule: Rule, expr: Expression) -> List[Address]:
        if rule.is_implication():
            return [Address()]
        return get_possible_equation_application_addresses(expr, rule.expression)

    def apply_rule_at(self, rule_id: str, address: Address) -> bool:
        """Apply the rule ``rule_id`` at ``address`` as a user step."""
        rule = self.ctx.get_rule(rule_id)
        if rule is None:
            logger.warning("unknown rule %r", rule_id)
            return False
        expr = self.last_expression
        return self.try_push(Action.apply_rule(rule.label),
                             lambda: apply_rule_at(rule, expr, address))

    def get_possible_actions(self, selection: Sequence[Address]) -> List[Tuple[Action, Expression]]:
        """
        Candidate steps for ``selection`` (a click path, most recent last).

        Labelled equations are offered first, as substitutions at the last
        address, followed by the context's action provider suggestions.
        """
        expr = self.last_expression
        if expr is None or not selection:
            return []
        actions: List[Tuple[Action, Expression]] = []
        for label, labelled in self.ctx.labels:
            try:
                result = apply_equation_at(expr, labelled, selection[-1])
            except ExpressionError:
                continue
            actions.append((Action.apply_action(f"Substitute from {label}"), result))
        actions.extend(self.ctx.action_provider.get_possible_actions(expr, self.ctx, selection))
        return actions

    def try_apply_action_by_index(self, selection: Sequence[Address], index: int) -> bool:
        actions = self.get_possible_actions(selection)
        if not 0 <= index < len(actions):
            logger.warning("no action %d for selection %s (%d available)",
                           index, [str(a) for a in selection], len(actions))
            return False
        action, expr = actions[index]
        self.push(action, expr)
        return True

    def label_expression(self, label: Optional[str], index: int) -> None:
        """Attach ``label`` to line ``index``; None clears it."""
        self.history[index].label = label

    def reset_to(self, index: int) -> None:
        """Keep lines ``0..index`` and discard the rest."""
        if not 0 <= index < len(self.history):
            raise IndexError(f"history has no line {index}")
        del self.history[index + 1:]

    def to_sequence(self) -> ExpressionSequence:
        return ExpressionSequence(self.history)

    def format(self) -> str:
        """One ``n. action: expression`` line per history entry."""
        lines = []
        for i, line in enumerate(self.history):
            text = f"{i}. {line.action}: {line.expr}"
            if line.label:
                text += f"  [{line.label}]"
            if line.is_auto_generated:
                text += "  (auto)"
            lines.append(text)
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.history)

    def __iter__(self) -> Iterator[ExpressionLine]:
        return iter(self.history)

    def __getitem__(self, index: int) -> ExpressionLine:
        return self.history[index]


# ============================================================
# Worksheet
# ============================================================

class Worksheet:
    """A set of sequences sharing one WorksheetContext."""

    def __init__(self, context: Optional[WorksheetContext] = None):
        self.context = context or WorksheetContext()
        self.sequences: List[ExpressionSequence] = []

    def set_rule_map(self, rule_map: Dict[str, Rule], rule_ids: Optional[Sequence[str]] = None,
                     auto_rule_ids: Sequence[str] = ()) -> 'Worksheet':
        self.context.rule_map = dict(rule_map)
        self.context.rule_ids = list(rule_ids) if rule_ids is not None else list(rule_map)
        self.context.auto_rule_ids = list(auto_rule_ids)
        return self

    def set_ruleset(self, ruleset: RuleSet) -> 'Worksheet':
        return self.set_rule_map(ruleset.rule_map, ruleset.rule_ids, ruleset.auto_rule_ids)

    def set_normalization_function(self, normalizer) -> 'Worksheet':
        """Accepts a Normalizer or a plain ``fn(expr, ctx)``."""
        if not isinstance(normalizer, Normalizer):
            normalizer = FunctionNormalizer(normalizer)
        self.context.normalizer = normalizer
        return self

    def set_get_possible_actions_function(self, provider) -> 'Worksheet':
        """Accepts an ActionProvider or a plain ``fn(expr, wctx, selection)``."""
        if not isinstance(provider, ActionProvider):
            provider = FunctionActions(provider)
        self.context.action_provider = provider
        return self

    def _start(self, action: Action, expr: Expression) -> int:
        seq = WorkableExpressionSequence(self.context)
        seq.seed(action, expr)
        self.sequences.append(seq.to_sequence())
        return len(self.sequences) - 1

    def introduce_expression(self, expr: Expression) -> int:
        """Start a new sequence with ``expr``; returns its index."""
        return self._start(Action.introduce(), expr)

    def introduce_from_label(self, label: str) -> int:
        """
        Start a new sequence from a labelled expression.

        Raises:
            KeyError: if ``label`` is unknown
        """
        return self._start(Action.introduce(label), self.context.get_label(label))

    def get_workable_expression_sequence(self, index: int) -> WorkableExpressionSequence:
        return WorkableExpressionSequence(self.context, self.sequences[index].history)

    def store(self, index: int, sequence: WorkableExpressionSequence) -> None:
        """Save ``sequence`` at ``index`` and publish its labels."""
        self.sequences[index] = sequence.to_sequence()
        for line in sequence.history:
            if line.label and self.context.register_label(line.label, line.expr):
                logger.debug("label %r published", line.label)

    def __len__(self) -> int:
        return len(self.sequences)

    def __getitem__(self, index: int) -> ExpressionSequence:
        return self.sequences[index]
