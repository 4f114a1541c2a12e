"""Declarative rules and the dependency graph that links them."""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set

from uad_forms.errors import CyclicRuleGraph, InvalidRule, NotFound
from uad_forms.fields import FieldValue

logger = logging.getLogger(__name__)

OPERATORS = (
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "greater_than",
    "less_than",
    "is_empty",
    "is_not_empty",
)
OPERATOR_LABELS = {
    "equals": "equals",
    "not_equals": "does not equal",
    "contains": "contains",
    "not_contains": "does not contain",
    "greater_than": "is greater than",
    "less_than": "is less than",
    "is_empty": "is empty",
    "is_not_empty": "is not empty",
}
UNARY_OPERATORS = frozenset({"is_empty", "is_not_empty"})

VISIBILITY_EFFECTS = frozenset({"show", "hide"})
INTERACTION_EFFECTS = frozenset({"require", "disable"})
EFFECTS = ("show", "hide", "require", "disable")


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str) and isinstance(expected, str):
        return expected in actual
    if isinstance(expected, (list, tuple, set, frozenset)):
        return actual in expected
    return actual == expected


@dataclass(frozen=True)
class Condition:
    """An operator and comparison value tested against a source field."""

    operator: str = "equals"
    value: Any = None

    def matches(self, field_value: FieldValue) -> bool:
        """Return ``True`` when ``field_value`` satisfies the condition."""

        operator = self.operator
        actual = field_value.raw

        if operator == "is_empty":
            return field_value.is_empty()
        if operator == "is_not_empty":
            return not field_value.is_empty()
        if operator == "equals":
            return actual == self.value
        if operator == "not_equals":
            return actual != self.value
        if operator == "contains":
            return actual is not None and _contains(actual, self.value)
        if operator == "not_contains":
            return actual is None or not _contains(actual, self.value)
        if operator in {"greater_than", "less_than"}:
            left = _as_number(actual)
            right = _as_number(self.value)
            if left is None or right is None:
                return False
            return left > right if operator == "greater_than" else left < right

        raise InvalidRule(f"Unsupported operator: {operator}")

    def describe(self) -> str:
        label = OPERATOR_LABELS.get(self.operator, self.operator)
        if self.operator in UNARY_OPERATORS:
            return label
        return f"{label} {self.value!r}"


@dataclass(frozen=True)
class Rule:
    """A directed edge from a source field's value to a target field's state."""

    id: str
    source_field_id: str
    condition: Condition
    target_field_id: str
    effect: str


def check_rule_parts(operator: str, effect: str) -> None:
    """Raise :class:`InvalidRule` for an unknown operator or effect."""

    if operator not in OPERATORS:
        raise InvalidRule(f"Unsupported operator {operator!r}; expected one of {', '.join(OPERATORS)}")
    if effect not in EFFECTS:
        raise InvalidRule(f"Unsupported effect {effect!r}; expected one of {', '.join(EFFECTS)}")


class RuleGraph:
    """Arena of rules indexed by source and target field.

    Edges run from ``source_field_id`` to ``target_field_id``. The graph does
    not refuse cycles on insertion; callers that must keep it acyclic check
    :meth:`would_create_cycle` first, and evaluation calls
    :meth:`topological_order`, which refuses to order a cyclic graph.
    """

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: Dict[str, Rule] = {}
        self._by_source: Dict[str, Set[str]] = {}
        self._by_target: Dict[str, Set[str]] = {}
        for rule in rules:
            self.add(rule)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter([self._rules[key] for key in sorted(self._rules)])

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuleGraph):
            return NotImplemented
        return self._rules == other._rules

    def __repr__(self) -> str:
        return f"RuleGraph({list(self)!r})"

    def get(self, rule_id: str) -> Rule:
        try:
            return self._rules[rule_id]
        except KeyError:
            raise NotFound("Rule", rule_id) from None

    def add(self, rule: Rule) -> None:
        if rule.id in self._rules:
            raise InvalidRule(f"Duplicate rule id '{rule.id}'")
        self._rules[rule.id] = rule
        self._by_source.setdefault(rule.source_field_id, set()).add(rule.id)
        self._by_target.setdefault(rule.target_field_id, set()).add(rule.id)

    def remove(self, rule_id: str) -> Rule:
        rule = self.get(rule_id)
        del self._rules[rule_id]
        for index, key in ((self._by_source, rule.source_field_id), (self._by_target, rule.target_field_id)):
            bucket = index.get(key)
            if bucket is not None:
                bucket.discard(rule_id)
                if not bucket:
                    del index[key]
        return rule

    def rules_targeting(self, field_id: str) -> List[Rule]:
        """Return rules whose target is ``field_id`` in rule-id order."""

        return [self._rules[key] for key in sorted(self._by_target.get(field_id, ()))]

    def rules_from(self, field_id: str) -> List[Rule]:
        return [self._rules[key] for key in sorted(self._by_source.get(field_id, ()))]

    def referencing(self, field_id: str) -> List[Rule]:
        """Return rules using ``field_id`` as source or target."""

        keys = self._by_source.get(field_id, set()) | self._by_target.get(field_id, set())
        return [self._rules[key] for key in sorted(keys)]

    def target_ids(self, field_id: str) -> Set[str]:
        return set(self._by_target.get(field_id, ()))

    def field_ids(self) -> Set[str]:
        return set(self._by_source) | set(self._by_target)

    def _successors(self, field_id: str) -> List[str]:
        return sorted({self._rules[key].target_field_id for key in self._by_source.get(field_id, ())})

    def would_create_cycle(self, source_field_id: str, target_field_id: str) -> bool:
        """Return ``True`` if an edge ``source -> target`` would close a cycle."""

        if source_field_id == target_field_id:
            return True
        stack = [target_field_id]
        seen: Set[str] = set()
        while stack:
            current = stack.pop()
            if current == source_field_id:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._successors(current))
        return False

    def find_cycle(self) -> Optional[List[str]]:
        """Return the field ids along one cycle, or ``None`` if acyclic."""

        white, grey, black = 0, 1, 2
        colour: Dict[str, int] = {node: white for node in self.field_ids()}
        for start in sorted(colour):
            if colour[start] != white:
                continue
            path: List[str] = [start]
            iterators = [iter(self._successors(start))]
            colour[start] = grey
            while iterators:
                successor = next(iterators[-1], None)
                if successor is None:
                    colour[path.pop()] = black
                    iterators.pop()
                    continue
                if colour[successor] == grey:
                    return path[path.index(successor):]
                if colour[successor] == white:
                    colour[successor] = grey
                    path.append(successor)
                    iterators.append(iter(self._successors(successor)))
        return None

    def topological_order(self, field_ids: Sequence[str]) -> List[str]:
        """Order ``field_ids`` so every rule source precedes its targets.

        Ties are broken by the position of each id in ``field_ids`` so the
        result is deterministic. Raises :class:`CyclicRuleGraph` on a cycle.
        """

        position = {field_id: index for index, field_id in enumerate(field_ids)}
        in_degree = {field_id: 0 for field_id in field_ids}
        for rule in self._rules.values():
            in_degree[rule.target_field_id] = in_degree.get(rule.target_field_id, 0) + 1
            position.setdefault(rule.source_field_id, len(position))
            position.setdefault(rule.target_field_id, len(position))
            in_degree.setdefault(rule.source_field_id, 0)

        ready = [(position[node], node) for node, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        ordered: List[str] = []
        while ready:
            _, node = heapq.heappop(ready)
            ordered.append(node)
            for key in sorted(self._by_source.get(node, ())):
                target = self._rules[key].target_field_id
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    heapq.heappush(ready, (position[target], target))

        if len(ordered) != len(in_degree):
            cycle = self.find_cycle() or sorted(set(in_degree) - set(ordered))
            logger.warning("Rule graph contains a cycle: %s", " -> ".join(cycle))
            raise CyclicRuleGraph(cycle)
        return ordered


__all__ = [
    "Condition",
    "EFFECTS",
    "INTERACTION_EFFECTS",
    "OPERATORS",
    "OPERATOR_LABELS",
    "Rule",
    "RuleGraph",
    "UNARY_OPERATORS",
    "VISIBILITY_EFFECTS",
    "check_rule_parts",
]
