"""Rule declaration and execution engine for the block renderer.

Substitution rules are plain callables taking the block text and a
:class:`~snaptex.core.context.RuleContext` and returning the transformed text.
Handlers declare their intent via the ``@substitutes`` decorator, which
records structural metadata (phase, priority, ordering constraints). At
runtime the :class:`RuleEngine` collects those declarations, organises them
per :class:`RulePhase` and applies them in a predictable, stable order.

Architecture

`Declaration layer`
: ``@substitutes`` stores a lightweight :class:`RuleDefinition` on every
  handler.

`Registry layer`
: :class:`RuleRegistry` collates definitions into sortable :class:`Rule`
  instances grouped by phase. Registering a rule under an existing name
  replaces the previous rule, which lets configuration override built-ins.

`Execution layer`
: :class:`RuleEngine` folds the block text through every rule of a phase.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum, auto
import importlib
from importlib import metadata
import logging
from typing import TYPE_CHECKING, Any, cast

from .exceptions import RuleRegistrationError


if TYPE_CHECKING:  # pragma: no cover - typing only
    from .context import RuleContext


logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "snaptex.rules"


class RulePhase(Enum):
    """Ordered passes applied to every rendered block.

    ``PRE``
    : rewrite LaTeX source into Markdown-friendly text, protecting fragile
      fragments before the generic Markdown pass runs.

    ``POST``
    : adjust the HTML produced by the Markdown pass once every protected
      token has been resolved.
    """

    PRE = auto()
    POST = auto()


RuleCallable = Callable[[str, "RuleContext"], str]


@dataclass
class Rule:
    """Concrete substitution rule registered in the engine."""

    priority: int
    phase: RulePhase
    name: str
    handler: RuleCallable
    before: tuple[str, ...] = ()
    after: tuple[str, ...] = ()

    def apply(self, text: str, context: RuleContext) -> str:
        return self.handler(text, context)


@dataclass(frozen=True)
class RuleDefinition:
    """Descriptor installed on handler callables by the decorator."""

    phase: RulePhase
    priority: int = 0
    name: str | None = None
    before: tuple[str, ...] = ()
    after: tuple[str, ...] = ()

    def bind(self, handler: RuleCallable) -> Rule:
        """Create a concrete rule instance bound to the callable."""
        name = self.name or getattr(handler, "__name__", handler.__class__.__name__)
        return Rule(
            phase=self.phase,
            priority=self.priority,
            name=name,
            handler=handler,
            before=self.before,
            after=self.after,
        )


class RuleRegistry:
    """Container used to gather substitution rules before execution."""

    def __init__(self) -> None:
        self._rules: dict[RulePhase, list[Rule]] = {}

    def register(self, rule: Rule) -> None:
        """Register a rule, replacing any rule with the same name."""
        bucket = [
            existing for existing in self._rules.get(rule.phase, []) if existing.name != rule.name
        ]
        for phase, rules in self._rules.items():
            if phase is not rule.phase:
                self._rules[phase] = [existing for existing in rules if existing.name != rule.name]
        bucket.append(rule)
        self._rules[rule.phase] = self._sort_rules(bucket)

    def unregister(self, name: str) -> bool:
        """Remove the rule called ``name``; return whether one existed."""
        removed = False
        for phase, rules in self._rules.items():
            kept = [rule for rule in rules if rule.name != name]
            removed = removed or len(kept) != len(rules)
            self._rules[phase] = kept
        return removed

    def rules_for_phase(self, phase: RulePhase) -> tuple[Rule, ...]:
        """Return the ordered rules of the requested phase."""
        return tuple(self._rules.get(phase, ()))

    def names(self) -> list[str]:
        return [rule.name for phase in RulePhase for rule in self.rules_for_phase(phase)]

    def describe(self) -> list[dict[str, object]]:
        """Return a serialisable snapshot of the registered rules."""
        entries: list[dict[str, object]] = []
        for phase in RulePhase:
            for order, rule in enumerate(self.rules_for_phase(phase)):
                entries.append(
                    {
                        "phase": phase.name,
                        "name": rule.name,
                        "priority": rule.priority,
                        "before": list(rule.before),
                        "after": list(rule.after),
                        "order": order,
                    }
                )
        return entries

    def _sort_rules(self, rules: list[Rule]) -> list[Rule]:
        """Return rules ordered deterministically using before/after constraints."""
        if len(rules) <= 1:
            return list(rules)

        name_to_index: dict[str, int] = {}
        for index, rule in enumerate(rules):
            name_to_index.setdefault(rule.name, index)

        adjacency: dict[int, set[int]] = {index: set() for index in range(len(rules))}
        indegree: dict[int, int] = dict.fromkeys(range(len(rules)), 0)

        def _add_edge(source: int, target: int) -> None:
            if target in adjacency[source]:
                return
            adjacency[source].add(target)
            indegree[target] += 1

        for current_index, rule in enumerate(rules):
            for target_name in rule.before:
                target_index = name_to_index.get(target_name)
                if target_index is not None:
                    _add_edge(current_index, target_index)
            for target_name in rule.after:
                target_index = name_to_index.get(target_name)
                if target_index is not None:
                    _add_edge(target_index, current_index)

        def _key(idx: int) -> tuple[int, str, int]:
            return (rules[idx].priority, rules[idx].name, idx)

        queue: deque[int] = deque(
            sorted((index for index, count in indegree.items() if count == 0), key=_key)
        )
        ordered: list[int] = []

        while queue:
            current = queue.popleft()
            ordered.append(current)
            for neighbour in sorted(adjacency[current], key=_key):
                indegree[neighbour] -= 1
                if indegree[neighbour] == 0:
                    queue.append(neighbour)
            queue = deque(sorted(queue, key=_key))

        if len(ordered) != len(rules):
            cycle_names = sorted(
                rule.name for index, rule in enumerate(rules) if index not in ordered
            )
            raise RuleRegistrationError(
                "Cyclic substitution rule dependencies detected: " + ", ".join(cycle_names)
            )

        return [rules[index] for index in ordered]


def substitutes(
    *,
    phase: RulePhase = RulePhase.PRE,
    priority: int = 0,
    name: str | None = None,
    before: Iterable[str] = (),
    after: Iterable[str] = (),
) -> Callable[[RuleCallable], RuleCallable]:
    """Decorator used to declare substitution rules."""
    definition = RuleDefinition(
        phase=phase,
        priority=priority,
        name=name,
        before=tuple(before),
        after=tuple(after),
    )

    def decorator(handler: RuleCallable) -> RuleCallable:
        cast(Any, handler).__substitution_rule__ = definition
        return handler

    return decorator


class RuleEngine:
    """Execution engine that orchestrates the registered rules."""

    def __init__(self, registry: RuleRegistry | None = None) -> None:
        self.registry = registry or RuleRegistry()

    def collect_from(self, owner: Any) -> None:
        """Collect decorated callables from an object or module."""
        for attribute in dir(owner):
            handler = getattr(owner, attribute)
            definition = getattr(handler, "__substitution_rule__", None)
            if definition is None and hasattr(handler, "__func__"):
                definition = getattr(handler.__func__, "__substitution_rule__", None)
            if isinstance(definition, RuleDefinition):
                self.registry.register(definition.bind(handler))

    def register(self, handler: Any) -> None:
        """Register a decorated callable, a :class:`Rule`, or a module of rules."""
        if isinstance(handler, Rule):
            self.registry.register(handler)
            return
        definition = getattr(handler, "__substitution_rule__", None)
        if isinstance(definition, RuleDefinition):
            self.registry.register(definition.bind(handler))
            return
        if callable(handler) and not isinstance(handler, type):
            msg = "Handler must be decorated with @substitutes"
            raise RuleRegistrationError(msg)
        self.collect_from(handler)

    def load(self, target: str) -> None:
        """Import ``module:attribute`` (or a bare module) and register its rules."""
        module_name, _, attribute = target.partition(":")
        try:
            payload: Any = importlib.import_module(module_name)
            for part in filter(None, attribute.split(".")):
                payload = getattr(payload, part)
        except (ImportError, AttributeError) as exc:
            raise RuleRegistrationError(f"Unable to load rules from '{target}': {exc}") from exc
        self.register(payload)

    def load_entry_points(self, group: str = ENTRY_POINT_GROUP) -> None:
        """Register rules advertised by installed distributions."""
        for entry_point in sorted(metadata.entry_points(group=group), key=lambda ep: ep.name):
            try:
                payload = entry_point.load()
            except Exception as exc:
                logger.warning("Skipping rule entry point '%s': %s", entry_point.name, exc)
                continue
            self.register(payload)

    def run(self, phase: RulePhase, text: str, context: RuleContext) -> str:
        """Fold ``text`` through every rule of ``phase``."""
        for rule in self.registry.rules_for_phase(phase):
            text = rule.apply(text, context)
        return text


__all__ = [
    "ENTRY_POINT_GROUP",
    "Rule",
    "RuleCallable",
    "RuleDefinition",
    "RuleEngine",
    "RulePhase",
    "RuleRegistry",
    "substitutes",
]
