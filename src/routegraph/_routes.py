"""Route graphs: validated, immutable collections of rules."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from ._errors import AlreadyBuiltError, DuplicateDestinationError, MissingSourceError, NoRouteForError
from ._graph import DependencyGraph
from ._resolution import open_resolution
from ._rule import Rule

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from ._key import TypeKey
    from ._resolution import Resolution

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, eq=False)
class RouteGraph:
    """An immutable set of rules, at most one per destination key.

    Create instances with :meth:`builder`. Resolve a key with :meth:`open`.

    Attributes:
        rules: Read-only mapping from destination key to its rule, in
            registration order.

    """

    rules: Mapping[TypeKey[Any], Rule] = field(default_factory=lambda: MappingProxyType({}))

    @staticmethod
    def builder() -> RouteGraphBuilder:
        """Start building a new route graph."""
        return RouteGraphBuilder()

    def rule_for(self, key: TypeKey[Any]) -> Rule:
        """Get the rule producing a key.

        Raises:
            NoRouteForError: If no rule produces ``key``.

        """
        try:
            return self.rules[key]
        except KeyError:
            raise NoRouteForError(key) from None

    def missing_sources(self) -> dict[TypeKey[Any], tuple[TypeKey[Any], ...]]:
        """Map every source key without a rule to the destinations requiring it."""
        missing: dict[TypeKey[Any], list[TypeKey[Any]]] = {}
        for rule in self.rules.values():
            for source in rule.sources:
                if source not in self.rules:
                    missing.setdefault(source, []).append(rule.destination)
        return {key: tuple(users) for key, users in missing.items()}

    def dependency_graph(self) -> DependencyGraph[TypeKey[Any]]:
        """Build the key-level dependency graph of all rules."""
        return DependencyGraph.from_edges(
            ((source, rule.destination) for rule in self.rules.values() for source in rule.sources),
            nodes=self.rules.keys(),
        )

    def evaluation_order(self) -> list[Rule]:
        """Return the rules with every producer before its consumers.

        Falls back to registration order if the graph contains a cycle.
        """
        try:
            order = self.dependency_graph().topological_order()
        except ValueError:
            return list(self.rules.values())
        return [self.rules[key] for key in order if key in self.rules]

    def required_keys(self, target: TypeKey[Any]) -> frozenset[TypeKey[Any]]:
        """Every key that resolving ``target`` may depend on, transitively."""
        return self.dependency_graph().ancestors(target)

    def validate(self) -> list[str]:
        """Check the graph without raising.

        Reports sources that no rule produces and dependency cycles. Cycles
        are otherwise only detected when a resolution reaches them.

        Returns:
            Human-readable problems. Empty if the graph is valid.

        """
        errors = [
            f"{key} is required by {', '.join(str(user) for user in users)} but no rule produces it"
            for key, users in self.missing_sources().items()
        ]
        cycle = self.dependency_graph().find_cycle()
        if cycle is not None:
            errors.append(f"Cyclic route: {' -> '.join(str(key) for key in cycle)}")
        return errors

    def open[T](self, target: TypeKey[T]) -> Resolution[T]:
        """Open a root resolution for ``target``. See :func:`open_resolution`."""
        return open_resolution(self, target)

    def __len__(self) -> int:
        return len(self.rules)

    def __contains__(self, key: object) -> bool:
        return key in self.rules

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules.values())


class RouteGraphBuilder:
    """Accumulates rules for a single RouteGraph.

    Example:
        >>> builder = RouteGraph.builder()
        >>> builder.add(Rule.start(key_of(str, "greeting"), lambda: "hello"))
        >>> @builder.rule(key_of(int, "length"), key_of(str, "greeting"))
        ... def length(greeting: str) -> int:
        ...     return len(greeting)
        >>> graph = builder.build()

    """

    def __init__(self) -> None:
        self._rules: dict[TypeKey[Any], Rule] = {}
        self._built = False

    def _ensure_not_built(self) -> None:
        if self._built:
            msg = "This builder has already been built; start a new one with RouteGraph.builder()"
            raise AlreadyBuiltError(msg)

    def add(self, rule: Rule) -> RouteGraphBuilder:
        """Register a rule.

        Raises:
            DuplicateDestinationError: If a rule for the same destination exists.
            AlreadyBuiltError: If ``build()`` was already called.

        """
        self._ensure_not_built()
        if rule.destination in self._rules:
            raise DuplicateDestinationError(rule.destination)
        self._rules[rule.destination] = rule
        logger.debug("Registered rule %s", rule)
        return self

    def rule(self, destination: TypeKey[Any], *sources: TypeKey[Any]) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a function as the rule for ``destination``.

        The decorated function receives the payloads of ``sources`` in order
        and is returned unchanged.
        """

        def decorator(produce: Callable[..., Any]) -> Callable[..., Any]:
            self.add(Rule(destination, sources, produce))
            return produce

        return decorator

    def build(self, *, validate: bool = True) -> RouteGraph:
        """Freeze the registered rules into a RouteGraph.

        Args:
            validate: Reject rules whose sources have no producing rule.

        Raises:
            MissingSourceError: If validation is on and a source is dangling.
            AlreadyBuiltError: If called a second time.

        """
        self._ensure_not_built()
        self._built = True
        graph = RouteGraph(rules=MappingProxyType(dict(self._rules)))
        if validate:
            missing = graph.missing_sources()
            if missing:
                raise MissingSourceError(missing)
        logger.debug("Built route graph with %d rules", len(graph))
        return graph
