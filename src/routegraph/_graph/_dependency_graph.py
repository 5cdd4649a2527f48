"""Immutable dependency graph over hashable nodes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ._algorithms import find_cycle, topological_sort

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True, slots=True)
class DependencyGraph[T]:
    """A directed graph of "depends on" relationships.

    Unlike a set-based graph, neighbours are kept in insertion order so that
    traversals are deterministic for a fixed edge list.

    - predecessors(b) == (a,) means "b depends on a"

    Attributes:
        _predecessors: Mapping from node to its direct dependencies.
        _successors: Mapping from node to its direct dependents.

    """

    _predecessors: dict[T, tuple[T, ...]] = field(default_factory=dict)
    _successors: dict[T, tuple[T, ...]] = field(default_factory=dict)

    @classmethod
    def from_edges(cls, edges: Iterable[tuple[T, T]], nodes: Iterable[T] = ()) -> DependencyGraph[T]:
        """Build a graph from (dependency, dependent) edges.

        Args:
            edges: Pairs ``(a, b)`` meaning "b depends on a".
            nodes: Extra nodes to include even if they have no edges.

        Returns:
            A new DependencyGraph.

        Example:
            >>> graph = DependencyGraph.from_edges([("a", "b"), ("b", "c")])
            >>> graph.predecessors("c")
            ('b',)

        """
        predecessors: dict[T, list[T]] = {node: [] for node in nodes}
        successors: dict[T, list[T]] = {node: [] for node in predecessors}

        for src, dst in edges:
            for node in (src, dst):
                predecessors.setdefault(node, [])
                successors.setdefault(node, [])
            if src not in predecessors[dst]:
                predecessors[dst].append(src)
                successors[src].append(dst)

        return cls(
            _predecessors={k: tuple(v) for k, v in predecessors.items()},
            _successors={k: tuple(v) for k, v in successors.items()},
        )

    @property
    def nodes(self) -> tuple[T, ...]:
        """All nodes, in insertion order."""
        return tuple(self._predecessors)

    def predecessors(self, node: T) -> tuple[T, ...]:
        """Direct dependencies of a node."""
        return self._predecessors.get(node, ())

    def ancestors(self, node: T) -> frozenset[T]:
        """All transitive dependencies of a node."""
        visited: set[T] = set()
        stack = list(self.predecessors(node))
        while stack:
            current = stack.pop()
            if current not in visited:
                visited.add(current)
                stack.extend(self.predecessors(current))
        return frozenset(visited)

    def topological_order(self) -> list[T]:
        """Return nodes with dependencies before dependents.

        Raises:
            ValueError: If the graph contains a cycle.

        """
        return topological_sort(self._successors)

    def find_cycle(self) -> list[T] | None:
        """Return one cycle (first node repeated at the end), or None."""
        return find_cycle(self._predecessors)

    def __len__(self) -> int:
        return len(self._predecessors)

    def __contains__(self, node: object) -> bool:
        return node in self._predecessors
