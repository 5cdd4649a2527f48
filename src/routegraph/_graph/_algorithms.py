"""Graph algorithms over successor mappings."""

from collections import deque
from collections.abc import Hashable, Mapping, Sequence

_EXHAUSTED = object()


def topological_sort[T: Hashable](successors: Mapping[T, Sequence[T]]) -> list[T]:
    """Sort a graph topologically (dependencies before dependents).

    Ties are broken by the order in which nodes appear in ``successors``,
    so the result is deterministic for a fixed input.

    Args:
        successors: Mapping from node to the nodes that depend on it.
            An edge (a -> b) means "b depends on a".

    Returns:
        List of nodes in topological order.

    Raises:
        ValueError: If the graph contains a cycle.

    Example:
        >>> topological_sort({"a": ["b"], "b": ["c"], "c": []})
        ['a', 'b', 'c']

    """
    indegree: dict[T, int] = {}
    for node, dependents in successors.items():
        indegree.setdefault(node, 0)
        for dependent in dependents:
            indegree[dependent] = indegree.get(dependent, 0) + 1

    queue = deque(node for node, degree in indegree.items() if degree == 0)
    order: list[T] = []

    while queue:
        node = queue.popleft()
        order.append(node)
        for dependent in successors.get(node, ()):
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                queue.append(dependent)

    if len(order) != len(indegree):
        msg = "Cycle detected in graph"
        raise ValueError(msg)

    return order


def find_cycle[T: Hashable](predecessors: Mapping[T, Sequence[T]]) -> list[T] | None:
    """Find one dependency cycle, if any.

    Args:
        predecessors: Mapping from node to the nodes it depends on.

    Returns:
        The nodes of the first cycle found, with the starting node repeated
        at the end (e.g. ``["a", "b", "a"]``), or None for an acyclic graph.

    """
    done: set[T] = set()

    for start in predecessors:
        if start in done:
            continue
        path: list[T] = [start]
        on_path: set[T] = {start}
        iterators = [iter(predecessors.get(start, ()))]
        while iterators:
            child = next(iterators[-1], _EXHAUSTED)
            if child is _EXHAUSTED:
                iterators.pop()
                finished = path.pop()
                on_path.discard(finished)
                done.add(finished)
                continue
            if child in on_path:
                return [*path[path.index(child) :], child]
            if child in done:
                continue
            path.append(child)
            on_path.add(child)
            iterators.append(iter(predecessors.get(child, ())))

    return None
