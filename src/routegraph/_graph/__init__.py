"""Graph module providing dependency graph abstractions.

This module contains:
- DependencyGraph[T]: A generic, immutable, ordered dependency graph
- topological_sort: Ordering nodes by dependencies
- find_cycle: Locating a dependency cycle for error reporting
"""

from ._algorithms import find_cycle, topological_sort
from ._dependency_graph import DependencyGraph

__all__ = ["DependencyGraph", "find_cycle", "topological_sort"]
