"""Graphviz DOT rendering of route graphs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ._key import TypeKey
    from ._routes import RouteGraph


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _node_id(key: TypeKey[Any]) -> str:
    return _quote(str(key))


def render_dot(graph: RouteGraph, name: str = "routes") -> str:
    """Render a route graph as a Graphviz digraph.

    Keys become nodes, each rule becomes one edge per source labelled with
    the rule's name. Root rules are drawn as boxes. Sources without a rule
    are drawn dashed.

    Args:
        graph: The route graph to render.
        name: Name of the digraph.

    Returns:
        The DOT source.

    """
    lines = [f"digraph {_quote(name)} {{", "  rankdir=LR;"]
    missing = graph.missing_sources()

    for rule in graph:
        shape = "box" if rule.is_root else "ellipse"
        lines.append(f"  {_node_id(rule.destination)} [shape={shape}];")
    for key in missing:
        lines.append(f"  {_node_id(key)} [shape=ellipse, style=dashed];")

    for rule in graph:
        label = _quote(rule.name)
        lines.extend(
            f"  {_node_id(source)} -> {_node_id(rule.destination)} [label={label}];" for source in rule.sources
        )

    lines.append("}")
    return "\n".join(lines) + "\n"
