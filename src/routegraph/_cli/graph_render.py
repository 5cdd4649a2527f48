"""Rich rendering utilities for route graphs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

if TYPE_CHECKING:
    from rich.console import Console

    from routegraph._key import TypeKey
    from routegraph._routes import RouteGraph


def render_rule_table(graph: RouteGraph, console: Console) -> None:
    """Render every rule of a graph as a Rich table, producers first.

    Args:
        graph: The route graph to render.
        console: Rich Console to output to.

    """
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Destination", style="bold")
    table.add_column("Rule")
    table.add_column("Sources", style="dim")

    for rule in graph.evaluation_order():
        sources = escape(", ".join(str(source) for source in rule.sources)) if rule.sources else "[dim]none[/dim]"
        table.add_row(escape(str(rule.destination)), escape(rule.name), sources)

    console.print(table)
    console.print(f"\n[dim]Total: {len(graph)} rules[/dim]")


def render_dependency_tree(graph: RouteGraph, target: TypeKey[Any], console: Console) -> None:
    """Render what resolving ``target`` requires as a Rich tree.

    Keys reached more than once are shown once and marked as shared.
    Keys without a rule are shown in red.

    Args:
        graph: The route graph to walk.
        target: The key to start from.
        console: Rich Console to output to.

    """
    tree = Tree(f"[bold]{escape(str(target))}[/bold]")
    _add_sources(tree, graph, target, set(), (target,))
    console.print(tree)
    console.print(f"\n[dim]{len(graph.required_keys(target))} keys required[/dim]")


def _add_sources(
    parent: Tree,
    graph: RouteGraph,
    key: TypeKey[Any],
    seen: set[TypeKey[Any]],
    path: tuple[TypeKey[Any], ...],
) -> None:
    """Recursively add the sources of ``key`` below ``parent``."""
    if key not in graph:
        parent.label = f"[red]{parent.label} (no rule)[/red]"
        return
    for source in graph.rules[key].sources:
        label = escape(str(source))
        if source in path:
            parent.add(f"[red]{label} (cycle)[/red]")
        elif source in seen:
            parent.add(f"[dim]{label} (shared)[/dim]")
        else:
            seen.add(source)
            _add_sources(parent.add(label), graph, source, seen, (*path, source))
