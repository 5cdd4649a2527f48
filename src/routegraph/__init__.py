"""Type-indexed, lazily evaluated dependency graphs with scoped resource release."""

__all__ = [
    "AlreadyBuiltError",
    "CyclicRouteError",
    "DependencyGraph",
    "DuplicateDestinationError",
    "MissingSourceError",
    "NoRouteForError",
    "ReleaseFailedError",
    "Resolution",
    "ResolutionFailure",
    "RouteGraph",
    "RouteGraphBuilder",
    "RouteGraphError",
    "Rule",
    "ScopeClosedError",
    "ScopeStillOpenError",
    "TypeKey",
    "TypeMismatchError",
    "Value",
    "adapt_failures",
    "key_of",
    "open_resolution",
    "render_dot",
    "try_call",
]

from ._errors import (
    AlreadyBuiltError,
    CyclicRouteError,
    DuplicateDestinationError,
    MissingSourceError,
    NoRouteForError,
    ReleaseFailedError,
    ResolutionFailure,
    RouteGraphError,
    ScopeClosedError,
    ScopeStillOpenError,
    TypeMismatchError,
)
from ._graph import DependencyGraph
from ._key import TypeKey, key_of
from ._render import render_dot
from ._resolution import Resolution, open_resolution
from ._routes import RouteGraph, RouteGraphBuilder
from ._rule import Rule
from ._try import adapt_failures, try_call
from ._value import Value
