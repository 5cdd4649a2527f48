"""Exception hierarchy for route graphs.

Construction errors are raised while building a RouteGraph, resolution errors
while opening a Resolution, and ReleaseFailedError while closing one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from ._key import TypeKey


def _format_keys(keys: Iterable[TypeKey[Any]]) -> str:
    return ", ".join(str(key) for key in keys)


class RouteGraphError(Exception):
    """Base class for every error raised by the engine."""


class DuplicateDestinationError(RouteGraphError):
    """Two rules claim the same destination."""

    def __init__(self, key: TypeKey[Any]) -> None:
        self.key = key
        super().__init__(f"A rule for {key} is already registered")


class MissingSourceError(RouteGraphError):
    """Rules reference source keys that no rule produces.

    Attributes:
        missing: Mapping from each dangling source key to the destinations
            of the rules that require it.

    """

    def __init__(self, missing: dict[TypeKey[Any], tuple[TypeKey[Any], ...]]) -> None:
        self.missing = missing
        details = "; ".join(f"{key} (required by {_format_keys(users)})" for key, users in missing.items())
        super().__init__(f"No rule produces: {details}")


class AlreadyBuiltError(RouteGraphError):
    """A builder was used after build() was called."""


class NoRouteForError(RouteGraphError):
    """There is no rule and no cached value for a key.

    Attributes:
        key: The key that could not be resolved.
        required_by: Keys whose resolution required ``key``, outermost first.

    """

    def __init__(self, key: TypeKey[Any], required_by: Sequence[TypeKey[Any]] = ()) -> None:
        self.key = key
        self.required_by = tuple(required_by)
        msg = f"No route for {key}"
        if self.required_by:
            msg += f" (required by {' -> '.join(str(k) for k in self.required_by)})"
        super().__init__(msg)


class CyclicRouteError(RouteGraphError):
    """A key depends on itself, directly or transitively.

    Attributes:
        cycle: The keys forming the cycle; first and last entry are equal.

    """

    def __init__(self, cycle: Sequence[TypeKey[Any]]) -> None:
        self.cycle = tuple(cycle)
        super().__init__(f"Cyclic route: {' -> '.join(str(k) for k in self.cycle)}")


class TypeMismatchError(RouteGraphError):
    """A payload does not match the type recorded in its key."""

    def __init__(self, key: TypeKey[Any], payload: object) -> None:
        self.key = key
        self.payload = payload
        super().__init__(f"Payload of type {type(payload).__name__} does not match {key}")


class ScopeStillOpenError(RouteGraphError):
    """A resolution was closed while child resolutions were still open."""


class ScopeClosedError(RouteGraphError):
    """A closed resolution was used to open a child resolution."""


class ResolutionFailure(RouteGraphError):  # noqa: N818
    """A rule failed to produce its value.

    The original exception is available as ``__cause__``.

    Attributes:
        key: Destination of the failing rule, or None if the failure was
            raised outside of a resolution.

    """

    def __init__(self, message: str, key: TypeKey[Any] | None = None) -> None:
        self.key = key
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.key is None:
            return message
        return f"{self.key}: {message}"


class ReleaseFailedError(RouteGraphError, ExceptionGroup):
    """One or more release actions failed while closing a resolution.

    Every underlying failure is kept in ``exceptions``, in the order the
    releases were attempted.
    """
