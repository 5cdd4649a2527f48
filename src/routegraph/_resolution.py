"""Scoped, memoizing evaluation of route graphs.

A Resolution resolves one target key against a RouteGraph. Every value it
computes on the way is cached in the resolution itself and is released, in
reverse creation order, when the resolution is closed. Child resolutions
opened from it reuse those cached values without taking ownership.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Self

from ._errors import (
    CyclicRouteError,
    NoRouteForError,
    ReleaseFailedError,
    ResolutionFailure,
    RouteGraphError,
    ScopeClosedError,
    ScopeStillOpenError,
    TypeMismatchError,
)
from ._value import as_value

if TYPE_CHECKING:
    from types import TracebackType

    from ._key import TypeKey
    from ._routes import RouteGraph
    from ._rule import Rule
    from ._value import Value

logger = logging.getLogger(__name__)


class Resolution[T]:
    """A live evaluation scope for one target key.

    Do not instantiate directly; use :func:`open_resolution`,
    :meth:`RouteGraph.open` or :meth:`Resolution.open`.

    Lookups check this scope's own cache first and then each parent in turn.
    Only values computed by this scope are owned, and only owned values are
    released by :meth:`close`. Child scopes must be closed before their
    parent; closing a parent with open children raises ScopeStillOpenError.
    Leaving a ``with`` block through an exception closes any children still
    open, then the scope itself, and lets the exception propagate.

    Resolutions are not thread-safe: open and close a scope chain from one
    thread.

    Example:
        >>> with graph.open(workspace) as root:
        ...     with root.open(downloaded_artifact) as scope:
        ...         print(scope.current())

    """

    def __init__(self, graph: RouteGraph, target: TypeKey[T], parent: Resolution[Any] | None = None) -> None:
        self._graph = graph
        self._target = target
        self._parent = parent
        self._owned: dict[TypeKey[Any], Value[Any]] = {}
        self._children: dict[Resolution[Any], None] = {}
        self._value: Value[T] | None = None
        self._closed = False

    @property
    def graph(self) -> RouteGraph:
        return self._graph

    @property
    def target(self) -> TypeKey[T]:
        return self._target

    @property
    def parent(self) -> Resolution[Any] | None:
        return self._parent

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def owned_keys(self) -> tuple[TypeKey[Any], ...]:
        """Keys of the values this scope computed, in creation order."""
        return tuple(self._owned)

    def current(self) -> T:
        """Return the resolved payload of the target key."""
        if self._value is None:
            msg = f"Resolution of {self._target} was never resolved"
            raise RuntimeError(msg)
        return self._value.payload

    def open[U](self, target: TypeKey[U]) -> Resolution[U]:
        """Open a child resolution for ``target`` on top of this scope.

        The child sees every value cached in this scope and its ancestors.
        Values it has to compute itself are owned by the child.

        Raises:
            ScopeClosedError: If this resolution is already closed.
            NoRouteForError, CyclicRouteError, ResolutionFailure: If the
                target cannot be resolved.

        """
        if self._closed:
            msg = f"Cannot open {target} from the closed resolution of {self._target}"
            raise ScopeClosedError(msg)
        child = _open(self._graph, target, self)
        self._children[child] = None
        return child

    def get[U](self, key: TypeKey[U]) -> U:
        """Return an already computed payload without evaluating anything.

        Raises:
            KeyError: If neither this scope nor an ancestor holds ``key``.

        """
        value = self._lookup(key)
        if value is None:
            raise KeyError(key)
        return self._checked(key, value).payload

    def __contains__(self, key: object) -> bool:
        scope: Resolution[Any] | None = self
        while scope is not None:
            if key in scope._owned:  # noqa: SLF001
                return True
            scope = scope._parent  # noqa: SLF001
        return False

    def _lookup(self, key: TypeKey[Any]) -> Value[Any] | None:
        scope: Resolution[Any] | None = self
        while scope is not None:
            value = scope._owned.get(key)  # noqa: SLF001
            if value is not None:
                return value
            scope = scope._parent  # noqa: SLF001
        return None

    @staticmethod
    def _checked[U](key: TypeKey[U], value: Value[Any]) -> Value[U]:
        if not key.accepts(value.payload):
            raise TypeMismatchError(key, value.payload)
        return value

    def _resolve(self, key: TypeKey[Any], path: list[TypeKey[Any]]) -> Value[Any]:
        """Resolve ``key`` depth-first, sources in declaration order.

        ``path`` holds the keys currently being resolved, outermost first.
        """
        cached = self._lookup(key)
        if cached is not None:
            logger.debug("Reusing %s", key)
            return self._checked(key, cached)

        if key in path:
            raise CyclicRouteError([*path[path.index(key) :], key])

        try:
            rule = self._graph.rule_for(key)
        except NoRouteForError:
            raise NoRouteForError(key, required_by=path) from None

        path.append(key)
        try:
            payloads = [self._resolve(source, path).payload for source in rule.sources]
        finally:
            path.pop()

        value = self._produce(rule, payloads)
        # Stored before the type check; a mismatching value is still released on close.
        self._owned[key] = value
        return self._checked(key, value)

    @staticmethod
    def _produce(rule: Rule, payloads: list[Any]) -> Value[Any]:
        logger.debug("Evaluating %s", rule)
        try:
            result = rule.produce(*payloads)
        except ResolutionFailure as failure:
            if failure.key is None:
                failure.key = rule.destination
            raise
        except RouteGraphError:
            raise
        except Exception as e:
            msg = f"Rule {rule.name} failed: {e}"
            raise ResolutionFailure(msg, key=rule.destination) from e
        return as_value(result)

    def close(self) -> None:
        """Release every owned value in reverse creation order.

        All release actions are attempted even if some fail. Closing an
        already closed resolution does nothing.

        Raises:
            ScopeStillOpenError: If child resolutions are still open. The
                resolution stays open in that case.
            ReleaseFailedError: If one or more release actions failed.

        """
        if self._closed:
            logger.debug("Resolution of %s is already closed", self._target)
            return
        if self._children:
            msg = (
                f"Cannot close the resolution of {self._target} while {len(self._children)}"
                " child resolution(s) are still open"
            )
            raise ScopeStillOpenError(msg)

        self._closed = True
        if self._parent is not None:
            self._parent._children.pop(self, None)  # noqa: SLF001

        failures: list[Exception] = []
        for key, value in reversed(self._owned.items()):
            if value.release is None:
                continue
            logger.debug("Releasing %s", key)
            try:
                value.release(value.payload)
            except Exception as e:  # noqa: BLE001
                logger.warning("Releasing %s failed: %s", key, e)
                e.add_note(f"while releasing {key}")
                failures.append(e)
        self._owned.clear()

        if failures:
            msg = f"{len(failures)} release action(s) failed while closing the resolution of {self._target}"
            raise ReleaseFailedError(msg, failures)

    def _discard(self, failure: BaseException) -> None:
        """Close this scope after ``failure``, keeping ``failure`` primary.

        Open child resolutions are closed first, most recently opened first.
        Release errors are attached to ``failure`` as notes.
        """
        for child in reversed(list(self._children)):
            logger.debug("Closing open child %r of %r", child, self)
            child._discard(failure)  # noqa: SLF001
        try:
            self.close()
        except ReleaseFailedError as release_error:
            failure.add_note(f"Releasing partial results failed: {release_error}")
            for cause in release_error.exceptions:
                failure.add_note(f"  {cause!r}")

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_value is None:
            self.close()
        else:
            self._discard(exc_value)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Resolution of {self._target} ({state}, {len(self._owned)} owned)>"


def _open[T](graph: RouteGraph, target: TypeKey[T], parent: Resolution[Any] | None) -> Resolution[T]:
    scope = Resolution(graph, target, parent)
    try:
        scope._value = scope._resolve(target, [])  # noqa: SLF001
    except Exception as failure:
        scope._discard(failure)  # noqa: SLF001
        raise
    logger.debug("Opened %r", scope)
    return scope


def open_resolution[T](graph: RouteGraph, target: TypeKey[T]) -> Resolution[T]:
    """Open a root resolution of ``target``.

    Evaluates the minimal set of rules needed for ``target``, each at most
    once, and keeps the results cached until the resolution is closed.
    If resolution fails, everything computed so far is released before the
    error propagates.

    Args:
        graph: The route graph to evaluate.
        target: The key to resolve.

    Returns:
        An open Resolution; use it as a context manager or call close().

    Raises:
        NoRouteForError: If ``target`` or a transitive source has no rule.
        CyclicRouteError: If ``target`` depends on itself.
        ResolutionFailure: If a rule failed to produce its value.
        TypeMismatchError: If a rule produced a payload of the wrong type.

    """
    return _open(graph, target, None)
