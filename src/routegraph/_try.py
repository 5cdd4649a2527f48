"""Re-signal recoverable failures as ResolutionFailure."""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING

from ._errors import ResolutionFailure, RouteGraphError

if TYPE_CHECKING:
    from collections.abc import Callable


def try_call[**P, R](
    fn: Callable[P, R],
    /,
    *args: P.args,
    **kwargs: P.kwargs,
) -> R:
    """Call ``fn`` and re-raise any failure as ResolutionFailure.

    The original exception is kept as ``__cause__``. Engine errors are
    propagated unchanged. Use :func:`adapt_failures` to limit which
    exception types count as recoverable.

    Example:
        >>> workspace = try_call(tempfile.mkdtemp, prefix="artifactStore-")

    """
    return adapt_failures(Exception)(fn)(*args, **kwargs)


def adapt_failures[**P, R](
    *recoverable: type[Exception],
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator turning ``recoverable`` exceptions into ResolutionFailure.

    Exceptions not listed in ``recoverable`` propagate unchanged.

    Args:
        recoverable: Exception types to adapt. Defaults to ``Exception``.

    Example:
        >>> @adapt_failures(OSError)
        ... def create_store() -> Path:
        ...     return Path(tempfile.mkdtemp())

    """
    adapted = recoverable or (Exception,)

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return fn(*args, **kwargs)
            except RouteGraphError:
                raise
            except adapted as e:
                name = getattr(fn, "__name__", repr(fn))
                msg = f"{name} failed: {type(e).__name__}: {e}"
                raise ResolutionFailure(msg) from e

        return wrapper

    return decorator
