"""Computed values and their release actions."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Value[T]:
    """A computed payload, optionally owning a resource.

    If ``release`` is set, the resolution that computed this value calls it
    with the payload exactly once when that resolution is closed. A value
    without a release action is inert.

    Attributes:
        payload: The computed result.
        release: Action freeing the resource held by ``payload``.

    """

    payload: T
    release: Callable[[T], object] | None = None

    @classmethod
    def of(cls, payload: T, release: Callable[[T], object] | None = None) -> Value[T]:
        """Create a value, optionally with a release action."""
        return cls(payload, release)

    @property
    def releasable(self) -> bool:
        return self.release is not None


def as_value(result: Any) -> Value[Any]:
    """Wrap a plain result into an inert Value; Values are returned as-is."""
    if isinstance(result, Value):
        return result
    return Value(result)
