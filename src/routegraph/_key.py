"""Typed keys identifying the slots of a route graph."""

import types
from dataclasses import dataclass
from typing import Any, Union, get_args, get_origin


@dataclass(frozen=True, slots=True)
class TypeKey[T]:
    """A named, typed slot in a route graph.

    Two keys are equal if and only if both name and type are equal, so
    several slots may share a payload type as long as their names differ.

    Attributes:
        type: The payload type stored under this key.
        name: A human-readable name. May be empty when the type alone
            identifies the slot.

    Example:
        >>> artifact_path = TypeKey(Path, "artifactPath")
        >>> artifact_path == key_of(Path, "artifactPath")
        True

    """

    type: type[T]
    name: str = ""

    def accepts(self, payload: object) -> bool:
        """Check whether a payload may be stored under this key.

        Generic aliases such as ``list[str]`` are checked against their origin.
        Unions such as ``str | None`` accept a payload matching any member.
        Keys whose type is not a class (e.g. ``typing.Any``) accept everything.
        """
        return _matches(self.type, payload)

    @property
    def type_name(self) -> str:
        if isinstance(self.type, type) and get_origin(self.type) is None:
            return self.type.__name__
        return repr(self.type)

    def __str__(self) -> str:
        if self.name:
            return f"{self.name}:{self.type_name}"
        return self.type_name


def _matches(type_: object, payload: object) -> bool:
    origin = get_origin(type_)
    if origin is types.UnionType or origin is Union:
        return any(_matches(member, payload) for member in get_args(type_))
    expected = origin or type_
    if expected is Any or not isinstance(expected, type):
        return True
    return isinstance(payload, expected)


def key_of[T](type_: type[T], name: str = "") -> TypeKey[T]:
    """Create a TypeKey for a payload type and an optional name."""
    return TypeKey(type_, name)


def type_keys(*keys: TypeKey[Any]) -> tuple[TypeKey[Any], ...]:
    """Return keys as a tuple, rejecting anything that is not a TypeKey."""
    for key in keys:
        if not isinstance(key, TypeKey):
            msg = f"Expected a TypeKey, got {key!r}"
            raise TypeError(msg)
    return keys
