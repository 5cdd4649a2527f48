"""Production rules connecting source keys to a destination key."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ._key import TypeKey, type_keys

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass(frozen=True, slots=True)
class Rule:
    """A production step for one destination key.

    ``produce`` is called with the payloads of ``sources`` as positional
    arguments, in declaration order, and returns a Value for ``destination``.
    Returning a plain object instead of a Value stores it as an inert value.

    A rule without sources is a root rule: it seeds the graph.

    Attributes:
        destination: The key this rule produces.
        sources: The keys whose payloads ``produce`` consumes.
        produce: The computation. It may perform I/O; the engine calls it at
            most once per destination within a resolution chain.

    Example:
        >>> Rule(
        ...     destination=key_of(URL),
        ...     sources=(key_of(DownloadPath), key_of(DistributionPackage)),
        ...     produce=lambda base, package: Value.of(URL(base + package.archive_path)),
        ... )

    """

    destination: TypeKey[Any]
    sources: tuple[TypeKey[Any], ...]
    produce: Callable[..., Any]

    def __post_init__(self) -> None:
        type_keys(self.destination, *self.sources)
        if len(set(self.sources)) != len(self.sources):
            msg = f"Rule for {self.destination} lists a source more than once"
            raise ValueError(msg)

    @property
    def is_root(self) -> bool:
        """Check if this rule has no sources."""
        return len(self.sources) == 0

    @property
    def name(self) -> str:
        return getattr(self.produce, "__name__", "<rule>")

    @classmethod
    def start(cls, destination: TypeKey[Any], produce: Callable[[], Any]) -> Rule:
        """Create a root rule."""
        return cls(destination, (), produce)

    @classmethod
    def bridge(cls, source: TypeKey[Any], destination: TypeKey[Any], produce: Callable[[Any], Any]) -> Rule:
        """Create a rule with a single source."""
        return cls(destination, (source,), produce)

    @classmethod
    def merge(
        cls,
        left: TypeKey[Any],
        right: TypeKey[Any],
        destination: TypeKey[Any],
        produce: Callable[[Any, Any], Any],
    ) -> Rule:
        """Create a rule joining two sources."""
        return cls(destination, (left, right), produce)

    def __str__(self) -> str:
        sources = ", ".join(str(source) for source in self.sources)
        return f"{self.name}({sources}) -> {self.destination}"
