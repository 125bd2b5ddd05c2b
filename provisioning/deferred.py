"""Deferred references for values that only exist after a node is created.

A Deferred is handed out while the graph is being built and resolved at
most once while the graph runs. Reading it is always explicit: get() raises
until the value is there, and string conversion is refused so a deferred
can never end up silently formatted into another node's configuration.
"""

import copy
import logging
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

from provisioning.errors import AlreadyResolvedError, UnresolvedReferenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


class Deferred(Generic[T]):
    """Handle to a value produced by a graph node at run time.

    Attributes:
        description: Human readable name, used in errors and logs
        owner: node_id of the node that resolves this value, if any
    """

    def __init__(self, description: str, owner: Optional[str] = None):
        self.description = description
        self.owner = owner
        self._resolved = False
        self._value: Optional[T] = None

    @property
    def is_resolved(self) -> bool:
        return self._resolved

    def resolve(self, value: T) -> None:
        """Set the value. A deferred can only be resolved once."""
        if self._resolved:
            raise AlreadyResolvedError(f"{self.description} is already resolved")
        self._value = value
        self._resolved = True
        logger.debug("Resolved %s", self.description)

    def get(self) -> T:
        """Return the resolved value.

        Raises:
            UnresolvedReferenceError: If the producing node has not run yet
        """
        if not self._resolved:
            raise UnresolvedReferenceError(f"{self.description} is not resolved yet")
        return self._value

    def apply(self, fn: Callable[[T], U], description: Optional[str] = None) -> "Deferred[U]":
        """Derive a deferred whose value is fn(value of this one)."""
        return _DerivedDeferred(self, fn, description or f"{self.description} (derived)")

    def __str__(self):
        raise TypeError(
            f"{self.description} is deferred; use .get() at run time or .apply() to derive a value"
        )

    def __format__(self, format_spec):
        return self.__str__()

    def __repr__(self) -> str:
        state = "resolved" if self.is_resolved else "unresolved"
        return f"Deferred({self.description!r}, owner={self.owner!r}, {state})"


class _DerivedDeferred(Deferred):
    """A deferred computed from another one on read."""

    def __init__(self, source: Deferred, fn: Callable, description: str):
        super().__init__(description, owner=source.owner)
        self._source = source
        self._fn = fn

    @property
    def is_resolved(self) -> bool:
        return self._source.is_resolved

    def resolve(self, value) -> None:
        raise AlreadyResolvedError(f"{self.description} is derived and cannot be set directly")

    def get(self):
        return self._fn(self._source.get())


def find_references(value: Any) -> Iterator[Deferred]:
    """Yield every Deferred nested inside dicts, lists and tuples."""
    if isinstance(value, Deferred):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from find_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from find_references(item)


def resolve_references(value: Any) -> Any:
    """Return a copy of value with every Deferred replaced by its value.

    Raises:
        UnresolvedReferenceError: On the first deferred that is not resolved
    """
    if isinstance(value, Deferred):
        return copy.deepcopy(value.get())
    if isinstance(value, dict):
        return {key: resolve_references(item) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_references(item) for item in value]
    if isinstance(value, tuple):
        return tuple(resolve_references(item) for item in value)
    return copy.deepcopy(value)
