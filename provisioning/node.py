"""Base class shared by every node of a provisioning graph."""

import logging
from enum import Enum
from typing import Any, Iterable, Iterator

from provisioning.deferred import Deferred, find_references
from provisioning.errors import LifecycleStateError

logger = logging.getLogger(__name__)


class ResourceState(str, Enum):
    """Lifecycle state of a node over one provisioning run."""

    UNPROVISIONED = "unprovisioned"
    CREATING = "creating"
    ACTIVE = "active"
    DELETING = "deleting"
    DELETED = "deleted"
    CREATE_FAILED = "create_failed"
    DELETE_FAILED = "delete_failed"


TERMINAL_STATES = frozenset({
    ResourceState.DELETED,
    ResourceState.CREATE_FAILED,
    ResourceState.DELETE_FAILED,
})

# Allowed transitions; anything else is a LifecycleStateError
TRANSITIONS: dict[ResourceState, frozenset] = {
    ResourceState.UNPROVISIONED: frozenset({ResourceState.CREATING}),
    ResourceState.CREATING: frozenset({ResourceState.ACTIVE, ResourceState.CREATE_FAILED}),
    ResourceState.ACTIVE: frozenset({ResourceState.DELETING}),
    ResourceState.DELETING: frozenset({ResourceState.DELETED, ResourceState.DELETE_FAILED}),
}


class Node:
    """A resource in the graph with create and delete callbacks.

    Subclasses implement create(context) and delete(context) and move
    through ResourceState with _transition().
    """

    def __init__(self, node_id: str, depends_on: Iterable["Node"] = ()):
        if not node_id:
            raise ValueError("node_id must be a non-empty string")
        self.node_id = node_id
        self.depends_on: list[str] = [node.node_id for node in depends_on]
        self._state = ResourceState.UNPROVISIONED

    @property
    def state(self) -> ResourceState:
        return self._state

    def _transition(self, target: ResourceState) -> None:
        if target not in TRANSITIONS.get(self._state, frozenset()):
            raise LifecycleStateError(
                f"{self.node_id}: cannot go from {self._state.value} to {target.value}"
            )
        logger.info("%s: %s -> %s", self.node_id, self._state.value, target.value)
        self._state = target

    def references(self) -> Iterator[Deferred]:
        """Deferred values this node reads when it is created."""
        return iter(())

    def _references_in(self, *values: Any) -> Iterator[Deferred]:
        for value in values:
            yield from find_references(value)

    def create(self, context) -> None:
        raise NotImplementedError

    def delete(self, context) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.node_id}, state={self._state.value})"
