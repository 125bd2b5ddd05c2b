"""Lifecycle adapter: an imperative-only API object as a graph node.

Some control-plane objects (App Runner autoscaling configurations among
them) have no declarative resource type. The adapter binds one API call to
the CREATE event and one to the DELETE event, reads the object's identity
out of the CREATE response, and hands that identity to the rest of the
graph as a Deferred.

There is deliberately no UPDATE event. Changing the create parameters
changes the adapter's fingerprint, and whoever persists the graph keys
the resource by it, so a change is a replacement (create new, delete old).
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping, Optional

from provisioning.deferred import Deferred, resolve_references
from provisioning.errors import LifecycleStateError, PolicyViolationError, ProvisioningError
from provisioning.node import Node, ResourceState
from provisioning.paths import extract_field
from provisioning.policy import ExecutionPolicy

logger = logging.getLogger(__name__)


class LifecycleEvent(str, Enum):
    CREATE = "create"
    DELETE = "delete"


@dataclass(frozen=True)
class LifecycleAction:
    """One API operation bound to one lifecycle event.

    Attributes:
        event: The lifecycle event that triggers the call
        operation_name: SDK operation, e.g. "createAutoScalingConfiguration"
        parameters: Call parameters; may hold Deferred values
    """
    event: LifecycleEvent
    operation_name: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def resolved_parameters(self) -> dict:
        """Parameters with every Deferred replaced by its value."""
        return resolve_references(dict(self.parameters))


class PhysicalIdentity:
    """The identifier of the external object, read from the CREATE response."""

    def __init__(self, node_id: str, source_path: str):
        self.source_path = source_path
        self.value: Deferred[str] = Deferred(f"{node_id}.{source_path}", owner=node_id)

    def capture(self, response: Mapping[str, Any]) -> str:
        value = str(extract_field(response, self.source_path))
        self.value.resolve(value)
        return value


def _fingerprint_default(value: Any) -> str:
    if isinstance(value, Deferred):
        return f"deferred:{value.description}"
    raise TypeError(f"Cannot fingerprint {type(value).__name__}; create parameters must be JSON values")


class LifecycleAdapter(Node):
    """A graph node that creates and deletes an object through two API calls.

    Args:
        node_id: Unique id of the node in its graph
        service: SDK service name, e.g. "AppRunner"
        create_operation: Operation called on CREATE
        create_parameters: Parameters for the CREATE call, used verbatim
        identity_path: Dotted path of the identity in the CREATE response
        delete_operation: Operation called on DELETE
        identity_parameter: DELETE parameter that receives the identity
        policy: Permissions for the invoker; defaults to exactly the two
            operations on any resource
        depends_on: Nodes that must be created first
    """

    def __init__(self, node_id: str, *, service: str, create_operation: str,
                 create_parameters: Mapping[str, Any], identity_path: str,
                 delete_operation: str, identity_parameter: str,
                 policy: Optional[ExecutionPolicy] = None, depends_on: Iterable[Node] = ()):
        super().__init__(node_id, depends_on)
        self.service = service
        self.physical_identity = PhysicalIdentity(node_id, identity_path)
        self.policy = policy or ExecutionPolicy.from_operations(
            service, [create_operation, delete_operation]
        )
        self.actions: dict[LifecycleEvent, LifecycleAction] = {}
        self._response_fields: dict[str, Deferred] = {}

        self._register(LifecycleAction(LifecycleEvent.CREATE, create_operation, dict(create_parameters)))
        self._register(LifecycleAction(
            LifecycleEvent.DELETE, delete_operation, {identity_parameter: self.identity}
        ))

    def _register(self, action: LifecycleAction) -> None:
        if action.event in self.actions:
            raise ValueError(f"{self.node_id} already has a {action.event.value} action")
        self.actions[action.event] = action

    @property
    def identity(self) -> Deferred[str]:
        """The physical identity; resolves when CREATE succeeds."""
        return self.physical_identity.value

    @property
    def identity_path(self) -> str:
        return self.physical_identity.source_path

    @property
    def create_action(self) -> LifecycleAction:
        return self.actions[LifecycleEvent.CREATE]

    @property
    def delete_action(self) -> LifecycleAction:
        return self.actions[LifecycleEvent.DELETE]

    @property
    def fingerprint(self) -> str:
        """Digest of what CREATE would do; changes whenever the parameters change.

        Raises:
            TypeError: If a create parameter is not a JSON value or a Deferred
        """
        payload = json.dumps(
            {
                "service": self.service,
                "operation": self.create_action.operation_name,
                "parameters": self.create_action.parameters,
            },
            sort_keys=True,
            default=_fingerprint_default,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def get_response_field(self, path: str) -> Deferred:
        """A Deferred for another field of the CREATE response."""
        if path == self.identity_path:
            return self.identity
        if path not in self._response_fields:
            self._response_fields[path] = Deferred(f"{self.node_id}.{path}", owner=self.node_id)
        return self._response_fields[path]

    def references(self) -> Iterator[Deferred]:
        return (
            ref for ref in self._references_in(self.create_action.parameters)
            if ref.owner != self.node_id
        )

    def create(self, context) -> str:
        """Run the CREATE action and capture the identity.

        Returns:
            The resolved identity

        Raises:
            LifecycleStateError: If the node was already created in this run
            ProvisioningError: Whatever the call or identity capture raised;
                the node is left in CREATE_FAILED
        """
        action = self.create_action
        self._transition(ResourceState.CREATING)
        try:
            self._check_policy(action)
            response = context.invoker(self.service).invoke(
                action.operation_name, action.resolved_parameters()
            )
            # Nothing resolves unless every field is present
            fields = {path: extract_field(response, path) for path in self._response_fields}
            identity = self.physical_identity.capture(response)
            for path, value in fields.items():
                self._response_fields[path].resolve(value)
        except (ProvisioningError, ValueError) as e:
            logger.error("%s: create failed: %s", self.node_id, e)
            self._transition(ResourceState.CREATE_FAILED)
            raise
        self._transition(ResourceState.ACTIVE)
        logger.info("%s: created %s", self.node_id, identity)
        return identity

    def delete(self, context) -> None:
        """Run the DELETE action against the identity captured on CREATE.

        Raises:
            LifecycleStateError: If the node is not ACTIVE
            ProvisioningError: Whatever the call raised; the node is left
                in DELETE_FAILED
        """
        if self.state != ResourceState.ACTIVE:
            raise LifecycleStateError(
                f"{self.node_id}: delete requires an active resource, state is {self.state.value}"
            )
        action = self.delete_action
        self._transition(ResourceState.DELETING)
        try:
            self._check_policy(action)
            context.invoker(self.service).invoke(action.operation_name, action.resolved_parameters())
        except (ProvisioningError, ValueError) as e:
            logger.error("%s: delete failed: %s", self.node_id, e)
            self._transition(ResourceState.DELETE_FAILED)
            raise
        self._transition(ResourceState.DELETED)

    def _check_policy(self, action: LifecycleAction) -> None:
        if not self.policy.allows(self.service, action.operation_name):
            raise PolicyViolationError(
                f"{self.node_id}: policy does not allow {self.service}.{action.operation_name}"
            )
