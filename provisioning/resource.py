"""Opaque resource nodes.

Stand-ins for resources the provisioning engine manages natively (a VPC
connector, a role, an App Runner service). Creating one materializes its
properties, which is the point where deferred references from other nodes
must be resolved; a reference still pending at that point fails the node.
"""

import logging
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional

from provisioning.deferred import Deferred, resolve_references
from provisioning.errors import ProvisioningError
from provisioning.node import Node, ResourceState

logger = logging.getLogger(__name__)


class ResourceNode(Node):
    """A declaratively managed resource.

    Args:
        node_id: Unique id of the node in its graph
        resource_type: Type name, e.g. "AWS::AppRunner::Service"
        properties: Configuration tree; may embed Deferred values
        outputs: Computes the node's attributes from its materialized
            properties once it is created
        depends_on: Nodes that must be created first
    """

    def __init__(self, node_id: str, resource_type: str, properties: Mapping[str, Any], *,
                 outputs: Optional[Callable[[dict], Mapping[str, Any]]] = None,
                 depends_on: Iterable[Node] = ()):
        super().__init__(node_id, depends_on)
        self.resource_type = resource_type
        self.properties = dict(properties)
        self.materialized: Optional[dict] = None
        self._outputs = outputs
        self._attributes: dict[str, Deferred] = {}

    def attribute(self, name: str) -> Deferred:
        """A Deferred for an attribute computed when the node is created."""
        if name not in self._attributes:
            self._attributes[name] = Deferred(f"{self.node_id}.{name}", owner=self.node_id)
        return self._attributes[name]

    def references(self) -> Iterator[Deferred]:
        return self._references_in(self.properties)

    def create(self, context) -> dict:
        self._transition(ResourceState.CREATING)
        try:
            self.materialized = resolve_references(self.properties)
            values = dict(self._outputs(self.materialized)) if self._outputs else {}
            for name, deferred in self._attributes.items():
                if name not in values:
                    raise ProvisioningError(f"{self.node_id} has no attribute '{name}'")
                deferred.resolve(values[name])
        except ProvisioningError as e:
            logger.error("%s: create failed: %s", self.node_id, e)
            self._transition(ResourceState.CREATE_FAILED)
            raise
        self._transition(ResourceState.ACTIVE)
        return self.materialized

    def delete(self, context) -> None:
        self._transition(ResourceState.DELETING)
        self._transition(ResourceState.DELETED)
