"""Provisioning graph: dependency-ordered create and teardown passes.

Nodes are created dependencies first and deleted dependents first. An edge
comes either from an explicit depends_on or from a Deferred a node reads
that another node resolves. A failure stops the affected branch only:
- up: dependents of a failed node are skipped, independent nodes still run
- down: a node is kept while any of its dependents failed or was kept,
  and nothing already deleted is restored
"""

import logging
from dataclasses import dataclass, field

from provisioning.errors import CyclicDependencyError, GraphError, ProvisioningError
from provisioning.node import Node, ResourceState

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of one provisioning pass.

    Attributes:
        succeeded: node_ids the pass completed, in execution order
        failed: node_id -> the error that failed it
        skipped: node_ids not attempted because of a failure upstream
    """
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, Exception] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.skipped


class ProvisioningGraph:
    """A named graph of nodes; the owner of every node added to it."""

    def __init__(self, name: str):
        self.name = name
        self._nodes: dict[str, Node] = {}

    def add(self, node: Node) -> Node:
        """Add node and return it.

        Raises:
            ValueError: If a node with the same id is already present
        """
        if node.node_id in self._nodes:
            raise ValueError(f"Duplicate node id '{node.node_id}' in graph '{self.name}'")
        self._nodes[node.node_id] = node
        return node

    def add_dependency(self, node: Node, depends_on: Node) -> None:
        if depends_on.node_id not in node.depends_on:
            node.depends_on.append(depends_on.node_id)

    def get_node(self, node_id: str) -> Node:
        """Get a node by id.

        Raises:
            KeyError: If node_id is not in the graph
        """
        return self._nodes[node_id]

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    def dependencies_of(self, node: Node) -> list[str]:
        """Explicit dependencies plus the owners of every Deferred the node reads.

        Raises:
            GraphError: If a dependency is not part of this graph
        """
        deps = dict.fromkeys(node.depends_on)
        for ref in node.references():
            if ref.owner is None:
                raise GraphError(f"{node.node_id} reads {ref.description}, which has no owning node")
            if ref.owner != node.node_id:
                deps[ref.owner] = None
        for dep in deps:
            if dep not in self._nodes:
                raise GraphError(f"{node.node_id} depends on '{dep}', which is not in graph '{self.name}'")
        return list(deps)

    def create_order(self) -> list[Node]:
        """Nodes in creation order (dependencies first), stable in insertion order.

        Raises:
            CyclicDependencyError: If the dependencies form a cycle
        """
        dependents: dict[str, list[str]] = {node_id: [] for node_id in self._nodes}
        in_degree: dict[str, int] = {node_id: 0 for node_id in self._nodes}
        for node in self._nodes.values():
            for dep in self.dependencies_of(node):
                dependents[dep].append(node.node_id)
                in_degree[node.node_id] += 1

        # Kahn's algorithm; the queue keeps insertion order for determinism
        order: list[str] = []
        queue = [node_id for node_id, degree in in_degree.items() if degree == 0]
        while queue:
            current = queue.pop(0)
            order.append(current)
            for dependent in dependents[current]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(order) != len(self._nodes):
            cycle_nodes = [node_id for node_id, degree in in_degree.items() if degree > 0]
            raise CyclicDependencyError(f"Circular dependency detected involving: {cycle_nodes}")
        return [self._nodes[node_id] for node_id in order]

    def destroy_order(self) -> list[Node]:
        """Nodes in teardown order (dependents first)."""
        return list(reversed(self.create_order()))

    def up(self, context) -> RunResult:
        """Create every node in dependency order."""
        result = RunResult()
        blocked: set[str] = set()
        logger.info("[up] %s: %d nodes", self.name, len(self._nodes))

        for node in self.create_order():
            if blocked.intersection(self.dependencies_of(node)):
                logger.warning("[up] Skipping '%s': a dependency failed", node.node_id)
                result.skipped.append(node.node_id)
                blocked.add(node.node_id)
                continue
            try:
                node.create(context)
            except (ProvisioningError, ValueError) as e:
                logger.error("[up] Create failed for node '%s': %s", node.node_id, e)
                result.failed[node.node_id] = e
                blocked.add(node.node_id)
                continue
            result.succeeded.append(node.node_id)

        self._log_result("up", result)
        return result

    def down(self, context) -> RunResult:
        """Delete every active node, dependents before their dependencies."""
        result = RunResult()
        kept: set[str] = set()
        logger.info("[down] %s: %d nodes", self.name, len(self._nodes))

        for node in self.destroy_order():
            if node.state != ResourceState.ACTIVE:
                logger.debug("[down] '%s' is %s, nothing to delete", node.node_id, node.state.value)
                continue
            if any(node.node_id in self.dependencies_of(other) for other in self._nodes.values()
                   if other.node_id in kept):
                logger.warning("[down] Keeping '%s': a dependent was not deleted", node.node_id)
                result.skipped.append(node.node_id)
                kept.add(node.node_id)
                continue
            try:
                node.delete(context)
            except (ProvisioningError, ValueError) as e:
                logger.error("[down] Destroy failed for node '%s': %s", node.node_id, e)
                result.failed[node.node_id] = e
                kept.add(node.node_id)
                continue
            result.succeeded.append(node.node_id)

        self._log_result("down", result)
        return result

    def _log_result(self, pass_name: str, result: RunResult) -> None:
        if result.ok:
            logger.info("[%s] %s complete: %d nodes", pass_name, self.name, len(result.succeeded))
        else:
            logger.error("[%s] %s failed: %d failed, %d skipped", pass_name, self.name,
                         len(result.failed), len(result.skipped))
