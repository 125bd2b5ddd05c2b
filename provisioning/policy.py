"""Execution policies: the IAM permissions a lifecycle node needs to run.

A policy is declared next to the node and serves two purposes. It is
rendered into the IAM statements the CDK custom-resource provider gets, and
the in-process adapter checks it before every call, so a node cannot invoke
an operation it did not declare.
"""

from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Iterable

from provisioning.invoker import api_operation_name, client_name

ANY_RESOURCE = ("*",)


def iam_action(service: str, operation_name: str) -> str:
    """Return the IAM action for an SDK call, e.g. "apprunner:CreateAutoScalingConfiguration"."""
    return f"{client_name(service)}:{api_operation_name(operation_name)}"


@dataclass(frozen=True)
class PolicyStatement:
    actions: tuple[str, ...]
    resources: tuple[str, ...] = ANY_RESOURCE
    effect: str = "Allow"

    def matches(self, action: str) -> bool:
        return any(fnmatchcase(action.lower(), pattern.lower()) for pattern in self.actions)

    def to_json(self) -> dict:
        return {
            "Effect": self.effect,
            "Action": list(self.actions),
            "Resource": list(self.resources),
        }


@dataclass(frozen=True)
class ExecutionPolicy:
    """A set of IAM statements granted to a node's invoker."""

    statements: tuple[PolicyStatement, ...] = field(default_factory=tuple)

    @classmethod
    def from_operations(cls, service: str, operations: Iterable[str],
                        resources: Iterable[str] = ANY_RESOURCE) -> "ExecutionPolicy":
        """Grant exactly the given operations of service on resources."""
        actions = tuple(dict.fromkeys(iam_action(service, op) for op in operations))
        return cls(statements=(PolicyStatement(actions=actions, resources=tuple(resources)),))

    @classmethod
    def allow_all(cls, service: str) -> "ExecutionPolicy":
        """Grant every operation of service on every resource."""
        return cls(statements=(PolicyStatement(actions=(f"{client_name(service)}:*",)),))

    @property
    def actions(self) -> list[str]:
        seen = {}
        for statement in self.statements:
            if statement.effect == "Allow":
                seen.update(dict.fromkeys(statement.actions))
        return list(seen)

    def allows(self, service: str, operation_name: str) -> bool:
        """Whether the policy grants the operation. Explicit denies win."""
        action = iam_action(service, operation_name)
        if any(s.effect == "Deny" and s.matches(action) for s in self.statements):
            return False
        return any(s.effect == "Allow" and s.matches(action) for s in self.statements)

    def to_policy_document(self) -> dict:
        return {
            "Version": "2012-10-17",
            "Statement": [statement.to_json() for statement in self.statements],
        }
