"""Execution context passed to every node callback during a provisioning pass."""

from dataclasses import dataclass
from typing import Callable, Optional

import boto3

from provisioning.invoker import ControlPlaneInvoker


@dataclass
class ExecutionContext:
    """Everything a node needs to talk to the control plane.

    Attributes:
        session: boto3 Session used for real invokers
        region_name: Region override for the invokers' clients
        invoker_factory: Builds the invoker for a service name; replaces the
            boto3-backed default (tests use this to record calls)
    """
    session: Optional[boto3.session.Session] = None
    region_name: Optional[str] = None
    invoker_factory: Optional[Callable[[str], ControlPlaneInvoker]] = None

    def invoker(self, service: str) -> ControlPlaneInvoker:
        """Return a fresh invoker for service."""
        if self.invoker_factory is not None:
            return self.invoker_factory(service)
        return ControlPlaneInvoker(service, session=self.session, region_name=self.region_name)
