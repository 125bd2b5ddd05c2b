"""Error taxonomy for the provisioning core.

Control-plane failures are split the way botocore splits them:
- TransportError: the request never got a verdict from the API
  (connection refused, timeout, missing credentials)
- ApiError: the API answered and rejected the call
- IdentityResolutionError: the call succeeded but the response did not
  carry the field the node reads its identity from
"""


class ProvisioningError(Exception):
    """Base class for everything raised by the provisioning core."""


class TransportError(ProvisioningError):
    """Raised when the control plane could not be reached."""

    def __init__(self, operation_name: str, reason: str):
        self.operation_name = operation_name
        self.reason = reason
        super().__init__(f"{operation_name} failed in transport: {reason}")


class ApiError(ProvisioningError):
    """Raised when the control plane rejects an operation."""

    def __init__(self, operation_name: str, code: str, message: str):
        self.operation_name = operation_name
        self.code = code
        self.message = message
        super().__init__(f"{operation_name} rejected ({code}): {message}")


class IdentityResolutionError(ProvisioningError):
    """Raised when a response path is missing or does not hold a scalar."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot resolve '{path}' from response: {reason}")


class UnresolvedReferenceError(ProvisioningError):
    """Raised when a deferred value is read before it was resolved."""


class AlreadyResolvedError(ProvisioningError):
    """Raised when a deferred value is resolved a second time."""


class LifecycleStateError(ProvisioningError):
    """Raised when a lifecycle event is not valid in the node's current state."""


class PolicyViolationError(ProvisioningError):
    """Raised when a node tries an operation its execution policy does not grant."""


class GraphError(ProvisioningError):
    """Raised for malformed provisioning graphs."""


class CyclicDependencyError(GraphError):
    """Raised when the dependency graph contains a cycle."""


class UnknownOperationError(ProvisioningError, ValueError):
    """Raised locally when a service exposes no operation by the given name."""
