"""App Runner autoscaling configurations as lifecycle adapters.

App Runner exposes autoscaling configurations only through the
CreateAutoScalingConfiguration / DeleteAutoScalingConfiguration calls, so
they are provisioned through a LifecycleAdapter whose identity is the
configuration ARN.
"""

from typing import Any, Iterable, Mapping, Optional

from provisioning.adapter import LifecycleAdapter
from provisioning.node import Node
from provisioning.policy import ANY_RESOURCE, ExecutionPolicy

SERVICE = "AppRunner"
CREATE_OPERATION = "createAutoScalingConfiguration"
DELETE_OPERATION = "deleteAutoScalingConfiguration"
ARN_PATH = "AutoScalingConfiguration.AutoScalingConfigurationArn"
ARN_PARAMETER = "AutoScalingConfigurationArn"
NAME_PARAMETER = "AutoScalingConfigurationName"


def configuration_resources(name) -> tuple[str, ...]:
    """IAM resources covering every revision of the named configuration."""
    if not isinstance(name, str) or not name:
        return ANY_RESOURCE
    return (f"arn:*:apprunner:*:*:autoscalingconfiguration/{name}/*",)


def auto_scaling_configuration(node_id: str, parameters: Mapping[str, Any], *,
                               broad_permissions: bool = False,
                               resources: Optional[Iterable[str]] = None,
                               depends_on: Iterable[Node] = ()) -> LifecycleAdapter:
    """Build the adapter for one autoscaling configuration.

    Args:
        node_id: Node id in the graph
        parameters: CreateAutoScalingConfiguration input, e.g.
            {"AutoScalingConfigurationName": "apprunner-autoscaling",
             "MinSize": 1, "MaxSize": 3, "MaxConcurrency": 100}
        broad_permissions: Grant apprunner:* on every resource instead of
            the two operations on this configuration
        resources: IAM resources for the scoped policy; defaults to every
            revision of the configuration named in parameters
        depends_on: Nodes that must be created first
    """
    if broad_permissions:
        policy = ExecutionPolicy.allow_all(SERVICE)
    else:
        policy = ExecutionPolicy.from_operations(
            SERVICE,
            [CREATE_OPERATION, DELETE_OPERATION],
            resources=(
                tuple(resources) if resources is not None
                else configuration_resources(parameters.get(NAME_PARAMETER))
            ),
        )
    return LifecycleAdapter(
        node_id,
        service=SERVICE,
        create_operation=CREATE_OPERATION,
        create_parameters=parameters,
        identity_path=ARN_PATH,
        delete_operation=DELETE_OPERATION,
        identity_parameter=ARN_PARAMETER,
        policy=policy,
        depends_on=depends_on,
    )
