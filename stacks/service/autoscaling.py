"""App Runner autoscaling configuration construct.

CloudFormation has no resource type for App Runner autoscaling
configurations, so the construct renders a LifecycleAdapter as an
AwsCustomResource:
- onCreate calls CreateAutoScalingConfiguration and takes the physical id
  from the configuration ARN in the response
- onDelete calls DeleteAutoScalingConfiguration with that physical id
- there is no onUpdate; the logical id carries the adapter fingerprint, so
  changed parameters replace the configuration instead of updating it
"""

from typing import Any, Mapping

from constructs import Construct
from aws_cdk import (
    Token,
    aws_iam as iam,
    custom_resources as cr,
)

from provisioning.adapter import LifecycleAction, LifecycleAdapter
from provisioning import apprunner
from provisioning.deferred import find_references
from provisioning.policy import ANY_RESOURCE, ExecutionPolicy


def policy_statements(policy: ExecutionPolicy) -> list[iam.PolicyStatement]:
    """Render an ExecutionPolicy as CDK IAM statements."""
    return [
        iam.PolicyStatement(
            effect=iam.Effect.DENY if statement.effect == "Deny" else iam.Effect.ALLOW,
            actions=list(statement.actions),
            resources=list(statement.resources),
        )
        for statement in policy.statements
    ]


class AppRunnerAutoScaling(Construct):
    """An App Runner autoscaling configuration managed through SDK calls.

    Attributes:
        adapter: The lifecycle adapter this construct renders
        auto_scaling_configuration_arn: Token for the configuration ARN,
            resolved by CloudFormation once the configuration exists
    """

    def __init__(self, scope: Construct, construct_id: str,
                 auto_scaling_configuration: Mapping[str, Any], *,
                 broad_permissions: bool = False) -> None:
        super().__init__(scope, construct_id)

        name = auto_scaling_configuration.get(apprunner.NAME_PARAMETER)
        # A name only known at deploy time cannot scope the ARN pattern
        resources = ANY_RESOURCE if isinstance(name, str) and Token.is_unresolved(name) else None
        self.adapter = apprunner.auto_scaling_configuration(
            construct_id, auto_scaling_configuration,
            broad_permissions=broad_permissions, resources=resources,
        )

        self.resource = cr.AwsCustomResource(
            self,
            f"AutoScalingConfiguration{self.adapter.fingerprint[:8].upper()}",
            on_create=self.sdk_call(self.adapter.create_action, physical_resource_id=True),
            on_delete=self.sdk_call(self.adapter.delete_action),
            policy=cr.AwsCustomResourcePolicy.from_statements(policy_statements(self.adapter.policy)),
            install_latest_aws_sdk=False,
        )

        self.auto_scaling_configuration_arn = self.resource.get_response_field(self.adapter.identity_path)

    def sdk_call(self, action: LifecycleAction, physical_resource_id: bool = False) -> cr.AwsSdkCall:
        """Render one lifecycle action as an AwsSdkCall."""
        return cr.AwsSdkCall(
            service=self.adapter.service,
            action=action.operation_name,
            parameters=self._parameters(self.adapter, action),
            physical_resource_id=(
                cr.PhysicalResourceId.from_response(self.adapter.identity_path)
                if physical_resource_id else None
            ),
        )

    @staticmethod
    def _parameters(adapter: LifecycleAdapter, action: LifecycleAction) -> dict:
        parameters = {}
        for key, value in action.parameters.items():
            if value is adapter.identity:
                # Filled in by the provider with the physical id captured on create
                parameters[key] = cr.PhysicalResourceIdReference()
            elif any(True for _ in find_references(value)):
                raise ValueError(
                    f"{adapter.node_id}: parameter '{key}' holds a deferred value; "
                    "pass a CDK token instead"
                )
            else:
                parameters[key] = value
        return parameters
