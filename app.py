#!/usr/bin/env python3
"""CDK application entrypoint.

Defines and synthesizes the infrastructure stacks for the App Runner example:
1. NetworkStack: two-AZ VPC with public and private subnets.
2. AppRunnerServiceStack: Aurora PostgreSQL, IAM roles, VPC connector,
   autoscaling configuration and the App Runner service.
"""

import aws_cdk as cdk
from stacks.network.network_stack import NetworkStack
from stacks.service.app_runner_stack import AppRunnerServiceStack

AUTOSCALING_KEYS = {
    "name": "AutoScalingConfigurationName",
    "min_size": "MinSize",
    "max_size": "MaxSize",
    "max_concurrency": "MaxConcurrency",
}

app = cdk.App()


env_name = app.node.try_get_context("environment") or "dev"
env_context = app.node.try_get_context(env_name)
if not env_context:
    raise ValueError(f"No context found for environment '{env_name}'. Available environments: dev, stg, prod")

service_name = app.node.try_get_context("service_name")
if not service_name:
    raise ValueError("No 'service_name' found in context")

repository_name = app.node.try_get_context("repository_name")
if not repository_name:
    raise ValueError("No 'repository_name' found in context")

autoscaling_context = app.node.try_get_context("autoscaling") or {}
missing = [key for key in AUTOSCALING_KEYS if key not in autoscaling_context]
if missing:
    raise ValueError(f"Missing autoscaling context keys: {', '.join(missing)}")

env = cdk.Environment(
    account=env_context["account_id"],
    region=env_context["region"]
)

print(f"Synthesizing stacks for environment: {env_name} (Account: {env.account}, Region: {env.region})")

# Create network stack
network_stack = NetworkStack(app, "NetworkStack",
    service_name=service_name,
    vpc_cidr=env_context["vpc_cidr"],
    env=env
)

# Create App Runner stack in the network stack's VPC
service_stack = AppRunnerServiceStack(app, "ApprunnerCdkExampleStack",
    vpc=network_stack.vpc,
    repository_name=repository_name,
    auto_scaling_configuration={
        AUTOSCALING_KEYS[key]: value for key, value in autoscaling_context.items()
        if key in AUTOSCALING_KEYS
    },
    environment_variables=app.node.try_get_context("environment_variables") or {},
    env=env
)

# Add dependency
service_stack.add_dependency(network_stack)

app.synth()
