"""App Runner service stack module.

Runs a container image from ECR on App Runner, connected to a private
Aurora PostgreSQL cluster:
- Aurora PostgreSQL cluster in the private subnets (encrypted, IAM auth)
- Access role so App Runner can pull from ECR, instance role for S3 reads
- VPC connector in the private subnets sharing the database security group
- Autoscaling configuration provisioned through SDK calls (no CloudFormation
  resource type exists for it) and wired into the service by ARN
"""

from typing import Any, Mapping, Optional

from constructs import Construct
from aws_cdk import (
    Stack,
    Duration,
    CfnOutput,
    aws_apprunner as apprunner,
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_iam as iam,
    aws_logs as logs,
    aws_rds as rds,
)

from stacks.service.autoscaling import AppRunnerAutoScaling

DB_PORT = 5432

ECR_PULL_ACTIONS = [
    "ecr:BatchCheckLayerAvailability",
    "ecr:BatchGetImage",
    "ecr:DescribeImages",
    "ecr:GetAuthorizationToken",
    "ecr:GetDownloadUrlForLayer",
]


class AppRunnerServiceStack(Stack):
    """CDK Stack for the App Runner service and its backing resources."""

    def __init__(self, scope: Construct, construct_id: str, *,
                 vpc: ec2.IVpc,
                 repository_name: str,
                 auto_scaling_configuration: Mapping[str, Any],
                 environment_variables: Optional[Mapping[str, str]] = None,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        repository = ecr.Repository.from_repository_name(
            self, "ApprunnerCdkExampleRepo", repository_name
        )

        self.db_cluster = self.create_database_cluster(vpc)
        access_role, instance_role = self.create_roles()
        vpc_connector = self.create_vpc_connector(vpc)

        # Autoscaling from the custom construct; App Runner scales up after
        # MaxConcurrency concurrent requests per instance
        self.auto_scaling = AppRunnerAutoScaling(
            self, "ApprunnerAutoscaling", auto_scaling_configuration
        )

        self.service = apprunner.CfnService(
            self,
            "ApprunnerCdkExampleService",
            source_configuration=apprunner.CfnService.SourceConfigurationProperty(
                auto_deployments_enabled=True,
                authentication_configuration=apprunner.CfnService.AuthenticationConfigurationProperty(
                    access_role_arn=access_role.role_arn
                ),
                image_repository=apprunner.CfnService.ImageRepositoryProperty(
                    image_identifier=f"{repository.repository_uri}:latest",
                    image_repository_type="ECR",
                    image_configuration=apprunner.CfnService.ImageConfigurationProperty(
                        port="80",
                        runtime_environment_variables=[
                            apprunner.CfnService.KeyValuePairProperty(name=key, value=value)
                            for key, value in (environment_variables or {}).items()
                        ],
                    ),
                ),
            ),
            health_check_configuration=apprunner.CfnService.HealthCheckConfigurationProperty(
                unhealthy_threshold=5,
                interval=5,
            ),
            auto_scaling_configuration_arn=self.auto_scaling.auto_scaling_configuration_arn,
            instance_configuration=apprunner.CfnService.InstanceConfigurationProperty(
                instance_role_arn=instance_role.role_arn
            ),
            network_configuration=apprunner.CfnService.NetworkConfigurationProperty(
                egress_configuration=apprunner.CfnService.EgressConfigurationProperty(
                    egress_type="VPC",
                    vpc_connector_arn=vpc_connector.attr_vpc_connector_arn,
                )
            ),
        )

        CfnOutput(self, "AppRunnerServiceUrl", value=f"https://{self.service.attr_service_url}")
        CfnOutput(self, "AutoScalingConfigurationArn",
            value=self.auto_scaling.auto_scaling_configuration_arn
        )

    def create_database_cluster(self, vpc: ec2.IVpc) -> rds.DatabaseCluster:
        """Aurora PostgreSQL cluster reachable only from its own security group."""
        db_cluster = rds.DatabaseCluster(
            self,
            "ApprunnerCdkExampleDBCluster",
            engine=rds.DatabaseClusterEngine.aurora_postgres(
                version=rds.AuroraPostgresEngineVersion.VER_15_4
            ),
            writer=rds.ClusterInstance.provisioned(
                "writer",
                instance_type=ec2.InstanceType.of(ec2.InstanceClass.BURSTABLE3, ec2.InstanceSize.MEDIUM),
                auto_minor_version_upgrade=False,
                publicly_accessible=False,
            ),
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            default_database_name="postgres_api",
            backup=rds.BackupProps(
                retention=Duration.days(7),
                preferred_window="01:00-02:00",
            ),
            port=DB_PORT,
            cloudwatch_logs_exports=["postgresql"],
            cloudwatch_logs_retention=logs.RetentionDays.SIX_MONTHS,
            storage_encrypted=True,
            iam_authentication=True,
        )

        # The VPC connector shares this security group, so self-ingress
        # is what lets the service reach the database
        db_cluster.connections.allow_from(db_cluster, ec2.Port.tcp(DB_PORT))
        return db_cluster

    def create_roles(self) -> tuple[iam.Role, iam.Role]:
        """Access role for image pulls and instance role for the running service."""
        access_role = iam.Role(self, "ApprunnerCdkExampleAccessRole",
            assumed_by=iam.ServicePrincipal("build.apprunner.amazonaws.com")
        )
        access_role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=ECR_PULL_ACTIONS,
                resources=["*"],
            )
        )

        instance_role = iam.Role(self, "ApprunnerCdkExampleInstanceRole",
            assumed_by=iam.ServicePrincipal("tasks.apprunner.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("AmazonS3ReadOnlyAccess")
            ]
        )
        return access_role, instance_role

    def create_vpc_connector(self, vpc: ec2.IVpc) -> apprunner.CfnVpcConnector:
        """Connector placing service egress in the private subnets."""
        return apprunner.CfnVpcConnector(
            self,
            "ApprunnerCdkExampleVpcConnector",
            subnets=vpc.select_subnets(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS).subnet_ids,
            security_groups=[
                self.db_cluster.connections.security_groups[0].security_group_id
            ],
        )
