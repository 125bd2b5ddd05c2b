"""Network stack module.

Defines the VPC the App Runner service egresses through:
- Public subnets holding the NAT gateway
- Private subnets with egress for the Aurora cluster and the App Runner
  VPC connector
"""
import ipaddress
from constructs import Construct
from aws_cdk import (
    Stack,
    aws_ec2 as ec2,
    CfnOutput,
    Tags
)


class NetworkStack(Stack):
    """CDK Stack for VPC and networking resources.

    Creates a two-AZ VPC with a single NAT gateway, naming subnets after
    the service and their AZ.
    """

    def __init__(self, scope: Construct,
            construct_id: str,
            service_name: str,
            vpc_cidr: str,
            **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.vpc_name = f"{service_name}-vpc"
        self.vpc_cidr = vpc_cidr

        try:
            ipaddress.ip_network(self.vpc_cidr)
        except ValueError as e:
            raise ValueError(f"Invalid VPC CIDR block: {self.vpc_cidr}") from e

        self.vpc = ec2.Vpc(self, "ApprunnerCdkExampleVpc",
            ip_addresses=ec2.IpAddresses.cidr(self.vpc_cidr),
            max_azs=2,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            vpc_name=self.vpc_name,
            nat_gateways=1,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24
                ),
                ec2.SubnetConfiguration(
                    name="private",
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=20
                )
            ],
        )

        self.resource_tags(service_name)

        CfnOutput(self, "VpcId", value=self.vpc.vpc_id)
        CfnOutput(self,
            "PrivateSubnetIds",
            value=",".join([subnet.subnet_id for subnet in self.vpc.private_subnets])
        )

    def resource_tags(self, service_name: str) -> None:
        """Tag subnets with meaningful names"""
        for subnet_type, subnets in (("public", self.vpc.public_subnets),
                                     ("private", self.vpc.private_subnets)):
            for subnet in subnets:
                az_index = self.vpc.availability_zones.index(subnet.availability_zone)
                az_letter = chr(ord('a') + az_index)
                Tags.of(subnet).add("Name", f"{service_name}-{subnet_type}-{az_letter}")
        Tags.of(self.vpc).add("Service", service_name)
