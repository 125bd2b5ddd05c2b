"""Unit tests for NetworkStack VPC and subnet configuration.

Tests VPC creation, subnet counts, AZ distribution, NAT/IGW presence, route
tables and subnet naming. Invalid CIDR blocks are rejected before synthesis.
"""
import ipaddress
import pytest
import aws_cdk as cdk
from aws_cdk.assertions import Template
from stacks.network.network_stack import NetworkStack


def _tag_value(tags, key):
    """Extract a tag value from CDK resource tags."""
    return next((t.get("Value") for t in tags if t.get("Key") == key), None)


def synth_network_stack(vpc_cidr: str = "10.0.0.0/16"):
    """Synthesize a NetworkStack for testing with the specified VPC CIDR."""
    app = cdk.App()
    env = cdk.Environment(account="111111111111", region="eu-west-1")
    stack = NetworkStack(app, "NetworkStackTest",
        service_name="test-service",
        vpc_cidr=vpc_cidr,
        env=env
    )
    template = Template.from_stack(stack)
    return stack, template


def test_vpc_exists_with_cidr():
    """Test VPC resource is created with expected CIDR block."""
    _, template = synth_network_stack()
    template.has_resource_properties("AWS::EC2::VPC", {
        "CidrBlock": "10.0.0.0/16"
    })


def test_has_expected_subnet_counts():
    """Test correct number of subnets are created (2 public + 2 private)."""
    _, template = synth_network_stack()
    subnet_resources = template.find_resources("AWS::EC2::Subnet")
    assert len(subnet_resources) == 4, f"Expected 4 subnets (2 of each type), found {len(subnet_resources)}"


def test_subnets_named_after_service_and_az():
    """Test every subnet carries a Name tag built from service, type and AZ."""
    _, template = synth_network_stack()
    names = sorted(
        _tag_value(res["Properties"].get("Tags", []), "Name")
        for res in template.find_resources("AWS::EC2::Subnet").values()
    )
    assert names == [
        "test-service-private-a",
        "test-service-private-b",
        "test-service-public-a",
        "test-service-public-b",
    ]


def test_az_distribution():
    """Test subnets are distributed across 2 availability zones."""
    _, template = synth_network_stack()
    azs_used = {
        res["Properties"].get("AvailabilityZone")
        for res in template.find_resources("AWS::EC2::Subnet").values()
    }
    assert len(azs_used) == 2, f"Expected subnets to be distributed across 2 AZs, found {len(azs_used)}"


def test_igw_created():
    """Test Internet Gateway is created for public subnet connectivity."""
    _, template = synth_network_stack()
    template.has_resource("AWS::EC2::InternetGateway", {})


def test_single_nat_gateway_created():
    """Test exactly one NAT Gateway is created for private subnet egress."""
    _, template = synth_network_stack()
    template.resource_count_is("AWS::EC2::NatGateway", 1)


def test_route_tables_created():
    """Test one route table per subnet is created."""
    _, template = synth_network_stack()
    template.resource_count_is("AWS::EC2::RouteTable", 4)


def test_outputs_present():
    """Test VPC id and private subnet ids are exported as outputs."""
    _, template = synth_network_stack()
    outputs = template.to_json().get("Outputs", {})
    assert "VpcId" in outputs, "VpcId missing in template outputs"
    assert "PrivateSubnetIds" in outputs, "PrivateSubnetIds missing in template outputs"


def test_valid_cidr_formats():
    """Test VPC accepts valid CIDR format strings."""
    valid_cidrs = [
        "10.0.0.0/16",
        "172.16.0.0/16",
        "192.168.0.0/16"
    ]
    for cidr in valid_cidrs:
        ipaddress.ip_network(cidr)
        _, template = synth_network_stack(vpc_cidr=cidr)
        template.has_resource_properties("AWS::EC2::VPC", {
            "CidrBlock": cidr
        })


@pytest.mark.parametrize("invalid_cidr", [
    "10.0.0.0/",          # Empty subnet mask
    "10.0.0.0/33",        # Invalid subnet mask (>32)
    "256.0.0.0/16",       # Invalid IP (256 > 255)
    "not-an-ip/16",       # Non-IP string
    "",                   # Empty string
    "10.0.0.0/abc",       # Non-numeric subnet mask
    "10.0.0.1/16",        # Host bits set
])
def test_invalid_vpc_cidr(invalid_cidr):
    """Test NetworkStack rejects invalid VPC CIDR formats."""
    with pytest.raises(ValueError, match="Invalid VPC CIDR block"):
        synth_network_stack(vpc_cidr=invalid_cidr)
