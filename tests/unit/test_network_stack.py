"""Unit tests for the Network stack VPC."""
import aws_cdk as cdk
from aws_cdk.assertions import Template

from jenkins_ecs.network import Network


def synth_network_stack(cidr: str = "10.0.0.0/24", nat_gateways: int = 1):
    """Synthesize a Network stack for testing with the specified CIDR."""
    app = cdk.App()
    env = cdk.Environment(account="123456789012", region="us-east-1")
    stack = Network(app, "MyTestStack", cidr=cidr, nat_gateways=nat_gateways, env=env)
    return stack, Template.from_stack(stack)


def test_vpc_created():
    _, template = synth_network_stack()
    template.resource_count_is("AWS::EC2::VPC", 1)
    template.has_resource_properties("AWS::EC2::VPC", {
        "CidrBlock": "10.0.0.0/24"
    })


def test_vpc_cidr_is_taken_verbatim():
    """The address block is passed through as-is, validation is left to CloudFormation."""
    for cidr in ["10.0.0.0/16", "172.16.0.0/20", "192.168.0.0/24"]:
        _, template = synth_network_stack(cidr=cidr)
        template.has_resource_properties("AWS::EC2::VPC", {
            "CidrBlock": cidr
        })


def test_private_subnets_exposed_for_consumers():
    stack, _ = synth_network_stack()
    assert len(stack.vpc.private_subnets) > 0
    assert len(stack.vpc.public_subnets) > 0


def test_nat_gateway_count_follows_setting():
    _, template = synth_network_stack(nat_gateways=1)
    template.resource_count_is("AWS::EC2::NatGateway", 1)

    _, template = synth_network_stack(nat_gateways=2)
    template.resource_count_is("AWS::EC2::NatGateway", 2)


def test_vpc_id_output():
    _, template = synth_network_stack()
    assert "VpcId" in template.to_json().get("Outputs", {})
