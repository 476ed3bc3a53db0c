from aws_cdk import (
    aws_ec2,
    CfnOutput,
    Stack,
)
from constructs import Construct


class Network(Stack):

    def __init__(
        self, scope: Construct, id: str, cidr: str, nat_gateways: int = 1, **kwargs
    ):
        super().__init__(scope, id, **kwargs)

        self.vpc = aws_ec2.Vpc(
            self, "Vpc",
            ip_addresses=aws_ec2.IpAddresses.cidr(cidr),
            nat_gateways=nat_gateways,
        )

        CfnOutput(self, "VpcId", value=self.vpc.vpc_id)
