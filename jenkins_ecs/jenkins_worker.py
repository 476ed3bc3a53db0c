import os

import jsii
from aws_cdk import (
    aws_ecr_assets as ecr,
    aws_ec2 as ec2,
    aws_iam as iam,
    aws_logs as logs,
    Annotations,
    Aspects,
    CfnOutput,
    IAspect,
    Stack,
)
from constructs import Construct, IConstruct

WORKER_DOCKER_DIR = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), os.pardir, "docker", "worker"
)

EMPTY_TASK_ROLE_WARNING = (
    "Jenkins worker task role has no permissions. Grant them with "
    "worker.task_role.add_to_policy() if builds need AWS access."
)


@jsii.implements(IAspect)
class EmptyTaskRoleCheck:
    """
    Warns at synth time when the worker task role never received a policy.

    Workers launched by the master assume this role, so an empty role means
    builds cannot call any AWS API.
    """

    def visit(self, node: IConstruct) -> None:
        if not isinstance(node, iam.Role):
            return
        if not _has_permissions(node):
            Annotations.of(node).add_warning(EMPTY_TASK_ROLE_WARNING)


def _has_permissions(role: iam.Role) -> bool:
    # Role creates its DefaultPolicy child on the first add_to_policy()
    if role.node.try_find_child("DefaultPolicy") is not None:
        return True

    stack = Stack.of(role)
    cfn_role = role.node.default_child
    if stack.resolve(cfn_role.managed_policy_arns) or stack.resolve(cfn_role.policies):
        return True

    # Standalone policies list the roles they are attached to
    role_name = stack.resolve(role.role_name)
    for construct in stack.node.find_all():
        if isinstance(construct, (iam.CfnPolicy, iam.CfnManagedPolicy)):
            if role_name in (stack.resolve(construct.roles) or []):
                return True
    return False


class JenkinsWorker(Stack):

    def __init__(self, scope: Construct, id: str, vpc: ec2.IVpc, **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        self.container_image = ecr.DockerImageAsset(
            self, "JenkinsWorkerDockerImage", directory=WORKER_DOCKER_DIR
        )

        # Security group to connect workers to master; rules are added by the master
        self.security_group = ec2.SecurityGroup(
            self,
            "WorkerSecurityGroup",
            vpc=vpc,
            description="Jenkins Worker access to Jenkins Master",
        )

        # IAM execution role for the workers to pull from ECR and push to CloudWatch logs
        self.execution_role = iam.Role(
            self,
            "WorkerExecutionRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
        )

        self.execution_role.add_managed_policy(
            iam.ManagedPolicy.from_aws_managed_policy_name(
                "service-role/AmazonECSTaskExecutionRolePolicy"
            )
        )

        # Task role for worker containers - add to this role for any aws resources that builds require
        self.task_role = iam.Role(
            self,
            "WorkerTaskRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
        )
        Aspects.of(self.task_role).add(EmptyTaskRoleCheck())

        self.log_group = logs.LogGroup(
            self,
            "WorkerLogGroup",
            retention=logs.RetentionDays.ONE_DAY,
        )

        self.log_stream = logs.LogStream(
            self,
            "WorkerLogStream",
            log_group=self.log_group,
        )

        CfnOutput(self, "WorkerImageUri", value=self.container_image.image_uri)
        CfnOutput(self, "WorkerExecutionRoleArn", value=self.execution_role.role_arn)
        CfnOutput(self, "WorkerTaskRoleArn", value=self.task_role.role_arn)
