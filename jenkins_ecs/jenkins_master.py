import os
from typing import Dict

from aws_cdk import (
    aws_ecs_patterns as ecs_patterns,
    aws_ecs as ecs,
    aws_ecr_assets as ecr,
    aws_ec2 as ec2,
    aws_elasticloadbalancingv2 as elbv2,
    aws_servicediscovery as sd,
    aws_iam as iam,
    CfnOutput,
    Duration,
    Stack,
)
from constructs import Construct

from .ecs import EFS_MOUNT_PATH, Ecs
from .jenkins_worker import JenkinsWorker
from .network import Network

MASTER_DOCKER_DIR = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), os.pardir, "docker", "master"
)

WEB_PORT = 8080
AGENT_PORT = 50000
JENKINS_HOME = "/var/jenkins_home"
HEALTH_CHECK_PATH = "/login"


def master_environment(
    network: Network,
    ecs_cluster: Ecs,
    worker: JenkinsWorker,
    region: str,
    jenkins_url: str,
) -> Dict[str, str]:
    """
    Container environment of the Jenkins master.

    The configuration-as-code template inside the master image reads these
    keys to find the cluster, subnets, roles and log group it launches
    workers with.
    """
    return {
        # https://github.com/jenkinsci/docker/blob/master/README.md#passing-jvm-parameters
        "JAVA_OPTS": " ".join(
            [
                "-Djenkins.install.runSetupWizard=false",
                "-Dhudson.slaves.NodeProvisioner.initialDelay=0",
                "-Dhudson.slaves.NodeProvisioner.MARGIN=50",
                "-Dhudson.slaves.NodeProvisioner.MARGIN0=0.85",
            ]
        ),
        # https://github.com/jenkinsci/configuration-as-code-plugin/blob/master/README.md#getting-started
        "CASC_JENKINS_CONFIG": "/config-as-code.yaml",
        # Template parameters
        "network_stack": network.stack_name,
        "cluster_stack": ecs_cluster.stack_name,
        "worker_stack": worker.stack_name,
        "cluster_arn": ecs_cluster.cluster.cluster_arn,
        "aws_region": region,
        "jenkins_url": jenkins_url,
        "subnet_ids": ",".join([x.subnet_id for x in network.vpc.private_subnets]),
        "security_group_ids": worker.security_group.security_group_id,
        "execution_role_arn": worker.execution_role.role_arn,
        "task_role_arn": worker.task_role.role_arn,
        "worker_log_group": worker.log_group.log_group_name,
        "worker_log_stream_prefix": worker.log_stream.log_stream_name,
    }


class JenkinsMaster(Stack):

    def __init__(
        self,
        scope: Construct,
        id: str,
        ecs_cluster: Ecs,
        network: Network,
        worker: JenkinsWorker,
        jenkins_url: str = "http://master.jenkins:8080",
        cpu: int = 512,
        memory_limit_mib: int = 2048,
        worker_family_prefix: str = "fargate-workers",
        **kwargs,
    ) -> None:
        super().__init__(scope, id, **kwargs)

        # Building a custom image for jenkins master.
        self.container_image = ecr.DockerImageAsset(
            self, "JenkinsMasterDockerImage", directory=MASTER_DOCKER_DIR
        )
        image = ecs.ContainerImage.from_docker_image_asset(self.container_image)

        self.container_environment = master_environment(
            network, ecs_cluster, worker, self.region, jenkins_url
        )

        if ecs_cluster.ec2_capacity:
            self.service = self._ec2_service(
                ecs_cluster, image, cpu, memory_limit_mib
            )
        else:
            self.service = self._fargate_service(
                ecs_cluster, image, cpu, memory_limit_mib
            )
        self.task_definition = self.service.task_definition

        # Enable connection between master and workers
        for port in [WEB_PORT, AGENT_PORT]:
            self.service.connections.allow_from(
                worker.security_group,
                port_range=ec2.Port(
                    protocol=ec2.Protocol.TCP,
                    string_representation=f"Master to Worker {port}",
                    from_port=port,
                    to_port=port,
                ),
            )

        self._grant_worker_orchestration(ecs_cluster, worker, worker_family_prefix)

    def _add_master_container(
        self, task_definition: ecs.TaskDefinition, image: ecs.ContainerImage, **kwargs
    ) -> ecs.ContainerDefinition:
        container = task_definition.add_container(
            "master",
            image=image,
            environment=self.container_environment,
            logging=ecs.LogDrivers.aws_logs(stream_prefix="jenkinsLog"),
            **kwargs,
        )
        container.add_port_mappings(ecs.PortMapping(container_port=WEB_PORT))
        # Opening port 50000 for master <--> worker communications
        container.add_port_mappings(
            ecs.PortMapping(container_port=AGENT_PORT, host_port=AGENT_PORT)
        )
        return container

    def _fargate_service(
        self,
        ecs_cluster: Ecs,
        image: ecs.ContainerImage,
        cpu: int,
        memory_limit_mib: int,
    ) -> ecs.FargateService:
        task_definition = ecs.FargateTaskDefinition(
            self,
            "JenkinsTaskDefinition",
            family="jenkins",
            cpu=cpu,
            memory_limit_mib=memory_limit_mib,
        )
        self._add_master_container(task_definition, image)

        fargate_service = ecs_patterns.ApplicationLoadBalancedFargateService(
            self,
            "JenkinsMasterService",
            service_name="jenkins-svc",
            cluster=ecs_cluster.cluster,
            task_definition=task_definition,
            desired_count=1,
            enable_ecs_managed_tags=True,
            public_load_balancer=True,
            assign_public_ip=True,
            cloud_map_options=ecs.CloudMapOptions(
                name="master", dns_record_type=sd.DnsRecordType.A
            ),
            min_healthy_percent=0,
            max_healthy_percent=100,
        )

        fargate_service.target_group.configure_health_check(path=HEALTH_CHECK_PATH)
        # Reduce time ALB waits when draining tasks
        fargate_service.target_group.set_attribute(
            "deregistration_delay.timeout_seconds", "0"
        )
        self.load_balancer = fargate_service.load_balancer
        return fargate_service.service

    def _ec2_service(
        self,
        ecs_cluster: Ecs,
        image: ecs.ContainerImage,
        cpu: int,
        memory_limit_mib: int,
    ) -> ecs.Ec2Service:
        task_definition = ecs.Ec2TaskDefinition(
            self,
            "JenkinsTaskDefinition",
            family="jenkins",
            network_mode=ecs.NetworkMode.AWS_VPC,
        )
        # Jenkins home lives on the EFS share the container instances mount
        task_definition.add_volume(
            name="jenkins-home",
            host=ecs.Host(source_path=EFS_MOUNT_PATH),
        )
        container = self._add_master_container(
            task_definition, image, cpu=cpu, memory_limit_mib=memory_limit_mib
        )
        container.add_mount_points(
            ecs.MountPoint(
                container_path=JENKINS_HOME,
                source_volume="jenkins-home",
                read_only=False,
            )
        )

        service = ecs.Ec2Service(
            self,
            "JenkinsMasterService",
            service_name="jenkins-svc",
            cluster=ecs_cluster.cluster,
            task_definition=task_definition,
            desired_count=1,
            enable_ecs_managed_tags=True,
            cloud_map_options=ecs.CloudMapOptions(
                name="master", dns_record_type=sd.DnsRecordType.A
            ),
            min_healthy_percent=0,
            max_healthy_percent=100,
        )

        self.load_balancer = elbv2.ApplicationLoadBalancer(
            self,
            "LoadBalancer",
            vpc=ecs_cluster.cluster.vpc,
            internet_facing=True,
        )
        listener = self.load_balancer.add_listener(
            "PublicListener",
            port=80,
            open=True,
        )
        listener.add_targets(
            "JenkinsMaster",
            port=WEB_PORT,
            protocol=elbv2.ApplicationProtocol.HTTP,
            targets=[
                service.load_balancer_target(
                    container_name="master", container_port=WEB_PORT
                )
            ],
            health_check=elbv2.HealthCheck(path=HEALTH_CHECK_PATH),
            deregistration_delay=Duration.seconds(0),
        )

        CfnOutput(
            self,
            "LoadBalancerDNS",
            value=self.load_balancer.load_balancer_dns_name,
        )
        return service

    def _grant_worker_orchestration(
        self, ecs_cluster: Ecs, worker: JenkinsWorker, worker_family_prefix: str
    ) -> None:
        # IAM Statements to allow jenkins ecs plugin to talk to ECS as well as the Jenkins cluster #
        self.task_definition.add_to_task_role_policy(
            iam.PolicyStatement(
                actions=[
                    "ecs:RegisterTaskDefinition",
                    "ecs:DeregisterTaskDefinition",
                    "ecs:ListClusters",
                    "ecs:DescribeContainerInstances",
                    "ecs:ListTaskDefinitions",
                    "ecs:DescribeTaskDefinition",
                    "ecs:DescribeTasks",
                ],
                resources=["*"],
            )
        )

        self.task_definition.add_to_task_role_policy(
            iam.PolicyStatement(
                actions=["ecs:ListContainerInstances"],
                resources=[ecs_cluster.cluster.cluster_arn],
            )
        )

        self.task_definition.add_to_task_role_policy(
            iam.PolicyStatement(
                actions=["ecs:RunTask"],
                resources=[
                    "arn:aws:ecs:{0}:{1}:task-definition/{2}*".format(
                        self.region,
                        self.account,
                        worker_family_prefix,
                    )
                ],
            )
        )

        self.task_definition.add_to_task_role_policy(
            iam.PolicyStatement(
                actions=["ecs:StopTask"],
                resources=[
                    "arn:aws:ecs:{0}:{1}:task/*".format(self.region, self.account)
                ],
                conditions={
                    "ForAnyValue:ArnEquals": {
                        "ecs:cluster": ecs_cluster.cluster.cluster_arn
                    }
                },
            )
        )

        self.task_definition.add_to_task_role_policy(
            iam.PolicyStatement(
                actions=["iam:PassRole"],
                resources=[
                    worker.task_role.role_arn,
                    worker.execution_role.role_arn,
                ],
            )
        )
