from typing import Optional

from aws_cdk import (
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_efs as efs,
    aws_logs as logs,
    aws_servicediscovery as sd,
    CfnOutput,
    RemovalPolicy,
    Stack,
)
from constructs import Construct

# Host path the shared file system is mounted at on every container instance
EFS_MOUNT_PATH = "/mnt/efs"


class Ecs(Stack):

    def __init__(
        self,
        scope: Construct,
        id: str,
        vpc: ec2.IVpc,
        service_discovery_namespace: str,
        cluster_name: str = "jenkins",
        ec2_capacity: bool = False,
        instance_type: str = "t3.xlarge",
        key_name: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(scope, id, **kwargs)

        self.ec2_capacity = ec2_capacity
        self.asg = None
        self.filesystem = None
        self.efs_security_group = None
        self.user_data_script = None

        self.exec_log_group = logs.LogGroup(
            self,
            "ExecLogGroup",
            retention=logs.RetentionDays.ONE_MONTH,
        )

        self.cluster = ecs.Cluster(
            self,
            "EcsCluster",
            cluster_name=cluster_name,
            vpc=vpc,
            default_cloud_map_namespace=ecs.CloudMapNamespaceOptions(
                name=service_discovery_namespace,
                type=sd.NamespaceType.DNS_PRIVATE,
            ),
            execute_command_configuration=ecs.ExecuteCommandConfiguration(
                logging=ecs.ExecuteCommandLogging.OVERRIDE,
                log_configuration=ecs.ExecuteCommandLogConfiguration(
                    cloud_watch_log_group=self.exec_log_group
                ),
            ),
        )

        if ec2_capacity:
            self._add_ec2_capacity(vpc, instance_type, key_name)

        CfnOutput(self, "ClusterArn", value=self.cluster.cluster_arn)

    def _add_ec2_capacity(
        self, vpc: ec2.IVpc, instance_type: str, key_name: Optional[str]
    ) -> None:
        self.asg = self.cluster.add_capacity(
            "Ec2",
            instance_type=ec2.InstanceType(instance_type),
            machine_image=ecs.EcsOptimizedImage.amazon_linux2023(),
            key_name=key_name,
        )

        # Only the container instances may reach the file system, on the NFS port
        self.efs_security_group = ec2.SecurityGroup(
            self,
            "EfsSecurityGroup",
            vpc=vpc,
            description="Jenkins home file system",
            allow_all_outbound=True,
        )

        self.filesystem = efs.FileSystem(
            self,
            "EfsBackend",
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(
                subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS
            ),
            security_group=self.efs_security_group,
            encrypted=True,
            lifecycle_policy=efs.LifecyclePolicy.AFTER_7_DAYS,
            removal_policy=RemovalPolicy.DESTROY,
        )
        self.filesystem.connections.allow_default_port_from(
            self.asg, "Container instances to EFS"
        )
        # Instances must not boot before a mount target exists in their subnet
        self.asg.node.add_dependency(self.filesystem.mount_targets_available)

        # fstab entry keeps the share mounted across reboots
        fstab_entry = f"{self.filesystem.file_system_id}:/ {EFS_MOUNT_PATH} efs _netdev,tls 0 0"
        commands = [
            "sudo yum install -y amazon-efs-utils",
            f"sudo mkdir -p {EFS_MOUNT_PATH}",
            f"echo \"{fstab_entry}\" | sudo tee -a /etc/fstab",
            "sudo mount -a -t efs defaults",
            f"sudo chown -R ec2-user: {EFS_MOUNT_PATH}",
            f"sudo chmod -R 0777 {EFS_MOUNT_PATH}",
        ]
        self.user_data_script = "\n".join(commands)
        self.asg.add_user_data(*commands)
