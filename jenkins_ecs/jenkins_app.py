import logging
from typing import NamedTuple

from aws_cdk import Tags
from constructs import Construct

from .config import JenkinsConfig
from .ecs import Ecs
from .jenkins_master import JenkinsMaster
from .jenkins_worker import JenkinsWorker
from .network import Network

logger = logging.getLogger(__name__)


class JenkinsStacks(NamedTuple):
    network: Network
    ecs_cluster: Ecs
    worker: JenkinsWorker
    master: JenkinsMaster


def build_stacks(scope: Construct, config: JenkinsConfig) -> JenkinsStacks:
    """
    Compose Network -> Ecs -> JenkinsWorker -> JenkinsMaster. Each stack only
    receives handles of the stacks built before it.
    """
    env = config.env
    stack_name = config.stack_name

    network = Network(
        scope,
        stack_name + "Network",
        cidr=config.cidr,
        nat_gateways=config.nat_gateways,
        env=env,
    )
    ecs_cluster = Ecs(
        scope,
        stack_name + "Ecs",
        vpc=network.vpc,
        service_discovery_namespace=config.service_discovery_namespace,
        cluster_name=config.cluster_name,
        ec2_capacity=config.ec2_capacity,
        instance_type=config.instance_type,
        key_name=config.key_name,
        env=env,
    )
    worker = JenkinsWorker(scope, stack_name + "Worker", vpc=network.vpc, env=env)
    master = JenkinsMaster(
        scope,
        stack_name + "Master",
        ecs_cluster=ecs_cluster,
        network=network,
        worker=worker,
        jenkins_url=config.jenkins_url,
        cpu=config.master_cpu,
        memory_limit_mib=config.master_memory_limit_mib,
        worker_family_prefix=config.worker_family_prefix,
        env=env,
    )

    ecs_cluster.add_dependency(network)
    worker.add_dependency(network)
    master.add_dependency(ecs_cluster)
    master.add_dependency(worker)

    for key, value in config.tags.items():
        Tags.of(scope).add(key=key, value=value)

    logger.info(
        "Composed stacks %s",
        ", ".join(s.stack_name for s in (network, ecs_cluster, worker, master)),
    )
    return JenkinsStacks(network, ecs_cluster, worker, master)
