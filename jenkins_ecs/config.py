import logging
import os
from configparser import ConfigParser
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from aws_cdk import Environment

logger = logging.getLogger(__name__)

COMPUTE_VARIANTS = ("fargate", "ec2")


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class JenkinsConfig:
    """
    Deployment settings shared by every stack. Built once by `load_config`
    and passed explicitly to the stacks, never read from globals.
    """

    stack_name: str = "Jenkins"
    cidr: str = "10.0.0.0/24"
    nat_gateways: int = 1
    service_discovery_namespace: str = "jenkins"
    cluster_name: str = "jenkins"
    compute: str = "fargate"
    instance_type: str = "t3.xlarge"
    key_name: Optional[str] = None
    master_cpu: int = 512
    master_memory_limit_mib: int = 2048
    jenkins_url: str = "http://master.jenkins:8080"
    worker_family_prefix: str = "fargate-workers"
    account: Optional[str] = None
    region: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def ec2_capacity(self) -> bool:
        return self.compute == "ec2"

    @property
    def env(self) -> Environment:
        return Environment(account=self.account, region=self.region)


def _get_int(section, key: str, default: int) -> int:
    value = section.get(key, fallback=str(default))
    try:
        return int(value)
    except ValueError as e:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from e


def load_config(
    path: str = "config.ini", environ: Mapping[str, str] = os.environ
) -> JenkinsConfig:
    config = ConfigParser()
    # Keep tag keys case-sensitive
    config.optionxform = str
    if not config.read(path):
        raise ConfigError(f"Cannot read configuration file {path}")
    if not config.has_section("jenkins"):
        raise ConfigError(f"{path} has no [jenkins] section")

    jenkins = config["jenkins"]
    defaults = JenkinsConfig()

    compute = jenkins.get("compute", fallback=defaults.compute).strip().lower()
    if compute not in COMPUTE_VARIANTS:
        raise ConfigError(
            f"compute must be one of {', '.join(COMPUTE_VARIANTS)}, got {compute!r}"
        )

    namespace = jenkins.get(
        "service_discovery_namespace", fallback=defaults.service_discovery_namespace
    )
    jenkins_url = jenkins.get("jenkins_url", fallback="") or f"http://master.{namespace}:8080"

    account = environ.get("CDK_DEFAULT_ACCOUNT") or None
    region = environ.get("CDK_DEFAULT_REGION") or None
    if account is None or region is None:
        logger.warning(
            "CDK_DEFAULT_ACCOUNT or CDK_DEFAULT_REGION not set, "
            "synthesizing environment-agnostic stacks"
        )

    nat_gateways = _get_int(jenkins, "nat_gateways", defaults.nat_gateways)
    # Private subnets route egress through a NAT gateway
    if nat_gateways < 1:
        raise ConfigError(f"nat_gateways must be at least 1, got {nat_gateways}")

    tags = dict(config["tags"]) if config.has_section("tags") else {}

    loaded = JenkinsConfig(
        stack_name=jenkins.get("stack_name", fallback=defaults.stack_name),
        cidr=jenkins.get("cidr", fallback=defaults.cidr),
        nat_gateways=nat_gateways,
        service_discovery_namespace=namespace,
        cluster_name=jenkins.get("cluster_name", fallback=defaults.cluster_name),
        compute=compute,
        instance_type=jenkins.get("instance_type", fallback=defaults.instance_type),
        key_name=jenkins.get("key_name", fallback="") or None,
        master_cpu=_get_int(jenkins, "master_cpu", defaults.master_cpu),
        master_memory_limit_mib=_get_int(
            jenkins, "master_memory_limit_mib", defaults.master_memory_limit_mib
        ),
        jenkins_url=jenkins_url,
        worker_family_prefix=jenkins.get(
            "worker_family_prefix", fallback=defaults.worker_family_prefix
        ),
        account=account,
        region=region,
        tags=tags,
    )
    logger.info(
        "Loaded %s: stack %s, %s compute, account %s, region %s",
        path,
        loaded.stack_name,
        loaded.compute,
        loaded.account,
        loaded.region,
    )
    return loaded
