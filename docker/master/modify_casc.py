#!/usr/bin/env python3

import os

from jinja2 import Environment, FileSystemLoader

TEMPLATE_PATH = "/config-as-code.j2"
OUTPUT_PATH = "/config-as-code.yaml"


def render(template_path, environ=os.environ):
    # Keys come from the task definition environment of the master service
    _env = Environment(
        loader=FileSystemLoader(os.path.dirname(template_path) or "/"),
        autoescape=True,
    )
    _template = _env.get_template(os.path.basename(template_path))

    return _template.render(
        NETWORK_STACK=environ.get("network_stack"),
        CLUSTER_STACK=environ.get("cluster_stack"),
        WORKER_STACK=environ.get("worker_stack"),
        ECS_CLUSTER_ARN=environ.get("cluster_arn"),
        AWS_REGION=environ.get("aws_region"),
        JENKINS_URL=environ.get("jenkins_url"),
        SUBNET_IDS=environ.get("subnet_ids"),
        SECURITY_GROUP_IDS=environ.get("security_group_ids"),
        EXECUTION_ROLE_ARN=environ.get("execution_role_arn"),
        TASK_ROLE_ARN=environ.get("task_role_arn"),
        LOG_GROUP=environ.get("worker_log_group"),
        LOG_STREAM_PREFIX=environ.get("worker_log_stream_prefix"),
    )


def main():
    with open(os.getenv("CASC_JENKINS_CONFIG", OUTPUT_PATH), "w") as _config_file:
        _config_file.write(render(TEMPLATE_PATH))


if __name__ == "__main__":
    main()
