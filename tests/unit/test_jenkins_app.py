"""End-to-end composition of Network -> Ecs -> JenkinsWorker -> JenkinsMaster."""
import json

import aws_cdk as cdk
from aws_cdk.assertions import Template

from jenkins_ecs.config import JenkinsConfig
from jenkins_ecs.jenkins_app import build_stacks


def _synth_all(stacks):
    return {
        stack.stack_name: json.dumps(Template.from_stack(stack).to_json(), sort_keys=True)
        for stack in stacks
    }


def test_stack_names(synth_stacks):
    stacks = synth_stacks()
    assert [s.stack_name for s in stacks] == [
        "JenkinsNetwork", "JenkinsEcs", "JenkinsWorker", "JenkinsMaster"
    ]


def test_stack_name_prefix_follows_config(synth_stacks):
    stacks = synth_stacks(stack_name="Ci")
    assert stacks.master.stack_name == "CiMaster"


def test_stacks_share_environment(synth_stacks):
    for stack in synth_stacks():
        assert stack.account == "123456789012"
        assert stack.region == "us-east-1"


def test_dependency_order(synth_stacks):
    stacks = synth_stacks()
    assert stacks.network in stacks.ecs_cluster.dependencies
    assert stacks.network in stacks.worker.dependencies
    assert stacks.ecs_cluster in stacks.master.dependencies
    assert stacks.worker in stacks.master.dependencies
    assert not stacks.network.dependencies


def test_master_wired_to_us_east_1(synth_stacks):
    template = Template.from_stack(synth_stacks().master)
    rendered = json.dumps(template.to_json())

    assert '"Name": "aws_region", "Value": "us-east-1"' in rendered
    assert (
        '"arn:aws:ecs:us-east-1:123456789012:task-definition/fargate-workers*"'
        in rendered
    )


def test_resynthesis_is_identical(synth_stacks):
    for compute in ["fargate", "ec2"]:
        first = _synth_all(synth_stacks(compute=compute))
        second = _synth_all(synth_stacks(compute=compute))
        assert first == second, f"{compute} templates differ between runs"


def test_tags_applied_to_resources(synth_stacks):
    stacks = synth_stacks(tags={"Environment": "Test", "DevTeam": "Voyager"})
    template = Template.from_stack(stacks.network)
    vpc = next(iter(template.find_resources("AWS::EC2::VPC").values()))
    tags = {t["Key"]: t["Value"] for t in vpc["Properties"]["Tags"]}
    assert tags["Environment"] == "Test"
    assert tags["DevTeam"] == "Voyager"


def test_environment_agnostic_composition():
    """Without account and region the ARNs fall back to pseudo parameters."""
    stacks = build_stacks(cdk.App(), JenkinsConfig())
    rendered = json.dumps(Template.from_stack(stacks.master).to_json())
    assert "AWS::Region" in rendered
    assert "AWS::AccountId" in rendered
    assert "task-definition/fargate-workers*" in rendered
