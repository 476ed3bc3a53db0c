import aws_cdk as cdk
import pytest

from jenkins_ecs.config import JenkinsConfig
from jenkins_ecs.jenkins_app import build_stacks

ACCOUNT = "123456789012"
REGION = "us-east-1"


def make_config(**overrides):
    """JenkinsConfig pinned to a concrete test account and region."""
    settings = dict(account=ACCOUNT, region=REGION)
    settings.update(overrides)
    return JenkinsConfig(**settings)


@pytest.fixture
def synth_stacks():
    """Factory composing all four stacks in a fresh App."""

    def _synth(**overrides):
        app = cdk.App()
        return build_stacks(app, make_config(**overrides))

    return _synth
