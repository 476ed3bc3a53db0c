#!/usr/bin/env python3

import logging

from aws_cdk import App

from jenkins_ecs.config import load_config
from jenkins_ecs.jenkins_app import build_stacks

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

config = load_config("config.ini")

app = App()
build_stacks(app, config)

app.synth()
