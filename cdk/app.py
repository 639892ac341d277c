#!/usr/bin/env python3
import logging

import aws_cdk as cdk
from stacks.api_stack import ApiStack
from stacks.config import ApiConfig, stack_environment

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

app = cdk.App()

config = ApiConfig.from_context(app.node)

ApiStack(
    app,
    f"{config.namespace}-api-stack-{config.stage.value}",
    config=config,
    description=f"{config.namespace} API: API Gateway, Lambda, custom domain ({config.stage.value})",
    env=stack_environment(app.node),
)

app.synth()
