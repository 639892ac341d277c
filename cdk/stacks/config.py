import os
from dataclasses import dataclass

import aws_cdk as cdk
from constructs import Node

from stacks.stage import Stage

# Context key -> ApiConfig field
CONTEXT_KEYS = {
    "namespace": "namespace",
    "stage": "stage",
    "adminTo": "admin_to",
    "adminFrom": "admin_from",
    "lambdasConfigArn": "lambdas_config_arn",
}


@dataclass(frozen=True)
class ApiConfig:
    """Named inputs the API stack is composed from."""

    namespace: str
    stage: Stage
    admin_to: str
    admin_from: str
    lambdas_config_arn: str

    def __post_init__(self):
        if not self.namespace:
            raise ValueError("namespace cannot be empty")
        if not isinstance(self.stage, Stage):
            object.__setattr__(self, "stage", Stage.parse(self.stage))

    @classmethod
    def from_context(cls, node: Node) -> "ApiConfig":
        """Read every value from CDK context, failing on the first synth if any are missing."""
        values = {key: node.try_get_context(key) for key in CONTEXT_KEYS}
        missing = [key for key, value in values.items() if not value]
        if missing:
            raise ValueError(f"Missing CDK context values: {', '.join(missing)}")

        return cls(**{CONTEXT_KEYS[key]: value for key, value in values.items()})


def stack_environment(node: Node) -> cdk.Environment:
    """
    Account and region for the stack, from context or the CLI's defaults.

    The hosted-zone lookup only works on a stack with a concrete environment.
    """
    account = node.try_get_context("account") or os.environ.get("CDK_DEFAULT_ACCOUNT")
    region = node.try_get_context("region") or os.environ.get("CDK_DEFAULT_REGION") or "us-east-1"
    if not account:
        raise ValueError("No AWS account: pass -c account=... or configure credentials for the CDK CLI")
    return cdk.Environment(account=account, region=region)
