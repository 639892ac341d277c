"""Pytest configuration and fixtures.

AWS credentials and region are set before anything creates a boto3 client
so the Lambda handlers only ever talk to moto.
"""

import importlib.util
import os
from pathlib import Path

os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

import aws_cdk as cdk
import boto3
import pytest
from aws_cdk.assertions import Template
from moto import mock_aws

from stacks.api_stack import ApiStack
from stacks.config import ApiConfig
from stacks.stage import Stage

LAMBDAS_DIR = Path(__file__).resolve().parent.parent / "lambdas"

ACCOUNT = "123456789012"
REGION = "us-east-1"
SECRET_ARN = f"arn:aws:secretsmanager:{REGION}:{ACCOUNT}:secret:acme-lambdas-config"


def make_config(stage: Stage = Stage.DEV) -> ApiConfig:
    return ApiConfig(
        namespace="acme",
        stage=stage,
        admin_to="admin@example.com",
        admin_from="no-reply@example.com",
        lambdas_config_arn=SECRET_ARN,
    )


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def synth():
    """Synthesize an ApiStack for a stage and return its template."""

    def _synth(stage: Stage = Stage.DEV) -> Template:
        app = cdk.App()
        stack = ApiStack(
            app,
            "TestApiStack",
            config=make_config(stage),
            env=cdk.Environment(account=ACCOUNT, region=REGION),
        )
        return Template.from_stack(stack)

    return _synth


@pytest.fixture
def load_handler():
    """Import lambdas/<name>/handler.py fresh, after the test has set its environment."""

    def _load(name: str):
        spec = importlib.util.spec_from_file_location(f"{name}_handler", LAMBDAS_DIR / name / "handler.py")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    return _load


@pytest.fixture
def aws():
    with mock_aws():
        yield


@pytest.fixture
def subscription_table(aws):
    """The subscription table as the data stack creates it."""
    dynamodb = boto3.resource("dynamodb", region_name=REGION)
    table = dynamodb.create_table(
        TableName="acme-subscriptions-dev",
        KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "emailAddress", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "emailAddress-index",
                "KeySchema": [{"AttributeName": "emailAddress", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    return table
