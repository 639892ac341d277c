"""Tests for reading ApiConfig from CDK context."""

import json
from pathlib import Path

import aws_cdk as cdk
import pytest

from stacks.api_stack import ApiStack
from stacks.config import ApiConfig, stack_environment
from stacks.stage import Stage

CONTEXT = {
    "namespace": "acme",
    "stage": "test",
    "adminTo": "admin@example.com",
    "adminFrom": "no-reply@example.com",
    "lambdasConfigArn": "arn:aws:secretsmanager:us-east-1:123456789012:secret:cfg",
}


def test_from_context():
    config = ApiConfig.from_context(cdk.App(context=CONTEXT).node)

    assert config == ApiConfig(
        namespace="acme",
        stage=Stage.TEST,
        admin_to="admin@example.com",
        admin_from="no-reply@example.com",
        lambdas_config_arn="arn:aws:secretsmanager:us-east-1:123456789012:secret:cfg",
    )


def test_missing_values_are_listed():
    context = {k: v for k, v in CONTEXT.items() if k not in ("adminTo", "lambdasConfigArn")}

    with pytest.raises(ValueError, match="adminTo, lambdasConfigArn"):
        ApiConfig.from_context(cdk.App(context=context).node)


def test_unsupported_stage():
    with pytest.raises(ValueError, match="Unsupported stage"):
        ApiConfig.from_context(cdk.App(context={**CONTEXT, "stage": "staging"}).node)


def test_empty_namespace():
    with pytest.raises(ValueError, match="namespace"):
        ApiConfig("", Stage.DEV, "a@example.com", "b@example.com", "arn")


class TestStackEnvironment:
    @pytest.fixture(autouse=True)
    def cli_defaults(self, monkeypatch):
        monkeypatch.setenv("CDK_DEFAULT_ACCOUNT", "123456789012")
        monkeypatch.setenv("CDK_DEFAULT_REGION", "ap-southeast-2")

    def test_falls_back_to_cli_defaults(self):
        env = stack_environment(cdk.App(context=CONTEXT).node)

        assert (env.account, env.region) == ("123456789012", "ap-southeast-2")

    def test_context_wins(self):
        app = cdk.App(context={**CONTEXT, "account": "210987654321", "region": "us-west-2"})

        env = stack_environment(app.node)

        assert (env.account, env.region) == ("210987654321", "us-west-2")

    def test_region_defaults_to_us_east_1(self, monkeypatch):
        monkeypatch.delenv("CDK_DEFAULT_REGION")

        assert stack_environment(cdk.App(context=CONTEXT).node).region == "us-east-1"

    def test_no_account_anywhere(self, monkeypatch):
        monkeypatch.delenv("CDK_DEFAULT_ACCOUNT")

        with pytest.raises(ValueError, match="No AWS account"):
            stack_environment(cdk.App(context=CONTEXT).node)

    def test_app_synthesizes_with_hosted_zone_lookup(self):
        # Built the same way cdk/app.py builds it
        app = cdk.App(context=CONTEXT)
        config = ApiConfig.from_context(app.node)
        stack = ApiStack(app, "EntryPointStack", config=config, env=stack_environment(app.node))

        assembly = app.synth()

        assert stack.account == "123456789012"
        assert assembly.get_stack_by_name(stack.stack_name).template["Resources"]


def test_cdk_json_requires_lambdas_config_arn():
    cdk_json = json.loads((Path(__file__).resolve().parent.parent / "cdk" / "cdk.json").read_text())

    with pytest.raises(ValueError, match="Missing CDK context values: lambdasConfigArn$"):
        ApiConfig.from_context(cdk.App(context=cdk_json["context"]).node)
