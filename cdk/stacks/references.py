"""
Resolve pre-existing resources through SSM Parameter Store.

Whichever stack provisioned the subscription table and the email queue
publishes their ARNs as plain string parameters named
`<namespace>-<kind>-arn-<stage>`. This module only reads those values;
the resources themselves are imported, never created or changed.
"""

from dataclasses import dataclass
from enum import Enum

from aws_cdk import (
    aws_dynamodb as dynamodb,
    aws_sqs as sqs,
    aws_ssm as ssm,
)
from constructs import Construct

from stacks.stage import Stage


class ResourceKind(str, Enum):
    TABLE = "table"
    EMAIL_QUEUE = "email-queue"


def registry_key(namespace: str, stage: Stage, kind: ResourceKind) -> str:
    """Parameter name holding the ARN of `kind` for this namespace and stage."""
    if not namespace:
        raise ValueError("namespace cannot be empty")
    stage = Stage.parse(stage) if not isinstance(stage, Stage) else stage
    kind = ResourceKind(kind)
    return f"{namespace}-{kind.value}-arn-{stage.value}"


def resolve_arn(scope: Construct, namespace: str, stage: Stage, kind: ResourceKind) -> str:
    """
    Token for the ARN stored under the registry key.

    The value is resolved by CloudFormation at deploy time, so a missing
    parameter fails the deployment rather than synthesis.
    """
    key = registry_key(namespace, stage, kind)
    return ssm.StringParameter.from_string_parameter_name(
        scope,
        f"{key}-param",
        string_parameter_name=key,
    ).string_value


def import_table(scope: Construct, namespace: str, stage: Stage) -> dynamodb.ITable:
    return dynamodb.Table.from_table_arn(
        scope,
        f"{namespace}-subscription-table-{stage.value}",
        resolve_arn(scope, namespace, stage, ResourceKind.TABLE),
    )


def import_email_queue(scope: Construct, namespace: str, stage: Stage) -> sqs.IQueue:
    return sqs.Queue.from_queue_arn(
        scope,
        f"{namespace}-email-queue-{stage.value}",
        resolve_arn(scope, namespace, stage, ResourceKind.EMAIL_QUEUE),
    )


@dataclass(frozen=True)
class ResolvedReferences:
    """Identifiers of the imported resources plus the lambdas config secret."""

    table_name: str
    table_arn: str
    queue_url: str
    queue_arn: str
    secret_arn: str

    @classmethod
    def from_resources(cls, table: dynamodb.ITable, queue: sqs.IQueue, secret_arn: str) -> "ResolvedReferences":
        return cls(
            table_name=table.table_name,
            table_arn=table.table_arn,
            queue_url=queue.queue_url,
            queue_arn=queue.queue_arn,
            secret_arn=secret_arn,
        )
