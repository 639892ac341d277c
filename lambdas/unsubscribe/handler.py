"""
Unsubscribe Lambda: GET /unsubscribe?id=...&emailAddress=...
Target of the link in every email, so it answers with an HTML page.

The delete is conditioned on the stored email address matching the one in
the link. A subscription that does not exist still gets the confirmation
page so the endpoint cannot be used to probe for subscribers.
"""

import os
import json
import logging
from email.utils import parseaddr

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

logger = logging.getLogger()
logger.setLevel(logging.INFO)

STAGE = os.environ["STAGE"]
TABLE_NAME = os.environ["TABLE_NAME"]

dynamodb = boto3.resource("dynamodb")
table = dynamodb.Table(TABLE_NAME)

ALLOW_ORIGIN = "https://millhouse.dev" if STAGE == "prod" else "*"

SUCCESS_PAGE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <title>Unsubscribed | millhouse.dev</title>
  </head>
  <body>
    <h1>You have been unsubscribed</h1>
    <p>You won't receive any more emails from <a href="https://millhouse.dev">millhouse.dev</a>.</p>
  </body>
</html>
"""


def json_response(status_code: int, body: dict) -> dict:
    return {
        "statusCode": status_code,
        "headers": {"Access-Control-Allow-Origin": ALLOW_ORIGIN, "Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def html_response(status_code: int, body: str) -> dict:
    return {
        "statusCode": status_code,
        "headers": {"Access-Control-Allow-Origin": ALLOW_ORIGIN, "Content-Type": "text/html; charset=utf-8"},
        "body": body,
    }


def validate(params: dict) -> str | None:
    """Return an error message, or None if the query parameters are usable."""
    if not params.get("id"):
        return "id cannot be empty"
    email_address = params.get("emailAddress") or ""
    _, parsed = parseaddr(email_address)
    if not parsed or parsed != email_address or "@" not in email_address:
        return f"Invalid email address: {email_address!r}"
    return None


def delete_subscription(subscription_id: str, email_address: str) -> bool:
    """Delete the subscription, returning False if nothing matched."""
    try:
        table.delete_item(
            Key={"id": subscription_id},
            ConditionExpression=Attr("emailAddress").eq(email_address),
        )
    except ClientError as e:
        if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
            return False
        raise
    return True


def main(event, context):
    """Lambda entry point for GET /unsubscribe."""
    params = event.get("queryStringParameters") or {}

    error = validate(params)
    if error:
        logger.warning(f"Rejected unsubscribe request: {error}")
        return json_response(400, {"error": error})

    try:
        deleted = delete_subscription(params["id"], params["emailAddress"])
    except ClientError as e:
        logger.error(f"Failed to delete subscription {params['id']}: {e}")
        return json_response(500, {"error": "Failed to delete subscription"})

    if deleted:
        logger.info(f"Deleted subscription {params['id']}")
    else:
        logger.warning(f"No subscription {params['id']} for the given address")

    return html_response(200, SUCCESS_PAGE)
