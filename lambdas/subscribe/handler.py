"""
Subscribe Lambda: PUT /subscribe
Called by the website's newsletter form.

Responsibilities:
  1. Validate the email address and the reCAPTCHA token
  2. Skip the write if the address is already subscribed
  3. Store the subscription in DynamoDB
  4. Queue a welcome email for the subscriber and a notification for the admin

Error handling:
  - Bad input or a failed reCAPTCHA check returns 400
  - AWS or reCAPTCHA failures and an unreadable config secret are logged and return 500
"""

import os
import json
import logging
import uuid
from datetime import datetime, timezone
from email.utils import parseaddr
from urllib.parse import urlencode

import boto3
import requests
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# ── Config ────────────────────────────────────────────────────────────────────
ADMIN_TO = os.environ["ADMIN_TO"]
ADMIN_FROM = os.environ["ADMIN_FROM"]
CONFIG_SECRET_ARN = os.environ["CONFIG_SECRET_ARN"]
EMAIL_QUEUE_URL = os.environ["EMAIL_QUEUE_URL"]
STAGE = os.environ["STAGE"]
TABLE_NAME = os.environ["TABLE_NAME"]

EMAIL_INDEX = "emailAddress-index"
RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
REQUEST_TIMEOUT = 10  # seconds
API_DOMAIN = "api.millhouse.dev" if STAGE == "prod" else f"{STAGE}.api.millhouse.dev"

# ── AWS clients (module-level for Lambda container reuse) ─────────────────────
dynamodb = boto3.resource("dynamodb")
table = dynamodb.Table(TABLE_NAME)
sqs = boto3.client("sqs")
secrets_client = boto3.client("secretsmanager")

HEADERS = {
    "Access-Control-Allow-Origin": "https://millhouse.dev" if STAGE == "prod" else "*",
    "Content-Type": "application/json",
}

_config = None


class InvalidRequest(Exception):
    """Raised for client errors that map to a 400 response."""


# ── Helpers ───────────────────────────────────────────────────────────────────

def response(status_code: int, body: dict) -> dict:
    return {"statusCode": status_code, "headers": HEADERS, "body": json.dumps(body)}


def get_config() -> dict:
    """Load the lambdas config secret once per container."""
    global _config
    if _config is None:
        try:
            secret = secrets_client.get_secret_value(SecretId=CONFIG_SECRET_ARN)
        except ClientError as e:
            logger.critical(f"Failed to retrieve config secret: {e}")
            raise
        _config = json.loads(secret["SecretString"])
    return _config


def parse_request(event: dict) -> tuple[str, str]:
    """Return (email_address, recaptcha_token) from the request body."""
    try:
        body = json.loads(event.get("body") or "{}")
    except json.JSONDecodeError:
        raise InvalidRequest("Request body must be JSON")
    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object")

    email_address = (body.get("emailAddress") or "").strip()
    _, parsed = parseaddr(email_address)
    if not parsed or parsed != email_address or "@" not in email_address:
        raise InvalidRequest(f"Invalid email address: {email_address!r}")

    token = body.get("recaptchaToken") or ""
    if not token:
        raise InvalidRequest("recaptchaToken cannot be empty")

    return email_address, token


def verify_recaptcha(token: str, secret: str) -> bool:
    resp = requests.post(
        RECAPTCHA_VERIFY_URL,
        data={"secret": secret, "response": token},
        timeout=REQUEST_TIMEOUT,
    )
    resp.raise_for_status()
    result = resp.json()
    if not result.get("success"):
        logger.warning(f"reCAPTCHA rejected token: {result.get('error-codes')}")
        return False
    return True


def find_subscription(email_address: str) -> dict | None:
    result = table.query(
        IndexName=EMAIL_INDEX,
        KeyConditionExpression=Key("emailAddress").eq(email_address),
    )
    items = result.get("Items", [])
    return items[0] if items else None


def create_subscription(email_address: str) -> dict:
    item = {
        "id": str(uuid.uuid4()),
        "emailAddress": email_address,
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }
    table.put_item(Item=item)
    logger.info(f"Stored subscription {item['id']}")
    return item


def unsubscribe_link(subscription: dict) -> str:
    query = urlencode({"id": subscription["id"], "emailAddress": subscription["emailAddress"]})
    return f"https://{API_DOMAIN}/unsubscribe?{query}"


def queue_email(to: str, subject: str, body: str) -> None:
    sqs.send_message(
        QueueUrl=EMAIL_QUEUE_URL,
        MessageBody=json.dumps({"to": to, "from": ADMIN_FROM, "subject": subject, "body": body}),
    )


def queue_emails(subscription: dict) -> None:
    queue_email(
        to=subscription["emailAddress"],
        subject="Thanks for subscribing to millhouse.dev",
        body=(
            "You're now subscribed to new posts on millhouse.dev.\n\n"
            f"Changed your mind? Unsubscribe here: {unsubscribe_link(subscription)}"
        ),
    )
    queue_email(
        to=ADMIN_TO,
        subject=f"New subscriber ({STAGE})",
        body=f"{subscription['emailAddress']} subscribed at {subscription['createdAt']}.",
    )


# ── Handler ───────────────────────────────────────────────────────────────────

def main(event, context):
    """Lambda entry point for PUT /subscribe."""
    try:
        email_address, token = parse_request(event)
    except InvalidRequest as e:
        logger.warning(f"Rejected subscribe request: {e}")
        return response(400, {"error": str(e)})

    try:
        if not verify_recaptcha(token, get_config()["recaptchaSecret"]):
            return response(400, {"error": "reCAPTCHA verification failed"})

        existing = find_subscription(email_address)
        if existing:
            logger.info(f"{email_address} is already subscribed as {existing['id']}")
            return response(200, {"message": "Already subscribed"})

        subscription = create_subscription(email_address)
        queue_emails(subscription)

    except (ClientError, requests.exceptions.RequestException, KeyError, ValueError) as e:
        logger.error(f"Subscribe failed: {e}", exc_info=True)
        return response(500, {"error": "Internal server error"})

    return response(201, {"message": "Subscribed", "id": subscription["id"]})
