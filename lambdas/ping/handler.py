"""
Ping Lambda: GET /
Liveness probe for the website API. Touches no other AWS service.
"""

import os
import json
import logging

logger = logging.getLogger()
logger.setLevel(logging.INFO)

STAGE = os.environ["STAGE"]

HEADERS = {
    "Access-Control-Allow-Origin": "https://millhouse.dev" if STAGE == "prod" else "*",
    "Content-Type": "application/json",
}


def main(event, context):
    """Lambda entry point for GET /."""
    logger.info(f"Ping received on stage {STAGE}")
    return {
        "statusCode": 200,
        "headers": HEADERS,
        "body": json.dumps({"message": "pong", "stage": STAGE}),
    }
