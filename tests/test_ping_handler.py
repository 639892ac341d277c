"""Tests for the ping Lambda."""

import json


def test_pong(monkeypatch, load_handler):
    monkeypatch.setenv("STAGE", "dev")
    handler = load_handler("ping")

    result = handler.main({"httpMethod": "GET", "path": "/"}, None)

    assert result["statusCode"] == 200
    assert json.loads(result["body"]) == {"message": "pong", "stage": "dev"}
    assert result["headers"]["Access-Control-Allow-Origin"] == "*"


def test_prod_origin(monkeypatch, load_handler):
    monkeypatch.setenv("STAGE", "prod")
    handler = load_handler("ping")

    result = handler.main({}, None)

    assert result["headers"]["Access-Control-Allow-Origin"] == "https://millhouse.dev"
