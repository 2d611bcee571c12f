# tests/test_action_tokens.py
from __future__ import annotations

from datetime import datetime

import pytest

from reportkit.core import config
from reportkit.services import db
from reportkit.services.action_tokens import issue_action_token, verify_action_token

URL = "/api/v1/authorize-action"


# --------------------------- service --------------------------- #


def test_token_is_single_use():
    issued = issue_action_token("u1", "download", now=1_000.0)
    assert len(issued["token"]) == 64
    assert issued["expires_at"] == 1_090.0
    assert verify_action_token("u1", issued["token"], "download", now=1_010.0) is True
    assert verify_action_token("u1", issued["token"], "download", now=1_011.0) is False


def test_token_expires_after_ttl():
    issued = issue_action_token("u1", "key_update", now=1_000.0)
    assert verify_action_token("u1", issued["token"], "key_update", now=1_090.0) is False


def test_token_valid_just_before_expiry():
    issued = issue_action_token("u1", "key_update", now=1_000.0)
    assert verify_action_token("u1", issued["token"], "key_update", now=1_089.9) is True


def test_wrong_user_or_action_does_not_consume():
    issued = issue_action_token("u1", "account_delete", now=0.0)
    assert verify_action_token("u2", issued["token"], "account_delete", now=1.0) is False
    assert verify_action_token("u1", issued["token"], "download", now=1.0) is False
    assert verify_action_token("u1", issued["token"], "account_delete", now=2.0) is True


def test_unknown_token_is_refused():
    assert verify_action_token("u1", "nope", "download") is False


def test_tokens_are_unique():
    a = issue_action_token("u1", "download", now=0.0)
    b = issue_action_token("u1", "download", now=0.0)
    assert a["token"] != b["token"]


# --------------------------- route --------------------------- #


@pytest.fixture
def signed_in(monkeypatch):
    monkeypatch.setattr(db, "get_client", lambda: object())
    monkeypatch.setattr(db, "get_user_id", lambda client, token: "user-42" if token == "jwt" else None)


def test_route_disabled_is_503(client, signed_in, monkeypatch):
    monkeypatch.setitem(config.FEATURES, "action_tokens", False)
    r = client.post(URL, json={"action": "download"}, headers={"Authorization": "Bearer jwt"})
    assert r.status_code == 503
    assert r.json()["disabled"] is True


def test_route_requires_authentication(client):
    r = client.post(URL, json={"action": "download"})
    assert r.status_code == 401
    assert r.json() == {"error": "Authentication required"}


def test_route_rejects_bad_session(client, signed_in):
    r = client.post(URL, json={"action": "download"}, headers={"Authorization": "Bearer expired"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid or expired session"}


def test_route_rejects_unknown_action(client, signed_in):
    r = client.post(URL, json={"action": "launch_rockets"}, headers={"Authorization": "Bearer jwt"})
    assert r.status_code == 400
    assert "launch_rockets" in r.json()["error"]


def test_route_missing_action_is_422(client, signed_in):
    r = client.post(URL, json={}, headers={"Authorization": "Bearer jwt"})
    assert r.status_code == 422


def test_route_issues_verifiable_token(client, signed_in):
    r = client.post(URL, json={"action": "data_export"}, headers={"Authorization": "Bearer jwt"})
    assert r.status_code == 200
    body = r.json()
    assert body["action"] == "data_export"
    assert body["expiresInSeconds"] == 90
    assert datetime.fromisoformat(body["expiresAt"]).tzinfo is not None

    assert verify_action_token("user-42", body["token"], "data_export") is True
    assert verify_action_token("user-42", body["token"], "data_export") is False
