"""
Sandbox mode end to end through the HTTP surface.

The app is built with no transport; any outbound call would fail, so
these tests also prove sandbox mode never reaches the backend.
"""

import re

import pytest
from fastapi.testclient import TestClient

from gateway.app.main import create_app
from gateway.app.services.webhooks import DEFAULT_WEBHOOK_EVENTS
from gateway.tests.helpers import bearer, sandbox_settings

KEY_PATTERN = re.compile(r"^pk_demo_[0-9a-f]{32}$")


@pytest.fixture
def client():
    with TestClient(create_app(sandbox_settings())) as c:
        yield c


def _login(client, email="demo@x.io"):
    response = client.post("/auth/login", json={"email": email, "password": "whatever"})
    assert response.status_code == 200
    return response.json()["token"]


def test_health_reports_sandbox_and_session_count(client):
    _login(client)

    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["mode"] == "sandbox"
    assert body["env"] == "demo"
    assert body["sessions"] == 1


def test_no_http_client_is_created_in_sandbox(client):
    assert client.app.state.http_client is None


def test_full_demo_flow(client):
    token = _login(client)

    key_response = client.post("/api-keys/create", headers=bearer(token))
    assert key_response.status_code == 200
    key = key_response.json()["key"]
    assert KEY_PATTERN.match(key)

    checkout = client.post("/checkout/demo", headers=bearer(token))
    assert checkout.status_code == 200
    checkout_body = checkout.json()
    assert checkout_body["amount"] == 4900
    assert checkout_body["currency"] == "usd"
    assert checkout_body["status"] == "pending"
    assert checkout_body["id"].startswith("cs_demo_")
    assert checkout_body["merchant"] == "demo@x.io"
    assert checkout_body["api_key"].endswith("...")
    assert key not in checkout_body["api_key"]

    session = client.get("/session", headers=bearer(token)).json()
    assert session["email"] == "demo@x.io"
    assert session["hasApiKey"] is True
    assert len(session["checkouts"]) == 1
    assert session["checkouts"][0]["id"] == checkout_body["id"]
    assert key not in str(session)


def test_login_response_shape(client):
    body = client.post("/auth/login", json={"email": "a@x.io"}).json()

    assert body["ok"] is True
    assert body["email"] == "a@x.io"
    assert body["mode"] == "sandbox"
    assert "warning" in body


@pytest.mark.parametrize("payload", [None, {}, {"password": "pw"}, {"email": ""}])
def test_login_without_email_is_400(client, payload):
    response = client.post("/auth/login", json=payload)

    assert response.status_code == 400
    assert "error" in response.json()


def test_fresh_session_is_empty(client):
    token = _login(client)

    session = client.get("/session", headers=bearer(token)).json()

    assert session["hasApiKey"] is False
    assert session["apiKey"] is None
    assert session["checkouts"] == []
    assert session["webhooks"] == []


@pytest.mark.parametrize(
    "method, path",
    [
        ("post", "/api-keys/create"),
        ("post", "/api-keys/rotate"),
        ("post", "/checkout/demo"),
        ("post", "/webhooks/create"),
        ("get", "/session"),
    ],
)
@pytest.mark.parametrize("headers", [{}, bearer("not-a-session"), {"Authorization": "Basic abc"}])
def test_session_routes_require_a_known_token(client, method, path, headers):
    response = getattr(client, method)(path, headers=headers)

    assert response.status_code == 401
    body = response.json()
    assert "error" in body
    assert "/auth/login" in body["hint"]
    assert body["mode"] == "sandbox"


def test_rotation_returns_new_key_and_old_preview(client):
    token = _login(client)
    old_key = client.post("/api-keys/create", headers=bearer(token)).json()["key"]

    body = client.post("/api-keys/rotate", headers=bearer(token)).json()

    assert body["rotated"] is True
    assert KEY_PATTERN.match(body["key"])
    assert body["key"] != old_key
    assert body["old_key"].endswith("...")
    assert old_key.startswith(body["old_key"][:-3])
    assert old_key != body["old_key"][:-3]


def test_checkout_accepts_overrides_and_metadata(client):
    token = _login(client)

    body = client.post(
        "/checkout/demo",
        headers=bearer(token),
        json={"amount": 1250, "currency": "EUR", "metadata": {"order": "42"}},
    ).json()

    assert body["amount"] == 1250
    assert body["currency"] == "eur"
    assert body["metadata"] == {"order": "42"}
    assert body["api_key"] is None


@pytest.mark.parametrize(
    "payload",
    [{"amount": -1}, {"amount": "lots"}, {"currency": "dollars"}],
)
def test_checkout_with_bad_fields_is_400(client, payload):
    token = _login(client)

    response = client.post("/checkout/demo", headers=bearer(token), json=payload)

    assert response.status_code == 400


def test_webhook_defaults_and_secret(client):
    token = _login(client)

    body = client.post("/webhooks/create", headers=bearer(token)).json()

    assert body["id"].startswith("wh_demo_")
    assert body["status"] == "active"
    assert body["events"] == list(DEFAULT_WEBHOOK_EVENTS)
    assert re.fullmatch(r"[0-9a-f]{64}", body["secret"])

    session = client.get("/session", headers=bearer(token)).json()
    assert len(session["webhooks"]) == 1
    assert body["secret"] not in str(session)


def test_webhook_with_empty_events_is_400(client):
    token = _login(client)

    response = client.post(
        "/webhooks/create",
        headers=bearer(token),
        json={"url": "https://hooks.example/in", "events": []},
    )

    assert response.status_code == 400


def test_sessions_listing_hides_tokens(client):
    token_a = _login(client, "a@x.io")
    token_b = _login(client, "b@x.io")
    client.post("/api-keys/create", headers=bearer(token_a))

    body = client.get("/sessions").json()

    assert body["mode"] == "sandbox"
    assert body["total"] == 2
    by_email = {s["email"]: s for s in body["sessions"]}
    assert by_email["a@x.io"]["hasApiKey"] is True
    assert by_email["b@x.io"]["hasApiKey"] is False
    assert token_a not in str(body)
    assert token_b not in str(body)


def test_sessions_do_not_leak_between_tokens(client):
    token_a = _login(client, "a@x.io")
    token_b = _login(client, "b@x.io")

    client.post("/checkout/demo", headers=bearer(token_a))

    session_b = client.get("/session", headers=bearer(token_b)).json()
    assert session_b["checkouts"] == []


def test_forward_stores_legacy_token_with_compat_message(client):
    response = client.post("/auth/forward", json={"jwt": "eyJ.legacy"})

    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "sandbox"
    assert "/auth/login" in body["message"]
    assert client.app.state.credentials.forwarded_token == "eyJ.legacy"


def test_forward_without_jwt_is_400(client):
    assert client.post("/auth/forward").status_code == 400
