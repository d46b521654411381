import json

import httpx
import pytest

from gateway.app.client import (
    PaynexusApiError,
    PaynexusClient,
    WebhookManager,
    rotate_api_key,
)
from gateway.app.services.webhooks import sign_payload
from gateway.tests.helpers import BACKEND_URL, BackendStub

pytestmark = pytest.mark.anyio


def _client(stub: BackendStub, api_key: str = "pnx_test_1") -> PaynexusClient:
    return PaynexusClient(
        api_key,
        BACKEND_URL + "/",
        http_client=httpx.AsyncClient(transport=stub.transport),
    )


def test_api_key_is_required():
    with pytest.raises(ValueError):
        PaynexusClient("", BACKEND_URL)


async def test_every_request_carries_auth_and_env_headers():
    stub = BackendStub({"/v1/checkout": (200, {"sessionId": "cs_1", "url": "https://pay/cs_1"})})

    async with _client(stub) as client:
        session = await client.create_checkout(4900, "usd")

    assert session.session_id == "cs_1"
    request = stub.requests[0]
    assert str(request.url) == f"{BACKEND_URL}/v1/checkout"
    assert request.headers["Authorization"] == "Bearer pnx_test_1"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["X-Paynexus-Env"] == "sandbox"
    assert stub.json_body(0) == {"amount": 4900, "currency": "usd"}


async def test_payment_and_transactions():
    stub = BackendStub(
        {
            "/v1/payment/confirm": (200, {"success": True, "transactionId": "tx_1"}),
            "/v1/transactions": (
                200,
                [
                    {
                        "id": "tx_1",
                        "amount": 4900,
                        "currency": "usd",
                        "status": "completed",
                        "createdAt": "2024-01-01T00:00:00Z",
                    }
                ],
            ),
        }
    )

    async with _client(stub) as client:
        confirmation = await client.confirm_payment("cs_1")
        transactions = await client.fetch_transactions()

    assert confirmation.success is True
    assert confirmation.transaction_id == "tx_1"
    assert stub.json_body(0) == {"sessionId": "cs_1"}
    assert stub.requests[1].method == "GET"
    assert [t.status for t in transactions] == ["completed"]


async def test_compliance_scan_and_report():
    stub = BackendStub(
        {
            "/v1/compliance/scan": (200, {"scanId": "scan_1"}),
            "/v1/compliance/report/scan_1": (
                200,
                {"reportId": "scan_1", "status": "clean", "timestamp": "2024-01-01T00:00:00Z"},
            ),
        }
    )

    async with _client(stub) as client:
        scan = await client.trigger_compliance_scan("merchant_1")
        report = await client.retrieve_compliance_report(scan.scan_id)

    assert stub.json_body(0) == {"entityId": "merchant_1"}
    assert report.status == "clean"


async def test_non_2xx_raises_api_error_with_body():
    stub = BackendStub({"/v1/checkout": (402, {"error": "card declined"})})

    async with _client(stub) as client:
        with pytest.raises(PaynexusApiError) as excinfo:
            await client.create_checkout(100, "usd")

    assert excinfo.value.status_code == 402
    assert excinfo.value.path == "/v1/checkout"
    assert excinfo.value.body == {"error": "card declined"}


async def test_rotate_api_key_swaps_client_key():
    stub = BackendStub({"/v1/auth/rotate": (200, {"newKey": "pnx_test_2"})})

    async with _client(stub) as client:
        new_key = await rotate_api_key(client)
        assert client.api_key == "pnx_test_2"

        stub.replies["/v1/transactions"] = (200, [])
        await client.fetch_transactions()

    assert new_key == "pnx_test_2"
    assert stub.requests[0].headers["Authorization"] == "Bearer pnx_test_1"
    assert stub.requests[1].headers["Authorization"] == "Bearer pnx_test_2"


async def test_failed_rotation_keeps_old_key():
    stub = BackendStub({"/v1/auth/rotate": (500, {"error": "down"})})

    async with _client(stub) as client:
        with pytest.raises(PaynexusApiError):
            await rotate_api_key(client)
        assert client.api_key == "pnx_test_1"


async def test_webhook_registration_sends_and_returns_secret():
    stub = BackendStub({"/v1/webhooks/register": (200, {"webhookId": "wh_1"})})

    async with _client(stub) as client:
        manager = WebhookManager(client)
        registration = await manager.register_webhook(
            "https://hooks.example/in", ["checkout.confirmed"]
        )

    sent = json.loads(stub.requests[0].content)
    assert registration.webhook_id == "wh_1"
    assert registration.secret == sent["secret"]
    assert sent["events"] == ["checkout.confirmed"]


def test_webhook_manager_verifies_deliveries():
    secret = WebhookManager.generate_secret()
    payload = '{"type":"checkout.confirmed"}'

    assert WebhookManager.verify_signature(payload, sign_payload(payload, secret), secret)
    assert not WebhookManager.verify_signature(payload, "0" * 64, secret)
