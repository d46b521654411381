"""
Typed async client for the Paynexus REST API.

Used by agents and scripts that talk to the backend directly instead of
through the gateway. Every request carries:

    Authorization: Bearer <api_key>
    Content-Type:  application/json
    X-Paynexus-Env: <sandbox|production>

Non-2xx responses are logged as ``api_error`` and raised as
``PaynexusApiError``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field

from gateway.app.services.webhooks import generate_secret, verify_signature

logger = logging.getLogger("gateway.client")

Environment = Literal["sandbox", "production"]


# ----------------------------------------------------------------------
# Response models
# ----------------------------------------------------------------------

class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CheckoutSession(_ApiModel):
    session_id: str = Field(..., alias="sessionId")
    url: str


class PaymentConfirmation(_ApiModel):
    success: bool
    transaction_id: str = Field(..., alias="transactionId")


class Transaction(_ApiModel):
    id: str
    amount: int
    currency: str
    status: Literal["pending", "completed", "failed"]
    created_at: datetime = Field(..., alias="createdAt")


class ComplianceScan(_ApiModel):
    scan_id: str = Field(..., alias="scanId")


class ComplianceReport(_ApiModel):
    report_id: str = Field(..., alias="reportId")
    status: Literal["clean", "flagged"]
    timestamp: datetime


class WebhookRegistration(_ApiModel):
    webhook_id: str = Field(..., alias="webhookId")
    secret: str


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

class PaynexusApiError(RuntimeError):
    def __init__(self, status_code: int, path: str, body: Any) -> None:
        super().__init__(f"Paynexus API error {status_code} on {path}")
        self.status_code = status_code
        self.path = path
        self.body = body


# ----------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------

class PaynexusClient:
    """
    Async client bound to one API key and environment.

    ``api_key`` is mutable: ``rotate_api_key`` swaps in the new key so
    subsequent requests use it.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        env: Environment = "sandbox",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.env = env
        self.timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()

    async def __aenter__(self) -> "PaynexusClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Paynexus-Env": self.env,
        }

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        response = await self._client.request(
            method,
            f"{self.base_url}{path}",
            json=json,
            headers=self._headers(),
            timeout=self.timeout,
        )

        if not response.is_success:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            logger.error(
                "api_error",
                extra={
                    "status_code": response.status_code,
                    "path": path,
                    "error_data": error_data,
                },
            )
            raise PaynexusApiError(response.status_code, path, error_data)

        return response.json()

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def create_checkout(self, amount: int, currency: str) -> CheckoutSession:
        data = await self.request(
            "POST", "/v1/checkout", json={"amount": amount, "currency": currency}
        )
        return CheckoutSession.model_validate(data)

    async def confirm_payment(self, session_id: str) -> PaymentConfirmation:
        data = await self.request(
            "POST", "/v1/payment/confirm", json={"sessionId": session_id}
        )
        return PaymentConfirmation.model_validate(data)

    async def fetch_transactions(self) -> List[Transaction]:
        data = await self.request("GET", "/v1/transactions")
        return [Transaction.model_validate(item) for item in data]

    # ------------------------------------------------------------------
    # Compliance
    # ------------------------------------------------------------------

    async def trigger_compliance_scan(self, entity_id: str) -> ComplianceScan:
        data = await self.request(
            "POST", "/v1/compliance/scan", json={"entityId": entity_id}
        )
        return ComplianceScan.model_validate(data)

    async def retrieve_compliance_report(self, report_id: str) -> ComplianceReport:
        data = await self.request("GET", f"/v1/compliance/report/{report_id}")
        return ComplianceReport.model_validate(data)


# ----------------------------------------------------------------------
# Key rotation
# ----------------------------------------------------------------------

async def rotate_api_key(client: PaynexusClient) -> str:
    """
    Request a new key and make the client use it.

    The backend invalidates the old key after its grace period.
    """
    logger.info("api_key_rotation_started", extra={"env": client.env})

    try:
        data = await client.request("POST", "/v1/auth/rotate")
        new_key = data["newKey"]
    except Exception as exc:
        logger.error(
            "api_key_rotation_failed",
            extra={"error": str(exc), "error_type": type(exc).__name__},
        )
        raise

    client.api_key = new_key
    logger.info("api_key_rotated", extra={"env": client.env})
    return new_key


# ----------------------------------------------------------------------
# Webhooks
# ----------------------------------------------------------------------

class WebhookManager:
    """Register webhook listeners and verify their deliveries."""

    def __init__(self, client: PaynexusClient) -> None:
        self.client = client

    @staticmethod
    def generate_secret() -> str:
        return generate_secret()

    async def register_webhook(
        self, url: str, events: Sequence[str]
    ) -> WebhookRegistration:
        """
        Register ``url`` for ``events`` with a freshly generated secret.

        Keep the returned secret; it is needed to verify deliveries.
        """
        logger.info("webhook_registration_started", extra={"url": url, "events": list(events)})

        secret = self.generate_secret()
        try:
            data = await self.client.request(
                "POST",
                "/v1/webhooks/register",
                json={"url": url, "events": list(events), "secret": secret},
            )
        except Exception as exc:
            logger.error("webhook_registration_failed", extra={"error": str(exc)})
            raise

        registration = WebhookRegistration(webhookId=data["webhookId"], secret=secret)
        logger.info("webhook_registered", extra={"webhook_id": registration.webhook_id})
        return registration

    @staticmethod
    def verify_signature(payload: str, signature: str, secret: str) -> bool:
        return verify_signature(payload, signature, secret)
