"""
Mode-specific request handlers.

The gateway runs in exactly one mode for its whole lifetime. At startup
``build_handlers`` picks one implementation of ``GatewayHandlers``:

    SandboxHandlers     in-memory simulation, no backend
    ProductionHandlers  proxy to the Paynexus backend

Routes call the selected handler set and never inspect the mode
themselves. Handlers return plain JSON-able dicts and signal failure by
raising ``GatewayError`` subclasses.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol

from gateway.app.core.config import PRODUCTION, SANDBOX, Settings
from gateway.app.core.errors import (
    AuthorizationError,
    RouteUnavailable,
    ValidationError,
)
from gateway.app.schemas.records import CheckoutRecord, WebhookRecord
from gateway.app.schemas.requests import (
    ApiKeyCreateRequest,
    ApiKeyRotateRequest,
    CheckoutRequest,
    LoginRequest,
    WebhookCreateRequest,
)
from gateway.app.services.backend import (
    BackendCaller,
    FallbackChain,
    RouteAttempt,
)
from gateway.app.services.credentials import CredentialStore
from gateway.app.services.sessions import SessionRegistry
from gateway.app.services.webhooks import (
    DEFAULT_WEBHOOK_URL,
    generate_secret,
    normalize_events,
)
from gateway.app.utils.identifiers import (
    new_checkout_id,
    new_webhook_id,
    preview_secret,
)

logger = logging.getLogger("gateway.handlers")

SERVICE_NAME = "paynexus-mcp"

DEFAULT_CHECKOUT_AMOUNT = 4900
DEFAULT_CHECKOUT_CURRENCY = "usd"
CHECKOUT_TTL = timedelta(minutes=30)
CHECKOUT_PAGE_BASE = "https://checkout.paynexus.demo"

# Backend routes (production)
V1_KEY_CREATE = "/v1/api-keys/create"
LEGACY_KEY_CREATE = "/api/keys/create"
V1_KEY_ROTATE = "/v1/api-keys/rotate"
V1_CHECKOUT_CREATE = "/v1/checkout/create"
LEGACY_CHECKOUT_CREATE = "/api/checkout/create"
V1_WEBHOOKS = "/v1/webhooks"


class GatewayHandlers(Protocol):
    """Operations behind every public route."""

    mode: str

    async def health(self) -> Dict[str, Any]:
        ...

    async def login(self, payload: Optional[LoginRequest]) -> Dict[str, Any]:
        ...

    async def forward(self, jwt: Optional[str]) -> Dict[str, Any]:
        ...

    async def create_api_key(
        self, bearer: Optional[str], payload: Optional[ApiKeyCreateRequest]
    ) -> Dict[str, Any]:
        ...

    async def rotate_api_key(
        self, bearer: Optional[str], payload: Optional[ApiKeyRotateRequest]
    ) -> Dict[str, Any]:
        ...

    async def create_checkout(
        self, bearer: Optional[str], payload: Optional[CheckoutRequest]
    ) -> Dict[str, Any]:
        ...

    async def create_webhook(
        self, bearer: Optional[str], payload: Optional[WebhookCreateRequest]
    ) -> Dict[str, Any]:
        ...

    async def session(self, bearer: Optional[str]) -> Dict[str, Any]:
        ...

    async def sessions(self) -> Dict[str, Any]:
        ...


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def _drop_none(body: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in body.items() if v is not None}


# ======================================================================
# Sandbox (DEMO AUTH ONLY, NOT FOR PRODUCTION)
# ======================================================================

class SandboxHandlers:
    """
    Self-contained simulation.

    Every session-bound handler passes through ``SessionRegistry.require``
    first; an unknown or missing bearer ends the request with a 401.
    """

    mode = SANDBOX

    def __init__(
        self,
        settings: Settings,
        sessions: SessionRegistry,
        credentials: CredentialStore,
    ) -> None:
        self.settings = settings
        self.sessions_registry = sessions
        self.credentials = credentials

    async def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "mode": self.mode,
            "env": self.settings.mcp_env,
            "backend": "(not used in sandbox mode)",
            "sessions": len(self.sessions_registry),
        }

    async def login(self, payload: Optional[LoginRequest]) -> Dict[str, Any]:
        payload = payload or LoginRequest()

        # Password intentionally ignored.
        token = self.sessions_registry.login(payload.email, payload.password)

        return {
            "ok": True,
            "token": token,
            "email": payload.email,
            "mode": self.mode,
            "message": "Demo session created. Pass token as: Authorization: Bearer <token>",
            "warning": "Sandbox session only. No real authentication occurred.",
        }

    async def forward(self, jwt: Optional[str]) -> Dict[str, Any]:
        if not jwt:
            raise ValidationError(
                "Provide jwt in body. In sandbox mode, prefer POST /auth/login instead."
            )

        self.credentials.store_forwarded_token(jwt)
        return {
            "ok": True,
            "mode": self.mode,
            "message": (
                "JWT stored in legacy state. For the full demo flow, "
                "use POST /auth/login."
            ),
        }

    async def create_api_key(
        self, bearer: Optional[str], payload: Optional[ApiKeyCreateRequest]
    ) -> Dict[str, Any]:
        session = self.sessions_registry.require(bearer)
        key = self.sessions_registry.issue_key(bearer)

        logger.info("sandbox_api_key_issued", extra={"identity": session.identity})
        return {
            "ok": True,
            "key": key,
            "mode": self.mode,
            "session": session.identity,
            "warning": "Demo API key: stored in memory only. Not valid for real transactions.",
        }

    async def rotate_api_key(
        self, bearer: Optional[str], payload: Optional[ApiKeyRotateRequest]
    ) -> Dict[str, Any]:
        session = self.sessions_registry.require(bearer)
        new_key, old_preview = self.sessions_registry.rotate_key(bearer)

        logger.info(
            "sandbox_api_key_rotated",
            extra={"identity": session.identity, "had_previous_key": old_preview is not None},
        )
        return {
            "ok": True,
            "key": new_key,
            "rotated": True,
            "old_key": old_preview,
            "mode": self.mode,
            "warning": "Demo key rotation. No real keys were affected.",
        }

    async def create_checkout(
        self, bearer: Optional[str], payload: Optional[CheckoutRequest]
    ) -> Dict[str, Any]:
        session = self.sessions_registry.require(bearer)
        payload = payload or CheckoutRequest()

        amount = payload.amount if payload.amount is not None else DEFAULT_CHECKOUT_AMOUNT
        currency = (payload.currency or DEFAULT_CHECKOUT_CURRENCY).lower()
        now = datetime.now(timezone.utc)

        record = CheckoutRecord(
            id=new_checkout_id(),
            amount=amount,
            currency=currency,
            status="pending",
            created_at=now,
        )
        session = self.sessions_registry.add_checkout(bearer, record)

        return {
            "id": record.id,
            "object": "checkout_session",
            "amount": amount,
            "currency": currency,
            "status": record.status,
            "created_at": _iso(now),
            "expires_at": _iso(now + CHECKOUT_TTL),
            "merchant": session.identity,
            "api_key": preview_secret(session.api_key),
            "payment_url": f"{CHECKOUT_PAGE_BASE}/{uuid.uuid4()}",
            "metadata": payload.metadata or {},
            "mode": self.mode,
        }

    async def create_webhook(
        self, bearer: Optional[str], payload: Optional[WebhookCreateRequest]
    ) -> Dict[str, Any]:
        self.sessions_registry.require(bearer)
        payload = payload or WebhookCreateRequest()

        events = normalize_events(payload.events)
        now = datetime.now(timezone.utc)

        record = WebhookRecord(
            id=new_webhook_id(),
            url=payload.url or DEFAULT_WEBHOOK_URL,
            events=tuple(events),
            created_at=now,
        )
        self.sessions_registry.add_webhook(bearer, record)

        return {
            "id": record.id,
            "url": record.url,
            "events": events,
            "status": "active",
            "created_at": _iso(now),
            "mode": self.mode,
            # Handed to the caller once; the gateway keeps no copy.
            "secret": generate_secret(),
        }

    async def session(self, bearer: Optional[str]) -> Dict[str, Any]:
        session = self.sessions_registry.require(bearer)

        return {
            "email": session.identity,
            "mode": self.mode,
            "hasApiKey": session.api_key is not None,
            "apiKey": preview_secret(session.api_key),
            "checkouts": [
                {
                    "id": c.id,
                    "amount": c.amount,
                    "currency": c.currency,
                    "status": c.status,
                    "createdAt": _iso(c.created_at),
                }
                for c in session.checkouts
            ],
            "webhooks": [
                {
                    "id": w.id,
                    "url": w.url,
                    "events": list(w.events),
                    "createdAt": _iso(w.created_at),
                }
                for w in session.webhooks
            ],
            "createdAt": _iso(session.created_at),
            "warning": "Sandbox session: in-memory only, resets on server restart.",
        }

    async def sessions(self) -> Dict[str, Any]:
        summaries = self.sessions_registry.summaries()
        return {
            "mode": self.mode,
            "total": len(summaries),
            "sessions": [
                {**s.model_dump(), "createdAt": _iso(s.createdAt)}
                for s in summaries
            ],
        }


# ======================================================================
# Production
# ======================================================================

class ProductionHandlers:
    """
    Backend proxy.

    Bearer resolution: the request's own ``Authorization`` header wins;
    otherwise the stored credential for the call family is used
    (forwarded JWT for key issuance, API key for everything after).
    """

    mode = PRODUCTION

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialStore,
        backend: BackendCaller,
    ) -> None:
        self.settings = settings
        self.credentials = credentials
        self.backend = backend

    async def health(self) -> Dict[str, Any]:
        held = self.credentials.snapshot()
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "mode": self.mode,
            "env": self.settings.mcp_env,
            "backend": self.settings.paynexus_api_url,
            "credentials": {
                "forwarded_token": held.forwarded_token is not None,
                "api_key": held.api_key is not None,
            },
        }

    async def login(self, payload: Optional[LoginRequest]) -> Dict[str, Any]:
        raise RouteUnavailable(
            "/auth/login is only available in sandbox mode.",
            hint="Use POST /auth/forward with a real Supabase JWT in production.",
        )

    async def forward(self, jwt: Optional[str]) -> Dict[str, Any]:
        if not jwt:
            raise ValidationError(
                "Provide jwt in body or Authorization: Bearer <token>"
            )

        self.credentials.store_forwarded_token(jwt)
        logger.info("forwarded_token_stored")
        return {
            "ok": True,
            "mode": self.mode,
            "message": "JWT stored. Call POST /api-keys/create next.",
        }

    async def create_api_key(
        self, bearer: Optional[str], payload: Optional[ApiKeyCreateRequest]
    ) -> Dict[str, Any]:
        payload = payload or ApiKeyCreateRequest()
        token = bearer or self.credentials.forwarded_token
        tag = payload.tag or "ai-agent"

        # v1 needs a real identity token; legacy issues without one.
        chain = FallbackChain(
            [
                RouteAttempt(
                    V1_KEY_CREATE,
                    _drop_none(
                        {
                            "org_id": payload.org_id or "demo-org",
                            "tag": tag,
                            "env": payload.env or "sandbox",
                            "scopes": payload.scopes,
                        }
                    ),
                ),
                RouteAttempt(LEGACY_KEY_CREATE, {"tag": tag}, send_bearer=False),
            ]
        )

        attempt, data = await chain.run(self.backend, token)

        issued = data.get("raw_key") or data.get("key")
        if isinstance(issued, str) and issued:
            self.credentials.store_api_key(issued)

        logger.info(
            "api_key_issued",
            extra={"route": attempt.route, "stored": bool(issued)},
        )
        return data

    async def rotate_api_key(
        self, bearer: Optional[str], payload: Optional[ApiKeyRotateRequest]
    ) -> Dict[str, Any]:
        token = bearer or self.credentials.api_key
        if not token:
            raise AuthorizationError(
                "No API key available to rotate.",
                hint="Call POST /api-keys/create first, or pass the current key as Authorization: Bearer <key>.",
                mode=self.mode,
            )

        body = payload.model_dump(exclude_none=True) if payload else {}

        # No fallback: a rejected rotation is terminal.
        data = await self.backend.call(V1_KEY_ROTATE, token, body)

        rotated = data.get("raw_key") or data.get("key")
        if isinstance(rotated, str) and rotated:
            self.credentials.store_api_key(rotated)

        logger.info("api_key_rotated", extra={"stored": bool(rotated)})
        return data

    async def create_checkout(
        self, bearer: Optional[str], payload: Optional[CheckoutRequest]
    ) -> Dict[str, Any]:
        token = bearer or self.credentials.api_key
        body: Dict[str, Any] = {
            "amount": DEFAULT_CHECKOUT_AMOUNT,
            "currency": DEFAULT_CHECKOUT_CURRENCY,
        }
        if payload is not None:
            body.update(payload.model_dump(exclude_none=True))

        chain = FallbackChain(
            [
                RouteAttempt(V1_CHECKOUT_CREATE, body),
                RouteAttempt(LEGACY_CHECKOUT_CREATE, body, send_bearer=False),
            ]
        )

        attempt, data = await chain.run(self.backend, token)
        logger.info("checkout_created", extra={"route": attempt.route})
        return data

    async def create_webhook(
        self, bearer: Optional[str], payload: Optional[WebhookCreateRequest]
    ) -> Dict[str, Any]:
        token = bearer or self.credentials.api_key
        payload = payload or WebhookCreateRequest()

        url = payload.url or DEFAULT_WEBHOOK_URL
        events = normalize_events(payload.events)
        secret = generate_secret()

        data = await self.backend.call(
            V1_WEBHOOKS,
            token,
            {"url": url, "events": events, "secret": secret},
        )

        logger.info(
            "webhook_registered",
            extra={"webhook_id": data.get("id"), "events": events},
        )
        # The secret is ours; the backend response never overrides it.
        return {**data, "secret": secret}

    async def session(self, bearer: Optional[str]) -> Dict[str, Any]:
        raise RouteUnavailable(
            "Not available in production mode.",
            hint=(
                "Production keeps no sessions. Use POST /auth/forward, "
                "then POST /api-keys/create."
            ),
        )

    async def sessions(self) -> Dict[str, Any]:
        raise RouteUnavailable(
            "Not available in production mode.",
            hint="Production keeps no sessions. Use GET /health for gateway status.",
        )


# ----------------------------------------------------------------------
# Selection
# ----------------------------------------------------------------------

def build_handlers(
    settings: Settings,
    *,
    credentials: CredentialStore,
    backend: Optional[BackendCaller] = None,
    sessions: Optional[SessionRegistry] = None,
) -> GatewayHandlers:
    """Pick the handler set for the process-wide mode."""
    if settings.is_sandbox:
        return SandboxHandlers(
            settings,
            sessions if sessions is not None else SessionRegistry(),
            credentials,
        )

    if backend is None:
        raise RuntimeError("production mode requires a backend caller")
    return ProductionHandlers(settings, credentials, backend)
