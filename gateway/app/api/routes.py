"""
Public HTTP surface of the gateway.

Routes are mode-agnostic: each one resolves the handler set chosen at
startup and delegates to it. Sandbox-only routes answer 404 in
production because the production handler set says so, not because the
route checks the mode.
"""

import logging
import uuid
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, Request

from gateway.app.api.handlers import GatewayHandlers
from gateway.app.schemas.requests import (
    ApiKeyCreateRequest,
    ApiKeyRotateRequest,
    CheckoutRequest,
    ForwardRequest,
    LoginRequest,
    WebhookCreateRequest,
)

logger = logging.getLogger("gateway.api")

router = APIRouter()

BEARER_PREFIX = "Bearer "

# =============================================================================
# Dependency providers
# =============================================================================

def get_handlers(request: Request) -> GatewayHandlers:
    handlers = getattr(request.app.state, "handlers", None)
    if handlers is None:
        raise RuntimeError("handlers not initialized")
    return handlers


def get_bearer(
    authorization: Annotated[
        Optional[str],
        Header(description="Authorization: Bearer <token>"),
    ] = None,
) -> Optional[str]:
    """Token from the Authorization header, or None."""
    if authorization and authorization.startswith(BEARER_PREFIX):
        token = authorization[len(BEARER_PREFIX):].strip()
        return token or None
    return None


def get_correlation_id(
    x_correlation_id: Annotated[
        Optional[str],
        Header(description="Request trace ID"),
    ] = None,
) -> str:
    """Extract or generate a correlation ID for end-to-end traceability."""
    if x_correlation_id and len(x_correlation_id) > 128:
        return str(uuid.uuid4())
    return x_correlation_id or str(uuid.uuid4())


Handlers = Annotated[GatewayHandlers, Depends(get_handlers)]
Bearer = Annotated[Optional[str], Depends(get_bearer)]
CorrelationId = Annotated[str, Depends(get_correlation_id)]

# =============================================================================
# Monitoring
# =============================================================================

@router.get("/health", tags=["Monitoring"], summary="Liveness probe and mode report")
async def health(handlers: Handlers) -> Dict[str, Any]:
    return await handlers.health()

# =============================================================================
# Auth
# =============================================================================

@router.post("/auth/login", tags=["Auth"], summary="Create a sandbox session")
async def login(
    handlers: Handlers,
    correlation_id: CorrelationId,
    payload: Annotated[Optional[LoginRequest], Body()] = None,
) -> Dict[str, Any]:
    logger.info("auth_login", extra={"trace_id": correlation_id})
    return await handlers.login(payload)


@router.post("/auth/forward", tags=["Auth"], summary="Store a forwarded identity token")
async def forward(
    handlers: Handlers,
    bearer: Bearer,
    correlation_id: CorrelationId,
    payload: Annotated[Optional[ForwardRequest], Body()] = None,
) -> Dict[str, Any]:
    jwt = (payload.jwt if payload else None) or bearer
    logger.info("auth_forward", extra={"trace_id": correlation_id})
    return await handlers.forward(jwt)

# =============================================================================
# API keys
# =============================================================================

@router.post("/api-keys/create", tags=["API Keys"], summary="Issue an API key")
async def create_api_key(
    handlers: Handlers,
    bearer: Bearer,
    correlation_id: CorrelationId,
    payload: Annotated[Optional[ApiKeyCreateRequest], Body()] = None,
) -> Dict[str, Any]:
    logger.info("api_key_create", extra={"trace_id": correlation_id, "mode": handlers.mode})
    return await handlers.create_api_key(bearer, payload)


@router.post("/api-keys/rotate", tags=["API Keys"], summary="Rotate the current API key")
async def rotate_api_key(
    handlers: Handlers,
    bearer: Bearer,
    correlation_id: CorrelationId,
    payload: Annotated[Optional[ApiKeyRotateRequest], Body()] = None,
) -> Dict[str, Any]:
    logger.info("api_key_rotate", extra={"trace_id": correlation_id, "mode": handlers.mode})
    return await handlers.rotate_api_key(bearer, payload)

# =============================================================================
# Checkout & webhooks
# =============================================================================

@router.post("/checkout/demo", tags=["Checkout"], summary="Create a checkout session")
async def create_checkout(
    handlers: Handlers,
    bearer: Bearer,
    correlation_id: CorrelationId,
    payload: Annotated[Optional[CheckoutRequest], Body()] = None,
) -> Dict[str, Any]:
    logger.info("checkout_create", extra={"trace_id": correlation_id, "mode": handlers.mode})
    return await handlers.create_checkout(bearer, payload)


@router.post("/webhooks/create", tags=["Webhooks"], summary="Register a webhook listener")
async def create_webhook(
    handlers: Handlers,
    bearer: Bearer,
    correlation_id: CorrelationId,
    payload: Annotated[Optional[WebhookCreateRequest], Body()] = None,
) -> Dict[str, Any]:
    logger.info("webhook_create", extra={"trace_id": correlation_id, "mode": handlers.mode})
    return await handlers.create_webhook(bearer, payload)

# =============================================================================
# Sandbox inspection
# =============================================================================

@router.get("/session", tags=["Sandbox"], summary="Inspect the caller's sandbox session")
async def get_session(handlers: Handlers, bearer: Bearer) -> Dict[str, Any]:
    return await handlers.session(bearer)


@router.get("/sessions", tags=["Sandbox"], summary="List sandbox sessions (no tokens)")
async def list_sessions(handlers: Handlers) -> Dict[str, Any]:
    return await handlers.sessions()
