"""
Inbound request bodies.

All bodies are optional on the wire; absent fields fall back to the
defaults the handlers apply. Required-field checks that must answer with
a specific message (login email, forwarded jwt) are done by the
handlers rather than here.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForwardRequest(BaseModel):
    jwt: Optional[str] = None


class ApiKeyCreateRequest(BaseModel):
    tag: Optional[str] = None
    org_id: Optional[str] = None
    env: Optional[str] = None
    scopes: Optional[List[str]] = None


class ApiKeyRotateRequest(BaseModel):
    tag: Optional[str] = None

    # Forwarded to the backend verbatim in production.
    model_config = ConfigDict(extra="allow")


class CheckoutRequest(BaseModel):
    amount: Optional[int] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{3}$")
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="allow")


class WebhookCreateRequest(BaseModel):
    url: Optional[str] = Field(default=None, min_length=1)
    events: Optional[List[str]] = None
