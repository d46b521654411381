"""
Immutable records and snapshots for gateway state.

Mutable state lives exclusively inside the session registry and the
credential store. Everything that crosses a request boundary is one of
the frozen models below.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Session-owned records (append-only)
# ----------------------------------------------------------------------

class CheckoutRecord(BaseModel):
    id: str = Field(..., pattern=r"^cs_demo_[0-9a-f]+$")
    amount: int = Field(..., description="Minor currency units")
    currency: str = Field(..., pattern=r"^[a-z]{3}$")
    status: str
    created_at: datetime

    model_config = ConfigDict(frozen=True, extra="forbid")


class WebhookRecord(BaseModel):
    id: str = Field(..., pattern=r"^wh_demo_[0-9a-f]+$")
    url: str
    events: Tuple[str, ...] = Field(..., min_length=1)
    created_at: datetime

    model_config = ConfigDict(frozen=True, extra="forbid")


# ----------------------------------------------------------------------
# Snapshots
# ----------------------------------------------------------------------

class SessionSnapshot(BaseModel):
    """
    Point-in-time copy of a sandbox session.

    Holds the full API key; callers render it truncated.
    """

    token: str
    identity: str
    api_key: Optional[str] = None
    checkouts: Tuple[CheckoutRecord, ...] = ()
    webhooks: Tuple[WebhookRecord, ...] = ()
    created_at: datetime

    model_config = ConfigDict(frozen=True)


class SessionSummary(BaseModel):
    """Listing entry for a session. Never carries the token."""

    email: str
    hasApiKey: bool
    checkouts: int
    webhooks: int
    createdAt: datetime

    model_config = ConfigDict(frozen=True)


class CredentialSnapshot(BaseModel):
    forwarded_token: Optional[str] = None
    api_key: Optional[str] = None

    model_config = ConfigDict(frozen=True)
