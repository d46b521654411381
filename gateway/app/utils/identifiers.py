"""
Identifier and key generation.

Current scope:
- Opaque session tokens
- Sandbox API keys, checkout ids and webhook ids
- Safe previews of secrets for display

All randomness comes from the OS CSPRNG (``uuid4`` / ``secrets``).
"""

import uuid
from typing import Optional

PREVIEW_LENGTH = 15

SANDBOX_KEY_PREFIX = "pk_demo_"
SANDBOX_CHECKOUT_PREFIX = "cs_demo_"
SANDBOX_WEBHOOK_PREFIX = "wh_demo_"


def new_session_token() -> str:
    return str(uuid.uuid4())


def _hex_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def new_sandbox_api_key() -> str:
    """``pk_demo_`` followed by 32 lowercase hex characters."""
    return _hex_id(SANDBOX_KEY_PREFIX)


def new_checkout_id() -> str:
    return _hex_id(SANDBOX_CHECKOUT_PREFIX)


def new_webhook_id() -> str:
    return _hex_id(SANDBOX_WEBHOOK_PREFIX)


def preview_secret(value: Optional[str]) -> Optional[str]:
    """
    Truncated display form of a secret.

    Returns the first ``PREVIEW_LENGTH`` characters followed by ``...``.
    Short values keep at most half their length, so the full value is
    never returned.
    """
    if not value:
        return None
    keep = min(PREVIEW_LENGTH, len(value) // 2)
    return f"{value[:keep]}..."
