"""
Webhook secret issuance and signature verification.

Secrets are client-issued: the gateway generates one per registration,
hands it to the caller in the registration response, and keeps no copy.
The backend never derives or validates it.

Signatures are HMAC-SHA256 over the raw payload bytes, keyed with the
secret, rendered as lowercase hex.
"""

import hashlib
import hmac
import secrets
from typing import Iterable, List, Optional, Union

from gateway.app.core.errors import ValidationError

SECRET_BYTES = 32

DEFAULT_WEBHOOK_URL = "https://webhook.site/demo"
DEFAULT_WEBHOOK_EVENTS = ("checkout.confirmed", "transaction.succeeded")

Payload = Union[str, bytes, bytearray]


def generate_secret() -> str:
    """32 bytes from the OS CSPRNG as a 64-character hex string."""
    return secrets.token_hex(SECRET_BYTES)


def _as_bytes(value: Payload) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def sign_payload(payload: Payload, secret: Union[str, bytes]) -> str:
    return hmac.new(_as_bytes(secret), _as_bytes(payload), hashlib.sha256).hexdigest()


def verify_signature(
    payload: Payload,
    signature: str,
    secret: Union[str, bytes],
) -> bool:
    """
    Check ``signature`` (hex) against the HMAC of ``payload``.

    Both sides are compared as raw digest bytes, so hex case does not
    matter. Returns False on length mismatch before the constant-time
    compare, and on any decoding failure. Never raises.
    """
    try:
        expected = hmac.new(
            _as_bytes(secret), _as_bytes(payload), hashlib.sha256
        ).digest()
        claimed = bytes.fromhex(signature)

        if len(expected) != len(claimed):
            return False

        return hmac.compare_digest(expected, claimed)
    except (AttributeError, TypeError, ValueError):
        return False


def normalize_events(events: Optional[Iterable[str]]) -> List[str]:
    """
    Resolve the event set for a registration.

    ``None`` selects the defaults. An explicit empty list, or one with
    blank names, is rejected. Duplicates are dropped, order is kept.
    """
    if events is None:
        return list(DEFAULT_WEBHOOK_EVENTS)

    names: List[str] = []
    for name in events:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Webhook event names must be non-empty strings.")
        if name not in names:
            names.append(name)

    if not names:
        raise ValidationError("Provide at least one event in 'events'.")
    return names
