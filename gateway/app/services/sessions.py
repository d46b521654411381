"""
Sandbox session registry.

DEMO AUTH ONLY. Sessions are created by ``login`` with any non-empty
identity; the secret is accepted and never checked. State lives in
process memory and disappears on restart.

Locking:
- ``_lock`` guards the token table (insertion, lookup, listing).
- Each session carries its own lock; every mutation of a session
  (key issuance, rotation, checkout or webhook append) runs under it,
  so two requests racing on the same token cannot lose an update.

Sessions are addressed by token only. Callers receive frozen
``SessionSnapshot`` copies, never the live record.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from gateway.app.core.errors import AuthorizationError, ValidationError
from gateway.app.schemas.records import (
    CheckoutRecord,
    SessionSnapshot,
    SessionSummary,
    WebhookRecord,
)
from gateway.app.utils.identifiers import (
    new_sandbox_api_key,
    new_session_token,
    preview_secret,
)

logger = logging.getLogger("gateway.sessions")

LOGIN_HINT = (
    "Call POST /auth/login first, then pass the token as "
    "Authorization: Bearer <token>."
)


def _unauthorized() -> AuthorizationError:
    return AuthorizationError(
        "Unauthorized: no valid demo session.",
        hint=LOGIN_HINT,
        mode="sandbox",
    )


@dataclass
class _Session:
    token: str
    identity: str
    created_at: datetime
    api_key: Optional[str] = None
    checkouts: List[CheckoutRecord] = field(default_factory=list)
    webhooks: List[WebhookRecord] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            token=self.token,
            identity=self.identity,
            api_key=self.api_key,
            checkouts=tuple(self.checkouts),
            webhooks=tuple(self.webhooks),
            created_at=self.created_at,
        )


class SessionRegistry:
    """Owned, lock-protected table of sandbox sessions keyed by token."""

    def __init__(self) -> None:
        self._sessions: Dict[str, _Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def login(self, identity: Optional[str], secret: Optional[str] = None) -> str:
        """
        Create an empty session for ``identity`` and return its token.

        ``secret`` is accepted for interface parity and ignored.
        """
        if not identity or not identity.strip():
            raise ValidationError("Provide email in request body.")

        with self._lock:
            token = new_session_token()
            while token in self._sessions:
                token = new_session_token()

            self._sessions[token] = _Session(
                token=token,
                identity=identity,
                created_at=datetime.now(timezone.utc),
            )

        logger.info("sandbox_session_created", extra={"identity": identity})
        return token

    def resolve(self, token: Optional[str]) -> Optional[SessionSnapshot]:
        session = self._get(token)
        if session is None:
            return None
        with session.lock:
            return session.snapshot()

    def require(self, token: Optional[str]) -> SessionSnapshot:
        """
        Resolve ``token`` or fail with a 401 carrying a login hint.

        Gate for every sandbox handler that touches a session.
        """
        snapshot = self.resolve(token)
        if snapshot is None:
            raise _unauthorized()
        return snapshot

    # ------------------------------------------------------------------
    # Mutations (each atomic per session)
    # ------------------------------------------------------------------

    def issue_key(self, token: Optional[str]) -> str:
        session = self._require_live(token)
        key = new_sandbox_api_key()
        with session.lock:
            session.api_key = key
        return key

    def rotate_key(self, token: Optional[str]) -> Tuple[str, Optional[str]]:
        """
        Replace the session key.

        Returns ``(new_key, old_key_preview)``; the preview is ``None``
        when the session had no key yet.
        """
        session = self._require_live(token)
        new_key = new_sandbox_api_key()
        with session.lock:
            old_key = session.api_key
            session.api_key = new_key
        return new_key, preview_secret(old_key)

    def add_checkout(self, token: Optional[str], record: CheckoutRecord) -> SessionSnapshot:
        session = self._require_live(token)
        with session.lock:
            session.checkouts.append(record)
            return session.snapshot()

    def add_webhook(self, token: Optional[str], record: WebhookRecord) -> SessionSnapshot:
        session = self._require_live(token)
        with session.lock:
            session.webhooks.append(record)
            return session.snapshot()

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def summaries(self) -> List[SessionSummary]:
        with self._lock:
            sessions = list(self._sessions.values())

        summaries = []
        for session in sessions:
            with session.lock:
                summaries.append(
                    SessionSummary(
                        email=session.identity,
                        hasApiKey=session.api_key is not None,
                        checkouts=len(session.checkouts),
                        webhooks=len(session.webhooks),
                        createdAt=session.created_at,
                    )
                )
        return summaries

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get(self, token: Optional[str]) -> Optional[_Session]:
        if not token:
            return None
        with self._lock:
            return self._sessions.get(token)

    def _require_live(self, token: Optional[str]) -> _Session:
        session = self._get(token)
        if session is None:
            raise _unauthorized()
        return session
