"""
Single-slot credential store.

Holds "the last credential seen or issued": one forwarded bearer token
(set by /auth/forward) and one API key (set by successful key issuance
or rotation). Each write overwrites the previous value. Shared by all
requests in the process, hence the lock.
"""

import threading
from typing import Optional

from gateway.app.schemas.records import CredentialSnapshot


class CredentialStore:
    def __init__(self) -> None:
        self._forwarded_token: Optional[str] = None
        self._api_key: Optional[str] = None
        self._lock = threading.Lock()

    def store_forwarded_token(self, token: str) -> None:
        with self._lock:
            self._forwarded_token = token

    def store_api_key(self, api_key: str) -> None:
        with self._lock:
            self._api_key = api_key

    @property
    def forwarded_token(self) -> Optional[str]:
        with self._lock:
            return self._forwarded_token

    @property
    def api_key(self) -> Optional[str]:
        with self._lock:
            return self._api_key

    def snapshot(self) -> CredentialSnapshot:
        with self._lock:
            return CredentialSnapshot(
                forwarded_token=self._forwarded_token,
                api_key=self._api_key,
            )
