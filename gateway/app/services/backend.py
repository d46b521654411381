"""
Outbound calls to the Paynexus backend (production mode only).

``BackendCaller`` performs one authenticated POST and either returns the
decoded JSON body or raises ``UpstreamError``. It owns no state beyond
the shared ``httpx.AsyncClient`` and never touches gateway locks, so a
slow backend cannot stall other requests.

``FallbackChain`` models the primary-then-legacy protocol as an ordered
list of attempts with one uniform policy:

    attempt -> UpstreamError? -> next attempt, else stop

The first success wins. When every attempt fails, the last attempt's
error is raised unmodified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

import httpx

from gateway.app.core.errors import UpstreamError

logger = logging.getLogger("gateway.backend")


class BackendCaller:
    """Thin async wrapper around the shared HTTP client."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        timeout: float = 10.0,
    ) -> None:
        self.client = http_client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _url(self, route: str) -> str:
        return f"{self.base_url}{route}"

    @staticmethod
    def _headers(bearer: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    async def call(
        self,
        route: str,
        bearer: Optional[str],
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        POST ``body`` to ``route``.

        Raises:
            UpstreamError: non-2xx status (upstream status and body), or
                transport failure (502, synthetic body).
        """
        try:
            response = await self.client.post(
                self._url(route),
                json=body if body is not None else {},
                headers=self._headers(bearer),
                timeout=self.timeout,
            )
        except httpx.TransportError as exc:
            logger.warning(
                "backend_transport_failed",
                extra={"route": route, "error_type": type(exc).__name__},
            )
            raise UpstreamError(
                str(exc) or type(exc).__name__,
                route=route,
            ) from exc

        if response.is_success:
            return _decode_success(response)

        error_body = _decode_error(response)
        logger.warning(
            "backend_call_rejected",
            extra={"route": route, "status_code": response.status_code},
        )
        raise UpstreamError(
            f"Backend {route} returned {response.status_code}",
            status_code=response.status_code,
            body=error_body,
            route=route,
        )


def _decode_success(response: httpx.Response) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {"raw": response.text}
    return data if isinstance(data, dict) else {"data": data}


def _decode_error(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        return data
    return {"error": response.reason_phrase or f"HTTP {response.status_code}"}


# ----------------------------------------------------------------------
# Fallback chain
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class RouteAttempt:
    """One candidate route in a fallback chain."""

    route: str
    body: Dict[str, Any] = field(default_factory=dict)
    send_bearer: bool = True


class FallbackChain:
    """Ordered list of candidate routes tried until one succeeds."""

    def __init__(self, attempts: Sequence[RouteAttempt]) -> None:
        if not attempts:
            raise ValueError("FallbackChain requires at least one attempt")
        self.attempts: Tuple[RouteAttempt, ...] = tuple(attempts)

    async def run(
        self,
        caller: BackendCaller,
        bearer: Optional[str],
    ) -> Tuple[RouteAttempt, Dict[str, Any]]:
        """
        Return ``(winning_attempt, body)``.

        Raises the last ``UpstreamError`` when every attempt fails.
        """
        *fallible, final = self.attempts

        for index, attempt in enumerate(fallible):
            try:
                data = await self._call(caller, attempt, bearer)
            except UpstreamError as exc:
                logger.info(
                    "backend_fallback",
                    extra={
                        "failed_route": attempt.route,
                        "status_code": exc.status_code,
                        "next_route": self.attempts[index + 1].route,
                    },
                )
                continue
            return attempt, data

        # The final attempt's error propagates unmodified.
        return final, await self._call(caller, final, bearer)

    @staticmethod
    async def _call(
        caller: BackendCaller,
        attempt: RouteAttempt,
        bearer: Optional[str],
    ) -> Dict[str, Any]:
        return await caller.call(
            attempt.route,
            bearer if attempt.send_bearer else None,
            attempt.body,
        )
