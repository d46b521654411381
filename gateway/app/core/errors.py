"""
Gateway error taxonomy.

Every failure path in the gateway ends in one of these exceptions. Each
renders a JSON body carrying an ``error`` field, so callers can always
tell a failure apart from a success payload.

    ValidationError      400  missing or malformed input, never retried
    AuthorizationError   401  no usable session or credential
    RouteUnavailable     404  route not served in the current mode
    UpstreamError        upstream status, else 502
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class for all structured gateway failures."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(GatewayError):
    status_code = 400


class AuthorizationError(GatewayError):
    status_code = 401

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.hint = hint
        self.mode = mode

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        if self.hint:
            body["hint"] = self.hint
        if self.mode:
            body["mode"] = self.mode
        return body


class RouteUnavailable(GatewayError):
    status_code = 404

    def __init__(self, message: str, *, hint: Optional[str] = None) -> None:
        super().__init__(message)
        self.hint = hint

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        if self.hint:
            body["hint"] = self.hint
        return body


class UpstreamError(GatewayError):
    """
    A backend call failed.

    ``body`` is the upstream's JSON object when it sent one, otherwise a
    synthetic ``{"error": message}``. It is surfaced to the caller as-is.
    """

    BAD_GATEWAY = 502

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[Dict[str, Any]] = None,
        route: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code or self.BAD_GATEWAY
        self.body = body if body is not None else {"error": message}
        self.route = route

    def to_body(self) -> Dict[str, Any]:
        return dict(self.body)
