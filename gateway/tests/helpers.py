import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx

from gateway.app.core.config import Settings

BACKEND_URL = "http://backend.test"

Reply = Union[Tuple[int, Any], Callable[[httpx.Request], httpx.Response], Exception]


def sandbox_settings(**overrides: Any) -> Settings:
    values = {"mcp_env": "demo", "paynexus_env": None}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def production_settings(**overrides: Any) -> Settings:
    values = {
        "mcp_env": "production",
        "paynexus_env": "production",
        "paynexus_api_url": BACKEND_URL,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class BackendStub:
    """
    Scripted stand-in for the Paynexus backend.

    Replies are keyed by path. A reply is ``(status, json_body)``, an
    exception to raise as a transport failure, or a callable returning
    an ``httpx.Response``. Unscripted paths answer 404.
    """

    def __init__(self, replies: Optional[Dict[str, Reply]] = None) -> None:
        self.replies: Dict[str, Reply] = dict(replies or {})
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.get(request.url.path)

        if reply is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)

        status, body = reply
        if isinstance(body, (str, bytes)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]

    def json_body(self, index: int) -> Any:
        return json.loads(self.requests[index].content)

    def auth_header(self, index: int) -> Optional[str]:
        return self.requests[index].headers.get("Authorization")


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
