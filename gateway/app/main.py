import logging
import sys
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse

from gateway.app.api.handlers import build_handlers
from gateway.app.api.routes import router as gateway_router
from gateway.app.core.config import Settings, get_settings
from gateway.app.core.errors import GatewayError
from gateway.app.core.logs import configure_logging
from gateway.app.services.backend import BackendCaller
from gateway.app.services.credentials import CredentialStore

logger = logging.getLogger("gateway.main")


def get_app_version() -> str:
    """
    Resolve application version.

    Falls back to the source version when the package is not installed.
    """
    try:
        return version("paynexus-gateway")
    except PackageNotFoundError:
        return "0.3.0"


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

async def gateway_error_handler(request: Request, exc: GatewayError) -> ORJSONResponse:
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=400,
        content={
            "error": "Invalid request body.",
            "details": [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
                for err in exc.errors()
            ],
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
    logger.exception(
        "gateway_internal_error",
        extra={"path": request.url.path, "error_type": type(exc).__name__},
    )
    return ORJSONResponse(status_code=500, content={"error": "Gateway internal error"})


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Application factory for the Paynexus gateway.

    ``transport`` replaces the outbound network layer (tests pass an
    ``httpx.MockTransport``).
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Guarantees:
        - Mode is fixed before the first request is served
        - One shared outbound client, closed on shutdown
        """
        configure_logging(settings.log_level)

        logger.info(
            "gateway_startup_begin",
            extra={
                "version": get_app_version(),
                "mode": settings.mode,
                "env": settings.mcp_env,
            },
        )

        app.state.settings = settings
        app.state.credentials = CredentialStore()
        app.state.http_client = None
        backend = None

        if not settings.is_sandbox:
            app.state.http_client = httpx.AsyncClient(
                transport=transport,
                timeout=httpx.Timeout(
                    timeout=settings.backend_timeout_seconds,
                    connect=min(5.0, settings.backend_timeout_seconds),
                ),
                limits=httpx.Limits(
                    max_keepalive_connections=20,
                    max_connections=100,
                ),
                headers={"User-Agent": f"paynexus-gateway/{get_app_version()}"},
            )
            backend = BackendCaller(
                app.state.http_client,
                settings.paynexus_api_url,
                timeout=settings.backend_timeout_seconds,
            )

        app.state.handlers = build_handlers(
            settings,
            credentials=app.state.credentials,
            backend=backend,
        )

        try:
            yield
        finally:
            logger.info("gateway_shutdown_begin")
            if app.state.http_client is not None:
                try:
                    await app.state.http_client.aclose()
                except Exception:
                    logger.warning("http_client_shutdown_failed")

    app = FastAPI(
        title="Paynexus MCP Gateway",
        description=(
            "Dual-mode gateway between AI agents and the Paynexus backend: "
            "in-memory sandbox or authenticated production proxy."
        ),
        version=get_app_version(),
        docs_url="/docs",
        redoc_url=None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(gateway_router)
    return app


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------

def startup_banner(settings: Settings) -> str:
    """Human-readable summary of the listener and its reachable routes."""
    routes = []
    if settings.is_sandbox:
        routes.append("POST /auth/login      <- start here")
    else:
        routes.append("POST /auth/forward")
    routes += [
        "POST /api-keys/create",
        "POST /api-keys/rotate",
        "POST /checkout/demo",
        "POST /webhooks/create",
    ]
    if settings.is_sandbox:
        routes += ["GET  /session", "GET  /sessions"]
    routes.append("GET  /health")

    mode = "SANDBOX (DemoAuth)" if settings.is_sandbox else "production"
    lines = [
        "Paynexus MCP HTTP Service",
        f"Port:    {settings.port}",
        f"Mode:    {mode}",
    ]
    if not settings.is_sandbox:
        lines.append(f"Backend: {settings.paynexus_api_url}")
    lines.append(f"Env:     {settings.mcp_env}")
    lines += routes
    if settings.is_sandbox:
        lines.append("DEMO AUTH ONLY, NOT FOR PRODUCTION")

    width = max(len(line) for line in lines) + 4
    border = "+" + "-" * width + "+"
    body = [f"|  {line.ljust(width - 2)}|" for line in lines]
    return "\n".join([border, *body, border])


def run() -> None:
    """Console entrypoint: ``paynexus-gateway``."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    print(startup_banner(settings), file=sys.stderr)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
