"""FastAPI application entry point."""

import asyncio
import contextlib
import logging
import uuid as _uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send
from structlog.contextvars import bound_contextvars

from taskauth.api.v1.router import api_router
from taskauth.auth.identity import IdentitySource
from taskauth.auth.maintenance import revocation_sweep_loop
from taskauth.config import get_settings
from taskauth.dependencies import AuthContainer
from taskauth.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager - owns the token components."""
    settings = get_settings()
    logger.info("Starting Task Manager Auth Service...")
    logger.info("Environment: %s", settings.environment)
    logger.info("Revocation backend: %s", settings.revocation_backend)

    identities = getattr(app.state, "identities", None)
    if identities is None:
        logger.warning("No identity source configured; token refresh is disabled")
    container = AuthContainer.from_settings(settings, identities=identities)
    try:
        # A missing/weak secret or unreachable Redis halts startup here
        container.verify()
    except Exception:
        logger.exception("Failed to initialise token components")
        container.close()
        raise
    app.state.auth = container

    sweeper: asyncio.Task | None = None
    if settings.revocation_backend == "memory":
        sweeper = asyncio.create_task(
            revocation_sweep_loop(
                container.revocations, settings.revocation_sweep_interval_seconds
            )
        )

    yield

    logger.info("Shutting down Task Manager Auth Service...")
    try:
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
    finally:
        container.close()
    logger.info("Shutdown complete.")


# ---------------------------------------------------------------------------
# Request ID middleware - pure ASGI (no BaseHTTPMiddleware overhead)
# ---------------------------------------------------------------------------


class RequestIDMiddleware:
    """Inject a unique request ID into every request/response cycle."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(b"x-request-id", b"").decode() or str(_uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                response_headers = list(message.get("headers", []))
                response_headers.append((b"x-request-id", request_id.encode()))
                message["headers"] = response_headers
            await send(message)

        # Scoped bind: restored on exit, so token log lines carry the request id
        with bound_contextvars(request_id=request_id):
            await self.app(scope, receive, send_with_request_id)


# Auth responses must never be cached by intermediaries
_SECURITY_HEADERS: list[tuple[bytes, bytes]] = [
    (b"x-content-type-options", b"nosniff"),
    (b"x-frame-options", b"DENY"),
    (b"cache-control", b"no-store"),
    (b"referrer-policy", b"no-referrer"),
]


class SecurityHeadersMiddleware:
    """Add standard security headers to every response."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_security_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                response_headers = list(message.get("headers", []))
                response_headers.extend(_SECURITY_HEADERS)
                if get_settings().is_production:
                    response_headers.append(
                        (b"strict-transport-security", b"max-age=63072000; includeSubDomains")
                    )
                message["headers"] = response_headers
            await send(message)

        await self.app(scope, receive, send_with_security_headers)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        # Let cancellation propagate - swallowing it breaks graceful shutdown
        if isinstance(exc, asyncio.CancelledError):
            raise
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )


def create_application(identities: IdentitySource | None = None) -> FastAPI:
    """Application factory.

    *identities* supplies current authorities for token refresh; without one
    every refresh is rejected.
    """
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Task Manager Auth Service API",
        description="JWT issuance, validation, refresh and revocation.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.identities = identities

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    _register_exception_handlers(app)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Liveness check - is the process running?"""
        return {
            "status": "healthy",
            "service": "taskmanager-auth",
            "version": "1.0.0",
        }

    return app


# Create the application instance
app = create_application()
