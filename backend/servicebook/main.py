# backend/servicebook/main.py
"""
ASGI entry point for the servicebook booking engine.

Mounts the availability and appointment routers under ``settings.api_prefix``.
Authentication is handled upstream; this app trusts the ids it is given.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Awaitable, Callable
import uuid

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.constants import BRAND_NAME
from .core.exceptions import DomainException
from .core.request_context import configure_logging, reset_request_id, set_request_id
from .database import init_db
from .routes import appointments, availability, prometheus

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info("%s API starting up (environment: %s)", BRAND_NAME, settings.environment)
    if settings.is_sqlite and settings.environment != "production":
        # Local SQLite databases are created on first start; other databases
        # are provisioned out of band.
        init_db()
    yield
    logger.info("%s API shutting down", BRAND_NAME)


async def request_id_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    token = set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        reset_request_id(token)
    response.headers["X-Request-ID"] = request_id
    return response


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Last-resort conversion for domain errors not handled in a route."""
    http_exc = exc.to_http_exception()
    return JSONResponse(
        status_code=http_exc.status_code,
        content={"detail": http_exc.detail},
        headers=http_exc.headers,
    )


def create_app() -> FastAPI:
    configure_logging(settings.log_level)

    app = FastAPI(
        title=f"{BRAND_NAME} API",
        description="Recurring weekly availability and booking conflict engine",
        version="1.0.0",
        lifespan=app_lifespan,
    )
    app.middleware("http")(request_id_middleware)
    app.add_exception_handler(DomainException, domain_exception_handler)  # type: ignore[arg-type]

    api_v1 = APIRouter(prefix=settings.api_prefix)
    api_v1.include_router(availability.router)
    api_v1.include_router(appointments.router)
    app.include_router(api_v1)
    app.include_router(prometheus.router)

    @app.get("/health", include_in_schema=False)
    def health() -> dict:
        return {"status": "healthy", "service": settings.app_name}

    return app


app = create_app()
