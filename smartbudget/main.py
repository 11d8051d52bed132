"""Application entrypoint for the Smart Budget API.

This module wires together the FastAPI application with its lifespan hooks,
database metadata, Redis cleanup, logging, error translation, and CORS
configuration.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from sqlalchemy.exc import InterfaceError, OperationalError

from smartbudget.api import deps
from smartbudget.api.routes import auth_router, expenses_router, reminders_router, settlements_router
from smartbudget.core.config import settings
from smartbudget.core.exceptions import DependencyUnavailable
from smartbudget.core.logging_setup import configure_logging
from smartbudget.db import models  # noqa: F401
from smartbudget.db.base import Base
from smartbudget.db.session import engine
from smartbudget.services.otp import close_redis_client

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables on startup and dispose shared clients on shutdown.

    The token issuer is built here so a missing SECRET_KEY is reported at
    startup rather than on the first request.
    """

    deps.get_token_issuer()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("app.started", environment=settings.ENVIRONMENT)
    yield
    await close_redis_client()
    await engine.dispose()


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are plain 400s, matching the other input errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


async def dependency_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("app.dependency_unavailable", path=request.url.path, error=str(exc))
    unavailable = DependencyUnavailable()
    return JSONResponse(status_code=unavailable.status_code, content={"detail": unavailable.detail})


def create_application() -> FastAPI:
    """Assemble and configure the FastAPI application instance."""

    configure_logging(settings)

    application = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(RequestValidationError, validation_error_handler)
    for exc_class in (OperationalError, InterfaceError, RedisConnectionError, RedisTimeoutError):
        application.add_exception_handler(exc_class, dependency_unavailable_handler)

    application.include_router(auth_router)
    application.include_router(expenses_router)
    application.include_router(settlements_router)
    application.include_router(reminders_router)

    @application.get("/api/health")
    async def healthcheck():
        """Lightweight health endpoint used by uptime monitors."""
        return {"status": "ok", "message": "Server is running"}

    return application


app = create_application()
