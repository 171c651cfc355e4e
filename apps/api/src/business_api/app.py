from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from business_api.core.errors import ServiceConfigurationError, UserServiceError
from business_api.core.settings import settings
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing


APP_VERSION = "0.1.0"
SERVICE_NAME = "business-service"


@asynccontextmanager
async def lifespan(app: FastAPI):
    http_client = httpx.AsyncClient(timeout=settings.user_service_timeout_seconds)
    app.state.http_client = http_client
    app.state.token_service = None
    logger.info(
        "Business service starting",
        user_service_url=settings.user_service_url,
        customer_count_source=settings.analytics_customer_count_source,
    )
    try:
        yield
    finally:
        await http_client.aclose()
        logger.info("Business service stopped")


async def _configuration_error_handler(request: Request, exc: ServiceConfigurationError) -> JSONResponse:
    logger.opt(exception=exc).error("Service misconfigured", component=exc.component, missing=exc.missing)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Service is not configured to handle this request"},
    )


async def _user_service_error_handler(request: Request, exc: UserServiceError) -> JSONResponse:
    logger.opt(exception=exc).error(
        "User service call failed",
        path=request.url.path,
        upstream_status=exc.status_code,
    )
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": "User service unavailable"})


def create_app() -> FastAPI:
    """Application factory for the loyalty business service."""
    configure_logging(
        service_name=SERVICE_NAME,
        environment=settings.environment,
        version=APP_VERSION,
        level=settings.log_level,
    )

    app = FastAPI(
        title="Business Service API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials="*" not in settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    configure_tracing(
        app,
        service_name=SERVICE_NAME,
        service_version=APP_VERSION,
        environment=settings.environment,
        enabled=settings.tracing_enabled,
    )

    app.add_exception_handler(ServiceConfigurationError, _configuration_error_handler)
    app.add_exception_handler(UserServiceError, _user_service_error_handler)
    app.include_router(api_router)

    return app
