"""FastAPI server for the Unit Reservation Gateway.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from api.routes import health, reservations
from core import __version__
from core.config import GatewayConfig
from core.errors import (
    ConfigurationError,
    ConflictError,
    GatewayError,
    NotFoundError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from core.observability.logging import configure_logging, get_logger, with_correlation
from core.security.credentials import sanitize_config_value
from reservation import ReservationGateway

logger = get_logger(__name__)

ALLOWED_METHODS = "GET,POST,OPTIONS"


def http_status_for(error: GatewayError) -> int:
    """HTTP status code for a gateway error."""
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ConflictError):
        return 409
    if isinstance(error, (ConfigurationError, TransportError)):
        return 500
    if isinstance(error, UpstreamError):
        if error.status_code and error.status_code >= 400:
            return error.status_code
        # ERP said 2xx but the body was unusable; passing that 2xx through would report success
        return 502
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    gateway: ReservationGateway = app.state.gateway
    config: GatewayConfig = app.state.config

    configure_logging(level=config.logging_level, json_format=config.json_logs, force=True)
    logger.info("Unit Reservation Gateway starting up...", extra_fields=config.describe())
    if not gateway.is_configured:
        logger.error("ERP_BASE_URL is not configured; every gateway operation will be rejected")

    await gateway.start()

    yield

    logger.info("Unit Reservation Gateway shutting down...")
    await gateway.close()


def create_app(
    config: Optional[GatewayConfig] = None,
    gateway: Optional[ReservationGateway] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Gateway configuration (read from the environment when omitted)
        gateway: Pre-built gateway, e.g. one wired to a test connector

    Raises:
        ConfigurationError: Credentials unusable even after sanitization
    """
    if config is None:
        config = gateway.config if gateway is not None else GatewayConfig.from_env()
    if gateway is None:
        gateway = ReservationGateway(config)

    app = FastAPI(
        title="Unit Reservation Gateway",
        description="Reserve, release and mark-sold real-estate units against the ERP",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.config = config
    app.state.gateway = gateway

    cors_headers = {
        "Access-Control-Allow-Origin": config.allowed_origin,
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": config.allowed_headers,
    }

    # CORSMiddleware answers preflights with 200 and skips requests without an
    # Origin header; here every response carries the headers and OPTIONS is 204.
    @app.middleware("http")
    async def cors_and_correlation(request: Request, call_next):
        request_id = sanitize_config_value(request.headers.get("X-Request-ID")) or uuid4().hex

        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            with with_correlation(request_id=request_id):
                try:
                    response = await call_next(request)
                except Exception:
                    # Caught here, not in an exception handler, so the 500 gets the headers
                    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
                    response = JSONResponse(status_code=500, content={"error": "Gateway error"})

        response.headers.update(cors_headers)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        return JSONResponse(status_code=http_status_for(exc), content=exc.to_dict())

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(reservations.router, prefix="/reservation-gateway", tags=["Reservations"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
