import hmac
import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from policy_graph.api.routes.editor import router as editor_router
from policy_graph.api.routes.health import router as health_router
from policy_graph.core.config import AppEnvironment, settings
from policy_graph.core.errors import (
    PolicyGraphError,
    get_status_code,
)
from policy_graph.core.observability import (
    ObservabilityMiddleware,
    configure_structured_logging,
    extract_request_context,
    metrics_endpoint,
)

# Configure structured logging before creating logger
if settings.observability_structured_logs:
    configure_structured_logging(settings.app_log_level)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _sanitize_error_details(details: dict[str, Any]) -> dict[str, Any]:
    """
    Strip error details down in production.

    Graph and rule tree errors carry node ids and JSONPaths, which are
    safe to return; anything else is dropped outside local/test.
    """
    if settings.app_env != AppEnvironment.PROD:
        return details

    allowed = {"path", "node_id", "edge_id", "from", "to", "kind", "key", "operator", "errors"}
    return {key: value for key, value in details.items() if key in allowed}


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Sets up:
    - Structured logging with correlation IDs
    - Observability middleware (metrics, request tracking)
    - CORS middleware
    - Exception handlers for domain errors
    - API routers
    - Metrics endpoint for Prometheus scraping
    """
    app = FastAPI(
        title="Attendance Policy Graph API",
        description="Compile, import and validate attendance policy rule trees",
        version="0.1.0",
    )

    # ============================================================================
    # Observability Middleware
    # ============================================================================

    if settings.observability_enabled:
        app.add_middleware(
            ObservabilityMiddleware,
            request_id_header=settings.observability_request_id_header,
        )

    # ============================================================================
    # CORS Configuration
    # ============================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ============================================================================
    # Exception Handlers
    # ============================================================================

    @app.exception_handler(PolicyGraphError)
    async def policy_graph_error_handler(request: Request, exc: PolicyGraphError) -> JSONResponse:
        """
        Map domain errors to HTTP status codes with a structured body.

        Args:
            request: The incoming request
            exc: The domain exception raised

        Returns:
            JSON response with error details
        """
        status_code = get_status_code(exc)

        context = {
            "details": exc.details,
            **extract_request_context(request),
        }

        if status_code >= 500:
            logger.error(f"{exc.__class__.__name__}: {exc.message}", extra=context)
        else:
            logger.warning(f"{exc.__class__.__name__}: {exc.message}", extra=context)

        return JSONResponse(
            status_code=status_code,
            content={
                "error": exc.__class__.__name__,
                "message": exc.message,
                "details": _sanitize_error_details(exc.details),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Consistent error body for HTTP exceptions."""
        if exc.status_code >= 500:
            logger.error(
                f"HTTP {exc.status_code}: {exc.detail}",
                extra={"method": request.method, **extract_request_context(request)},
            )

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "HTTPException",
                "message": exc.detail,
                "details": {},
            },
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Catch-all handler for unexpected exceptions.

        Logs the full exception and returns a generic 500 error to the client
        without exposing internal implementation details.
        """
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra=extract_request_context(request),
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "InternalServerError",
                "message": "An unexpected error occurred",
                "details": {},
            },
        )

    # ============================================================================
    # Router Registration
    # ============================================================================

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(editor_router, prefix=API_PREFIX)

    # ============================================================================
    # Metrics Endpoint (Prometheus)
    # ============================================================================

    async def protected_metrics(request: Request) -> Response:
        """
        Prometheus metrics endpoint.

        When METRICS_TOKEN is configured the X-Metrics-Token header must match it.
        """
        expected_token = settings.metrics_token
        if expected_token:
            metrics_token = request.headers.get("X-Metrics-Token")
            if not hmac.compare_digest(metrics_token or "", expected_token):
                logger.warning(
                    "Unauthorized metrics access attempt",
                    extra={
                        "security_event": True,
                        "event_type": "METRICS_ACCESS_DENIED",
                        "client_ip": request.client.host if request.client else "unknown",
                    },
                )
                return JSONResponse(
                    status_code=status.HTTP_403_FORBIDDEN,
                    content={
                        "error": "HTTPException",
                        "message": "Invalid metrics token",
                        "details": {},
                    },
                )

        return metrics_endpoint()

    if settings.observability_enabled:
        app.add_route("/metrics", protected_metrics)

    return app


app = create_app()
