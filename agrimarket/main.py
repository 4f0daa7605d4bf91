"""Order service main application module.

This module initializes the FastAPI application and configures
logging, middleware, routers, exception handlers and startup/shutdown
events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agrimarket.api.health import router as health_router
from agrimarket.api.idempotency import setup_idempotency_middleware
from agrimarket.api.middleware import setup_middleware
from agrimarket.api.notifications import router as notifications_router
from agrimarket.api.orders import router as orders_router
from agrimarket.api.payments import router as payments_router
from agrimarket.domain.exceptions import DomainError, ValidationError
from agrimarket.infrastructure.config import settings
from agrimarket.infrastructure.database import dispose_engine, init_models
from agrimarket.infrastructure.logging import configure_logging

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    logger.info(
        "Starting order service",
        version=settings.api_version,
        debug=settings.debug,
        order_store_backend=settings.order_store_backend,
    )

    if settings.order_store_backend == "database":
        await init_models()
        logger.info("Database schema ready")

    yield

    logger.info("Shutting down order service")
    if settings.order_store_backend == "database":
        await dispose_engine()


app = FastAPI(
    title="Agrimarket Orders API",
    description="Order fulfilment core of the agricultural marketplace",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup idempotency middleware (runs after authentication)
setup_idempotency_middleware(app)

# Setup custom middleware (request ID, API key auth, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(orders_router)
app.include_router(payments_router)
app.include_router(notifications_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


DOMAIN_ERROR_STATUS: dict[str, int] = {
    "ORDER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_TRANSITION": status.HTTP_409_CONFLICT,
    "PAYMENT_NOT_SETTLED": status.HTTP_409_CONFLICT,
    "CONCURRENT_MODIFICATION": status.HTTP_409_CONFLICT,
    "ORDER_NOT_EDITABLE": status.HTTP_409_CONFLICT,
    "VALIDATION_ERROR": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "MISSING_TRACKING_INFO": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "MONEY_ERROR": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
}


def _error_body(request: Request, error_code: str, message: str, details) -> dict:
    return {
        "error_code": error_code,
        "message": message,
        "details": details,
        "request_id": getattr(request.state, "request_id", None),
    }


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map business errors to status codes with the standard envelope."""
    status_code = DOMAIN_ERROR_STATUS.get(exc.error_code, status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, ValidationError):
        details = [{"field": exc.field, "message": exc.reason}]
    else:
        details = [{"field": key, "message": str(value)} for key, value in exc.details.items()]
    return JSONResponse(
        status_code=status_code,
        content=_error_body(request, exc.error_code, exc.message, details),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", [])
    else:
        error_code = "ERROR"
        message = str(detail)
        details = []

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, error_code, message, details),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures in the standard envelope."""
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(request, "VALIDATION_ERROR", "Request validation failed", details),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "INTERNAL_ERROR", "An internal error occurred", []),
    )
