"""FastAPI application factory"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from cardledger.api.dependencies import get_request_id
from cardledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from cardledger.api.v1 import accounts, invoices, transactions
from cardledger.domain.exceptions import (
    AlreadyPaidError,
    DomainException,
    InsufficientCreditError,
    InsufficientFundsError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from cardledger.infrastructure.observability.logging import setup_logging
from cardledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)

ERROR_STATUS = {
    NotFoundError: 404,
    UnauthorizedError: 403,
    InvalidInputError: 422,
    InsufficientFundsError: 409,
    InsufficientCreditError: 409,
    AlreadyPaidError: 409,
    InvalidStateError: 409,
}


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Translate a refused ledger operation into its HTTP status"""
    status_code = ERROR_STATUS.get(type(exc), 400)
    logging.info(
        f"Request refused: {exc}",
        extra={"request_id": get_request_id(request), "status": status_code},
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error": type(exc).__name__})


async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logging.error(f"Unexpected error: {exc}", extra={"request_id": get_request_id(request)})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="CardLedger",
        description="Bank account, credit card and invoice ledger service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(Exception, unexpected_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(invoices.router, prefix="/v1", tags=["invoices"])

    return app


app = create_app()
