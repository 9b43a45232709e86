"""FastAPI application entry point."""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from wallet_ledger import __version__
from wallet_ledger.api import admin, announcements, tournaments, wallet
from wallet_ledger.config import get_settings
from wallet_ledger.logging_config import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from wallet_ledger.utils.db import close_db, init_db
from wallet_ledger.utils.errors import ErrorCode, LedgerError

settings = get_settings()
configure_logging(log_level=settings.log_level, app_env=settings.app_env)
logger = get_logger(__name__)

API_V1_PREFIX = "/api/v1"

ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_NAME: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_AMOUNT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VOUCHER_MISMATCH: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INSUFFICIENT_FUNDS: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NEGATIVE_BALANCE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.ACCOUNT_INACTIVE: status.HTTP_403_FORBIDDEN,
    ErrorCode.ACCOUNT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TOURNAMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PARTICIPATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ALREADY_JOINED: status.HTTP_409_CONFLICT,
    ErrorCode.TOURNAMENT_FULL: status.HTTP_409_CONFLICT,
    ErrorCode.TOURNAMENT_CLOSED: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_STATUS_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.CAPACITY_BELOW_OCCUPANCY: status.HTTP_409_CONFLICT,
    ErrorCode.VERSION_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.IDEMPOTENCY_KEY_REUSED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.TRY_AGAIN: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.OUTCOME_UNKNOWN: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorCode.ACTION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# =============================================================================
# Lifespan Events
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Starting application...", version=__version__, env=settings.app_env)
    await init_db()
    logger.info("Database connection established")

    yield

    logger.info("Shutting down application...")
    await close_db()


app = FastAPI(
    title="Tournament Wallet Ledger",
    description="Balances, tournament entry and audited admin adjustments",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# Middleware
# =============================================================================


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to add X-Request-ID header to all requests and responses."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = datetime.now(timezone.utc)

        clear_context()
        bind_context(trace_id=request_id)
        try:
            response = await call_next(request)
        finally:
            clear_context()

        response.headers["X-Request-ID"] = request_id
        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=round(duration, 3),
            request_id=request_id,
        )
        return response


app.add_middleware(RequestIDMiddleware)


# =============================================================================
# Error Handlers
# =============================================================================


def get_request_id(request: Request) -> str:
    """Get request ID from request state or headers."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return request.headers.get("X-Request-ID", str(uuid.uuid4()))


def create_error_response(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    recoverable: bool = False,
    trace_id: str | None = None,
) -> dict[str, Any]:
    """Create standardized error response."""
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
            "recoverable": recoverable,
        },
        "traceId": trace_id,
    }


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Render a domain error with its stable code."""
    trace_id = get_request_id(request)
    status_code = ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST)

    log = logger.error if status_code >= 500 else logger.info
    log("ledger_error", code=exc.code.value, message=exc.message, trace_id=trace_id)

    body = exc.to_dict()
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(
            code=body["code"],
            message=body["message"],
            details=body["details"],
            recoverable=body["recoverable"],
            trace_id=trace_id,
        ),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request body/query validation errors."""
    trace_id = get_request_id(request)
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=create_error_response(
            code=ErrorCode.INVALID_REQUEST.value,
            message="Request validation failed",
            details={"errors": errors},
            trace_id=trace_id,
        ),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    trace_id = get_request_id(request)

    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = dict(exc.detail)
        content["traceId"] = trace_id
    else:
        content = create_error_response(
            code="HTTP_ERROR",
            message=str(exc.detail),
            trace_id=trace_id,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking driver messages."""
    trace_id = get_request_id(request)
    logger.error(
        "unexpected_error",
        error_type=type(exc).__name__,
        trace_id=trace_id,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=create_error_response(
            code=ErrorCode.ACTION_FAILED.value,
            message="Action failed, no changes made",
            trace_id=trace_id,
        ),
    )


# =============================================================================
# Routers
# =============================================================================


@app.get("/health", tags=["Health"])
async def health() -> dict[str, str]:
    return {"status": "ok", "version": __version__}


app.include_router(tournaments.router, prefix=API_V1_PREFIX)
app.include_router(wallet.router, prefix=API_V1_PREFIX)
app.include_router(announcements.router, prefix=API_V1_PREFIX)
app.include_router(admin.router, prefix=API_V1_PREFIX)
