"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestIDMiddleware — injects X-Request-ID into every request/response
    2. ErrorHandlerMiddleware — catches domain exceptions -> structured JSON errors
    3. CORSMiddleware — handles browser clients of the marketplace front-end

Every error body has the same shape: {"error", "message", "retryable"}.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from realty_escrow.domain.exceptions import (
    AlreadySignedError,
    ConcurrencyConflict,
    ContractNotFoundError,
    DuplicateOperationError,
    InvalidTransitionError,
    InvoiceNotFoundError,
    MarketplaceError,
    MoneySafetyError,
    NotAPartyError,
    NotBeneficiaryError,
    PaymentNotFoundError,
    ProviderRejectedError,
    ProviderTimeoutError,
    RetractionWindowClosedError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)

# First match wins; anything else derived from MarketplaceError is a 422.
_STATUS_BY_ERROR: tuple[tuple[type[MarketplaceError], int], ...] = (
    (ContractNotFoundError, 404),
    (PaymentNotFoundError, 404),
    (InvoiceNotFoundError, 404),
    (NotAPartyError, 403),
    (NotBeneficiaryError, 403),
    (InvalidTransitionError, 409),
    (AlreadySignedError, 409),
    (RetractionWindowClosedError, 409),
    (ConcurrencyConflict, 409),
    (DuplicateOperationError, 409),
    (ProviderRejectedError, 502),
    (ProviderTimeoutError, 504),
)


def status_for(exc: MarketplaceError) -> int:
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status_code
    return 422


def _error_body(exc: MarketplaceError) -> dict:
    return {"error": exc.code, "message": exc.message, "retryable": exc.retryable}


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        # Bind to structlog context for all log entries in this request
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 2. Error Handler Middleware
# ---------------------------------------------------------------------------
class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch domain exceptions and return structured JSON error responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except MoneySafetyError as exc:
            logger.error(
                "money_safety.violation",
                code=exc.code,
                error=exc.message,
                path=request.url.path,
            )
            return JSONResponse(status_code=500, content=_error_body(exc))
        except MarketplaceError as exc:
            status_code = status_for(exc)
            logger.warning(
                "domain.error",
                code=exc.code,
                error=exc.message,
                status_code=status_code,
            )
            return JSONResponse(status_code=status_code, content=_error_body(exc))
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return JSONResponse(
                status_code=500,
                content={
                    "error": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "retryable": False,
                },
            )


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI) -> None:
    """Register all middleware on the FastAPI application.

    Order matters — middleware is applied bottom-up, so the last added
    middleware runs first.
    """
    # CORS (runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Tighten in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handling (runs second)
    app.add_middleware(ErrorHandlerMiddleware)

    # Request ID (runs last = outermost)
    app.add_middleware(RequestIDMiddleware)
