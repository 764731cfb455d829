"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (outermost first):
    1. RequestIDMiddleware — injects X-Request-ID into every request/response
    2. CORSMiddleware — answers pre-flight OPTIONS, decorates every response
    3. ErrorHandlerMiddleware — domain exceptions -> {"error", "code"} JSON

Every domain failure is a 400 carrying the human-readable message; request
bodies that fail validation are reported the same way. Anything else is a
500 with a generic message (the details go to the log, not the client).
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from igaming_exchange.config import get_settings
from igaming_exchange.domain.exceptions import (
    DuplicateOperationError,
    InvalidStateTransitionError,
    MarketplaceError,
    NotFoundError,
    PaymentProviderError,
    PermissionDeniedError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)


def error_response(message: str, code: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "code": code})


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

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
        except NotFoundError as exc:
            logger.warning("record.not_found", error=exc.message, code=exc.code)
            return error_response(exc.message, exc.code)
        except PermissionDeniedError as exc:
            logger.warning("permission.denied", error=exc.message, path=request.url.path)
            return error_response(exc.message, exc.code)
        except InvalidStateTransitionError as exc:
            logger.warning(
                "state_machine.invalid_transition",
                entity=exc.entity,
                current=exc.current_state,
                attempted=exc.event,
            )
            return error_response(exc.message, exc.code)
        except DuplicateOperationError as exc:
            logger.warning("idempotency.duplicate", error=exc.message)
            return error_response(exc.message, exc.code)
        except PaymentProviderError as exc:
            logger.error(
                "payment.provider_error",
                error=exc.message,
                provider_code=exc.provider_code,
            )
            return error_response(exc.message, exc.code)
        except MarketplaceError as exc:
            logger.warning("domain.error", error=exc.message, code=exc.code)
            return error_response(exc.message, exc.code)
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return error_response("An unexpected error occurred", "INTERNAL_ERROR", 500)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed input is a precondition failure like any other: 400 with a message."""
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    logger.warning("request.invalid", path=request.url.path, error=message)
    return error_response(message, "VALIDATION_ERROR")


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI) -> None:
    """Register all middleware on the FastAPI application.

    Order matters — middleware is applied bottom-up, so the last added
    middleware runs first. Errors are handled inside CORS so that error
    responses carry CORS headers too.
    """
    settings = get_settings()

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Error handling (innermost)
    app.add_middleware(ErrorHandlerMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID (outermost)
    app.add_middleware(RequestIDMiddleware)
