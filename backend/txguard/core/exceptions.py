"""Custom exceptions and exception handling middleware."""

from __future__ import annotations

import traceback
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from .logging import get_logger

logger = get_logger(__name__)


class TxGuardException(Exception):
    """Base exception for TxGuard Security Insights."""

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None,
        trace_id: Optional[str] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.trace_id = trace_id or str(uuid.uuid4())
        super().__init__(self.message)


class ConfigurationError(TxGuardException):
    """Raised when there's a configuration issue."""

    pass


class ChainUnresolvedError(TxGuardException):
    """Raised when the wallet cannot report the current chain identifier."""

    def __init__(self, chain_id: Any, **kwargs: Any):
        self.chain_id = chain_id
        super().__init__(
            f"ChainId could not be retrieved ({chain_id})",
            error_code="CHAIN_UNRESOLVED",
            details={"chain_id": repr(chain_id)},
            **kwargs
        )


class ChainStateError(TxGuardException):
    """Raised when a chain state lookup (bytecode, accounts) fails."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs.setdefault("error_code", "CHAIN_STATE_ERROR")
        super().__init__(message, **kwargs)


class SourceUnavailableError(TxGuardException):
    """
    Raised when a risk source query fails, times out or returns a shape
    that cannot be normalized into a verdict.
    """

    def __init__(self, source: str, reason: str, **kwargs: Any):
        self.source = source
        self.reason = reason
        details = kwargs.pop("details", None) or {}
        details.setdefault("source", source)
        details.setdefault("reason", reason)
        super().__init__(
            f"Risk source {source} unavailable: {reason}",
            error_code="SOURCE_UNAVAILABLE",
            details=details,
            **kwargs
        )


class ReviewSupersededError(TxGuardException):
    """Raised to the caller of a review that was replaced by a newer one."""

    def __init__(self, session_id: str, reason: str = "superseded", **kwargs: Any):
        self.session_id = session_id
        self.reason = reason
        super().__init__(
            f"Review for session {session_id} was {reason}",
            error_code="REVIEW_SUPERSEDED",
            details={"session_id": session_id, "reason": reason},
            **kwargs
        )


async def exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler that creates structured error responses.

    Args:
        request: FastAPI request object
        exc: Exception that was raised

    Returns:
        JSON response with error details and trace ID
    """
    trace_id = str(uuid.uuid4())

    method = request.method
    url = str(request.url)
    client_ip = request.client.host if request.client else "unknown"

    if isinstance(exc, TxGuardException):
        if isinstance(exc, ReviewSupersededError):
            status_code = status.HTTP_409_CONFLICT
        elif isinstance(exc, (SourceUnavailableError, ChainStateError)):
            status_code = status.HTTP_502_BAD_GATEWAY
        else:
            status_code = status.HTTP_400_BAD_REQUEST
        error_response = {
            "error": True,
            "error_code": exc.error_code,
            "message": exc.message,
            "trace_id": exc.trace_id,
            "details": exc.details
        }

        logger.error(
            f"Application error: {exc.message}",
            extra={
                'trace_id': exc.trace_id,
                'extra_data': {
                    'error_code': exc.error_code,
                    'method': method,
                    'url': url,
                    'client_ip': client_ip,
                    'details': exc.details
                }
            }
        )

    elif isinstance(exc, HTTPException):
        status_code = exc.status_code
        error_response = {
            "error": True,
            "error_code": "HTTP_ERROR",
            "message": exc.detail,
            "trace_id": trace_id
        }

        logger.warning(
            f"HTTP error {exc.status_code}: {exc.detail}",
            extra={
                'trace_id': trace_id,
                'extra_data': {
                    'status_code': exc.status_code,
                    'method': method,
                    'url': url,
                    'client_ip': client_ip
                }
            }
        )

    elif isinstance(exc, ValueError):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        error_response = {
            "error": True,
            "error_code": "VALIDATION_ERROR",
            "message": str(exc),
            "trace_id": trace_id
        }

        logger.warning(
            f"Validation error: {str(exc)}",
            extra={
                'trace_id': trace_id,
                'extra_data': {
                    'method': method,
                    'url': url,
                    'client_ip': client_ip
                }
            }
        )

    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        error_response = {
            "error": True,
            "error_code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
            "trace_id": trace_id
        }

        logger.error(
            f"Unexpected error: {str(exc)}",
            extra={
                'trace_id': trace_id,
                'extra_data': {
                    'exception_type': type(exc).__name__,
                    'traceback': traceback.format_exc(),
                    'method': method,
                    'url': url,
                    'client_ip': client_ip
                }
            }
        )

    return JSONResponse(
        status_code=status_code,
        content=error_response
    )

