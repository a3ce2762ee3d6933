"""
Error Taxonomy and Global Error Handling

This module defines the application exception hierarchy and the FastAPI
exception handlers that turn it into HTTP responses.

Design Goals
------------
- One exception class per failure kind, each carrying its HTTP status
- Retry decisions made by an explicit predicate, not by catch blocks
- Never leak internal exception details to clients
- Log full stack traces internally for debugging
"""

from __future__ import annotations

import logging
from typing import Dict, Any, Optional

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("support.errors")


# ---------------------------------------------------------------------
# Exception Hierarchy
# ---------------------------------------------------------------------

class SupportBotError(Exception):
    """Base class for all expected application errors."""

    status_code: int = 500
    error_code: str = "application_error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigurationError(SupportBotError):
    """A required setting is missing or invalid. Fatal at startup."""

    status_code = 500
    error_code = "configuration_error"


class ExternalServiceError(SupportBotError):
    """Any failure reported by the content service, vector store or LLM."""

    status_code = 502
    error_code = "external_service_error"

    def __init__(
        self,
        service: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        upstream_status: Optional[int] = None,
    ) -> None:
        super().__init__(f"{service} error: {message}", context)
        self.service = service
        self.upstream_status = upstream_status


class RateLimitError(ExternalServiceError):
    """The external service answered with an explicit 429."""

    status_code = 429
    error_code = "rate_limited"

    def __init__(
        self,
        service: str,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(service, message, upstream_status=429)
        self.retry_after = retry_after


class ScrapeError(ExternalServiceError):
    """Terminal ingestion failure raised once the retry budget is spent."""

    error_code = "scrape_failed"

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            "scraper",
            f"failed after {attempts} attempt(s): {last_error}",
            context={"attempts": attempts},
        )
        self.attempts = attempts
        self.last_error = last_error


class DataValidationError(SupportBotError):
    """Malformed or incomplete record. Never retried."""

    status_code = 422
    error_code = "data_validation_error"


class IndexNotFoundError(SupportBotError):
    """The referenced index or namespace does not exist."""

    status_code = 404
    error_code = "index_not_found"

    def __init__(self, index_name: str, namespace: Optional[str] = None) -> None:
        where = f"{index_name}/{namespace}" if namespace else index_name
        super().__init__(
            f"Index not found: {where}",
            context={"index_name": index_name, "namespace": namespace},
        )
        self.index_name = index_name
        self.namespace = namespace


class SnapshotNotFoundError(SupportBotError):
    """No snapshot file matched the request."""

    status_code = 404
    error_code = "snapshot_not_found"


class SnapshotPersistenceError(SupportBotError):
    """Writing or reading a snapshot file failed."""

    status_code = 500
    error_code = "snapshot_persistence_error"


# ---------------------------------------------------------------------
# Retry Classification
# ---------------------------------------------------------------------

def is_retryable(exc: BaseException) -> bool:
    """
    Return True when `exc` is worth another attempt.

    External service failures (including rate limiting) are retryable.
    Configuration, validation, persistence and missing-index errors are not.
    """
    if isinstance(exc, (ConfigurationError, DataValidationError, IndexNotFoundError,
                        SnapshotPersistenceError, SnapshotNotFoundError)):
        return False
    if isinstance(exc, ExternalServiceError):
        upstream = exc.upstream_status
        # Client errors other than 408/429 will fail the same way again
        if upstream is not None and 400 <= upstream < 500 and upstream not in (408, 429):
            return False
        return True
    return False


def raise_for_service_status(response: httpx.Response, service: str) -> None:
    """
    Translate an HTTP error response from an external service into the
    matching exception. Successful responses pass through silently.
    """
    if response.status_code < 400:
        return

    if response.status_code == 429:
        retry_after = response.headers.get("retry-after")
        try:
            delay = float(retry_after) if retry_after else None
        except ValueError:
            delay = None
        raise RateLimitError(service, retry_after=delay)

    raise ExternalServiceError(
        service,
        f"HTTP {response.status_code}: {response.text[:200]}",
        upstream_status=response.status_code,
    )


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def support_error_handler(
    request: Request,
    exc: SupportBotError,
) -> JSONResponse:
    """
    Render an expected application error with its own status code.

    The message is safe to return: every SupportBotError is raised with a
    caller-facing description.
    """
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "%s during %s %s: %s",
        exc.error_code,
        request.method,
        request.url.path,
        exc.message,
    )

    payload: Dict[str, Any] = {
        "error": exc.error_code,
        "detail": exc.message,
    }

    return JSONResponse(status_code=exc.status_code, content=payload)


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Logs the full traceback and returns a generic 500 with no internal
    details.
    """
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    payload: Dict[str, Any] = {
        "error": "internal_server_error",
        "detail": "Internal server error",
    }

    return JSONResponse(
        status_code=500,
        content=payload,
    )
