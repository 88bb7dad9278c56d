#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Custom exception classes and error handling utilities for tubecache.

Every error raised by the cache, pagination and service layers derives from
AppBaseError so callers can catch one type and still map it onto an HTTP
response when a web layer sits in front of the service.
"""

from typing import Optional
from fastapi import HTTPException, status


# --- Base Exception Classes ---

class AppBaseError(Exception):
    """Root of the tubecache error hierarchy.

    Attributes:
        message: Text shown to the caller.
        error_code: Stable identifier such as "NOT_FOUND".
        http_status_code: Status a web layer should answer with.
        retry_after: Seconds a client should wait before trying again, if known.
    """

    def __init__(self, message: str, error_code: Optional[str] = None,
                 http_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
                 retry_after: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code if error_code else type(self).__name__.upper()
        self.http_status_code = http_status_code
        self.retry_after = retry_after

    def to_http_exception(self) -> HTTPException:
        """Build the FastAPI HTTPException a route handler would raise for this error."""
        headers = {"X-Error-Code": self.error_code}
        if self.retry_after:
            headers["Retry-After"] = str(self.retry_after)
        return HTTPException(status_code=self.http_status_code, detail=self.message, headers=headers)


class TransientError(AppBaseError):
    """A failure that may succeed if the call is repeated later."""


class CriticalError(AppBaseError):
    """A failure of configuration or of a backend the service depends on."""


# --- Upstream API Exceptions ---

class UpstreamTransportError(TransientError):
    """Raised when a request to the YouTube API fails at the network or HTTP level."""

    def __init__(self, message: str = "YouTube API request failed",
                 upstream_status: Optional[int] = None):
        self.upstream_status = upstream_status
        super().__init__(
            message=message,
            error_code="UPSTREAM_TRANSPORT_ERROR",
            http_status_code=status.HTTP_502_BAD_GATEWAY
        )


class UpstreamDecodeError(AppBaseError):
    """Raised when a YouTube API response is not valid JSON or has an unexpected shape."""

    def __init__(self, message: str = "Could not decode YouTube API response"):
        super().__init__(
            message=message,
            error_code="UPSTREAM_DECODE_ERROR",
            http_status_code=status.HTTP_502_BAD_GATEWAY
        )


class NotFoundError(AppBaseError):
    """Raised when a channel or its uploads playlist cannot be found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            http_status_code=status.HTTP_404_NOT_FOUND
        )


class DataIntegrityError(AppBaseError):
    """Raised when a numeric statistics field returned upstream cannot be parsed.

    Filtering treats one malformed value as fatal for the whole call.
    """

    def __init__(self, message: str = "Malformed numeric field in upstream data"):
        super().__init__(
            message=message,
            error_code="DATA_INTEGRITY_ERROR",
            http_status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )


class InvalidInputError(AppBaseError):
    """Raised when the caller input cannot form a query."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(
            message=message,
            error_code="INVALID_INPUT",
            http_status_code=status.HTTP_400_BAD_REQUEST
        )


# --- Configuration / Backend Exceptions ---

class APIConfigurationError(CriticalError):
    """Raised when the YouTube API client is missing its key or cannot be built."""

    def __init__(self, message: str = "API configuration error"):
        super().__init__(
            message=message,
            error_code="API_CONFIG_ERROR",
            http_status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class CacheBackendError(CriticalError):
    """Raised when the remote cache backend cannot be read or written."""

    def __init__(self, message: str = "Cache backend unavailable"):
        super().__init__(
            message=message,
            error_code="CACHE_BACKEND_ERROR",
            http_status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            retry_after=30
        )


# --- Error Handling Utilities ---

def handle_exception(exception: Exception) -> HTTPException:
    """Map an exception raised by the service onto an HTTPException.

    Application errors keep their own status and headers, a bare ValueError
    counts as invalid input, an HTTPException passes through, and anything
    else becomes a 500 that names only the exception type.
    """
    if isinstance(exception, AppBaseError):
        return exception.to_http_exception()
    if isinstance(exception, ValueError):
        return InvalidInputError(str(exception)).to_http_exception()
    if isinstance(exception, HTTPException):
        return exception
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Internal server error: {type(exception).__name__}",
        headers={"X-Error-Code": "INTERNAL_SERVER_ERROR"}
    )
