from __future__ import annotations

"""client/apunto/services/diagnostics/error_classifier.py

Centralized error classification for analysis requests.

This module maps any failure raised while talking to the analysis backend
(network exceptions, HTTP statuses, deadlines) onto a closed set of
categories. Each category is a dedicated AnalysisError subclass, so callers
can `except` on the type or switch on `error.category`.

The classification is:
- deterministic (no randomness, no I/O)
- total (never raises; the fallback is UNKNOWN_ERROR)
- text-based for raw exceptions (pattern matching against known messages)

Category codes:
- NO_INTERNET
- TIMEOUT
- API_UNREACHABLE
- ERROR_SERVER (optional detail)
- SERVICE_UNAVAILABLE
- SERVER_MESSAGE (server-provided message passed through verbatim)
- VALIDATION
- ENCODE_FAILED
- UNKNOWN_ERROR
"""

import asyncio
import enum
import socket
from typing import Any, Optional

import requests


class ErrorCategory(str, enum.Enum):
    NO_INTERNET = "NO_INTERNET"
    TIMEOUT = "TIMEOUT"
    API_UNREACHABLE = "API_UNREACHABLE"
    ERROR_SERVER = "ERROR_SERVER"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    SERVER_MESSAGE = "SERVER_MESSAGE"
    VALIDATION = "VALIDATION"
    ENCODE_FAILED = "ENCODE_FAILED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


RETRYABLE_CATEGORIES = frozenset(
    {
        ErrorCategory.NO_INTERNET,
        ErrorCategory.TIMEOUT,
        ErrorCategory.API_UNREACHABLE,
        ErrorCategory.ERROR_SERVER,
        ErrorCategory.SERVICE_UNAVAILABLE,
    }
)


class AnalysisError(Exception):
    """Base class of every failure surfaced by the analysis flow."""

    category: ErrorCategory = ErrorCategory.UNKNOWN_ERROR

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or None
        super().__init__(self.code)

    @property
    def code(self) -> str:
        """Stable string form, e.g. ``"ERROR_SERVER:db down"``."""
        if self.detail and self.category is ErrorCategory.ERROR_SERVER:
            return f"{self.category.value}:{self.detail}"
        return self.category.value

    @property
    def retryable(self) -> bool:
        return self.category in RETRYABLE_CATEGORIES


class NoInternetError(AnalysisError):
    category = ErrorCategory.NO_INTERNET


class RequestTimeoutError(AnalysisError):
    category = ErrorCategory.TIMEOUT


class ProcessingTimeoutError(RequestTimeoutError):
    """The caller-side safety deadline expired before the client returned."""


class ApiUnreachableError(AnalysisError):
    category = ErrorCategory.API_UNREACHABLE


class ServerError(AnalysisError):
    category = ErrorCategory.ERROR_SERVER


class ServiceUnavailableError(AnalysisError):
    category = ErrorCategory.SERVICE_UNAVAILABLE


class ServerMessageError(AnalysisError):
    """Non-success status whose server message is shown as-is."""

    category = ErrorCategory.SERVER_MESSAGE

    def __init__(self, message: str):
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.detail or self.category.value


class InvalidInputError(AnalysisError):
    category = ErrorCategory.VALIDATION


class ImageEncodeError(AnalysisError):
    category = ErrorCategory.ENCODE_FAILED


class UnknownAnalysisError(AnalysisError):
    category = ErrorCategory.UNKNOWN_ERROR


NETWORK_FAILURE_MARKERS = [
    "network request failed",
    "failed to fetch",
    "networkerror",
    "network is unreachable",
]

TIMEOUT_MARKERS = ["timeout", "timed out"]

UNREACHABLE_MARKERS = [
    "econnrefused",
    "connection refused",
    "enotfound",
    "getaddrinfo",
    "name or service not known",
    "failed to resolve",
    "temporary failure in name resolution",
]

TIMEOUT_TYPES = (TimeoutError, asyncio.TimeoutError, requests.exceptions.Timeout)
UNREACHABLE_TYPES = (ConnectionRefusedError, socket.gaierror)


def _message(exc: BaseException) -> str:
    try:
        return str(exc).strip()
    except Exception:  # noqa: BLE001
        return ""


def _contains_any(haystack: str, needles: list[str]) -> bool:
    return any(n in haystack for n in needles)


def _body_message(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    for key in ("message", "error"):
        value = body.get(key)
        if value:
            return str(value)
    return None


def classify_http_status(status_code: int, body: Any = None) -> Optional[AnalysisError]:
    """Classify an HTTP response status.

    Returns None for 2xx. ``body`` is the decoded JSON error body, if any;
    the server detail is read from its ``message`` or ``error`` field.
    """
    if 200 <= status_code < 300:
        return None

    detail = _body_message(body)
    if status_code == 500:
        return ServerError(detail)
    if status_code == 503:
        return ServiceUnavailableError(detail)
    return ServerMessageError(detail or f"Error {status_code}")


def classify_failure(exc: BaseException) -> AnalysisError:
    """Classify a raised failure into an AnalysisError.

    Already-classified errors pass through unchanged. This function never
    raises; at minimum it returns an UnknownAnalysisError.
    """
    if isinstance(exc, AnalysisError):
        return exc

    message = _message(exc)
    lowered = message.lower()

    # 1) Explicit marker raised by an earlier precheck
    if message == ErrorCategory.NO_INTERNET.value:
        return NoInternetError()

    # 2) Network-layer failures that mean "no connectivity"
    if isinstance(exc, OSError) and _contains_any(lowered, NETWORK_FAILURE_MARKERS):
        return NoInternetError(message)

    # 3) Timeouts
    if isinstance(exc, TIMEOUT_TYPES) or _contains_any(lowered, TIMEOUT_MARKERS):
        return RequestTimeoutError(message)

    # 4) Connection refused / DNS resolution failures
    if isinstance(exc, UNREACHABLE_TYPES) or _contains_any(lowered, UNREACHABLE_MARKERS):
        return ApiUnreachableError(message)

    # 5) Fallback
    return UnknownAnalysisError(message or type(exc).__name__)
