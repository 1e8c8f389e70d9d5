"""Typed API failures and classification of transport outcomes."""

import asyncio
import json
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Mapping, Optional

import httpx


class ApiErrorKind(str, Enum):
    """Closed set of failure kinds for remote analysis calls."""

    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    AUTH = "AUTH"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    SERVER = "SERVER"
    UNKNOWN = "UNKNOWN"


TRANSIENT_KINDS: frozenset[ApiErrorKind] = frozenset({
    ApiErrorKind.NETWORK,
    ApiErrorKind.TIMEOUT,
    ApiErrorKind.RATE_LIMITED,
    ApiErrorKind.SERVER,
})

CONFIGURATION_KINDS: frozenset[ApiErrorKind] = frozenset({
    ApiErrorKind.AUTH,
    ApiErrorKind.INVALID_RESPONSE,
})


class ApiError(Exception):
    """Failure of a remote analysis call."""

    def __init__(
        self,
        message: str,
        kind: ApiErrorKind,
        status_code: Optional[int] = None,
        retryable: bool = False,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after = retry_after

    @property
    def is_transient(self) -> bool:
        """Trying again later without changing settings may succeed."""
        return self.kind in TRANSIENT_KINDS

    @property
    def is_configuration_problem(self) -> bool:
        """The user has to fix endpoint, key or model before retrying."""
        return self.kind in CONFIGURATION_KINDS

    def __repr__(self) -> str:
        return (
            f"ApiError(kind={self.kind.value}, status_code={self.status_code}, "
            f"retryable={self.retryable}, message={self.message!r})"
        )


class ConfigurationError(ValueError):
    """API configuration is missing or incomplete."""


class AnalysisRejected(Exception):
    """The orchestrator refused to dispatch a request."""


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header into seconds.

    Accepts integer seconds or an HTTP date. A date in the past or an
    unparseable value yields None.
    """
    if not value:
        return None

    value = value.strip()
    try:
        return float(int(value))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    delay = (when - datetime.now(timezone.utc)).total_seconds()
    return delay if delay > 0 else None


def looks_like_html(text: str) -> bool:
    """Check whether a body is an HTML document rather than an API payload."""
    return "<!DOCTYPE" in text or "<html" in text


def extract_error_message(body_text: str) -> Optional[str]:
    """Pull the provider's error message out of an error body, if any."""
    try:
        body = json.loads(body_text)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(body, dict):
        return None

    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if body.get("message"):
        return str(body["message"])
    return None


def classify_response(
    status_code: int,
    headers: Mapping[str, str],
    body_text: str = "",
    reason: str = "",
) -> ApiError:
    """Map a non-2xx response to an ApiError with its retry decision."""
    headers = {key.lower(): value for key, value in headers.items()}
    message = extract_error_message(body_text) or (
        f"API request failed: {status_code} {reason}".rstrip()
    )

    if status_code == 429:
        return ApiError(
            message,
            ApiErrorKind.RATE_LIMITED,
            status_code=status_code,
            retryable=True,
            retry_after=parse_retry_after(headers.get("retry-after")),
        )

    if status_code in (401, 403):
        return ApiError(message, ApiErrorKind.AUTH, status_code=status_code, retryable=False)

    if status_code >= 500:
        return ApiError(message, ApiErrorKind.SERVER, status_code=status_code, retryable=True)

    return ApiError(message, ApiErrorKind.UNKNOWN, status_code=status_code, retryable=False)


def classify_exception(error: BaseException, timeout: Optional[float] = None) -> ApiError:
    """Map a locally raised transport exception to an ApiError."""
    if isinstance(error, ApiError):
        return error

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        suffix = f" after {timeout:g}s" if timeout is not None else ""
        return ApiError(f"API request timed out{suffix}", ApiErrorKind.TIMEOUT, retryable=True)

    if isinstance(error, httpx.RequestError):
        return ApiError(f"Network error: {error}", ApiErrorKind.NETWORK, retryable=True)

    return ApiError(str(error) or type(error).__name__, ApiErrorKind.UNKNOWN, retryable=False)
