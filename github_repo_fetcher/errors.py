"""Classification of GitHub API failures into a closed set of error kinds."""

import asyncio
import math
from dataclasses import dataclass
from enum import Enum

import httpx


class ErrorKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    SERVER_ERROR = "server_error"
    API_ERROR = "api_error"
    UNKNOWN = "unknown"


NOT_RETRYABLE = frozenset({
    ErrorKind.RATE_LIMIT,
    ErrorKind.NOT_FOUND,
    ErrorKind.VALIDATION,
    ErrorKind.UNAUTHORIZED,
    ErrorKind.FORBIDDEN,
})
RECOVERABLE = frozenset({ErrorKind.NETWORK, ErrorKind.TIMEOUT, ErrorKind.SERVER_ERROR})

USER_MESSAGES = {
    ErrorKind.NETWORK: "Unable to connect to GitHub. Please check your internet connection.",
    ErrorKind.TIMEOUT: "GitHub API is responding slowly. Please try again.",
    ErrorKind.RATE_LIMIT: "GitHub API rate limit exceeded. Please wait a few minutes before trying again.",
    ErrorKind.UNAUTHORIZED: "GitHub API authentication failed. This might be a temporary issue.",
    ErrorKind.FORBIDDEN: "GitHub API access denied. Please check your credentials.",
    ErrorKind.NOT_FOUND: "GitHub user or repositories not found.",
    ErrorKind.VALIDATION: "Please provide a valid GitHub username.",
    ErrorKind.SERVER_ERROR: "GitHub servers are experiencing issues. Please try again later.",
    ErrorKind.API_ERROR: "GitHub returned an unexpected response. Please try again later.",
    ErrorKind.UNKNOWN: "Something went wrong. Please try again.",
}

_STATUS_KINDS = {
    401: ErrorKind.UNAUTHORIZED,
    404: ErrorKind.NOT_FOUND,
    422: ErrorKind.VALIDATION,
}


@dataclass(frozen=True)
class ClassifiedError:
    """An immutable, categorized failure surfaced to callers and renderers."""

    kind: ErrorKind
    message: str
    http_status: int | None = None
    retry_after_seconds: int | None = None

    @property
    def retryable(self) -> bool:
        return self.kind not in NOT_RETRYABLE

    @property
    def recoverable(self) -> bool:
        return self.kind in RECOVERABLE

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]

    def details(self) -> str:
        """Technical detail, only meant for an explicit "show details" action."""
        parts = [f"kind={self.kind.value}"]
        if self.http_status is not None:
            parts.append(f"status={self.http_status}")
        if self.retry_after_seconds is not None:
            parts.append(f"retry_after={self.retry_after_seconds}s")
        parts.append(f"message={self.message}")
        return " ".join(parts)


class GitHubApiError(Exception):
    """Raised by the fetch layer; carries the classified error."""

    def __init__(self, error: ClassifiedError):
        super().__init__(error.message)
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


def classify_status(
    status: int,
    message: str,
    remaining: int | None = None,
    seconds_until_reset: float | None = None,
) -> ClassifiedError:
    """Map a non-2xx HTTP status to a ClassifiedError.

    A 403 is only a rate limit when the server reports zero remaining quota;
    any other 403 is a plain permission failure.
    """
    if status == 403:
        if remaining is not None and remaining <= 0:
            retry_after = None
            if seconds_until_reset is not None:
                retry_after = math.ceil(max(0.0, seconds_until_reset))
            return ClassifiedError(ErrorKind.RATE_LIMIT, message, status, retry_after)
        return ClassifiedError(ErrorKind.FORBIDDEN, message, status)
    if status in _STATUS_KINDS:
        return ClassifiedError(_STATUS_KINDS[status], message, status)
    if 500 <= status < 600:
        return ClassifiedError(ErrorKind.SERVER_ERROR, message, status)
    return ClassifiedError(ErrorKind.API_ERROR, message, status)


def classify(exc: BaseException) -> ClassifiedError:
    """Map an arbitrary exception raised around a network call."""
    if isinstance(exc, GitHubApiError):
        return exc.error
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ClassifiedError(
            ErrorKind.TIMEOUT,
            "Request timeout - GitHub API took too long to respond",
            408,
        )
    return ClassifiedError(ErrorKind.NETWORK, f"Network error: {exc}")


def validation_error(message: str) -> GitHubApiError:
    return GitHubApiError(ClassifiedError(ErrorKind.VALIDATION, message))
