"""Retrying GitHub REST API client with caching and rate limit handling."""

import asyncio
import logging
import math
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from .cache import cache_key
from .context import ApiContext
from .errors import ClassifiedError, ErrorKind, GitHubApiError, classify, classify_status

logger = logging.getLogger(__name__)

ACCEPT = "application/vnd.github.v3+json"


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff settings. All durations are in seconds."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    max_jitter: float = 1.0


DEFAULT_RETRY_POLICY = RetryPolicy()


def backoff_delay(
    attempt: int,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay before retry number ``attempt + 1``, with jitter."""
    delay = min(policy.base_delay * policy.multiplier**attempt, policy.max_delay)
    return delay + rand() * policy.max_jitter


def should_retry(error: ClassifiedError) -> bool:
    # Rate limits carry their own reset time and are never retried here
    return error.retryable and error.kind != ErrorKind.RATE_LIMIT


def _error_message(resp: httpx.Response) -> str:
    message = f"HTTP {resp.status_code}: {resp.reason_phrase}"
    try:
        body = resp.json()
    except ValueError:
        return message
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return message


def _parse_body(resp: httpx.Response) -> Any:
    content_type = resp.headers.get("content-type", "")
    if "application/json" in content_type:
        return resp.json() if resp.content else {}
    return resp.text


class GitHubClient:
    """Async client for GitHub REST endpoints.

    A single logical ``request`` goes through: cache lookup, rate limit gate,
    network call with timeout, classification, cache write, and retries with
    exponential backoff for transient failures.
    """

    def __init__(
        self,
        context: ApiContext | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.context = context or ApiContext()
        settings = self.context.settings
        self.base_url = settings.github_api_base.rstrip("/")
        token = token or settings.github_token
        headers = {
            "Accept": ACCEPT,
            "User-Agent": settings.github_user_agent,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.timeout = timeout if timeout is not None else settings.github_request_timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=transport,
        )
        self.attempts = 0  # network calls issued, for diagnostics

    @property
    def rate_limit(self):
        return self.context.rate_limit

    @property
    def cache(self):
        return self.context.cache

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        retry_policy: RetryPolicy | None = None,
        **kwargs,
    ) -> Any:
        """Make a GitHub API call and return the parsed body.

        Args:
            endpoint: API path including any query string, e.g. "/users/octocat/repos?page=1"
            method: HTTP method (default GET); only GET responses are cached
            retry_policy: Backoff settings (default RetryPolicy())
            **kwargs: Passed through to httpx (json, headers, ...)

        Raises:
            GitHubApiError: once the retry budget is exhausted or on a non-retryable failure.
        """
        policy = retry_policy or DEFAULT_RETRY_POLICY
        method = method.upper()
        ep = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        key = cache_key(method, f"{self.base_url}{ep}")

        if method == "GET":
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Serving from cache: %s", ep)
                return cached

        attempt = 0
        while True:
            try:
                data = await self._fetch_once(ep, method, attempt, **kwargs)
            except GitHubApiError as e:
                if attempt >= policy.max_retries or not should_retry(e.error):
                    raise
                delay = backoff_delay(attempt, policy)
                logger.warning(
                    "Attempt %d for %s failed (%s), retrying in %.2fs",
                    attempt + 1, ep, e.kind.value, delay,
                )
                await asyncio.sleep(delay)
                attempt += 1
                continue

            if method == "GET":
                self.cache.set(key, ep, data)
            return data

    async def _fetch_once(self, endpoint: str, method: str, attempt: int, **kwargs) -> Any:
        """One network round trip, raising GitHubApiError on any failure."""
        if self.rate_limit.is_limited():
            wait = self.rate_limit.time_until_reset()
            logger.warning("Rate limited, refusing %s for %.0fs", endpoint, wait)
            raise GitHubApiError(ClassifiedError(
                ErrorKind.RATE_LIMIT,
                f"GitHub API rate limit exceeded. Reset in {math.ceil(wait / 60)} minutes.",
                403,
                math.ceil(wait),
            ))

        self.attempts += 1
        logger.debug("API request (attempt %d): %s %s", attempt + 1, method, endpoint)
        try:
            # httpx timeouts are per phase; wait_for bounds the whole round trip
            resp = await asyncio.wait_for(
                self._client.request(method, endpoint, **kwargs), self.timeout,
            )
        except Exception as exc:
            raise GitHubApiError(classify(exc)) from exc

        self.rate_limit.record_response_headers(resp.headers)

        if not resp.is_success:
            raise GitHubApiError(classify_status(
                resp.status_code,
                _error_message(resp),
                remaining=self.rate_limit.remaining,
                seconds_until_reset=self.rate_limit.time_until_reset(),
            ))

        try:
            return _parse_body(resp)
        except ValueError as exc:
            raise GitHubApiError(ClassifiedError(
                ErrorKind.API_ERROR, f"Invalid JSON from {endpoint}: {exc}", resp.status_code,
            )) from exc

    def cache_stats(self) -> dict:
        snapshot = self.rate_limit.snapshot()
        return {
            "size": len(self.cache),
            "keys": self.cache.keys(),
            "rate_limit_remaining": snapshot.remaining,
            "rate_limit_reset": snapshot.reset_at_iso,
        }

    def clear_cache(self) -> None:
        self.cache.clear()

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
