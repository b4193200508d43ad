"""Per-consumer fetch lifecycle: sessions, automatic retries, cancellation.

A controller owns one logical stream of repository fetches for a username.
Each fetch runs as a session task. Starting a new session (retry, refresh)
cancels the in-flight session and any scheduled automatic retry, and the
result of a superseded session is never published.
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .client import DEFAULT_RETRY_POLICY, GitHubClient, RetryPolicy, backoff_delay
from .errors import ClassifiedError, ErrorKind, GitHubApiError
from .rate_limit import RateLimitSnapshot
from .repositories import HealthReport, ListOptions, RepositoryService, RepositorySummary

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ControllerOptions:
    list_options: ListOptions = field(default_factory=ListOptions)
    auto_refresh: bool = False
    refresh_interval: float = 300.0  # seconds
    retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY


@dataclass
class FetchSessionState:
    repositories: list[RepositorySummary] = field(default_factory=list)
    status: SessionStatus = SessionStatus.IDLE
    loading: bool = False
    error: ClassifiedError | None = None
    retry_count: int = 0
    last_fetch_at: datetime | None = None


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one session's query: either repositories or an error."""

    repositories: list[RepositorySummary] | None = None
    error: ClassifiedError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RepositoriesView:
    """Read-only snapshot handed to renderers."""

    repositories: tuple[RepositorySummary, ...]
    status: SessionStatus
    loading: bool
    error: ClassifiedError | None
    retry_count: int
    last_fetch_at: datetime | None
    is_empty: bool
    has_data: bool
    can_retry: bool
    rate_limit: RateLimitSnapshot


Listener = Callable[[RepositoriesView], None]


class RepositoriesController:
    def __init__(
        self,
        username: str,
        service: RepositoryService,
        options: ControllerOptions | None = None,
    ):
        self.username = username
        self.service = service
        self.options = options or ControllerOptions()
        self.state = FetchSessionState()
        self._session_id = 0
        self._task: asyncio.Task | None = None
        self._scheduled: dict[int, asyncio.Task] = {}
        self._auto_refresh_task: asyncio.Task | None = None
        self._listeners: list[Listener] = []

    @property
    def session_id(self) -> int:
        return self._session_id

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state change listener. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def view(self) -> RepositoriesView:
        state = self.state
        succeeded = state.status == SessionStatus.SUCCESS
        can_retry = (
            state.error is not None
            and state.error.retryable
            and state.retry_count < self.options.retry_policy.max_retries
        )
        return RepositoriesView(
            repositories=tuple(state.repositories),
            status=state.status,
            loading=state.loading,
            error=state.error,
            retry_count=state.retry_count,
            last_fetch_at=state.last_fetch_at,
            is_empty=succeeded and not state.repositories,
            has_data=succeeded and bool(state.repositories),
            can_retry=can_retry,
            rate_limit=self.service.client.rate_limit.snapshot(),
        )

    def start(self) -> asyncio.Task:
        """Begin the first session and, if enabled, the auto refresh loop."""
        if (
            self.options.auto_refresh
            and self.options.refresh_interval > 0
            and self._auto_refresh_task is None
        ):
            self._auto_refresh_task = asyncio.create_task(self._auto_refresh_loop())
        return self._begin_session(reset=True)

    def retry(self) -> asyncio.Task:
        """Manually re-run the query with a fresh retry budget."""
        self.state.retry_count = 0
        return self._begin_session(reset=False)

    def refresh(self) -> asyncio.Task:
        """Clear the cache and start a new session, forcing a network round trip."""
        self.service.client.clear_cache()
        return self._begin_session(reset=True)

    def clear_cache(self) -> None:
        self.service.client.clear_cache()

    async def check_health(self) -> HealthReport:
        return await self.service.check_health()

    def cancel_retry(self, session_id: int) -> bool:
        """Cancel the automatic retry scheduled by the given session, if any."""
        task = self._scheduled.pop(session_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    async def settle(self) -> RepositoriesView:
        """Wait until no session or scheduled retry is pending."""
        while True:
            pending = [t for t in (self._task, *self._scheduled.values()) if t and not t.done()]
            if not pending:
                return self.view()
            await asyncio.wait(pending)

    async def close(self) -> None:
        """Tear down: cancel in-flight work, scheduled retries and auto refresh."""
        tasks = self._cancel_pending()
        if self._auto_refresh_task is not None:
            self._auto_refresh_task.cancel()
            tasks.append(self._auto_refresh_task)
            self._auto_refresh_task = None
        self._listeners.clear()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _cancel_pending(self) -> list[asyncio.Task]:
        cancelled = []
        for session_id in list(self._scheduled):
            cancelled.append(self._scheduled[session_id])
            self.cancel_retry(session_id)
        if self._task is not None and not self._task.done():
            logger.info("Superseding session %d", self._session_id)
            self._task.cancel()
            cancelled.append(self._task)
        return cancelled

    def _begin_session(self, reset: bool) -> asyncio.Task:
        self._cancel_pending()
        self._session_id += 1
        if reset:
            self.state = FetchSessionState()
        self._task = asyncio.create_task(self._run_session(self._session_id))
        return self._task

    def _update(self, **changes) -> None:
        for name, value in changes.items():
            setattr(self.state, name, value)
        view = self.view()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("State listener %r failed", listener)

    async def _run_session(self, session_id: int) -> FetchOutcome:
        logger.info("Session %d: fetching repositories for %r", session_id, self.username)
        self._update(status=SessionStatus.LOADING, loading=True, error=None)

        outcome = await self._load()

        if session_id != self._session_id:
            logger.info("Session %d superseded, discarding result", session_id)
            return outcome

        if outcome.ok:
            logger.info("Session %d: fetched %d repositories", session_id, len(outcome.repositories))
            self._update(
                status=SessionStatus.SUCCESS,
                loading=False,
                repositories=outcome.repositories,
                error=None,
                retry_count=0,
                last_fetch_at=datetime.now(timezone.utc),
            )
        else:
            logger.warning("Session %d failed: %s", session_id, outcome.error.details())
            self._update(status=SessionStatus.ERROR, loading=False, error=outcome.error)
            self._schedule_retry(session_id, outcome.error)
        return outcome

    async def _load(self) -> FetchOutcome:
        try:
            repos = await self.service.list_repositories(
                self.username,
                self.options.list_options,
                retry_policy=self.options.retry_policy,
            )
        except GitHubApiError as e:
            return FetchOutcome(error=e.error)
        except Exception as e:
            logger.exception("Unexpected error fetching repositories")
            return FetchOutcome(error=ClassifiedError(
                ErrorKind.UNKNOWN, f"An unexpected error occurred: {e}",
            ))
        return FetchOutcome(repositories=repos)

    def _schedule_retry(self, session_id: int, error: ClassifiedError) -> None:
        policy = self.options.retry_policy
        if not (error.retryable and error.recoverable):
            return
        if self.state.retry_count >= policy.max_retries:
            return
        delay = backoff_delay(self.state.retry_count, policy)
        logger.warning(
            "Scheduling automatic retry %d/%d in %.2fs",
            self.state.retry_count + 1, policy.max_retries, delay,
        )
        self._scheduled[session_id] = asyncio.create_task(self._retry_after(session_id, delay))

    async def _retry_after(self, session_id: int, delay: float) -> None:
        await asyncio.sleep(delay)
        self._scheduled.pop(session_id, None)
        if session_id != self._session_id:
            return
        self.state.retry_count += 1
        self._begin_session(reset=False)

    async def _auto_refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.options.refresh_interval)
            if not self.state.loading and self.state.error is None:
                logger.info("Auto refreshing repositories for %r", self.username)
                self.refresh()


@asynccontextmanager
async def use_repositories(
    username: str,
    options: ControllerOptions | None = None,
    client: GitHubClient | None = None,
):
    """Mount a controller for ``username``; tears it down on exit.

    The first fetch is started immediately. If no client is given, one is
    created (and closed on exit) with a fresh ApiContext.
    """
    owns_client = client is None
    client = client or GitHubClient()
    controller = RepositoriesController(username, RepositoryService(client), options)
    controller.start()
    try:
        yield controller
    finally:
        await controller.close()
        if owns_client:
            await client.close()
