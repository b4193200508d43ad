"""Repository queries built on top of the retrying client."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal
from urllib.parse import quote, urlencode

from .client import GitHubClient, RetryPolicy
from .errors import ClassifiedError, ErrorKind, GitHubApiError, validation_error

logger = logging.getLogger(__name__)

SortKey = Literal["updated", "stars", "forks", "created", "size"]
SORT_KEYS = ("updated", "stars", "forks", "created", "size")

HEALTH_ENDPOINT = "/rate_limit"

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return _EPOCH
    # GitHub uses a trailing "Z" which fromisoformat only accepts on 3.11+
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class RepositorySummary:
    id: int
    name: str
    description: str | None
    topics: tuple[str, ...]
    url: str
    homepage_url: str | None
    updated_at: datetime
    created_at: datetime
    language: str | None
    star_count: int
    fork_count: int
    size: int
    is_fork: bool
    is_private: bool

    @classmethod
    def from_api(cls, record: dict) -> "RepositorySummary":
        """Map a raw GitHub repository record."""
        return cls(
            id=record["id"],
            name=record["name"],
            description=record.get("description"),
            topics=tuple(record.get("topics") or ()),
            url=record["html_url"],
            homepage_url=record.get("homepage") or None,
            updated_at=_parse_timestamp(record.get("updated_at")),
            created_at=_parse_timestamp(record.get("created_at")),
            language=record.get("language"),
            star_count=record.get("stargazers_count", 0),
            fork_count=record.get("forks_count", 0),
            size=record.get("size", 0),
            is_fork=bool(record.get("fork", False)),
            is_private=bool(record.get("private", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "topics": list(self.topics),
            "url": self.url,
            "homepage_url": self.homepage_url,
            "updated_at": self.updated_at.isoformat(),
            "created_at": self.created_at.isoformat(),
            "language": self.language,
            "star_count": self.star_count,
            "fork_count": self.fork_count,
            "size": self.size,
            "is_fork": self.is_fork,
            "is_private": self.is_private,
        }


@dataclass(frozen=True)
class ListOptions:
    sort: SortKey = "updated"
    page_size: int = 8
    page: int = 1
    include_forks: bool = False
    include_private: bool = False

    def __post_init__(self):
        if self.sort not in SORT_KEYS:
            raise ValueError(f"sort must be one of {SORT_KEYS}, got {self.sort!r}")


@dataclass(frozen=True)
class HealthReport:
    status: Literal["healthy", "unhealthy"]
    latency: float | None
    rate_limit_remaining: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"


_SORT_FIELDS = {
    "updated": lambda r: r.updated_at,
    "stars": lambda r: r.star_count,
    "forks": lambda r: r.fork_count,
    "size": lambda r: r.size,
    "created": lambda r: r.created_at,
}


def filter_repositories(
    repos: list[RepositorySummary],
    include_forks: bool = False,
    include_private: bool = False,
) -> list[RepositorySummary]:
    return [
        r for r in repos
        if (include_forks or not r.is_fork) and (include_private or not r.is_private)
    ]


def sort_repositories(repos: list[RepositorySummary], sort: str = "updated") -> list[RepositorySummary]:
    """Sort descending by the given key. Equal keys keep their original order."""
    key = _SORT_FIELDS.get(sort, _SORT_FIELDS["updated"])
    return sorted(repos, key=key, reverse=True)


def _require_username(username: str | None) -> str:
    if not username or not username.strip():
        raise validation_error("Username is required")
    return username.strip()


class RepositoryService:
    """Domain-level GitHub operations: list repositories, user info, health."""

    def __init__(self, client: GitHubClient):
        self.client = client

    async def list_repositories(
        self,
        username: str,
        options: ListOptions | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> list[RepositorySummary]:
        options = options or ListOptions()
        username = _require_username(username)

        params = urlencode({
            "sort": options.sort,
            "per_page": options.page_size,
            "page": options.page,
        })
        endpoint = f"/users/{quote(username, safe='')}/repos?{params}"

        records = await self.client.request(endpoint, retry_policy=retry_policy)
        if not isinstance(records, list):
            raise GitHubApiError(ClassifiedError(
                ErrorKind.API_ERROR, f"Expected a list of repositories from {endpoint}",
            ))
        repos = [RepositorySummary.from_api(r) for r in records]
        repos = filter_repositories(repos, options.include_forks, options.include_private)
        repos = sort_repositories(repos, options.sort)
        logger.info("Retrieved %d repositories for %s", len(repos), username)
        return repos

    async def get_user_info(self, username: str, retry_policy: RetryPolicy | None = None) -> dict:
        username = _require_username(username)
        return await self.client.request(f"/users/{quote(username, safe='')}", retry_policy=retry_policy)

    async def check_health(self) -> HealthReport:
        """Issue a lightweight request and report latency and remaining quota."""
        start = time.monotonic()
        try:
            await self.client.request(HEALTH_ENDPOINT)
        except GitHubApiError as e:
            logger.warning("Health check failed: %s", e)
            return HealthReport(
                status="unhealthy",
                latency=None,
                rate_limit_remaining=self.client.rate_limit.remaining,
                error=str(e),
            )
        return HealthReport(
            status="healthy",
            latency=time.monotonic() - start,
            rate_limit_remaining=self.client.rate_limit.remaining,
        )
