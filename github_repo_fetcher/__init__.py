"""Fetch a GitHub user's repositories with caching, retries and rate limiting."""

import sys

from .cli import main
from .client import GitHubClient, RetryPolicy, backoff_delay
from .context import ApiContext
from .controller import ControllerOptions, RepositoriesController, use_repositories
from .errors import ClassifiedError, ErrorKind, GitHubApiError, classify
from .repositories import ListOptions, RepositoryService, RepositorySummary

__all__ = [
    "main",
    "ApiContext",
    "ClassifiedError",
    "ControllerOptions",
    "ErrorKind",
    "GitHubApiError",
    "GitHubClient",
    "ListOptions",
    "RepositoriesController",
    "RepositoryService",
    "RepositorySummary",
    "RetryPolicy",
    "backoff_delay",
    "classify",
    "use_repositories",
]

if __name__ == "__main__":
    sys.exit(main())
