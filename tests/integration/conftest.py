"""Shared fixtures: real client stack, only the HTTP transport is faked."""

import httpx
import pytest
from fake_github import FakeGitHub

from github_repo_fetcher.cache import ResponseCache
from github_repo_fetcher.client import GitHubClient
from github_repo_fetcher.context import ApiContext
from github_repo_fetcher.rate_limit import RateLimitTracker
from github_repo_fetcher.settings import Settings


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def context():
    return ApiContext(
        settings=Settings(github_token="test-token"),
        rate_limit=RateLimitTracker(),
        cache=ResponseCache(),
    )


@pytest.fixture
async def client(context, github):
    c = GitHubClient(context, transport=httpx.MockTransport(github))
    yield c
    await c.close()
