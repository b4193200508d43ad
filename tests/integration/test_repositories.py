"""Integration tests for the repository query service."""

import pytest
from fake_github import NO_WAIT, error, ok, repo_record

from github_repo_fetcher.errors import ErrorKind, GitHubApiError
from github_repo_fetcher.repositories import ListOptions, RepositoryService


@pytest.fixture
def service(client):
    return RepositoryService(client)


class TestListRepositories:
    @pytest.mark.asyncio
    async def test_builds_query_parameters(self, service, github):
        github.queue(ok([]))

        await service.list_repositories("octocat", ListOptions(sort="stars", page_size=20, page=3))

        url = github.requests[0].url
        assert url.path == "/users/octocat/repos"
        assert url.params["sort"] == "stars"
        assert url.params["per_page"] == "20"
        assert url.params["page"] == "3"

    @pytest.mark.asyncio
    async def test_uses_defaults(self, service, github):
        github.queue(ok([]))

        await service.list_repositories("octocat")

        params = github.requests[0].url.params
        assert (params["sort"], params["per_page"], params["page"]) == ("updated", "8", "1")

    @pytest.mark.asyncio
    async def test_filters_forks(self, service, github):
        github.queue(ok([
            repo_record(1),
            repo_record(2, fork=True),
            repo_record(3),
            repo_record(4, fork=True),
            repo_record(5),
        ]))

        repos = await service.list_repositories("octocat", ListOptions(include_forks=False))

        assert len(repos) == 3
        assert not any(r.is_fork for r in repos)

    @pytest.mark.asyncio
    async def test_includes_forks_and_private_when_asked(self, service, github):
        github.queue(ok([repo_record(1, fork=True), repo_record(2, private=True)]))

        repos = await service.list_repositories(
            "octocat", ListOptions(include_forks=True, include_private=True),
        )

        assert {r.id for r in repos} == {1, 2}

    @pytest.mark.asyncio
    async def test_sorts_by_stars(self, service, github):
        github.queue(ok([
            repo_record(1, stargazers_count=3),
            repo_record(2, stargazers_count=10),
            repo_record(3, stargazers_count=1),
        ]))

        repos = await service.list_repositories("octocat", ListOptions(sort="stars"))

        assert [r.star_count for r in repos] == [10, 3, 1]

    @pytest.mark.asyncio
    async def test_sorts_by_updated_newest_first(self, service, github):
        github.queue(ok([repo_record(1), repo_record(3), repo_record(2)]))

        repos = await service.list_repositories("octocat")

        assert [r.id for r in repos] == [3, 2, 1]

    @pytest.mark.parametrize("username", ["", "   ", None])
    @pytest.mark.asyncio
    async def test_empty_username_fails_without_network(self, service, github, username):
        with pytest.raises(GitHubApiError) as exc_info:
            await service.list_repositories(username)

        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert github.requests == []

    @pytest.mark.asyncio
    async def test_unexpected_payload_is_api_error(self, service, github):
        github.queue(ok({"message": "not a list"}))

        with pytest.raises(GitHubApiError) as exc_info:
            await service.list_repositories("octocat")

        assert exc_info.value.kind == ErrorKind.API_ERROR

    @pytest.mark.asyncio
    async def test_not_found_propagates(self, service, github):
        github.queue(error(404, "Not Found"))

        with pytest.raises(GitHubApiError) as exc_info:
            await service.list_repositories("ghost", retry_policy=NO_WAIT)

        assert exc_info.value.kind == ErrorKind.NOT_FOUND


class TestGetUserInfo:
    @pytest.mark.asyncio
    async def test_returns_profile(self, service, github):
        github.queue(ok({"login": "octocat", "public_repos": 8}))

        info = await service.get_user_info("octocat")

        assert info["login"] == "octocat"
        assert github.requests[0].url.path == "/users/octocat"

    @pytest.mark.asyncio
    async def test_rejects_empty_username(self, service, github):
        with pytest.raises(GitHubApiError) as exc_info:
            await service.get_user_info("")

        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert github.requests == []


class TestCheckHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, service, github):
        github.queue(ok({"resources": {}}, **{"x-ratelimit-remaining": "4321"}))

        report = await service.check_health()

        assert report.healthy
        assert report.latency is not None and report.latency >= 0
        assert report.rate_limit_remaining == 4321
        assert report.error is None
        assert github.requests[0].url.path == "/rate_limit"

    @pytest.mark.asyncio
    async def test_unhealthy_does_not_raise(self, service, github):
        github.queue(error(401, "Bad credentials", **{"x-ratelimit-remaining": "0"}))

        report = await service.check_health()

        assert report.status == "unhealthy"
        assert report.error == "Bad credentials"
        assert report.rate_limit_remaining == 0
