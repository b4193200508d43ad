"""Scripted stand-in for the GitHub REST API, served through httpx.MockTransport."""

import time

import httpx

from github_repo_fetcher.client import RetryPolicy

# Zero-delay backoff so retry tests don't sleep
NO_WAIT = RetryPolicy(base_delay=0, max_jitter=0)


class FakeGitHub:
    """Scripted GitHub: each request pops the next queued response.

    The last queued item is repeated for any further requests. Items may be
    responses, exceptions to raise, or async callables taking the request.
    """

    def __init__(self):
        self.responses = []
        self.requests: list[httpx.Request] = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return await item(request)
        # Fresh copy, so a repeated item is never a response httpx already consumed
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)


def rate_headers(remaining=4999, reset=None):
    reset = reset if reset is not None else int(time.time()) + 3600
    return {"x-ratelimit-remaining": str(remaining), "x-ratelimit-reset": str(reset)}


def ok(body, **headers):
    return httpx.Response(200, json=body, headers={**rate_headers(), **headers})


def error(status, message="boom", **headers):
    return httpx.Response(status, json={"message": message}, headers={**rate_headers(), **headers})


def repo_record(id, **overrides):
    record = {
        "id": id,
        "name": f"repo-{id}",
        "description": None,
        "fork": False,
        "private": False,
        "topics": [],
        "html_url": f"https://github.com/octocat/repo-{id}",
        "homepage": None,
        "updated_at": f"2024-01-{id:02d}T00:00:00Z",
        "created_at": "2023-01-01T00:00:00Z",
        "language": "Python",
        "stargazers_count": id,
        "forks_count": 0,
        "size": 10,
    }
    record.update(overrides)
    return record


