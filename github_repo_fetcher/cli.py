"""CLI commands for fetching GitHub repositories."""

import argparse
import asyncio
import json
import logging
import sys

from .client import GitHubClient, RetryPolicy
from .context import ApiContext
from .errors import GitHubApiError
from .repositories import SORT_KEYS, ListOptions, RepositoryService


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fetch GitHub repositories with caching, retries and rate limit handling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=3,
        help="Retries for transient failures (default: 3)",
    )
    parser.add_argument(
        "--details",
        action="store_true",
        help="Show technical error details on failure",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # repos subcommand
    repos_parser = subparsers.add_parser(
        "repos",
        help="List a user's repositories",
    )
    repos_parser.add_argument(
        "username",
        help="GitHub username",
    )
    repos_parser.add_argument(
        "--sort",
        choices=SORT_KEYS,
        default="updated",
        help="Sort order (default: updated)",
    )
    repos_parser.add_argument(
        "--per-page",
        type=int,
        default=8,
        help="Repositories per page (default: 8)",
    )
    repos_parser.add_argument(
        "--page",
        type=int,
        default=1,
        help="Page number (default: 1)",
    )
    repos_parser.add_argument(
        "--include-forks",
        action="store_true",
        help="Include forked repositories",
    )
    repos_parser.add_argument(
        "--include-private",
        action="store_true",
        help="Include private repositories",
    )
    repos_parser.add_argument(
        "--json",
        action="store_true",
        help="Print JSON instead of a table",
    )

    # user subcommand
    user_parser = subparsers.add_parser(
        "user",
        help="Show a user's profile",
    )
    user_parser.add_argument(
        "username",
        help="GitHub username",
    )

    # health subcommand
    subparsers.add_parser(
        "health",
        help="Check API connectivity and remaining quota",
    )

    return parser


async def _run(args: argparse.Namespace) -> int:
    policy = RetryPolicy(max_retries=args.max_retries)
    async with GitHubClient(ApiContext()) as client:
        service = RepositoryService(client)
        try:
            if args.command == "repos":
                options = ListOptions(
                    sort=args.sort,
                    page_size=args.per_page,
                    page=args.page,
                    include_forks=args.include_forks,
                    include_private=args.include_private,
                )
                repos = await service.list_repositories(args.username, options, retry_policy=policy)
                if args.json:
                    print(json.dumps([r.to_dict() for r in repos], indent=2))
                else:
                    for r in repos:
                        print(f"{r.name:<40} {r.star_count:>7} stars  {r.language or '-':<12} {r.updated_at:%Y-%m-%d}")
                    print(f"\n{len(repos)} repositories")
            elif args.command == "user":
                info = await service.get_user_info(args.username, retry_policy=policy)
                print(json.dumps(info, indent=2))
            elif args.command == "health":
                report = await service.check_health()
                print(f"Status: {report.status}")
                if report.latency is not None:
                    print(f"Latency: {report.latency * 1000:.0f}ms")
                print(f"Rate limit remaining: {report.rate_limit_remaining}")
                if report.error:
                    print(f"Error: {report.error}")
                return 0 if report.healthy else 1
        except GitHubApiError as e:
            print(e.error.user_message, file=sys.stderr)
            if args.details:
                print(e.error.details(), file=sys.stderr)
            return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return asyncio.run(_run(args))
