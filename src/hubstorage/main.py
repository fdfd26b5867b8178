"""Command entry point for the GitHub storage facade.

Usage:
    python -m src.hubstorage.main poll
    python -m src.hubstorage.main close OWNER REPO NUMBER
    python -m src.hubstorage.main start-migration ORG REPO [REPO ...]
    python -m src.hubstorage.main download-archive ORG MIGRATION_ID PATH

Configuration is read from HUBSTORAGE_* environment variables.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import HubStorageSettings, get_settings
from .github.client import GitHubAPIError
from .github.models import Issue
from .issues.closer import close_issue_by_number
from .issues.cursor import CursorStore
from .issues.repository import PostgresCursorStore
from .storage import GitHubStorage, is_dependabot

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: HubStorageSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Storage configuration:")
    logger.info(f"  GitHub Base URL: {settings.github_base_url}")
    logger.info(f"  GitHub Token: {_redact_secret(settings.github_token)}")
    logger.info(f"  Owner: {settings.owner}")
    logger.info(f"  Issue Lookback Days: {settings.issue_lookback_days}")
    logger.info(
        f"  Cursor Store: {'postgres' if settings.cursor_database_url else 'memory'}"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hubstorage")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("poll", help="Fetch issues created since the last poll")

    close = commands.add_parser("close", help="Close an issue")
    close.add_argument("owner")
    close.add_argument("repo")
    close.add_argument("number", type=int)

    start = commands.add_parser("start-migration", help="Start an organization export")
    start.add_argument("organization")
    start.add_argument("repositories", nargs="+")

    download = commands.add_parser(
        "download-archive",
        help="Download the archive of an exported migration",
    )
    download.add_argument("organization")
    download.add_argument("migration_id", type=int)
    download.add_argument("path")

    return parser


async def _poll(storage: GitHubStorage) -> None:
    issues: List[Issue] = await storage.get_issues()
    for issue in issues:
        logger.info(
            "New issue",
            extra={
                "issue_number": issue.number,
                "title": issue.title,
                "repository": issue.repository.full_name if issue.repository else None,
                "created_at": issue.created_at.isoformat(),
                "dependabot": is_dependabot(issue.user),
            },
        )
    logger.info(f"Poll returned {len(issues)} issue(s); watermark {storage.issue_poller.since.isoformat()}")


async def run(
    args: argparse.Namespace,
    settings: HubStorageSettings,
    cursor_store: Optional[CursorStore] = None,
) -> int:
    """Execute one command, returning the process exit code."""
    postgres_store: Optional[PostgresCursorStore] = None
    if cursor_store is None and settings.cursor_database_url:
        postgres_store = PostgresCursorStore(settings.cursor_database_url)
        await postgres_store.connect()
        cursor_store = postgres_store

    try:
        async with GitHubStorage.from_settings(settings, cursor_store=cursor_store) as storage:
            if args.command == "poll":
                await _poll(storage)
            elif args.command == "close":
                issue = await close_issue_by_number(
                    storage.client,
                    args.owner,
                    args.repo,
                    args.number,
                )
                logger.info(f"Closed issue #{issue.number}")
            elif args.command == "start-migration":
                migration = await storage.create_migration(
                    args.organization,
                    args.repositories,
                )
                logger.info(f"Started migration {migration.id} ({migration.state.value})")
            elif args.command == "download-archive":
                path = await storage.save_migration_archive(
                    args.organization,
                    args.migration_id,
                    args.path,
                )
                logger.info(f"Saved migration archive to {path}")
        return 0
    except GitHubAPIError as e:
        logger.error(
            "GitHub request failed",
            extra={"status_code": e.status_code, "error": e.message},
        )
        return 1
    finally:
        if postgres_store is not None:
            await postgres_store.disconnect()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    _log_configuration(settings)
    return asyncio.run(run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
