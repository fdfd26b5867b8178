"""GitHub storage facade.

GitHubStorage bundles the GitHub client with the components that hold
logic of their own:
- IssuePoller for incremental issue retrieval
- ContentReconciler for idempotent file writes
- MigrationArchiver for organization exports

The remaining methods are direct pass-throughs to GitHubClient.
"""

import calendar
import logging
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from src.hubstorage.config import HubStorageSettings
from src.hubstorage.content.reconciler import ContentReconciler
from src.hubstorage.github.client import GitHubClient
from src.hubstorage.github.models import (
    Branch,
    ContentChangeSet,
    GitHubCommit,
    Issue,
    IssueComment,
    Migration,
    NewReference,
    PullRequest,
    Reference,
    Repository,
    User,
)
from src.hubstorage.issues.closer import close_issue
from src.hubstorage.issues.cursor import DEFAULT_LOOKBACK, CursorStore
from src.hubstorage.issues.poller import IssuePoller
from src.hubstorage.metrics import HubStorageMetrics
from src.hubstorage.migrations.archive import MigrationArchiver


logger = logging.getLogger(__name__)


# Account id of the dependabot[bot] user on github.com
DEPENDABOT_ID = 49699333

DEFAULT_INTERACTION_INTERVAL = timedelta(milliseconds=1200)


def is_dependabot(user: Optional[User]) -> bool:
    return user is not None and user.id == DEPENDABOT_ID


def one_month_before(day: date) -> date:
    """Same day of the previous month, clamped to that month's length."""
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


class GitHubStorage:
    """Facade over GitHub for issues, files, pull requests and migrations.

    Attributes:
        owner: Default repository owner (user or organization).
        client: The GitHub client.
        minimum_interaction_interval: Pause callers should keep between
            polls.

    Example:
        >>> async with GitHubStorage("acme", token, "acme-bot") as storage:
        ...     for issue in await storage.get_issues():
        ...         await storage.close_issue(issue)
    """

    def __init__(
        self,
        owner: str,
        token: str,
        name: str = "hub-storage",
        client: Optional[GitHubClient] = None,
        cursor_store: Optional[CursorStore] = None,
        metrics: Optional[HubStorageMetrics] = None,
        issue_lookback: timedelta = DEFAULT_LOOKBACK,
        minimum_interaction_interval: timedelta = DEFAULT_INTERACTION_INTERVAL,
        cursor_name: str = "issues",
    ):
        """Initialize the facade.

        Args:
            owner: Default repository owner.
            token: GitHub API token; unused when ``client`` is given.
            name: Product name sent as User-Agent.
            client: Preconfigured GitHub client.
            cursor_store: Where the issue poll watermark is persisted.
            metrics: Optional metrics container.
            issue_lookback: Age of the initial issue poll watermark.
            minimum_interaction_interval: Pause callers should keep
                between polls.
            cursor_name: Name of the issue poll cursor in the store.
        """
        self.owner = owner
        self.client = client or GitHubClient(token=token, user_agent=name)
        self.metrics = metrics
        self.minimum_interaction_interval = minimum_interaction_interval

        self.issue_poller = IssuePoller(
            self.client,
            store=cursor_store,
            name=cursor_name,
            lookback=issue_lookback,
            metrics=metrics,
        )
        self.reconciler = ContentReconciler(self.client, metrics=metrics)
        self.archiver = MigrationArchiver(self.client, metrics=metrics)

    @classmethod
    def from_settings(
        cls,
        settings: HubStorageSettings,
        cursor_store: Optional[CursorStore] = None,
        metrics: Optional[HubStorageMetrics] = None,
    ) -> "GitHubStorage":
        """Build a facade from HubStorageSettings."""
        client = GitHubClient(
            token=settings.github_token,
            base_url=settings.github_base_url,
            user_agent=settings.app_name,
            max_retries=settings.max_retries,
            timeout=settings.request_timeout_seconds,
        )
        return cls(
            owner=settings.owner,
            token=settings.github_token,
            name=settings.app_name,
            client=client,
            cursor_store=cursor_store,
            metrics=metrics,
            issue_lookback=settings.issue_lookback,
            minimum_interaction_interval=settings.minimum_interaction_interval,
            cursor_name=settings.cursor_name,
        )

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "GitHubStorage":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Issues
    # -------------------------------------------------------------------------

    async def get_issues(self) -> List[Issue]:
        """Open issues created since the previous successful call."""
        return await self.issue_poller.poll()

    async def get_repository_issues(
        self,
        owner: str,
        repository: str,
        since: Optional[datetime] = None,
    ) -> List[Issue]:
        """Open issues of one repository, since a month ago by default."""
        if since is None:
            since = datetime.combine(
                one_month_before(datetime.now(timezone.utc).date()),
                time.min,
                tzinfo=timezone.utc,
            )
        return await self.client.list_repository_issues(owner, repository, since=since)

    async def close_issue(self, issue: Issue) -> Issue:
        return await close_issue(self.client, issue)

    async def create_issue_comment(
        self,
        repository_id: int,
        issue_number: int,
        message: str,
    ) -> IssueComment:
        return await self.client.create_issue_comment(repository_id, issue_number, message)

    # -------------------------------------------------------------------------
    # Repository content
    # -------------------------------------------------------------------------

    async def create_or_update_file(
        self,
        file_path: str,
        file_content: str,
        repository: Repository,
        branch_name: str,
        commit_message: str,
    ) -> ContentChangeSet:
        """Write a file to a branch, creating or updating it as needed."""
        return await self.reconciler.reconcile(
            file_path,
            file_content,
            repository,
            branch_name,
            commit_message,
        )

    async def get_all_repositories(self, owner_name: Optional[str] = None) -> List[Repository]:
        return await self.client.list_organization_repositories(owner_name or self.owner)

    async def get_branch(self, repository_id: int, branch_name: str) -> Branch:
        return await self.client.get_branch(repository_id, branch_name)

    async def get_commits(
        self,
        repository_id: int,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[GitHubCommit]:
        return await self.client.list_commits(repository_id, params)

    async def create_reference(
        self,
        repository_id: int,
        reference: NewReference,
    ) -> Reference:
        return await self.client.create_reference(repository_id, reference)

    # -------------------------------------------------------------------------
    # Pull requests and members
    # -------------------------------------------------------------------------

    async def get_pull_requests(self, owner: str, repository: str) -> List[PullRequest]:
        return await self.client.list_pull_requests(owner, repository)

    async def get_pull_requests_by_id(
        self,
        repository_id: int,
        page_size: Optional[int] = None,
        max_pages: int = 100,
    ) -> List[PullRequest]:
        return await self.client.list_pull_requests_by_id(
            repository_id,
            page_size=page_size,
            max_pages=max_pages,
        )

    async def get_pull_request(self, repository_id: int, number: int) -> PullRequest:
        return await self.client.get_pull_request(repository_id, number)

    async def get_organization_members(self, organization: str) -> List[User]:
        return await self.client.list_organization_members(organization)

    # -------------------------------------------------------------------------
    # Migrations
    # -------------------------------------------------------------------------

    async def get_all_migrations(self, organization: str) -> List[Migration]:
        return await self.archiver.list_migrations(organization)

    async def create_migration(
        self,
        organization: str,
        repository_names: Sequence[str],
    ) -> Migration:
        return await self.archiver.start_migration(organization, repository_names)

    async def save_migration_archive(
        self,
        organization: str,
        migration_id: int,
        file_path: Union[str, Path],
    ) -> Path:
        return await self.archiver.download_archive(organization, migration_id, file_path)
