"""Unit tests for the GitHubStorage facade."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.hubstorage.config import HubStorageSettings
from src.hubstorage.github.client import GitHubAPIError
from src.hubstorage.github.models import (
    IssueUpdate,
    ItemState,
    NewReference,
    User,
)
from src.hubstorage.issues.cursor import InMemoryCursorStore
from src.hubstorage.storage import (
    DEPENDABOT_ID,
    GitHubStorage,
    is_dependabot,
    one_month_before,
)
from tests.hubstorage.factories import (
    T0,
    make_branch,
    make_change_set,
    make_issue,
    make_repository,
    make_tree,
)


def run_async(coro):
    return asyncio.run(coro)


def _make_storage(client=None, **kwargs) -> GitHubStorage:
    return GitHubStorage("acme", "ghp_test", client=client or MagicMock(), **kwargs)


class TestOneMonthBefore:

    def test_mid_month(self):
        assert one_month_before(date(2026, 5, 15)) == date(2026, 4, 15)

    def test_january_wraps_year(self):
        assert one_month_before(date(2026, 1, 10)) == date(2025, 12, 10)

    def test_clamps_to_shorter_month(self):
        assert one_month_before(date(2026, 3, 31)) == date(2026, 2, 28)

    def test_leap_year(self):
        assert one_month_before(date(2028, 3, 30)) == date(2028, 2, 29)


class TestDependabot:

    def test_matches_account_id(self):
        assert is_dependabot(User(id=DEPENDABOT_ID, login="dependabot[bot]", type="Bot"))

    def test_login_alone_does_not_match(self):
        assert not is_dependabot(User(id=1, login="dependabot[bot]"))

    def test_missing_user(self):
        assert not is_dependabot(None)


class TestIssues:

    def test_get_issues_uses_poller(self):
        client = MagicMock()
        client.list_issues = AsyncMock(return_value=[make_issue(1, created_at=T0)])
        storage = _make_storage(client, cursor_store=InMemoryCursorStore())
        storage.issue_poller._cursor = storage.issue_poller._cursor.model_copy(
            update={"since": T0 - timedelta(hours=1)}
        )

        issues = run_async(storage.get_issues())

        assert [issue.number for issue in issues] == [1]
        assert storage.issue_poller.since == T0

    def test_close_issue_targets_owning_repository(self):
        client = MagicMock()
        client.update_issue = AsyncMock(return_value=make_issue(7))
        storage = _make_storage(client)

        run_async(storage.close_issue(make_issue(7, repository=make_repository(owner="org", name="repo"))))

        client.update_issue.assert_awaited_once_with(
            "org", "repo", 7, IssueUpdate(state=ItemState.CLOSED)
        )

    def test_close_issue_without_repository_raises(self):
        client = MagicMock()
        client.update_issue = AsyncMock()
        storage = _make_storage(client)

        with pytest.raises(ValueError):
            run_async(storage.close_issue(make_issue(7)))

        client.update_issue.assert_not_awaited()

    def test_close_issue_propagates_api_error(self):
        client = MagicMock()
        client.update_issue = AsyncMock(
            side_effect=GitHubAPIError("GitHub API error: 403", status_code=403)
        )
        storage = _make_storage(client)

        with pytest.raises(GitHubAPIError):
            run_async(storage.close_issue(make_issue(7, repository=make_repository())))

    def test_repository_issues_default_to_one_month_back_at_midnight(self):
        client = MagicMock()
        client.list_repository_issues = AsyncMock(return_value=[])
        storage = _make_storage(client)

        run_async(storage.get_repository_issues("acme", "widgets"))

        since = client.list_repository_issues.await_args.kwargs["since"]
        assert (since.hour, since.minute, since.second) == (0, 0, 0)
        assert since.utcoffset() == timedelta(0)

    def test_repository_issues_explicit_since(self):
        client = MagicMock()
        client.list_repository_issues = AsyncMock(return_value=[])
        storage = _make_storage(client)

        run_async(storage.get_repository_issues("acme", "widgets", since=T0))

        client.list_repository_issues.assert_awaited_once_with("acme", "widgets", since=T0)


class TestContent:

    def test_create_or_update_file_reconciles(self):
        client = MagicMock()
        client.get_branch = AsyncMock(return_value=make_branch())
        client.get_tree_recursive = AsyncMock(return_value=make_tree([]))
        client.create_file = AsyncMock(return_value=make_change_set(commit_sha="c1"))
        client.update_file = AsyncMock()
        storage = _make_storage(client)

        result = run_async(
            storage.create_or_update_file("a.txt", "x", make_repository(), "main", "add a")
        )

        assert result.commit.sha == "c1"
        client.update_file.assert_not_awaited()

    def test_get_all_repositories_defaults_to_owner(self):
        client = MagicMock()
        client.list_organization_repositories = AsyncMock(return_value=[])
        storage = _make_storage(client)

        run_async(storage.get_all_repositories())
        run_async(storage.get_all_repositories("other"))

        assert [call.args[0] for call in client.list_organization_repositories.await_args_list] == [
            "acme",
            "other",
        ]

    def test_create_reference_passes_through(self):
        client = MagicMock()
        client.create_reference = AsyncMock()
        storage = _make_storage(client)
        reference = NewReference(ref="refs/heads/feature", sha="abc")

        run_async(storage.create_reference(42, reference))

        client.create_reference.assert_awaited_once_with(42, reference)


class TestPullRequests:

    def test_get_pull_requests_by_id_forwards_paging(self):
        client = MagicMock()
        client.list_pull_requests_by_id = AsyncMock(return_value=[])
        storage = _make_storage(client)

        run_async(storage.get_pull_requests_by_id(42, page_size=50, max_pages=2))

        client.list_pull_requests_by_id.assert_awaited_once_with(42, page_size=50, max_pages=2)


class TestMigrations:

    def test_save_migration_archive_writes_file(self, tmp_path):
        client = MagicMock()
        client.get_migration_archive = AsyncMock(return_value=b"archive")
        storage = _make_storage(client)

        path = run_async(storage.save_migration_archive("acme", 79, tmp_path / "out.tar.gz"))

        assert path.read_bytes() == b"archive"
        client.get_migration_archive.assert_awaited_once_with("acme", 79)


class TestLifecycle:

    def test_context_manager_closes_client(self):
        client = MagicMock()
        client.close = AsyncMock()

        async def use():
            async with _make_storage(client):
                pass

        run_async(use())

        client.close.assert_awaited_once()

    def test_from_settings(self):
        settings = HubStorageSettings(
            github_token="ghp_test",
            owner="acme",
            app_name="acme-bot",
            issue_lookback_days=7,
            minimum_interaction_interval_ms=500,
            cursor_name="acme-issues",
        )

        storage = GitHubStorage.from_settings(settings)

        assert storage.owner == "acme"
        assert storage.client.user_agent == "acme-bot"
        assert storage.minimum_interaction_interval == timedelta(milliseconds=500)
        assert storage.issue_poller.name == "acme-issues"
        expected = datetime.now(timezone.utc) - timedelta(days=7)
        assert abs(storage.issue_poller.since - expected) < timedelta(minutes=1)
        run_async(storage.close())
