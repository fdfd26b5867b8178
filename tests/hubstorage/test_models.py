"""Tests for GitHub payload models."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from src.hubstorage.github.models import (
    Issue,
    ItemState,
    Migration,
    MigrationState,
    NewReference,
    StartMigrationRequest,
    Tree,
    UpdateFileRequest,
)


class TestIssue:

    def test_parses_api_payload_and_ignores_extra_fields(self):
        issue = Issue.model_validate(
            {
                "id": 1,
                "number": 1347,
                "title": "Found a bug",
                "state": "open",
                "created_at": "2011-04-22T13:33:48Z",
                "locked": False,
                "labels": [{"name": "bug"}],
                "user": {"id": 1, "login": "octocat", "type": "User", "site_admin": False},
                "repository": {
                    "id": 1296269,
                    "name": "Hello-World",
                    "full_name": "octocat/Hello-World",
                    "owner": {"id": 1, "login": "octocat"},
                },
            }
        )

        assert issue.state == ItemState.OPEN
        assert issue.created_at.utcoffset() == timedelta(0)
        assert issue.repository.owner.login == "octocat"

    def test_number_must_be_positive(self):
        with pytest.raises(ValidationError):
            Issue(id=1, number=0, created_at="2026-03-01T12:00:00Z")


class TestNewReference:

    def test_accepts_branch_ref(self):
        assert NewReference(ref="refs/heads/feature", sha="abc").ref == "refs/heads/feature"

    @pytest.mark.parametrize("ref", ["heads/feature", "refs/feature", "feature"])
    def test_rejects_unqualified_ref(self, ref):
        with pytest.raises(ValidationError):
            NewReference(ref=ref, sha="abc")


class TestFileRequests:

    def test_update_requires_sha(self):
        with pytest.raises(ValidationError):
            UpdateFileRequest(message="m", content="x", sha="")

    def test_update_branch_is_optional(self):
        assert UpdateFileRequest(message="m", content="x", sha="h1").branch is None


class TestTree:

    def test_truncated_defaults_false(self):
        tree = Tree.model_validate({"sha": "abc", "tree": [{"path": "a.txt", "sha": "h1"}]})
        assert not tree.truncated
        assert tree.tree[0].type == "blob"


class TestMigration:

    def test_parses_state(self):
        migration = Migration.model_validate({"id": 79, "state": "exporting"})
        assert migration.state == MigrationState.EXPORTING

    def test_start_request_requires_repositories(self):
        with pytest.raises(ValidationError):
            StartMigrationRequest(repositories=[])
