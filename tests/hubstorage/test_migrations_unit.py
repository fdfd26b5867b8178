"""Unit tests for migration export and archive download."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from prometheus_client import CollectorRegistry

from src.hubstorage.github.client import GitHubAPIError
from src.hubstorage.github.models import Migration, MigrationState, StartMigrationRequest
from src.hubstorage.metrics import HubStorageMetrics
from src.hubstorage.migrations.archive import MigrationArchiver


def run_async(coro):
    return asyncio.run(coro)


ARCHIVE = bytes(range(256)) * 64


def _make_client(archive: bytes = ARCHIVE) -> MagicMock:
    client = MagicMock()
    client.get_migration_archive = AsyncMock(return_value=archive)
    client.start_migration = AsyncMock(
        return_value=Migration(id=79, state=MigrationState.PENDING)
    )
    client.list_migrations = AsyncMock(return_value=[])
    client.get_migration = AsyncMock(
        return_value=Migration(id=79, state=MigrationState.EXPORTED)
    )
    return client


class TestDownloadArchive:

    def test_writes_exact_bytes(self, tmp_path):
        destination = tmp_path / "migration.tar.gz"
        archiver = MigrationArchiver(_make_client())

        result = run_async(archiver.download_archive("acme", 79, destination))

        assert result == destination
        assert destination.read_bytes() == ARCHIVE

    def test_overwrites_existing_file(self, tmp_path):
        destination = tmp_path / "migration.tar.gz"
        destination.write_bytes(b"previous archive that is much longer than the new one")

        run_async(MigrationArchiver(_make_client(b"new")).download_archive("acme", 79, str(destination)))

        assert destination.read_bytes() == b"new"

    def test_fetch_failure_leaves_file_untouched(self, tmp_path):
        destination = tmp_path / "migration.tar.gz"
        destination.write_bytes(b"keep")
        client = _make_client()
        client.get_migration_archive.side_effect = GitHubAPIError(
            "GitHub API error: 404", status_code=404
        )

        with pytest.raises(GitHubAPIError):
            run_async(MigrationArchiver(client).download_archive("acme", 79, destination))

        assert destination.read_bytes() == b"keep"

    def test_write_failure_propagates(self, tmp_path):
        destination = tmp_path / "missing-dir" / "migration.tar.gz"

        with pytest.raises(OSError):
            run_async(MigrationArchiver(_make_client()).download_archive("acme", 79, destination))

    def test_records_archive_size(self, tmp_path):
        registry = CollectorRegistry()
        archiver = MigrationArchiver(_make_client(), metrics=HubStorageMetrics(registry))

        run_async(archiver.download_archive("acme", 79, tmp_path / "a.tar.gz"))

        assert registry.get_sample_value("hubstorage_migration_archive_bytes_sum") == len(ARCHIVE)


class TestStartMigration:

    def test_builds_request(self):
        client = _make_client()

        migration = run_async(
            MigrationArchiver(client).start_migration(
                "acme", ("widgets", "gadgets"), lock_repositories=True
            )
        )

        assert migration.id == 79
        client.start_migration.assert_awaited_once_with(
            "acme",
            StartMigrationRequest(
                repositories=["widgets", "gadgets"],
                lock_repositories=True,
                exclude_attachments=False,
            ),
        )

    def test_requires_repositories(self):
        client = _make_client()

        with pytest.raises(ValueError):
            run_async(MigrationArchiver(client).start_migration("acme", []))

        client.start_migration.assert_not_awaited()

    def test_get_migration_passes_through(self):
        client = _make_client()

        migration = run_async(MigrationArchiver(client).get_migration("acme", 79))

        assert migration.state == MigrationState.EXPORTED
        client.get_migration.assert_awaited_once_with("acme", 79)
