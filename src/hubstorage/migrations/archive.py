"""Organization migration exports.

Migrations move through pending → exporting → exported (or failed) on
the GitHub side. This module starts them, lists them, and downloads the
archive of an exported migration. Waiting for a migration to reach
``exported`` is left to the caller (see ``get_migration``).
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from src.hubstorage.github.client import GitHubClient
from src.hubstorage.github.models import Migration, StartMigrationRequest
from src.hubstorage.metrics import HubStorageMetrics


logger = logging.getLogger(__name__)


class MigrationArchiver:
    """Starts organization migrations and saves their archives locally."""

    def __init__(
        self,
        client: GitHubClient,
        metrics: Optional[HubStorageMetrics] = None,
    ):
        self.client = client
        self.metrics = metrics

    async def start_migration(
        self,
        organization: str,
        repository_names: Sequence[str],
        lock_repositories: bool = False,
        exclude_attachments: bool = False,
    ) -> Migration:
        """Request an export of the given repositories.

        Raises:
            ValueError: If no repositories are given.
            GitHubAPIError: If the request fails.
        """
        if not repository_names:
            raise ValueError("repository_names cannot be empty")

        request = StartMigrationRequest(
            repositories=list(repository_names),
            lock_repositories=lock_repositories,
            exclude_attachments=exclude_attachments,
        )
        return await self.client.start_migration(organization, request)

    async def list_migrations(self, organization: str) -> List[Migration]:
        return await self.client.list_migrations(organization)

    async def get_migration(self, organization: str, migration_id: int) -> Migration:
        return await self.client.get_migration(organization, migration_id)

    async def download_archive(
        self,
        organization: str,
        migration_id: int,
        destination: Union[str, Path],
    ) -> Path:
        """Download a migration archive and write it to ``destination``.

        Any existing file at ``destination`` is overwritten. The archive
        is written as received; no checksum is verified.

        Args:
            organization: The organization that owns the migration.
            migration_id: The migration identifier.
            destination: Local file path to write.

        Returns:
            The destination path.

        Raises:
            GitHubAPIError: If the download fails; nothing is written.
            OSError: If the file cannot be written.
        """
        archive = await self.client.get_migration_archive(organization, migration_id)

        path = Path(destination)
        path.write_bytes(archive)

        logger.info(
            "Saved migration archive",
            extra={
                "organization": organization,
                "migration_id": migration_id,
                "path": str(path),
                "size_bytes": len(archive),
            },
        )

        if self.metrics is not None:
            self.metrics.record_archive_download(len(archive))

        return path
