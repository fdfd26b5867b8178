"""Idempotent create-or-update of repository files.

The contents API has no upsert: creating a file fails when the path
exists, and updating requires the file's current blob sha. The reconciler
reads the branch tree once, looks the path up locally, and issues exactly
one of the two mutations. When GitHub truncates the tree
listing, a path missing from it is looked up through the contents API
before a create is chosen.

The tree read and the mutation are not atomic. Another writer can create
or change the file in between; GitHub then rejects the mutation (422 on
create, 409 on update) and the error reaches the caller unchanged.
"""

import logging
from typing import Optional

from src.hubstorage.content.models import (
    CreateFileIntent,
    FileMutationIntent,
    UpdateFileIntent,
)
from src.hubstorage.github.client import GitHubAPIError, GitHubClient
from src.hubstorage.github.models import (
    ContentChangeSet,
    Repository,
    Tree,
    TreeEntry,
)
from src.hubstorage.metrics import HubStorageMetrics


logger = logging.getLogger(__name__)


def find_tree_entry(tree: Tree, path: str) -> Optional[TreeEntry]:
    """Find the entry with exactly this path; the first match wins."""
    for entry in tree.tree:
        if entry.path == path:
            return entry
    return None


def plan_file_mutation(
    tree: Tree,
    path: str,
    content: str,
    branch: str,
    message: str,
) -> FileMutationIntent:
    """Choose the mutation that writes ``content`` to ``path``.

    Args:
        tree: Recursive tree of the branch head.
        path: Target path relative to the repository root (case-sensitive).
        content: File content to write.
        branch: Target branch.
        message: Commit message.

    Returns:
        An UpdateFileIntent carrying the entry's sha when the path is in
        the tree, a CreateFileIntent otherwise.
    """
    entry = find_tree_entry(tree, path)
    if entry is None:
        return CreateFileIntent(
            path=path,
            content=content,
            branch=branch,
            message=message,
        )
    return UpdateFileIntent(
        path=path,
        content=content,
        branch=branch,
        message=message,
        base_sha=entry.sha,
    )


class ContentReconciler:
    """Writes file content to a branch whether or not the path exists.

    Attributes:
        client: The GitHub client.
        metrics: Optional metrics container.

    Example:
        >>> reconciler = ContentReconciler(client)
        >>> change_set = await reconciler.reconcile(
        ...     "docs/readme.md", "new text", repository, "main", "update docs"
        ... )
    """

    def __init__(
        self,
        client: GitHubClient,
        metrics: Optional[HubStorageMetrics] = None,
    ):
        self.client = client
        self.metrics = metrics

    async def reconcile(
        self,
        path: str,
        content: str,
        repository: Repository,
        branch: str,
        commit_message: str,
    ) -> ContentChangeSet:
        """Create or update ``path`` on ``branch`` with ``content``.

        Args:
            path: Target path relative to the repository root. A leading
                  "/" is ignored.
            content: File content to write.
            repository: The target repository.
            branch: Target branch name.
            commit_message: Message of the resulting commit.

        Returns:
            The change set of the mutation that ran.

        Raises:
            ValueError: If the path is empty.
            GitHubAPIError: If any remote call fails, including conflicts
                            from concurrent writers. Nothing is retried.
        """
        # Tree entries carry no leading slash
        path = path.lstrip("/")
        if not path:
            raise ValueError("path cannot be empty")

        head = await self.client.get_branch(repository.id, branch)
        tree = await self.client.get_tree_recursive(repository.id, head.commit.sha)

        intent = plan_file_mutation(tree, path, content, branch, commit_message)
        if tree.truncated and isinstance(intent, CreateFileIntent):
            intent = await self._check_untracked(repository, intent)

        logger.info(
            "Reconciling file",
            extra={
                "repository_id": repository.id,
                "path": path,
                "branch": branch,
                "head_sha": head.commit.sha,
                "kind": intent.kind,
            },
        )

        if isinstance(intent, UpdateFileIntent):
            change_set = await self._update(repository, intent)
        else:
            change_set = await self.client.create_file(
                repository.id,
                intent.path,
                intent.to_request(),
            )

        if self.metrics is not None:
            self.metrics.record_file_mutation(
                repository.full_name or f"{repository.owner.login}/{repository.name}",
                intent.kind,
            )

        return change_set

    async def _check_untracked(
        self,
        repository: Repository,
        intent: CreateFileIntent,
    ) -> FileMutationIntent:
        """Look a path up directly when the tree listing was truncated.

        A truncated tree cannot prove absence, so the contents API decides.
        """
        try:
            existing = await self.client.get_file_contents(
                repository.id,
                intent.path,
                ref=intent.branch,
            )
        except GitHubAPIError as e:
            if e.is_not_found:
                return intent
            raise

        match = next((item for item in existing if item.path == intent.path), None)
        if match is None:
            return intent

        logger.info(
            "File missing from truncated tree exists on branch",
            extra={
                "repository_id": repository.id,
                "path": intent.path,
                "sha": match.sha,
            },
        )
        return UpdateFileIntent(
            path=intent.path,
            content=intent.content,
            branch=intent.branch,
            message=intent.message,
            base_sha=match.sha,
        )

    async def _update(
        self,
        repository: Repository,
        intent: UpdateFileIntent,
    ) -> ContentChangeSet:
        # Confirms the file is readable at the branch before overwriting it
        existing = await self.client.get_file_contents(
            repository.id,
            intent.path,
            ref=intent.branch,
        )
        current_sha = existing[0].sha if existing else None
        if current_sha is not None and current_sha != intent.base_sha:
            logger.warning(
                "File changed since tree was read",
                extra={
                    "repository_id": repository.id,
                    "path": intent.path,
                    "tree_sha": intent.base_sha,
                    "current_sha": current_sha,
                },
            )

        return await self.client.update_file(
            repository.id,
            intent.path,
            intent.to_request(),
        )
