"""GitHub API client and payload models.

This module provides the remote host collaborator of the storage facade:
- An async httpx client with retry and rate limit handling
- Pydantic models for issues, trees, contents and migrations
"""

from src.hubstorage.github.client import (
    GitHubAPIError,
    GitHubClient,
    RateLimitError,
)
from src.hubstorage.github.models import (
    Branch,
    CommitRef,
    ContentChangeSet,
    CreateFileRequest,
    FileContent,
    Issue,
    IssueUpdate,
    ItemState,
    Migration,
    MigrationState,
    NewReference,
    PullRequest,
    Repository,
    StartMigrationRequest,
    Tree,
    TreeEntry,
    UpdateFileRequest,
    User,
)

__all__ = [
    # Client
    "GitHubAPIError",
    "GitHubClient",
    "RateLimitError",
    # Models
    "Branch",
    "CommitRef",
    "ContentChangeSet",
    "CreateFileRequest",
    "FileContent",
    "Issue",
    "IssueUpdate",
    "ItemState",
    "Migration",
    "MigrationState",
    "NewReference",
    "PullRequest",
    "Repository",
    "StartMigrationRequest",
    "Tree",
    "TreeEntry",
    "UpdateFileRequest",
    "User",
]
