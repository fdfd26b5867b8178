"""GitHub API payload models.

This module defines the pydantic models for the GitHub REST API resources
the storage facade reads and writes:
- Issues, repositories, users
- Branches, commits, git trees and references
- File contents and content change sets
- Pull requests and organization migrations

Models ignore unknown fields, so full API payloads can be validated
directly with ``Model.model_validate(response.json())``.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ItemState(str, Enum):
    """State of an issue or pull request."""

    OPEN = "open"
    CLOSED = "closed"


class MigrationState(str, Enum):
    """Lifecycle of an organization migration export.

    Stage Flow:
        pending → exporting → exported

    A migration that cannot be exported ends in ``failed``.
    """

    PENDING = "pending"
    EXPORTING = "exporting"
    EXPORTED = "exported"
    FAILED = "failed"


class User(BaseModel):
    """A GitHub user or organization account."""

    id: int = Field(..., description="Numeric account identifier")
    login: str = Field(..., min_length=1, description="Account login name")
    type: Optional[str] = Field(
        default=None,
        description='Account type, e.g. "User", "Organization" or "Bot"',
    )


class Repository(BaseModel):
    """A GitHub repository.

    Attributes:
        id: Numeric repository identifier, used by the /repositories/{id} routes.
        name: Repository name without owner prefix.
        full_name: Repository path in format "{owner}/{repo}".
        owner: Owning user or organization.
        default_branch: Name of the default branch.
    """

    id: int = Field(..., description="Numeric repository identifier")
    name: str = Field(..., min_length=1, description="Repository name")
    full_name: Optional[str] = Field(
        default=None,
        description='Repository path in format "{owner}/{repo}"',
    )
    owner: User = Field(..., description="Owning user or organization")
    default_branch: Optional[str] = Field(
        default=None,
        description="Name of the default branch",
    )


class Issue(BaseModel):
    """A GitHub issue.

    The ``repository`` field is present on issues returned by the
    ``GET /issues`` endpoint and absent on per-repository listings.
    """

    id: int = Field(..., description="Global issue identifier")
    number: int = Field(..., gt=0, description="Issue number within its repository")
    title: str = Field(default="", description="Issue title")
    state: ItemState = Field(default=ItemState.OPEN, description="Issue state")
    created_at: datetime = Field(..., description="When the issue was created")
    updated_at: Optional[datetime] = Field(default=None)
    user: Optional[User] = Field(default=None, description="Issue author")
    repository: Optional[Repository] = Field(
        default=None,
        description="Owning repository, when included in the payload",
    )
    html_url: Optional[str] = Field(default=None)


class IssueUpdate(BaseModel):
    """Body of an issue update request."""

    state: Optional[ItemState] = None
    title: Optional[str] = None
    body: Optional[str] = None


class IssueComment(BaseModel):
    """A comment posted on an issue or pull request."""

    id: int
    body: str = ""
    user: Optional[User] = None
    created_at: Optional[datetime] = None
    html_url: Optional[str] = None


class CommitRef(BaseModel):
    """A reference to a commit by sha."""

    sha: str = Field(..., min_length=1, description="Commit sha")
    url: Optional[str] = None


class Branch(BaseModel):
    """A branch and its head commit."""

    name: str = Field(..., min_length=1)
    commit: CommitRef = Field(..., description="Head commit of the branch")
    protected: bool = False


class TreeEntry(BaseModel):
    """One entry of a git tree listing.

    ``sha`` is the blob sha GitHub uses as the content hash for
    optimistic-concurrency checks on file updates.
    """

    path: str = Field(..., description="Path relative to the repository root")
    sha: str = Field(..., min_length=1, description="Object sha of the entry")
    type: str = Field(default="blob", description='"blob", "tree" or "commit"')
    mode: Optional[str] = None
    size: Optional[int] = None


class Tree(BaseModel):
    """A recursive git tree listing for a commit."""

    sha: str
    tree: List[TreeEntry] = Field(default_factory=list)
    truncated: bool = Field(
        default=False,
        description="True when GitHub cut the listing short",
    )


class FileContent(BaseModel):
    """File metadata returned by the contents API."""

    name: str = ""
    path: str
    sha: str
    size: Optional[int] = None
    type: str = "file"
    encoding: Optional[str] = None
    content: Optional[str] = None
    html_url: Optional[str] = None


class Commit(BaseModel):
    """Commit details included in a content change set."""

    sha: str
    message: Optional[str] = None
    html_url: Optional[str] = None


class ContentChangeSet(BaseModel):
    """Result of a successful file create or update.

    Attributes:
        content: Metadata of the written file (new blob sha).
        commit: The commit that recorded the change.
    """

    content: Optional[FileContent] = None
    commit: Commit


class CreateFileRequest(BaseModel):
    """Parameters for creating a file through the contents API."""

    message: str = Field(..., min_length=1, description="Commit message")
    content: str = Field(..., description="Plain-text file content")
    branch: str = Field(..., min_length=1, description="Target branch")


class UpdateFileRequest(BaseModel):
    """Parameters for updating a file through the contents API.

    ``sha`` must be the current blob sha of the file; GitHub rejects the
    update with 409 Conflict when it is stale.
    """

    message: str = Field(..., min_length=1, description="Commit message")
    content: str = Field(..., description="Plain-text file content")
    sha: str = Field(..., min_length=1, description="Current blob sha of the file")
    branch: Optional[str] = Field(
        default=None,
        description="Target branch; the default branch when omitted",
    )


class PullRequest(BaseModel):
    """A pull request."""

    id: int
    number: int = Field(..., gt=0)
    title: str = ""
    state: ItemState = ItemState.OPEN
    user: Optional[User] = None
    created_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    html_url: Optional[str] = None


class GitHubCommit(BaseModel):
    """A commit as returned by the repository commits listing."""

    sha: str
    html_url: Optional[str] = None
    author: Optional[User] = None
    committer: Optional[User] = None


class ReferenceObject(BaseModel):
    """The object a git reference points at."""

    sha: str
    type: str = "commit"


class Reference(BaseModel):
    """A git reference such as ``refs/heads/main``."""

    ref: str
    object: ReferenceObject


class NewReference(BaseModel):
    """Body of a create-reference request."""

    ref: str = Field(..., description='Fully qualified ref, e.g. "refs/heads/feature"')
    sha: str = Field(..., min_length=1, description="Commit sha the ref points at")

    @field_validator("ref")
    @classmethod
    def validate_ref(cls, v: str) -> str:
        """Validate that the reference is fully qualified."""
        if not v.startswith("refs/") or v.count("/") < 2:
            raise ValueError("ref must be fully qualified, e.g. refs/heads/name")
        return v


class Migration(BaseModel):
    """An organization migration (bulk export) job."""

    id: int
    guid: Optional[str] = None
    state: MigrationState = MigrationState.PENDING
    lock_repositories: bool = False
    exclude_attachments: bool = False
    repositories: List[Repository] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StartMigrationRequest(BaseModel):
    """Body of a start-migration request."""

    repositories: List[str] = Field(..., min_length=1)
    lock_repositories: bool = False
    exclude_attachments: bool = False
