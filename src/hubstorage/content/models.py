"""File mutation intents.

The reconciler decides between two distinct contents-API mutations:
- CreateFileIntent: the path is absent from the branch tree
- UpdateFileIntent: the path exists; carries its current blob sha

FileMutationIntent is the tagged union of both, discriminated by ``kind``.
"""

from typing import Literal, Union

from pydantic import BaseModel, Field

from src.hubstorage.github.models import CreateFileRequest, UpdateFileRequest


class CreateFileIntent(BaseModel):
    """Write a file that does not yet exist on the branch."""

    kind: Literal["create"] = "create"
    path: str = Field(..., min_length=1)
    content: str
    branch: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)

    def to_request(self) -> CreateFileRequest:
        return CreateFileRequest(
            message=self.message,
            content=self.content,
            branch=self.branch,
        )


class UpdateFileIntent(BaseModel):
    """Overwrite an existing file, guarded by its current blob sha."""

    kind: Literal["update"] = "update"
    path: str = Field(..., min_length=1)
    content: str
    branch: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    base_sha: str = Field(
        ...,
        min_length=1,
        description="Blob sha the update is based on; stale values conflict",
    )

    def to_request(self) -> UpdateFileRequest:
        return UpdateFileRequest(
            message=self.message,
            content=self.content,
            sha=self.base_sha,
            branch=self.branch,
        )


FileMutationIntent = Union[CreateFileIntent, UpdateFileIntent]
