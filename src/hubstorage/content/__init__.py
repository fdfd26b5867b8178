"""Idempotent file writes.

This module makes "write this content to this path on this branch" safe
to call whether or not the path already exists.
"""

from src.hubstorage.content.models import (
    CreateFileIntent,
    FileMutationIntent,
    UpdateFileIntent,
)
from src.hubstorage.content.reconciler import (
    ContentReconciler,
    find_tree_entry,
    plan_file_mutation,
)

__all__ = [
    "ContentReconciler",
    "CreateFileIntent",
    "FileMutationIntent",
    "UpdateFileIntent",
    "find_tree_entry",
    "plan_file_mutation",
]
