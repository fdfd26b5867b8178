"""Issue polling and state transitions.

This module tracks which issues have already been seen:
- PollCursor watermarks, persisted through a CursorStore
- IssuePoller returning only issues created since the last poll
- close_issue for closing issues in their owning repository
"""

from src.hubstorage.issues.closer import close_issue, close_issue_by_number
from src.hubstorage.issues.cursor import (
    DEFAULT_LOOKBACK,
    CursorStore,
    CursorStoreError,
    InMemoryCursorStore,
    PollCursor,
)
from src.hubstorage.issues.poller import IssuePoller
from src.hubstorage.issues.repository import PostgresCursorStore

__all__ = [
    "DEFAULT_LOOKBACK",
    "CursorStore",
    "CursorStoreError",
    "InMemoryCursorStore",
    "IssuePoller",
    "PollCursor",
    "PostgresCursorStore",
    "close_issue",
    "close_issue_by_number",
]
