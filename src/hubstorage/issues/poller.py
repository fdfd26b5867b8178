"""Incremental issue polling.

IssuePoller returns only issues created since its last successful poll,
which bounds the volume of repeated polling against busy issue trackers.

The watermark advances to the newest ``created_at`` of the returned batch
rather than to the query time. The bound is inclusive, so the newest issue
of a batch is re-surfaced on every poll until a newer issue supersedes it.
An issue that the remote side reports late, with a creation time below the
current watermark, is never surfaced.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from src.hubstorage.github.client import GitHubClient
from src.hubstorage.github.models import Issue
from src.hubstorage.issues.cursor import (
    DEFAULT_LOOKBACK,
    CursorStore,
    InMemoryCursorStore,
    PollCursor,
)
from src.hubstorage.metrics import HubStorageMetrics


logger = logging.getLogger(__name__)


class IssuePoller:
    """Polls open issues newer than a persisted watermark.

    The poller is not safe for unsynchronized concurrent use: callers that
    poll from several workers must serialize ``poll()`` per instance.

    Attributes:
        client: The GitHub client used for the issue query.
        store: Where the cursor is persisted between polls.
        name: Cursor name within the store.
    """

    def __init__(
        self,
        client: GitHubClient,
        store: Optional[CursorStore] = None,
        name: str = "issues",
        lookback: timedelta = DEFAULT_LOOKBACK,
        metrics: Optional[HubStorageMetrics] = None,
        now: Optional[datetime] = None,
    ):
        """Initialize the poller.

        Args:
            client: The GitHub client.
            store: Cursor store; an InMemoryCursorStore when omitted.
            name: Cursor name within the store.
            lookback: Age of the initial watermark, fixed at construction.
            metrics: Optional metrics container.
            now: Construction time override, for tests.
        """
        self.client = client
        self.store = store if store is not None else InMemoryCursorStore()
        self.name = name
        self.metrics = metrics
        self._cursor = PollCursor.initial(name, lookback=lookback, now=now)

    @property
    def since(self) -> datetime:
        """The watermark as of the last load or successful poll."""
        return self._cursor.since

    async def _load_cursor(self) -> PollCursor:
        stored = await self.store.get(self.name)
        if stored is not None and stored.since > self._cursor.since:
            self._cursor = stored
        return self._cursor

    async def poll(self) -> List[Issue]:
        """Fetch open issues created at or after the watermark.

        An empty batch leaves the watermark unchanged. A non-empty batch
        moves it to the newest creation time in the batch.

        Returns:
            Issues created at or after the watermark.

        Raises:
            GitHubAPIError: If the issue query fails; the watermark is
                            left unchanged.
            CursorStoreError: If the advanced cursor cannot be saved; the
                              watermark is left unchanged.
        """
        cursor = await self._load_cursor()

        issues = await self.client.list_issues(
            since=cursor.since,
            filter="all",
            state="open",
        )

        # The remote "since" filter applies to updated_at, not created_at
        fresh = [issue for issue in issues if issue.created_at >= cursor.since]

        if not fresh:
            logger.debug(
                "No new issues",
                extra={"cursor": self.name, "since": cursor.since.isoformat()},
            )
            return []

        advanced = cursor.advance(issue.created_at for issue in fresh)
        await self.store.save(advanced)
        self._cursor = advanced

        logger.info(
            "Polled new issues",
            extra={
                "cursor": self.name,
                "issue_count": len(fresh),
                "previous_since": cursor.since.isoformat(),
                "since": advanced.since.isoformat(),
            },
        )

        if self.metrics is not None:
            self.metrics.record_poll(self.name, len(fresh), advanced.since)

        return fresh
