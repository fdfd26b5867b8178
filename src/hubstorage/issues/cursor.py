"""Issue poll cursor model and persistence protocol.

This module defines:
- PollCursor: the watermark dividing already-seen issues from new ones
- CursorStore: the protocol for persisting cursors across restarts
- InMemoryCursorStore: the default store, scoped to the process lifetime

The watermark only moves forward. It advances to the newest creation
time observed in a successful poll, never to the wall-clock query time.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field, field_validator


logger = logging.getLogger(__name__)


DEFAULT_LOOKBACK = timedelta(days=14)


class CursorStoreError(Exception):
    """Raised when a cursor store operation fails.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


class PollCursor(BaseModel):
    """Watermark for incremental issue polling.

    Attributes:
        name: Identifier of the cursor, one per poller.
        since: Issues created at or after this time are not yet seen.
        updated_at: When the cursor last advanced (UTC).
    """

    name: str = Field(..., min_length=1, description="Cursor identifier")

    since: datetime = Field(
        ...,
        description="Watermark; issues created before this time were already seen",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the cursor last advanced (UTC timezone)",
    )

    @field_validator("since")
    @classmethod
    def validate_since(cls, v: datetime) -> datetime:
        """Normalize naive datetimes to UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def initial(
        cls,
        name: str,
        lookback: timedelta = DEFAULT_LOOKBACK,
        now: Optional[datetime] = None,
    ) -> "PollCursor":
        """Create a cursor whose watermark is ``lookback`` before now."""
        now = now or datetime.now(timezone.utc)
        return cls(name=name, since=now - lookback, updated_at=now)

    def advance(self, created_at: Iterable[datetime]) -> "PollCursor":
        """Return a cursor moved to the newest of the given creation times.

        The result is never earlier than the current watermark. An empty
        iterable returns this cursor unchanged.
        """
        newest = max(created_at, default=None)
        if newest is None or newest <= self.since:
            return self
        return self.model_copy(
            update={"since": newest, "updated_at": datetime.now(timezone.utc)}
        )


@runtime_checkable
class CursorStore(Protocol):
    """Protocol for poll cursor persistence.

    Implementations must keep stored watermarks monotonic: saving a cursor
    older than the stored one leaves the stored value in place.
    """

    async def get(self, name: str) -> Optional[PollCursor]:
        """Get a cursor by name.

        Returns:
            The stored cursor, or None if none was saved yet.
        """
        ...

    async def save(self, cursor: PollCursor) -> None:
        """Persist a cursor.

        Raises:
            CursorStoreError: If the store cannot be written.
        """
        ...


class InMemoryCursorStore:
    """CursorStore kept in process memory; lost on restart."""

    def __init__(self) -> None:
        self._cursors: Dict[str, PollCursor] = {}

    async def get(self, name: str) -> Optional[PollCursor]:
        return self._cursors.get(name)

    async def save(self, cursor: PollCursor) -> None:
        existing = self._cursors.get(cursor.name)
        if existing is not None and existing.since > cursor.since:
            logger.debug(
                "Ignoring stale cursor save",
                extra={
                    "cursor": cursor.name,
                    "stored_since": existing.since.isoformat(),
                    "since": cursor.since.isoformat(),
                },
            )
            return
        self._cursors[cursor.name] = cursor
