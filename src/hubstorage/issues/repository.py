"""PostgreSQL store for issue poll cursors.

This module implements the CursorStore protocol using asyncpg, so poll
watermarks survive process restarts. It provides:
- Connection pooling
- Monotonic upserts (the stored watermark never moves backwards)

Expected schema (see CURSOR_TABLE_DDL):

    poll_cursors(name TEXT PRIMARY KEY, since TIMESTAMPTZ, updated_at TIMESTAMPTZ)
"""

import logging
from typing import Any, Optional

import asyncpg

from src.hubstorage.issues.cursor import CursorStoreError, PollCursor


logger = logging.getLogger(__name__)


CURSOR_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS poll_cursors (
    name TEXT PRIMARY KEY,
    since TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
)
"""


class PostgresCursorStore:
    """PostgreSQL implementation of the CursorStore protocol.

    Attributes:
        connection_string: PostgreSQL connection URL.
        min_pool_size: Minimum connections in pool.
        max_pool_size: Maximum connections in pool.

    Example:
        >>> async with PostgresCursorStore("postgresql://...") as store:
        ...     cursor = await store.get("issues")
    """

    def __init__(
        self,
        connection_string: str,
        min_pool_size: int = 1,
        max_pool_size: int = 4,
    ):
        self.connection_string = connection_string
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool, raising if not connected.

        Raises:
            CursorStoreError: If the pool is not initialized.
        """
        if self._pool is None:
            raise CursorStoreError(
                "Database pool not initialized. Call connect() first."
            )
        return self._pool

    async def connect(self) -> None:
        """Create the connection pool and ensure the cursor table exists.

        Raises:
            CursorStoreError: If connection fails.
        """
        if self._pool is not None:
            logger.warning("Connection pool already initialized")
            return

        try:
            logger.info(
                "Connecting to PostgreSQL",
                extra={
                    "min_pool_size": self.min_pool_size,
                    "max_pool_size": self.max_pool_size,
                },
            )
            self._pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
            )
            async with self._pool.acquire() as conn:
                await conn.execute(CURSOR_TABLE_DDL)
            logger.info("PostgreSQL connection pool established")
        except Exception as e:
            logger.error(
                "Failed to connect to PostgreSQL",
                extra={"error": str(e)},
            )
            raise CursorStoreError(
                f"Failed to connect to PostgreSQL: {e}",
                original_error=e,
            ) from e

    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            logger.info("Closing PostgreSQL connection pool")
            await self._pool.close()
            self._pool = None

    async def __aenter__(self) -> "PostgresCursorStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()

    async def get(self, name: str) -> Optional[PollCursor]:
        """Get a cursor by name.

        Raises:
            CursorStoreError: If the query fails.
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT name, since, updated_at
                    FROM poll_cursors
                    WHERE name = $1
                    """,
                    name,
                )
        except CursorStoreError:
            raise
        except Exception as e:
            logger.error(
                "Failed to load poll cursor",
                extra={"cursor": name, "error": str(e)},
            )
            raise CursorStoreError(
                f"Failed to load poll cursor: {e}",
                original_error=e,
            ) from e

        if row is None:
            return None

        return PollCursor(
            name=row["name"],
            since=row["since"],
            updated_at=row["updated_at"],
        )

    async def save(self, cursor: PollCursor) -> None:
        """Upsert a cursor, keeping the later of the stored and given watermark.

        Raises:
            CursorStoreError: If the write fails.
        """
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO poll_cursors (name, since, updated_at)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (name) DO UPDATE SET
                        since = GREATEST(poll_cursors.since, EXCLUDED.since),
                        updated_at = EXCLUDED.updated_at
                    """,
                    cursor.name,
                    cursor.since,
                    cursor.updated_at,
                )
        except CursorStoreError:
            raise
        except Exception as e:
            logger.error(
                "Failed to save poll cursor",
                extra={"cursor": cursor.name, "error": str(e)},
            )
            raise CursorStoreError(
                f"Failed to save poll cursor: {e}",
                original_error=e,
            ) from e

        logger.info(
            "Saved poll cursor",
            extra={"cursor": cursor.name, "since": cursor.since.isoformat()},
        )
