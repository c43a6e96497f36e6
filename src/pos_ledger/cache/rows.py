"""Row cache: per-table materialized rows with TTL and explicit invalidation.

Reads within the TTL are served from memory. Mutations made through the
service call ``invalidate`` so the next read goes back to the store.

No lock guards the fetch-and-store sequence. Concurrent readers on a cold
table may each fetch; fetches are read-only so the last one stored wins.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from pos_ledger.cache.entry import CacheEntry
from pos_ledger.config import DEFAULT_ROW_TTL
from pos_ledger.exceptions import RemoteUnavailable

if TYPE_CHECKING:
    from pos_ledger.cache.metadata import MetadataCache
    from pos_ledger.schemas import TableSchema
    from pos_ledger.store.base import Row

logger = logging.getLogger(__name__)


class RowCache:
    """Cache of table name to the rows last fetched for it.

    Example:
        >>> from pos_ledger.cache.metadata import MetadataCache
        >>> from pos_ledger.schemas import STOCK
        >>> from pos_ledger.store import InMemoryRecordStore
        >>> rows = RowCache(MetadataCache(InMemoryRecordStore()))
        >>> rows.get_rows("Stock", STOCK)
        ()

    """

    def __init__(
        self,
        metadata: MetadataCache,
        ttl: float = DEFAULT_ROW_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.metadata = metadata
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry[tuple[Row, ...]]] = {}

    def get_rows(self, table_name: str, schema: TableSchema) -> tuple[Row, ...]:
        """Return the rows of a table, refetching when absent or expired.

        Args:
            table_name: Table to read.
            schema: Schema used to create the table if it does not exist yet.

        Returns:
            Rows in store order. The same tuple is returned until the entry
            expires or is invalidated.

        Raises:
            RemoteUnavailable: If the fetch fails. Any earlier entry is kept.

        """
        now = self._clock()
        entry = self._entries.get(table_name)
        if entry is not None and entry.is_fresh(now, self.ttl):
            logger.debug("Row cache hit for %s (age %.1fs)", table_name, entry.age(now))
            return entry.value

        logger.debug("Row cache miss for %s", table_name)
        try:
            handle = self.metadata.get_table(table_name, schema)
            rows = tuple(self.metadata.store.fetch_rows(handle))
        except RemoteUnavailable as e:
            logger.error("Failed to fetch rows for %s: %s", table_name, e)
            raise

        self._entries[table_name] = CacheEntry(value=rows, fetched_at=self._clock())
        logger.info("Cached %d row(s) for %s", len(rows), table_name)
        return rows

    def invalidate(self, table_name: str) -> None:
        """Drop the entry for a table. Does nothing if there is none."""
        if self._entries.pop(table_name, None) is not None:
            logger.debug("Invalidated row cache for %s", table_name)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def __contains__(self, table_name: str) -> bool:
        return table_name in self._entries
