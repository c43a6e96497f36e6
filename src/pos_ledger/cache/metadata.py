"""Metadata cache: the store's table listing held for a TTL window."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from pos_ledger.cache.entry import CacheEntry
from pos_ledger.config import DEFAULT_METADATA_TTL

if TYPE_CHECKING:
    from pos_ledger.schemas import TableSchema
    from pos_ledger.store.base import Metadata, RecordStore, TableHandle

logger = logging.getLogger(__name__)


class MetadataCache:
    """Single-slot cache of the store's table listing.

    The slot is refetched when it is empty or at least ``ttl`` seconds old.
    Fetch failures propagate as RemoteUnavailable; there is no retry.

    Example:
        >>> from pos_ledger.store import InMemoryRecordStore
        >>> cache = MetadataCache(InMemoryRecordStore())
        >>> cache.get_metadata().tables
        {}

    """

    def __init__(
        self,
        store: RecordStore,
        ttl: float = DEFAULT_METADATA_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self._clock = clock
        self._entry: CacheEntry[Metadata] | None = None

    def get_metadata(self) -> Metadata:
        """Return the cached listing, fetching it first if absent or expired."""
        now = self._clock()
        if self._entry is not None and self._entry.is_fresh(now, self.ttl):
            logger.debug("Metadata cache hit (age %.1fs)", self._entry.age(now))
            return self._entry.value

        logger.info("Fetching store metadata")
        metadata = self.store.load_metadata()
        self._entry = CacheEntry(value=metadata, fetched_at=self._clock())
        return metadata

    def get_table(self, name: str, schema: TableSchema) -> TableHandle:
        """Resolve a table handle, creating the table from schema if absent.

        Args:
            name: Table name.
            schema: Schema whose header fields are used on creation.

        Returns:
            Handle of the table.

        """
        handle = self.get_metadata().tables.get(name)
        if handle is not None:
            return handle

        logger.info("Table %s not in metadata, creating it", name)
        handle = self.store.get_or_create_table(name, list(schema.header_fields))
        # The listing no longer reflects the store
        self.invalidate()
        return handle

    def invalidate(self) -> None:
        """Drop the cached listing."""
        self._entry = None
