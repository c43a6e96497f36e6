"""Read-through caches in front of the record store.

- **metadata**: MetadataCache, table listing with a 60s default TTL
- **rows**: RowCache, per-table rows with a 30s default TTL
"""

from pos_ledger.cache.entry import CacheEntry
from pos_ledger.cache.metadata import MetadataCache
from pos_ledger.cache.rows import RowCache

__all__ = ["CacheEntry", "MetadataCache", "RowCache"]
