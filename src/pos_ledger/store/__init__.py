"""Remote record store clients.

- **base**: RecordStore interface, TableHandle and Metadata types
- **memory**: InMemoryRecordStore for tests and local runs
- **sheets**: GoogleSheetsRecordStore on the Sheets v4 REST API
"""

from pos_ledger.store.base import Metadata, RecordStore, Row, RowPredicate, TableHandle
from pos_ledger.store.memory import InMemoryRecordStore
from pos_ledger.store.sheets import GoogleSheetsRecordStore

__all__ = [
    "GoogleSheetsRecordStore",
    "InMemoryRecordStore",
    "Metadata",
    "RecordStore",
    "Row",
    "RowPredicate",
    "TableHandle",
]
