"""In-process record store.

Keeps tables as ordered lists of string rows. Used by the tests and the
example scripts; it also counts calls so cache behavior can be asserted.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence

from pos_ledger.exceptions import RemoteUnavailable
from pos_ledger.store.base import Metadata, RecordStore, Row, RowPredicate, TableHandle

logger = logging.getLogger(__name__)


class InMemoryRecordStore(RecordStore):
    """Record store holding tables in memory.

    Example:
        >>> store = InMemoryRecordStore()
        >>> handle = store.get_or_create_table("Stock", ["name", "quantity"])
        >>> store.append_row(handle, {"name": "Flour", "quantity": "1000"})
        >>> store.fetch_rows(handle)
        [{'name': 'Flour', 'quantity': '1000'}]

    Attributes:
        calls: Counter of method name to number of calls.
        fail_next: Number of upcoming calls that raise RemoteUnavailable.
    """

    def __init__(self, title: str = "In-memory ledger") -> None:
        self.title = title
        self._headers: dict[str, list[str]] = {}
        self._rows: dict[str, list[Row]] = {}
        self.calls: Counter[str] = Counter()
        self.fail_next = 0

    def _enter(self, method: str) -> None:
        self.calls[method] += 1
        if self.fail_next > 0:
            self.fail_next -= 1
            raise RemoteUnavailable(f"Simulated store failure in {method}")

    def _check(self, handle: TableHandle) -> None:
        if handle.name not in self._rows:
            raise RemoteUnavailable(f"Table '{handle.name}' not found")

    def load_metadata(self) -> Metadata:
        self._enter("load_metadata")
        tables = {name: TableHandle(name=name, table_id=index) for index, name in enumerate(self._rows)}
        return Metadata(title=self.title, tables=tables)

    def get_or_create_table(self, name: str, header_fields: Sequence[str]) -> TableHandle:
        self._enter("get_or_create_table")
        if name not in self._rows:
            logger.info("Creating table %s with headers %s", name, list(header_fields))
            self._headers[name] = list(header_fields)
            self._rows[name] = []
        return TableHandle(name=name, table_id=list(self._rows).index(name))

    def fetch_rows(self, handle: TableHandle) -> list[Row]:
        self._enter("fetch_rows")
        self._check(handle)
        headers = self._headers[handle.name]
        return [{h: row.get(h, "") for h in headers} for row in self._rows[handle.name]]

    def append_row(self, handle: TableHandle, row: Row) -> None:
        self._enter("append_row")
        self._check(handle)
        headers = self._headers[handle.name]
        self._rows[handle.name].append({h: str(row.get(h, "")) for h in headers})

    def update_row(self, handle: TableHandle, predicate: RowPredicate, row: Row) -> bool:
        self._enter("update_row")
        self._check(handle)
        headers = self._headers[handle.name]
        for stored in self._rows[handle.name]:
            if predicate(dict(stored)):
                stored.update({h: str(row[h]) for h in headers if h in row})
                return True
        return False

    def delete_row(self, handle: TableHandle, predicate: RowPredicate) -> bool:
        self._enter("delete_row")
        self._check(handle)
        rows = self._rows[handle.name]
        for index, row in enumerate(rows):
            if predicate(dict(row)):
                del rows[index]
                return True
        return False

    def seed(self, name: str, header_fields: Sequence[str], rows: Sequence[Row]) -> None:
        """Create a table directly with rows, bypassing call counting."""
        self._headers[name] = list(header_fields)
        self._rows[name] = [{h: str(row.get(h, "")) for h in header_fields} for row in rows]

    def update_cell(self, name: str, index: int, field: str, value: str) -> None:
        """Edit a stored cell directly, as another client of the store would."""
        self._rows[name][index][field] = value
