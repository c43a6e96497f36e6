"""Base interface for remote record stores.

This module defines the abstract base class every record store client must
implement, so the caches can run against Google Sheets or an in-memory
table set through the same calls.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

Row = dict[str, str]
RowPredicate = Callable[[Row], bool]


@dataclass(frozen=True)
class TableHandle:
    """Reference to a table inside the store.

    Attributes:
        name: Table (worksheet) title.
        table_id: Store-specific identifier, e.g. the Sheets numeric sheetId.
    """

    name: str
    table_id: int | str


@dataclass(frozen=True)
class Metadata:
    """Listing of the tables a store currently holds.

    Attributes:
        title: Human-readable title of the store document.
        tables: Mapping of table name to handle, in store order.
    """

    title: str
    tables: dict[str, TableHandle] = field(default_factory=dict)


class RecordStore(ABC):
    """Abstract base class for remote record store clients.

    Implementations raise RemoteUnavailable for any fetch or mutation
    failure and never retry on their own.
    """

    @abstractmethod
    def load_metadata(self) -> Metadata:
        """Fetch the current table listing.

        Raises:
            RemoteUnavailable: If the store cannot be reached.
        """

    @abstractmethod
    def get_or_create_table(self, name: str, header_fields: Sequence[str]) -> TableHandle:
        """Return the handle for a table, creating it with a header row if absent.

        Args:
            name: Table name.
            header_fields: Header row to write when the table is created.

        Returns:
            Handle of the existing or newly created table.
        """

    @abstractmethod
    def fetch_rows(self, handle: TableHandle) -> list[Row]:
        """Fetch all data rows of a table in store order."""

    @abstractmethod
    def append_row(self, handle: TableHandle, row: Row) -> None:
        """Append one row at the end of a table."""

    def append_rows(self, handle: TableHandle, rows: Sequence[Row]) -> None:
        """Append rows at the end of a table, in order.

        The default appends one row at a time. Stores that can write several
        rows in one call override this.
        """
        for row in rows:
            self.append_row(handle, row)

    @abstractmethod
    def update_row(self, handle: TableHandle, predicate: RowPredicate, row: Row) -> bool:
        """Overwrite fields of the first row matching predicate.

        Args:
            handle: Table to update.
            predicate: Selects the row to update.
            row: Field values to write. Fields not present keep their value.

        Returns:
            True if a row was updated, False if nothing matched.
        """

    @abstractmethod
    def delete_row(self, handle: TableHandle, predicate: RowPredicate) -> bool:
        """Delete the first row matching predicate.

        Returns:
            True if a row was deleted, False if nothing matched.
        """

    def close(self) -> None:
        """Release any client resources. Default is a no-op."""
