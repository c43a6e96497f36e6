"""Table schemas for the ledger spreadsheet.

Each table lives in its own worksheet. The header row is written once when
the worksheet is created and all cell values are stored as strings.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TableSchema:
    """Name and ordered header fields of a ledger table.

    Attributes:
        name: Worksheet title, also the table identity.
        header_fields: Column names in sheet order.
    """

    name: str
    header_fields: tuple[str, ...]


STOCK = TableSchema("Stock", ("name", "quantity", "price", "user", "date"))
MENU = TableSchema("Menu", ("name", "price", "ingredients", "date"))
ORDERS = TableSchema("Orders", ("items", "totalPrice", "totalCost", "date"))
INGREDIENTS = TableSchema("Ingredients", ("name", "quantity", "unit", "price", "user", "date"))

ALL_SCHEMAS = (STOCK, MENU, ORDERS, INGREDIENTS)
