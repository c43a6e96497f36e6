"""Typed views over ledger rows.

Rows come back from the store as string mappings. This module turns them
into value types and owns the JSON encoding of the nested list fields
(``Menu.ingredients`` and ``Orders.items``).

Nested-field parse failures raise MalformedRow inside the parsers. The
``from_row`` constructors catch it, log a warning, append it to an optional
``errors`` list and fall back to an empty list.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import pandas as pd

from pos_ledger.exceptions import MalformedRow

logger = logging.getLogger(__name__)


# ============================================================================
# Scalar helpers
# ============================================================================


def to_number(value: Any) -> float:
    """Parse a cell value as a float, using 0.0 for blank or invalid input.

    Examples:
        >>> to_number("12.5")
        12.5
        >>> to_number("")
        0.0
        >>> to_number("abc")
        0.0
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if text == "":
            return 0.0
        try:
            number = float(text)
        except ValueError:
            logger.debug("Failed to parse %r as a number. Using 0.", value)
            return 0.0
    return number if math.isfinite(number) else 0.0


def format_number(value: float) -> str:
    """Format a number for a sheet cell, without a trailing ``.0`` on integers.

    Examples:
        >>> format_number(100.0)
        '100'
        >>> format_number(12.5)
        '12.5'
    """
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def parse_timestamp(value: Any) -> pd.Timestamp | None:
    """Parse an ISO-8601 cell value into a UTC timestamp.

    Naive values are read as UTC. Blank or unparseable values give None.

    Examples:
        >>> parse_timestamp("2024-05-01T10:00:00.000Z")
        Timestamp('2024-05-01 10:00:00+0000', tz='UTC')
        >>> parse_timestamp("not a date") is None
        True
    """
    if value is None or str(value).strip() == "":
        return None
    try:
        ts = pd.to_datetime(str(value).strip(), utc=True)
    except (ValueError, TypeError, OverflowError):
        logger.debug("Failed to parse %r as a timestamp.", value)
        return None
    if pd.isna(ts):
        return None
    return ts


def utc_now_iso() -> str:
    """Current UTC time in the store's ``YYYY-MM-DDTHH:MM:SS.mmmZ`` format."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ============================================================================
# Nested list fields
# ============================================================================


@dataclass(frozen=True)
class IngredientLine:
    """One ingredient of a recipe, in base units (grams, pieces, ...)."""

    name: str
    quantity: float


@dataclass(frozen=True)
class OrderItem:
    """One line of an order: menu item name, unit price and quantity."""

    name: str
    price: float
    quantity: float

    @property
    def amount(self) -> float:
        return self.price * self.quantity


def _load_json_list(field_name: str, raw: str) -> list[Any]:
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise MalformedRow(field_name, raw, "invalid JSON") from e
    if not isinstance(payload, list):
        raise MalformedRow(field_name, raw, f"expected a list, got {type(payload).__name__}")
    return payload


def _require_object(field_name: str, raw: str, element: Any) -> Mapping[str, Any]:
    if not isinstance(element, Mapping) or "name" not in element:
        raise MalformedRow(field_name, raw, "list element is not an object with a name")
    return element


def parse_ingredients(raw: str | None) -> tuple[IngredientLine, ...]:
    """Decode a ``Menu.ingredients`` cell.

    Args:
        raw: JSON list of ``{"name": ..., "qty": ...}`` objects, or blank.

    Returns:
        Ingredient lines in stored order. Blank input gives an empty tuple.

    Raises:
        MalformedRow: If the value is not a JSON list of named objects.

    """
    if raw is None or raw.strip() == "":
        return ()
    lines = []
    for element in _load_json_list("ingredients", raw):
        obj = _require_object("ingredients", raw, element)
        lines.append(IngredientLine(name=str(obj["name"]), quantity=to_number(obj.get("qty"))))
    return tuple(lines)


def parse_order_items(raw: str | None) -> tuple[OrderItem, ...]:
    """Decode an ``Orders.items`` cell.

    Args:
        raw: JSON list of ``{"name": ..., "price": ..., "quantity": ...}``
            objects, or blank.

    Returns:
        Order items in stored order. Blank input gives an empty tuple.

    Raises:
        MalformedRow: If the value is not a JSON list of named objects.

    """
    if raw is None or raw.strip() == "":
        return ()
    items = []
    for element in _load_json_list("items", raw):
        obj = _require_object("items", raw, element)
        items.append(
            OrderItem(
                name=str(obj["name"]),
                price=to_number(obj.get("price")),
                quantity=to_number(obj.get("quantity")),
            )
        )
    return tuple(items)


def _json_number(value: float) -> int | float:
    return int(value) if float(value).is_integer() else float(value)


def encode_ingredients(lines: tuple[IngredientLine, ...] | list[IngredientLine]) -> str:
    return json.dumps(
        [{"name": line.name, "qty": _json_number(line.quantity)} for line in lines],
        ensure_ascii=False,
    )


def encode_order_items(items: tuple[OrderItem, ...] | list[OrderItem]) -> str:
    return json.dumps(
        [
            {"name": item.name, "price": _json_number(item.price), "quantity": _json_number(item.quantity)}
            for item in items
        ],
        ensure_ascii=False,
    )


def _decode(
    parser: Any,
    raw: str | None,
    label: str,
    errors: list[MalformedRow] | None,
) -> tuple[Any, ...]:
    try:
        return parser(raw)
    except MalformedRow as e:
        logger.warning("Failed to parse %s: %s", label, e)
        if errors is not None:
            errors.append(e)
        return ()


# ============================================================================
# Row types
# ============================================================================


@dataclass(frozen=True)
class StockLedgerEntry:
    """One stock purchase: ``quantity_base_units`` of ``name`` for ``price_total``.

    Attributes:
        name: Ingredient name.
        quantity_base_units: Purchased quantity in base units.
        price_total: Money paid for the whole quantity.
        user: Who recorded the purchase.
        timestamp: When it was recorded (UTC), or None if unparseable.
    """

    name: str
    quantity_base_units: float
    price_total: float
    user: str = ""
    timestamp: pd.Timestamp | None = None

    @property
    def unit_cost(self) -> float:
        """Price per base unit; 0 when the quantity is zero."""
        if self.quantity_base_units == 0:
            return 0.0
        return self.price_total / self.quantity_base_units

    @classmethod
    def from_row(cls, row: Mapping[str, str]) -> StockLedgerEntry:
        return cls(
            name=row.get("name", ""),
            quantity_base_units=to_number(row.get("quantity")),
            price_total=to_number(row.get("price")),
            user=row.get("user", ""),
            timestamp=parse_timestamp(row.get("date")),
        )


@dataclass(frozen=True)
class RegisteredIngredient:
    """A reference price for an ingredient in the registry.

    Registry rows are identified by their ``date`` cell together with the
    name, so the raw date string is kept next to the parsed timestamp.

    Attributes:
        name: Ingredient name.
        quantity: Reference quantity in base units.
        unit: Base unit label, e.g. ``g`` or ``pcs``.
        price: Price of the reference quantity.
        user: Who registered it.
        date: Stored date cell.
        timestamp: Parsed ``date`` (UTC), or None if unparseable.
    """

    name: str
    quantity: float
    unit: str
    price: float
    user: str = ""
    date: str = ""
    timestamp: pd.Timestamp | None = None

    @property
    def unit_cost(self) -> float:
        if self.quantity == 0:
            return 0.0
        return self.price / self.quantity

    @classmethod
    def from_row(cls, row: Mapping[str, str]) -> RegisteredIngredient:
        return cls(
            name=row.get("name", ""),
            quantity=to_number(row.get("quantity")),
            unit=row.get("unit", ""),
            price=to_number(row.get("price")),
            user=row.get("user", ""),
            date=row.get("date", ""),
            timestamp=parse_timestamp(row.get("date")),
        )


@dataclass(frozen=True)
class RecipeEntry:
    """A sellable menu item with its price and ingredient list."""

    name: str
    price: float
    ingredients: tuple[IngredientLine, ...] = field(default_factory=tuple)

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, str],
        errors: list[MalformedRow] | None = None,
    ) -> RecipeEntry:
        name = row.get("name", "")
        return cls(
            name=name,
            price=to_number(row.get("price")),
            ingredients=_decode(parse_ingredients, row.get("ingredients"), f"ingredients of {name!r}", errors),
        )


@dataclass(frozen=True)
class OrderEntry:
    """A submitted order.

    ``total_cost`` was computed at submission time and is never recomputed.

    Attributes:
        items: Line items, empty if the stored payload was malformed.
        total_price: Sum of line amounts at submission.
        total_cost: Ingredient cost at submission.
        timestamp: Submission time (UTC), or None if unparseable.
    """

    items: tuple[OrderItem, ...]
    total_price: float
    total_cost: float
    timestamp: pd.Timestamp | None = None

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, str],
        errors: list[MalformedRow] | None = None,
    ) -> OrderEntry:
        return cls(
            items=_decode(parse_order_items, row.get("items"), f"order items dated {row.get('date')!r}", errors),
            total_price=to_number(row.get("totalPrice")),
            total_cost=to_number(row.get("totalCost")),
            timestamp=parse_timestamp(row.get("date")),
        )
