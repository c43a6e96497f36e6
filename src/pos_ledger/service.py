"""Ledger service: the long-lived owner of the store client and both caches.

All reads go through the row cache. Every write resolves the table through
the metadata cache, performs the mutation on the store and then invalidates
that table's rows before returning, so the next read sees the change.

Example:
    >>> from pos_ledger import LedgerService
    >>> from pos_ledger.reports import Month
    >>>
    >>> with LedgerService.from_settings() as ledger:
    ...     ledger.add_stock_item("Flour", 1000, 50, "alice")
    ...     ledger.add_menu_item("Bread", 40, [{"name": "Flour", "qty": 200}])
    ...     ledger.submit_order([{"name": "Bread", "price": 40, "quantity": 2}])
    ...     report = ledger.compute_report(Month(2024, 5))
"""

from __future__ import annotations

import json
import logging
import math
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

from pos_ledger.cache.metadata import MetadataCache
from pos_ledger.cache.rows import RowCache
from pos_ledger.config import DEFAULT_METADATA_TTL, DEFAULT_ROW_TTL, LedgerSettings
from pos_ledger.costing import (
    compute_order_totals,
    find_recipe,
    newest_first,
    resolve_recipe_cost,
    resolve_registry_unit_costs,
    resolve_unit_costs,
)
from pos_ledger.exceptions import ValidationError
from pos_ledger.records import (
    IngredientLine,
    OrderEntry,
    OrderItem,
    RecipeEntry,
    RegisteredIngredient,
    StockLedgerEntry,
    encode_ingredients,
    encode_order_items,
    format_number,
    parse_timestamp,
    utc_now_iso,
)
from pos_ledger.reports.aggregate import Report, compute_report
from pos_ledger.reports.filters import ReportFilter
from pos_ledger.schemas import ALL_SCHEMAS, INGREDIENTS, MENU, ORDERS, STOCK, TableSchema
from pos_ledger.store.base import RecordStore, Row, TableHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")

Errors = dict[str, list[str]]

PRICE_SOURCES = ("stock", "registry")


def _coerce_number(value: Any) -> float | None:
    """Coerce form input to a finite float, or None if it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip()) if not isinstance(value, (int, float)) else float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _add_error(errors: Errors, key: str, message: str) -> None:
    errors.setdefault(key, []).append(message)


def _json_list(payload: Any, key: str, errors: Errors) -> list[Any]:
    """Accept a list, or the JSON list string a form posts, recording errors under key."""
    if isinstance(payload, str):
        if payload.strip() == "":
            return []
        try:
            payload = json.loads(payload)
        except ValueError as e:
            _add_error(errors, key, f"Invalid JSON: {e}")
            return []
    if isinstance(payload, Mapping) or not isinstance(payload, Iterable):
        _add_error(errors, key, "Expected a list")
        return []
    return list(payload)


def _stock_fields(name: Any, quantity: Any, price: Any, user: Any, errors: Errors, prefix: str = "") -> Row | None:
    """Validate one stock purchase. Returns its row without a date, or None."""
    before = len(errors)
    name_text, user_text = _text(name), _text(user)
    quantity_value, price_value = _coerce_number(quantity), _coerce_number(price)
    if not name_text:
        _add_error(errors, f"{prefix}name", "Name is required")
    if quantity_value is None or quantity_value < 1:
        _add_error(errors, f"{prefix}quantity", "Quantity must be at least 1")
    if price_value is None or price_value < 0:
        _add_error(errors, f"{prefix}price", "Price must not be negative")
    if not user_text:
        _add_error(errors, f"{prefix}user", "User is required")
    if len(errors) > before:
        return None
    return {
        "name": name_text,
        "quantity": format_number(quantity_value),
        "price": format_number(price_value),
        "user": user_text,
    }


def _registry_fields(
    name: Any, quantity: Any, unit: Any, price: Any, user: Any, errors: Errors, prefix: str = ""
) -> Row | None:
    """Validate one registry entry. Returns its row without a date, or None."""
    before = len(errors)
    name_text, unit_text, user_text = _text(name), _text(unit), _text(user)
    quantity_value, price_value = _coerce_number(quantity), _coerce_number(price)
    if not name_text:
        _add_error(errors, f"{prefix}name", "Name is required")
    if quantity_value is None or quantity_value <= 0:
        _add_error(errors, f"{prefix}quantity", "Quantity must be positive")
    if not unit_text:
        _add_error(errors, f"{prefix}unit", "Unit is required")
    if price_value is None or price_value < 0:
        _add_error(errors, f"{prefix}price", "Price must not be negative")
    if not user_text:
        _add_error(errors, f"{prefix}user", "User is required")
    if len(errors) > before:
        return None
    return {
        "name": name_text,
        "quantity": format_number(quantity_value),
        "unit": unit_text,
        "price": format_number(price_value),
        "user": user_text,
    }


def _ingredient_line(item: Any, index: int, errors: Errors) -> IngredientLine | None:
    """Validate one recipe ingredient, whichever form it was given in."""
    if isinstance(item, IngredientLine):
        name, qty = item.name, item.quantity
    elif isinstance(item, Mapping):
        name, qty = item.get("name"), item.get("qty")
    else:
        _add_error(errors, "ingredients", f"Ingredient {index} must have a name and a qty")
        return None
    name_text, qty_value = _text(name), _coerce_number(qty)
    if not name_text or qty_value is None or qty_value < 0:
        _add_error(errors, "ingredients", f"Ingredient {index} needs a name and a quantity of at least 0")
        return None
    return IngredientLine(name=name_text, quantity=qty_value)


def _order_item(item: Any, index: int, errors: Errors) -> OrderItem | None:
    """Validate one order line, whichever form it was given in."""
    key = f"items[{index}]"
    if isinstance(item, OrderItem):
        name, price, quantity = item.name, item.price, item.quantity
    elif isinstance(item, Mapping):
        name, price, quantity = item.get("name"), item.get("price"), item.get("quantity")
    else:
        _add_error(errors, key, "Item must have a name, a price and a quantity")
        return None
    name_text = _text(name)
    price_value, quantity_value = _coerce_number(price), _coerce_number(quantity)
    if not name_text or price_value is None or price_value < 0 or quantity_value is None or quantity_value <= 0:
        _add_error(errors, key, "Item needs a name, a price and a positive quantity")
        return None
    return OrderItem(name=name_text, price=price_value, quantity=quantity_value)


class LedgerService:
    """Caller-facing ledger operations over a cached record store.

    Args:
        store: Record store client. Closed by ``close()``.
        metadata_ttl: Seconds the table listing stays cached.
        row_ttl: Seconds each table's rows stay cached.
        clock: Monotonic clock used for cache ages.
        now: Returns the ISO timestamp written to new rows.

    """

    def __init__(
        self,
        store: RecordStore,
        metadata_ttl: float = DEFAULT_METADATA_TTL,
        row_ttl: float = DEFAULT_ROW_TTL,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.store = store
        self.metadata_cache = MetadataCache(store, ttl=metadata_ttl, clock=clock)
        self.row_cache = RowCache(self.metadata_cache, ttl=row_ttl, clock=clock)
        self._now = now

    @classmethod
    def from_settings(cls, settings: LedgerSettings | None = None) -> LedgerService:
        """Create a service backed by Google Sheets.

        Args:
            settings: Settings to use. Defaults to LedgerSettings.from_env().

        """
        from pos_ledger.store.sheets import GoogleSheetsRecordStore

        settings = settings or LedgerSettings.from_env()
        return cls(
            GoogleSheetsRecordStore.from_settings(settings),
            metadata_ttl=settings.metadata_ttl,
            row_ttl=settings.row_ttl,
        )

    # ------------------------- lifecycle -------------------------

    def close(self) -> None:
        """Drop all cached state and close the store client."""
        self.row_cache.clear()
        self.metadata_cache.invalidate()
        self.store.close()

    def __enter__(self) -> LedgerService:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------- cache access -------------------------

    def get_cached_rows(self, table_name: str, schema: TableSchema | None = None) -> tuple[Row, ...]:
        """Read a table through the row cache.

        Args:
            table_name: Table to read.
            schema: Schema used if the table must be created. Known ledger
                tables (Stock, Menu, Orders, Ingredients) are looked up when
                omitted.

        Raises:
            ValueError: If table_name is not a ledger table and no schema is given.
            RemoteUnavailable: If the store cannot be read.

        """
        if schema is None:
            schema = next((s for s in ALL_SCHEMAS if s.name == table_name), None)
            if schema is None:
                raise ValueError(f"Unknown table '{table_name}'. Pass its schema explicitly.")
        return self.row_cache.get_rows(table_name, schema)

    def invalidate_cache(self, table_name: str) -> None:
        """Force the next read of a table to go to the store."""
        self.row_cache.invalidate(table_name)

    def _mutate(self, schema: TableSchema, action: Callable[[TableHandle], T]) -> T:
        handle = self.metadata_cache.get_table(schema.name, schema)
        try:
            return action(handle)
        finally:
            # Invalidate on failure too
            self.row_cache.invalidate(schema.name)

    # ------------------------- reads -------------------------

    def get_stock_items(self) -> list[StockLedgerEntry]:
        return [StockLedgerEntry.from_row(row) for row in self.get_cached_rows(STOCK.name, STOCK)]

    def get_stock_names(self) -> list[str]:
        """Distinct stock item names in first-seen order."""
        names: dict[str, None] = {}
        for entry in self.get_stock_items():
            if entry.name:
                names.setdefault(entry.name, None)
        return list(names)

    def get_menu_items(self) -> list[RecipeEntry]:
        return [RecipeEntry.from_row(row) for row in self.get_cached_rows(MENU.name, MENU)]

    def get_registered_ingredients(self) -> list[RegisteredIngredient]:
        """Registry entries, newest first."""
        rows = self.get_cached_rows(INGREDIENTS.name, INGREDIENTS)
        return newest_first(RegisteredIngredient.from_row(row) for row in rows)

    def _unit_costs(self, prices: str) -> dict[str, float]:
        if prices == "stock":
            return resolve_unit_costs(self.get_cached_rows(STOCK.name, STOCK))
        if prices == "registry":
            return resolve_registry_unit_costs(self.get_cached_rows(INGREDIENTS.name, INGREDIENTS))
        raise ValueError(f"Invalid price source '{prices}'. Must be one of {', '.join(PRICE_SOURCES)}.")

    def resolve_recipe_cost(self, recipe: RecipeEntry | str, prices: str = "stock") -> float:
        """Ingredient cost of one unit of a recipe at current prices.

        Args:
            recipe: Recipe, or the name of a menu item to look up.
            prices: "stock" uses the first Stock row per ingredient.
                "registry" uses the newest registry entry per ingredient.

        Raises:
            ValueError: If a name is given and no menu item has it, or the
                price source is unknown.

        """
        unit_costs = self._unit_costs(prices)
        if isinstance(recipe, str):
            found = find_recipe(self.get_menu_items(), recipe)
            if found is None:
                raise ValueError(f"Menu item '{recipe}' not found")
            recipe = found
        return resolve_recipe_cost(recipe, unit_costs)

    def compute_report(self, report_filter: ReportFilter | None = None) -> Report:
        """Compute the sales/expense report from cached Orders and Stock rows."""
        orders = self.get_cached_rows(ORDERS.name, ORDERS)
        stock_rows = self.get_cached_rows(STOCK.name, STOCK)
        return compute_report(orders, stock_rows, report_filter)

    # ------------------------- stock -------------------------

    def add_stock_item(self, name: Any, quantity: Any, price: Any, user: Any) -> StockLedgerEntry:
        """Record a stock purchase.

        Args:
            name: Ingredient name.
            quantity: Purchased quantity in base units, at least 1.
            price: Total price paid, not negative.
            user: Name of the person recording the purchase.

        Returns:
            The recorded entry.

        Raises:
            ValidationError: If any field is invalid.
            RemoteUnavailable: If the store write fails.

        """
        errors: Errors = {}
        row = _stock_fields(name, quantity, price, user, errors)
        if row is None:
            raise ValidationError("Incomplete data, stock item not added", errors)

        row["date"] = self._now()
        self._mutate(STOCK, lambda handle: self.store.append_row(handle, row))
        logger.info("Added stock item %s (%s for %s)", row["name"], row["quantity"], row["price"])
        return StockLedgerEntry.from_row(row)

    def add_stock_items(self, items: str | Sequence[Mapping[str, Any]], user: Any = None) -> list[StockLedgerEntry]:
        """Record several stock purchases in one write.

        Every item is validated before anything is written; one invalid
        item rejects the whole batch.

        Args:
            items: Mappings with "name", "quantity", "price" and optionally
                "user", or the JSON list string the stock form posts.
            user: Recorder used for items without their own "user".

        Returns:
            The recorded entries, in input order.

        Raises:
            ValidationError: If the batch is empty or any item is invalid.
                Field errors are keyed like ``items[2].price``.
            RemoteUnavailable: If the store write fails.

        """
        errors: Errors = {}
        payload = _json_list(items, "items", errors)
        if not payload and not errors:
            _add_error(errors, "items", "At least one stock item is required")
        rows: list[Row] = []
        for index, item in enumerate(payload):
            if not isinstance(item, Mapping):
                _add_error(errors, f"items[{index}]", "Item must have a name, a quantity and a price")
                continue
            row = _stock_fields(
                item.get("name"),
                item.get("quantity"),
                item.get("price"),
                item.get("user") or user,
                errors,
                prefix=f"items[{index}].",
            )
            if row is not None:
                rows.append(row)
        if errors:
            raise ValidationError("Incomplete data, stock items not added", errors)

        date = self._now()
        for row in rows:
            row["date"] = date
        self._mutate(STOCK, lambda handle: self.store.append_rows(handle, rows))
        logger.info("Added %d stock item(s)", len(rows))
        return [StockLedgerEntry.from_row(row) for row in rows]

    # ------------------------- ingredient registry -------------------------

    def add_registered_ingredients(
        self,
        items: str | Sequence[Mapping[str, Any]],
        user: Any = None,
    ) -> list[RegisteredIngredient]:
        """Register reference prices for several ingredients in one write.

        Args:
            items: Mappings with "name", "quantity", "unit", "price" and
                optionally "user", or the JSON list string the form posts.
            user: Recorder used for items without their own "user".

        Raises:
            ValidationError: If the batch is empty or any item is invalid.
            RemoteUnavailable: If the store write fails.

        """
        errors: Errors = {}
        payload = _json_list(items, "items", errors)
        if not payload and not errors:
            _add_error(errors, "items", "At least one ingredient is required")
        rows: list[Row] = []
        for index, item in enumerate(payload):
            if not isinstance(item, Mapping):
                _add_error(errors, f"items[{index}]", "Item must have a name, a quantity, a unit and a price")
                continue
            row = _registry_fields(
                item.get("name"),
                item.get("quantity"),
                item.get("unit"),
                item.get("price"),
                item.get("user") or user,
                errors,
                prefix=f"items[{index}].",
            )
            if row is not None:
                rows.append(row)
        if errors:
            raise ValidationError("Incomplete data, ingredients not registered", errors)

        date = self._now()
        for row in rows:
            row["date"] = date
        self._mutate(INGREDIENTS, lambda handle: self.store.append_rows(handle, rows))
        logger.info("Registered %d ingredient(s)", len(rows))
        return [RegisteredIngredient.from_row(row) for row in rows]

    def update_registered_ingredient(
        self,
        original_date: str,
        original_name: str,
        name: Any,
        quantity: Any,
        unit: Any,
        price: Any,
        user: Any,
    ) -> bool:
        """Overwrite the registry entry identified by its date and name.

        The entry keeps its original date.

        Returns:
            True if an entry was updated, False if none matched.

        Raises:
            ValidationError: If any new value is invalid.
            RemoteUnavailable: If the store write fails.

        """
        errors: Errors = {}
        row = _registry_fields(name, quantity, unit, price, user, errors)
        if row is None:
            raise ValidationError("Incomplete data, ingredient not updated", errors)

        def matches(stored: Row) -> bool:
            return stored.get("date") == original_date and stored.get("name") == original_name

        updated = self._mutate(INGREDIENTS, lambda handle: self.store.update_row(handle, matches, row))
        if updated:
            logger.info("Updated registered ingredient %s", original_name)
        else:
            logger.info("Registered ingredient %s at %s not found, nothing updated", original_name, original_date)
        return updated

    def delete_registered_ingredient(self, date: str, name: str) -> bool:
        """Delete the registry entry identified by its date and name.

        Returns:
            True if an entry was deleted, False if none matched.

        """

        def matches(stored: Row) -> bool:
            return stored.get("date") == date and stored.get("name") == name

        deleted = self._mutate(INGREDIENTS, lambda handle: self.store.delete_row(handle, matches))
        if deleted:
            logger.info("Deleted registered ingredient %s", name)
        return deleted

    # ------------------------- menu -------------------------

    def add_menu_item(
        self,
        name: Any,
        price: Any,
        ingredients: str | Iterable[IngredientLine | Mapping[str, Any]],
    ) -> RecipeEntry:
        """Add a recipe to the menu.

        Args:
            name: Menu item name.
            price: Selling price, not negative.
            ingredients: Ingredient lines, mappings with "name" and "qty",
                or the JSON string form stored in the sheet. Every form is
                checked the same way.

        Raises:
            ValidationError: If any field is invalid.
            RemoteUnavailable: If the store write fails.

        """
        errors: Errors = {}
        name_text = _text(name)
        price_value = _coerce_number(price)
        lines: list[IngredientLine] = []
        for index, item in enumerate(_json_list(ingredients, "ingredients", errors)):
            line = _ingredient_line(item, index, errors)
            if line is not None:
                lines.append(line)
        if not name_text:
            _add_error(errors, "name", "Name is required")
        if price_value is None or price_value < 0:
            _add_error(errors, "price", "Price must not be negative")
        if not lines and "ingredients" not in errors:
            _add_error(errors, "ingredients", "At least one ingredient is required")
        if errors:
            raise ValidationError("Incomplete data, menu item not added", errors)

        row = {
            "name": name_text,
            "price": format_number(price_value),
            "ingredients": encode_ingredients(lines),
            "date": self._now(),
        }
        self._mutate(MENU, lambda handle: self.store.append_row(handle, row))
        logger.info("Added menu item %s with %d ingredient(s)", name_text, len(lines))
        return RecipeEntry(name=name_text, price=price_value, ingredients=tuple(lines))

    def delete_menu_item(self, name: str) -> bool:
        """Delete the first menu row with the given name.

        Returns:
            True if a row was deleted, False if no menu item had the name.

        """
        deleted = self._mutate(MENU, lambda handle: self.store.delete_row(handle, lambda row: row.get("name") == name))
        if deleted:
            logger.info("Deleted menu item %s", name)
        else:
            logger.info("Menu item %s not found, nothing deleted", name)
        return deleted

    # ------------------------- orders -------------------------

    def submit_order(self, items: Sequence[OrderItem | Mapping[str, Any]]) -> OrderEntry:
        """Record an order with its price and ingredient cost frozen now.

        Totals use the current menu and the first stock price of each
        ingredient. Items not on the menu are stored but add nothing to
        the totals.

        Args:
            items: Order items, or mappings with "name", "price" and "quantity".

        Returns:
            The recorded order.

        Raises:
            ValidationError: If there are no items or an item is invalid.
            RemoteUnavailable: If the store read or write fails.

        """
        errors: Errors = {}
        if not items:
            _add_error(errors, "items", "An order needs at least one item")
        parsed: list[OrderItem] = []
        for index, raw in enumerate(items or []):
            item = _order_item(raw, index, errors)
            if item is not None:
                parsed.append(item)
        if errors:
            raise ValidationError("Order not submitted", errors)
        order_items = tuple(parsed)

        unit_costs = self._unit_costs("stock")
        total_price, total_cost = compute_order_totals(order_items, self.get_menu_items(), unit_costs)

        row = {
            "items": encode_order_items(order_items),
            "totalPrice": format_number(total_price),
            "totalCost": format_number(total_cost),
            "date": self._now(),
        }
        self._mutate(ORDERS, lambda handle: self.store.append_row(handle, row))
        logger.info("Submitted order of %d item(s): price %.2f, cost %.2f", len(order_items), total_price, total_cost)
        return OrderEntry(
            items=order_items,
            total_price=total_price,
            total_cost=total_cost,
            timestamp=parse_timestamp(row["date"]),
        )
