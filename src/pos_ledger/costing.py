"""Derived values: ingredient unit cost, recipe cost and order totals.

Unit costs come from the Stock table or from the ingredient registry. When
one ingredient has several Stock purchases, the first row in cache order
wins; the store does not promise newest-first order, so this can pick an
older price. The registry is sorted newest first before the same reduction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import TypeVar

from pos_ledger.records import OrderItem, RecipeEntry, RegisteredIngredient, StockLedgerEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def resolve_unit_costs(stock_rows: Iterable[Mapping[str, str]]) -> dict[str, float]:
    """Map each ingredient name to the unit cost of its first stock row.

    Args:
        stock_rows: Stock table rows in cache order.

    Returns:
        Dictionary of ingredient name to price per base unit. Later rows for
        an already-seen name are ignored.

    Examples:
        >>> resolve_unit_costs([
        ...     {"name": "Flour", "quantity": "1000", "price": "50"},
        ...     {"name": "Flour", "quantity": "1000", "price": "80"},
        ...     {"name": "Egg", "quantity": "0", "price": "10"},
        ... ])
        {'Flour': 0.05, 'Egg': 0.0}

    """
    unit_costs: dict[str, float] = {}
    for row in stock_rows:
        entry = StockLedgerEntry.from_row(row)
        if entry.name in unit_costs:
            continue
        unit_costs[entry.name] = entry.unit_cost
    return unit_costs


def newest_first(entries: Iterable[T]) -> list[T]:
    """Sort entries with a ``timestamp`` newest first; undated entries go last."""
    return sorted(
        entries,
        key=lambda e: (e.timestamp is not None, e.timestamp.value if e.timestamp is not None else 0),
        reverse=True,
    )


def resolve_registry_unit_costs(registry_rows: Iterable[Mapping[str, str]]) -> dict[str, float]:
    """Map each ingredient name to the unit cost of its newest registry row.

    The registry is ordered newest first before the first-match reduction,
    so unlike the Stock table the latest registered price wins.

    Examples:
        >>> resolve_registry_unit_costs([
        ...     {"name": "Egg", "quantity": "10", "price": "40", "date": "2024-05-01"},
        ...     {"name": "Egg", "quantity": "10", "price": "50", "date": "2024-06-01"},
        ... ])
        {'Egg': 5.0}

    """
    unit_costs: dict[str, float] = {}
    for entry in newest_first(RegisteredIngredient.from_row(row) for row in registry_rows):
        unit_costs.setdefault(entry.name, entry.unit_cost)
    return unit_costs


def resolve_recipe_cost(recipe: RecipeEntry, unit_costs: Mapping[str, float]) -> float:
    """Ingredient cost of one unit of a recipe.

    Ingredients without a unit cost contribute 0.

    Args:
        recipe: Recipe to cost.
        unit_costs: Output of resolve_unit_costs.

    Returns:
        Sum of ingredient quantity times unit cost.

    """
    cost = 0.0
    for line in recipe.ingredients:
        unit_cost = unit_costs.get(line.name)
        if unit_cost is None:
            logger.debug("No stock price for %r in recipe %r", line.name, recipe.name)
            continue
        cost += line.quantity * unit_cost
    return cost


def find_recipe(recipes: Sequence[RecipeEntry], name: str) -> RecipeEntry | None:
    """Return the first recipe with the given name, or None."""
    return next((recipe for recipe in recipes if recipe.name == name), None)


def compute_order_totals(
    items: Iterable[OrderItem],
    recipes: Sequence[RecipeEntry],
    unit_costs: Mapping[str, float],
) -> tuple[float, float]:
    """Compute an order's price and ingredient cost at submission time.

    Items whose name matches no recipe add neither price nor cost.

    Args:
        items: Order line items.
        recipes: Menu recipes in cache order.
        unit_costs: Output of resolve_unit_costs.

    Returns:
        Tuple of (total_price, total_cost).

    """
    total_price = 0.0
    total_cost = 0.0
    for item in items:
        recipe = find_recipe(recipes, item.name)
        if recipe is None:
            logger.warning("Order item %r is not on the menu; skipping its totals", item.name)
            continue
        total_price += item.amount
        total_cost += resolve_recipe_cost(recipe, unit_costs) * item.quantity
    return total_price, total_cost
