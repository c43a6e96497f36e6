"""Tests for unit cost, recipe cost and order totals."""

import pytest

from pos_ledger.costing import (
    compute_order_totals,
    find_recipe,
    newest_first,
    resolve_recipe_cost,
    resolve_registry_unit_costs,
    resolve_unit_costs,
)
from pos_ledger.records import IngredientLine, OrderItem, RecipeEntry, RegisteredIngredient
from tests.test_utils import stock_row


def test_unit_cost_first_match_wins() -> None:
    """Only the first row per name is used for costing."""
    rows = [stock_row("Flour", 1000, 50), stock_row("Flour", 1000, 80)]
    assert resolve_unit_costs(rows) == {"Flour": pytest.approx(0.05)}


def test_unit_cost_is_order_sensitive() -> None:
    """Reversing the scan order changes which price is used."""
    rows = [stock_row("Flour", 1000, 50), stock_row("Flour", 1000, 80)]
    assert resolve_unit_costs(rows)["Flour"] == pytest.approx(0.05)
    assert resolve_unit_costs(list(reversed(rows)))["Flour"] == pytest.approx(0.08)


def test_zero_quantity_gives_zero_unit_cost() -> None:
    """Division by zero quantity yields 0 instead of raising."""
    costs = resolve_unit_costs([stock_row("Salt", 0, 15)])
    assert costs == {"Salt": 0.0}


def test_zero_quantity_first_row_shadows_later_rows() -> None:
    rows = [stock_row("Salt", 0, 15), stock_row("Salt", 100, 10)]
    assert resolve_unit_costs(rows)["Salt"] == 0.0


def test_unparseable_numbers_count_as_zero() -> None:
    costs = resolve_unit_costs([stock_row("Milk", "lots", 30), stock_row("Sugar", 500, "")])
    assert costs == {"Milk": 0.0, "Sugar": 0.0}


def test_recipe_cost_sums_quantities_times_unit_cost() -> None:
    recipe = RecipeEntry(
        name="Pancake",
        price=60,
        ingredients=(IngredientLine("Flour", 100), IngredientLine("Egg", 2)),
    )
    cost = resolve_recipe_cost(recipe, {"Flour": 0.05, "Egg": 4.0})
    assert cost == pytest.approx(13.0)


def test_recipe_cost_missing_price_contributes_zero() -> None:
    """An ingredient without a stock price silently adds nothing."""
    recipe = RecipeEntry(
        name="Pancake",
        price=60,
        ingredients=(IngredientLine("Flour", 100), IngredientLine("Saffron", 1)),
    )
    assert resolve_recipe_cost(recipe, {"Flour": 0.05}) == pytest.approx(5.0)


def test_recipe_without_ingredients_costs_nothing() -> None:
    assert resolve_recipe_cost(RecipeEntry(name="Water", price=5), {"Flour": 1.0}) == 0.0


def test_find_recipe_returns_first_match() -> None:
    recipes = [RecipeEntry("Tea", 10), RecipeEntry("Tea", 20)]
    assert find_recipe(recipes, "Tea").price == 10
    assert find_recipe(recipes, "Coffee") is None


def test_order_totals() -> None:
    """Price and cost scale with quantity; unknown items add nothing."""
    recipes = [RecipeEntry("Pancake", 60, (IngredientLine("Flour", 100), IngredientLine("Egg", 2)))]
    items = [OrderItem("Pancake", 60, 2), OrderItem("Mystery", 99, 1)]
    total_price, total_cost = compute_order_totals(items, recipes, {"Flour": 0.05, "Egg": 4.0})
    assert total_price == pytest.approx(120.0)
    assert total_cost == pytest.approx(26.0)


def test_registry_unit_costs_take_newest_entry() -> None:
    """Registry prices are reduced newest first, whatever the row order."""
    rows = [
        {"name": "Egg", "quantity": "10", "unit": "pcs", "price": "40", "date": "2024-05-01T08:00:00.000Z"},
        {"name": "Egg", "quantity": "10", "unit": "pcs", "price": "60", "date": "2024-06-01T08:00:00.000Z"},
        {"name": "Salt", "quantity": "0", "unit": "g", "price": "5", "date": "2024-05-01T08:00:00.000Z"},
    ]
    assert resolve_registry_unit_costs(rows) == {"Egg": pytest.approx(6.0), "Salt": 0.0}
    assert resolve_registry_unit_costs(list(reversed(rows)))["Egg"] == pytest.approx(6.0)


def test_newest_first_puts_undated_entries_last() -> None:
    entries = [
        RegisteredIngredient.from_row({"name": "A", "date": "nope"}),
        RegisteredIngredient.from_row({"name": "B", "date": "2024-05-01"}),
        RegisteredIngredient.from_row({"name": "C", "date": "2024-06-01"}),
    ]
    assert [e.name for e in newest_first(entries)] == ["C", "B", "A"]
