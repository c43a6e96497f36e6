"""High-level tests for LedgerService.

These tests verify write-then-read consistency (every mutation invalidates
its table), submit-time cost freezing and input validation against an
in-memory store.
"""

import pytest

from pos_ledger import LedgerService, RemoteUnavailable, ValidationError
from pos_ledger.records import IngredientLine, OrderItem, RecipeEntry
from pos_ledger.reports import Month
from pos_ledger.schemas import TableSchema
from pos_ledger.store import InMemoryRecordStore
from tests.test_utils import FakeClock


def test_get_cached_rows_fetches_once_within_ttl(ledger: LedgerService, store: InMemoryRecordStore) -> None:
    first = ledger.get_cached_rows("Stock")
    second = ledger.get_cached_rows("Stock")
    assert first is second
    assert store.calls["fetch_rows"] == 1


def test_invalidate_cache_forces_fetch(ledger: LedgerService, store: InMemoryRecordStore) -> None:
    ledger.get_cached_rows("Menu")
    ledger.invalidate_cache("Menu")
    ledger.get_cached_rows("Menu")
    assert store.calls["fetch_rows"] == 2


def test_get_cached_rows_unknown_table_needs_schema(ledger: LedgerService) -> None:
    with pytest.raises(ValueError):
        ledger.get_cached_rows("Expenses")
    rows = ledger.get_cached_rows("Expenses", TableSchema("Expenses", ("what", "amount", "date")))
    assert rows == ()


def test_add_stock_item_is_visible_on_next_read(ledger: LedgerService, clock: FakeClock) -> None:
    """A write invalidates the cache even though the TTL has not elapsed."""
    assert len(ledger.get_stock_items()) == 3
    entry = ledger.add_stock_item("Butter", "250", "90", "carol")
    clock.advance(1)

    items = ledger.get_stock_items()
    assert len(items) == 4
    assert items[-1] == entry
    assert entry.timestamp is not None
    assert ledger.get_stock_names() == ["Flour", "Egg", "Butter"]


def test_add_stock_item_validation(ledger: LedgerService, store: InMemoryRecordStore) -> None:
    with pytest.raises(ValidationError) as excinfo:
        ledger.add_stock_item("", 0, -1, " ")
    assert set(excinfo.value.errors) == {"name", "quantity", "price", "user"}
    assert store.calls["append_row"] == 0


def test_add_stock_item_rejects_non_numeric_quantity(ledger: LedgerService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        ledger.add_stock_item("Flour", "a lot", 10, "alice")
    assert list(excinfo.value.errors) == ["quantity"]


def test_add_and_delete_menu_item(ledger: LedgerService) -> None:
    recipe = ledger.add_menu_item("Omelette", 45, [{"name": "Egg", "qty": 3}])
    assert recipe.ingredients == (IngredientLine("Egg", 3.0),)
    assert [m.name for m in ledger.get_menu_items()] == ["Pancake", "Omelette"]

    assert ledger.delete_menu_item("Omelette") is True
    assert [m.name for m in ledger.get_menu_items()] == ["Pancake"]
    assert ledger.delete_menu_item("Omelette") is False


def test_add_menu_item_accepts_json_ingredients(ledger: LedgerService) -> None:
    recipe = ledger.add_menu_item("Toast", "20", '[{"name": "Flour", "qty": 50}]')
    assert recipe.price == 20.0
    assert ledger.get_menu_items()[-1].ingredients == (IngredientLine("Flour", 50.0),)


@pytest.mark.parametrize("ingredients", [[], "not json", [{"name": "", "qty": 1}]])
def test_add_menu_item_rejects_bad_ingredients(ledger: LedgerService, ingredients: object) -> None:
    with pytest.raises(ValidationError) as excinfo:
        ledger.add_menu_item("Toast", 20, ingredients)
    assert "ingredients" in excinfo.value.errors


def test_resolve_recipe_cost_uses_first_stock_price(ledger: LedgerService) -> None:
    """Pancake = 100 g flour at the first price (0.05) + 2 eggs at 4.0."""
    assert ledger.resolve_recipe_cost("Pancake") == pytest.approx(13.0)
    assert ledger.resolve_recipe_cost(RecipeEntry("Bread", 30, (IngredientLine("Flour", 200),))) == pytest.approx(10.0)
    with pytest.raises(ValueError):
        ledger.resolve_recipe_cost("Waffle")


def test_submit_order_freezes_cost(ledger: LedgerService, store: InMemoryRecordStore) -> None:
    """The cost stored with an order survives later stock price changes."""
    order = ledger.submit_order([{"name": "Pancake", "price": 60, "quantity": 1}])
    assert order.total_price == pytest.approx(60.0)
    assert order.total_cost == pytest.approx(13.0)

    # Egg price goes up tenfold, entered by another client
    store.update_cell("Stock", 1, "price", "400")
    ledger.invalidate_cache("Stock")
    assert ledger.resolve_recipe_cost("Pancake") == pytest.approx(85.0)

    report = ledger.compute_report(Month(2024, 5))
    assert report.total_sales == pytest.approx(180.0)
    assert report.total_cost == pytest.approx(39.0)
    assert report.orders[0].total_cost == pytest.approx(13.0)


def test_submit_order_unknown_items_are_stored_without_totals(ledger: LedgerService) -> None:
    order = ledger.submit_order([{"name": "Ghost", "price": 10, "quantity": 3}])
    assert (order.total_price, order.total_cost) == (0.0, 0.0)
    assert ledger.get_cached_rows("Orders")[-1]["items"] == '[{"name": "Ghost", "price": 10, "quantity": 3}]'


def test_submit_order_validation(ledger: LedgerService) -> None:
    with pytest.raises(ValidationError):
        ledger.submit_order([])
    with pytest.raises(ValidationError) as excinfo:
        ledger.submit_order([{"name": "Pancake", "price": 60, "quantity": 0}])
    assert "items[0]" in excinfo.value.errors


def test_compute_report_reads_through_cache(ledger: LedgerService, store: InMemoryRecordStore) -> None:
    report = ledger.compute_report(Month(2024, 5))
    assert report.total_sales == 120
    assert report.total_stock_expenditure == 90
    ledger.compute_report(Month(2024, 5))
    assert store.calls["fetch_rows"] == 2  # Orders and Stock once each


def test_failed_mutation_propagates_and_invalidates(ledger: LedgerService, store: InMemoryRecordStore) -> None:
    """A failed write raises RemoteUnavailable and never leaves stale rows cached."""
    ledger.get_cached_rows("Stock")
    ledger.metadata_cache.get_metadata()

    store.fail_next = 1
    with pytest.raises(RemoteUnavailable):
        ledger.add_stock_item("Butter", 250, 90, "carol")
    assert "Stock" not in ledger.row_cache
    assert store.calls["append_row"] == 1


def test_close_drops_caches(store: InMemoryRecordStore, clock: FakeClock) -> None:
    with LedgerService(store, clock=clock) as ledger:
        ledger.get_cached_rows("Stock")
    assert "Stock" not in ledger.row_cache

    other = LedgerService(store, clock=clock)
    other.get_cached_rows("Stock")
    assert store.calls["fetch_rows"] == 2


# ------------------------- validation of every input form -------------------------


@pytest.mark.parametrize(
    "item",
    [OrderItem("Pancake", 60, -5), OrderItem("Pancake", 60, 0), OrderItem("Pancake", -60, 1), OrderItem(" ", 60, 1)],
)
def test_submit_order_checks_typed_items(ledger: LedgerService, store: InMemoryRecordStore, item: OrderItem) -> None:
    """OrderItem instances get the same checks as mappings."""
    with pytest.raises(ValidationError) as excinfo:
        ledger.submit_order([item])
    assert "items[0]" in excinfo.value.errors
    assert store.calls["append_row"] == 0


def test_submit_order_rejects_non_mapping_items(ledger: LedgerService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        ledger.submit_order([{"name": "Pancake", "price": 60, "quantity": 1}, ("Pancake", 60, 1)])
    assert list(excinfo.value.errors) == ["items[1]"]


def test_submit_order_accepts_typed_items(ledger: LedgerService) -> None:
    order = ledger.submit_order([OrderItem("Pancake", 60, 2)])
    assert order.total_cost == pytest.approx(26.0)


@pytest.mark.parametrize(
    "ingredients",
    [
        '[{"name": "Egg", "qty": -3}]',
        '[{"name": " ", "qty": 3}]',
        '[{"name": "Egg", "qty": "lots"}]',
        '[["Egg", 3]]',
        '{"name": "Egg", "qty": 3}',
        [IngredientLine("Egg", -3)],
        [IngredientLine("", 3)],
        [("Egg", 3)],
    ],
)
def test_add_menu_item_checks_every_ingredient_form(
    ledger: LedgerService, store: InMemoryRecordStore, ingredients: object
) -> None:
    with pytest.raises(ValidationError) as excinfo:
        ledger.add_menu_item("Bad", 10, ingredients)
    assert "ingredients" in excinfo.value.errors
    assert store.calls["append_row"] == 0


def test_add_menu_item_mixed_forms(ledger: LedgerService) -> None:
    recipe = ledger.add_menu_item("Scramble", 50, [IngredientLine("Egg", 3), {"name": "Flour", "qty": "10"}])
    assert recipe.ingredients == (IngredientLine("Egg", 3.0), IngredientLine("Flour", 10.0))


# ------------------------- batch stock entry -------------------------


def test_add_stock_items_writes_batch_and_invalidates(ledger: LedgerService, store: InMemoryRecordStore) -> None:
    assert len(ledger.get_stock_items()) == 3
    entries = ledger.add_stock_items(
        [
            {"name": "Butter", "quantity": 250, "price": 90},
            {"name": "Milk", "quantity": "1000", "price": "35", "user": "bob"},
        ],
        user="carol",
    )
    assert [(e.name, e.user) for e in entries] == [("Butter", "carol"), ("Milk", "bob")]

    items = ledger.get_stock_items()
    assert [e.name for e in items[-2:]] == ["Butter", "Milk"]
    assert store.calls["fetch_rows"] == 2
    assert ledger.get_stock_names() == ["Flour", "Egg", "Butter", "Milk"]


def test_add_stock_items_accepts_json_payload(ledger: LedgerService) -> None:
    entries = ledger.add_stock_items('[{"name": "Sugar", "quantity": 500, "price": 25, "user": "alice"}]')
    assert entries[0].quantity_base_units == 500.0
    assert ledger.get_stock_items()[-1].name == "Sugar"


def test_add_stock_items_rejects_whole_batch(ledger: LedgerService, store: InMemoryRecordStore) -> None:
    """One bad item means nothing is written."""
    with pytest.raises(ValidationError) as excinfo:
        ledger.add_stock_items(
            [
                {"name": "Butter", "quantity": 250, "price": 90},
                {"name": "Milk", "quantity": 0, "price": -1},
                "Sugar",
            ],
            user="carol",
        )
    assert set(excinfo.value.errors) == {"items[1].quantity", "items[1].price", "items[2]"}
    assert store.calls["append_row"] == 0
    assert len(ledger.get_stock_items()) == 3


@pytest.mark.parametrize("items", [[], "", "[broken", '{"name": "Milk"}'])
def test_add_stock_items_needs_a_list_of_items(ledger: LedgerService, items: object) -> None:
    with pytest.raises(ValidationError) as excinfo:
        ledger.add_stock_items(items, user="carol")
    assert "items" in excinfo.value.errors


def test_add_stock_items_failure_still_invalidates(ledger: LedgerService, store: InMemoryRecordStore) -> None:
    ledger.get_cached_rows("Stock")
    ledger.metadata_cache.get_metadata()
    store.fail_next = 1
    with pytest.raises(RemoteUnavailable):
        ledger.add_stock_items([{"name": "Butter", "quantity": 250, "price": 90, "user": "carol"}])
    assert "Stock" not in ledger.row_cache


# ------------------------- ingredient registry -------------------------


def test_registered_ingredients_newest_first(ledger: LedgerService) -> None:
    entries = ledger.get_registered_ingredients()
    assert [(e.name, e.price) for e in entries] == [("Egg", 60.0), ("Flour", 70.0), ("Egg", 40.0)]


def test_recipe_cost_from_registry_uses_newest_price(ledger: LedgerService) -> None:
    """Pancake = 100 g flour at 0.07 + 2 eggs at the newest 6.0."""
    assert ledger.resolve_recipe_cost("Pancake", prices="registry") == pytest.approx(19.0)
    assert ledger.resolve_recipe_cost("Pancake") == pytest.approx(13.0)
    with pytest.raises(ValueError):
        ledger.resolve_recipe_cost("Pancake", prices="menu")


def test_add_registered_ingredients(ledger: LedgerService) -> None:
    added = ledger.add_registered_ingredients(
        '[{"name": "Butter", "quantity": 250, "unit": "g", "price": 95}]', user="carol"
    )
    assert added[0].date == "2024-05-10T10:00:00.000Z"
    names = [e.name for e in ledger.get_registered_ingredients()]
    assert names == ["Egg", "Flour", "Butter", "Egg"]


def test_add_registered_ingredients_validates_all_first(ledger: LedgerService, store: InMemoryRecordStore) -> None:
    with pytest.raises(ValidationError) as excinfo:
        ledger.add_registered_ingredients(
            [{"name": "Butter", "quantity": 250, "unit": "g", "price": 95}, {"name": "Salt", "quantity": 0, "unit": ""}],
            user="carol",
        )
    assert set(excinfo.value.errors) == {"items[1].quantity", "items[1].unit", "items[1].price"}
    assert store.calls["append_row"] == 0


def test_update_registered_ingredient_is_visible_on_next_read(ledger: LedgerService) -> None:
    ledger.get_registered_ingredients()
    updated = ledger.update_registered_ingredient(
        "2024-06-01T08:00:00.000Z", "Egg", "Egg", 12, "pcs", 48, "carol"
    )
    assert updated is True

    newest = ledger.get_registered_ingredients()[0]
    assert (newest.quantity, newest.price, newest.user) == (12.0, 48.0, "carol")
    assert newest.date == "2024-06-01T08:00:00.000Z"
    assert ledger.resolve_recipe_cost("Pancake", prices="registry") == pytest.approx(15.0)


def test_update_registered_ingredient_no_match(ledger: LedgerService, store: InMemoryRecordStore) -> None:
    assert ledger.update_registered_ingredient("2020-01-01", "Egg", "Egg", 12, "pcs", 48, "carol") is False
    with pytest.raises(ValidationError):
        ledger.update_registered_ingredient("2024-06-01T08:00:00.000Z", "Egg", "Egg", -1, "pcs", 48, "carol")
    assert store.calls["update_row"] == 1


def test_delete_registered_ingredient(ledger: LedgerService) -> None:
    assert ledger.delete_registered_ingredient("2024-06-01T08:00:00.000Z", "Egg") is True
    assert [(e.name, e.price) for e in ledger.get_registered_ingredients()] == [("Flour", 70.0), ("Egg", 40.0)]
    assert ledger.delete_registered_ingredient("2024-06-01T08:00:00.000Z", "Egg") is False
