"""Example: Stock, menu and orders against the in-memory store

Runs the full write-then-read cycle without any credentials:
1. Record two stock purchases of the same ingredient
2. Add a menu item and look up its cost
3. Submit an order, whose cost is frozen at submission
4. Compute the report for the current month
"""

from pos_ledger import LedgerService
from pos_ledger.records import utc_now_iso
from pos_ledger.reports import Month
from pos_ledger.store import InMemoryRecordStore

ledger = LedgerService(InMemoryRecordStore(title="Walkthrough"))

ledger.add_stock_item("Flour", 1000, 50, "alice")
ledger.add_stock_item("Flour", 1000, 80, "bob")  # Not used for costing
ledger.add_stock_item("Egg", 10, 40, "alice")
print(f"Stock items: {ledger.get_stock_names()}")

ledger.add_menu_item("Pancake", 60, [{"name": "Flour", "qty": 100}, {"name": "Egg", "qty": 2}])
print(f"Pancake cost per unit: {ledger.resolve_recipe_cost('Pancake'):.2f}")

order = ledger.submit_order([{"name": "Pancake", "price": 60, "quantity": 2}])
print(f"Order total {order.total_price:.2f}, cost {order.total_cost:.2f}")

report = ledger.compute_report(Month.parse(utc_now_iso()[:7]))
print(f"\nGross profit this month: {report.gross_profit:.2f}")
print(f"Net profit this month: {report.net_profit:.2f}")
print(report.item_ranking().to_string(index=False))

ledger.close()
