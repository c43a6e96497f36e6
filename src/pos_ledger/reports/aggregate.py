"""Sales and expense report over cached Orders and Stock rows.

The report is a pure function of its inputs. Order costs are read as stored
in ``Orders.totalCost``; current stock prices are never consulted, so later
price changes do not rewrite history.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import pandas as pd

from pos_ledger.exceptions import MalformedRow
from pos_ledger.costing import newest_first
from pos_ledger.records import OrderEntry, StockLedgerEntry, parse_timestamp
from pos_ledger.reports.filters import AllTime, ReportFilter

logger = logging.getLogger(__name__)

RANKING_COLUMNS = ["name", "quantity_sold", "sales_amount"]


@dataclass(frozen=True)
class ItemSales:
    """Units sold and revenue of one menu item within a report."""

    quantity_sold: float
    sales_amount: float


@dataclass
class Report:
    """Financial summary for one time filter.

    Attributes:
        total_sales: Sum of matched orders' total price.
        total_cost: Sum of matched orders' cost frozen at submission (COGS).
        gross_profit: total_sales - total_cost.
        total_stock_expenditure: Money spent on stock purchased in the period.
        net_profit: total_sales - total_stock_expenditure.
        item_sales: Menu item name to units sold and revenue.
        orders: Matched orders, newest first; ties keep store order.
        malformed_rows: Positions (in the Orders rows) of matched orders whose
            item payload could not be parsed and was treated as empty.
    """

    total_sales: float
    total_cost: float
    gross_profit: float
    total_stock_expenditure: float
    net_profit: float
    item_sales: dict[str, ItemSales] = field(default_factory=dict)
    orders: list[OrderEntry] = field(default_factory=list)
    malformed_rows: list[int] = field(default_factory=list)

    def item_ranking(self) -> pd.DataFrame:
        """Return item sales as a DataFrame sorted by sales amount, highest first.

        Returns:
            DataFrame with columns: name, quantity_sold, sales_amount
        """
        if not self.item_sales:
            return pd.DataFrame(columns=RANKING_COLUMNS)

        df = pd.DataFrame(
            [
                {"name": name, "quantity_sold": sales.quantity_sold, "sales_amount": sales.sales_amount}
                for name, sales in self.item_sales.items()
            ],
            columns=RANKING_COLUMNS,
        )
        return df.sort_values("sales_amount", ascending=False, kind="mergesort").reset_index(drop=True)


def _aggregate_items(orders: Sequence[OrderEntry]) -> dict[str, ItemSales]:
    """Sum quantity and revenue per item name, in first-seen order."""
    lines = [
        {"name": item.name, "quantity": item.quantity, "amount": item.amount}
        for order in orders
        for item in order.items
    ]
    if not lines:
        return {}

    df = pd.DataFrame(lines, columns=["name", "quantity", "amount"])
    grouped = df.groupby("name", sort=False)[["quantity", "amount"]].sum()
    return {
        str(name): ItemSales(quantity_sold=float(row["quantity"]), sales_amount=float(row["amount"]))
        for name, row in grouped.iterrows()
    }


def compute_report(
    orders: Sequence[Mapping[str, str]],
    stock_rows: Sequence[Mapping[str, str]],
    report_filter: ReportFilter | None = None,
) -> Report:
    """Compute sales, COGS, profit and item sales for a time filter.

    Args:
        orders: Orders table rows in cache order.
        stock_rows: Stock table rows in cache order.
        report_filter: Time filter. Defaults to AllTime.

    Returns:
        Report for the rows whose timestamp matches the filter.

    Examples:
        >>> from pos_ledger.reports.filters import Month
        >>> report = compute_report(
        ...     [{"date": "2024-05-01", "totalPrice": "100", "totalCost": "40",
        ...       "items": '[{"name": "A", "price": 100, "quantity": 1}]'}],
        ...     [],
        ...     Month(2024, 5),
        ... )
        >>> report.gross_profit
        60.0

    """
    if report_filter is None:
        report_filter = AllTime()

    matched: list[OrderEntry] = []
    malformed: list[int] = []
    for position, row in enumerate(orders):
        # Items are only decoded for orders inside the period
        if not report_filter.matches(parse_timestamp(row.get("date"))):
            continue
        errors: list[MalformedRow] = []
        entry = OrderEntry.from_row(row, errors)
        if errors:
            malformed.append(position)
        matched.append(entry)

    totals = pd.DataFrame(
        {
            "total_price": [entry.total_price for entry in matched],
            "total_cost": [entry.total_cost for entry in matched],
        },
        dtype=float,
    )
    total_sales = float(totals["total_price"].sum())
    total_cost = float(totals["total_cost"].sum())

    expenditures = [
        entry.price_total
        for entry in (StockLedgerEntry.from_row(row) for row in stock_rows)
        if report_filter.matches(entry.timestamp)
    ]
    total_stock_expenditure = float(pd.Series(expenditures, dtype=float).sum())

    if malformed:
        logger.warning(
            "Report for %s: %d order(s) with malformed items treated as empty (rows %s)",
            report_filter,
            len(malformed),
            malformed,
        )
    logger.info(
        "Report for %s: %d of %d order(s) matched, sales %.2f, cost %.2f",
        report_filter,
        len(matched),
        len(orders),
        total_sales,
        total_cost,
    )

    return Report(
        total_sales=total_sales,
        total_cost=total_cost,
        gross_profit=total_sales - total_cost,
        total_stock_expenditure=total_stock_expenditure,
        net_profit=total_sales - total_stock_expenditure,
        item_sales=_aggregate_items(matched),
        orders=newest_first(matched),
        malformed_rows=malformed,
    )
