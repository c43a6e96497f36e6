"""Reports domain module.

This module computes time-bucketed sales and expense reports from Orders
and Stock rows:

- **filters**: AllTime, Day, Month, Year and Custom time filters
- **aggregate**: compute_report and the Report it returns

Example:
    >>> from pos_ledger.reports import Month, compute_report
    >>> report = compute_report(order_rows, stock_rows, Month(2024, 5))
    >>> report.item_ranking().head()
"""

from pos_ledger.reports.aggregate import ItemSales, Report, compute_report
from pos_ledger.reports.filters import (
    AllTime,
    Custom,
    Day,
    Month,
    ReportFilter,
    Year,
    parse_filter,
)

__all__ = [
    "AllTime",
    "Custom",
    "Day",
    "ItemSales",
    "Month",
    "Report",
    "ReportFilter",
    "Year",
    "compute_report",
    "parse_filter",
]
