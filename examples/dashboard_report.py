"""Example: Sales and expense report straight from the Google spreadsheet

This example loads the Orders and Stock worksheets through LedgerService and
prints the dashboard figures for one period, followed by the item ranking.

Prerequisites:
- Set GOOGLE_SERVICE_ACCOUNT_EMAIL, GOOGLE_PRIVATE_KEY, GOOGLE_SPREADSHEET_ID
- Share the spreadsheet with the service account email

Usage:
    python examples/dashboard_report.py --filter month --date 2024-05
    python examples/dashboard_report.py --filter custom --start 2024-05-01 --end 2024-05-15 -v
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from pos_ledger import LedgerService, PosLedgerError
from pos_ledger.reports import parse_filter
from pos_ledger.reports.filters import FILTER_TYPES

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="dashboard-report",
        description="Print sales, cost and profit figures for one period.",
    )
    p.add_argument("--filter", choices=FILTER_TYPES, default="month", help="Period type (default: month).")
    p.add_argument("--date", default=None, help="YYYY-MM-DD, YYYY-MM or YYYY depending on --filter.")
    p.add_argument("--start", default=None, help="First day of a custom range (YYYY-MM-DD).")
    p.add_argument("--end", default=None, help="Last day of a custom range (YYYY-MM-DD).")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging, including cache hits.")
    return p


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        report_filter = parse_filter(args.filter, args.date, args.start, args.end)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    print(f"Computing report for {report_filter}...")
    try:
        with LedgerService.from_settings() as ledger:
            report = ledger.compute_report(report_filter)
    except PosLedgerError as e:
        logger.error("Report failed: %s", e)
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    print("\nSummary:")
    print(f"  - Total sales: {report.total_sales:,.2f}")
    print(f"  - Total cost: {report.total_cost:,.2f}")
    print(f"  - Gross profit: {report.gross_profit:,.2f}")
    print(f"  - Stock expenditure: {report.total_stock_expenditure:,.2f}")
    print(f"  - Net profit: {report.net_profit:,.2f}")
    print(f"  - Orders: {len(report.orders)}")

    if report.malformed_rows:
        print(f"\n{len(report.malformed_rows)} order(s) had unreadable items and were counted without them")

    print("\nItem ranking:")
    print(report.item_ranking().to_string(index=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
