"""POS Ledger - cached spreadsheet ledger, costing and sales reports.

This package keeps a restaurant's stock purchases, menu recipes, orders and
an ingredient price registry in a spreadsheet-based record store and derives
costs and reports from them:

- **Stores**: Google Sheets (or in-memory) tables of string rows
- **Caches**: table listing (60s) and per-table rows (30s), invalidated on write
- **Costing**: ingredient unit cost, recipe cost, order cost frozen at submission
- **Registry**: dated ingredient prices, newest entry wins when costing
- **Reports**: sales, COGS, gross/net profit and item ranking per time filter

Module Structure:
    pos_ledger.store: RecordStore interface and clients
    pos_ledger.cache: MetadataCache and RowCache
    pos_ledger.costing: Unit and recipe cost resolution
    pos_ledger.reports: Time filters and compute_report
    pos_ledger.service: LedgerService, the caller-facing entry point

Quick Start:
    >>> from pos_ledger import LedgerService
    >>> from pos_ledger.reports import parse_filter
    >>>
    >>> ledger = LedgerService.from_settings()  # reads GOOGLE_* env vars
    >>> report = ledger.compute_report(parse_filter("month", "2024-05"))
    >>> print(report.total_sales, report.gross_profit)
    >>> print(report.item_ranking().head())
    >>> ledger.close()
"""

__version__ = "0.1.0"

from pos_ledger.config import LedgerSettings
from pos_ledger.exceptions import (
    ConfigError,
    MalformedRow,
    PosLedgerError,
    RemoteUnavailable,
    ValidationError,
)
from pos_ledger.service import LedgerService

__all__ = [
    "ConfigError",
    "LedgerService",
    "LedgerSettings",
    "MalformedRow",
    "PosLedgerError",
    "RemoteUnavailable",
    "ValidationError",
    "__version__",
]
