"""Shared parsing helpers for report arguments.

Examples:
    >>> from pos_ledger.utils import parse_date, parse_year_month
    >>> parse_date("2024-05-01")
    datetime.date(2024, 5, 1)
    >>> parse_year_month("2024-05")
    (2024, 5)

"""

from __future__ import annotations

import re
from datetime import date, datetime

# Month filter pattern: YYYY-MM
YEAR_MONTH_RE = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{2})$")


def parse_date(s: str) -> date:
    """Parse a date string in YYYY-MM-DD format.

    Args:
        s: Date string in ISO format (YYYY-MM-DD).

    Returns:
        Parsed date object.

    Raises:
        ValueError: If the date string is not in YYYY-MM-DD format.

    """
    return datetime.strptime(s.strip(), "%Y-%m-%d").date()


def parse_year_month(s: str) -> tuple[int, int]:
    """Parse a month string in YYYY-MM format.

    Raises:
        ValueError: If the string is not YYYY-MM or the month is out of range.

    """
    match = YEAR_MONTH_RE.match(s.strip())
    if not match:
        raise ValueError(f"Invalid month '{s}'. Expected YYYY-MM.")
    year, month = int(match.group("year")), int(match.group("month"))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month '{s}'. Month must be between 01 and 12.")
    return year, month
