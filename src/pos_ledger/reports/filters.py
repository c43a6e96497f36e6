"""Time filters for reports.

All comparisons are made on UTC timestamps. A row whose timestamp could not
be parsed only matches AllTime.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date

import pandas as pd

from pos_ledger.utils import parse_date, parse_year_month


class ReportFilter(ABC):
    """Base class for report time filters."""

    @abstractmethod
    def matches(self, timestamp: pd.Timestamp | None) -> bool:
        """Return True if a row stamped ``timestamp`` belongs in the report."""


@dataclass(frozen=True)
class AllTime(ReportFilter):
    def matches(self, timestamp: pd.Timestamp | None) -> bool:
        return True

    def __str__(self) -> str:
        return "all time"


@dataclass(frozen=True)
class Day(ReportFilter):
    day: date

    def matches(self, timestamp: pd.Timestamp | None) -> bool:
        return timestamp is not None and timestamp.date() == self.day

    def __str__(self) -> str:
        return self.day.isoformat()


@dataclass(frozen=True)
class Month(ReportFilter):
    year: int
    month: int

    @classmethod
    def parse(cls, year_month: str) -> Month:
        """Build from a ``YYYY-MM`` string."""
        year, month = parse_year_month(year_month)
        return cls(year=year, month=month)

    def matches(self, timestamp: pd.Timestamp | None) -> bool:
        return timestamp is not None and (timestamp.year, timestamp.month) == (self.year, self.month)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class Year(ReportFilter):
    year: int

    def matches(self, timestamp: pd.Timestamp | None) -> bool:
        return timestamp is not None and timestamp.year == self.year

    def __str__(self) -> str:
        return f"{self.year:04d}"


@dataclass(frozen=True)
class Custom(ReportFilter):
    """Closed range from ``start`` 00:00:00.000 to ``end`` 23:59:59.999 UTC."""

    start: date
    end: date

    @property
    def lower_bound(self) -> pd.Timestamp:
        return pd.Timestamp(self.start).tz_localize("UTC")

    @property
    def upper_bound(self) -> pd.Timestamp:
        end_of_day = pd.Timestamp(self.end) + pd.Timedelta(days=1) - pd.Timedelta(milliseconds=1)
        return end_of_day.tz_localize("UTC")

    def matches(self, timestamp: pd.Timestamp | None) -> bool:
        if timestamp is None:
            return False
        return self.lower_bound <= timestamp <= self.upper_bound

    def __str__(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


FILTER_TYPES = ("all", "day", "month", "year", "custom")


def parse_filter(
    filter_type: str = "month",
    date_value: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> ReportFilter:
    """Build a ReportFilter from dashboard-style arguments.

    A filter type whose value is missing falls back to AllTime.

    Args:
        filter_type: One of "all", "day", "month", "year", "custom".
        date_value: "YYYY-MM-DD" for day, "YYYY-MM" for month, "YYYY" for year.
        start_date: Custom range start, "YYYY-MM-DD".
        end_date: Custom range end, "YYYY-MM-DD".

    Returns:
        The matching filter.

    Raises:
        ValueError: If filter_type is unknown or a value is badly formatted.

    Examples:
        >>> parse_filter("month", "2024-05")
        Month(year=2024, month=5)
        >>> parse_filter("day")
        AllTime()

    """
    if filter_type not in FILTER_TYPES:
        raise ValueError(f"Invalid filter type '{filter_type}'. Must be one of {', '.join(FILTER_TYPES)}.")

    if filter_type == "day" and date_value:
        return Day(parse_date(date_value))
    if filter_type == "month" and date_value:
        return Month.parse(date_value)
    if filter_type == "year" and date_value:
        try:
            return Year(int(date_value))
        except ValueError as e:
            raise ValueError(f"Invalid year '{date_value}'. Expected YYYY.") from e
    if filter_type == "custom" and start_date and end_date:
        return Custom(parse_date(start_date), parse_date(end_date))
    return AllTime()
