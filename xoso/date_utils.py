"""
Date Utilities
==============

Centralized date handling for draw queries. Query dates travel as
DD-MM-YYYY strings (the format the result sites use in their URLs);
OCR output and the browser date inputs use ISO YYYY-MM-DD.
"""

import re
from datetime import date, datetime, timedelta
from typing import List, Optional, Union

import pytz
from loguru import logger


class DateManager:
    """
    Central date operations, standardized on Vietnam time.

    Draws happen in the evening (16:15 south, 17:15 central, 18:15 north),
    so "today" must be computed in Asia/Ho_Chi_Minh, not server time.
    """

    VIETNAM_TIMEZONE = pytz.timezone("Asia/Ho_Chi_Minh")

    QUERY_FORMAT = "%d-%m-%Y"
    ISO_FORMAT = "%Y-%m-%d"

    # Sunday=0 convention, matching the ticket/province tables
    WEEKDAY_LABELS = ["CN", "T2", "T3", "T4", "T5", "T6", "T7"]

    @classmethod
    def get_current_vn_time(cls) -> datetime:
        return datetime.now(pytz.UTC).astimezone(cls.VIETNAM_TIMEZONE)

    @classmethod
    def today(cls) -> date:
        return cls.get_current_vn_time().date()

    @classmethod
    def format_query_date(cls, value: Union[date, datetime]) -> str:
        return value.strftime(cls.QUERY_FORMAT)

    @classmethod
    def format_iso_date(cls, value: Union[date, datetime]) -> str:
        return value.strftime(cls.ISO_FORMAT)

    @classmethod
    def parse_query_date(cls, value: str) -> date:
        """
        Parse a query date.

        Accepts DD-MM-YYYY (canonical), DD/MM/YYYY and ISO YYYY-MM-DD.

        Raises:
            ValueError: if the string is not a valid calendar date
        """
        s = str(value).strip()
        for fmt in (cls.QUERY_FORMAT, "%d/%m/%Y", cls.ISO_FORMAT):
            try:
                return datetime.strptime(s, fmt).date()
            except ValueError:
                continue
        raise ValueError(f"Invalid date '{value}', expected DD-MM-YYYY")

    @classmethod
    def format_date_display(cls, value: Union[date, datetime]) -> str:
        """Render 'T2, 21/10/2024' style labels."""
        weekday = (value.weekday() + 1) % 7
        return f"{cls.WEEKDAY_LABELS[weekday]}, {value.strftime('%d/%m/%Y')}"

    @classmethod
    def days_back(cls, days: int, start: Optional[date] = None) -> List[date]:
        """Dates from start (default today) walking backward, newest first."""
        origin = start or cls.today()
        return [origin - timedelta(days=i) for i in range(days)]


def validate_date_format(date_str: str) -> bool:
    """True when date_str is a valid DD-MM-YYYY date."""
    if not re.fullmatch(r"\d{2}-\d{2}-\d{4}", str(date_str)):
        return False
    try:
        datetime.strptime(date_str, DateManager.QUERY_FORMAT)
        return True
    except ValueError:
        return False


def build_date(day: int, month: int, year: int) -> Optional[str]:
    """
    Build an ISO date from loose components, or None if impossible.

    Two-digit years map to 19xx when > 50, otherwise 20xx.
    """
    if year < 100:
        year += 1900 if year > 50 else 2000
    try:
        return date(year, month, day).strftime(DateManager.ISO_FORMAT)
    except ValueError:
        logger.debug(f"Rejected impossible date {day}/{month}/{year}")
        return None


def query_to_iso(date_str: str) -> str:
    """DD-MM-YYYY -> YYYY-MM-DD."""
    return DateManager.format_iso_date(DateManager.parse_query_date(date_str))
