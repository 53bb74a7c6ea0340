"""
Shared helpers for services: money, dates, paging
"""
import calendar
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from sitebooks.core.config import settings
from sitebooks.core.errors import ValidationError

CENT = Decimal("0.01")


def money(value) -> Decimal:
    """Coerce to a 2-place Decimal"""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def round_whole(value: Decimal) -> Decimal:
    """Round half-up to a whole currency unit"""
    return Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def to_float(value) -> float:
    return float(value) if value is not None else 0.0


def iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def clean(value: Optional[str]) -> Optional[str]:
    """Strip a string; blank becomes None"""
    if value is None:
        return None
    value = value.strip()
    return value or None


def name_key(value: str) -> str:
    """Case-insensitive key for unique names; folds non-ASCII letters too"""
    return value.strip().casefold()


def page_bounds(page: Optional[int], page_size: Optional[int], max_size: Optional[int] = None) -> Tuple[int, int]:
    """Clamp paging parameters; returns (page, page_size)"""
    limit = max_size or settings.MAX_PAGE_SIZE
    page = max(1, page or 1)
    page_size = min(limit, max(1, page_size or settings.DEFAULT_PAGE_SIZE))
    return page, page_size


def paginate(rows: List, page: Optional[int], page_size: Optional[int]) -> Tuple[List, int, int, int]:
    """Slice an in-memory list; returns (rows, total, page, page_size)"""
    page, page_size = page_bounds(page, page_size)
    start = (page - 1) * page_size
    return rows[start:start + page_size], len(rows), page, page_size


def parse_month(month: str) -> Tuple[int, int]:
    try:
        year_str, month_str = month.split("-")
        year, month_num = int(year_str), int(month_str)
    except (AttributeError, ValueError):
        raise ValidationError("Month must be in YYYY-MM format")
    if len(year_str) != 4 or not 1 <= month_num <= 12:
        raise ValidationError("Month must be in YYYY-MM format")
    return year, month_num


def month_range(month: str) -> Tuple[date, date]:
    """First and last day of a YYYY-MM month"""
    year, month_num = parse_month(month)
    last_day = calendar.monthrange(year, month_num)[1]
    return date(year, month_num, 1), date(year, month_num, last_day)


def days_in_month(month: str) -> int:
    year, month_num = parse_month(month)
    return calendar.monthrange(year, month_num)[1]


def month_of(value) -> str:
    return value.strftime("%Y-%m")
