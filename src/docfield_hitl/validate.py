from __future__ import annotations
import re
from datetime import date, datetime

from dateutil import parser as dateparser

from .utils import digits_only

EARLIEST_DATE = date(1900, 1, 1)
MAX_AMOUNT = 1_000_000.0

def parse_amount(s: str) -> float | None:
    # US format: 1,234.56 with optional $ prefix
    s = re.sub(r"[\s$,]", "", s.strip())
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None

def parse_date(s: str) -> datetime | None:
    try:
        return dateparser.parse(s)
    except (ValueError, OverflowError):
        return None

def is_positive_amount(s: str) -> bool:
    amt = parse_amount(s)
    return amt is not None and amt > 0

def is_bounded_amount(s: str) -> bool:
    amt = parse_amount(s)
    return amt is not None and amt < MAX_AMOUNT

def phone_digit_count(s: str) -> int:
    return len(digits_only(s))
