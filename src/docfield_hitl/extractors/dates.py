from __future__ import annotations
import re
from .base import FieldKind, PatternRule
from ..validate import EARLIEST_DATE, parse_date

DATE_RULE = PatternRule(
    patterns=(
        re.compile(r"(\d{1,2}/\d{1,2}/\d{4})"),      # 12/25/2024
        re.compile(r"(\d{4}-\d{2}-\d{2})"),          # 2024-01-15
        re.compile(r"(\w+ \d{1,2}, \d{4})"),         # January 1, 2024
        re.compile(r"(\d{1,2} \w+ \d{4})"),          # 1 January 2024
    ),
    validators=(
        lambda d: parse_date(d) is not None,
        lambda d: parse_date(d).date() > EARLIEST_DATE,
    ),
    priority=4,
)

def format_date(value: str) -> str:
    """Render as US short date (M/D/YYYY); unparseable values pass through."""
    dt = parse_date(value)
    if dt is None:
        return value
    return f"{dt.month}/{dt.day}/{dt.year}"

DATE_KIND = FieldKind(
    name="date",
    keywords=("date", "dated", "due", "issued"),
    description="dates",
    post_processor=format_date,
)
