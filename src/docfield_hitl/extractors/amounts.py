from __future__ import annotations

import re
from .base import FieldKind, PatternRule
from ..validate import is_bounded_amount, is_positive_amount, parse_amount

# $1,234.56 | 50.00 dollars | 25.99 USD | USD 25.99 | Amount: 100
AMOUNT_RULE = PatternRule(
    patterns=(
        re.compile(r"\$([0-9,]+\.?\d{0,2})"),
        re.compile(r"([0-9,]+\.?\d{0,2})\s*(?:dollars?|USD)", re.IGNORECASE),
        re.compile(r"(?:amount[:\s]+)\$?([0-9,]+\.?\d{0,2})", re.IGNORECASE),
        re.compile(r"(?:USD|US\$)\s*([0-9,]+\.?\d{0,2})"),
    ),
    validators=(
        is_positive_amount,
        is_bounded_amount,
    ),
    priority=5,
)

def clean_amount(value: str) -> str:
    return re.sub(r"[$,]", "", value.strip())

def format_amount(value: str) -> str:
    amt = parse_amount(value)
    if amt is None:
        return value
    return f"${amt:.2f}"

AMOUNT_KIND = FieldKind(
    name="amount",
    keywords=("amount", "total", "due", "balance", "paid", "price"),
    description="monetary amounts",
    cleaner=clean_amount,
    post_processor=format_amount,
)
