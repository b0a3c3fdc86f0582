from __future__ import annotations
import re
from .base import FieldKind, PatternRule
from ..utils import digits_only
from ..validate import phone_digit_count

# (555) 123-4567 | 555.123.4567 | +1-555-123-4567
US_PHONE_RE = re.compile(r"(?:\+?1[-.\s]?)?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}")
# +44 20 1234 5678 and other loosely grouped international numbers
INTL_PHONE_RE = re.compile(r"(?:\+?[1-9]\d{0,3}[-.\s]?)?(?:\d{1,4}[-.\s]?)?\d{4,}")

PHONE_RULE = PatternRule(
    patterns=(US_PHONE_RE, INTL_PHONE_RE),
    validators=(
        lambda p: phone_digit_count(p) >= 10,
        lambda p: phone_digit_count(p) <= 15,
    ),
    priority=2,
)

def format_phone(value: str) -> str:
    digits = digits_only(value)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return value

PHONE_KIND = FieldKind(
    name="phone",
    keywords=("phone", "tel", "call", "mobile", "cell", "fax"),
    description="phone numbers",
    cleaner=lambda v: digits_only(v.strip()),
    post_processor=format_phone,
)
