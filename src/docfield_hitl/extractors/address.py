from __future__ import annotations
import re
from .base import FieldKind, PatternRule
from ..utils import normalize_whitespace

STREET_SUFFIXES = r"(?:Street|St|Avenue|Ave|Road|Rd|Lane|Ln|Drive|Dr|Boulevard|Blvd)"

ADDRESS_RULE = PatternRule(
    patterns=(
        # 742 Evergreen Terrace Dr
        re.compile(r"(\d+\s+[A-Z][a-z\s]+" + STREET_SUFFIXES + r")\b", re.IGNORECASE),
        # 100 Main St, Springfield, IL 62704
        re.compile(r"(\d+\s+[A-Z0-9][A-Za-z0-9\s,.-]+\s+[A-Z]{2}\s+\d{5})"),
    ),
    validators=(
        lambda a: len(a) > 10,
        lambda a: any(ch.isdigit() for ch in a),
    ),
    priority=6,
)

ADDRESS_KIND = FieldKind(
    name="address",
    keywords=("address", "street", "ship to", "bill to", "located"),
    description="physical addresses",
    cleaner=normalize_whitespace,
)
