from __future__ import annotations
import re
from .base import FieldKind, PatternRule

EMAIL_RULE = PatternRule(
    patterns=(
        re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})"),
        re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE),
    ),
    validators=(
        lambda e: "@" in e and "." in e,
        lambda e: 5 < len(e) < 255,
    ),
    priority=1,
)

EMAIL_KIND = FieldKind(
    name="email",
    keywords=("email", "e-mail", "mail to", "mailto"),
    description="email addresses",
    cleaner=lambda v: v.strip().lower(),
    post_processor=lambda v: v.strip().lower(),
)
