from __future__ import annotations
import re
from .base import FieldKind, PatternRule
from ..utils import normalize_whitespace

COMPANY_SUFFIXES = r"(?:Inc|LLC|Corp|Ltd|GmbH)"

NAME_RULE = PatternRule(
    patterns=(
        re.compile(r"(?:name[:\s]+)([A-Z][a-z]+ [A-Z][a-z]+)", re.IGNORECASE),
        re.compile(r"(?:from[:\s]+)([A-Z][a-z]+ [A-Z][a-z]+)", re.IGNORECASE),
        re.compile(r"^([A-Z][a-z]+ [A-Z][a-z]+)", re.MULTILINE),
    ),
    validators=(
        lambda n: len(n.split(" ")) >= 2,
        lambda n: 3 < len(n) < 100,
    ),
    priority=3,
)

COMPANY_RULE = PatternRule(
    patterns=(
        re.compile(r"(?:company[:\s]+)([A-Z][A-Za-z\s&.,]+" + COMPANY_SUFFIXES + ")", re.IGNORECASE),
        re.compile(r"([A-Z][A-Za-z\s&.,]+" + COMPANY_SUFFIXES + ")"),
        re.compile(r"(?:organization[:\s]+)([A-Z][A-Za-z\s&.,]+)", re.IGNORECASE),
    ),
    validators=(
        lambda c: len(c) > 2,
        lambda c: len(c) < 100,
    ),
    priority=8,
)

_WORD_RE = re.compile(r"\w\S*")

def title_case(value: str) -> str:
    """Upper-case the first char of each word, lower-case the rest ("ACME corp" -> "Acme Corp")."""
    return _WORD_RE.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), value)

NAME_KIND = FieldKind(
    name="name",
    keywords=("name", "from", "contact", "attn", "signed"),
    description="person names",
    cleaner=normalize_whitespace,
    post_processor=title_case,
)

COMPANY_KIND = FieldKind(
    name="company",
    keywords=("company", "organization", "vendor", "supplier", "employer"),
    description="company or organization names",
    cleaner=normalize_whitespace,
    post_processor=title_case,
)
