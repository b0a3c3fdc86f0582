from __future__ import annotations

import re
from .base import FieldKind, PatternRule

DOCUMENT_NUMBER_RULE = PatternRule(
    patterns=(
        # "Invoice Number: INV-2024-001" / "Reference No. 88-1020"
        re.compile(
            r"(?:invoice|document|doc|reference|ref)\s*(?:number|nr\.?|no\.?|#)\s*[:#]?\s*([A-Z0-9][A-Z0-9\-/]{2,})",
            re.IGNORECASE,
        ),
        re.compile(r"(?:invoice[#\s:]+)([A-Z0-9-]+)", re.IGNORECASE),
        re.compile(r"(?:inv[#\s:]+)([A-Z0-9-]+)", re.IGNORECASE),
        re.compile(r"#([A-Z0-9-]{6,})", re.IGNORECASE),
    ),
    validators=(
        lambda n: len(n) >= 3,
        lambda n: any(ch.isdigit() for ch in n),
        lambda n: not _is_too_generic(n),
    ),
    priority=7,
)

def _is_too_generic(tok: str) -> bool:
    # header words the loose "invoice <token>" pattern picks up
    return tok.lower() in {"invoice", "number", "date", "total", "order", "nr", "no"}

def _clean_token(tok: str) -> str:
    return tok.strip().strip(".,;:()[]{}")

DOCUMENT_NUMBER_KIND = FieldKind(
    name="document_number",
    keywords=("invoice", "number", "ref", "document", "order", "#"),
    description="invoice or document numbers",
    cleaner=_clean_token,
)
