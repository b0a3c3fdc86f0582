from __future__ import annotations
import json
import os
import re
from datetime import datetime, timezone
from typing import Any, Iterable

def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)

def write_jsonl(path: str, rows: Iterable[dict[str, Any]]) -> None:
    ensure_dir(os.path.dirname(path) or ".")
    with open(path, "w", encoding="utf-8") as f:
        for r in rows:
            f.write(json.dumps(r, ensure_ascii=False) + "\n")

def read_jsonl(path: str) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    with open(path, "r", encoding="utf-8") as f:
        for ln in f:
            ln = ln.strip()
            if ln:
                rows.append(json.loads(ln))
    return rows

def normalize_whitespace(s: str) -> str:
    return re.sub(r"\s+", " ", s).strip()

def digits_only(s: str) -> str:
    return re.sub(r"\D", "", s)

def window(text: str, start: int, end: int, radius: int) -> str:
    """Raw slice of `text` reaching `radius` chars past each side of [start, end)."""
    return text[max(0, start - radius):min(len(text), end + radius)]

def extract_context(text: str, position: int, radius: int = 50) -> str:
    # centered on the match start, not the match span
    return normalize_whitespace(window(text, position, position, radius))

def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def utc_now_iso() -> str:
    return utc_now().isoformat()
