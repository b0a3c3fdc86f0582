from __future__ import annotations
from dataclasses import dataclass
from typing import Any
from rapidfuzz import fuzz

from .extractors import kind_for
from .utils import digits_only
from .validate import parse_amount

EXACT_FIELDS = ("email", "date", "document_number")
FUZZY_OK = 0.85

def _norm(s: str) -> str:
    return "".join(ch.lower() for ch in s.strip() if ch.isalnum() or ch.isspace())

def exact_match(pred: str, gt: str) -> bool:
    return _norm(pred) == _norm(gt)

def fuzzy_score(pred: str, gt: str) -> float:
    return fuzz.token_set_ratio(_norm(pred), _norm(gt)) / 100.0

def amount_close(pred: str, gt: str, tol: float = 0.01) -> bool:
    p = parse_amount(pred)
    g = parse_amount(gt)
    if p is None or g is None:
        return False
    return abs(p - g) <= tol

def phone_match(pred: str, gt: str) -> bool:
    p, g = digits_only(pred), digits_only(gt)
    # tolerate a leading country code on one side
    return bool(p) and bool(g) and (p == g or p.endswith(g) or g.endswith(p))

@dataclass
class EvalRow:
    field: str
    ok: bool
    score: float

def evaluate_one(pred_fields: dict[str, Any], gt_fields: dict[str, Any]) -> list[EvalRow]:
    """Compare flattened predictions ({field: value}) with labels; unlabeled fields are skipped."""
    rows: list[EvalRow] = []
    for field, gt in gt_fields.items():
        if gt is None or gt == "":
            continue
        pred = pred_fields.get(field)
        if pred is None:
            rows.append(EvalRow(field, False, 0.0))
            continue

        pred, gt = str(pred), str(gt)
        if field in EXACT_FIELDS:
            # labels may be written in any format the post-processor understands
            ok = exact_match(pred, kind_for(field).post_processor(gt))
            rows.append(EvalRow(field, ok, 1.0 if ok else 0.0))
        elif field == "amount":
            ok = amount_close(pred, gt)
            rows.append(EvalRow(field, ok, 1.0 if ok else 0.0))
        elif field == "phone":
            ok = phone_match(pred, gt)
            rows.append(EvalRow(field, ok, 1.0 if ok else 0.0))
        else:
            score = fuzzy_score(pred, gt)
            ok = score >= FUZZY_OK
            rows.append(EvalRow(field, ok, score))
    return rows

def summarize_eval(rows: list[EvalRow]) -> dict[str, Any]:
    total = len(rows)
    ok = sum(1 for r in rows if r.ok)
    per_field: dict[str, dict[str, int]] = {}
    for r in rows:
        agg = per_field.setdefault(r.field, {"rows": 0, "ok": 0})
        agg["rows"] += 1
        agg["ok"] += int(r.ok)
    return {"rows": total, "ok": ok, "accuracy": ok / total if total else 0.0, "per_field": per_field}
