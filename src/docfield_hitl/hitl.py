from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Literal

from .confidence import USER_CONFIDENCE
from .extractors import Candidate, FieldResult, kind_for

if TYPE_CHECKING:
    from .pipeline import ExtractionResult

Severity = Literal["high", "medium", "low"]
SEVERITY_ORDER = {"high": 3, "medium": 2, "low": 1}

LOW_CONFIDENCE = 0.5
ALTERNATIVE_CONFIDENCE = 0.6
HIGH_CONFIDENCE = 0.8
MAX_ALTERNATIVES = 3

@dataclass
class ReviewRecommendation:
    field: str
    severity: Severity
    message: str
    extracted_value: str | None = None
    alternatives: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"field": self.field, "severity": self.severity, "message": self.message}
        if self.extracted_value is not None:
            out["extracted_value"] = self.extracted_value
        if self.alternatives is not None:
            out["alternatives"] = list(self.alternatives)
        return out

def review_field(field: str, cands: FieldResult | None) -> ReviewRecommendation | None:
    if not cands:
        return ReviewRecommendation(field, "high", "Field not found - manual entry required")

    best = cands[0]
    if best.confidence < LOW_CONFIDENCE:
        return ReviewRecommendation(
            field, "medium", "Low confidence extraction - please verify", extracted_value=best.value,
        )
    if len(cands) > 1 and cands[1].confidence > ALTERNATIVE_CONFIDENCE:
        return ReviewRecommendation(
            field, "low", "Multiple similar matches found - please confirm",
            alternatives=[c.value for c in cands[:MAX_ALTERNATIVES]],
        )
    return None

def review_recommendations(extracted: dict[str, FieldResult], requested: Iterable[str]) -> list[ReviewRecommendation]:
    recs: list[ReviewRecommendation] = []
    for f in requested:
        rec = review_field(f, extracted.get(f))
        if rec is not None:
            recs.append(rec)
    # stable: fields keep request order within a severity
    return sorted(recs, key=lambda r: SEVERITY_ORDER[r.severity], reverse=True)

def average_best_confidence(extracted: dict[str, FieldResult]) -> float:
    bests = [cands[0].confidence for cands in extracted.values() if cands]
    return sum(bests) / len(bests) if bests else 0.0

def summarize(
    extracted: dict[str, FieldResult],
    requested: list[str],
    method: str,
    fallback_used: bool,
) -> dict[str, Any]:
    found = [f for f in requested if extracted.get(f)]
    high = [f for f in found if extracted[f][0].confidence >= HIGH_CONFIDENCE]
    return {
        "total_fields_requested": len(requested),
        "fields_extracted": len(found),
        "high_confidence_fields": len(high),
        "extraction_rate": len(found) / len(requested) if requested else 0.0,
        "average_confidence": average_best_confidence({f: extracted[f] for f in found}),
        "extraction_method": method,
        "fallback_used": fallback_used,
        "fields_found": found,
        "recommended_review": [r.to_dict() for r in review_recommendations(extracted, requested)],
    }

def apply_user_edit(result: "ExtractionResult", field: str, value: str) -> "ExtractionResult":
    """
    Record a reviewer's correction as the top candidate for `field`.

    The edit goes through the field's post-processor, displaces any other
    candidate with the same value, and the summary is recomputed.
    """
    value = kind_for(field).post_processor(value.strip())
    if not value:
        raise ValueError(f"Empty value for field {field!r}")

    edited = Candidate(value=value, confidence=USER_CONFIDENCE, source="user", reasons=["user_edit"])
    others = [c for c in result.extracted_fields.get(field, []) if c.value.lower() != value.lower()]
    result.extracted_fields[field] = [edited] + others

    requested = list(result.requested_fields)
    if field not in requested:
        requested.append(field)
        result.requested_fields = requested
    result.metadata["user_modified"] = True
    result.summary = summarize(
        result.extracted_fields, requested,
        result.metadata.get("extraction_method", "rules"),
        bool(result.metadata.get("fallback_used")),
    )
    return result
