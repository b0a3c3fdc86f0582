from __future__ import annotations

import re
from dataclasses import dataclass
from .extractors.base import MAX_PRIORITY, FieldKind, PatternRule
from .utils import clamp01, window

BASE_CONFIDENCE = 0.50
COMPLEX_PATTERN_LEN = 20
COMPLEXITY_BONUS = 0.10
KEYWORD_BONUS = 0.20
KEYWORD_RADIUS = 20
PRIORITY_STEP = 0.05

# Fixed prior for fallback candidates: the backend does not report calibrated scores
FALLBACK_CONFIDENCE = 0.70
USER_CONFIDENCE = 1.0


@dataclass
class ConfidenceResult:
    conf: float
    reasons: list[str]


def rule_confidence(
    match: re.Match[str],
    pattern: re.Pattern[str],
    rule: PatternRule,
    kind: FieldKind,
) -> ConfidenceResult:
    """
    Scores one accepted rule match.

    conf = 0.5 + complexity bonus + keyword bonus + priority bonus, clamped to [0,1]

    - complexity: +0.10 when the pattern source is longer than 20 chars
    - keyword: +0.20 when one of the field's keywords sits within 20 chars
      either side of the match
    - priority: (MAX_PRIORITY - priority) * 0.05, so high priority rules
      (small numbers) score higher
    """
    reasons: list[str] = ["base_prior"]
    conf = BASE_CONFIDENCE

    if len(pattern.pattern) > COMPLEX_PATTERN_LEN:
        conf += COMPLEXITY_BONUS
        reasons.append("complex_pattern")

    ctx = window(match.string, match.start(), match.end(), KEYWORD_RADIUS).lower()
    if any(kw in ctx for kw in kind.keywords):
        conf += KEYWORD_BONUS
        reasons.append("context_keyword")

    priority_bonus = (MAX_PRIORITY - rule.priority) * PRIORITY_STEP
    if priority_bonus:
        conf += priority_bonus
        reasons.append(f"priority_{rule.priority}")

    return ConfidenceResult(conf=clamp01(conf), reasons=reasons)
