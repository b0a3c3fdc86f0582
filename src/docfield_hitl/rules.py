from __future__ import annotations

import logging
import threading
from typing import Any, Iterable

from .confidence import rule_confidence
from .errors import UnknownFieldError
from .extractors import DEFAULT_RULES, Candidate, FieldResult, PatternRule, kind_for
from .utils import extract_context

logger = logging.getLogger(__name__)

RULES_TOP_K = 5
CONTEXT_RADIUS = 50


def dedupe_candidates(cands: Iterable[Candidate]) -> FieldResult:
    """
    Keep one candidate per case-insensitive value (the highest confidence,
    first seen on ties) and sort descending by confidence.
    """
    unique: dict[str, Candidate] = {}
    for c in cands:
        key = c.value.lower()
        kept = unique.get(key)
        if kept is None or kept.confidence < c.confidence:
            unique[key] = c
    return sorted(unique.values(), key=lambda c: c.confidence, reverse=True)


class RulesEngine:
    """
    Applies the rule registry to plain text.

    The registry starts with the built-in rules and is owned by this
    instance; add_custom_rule() swaps in a new dict under a lock so that
    extractions already running keep their snapshot.
    """

    def __init__(self, rules: dict[str, PatternRule] | None = None, top_k: int = RULES_TOP_K):
        self._rules: dict[str, PatternRule] = dict(DEFAULT_RULES if rules is None else rules)
        self._custom: set[str] = set()
        self._lock = threading.Lock()
        self.top_k = top_k

    @property
    def rules(self) -> dict[str, PatternRule]:
        return self._rules

    @property
    def field_names(self) -> list[str]:
        return list(self._rules)

    def add_custom_rule(self, field_name: str, rule: PatternRule) -> None:
        if not field_name:
            raise ValueError("field_name must be non-empty")
        with self._lock:
            updated = dict(self._rules)
            updated[field_name] = rule
            self._rules = updated
            self._custom.add(field_name)
        logger.info("Added custom rule for field: %s", field_name)

    def rule_counts(self) -> dict[str, int]:
        return {"total_rules": len(self._rules), "custom_rules": len(self._custom)}

    def check_fields(self, fields: Iterable[str]) -> list[str]:
        wanted = list(dict.fromkeys(fields))
        unknown = [f for f in wanted if f not in self._rules]
        if unknown:
            raise UnknownFieldError(unknown)
        return wanted

    def extract_fields(self, text: str, fields: Iterable[str] | None = None) -> dict[str, FieldResult]:
        rules = self._rules  # snapshot
        names = list(rules) if fields is None else self.check_fields(fields)

        results: dict[str, FieldResult] = {}
        for name in names:
            cands = self.extract_field(text, name, rules[name])
            if cands:
                results[name] = cands
        return results

    def extract_field(self, text: str, field: str, rule: PatternRule) -> FieldResult:
        kind = kind_for(field)
        matches: list[Candidate] = []

        for pattern in rule.patterns:
            for m in pattern.finditer(text):
                raw = m.group(1) if m.re.groups and m.group(1) is not None else m.group(0)
                value = kind.cleaner(raw)
                if not value or not self._validate(field, value, rule):
                    continue
                scored = rule_confidence(m, pattern, rule, kind)
                matches.append(Candidate(
                    value=value,
                    confidence=scored.conf,
                    source="rules",
                    position=m.start(),
                    context=extract_context(text, m.start(), CONTEXT_RADIUS),
                    reasons=scored.reasons,
                ))

        return dedupe_candidates(matches)[: self.top_k]

    @staticmethod
    def _validate(field: str, value: str, rule: PatternRule) -> bool:
        for validator in rule.validators:
            try:
                if not validator(value):
                    return False
            except Exception as e:
                logger.warning("Validation error for %s value %r: %s", field, value, e)
                return False
        return True

    def get_stats(self, results: dict[str, FieldResult]) -> dict[str, Any]:
        total_fields = len(self._rules)
        extracted = 0
        total_matches = 0
        conf_sum = 0.0

        for cands in results.values():
            if cands:
                extracted += 1
                total_matches += len(cands)
                conf_sum += sum(c.confidence for c in cands)

        return {
            "total_fields": total_fields,
            "extracted_fields": extracted,
            "total_matches": total_matches,
            "extraction_rate": extracted / total_fields if total_fields else 0.0,
            "average_confidence": conf_sum / total_matches if total_matches else 0.0,
        }
