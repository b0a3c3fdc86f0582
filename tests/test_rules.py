from __future__ import annotations

import logging

import pytest

from docfield_hitl.errors import UnknownFieldError
from docfield_hitl.extractors import Candidate, PatternRule
from docfield_hitl.rules import RulesEngine, dedupe_candidates
from docfield_hitl.validate import parse_date


def test_extracts_email_from_sentence() -> None:
    results = RulesEngine().extract_fields("Contact John at john.doe@example.com", ["email"])
    assert results["email"][0].value == "john.doe@example.com"
    assert results["email"][0].confidence > 0
    assert results["email"][0].source == "rules"


def test_email_case_variants_collapse_to_one_candidate() -> None:
    text = "Emails: test@domain.com, TEST@DOMAIN.COM, user+tag@example.co.uk"
    results = RulesEngine().extract_fields(text, ["email"])
    values = [c.value for c in results["email"]]
    assert sorted(values) == ["test@domain.com", "user+tag@example.co.uk"]


def test_rejects_invalid_emails() -> None:
    results = RulesEngine().extract_fields("Invalid emails: @domain.com, user@, not.email", ["email"])
    assert "email" not in results


def test_extracts_us_phone_as_digits() -> None:
    results = RulesEngine().extract_fields("Call us at (555) 123-4567 or 555.123.4567", ["phone"])
    assert results["phone"][0].value == "5551234567"
    assert len(results["phone"]) == 1


def test_extracts_phone_with_country_code() -> None:
    results = RulesEngine().extract_fields("International: +1-555-123-4567 or +44 20 1234 5678", ["phone"])
    assert "15551234567" in [c.value for c in results["phone"]]


def test_extracts_amount_without_currency_symbols() -> None:
    results = RulesEngine().extract_fields("Total amount: $1,234.56 or USD 999.99", ["amount"])
    values = [c.value for c in results["amount"]]
    assert values[0] == "1234.56"
    assert "999.99" in values


def test_extracts_several_date_formats() -> None:
    results = RulesEngine().extract_fields("Dates: 12/25/2024, 2024-01-15, January 1, 2024", ["date"])
    values = [c.value for c in results["date"]]
    assert len(values) >= 2
    assert all(parse_date(v) is not None for v in values)


def test_rejects_impossible_dates() -> None:
    results = RulesEngine().extract_fields("Invalid dates: 13/40/2024, 2024-15-99", ["date"])
    assert "date" not in results


def test_document_number_requires_a_digit() -> None:
    results = RulesEngine().extract_fields("INVOICE\nInvoice Number: INV-2024-0042", ["document_number"])
    assert [c.value for c in results["document_number"]] == ["INV-2024-0042"]


def test_custom_rule_is_applied() -> None:
    engine = RulesEngine()
    engine.add_custom_rule("customer_id", PatternRule.build([r"ID:(\d+)"], [lambda v: len(v) >= 3], priority=1))

    results = engine.extract_fields("Customer ID:12345 and Order ID:67890", ["customer_id"])
    assert results["customer_id"][0].value == "12345"
    assert engine.rule_counts() == {"total_rules": 9, "custom_rules": 1}


def test_custom_rule_overrides_builtin() -> None:
    engine = RulesEngine()
    engine.add_custom_rule("email", PatternRule.build([r"mail=(\S+)"], priority=1))
    results = engine.extract_fields("mail=someone and x@y.com", ["email"])
    assert [c.value for c in results["email"]] == ["someone"]
    assert engine.rule_counts() == {"total_rules": 8, "custom_rules": 1}


def test_raising_validator_rejects_candidate(caplog: pytest.LogCaptureFixture) -> None:
    engine = RulesEngine()
    engine.add_custom_rule("code", PatternRule.build([r"code (\w+)"], [lambda v: int(v) > 0]))

    with caplog.at_level(logging.WARNING, logger="docfield_hitl.rules"):
        results = engine.extract_fields("code abc and code 42", ["code"])

    assert [c.value for c in results["code"]] == ["42"]
    assert "Validation error" in caplog.text


def test_unknown_field_raises() -> None:
    with pytest.raises(UnknownFieldError):
        RulesEngine().extract_fields("anything", ["email", "favourite_colour"])


def test_confidence_rewards_context_keyword() -> None:
    engine = RulesEngine()
    engine.add_custom_rule("ref", PatternRule.build([r"R-(\d{4})"], priority=5))
    plain = engine.extract_fields("R-1234", ["ref"])["ref"][0]
    with_kw = engine.extract_fields("ref R-1234", ["ref"])["ref"][0]

    assert plain.confidence == pytest.approx(0.75)
    assert with_kw.confidence == pytest.approx(0.95)
    assert "context_keyword" in with_kw.reasons


def test_context_window_contains_match() -> None:
    text = "Please contact John Doe at john@example.com for more information"
    cand = RulesEngine().extract_fields(text, ["email"])["email"][0]
    assert "john@example.com" in cand.context
    assert cand.position == text.index("john@example.com")


def test_results_are_bounded_sorted_and_unique(sample_invoice: str) -> None:
    text = sample_invoice + "\nAlso: a@x.com b@x.com c@x.com d@x.com e@x.com f@x.com g@x.com"
    results = RulesEngine().extract_fields(text)

    assert results
    for cands in results.values():
        assert len(cands) <= 5
        confs = [c.confidence for c in cands]
        assert confs == sorted(confs, reverse=True)
        assert all(0.0 <= c <= 1.0 for c in confs)
        keys = [c.value.lower() for c in cands]
        assert len(keys) == len(set(keys))


def test_dedupe_keeps_highest_confidence() -> None:
    out = dedupe_candidates([Candidate("A@B.COM", 0.4), Candidate("a@b.com", 0.9), Candidate("c@d.com", 0.5)])
    assert [(c.value, c.confidence) for c in out] == [("a@b.com", 0.9), ("c@d.com", 0.5)]


def test_stats() -> None:
    engine = RulesEngine()
    results = engine.extract_fields("Contact: john@example.com, Phone: 555-123-4567, Amount: $100")
    stats = engine.get_stats(results)

    assert stats["total_fields"] == 8
    assert stats["extracted_fields"] >= 3
    assert stats["extraction_rate"] > 0
    assert 0 < stats["average_confidence"] <= 1
