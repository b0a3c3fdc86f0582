from __future__ import annotations

import pytest

from docfield_hitl.evaluate import amount_close, evaluate_one, fuzzy_score, phone_match, summarize_eval


def test_field_matchers() -> None:
    assert amount_close("$1,250.00", "1250")
    assert not amount_close("12.00", "n/a")
    assert phone_match("(555) 123-4567", "+1 555 123 4567")
    assert not phone_match("", "5551234567")
    assert fuzzy_score("Acme Widgets Inc", "ACME WIDGETS INC.") == pytest.approx(1.0)


def test_evaluate_one() -> None:
    pred = {
        "email": "billing@acme.example.com",
        "date": "3/5/2024",
        "amount": "$1250.00",
        "company": "Acme Widgets Inc",
    }
    gt = {
        "email": "Billing@Acme.example.com",
        "date": "2024-03-05",
        "amount": "1,250.00",
        "company": "Acme Widgets",
        "phone": "555-123-4567",
        "name": "",
    }

    rows = {r.field: r for r in evaluate_one(pred, gt)}

    assert set(rows) == {"email", "date", "amount", "company", "phone"}
    assert rows["email"].ok
    assert rows["date"].ok
    assert rows["amount"].ok
    assert rows["company"].ok
    assert not rows["phone"].ok


def test_summarize_eval() -> None:
    rows = evaluate_one({"email": "a@b.com"}, {"email": "a@b.com", "phone": "5551234567"})
    stats = summarize_eval(rows)
    assert stats["rows"] == 2
    assert stats["ok"] == 1
    assert stats["accuracy"] == pytest.approx(0.5)
    assert stats["per_field"]["phone"] == {"rows": 1, "ok": 0}
    assert summarize_eval([])["accuracy"] == 0.0
