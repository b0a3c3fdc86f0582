from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import pytest
import requests

from docfield_hitl.costs import CostLedger
from docfield_hitl.llm import Completion, FallbackBackend


SAMPLE_INVOICE = """INVOICE
Invoice Number: INV-2024-0042
Date: March 5, 2024
From: Jane Smith
Company: Acme Widgets Inc
Email: billing@acme.example.com
Phone: (555) 123-4567
Ship to: 742 Evergreen Terrace Dr
Amount due: $1,250.00
"""


class ScriptedBackend(FallbackBackend):
    """In-memory backend returning a canned response (or raising) without any transport."""

    provider = "scripted"

    def __init__(
        self,
        response: str = "{}",
        error: Exception | None = None,
        tokens: tuple[int, int] = (100, 20),
        model: str = "ollama",
        status: str = "healthy",
        **kwargs: Any,
    ):
        super().__init__(model, sleep=lambda s: None, **kwargs)
        self.response = response
        self.error = error
        self.tokens = tokens
        self.status = status
        self.requested: list[list[str]] = []

    def extract_fields(self, text: str, fields: list[str], session_id: str):
        self.requested.append(list(fields))
        return super().extract_fields(text, fields, session_id)

    def _complete(self, prompt: str) -> Completion:
        if self.error is not None:
            raise self.error
        return Completion(self.response, self.tokens[0], self.tokens[1], self.model)

    def health_check(self) -> dict[str, Any]:
        return {"provider": self.provider, "status": self.status, "model": self.model}


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class MutableClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def sample_invoice() -> str:
    return SAMPLE_INVOICE


@pytest.fixture
def make_backend() -> Callable[..., ScriptedBackend]:
    return ScriptedBackend


@pytest.fixture
def fake_response() -> type[FakeResponse]:
    return FakeResponse


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def ledger(clock: MutableClock) -> CostLedger:
    return CostLedger(clock=clock)
