from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from .utils import utc_now

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "...[truncated]"
WORDS_PER_TOKEN = 0.75
TRUNCATION_MARGIN = 0.9

# USD per token. Only the local backend is free.
PRICING: dict[str, dict[str, float]] = {
    "gpt-4o-mini": {"input": 0.00015 / 1000, "output": 0.0006 / 1000},
    "gpt-4o": {"input": 0.0025 / 1000, "output": 0.01 / 1000},
    "gpt-4-turbo": {"input": 0.01 / 1000, "output": 0.03 / 1000},
    "gpt-4": {"input": 0.03 / 1000, "output": 0.06 / 1000},
    "gpt-3.5-turbo": {"input": 0.0005 / 1000, "output": 0.0015 / 1000},
    "ollama": {"input": 0.0, "output": 0.0},
}


@dataclass
class LedgerEntry:
    timestamp: datetime
    model: str
    tokens_in: int
    tokens_out: int
    cost: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "model": self.model,
            "tokens_in": self.tokens_in,
            "tokens_out": self.tokens_out,
            "cost": self.cost,
        }


@dataclass
class SessionLedger:
    started_at: datetime
    total_cost: float = 0.0
    requests: list[LedgerEntry] = field(default_factory=list)


@dataclass(frozen=True)
class TrackedCost:
    request_cost: float
    session_total: float
    daily_total: float
    request_count: int


@dataclass(frozen=True)
class CostCheck:
    allowed: bool
    reason: str | None = None
    session_cost: float = 0.0
    daily_cost: float = 0.0


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per 0.75 words."""
    words = len(text.split())
    return math.ceil(words / WORDS_PER_TOKEN)


def truncate_to_token_limit(text: str, max_tokens: int) -> str:
    est = estimate_tokens(text)
    if est <= max_tokens:
        return text
    ratio = max_tokens / est
    target = math.floor(len(text) * ratio * TRUNCATION_MARGIN)
    return text[:target] + TRUNCATION_MARKER


class CostLedger:
    """
    In-process spend tracking per session and per UTC day.

    All mutation happens under one lock so concurrent sessions can report
    costs; totals only grow until reset().
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now, pricing: dict[str, dict[str, float]] | None = None):
        self._clock = clock
        self.pricing = PRICING if pricing is None else pricing
        self._sessions: dict[str, SessionLedger] = {}
        self._daily: dict[str, float] = {}
        self._request_counts: dict[str, int] = {}
        self._lock = threading.Lock()

    def _today(self) -> str:
        return self._clock().date().isoformat()

    def price_for(self, model: str) -> dict[str, float]:
        """
        Per-token price for `model`: exact entry, else the longest listed
        prefix (dated snapshots like gpt-4o-2024-08-06), else the highest
        listed prices.
        """
        if model in self.pricing:
            return self.pricing[model]
        prefixes = [k for k in self.pricing if model.startswith(k)]
        if prefixes:
            return self.pricing[max(prefixes, key=len)]
        logger.warning("No price listed for model %s, charging the highest listed price", model)
        return {
            "input": max((p["input"] for p in self.pricing.values()), default=0.0),
            "output": max((p["output"] for p in self.pricing.values()), default=0.0),
        }

    def calculate_cost(self, model: str, tokens_in: int, tokens_out: int) -> float:
        price = self.price_for(model)
        return tokens_in * price["input"] + tokens_out * price["output"]

    def track_request(self, session_id: str, model: str, tokens_in: int, tokens_out: int) -> TrackedCost:
        cost = self.calculate_cost(model, tokens_in, tokens_out)
        now = self._clock()
        today = now.date().isoformat()

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = SessionLedger(started_at=now)
                self._sessions[session_id] = session
            session.total_cost += cost
            session.requests.append(LedgerEntry(now, model, tokens_in, tokens_out, cost))

            self._daily[today] = self._daily.get(today, 0.0) + cost
            self._request_counts[session_id] = self._request_counts.get(session_id, 0) + 1

            tracked = TrackedCost(
                request_cost=cost,
                session_total=session.total_cost,
                daily_total=self._daily[today],
                request_count=self._request_counts[session_id],
            )

        logger.info("LLM request tracked - session=%s model=%s cost=$%.6f", session_id, model, cost)
        return tracked

    def can_make_request(
        self,
        session_id: str,
        max_per_request: float,
        max_daily_cost: float | None = None,
    ) -> CostCheck:
        with self._lock:
            session = self._sessions.get(session_id)
            session_cost = session.total_cost if session else 0.0
            daily_total = self._daily.get(self._today(), 0.0)

        if max_daily_cost is not None and (
            daily_total >= max_daily_cost or daily_total + max_per_request > max_daily_cost
        ):
            return CostCheck(False, "Request would exceed daily cost limit", session_cost, daily_total)

        return CostCheck(True, None, session_cost, daily_total)

    def session_stats(self, session_id: str) -> dict[str, Any]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return {"total_cost": 0.0, "request_count": 0, "average_cost": 0.0, "started_at": None, "requests": []}
            n = len(session.requests)
            return {
                "total_cost": session.total_cost,
                "request_count": n,
                "average_cost": session.total_cost / n if n else 0.0,
                "started_at": session.started_at.isoformat(),
                "requests": [r.to_dict() for r in session.requests],
            }

    def daily_stats(self, date: str | None = None) -> dict[str, Any]:
        target = date or self._today()
        with self._lock:
            count = sum(
                1
                for s in self._sessions.values()
                for r in s.requests
                if r.timestamp.date().isoformat() == target
            )
            return {"date": target, "total_cost": self._daily.get(target, 0.0), "request_count": count}

    def reset(self, session_id: str | None = None) -> None:
        with self._lock:
            if session_id is not None:
                self._sessions.pop(session_id, None)
                self._request_counts.pop(session_id, None)
            else:
                self._sessions.clear()
                self._request_counts.clear()
                self._daily.clear()
        if session_id is not None:
            logger.info("Reset cost tracking for session: %s", session_id)
        else:
            logger.info("Reset all cost tracking data")

    # module helpers exposed on the ledger for callers holding only an instance
    estimate_tokens = staticmethod(estimate_tokens)
    truncate_to_token_limit = staticmethod(truncate_to_token_limit)
