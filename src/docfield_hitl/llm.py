from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

import requests
from rapidfuzz import fuzz

from .config import Settings
from .confidence import FALLBACK_CONFIDENCE
from .costs import CostLedger, estimate_tokens, truncate_to_token_limit
from .errors import FallbackError
from .extractors import Candidate, kind_for
from .utils import extract_context

logger = logging.getLogger(__name__)

FALLBACK_CONTEXT = "Extracted by LLM fallback"
EVIDENCE_MIN_SCORE = 92


@dataclass(frozen=True)
class Completion:
    text: str
    tokens_in: int
    tokens_out: int
    model: str


def build_llm_prompt(text: str, fields: list[str]) -> str:
    wanted = ", ".join(f'"{f}": "{kind_for(f).description}"' for f in fields)
    return f"""
Extract the following information from this document text and return ONLY a valid JSON object.

Fields to extract: {{{wanted}}}

Document text:
<<<{text}>>>

Return format: {{"fieldName": "extracted_value", ...}}
If a field cannot be found, use null as the value.
Only return the JSON object, no additional text.
""".strip()


def _locate(text: str, value: str) -> int | None:
    """Offset of `value` in `text`: exact (case-insensitive) first, then fuzzy."""
    idx = text.lower().find(value.lower())
    if idx != -1:
        return idx
    if not text or len(value) < 4:
        return None
    al = fuzz.partial_ratio_alignment(value.lower(), text.lower())
    if al is not None and al.score >= EVIDENCE_MIN_SCORE:
        return al.dest_start
    return None


def parse_llm_response(response_text: str, fields: list[str], text: str = "") -> dict[str, list[Candidate]]:
    """
    Untrusted model output -> candidates for the requested fields.

    The JSON object is cut from the first '{' to the last '}'. Anything
    undecodable yields {}; values that are not non-empty strings are
    dropped, as are keys that were not requested. Values are only trimmed;
    field formatting is left to post-processing.
    """
    raw = (response_text or "").strip()
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end <= start:
        logger.error("No JSON object in LLM response: %r", raw[:200])
        return {}

    try:
        payload = json.loads(raw[start:end + 1])
    except json.JSONDecodeError as e:
        logger.error("Failed to parse LLM response: %s", e)
        return {}
    if not isinstance(payload, dict):
        return {}

    out: dict[str, list[Candidate]] = {}
    for f in fields:
        raw_val = payload.get(f)
        if not isinstance(raw_val, str) or not raw_val.strip():
            continue
        val = raw_val.strip()
        pos = _locate(text, val) if text else None
        out[f] = [Candidate(
            value=val,
            confidence=FALLBACK_CONFIDENCE,
            source="fallback",
            position=pos,
            context=extract_context(text, pos) if pos is not None else FALLBACK_CONTEXT,
            reasons=["llm_fallback_used"] + (["llm_evidence_located"] if pos is not None else []),
        )]
    return out


class FallbackBackend(ABC):
    """
    Generative-model extractor consulted for gap fields only.

    Subclasses supply the transport (_complete) and health probe; prompt
    building, truncation, cost tracking and response parsing live here.
    """

    provider = "base"

    def __init__(
        self,
        model: str,
        ledger: CostLedger | None = None,
        timeout_s: int = 30,
        max_retries: int = 3,
        max_prompt_tokens: int = 3000,
        max_output_tokens: int = 500,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.model = model
        self.ledger = ledger if ledger is not None else CostLedger()
        self.timeout_s = timeout_s
        self.max_retries = max(1, max_retries)
        self.max_prompt_tokens = max_prompt_tokens
        self.max_output_tokens = max_output_tokens
        self._sleep = sleep

    @property
    def pricing_model(self) -> str:
        return self.model

    @abstractmethod
    def _complete(self, prompt: str) -> Completion:
        ...

    @abstractmethod
    def health_check(self) -> dict[str, Any]:
        ...

    def build_prompt(self, text: str, fields: list[str]) -> str:
        return build_llm_prompt(truncate_to_token_limit(text, self.max_prompt_tokens), fields)

    def extract_fields(self, text: str, fields: list[str], session_id: str) -> dict[str, list[Candidate]]:
        logger.info("Attempting LLM extraction for session %s, fields: %s", session_id, ", ".join(fields))
        prompt = self.build_prompt(text, fields)
        completion = self._complete(prompt)
        self.ledger.track_request(session_id, self.pricing_model, completion.tokens_in, completion.tokens_out)
        result = parse_llm_response(completion.text, fields, text)
        logger.info("LLM extraction completed for session %s: %d field(s)", session_id, len(result))
        return result

    def _with_retries(self, call: Callable[[], Completion]) -> Completion:
        """Retry transient failures with exponential backoff (2, 4, 8s cap)."""
        last_err: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return call()
            except _NonRetryable as e:
                raise FallbackError(str(e)) from e
            except (requests.RequestException, ValueError) as e:
                last_err = e
                logger.warning("%s request failed (attempt %d/%d): %s", self.provider, attempt, self.max_retries, e)
                if attempt < self.max_retries:
                    self._sleep(min(2 ** attempt, 8))
        raise FallbackError(self._describe(last_err)) from last_err

    def _describe(self, err: Exception | None) -> str:
        return f"{self.provider} API error: {err}"


class _NonRetryable(Exception):
    pass


class OllamaBackend(FallbackBackend):
    provider = "ollama"

    def __init__(self, host: str, model: str, **kwargs: Any):
        super().__init__(model, **kwargs)
        self.host = host.rstrip("/")

    @property
    def pricing_model(self) -> str:
        return "ollama"

    def _complete(self, prompt: str) -> Completion:
        url = f"{self.host}/api/generate"
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "keep_alive": "10m",
            "options": {
                "temperature": 0.1,
                "top_p": 0.9,
            },
        }

        def call() -> Completion:
            r = requests.post(url, json=payload, timeout=self.timeout_s)
            r.raise_for_status()
            data = r.json()
            text = data.get("response") or ""
            return Completion(
                text=text,
                tokens_in=int(data.get("prompt_eval_count") or estimate_tokens(prompt)),
                tokens_out=int(data.get("eval_count") or estimate_tokens(text)),
                model=self.model,
            )

        return self._with_retries(call)

    def _describe(self, err: Exception | None) -> str:
        if isinstance(err, requests.ConnectionError):
            return "Ollama server is not running. Please start Ollama and try again."
        return f"Ollama API error: {err}"

    def health_check(self) -> dict[str, Any]:
        try:
            r = requests.get(f"{self.host}/api/tags", timeout=5)
            r.raise_for_status()
            models = r.json().get("models") or []
            return {
                "provider": self.provider,
                "status": "healthy",
                "model": self.model,
                "model_available": any(m.get("name") == self.model for m in models),
                "url": self.host,
            }
        except (requests.RequestException, ValueError) as e:
            return {"provider": self.provider, "status": "unhealthy", "error": str(e)}


class OpenAIBackend(FallbackBackend):
    provider = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", base_url: str = "https://api.openai.com/v1", **kwargs: Any):
        if not api_key:
            raise ValueError("OpenAI API key not configured")
        # non-gpt model names (e.g. an ollama tag) fall back to the cheapest hosted model
        super().__init__(model if "gpt" in model else "gpt-4o-mini", **kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def _describe(self, err: Exception | None) -> str:
        return f"OpenAI API error: {err}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def _complete(self, prompt: str) -> Completion:
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "system",
                    "content": "You are an expert at extracting structured information from documents. "
                               "Return only valid JSON with the requested fields.",
                },
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.1,
            "max_tokens": self.max_output_tokens,
        }

        def call() -> Completion:
            r = requests.post(f"{self.base_url}/chat/completions", json=payload, headers=self._headers(), timeout=self.timeout_s)
            if r.status_code == 401:
                raise _NonRetryable("Invalid OpenAI API key")
            if r.status_code == 429:
                raise requests.HTTPError("OpenAI API rate limit exceeded", response=r)
            r.raise_for_status()
            data = r.json()
            usage = data.get("usage") or {}
            text = data["choices"][0]["message"]["content"] or ""
            return Completion(
                text=text,
                tokens_in=int(usage.get("prompt_tokens") or estimate_tokens(prompt)),
                tokens_out=int(usage.get("completion_tokens") or estimate_tokens(text)),
                model=self.model,
            )

        try:
            return self._with_retries(call)
        except (KeyError, IndexError, TypeError) as e:
            raise FallbackError(f"Unexpected OpenAI response shape: {e}") from e

    def health_check(self) -> dict[str, Any]:
        # model lookup is free, unlike a completion
        try:
            r = requests.get(f"{self.base_url}/models/{self.model}", headers=self._headers(), timeout=10)
            if r.status_code == 401:
                return {"provider": self.provider, "status": "unhealthy", "error": "Invalid OpenAI API key"}
            r.raise_for_status()
            return {"provider": self.provider, "status": "healthy", "model": self.model, "model_available": True}
        except requests.RequestException as e:
            return {"provider": self.provider, "status": "unhealthy", "error": str(e)}


def create_backend(settings: Settings, ledger: CostLedger) -> FallbackBackend:
    opts: dict[str, Any] = {
        "ledger": ledger,
        "timeout_s": settings.llm_timeout_s,
        "max_retries": settings.llm_max_retries,
        "max_prompt_tokens": settings.max_prompt_tokens,
        "max_output_tokens": settings.max_output_tokens,
    }
    if settings.llm_provider == "ollama":
        return OllamaBackend(settings.ollama_host, settings.llm_model, **opts)
    if settings.llm_provider == "openai":
        return OpenAIBackend(settings.openai_api_key, settings.llm_model, settings.openai_base_url, **opts)
    raise ValueError(f"Unsupported LLM provider: {settings.llm_provider}")
