from __future__ import annotations
from dataclasses import dataclass
import os

LLM_PROVIDERS = ("ollama", "openai")

@dataclass(frozen=True)
class Settings:
    llm_provider: str = "ollama"
    llm_model: str = "llama3.2:3b"
    ollama_host: str = "http://localhost:11434"
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    use_llm: bool = True

    # Cost gating
    max_cost_per_request: float = 0.01
    max_daily_cost: float | None = None

    # Routing
    confidence_threshold: float = 0.6
    merge_cap: int = 3
    discard_non_gap: bool = True
    rules_top_k: int = 5

    # Backend transport
    max_prompt_tokens: int = 3000
    max_output_tokens: int = 500
    llm_timeout_s: int = 30
    llm_max_retries: int = 3

    # Runner
    batch_concurrency: int = 3
    output_path: str = "outputs/predictions.jsonl"
    log_level: str = "INFO"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None

def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None

def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return raw == "1"

def load_settings() -> Settings:
    provider = os.getenv("LLM_PROVIDER", "ollama").strip().lower()
    if provider not in LLM_PROVIDERS:
        raise ValueError(f"LLM_PROVIDER must be one of {', '.join(LLM_PROVIDERS)}, got {provider!r}")

    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    if provider == "openai" and not api_key:
        raise ValueError("OPENAI_API_KEY env var is required when LLM_PROVIDER=openai.")

    max_cost = _env_float("MAX_LLM_COST_PER_REQUEST", 0.01)
    if max_cost <= 0:
        raise ValueError("MAX_LLM_COST_PER_REQUEST must be positive.")

    daily_raw = os.getenv("MAX_LLM_DAILY_COST", "").strip()
    max_daily = _env_float("MAX_LLM_DAILY_COST", 0.0) if daily_raw else None
    if max_daily is not None and max_daily <= 0:
        raise ValueError("MAX_LLM_DAILY_COST must be positive when set.")

    threshold = _env_float("CONFIDENCE_THRESHOLD", 0.6)
    if not 0.0 <= threshold <= 1.0:
        raise ValueError("CONFIDENCE_THRESHOLD must be within [0, 1].")

    merge_cap = _env_int("MERGE_CAP", 3)
    concurrency = _env_int("BATCH_CONCURRENCY", 3)
    if merge_cap < 1 or concurrency < 1:
        raise ValueError("MERGE_CAP and BATCH_CONCURRENCY must be at least 1.")

    return Settings(
        llm_provider=provider,
        llm_model=os.getenv("LLM_MODEL", "llama3.2:3b").strip(),
        ollama_host=os.getenv("OLLAMA_HOST", "http://localhost:11434").strip(),
        openai_api_key=api_key,
        openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").strip(),
        use_llm=_env_flag("USE_LLM", True),
        max_cost_per_request=max_cost,
        max_daily_cost=max_daily,
        confidence_threshold=threshold,
        merge_cap=merge_cap,
        discard_non_gap=_env_flag("DISCARD_NON_GAP", True),
        max_prompt_tokens=_env_int("MAX_PROMPT_TOKENS", 3000),
        llm_timeout_s=_env_int("LLM_TIMEOUT_S", 30),
        llm_max_retries=max(1, _env_int("LLM_MAX_RETRIES", 3)),
        batch_concurrency=concurrency,
        output_path=os.getenv("OUTPUT_PATH", "outputs/predictions.jsonl").strip(),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
