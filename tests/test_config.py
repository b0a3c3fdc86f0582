from __future__ import annotations

import pytest

from docfield_hitl.config import Settings, load_settings

ENV_VARS = (
    "LLM_PROVIDER", "LLM_MODEL", "OLLAMA_HOST", "OPENAI_API_KEY", "OPENAI_BASE_URL", "USE_LLM",
    "MAX_LLM_COST_PER_REQUEST", "MAX_LLM_DAILY_COST", "CONFIDENCE_THRESHOLD", "MAX_PROMPT_TOKENS",
    "LLM_TIMEOUT_S", "LLM_MAX_RETRIES", "MERGE_CAP", "DISCARD_NON_GAP", "BATCH_CONCURRENCY",
    "OUTPUT_PATH", "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    s = load_settings()
    assert s == Settings()
    assert s.llm_provider == "ollama"
    assert s.max_daily_cost is None
    assert s.use_llm is True


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "OpenAI")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("LLM_MODEL", "gpt-4o")
    monkeypatch.setenv("MAX_LLM_DAILY_COST", "2.5")
    monkeypatch.setenv("CONFIDENCE_THRESHOLD", "0.75")
    monkeypatch.setenv("USE_LLM", "0")
    monkeypatch.setenv("DISCARD_NON_GAP", "0")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    s = load_settings()
    assert s.llm_provider == "openai"
    assert s.llm_model == "gpt-4o"
    assert s.max_daily_cost == 2.5
    assert s.confidence_threshold == 0.75
    assert s.use_llm is False
    assert s.discard_non_gap is False
    assert s.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"LLM_PROVIDER": "anthropic"},
        {"LLM_PROVIDER": "openai"},
        {"MAX_LLM_COST_PER_REQUEST": "0"},
        {"MAX_LLM_COST_PER_REQUEST": "cheap"},
        {"MAX_LLM_DAILY_COST": "-1"},
        {"CONFIDENCE_THRESHOLD": "1.2"},
        {"MERGE_CAP": "0"},
        {"BATCH_CONCURRENCY": "two"},
    ],
)
def test_invalid_values_raise(monkeypatch: pytest.MonkeyPatch, env: dict[str, str]) -> None:
    for k, v in env.items():
        monkeypatch.setenv(k, v)
    with pytest.raises(ValueError):
        load_settings()
