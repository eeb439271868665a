import pytest

from docqa.config import get_settings


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "DOCQA_CHUNK_SIZE",
        "DOCQA_CHUNK_OVERLAP",
        "DOCQA_TOP_K",
        "DOCQA_SEMANTIC_SEARCH",
        "DOCQA_LLM_TIMEOUT_SECONDS",
        "DOCQA_SYNTHESIS_DELAY_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert settings.chunk_size == 500
    assert settings.chunk_overlap == 100
    assert settings.top_k == 3
    assert settings.semantic_search_enabled is True
    assert settings.llm_timeout_seconds is None
    assert settings.synthesis_delay_seconds == 2.0


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCQA_CHUNK_SIZE", "250")
    monkeypatch.setenv("DOCQA_CHUNK_OVERLAP", "25")
    monkeypatch.setenv("DOCQA_SEMANTIC_SEARCH", "off")
    monkeypatch.setenv("DOCQA_FAST_LLM_MODEL", "tiny-model")
    monkeypatch.setenv("DOCQA_LLM_TIMEOUT_SECONDS", "45")

    settings = get_settings()

    assert settings.chunk_size == 250
    assert settings.chunk_overlap == 25
    assert settings.semantic_search_enabled is False
    assert settings.fast_llm_model == "tiny-model"
    assert settings.llm_timeout_seconds == 45.0


def test_settings_clamp_to_minimum(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCQA_CHUNK_SIZE", "1")
    monkeypatch.setenv("DOCQA_TOP_K", "0")

    settings = get_settings()

    assert settings.chunk_size == 10
    assert settings.top_k == 1
