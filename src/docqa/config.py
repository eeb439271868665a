from dataclasses import dataclass
from functools import lru_cache
import os


def _to_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: str | None, *, default: int, minimum: int) -> int:
    if value is None:
        return default
    parsed = int(value)
    return max(minimum, parsed)


def _to_float(value: str | None, *, default: float | None, minimum: float) -> float | None:
    if value is None or not value.strip():
        return default
    parsed = float(value)
    return max(minimum, parsed)


@dataclass(frozen=True)
class Settings:
    chunk_size: int
    chunk_overlap: int
    top_k: int
    semantic_search_enabled: bool
    embedding_model: str
    embedding_timeout_seconds: float
    llm_base_url: str
    llm_api_key: str
    llm_model: str
    fast_llm_base_url: str
    fast_llm_api_key: str
    fast_llm_model: str
    llm_timeout_seconds: float | None
    synthesis_delay_seconds: float
    log_level: str


@lru_cache
def get_settings() -> Settings:
    return Settings(
        chunk_size=_to_int(os.getenv("DOCQA_CHUNK_SIZE"), default=500, minimum=10),
        chunk_overlap=_to_int(os.getenv("DOCQA_CHUNK_OVERLAP"), default=100, minimum=0),
        top_k=_to_int(os.getenv("DOCQA_TOP_K"), default=3, minimum=1),
        semantic_search_enabled=_to_bool(os.getenv("DOCQA_SEMANTIC_SEARCH"), default=True),
        embedding_model=os.getenv(
            "DOCQA_EMBEDDING_MODEL", "sentence-transformers/all-MiniLM-L6-v2"
        ),
        embedding_timeout_seconds=_to_float(
            os.getenv("DOCQA_EMBEDDING_TIMEOUT_SECONDS"), default=60.0, minimum=1.0
        ),
        llm_base_url=os.getenv("DOCQA_LLM_BASE_URL", "https://openrouter.ai/api/v1"),
        llm_api_key=os.getenv("DOCQA_LLM_API_KEY", ""),
        llm_model=os.getenv("DOCQA_LLM_MODEL", "google/gemini-2.0-flash-exp:free"),
        fast_llm_base_url=os.getenv("DOCQA_FAST_LLM_BASE_URL", "https://api.groq.com/openai/v1"),
        fast_llm_api_key=os.getenv("DOCQA_FAST_LLM_API_KEY", ""),
        fast_llm_model=os.getenv("DOCQA_FAST_LLM_MODEL", "llama-3.1-8b-instant"),
        llm_timeout_seconds=_to_float(
            os.getenv("DOCQA_LLM_TIMEOUT_SECONDS"), default=None, minimum=1.0
        ),
        synthesis_delay_seconds=_to_float(
            os.getenv("DOCQA_SYNTHESIS_DELAY_SECONDS"), default=2.0, minimum=0.0
        ),
        log_level=os.getenv("DOCQA_LOG_LEVEL", "INFO").upper(),
    )
