from collections.abc import Iterator
from dataclasses import replace

import pytest

from docqa.config import Settings, get_settings


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return replace(
        get_settings(),
        chunk_size=100,
        chunk_overlap=20,
        top_k=3,
        semantic_search_enabled=False,
        synthesis_delay_seconds=0.0,
    )
