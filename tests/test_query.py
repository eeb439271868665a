import logging

import pytest

from docqa.services.rag.chunker import split_into_chunks
from docqa.services.rag.embedding_client import EmbeddingTimeoutError
from docqa.services.rag.query import (
    UNKNOWN_DOCUMENT_NAME,
    cosine_similarity,
    find_relevant_sources,
    rank_lexical,
    rank_semantic,
)
from docqa.services.rag.store import EmbeddingStore
from docqa.services.rag.types import Document, EmbeddedChunk


class FakeEmbeddingClient:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        normalized = text.lower()
        return [
            float(normalized.count("volcano") + normalized.count("lava")),
            float(normalized.count("violin") + normalized.count("orchestra")),
        ]

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


class TimingOutEmbeddingClient:
    def embed(self, text: str) -> list[float]:
        raise EmbeddingTimeoutError("simulated timeout")

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


def _document(doc_id: str, name: str, chunks: list[str]) -> Document:
    return Document(doc_id=doc_id, name=name, text=" ".join(chunks), chunks=tuple(chunks))


def _store_for(documents: list[Document], client: FakeEmbeddingClient) -> EmbeddingStore:
    store = EmbeddingStore()
    for document in documents:
        for chunk in document.chunks:
            store.append(
                EmbeddedChunk(
                    text=chunk,
                    embedding=tuple(client.embed(chunk)),
                    doc_id=document.doc_id,
                    doc_name=document.name,
                )
            )
    return store


def test_cosine_similarity_properties() -> None:
    a = [0.3, -1.2, 4.0]
    b = [2.0, 0.5, -0.25]

    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
    assert cosine_similarity(a, a) == pytest.approx(1.0)
    assert cosine_similarity(a, [-value for value in a]) == pytest.approx(-1.0)
    assert -1.0 <= cosine_similarity(a, b) <= 1.0


def test_cosine_similarity_with_zero_vector_is_zero() -> None:
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0


def test_rank_lexical_scores_full_match_and_drops_misses() -> None:
    documents = [
        _document("doc-a", "a.txt", ["the volcano erupted with lava", "nothing related here"]),
        _document("doc-b", "b.txt", ["lava flows slowly"]),
    ]

    sources = rank_lexical("volcano lava", documents, top_k=5)

    assert [source.text for source in sources] == [
        "the volcano erupted with lava",
        "lava flows slowly",
    ]
    assert sources[0].score == 1.0
    assert sources[1].score == 0.5
    assert all(source.text != "nothing related here" for source in sources)


def test_rank_lexical_ignores_short_tokens() -> None:
    documents = [_document("doc-a", "a.txt", ["an ox is in it"])]

    assert rank_lexical("an ox in it", documents) == []


def test_rank_semantic_is_stable_and_idempotent() -> None:
    client = FakeEmbeddingClient()
    documents = [
        _document("doc-a", "a.txt", ["volcano one", "volcano two"]),
        _document("doc-b", "b.txt", ["violin three"]),
    ]
    store = _store_for(documents, client)

    first = rank_semantic([1.0, 0.0], store.snapshot(), documents, top_k=3)
    second = rank_semantic([1.0, 0.0], store.snapshot(), documents, top_k=3)

    assert [source.text for source in first] == ["volcano one", "volcano two", "violin three"]
    assert first == second


def test_rank_semantic_marks_unknown_documents() -> None:
    chunk = EmbeddedChunk(text="orphan", embedding=(1.0, 0.0), doc_id="doc-gone", doc_name="gone.txt")

    sources = rank_semantic([1.0, 0.0], [chunk], documents=[], top_k=1)

    assert sources[0].doc_name == UNKNOWN_DOCUMENT_NAME


def test_find_relevant_sources_uses_embeddings_when_available() -> None:
    client = FakeEmbeddingClient()
    documents = [
        _document("doc-a", "a.txt", ["volcano lava"]),
        _document("doc-b", "b.txt", ["violin orchestra"]),
    ]
    store = _store_for(documents, client)
    client.calls.clear()

    sources = find_relevant_sources(
        "tell me about the orchestra",
        documents,
        store=store,
        embedding_client=client,
        top_k=1,
    )

    assert client.calls == ["tell me about the orchestra"]
    assert sources[0].doc_id == "doc-b"
    assert sources[0].score == pytest.approx(1.0)


def test_find_relevant_sources_falls_back_to_keywords_on_embedding_failure(
    caplog: pytest.LogCaptureFixture,
) -> None:
    documents = [_document("doc-a", "a.txt", ["volcano lava"])]
    store = _store_for(documents, FakeEmbeddingClient())

    with caplog.at_level(logging.WARNING):
        sources = find_relevant_sources(
            "volcano",
            documents,
            store=store,
            embedding_client=TimingOutEmbeddingClient(),
        )

    assert [source.text for source in sources] == ["volcano lava"]
    assert sources[0].score == 1.0
    assert "keyword search" in caplog.text


def test_find_relevant_sources_uses_keywords_without_embeddings() -> None:
    client = FakeEmbeddingClient()
    documents = [_document("doc-a", "a.txt", ["volcano lava"])]

    sources = find_relevant_sources(
        "volcano", documents, store=EmbeddingStore(), embedding_client=client
    )

    assert client.calls == []
    assert sources[0].score == 1.0


def test_find_relevant_sources_rejects_blank_query() -> None:
    with pytest.raises(ValueError, match="query must not be empty"):
        find_relevant_sources("   ", [], store=EmbeddingStore(), embedding_client=None)


def test_keyword_search_returns_sources_only_from_matching_document() -> None:
    topic_x = "volcano magma eruption crater basalt " * 100
    topic_y = "violin orchestra symphony melody concert " * 100
    documents = [
        _document("doc-a", "A", split_into_chunks(topic_x, chunk_size=100, chunk_overlap=20)),
        _document("doc-b", "B", split_into_chunks(topic_y, chunk_size=100, chunk_overlap=20)),
    ]

    sources = find_relevant_sources(
        "where does magma erupt from the crater",
        documents,
        store=EmbeddingStore(),
        embedding_client=None,
        semantic_enabled=False,
    )

    assert sources
    assert all(source.doc_name == "A" for source in sources)
    assert all(source.score > 0 for source in sources)
