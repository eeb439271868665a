from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence

from docqa.services.rag.embedding_client import EmbeddingClient, EmbeddingClientError
from docqa.services.rag.store import EmbeddingStore
from docqa.services.rag.types import Document, EmbeddedChunk, Source

logger = logging.getLogger(__name__)

UNKNOWN_DOCUMENT_NAME = "Unknown"
DEFAULT_TOP_K = 3
DEFAULT_MIN_TOKEN_LENGTH = 3


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


def _top_k(sources: list[Source], top_k: int) -> list[Source]:
    # sort is stable, so equal scores keep insertion order
    sources.sort(key=lambda source: source.score, reverse=True)
    return sources[: max(1, top_k)]


def rank_semantic(
    query_embedding: Sequence[float],
    chunks: Iterable[EmbeddedChunk],
    documents: Sequence[Document],
    *,
    top_k: int = DEFAULT_TOP_K,
) -> list[Source]:
    names = {document.doc_id: document.name for document in documents}
    sources = [
        Source(
            text=chunk.text,
            doc_id=chunk.doc_id,
            doc_name=names.get(chunk.doc_id, UNKNOWN_DOCUMENT_NAME),
            score=cosine_similarity(query_embedding, chunk.embedding),
        )
        for chunk in chunks
    ]
    return _top_k(sources, top_k)


def query_tokens(query: str, *, min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH) -> list[str]:
    return [token for token in query.lower().split() if len(token) >= min_token_length]


def rank_lexical(
    query: str,
    documents: Sequence[Document],
    *,
    top_k: int = DEFAULT_TOP_K,
    min_token_length: int = DEFAULT_MIN_TOKEN_LENGTH,
) -> list[Source]:
    tokens = query_tokens(query, min_token_length=min_token_length)
    if not tokens:
        return []

    sources: list[Source] = []
    for document in documents:
        for chunk in document.chunks:
            lowered = chunk.lower()
            matches = sum(1 for token in tokens if token in lowered)
            if matches == 0:
                continue
            sources.append(
                Source(
                    text=chunk,
                    doc_id=document.doc_id,
                    doc_name=document.name,
                    score=matches / len(tokens),
                )
            )

    return _top_k(sources, top_k)


def find_relevant_sources(
    query: str,
    documents: Sequence[Document],
    *,
    store: EmbeddingStore,
    embedding_client: EmbeddingClient | None,
    semantic_enabled: bool = True,
    top_k: int = DEFAULT_TOP_K,
) -> list[Source]:
    normalized_query = query.strip()
    if not normalized_query:
        raise ValueError("query must not be empty")

    chunks = store.snapshot()
    if not semantic_enabled or embedding_client is None or not chunks:
        return rank_lexical(normalized_query, documents, top_k=top_k)

    try:
        query_embedding = embedding_client.embed(normalized_query)
    except EmbeddingClientError as exc:
        logger.warning("semantic search unavailable, using keyword search: %s", exc)
        return rank_lexical(normalized_query, documents, top_k=top_k)

    return rank_semantic(query_embedding, chunks, documents, top_k=top_k)
