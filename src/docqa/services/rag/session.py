from __future__ import annotations

import logging
import time
from typing import Callable, Sequence
import uuid

from docqa.config import Settings, get_settings
from docqa.llm import ChatCompletionClient, LLMClient
from docqa.services.rag.chunker import split_into_chunks
from docqa.services.rag.embedding_client import (
    EmbeddingClient,
    EmbeddingClientError,
    WorkerEmbeddingClient,
)
from docqa.services.rag.loader import parse_document
from docqa.services.rag.orchestrator import (
    InsufficientDocumentsError,
    SynthesisPipeline,
    answer_question,
    comparison_operation,
    contradiction_operation,
    debate_operation,
    generate_suggested_questions,
    writing_operation,
)
from docqa.services.rag.query import find_relevant_sources
from docqa.services.rag.store import EmbeddingStore
from docqa.services.rag.types import (
    ComparisonResult,
    ContradictionResult,
    DebateResult,
    Document,
    EmbeddedChunk,
    QueryResponse,
    WritingResult,
)

logger = logging.getLogger(__name__)


class UnknownDocumentError(KeyError):
    def __str__(self) -> str:
        return f"document not found: {self.args[0]}"


class DocumentSession:
    """Everything one user session needs: uploaded documents, their embeddings and
    the clients used to answer questions about them."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        llm_client: LLMClient | None = None,
        fast_llm_client: LLMClient | None = None,
        embedding_client: EmbeddingClient | None = None,
        semantic_enabled: bool | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings or get_settings()
        if self._settings.chunk_overlap >= self._settings.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")

        self._semantic_enabled = (
            self._settings.semantic_search_enabled if semantic_enabled is None else semantic_enabled
        )
        self._llm_client = llm_client or ChatCompletionClient(
            base_url=self._settings.llm_base_url,
            model=self._settings.llm_model,
            api_key=self._settings.llm_api_key,
            timeout_seconds=self._settings.llm_timeout_seconds,
        )
        self._fast_llm_client = fast_llm_client or ChatCompletionClient(
            base_url=self._settings.fast_llm_base_url,
            model=self._settings.fast_llm_model,
            api_key=self._settings.fast_llm_api_key,
            timeout_seconds=self._settings.llm_timeout_seconds,
        )
        if embedding_client is None and self._semantic_enabled:
            embedding_client = WorkerEmbeddingClient(
                model_name=self._settings.embedding_model,
                timeout_seconds=self._settings.embedding_timeout_seconds,
            )
        self._embedding_client = embedding_client
        self._sleep = sleep
        self._store = EmbeddingStore()
        self._documents: dict[str, Document] = {}
        self._pipeline = SynthesisPipeline(
            self._fast_llm_client,
            delay_seconds=self._settings.synthesis_delay_seconds,
            sleep=sleep,
        )

    @property
    def store(self) -> EmbeddingStore:
        return self._store

    @property
    def documents(self) -> list[Document]:
        return list(self._documents.values())

    def get_documents(self, doc_ids: Sequence[str] | None = None) -> list[Document]:
        if doc_ids is None:
            return self.documents
        missing = [doc_id for doc_id in doc_ids if doc_id not in self._documents]
        if missing:
            raise UnknownDocumentError(missing[0])
        return [self._documents[doc_id] for doc_id in doc_ids]

    def upload_document(self, filename: str, data: bytes) -> Document:
        parsed = parse_document(filename, data)
        chunks = split_into_chunks(
            parsed.text,
            chunk_size=self._settings.chunk_size,
            chunk_overlap=self._settings.chunk_overlap,
        )
        document = Document(
            doc_id=f"doc-{uuid.uuid4().hex[:12]}",
            name=filename,
            text=parsed.text,
            chunks=tuple(chunks),
            type_label=parsed.type_label,
            metadata=parsed.metadata,
        )

        if self._semantic_enabled and self._embedding_client is not None:
            self._embed_document(document, self._embedding_client)

        self._documents[document.doc_id] = document
        logger.info(
            "uploaded %s id=%s chunks=%d embedded_total=%d",
            document.name,
            document.doc_id,
            len(document.chunks),
            len(self._store),
        )
        return document

    def _embed_document(self, document: Document, client: EmbeddingClient) -> None:
        for chunk in document.chunks:
            try:
                embedding = client.embed(chunk)
            except EmbeddingClientError as exc:
                logger.warning(
                    "embedding failed for %s, continuing with keyword search: %s",
                    document.name,
                    exc,
                )
                return
            self._store.append(
                EmbeddedChunk(
                    text=chunk,
                    embedding=tuple(embedding),
                    doc_id=document.doc_id,
                    doc_name=document.name,
                )
            )

    def query_documents(self, query: str, documents: Sequence[Document]) -> QueryResponse:
        if not documents:
            raise InsufficientDocumentsError("There are no documents to query. Upload a document first.")

        sources = find_relevant_sources(
            query,
            documents,
            store=self._store,
            embedding_client=self._embedding_client,
            semantic_enabled=self._semantic_enabled,
            top_k=self._settings.top_k,
        )
        return answer_question(
            self._llm_client,
            question=query.strip(),
            sources=sources,
            sleep=self._sleep,
        )

    def compare_documents(self, documents: Sequence[Document]) -> ComparisonResult:
        return self._pipeline.run(comparison_operation(), documents)

    def detect_contradictions(self, documents: Sequence[Document]) -> ContradictionResult:
        return self._pipeline.run(contradiction_operation(), documents)

    def debate_documents(self, documents: Sequence[Document], topic: str) -> DebateResult:
        if not topic.strip():
            raise ValueError("topic must not be empty")
        return self._pipeline.run(debate_operation(topic.strip()), documents)

    def assist_writing(self, documents: Sequence[Document], prompt: str, mode: str) -> WritingResult:
        if not prompt.strip():
            raise ValueError("prompt must not be empty")
        return self._pipeline.run(writing_operation(prompt.strip(), mode), documents)

    def generate_suggested_questions(self, documents: Sequence[Document]) -> list[str]:
        return generate_suggested_questions(self._llm_client, documents, sleep=self._sleep)

    def close(self) -> None:
        if isinstance(self._embedding_client, WorkerEmbeddingClient):
            self._embedding_client.close()
