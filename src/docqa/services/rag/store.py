from __future__ import annotations

from docqa.services.rag.types import EmbeddedChunk


class EmbeddingStore:
    """Append-only collection of embedded chunks scoped to one session."""

    def __init__(self) -> None:
        self._chunks: list[EmbeddedChunk] = []

    def __len__(self) -> int:
        return len(self._chunks)

    def append(self, chunk: EmbeddedChunk) -> None:
        self._chunks.append(chunk)

    def snapshot(self) -> tuple[EmbeddedChunk, ...]:
        size = len(self._chunks)
        return tuple(self._chunks[:size])
