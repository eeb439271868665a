from __future__ import annotations


def split_into_chunks(text: str, *, chunk_size: int, chunk_overlap: int) -> list[str]:
    """Split ``text`` into windows of ``chunk_size`` words that advance by
    ``chunk_size - chunk_overlap`` words."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    if chunk_overlap < 0:
        raise ValueError("chunk_overlap must be >= 0")
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")

    words = text.split()
    step = chunk_size - chunk_overlap
    chunks: list[str] = []

    for cursor in range(0, len(words), step):
        chunk = " ".join(words[cursor : cursor + chunk_size]).strip()
        if chunk:
            chunks.append(chunk)

    return chunks
