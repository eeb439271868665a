from __future__ import annotations

from docqa.services.rag.types import GroundingContext, Source

PREVIEW_LENGTH = 150
ELLIPSIS = "..."


def _preview(text: str, *, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def assemble_context(sources: list[Source], *, preview_length: int = PREVIEW_LENGTH) -> GroundingContext:
    return GroundingContext(
        text="\n\n".join(source.text for source in sources),
        attributions=[
            Source(
                text=_preview(source.text, limit=preview_length),
                doc_id=source.doc_id,
                doc_name=source.doc_name,
                score=source.score,
            )
            for source in sources
        ],
    )
