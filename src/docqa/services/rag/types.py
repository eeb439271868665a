from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ParsedDocument:
    text: str
    type_label: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Document:
    doc_id: str
    name: str
    text: str
    chunks: tuple[str, ...]
    type_label: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EmbeddedChunk:
    text: str
    embedding: tuple[float, ...]
    doc_id: str
    doc_name: str


@dataclass(frozen=True)
class Source:
    text: str
    doc_id: str
    doc_name: str
    score: float


@dataclass(frozen=True)
class GroundingContext:
    text: str
    attributions: list[Source]


@dataclass(frozen=True)
class QueryResponse:
    answer: str
    sources: list[Source]


@dataclass(frozen=True)
class ComparisonResult:
    similarities: list[str]
    differences: list[str]
    summary: str


@dataclass(frozen=True)
class ContradictionResult:
    contradictions: list[str]
    gaps: list[str]
    summary: str


@dataclass(frozen=True)
class DebateRound:
    speaker: str
    argument: str


@dataclass(frozen=True)
class DebateResult:
    topic: str
    rounds: list[DebateRound]
    conclusion: str


@dataclass(frozen=True)
class WritingResult:
    generated_text: str
    suggestions: list[str]
    style_notes: str
