"""Turn free-form model output into typed results.

Every line is first classified as a section header, a bullet item, plain text or
blank. A single pass then assigns lines to whichever section header was seen
last, so missing or reordered sections never break the parse.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import re
from typing import Sequence

from docqa.services.rag.types import (
    ComparisonResult,
    ContradictionResult,
    DebateResult,
    DebateRound,
    WritingResult,
)

logger = logging.getLogger(__name__)

MIN_ITEM_LENGTH = 10
FALLBACK_PREVIEW_LENGTH = 200

COMPARISON_FALLBACK = (
    "The documents have been compared. Review the similarities and differences for details."
)
CONTRADICTION_FALLBACK = (
    "The documents have been reviewed. Check the listed contradictions and gaps for details."
)
DEBATE_FALLBACK = "The debate has concluded. Review each document's argument for details."
STYLE_NOTES_FALLBACK = "No specific style notes were provided."
WRITING_FALLBACK = "No text could be generated for this request."

_BULLET = re.compile(r"^\s*(?:[-•]|\*(?!\*))\s*(?P<item>.*)$")
_QUESTION_PREFIX = re.compile(r"^\s*(?:\d+[.)]|[-•*])\s*")
_EMPHASIS = re.compile(r"\*\*|__")


class LineKind(str, Enum):
    HEADER = "header"
    BULLET = "bullet"
    TEXT = "text"
    BLANK = "blank"


@dataclass(frozen=True)
class SectionLabel:
    """A section header to look for.

    A terminal section runs to the end of the text: once its header is seen, no
    other label can open a new section.
    """

    key: str
    aliases: tuple[str, ...]
    terminal: bool = False

    def pattern(self) -> re.Pattern[str]:
        alternatives = "|".join(re.escape(alias) for alias in self.aliases)
        return re.compile(
            rf"^[#>\s]*(?:\d+[.)]\s*)?[*_]*\s*(?:{alternatives})\s*[*_]*\s*(?::(?P<rest>.*)|$)",
            re.IGNORECASE,
        )


@dataclass(frozen=True)
class ClassifiedLine:
    kind: LineKind
    content: str
    section: str | None = None


def strip_emphasis(text: str) -> str:
    return _EMPHASIS.sub("", text).strip().strip("*").strip()


def classify_line(line: str, patterns: Sequence[tuple[str, re.Pattern[str]]]) -> ClassifiedLine:
    stripped = line.strip()
    if not stripped:
        return ClassifiedLine(LineKind.BLANK, "")

    for key, pattern in patterns:
        match = pattern.match(stripped)
        if match is not None:
            return ClassifiedLine(LineKind.HEADER, strip_emphasis(match.group("rest") or ""), key)

    bullet = _BULLET.match(stripped)
    if bullet is not None:
        return ClassifiedLine(LineKind.BULLET, strip_emphasis(bullet.group("item")))

    return ClassifiedLine(LineKind.TEXT, strip_emphasis(stripped))


@dataclass
class Sections:
    lines: dict[str, list[ClassifiedLine]] = field(default_factory=dict)

    def found(self, key: str) -> bool:
        return bool(self.lines.get(key))

    def items(self, key: str, *, min_length: int = MIN_ITEM_LENGTH, limit: int | None = None) -> list[str]:
        items = [
            line.content
            for line in self.lines.get(key, [])
            if line.kind is LineKind.BULLET and len(line.content) >= min_length
        ]
        return items if limit is None else items[:limit]

    def paragraph(self, key: str, *, include_bullets: bool = False) -> str:
        kinds = {LineKind.TEXT, LineKind.BULLET} if include_bullets else {LineKind.TEXT}
        parts = [
            line.content
            for line in self.lines.get(key, [])
            if line.kind in kinds and line.content
        ]
        return " ".join(parts).strip()


def extract_sections(text: str, labels: Sequence[SectionLabel]) -> Sections:
    sections = Sections({label.key: [] for label in labels})
    patterns = [(label.key, label.pattern()) for label in labels]
    terminal_keys = {label.key for label in labels if label.terminal}
    active: str | None = None

    for raw_line in text.splitlines():
        line = classify_line(raw_line, patterns)
        if line.kind is LineKind.HEADER:
            active = line.section
            if active in terminal_keys:
                patterns = [(key, pattern) for key, pattern in patterns if key == active]
            if active is not None and line.content:
                sections.lines[active].append(ClassifiedLine(LineKind.TEXT, line.content))
            continue
        if active is None or line.kind is LineKind.BLANK:
            continue
        sections.lines[active].append(line)

    return sections


def _summary_or_fallback(raw: str, summary: str, *, has_items: bool, fallback: str) -> str:
    if not has_items and not summary:
        logger.info("no labelled sections found in model output; using raw preview")
        preview = raw.strip()
        summary = preview[:FALLBACK_PREVIEW_LENGTH].strip()
        if len(preview) > FALLBACK_PREVIEW_LENGTH:
            summary += "..."
    if len(summary) < MIN_ITEM_LENGTH:
        return fallback
    return summary


COMPARISON_LABELS = (
    SectionLabel("similarities", ("SIMILARITIES", "SIMILARITY")),
    SectionLabel("differences", ("DIFFERENCES", "DIFFERENCE")),
    SectionLabel("summary", ("SUMMARY",)),
)

CONTRADICTION_LABELS = (
    SectionLabel("contradictions", ("CONTRADICTIONS", "CONTRADICTION")),
    SectionLabel("gaps", ("GAPS", "GAP", "INFORMATION GAPS")),
    SectionLabel("summary", ("SUMMARY",)),
)

WRITING_LABELS = (
    SectionLabel("text", ("TEXT", "GENERATED TEXT", "DRAFT")),
    SectionLabel("suggestions", ("SUGGESTIONS", "SUGGESTION")),
    SectionLabel("style_notes", ("STYLE NOTES", "STYLE")),
)

CONCLUSION_LABEL = SectionLabel("conclusion", ("CONCLUSION", "VERDICT"), terminal=True)


def extract_comparison(text: str, *, limit: int = 5) -> ComparisonResult:
    sections = extract_sections(text, COMPARISON_LABELS)
    similarities = sections.items("similarities", limit=limit)
    differences = sections.items("differences", limit=limit)
    summary = _summary_or_fallback(
        text,
        sections.paragraph("summary"),
        has_items=bool(similarities or differences),
        fallback=COMPARISON_FALLBACK,
    )
    return ComparisonResult(similarities=similarities, differences=differences, summary=summary)


def extract_contradictions(text: str, *, limit: int = 10) -> ContradictionResult:
    sections = extract_sections(text, CONTRADICTION_LABELS)
    contradictions = sections.items("contradictions", limit=limit)
    gaps = sections.items("gaps", limit=limit)
    summary = _summary_or_fallback(
        text,
        sections.paragraph("summary"),
        has_items=bool(contradictions or gaps),
        fallback=CONTRADICTION_FALLBACK,
    )
    return ContradictionResult(contradictions=contradictions, gaps=gaps, summary=summary)


def _speaker_labels(speakers: Sequence[str]) -> list[SectionLabel]:
    return [
        SectionLabel(
            f"speaker-{index}",
            (name, f"Document {index}: {name}", f"Document {index} - {name}"),
        )
        for index, name in enumerate(speakers, start=1)
    ]


def extract_debate(text: str, *, topic: str, speakers: Sequence[str]) -> DebateResult:
    speaker_labels = _speaker_labels(speakers)
    sections = extract_sections(text, [*speaker_labels, CONCLUSION_LABEL])

    rounds = []
    for name, label in zip(speakers, speaker_labels):
        argument = sections.paragraph(label.key, include_bullets=True)
        if argument:
            rounds.append(DebateRound(speaker=name, argument=argument))

    conclusion = _summary_or_fallback(
        text,
        sections.paragraph(CONCLUSION_LABEL.key, include_bullets=True),
        has_items=bool(rounds),
        fallback=DEBATE_FALLBACK,
    )
    return DebateResult(topic=topic, rounds=rounds, conclusion=conclusion)


def extract_writing(text: str, *, limit: int = 5) -> WritingResult:
    sections = extract_sections(text, WRITING_LABELS)
    generated = "\n".join(
        f"- {line.content}" if line.kind is LineKind.BULLET else line.content
        for line in sections.lines["text"]
        if line.content
    ).strip()
    suggestions = sections.items("suggestions", limit=limit)
    style_notes = sections.paragraph("style_notes", include_bullets=True)

    if not generated and not suggestions and not style_notes:
        logger.info("writing output had no labelled sections; using raw text")
        generated = text.strip()

    return WritingResult(
        generated_text=generated or WRITING_FALLBACK,
        suggestions=suggestions,
        style_notes=style_notes if len(style_notes) >= MIN_ITEM_LENGTH else STYLE_NOTES_FALLBACK,
    )


def extract_questions(text: str, *, limit: int = 4) -> list[str]:
    questions = []
    for line in text.splitlines():
        question = strip_emphasis(_QUESTION_PREFIX.sub("", line.strip()))
        if len(question) > MIN_ITEM_LENGTH and "?" in question:
            questions.append(question)
    return questions[:limit]
