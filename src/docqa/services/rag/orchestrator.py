from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Callable, Generic, Sequence, TypeVar

import httpx

from docqa.llm import (
    NO_RETRY,
    LLMClient,
    LLMClientError,
    Message,
    RetryPolicy,
    complete_with_retry,
)
from docqa.services.rag import prompts
from docqa.services.rag.context import assemble_context
from docqa.services.rag.extractor import (
    extract_comparison,
    extract_contradictions,
    extract_debate,
    extract_questions,
    extract_writing,
)
from docqa.services.rag.types import (
    ComparisonResult,
    ContradictionResult,
    DebateResult,
    Document,
    QueryResponse,
    Source,
    WritingResult,
)

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")
Summaries = list[tuple[str, str]]

NO_SOURCES_ANSWER = "No relevant information was found in the documents."
MAX_SYNTHESIS_DOCUMENTS = 5
SUMMARY_EXCERPT_CHUNKS = 3
SUMMARY_EXCERPT_CHARS = 1000
SUGGESTION_SAMPLE_DOCUMENTS = 3
SUGGESTION_SAMPLE_CHUNKS = 2
SUGGESTION_SAMPLE_CHARS = 2000


class InsufficientDocumentsError(ValueError):
    pass


@dataclass(frozen=True)
class CallSettings:
    temperature: float
    max_tokens: int
    policy: RetryPolicy = NO_RETRY


ANSWER_CALL = CallSettings(temperature=0.7, max_tokens=1500)
SUMMARY_CALL = CallSettings(temperature=0.3, max_tokens=200)
SUGGESTION_CALL = CallSettings(temperature=0.8, max_tokens=300)
COMPARISON_CALL = CallSettings(0.7, 1000, RetryPolicy(max_attempts=3, delays=(10.0, 30.0)))
CONTRADICTION_CALL = CallSettings(0.5, 1200, RetryPolicy(max_attempts=2, delays=(5.0,)))
DEBATE_CALL = CallSettings(0.8, 1500, RetryPolicy(max_attempts=3, delays=(10.0, 30.0)))
WRITING_CALL = CallSettings(0.7, 1500, RetryPolicy(max_attempts=2))


@dataclass(frozen=True)
class SynthesisOperation(Generic[ResultT]):
    """One summarize-then-synthesize flow: how to prompt and how to read the reply."""

    name: str
    min_documents: int
    build_messages: Callable[[Summaries], list[Message]]
    extract: Callable[[str, Sequence[str]], ResultT]
    call: CallSettings
    requirement: str = ""


def comparison_operation() -> SynthesisOperation[ComparisonResult]:
    return SynthesisOperation(
        name="compare",
        min_documents=2,
        build_messages=prompts.comparison_messages,
        extract=lambda text, _names: extract_comparison(text),
        call=COMPARISON_CALL,
        requirement="At least 2 documents are needed to compare. Upload another document and try again.",
    )


def contradiction_operation() -> SynthesisOperation[ContradictionResult]:
    return SynthesisOperation(
        name="contradictions",
        min_documents=2,
        build_messages=prompts.contradiction_messages,
        extract=lambda text, _names: extract_contradictions(text),
        call=CONTRADICTION_CALL,
        requirement=(
            "At least 2 documents are needed to detect contradictions. "
            "Upload another document and try again."
        ),
    )


def debate_operation(topic: str) -> SynthesisOperation[DebateResult]:
    return SynthesisOperation(
        name="debate",
        min_documents=2,
        build_messages=lambda summaries: prompts.debate_messages(summaries, topic=topic),
        extract=lambda text, names: extract_debate(text, topic=topic, speakers=names),
        call=DEBATE_CALL,
        requirement="At least 2 documents are needed for a debate. Upload another document and try again.",
    )


def writing_operation(prompt: str, mode: str) -> SynthesisOperation[WritingResult]:
    if mode not in prompts.WRITING_MODES:
        raise ValueError(
            f"Unknown writing mode {mode!r}; expected one of {sorted(prompts.WRITING_MODES)}"
        )
    return SynthesisOperation(
        name="writing",
        min_documents=1,
        build_messages=lambda summaries: prompts.writing_messages(summaries, prompt=prompt, mode=mode),
        extract=lambda text, _names: extract_writing(text),
        call=WRITING_CALL,
        requirement="Upload at least 1 document to use the writing assistant.",
    )


def _call(
    client: LLMClient,
    messages: list[Message],
    settings: CallSettings,
    *,
    sleep: Callable[[float], None],
) -> str:
    return complete_with_retry(
        client,
        messages=messages,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        policy=settings.policy,
        sleep=sleep,
    )


def answer_question(
    client: LLMClient,
    *,
    question: str,
    sources: list[Source],
    sleep: Callable[[float], None] = time.sleep,
) -> QueryResponse:
    if not sources:
        return QueryResponse(answer=NO_SOURCES_ANSWER, sources=[])

    context = assemble_context(sources)
    answer = _call(
        client,
        prompts.answer_messages(context=context.text, question=question),
        ANSWER_CALL,
        sleep=sleep,
    )
    return QueryResponse(answer=answer, sources=context.attributions)


class SynthesisPipeline:
    """Summarize each document cheaply, pause, then run one synthesis call."""

    def __init__(
        self,
        client: LLMClient,
        *,
        delay_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        max_documents: int = MAX_SYNTHESIS_DOCUMENTS,
    ) -> None:
        self._client = client
        self._delay_seconds = delay_seconds
        self._sleep = sleep
        self._max_documents = max_documents

    def summarize(self, document: Document) -> str:
        excerpt = " ".join(document.chunks[:SUMMARY_EXCERPT_CHUNKS])[:SUMMARY_EXCERPT_CHARS]
        try:
            return _call(
                self._client,
                prompts.summary_messages(name=document.name, excerpt=excerpt),
                SUMMARY_CALL,
                sleep=self._sleep,
            )
        except (LLMClientError, httpx.HTTPError) as exc:
            logger.warning("summary failed for %s; using placeholder: %s", document.name, exc)
            return f"Document: {document.name}"

    def run(self, operation: SynthesisOperation[ResultT], documents: Sequence[Document]) -> ResultT:
        if len(documents) < operation.min_documents:
            raise InsufficientDocumentsError(
                operation.requirement
                or f"{operation.name} needs at least {operation.min_documents} documents"
            )

        selected = list(documents)[: self._max_documents]
        summaries = [(document.name, self.summarize(document)) for document in selected]

        if self._delay_seconds > 0:
            self._sleep(self._delay_seconds)

        text = _call(
            self._client,
            operation.build_messages(summaries),
            operation.call,
            sleep=self._sleep,
        )
        logger.info("%s synthesis completed for %d documents", operation.name, len(selected))
        return operation.extract(text, [name for name, _ in summaries])


def generate_suggested_questions(
    client: LLMClient,
    documents: Sequence[Document],
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> list[str]:
    if not documents:
        return []

    sample = "\n\n".join(
        " ".join(document.chunks[:SUGGESTION_SAMPLE_CHUNKS])
        for document in list(documents)[:SUGGESTION_SAMPLE_DOCUMENTS]
    )[:SUGGESTION_SAMPLE_CHARS]

    try:
        text = _call(
            client,
            prompts.suggested_question_messages(sample=sample),
            SUGGESTION_CALL,
            sleep=sleep,
        )
    except (LLMClientError, httpx.HTTPError) as exc:
        logger.warning("could not generate suggested questions: %s", exc)
        return []

    return extract_questions(text)
