import httpx
import pytest

from docqa.llm import InferenceAPIError, RateLimitedError
from docqa.services.rag.orchestrator import (
    NO_SOURCES_ANSWER,
    InsufficientDocumentsError,
    SynthesisPipeline,
    answer_question,
    comparison_operation,
    debate_operation,
    generate_suggested_questions,
    writing_operation,
)
from docqa.services.rag.types import Document, Source

COMPARISON_REPLY = """SIMILARITIES:
- Both documents discuss plant maintenance
DIFFERENCES:
- Only the first document covers robotics
SUMMARY:
Related documents with different emphasis.
"""


class ScriptedLLMClient:
    def __init__(self, outcomes: list[object]) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[dict[str, object]] = []

    def complete(self, *, messages: list[dict[str, str]], temperature: float, max_tokens: int) -> str:
        self.calls.append(
            {"messages": messages, "temperature": temperature, "max_tokens": max_tokens}
        )
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return str(outcome)


def _document(name: str, words: str = "plant maintenance schedule") -> Document:
    return Document(
        doc_id=f"doc-{name}",
        name=name,
        text=words,
        chunks=(words, "second chunk", "third chunk", "fourth chunk"),
    )


def _pipeline(client: ScriptedLLMClient, sleeps: list[float], delay: float = 2.0) -> SynthesisPipeline:
    return SynthesisPipeline(client, delay_seconds=delay, sleep=sleeps.append)


def test_answer_question_without_sources_skips_the_llm() -> None:
    client = ScriptedLLMClient([])

    response = answer_question(client, question="anything?", sources=[])

    assert response.answer == NO_SOURCES_ANSWER
    assert response.sources == []
    assert client.calls == []


def test_answer_question_grounds_prompt_in_sources() -> None:
    client = ScriptedLLMClient(["The plant runs two shifts."])
    sources = [
        Source(text="The plant runs two shifts. " * 10, doc_id="doc-a", doc_name="a.txt", score=0.8)
    ]

    response = answer_question(client, question="How many shifts?", sources=sources)

    assert response.answer == "The plant runs two shifts."
    assert response.sources[0].text.endswith("...")
    messages = client.calls[0]["messages"]
    assert messages[0]["role"] == "system"
    assert "The plant runs two shifts." in messages[1]["content"]
    assert "Question: How many shifts?" in messages[1]["content"]
    assert client.calls[0]["max_tokens"] == 1500


def test_answer_question_does_not_retry_rate_limits() -> None:
    client = ScriptedLLMClient([RateLimitedError(), "unused"])
    sources = [Source(text="text", doc_id="doc-a", doc_name="a.txt", score=1.0)]

    with pytest.raises(RateLimitedError):
        answer_question(client, question="q", sources=sources, sleep=lambda _s: None)

    assert len(client.calls) == 1


def test_pipeline_summarizes_pauses_then_synthesizes() -> None:
    client = ScriptedLLMClient(["Summary of A.", "Summary of B.", COMPARISON_REPLY])
    sleeps: list[float] = []

    result = _pipeline(client, sleeps).run(comparison_operation(), [_document("a.txt"), _document("b.txt")])

    assert result.similarities == ["Both documents discuss plant maintenance"]
    assert result.differences == ["Only the first document covers robotics"]
    assert result.summary == "Related documents with different emphasis."
    assert sleeps == [2.0]
    assert len(client.calls) == 3
    assert client.calls[0]["max_tokens"] == 200
    synthesis_prompt = client.calls[2]["messages"][0]["content"]
    assert "Summary of A." in synthesis_prompt
    assert "Summary of B." in synthesis_prompt
    assert "fourth chunk" not in client.calls[0]["messages"][0]["content"]


def test_pipeline_degrades_failed_summaries_to_placeholder() -> None:
    client = ScriptedLLMClient(
        [
            RateLimitedError(),
            httpx.ConnectError("offline"),
            COMPARISON_REPLY,
        ]
    )

    _pipeline(client, [], delay=0).run(comparison_operation(), [_document("a.txt"), _document("b.txt")])

    synthesis_prompt = client.calls[2]["messages"][0]["content"]
    assert "Document: a.txt" in synthesis_prompt
    assert "Document: b.txt" in synthesis_prompt


def test_pipeline_retries_rate_limited_synthesis_with_escalating_delays() -> None:
    client = ScriptedLLMClient(
        ["Summary of A.", "Summary of B.", RateLimitedError(), RateLimitedError(), COMPARISON_REPLY]
    )
    sleeps: list[float] = []

    result = _pipeline(client, sleeps).run(comparison_operation(), [_document("a.txt"), _document("b.txt")])

    assert result.similarities
    assert sleeps == [2.0, 10.0, 30.0]


def test_pipeline_surfaces_api_errors_without_retry() -> None:
    client = ScriptedLLMClient(
        ["Summary of A.", "Summary of B.", InferenceAPIError("bad gateway", status_code=502), "unused"]
    )

    with pytest.raises(InferenceAPIError, match="bad gateway"):
        _pipeline(client, [], delay=0).run(comparison_operation(), [_document("a.txt"), _document("b.txt")])

    assert len(client.calls) == 3


def test_pipeline_requires_enough_documents() -> None:
    client = ScriptedLLMClient([])

    with pytest.raises(InsufficientDocumentsError, match="At least 2 documents"):
        _pipeline(client, []).run(comparison_operation(), [_document("a.txt")])

    assert client.calls == []


def test_pipeline_limits_summarized_documents() -> None:
    documents = [_document(f"{index}.txt") for index in range(7)]
    client = ScriptedLLMClient([f"Summary {index}." for index in range(5)] + [COMPARISON_REPLY])

    _pipeline(client, [], delay=0).run(comparison_operation(), documents)

    assert len(client.calls) == 6


def test_debate_operation_reads_rounds_by_document_name() -> None:
    reply = """a.txt:
Automation pays for itself quickly.

b.txt:
People remain the best inspectors.

CONCLUSION:
Blend automation with skilled inspection.
"""
    client = ScriptedLLMClient(["Summary of A.", "Summary of B.", reply])

    result = _pipeline(client, [], delay=0).run(
        debate_operation("Automation"), [_document("a.txt"), _document("b.txt")]
    )

    assert result.topic == "Automation"
    assert [(item.speaker, item.argument) for item in result.rounds] == [
        ("a.txt", "Automation pays for itself quickly."),
        ("b.txt", "People remain the best inspectors."),
    ]
    assert result.conclusion == "Blend automation with skilled inspection."
    assert "Automation" in client.calls[2]["messages"][0]["content"]


def test_writing_operation_accepts_a_single_document() -> None:
    reply = "TEXT:\nA short memo.\nSUGGESTIONS:\n- Add a deadline for replies\nSTYLE NOTES:\nNeutral business tone."
    client = ScriptedLLMClient(["Summary of A.", reply])

    result = _pipeline(client, [], delay=0).run(
        writing_operation("Write a memo", "draft"), [_document("a.txt")]
    )

    assert result.generated_text == "A short memo."
    assert result.suggestions == ["Add a deadline for replies"]
    assert result.style_notes == "Neutral business tone."
    assert "Write a memo" in client.calls[1]["messages"][1]["content"]


def test_writing_operation_rejects_unknown_mode() -> None:
    with pytest.raises(ValueError, match="Unknown writing mode"):
        writing_operation("Write a memo", "poetry")


def test_writing_operation_requires_a_document() -> None:
    with pytest.raises(InsufficientDocumentsError, match="at least 1 document"):
        _pipeline(ScriptedLLMClient([]), []).run(writing_operation("Write", "draft"), [])


def test_generate_suggested_questions_parses_lines() -> None:
    client = ScriptedLLMClient(
        ["What does the plan cover?\nWho owns the budget?\nnot a question\nWhen is the audit?"]
    )

    questions = generate_suggested_questions(client, [_document("a.txt")])

    assert questions == [
        "What does the plan cover?",
        "Who owns the budget?",
        "When is the audit?",
    ]
    assert client.calls[0]["temperature"] == 0.8


def test_generate_suggested_questions_returns_empty_on_failure() -> None:
    client = ScriptedLLMClient([InferenceAPIError("boom")])

    assert generate_suggested_questions(client, [_document("a.txt")]) == []
    assert generate_suggested_questions(client, []) == []
