from __future__ import annotations

from typing import Sequence

from docqa.llm import Message

ANSWER_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions using the provided documents. "
    "Only use information from the context. If the answer is not in the context, "
    "say that you do not have that information."
)

WRITING_MODES = {
    "draft": "Write a new draft that fulfils the request, grounded in the documents.",
    "continue": "Continue the text described in the request in the same voice.",
    "rewrite": "Rewrite the text described in the request to be clearer and tighter.",
    "summarize": "Write a concise summary that fulfils the request.",
}


def _documents_block(summaries: Sequence[tuple[str, str]]) -> str:
    return "\n\n".join(
        f"Document {index}: {name}\n{summary}"
        for index, (name, summary) in enumerate(summaries, start=1)
    )


def answer_messages(*, context: str, question: str) -> list[Message]:
    return [
        {"role": "system", "content": ANSWER_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": (
                f"Document context:\n{context}\n\n"
                f"Question: {question}\n\n"
                "Answer clearly and concisely based only on the context provided."
            ),
        },
    ]


def summary_messages(*, name: str, excerpt: str) -> list[Message]:
    return [
        {
            "role": "user",
            "content": (
                f"Summarize the key points of the document \"{name}\" in 3-4 sentences.\n\n"
                f"{excerpt}"
            ),
        }
    ]


def comparison_messages(summaries: Sequence[tuple[str, str]]) -> list[Message]:
    return [
        {
            "role": "user",
            "content": (
                f"Analyze and compare these {len(summaries)} documents:\n\n"
                f"{_documents_block(summaries)}\n\n"
                "Respond ONLY in this exact format:\n\n"
                "SIMILARITIES:\n- First similarity\n- Second similarity\n- Third similarity\n\n"
                "DIFFERENCES:\n- First difference\n- Second difference\n- Third difference\n\n"
                "SUMMARY:\nA short paragraph summarizing the comparison."
            ),
        }
    ]


def contradiction_messages(summaries: Sequence[tuple[str, str]]) -> list[Message]:
    return [
        {
            "role": "user",
            "content": (
                "Review these documents for statements that contradict each other and for "
                "topics that one document covers but the others leave out:\n\n"
                f"{_documents_block(summaries)}\n\n"
                "Respond ONLY in this exact format:\n\n"
                "CONTRADICTIONS:\n- Contradiction, naming the documents involved\n\n"
                "GAPS:\n- Missing information, naming the document that lacks it\n\n"
                "SUMMARY:\nA short paragraph on how consistent the documents are."
            ),
        }
    ]


def debate_messages(summaries: Sequence[tuple[str, str]], *, topic: str) -> list[Message]:
    speakers = "\n".join(f"{name}:\nThe argument of {name}." for name, _ in summaries)
    return [
        {
            "role": "user",
            "content": (
                f"Simulate a debate about \"{topic}\" where each document argues its own "
                "position using only its content:\n\n"
                f"{_documents_block(summaries)}\n\n"
                "Respond ONLY in this exact format, one section per document, using the "
                "document name as the label:\n\n"
                f"{speakers}\n\n"
                "CONCLUSION:\nA balanced paragraph weighing the arguments."
            ),
        }
    ]


def writing_messages(
    summaries: Sequence[tuple[str, str]],
    *,
    prompt: str,
    mode: str,
) -> list[Message]:
    return [
        {
            "role": "system",
            "content": "You are a writing assistant. " + WRITING_MODES[mode],
        },
        {
            "role": "user",
            "content": (
                f"Reference documents:\n\n{_documents_block(summaries)}\n\n"
                f"Request: {prompt}\n\n"
                "Respond ONLY in this exact format:\n\n"
                "TEXT:\nThe generated text.\n\n"
                "SUGGESTIONS:\n- A suggestion to improve the text\n\n"
                "STYLE NOTES:\nOne paragraph describing tone and style."
            ),
        },
    ]


def suggested_question_messages(*, sample: str) -> list[Message]:
    return [
        {
            "role": "user",
            "content": (
                "Based on the following document content, write exactly 4 relevant, "
                "specific questions a user might ask.\n\n"
                f"Content:\n{sample}\n\n"
                "Reply ONLY with the 4 questions, one per line, without numbering."
            ),
        }
    ]
