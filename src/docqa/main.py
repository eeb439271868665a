from dataclasses import asdict
from typing import Annotated, Any, Callable, Literal, TypeVar

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field
import httpx

from docqa.llm import InferenceAPIError, RateLimitedError
from docqa.logging_utils import setup_logging
from docqa.services.rag import DocumentSession
from docqa.services.rag.loader import DocumentParsingError
from docqa.services.rag.orchestrator import InsufficientDocumentsError
from docqa.services.rag.session import UnknownDocumentError
from docqa.services.rag.types import Document

app = FastAPI(title="Document QA API", version="0.1.0")

ResultT = TypeVar("ResultT")

_session: DocumentSession | None = None


class DocumentSelection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    document_ids: list[str] | None = None


class QueryRequest(DocumentSelection):
    question: str = Field(min_length=1)


class DebateRequest(DocumentSelection):
    topic: str = Field(min_length=1)


class WritingRequest(DocumentSelection):
    prompt: str = Field(min_length=1)
    mode: Literal["draft", "continue", "rewrite", "summarize"] = "draft"


@app.on_event("startup")
def startup() -> None:
    global _session
    setup_logging()
    if _session is None:
        _session = DocumentSession()


@app.on_event("shutdown")
def shutdown() -> None:
    global _session
    if _session is not None:
        _session.close()
        _session = None


def get_session() -> DocumentSession:
    if _session is None:
        raise RuntimeError("document session is not initialised; the startup hook has not run")
    return _session


SessionDep = Annotated[DocumentSession, Depends(get_session)]


def _document_summary(document: Document) -> dict[str, Any]:
    return {
        "id": document.doc_id,
        "name": document.name,
        "type": document.type_label,
        "chunk_count": len(document.chunks),
        "metadata": document.metadata,
    }


def _run(operation: Callable[[], ResultT]) -> ResultT:
    try:
        return operation()
    except UnknownDocumentError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InsufficientDocumentsError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RateLimitedError as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    except InferenceAPIError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except httpx.HTTPError as exc:
        raise HTTPException(status_code=502, detail=f"LLM request failed: {exc}") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/documents", status_code=201)
def upload_document(session: SessionDep, file: UploadFile = File(...)) -> dict[str, Any]:
    data = file.file.read()
    try:
        document = session.upload_document(file.filename or "document.txt", data)
    except DocumentParsingError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _document_summary(document)


@app.get("/documents")
def list_documents(session: SessionDep) -> list[dict[str, Any]]:
    return [_document_summary(document) for document in session.documents]


@app.post("/query")
def query_documents(request: QueryRequest, session: SessionDep) -> dict[str, Any]:
    response = _run(
        lambda: session.query_documents(
            request.question, session.get_documents(request.document_ids)
        )
    )
    return {
        "answer": response.answer,
        "sources": [
            {
                "text": source.text,
                "document_id": source.doc_id,
                "document_name": source.doc_name,
                "similarity": round(source.score, 6),
            }
            for source in response.sources
        ],
    }


@app.post("/compare")
def compare_documents(request: DocumentSelection, session: SessionDep) -> dict[str, Any]:
    result = _run(lambda: session.compare_documents(session.get_documents(request.document_ids)))
    return asdict(result)


@app.post("/contradictions")
def detect_contradictions(request: DocumentSelection, session: SessionDep) -> dict[str, Any]:
    result = _run(
        lambda: session.detect_contradictions(session.get_documents(request.document_ids))
    )
    return asdict(result)


@app.post("/debate")
def debate_documents(request: DebateRequest, session: SessionDep) -> dict[str, Any]:
    result = _run(
        lambda: session.debate_documents(
            session.get_documents(request.document_ids), request.topic
        )
    )
    return asdict(result)


@app.post("/writing")
def assist_writing(request: WritingRequest, session: SessionDep) -> dict[str, Any]:
    result = _run(
        lambda: session.assist_writing(
            session.get_documents(request.document_ids), request.prompt, request.mode
        )
    )
    return asdict(result)


@app.post("/suggested-questions")
def suggested_questions(request: DocumentSelection, session: SessionDep) -> dict[str, list[str]]:
    questions = _run(
        lambda: session.generate_suggested_questions(session.get_documents(request.document_ids))
    )
    return {"questions": questions}


def run() -> None:
    import uvicorn

    uvicorn.run("docqa.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
