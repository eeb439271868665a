from docqa.services.rag.query import find_relevant_sources
from docqa.services.rag.session import DocumentSession
from docqa.services.rag.types import Document, QueryResponse, Source

__all__ = ["Document", "DocumentSession", "QueryResponse", "Source", "find_relevant_sources"]
