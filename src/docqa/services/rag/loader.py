from __future__ import annotations

import csv
import io
import logging
from pathlib import PurePath
from typing import Any

from docqa.services.rag.types import ParsedDocument

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = {
    ".txt",
    ".md",
    ".markdown",
    ".json",
    ".js",
    ".ts",
    ".jsx",
    ".tsx",
    ".html",
    ".css",
    ".xml",
    ".yaml",
    ".yml",
}
FILE_TYPE_LABELS = {
    ".pdf": "PDF",
    ".docx": "Word",
    ".csv": "CSV",
    ".xlsx": "Excel",
    ".txt": "Text",
    ".md": "Markdown",
    ".markdown": "Markdown",
    ".json": "JSON",
    ".js": "JavaScript",
    ".ts": "TypeScript",
    ".jsx": "React",
    ".tsx": "React TypeScript",
    ".html": "HTML",
    ".css": "CSS",
    ".xml": "XML",
    ".yaml": "YAML",
    ".yml": "YAML",
}


class DocumentParsingError(ValueError):
    pass


class EmptyDocumentError(DocumentParsingError):
    pass


def describe_file_type(filename: str) -> str:
    return FILE_TYPE_LABELS.get(PurePath(filename).suffix.lower(), "File")


def _parse_pdf(data: bytes) -> tuple[str, dict[str, Any]]:
    import PyPDF2

    reader = PyPDF2.PdfReader(io.BytesIO(data))
    pages = [(page.extract_text() or "").strip() for page in reader.pages]
    return "\n\n".join(page for page in pages if page), {"page_count": len(reader.pages)}


def _parse_docx(data: bytes) -> tuple[str, dict[str, Any]]:
    from docx import Document as DocxDocument

    doc = DocxDocument(io.BytesIO(data))
    parts = [paragraph.text for paragraph in doc.paragraphs if paragraph.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            row_text = " | ".join(cell.text.strip() for cell in row.cells if cell.text.strip())
            if row_text:
                parts.append(row_text)
    return "\n\n".join(parts), {"paragraph_count": len(doc.paragraphs)}


def _parse_csv(data: bytes) -> tuple[str, dict[str, Any]]:
    rows = list(csv.reader(io.StringIO(data.decode("utf-8", errors="ignore"))))
    lines = [" | ".join(cell.strip() for cell in row) for row in rows]
    return "\n".join(lines), {"line_count": len(rows)}


def _parse_excel(data: bytes) -> tuple[str, dict[str, Any]]:
    from openpyxl import load_workbook

    workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        blocks = []
        for sheet in workbook.worksheets:
            rows = []
            for row in sheet.iter_rows(values_only=True):
                cells = [str(value).strip() for value in row if value is not None and str(value).strip()]
                if cells:
                    rows.append(" | ".join(cells))
            if rows:
                blocks.append(f"Sheet: {sheet.title}\n" + "\n".join(rows))
        sheet_count = len(workbook.worksheets)
    finally:
        workbook.close()
    return "\n\n".join(blocks), {"sheet_count": sheet_count}


_PARSERS = {
    ".pdf": _parse_pdf,
    ".docx": _parse_docx,
    ".csv": _parse_csv,
    ".xlsx": _parse_excel,
}


def parse_document(filename: str, data: bytes) -> ParsedDocument:
    """Extract plain text from an uploaded file, routing on its extension.

    Unknown extensions are read as UTF-8 text.
    """
    extension = PurePath(filename).suffix.lower()
    metadata: dict[str, Any] = {}

    parser = _PARSERS.get(extension)
    if parser is None and extension not in TEXT_EXTENSIONS:
        logger.debug("no parser for %s; reading %s as text", extension or "<none>", filename)

    try:
        if parser is not None:
            text, metadata = parser(data)
        else:
            text = data.decode("utf-8", errors="ignore")
    except Exception as exc:
        raise DocumentParsingError(f"Could not parse {filename}: {exc}") from exc

    text = text.strip()
    if not text:
        raise EmptyDocumentError(f"{filename} is empty or its text could not be extracted")

    logger.info("parsed %s: chars=%d", filename, len(text))
    return ParsedDocument(text=text, type_label=describe_file_type(filename), metadata=metadata)
