from __future__ import annotations

import csv
import io
import re
from collections.abc import Callable
from datetime import datetime

import structlog

from shared.schemas.documents import ChunkLocation, ChunkMetadata
from studypotion_service.domain.exceptions import (
    ChunkingConfigurationError,
    EmptyInputError,
    ExtractionError,
    UnsupportedFormatError,
)
from studypotion_service.domain.models import TextChunk

logger = structlog.get_logger(__name__)

_MIME_TO_FORMAT = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "text/csv": "csv",
    "text/plain": "txt",
    "text/markdown": "md",
    "text/x-markdown": "md",
    "application/vnd.ms-powerpoint": "ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
}

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_INLINE_WS_RE = re.compile(r"[ \t]+")
_TRAILING_WS_RE = re.compile(r" +\n")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def resolve_format(declared: str, filename: str | None = None) -> str:
    """Map a MIME type, an extension (``pdf``/``.pdf``) or a file name onto a format key.

    An unknown MIME type (``application/octet-stream`` and the like) falls back to
    the extension of ``filename`` when one is given.
    """
    value = declared.strip().lower()
    if "/" in value:
        mime = value.split(";", 1)[0].strip()
        if mime in _MIME_TO_FORMAT:
            return _MIME_TO_FORMAT[mime]
        if filename and "." in filename:
            return resolve_format(filename)
        return mime
    return value.rsplit(".", 1)[-1]


class TextExtractionService:
    """Extracts plain text from supported document formats."""

    def __init__(self) -> None:
        self._extractors: dict[str, Callable[[bytes], str]] = {
            "pdf": self.extract_from_pdf,
            "docx": self.extract_from_docx,
            "doc": self.extract_from_docx,
            "xlsx": self.extract_from_xlsx,
            "csv": self.extract_from_csv,
            "txt": self.extract_from_text,
            "md": self.extract_from_text,
        }

    def extract_from_pdf(self, content: bytes) -> str:
        from pypdf import PdfReader

        reader = PdfReader(io.BytesIO(content))
        return "".join((page.extract_text() or "") + "\n" for page in reader.pages)

    def extract_from_docx(self, content: bytes) -> str:
        from docx import Document

        doc = Document(io.BytesIO(content))
        lines = [p.text for p in doc.paragraphs]
        for table in doc.tables:
            for row in table.rows:
                lines.append("\t".join(cell.text for cell in row.cells))
        return "\n".join(lines)

    def extract_from_xlsx(self, content: bytes) -> str:
        from openpyxl import load_workbook

        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        try:
            parts = []
            for sheet in workbook.worksheets:
                buffer = io.StringIO()
                writer = csv.writer(buffer, lineterminator="\n")
                for row in sheet.iter_rows(values_only=True):
                    writer.writerow(["" if value is None else value for value in row])
                parts.append(f"\n--- {sheet.title} ---\n{buffer.getvalue()}\n")
            return "".join(parts)
        finally:
            workbook.close()

    def extract_from_csv(self, content: bytes) -> str:
        reader = csv.reader(io.StringIO(content.decode("utf-8", errors="replace")))
        rows = []
        for row in reader:
            cells = [cell.strip() for cell in row]
            if not any(cells):
                continue
            rows.append(", ".join(cells))
        return "\n".join(rows)

    def extract_from_text(self, content: bytes) -> str:
        return content.decode("utf-8", errors="replace")

    def extract(self, content: bytes, declared: str, filename: str | None = None) -> str:
        file_format = resolve_format(declared, filename)
        extractor = self._extractors.get(file_format)
        if extractor is None:
            logger.warning("extraction.rejected.unsupported_format", declared=declared)
            raise UnsupportedFormatError(file_format or declared)

        if not content:
            raise EmptyInputError()

        try:
            text = extractor(content)
        except Exception as exc:
            logger.error(
                "extraction.failed",
                file_format=file_format,
                size_bytes=len(content),
                error=str(exc),
            )
            raise ExtractionError(file_format, str(exc)) from exc

        logger.debug(
            "extraction.completed",
            file_format=file_format,
            size_bytes=len(content),
            char_count=len(text),
        )
        return text


def clean_text(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_CHARS_RE.sub("", text)
    text = _INLINE_WS_RE.sub(" ", text)
    text = _TRAILING_WS_RE.sub("\n", text)
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


class ChunkingService:
    """Fixed-size character windows with a configurable overlap."""

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size <= 0 or overlap < 0 or overlap >= chunk_size:
            raise ChunkingConfigurationError(chunk_size, overlap)
        self._chunk_size = chunk_size
        self._overlap = overlap

    def chunk_text(self, text: str) -> list[TextChunk]:
        step = self._chunk_size - self._overlap
        chunks = [
            TextChunk(index=index, content=text[start : start + self._chunk_size], start_offset=start)
            for index, start in enumerate(range(0, len(text), step))
        ]

        logger.debug(
            "chunking.completed",
            char_count=len(text),
            chunk_count=len(chunks),
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks


def build_chunk_metadata(
    file_name: str,
    chunk_index: int,
    total_chunks: int,
    project_id: str,
    user_id: str,
    mime_type: str,
    now: datetime,
) -> ChunkMetadata:
    return ChunkMetadata(
        source=file_name,
        blob_type=mime_type,
        uploaded_at=now,
        chunk_index=chunk_index,
        total_chunks=total_chunks,
        project_id=project_id,
        user_id=user_id,
        loc=ChunkLocation(page_number=chunk_index + 1),
    )
