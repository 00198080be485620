"""Text extraction from uploaded files — thin wrappers around LangChain loaders."""

from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from langchain_community.document_loaders import Docx2txtLoader, PyPDFLoader, TextLoader
from pydantic import BaseModel

from docchat.errors import ValidationError

if TYPE_CHECKING:
    from langchain_core.documents import Document

logger = logging.getLogger(__name__)

PDF_TYPES = {"application/pdf"}
DOCX_TYPES = {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}

_MIN_TEXT_CHARS = 10


class ExtractedText(BaseModel):
    file_name: str
    text: str
    original_length: int
    pages: int | None = None


def detect_kind(file_name: str, content_type: str | None = None) -> str:
    """Classify an upload as ``"pdf"``, ``"docx"`` or ``"text"``."""
    suffix = Path(file_name).suffix.lower()
    if content_type in PDF_TYPES or suffix == ".pdf":
        return "pdf"
    if content_type in DOCX_TYPES or suffix == ".docx":
        return "docx"
    if (content_type or "").startswith("text/") or suffix in {".txt", ".md", ".csv", ".json", ".html"}:
        return "text"
    raise ValidationError(f"Unsupported file type for {file_name!r} ({content_type or 'unknown'})")


def clean_extracted_text(text: str) -> str:
    """Normalise line endings and collapse runs of blank lines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n\s*\n", "\n\n", text)
    return text.strip()


def load_pdf(path: str | Path) -> list[Document]:
    """Load a single PDF file, one document per page."""
    return PyPDFLoader(str(path)).load()


def load_docx(path: str | Path) -> list[Document]:
    """Load a single Word document."""
    return Docx2txtLoader(str(path)).load()


def load_text(path: str | Path) -> list[Document]:
    """Load a plain-text file, guessing its encoding."""
    return TextLoader(str(path), autodetect_encoding=True).load()


_LOADERS = {"pdf": load_pdf, "docx": load_docx, "text": load_text}


def extract_text(file_name: str, data: bytes, content_type: str | None = None) -> ExtractedText:
    """Extract plain text from the raw bytes of an uploaded file.

    Parameters
    ----------
    file_name:
        Original file name; its suffix decides the loader when the content
        type is missing or generic.
    data:
        File contents.
    content_type:
        MIME type reported by the client, if any.

    Raises
    ------
    ValidationError
        Unsupported type, unreadable file, or no text could be extracted.
    """
    if not data:
        raise ValidationError("No file provided")
    kind = detect_kind(file_name, content_type)
    suffix = Path(file_name).suffix or f".{kind}"

    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / f"upload{suffix}"
        path.write_bytes(data)
        try:
            docs = _LOADERS[kind](path)
        except Exception as exc:
            logger.warning("Failed to parse %s as %s: %s", file_name, kind, exc)
            raise ValidationError(f"Failed to parse {kind.upper()} file", details=str(exc)) from exc

    raw = "\n\n".join(doc.page_content for doc in docs)
    text = clean_extracted_text(raw)
    logger.info("Extracted %d characters from %s (%s)", len(text), file_name, kind)
    if len(text) < _MIN_TEXT_CHARS:
        raise ValidationError(
            f"{file_name} appears to be empty or text could not be extracted; "
            "it might contain only images or be corrupted."
        )
    return ExtractedText(
        file_name=file_name,
        text=text,
        original_length=len(raw),
        pages=len(docs) if kind == "pdf" else None,
    )
